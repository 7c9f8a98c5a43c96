"""
Task Graph Engine

Named slots run by a single cursor:
- The cursor starts at the first slot and advances in registration order
- A task may request a jump to a named slot; the jump is taken after it
  returns
- The run ends at a TerminateTask or when the cursor passes the last slot

A name may be bound more than once and one task instance may sit in several
slots. A jump to a name lands on the first slot bound to it. Every jump
target is resolved when the graph is finalized, so a misspelt name fails
before any task runs.
"""

import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from ..exceptions import TaskError, TaskNotFoundError
from ..receipts import ActionType, ReceiptChain
from .base import Task

if TYPE_CHECKING:
    from ..solver.environment import Environment

logger = logging.getLogger(__name__)


class TaskGraph:
    """
    Ordered task registry with a name -> slot index table.

    Example:
        graph = TaskGraph()
        graph.add_task("A", task_a)
        graph.add_task("Check", ConditionalTask("A", condition=...))
        graph.add_task("Stop", TerminateTask())
        success = graph.run(env)
    """

    def __init__(self):
        self.slots: List[Tuple[str, Task]] = []
        self.history: List[str] = []
        self.failures: List[Tuple[str, str]] = []
        self.receipts = ReceiptChain()

        self._index: Dict[str, int] = {}
        self._finalized = False
        self._pending: Optional[int] = None
        self._terminated = False

    # Assembly

    def add_task(self, name: str, task: Task) -> None:
        self.slots.append((name, task))
        self._finalized = False

    def has_task(self, name: str) -> bool:
        return any(slot_name == name for slot_name, _ in self.slots)

    def get_task(self, name: str) -> Task:
        for slot_name, task in self.slots:
            if slot_name == name:
                return task
        raise TaskNotFoundError(name)

    @property
    def task_names(self) -> List[str]:
        return [name for name, _ in self.slots]

    def finalize(self) -> None:
        """Build the name -> first slot table and resolve every jump target."""
        self._index = {}
        for position, (name, _) in enumerate(self.slots):
            self._index.setdefault(name, position)

        for name, task in self.slots:
            for target in task.referenced_tasks():
                if target not in self._index:
                    raise TaskNotFoundError(target)

        self._finalized = True

    # Cursor control, called by running tasks

    def set_next_task(self, name: str) -> None:
        if name not in self._index:
            raise TaskNotFoundError(name)
        self._pending = self._index[name]

    def clear_pending_jump(self) -> None:
        self._pending = None

    def terminate(self) -> None:
        self._terminated = True

    @property
    def is_terminated(self) -> bool:
        return self._terminated

    # Execution

    def run_task(self, task: Task, env: 'Environment', name: Optional[str] = None) -> bool:
        """
        Run one task, recording a TaskError instead of propagating it.

        Returns:
            True if the task completed
        """
        name = name or task.type
        logger.debug(f"Started task: {task.type}")

        try:
            task.run(env, self)
        except TaskError as e:
            message = str(e)
            logger.warning(f"Task {name} failed: {message}")
            self.failures.append((name, message))
            env.results.task_failures.append((name, message))
            self.receipts.add_receipt(
                ActionType.TASK_FAILED,
                {"task": name, "type": task.type, "message": message},
                env.state_summary(),
            )
            return False

        self.history.append(name)
        self.receipts.add_receipt(
            ActionType.TASK_RUN,
            {"task": name, "type": task.type},
            env.state_summary(),
        )
        logger.debug(f"Finished task: {task.type}")
        return True

    def run(self, env: 'Environment') -> bool:
        """
        Run from the first slot until a TerminateTask or the end of the slots.

        Each run starts with an empty history, failure list and receipt chain.

        Returns:
            True if no task failed
        """
        if not self._finalized:
            self.finalize()

        env.task_graph = self
        self._terminated = False
        self.history = []
        self.failures = []
        self.receipts = ReceiptChain()
        self._pending = None
        cursor = 0

        while 0 <= cursor < len(self.slots):
            name, task = self.slots[cursor]
            self._pending = None

            self.run_task(task, env, name)

            if self._terminated:
                self.receipts.add_receipt(ActionType.TERMINATE, {"task": name}, env.state_summary())
                break

            cursor = self._pending if self._pending is not None else cursor + 1

        self._pending = None
        return not self.failures
