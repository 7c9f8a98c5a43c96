"""
Task Primitives

A task is one unit of work run by the TaskGraph cursor. Control tasks
change where the cursor goes next:
- ConditionalTask: evaluates a predicate and jumps to one of two names
- GotoTask: always jumps to a name
- SequentialTask: runs a private list of tasks in order, in place
- TerminateTask: stops the run
"""

from typing import TYPE_CHECKING, Callable, List, Optional

if TYPE_CHECKING:
    from ..solver.environment import Environment
    from .graph import TaskGraph


class Task:
    """Base class for every task."""

    @property
    def type(self) -> str:
        return type(self).__name__

    def run(self, env: 'Environment', graph: 'TaskGraph') -> None:
        raise NotImplementedError

    def referenced_tasks(self) -> List[str]:
        """Names this task may jump to; checked when the graph is finalized."""
        return []

    def __repr__(self) -> str:
        return self.type


class ConditionalTask(Task):
    """
    Jump on a predicate over the solver state.

    If the condition holds the cursor moves to task_if_true. Otherwise it
    moves to task_if_false, or simply advances when no false target is set.

    Subclasses override condition(); a plain ConditionalTask takes the
    predicate as a callable.

    Args:
        task_if_true: Target name when the condition holds
        task_if_false: Target name otherwise (None advances to the next slot)
        condition: Predicate used when condition() is not overridden
    """

    def __init__(
        self,
        task_if_true: str,
        task_if_false: Optional[str] = None,
        condition: Optional[Callable[['Environment'], bool]] = None,
    ):
        self.task_if_true = task_if_true
        self.task_if_false = task_if_false
        self._condition = condition

    def condition(self, env: 'Environment') -> bool:
        if self._condition is None:
            raise NotImplementedError
        return bool(self._condition(env))

    def run(self, env: 'Environment', graph: 'TaskGraph') -> None:
        if self.condition(env):
            graph.set_next_task(self.task_if_true)
        elif self.task_if_false is not None:
            graph.set_next_task(self.task_if_false)

    def referenced_tasks(self) -> List[str]:
        names = [self.task_if_true]
        if self.task_if_false is not None:
            names.append(self.task_if_false)
        return names


class GotoTask(Task):
    def __init__(self, target: str):
        self.target = target

    def run(self, env: 'Environment', graph: 'TaskGraph') -> None:
        graph.set_next_task(self.target)

    def referenced_tasks(self) -> List[str]:
        return [self.target]


class SequentialTask(Task):
    """
    Composite task running its subtasks to completion in order.

    Jumps requested by subtasks do not cross the boundary: a pending jump
    is discarded once the subtasks have run. A subtask calling
    graph.terminate() still ends the run.
    """

    def __init__(self, tasks: Optional[List[Task]] = None):
        self.tasks: List[Task] = list(tasks or [])

    def add_task(self, task: Task) -> None:
        self.tasks.append(task)

    def run(self, env: 'Environment', graph: 'TaskGraph') -> None:
        for task in self.tasks:
            graph.run_task(task, env)
            if graph.is_terminated:
                break
        graph.clear_pending_jump()

    def referenced_tasks(self) -> List[str]:
        names: List[str] = []
        for task in self.tasks:
            names.extend(task.referenced_tasks())
        return names


class TerminateTask(Task):
    def run(self, env: 'Environment', graph: 'TaskGraph') -> None:
        graph.terminate()
