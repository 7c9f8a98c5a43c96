"""
Tests for the Task Graph Engine
"""

import pytest

from esh_optimizer.exceptions import TaskError, TaskNotFoundError
from esh_optimizer.problems import convex_circle
from esh_optimizer.receipts import ActionType
from esh_optimizer.solver import Environment
from esh_optimizer.tasks import (
    ConditionalTask,
    GotoTask,
    SequentialTask,
    Task,
    TaskGraph,
    TerminateTask,
)


class Record(Task):
    """Appends a label to a shared log."""

    def __init__(self, label, log):
        self.label = label
        self.log = log

    def run(self, env, graph):
        self.log.append(self.label)


class Fail(Task):
    def run(self, env, graph):
        raise TaskError("could not do it")


class Counter(Task):
    """Counts its runs in a shared dict."""

    def __init__(self, counts, key):
        self.counts = counts
        self.key = key

    def run(self, env, graph):
        self.counts[self.key] = self.counts.get(self.key, 0) + 1


@pytest.fixture
def env():
    return Environment(convex_circle())


class TestCursor:
    """Test slot order and jumps."""

    def test_registration_order(self, env):
        """Tasks run in slot order until the end."""
        log = []
        graph = TaskGraph()
        for label in "ABC":
            graph.add_task(label, Record(label, log))

        assert graph.run(env)
        assert log == ["A", "B", "C"]
        assert graph.history == ["A", "B", "C"]
        assert env.task_graph is graph

    def test_conditional_false_target(self, env):
        """A false condition jumps to the false target, skipping slots."""
        log = []
        graph = TaskGraph()
        graph.add_task("A", Record("A", log))
        graph.add_task("Check", ConditionalTask("C", "D", condition=lambda e: False))
        graph.add_task("C", Record("C", log))
        graph.add_task("D", Record("D", log))

        graph.run(env)
        assert log == ["A", "D"]

    def test_conditional_without_false_target_advances(self, env):
        """With no false target the cursor moves to the next slot."""
        log = []
        graph = TaskGraph()
        graph.add_task("Check", ConditionalTask("End", condition=lambda e: False))
        graph.add_task("B", Record("B", log))
        graph.add_task("End", TerminateTask())

        graph.run(env)
        assert log == ["B"]

    def test_conditional_true_target(self, env):
        """A true condition jumps to the true target."""
        log = []
        graph = TaskGraph()
        graph.add_task("Check", ConditionalTask("D", condition=lambda e: True))
        graph.add_task("C", Record("C", log))
        graph.add_task("D", Record("D", log))

        graph.run(env)
        assert log == ["D"]

    def test_goto_loop_and_terminate(self, env):
        """A goto loop runs until a condition routes to terminate."""
        counts = {}
        graph = TaskGraph()
        graph.add_task("Body", Counter(counts, "body"))
        graph.add_task("Check", ConditionalTask("Stop", condition=lambda e: counts["body"] >= 3))
        graph.add_task("Loop", GotoTask("Body"))
        graph.add_task("Stop", TerminateTask())
        graph.add_task("After", Counter(counts, "after"))

        graph.run(env)
        assert counts == {"body": 3}
        assert graph.is_terminated
        assert graph.receipts.receipts[-1].action == ActionType.TERMINATE

    def test_jump_lands_on_first_binding(self, env):
        """A name bound twice resolves to its first slot."""
        counts = {}
        shared = Counter(counts, "shared")
        graph = TaskGraph()
        graph.add_task("Init", shared)
        graph.add_task("Check", ConditionalTask("Stop", "Init", condition=lambda e: counts["shared"] >= 2))
        graph.add_task("Init", shared)
        graph.add_task("Stop", TerminateTask())

        graph.run(env)
        assert counts == {"shared": 2}
        assert graph.task_names.count("Init") == 2
        assert graph.get_task("Init") is shared

    def test_plain_conditional_requires_predicate(self, env):
        """Without a callable the condition is abstract."""
        with pytest.raises(NotImplementedError):
            ConditionalTask("A").condition(env)


class TestSequential:
    """Test composite tasks."""

    def test_runs_in_place(self, env):
        """Subtasks run in order before the cursor advances."""
        log = []
        graph = TaskGraph()
        graph.add_task("Seq", SequentialTask([Record("1", log), Record("2", log)]))
        graph.add_task("After", Record("after", log))

        graph.run(env)
        assert log == ["1", "2", "after"]

    def test_subtask_jump_discarded(self, env):
        """A jump requested inside a sequence does not leave it."""
        log = []
        graph = TaskGraph()
        graph.add_task("Seq", SequentialTask([GotoTask("Skipped"), Record("in", log)]))
        graph.add_task("After", Record("after", log))
        graph.add_task("Skipped", Record("skipped", log))

        graph.run(env)
        assert log == ["in", "after", "skipped"]

    def test_subtask_terminate_applies(self, env):
        """Terminate inside a sequence ends the run."""
        log = []
        sequence = SequentialTask()
        sequence.add_task(Record("1", log))
        sequence.add_task(TerminateTask())
        sequence.add_task(Record("2", log))

        graph = TaskGraph()
        graph.add_task("Seq", sequence)
        graph.add_task("After", Record("after", log))

        graph.run(env)
        assert log == ["1"]
        assert graph.is_terminated

    def test_references_checked(self):
        """Jump targets of subtasks are resolved at finalize."""
        graph = TaskGraph()
        graph.add_task("Seq", SequentialTask([GotoTask("Missing")]))
        with pytest.raises(TaskNotFoundError):
            graph.finalize()


class TestFailuresAndReceipts:
    """Test failure recording and the receipt chain."""

    def test_unknown_target_fails_before_running(self, env):
        """Misspelt targets are rejected before any task runs."""
        log = []
        graph = TaskGraph()
        graph.add_task("A", Record("A", log))
        graph.add_task("Check", ConditionalTask("Nowhere", condition=lambda e: True))

        with pytest.raises(TaskNotFoundError):
            graph.run(env)
        assert log == []

    def test_get_missing_task(self):
        """Lookups of unknown names raise."""
        with pytest.raises(TaskNotFoundError):
            TaskGraph().get_task("A")

    def test_task_error_recorded(self, env):
        """A failing task is recorded and the run continues."""
        log = []
        graph = TaskGraph()
        graph.add_task("Bad", Fail())
        graph.add_task("Good", Record("good", log))

        assert not graph.run(env)
        assert log == ["good"]
        assert graph.failures == [("Bad", "could not do it")]
        assert env.results.task_failures == [("Bad", "could not do it")]
        assert graph.receipts.receipts[0].action == ActionType.TASK_FAILED

    def test_other_exceptions_propagate(self, env):
        """Only TaskError is absorbed."""
        class Broken(Task):
            def run(self, env, graph):
                raise ZeroDivisionError

        graph = TaskGraph()
        graph.add_task("Broken", Broken())
        with pytest.raises(ZeroDivisionError):
            graph.run(env)

    def test_rerun_starts_clean(self, env):
        """A second run does not report the failures or history of the first."""
        attempts = []

        class FailOnce(Task):
            def run(self, env, graph):
                attempts.append(1)
                if len(attempts) == 1:
                    raise TaskError("first attempt")

        graph = TaskGraph()
        graph.add_task("Flaky", FailOnce())
        graph.add_task("Stop", TerminateTask())

        assert not graph.run(env)
        assert graph.failures == [("Flaky", "first attempt")]

        assert graph.run(Environment(convex_circle()))
        assert graph.failures == []
        assert graph.history == ["Flaky", "Stop"]
        assert graph.receipts.executed_tasks() == ["Flaky", "Stop"]

    def test_receipts_verify(self, env):
        """Every executed task leaves a verifiable receipt."""
        log = []
        graph = TaskGraph()
        graph.add_task("A", Record("A", log))
        graph.add_task("B", Record("B", log))
        graph.add_task("Stop", TerminateTask())

        graph.run(env)
        actions = [r.action for r in graph.receipts.receipts]
        assert actions == [ActionType.TASK_RUN] * 3 + [ActionType.TERMINATE]
        assert [r.params["task"] for r in graph.receipts.receipts[:2]] == ["A", "B"]
        assert graph.receipts.verify_chain()

    def test_identical_runs_same_hash(self):
        """Deterministic runs give the same final receipt hash."""
        hashes = []
        for _ in range(2):
            graph = TaskGraph()
            graph.add_task("A", Record("A", []))
            graph.add_task("Stop", TerminateTask())
            graph.run(Environment(convex_circle()))
            hashes.append(graph.receipts.final_hash)
        assert hashes[0] == hashes[1]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
