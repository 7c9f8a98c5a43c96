"""
Exceptions raised by the solver engine.
"""


class SettingNotFoundError(KeyError):
    """A setting name/category pair that was never registered."""

    def __init__(self, name: str, category: str):
        super().__init__(f"{category}.{name}")
        self.name = name
        self.category = category


class TaskNotFoundError(KeyError):
    """A task name referenced by a jump that is not registered in the graph."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name


class TaskError(RuntimeError):
    """
    A task could not complete its unit of work.

    The task graph records the failure and moves on; downstream
    termination checks route execution towards finalization.
    """
