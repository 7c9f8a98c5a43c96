"""
Timing Registry

Named wall-clock timers that tasks start and stop around each phase. A
timer accumulates over repeated start/stop pairs. The "Total" timer is
always registered and covers the whole solve.
"""

import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


@dataclass
class Timer:
    name: str
    description: str = ""
    elapsed: float = 0.0
    _started_at: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self._started_at is not None

    def start(self) -> None:
        if self._started_at is None:
            self._started_at = time.perf_counter()

    def stop(self) -> None:
        if self._started_at is not None:
            self.elapsed += time.perf_counter() - self._started_at
            self._started_at = None

    def current(self) -> float:
        if self._started_at is None:
            return self.elapsed
        return self.elapsed + time.perf_counter() - self._started_at


class Timing:
    """Registry of named timers."""

    def __init__(self):
        self._timers: Dict[str, Timer] = {}
        self.create_timer("Total", "Total solution time")

    def create_timer(self, name: str, description: str = "") -> None:
        if name not in self._timers:
            self._timers[name] = Timer(name, description)

    def _get(self, name: str) -> Timer:
        try:
            return self._timers[name]
        except KeyError:
            raise KeyError(f"Unknown timer: {name}") from None

    def start_timer(self, name: str) -> None:
        self._get(name).start()

    def stop_timer(self, name: str) -> None:
        self._get(name).stop()

    def get_elapsed_time(self, name: str) -> float:
        return self._get(name).current()

    def report(self) -> List[Tuple[str, float]]:
        """(description, seconds) of every timer with recorded time."""
        return [
            (t.description or t.name, t.current())
            for t in self._timers.values()
            if t.current() > 0.0
        ]
