"""
Solver Settings

Named, categorised and typed settings. All defaults are registered in
DEFAULT_SETTINGS; lookups of unregistered names raise SettingNotFoundError
and updates are type checked against the registered default.

Settings are addressed by (name, category), e.g. ("CutStrategy", "Dual"),
and serialise to a flat dict keyed "Category.Name".
"""

import json
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

from .exceptions import SettingNotFoundError
from .receipts import canonical_dumps


class CutStrategy(IntEnum):
    """How hyperplane points are selected."""
    ESH = 0     # Root search between an interior point and the dual solution
    ECP = 1     # Cut directly at the dual solution


class PresolveFrequency(IntEnum):
    NEVER = 0
    FIRST_ITERATION = 1
    EVERY_ITERATION = 2


class SolutionStrategyType(IntEnum):
    AUTOMATIC = 0
    SINGLE_TREE = 1
    NLP = 2


SettingValue = Union[bool, int, float, str]


@dataclass
class Setting:
    """
    A registered setting.

    Attributes:
        name: Setting name, unique within its category
        category: Category name
        value: Current value
        default: Registered default; fixes the value type
        description: Human-readable description
    """
    name: str
    category: str
    value: SettingValue
    default: SettingValue
    description: str = ""

    @property
    def key(self) -> str:
        return f"{self.category}.{self.name}"


DEFAULT_SETTINGS: List[Tuple[str, str, SettingValue, str]] = [
    # Dual strategy
    ("CutStrategy", "Dual", int(CutStrategy.ESH), "Hyperplane point selection: 0 ESH, 1 ECP"),
    ("ESH.InteriorPoint.UsePrimalSolution", "Dual", True,
     "Move the interior point towards new primal solutions"),
    ("HyperplaneCuts.ConstraintSelectionFactor", "Dual", 0.25,
     "Fraction of the violated constraints that receive a cut each iteration"),
    ("HyperplaneCuts.MaxPerIteration", "Dual", 200, "Maximal number of hyperplanes added per iteration"),
    ("HyperplaneCuts.UseIntegerCuts", "Dual", False, "Add integer cuts for infeasible integer combinations"),
    ("MIP.Presolve.Frequency", "Dual", int(PresolveFrequency.FIRST_ITERATION),
     "Bound tightening presolve: 0 never, 1 first iteration, 2 every iteration"),
    ("ReductionCut.MaxIterations", "Dual", 5, "Maximal number of primal reduction cuts"),
    ("ReductionCut.ReductionFactor", "Dual", 0.001, "Relative reduction of the primal bound used by the cut"),
    ("Repair.MaxIterations", "Dual", 10, "Maximal number of repairs of an infeasible dual problem"),
    ("Relaxation.IterationLimit", "Dual", 50, "Maximal number of relaxed (continuous) dual iterations"),
    ("Relaxation.Use", "Dual", True, "Solve continuous relaxations before the discrete dual problems"),

    # Primal strategy
    ("FixedInteger.Frequency", "Primal", 5, "Dual iterations between fixed-integer NLP calls"),
    ("FixedInteger.Use", "Primal", True, "Solve NLP problems with fixed integer values"),
    ("Linesearch.Use", "Primal", True, "Search for primal solutions between dual and interior points"),
    ("Tolerance.Constraint", "Primal", 1e-6, "Constraint tolerance for accepting primal solutions"),
    ("Tolerance.Integer", "Primal", 1e-5, "Integer feasibility tolerance"),

    # Model
    ("Convexity.AssumeConvex", "Model", False, "Treat the problem as convex regardless of detection"),

    # Root search
    ("Rootsearch.MaxIterations", "Subsolver", 100, "Maximal number of root search iterations"),
    ("Rootsearch.TerminationTolerance", "Subsolver", 1e-10, "Root search interval width tolerance"),

    # Strategy
    ("Type", "Strategy", int(SolutionStrategyType.AUTOMATIC), "Solution strategy: 0 automatic, 1 single-tree, 2 NLP"),

    # Termination
    ("ConstraintTolerance", "Termination", 1e-8, "Maximal constraint violation of a dual solution"),
    ("DualStagnation.IterationLimit", "Termination", 50,
     "Iterations without dual bound update before terminating"),
    ("IterationLimit", "Termination", 200, "Maximal number of iterations"),
    ("ObjectiveGap.Absolute", "Termination", 1e-3, "Absolute objective gap tolerance"),
    ("ObjectiveGap.Relative", "Termination", 1e-3, "Relative objective gap tolerance"),
    ("PrimalStagnation.IterationLimit", "Termination", 50,
     "Iterations without primal bound update before adding a reduction cut"),
    ("TimeLimit", "Termination", 300.0, "Time limit in seconds"),
]


def _check_type(setting: Setting, value: Any) -> SettingValue:
    """Coerce a value to the type of the setting's default or raise TypeError."""
    default = setting.default

    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
    elif isinstance(default, int):
        if isinstance(value, int) and not isinstance(value, bool):
            return int(value)
    elif isinstance(default, float):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    elif isinstance(default, str):
        if isinstance(value, str):
            return value

    raise TypeError(
        f"Setting {setting.key} expects {type(default).__name__}, got {type(value).__name__}"
    )


class Settings:
    """
    Settings provider.

    Example:
        settings = Settings()
        settings.update_setting("TimeLimit", "Termination", 10.0)
        settings.get_double_setting("TimeLimit", "Termination")
    """

    def __init__(self):
        self._settings: Dict[Tuple[str, str], Setting] = {}
        for name, category, default, description in DEFAULT_SETTINGS:
            self.create_setting(name, category, default, description)

    def create_setting(self, name: str, category: str, default: SettingValue, description: str = "") -> None:
        self._settings[(category, name)] = Setting(name, category, default, default, description)

    def _get(self, name: str, category: str) -> Setting:
        try:
            return self._settings[(category, name)]
        except KeyError:
            raise SettingNotFoundError(name, category) from None

    def has_setting(self, name: str, category: str) -> bool:
        return (category, name) in self._settings

    def get_setting(self, name: str, category: str) -> SettingValue:
        return self._get(name, category).value

    def get_int_setting(self, name: str, category: str) -> int:
        value = self.get_setting(name, category)
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Setting {category}.{name} is not an integer")
        return value

    def get_bool_setting(self, name: str, category: str) -> bool:
        value = self.get_setting(name, category)
        if not isinstance(value, bool):
            raise TypeError(f"Setting {category}.{name} is not a boolean")
        return value

    def get_double_setting(self, name: str, category: str) -> float:
        value = self.get_setting(name, category)
        if not isinstance(value, float):
            raise TypeError(f"Setting {category}.{name} is not a double")
        return value

    def get_string_setting(self, name: str, category: str) -> str:
        value = self.get_setting(name, category)
        if not isinstance(value, str):
            raise TypeError(f"Setting {category}.{name} is not a string")
        return value

    def update_setting(self, name: str, category: str, value: Any) -> None:
        setting = self._get(name, category)
        setting.value = _check_type(setting, value)

    def reset(self) -> None:
        for setting in self._settings.values():
            setting.value = setting.default

    def changed_settings(self) -> List[Setting]:
        return [s for s in self._settings.values() if s.value != s.default]

    def to_dict(self) -> Dict[str, SettingValue]:
        return {s.key: s.value for s in self._settings.values()}

    def update_from_dict(self, data: Dict[str, Any]) -> None:
        for key, value in data.items():
            category, _, name = key.partition(".")
            if not name:
                raise SettingNotFoundError(key, "")
            self.update_setting(name, category, value)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Settings':
        """Defaults overridden by a "Category.Name" -> value mapping."""
        settings = cls()
        settings.update_from_dict(data)
        return settings

    def save_json(self, path: Path) -> None:
        with open(path, 'w') as f:
            f.write(canonical_dumps(self.to_dict(), indent=2))

    @classmethod
    def load_json(cls, path: Path) -> 'Settings':
        with open(path, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    def __iter__(self):
        return iter(self._settings.values())

    def __len__(self) -> int:
        return len(self._settings)
