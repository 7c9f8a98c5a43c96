"""
Decision Variables

Variables are owned by the Problem, which stores them in a list indexed by
their stable integer id. Terms and expressions hold references to them but
every sparse result (gradients, Hessians, sparsity patterns) is keyed by the
variable index, so ownership never flows back from a term to the problem.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np

from ..bounds.interval import Interval, IntervalVector


class VariableType(Enum):
    """Domain of a decision variable."""
    CONTINUOUS = "continuous"
    BINARY = "binary"
    INTEGER = "integer"
    SEMICONTINUOUS = "semicontinuous"
    SEMIINTEGER = "semiinteger"


DISCRETE_TYPES = {VariableType.BINARY, VariableType.INTEGER, VariableType.SEMIINTEGER}


@dataclass(eq=False)
class Variable:
    """
    A decision variable.

    Attributes:
        index: Position of the variable in the owning problem
        name: Variable name used when printing
        type: Variable domain
        lower: Lower bound
        upper: Upper bound
        is_nonlinear: Set when the variable appears in a nonlinear expression
    """
    index: int
    name: str = ""
    type: VariableType = VariableType.CONTINUOUS
    lower: float = -np.inf
    upper: float = np.inf
    is_nonlinear: bool = False

    def __post_init__(self):
        if not self.name:
            self.name = f"x{self.index}"

        if self.type == VariableType.BINARY:
            self.lower = max(self.lower, 0.0)
            self.upper = min(self.upper, 1.0)

        if self.lower > self.upper:
            raise ValueError(
                f"Variable {self.name}: lower bound {self.lower} exceeds upper bound {self.upper}"
            )

    @property
    def is_discrete(self) -> bool:
        return self.type in DISCRETE_TYPES

    def calculate(self, point: Sequence[float]) -> float:
        return float(point[self.index])

    def calculate_interval(self, intervals: IntervalVector) -> Interval:
        return intervals[self.index]

    @property
    def bound_interval(self) -> Interval:
        return Interval(self.lower, self.upper)

    def __repr__(self) -> str:
        return f"Variable({self.index}, {self.name!r}, {self.type.value})"
