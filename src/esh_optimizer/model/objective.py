"""
Objective Function

The objective is an algebraic function with an optimisation direction.
Solvers always work on a minimisation problem; a maximisation objective is
negated by the reformulation step and the sign is restored on output.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

from .functions import AlgebraicFunction, FunctionClassification
from .terms import Convexity, LinearTerm, Monotonicity, QuadraticTerm, negate_convexity


class ObjectiveDirection(Enum):
    MINIMIZE = "minimize"
    MAXIMIZE = "maximize"


@dataclass
class ObjectiveProperties:
    classification: FunctionClassification = FunctionClassification.NONE
    convexity: Convexity = Convexity.NOT_SET
    monotonicity: Monotonicity = Monotonicity.NOT_SET
    direction: ObjectiveDirection = ObjectiveDirection.MINIMIZE
    has_linear_terms: bool = False
    has_quadratic_terms: bool = False
    has_monomial_terms: bool = False
    has_signomial_terms: bool = False
    has_nonlinear_expression: bool = False

    @property
    def is_minimize(self) -> bool:
        return self.direction == ObjectiveDirection.MINIMIZE

    @property
    def is_nonlinear(self) -> bool:
        return self.classification > FunctionClassification.LINEAR

    @property
    def problem_convexity(self) -> Convexity:
        """Convexity as seen by a minimiser (a concave maximand counts as convex)."""
        if self.is_minimize:
            return self.convexity
        return negate_convexity(self.convexity)


class ObjectiveFunction(AlgebraicFunction):
    """
    Objective with direction.

    Attributes:
        direction: Minimise or maximise
        properties: Structural record, see update_properties()
    """

    def __init__(
        self,
        direction: ObjectiveDirection = ObjectiveDirection.MINIMIZE,
        constant: float = 0.0,
        terms: Iterable = (),
    ):
        super().__init__(constant=constant, terms=terms)
        self.direction = direction
        self.properties = ObjectiveProperties()
        self.update_properties()

    def add(self, item) -> None:
        super().add(item)
        if hasattr(self, 'properties'):
            self.update_properties()

    def update_properties(self) -> None:
        props = self.properties
        props.direction = self.direction
        props.has_linear_terms = self.has_linear_terms
        props.has_quadratic_terms = self.has_quadratic_terms
        props.has_monomial_terms = self.has_monomial_terms
        props.has_signomial_terms = self.has_signomial_terms
        props.has_nonlinear_expression = self.has_nonlinear_expression
        props.classification = self.classification
        props.convexity = self.calculate_convexity()
        props.monotonicity = self.calculate_monotonicity()

    def calculate_value(self, point: Sequence[float]) -> float:
        return self.calculate_function_value(point)

    def __str__(self) -> str:
        return f"{self.direction.value} {self.function_string()}"


class LinearObjectiveFunction(ObjectiveFunction):
    accepted_terms = (LinearTerm,)
    accepts_expression = False


class QuadraticObjectiveFunction(ObjectiveFunction):
    accepted_terms = (LinearTerm, QuadraticTerm)
    accepts_expression = False


class NonlinearObjectiveFunction(ObjectiveFunction):
    pass
