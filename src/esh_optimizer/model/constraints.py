"""
Constraints

A numeric constraint bounds an algebraic function on both sides:

    L <= f(x) <= U

where either bound may be infinite. Three variants narrow which parts of
f are accepted:
- LinearConstraint:    linear terms only
- QuadraticConstraint: linear and quadratic terms
- NonlinearConstraint: any term kind plus an expression tree

Evaluating a constraint at a point gives a NumericConstraintValue with the
per-side normalized violations (L - f and f - U) and an error, the largest
positive violation. Values sort with the largest error first.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

import numpy as np

from .functions import AlgebraicFunction, FunctionClassification
from .terms import Convexity, LinearTerm, Monotonicity, QuadraticTerm


class ConstraintSignType(Enum):
    """Which sides of a constraint are bounded."""
    NONE = "none"
    EQUALITY = "equality"
    LESS_THAN = "less_than"
    GREATER_THAN = "greater_than"
    LESS_THAN_AND_GREATER_THAN = "less_than_and_greater_than"


@dataclass
class ConstraintProperties:
    """
    Structural record of a constraint, refreshed by update_properties().

    Attributes:
        classification: Most general term kind present
        convexity: Convexity of the constraint function f
        monotonicity: Monotonicity of f
        sign_type: Which sides are bounded
        has_*: Which parts of f are populated
    """
    classification: FunctionClassification = FunctionClassification.NONE
    convexity: Convexity = Convexity.NOT_SET
    monotonicity: Monotonicity = Monotonicity.NOT_SET
    sign_type: ConstraintSignType = ConstraintSignType.NONE
    has_linear_terms: bool = False
    has_quadratic_terms: bool = False
    has_monomial_terms: bool = False
    has_signomial_terms: bool = False
    has_nonlinear_expression: bool = False

    @property
    def is_nonlinear(self) -> bool:
        return self.classification > FunctionClassification.LINEAR

    @property
    def set_convexity(self) -> Convexity:
        """Convexity of the feasible set {x : L <= f(x) <= U}."""
        f = self.convexity
        if f in (Convexity.LINEAR, Convexity.NOT_SET) or self.sign_type == ConstraintSignType.NONE:
            return Convexity.LINEAR if f != Convexity.NOT_SET else f
        if f == Convexity.UNKNOWN:
            return Convexity.UNKNOWN

        if self.sign_type == ConstraintSignType.LESS_THAN:
            return Convexity.CONVEX if f == Convexity.CONVEX else Convexity.NONCONVEX
        if self.sign_type == ConstraintSignType.GREATER_THAN:
            return Convexity.CONVEX if f == Convexity.CONCAVE else Convexity.NONCONVEX
        return Convexity.NONCONVEX


@dataclass
class NumericConstraintValue:
    """
    Snapshot of a constraint evaluated at a point.

    Attributes:
        constraint: The evaluated constraint
        function_value: f(x)
        is_fulfilled_lhs: L - f(x) <= 0
        normalized_lhs_value: L - f(x)
        is_fulfilled_rhs: f(x) - U <= 0
        normalized_rhs_value: f(x) - U
        is_fulfilled: Both sides fulfilled
        normalized_value: The larger of the two normalized values
        error: max(0, normalized_value)
    """
    constraint: 'NumericConstraint'
    function_value: float
    is_fulfilled_lhs: bool
    normalized_lhs_value: float
    is_fulfilled_rhs: bool
    normalized_rhs_value: float
    is_fulfilled: bool
    normalized_value: float
    error: float

    def __lt__(self, other: 'NumericConstraintValue') -> bool:
        # Larger error sorts first
        return self.error > other.error


class NumericConstraint(AlgebraicFunction):
    """
    A two-sided constraint L <= f(x) <= U.

    Attributes:
        index: Position of the constraint in the owning problem
        name: Constraint name
        value_lhs: Lower bound L (may be -inf)
        value_rhs: Upper bound U (may be +inf)
        properties: Structural record, see update_properties()
    """

    def __init__(
        self,
        index: int = -1,
        name: str = "",
        value_lhs: float = -np.inf,
        value_rhs: float = np.inf,
        constant: float = 0.0,
        terms: Iterable = (),
    ):
        if value_lhs > value_rhs:
            raise ValueError(f"Constraint {name or index}: lhs {value_lhs} exceeds rhs {value_rhs}")

        super().__init__(constant=constant, terms=terms)
        self.index = index
        self.name = name if name or index < 0 else f"c{index}"
        self.value_lhs = float(value_lhs)
        self.value_rhs = float(value_rhs)
        self.properties = ConstraintProperties()
        self.update_properties()

    def add(self, item) -> None:
        super().add(item)
        # Adding during construction happens before properties exist
        if hasattr(self, 'properties'):
            self.update_properties()

    def update_properties(self) -> None:
        """Recompute classification, convexity and sign type from the populated parts."""
        props = self.properties
        props.has_linear_terms = self.has_linear_terms
        props.has_quadratic_terms = self.has_quadratic_terms
        props.has_monomial_terms = self.has_monomial_terms
        props.has_signomial_terms = self.has_signomial_terms
        props.has_nonlinear_expression = self.has_nonlinear_expression
        props.classification = self.classification
        props.convexity = self.calculate_convexity()
        props.monotonicity = self.calculate_monotonicity()
        props.sign_type = self._sign_type()

    def _sign_type(self) -> ConstraintSignType:
        lhs_finite = np.isfinite(self.value_lhs)
        rhs_finite = np.isfinite(self.value_rhs)

        if lhs_finite and rhs_finite:
            if self.value_lhs == self.value_rhs:
                return ConstraintSignType.EQUALITY
            return ConstraintSignType.LESS_THAN_AND_GREATER_THAN
        if rhs_finite:
            return ConstraintSignType.LESS_THAN
        if lhs_finite:
            return ConstraintSignType.GREATER_THAN
        return ConstraintSignType.NONE

    def calculate_numeric_value(self, point: Sequence[float], correction: float = 0.0) -> NumericConstraintValue:
        """
        Evaluate the constraint at a point.

        Args:
            point: Evaluation point
            correction: Added to f(x) before comparing with the bounds

        Returns:
            NumericConstraintValue snapshot
        """
        value = self.calculate_function_value(point) + correction

        normalized_lhs = self.value_lhs - value
        normalized_rhs = value - self.value_rhs
        fulfilled_lhs = bool(normalized_lhs <= 0)
        fulfilled_rhs = bool(normalized_rhs <= 0)
        normalized = max(normalized_lhs, normalized_rhs)

        return NumericConstraintValue(
            constraint=self,
            function_value=value,
            is_fulfilled_lhs=fulfilled_lhs,
            normalized_lhs_value=normalized_lhs,
            is_fulfilled_rhs=fulfilled_rhs,
            normalized_rhs_value=normalized_rhs,
            is_fulfilled=fulfilled_lhs and fulfilled_rhs,
            normalized_value=normalized,
            error=max(0.0, normalized),
        )

    def is_fulfilled(self, point: Sequence[float], tolerance: float = 0.0) -> bool:
        """True if both sides hold at the point within the given tolerance."""
        value = self.calculate_numeric_value(point)
        return value.normalized_lhs_value <= tolerance and value.normalized_rhs_value <= tolerance

    def __str__(self) -> str:
        body = self.function_string()
        if self.properties.sign_type == ConstraintSignType.EQUALITY:
            return f"{self.name}: {body} = {self.value_rhs:g}"
        return f"{self.name}: {self.value_lhs:g} <= {body} <= {self.value_rhs:g}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.index}, {self.name!r}, {self.properties.classification.name})"


class LinearConstraint(NumericConstraint):
    accepted_terms = (LinearTerm,)
    accepts_expression = False


class QuadraticConstraint(NumericConstraint):
    accepted_terms = (LinearTerm, QuadraticTerm)
    accepts_expression = False


class NonlinearConstraint(NumericConstraint):
    pass
