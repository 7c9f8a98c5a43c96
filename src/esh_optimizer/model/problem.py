"""
Problem Definition

Defines the optimization problem structure:
- Decision variables with types and bounds (stored by index)
- Numeric constraints L <= f(x) <= U
- Objective function with direction

Terms, expressions and constraints refer to variables but every derived
result is keyed by variable index, so the problem is the only owner.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..bounds.interval import IntervalVector, interval_vector
from .constraints import NumericConstraint, NumericConstraintValue
from .expressions import ExpressionNegate
from .functions import FunctionClassification
from .objective import ObjectiveDirection, ObjectiveFunction
from .terms import Convexity, combine_convexity
from .variables import Variable, VariableType


@dataclass
class ProblemProperties:
    """
    Counts and classification of a finalized problem.

    Attributes:
        number_of_*_variables: Variable counts per type
        number_of_*_constraints: Constraint counts per classification
        is_discrete: Any binary, integer or semi-integer variable present
        convexity: Convex if every constraint set and the objective are convex
        objective_classification: Classification of the objective
    """
    number_of_variables: int = 0
    number_of_real_variables: int = 0
    number_of_binary_variables: int = 0
    number_of_integer_variables: int = 0
    number_of_semicontinuous_variables: int = 0
    number_of_semiinteger_variables: int = 0
    number_of_nonlinear_variables: int = 0

    number_of_constraints: int = 0
    number_of_linear_constraints: int = 0
    number_of_quadratic_constraints: int = 0
    number_of_signomial_constraints: int = 0
    number_of_nonlinear_constraints: int = 0

    is_discrete: bool = False
    convexity: Convexity = Convexity.NOT_SET
    objective_classification: FunctionClassification = FunctionClassification.NONE

    @property
    def is_convex(self) -> bool:
        return self.convexity in (Convexity.LINEAR, Convexity.CONVEX)

    @property
    def number_of_discrete_variables(self) -> int:
        return (self.number_of_binary_variables + self.number_of_integer_variables
                + self.number_of_semiinteger_variables)

    @property
    def has_nonlinear_constraints(self) -> bool:
        return (self.number_of_quadratic_constraints + self.number_of_signomial_constraints
                + self.number_of_nonlinear_constraints) > 0

    @property
    def is_nonlinear(self) -> bool:
        return self.has_nonlinear_constraints or self.objective_classification > FunctionClassification.LINEAR

    def to_canonical(self) -> Dict[str, Any]:
        return {
            "variables": self.number_of_variables,
            "discrete_variables": self.number_of_discrete_variables,
            "constraints": self.number_of_constraints,
            "nonlinear_constraints": (self.number_of_constraints - self.number_of_linear_constraints),
            "convexity": self.convexity.value,
            "objective": self.objective_classification.name,
        }


class Problem:
    """
    A mixed-integer nonlinear program.

        min/max  f(x)
        s.t.     L_i <= g_i(x) <= U_i
                 lower <= x <= upper,  some x integer
    """

    def __init__(self, name: str = "unnamed"):
        self.name = name
        self.variables: List[Variable] = []
        self.numeric_constraints: List[NumericConstraint] = []
        self.objective_function: ObjectiveFunction = ObjectiveFunction()
        self.properties = ProblemProperties()

    def add_variable(
        self,
        name: str = "",
        type: VariableType = VariableType.CONTINUOUS,
        lower: float = -np.inf,
        upper: float = np.inf,
    ) -> Variable:
        """Create a variable with the next free index."""
        variable = Variable(len(self.variables), name, type, lower, upper)
        self.variables.append(variable)
        return variable

    def add_constraint(self, constraint: NumericConstraint) -> NumericConstraint:
        if constraint.index < 0:
            constraint.index = len(self.numeric_constraints)
        if not constraint.name:
            constraint.name = f"c{constraint.index}"
        self.numeric_constraints.append(constraint)
        return constraint

    def set_objective(self, objective: ObjectiveFunction) -> None:
        self.objective_function = objective

    def get_variable(self, index: int) -> Variable:
        return self.variables[index]

    def finalize(self) -> None:
        """Refresh all constraint and objective properties, then problem properties."""
        for constraint in self.numeric_constraints:
            constraint.update_properties()
        self.objective_function.update_properties()
        self.update_properties()

    def update_properties(self) -> None:
        props = ProblemProperties()

        props.number_of_variables = len(self.variables)
        for variable in self.variables:
            if variable.type == VariableType.CONTINUOUS:
                props.number_of_real_variables += 1
            elif variable.type == VariableType.BINARY:
                props.number_of_binary_variables += 1
            elif variable.type == VariableType.INTEGER:
                props.number_of_integer_variables += 1
            elif variable.type == VariableType.SEMICONTINUOUS:
                props.number_of_semicontinuous_variables += 1
            elif variable.type == VariableType.SEMIINTEGER:
                props.number_of_semiinteger_variables += 1

        nonlinear_indices = set()
        convexity = Convexity.LINEAR

        props.number_of_constraints = len(self.numeric_constraints)
        for constraint in self.numeric_constraints:
            classification = constraint.properties.classification
            if classification <= FunctionClassification.LINEAR:
                props.number_of_linear_constraints += 1
                continue

            if classification == FunctionClassification.QUADRATIC:
                props.number_of_quadratic_constraints += 1
            elif classification == FunctionClassification.SIGNOMIAL:
                props.number_of_signomial_constraints += 1
            else:
                props.number_of_nonlinear_constraints += 1

            nonlinear_indices |= set(constraint.variable_indices())
            convexity = combine_convexity(convexity, constraint.properties.set_convexity)

        objective = self.objective_function.properties
        if objective.is_nonlinear:
            nonlinear_indices |= set(self.objective_function.variable_indices())
        convexity = combine_convexity(convexity, objective.problem_convexity)

        props.number_of_nonlinear_variables = len(nonlinear_indices)
        props.is_discrete = props.number_of_discrete_variables > 0
        props.convexity = convexity
        props.objective_classification = objective.classification

        self.properties = props

    # Bounds

    @property
    def variable_lower_bounds(self) -> np.ndarray:
        return np.array([v.lower for v in self.variables], dtype=np.float64)

    @property
    def variable_upper_bounds(self) -> np.ndarray:
        return np.array([v.upper for v in self.variables], dtype=np.float64)

    def get_variable_bounds(self) -> IntervalVector:
        return interval_vector(self.variable_lower_bounds, self.variable_upper_bounds)

    @property
    def discrete_variables(self) -> List[Variable]:
        return [v for v in self.variables if v.is_discrete]

    @property
    def linear_constraints(self) -> List[NumericConstraint]:
        return [c for c in self.numeric_constraints if not c.properties.is_nonlinear]

    @property
    def nonlinear_constraints(self) -> List[NumericConstraint]:
        return [c for c in self.numeric_constraints if c.properties.is_nonlinear]

    # Point checks

    def calculate_numeric_values(
        self,
        point: Sequence[float],
        constraints: Optional[List[NumericConstraint]] = None,
    ) -> List[NumericConstraintValue]:
        if constraints is None:
            constraints = self.numeric_constraints
        return [c.calculate_numeric_value(point) for c in constraints]

    def get_most_deviating_numeric_constraints(
        self,
        point: Sequence[float],
        constraints: Optional[List[NumericConstraint]] = None,
        tolerance: float = 0.0,
    ) -> List[NumericConstraintValue]:
        """
        Constraint values with error above the tolerance, largest error first.

        Ties keep the constraint order.
        """
        values = [v for v in self.calculate_numeric_values(point, constraints) if v.error > tolerance]
        return sorted(values)

    def get_max_numeric_constraint_value(
        self,
        point: Sequence[float],
        constraints: Optional[List[NumericConstraint]] = None,
    ) -> Optional[NumericConstraintValue]:
        """The constraint value with the largest normalized value, or None without constraints."""
        values = self.calculate_numeric_values(point, constraints)
        if not values:
            return None
        return max(values, key=lambda v: v.normalized_value)

    def is_constraint_feasible(self, point: Sequence[float], tolerance: float = 1e-8) -> bool:
        return all(c.is_fulfilled(point, tolerance) for c in self.numeric_constraints)

    def is_integer_feasible(self, point: Sequence[float], tolerance: float = 1e-5) -> bool:
        for variable in self.discrete_variables:
            value = point[variable.index]
            if abs(value - round(value)) > tolerance:
                return False
        return True

    def is_variable_bounds_fulfilled(self, point: Sequence[float], tolerance: float = 1e-8) -> bool:
        x = np.asarray(point, dtype=np.float64)
        return bool(
            np.all(x >= self.variable_lower_bounds - tolerance) and
            np.all(x <= self.variable_upper_bounds + tolerance)
        )

    def is_feasible(
        self,
        point: Sequence[float],
        constraint_tolerance: float = 1e-8,
        integer_tolerance: float = 1e-5,
    ) -> bool:
        return (self.is_variable_bounds_fulfilled(point, constraint_tolerance)
                and self.is_integer_feasible(point, integer_tolerance)
                and self.is_constraint_feasible(point, constraint_tolerance))

    # Reformulation

    def reformulated(self) -> Tuple['Problem', float]:
        """
        Minimisation form of the problem.

        Variables and constraints are shared with this problem. A maximisation
        objective is replaced by its negation.

        Returns:
            Tuple of (reformulated problem, objective sign) where the original
            objective value equals sign times the reformulated value
        """
        problem = Problem(self.name)
        problem.variables = self.variables
        problem.numeric_constraints = self.numeric_constraints

        objective = self.objective_function
        if objective.direction == ObjectiveDirection.MINIMIZE:
            problem.objective_function = objective
            problem.update_properties()
            return problem, 1.0

        negated = type(objective)(ObjectiveDirection.MINIMIZE, -objective.constant)
        for collection in (objective.linear_terms, objective.quadratic_terms,
                           objective.monomial_terms, objective.signomial_terms):
            for term in collection:
                negated.add(replace(term, coefficient=-term.coefficient))

        if objective.nonlinear_expression is not None:
            negated.add(ExpressionNegate(objective.nonlinear_expression))

        problem.objective_function = negated
        problem.update_properties()
        return problem, -1.0

    def __str__(self) -> str:
        lines = [f"Problem {self.name}", f"  {self.objective_function}"]
        for constraint in self.numeric_constraints:
            lines.append(f"  {constraint}")
        for variable in self.variables:
            lines.append(f"  {variable.lower:g} <= {variable.name} <= {variable.upper:g} ({variable.type.value})")
        return "\n".join(lines)
