"""
Algebraic Functions

A function is the sum of a constant, the four term collections and an
optional expression tree:

    f(x) = c + linear(x) + quadratic(x) + monomial(x) + signomial(x) + expr(x)

Constraints and objectives share this representation. Derivatives of the
term collections are assembled term by term; derivatives of the expression
tree come from CasADi and are compiled once per function.
"""

from enum import IntEnum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import casadi as ca
import numpy as np

from ..bounds.interval import Interval, IntervalVector
from .expressions import Expression, ExpressionSum
from .terms import (
    Convexity,
    LinearTerm,
    LinearTerms,
    MonomialTerm,
    MonomialTerms,
    Monotonicity,
    QuadraticTerm,
    QuadraticTerms,
    SignomialTerm,
    SignomialTerms,
    SparseVariableMatrix,
    SparseVariableVector,
    Term,
    Terms,
    combine_convexity,
    combine_monotonicity,
)


class FunctionClassification(IntEnum):
    """Kind of a constraint or objective, ordered from simplest to most general."""
    NONE = 0
    LINEAR = 1
    QUADRATIC = 2
    SIGNOMIAL = 3
    NONLINEAR = 4


class _SymbolicDerivatives:
    """Compiled CasADi value, gradient and Hessian of an expression tree."""

    def __init__(self, expression: Expression):
        indices = sorted(v.index for v in expression.variables())
        size = (max(indices) + 1) if indices else 0

        x = ca.SX.sym('x', max(size, 1))
        f = expression.get_factorable_function(x)
        gradient = ca.jacobian(f, x)
        hessian = ca.triu(ca.hessian(f, x)[0])

        self.size = size
        self.indices = indices
        self.f_func = ca.Function('f', [x], [f])
        self.grad_func = ca.Function('grad_f', [x], [gradient])
        self.hess_func = ca.Function('hess_f', [x], [hessian])

        rows, cols = hessian.sparsity().get_triplet()
        self.hessian_pattern = sorted(
            (int(r), int(c)) for r, c in zip(rows, cols) if r < size and c < size
        )

    def _argument(self, point: Sequence[float]) -> np.ndarray:
        arg = np.zeros(max(self.size, 1))
        arg[:self.size] = np.asarray(point, dtype=float)[:self.size]
        return arg

    def gradient(self, point: Sequence[float]) -> SparseVariableVector:
        values = np.array(self.grad_func(self._argument(point))).flatten()
        return {i: float(values[i]) for i in self.indices}

    def hessian(self, point: Sequence[float]) -> SparseVariableMatrix:
        values = np.array(self.hess_func(self._argument(point)))
        return {(i, j): float(values[i, j]) for i, j in self.hessian_pattern}


class AlgebraicFunction:
    """
    Sum of a constant, term collections and an optional expression tree.

    Subclasses restrict which term kinds they accept through
    `accepted_terms` and `accepts_expression`.
    """

    accepted_terms: Tuple[type, ...] = (LinearTerm, QuadraticTerm, MonomialTerm, SignomialTerm)
    accepts_expression = True

    def __init__(self, constant: float = 0.0, terms: Iterable = ()):
        self.constant = float(constant)
        self.linear_terms = LinearTerms()
        self.quadratic_terms = QuadraticTerms()
        self.monomial_terms = MonomialTerms()
        self.signomial_terms = SignomialTerms()
        self.nonlinear_expression: Optional[Expression] = None

        self._symbolic: Optional[_SymbolicDerivatives] = None
        self._gradient_sparsity: Optional[List[int]] = None
        self._hessian_sparsity: Optional[List[Tuple[int, int]]] = None

        for item in terms:
            self.add(item)

    def _collection_for(self, term: Term) -> Terms:
        if isinstance(term, LinearTerm):
            return self.linear_terms
        if isinstance(term, QuadraticTerm):
            return self.quadratic_terms
        if isinstance(term, MonomialTerm):
            return self.monomial_terms
        return self.signomial_terms

    def add(self, item: Union[Term, Terms, Expression, float]) -> None:
        """
        Add a term, a term collection, an expression or a constant.

        Raises:
            TypeError: If the item kind is not accepted by this function
        """
        if isinstance(item, Terms):
            for term in item:
                self.add(term)
            return

        if isinstance(item, Term):
            if not isinstance(item, self.accepted_terms):
                raise TypeError(f"{type(self).__name__} does not accept {type(item).__name__}")
            self._collection_for(item).add(item)
        elif isinstance(item, Expression):
            if not self.accepts_expression:
                raise TypeError(f"{type(self).__name__} does not accept nonlinear expressions")
            if self.nonlinear_expression is None:
                self.nonlinear_expression = item
            else:
                self.nonlinear_expression = ExpressionSum([self.nonlinear_expression, item])
            self._symbolic = None
        elif isinstance(item, (int, float)):
            self.constant += float(item)
            return
        else:
            raise TypeError(f"Cannot add {type(item).__name__} to a function")

        self._gradient_sparsity = None
        self._hessian_sparsity = None

    @property
    def has_linear_terms(self) -> bool:
        return len(self.linear_terms) > 0

    @property
    def has_quadratic_terms(self) -> bool:
        return len(self.quadratic_terms) > 0

    @property
    def has_monomial_terms(self) -> bool:
        return len(self.monomial_terms) > 0

    @property
    def has_signomial_terms(self) -> bool:
        return len(self.signomial_terms) > 0

    @property
    def has_nonlinear_expression(self) -> bool:
        return self.nonlinear_expression is not None

    def _collections(self) -> List[Terms]:
        return [self.linear_terms, self.quadratic_terms, self.monomial_terms, self.signomial_terms]

    def _symbolic_derivatives(self) -> Optional[_SymbolicDerivatives]:
        if self.nonlinear_expression is None:
            return None
        if self._symbolic is None:
            self._symbolic = _SymbolicDerivatives(self.nonlinear_expression)
        return self._symbolic

    # Evaluation

    def calculate_function_value(self, point: Sequence[float]) -> float:
        value = self.constant
        for collection in self._collections():
            value += collection.calculate(point)
        if self.nonlinear_expression is not None:
            value += self.nonlinear_expression.calculate(point)
        return value

    def calculate_interval(self, intervals: IntervalVector) -> Interval:
        value = Interval.point(self.constant)
        for collection in self._collections():
            if len(collection) > 0:
                value = value + collection.calculate_interval(intervals)
        if self.nonlinear_expression is not None:
            value = value + self.nonlinear_expression.calculate_interval(intervals)
        return value

    def calculate_gradient(self, point: Sequence[float], erase_zeroes: bool = False) -> SparseVariableVector:
        """
        Sparse gradient keyed by variable index.

        Args:
            point: Evaluation point
            erase_zeroes: Drop entries that evaluate to exactly zero

        Returns:
            Dict mapping variable index to partial derivative
        """
        gradient: SparseVariableVector = {}
        parts = [c.calculate_gradient(point) for c in self._collections()]

        symbolic = self._symbolic_derivatives()
        if symbolic is not None:
            parts.append(symbolic.gradient(point))

        for part in parts:
            for index, value in part.items():
                gradient[index] = gradient.get(index, 0.0) + value

        if erase_zeroes:
            gradient = {i: v for i, v in gradient.items() if v != 0.0}
        return gradient

    def calculate_hessian(self, point: Sequence[float], erase_zeroes: bool = False) -> SparseVariableMatrix:
        """
        Sparse upper-triangular Hessian keyed by (i, j) with i <= j.
        """
        hessian: SparseVariableMatrix = {}
        parts = [c.calculate_hessian(point) for c in self._collections()]

        symbolic = self._symbolic_derivatives()
        if symbolic is not None:
            parts.append(symbolic.hessian(point))

        for part in parts:
            for key, value in part.items():
                hessian[key] = hessian.get(key, 0.0) + value

        if erase_zeroes:
            hessian = {k: v for k, v in hessian.items() if v != 0.0}
        return hessian

    # Structure

    def variable_indices(self) -> List[int]:
        indices = set()
        for collection in self._collections():
            indices |= collection.variable_indices()
        if self.nonlinear_expression is not None:
            indices |= {v.index for v in self.nonlinear_expression.variables()}
        return sorted(indices)

    @property
    def gradient_sparsity_pattern(self) -> List[int]:
        """Variable indices with a structurally nonzero partial derivative."""
        if self._gradient_sparsity is None:
            indices = set()
            for collection in self._collections():
                for term in collection:
                    if term.coefficient != 0.0:
                        indices |= {v.index for v in term.variables}
            if self.nonlinear_expression is not None:
                indices |= {v.index for v in self.nonlinear_expression.variables()}
            self._gradient_sparsity = sorted(indices)
        return self._gradient_sparsity

    @property
    def hessian_sparsity_pattern(self) -> List[Tuple[int, int]]:
        """Upper-triangular (i, j) positions with a structurally nonzero entry."""
        if self._hessian_sparsity is None:
            variables = self.variable_indices()
            ones = np.ones((max(variables) + 1) if variables else 0)

            keys = set()
            for collection in (self.quadratic_terms, self.monomial_terms, self.signomial_terms):
                keys |= set(collection.calculate_hessian(ones).keys())

            symbolic = self._symbolic_derivatives()
            if symbolic is not None:
                keys |= set(symbolic.hessian_pattern)

            self._hessian_sparsity = sorted(keys)
        return self._hessian_sparsity

    @property
    def classification(self) -> FunctionClassification:
        if self.has_nonlinear_expression:
            return FunctionClassification.NONLINEAR
        if self.has_monomial_terms or self.has_signomial_terms:
            return FunctionClassification.SIGNOMIAL
        if self.has_quadratic_terms:
            return FunctionClassification.QUADRATIC
        if self.has_linear_terms:
            return FunctionClassification.LINEAR
        return FunctionClassification.NONE

    def calculate_convexity(self) -> Convexity:
        convexity = Convexity.LINEAR
        for collection in self._collections():
            if len(collection) > 0:
                convexity = combine_convexity(convexity, collection.convexity)
        if self.nonlinear_expression is not None:
            convexity = combine_convexity(convexity, self.nonlinear_expression.convexity)
        return convexity

    def calculate_monotonicity(self) -> Monotonicity:
        monotonicity = Monotonicity.CONSTANT
        for collection in self._collections():
            if len(collection) > 0:
                monotonicity = combine_monotonicity(monotonicity, collection.monotonicity)
        if self.nonlinear_expression is not None:
            monotonicity = combine_monotonicity(monotonicity, self.nonlinear_expression.monotonicity)
        return monotonicity

    def function_string(self) -> str:
        parts = [str(c) for c in self._collections() if len(c) > 0]
        if self.nonlinear_expression is not None:
            parts.append(f"+{self.nonlinear_expression}")
        if self.constant != 0.0 or not parts:
            parts.append(f"{self.constant:+g}")
        return " ".join(parts)
