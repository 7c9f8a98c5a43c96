"""
Term Algebra

Typed algebraic terms over decision variables:
- LinearTerm:    c * x
- QuadraticTerm: c * x * y  (square when x is y, bilinear otherwise)
- MonomialTerm:  c * x1 * x2 * ... * xn
- SignomialTerm: c * x1^p1 * x2^p2 * ... * xn^pn

Each term supports point evaluation, interval evaluation, a sparse gradient
and a sparse upper-triangular Hessian keyed by variable index, and reports
its own convexity and monotonicity.

Terms are grouped in ordered collections (LinearTerms, QuadraticTerms, ...)
that sum member evaluations, accumulate gradients, and cache an aggregate
convexity/monotonicity. Any `add` invalidates the caches; they are
recomputed lazily on the next query.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Generic, Iterable, Iterator, List, Sequence, Set, Tuple, TypeVar, Union

import numpy as np
from scipy.sparse import coo_matrix

from ..bounds.interval import Interval, IntervalVector
from .variables import Variable, VariableType


SparseVariableVector = Dict[int, float]
SparseVariableMatrix = Dict[Tuple[int, int], float]


class Convexity(Enum):
    """Convexity classification of a function."""
    LINEAR = "linear"
    CONVEX = "convex"
    CONCAVE = "concave"
    NONCONVEX = "nonconvex"
    UNKNOWN = "unknown"
    NOT_SET = "not_set"


class Monotonicity(Enum):
    """Monotonicity classification of a function."""
    NONDECREASING = "nondecreasing"
    NONINCREASING = "nonincreasing"
    CONSTANT = "constant"
    UNKNOWN = "unknown"
    NOT_SET = "not_set"


def combine_convexity(first: Convexity, second: Convexity) -> Convexity:
    """Convexity of the sum of two functions."""
    if first == Convexity.NOT_SET:
        return second
    if second == Convexity.NOT_SET:
        return first
    if first == Convexity.UNKNOWN or second == Convexity.UNKNOWN:
        return Convexity.UNKNOWN
    if first == Convexity.LINEAR:
        return second
    if second == Convexity.LINEAR:
        return first
    if first == second and first in (Convexity.CONVEX, Convexity.CONCAVE):
        return first
    return Convexity.NONCONVEX


def negate_convexity(convexity: Convexity) -> Convexity:
    if convexity == Convexity.CONVEX:
        return Convexity.CONCAVE
    if convexity == Convexity.CONCAVE:
        return Convexity.CONVEX
    return convexity


def combine_monotonicity(first: Monotonicity, second: Monotonicity) -> Monotonicity:
    """Monotonicity of the sum of two functions."""
    if first == Monotonicity.NOT_SET:
        return second
    if second == Monotonicity.NOT_SET:
        return first
    if first == Monotonicity.CONSTANT:
        return second
    if second == Monotonicity.CONSTANT:
        return first
    if first == second and first != Monotonicity.UNKNOWN:
        return first
    return Monotonicity.UNKNOWN


def negate_monotonicity(monotonicity: Monotonicity) -> Monotonicity:
    if monotonicity == Monotonicity.NONDECREASING:
        return Monotonicity.NONINCREASING
    if monotonicity == Monotonicity.NONINCREASING:
        return Monotonicity.NONDECREASING
    return monotonicity


def monotonicity_from_sign(value: float) -> Monotonicity:
    if value > 0:
        return Monotonicity.NONDECREASING
    if value < 0:
        return Monotonicity.NONINCREASING
    return Monotonicity.CONSTANT


def _accumulate(target: Dict, key, value: float) -> None:
    target[key] = target.get(key, 0.0) + value


def _hessian_key(first: int, second: int) -> Tuple[int, int]:
    return (first, second) if first <= second else (second, first)


def _format_coefficient(coefficient: float) -> str:
    if coefficient == 1.0:
        return "+"
    if coefficient == -1.0:
        return "-"
    if coefficient >= 0:
        return f"+{coefficient:g}*"
    return f"{coefficient:g}*"


class Term:
    """Base class for algebraic terms."""
    coefficient: float

    def calculate(self, point: Sequence[float]) -> float:
        raise NotImplementedError

    def calculate_interval(self, intervals: IntervalVector) -> Interval:
        raise NotImplementedError

    def calculate_gradient(self, point: Sequence[float]) -> SparseVariableVector:
        raise NotImplementedError

    def calculate_hessian(self, point: Sequence[float]) -> SparseVariableMatrix:
        raise NotImplementedError

    @property
    def convexity(self) -> Convexity:
        raise NotImplementedError

    @property
    def monotonicity(self) -> Monotonicity:
        raise NotImplementedError

    @property
    def variables(self) -> List[Variable]:
        raise NotImplementedError


@dataclass(eq=False)
class LinearTerm(Term):
    """c * x"""
    coefficient: float
    variable: Variable

    def calculate(self, point: Sequence[float]) -> float:
        return self.coefficient * self.variable.calculate(point)

    def calculate_interval(self, intervals: IntervalVector) -> Interval:
        return self.coefficient * self.variable.calculate_interval(intervals)

    def calculate_gradient(self, point: Sequence[float]) -> SparseVariableVector:
        return {self.variable.index: self.coefficient}

    def calculate_hessian(self, point: Sequence[float]) -> SparseVariableMatrix:
        return {}

    @property
    def convexity(self) -> Convexity:
        return Convexity.LINEAR

    @property
    def monotonicity(self) -> Monotonicity:
        return monotonicity_from_sign(self.coefficient)

    @property
    def variables(self) -> List[Variable]:
        return [self.variable]

    def __str__(self) -> str:
        return f"{_format_coefficient(self.coefficient)}{self.variable.name}"


@dataclass(eq=False)
class QuadraticTerm(Term):
    """
    c * x * y

    Attributes:
        coefficient: Term coefficient
        first_variable: First factor
        second_variable: Second factor (the same object for a square term)
    """
    coefficient: float
    first_variable: Variable
    second_variable: Variable

    @property
    def is_square(self) -> bool:
        return self.first_variable is self.second_variable

    @property
    def is_bilinear(self) -> bool:
        return not self.is_square

    @property
    def is_binary(self) -> bool:
        return (self.first_variable.type == VariableType.BINARY
                and self.second_variable.type == VariableType.BINARY)

    def calculate(self, point: Sequence[float]) -> float:
        return (self.coefficient
                * self.first_variable.calculate(point)
                * self.second_variable.calculate(point))

    def calculate_interval(self, intervals: IntervalVector) -> Interval:
        if self.is_square:
            return self.coefficient * self.first_variable.calculate_interval(intervals).square()
        return (self.coefficient
                * self.first_variable.calculate_interval(intervals)
                * self.second_variable.calculate_interval(intervals))

    def calculate_gradient(self, point: Sequence[float]) -> SparseVariableVector:
        if self.is_square:
            index = self.first_variable.index
            return {index: 2.0 * self.coefficient * point[index]}

        gradient: SparseVariableVector = {}
        _accumulate(gradient, self.first_variable.index,
                    self.coefficient * self.second_variable.calculate(point))
        _accumulate(gradient, self.second_variable.index,
                    self.coefficient * self.first_variable.calculate(point))
        return gradient

    def calculate_hessian(self, point: Sequence[float]) -> SparseVariableMatrix:
        if self.is_square:
            index = self.first_variable.index
            return {(index, index): 2.0 * self.coefficient}
        key = _hessian_key(self.first_variable.index, self.second_variable.index)
        return {key: self.coefficient}

    @property
    def convexity(self) -> Convexity:
        if self.is_square:
            if self.coefficient > 0:
                return Convexity.CONVEX
            if self.coefficient < 0:
                return Convexity.CONCAVE
            return Convexity.LINEAR
        return Convexity.NONCONVEX

    @property
    def monotonicity(self) -> Monotonicity:
        return monotonicity_from_sign(self.coefficient)

    @property
    def variables(self) -> List[Variable]:
        if self.is_square:
            return [self.first_variable]
        return [self.first_variable, self.second_variable]

    def __str__(self) -> str:
        if self.is_square:
            body = f"{self.first_variable.name}^2"
        else:
            body = f"{self.first_variable.name}*{self.second_variable.name}"
        return f"{_format_coefficient(self.coefficient)}{body}"


@dataclass(eq=False)
class MonomialTerm(Term):
    """c * x1 * x2 * ... * xn"""
    coefficient: float
    factors: List[Variable] = field(default_factory=list)

    def __post_init__(self):
        if not self.factors:
            raise ValueError("A monomial term needs at least one variable")

    @property
    def is_binary(self) -> bool:
        return all(v.type == VariableType.BINARY for v in self.factors)

    def calculate(self, point: Sequence[float]) -> float:
        value = self.coefficient
        for variable in self.factors:
            value *= variable.calculate(point)
        return value

    def calculate_interval(self, intervals: IntervalVector) -> Interval:
        value = Interval.point(self.coefficient)
        for variable in self.factors:
            value = value * variable.calculate_interval(intervals)
        return value

    def calculate_gradient(self, point: Sequence[float]) -> SparseVariableVector:
        values = [v.calculate(point) for v in self.factors]
        gradient: SparseVariableVector = {}

        # Product rule: d/dx_i is the product of every other factor
        for i, variable in enumerate(self.factors):
            partial = self.coefficient
            for j, value in enumerate(values):
                if j != i:
                    partial *= value
            _accumulate(gradient, variable.index, partial)

        return gradient

    def calculate_hessian(self, point: Sequence[float]) -> SparseVariableMatrix:
        values = [v.calculate(point) for v in self.factors]
        hessian: SparseVariableMatrix = {}
        n = len(self.factors)

        for a in range(n):
            for b in range(a + 1, n):
                partial = self.coefficient
                for k in range(n):
                    if k != a and k != b:
                        partial *= values[k]

                first, second = self.factors[a], self.factors[b]
                if first is second:
                    partial *= 2.0
                _accumulate(hessian, _hessian_key(first.index, second.index), partial)

        return hessian

    @property
    def convexity(self) -> Convexity:
        return Convexity.UNKNOWN

    @property
    def monotonicity(self) -> Monotonicity:
        return Monotonicity.UNKNOWN

    @property
    def variables(self) -> List[Variable]:
        return list(self.factors)

    def __str__(self) -> str:
        return f"{self.coefficient:+g}*" + "*".join(v.name for v in self.factors)


@dataclass(eq=False)
class SignomialElement:
    """x^p"""
    variable: Variable
    power: float

    def calculate(self, point: Sequence[float]) -> float:
        return float(np.power(self.variable.calculate(point), self.power))

    def calculate_interval(self, intervals: IntervalVector) -> Interval:
        return self.variable.calculate_interval(intervals) ** self.power

    def calculate_derivative(self, point: Sequence[float]) -> float:
        if self.power == 1.0:
            return 1.0
        return self.power * float(np.power(self.variable.calculate(point), self.power - 1.0))

    def calculate_second_derivative(self, point: Sequence[float]) -> float:
        if self.power in (0.0, 1.0):
            return 0.0
        return (self.power * (self.power - 1.0)
                * float(np.power(self.variable.calculate(point), self.power - 2.0)))

    def __str__(self) -> str:
        if self.power == 1.0:
            return self.variable.name
        if self.power > 0.0:
            return f"{self.variable.name}^{self.power:g}"
        return f"{self.variable.name}^({self.power:g})"


@dataclass(eq=False)
class SignomialTerm(Term):
    """c * x1^p1 * ... * xn^pn"""
    coefficient: float
    elements: List[SignomialElement] = field(default_factory=list)

    def __post_init__(self):
        if not self.elements:
            raise ValueError("A signomial term needs at least one element")

    def _power_summary(self) -> Tuple[int, float]:
        positive_powers = sum(1 for e in self.elements if e.power > 0)
        sum_powers = sum(e.power for e in self.elements)
        return positive_powers, sum_powers

    def calculate(self, point: Sequence[float]) -> float:
        value = self.coefficient
        for element in self.elements:
            value *= element.calculate(point)
        return value

    def calculate_interval(self, intervals: IntervalVector) -> Interval:
        value = Interval.point(self.coefficient)
        for element in self.elements:
            value = value * element.calculate_interval(intervals)
        return value

    def calculate_gradient(self, point: Sequence[float]) -> SparseVariableVector:
        values = [e.calculate(point) for e in self.elements]
        gradient: SparseVariableVector = {}

        # Power rule on the differentiated element, plain values elsewhere
        for i, element in enumerate(self.elements):
            partial = self.coefficient * element.calculate_derivative(point)
            for j, value in enumerate(values):
                if j != i:
                    partial *= value
            _accumulate(gradient, element.variable.index, partial)

        return gradient

    def calculate_hessian(self, point: Sequence[float]) -> SparseVariableMatrix:
        values = [e.calculate(point) for e in self.elements]
        derivatives = [e.calculate_derivative(point) for e in self.elements]
        hessian: SparseVariableMatrix = {}
        n = len(self.elements)

        for a in range(n):
            element = self.elements[a]
            second = element.calculate_second_derivative(point)
            if second != 0.0:
                partial = self.coefficient * second
                for k in range(n):
                    if k != a:
                        partial *= values[k]
                index = element.variable.index
                _accumulate(hessian, (index, index), partial)

            for b in range(a + 1, n):
                partial = self.coefficient * derivatives[a] * derivatives[b]
                for k in range(n):
                    if k != a and k != b:
                        partial *= values[k]

                other = self.elements[b]
                if element.variable is other.variable:
                    partial *= 2.0
                _accumulate(hessian, _hessian_key(element.variable.index, other.variable.index), partial)

        return hessian

    @property
    def convexity(self) -> Convexity:
        positive_powers, sum_powers = self._power_summary()
        single = len(self.elements) == 1

        if single and sum_powers == 1.0:
            return Convexity.LINEAR

        if self.coefficient > 0:
            if positive_powers == 1 and sum_powers > 1.0:
                return Convexity.CONVEX
            if single and 0.0 < sum_powers < 1.0:
                return Convexity.CONCAVE
            if positive_powers == 0:
                return Convexity.CONVEX
            return Convexity.NONCONVEX

        if self.coefficient < 0:
            if positive_powers == 1 and sum_powers > 1.0:
                return Convexity.CONCAVE
            if single and 0.0 < sum_powers < 1.0:
                return Convexity.CONVEX
            if positive_powers == 0:
                return Convexity.CONCAVE
            return Convexity.NONCONVEX

        # Zero coefficient: the term is identically zero
        return Convexity.LINEAR

    @property
    def monotonicity(self) -> Monotonicity:
        if self.coefficient == 0.0:
            return Monotonicity.CONSTANT

        positive_powers, sum_powers = self._power_summary()
        single = len(self.elements) == 1

        if single:
            direction = monotonicity_from_sign(sum_powers)
        elif positive_powers == 0:
            direction = Monotonicity.NONINCREASING
        elif positive_powers == len(self.elements):
            direction = Monotonicity.NONDECREASING
        else:
            return Monotonicity.UNKNOWN

        if self.coefficient < 0:
            return negate_monotonicity(direction)
        return direction

    @property
    def variables(self) -> List[Variable]:
        return [e.variable for e in self.elements]

    def __str__(self) -> str:
        return f"{self.coefficient:+g}*" + "*".join(str(e) for e in self.elements)


T = TypeVar('T', bound=Term)


class Terms(Generic[T]):
    """
    Ordered collection of terms of one kind with cached aggregate properties.

    Subclasses set `term_type` and implement `_compute_convexity`.
    """

    term_type = Term

    def __init__(self, terms: Iterable[T] = ()):
        self._terms: List[T] = []
        self._convexity = Convexity.NOT_SET
        self._monotonicity = Monotonicity.NOT_SET
        self.add(list(terms))

    def add(self, terms: Union[T, Iterable[T]]) -> None:
        """Append one term or a collection of terms and invalidate cached properties."""
        if isinstance(terms, Term):
            terms = [terms]
        else:
            terms = list(terms)

        for term in terms:
            if not isinstance(term, self.term_type):
                raise TypeError(
                    f"{type(self).__name__} accepts {self.term_type.__name__}, got {type(term).__name__}"
                )
            self._terms.append(term)

        if terms:
            self._convexity = Convexity.NOT_SET
            self._monotonicity = Monotonicity.NOT_SET

    def __len__(self) -> int:
        return len(self._terms)

    def __iter__(self) -> Iterator[T]:
        return iter(self._terms)

    def __getitem__(self, i: int) -> T:
        return self._terms[i]

    def calculate(self, point: Sequence[float]) -> float:
        value = 0.0
        for term in self._terms:
            value += term.calculate(point)
        return value

    def calculate_interval(self, intervals: IntervalVector) -> Interval:
        value = Interval.point(0.0)
        for term in self._terms:
            value = value + term.calculate_interval(intervals)
        return value

    def calculate_gradient(self, point: Sequence[float]) -> SparseVariableVector:
        gradient: SparseVariableVector = {}
        for term in self._terms:
            if term.coefficient == 0.0:
                continue
            for index, value in term.calculate_gradient(point).items():
                _accumulate(gradient, index, value)
        return gradient

    def calculate_hessian(self, point: Sequence[float]) -> SparseVariableMatrix:
        hessian: SparseVariableMatrix = {}
        for term in self._terms:
            if term.coefficient == 0.0:
                continue
            for key, value in term.calculate_hessian(point).items():
                _accumulate(hessian, key, value)
        return hessian

    def variable_indices(self) -> Set[int]:
        return {v.index for term in self._terms for v in term.variables}

    @property
    def convexity(self) -> Convexity:
        if self._convexity == Convexity.NOT_SET:
            self._convexity = self._compute_convexity()
        return self._convexity

    @property
    def monotonicity(self) -> Monotonicity:
        if self._monotonicity == Monotonicity.NOT_SET:
            self._monotonicity = self._compute_monotonicity()
        return self._monotonicity

    def _compute_convexity(self) -> Convexity:
        raise NotImplementedError

    def _compute_monotonicity(self) -> Monotonicity:
        all_constant = True
        all_nonincreasing = True
        all_nondecreasing = True

        for term in self._terms:
            monotonicity = term.monotonicity
            all_constant = all_constant and monotonicity == Monotonicity.CONSTANT
            all_nonincreasing = all_nonincreasing and monotonicity in (
                Monotonicity.NONINCREASING, Monotonicity.CONSTANT)
            all_nondecreasing = all_nondecreasing and monotonicity in (
                Monotonicity.NONDECREASING, Monotonicity.CONSTANT)

        if all_constant:
            return Monotonicity.CONSTANT
        if all_nonincreasing:
            return Monotonicity.NONINCREASING
        if all_nondecreasing:
            return Monotonicity.NONDECREASING
        return Monotonicity.UNKNOWN

    def __str__(self) -> str:
        return " ".join(str(term) for term in self._terms)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self._terms)} terms)"


class LinearTerms(Terms[LinearTerm]):
    term_type = LinearTerm

    def _compute_convexity(self) -> Convexity:
        return Convexity.LINEAR


def _symmetric_eigenvalues(lower_triangular: np.ndarray) -> np.ndarray:
    """Eigenvalues of the symmetric matrix given by its lower triangle."""
    return np.linalg.eigvalsh(lower_triangular, UPLO='L')


class QuadraticTerms(Terms[QuadraticTerm]):
    term_type = QuadraticTerm

    # Relative tolerance for treating an eigenvalue as zero
    eigenvalue_tolerance = 1e-10

    def _compute_convexity(self) -> Convexity:
        if len(self) == 0:
            return Convexity.LINEAR

        all_squares = True
        all_nonnegative = True
        all_nonpositive = True

        for term in self:
            if term.is_square:
                all_nonnegative = all_nonnegative and term.coefficient >= 0
                all_nonpositive = all_nonpositive and term.coefficient <= 0
            else:
                all_squares = False

        if all_squares and all_nonnegative:
            return Convexity.CONVEX
        if all_squares and all_nonpositive:
            return Convexity.CONCAVE

        eigenvalues = self._coefficient_matrix_eigenvalues()
        if eigenvalues is None:
            return Convexity.UNKNOWN

        # Semidefinite counts: zero eigenvalues (within tolerance) still give CONVEX or CONCAVE
        tolerance = self.eigenvalue_tolerance * max(1.0, float(np.max(np.abs(eigenvalues))))
        if np.all(eigenvalues >= -tolerance):
            return Convexity.CONVEX
        if np.all(eigenvalues <= tolerance):
            return Convexity.CONCAVE
        return Convexity.NONCONVEX

    def coefficient_matrix(self) -> Tuple[List[int], np.ndarray]:
        """
        Lower triangle of the symmetric coefficient matrix.

        Rows and columns follow the distinct variables in index order;
        off-diagonal coefficients are halved.

        Returns:
            Tuple of (variable indices, dense lower-triangular matrix)
        """
        indices = sorted(self.variable_indices())
        position = {index: i for i, index in enumerate(indices)}

        rows, cols, data = [], [], []
        for term in self:
            first = position[term.first_variable.index]
            second = position[term.second_variable.index]
            if term.is_square:
                rows.append(first)
                cols.append(first)
                data.append(term.coefficient)
            else:
                rows.append(max(first, second))
                cols.append(min(first, second))
                data.append(0.5 * term.coefficient)

        n = len(indices)
        matrix = coo_matrix((data, (rows, cols)), shape=(n, n)).toarray()
        return indices, matrix

    def _coefficient_matrix_eigenvalues(self):
        _, matrix = self.coefficient_matrix()
        try:
            eigenvalues = _symmetric_eigenvalues(matrix)
        except np.linalg.LinAlgError:
            return None
        if not np.all(np.isfinite(eigenvalues)):
            return None
        return eigenvalues


class MonomialTerms(Terms[MonomialTerm]):
    term_type = MonomialTerm

    def _compute_convexity(self) -> Convexity:
        if len(self) == 0:
            return Convexity.LINEAR
        return Convexity.NONCONVEX


class SignomialTerms(Terms[SignomialTerm]):
    term_type = SignomialTerm

    def _compute_convexity(self) -> Convexity:
        convexity = Convexity.LINEAR
        for term in self:
            convexity = combine_convexity(convexity, term.convexity)
        return convexity
