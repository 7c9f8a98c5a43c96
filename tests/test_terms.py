"""
Tests for the Term Algebra
"""

import numpy as np
import pytest

from esh_optimizer.bounds import Interval
from esh_optimizer.model import (
    Convexity,
    LinearTerm,
    LinearTerms,
    MonomialTerm,
    MonomialTerms,
    Monotonicity,
    QuadraticTerm,
    QuadraticTerms,
    SignomialElement,
    SignomialTerm,
    SignomialTerms,
    Variable,
    VariableType,
)
from esh_optimizer.model import terms as terms_module


@pytest.fixture
def xyz():
    return (
        Variable(0, "x", lower=-2.0, upper=3.0),
        Variable(1, "y", lower=1.0, upper=2.0),
        Variable(2, "z", lower=0.5, upper=4.0),
    )


class TestLinearTerm:
    """Test c * x."""

    def test_value_and_gradient(self, xyz):
        """Coefficient 2 at x = 3 gives 6 and gradient {x: 2}."""
        x, _, _ = xyz
        term = LinearTerm(2.0, x)
        assert term.calculate([3.0, 0.0, 0.0]) == 6.0
        assert term.calculate_gradient([3.0, 0.0, 0.0]) == {0: 2.0}
        assert term.calculate_gradient([-7.0, 1.0, 1.0]) == {0: 2.0}

    def test_interval(self, xyz):
        """Interval follows the variable bounds."""
        x, _, _ = xyz
        iv = LinearTerm(-1.0, x).calculate_interval([x.bound_interval])
        assert iv.lo <= -3.0 and iv.hi >= 2.0

    def test_properties(self, xyz):
        """Linear, monotonicity from the coefficient sign."""
        x, _, _ = xyz
        assert LinearTerm(3.0, x).convexity == Convexity.LINEAR
        assert LinearTerm(3.0, x).monotonicity == Monotonicity.NONDECREASING
        assert LinearTerm(-3.0, x).monotonicity == Monotonicity.NONINCREASING
        assert LinearTerm(0.0, x).monotonicity == Monotonicity.CONSTANT


class TestQuadraticTerm:
    """Test c * x * y."""

    def test_square_value_and_convexity(self, xyz):
        """Square term at x = 4 gives 16 and is convex."""
        x, _, _ = xyz
        term = QuadraticTerm(1.0, x, x)
        assert term.is_square
        assert term.calculate([4.0, 0.0, 0.0]) == 16.0
        assert term.convexity == Convexity.CONVEX
        assert QuadraticTerm(-1.0, x, x).convexity == Convexity.CONCAVE

    def test_bilinear(self, xyz):
        """Bilinear term gradient, Hessian and convexity."""
        x, y, _ = xyz
        term = QuadraticTerm(3.0, y, x)
        assert term.is_bilinear
        assert term.calculate([2.0, 5.0, 0.0]) == 30.0
        assert term.calculate_gradient([2.0, 5.0, 0.0]) == {1: 6.0, 0: 15.0}
        assert term.calculate_hessian([2.0, 5.0, 0.0]) == {(0, 1): 3.0}
        assert term.convexity == Convexity.NONCONVEX

    def test_square_hessian(self, xyz):
        """Square Hessian is twice the coefficient on the diagonal."""
        x, _, _ = xyz
        assert QuadraticTerm(1.5, x, x).calculate_hessian([1.0, 0.0, 0.0]) == {(0, 0): 3.0}

    def test_square_interval_is_nonnegative(self, xyz):
        """A square over an interval containing zero starts at zero."""
        x, _, _ = xyz
        iv = QuadraticTerm(1.0, x, x).calculate_interval([x.bound_interval])
        assert -1e-12 <= iv.lo <= 0.0
        assert iv.hi >= 9.0


class TestMonomialTerm:
    """Test c * x1 * ... * xn."""

    def test_value_and_gradient(self, xyz):
        """Product rule gradient."""
        x, y, z = xyz
        term = MonomialTerm(2.0, [x, y, z])
        point = [1.0, 2.0, 3.0]
        assert term.calculate(point) == 12.0
        assert term.calculate_gradient(point) == {0: 12.0, 1: 6.0, 2: 4.0}

    def test_hessian(self, xyz):
        """Off-diagonal entries only, keyed upper triangular."""
        x, y, z = xyz
        hessian = MonomialTerm(2.0, [z, x, y]).calculate_hessian([1.0, 2.0, 3.0])
        assert hessian == {(0, 2): 4.0, (1, 2): 2.0, (0, 1): 6.0}

    def test_unknown_properties(self, xyz):
        """Monomials are not classified."""
        x, y, _ = xyz
        term = MonomialTerm(1.0, [x, y])
        assert term.convexity == Convexity.UNKNOWN
        assert term.monotonicity == Monotonicity.UNKNOWN

    def test_requires_factor(self):
        """Empty monomial is rejected."""
        with pytest.raises(ValueError):
            MonomialTerm(1.0, [])


class TestSignomialTerm:
    """Test c * x1^p1 * ... * xn^pn."""

    def test_value_and_gradient(self, xyz):
        """x^2 * y^-1 at (3, 2)."""
        x, y, _ = xyz
        term = SignomialTerm(1.0, [SignomialElement(x, 2.0), SignomialElement(y, -1.0)])
        point = [3.0, 2.0, 0.0]
        assert term.calculate(point) == pytest.approx(4.5)
        gradient = term.calculate_gradient(point)
        assert gradient[0] == pytest.approx(3.0)
        assert gradient[1] == pytest.approx(-2.25)

    def test_hessian_single_element(self, xyz):
        """Second derivative of 2 * z^3."""
        _, _, z = xyz
        term = SignomialTerm(2.0, [SignomialElement(z, 3.0)])
        assert term.calculate_hessian([0.0, 0.0, 2.0]) == {(2, 2): pytest.approx(24.0)}

    @pytest.mark.parametrize("coefficient", [1.0, -1.0, 3.5, -0.25])
    def test_single_power_one_is_linear(self, xyz, coefficient):
        """A single element with power 1 is linear for every coefficient."""
        x, _, _ = xyz
        assert SignomialTerm(coefficient, [SignomialElement(x, 1.0)]).convexity == Convexity.LINEAR

    def test_positive_coefficient_cases(self, xyz):
        """Convexity table for positive coefficients."""
        x, y, _ = xyz
        assert SignomialTerm(1.0, [SignomialElement(x, 2.0)]).convexity == Convexity.CONVEX
        assert SignomialTerm(1.0, [SignomialElement(x, 0.5)]).convexity == Convexity.CONCAVE
        assert SignomialTerm(1.0, [SignomialElement(x, -1.0), SignomialElement(y, -1.0)]).convexity == Convexity.CONVEX
        assert SignomialTerm(1.0, [SignomialElement(x, 0.5), SignomialElement(y, 0.5)]).convexity == Convexity.NONCONVEX

    def test_negative_coefficient_cases(self, xyz):
        """Convexity table for negative coefficients."""
        x, y, _ = xyz
        assert SignomialTerm(-1.0, [SignomialElement(x, 2.0)]).convexity == Convexity.CONCAVE
        assert SignomialTerm(-1.0, [SignomialElement(x, 0.5)]).convexity == Convexity.CONVEX
        assert SignomialTerm(-1.0, [SignomialElement(x, -2.0)]).convexity == Convexity.CONCAVE

    def test_negative_coefficient_without_matching_case_is_nonconvex(self, xyz):
        """Two positive powers with a negative coefficient fall through to nonconvex."""
        x, y, _ = xyz
        term = SignomialTerm(-2.0, [SignomialElement(x, 2.0), SignomialElement(y, 2.0)])
        assert term.convexity == Convexity.NONCONVEX

    def test_monotonicity(self, xyz):
        """Monotonicity from powers and coefficient sign."""
        x, y, _ = xyz
        assert SignomialTerm(1.0, [SignomialElement(x, 2.0)]).monotonicity == Monotonicity.NONDECREASING
        assert SignomialTerm(-1.0, [SignomialElement(x, 2.0)]).monotonicity == Monotonicity.NONINCREASING
        assert SignomialTerm(
            1.0, [SignomialElement(x, -1.0), SignomialElement(y, -2.0)]
        ).monotonicity == Monotonicity.NONINCREASING
        assert SignomialTerm(
            1.0, [SignomialElement(x, 1.0), SignomialElement(y, -2.0)]
        ).monotonicity == Monotonicity.UNKNOWN
        assert SignomialTerm(0.0, [SignomialElement(x, 3.0)]).monotonicity == Monotonicity.CONSTANT


class TestLinearTerms:
    """Test linear term collections."""

    def test_always_linear(self, xyz):
        """Convexity is linear for any coefficients."""
        x, y, z = xyz
        terms = LinearTerms([LinearTerm(1.0, x), LinearTerm(-5.0, y), LinearTerm(0.0, z)])
        assert terms.convexity == Convexity.LINEAR
        assert LinearTerms().convexity == Convexity.LINEAR

    def test_aggregate_monotonicity(self, xyz):
        """Aggregate sign rule over all coefficients."""
        x, y, z = xyz
        assert LinearTerms([LinearTerm(1.0, x), LinearTerm(2.0, y)]).monotonicity == Monotonicity.NONDECREASING
        assert LinearTerms([LinearTerm(-1.0, x), LinearTerm(0.0, y)]).monotonicity == Monotonicity.NONINCREASING
        assert LinearTerms([LinearTerm(1.0, x), LinearTerm(-1.0, z)]).monotonicity == Monotonicity.UNKNOWN
        assert LinearTerms([LinearTerm(0.0, x)]).monotonicity == Monotonicity.CONSTANT

    def test_value_and_accumulated_gradient(self, xyz):
        """Repeated variables accumulate; zero coefficients are skipped."""
        x, y, _ = xyz
        terms = LinearTerms([LinearTerm(2.0, x), LinearTerm(3.0, x), LinearTerm(0.0, y)])
        assert terms.calculate([1.0, 5.0, 0.0]) == 5.0
        assert terms.calculate_gradient([1.0, 5.0, 0.0]) == {0: 5.0}

    def test_rejects_other_kinds(self, xyz):
        """Only linear terms are accepted."""
        x, _, _ = xyz
        with pytest.raises(TypeError):
            LinearTerms().add(QuadraticTerm(1.0, x, x))

    def test_add_invalidates_cache(self, xyz):
        """Adding a term recomputes the aggregate monotonicity."""
        x, y, _ = xyz
        terms = LinearTerms([LinearTerm(1.0, x)])
        assert terms.monotonicity == Monotonicity.NONDECREASING
        terms.add(LinearTerm(-1.0, y))
        assert terms.monotonicity == Monotonicity.UNKNOWN


class TestQuadraticTerms:
    """Test quadratic term collections."""

    def test_same_signed_squares_skip_eigenvalues(self, xyz, monkeypatch):
        """Square-only collections are classified without an eigen-decomposition."""
        def fail(matrix):
            raise AssertionError("eigenvalues should not be computed")

        monkeypatch.setattr(terms_module, "_symmetric_eigenvalues", fail)
        x, y, _ = xyz

        convex = QuadraticTerms([QuadraticTerm(1.0, x, x), QuadraticTerm(2.0, y, y)])
        concave = QuadraticTerms([QuadraticTerm(-1.0, x, x), QuadraticTerm(-0.5, y, y)])
        assert convex.convexity == Convexity.CONVEX
        assert concave.convexity == Convexity.CONCAVE

    def test_positive_definite_with_bilinear(self, xyz):
        """x^2 + y^2 + xy is convex."""
        x, y, _ = xyz
        terms = QuadraticTerms([QuadraticTerm(1.0, x, x), QuadraticTerm(1.0, y, y), QuadraticTerm(1.0, x, y)])
        assert terms.convexity == Convexity.CONVEX

    def test_indefinite(self, xyz):
        """x^2 + y^2 + 3xy is nonconvex."""
        x, y, _ = xyz
        terms = QuadraticTerms([QuadraticTerm(1.0, x, x), QuadraticTerm(1.0, y, y), QuadraticTerm(3.0, x, y)])
        assert terms.convexity == Convexity.NONCONVEX

    def test_negative_definite(self, xyz):
        """-x^2 - y^2 + xy is concave."""
        x, y, _ = xyz
        terms = QuadraticTerms([QuadraticTerm(-1.0, x, x), QuadraticTerm(-1.0, y, y), QuadraticTerm(1.0, x, y)])
        assert terms.convexity == Convexity.CONCAVE

    def test_semidefinite_counts_as_convex(self, xyz):
        """(x + y)^2 has a zero eigenvalue and is convex."""
        x, y, _ = xyz
        terms = QuadraticTerms([QuadraticTerm(1.0, x, x), QuadraticTerm(1.0, y, y), QuadraticTerm(2.0, x, y)])
        assert terms.convexity == Convexity.CONVEX

    def test_coefficient_matrix(self, xyz):
        """Lower triangle with halved off-diagonal entries."""
        x, _, z = xyz
        terms = QuadraticTerms([QuadraticTerm(2.0, x, x), QuadraticTerm(4.0, z, x)])
        indices, matrix = terms.coefficient_matrix()
        assert indices == [0, 2]
        np.testing.assert_array_equal(matrix, [[2.0, 0.0], [2.0, 0.0]])

    def test_eigenvalue_failure_is_unknown(self, xyz, monkeypatch):
        """A failed decomposition reports unknown instead of raising."""
        def fail(matrix):
            raise np.linalg.LinAlgError("no convergence")

        monkeypatch.setattr(terms_module, "_symmetric_eigenvalues", fail)
        x, y, _ = xyz
        terms = QuadraticTerms([QuadraticTerm(1.0, x, y)])
        assert terms.convexity == Convexity.UNKNOWN

    def test_cached_convexity(self, xyz, monkeypatch):
        """A second query reuses the cached value until the next add."""
        calls = []

        def counting(matrix):
            calls.append(matrix)
            return np.linalg.eigvalsh(matrix, UPLO='L')

        monkeypatch.setattr(terms_module, "_symmetric_eigenvalues", counting)
        x, y, _ = xyz
        terms = QuadraticTerms([QuadraticTerm(1.0, x, x), QuadraticTerm(1.0, x, y)])

        first = terms.convexity
        second = terms.convexity
        assert first is second
        assert len(calls) == 1

        terms.add(QuadraticTerm(1.0, y, y))
        terms.convexity
        assert len(calls) == 2

    def test_empty_is_linear(self):
        """Empty collection is linear."""
        assert QuadraticTerms().convexity == Convexity.LINEAR


class TestOtherCollections:
    """Test monomial and signomial collections."""

    def test_monomial_collection(self, xyz):
        """Any monomial makes the collection nonconvex."""
        x, y, _ = xyz
        assert MonomialTerms().convexity == Convexity.LINEAR
        assert MonomialTerms([MonomialTerm(1.0, [x, y])]).convexity == Convexity.NONCONVEX

    def test_signomial_collection(self, xyz):
        """Convex members combine to convex; mixed to nonconvex."""
        x, y, _ = xyz
        convex = SignomialTerms([
            SignomialTerm(1.0, [SignomialElement(x, 2.0)]),
            SignomialTerm(1.0, [SignomialElement(y, -1.0)]),
        ])
        assert convex.convexity == Convexity.CONVEX

        mixed = SignomialTerms([
            SignomialTerm(1.0, [SignomialElement(x, 2.0)]),
            SignomialTerm(1.0, [SignomialElement(y, 0.5)]),
        ])
        assert mixed.convexity == Convexity.NONCONVEX

    def test_collection_interval(self, xyz):
        """Collection interval encloses the sum of member ranges."""
        _, y, z = xyz
        terms = SignomialTerms([SignomialTerm(1.0, [SignomialElement(y, 2.0)])])
        iv = terms.calculate_interval([Interval(0.0, 0.0), y.bound_interval, z.bound_interval])
        assert iv.lo <= 1.0 and iv.hi >= 4.0

    def test_binary_quadratic(self):
        """Binary products are flagged."""
        a = Variable(0, "a", VariableType.BINARY)
        b = Variable(1, "b", VariableType.BINARY)
        assert QuadraticTerm(1.0, a, b).is_binary
        assert a.lower == 0.0 and a.upper == 1.0
