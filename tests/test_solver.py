"""
Tests for the Solver Backends and End-to-End Solves
"""

import numpy as np
import pytest

from esh_optimizer.model import (
    LinearConstraint,
    LinearObjectiveFunction,
    LinearTerm,
    Problem,
    QuadraticConstraint,
    QuadraticObjectiveFunction,
    QuadraticTerm,
    VariableType,
)
from esh_optimizer.problems import PROBLEMS
from esh_optimizer.settings import CutStrategy, Settings, SolutionStrategyType
from esh_optimizer.solver import (
    DualSolutionStatus,
    Environment,
    MILPDualSolver,
    NLPPrimalSolver,
    PrimalSolution,
    PrimalSolutionSource,
    Results,
    RootSearch,
    Solver,
    TerminationReason,
    find_interior_point,
)
from esh_optimizer.solver.hyperplanes import create_constraint_hyperplane, create_objective_hyperplane
from esh_optimizer.solver.primal_solver import check_primal_candidate
from esh_optimizer.tasks import CheckDualStagnation, CheckIterationError


def finalized(name):
    problem = PROBLEMS[name].build()
    problem.finalize()
    return problem


class TestRootSearch:
    """Test the boundary search between interior and exterior points."""

    def test_unit_circle(self):
        """The bracket straddles the circle on the x axis."""
        def f(x):
            return x[0] ** 2 + x[1] ** 2 - 1.0

        result = RootSearch(tolerance=1e-12).find_zero(f, np.array([0.0, 0.0]), np.array([2.0, 0.0]))
        assert result is not None
        assert result.inner_value <= 0.0 < result.outer_value
        assert result.inner_point[0] == pytest.approx(1.0, abs=1e-8)
        assert result.outer_point[0] == pytest.approx(1.0, abs=1e-8)

    def test_no_bracket(self):
        """Endpoints on the same side give no result."""
        def f(x):
            return x[0] - 5.0

        search = RootSearch()
        assert search.find_zero(f, np.array([0.0]), np.array([1.0])) is None
        assert search.find_zero(f, np.array([6.0]), np.array([7.0])) is None


class TestHyperplanes:
    """Test linearizations."""

    def test_upper_side(self):
        """x^2 + y^2 <= 1 at (1, 1) gives 2x + 2y <= 3."""
        problem = finalized('convex_circle')
        constraint = problem.numeric_constraints[0]
        coefficients, rhs = create_constraint_hyperplane(constraint, [1.0, 1.0])
        assert coefficients == {0: 2.0, 1: 2.0}
        assert rhs == pytest.approx(3.0)

    def test_lower_side_is_negated(self):
        """x * y >= 1 at (0.5, 0.5) is stored as -0.5x - 0.5y <= -1.25."""
        problem = finalized('bilinear')
        constraint = problem.numeric_constraints[0]
        coefficients, rhs = create_constraint_hyperplane(constraint, [0.5, 0.5])
        assert coefficients == {0: -0.5, 1: -0.5}
        assert rhs == pytest.approx(-1.25)

    def test_vanishing_gradient(self):
        """A zero gradient gives no hyperplane."""
        problem = finalized('convex_circle')
        assert create_constraint_hyperplane(problem.numeric_constraints[0], [0.0, 0.0]) is None

    def test_objective_epigraph(self):
        """x^2 <= mu at x = 2 gives 4x - mu <= 4."""
        problem = Problem("epigraph")
        x = problem.add_variable("x", lower=-5.0, upper=5.0)
        objective = QuadraticObjectiveFunction(terms=[QuadraticTerm(1.0, x, x)])
        coefficients, rhs = create_objective_hyperplane(objective, [2.0], epigraph_index=1)
        assert coefficients == {0: 4.0, 1: -1.0}
        assert rhs == pytest.approx(4.0)


class TestDualSolver:
    """Test the MILP outer approximation backend."""

    def test_linear_relaxation_with_cuts(self):
        """Tangent cuts x <= 1 and y <= 1 give the bound -2."""
        dual = MILPDualSolver(discrete=False)
        dual.create_problem(finalized('convex_circle'))
        assert dual.add_hyperplane({0: 1.0}, 1.0, tag=0)
        assert dual.add_hyperplane({1: 1.0}, 1.0, tag=0)

        result = dual.solve()
        assert result.status == DualSolutionStatus.OPTIMAL
        assert result.objective_value == pytest.approx(-2.0)
        np.testing.assert_allclose(result.points[0], [1.0, 1.0], atol=1e-7)

    def test_cutoff_makes_infeasible(self):
        """An objective cutoff below the bound is infeasible."""
        dual = MILPDualSolver(discrete=False)
        dual.create_problem(finalized('convex_circle'))
        dual.add_hyperplane({0: 1.0}, 1.0)
        dual.add_hyperplane({1: 1.0}, 1.0)
        dual.set_cutoff(-3.0)
        assert dual.solve().status == DualSolutionStatus.INFEASIBLE
        dual.clear_cutoff()
        assert dual.solve().status == DualSolutionStatus.OPTIMAL

    def test_remove_hyperplanes_by_tag(self):
        """Only hyperplanes of the given constraints are removed."""
        dual = MILPDualSolver()
        dual.create_problem(finalized('convex_circle'))
        dual.add_hyperplane({0: 1.0}, 1.0, tag=0)
        dual.add_hyperplane({1: 1.0}, 1.0, tag=1)
        assert dual.remove_hyperplanes([0]) == 1
        assert dual.number_of_hyperplanes == 1
        assert not dual.add_hyperplane({}, 1.0)
        assert not dual.add_hyperplane({0: 1.0}, np.inf)

    def test_integrality_and_relaxation(self):
        """Integer variables are rounded unless relaxed."""
        problem = Problem("int")
        x = problem.add_variable("x", VariableType.INTEGER, 0.0, 10.0)
        problem.set_objective(LinearObjectiveFunction(terms=[LinearTerm(-1.0, x)]))
        problem.add_constraint(LinearConstraint(value_rhs=2.5, terms=[LinearTerm(1.0, x)]))
        problem.finalize()

        dual = MILPDualSolver()
        dual.create_problem(problem)
        assert dual.solve().objective_value == pytest.approx(-2.0)

        dual.set_relaxed(True)
        assert dual.is_relaxed
        assert dual.solve().objective_value == pytest.approx(-2.5)

    def test_continuous_dual_never_relaxed(self):
        """Only the relaxation phase of a discrete dual problem counts as relaxed."""
        continuous = MILPDualSolver(discrete=False)
        continuous.set_relaxed(True)
        assert not continuous.is_relaxed
        assert not continuous.uses_integrality

        discrete = MILPDualSolver()
        assert not discrete.is_relaxed
        assert discrete.uses_integrality
        discrete.set_relaxed(True)
        assert discrete.is_relaxed
        assert not discrete.uses_integrality

    def test_integer_cut(self):
        """Excluding the best binary assignment forces the next one."""
        problem = Problem("binary")
        a = problem.add_variable("a", VariableType.BINARY)
        b = problem.add_variable("b", VariableType.BINARY)
        problem.set_objective(LinearObjectiveFunction(terms=[LinearTerm(-1.0, a), LinearTerm(-2.0, b)]))
        problem.finalize()

        dual = MILPDualSolver()
        dual.create_problem(problem)
        assert dual.solve().objective_value == pytest.approx(-3.0)

        assert dual.add_integer_cut({0: 1, 1: 1})
        assert dual.solve().objective_value == pytest.approx(-2.0)
        assert not dual.add_integer_cut({})

    def test_presolve_tightens_bounds(self):
        """x + y <= 5 with y >= 2 bounds x above by 3."""
        problem = Problem("presolve")
        x = problem.add_variable("x", lower=0.0, upper=10.0)
        y = problem.add_variable("y", VariableType.INTEGER, 2.0, 10.0)
        problem.set_objective(LinearObjectiveFunction(terms=[LinearTerm(1.0, x)]))
        problem.add_constraint(LinearConstraint(value_rhs=5.0, terms=[LinearTerm(1.0, x), LinearTerm(1.0, y)]))
        problem.finalize()

        dual = MILPDualSolver()
        dual.create_problem(problem)
        assert dual.presolve() >= 2
        assert dual.upper[0] == pytest.approx(3.0)
        assert dual.upper[1] == pytest.approx(5.0)

    def test_epigraph_variable(self):
        """A nonlinear objective adds an epigraph column."""
        dual = MILPDualSolver()
        dual.create_problem(finalized('quadratic_objective'))
        assert dual.epigraph_index == 2
        assert dual.num_variables == 3
        x, mu = dual.split_point(np.array([1.0, 2.0, 0.5]))
        np.testing.assert_array_equal(x, [1.0, 2.0])
        assert mu == 0.5


class TestPrimalBackends:
    """Test interior point search, NLP and candidate checks."""

    def test_interior_point(self):
        """The circle's interior point is strictly inside."""
        problem = finalized('convex_circle')
        point = find_interior_point(problem)
        assert point is not None
        assert point[0] ** 2 + point[1] ** 2 < 1.0

    def test_no_nonlinear_constraints(self):
        """Without nonlinear constraints there is nothing to search."""
        assert find_interior_point(finalized('quadratic_objective')) is None

    def test_nlp(self):
        """SLSQP solves the continuous circle."""
        problem = finalized('convex_circle')
        result = NLPPrimalSolver().solve(problem, np.zeros(2))
        assert result.success
        assert result.objective_value == pytest.approx(-np.sqrt(2.0), abs=1e-5)

    def test_fixed_integer_nlp(self):
        """Fixing y = 2 leaves x = 1."""
        problem = finalized('convex_minlp')
        result = NLPPrimalSolver().solve(problem, np.zeros(2), fixed={1: 2.0})
        assert result.point[1] == 2.0
        assert result.point[0] == pytest.approx(1.0, abs=1e-5)
        assert result.objective_value == pytest.approx(-5.0, abs=1e-5)

    def test_check_candidate(self):
        """Feasible candidates are stored; infeasible ones rejected."""
        env = Environment(PROBLEMS['convex_minlp'].build())
        assert check_primal_candidate(env, np.array([1.0, 3.0]), PrimalSolutionSource.LINESEARCH) is None

        solution = check_primal_candidate(env, np.array([1.0, 2.000001]), PrimalSolutionSource.LINESEARCH)
        assert solution is not None
        assert solution.point[1] == 2.0
        assert env.results.primal_bound == pytest.approx(-5.0)

        check_primal_candidate(env, np.array([0.0, 1.0]), PrimalSolutionSource.FIXED_NLP)
        assert env.results.primal_bound == pytest.approx(-5.0)
        assert len(env.results.primal_solutions) == 2
        assert env.results.primal_solutions[0] is solution

    def test_resubmitted_point_stored_once(self):
        """Submitting the same feasible point again leaves the pool unchanged."""
        env = Environment(PROBLEMS['convex_minlp'].build())
        point = np.array([1.0, 2.0])
        assert check_primal_candidate(env, point, PrimalSolutionSource.LINESEARCH) is not None
        assert check_primal_candidate(env, point.copy(), PrimalSolutionSource.FIXED_NLP) is not None
        assert len(env.results.primal_solutions) == 1

    def test_pool_capacity(self):
        """A full pool keeps the best solutions and rejects worse ones."""
        results = Results()
        results.max_primal_solutions = 3
        for value in [5.0, 4.0, 3.0, 2.0]:
            results.add_primal_solution(
                PrimalSolution(np.array([value]), value, PrimalSolutionSource.LINESEARCH, 0)
            )
        assert [s.objective_value for s in results.primal_solutions] == [2.0, 3.0, 4.0]

        assert not results.add_primal_solution(
            PrimalSolution(np.array([9.0]), 9.0, PrimalSolutionSource.LINESEARCH, 0)
        )
        assert len(results.primal_solutions) == 3
        assert results.primal_bound == 2.0


class TestTerminationChecks:
    """Test termination checks on a prepared solver state."""

    def test_infeasible_dual_with_incumbent(self):
        """An infeasible dual problem is only reported as infeasible without a primal solution."""
        env = Environment(PROBLEMS['bilinear'].build())
        iteration = env.results.add_iteration(is_relaxed=False)
        iteration.solution_status = DualSolutionStatus.INFEASIBLE

        assert CheckIterationError("End").condition(env)
        assert env.results.termination_reason == TerminationReason.INFEASIBLE

        check_primal_candidate(env, np.array([2.0, 2.0]), PrimalSolutionSource.LINESEARCH)
        assert CheckIterationError("End").condition(env)
        assert env.results.termination_reason == TerminationReason.FEASIBLE_NOT_PROVEN

    def test_dual_stagnation_on_continuous_problem(self):
        """Iterations of a continuous dual problem count towards stagnation."""
        env = Environment(PROBLEMS['convex_circle'].build())
        env.dual_solver = MILPDualSolver(discrete=False)
        env.results.add_iteration(is_relaxed=env.dual_solver.is_relaxed)
        env.statistics.iterations = 60
        env.statistics.iteration_last_dual_bound_update = 5

        assert CheckDualStagnation("End").condition(env)
        assert env.results.termination_reason == TerminationReason.DUAL_STAGNATION


def solve(name, **overrides):
    settings = Settings.from_dict(overrides)
    settings.update_setting("TimeLimit", "Termination", 60.0)
    return Solver(PROBLEMS[name].build(), settings).solve()


class TestEndToEnd:
    """Solve the built-in problems."""

    @pytest.mark.parametrize("name", [
        'convex_circle', 'maximize_circle', 'convex_minlp', 'binary_switch',
        'quadratic_objective', 'signomial', 'exponential',
    ])
    def test_convex_problems(self, name):
        """Convex problems reach the known optimum with valid bounds."""
        result = solve(name)
        optimum = PROBLEMS[name].optimum

        assert result.has_solution
        assert result.primal_bound == pytest.approx(optimum, abs=1e-2)
        assert result.termination_reason not in (
            TerminationReason.NONE, TerminationReason.ERROR, TerminationReason.INFEASIBLE
        )

        problem = PROBLEMS[name].build()
        problem.finalize()
        assert problem.is_feasible(result.point, constraint_tolerance=1e-5)

    def test_maximization_bounds_ordered(self):
        """In the original sense a maximisation dual bound lies above the primal bound."""
        result = solve('maximize_circle')
        assert result.dual_bound >= result.primal_bound - 1e-6

    def test_ecp(self):
        """Cutting planes alone also converge on a convex problem."""
        result = solve('convex_circle', **{"Dual.CutStrategy": int(CutStrategy.ECP)})
        assert result.primal_bound == pytest.approx(-np.sqrt(2.0), abs=1e-2)

    def test_nonconvex_finds_feasible_point(self):
        """The bilinear problem yields a feasible point no better than the optimum."""
        result = solve('bilinear')
        assert result.has_solution
        assert result.primal_bound >= 2.0 - 1e-6

    def test_nonconvex_ecp_keeps_incumbent_status(self):
        """A nonconvex solve holding a feasible point never reports infeasibility."""
        result = solve('bilinear', **{"Dual.CutStrategy": int(CutStrategy.ECP)})
        assert result.has_solution
        assert result.termination_reason not in (TerminationReason.INFEASIBLE, TerminationReason.NONE)

    def test_continuous_problem_stops_on_dual_stagnation(self):
        """A flat dual objective ends a continuous solve before the iteration limit."""
        result = solve('bilinear', **{
            "Termination.DualStagnation.IterationLimit": 5,
            "Dual.ReductionCut.MaxIterations": 0,
        })
        assert result.strategy == "NLPStrategy"
        assert result.termination_reason == TerminationReason.DUAL_STAGNATION
        assert result.iterations < 200
        assert result.statistics["relaxed_iterations"] == 0

    def test_iteration_limit(self):
        """A one-iteration limit stops early with that reason."""
        result = solve('convex_circle', **{
            "Termination.IterationLimit": 1,
            "Dual.CutStrategy": int(CutStrategy.ECP),
        })
        assert result.iterations <= 2
        assert result.termination_reason in (
            TerminationReason.ITERATION_LIMIT,
            TerminationReason.ABSOLUTE_GAP,
            TerminationReason.RELATIVE_GAP,
        )

    def test_user_termination(self):
        """A user callback stops the solve."""
        settings = Settings()
        solver = Solver(PROBLEMS['convex_circle'].build(), settings, user_termination=lambda env: True)
        result = solver.solve()
        assert result.termination_reason == TerminationReason.USER_ABORT

    def test_forced_nlp_on_discrete_problem(self):
        """The NLP strategy on a discrete problem still runs to completion."""
        result = solve('convex_minlp', **{"Strategy.Type": int(SolutionStrategyType.NLP)})
        assert result.strategy == "NLPStrategy"
        assert result.termination_reason != TerminationReason.NONE

    def test_receipts_and_result_dict(self):
        """The result carries the receipt hash and serialises."""
        result = solve('convex_circle')
        data = result.to_dict()
        assert len(result.receipts_hash) == 64
        assert data["termination_reason"] == result.termination_reason.value
        assert data["strategy"] == "NLPStrategy"
        assert isinstance(data["point"], list)
        assert data["problem"]["discrete_variables"] == 0
        assert data["problem"]["nonlinear_constraints"] >= 1

    def test_deterministic(self):
        """Two identical solves execute the same task sequence."""
        first = solve('convex_minlp')
        second = solve('convex_minlp')
        assert first.iterations == second.iterations
        assert first.primal_bound == second.primal_bound


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
