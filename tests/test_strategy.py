"""
Tests for Solution Strategy Assembly
"""

import pytest

from esh_optimizer.problems import PROBLEMS
from esh_optimizer.settings import CutStrategy, PresolveFrequency, Settings, SolutionStrategyType
from esh_optimizer.solver import Environment, Solver
from esh_optimizer.strategy import NLPStrategy, SingleTreeStrategy
from esh_optimizer.tasks import SelectHyperplanePointsECP, SelectHyperplanePointsESH


def build(strategy_class, name, **overrides):
    settings = Settings.from_dict(overrides)
    env = Environment(PROBLEMS[name].build(), settings)
    return strategy_class(env), env


class TestSingleTree:
    """Test the mixed-integer graph."""

    def test_default_slots(self):
        """Default settings on a discrete convex problem."""
        strategy, env = build(SingleTreeStrategy, 'convex_minlp')
        assert strategy.graph.task_names == [
            "InitMIPSolver", "FindIntPoint", "CreateDualProblem", "InitializeLinesearch",
            "InitIter", "AddHPs", "ExecRelaxStrategyInitial", "Presolve",
            "SolveIter", "SelectPrimSolPool", "SelectPrimLinesearch", "PrintIterReport",
            "RepairInfeasibility",
            "CheckAbsGap", "CheckRelGap", "CheckIterLim", "CheckTimeLim", "CheckUserTerm",
            "CheckIterError", "CheckConstrTol", "CheckMaxObjectiveCuts",
            "CheckPrimalStag", "AddObjectiveCut", "CheckDualStag",
            "SelectPrimFixedNLPSolPool", "SelectPrimNLPCheck", "CheckAbsGap", "CheckRelGap",
            "InitIter2", "ExecRelaxStrategy", "UpdateInteriorPoint", "SelectHPPts",
            "AddHPs", "Goto",
            "FinalizeSolution", "AddObjectiveCutFinal", "Terminate",
        ]
        assert env.task_graph is strategy.graph

    def test_assume_convex_ecp_without_options(self):
        """Convex assumption drops the nonconvex machinery; options drop their tasks."""
        strategy, _ = build(
            SingleTreeStrategy, 'convex_minlp',
            **{
                "Model.Convexity.AssumeConvex": True,
                "Dual.CutStrategy": int(CutStrategy.ECP),
                "Dual.HyperplaneCuts.UseIntegerCuts": True,
                "Dual.Relaxation.Use": False,
                "Dual.MIP.Presolve.Frequency": int(PresolveFrequency.NEVER),
                "Primal.FixedInteger.Use": False,
            }
        )
        assert strategy.graph.task_names == [
            "InitMIPSolver", "CreateDualProblem", "InitializeLinesearch",
            "InitIter", "AddHPs",
            "SolveIter", "SelectPrimSolPool", "SelectPrimLinesearch", "PrintIterReport",
            "CheckAbsGap", "CheckRelGap", "CheckIterLim", "CheckTimeLim", "CheckUserTerm",
            "CheckIterError", "CheckConstrTol", "CheckDualStag",
            "InitIter2", "SelectHPPts", "AddICs", "AddHPs", "Goto",
            "FinalizeSolution", "Terminate",
        ]
        assert isinstance(strategy.graph.get_task("SelectHPPts"), SelectHyperplanePointsECP)

    def test_shared_instances(self):
        """Re-registered names point at the same task objects."""
        strategy, _ = build(SingleTreeStrategy, 'convex_minlp')
        slots = strategy.graph.slots
        tasks = {}
        for name, task in slots:
            tasks.setdefault(name, []).append(task)

        assert tasks["InitIter"][0] is tasks["InitIter2"][0]
        assert tasks["AddHPs"][0] is tasks["AddHPs"][1]
        assert tasks["CheckAbsGap"][0] is tasks["CheckAbsGap"][1]
        assert tasks["CheckRelGap"][0] is tasks["CheckRelGap"][1]

    def test_esh_needs_nonlinear_constraints(self):
        """A nonlinear objective over linear constraints uses ECP and objective cuts."""
        strategy, _ = build(SingleTreeStrategy, 'quadratic_objective')
        names = strategy.graph.task_names
        assert "FindIntPoint" not in names
        assert "UpdateInteriorPoint" not in names
        assert "SelectObjectiveHPPts" in names
        assert isinstance(strategy.graph.get_task("SelectHPPts"), SelectHyperplanePointsECP)

    def test_esh_selection(self):
        """Default cut strategy on nonlinear constraints is ESH."""
        strategy, _ = build(SingleTreeStrategy, 'binary_switch')
        assert strategy.use_esh
        assert isinstance(strategy.graph.get_task("SelectHPPts"), SelectHyperplanePointsESH)

    def test_finalize_sequence(self):
        """The finalization sequence holds the forced fixed NLP only when enabled."""
        strategy, _ = build(SingleTreeStrategy, 'convex_minlp')
        assert len(strategy.graph.get_task("FinalizeSolution").tasks) == 2

        strategy, _ = build(SingleTreeStrategy, 'convex_minlp', **{"Primal.FixedInteger.Use": False})
        assert strategy.graph.get_task("FinalizeSolution").tasks == []

    def test_linesearch_setting_read_at_build(self):
        """Disabling the linesearch leaves its task out of the graph."""
        strategy, _ = build(SingleTreeStrategy, 'convex_minlp', **{"Primal.Linesearch.Use": False})
        assert "SelectPrimLinesearch" not in strategy.graph.task_names

        strategy, _ = build(NLPStrategy, 'convex_circle', **{"Primal.Linesearch.Use": False})
        assert "SelectPrimLinesearch" not in strategy.graph.task_names


class TestNLP:
    """Test the continuous graph."""

    def test_default_slots(self):
        """No relaxation, fixed NLP or integer cuts."""
        strategy, _ = build(NLPStrategy, 'convex_circle', **{"Dual.HyperplaneCuts.UseIntegerCuts": True})
        assert strategy.graph.task_names == [
            "InitMIPSolver", "FindIntPoint", "CreateDualProblem", "InitializeLinesearch",
            "InitIter", "AddHPs", "Presolve",
            "SolveIter", "SelectPrimSolPool", "SelectPrimLinesearch", "PrintIterReport",
            "RepairInfeasibility",
            "CheckAbsGap", "CheckRelGap", "CheckIterLim", "CheckTimeLim", "CheckUserTerm",
            "CheckIterError", "CheckConstrTol",
            "CheckPrimalStag", "AddObjectiveCut", "CheckDualStag",
            "InitIter2", "UpdateInteriorPoint", "SelectHPPts", "AddHPs", "Goto",
            "FinalizeSolution", "AddObjectiveCutFinal", "Terminate",
        ]

    def test_finalize_empty_without_discrete_variables(self):
        """The forced fixed NLP is only part of finalization for discrete problems."""
        strategy, _ = build(NLPStrategy, 'convex_circle')
        assert strategy.graph.get_task("FinalizeSolution").tasks == []

    def test_every_target_resolves(self):
        """Finalizing the built graph succeeds for every built-in problem."""
        for name in PROBLEMS:
            strategy, _ = build(NLPStrategy, name)
            assert strategy.graph.task_names[-1] == "Terminate"


class TestStrategySelection:
    """Test automatic strategy choice."""

    @pytest.mark.parametrize("name, expected", [
        ('convex_circle', NLPStrategy),
        ('exponential', NLPStrategy),
        ('convex_minlp', SingleTreeStrategy),
        ('binary_switch', SingleTreeStrategy),
    ])
    def test_automatic(self, name, expected):
        """Discrete problems get the single-tree strategy."""
        solver = Solver(PROBLEMS[name].build())
        env = Environment(solver.problem, solver.settings)
        assert isinstance(solver.select_strategy(env), expected)

    def test_forced_strategy(self):
        """An explicit strategy type overrides detection."""
        settings = Settings()
        settings.update_setting("Type", "Strategy", int(SolutionStrategyType.SINGLE_TREE))
        solver = Solver(PROBLEMS['convex_circle'].build(), settings)
        env = Environment(solver.problem, settings)
        assert isinstance(solver.select_strategy(env), SingleTreeStrategy)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
