"""
Solution Strategies

Assemble the task graph of one algorithmic variant. Every decision is
taken once from the settings and the problem properties at build time; a
disabled feature simply leaves its task out of the graph.

- SingleTreeStrategy: MILP outer approximation for mixed-integer problems
- NLPStrategy: LP outer approximation for continuous problems
"""

import logging

from ..settings import CutStrategy, PresolveFrequency
from ..tasks import (
    AddHyperplanes,
    AddIntegerCuts,
    AddPrimalReductionCut,
    CheckAbsoluteGap,
    CheckConstraintTolerance,
    CheckDualStagnation,
    CheckIterationError,
    CheckIterationLimit,
    CheckMaxNumberOfPrimalReductionCuts,
    CheckPrimalStagnation,
    CheckRelativeGap,
    CheckTimeLimit,
    CheckUserTermination,
    CreateDualProblem,
    ExecuteRelaxationStrategy,
    FindInteriorPoint,
    GotoTask,
    InitializeDualSolver,
    InitializeIteration,
    InitializeLinesearch,
    Presolve,
    PrintIterationReport,
    RepairInfeasibleDualProblem,
    SelectHyperplanePointsECP,
    SelectHyperplanePointsESH,
    SelectObjectiveHyperplanePoints,
    SelectPrimalCandidatesFromLinesearch,
    SelectPrimalCandidatesFromNLP,
    SelectPrimalCandidatesFromSolutionPool,
    SelectPrimalFixedNLPPointsFromSolutionPool,
    SequentialTask,
    SolveIteration,
    TaskGraph,
    TerminateTask,
    UpdateInteriorPoint,
)

logger = logging.getLogger(__name__)


class SolutionStrategy:
    """
    Base class: reads the build flags and provides the shared graph segments.

    Args:
        env: Solver environment; the built graph is stored in env.task_graph
    """

    discrete_dual = True

    def __init__(self, env):
        self.env = env
        settings = env.settings
        problem = env.reformulated_problem

        self.cut_strategy = CutStrategy(settings.get_int_setting("CutStrategy", "Dual"))
        self.assume_convex = settings.get_bool_setting("Convexity.AssumeConvex", "Model")
        self.use_presolve = settings.get_int_setting("MIP.Presolve.Frequency", "Dual") != PresolveFrequency.NEVER
        self.use_integer_cuts = settings.get_bool_setting("HyperplaneCuts.UseIntegerCuts", "Dual")
        self.use_relaxation = settings.get_bool_setting("Relaxation.Use", "Dual")
        self.use_fixed_nlp = settings.get_bool_setting("FixedInteger.Use", "Primal")
        self.use_linesearch = settings.get_bool_setting("Linesearch.Use", "Primal")

        self.is_discrete = problem.properties.is_discrete
        self.has_nonlinear_constraints = problem.properties.has_nonlinear_constraints
        self.has_nonlinear_objective = problem.objective_function.properties.is_nonlinear

        self.graph = TaskGraph()
        self.build()
        self.graph.finalize()
        env.task_graph = self.graph

    def build(self) -> None:
        raise NotImplementedError

    @property
    def use_esh(self) -> bool:
        return self.cut_strategy == CutStrategy.ESH and self.has_nonlinear_constraints

    def add(self, name: str, task) -> None:
        self.graph.add_task(name, task)

    def _add_initialization(self) -> None:
        self.add("InitMIPSolver", InitializeDualSolver(discrete=self.discrete_dual))
        if self.use_esh:
            self.add("FindIntPoint", FindInteriorPoint())
        self.add("CreateDualProblem", CreateDualProblem())
        self.add("InitializeLinesearch", InitializeLinesearch())

    def _add_hyperplane_selection(self) -> None:
        if self.use_esh:
            self.add("UpdateInteriorPoint", UpdateInteriorPoint())
            self.add("SelectHPPts", SelectHyperplanePointsESH())
        else:
            self.add("SelectHPPts", SelectHyperplanePointsECP())

        if self.has_nonlinear_objective:
            self.add("SelectObjectiveHPPts", SelectObjectiveHyperplanePoints())

    def _add_stagnation_checks(self) -> None:
        if not self.assume_convex:
            self.add("CheckPrimalStag", CheckPrimalStagnation("AddObjectiveCut", "CheckDualStag"))
            self.add("AddObjectiveCut", AddPrimalReductionCut("CheckDualStag", "CheckDualStag"))
        self.add("CheckDualStag", CheckDualStagnation("FinalizeSolution"))

    def _finalize_solution_task(self) -> SequentialTask:
        finalize = SequentialTask()
        if self.use_fixed_nlp and self.is_discrete:
            finalize.add_task(SelectPrimalFixedNLPPointsFromSolutionPool(force=True))
            finalize.add_task(SelectPrimalCandidatesFromNLP())
        return finalize

    def _add_finalization(self) -> None:
        self.add("FinalizeSolution", self._finalize_solution_task())
        if not self.assume_convex:
            self.add("AddObjectiveCutFinal", AddPrimalReductionCut("InitIter2", "Terminate"))
        self.add("Terminate", TerminateTask())


class SingleTreeStrategy(SolutionStrategy):
    """
    Iterative MILP outer approximation for mixed-integer nonlinear problems.

    Main loop, from SolveIter back to SolveIter:
        solve dual -> primal candidates -> report -> termination checks
        -> fixed NLP -> new iteration -> hyperplane points -> cuts
    """

    discrete_dual = True

    def build(self) -> None:
        add = self.add
        use_fixed_nlp = self.use_fixed_nlp and self.is_discrete

        self._add_initialization()

        init_iteration = InitializeIteration()
        add_hyperplanes = AddHyperplanes()

        add("InitIter", init_iteration)
        add("AddHPs", add_hyperplanes)
        if self.use_relaxation and self.is_discrete:
            add("ExecRelaxStrategyInitial", ExecuteRelaxationStrategy(initial=True))
        if self.use_presolve:
            add("Presolve", Presolve())

        add("SolveIter", SolveIteration())
        add("SelectPrimSolPool", SelectPrimalCandidatesFromSolutionPool())
        if self.use_linesearch:
            add("SelectPrimLinesearch", SelectPrimalCandidatesFromLinesearch())
        add("PrintIterReport", PrintIterationReport())

        if not self.assume_convex:
            add("RepairInfeasibility", RepairInfeasibleDualProblem("SolveIter", "CheckAbsGap"))

        check_absolute_gap = CheckAbsoluteGap("FinalizeSolution")
        check_relative_gap = CheckRelativeGap("FinalizeSolution")

        add("CheckAbsGap", check_absolute_gap)
        add("CheckRelGap", check_relative_gap)
        add("CheckIterLim", CheckIterationLimit("FinalizeSolution"))
        add("CheckTimeLim", CheckTimeLimit("FinalizeSolution"))
        add("CheckUserTerm", CheckUserTermination("FinalizeSolution"))
        add("CheckIterError", CheckIterationError("FinalizeSolution"))
        add("CheckConstrTol", CheckConstraintTolerance("FinalizeSolution"))
        if not self.assume_convex:
            add("CheckMaxObjectiveCuts", CheckMaxNumberOfPrimalReductionCuts("FinalizeSolution"))
        self._add_stagnation_checks()

        if use_fixed_nlp:
            add("SelectPrimFixedNLPSolPool", SelectPrimalFixedNLPPointsFromSolutionPool())
            add("SelectPrimNLPCheck", SelectPrimalCandidatesFromNLP())
            add("CheckAbsGap", check_absolute_gap)
            add("CheckRelGap", check_relative_gap)

        add("InitIter2", init_iteration)
        if self.use_relaxation and self.is_discrete:
            add("ExecRelaxStrategy", ExecuteRelaxationStrategy())

        self._add_hyperplane_selection()

        if self.use_integer_cuts and self.is_discrete:
            add("AddICs", AddIntegerCuts())
        add("AddHPs", add_hyperplanes)
        add("Goto", GotoTask("SolveIter"))

        self._add_finalization()


class NLPStrategy(SolutionStrategy):
    """
    Iterative LP outer approximation for continuous nonlinear problems.

    The dual problem has no integrality restrictions; there is no relaxation
    phase, fixed-integer NLP or integer cut.
    """

    discrete_dual = False

    def build(self) -> None:
        add = self.add

        self._add_initialization()

        init_iteration = InitializeIteration()
        add_hyperplanes = AddHyperplanes()

        add("InitIter", init_iteration)
        add("AddHPs", add_hyperplanes)
        if self.use_presolve:
            add("Presolve", Presolve())

        add("SolveIter", SolveIteration())
        add("SelectPrimSolPool", SelectPrimalCandidatesFromSolutionPool())
        if self.use_linesearch:
            add("SelectPrimLinesearch", SelectPrimalCandidatesFromLinesearch())
        add("PrintIterReport", PrintIterationReport())

        if not self.assume_convex:
            add("RepairInfeasibility", RepairInfeasibleDualProblem("SolveIter", "CheckAbsGap"))

        add("CheckAbsGap", CheckAbsoluteGap("FinalizeSolution"))
        add("CheckRelGap", CheckRelativeGap("FinalizeSolution"))
        add("CheckIterLim", CheckIterationLimit("FinalizeSolution"))
        add("CheckTimeLim", CheckTimeLimit("FinalizeSolution"))
        add("CheckUserTerm", CheckUserTermination("FinalizeSolution"))
        add("CheckIterError", CheckIterationError("FinalizeSolution"))
        add("CheckConstrTol", CheckConstraintTolerance("FinalizeSolution"))
        self._add_stagnation_checks()

        add("InitIter2", init_iteration)
        self._add_hyperplane_selection()
        add("AddHPs", add_hyperplanes)
        add("Goto", GotoTask("SolveIter"))

        self._add_finalization()
