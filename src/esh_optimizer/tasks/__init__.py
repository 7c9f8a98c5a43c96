"""
Task Graph Engine and Solver Tasks
"""

from .base import ConditionalTask, GotoTask, SequentialTask, Task, TerminateTask
from .graph import TaskGraph
from .initialization import (
    CreateDualProblem,
    FindInteriorPoint,
    InitializeDualSolver,
    InitializeIteration,
    InitializeLinesearch,
)
from .dual import (
    AddHyperplanes,
    AddIntegerCuts,
    AddPrimalReductionCut,
    ExecuteRelaxationStrategy,
    Presolve,
    RepairInfeasibleDualProblem,
    SelectHyperplanePointsECP,
    SelectHyperplanePointsESH,
    SelectObjectiveHyperplanePoints,
    SolveIteration,
    UpdateInteriorPoint,
)
from .primal import (
    SelectPrimalCandidatesFromLinesearch,
    SelectPrimalCandidatesFromNLP,
    SelectPrimalCandidatesFromSolutionPool,
    SelectPrimalFixedNLPPointsFromSolutionPool,
)
from .reporting import PrintIterationReport
from .termination import (
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
    TerminationCheck,
)

__all__ = [
    # Engine
    'Task', 'ConditionalTask', 'GotoTask', 'SequentialTask', 'TerminateTask', 'TaskGraph',
    # Initialization
    'InitializeDualSolver', 'FindInteriorPoint', 'CreateDualProblem',
    'InitializeLinesearch', 'InitializeIteration',
    # Dual
    'AddHyperplanes', 'ExecuteRelaxationStrategy', 'Presolve', 'SolveIteration',
    'RepairInfeasibleDualProblem', 'UpdateInteriorPoint', 'SelectHyperplanePointsESH',
    'SelectHyperplanePointsECP', 'SelectObjectiveHyperplanePoints', 'AddIntegerCuts',
    'AddPrimalReductionCut',
    # Primal
    'SelectPrimalCandidatesFromSolutionPool', 'SelectPrimalCandidatesFromLinesearch',
    'SelectPrimalFixedNLPPointsFromSolutionPool', 'SelectPrimalCandidatesFromNLP',
    # Reporting
    'PrintIterationReport',
    # Termination
    'TerminationCheck', 'CheckAbsoluteGap', 'CheckRelativeGap', 'CheckIterationLimit',
    'CheckTimeLimit', 'CheckUserTermination', 'CheckIterationError',
    'CheckConstraintTolerance', 'CheckMaxNumberOfPrimalReductionCuts',
    'CheckPrimalStagnation', 'CheckDualStagnation',
]
