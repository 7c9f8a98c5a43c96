"""
Solver state, backends and entry point.
"""

from .environment import (
    DualSolutionStatus,
    Environment,
    Hyperplane,
    Iteration,
    PrimalCandidate,
    PrimalSolution,
    PrimalSolutionSource,
    Results,
    SolutionStatistics,
    TerminationReason,
)
from .dual_solver import MILPDualSolver
from .primal_solver import NLPPrimalSolver, NLPResult
from .rootsearch import RootSearch, RootSearchResult
from .interior_point import find_interior_point
from .solver import Solver, SolverResult

__all__ = [
    'DualSolutionStatus', 'Environment', 'Hyperplane', 'Iteration', 'PrimalCandidate',
    'PrimalSolution', 'PrimalSolutionSource', 'Results', 'SolutionStatistics', 'TerminationReason',
    'MILPDualSolver', 'NLPPrimalSolver', 'NLPResult', 'RootSearch', 'RootSearchResult',
    'find_interior_point', 'Solver', 'SolverResult',
]
