"""
ESH Optimizer - Outer Approximation Solver for Mixed-Integer Nonlinear Programs

Solves convex MINLP problems (and nonconvex ones heuristically) by
iteratively refining a polyhedral outer approximation:
- Dual problems (MILP/LP) give lower bounds
- Extended supporting hyperplanes (ESH) or cutting planes (ECP) tighten them
- Linesearch and fixed-integer NLP problems give primal solutions

The algorithm is assembled as a task graph from settings, run by a single
cursor, and every executed task is recorded in a receipt chain.

Key Features:
- Term algebra and expression trees with convexity detection
- Interval evaluation and CasADi derivatives
- Data-driven task graph with conditional jumps
- Deterministic tie-safe cut selection
"""

from .model import (
    Variable,
    VariableType,
    Convexity,
    Monotonicity,
    LinearTerm,
    QuadraticTerm,
    MonomialTerm,
    SignomialElement,
    SignomialTerm,
    OpType,
    Expression,
    ExpressionConstant,
    ExpressionVariable,
    FunctionClassification,
    ConstraintSignType,
    NumericConstraintValue,
    NumericConstraint,
    LinearConstraint,
    QuadraticConstraint,
    NonlinearConstraint,
    ObjectiveDirection,
    ObjectiveFunction,
    LinearObjectiveFunction,
    QuadraticObjectiveFunction,
    NonlinearObjectiveFunction,
    Problem,
)
from .bounds import Interval
from .settings import (
    Settings,
    CutStrategy,
    PresolveFrequency,
    SolutionStrategyType,
)
from .exceptions import SettingNotFoundError, TaskError, TaskNotFoundError
from .receipts import ReceiptChain, canonical_dumps, canonical_hash
from .timing import Timing
from .tasks import (
    Task,
    ConditionalTask,
    GotoTask,
    SequentialTask,
    TerminateTask,
    TaskGraph,
)
from .solver import (
    Environment,
    Solver,
    SolverResult,
    TerminationReason,
)
from .strategy import SingleTreeStrategy, NLPStrategy

__version__ = "0.1.0"

__all__ = [
    # Model
    'Variable', 'VariableType', 'Convexity', 'Monotonicity',
    'LinearTerm', 'QuadraticTerm', 'MonomialTerm', 'SignomialElement', 'SignomialTerm',
    'OpType', 'Expression', 'ExpressionConstant', 'ExpressionVariable',
    'FunctionClassification', 'ConstraintSignType', 'NumericConstraintValue',
    'NumericConstraint', 'LinearConstraint', 'QuadraticConstraint', 'NonlinearConstraint',
    'ObjectiveDirection', 'ObjectiveFunction', 'LinearObjectiveFunction',
    'QuadraticObjectiveFunction', 'NonlinearObjectiveFunction', 'Problem',
    'Interval',
    # Configuration
    'Settings', 'CutStrategy', 'PresolveFrequency', 'SolutionStrategyType',
    'SettingNotFoundError', 'TaskError', 'TaskNotFoundError',
    # Audit and timing
    'ReceiptChain', 'canonical_dumps', 'canonical_hash', 'Timing',
    # Engine
    'Task', 'ConditionalTask', 'GotoTask', 'SequentialTask', 'TerminateTask', 'TaskGraph',
    # Solver
    'Environment', 'Solver', 'SolverResult', 'TerminationReason',
    'SingleTreeStrategy', 'NLPStrategy',
]
