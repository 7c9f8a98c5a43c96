"""
Model Module

Variables, algebraic terms, expression trees, constraints, objectives and
the problem container.
"""

from .variables import Variable, VariableType, DISCRETE_TYPES
from .terms import (
    Convexity,
    Monotonicity,
    LinearTerm,
    QuadraticTerm,
    MonomialTerm,
    SignomialElement,
    SignomialTerm,
    LinearTerms,
    QuadraticTerms,
    MonomialTerms,
    SignomialTerms,
    combine_convexity,
    combine_monotonicity,
)
from .expressions import (
    OpType,
    Expression,
    ExpressionConstant,
    ExpressionVariable,
    UnaryExpression,
    BinaryExpression,
    NAryExpression,
    ExpressionNegate,
    ExpressionInvert,
    ExpressionPlus,
    ExpressionMinus,
    ExpressionPower,
    ExpressionSum,
    ExpressionProduct,
    as_expression,
)
from .functions import AlgebraicFunction, FunctionClassification
from .constraints import (
    ConstraintSignType,
    ConstraintProperties,
    NumericConstraintValue,
    NumericConstraint,
    LinearConstraint,
    QuadraticConstraint,
    NonlinearConstraint,
)
from .objective import (
    ObjectiveDirection,
    ObjectiveProperties,
    ObjectiveFunction,
    LinearObjectiveFunction,
    QuadraticObjectiveFunction,
    NonlinearObjectiveFunction,
)
from .problem import Problem, ProblemProperties

__all__ = [
    'Variable', 'VariableType', 'DISCRETE_TYPES',
    'Convexity', 'Monotonicity',
    'LinearTerm', 'QuadraticTerm', 'MonomialTerm', 'SignomialElement', 'SignomialTerm',
    'LinearTerms', 'QuadraticTerms', 'MonomialTerms', 'SignomialTerms',
    'combine_convexity', 'combine_monotonicity',
    'OpType', 'Expression', 'ExpressionConstant', 'ExpressionVariable',
    'UnaryExpression', 'BinaryExpression', 'NAryExpression',
    'ExpressionNegate', 'ExpressionInvert', 'ExpressionPlus', 'ExpressionMinus',
    'ExpressionPower', 'ExpressionSum', 'ExpressionProduct', 'as_expression',
    'AlgebraicFunction', 'FunctionClassification',
    'ConstraintSignType', 'ConstraintProperties', 'NumericConstraintValue',
    'NumericConstraint', 'LinearConstraint', 'QuadraticConstraint', 'NonlinearConstraint',
    'ObjectiveDirection', 'ObjectiveProperties', 'ObjectiveFunction',
    'LinearObjectiveFunction', 'QuadraticObjectiveFunction', 'NonlinearObjectiveFunction',
    'Problem', 'ProblemProperties',
]
