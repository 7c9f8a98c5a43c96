"""
Built-in Problems

Small models with known optima, used by the CLI and the tests.
"""

from typing import Callable, Dict, NamedTuple

import numpy as np

from .model import (
    LinearConstraint,
    LinearObjectiveFunction,
    LinearTerm,
    NonlinearConstraint,
    ObjectiveDirection,
    Problem,
    QuadraticConstraint,
    QuadraticObjectiveFunction,
    QuadraticTerm,
    SignomialElement,
    SignomialTerm,
    VariableType,
)
from .model.expressions import exp


def convex_circle() -> Problem:
    """min -x - y  s.t. x^2 + y^2 <= 1.  Optimum -sqrt(2)."""
    p = Problem("convex_circle")
    x = p.add_variable("x", lower=-2.0, upper=2.0)
    y = p.add_variable("y", lower=-2.0, upper=2.0)

    p.set_objective(LinearObjectiveFunction(terms=[LinearTerm(-1.0, x), LinearTerm(-1.0, y)]))
    p.add_constraint(QuadraticConstraint(
        value_rhs=1.0,
        terms=[QuadraticTerm(1.0, x, x), QuadraticTerm(1.0, y, y)],
    ))
    return p


def maximize_circle() -> Problem:
    """max x + y  s.t. x^2 + y^2 <= 1.  Optimum sqrt(2)."""
    p = Problem("maximize_circle")
    x = p.add_variable("x", lower=-2.0, upper=2.0)
    y = p.add_variable("y", lower=-2.0, upper=2.0)

    p.set_objective(LinearObjectiveFunction(
        ObjectiveDirection.MAXIMIZE,
        terms=[LinearTerm(1.0, x), LinearTerm(1.0, y)],
    ))
    p.add_constraint(QuadraticConstraint(
        value_rhs=1.0,
        terms=[QuadraticTerm(1.0, x, x), QuadraticTerm(1.0, y, y)],
    ))
    return p


def convex_minlp() -> Problem:
    """min -x - 2y  s.t. x^2 + y^2 <= 5, y integer in [0, 3].  Optimum -5 at (1, 2)."""
    p = Problem("convex_minlp")
    x = p.add_variable("x", lower=-3.0, upper=3.0)
    y = p.add_variable("y", VariableType.INTEGER, 0.0, 3.0)

    p.set_objective(LinearObjectiveFunction(terms=[LinearTerm(-1.0, x), LinearTerm(-2.0, y)]))
    p.add_constraint(QuadraticConstraint(
        value_rhs=5.0,
        terms=[QuadraticTerm(1.0, x, x), QuadraticTerm(1.0, y, y)],
    ))
    return p


def binary_switch() -> Problem:
    """
    min 2x + 3b  s.t. (x - 2)^2 - 4b <= 1, b binary, x in [0, 4].

    Optimum 2 at (1, 0).
    """
    p = Problem("binary_switch")
    x = p.add_variable("x", lower=0.0, upper=4.0)
    b = p.add_variable("b", VariableType.BINARY)

    p.set_objective(LinearObjectiveFunction(terms=[LinearTerm(2.0, x), LinearTerm(3.0, b)]))
    p.add_constraint(QuadraticConstraint(
        value_rhs=1.0,
        constant=4.0,
        terms=[QuadraticTerm(1.0, x, x), LinearTerm(-4.0, x), LinearTerm(-4.0, b)],
    ))
    return p


def quadratic_objective() -> Problem:
    """
    min (x - 1.5)^2 + (y - 1.6)^2  s.t. x + y <= 3, y integer.

    Optimum 0.36 at (1.5, 1). The objective goes through the epigraph.
    """
    p = Problem("quadratic_objective")
    x = p.add_variable("x", lower=0.0, upper=3.0)
    y = p.add_variable("y", VariableType.INTEGER, 0.0, 3.0)

    p.set_objective(QuadraticObjectiveFunction(
        constant=1.5 ** 2 + 1.6 ** 2,
        terms=[
            QuadraticTerm(1.0, x, x), LinearTerm(-3.0, x),
            QuadraticTerm(1.0, y, y), LinearTerm(-3.2, y),
        ],
    ))
    p.add_constraint(LinearConstraint(value_rhs=3.0, terms=[LinearTerm(1.0, x), LinearTerm(1.0, y)]))
    return p


def signomial() -> Problem:
    """min x + y  s.t. x^-1 * y^-1 <= 1 on [0.1, 10]^2.  Optimum 2 at (1, 1)."""
    p = Problem("signomial")
    x = p.add_variable("x", lower=0.1, upper=10.0)
    y = p.add_variable("y", lower=0.1, upper=10.0)

    p.set_objective(LinearObjectiveFunction(terms=[LinearTerm(1.0, x), LinearTerm(1.0, y)]))
    p.add_constraint(NonlinearConstraint(
        value_rhs=1.0,
        terms=[SignomialTerm(1.0, [SignomialElement(x, -1.0), SignomialElement(y, -1.0)])],
    ))
    return p


def exponential() -> Problem:
    """min -x - y  s.t. exp(x) + y <= 3.  Optimum -2 at (0, 2)."""
    p = Problem("exponential")
    x = p.add_variable("x", lower=-2.0, upper=2.0)
    y = p.add_variable("y", lower=-5.0, upper=5.0)

    p.set_objective(LinearObjectiveFunction(terms=[LinearTerm(-1.0, x), LinearTerm(-1.0, y)]))
    constraint = NonlinearConstraint(value_rhs=3.0, terms=[LinearTerm(1.0, y)])
    constraint.add(exp(x))
    p.add_constraint(constraint)
    return p


def bilinear() -> Problem:
    """
    min x + y  s.t. x * y >= 1 on [0.1, 10]^2.  Optimum 2 at (1, 1).

    The bilinear constraint is classified nonconvex.
    """
    p = Problem("bilinear")
    x = p.add_variable("x", lower=0.1, upper=10.0)
    y = p.add_variable("y", lower=0.1, upper=10.0)

    p.set_objective(LinearObjectiveFunction(terms=[LinearTerm(1.0, x), LinearTerm(1.0, y)]))
    p.add_constraint(QuadraticConstraint(value_lhs=1.0, terms=[QuadraticTerm(1.0, x, y)]))
    return p


class BuiltinProblem(NamedTuple):
    build: Callable[[], Problem]
    optimum: float


PROBLEMS: Dict[str, BuiltinProblem] = {
    'convex_circle': BuiltinProblem(convex_circle, -np.sqrt(2.0)),
    'maximize_circle': BuiltinProblem(maximize_circle, np.sqrt(2.0)),
    'convex_minlp': BuiltinProblem(convex_minlp, -5.0),
    'binary_switch': BuiltinProblem(binary_switch, 2.0),
    'quadratic_objective': BuiltinProblem(quadratic_objective, 0.36),
    'signomial': BuiltinProblem(signomial, 2.0),
    'exponential': BuiltinProblem(exponential, -2.0),
    'bilinear': BuiltinProblem(bilinear, 2.0),
}
