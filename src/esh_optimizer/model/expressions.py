"""
Expression Trees for Nonlinear Functions

Nonlinear parts of constraints and objectives that do not fit a term kind
are stored as expression trees of elementary operations:
- Constant, Variable leaves
- Unary:  negate, invert, sqrt, log, exp, sin, cos, tan, arcsin, arccos, arctan
- Binary: plus, minus, power
- N-ary:  sum, times

Every node supports:
1. Point evaluation (times short-circuits on an exact zero factor)
2. Interval evaluation over a variable box (never short-circuits)
3. Conversion to a CasADi SX expression for automatic differentiation
4. Convexity / monotonicity propagation by composition rules

Children may be shared between parents; evaluation never mutates a node.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence, Set, Union

import casadi as ca
import numpy as np

from ..bounds.interval import Interval, IntervalVector
from .terms import (
    Convexity,
    Monotonicity,
    combine_convexity,
    combine_monotonicity,
    negate_convexity,
    negate_monotonicity,
)
from .variables import Variable


class OpType(Enum):
    """Node kinds of an expression tree."""

    # Leaves
    CONSTANT = "constant"
    VARIABLE = "variable"

    # Unary operations
    NEGATE = "negate"
    INVERT = "invert"
    SQRT = "sqrt"
    LOG = "log"
    EXP = "exp"
    SIN = "sin"
    COS = "cos"
    TAN = "tan"
    ARCSIN = "arcsin"
    ARCCOS = "arccos"
    ARCTAN = "arctan"

    # Binary operations
    PLUS = "plus"
    MINUS = "minus"
    POWER = "power"

    # N-ary operations
    SUM = "sum"
    TIMES = "times"


UNARY_OPS = {OpType.NEGATE, OpType.INVERT, OpType.SQRT, OpType.LOG, OpType.EXP,
             OpType.SIN, OpType.COS, OpType.TAN, OpType.ARCSIN, OpType.ARCCOS,
             OpType.ARCTAN}
BINARY_OPS = {OpType.PLUS, OpType.MINUS, OpType.POWER}
NARY_OPS = {OpType.SUM, OpType.TIMES}


class Expression:
    """Base class for expression tree nodes."""

    op: OpType

    def calculate(self, point: Sequence[float]) -> float:
        """Evaluate the node at a point."""
        raise NotImplementedError

    def calculate_interval(self, intervals: IntervalVector) -> Interval:
        """Evaluate the node over a box of variable intervals."""
        raise NotImplementedError

    def get_factorable_function(self, symbols):
        """
        Build the CasADi form of the node.

        Args:
            symbols: Indexable CasADi symbols, one per problem variable

        Returns:
            casadi.SX expression
        """
        raise NotImplementedError

    @property
    def children(self) -> List['Expression']:
        return []

    @property
    def convexity(self) -> Convexity:
        raise NotImplementedError

    @property
    def monotonicity(self) -> Monotonicity:
        raise NotImplementedError

    def variables(self) -> Set[Variable]:
        """All variables referenced below this node."""
        found: Set[Variable] = set()
        stack: List[Expression] = [self]
        while stack:
            node = stack.pop()
            if isinstance(node, ExpressionVariable):
                found.add(node.variable)
            stack.extend(node.children)
        return found

    @property
    def is_constant(self) -> bool:
        return not self.variables()

    # Operator overloading builds new trees without touching the operands

    def __add__(self, other) -> 'Expression':
        return ExpressionSum([self, as_expression(other)])

    def __radd__(self, other) -> 'Expression':
        return ExpressionSum([as_expression(other), self])

    def __sub__(self, other) -> 'Expression':
        return ExpressionMinus(self, as_expression(other))

    def __rsub__(self, other) -> 'Expression':
        return ExpressionMinus(as_expression(other), self)

    def __mul__(self, other) -> 'Expression':
        return ExpressionProduct([self, as_expression(other)])

    def __rmul__(self, other) -> 'Expression':
        return ExpressionProduct([as_expression(other), self])

    def __truediv__(self, other) -> 'Expression':
        return ExpressionProduct([self, ExpressionInvert(as_expression(other))])

    def __rtruediv__(self, other) -> 'Expression':
        return ExpressionProduct([as_expression(other), ExpressionInvert(self)])

    def __pow__(self, other) -> 'Expression':
        return ExpressionPower(self, as_expression(other))

    def __rpow__(self, other) -> 'Expression':
        return ExpressionPower(as_expression(other), self)

    def __neg__(self) -> 'Expression':
        return ExpressionNegate(self)


def as_expression(value: Union[Expression, Variable, float, int]) -> Expression:
    """Wrap a number or variable as an expression node."""
    if isinstance(value, Expression):
        return value
    if isinstance(value, Variable):
        return ExpressionVariable(value)
    return ExpressionConstant(float(value))


@dataclass(eq=False)
class ExpressionConstant(Expression):
    """A constant leaf."""
    constant: float = 0.0
    op: OpType = field(default=OpType.CONSTANT, init=False)

    def calculate(self, point: Sequence[float]) -> float:
        return self.constant

    def calculate_interval(self, intervals: IntervalVector) -> Interval:
        return Interval.point(self.constant)

    def get_factorable_function(self, symbols):
        return ca.SX(self.constant)

    @property
    def convexity(self) -> Convexity:
        return Convexity.LINEAR

    @property
    def monotonicity(self) -> Monotonicity:
        return Monotonicity.CONSTANT

    def __str__(self) -> str:
        return f"{self.constant:g}"


@dataclass(eq=False)
class ExpressionVariable(Expression):
    """
    A variable leaf.

    Constructing the node flags the variable as appearing nonlinearly.
    """
    variable: Variable = None
    op: OpType = field(default=OpType.VARIABLE, init=False)

    def __post_init__(self):
        if self.variable is None:
            raise ValueError("ExpressionVariable requires a variable")
        self.variable.is_nonlinear = True

    def calculate(self, point: Sequence[float]) -> float:
        return self.variable.calculate(point)

    def calculate_interval(self, intervals: IntervalVector) -> Interval:
        return self.variable.calculate_interval(intervals)

    def get_factorable_function(self, symbols):
        return symbols[self.variable.index]

    @property
    def convexity(self) -> Convexity:
        return Convexity.LINEAR

    @property
    def monotonicity(self) -> Monotonicity:
        return Monotonicity.NONDECREASING

    def __str__(self) -> str:
        return self.variable.name


def _eval_unary(op: OpType, x: float) -> float:
    """Evaluate a unary operation."""
    if op == OpType.NEGATE:
        return -x
    elif op == OpType.INVERT:
        return 1.0 / x
    elif op == OpType.SQRT:
        return float(np.sqrt(x))
    elif op == OpType.LOG:
        return float(np.log(x))
    elif op == OpType.EXP:
        return float(np.exp(x))
    elif op == OpType.SIN:
        return float(np.sin(x))
    elif op == OpType.COS:
        return float(np.cos(x))
    elif op == OpType.TAN:
        return float(np.tan(x))
    elif op == OpType.ARCSIN:
        return float(np.arcsin(x))
    elif op == OpType.ARCCOS:
        return float(np.arccos(x))
    elif op == OpType.ARCTAN:
        return float(np.arctan(x))
    else:
        raise ValueError(f"Unknown unary op: {op}")


def _interval_unary(op: OpType, x: Interval) -> Interval:
    """Evaluate a unary operation over an interval."""
    if op == OpType.NEGATE:
        return -x
    elif op == OpType.INVERT:
        return x.invert()
    elif op == OpType.SQRT:
        return x.sqrt()
    elif op == OpType.LOG:
        return x.log()
    elif op == OpType.EXP:
        return x.exp()
    elif op == OpType.SIN:
        return x.sin()
    elif op == OpType.COS:
        return x.cos()
    elif op == OpType.TAN:
        return x.tan()
    elif op == OpType.ARCSIN:
        return x.arcsin()
    elif op == OpType.ARCCOS:
        return x.arccos()
    elif op == OpType.ARCTAN:
        return x.arctan()
    else:
        raise ValueError(f"Unknown unary op: {op}")


def _casadi_unary(op: OpType, x):
    """Apply a unary operation to a CasADi expression."""
    if op == OpType.NEGATE:
        return -x
    elif op == OpType.INVERT:
        return 1.0 / x
    elif op == OpType.SQRT:
        return ca.sqrt(x)
    elif op == OpType.LOG:
        return ca.log(x)
    elif op == OpType.EXP:
        return ca.exp(x)
    elif op == OpType.SIN:
        return ca.sin(x)
    elif op == OpType.COS:
        return ca.cos(x)
    elif op == OpType.TAN:
        return ca.tan(x)
    elif op == OpType.ARCSIN:
        return ca.asin(x)
    elif op == OpType.ARCCOS:
        return ca.acos(x)
    elif op == OpType.ARCTAN:
        return ca.atan(x)
    else:
        raise ValueError(f"Unknown unary op: {op}")


_UNARY_FORMATS = {
    OpType.NEGATE: "(-{})",
    OpType.INVERT: "1/({})",
    OpType.SQRT: "sqrt({})",
    OpType.LOG: "log({})",
    OpType.EXP: "exp({})",
    OpType.SIN: "sin({})",
    OpType.COS: "cos({})",
    OpType.TAN: "tan({})",
    OpType.ARCSIN: "arcsin({})",
    OpType.ARCCOS: "arccos({})",
    OpType.ARCTAN: "arctan({})",
}


@dataclass(eq=False)
class UnaryExpression(Expression):
    """
    A unary operation node: f(child).

    Attributes:
        op: The operation type
        child: The operand node
    """
    op: OpType = OpType.NEGATE
    child: Expression = None

    def __post_init__(self):
        if self.op not in UNARY_OPS:
            raise ValueError(f"{self.op} is not a unary operation")
        if self.child is None:
            raise ValueError("Unary expression requires a child")

    @property
    def children(self) -> List[Expression]:
        return [self.child]

    def calculate(self, point: Sequence[float]) -> float:
        return _eval_unary(self.op, self.child.calculate(point))

    def calculate_interval(self, intervals: IntervalVector) -> Interval:
        return _interval_unary(self.op, self.child.calculate_interval(intervals))

    def get_factorable_function(self, symbols):
        return _casadi_unary(self.op, self.child.get_factorable_function(symbols))

    @property
    def convexity(self) -> Convexity:
        child = self.child.convexity

        if self.op == OpType.NEGATE:
            return negate_convexity(child)
        if self.op == OpType.EXP:
            if child in (Convexity.LINEAR, Convexity.CONVEX):
                return Convexity.CONVEX
            return Convexity.UNKNOWN
        if self.op in (OpType.LOG, OpType.SQRT):
            if child in (Convexity.LINEAR, Convexity.CONCAVE):
                return Convexity.CONCAVE
            return Convexity.UNKNOWN
        return Convexity.UNKNOWN

    @property
    def monotonicity(self) -> Monotonicity:
        child = self.child.monotonicity

        if self.op == OpType.NEGATE:
            return negate_monotonicity(child)
        # Increasing outer functions preserve the monotonicity of the argument
        if self.op in (OpType.EXP, OpType.LOG, OpType.SQRT, OpType.ARCTAN, OpType.ARCSIN):
            return child
        if self.op == OpType.ARCCOS:
            return negate_monotonicity(child)
        if child == Monotonicity.CONSTANT:
            return Monotonicity.CONSTANT
        return Monotonicity.UNKNOWN

    def __str__(self) -> str:
        return _UNARY_FORMATS[self.op].format(self.child)


def _eval_binary(op: OpType, first: float, second: float) -> float:
    """Evaluate a binary operation."""
    if op == OpType.PLUS:
        return first + second
    elif op == OpType.MINUS:
        return first - second
    elif op == OpType.POWER:
        return float(np.power(first, second))
    else:
        raise ValueError(f"Unknown binary op: {op}")


@dataclass(eq=False)
class BinaryExpression(Expression):
    """
    A binary operation node: f(first, second).

    Attributes:
        op: The operation type
        first: The first operand
        second: The second operand
    """
    op: OpType = OpType.PLUS
    first: Expression = None
    second: Expression = None

    def __post_init__(self):
        if self.op not in BINARY_OPS:
            raise ValueError(f"{self.op} is not a binary operation")
        if self.first is None or self.second is None:
            raise ValueError("Binary expression requires two children")

    @property
    def children(self) -> List[Expression]:
        return [self.first, self.second]

    def calculate(self, point: Sequence[float]) -> float:
        return _eval_binary(self.op, self.first.calculate(point), self.second.calculate(point))

    def calculate_interval(self, intervals: IntervalVector) -> Interval:
        first = self.first.calculate_interval(intervals)
        second = self.second.calculate_interval(intervals)

        if self.op == OpType.PLUS:
            return first + second
        elif self.op == OpType.MINUS:
            return first - second
        return first ** second

    def get_factorable_function(self, symbols):
        first = self.first.get_factorable_function(symbols)
        second = self.second.get_factorable_function(symbols)

        if self.op == OpType.PLUS:
            return first + second
        elif self.op == OpType.MINUS:
            return first - second
        return first ** second

    def _constant_exponent(self):
        if isinstance(self.second, ExpressionConstant):
            return self.second.constant
        return None

    @property
    def convexity(self) -> Convexity:
        if self.op == OpType.PLUS:
            return combine_convexity(self.first.convexity, self.second.convexity)
        if self.op == OpType.MINUS:
            return combine_convexity(self.first.convexity, negate_convexity(self.second.convexity))

        exponent = self._constant_exponent()
        base = self.first.convexity
        if exponent is None:
            return Convexity.UNKNOWN
        if exponent == 0.0:
            return Convexity.LINEAR
        if exponent == 1.0:
            return base
        if base == Convexity.LINEAR and exponent == int(exponent) and int(exponent) % 2 == 0 and exponent > 0:
            return Convexity.CONVEX
        return Convexity.UNKNOWN

    @property
    def monotonicity(self) -> Monotonicity:
        if self.op == OpType.PLUS:
            return combine_monotonicity(self.first.monotonicity, self.second.monotonicity)
        if self.op == OpType.MINUS:
            return combine_monotonicity(self.first.monotonicity,
                                        negate_monotonicity(self.second.monotonicity))

        exponent = self._constant_exponent()
        if exponent is not None:
            if exponent == 0.0 or self.first.monotonicity == Monotonicity.CONSTANT:
                return Monotonicity.CONSTANT
            if exponent == 1.0:
                return self.first.monotonicity
            return Monotonicity.UNKNOWN

        # b^g(x) with a constant base follows g for b > 1 and flips for 0 < b < 1
        if not isinstance(self.first, ExpressionConstant):
            return Monotonicity.UNKNOWN
        base = self.first.constant
        inner = self.second.monotonicity
        if base == 1.0 or inner == Monotonicity.CONSTANT:
            return Monotonicity.CONSTANT
        if base > 1.0:
            return inner
        if 0.0 < base < 1.0:
            return negate_monotonicity(inner)
        return Monotonicity.UNKNOWN

    def __str__(self) -> str:
        if self.op == OpType.PLUS:
            return f"({self.first}+{self.second})"
        if self.op == OpType.MINUS:
            return f"({self.first}-{self.second})"
        return f"({self.first})^({self.second})"


@dataclass(eq=False)
class NAryExpression(Expression):
    """
    An n-ary sum or product over an ordered list of children.

    Point evaluation of a product stops at the first child that evaluates
    to exactly 0.0. Interval and symbolic evaluation always visit every child.
    """
    op: OpType = OpType.SUM
    child_list: List[Expression] = field(default_factory=list)

    def __post_init__(self):
        if self.op not in NARY_OPS:
            raise ValueError(f"{self.op} is not an n-ary operation")
        self.child_list = [as_expression(c) for c in self.child_list]

    @property
    def children(self) -> List[Expression]:
        return list(self.child_list)

    def add(self, child: Union[Expression, Variable, float]) -> None:
        self.child_list.append(as_expression(child))

    def calculate(self, point: Sequence[float]) -> float:
        if self.op == OpType.SUM:
            value = 0.0
            for child in self.child_list:
                value += child.calculate(point)
            return value

        value = 1.0
        for child in self.child_list:
            factor = child.calculate(point)
            if factor == 0.0:
                return 0.0
            value *= factor
        return value

    def calculate_interval(self, intervals: IntervalVector) -> Interval:
        if self.op == OpType.SUM:
            value = Interval.point(0.0)
            for child in self.child_list:
                value = value + child.calculate_interval(intervals)
            return value

        value = Interval.point(1.0)
        for child in self.child_list:
            value = value * child.calculate_interval(intervals)
        return value

    def get_factorable_function(self, symbols):
        if not self.child_list:
            return ca.SX(0.0 if self.op == OpType.SUM else 1.0)

        value = self.child_list[0].get_factorable_function(symbols)
        for child in self.child_list[1:]:
            if self.op == OpType.SUM:
                value = value + child.get_factorable_function(symbols)
            else:
                value = value * child.get_factorable_function(symbols)
        return value

    def _split_constant_factor(self):
        """Split a product into its constant factor and non-constant children."""
        factor = 1.0
        rest = []
        for child in self.child_list:
            if isinstance(child, ExpressionConstant):
                factor *= child.constant
            else:
                rest.append(child)
        return factor, rest

    @property
    def convexity(self) -> Convexity:
        if self.op == OpType.SUM:
            convexity = Convexity.LINEAR
            for child in self.child_list:
                convexity = combine_convexity(convexity, child.convexity)
            return convexity

        factor, rest = self._split_constant_factor()
        if factor == 0.0 or not rest:
            return Convexity.LINEAR
        if len(rest) > 1:
            return Convexity.UNKNOWN
        if factor > 0:
            return rest[0].convexity
        return negate_convexity(rest[0].convexity)

    @property
    def monotonicity(self) -> Monotonicity:
        if self.op == OpType.SUM:
            monotonicity = Monotonicity.CONSTANT
            for child in self.child_list:
                monotonicity = combine_monotonicity(monotonicity, child.monotonicity)
            return monotonicity

        factor, rest = self._split_constant_factor()
        if factor == 0.0 or not rest:
            return Monotonicity.CONSTANT
        if len(rest) > 1:
            return Monotonicity.UNKNOWN
        if factor > 0:
            return rest[0].monotonicity
        return negate_monotonicity(rest[0].monotonicity)

    def __str__(self) -> str:
        if not self.child_list:
            return "0"
        if len(self.child_list) == 1:
            return str(self.child_list[0])
        separator = "+" if self.op == OpType.SUM else "*"
        return "(" + separator.join(str(c) for c in self.child_list) + ")"


# Convenience constructors

def ExpressionNegate(child: Expression) -> UnaryExpression:
    return UnaryExpression(OpType.NEGATE, as_expression(child))


def ExpressionInvert(child: Expression) -> UnaryExpression:
    return UnaryExpression(OpType.INVERT, as_expression(child))


def ExpressionPlus(first, second) -> BinaryExpression:
    return BinaryExpression(OpType.PLUS, as_expression(first), as_expression(second))


def ExpressionMinus(first, second) -> BinaryExpression:
    return BinaryExpression(OpType.MINUS, as_expression(first), as_expression(second))


def ExpressionPower(base, exponent) -> BinaryExpression:
    return BinaryExpression(OpType.POWER, as_expression(base), as_expression(exponent))


def ExpressionSum(children) -> NAryExpression:
    return NAryExpression(OpType.SUM, list(children))


def ExpressionProduct(children) -> NAryExpression:
    return NAryExpression(OpType.TIMES, list(children))


# Module-level math functions for building trees

def sqrt(x) -> UnaryExpression:
    return UnaryExpression(OpType.SQRT, as_expression(x))


def exp(x) -> UnaryExpression:
    return UnaryExpression(OpType.EXP, as_expression(x))


def log(x) -> UnaryExpression:
    return UnaryExpression(OpType.LOG, as_expression(x))


def sin(x) -> UnaryExpression:
    return UnaryExpression(OpType.SIN, as_expression(x))


def cos(x) -> UnaryExpression:
    return UnaryExpression(OpType.COS, as_expression(x))


def tan(x) -> UnaryExpression:
    return UnaryExpression(OpType.TAN, as_expression(x))


def arcsin(x) -> UnaryExpression:
    return UnaryExpression(OpType.ARCSIN, as_expression(x))


def arccos(x) -> UnaryExpression:
    return UnaryExpression(OpType.ARCCOS, as_expression(x))


def arctan(x) -> UnaryExpression:
    return UnaryExpression(OpType.ARCTAN, as_expression(x))
