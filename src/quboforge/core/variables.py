# Copyright 2025 Qilimanjaro Quantum Tech
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
from __future__ import annotations

from fractions import Fraction
from typing import Mapping

import numpy as np

from quboforge.yaml import yaml

from .exceptions import DivideByZeroError, InvalidBoundsError
from .pbf import PBF, _divide
from .types import Monomial, Number, YamledEnum


def LT(lhs: Number | Variable | Expression, rhs: Number | Variable | Expression) -> ComparisonTerm:
    """'Less Than' comparison: lhs < rhs."""
    return ComparisonTerm(lhs=lhs, rhs=rhs, operation=ComparisonOperation.LT)


def LEQ(lhs: Number | Variable | Expression, rhs: Number | Variable | Expression) -> ComparisonTerm:
    """'Less Than or equal to' comparison.

    Args:
        lhs (Number | Variable | Expression): the left hand side of the comparison term.
        rhs (Number | Variable | Expression): the right hand side of the comparison term.

    Returns:
        ComparisonTerm: a comparison term with the structure lhs <= rhs.
    """
    return ComparisonTerm(lhs=lhs, rhs=rhs, operation=ComparisonOperation.LEQ)


def EQ(lhs: Number | Variable | Expression, rhs: Number | Variable | Expression) -> ComparisonTerm:
    """'Equal to' comparison.

    Args:
        lhs (Number | Variable | Expression): the left hand side of the comparison term.
        rhs (Number | Variable | Expression): the right hand side of the comparison term.

    Returns:
        ComparisonTerm: a comparison term with the structure lhs == rhs.
    """
    return ComparisonTerm(lhs=lhs, rhs=rhs, operation=ComparisonOperation.EQ)


def NEQ(lhs: Number | Variable | Expression, rhs: Number | Variable | Expression) -> ComparisonTerm:
    """'Not Equal to' comparison: lhs != rhs."""
    return ComparisonTerm(lhs=lhs, rhs=rhs, operation=ComparisonOperation.NEQ)


def GT(lhs: Number | Variable | Expression, rhs: Number | Variable | Expression) -> ComparisonTerm:
    """'Greater Than' comparison: lhs > rhs."""
    return ComparisonTerm(lhs=lhs, rhs=rhs, operation=ComparisonOperation.GT)


def GEQ(lhs: Number | Variable | Expression, rhs: Number | Variable | Expression) -> ComparisonTerm:
    """'Greater Than or equal to' comparison.

    Args:
        lhs (Number | Variable | Expression): the left hand side of the comparison term.
        rhs (Number | Variable | Expression): the right hand side of the comparison term.

    Returns:
        ComparisonTerm: a comparison term with the structure lhs >= rhs.
    """
    return ComparisonTerm(lhs=lhs, rhs=rhs, operation=ComparisonOperation.GEQ)


LessThan = LT
LessThanOrEqual = LEQ
Equal = EQ
NotEqual = NEQ
GreaterThan = GT
GreaterThanOrEqual = GEQ


@yaml.register_class
class Domain(YamledEnum):
    BINARY = "Binary Domain"
    INTEGER = "Integer Domain"
    REAL = "Real Domain"

    yaml_tag = "!Domain"

    def check_value(self, value: Number) -> bool:
        """checks if the provided value is valid for a given domain

        Args:
            value (Number): the value to be evaluated.

        Returns:
            bool: True if the value provided is valid, False otherwise.
        """
        if self == Domain.BINARY:
            return value in {0, 1}
        if self == Domain.INTEGER:
            return float(value).is_integer()
        return isinstance(value, (int, float, Fraction, np.generic))


@yaml.register_class
class ComparisonOperation(YamledEnum):
    LT = "<"
    LEQ = "<="
    EQ = "=="
    NEQ = "!="
    GT = ">"
    GEQ = ">="

    yaml_tag = "!ComparisonOperation"


@yaml.register_class
class FunctionKind(YamledEnum):
    """The structural kind of an expression, used to check what the compiler supports."""

    CONSTANT = "constant"
    VARIABLE = "variable"
    AFFINE = "affine"
    QUADRATIC = "quadratic"
    POLYNOMIAL = "polynomial"

    yaml_tag = "!FunctionKind"


def _as_expression(value: Number | Variable | Expression) -> Expression:
    if isinstance(value, Expression):
        return value
    if isinstance(value, Variable):
        return Expression.from_variable(value)
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, (int, float, Fraction)):
        return Expression.from_constant(value)
    raise TypeError(f"can't build an expression from {value!r}")


@yaml.register_class
class Variable:
    """
    A source model decision variable.

    Example:
        .. code-block:: python

            from quboforge.core.variables import Domain, Variable

            x = Variable("x", Domain.INTEGER, bounds=(0, 3))
            y = Variable("y", Domain.BINARY)
            expression = 2 * x + x * y - 1
    """

    def __init__(self, label: str, domain: Domain, bounds: tuple[Number | None, Number | None] = (None, None)) -> None:
        """
        Args:
            label (str): The name of the variable. It identifies the variable during compilation.
            domain (Domain): The domain of the values this variable can take.
            bounds (tuple[Number | None, Number | None], optional): the (lower, upper) bounds, both included.
                Binary variables always have the bounds (0, 1). Defaults to (None, None).

        Raises:
            InvalidBoundsError: if the lower bound is larger than the upper bound, or a bound is outside the domain.
        """
        self._label = label
        self._domain = domain

        lower_bound, upper_bound = bounds
        if domain is Domain.BINARY:
            lower_bound, upper_bound = 0, 1
        for bound in (lower_bound, upper_bound):
            if bound is not None and not domain.check_value(bound):
                raise InvalidBoundsError(f"the bound ({bound}) does not respect the domain of the variable ({domain})")
        if lower_bound is not None and upper_bound is not None and lower_bound > upper_bound:
            raise InvalidBoundsError(
                f"the lower bound ({lower_bound}) should not be greater than the upper bound ({upper_bound})"
            )
        self._bounds = (lower_bound, upper_bound)

    @property
    def label(self) -> str:
        return self._label

    @property
    def domain(self) -> Domain:
        return self._domain

    @property
    def bounds(self) -> tuple[Number | None, Number | None]:
        """
        Returns:
            tuple[Number | None, Number | None]: The lower and upper bound of the variable (None if unbounded).
        """
        return self._bounds

    @property
    def lower_bound(self) -> Number | None:
        return self._bounds[0]

    @property
    def upper_bound(self) -> Number | None:
        return self._bounds[1]

    @property
    def is_bounded(self) -> bool:
        return self._bounds[0] is not None and self._bounds[1] is not None

    def __repr__(self) -> str:
        return f"{self._label}"

    def __str__(self) -> str:
        return f"{self._label}"

    def __hash__(self) -> int:
        return hash((self._label, self._domain.value, self._bounds))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Variable):
            return False
        return (self._label, self._domain, self._bounds) == (other._label, other._domain, other._bounds)

    def __add__(self, other: Number | Variable | Expression) -> Expression:
        return Expression.from_variable(self) + other

    __radd__ = __add__

    def __sub__(self, other: Number | Variable | Expression) -> Expression:
        return Expression.from_variable(self) - other

    def __rsub__(self, other: Number | Variable | Expression) -> Expression:
        return _as_expression(other) - Expression.from_variable(self)

    def __mul__(self, other: Number | Variable | Expression) -> Expression:
        return Expression.from_variable(self) * other

    __rmul__ = __mul__

    def __neg__(self) -> Expression:
        return -Expression.from_variable(self)

    def __truediv__(self, other: Number) -> Expression:
        return Expression.from_variable(self) / other

    def __pow__(self, n: int) -> Expression:
        return Expression.from_variable(self) ** n


@yaml.register_class
class Expression:
    """A polynomial over source variables.

    Unlike a pseudo-boolean function, monomials are multisets: ``x * x`` is kept as a square, since source variables
    may be integer or real valued.
    """

    def __init__(self, terms: Mapping[Monomial, Number] | None = None, variables: Mapping[str, Variable] | None = None) -> None:
        self._terms: dict[Monomial, Number] = {}
        self._variables: dict[str, Variable] = dict(variables) if variables is not None else {}
        if terms is not None:
            for monomial, coefficient in terms.items():
                self._accumulate(tuple(sorted(monomial)), coefficient)
        for monomial in self._terms:
            for label in monomial:
                if label not in self._variables:
                    raise ValueError(f'the variable "{label}" is used in an expression but it is not defined')

    @classmethod
    def from_variable(cls, variable: Variable) -> Expression:
        return cls({(variable.label,): 1}, {variable.label: variable})

    @classmethod
    def from_constant(cls, value: Number) -> Expression:
        return cls({(): value})

    def _accumulate(self, monomial: Monomial, coefficient: Number) -> None:
        value = self._terms.get(monomial, 0) + coefficient
        if value == 0:
            self._terms.pop(monomial, None)
        else:
            self._terms[monomial] = value

    @property
    def degree(self) -> int:
        return max((len(monomial) for monomial in self._terms), default=0)

    @property
    def constant(self) -> Number:
        return self._terms.get((), 0)

    @property
    def kind(self) -> FunctionKind:
        """
        Returns:
            FunctionKind: the structural kind of the expression (single variable, affine, quadratic or higher).
        """
        degree = self.degree
        if degree == 0:
            return FunctionKind.CONSTANT
        if degree == 1:
            if len(self._terms) == 1 and next(iter(self._terms.values())) == 1:
                return FunctionKind.VARIABLE
            return FunctionKind.AFFINE
        if degree == 2:  # noqa: PLR2004
            return FunctionKind.QUADRATIC
        return FunctionKind.POLYNOMIAL

    def items(self) -> list[tuple[Monomial, Number]]:
        return list(self._terms.items())

    def variables(self) -> list[Variable]:
        """
        Returns:
            list[Variable]: the variables used in the expression, sorted by label.
        """
        used = {label for monomial in self._terms for label in monomial}
        return [self._variables[label] for label in sorted(used)]

    def _merge_variables(self, other: Expression) -> dict[str, Variable]:
        merged = dict(self._variables)
        for label, variable in other._variables.items():
            if label in merged and merged[label] != variable:
                raise ValueError(f'two different variables share the label "{label}"')
            merged[label] = variable
        return merged

    def __add__(self, other: Number | Variable | Expression) -> Expression:
        other = _as_expression(other)
        out = Expression(variables=self._merge_variables(other))
        out._terms = dict(self._terms)
        for monomial, coefficient in other._terms.items():
            out._accumulate(monomial, coefficient)
        return out

    __radd__ = __add__

    def __neg__(self) -> Expression:
        return self * -1

    def __sub__(self, other: Number | Variable | Expression) -> Expression:
        return self + (-_as_expression(other))

    def __rsub__(self, other: Number | Variable | Expression) -> Expression:
        return _as_expression(other) - self

    def __mul__(self, other: Number | Variable | Expression) -> Expression:
        other = _as_expression(other)
        out = Expression(variables=self._merge_variables(other))
        for m_i, c_i in self._terms.items():
            for m_j, c_j in other._terms.items():
                out._accumulate(tuple(sorted(m_i + m_j)), c_i * c_j)
        return out

    __rmul__ = __mul__

    def __truediv__(self, other: Number) -> Expression:
        if other == 0:
            raise DivideByZeroError("division of an expression by zero")
        return self * _divide(1, other)

    def __pow__(self, n: int) -> Expression:
        if n < 0:
            raise ValueError("negative powers of expressions are not supported")
        out = Expression.from_constant(1)
        for _ in range(n):
            out *= self
        return out

    def substitute(self, expansions: Mapping[str, PBF]) -> PBF:
        """Replaces every source variable by its expansion, multiplying expansions for products.

        Args:
            expansions (Mapping[str, PBF]): the expansion of each variable label.

        Raises:
            KeyError: if a variable of the expression has no expansion.

        Returns:
            PBF: the composed pseudo-boolean function.
        """
        out = PBF()
        for monomial, coefficient in self._terms.items():
            product = PBF(coefficient)
            for label in monomial:
                if label not in expansions:
                    raise KeyError(f'the variable "{label}" has not been encoded')
                product *= expansions[label]
            out += product
        return out

    def to_pbf(self) -> PBF:
        """Reads the expression as a pseudo-boolean function over its variable labels (valid for binary variables)."""
        return PBF((monomial, coefficient) for monomial, coefficient in self._terms.items())

    def evaluate(self, sample: Mapping[str, Number]) -> Number:
        total: Number = 0
        for monomial, coefficient in self._terms.items():
            value = coefficient
            for label in monomial:
                value *= sample[label]
            total += value
        return total

    def __eq__(self, other: object) -> bool:
        if isinstance(other, (Variable, int, float)):
            other = _as_expression(other)
        if not isinstance(other, Expression):
            return False
        return self._terms == other._terms

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        if not self._terms:
            return "0"
        parts = []
        for monomial, coefficient in sorted(self._terms.items(), key=lambda item: (len(item[0]), item[0])):
            body = "*".join(monomial)
            if not body:
                parts.append(f"{coefficient}")
            elif coefficient == 1:
                parts.append(body)
            else:
                parts.append(f"({coefficient})*{body}")
        return " + ".join(parts)

    def __repr__(self) -> str:
        return str(self)


@yaml.register_class
class ComparisonTerm:
    """Represents a comparison between two expressions (e.g. ``x + y <= 2``)."""

    def __init__(
        self,
        lhs: Number | Variable | Expression,
        rhs: Number | Variable | Expression,
        operation: ComparisonOperation,
    ) -> None:
        self._lhs = _as_expression(lhs)
        self._rhs = _as_expression(rhs)
        self._operation = operation

    @property
    def lhs(self) -> Expression:
        return self._lhs

    @property
    def rhs(self) -> Expression:
        return self._rhs

    @property
    def operation(self) -> ComparisonOperation:
        return self._operation

    @property
    def degree(self) -> int:
        return max(self._lhs.degree, self._rhs.degree)

    @property
    def residual(self) -> Expression:
        """
        Returns:
            Expression: ``lhs - rhs``, the expression compared against zero.
        """
        return self._lhs - self._rhs

    @property
    def kind(self) -> FunctionKind:
        """The structural kind of the constrained function, ``lhs`` when ``rhs`` is constant."""
        if self._rhs.degree == 0:
            return self._lhs.kind
        return self.residual.kind

    def variables(self) -> list[Variable]:
        found = {v.label: v for v in self._lhs.variables()}
        found.update((v.label, v) for v in self._rhs.variables())
        return [found[label] for label in sorted(found)]

    def evaluate(self, sample: Mapping[str, Number]) -> bool:
        lhs = self._lhs.evaluate(sample)
        rhs = self._rhs.evaluate(sample)
        match self._operation:
            case ComparisonOperation.LT:
                return lhs < rhs
            case ComparisonOperation.LEQ:
                return lhs <= rhs
            case ComparisonOperation.EQ:
                return lhs == rhs
            case ComparisonOperation.NEQ:
                return lhs != rhs
            case ComparisonOperation.GT:
                return lhs > rhs
            case ComparisonOperation.GEQ:
                return lhs >= rhs
        return False

    def __repr__(self) -> str:
        return f"{self._lhs} {self._operation.value} {self._rhs}"

    __str__ = __repr__
