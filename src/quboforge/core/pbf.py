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
from typing import TYPE_CHECKING, Hashable, Iterable, Iterator, Mapping

import numpy as np

from quboforge.yaml import yaml

from .exceptions import DivideByZeroError, InvalidPowerError, NonConvertibleError
from .types import Number, TermLike, VariableId

if TYPE_CHECKING:
    from ruamel.yaml.nodes import SequenceNode
    from ruamel.yaml.representer import RoundTripRepresenter


CONSTANT_TERM: frozenset = frozenset()


def _is_scalar(value: object) -> bool:
    return isinstance(value, (int, float, Fraction, np.generic)) and not isinstance(value, np.bool_)


def _scalar(value: object) -> Number:
    if isinstance(value, np.generic):
        return value.item()
    return value  # type: ignore[return-value]


def _to_term(key: TermLike) -> frozenset:
    """Normalizes a term key into a frozenset of variables.

    ``None`` stands for the constant term. Any other value must be a collection of variables: a single
    variable has to be wrapped (e.g. ``[x]``) to avoid ambiguity with iterable identifiers such as strings.

    Raises:
        TypeError: if the key is not ``None`` nor a collection of variables.

    Returns:
        frozenset: the normalized term.
    """
    if key is None:
        return CONSTANT_TERM
    if isinstance(key, frozenset):
        return key
    if isinstance(key, (set, list, tuple)):
        return frozenset(key)
    raise TypeError(f"terms must be collections of variables or None, but received {key!r}")


def _divide(a: Number, b: Number) -> Number:
    if isinstance(a, (int, Fraction)) and isinstance(b, (int, Fraction)):
        quotient = Fraction(a) / Fraction(b)
        return quotient.numerator if quotient.denominator == 1 else quotient
    return a / b


def _variable_key(variable: Hashable) -> tuple[str, Hashable]:
    return type(variable).__name__, variable


def term_key(term: frozenset) -> tuple[int, tuple]:
    """Canonical ordering key of a term: lower degree first, then the sorted variables."""
    return len(term), tuple(_variable_key(v) for v in sorted(term, key=_variable_key))


def _accumulate(terms: dict[frozenset, Number], term: frozenset, coefficient: Number) -> None:
    value = terms.get(term, 0) + coefficient
    if value == 0:
        terms.pop(term, None)
    else:
        terms[term] = value


@yaml.register_class
class PseudoBooleanFunction:
    """
    Sparse multilinear polynomial over boolean variables.

    A pseudo-boolean function takes the form :math:`f(x) = \\sum_{\\omega} c_\\omega \\prod_{j \\in \\omega} x_j`,
    where every term :math:`\\omega` is a set of distinct variables. Since the variables are boolean, :math:`x^2 = x`
    and terms collapse into sets. Only nonzero coefficients are stored, so two functions are equal if and only if
    their term maps are equal.

    Instances are immutable: every operation returns a new function.

    Example:
        .. code-block:: python

            from quboforge.core.pbf import PBF

            f = PBF({("x", "y"): 2, ("z",): -1, None: 3})
            g = f * PBF.variable("x") + 1
    """

    def __init__(
        self,
        data: Number | PseudoBooleanFunction | Mapping[TermLike, Number] | Iterable[tuple[TermLike, Number]] | None = None,
    ) -> None:
        """
        Args:
            data: either a constant, another function, a mapping from terms to coefficients or an iterable of
                (term, coefficient) pairs. Repeated terms are summed and zero results are dropped.
                Defaults to None (the zero function).

        Raises:
            TypeError: if a coefficient is not a number.
        """
        self._terms: dict[frozenset, Number] = {}
        self._hash_cache: int | None = None

        if data is None:
            return
        if isinstance(data, PseudoBooleanFunction):
            self._terms = dict(data._terms)
            return
        if _is_scalar(data):
            value = _scalar(data)
            if value != 0:
                self._terms[CONSTANT_TERM] = value
            return

        pairs = data.items() if isinstance(data, Mapping) else data
        for key, coefficient in pairs:
            if not _is_scalar(coefficient):
                raise TypeError(f"coefficients must be numbers, but received {coefficient!r}")
            _accumulate(self._terms, _to_term(key), _scalar(coefficient))

    @classmethod
    def _from_terms(cls, terms: dict[frozenset, Number]) -> PseudoBooleanFunction:
        out = cls.__new__(cls)
        out._terms = terms
        out._hash_cache = None
        return out

    @classmethod
    def constant(cls, value: Number) -> PseudoBooleanFunction:
        return cls(value)

    @classmethod
    def variable(cls, variable: VariableId, coefficient: Number = 1) -> PseudoBooleanFunction:
        """Builds the single-variable function ``coefficient * variable``."""
        return cls.from_term([variable], coefficient)

    @classmethod
    def from_term(cls, term: TermLike, coefficient: Number = 1) -> PseudoBooleanFunction:
        return cls([(term, coefficient)])

    # -*- Properties -*-

    @property
    def degree(self) -> int:
        """
        Returns:
            int: the size of the largest term (0 for constant or empty functions).
        """
        return max((len(term) for term in self._terms), default=0)

    @property
    def size(self) -> int:
        """
        Returns:
            int: the number of non-constant terms.
        """
        return len(self._terms) - (CONSTANT_TERM in self._terms)

    @property
    def constant_term(self) -> Number:
        return self._terms.get(CONSTANT_TERM, 0)

    def variables(self) -> list[VariableId]:
        """
        Returns:
            list[VariableId]: the variables appearing in the function, in canonical order.
        """
        found: set[VariableId] = set()
        for term in self._terms:
            found.update(term)
        return sorted(found, key=_variable_key)

    def items(self) -> Iterator[tuple[frozenset, Number]]:
        return iter(self._terms.items())

    def terms(self) -> list[frozenset]:
        return list(self._terms)

    def sorted_items(self) -> list[tuple[frozenset, Number]]:
        """
        Returns:
            list[tuple[frozenset, Number]]: the (term, coefficient) pairs in canonical term order.
        """
        return sorted(self._terms.items(), key=lambda item: term_key(item[0]))

    def coefficient(self, term: TermLike) -> Number:
        return self._terms.get(_to_term(term), 0)

    def with_coefficient(self, term: TermLike, coefficient: Number) -> PseudoBooleanFunction:
        """Returns a copy where ``term`` has the given coefficient. A zero coefficient removes the term.

        Args:
            term (TermLike): the term to update.
            coefficient (Number): the new coefficient.

        Returns:
            PseudoBooleanFunction: the updated function.
        """
        terms = dict(self._terms)
        key = _to_term(term)
        if coefficient == 0:
            terms.pop(key, None)
        else:
            terms[key] = _scalar(coefficient)
        return PseudoBooleanFunction._from_terms(terms)

    def bounds(self) -> tuple[Number, Number]:
        """Conservative bounds of the function over all boolean assignments.

        The lower bound adds every negative coefficient to the constant and the upper bound every positive one.

        Returns:
            tuple[Number, Number]: the (lower, upper) bound.
        """
        lower = upper = self.constant_term
        for term, coefficient in self._terms.items():
            if not term:
                continue
            if coefficient < 0:
                lower += coefficient
            else:
                upper += coefficient
        return lower, upper

    # -*- Arithmetic -*-

    def __add__(self, other: PseudoBooleanFunction | Number) -> PseudoBooleanFunction:
        if _is_scalar(other):
            terms = dict(self._terms)
            _accumulate(terms, CONSTANT_TERM, _scalar(other))
            return PseudoBooleanFunction._from_terms(terms)
        if not isinstance(other, PseudoBooleanFunction):
            return NotImplemented
        terms = dict(self._terms)
        for term, coefficient in other._terms.items():
            _accumulate(terms, term, coefficient)
        return PseudoBooleanFunction._from_terms(terms)

    __radd__ = __add__

    def __neg__(self) -> PseudoBooleanFunction:
        return PseudoBooleanFunction._from_terms({term: -c for term, c in self._terms.items()})

    def __sub__(self, other: PseudoBooleanFunction | Number) -> PseudoBooleanFunction:
        if _is_scalar(other):
            return self + (-_scalar(other))
        if not isinstance(other, PseudoBooleanFunction):
            return NotImplemented
        terms = dict(self._terms)
        for term, coefficient in other._terms.items():
            _accumulate(terms, term, -coefficient)
        return PseudoBooleanFunction._from_terms(terms)

    def __rsub__(self, other: Number) -> PseudoBooleanFunction:
        if not _is_scalar(other):
            return NotImplemented
        return (-self) + other

    def __mul__(self, other: PseudoBooleanFunction | Number) -> PseudoBooleanFunction:
        if _is_scalar(other):
            value = _scalar(other)
            if value == 0:
                return PseudoBooleanFunction()
            return PseudoBooleanFunction._from_terms({term: c * value for term, c in self._terms.items()})
        if not isinstance(other, PseudoBooleanFunction):
            return NotImplemented
        terms: dict[frozenset, Number] = {}
        for term_i, c_i in self._terms.items():
            for term_j, c_j in other._terms.items():
                _accumulate(terms, term_i | term_j, c_i * c_j)
        return PseudoBooleanFunction._from_terms(terms)

    __rmul__ = __mul__

    def __truediv__(self, other: Number) -> PseudoBooleanFunction:
        if not _is_scalar(other):
            return NotImplemented
        value = _scalar(other)
        if value == 0:
            raise DivideByZeroError("division of a pseudo-boolean function by zero")
        return PseudoBooleanFunction._from_terms({term: _divide(c, value) for term, c in self._terms.items()})

    def __pow__(self, n: int) -> PseudoBooleanFunction:
        if not isinstance(n, int):
            return NotImplemented
        if n < 0:
            raise InvalidPowerError(f"can't raise a pseudo-boolean function to a negative power ({n})")
        if n == 0:
            return PseudoBooleanFunction(1)
        out = PseudoBooleanFunction(self)
        for _ in range(n - 1):
            out *= self
        return out

    # -*- Evaluation -*-

    def __call__(self, assignment: Mapping[VariableId, int | bool]) -> PseudoBooleanFunction:
        """Partially evaluates the function.

        Every assigned variable valued 0 removes the terms it belongs to, and every variable valued 1 is removed
        from its terms. Unassigned variables remain.

        Args:
            assignment (Mapping[VariableId, int | bool]): a mapping from variables to boolean values.

        Raises:
            ValueError: if an assigned value is not boolean.

        Returns:
            PseudoBooleanFunction: a new function over the remaining variables.
        """
        for variable, value in assignment.items():
            if value not in {0, 1}:
                raise ValueError(f"variable {variable!r} was assigned the non-boolean value {value!r}")

        terms: dict[frozenset, Number] = {}
        for term, coefficient in self._terms.items():
            remaining = []
            for variable in term:
                if variable not in assignment:
                    remaining.append(variable)
                elif not assignment[variable]:
                    break
            else:
                _accumulate(terms, frozenset(remaining), coefficient)
        return PseudoBooleanFunction._from_terms(terms)

    def evaluate(self, assignment: Mapping[VariableId, int | bool]) -> Number:
        """Evaluates the function to a scalar. Every variable of the function must be assigned.

        Returns:
            Number: the value of the function.
        """
        return self(assignment).to_scalar()

    def substitute(self, mapping: Mapping[VariableId, PseudoBooleanFunction | Number]) -> PseudoBooleanFunction:
        """Polynomial composition: replaces the variables in ``mapping`` by the given functions.

        Returns:
            PseudoBooleanFunction: the composed function.
        """
        out = PseudoBooleanFunction()
        for term, coefficient in self._terms.items():
            product = PseudoBooleanFunction(coefficient)
            kept = []
            for variable in term:
                if variable in mapping:
                    product *= mapping[variable]
                else:
                    kept.append(variable)
            if kept:
                product *= PseudoBooleanFunction.from_term(kept)
            out += product
        return out

    def to_scalar(self) -> Number:
        """
        Raises:
            NonConvertibleError: if the function is not constant.

        Returns:
            Number: the constant value of the function (0 if it is empty).
        """
        if not self._terms:
            return 0
        if self.degree == 0:
            return self._terms[CONSTANT_TERM]
        raise NonConvertibleError(f"can't convert the non-constant pseudo-boolean function {self} to a scalar")

    def __float__(self) -> float:
        return float(self.to_scalar())

    def __int__(self) -> int:
        return int(self.to_scalar())

    def __round__(self, ndigits: int = 0) -> PseudoBooleanFunction:
        return PseudoBooleanFunction((term, round(c, ndigits)) for term, c in self._terms.items())

    # -*- Container protocol -*-

    def __getitem__(self, term: TermLike) -> Number:
        return self.coefficient(term)

    def __contains__(self, term: object) -> bool:
        return _to_term(term) in self._terms  # type: ignore[arg-type]

    def __iter__(self) -> Iterator[tuple[frozenset, Number]]:
        return self.items()

    def __len__(self) -> int:
        return len(self._terms)

    def __bool__(self) -> bool:
        return bool(self._terms)

    # -*- Comparison -*-

    def __eq__(self, other: object) -> bool:
        if _is_scalar(other):
            return self._terms == PseudoBooleanFunction(other)._terms  # type: ignore[arg-type]
        if not isinstance(other, PseudoBooleanFunction):
            return NotImplemented
        return self._terms == other._terms

    def __hash__(self) -> int:
        if self._hash_cache is None:
            # constant functions compare equal to their scalar, so they must hash like it
            if self.degree == 0:
                self._hash_cache = hash(self.constant_term)
            else:
                self._hash_cache = hash(frozenset(self._terms.items()))
        return self._hash_cache

    def __copy__(self) -> PseudoBooleanFunction:
        return PseudoBooleanFunction(self)

    # -*- Representation -*-

    def __str__(self) -> str:
        if not self._terms:
            return "0"
        output = ""
        for term, coefficient in self.sorted_items():
            body = "*".join(str(v) for v in sorted(term, key=_variable_key))
            if not body:
                monomial = f"{abs(coefficient)}"
            elif abs(coefficient) == 1:
                monomial = body
            else:
                monomial = f"{abs(coefficient)}*{body}"
            if not output:
                output = f"-{monomial}" if coefficient < 0 else monomial
            else:
                output += f" - {monomial}" if coefficient < 0 else f" + {monomial}"
        return output

    def __repr__(self) -> str:
        return f"PBF({self})"

    @classmethod
    def to_yaml(cls, representer: RoundTripRepresenter, node: PseudoBooleanFunction) -> SequenceNode:
        """
        Method to be called automatically during YAML serialization.

        Returns:
            SequenceNode: The YAML sequence of ``[term, coefficient]`` pairs.
        """
        data = [[sorted(term, key=_variable_key), c] for term, c in node.sorted_items()]
        return representer.represent_sequence("!PseudoBooleanFunction", data)

    @classmethod
    def from_yaml(cls, constructor, node: SequenceNode) -> PseudoBooleanFunction:  # noqa: ANN001
        """
        Method to be called automatically during YAML deserialization.

        Returns:
            PseudoBooleanFunction: The function rebuilt from its ``[term, coefficient]`` pairs.
        """
        data = constructor.construct_sequence(node, deep=True)
        return cls((term, coefficient) for term, coefficient in data)


PBF = PseudoBooleanFunction


# -*- Named pure operations -*-


def add(f: PBF, g: PBF | Number) -> PBF:
    return f + g


def negate(f: PBF) -> PBF:
    return -f


def subtract(f: PBF, g: PBF | Number) -> PBF:
    return f - g


def multiply(f: PBF, g: PBF) -> PBF:
    """Multiplies two functions, accumulating ``c_i * c_j`` into the union of every pair of terms."""
    return f * g


def scalar_multiply(f: PBF, c: Number) -> PBF:
    return f * c


def scalar_divide(f: PBF, c: Number) -> PBF:
    return f / c


def power(f: PBF, n: int) -> PBF:
    return f**n


def evaluate_partial(f: PBF, assignment: Mapping[VariableId, int | bool]) -> PBF:
    return f(assignment)


def evaluate(f: PBF, assignment: Mapping[VariableId, int | bool]) -> Number:
    return f.evaluate(assignment)


def substitute(f: PBF, mapping: Mapping[VariableId, PBF | Number]) -> PBF:
    return f.substitute(mapping)


def degree(f: PBF) -> int:
    return f.degree


def size(f: PBF) -> int:
    return f.size


def round_coefficients(f: PBF, digits: int = 0) -> PBF:
    """Rounds every coefficient to ``digits`` decimal places, dropping those that round to zero."""
    return round(f, digits)


def to_scalar(f: PBF) -> Number:
    return f.to_scalar()


def with_coefficient(f: PBF, term: TermLike, coefficient: Number) -> PBF:
    return f.with_coefficient(term, coefficient)


def bounds(f: PBF) -> tuple[Number, Number]:
    return f.bounds()


def variables(f: PBF) -> list[VariableId]:
    return f.variables()


def constant(f: PBF) -> Number:
    return f.constant_term


def sorted_terms(f: PBF) -> list[frozenset]:
    """The terms of ``f`` in canonical order: by degree, then by their sorted variables."""
    return [term for term, _ in f.sorted_items()]
