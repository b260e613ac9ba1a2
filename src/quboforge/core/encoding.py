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

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, NamedTuple, Sequence

from quboforge.yaml import yaml

from .exceptions import InvalidBoundsError, InvalidToleranceError
from .pbf import PBF, _divide
from .types import Allocator, Bounds, Number, VariableId


class EncodingResult(NamedTuple):
    """The outcome of encoding a variable: the new target bits, the expansion ξ and the validity constraint χ."""

    target: list[VariableId]
    expansion: PBF
    constraint: PBF | None


def check_tolerance(tol: Number) -> Number:
    """
    Raises:
        InvalidToleranceError: if the tolerance is not strictly positive.

    Returns:
        Number: the validated tolerance.
    """
    if not tol > 0:
        raise InvalidToleranceError(f"the encoding tolerance must be positive but received {tol}")
    return tol


def check_bounds(bounds: Bounds) -> Bounds:
    """
    Raises:
        InvalidBoundsError: if the lower bound is larger than the upper bound.

    Returns:
        Bounds: the validated (lower, upper) bounds.
    """
    lower_bound, upper_bound = bounds
    if lower_bound > upper_bound:
        raise InvalidBoundsError(
            f"the lower bound ({lower_bound}) should not be greater than the upper bound ({upper_bound})"
        )
    return lower_bound, upper_bound


def _integral_bounds(bounds: Bounds) -> tuple[int, int]:
    lower_bound, upper_bound = check_bounds(bounds)
    if not (float(lower_bound).is_integer() and float(upper_bound).is_integer()):
        raise InvalidBoundsError(
            f"encoding the bounds ({lower_bound}, {upper_bound}) without a tolerance requires integral bounds"
        )
    return int(lower_bound), int(upper_bound)


def _span(bounds: Bounds) -> Number:
    return bounds[1] - bounds[0]


def _linear(target: Sequence[VariableId], coefficients: Sequence[Number], offset: Number = 0) -> PBF:
    return PBF([(None, offset)] + [([y], c) for y, c in zip(target, coefficients)])


@yaml.register_class
class Encoding(ABC):
    """Represents an abstract variable encoding.

    An encoding replaces a variable by an expansion ξ over freshly allocated binary target variables, plus an
    optional constraint χ that is zero exactly when the target bits form a valid pattern.

    The encoding can be sized in three ways:

    - an explicit number of bits ``n`` (with or without bounds),
    - bounds and a tolerance ``tol``: the smallest ``n`` such that ``resolution(n) <= tol``,
    - integral bounds alone: an exact encoding of every integer in the interval.
    """

    name: ClassVar[str]
    accepts_values: ClassVar[bool] = False

    @abstractmethod
    def resolution(self, n: int, bounds: Bounds) -> Number:
        """The distance between two consecutive representable values when using ``n`` bits over ``bounds``."""

    @abstractmethod
    def integer_bits(self, bounds: Bounds) -> int:
        """The number of bits needed to represent every integer within ``bounds`` exactly."""

    @abstractmethod
    def _initial_bits(self, span: Number, tol: Number) -> int: ...

    @abstractmethod
    def _expand(self, target: list[VariableId], bounds: Bounds | None, values: Sequence[Number] | None) -> PBF: ...

    def _integer_expand(self, target: list[VariableId], bounds: tuple[int, int]) -> PBF:
        return self._expand(target, bounds, None)

    def _constraint(self, target: list[VariableId]) -> PBF | None:  # noqa: PLR6301
        return None

    def _explicit_bits(self, n: int) -> int:  # noqa: PLR6301
        return n

    def num_bits(self, bounds: Bounds, tol: Number) -> int:
        """Minimal number of bits such that the encoding resolution over ``bounds`` is at most ``tol``.

        Args:
            bounds (Bounds): the (lower, upper) bounds of the encoded variable.
            tol (Number): the maximum allowed distance between two consecutive representable values.

        Raises:
            InvalidToleranceError: if ``tol`` is not positive.
            InvalidBoundsError: if the bounds are inconsistent.

        Returns:
            int: the number of bits ``n`` such that ``resolution(n) <= tol < resolution(n - 1)``.
        """
        check_tolerance(tol)
        bounds = check_bounds(bounds)
        span = _span(bounds)
        if span == 0:
            return 0
        n = max(self._initial_bits(span, tol), 1)
        while self.resolution(n, bounds) > tol:
            n += 1
        while n > 1 and self.resolution(n - 1, bounds) <= tol:
            n -= 1
        return n

    def encode(
        self,
        allocator: Allocator,
        bounds: Bounds | None = None,
        tol: Number | None = None,
        n: int | None = None,
        values: Sequence[Number] | None = None,
    ) -> EncodingResult:
        """Encodes a variable over freshly allocated binary variables.

        Args:
            allocator (Allocator): a callable returning ``k`` new target variable identifiers.
            bounds (Bounds | None, optional): the (lower, upper) bounds of the variable. Defaults to None.
            tol (Number | None, optional): the tolerance used to size the encoding. Defaults to None.
            n (int | None, optional): an explicit size, overriding the tolerance based one. Defaults to None.
            values (Sequence[Number] | None, optional): explicit values for categorical encodings. Defaults to None.

        Raises:
            InvalidToleranceError: if ``tol`` is not positive.
            InvalidBoundsError: if the bounds are inconsistent, or not integral when no size information is given.
            ValueError: if the encoding can not be sized with the given arguments.

        Returns:
            EncodingResult: the target variables, the expansion and the (optional) validity constraint.
        """
        if tol is not None:
            check_tolerance(tol)
        if bounds is not None:
            bounds = check_bounds(bounds)

        if values is not None:
            if not self.accepts_values:
                raise ValueError(f"the {self.name} encoding does not support explicit values")
            target = self._allocate(allocator, self._explicit_bits(len(values)))
            expansion = self._expand(target, None, list(values))
        elif n is not None:
            if n < 0:
                raise ValueError(f"the number of bits must be non-negative but received {n}")
            target = self._allocate(allocator, self._explicit_bits(n))
            expansion = self._expand(target, bounds, None)
        elif bounds is None:
            raise ValueError(f"the {self.name} encoding requires either a number of bits or the variable bounds")
        elif tol is not None:
            target = self._allocate(allocator, self.num_bits(bounds, tol))
            expansion = self._expand(target, bounds, None)
        else:
            integer_bounds = _integral_bounds(bounds)
            target = self._allocate(allocator, self.integer_bits(integer_bounds))
            expansion = self._integer_expand(target, integer_bounds)

        return EncodingResult(target, expansion, self._constraint(target))

    @staticmethod
    def _allocate(allocator: Allocator, n: int) -> list[VariableId]:
        if n == 0:
            return []
        target = list(allocator(n))
        if len(target) != n:
            raise ValueError(f"the allocator returned {len(target)} variables but {n} were requested")
        return target

    def __str__(self) -> str:
        return self.name


@yaml.register_class
@dataclass(frozen=True)
class Mirror(Encoding):
    """A binary variable mirrored by a single target bit: ξ = y."""

    name: ClassVar[str] = "Mirror"

    def resolution(self, n: int, bounds: Bounds) -> Number:  # noqa: PLR6301
        return 1 if n >= 1 else math.inf

    def integer_bits(self, bounds: Bounds) -> int:  # noqa: PLR6301
        return 1

    def num_bits(self, bounds: Bounds, tol: Number) -> int:  # noqa: PLR6301
        check_tolerance(tol)
        return 1

    def _initial_bits(self, span: Number, tol: Number) -> int:  # noqa: PLR6301
        return 1

    def encode(
        self,
        allocator: Allocator,
        bounds: Bounds | None = None,
        tol: Number | None = None,
        n: int | None = None,
        values: Sequence[Number] | None = None,
    ) -> EncodingResult:
        """Mirrors a binary variable over one target bit.

        Raises:
            InvalidBoundsError: if the bounds are given and differ from (0, 1).
            ValueError: if a size other than 1 is requested.
        """
        if bounds is not None and tuple(bounds) != (0, 1):
            raise InvalidBoundsError(f"the {self.name} encoding only represents binary variables, but received bounds {bounds}")
        if n is not None and n != 1:
            raise ValueError(f"the {self.name} encoding uses exactly one bit but {n} were requested")
        return super().encode(allocator, bounds=(0, 1), tol=tol, n=n, values=values)

    def _expand(self, target: list[VariableId], bounds: Bounds | None, values: Sequence[Number] | None) -> PBF:
        if len(target) != 1:
            raise ValueError(f"the {self.name} encoding uses exactly one bit but received {len(target)}")
        return PBF.variable(target[0])


@yaml.register_class
@dataclass(frozen=True)
class Unary(Encoding):
    """Unary encoding: ξ = lo + (hi - lo) / n * Σ yᵢ, or Σ yᵢ (values 0..n) without bounds."""

    name: ClassVar[str] = "Unary"

    def resolution(self, n: int, bounds: Bounds) -> Number:  # noqa: PLR6301
        span = _span(bounds)
        if n == 0:
            return 0 if span == 0 else math.inf
        return _divide(span, n)

    def integer_bits(self, bounds: Bounds) -> int:  # noqa: PLR6301
        return int(_span(bounds))

    def _initial_bits(self, span: Number, tol: Number) -> int:  # noqa: PLR6301
        return math.ceil(span / tol)

    def _expand(self, target: list[VariableId], bounds: Bounds | None, values: Sequence[Number] | None) -> PBF:
        if bounds is None:
            return _linear(target, [1] * len(target))
        if not target:
            return PBF(bounds[0])
        step = _divide(_span(bounds), len(target))
        return _linear(target, [step] * len(target), bounds[0])


@yaml.register_class
@dataclass(frozen=True)
class Binary(Encoding):
    """Binary encoding: ξ = lo + (hi - lo) / (2ⁿ - 1) * Σ 2ⁱ yᵢ.

    Integer variables are encoded exactly, clipping the last coefficient so that the maximum equals the upper bound.
    """

    name: ClassVar[str] = "Binary"

    def resolution(self, n: int, bounds: Bounds) -> Number:  # noqa: PLR6301
        span = _span(bounds)
        if n == 0:
            return 0 if span == 0 else math.inf
        return _divide(span, 2**n - 1)

    def integer_bits(self, bounds: Bounds) -> int:  # noqa: PLR6301
        return int(_span(bounds)).bit_length()

    def _initial_bits(self, span: Number, tol: Number) -> int:  # noqa: PLR6301
        return math.ceil(math.log2(span / tol + 1))

    def _expand(self, target: list[VariableId], bounds: Bounds | None, values: Sequence[Number] | None) -> PBF:
        n = len(target)
        if bounds is None:
            return _linear(target, [2**i for i in range(n)])
        if n == 0:
            return PBF(bounds[0])
        step = _divide(_span(bounds), 2**n - 1)
        return _linear(target, [step * 2**i for i in range(n)], bounds[0])

    def _integer_expand(self, target: list[VariableId], bounds: tuple[int, int]) -> PBF:  # noqa: PLR6301
        n = len(target)
        if n == 0:
            return PBF(bounds[0])
        coefficients = [2**i for i in range(n - 1)]
        coefficients.append(_span(bounds) - 2 ** (n - 1) + 1)
        return _linear(target, coefficients, bounds[0])


@yaml.register_class
@dataclass(frozen=True)
class Arithmetic(Encoding):
    """Arithmetic progression encoding: ξ = lo + (hi - lo) / (n(n+1)/2) * Σ (i+1) yᵢ."""

    name: ClassVar[str] = "Arithmetic"

    def resolution(self, n: int, bounds: Bounds) -> Number:  # noqa: PLR6301
        span = _span(bounds)
        if n == 0:
            return 0 if span == 0 else math.inf
        return _divide(span, n * (n + 1) // 2)

    def integer_bits(self, bounds: Bounds) -> int:  # noqa: PLR6301
        span = int(_span(bounds))
        n = math.isqrt(2 * span)
        while n * (n + 1) // 2 < span:
            n += 1
        while n > 0 and (n - 1) * n // 2 >= span:
            n -= 1
        return n

    def _initial_bits(self, span: Number, tol: Number) -> int:  # noqa: PLR6301
        return math.ceil((math.sqrt(1 + 8 * span / tol) - 1) / 2)

    def _expand(self, target: list[VariableId], bounds: Bounds | None, values: Sequence[Number] | None) -> PBF:
        n = len(target)
        if bounds is None:
            return _linear(target, [i + 1 for i in range(n)])
        if n == 0:
            return PBF(bounds[0])
        step = _divide(_span(bounds), n * (n + 1) // 2)
        return _linear(target, [step * (i + 1) for i in range(n)], bounds[0])

    def _integer_expand(self, target: list[VariableId], bounds: tuple[int, int]) -> PBF:  # noqa: PLR6301
        n = len(target)
        if n == 0:
            return PBF(bounds[0])
        coefficients = [i + 1 for i in range(n - 1)]
        coefficients.append(_span(bounds) - (n - 1) * n // 2)
        return _linear(target, coefficients, bounds[0])


@yaml.register_class
@dataclass(frozen=True)
class OneHot(Encoding):
    """One-hot encoding: one bit per category, ξ = Σ γᵢ yᵢ and χ = (Σ yᵢ - 1)²."""

    name: ClassVar[str] = "One-Hot"
    accepts_values: ClassVar[bool] = True

    def resolution(self, n: int, bounds: Bounds) -> Number:  # noqa: PLR6301
        span = _span(bounds)
        if n <= 1:
            return 0 if span == 0 else math.inf
        return _divide(span, n - 1)

    def integer_bits(self, bounds: Bounds) -> int:  # noqa: PLR6301
        span = int(_span(bounds))
        return span + 1 if span > 0 else 0

    def _initial_bits(self, span: Number, tol: Number) -> int:  # noqa: PLR6301
        return math.ceil(span / tol) + 1

    def _expand(self, target: list[VariableId], bounds: Bounds | None, values: Sequence[Number] | None) -> PBF:
        n = len(target)
        if values is not None:
            return _linear(target, values)
        if bounds is None:
            return _linear(target, list(range(n)))
        if n == 0:
            return PBF(bounds[0])
        if n == 1:
            return _linear(target, [bounds[0]])
        return _linear(target, [bounds[0] + _divide(i * _span(bounds), n - 1) for i in range(n)])

    def _constraint(self, target: list[VariableId]) -> PBF | None:  # noqa: PLR6301
        if not target:
            return None
        return (_linear(target, [1] * len(target)) - 1) ** 2


@yaml.register_class
@dataclass(frozen=True)
class DomainWall(Encoding):
    """Domain-wall encoding: ``n`` levels over ``n - 1`` bits that must form a prefix of ones.

    With levels γ₀ < ... < γₙ₋₁ the expansion is ξ = γ₀ + Σ (γᵢ - γᵢ₋₁) yᵢ₋₁ and the constraint
    χ = Σ yᵢ₊₁ (1 - yᵢ) penalizes every bit set after an unset one.
    """

    name: ClassVar[str] = "Domain Wall"
    accepts_values: ClassVar[bool] = True

    def resolution(self, n: int, bounds: Bounds) -> Number:  # noqa: PLR6301
        span = _span(bounds)
        if n == 0:
            return 0 if span == 0 else math.inf
        return _divide(span, n)

    def integer_bits(self, bounds: Bounds) -> int:  # noqa: PLR6301
        return int(_span(bounds))

    def _initial_bits(self, span: Number, tol: Number) -> int:  # noqa: PLR6301
        return math.ceil(span / tol)

    def _explicit_bits(self, n: int) -> int:  # noqa: PLR6301
        return max(n - 1, 0)

    def _expand(self, target: list[VariableId], bounds: Bounds | None, values: Sequence[Number] | None) -> PBF:
        n = len(target)
        if values is not None:
            levels = list(values)
        elif bounds is None:
            levels = list(range(n + 1))
        elif n == 0:
            levels = [bounds[0]]
        else:
            levels = [bounds[0] + _divide(i * _span(bounds), n) for i in range(n + 1)]
        return _linear(target, [levels[i + 1] - levels[i] for i in range(n)], levels[0])

    def _constraint(self, target: list[VariableId]) -> PBF | None:  # noqa: PLR6301
        if len(target) < 2:  # noqa: PLR2004
            return None
        chi = PBF()
        for y_i, y_j in zip(target, target[1:]):
            chi += PBF.variable(y_j) * (1 - PBF.variable(y_i))
        return chi


@yaml.register_class
@dataclass(frozen=True)
class Bounded(Encoding):
    """Wraps a Unary, Binary or Arithmetic encoding, rescaling its expansion into the closed interval [lo, hi].

    Example:
        .. code-block:: python

            from quboforge.core.encoding import Binary, Bounded

            encoding = Bounded(Binary(), -1.0, 1.0)
            result = encoding.encode(allocator, tol=0.1)
    """

    inner: Encoding
    lo: Number
    hi: Number

    name: ClassVar[str] = "Bounded"

    def __post_init__(self) -> None:
        if not isinstance(self.inner, (Unary, Binary, Arithmetic)):
            raise ValueError(f"the Bounded encoding only wraps Unary, Binary or Arithmetic but received {self.inner}")
        check_bounds((self.lo, self.hi))

    @property
    def bounds(self) -> Bounds:
        return self.lo, self.hi

    def resolution(self, n: int, bounds: Bounds | None = None) -> Number:
        return self.inner.resolution(n, self.bounds)

    def integer_bits(self, bounds: Bounds | None = None) -> int:
        return self.inner.integer_bits(self.bounds)

    def num_bits(self, bounds: Bounds | None, tol: Number) -> int:
        return self.inner.num_bits(self.bounds, tol)

    def _initial_bits(self, span: Number, tol: Number) -> int:
        return self.inner._initial_bits(span, tol)  # noqa: SLF001

    def _expand(self, target: list[VariableId], bounds: Bounds | None, values: Sequence[Number] | None) -> PBF:
        return self.inner._expand(target, self.bounds, values)  # noqa: SLF001

    def encode(
        self,
        allocator: Allocator,
        bounds: Bounds | None = None,
        tol: Number | None = None,
        n: int | None = None,
        values: Sequence[Number] | None = None,
    ) -> EncodingResult:
        return self.inner.encode(allocator, bounds=self.bounds, tol=tol, n=n, values=values)

    def __str__(self) -> str:
        return f"{self.name}({self.inner}, {self.lo}, {self.hi})"


ENCODINGS: dict[str, type[Encoding]] = {
    "mirror": Mirror,
    "unary": Unary,
    "binary": Binary,
    "arithmetic": Arithmetic,
    "one_hot": OneHot,
    "domain_wall": DomainWall,
}


def encoding_from_name(name: str) -> Encoding:
    """
    Raises:
        ValueError: if there is no encoding registered under ``name``.

    Returns:
        Encoding: a new instance of the encoding registered under ``name``.
    """
    key = name.lower().replace("-", "_").replace(" ", "_")
    if key not in ENCODINGS:
        raise ValueError(f'unknown encoding "{name}", available encodings are {sorted(ENCODINGS)}')
    return ENCODINGS[key]()
