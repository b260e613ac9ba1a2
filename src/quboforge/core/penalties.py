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
"""
Penalty calibration.

A constraint with residual :math:`g` enters the energy as :math:`\\rho g^2` and an encoding with validity
constraint :math:`\\chi` as :math:`\\theta \\chi`. The multipliers are chosen so that no violation can pay off:

* the variation of a function :math:`f` is :math:`\\Delta(f) = \\sum |c_\\omega|` over its non-constant terms,
  which bounds :math:`\\max f - \\min f`;
* the step :math:`\\delta` of :math:`g` is the greatest common divisor of all its coefficients (constant
  included). Every value of :math:`g` is a multiple of :math:`\\delta`, so a violated constraint has
  :math:`g^2 \\geq \\delta^2`, and :math:`\\rho = 1 + \\Delta(\\mathbb{H}_0) / \\delta^2`;
* :math:`\\chi` is integral and at least 1 on invalid patterns, so
  :math:`\\theta = 1 + \\Delta(\\mathbb{H}_0 + \\sum_i \\rho_i \\mathbb{H}_i)`.
"""

from __future__ import annotations

import math
from fractions import Fraction

from .pbf import PBF
from .types import Number


def _exact(value: Number, max_denominator: int) -> Fraction:
    if isinstance(value, float):
        return Fraction(value).limit_denominator(max_denominator)
    return Fraction(value)


def _normalize(value: Number) -> Number:
    if isinstance(value, Fraction) and value.denominator == 1:
        return value.numerator
    return value


def rationalize(function: PBF, max_denominator: int = 10**6) -> PBF:
    """Replaces the float coefficients of ``function`` by the closest fractions with bounded denominator."""
    return PBF(
        (term, _normalize(_exact(c, max_denominator)) if isinstance(c, float) else c) for term, c in function.items()
    )


def variation(function: PBF) -> Number:
    """
    Returns:
        Number: the sum of the absolute values of the non-constant coefficients of ``function``, an upper
        bound on the difference between its maximum and its minimum.
    """
    return sum((abs(c) for term, c in function.items() if term), 0)


def step(residual: PBF, max_denominator: int = 10**6) -> Number:
    """Computes the smallest nonzero magnitude a constraint residual can take.

    Float coefficients are rationalized with :meth:`fractions.Fraction.limit_denominator`.

    Args:
        residual (PBF): the residual ``lhs - rhs`` of the constraint.
        max_denominator (int, optional): the largest denominator used to rationalize floats. Defaults to 10**6.

    Returns:
        Number: the greatest common divisor of the coefficients of ``residual``, or 1 if it is zero.
    """
    coefficients = [_exact(c, max_denominator) for _, c in residual.items()]
    coefficients = [c for c in coefficients if c != 0]
    if not coefficients:
        return 1
    denominator = math.lcm(*(c.denominator for c in coefficients))
    numerator = math.gcd(*(c.numerator * (denominator // c.denominator) for c in coefficients))
    return _normalize(Fraction(numerator, denominator))


def constraint_penalty(objective: PBF, residual: PBF, max_denominator: int = 10**6) -> Number:
    """Computes the multiplier ρ of the squared residual of a constraint.

    Returns:
        Number: ``1 + Δ(objective) / δ²`` where ``δ`` is the step of ``residual``.
    """
    delta = step(residual, max_denominator)
    spread = variation(objective)
    if isinstance(spread, float):
        return 1 + spread / float(delta) ** 2
    return _normalize(1 + Fraction(spread) / Fraction(delta) ** 2)


def variable_penalty(energy: PBF) -> Number:
    """Computes the multiplier θ of an encoding's validity constraint.

    Args:
        energy (PBF): the objective plus the weighted constraints, ``ℍ₀ + Σ ρᵢ ℍᵢ``.

    Returns:
        Number: ``1 + Δ(energy)``.
    """
    return _normalize(1 + variation(energy))
