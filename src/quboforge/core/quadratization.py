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
from collections import Counter
from itertools import combinations, count
from typing import Hashable, NamedTuple

from loguru import logger

from .exceptions import QuadratizationError
from .pbf import PBF, _accumulate, _variable_key, term_key
from .types import Allocator, Number, VariableId


class QuadratizationResult(NamedTuple):
    function: PBF
    auxiliary: list[VariableId]


def _auxiliary_allocator(function: PBF) -> Allocator:
    used = set(function.variables())
    counter = count()

    def allocate(n: int) -> list[Hashable]:
        ids: list[Hashable] = []
        while len(ids) < n:
            candidate = f"aux({next(counter)})"
            if candidate not in used:
                ids.append(candidate)
        return ids

    return allocate


def _stable_pair(high: list[frozenset]) -> tuple[VariableId, VariableId]:
    degree = max(len(term) for term in high)
    term = min((t for t in high if len(t) == degree), key=term_key)
    x, y = sorted(term, key=_variable_key)[:2]
    return x, y


def _frequent_pair(high: list[frozenset]) -> tuple[VariableId, VariableId]:
    pairs: Counter = Counter()
    for term in high:
        pairs.update(combinations(sorted(term, key=_variable_key), 2))
    (x, y), _ = pairs.most_common(1)[0]
    return x, y


def quadratize(function: PBF, allocator: Allocator | None = None, stable: bool = False) -> QuadratizationResult:
    """Reduces a pseudo-boolean function to degree 2 with Rosenberg substitutions.

    Each step picks a pair of variables ``x, y`` of a monomial of degree higher than 2, introduces an
    auxiliary variable ``w``, replaces ``x*y`` by ``w`` in every such monomial containing both, and adds the
    penalty :math:`M (xy - 2xw - 2yw + 3w)`, which is zero if and only if ``w = x*y`` and at least ``M``
    otherwise. ``M`` is one plus the sum of the absolute values of the rewritten coefficients, so for every
    assignment of the original variables the minimum over the auxiliary ones equals the original value.

    Args:
        function (PBF): the function to reduce.
        allocator (Allocator | None, optional): returns new auxiliary variable identifiers. Defaults to
            identifiers ``"aux(k)"`` not used by ``function``.
        stable (bool, optional): when True the substituted pair is chosen canonically (the two smallest variables
            of the first highest degree term), producing identical output for identical input. Otherwise the pair
            appearing in most high degree terms is chosen. Defaults to False.

    Raises:
        QuadratizationError: if a substitution penalty is not finite.

    Returns:
        QuadratizationResult: the reduced function and the auxiliary variables introduced.
    """
    if function.degree <= 2:  # noqa: PLR2004
        return QuadratizationResult(function, [])

    allocate = allocator if allocator is not None else _auxiliary_allocator(function)
    select = _stable_pair if stable else _frequent_pair
    terms: dict[frozenset, Number] = dict(function.items())
    auxiliary: list[VariableId] = []
    used = set(function.variables())

    while True:
        high = [term for term in terms if len(term) > 2]  # noqa: PLR2004
        if not high:
            break
        x, y = select(high)
        rewritten = [term for term in high if x in term and y in term]
        penalty: Number = 1 + sum(abs(terms[term]) for term in rewritten)
        if not math.isfinite(penalty) or penalty <= 0:
            raise QuadratizationError(f"can not bound the substitution of ({x!r}, {y!r}): penalty {penalty}")

        ids = allocate(1)
        if len(ids) != 1:
            raise QuadratizationError(f"the allocator returned {len(ids)} variables but 1 was requested")
        w = ids[0]
        if w in used:
            raise QuadratizationError(f"the auxiliary variable {w!r} is already in use")
        auxiliary.append(w)
        used.add(w)

        for term in rewritten:
            coefficient = terms.pop(term)
            _accumulate(terms, (term - {x, y}) | {w}, coefficient)
        _accumulate(terms, frozenset((x, y)), penalty)
        _accumulate(terms, frozenset((x, w)), -2 * penalty)
        _accumulate(terms, frozenset((y, w)), -2 * penalty)
        _accumulate(terms, frozenset((w,)), 3 * penalty)
        logger.debug("Substituted {}*{} by {} in {} terms with penalty {}", x, y, w, len(rewritten), penalty)

    result = PBF(terms)
    logger.debug("Quadratized a degree {} function with {} auxiliary variables", function.degree, len(auxiliary))
    return QuadratizationResult(result, auxiliary)
