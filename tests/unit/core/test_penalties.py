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

from fractions import Fraction
from itertools import product

import pytest

from quboforge.core.pbf import PBF
from quboforge.core.penalties import constraint_penalty, rationalize, step, variable_penalty, variation


# ---------- Variation ----------
def test_variation_ignores_the_constant():
    assert variation(PBF({("x",): 2, ("y",): -3, None: 10})) == 5
    assert variation(PBF(4)) == 0


def test_variation_bounds_the_range():
    f = PBF({("x",): 2, ("x", "y"): -3, ("z",): 1.5, None: 1})
    values = [f.evaluate(dict(zip("xyz", bits))) for bits in product((0, 1), repeat=3)]
    assert max(values) - min(values) <= variation(f)


# ---------- Step ----------
@pytest.mark.parametrize(
    ("residual", "expected"),
    [
        (PBF({("x",): 2, ("y",): 4, None: -6}), 2),
        (PBF({("x",): 3, ("y",): 5, None: -4}), 1),
        (PBF({("x",): Fraction(1, 2), ("y",): Fraction(3, 4)}), Fraction(1, 4)),
        (PBF({("x",): 0.5, ("y",): 1.5, None: -1}), Fraction(1, 2)),
        (PBF(), 1),
    ],
)
def test_step(residual, expected):
    assert step(residual) == expected


def test_step_of_an_integral_residual_is_an_int():
    assert isinstance(step(PBF({("x",): 2, ("y",): 4})), int)


def test_step_bounds_violations():
    residual = PBF({("x",): 2, ("y",): 4, ("z",): -2, None: -2})
    delta = step(residual)
    for bits in product((0, 1), repeat=3):
        value = residual.evaluate(dict(zip("xyz", bits)))
        assert value == 0 or abs(value) >= delta


def test_rationalize_replaces_floats_only():
    function = rationalize(PBF({("x",): 0.5, ("y",): Fraction(1, 3), ("x", "y"): 2, None: 0.1}))
    assert function == PBF({("x",): Fraction(1, 2), ("y",): Fraction(1, 3), ("x", "y"): 2, None: Fraction(1, 10)})
    assert rationalize(PBF({("x",): 2.0})).coefficient(["x"]) == 2
    assert isinstance(rationalize(PBF({("x",): 2.0})).coefficient(["x"]), int)


# ---------- Penalties ----------
def test_constraint_penalty():
    objective = PBF({("x",): 3, ("y",): -1})
    residual = PBF({("x",): 1, ("y",): 1, None: -1})
    assert constraint_penalty(objective, residual) == 5
    assert constraint_penalty(objective, PBF({("x",): 2, None: -2})) == 2
    assert constraint_penalty(PBF({("x",): 0.5}), residual) == pytest.approx(1.5)


def test_constraint_penalty_makes_violations_unprofitable():
    objective = PBF({("x",): -4, ("y",): -3, ("z",): -2})
    residual = PBF({("x",): 1, ("y",): 1, ("z",): 1, None: -1})
    rho = constraint_penalty(objective, residual)
    energy = objective + rho * residual**2
    feasible, infeasible = [], []
    for bits in product((0, 1), repeat=3):
        sample = dict(zip("xyz", bits))
        (feasible if residual.evaluate(sample) == 0 else infeasible).append(energy.evaluate(sample))
    assert min(feasible) < min(infeasible)


def test_variable_penalty():
    assert variable_penalty(PBF({("x",): 3, ("y",): -1, None: 7})) == 5
    assert variable_penalty(PBF({("x",): Fraction(1, 2)})) == Fraction(3, 2)
    assert variable_penalty(PBF()) == 1
