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
from io import StringIO
from itertools import product

import numpy as np
import pytest
from scipy import sparse

from quboforge.core.exceptions import QuadratizationError
from quboforge.core.pbf import PBF
from quboforge.core.qubo import QUBOModel, QUBONormalForm, TargetModel
from quboforge.yaml import yaml


@pytest.fixture
def energy():
    return PBF({(0,): 1, (1,): -2, (0, 2): 3, (1, 2): -1, None: 4})


@pytest.fixture
def normal_form(energy):
    return QUBONormalForm.from_pbf(energy)


# ---------- Normal form ----------
def test_from_pbf(normal_form):
    assert normal_form.num_variables == 3
    assert normal_form.linear == {0: 1, 1: -2}
    assert normal_form.quadratic == {(0, 2): 3, (1, 2): -1}
    assert normal_form.scale == 1
    assert normal_form.offset == 4


def test_from_pbf_with_index():
    qubo = QUBONormalForm.from_pbf(PBF({("a", "b"): 2, ("b",): 1}), index={"b": 0, "a": 1})
    assert qubo.num_variables == 2
    assert qubo.linear == {0: 1}
    assert qubo.quadratic == {(0, 1): 2}
    assert qubo.offset == 0


def test_from_pbf_errors():
    with pytest.raises(QuadratizationError):
        QUBONormalForm.from_pbf(PBF({(0, 1, 2): 1}))
    with pytest.raises(ValueError):  # noqa: PT011
        QUBONormalForm.from_pbf(PBF({("a",): 1}))
    with pytest.raises(ValueError):  # noqa: PT011
        QUBONormalForm.from_pbf(PBF({("a",): 1}), index={"b": 0})


def test_normal_form_validation():
    with pytest.raises(ValueError):  # noqa: PT011
        QUBONormalForm(2, quadratic={(1, 0): 1})
    with pytest.raises(ValueError):  # noqa: PT011
        QUBONormalForm(2, linear={2: 1})


def test_evaluate_matches_the_energy(energy, normal_form):
    for bits in product((0, 1), repeat=3):
        assert normal_form.evaluate(bits) == energy.evaluate(dict(enumerate(bits)))
    with pytest.raises(ValueError):  # noqa: PT011
        normal_form.evaluate([0, 2, 1])


def test_discretize_keeps_the_energy():
    function = PBF({(0,): Fraction(1, 3), (1,): 0.25, (0, 1): -2, None: Fraction(1, 2)})
    normal_form = QUBONormalForm.from_pbf(function)
    discrete = normal_form.discretize()
    assert discrete.linear == {0: 4, 1: 3}
    assert discrete.quadratic == {(0, 1): -24}
    assert discrete.scale == Fraction(1, 12)
    assert discrete.offset == Fraction(1, 2)
    for bits in product((0, 1), repeat=2):
        assert float(discrete.evaluate(list(bits))) == pytest.approx(function.evaluate(dict(enumerate(bits))))


def test_discretize_integer_normal_form_is_unchanged(normal_form):
    assert normal_form.discretize() == normal_form


def test_to_pbf_round_trip(energy, normal_form):
    assert normal_form.to_pbf() == energy


def test_to_matrix(normal_form):
    matrix = normal_form.to_matrix()
    expected = np.array([[1.0, 0.0, 3.0], [0.0, -2.0, -1.0], [0.0, 0.0, 0.0]])
    np.testing.assert_array_equal(matrix, expected)
    x = np.array([1, 0, 1])
    assert x @ matrix @ x + normal_form.offset == normal_form.evaluate(x.tolist())


def test_to_sparse(normal_form):
    matrix = normal_form.to_sparse()
    assert isinstance(matrix, sparse.csr_matrix)
    np.testing.assert_array_equal(matrix.toarray(), normal_form.to_matrix())


def test_yaml_round_trip(normal_form):
    buffer = StringIO()
    yaml.dump(normal_form, buffer)
    assert "!QUBONormalForm" in buffer.getvalue()
    loaded = yaml.load(buffer.getvalue())
    assert loaded == normal_form


# ---------- QUBOModel ----------
def test_qubo_model_allocation():
    model = QUBOModel("target")
    assert isinstance(model, TargetModel)
    assert model.allocate_binary_variables(3) == [0, 1, 2]
    assert model.allocate_binary_variables(0) == []
    assert model.allocate_binary_variables(2) == [3, 4]
    assert model.num_variables == 5
    model.add_binary_domain_constraint(4)
    model.add_binary_domain_constraint(0)
    assert model.binary_variables == [0, 4]
    with pytest.raises(ValueError):  # noqa: PT011
        model.add_binary_domain_constraint(5)
    with pytest.raises(ValueError):  # noqa: PT011
        model.allocate_binary_variables(-1)


def test_qubo_model_objective(normal_form):
    model = QUBOModel()
    assert model.objective is None
    with pytest.raises(ValueError):  # noqa: PT011
        model.set_objective(normal_form)
    model.allocate_binary_variables(3)
    model.set_objective(normal_form)
    assert model.objective is normal_form
