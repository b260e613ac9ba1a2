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

from itertools import product

import pytest
from loguru_caplog import loguru_caplog as caplog  # noqa: F401

from quboforge.core.encoding import Binary, DomainWall, OneHot, Unary
from quboforge.core.exceptions import DuplicateEncodingError
from quboforge.core.pbf import PBF
from quboforge.core.qubo import QUBOModel
from quboforge.core.virtual import VirtualModel, VirtualVariable


@pytest.fixture
def model():
    return VirtualModel()


def _samples(ids):
    for bits in product((0, 1), repeat=len(ids)):
        yield dict(zip(ids, bits))


# ---------- Virtual variables ----------
def test_virtual_variable_requires_a_single_owner():
    with pytest.raises(ValueError):  # noqa: PT011
        VirtualVariable(None, [0], PBF.variable(0), Unary())
    with pytest.raises(ValueError):  # noqa: PT011
        VirtualVariable("x", [0], PBF.variable(0), Unary(), constraint_label="c")


def test_encode_source_variable(model):
    x = model.encode("x", Binary(), bounds=(0, 7))
    assert x.source == "x"
    assert not x.is_slack
    assert x.target == (0, 1, 2)
    assert x.expansion == PBF({(0,): 1, (1,): 2, (2,): 4})
    assert x.constraint is None
    assert x.bounds == (0, 7)
    assert model.variable("x") is x
    assert model.target_model.binary_variables == [0, 1, 2]
    assert "x" in repr(x)


def test_encode_slack(model):
    s = model.encode(None, Unary(), bounds=(0, 2), constraint="c")
    assert s.is_slack
    assert s.constraint_label == "c"
    assert model.slack("c") is s
    assert model.slacks == {"c": s}
    assert model.expansions() == {}
    assert "slack(c)" in repr(s)


def test_target_variables_form_a_partition(model):
    x = model.encode("x", Binary(), bounds=(0, 7))
    y = model.encode("y", OneHot(), n=3)
    s = model.encode(None, Unary(), bounds=(0, 2), constraint="c")
    targets = [t for v in (x, y, s) for t in v.target]
    assert len(targets) == len(set(targets))
    assert sorted(targets) == sorted(model.target_variables)
    for variable in (x, y, s):
        for target in variable.target:
            assert model.owner(target) is variable


def test_encode_requires_a_single_owner_before_allocating(model):
    with pytest.raises(ValueError):  # noqa: PT011
        model.encode(None, Unary(), bounds=(0, 2))
    with pytest.raises(ValueError):  # noqa: PT011
        model.encode("x", Unary(), bounds=(0, 2), constraint="c")
    assert model.target_model.num_variables == 0
    assert model.variables == []


def test_duplicate_encodings_do_not_allocate(model):
    model.encode("x", Unary(), bounds=(0, 3))
    model.encode(None, Unary(), bounds=(0, 2), constraint="c")
    allocated = model.target_model.num_variables
    with pytest.raises(DuplicateEncodingError):
        model.encode("x", Binary(), bounds=(0, 3))
    with pytest.raises(DuplicateEncodingError):
        model.encode(None, Binary(), bounds=(0, 2), constraint="c")
    assert model.target_model.num_variables == allocated


def test_target_reusing_identifiers_is_rejected():
    class RepeatingTarget(QUBOModel):
        def allocate_binary_variables(self, n):
            super().allocate_binary_variables(n)
            return list(range(n))

    model = VirtualModel(RepeatingTarget())
    x = model.encode("x", Unary(), bounds=(0, 2))
    with pytest.raises(DuplicateEncodingError):
        model.encode("y", Unary(), bounds=(0, 2))
    assert model.variables == [x]
    assert model.expansions() == {"x": x.expansion}


def test_target_repeating_identifiers_in_one_batch_is_rejected():
    class StutteringTarget(QUBOModel):
        def allocate_binary_variables(self, n):
            ids = super().allocate_binary_variables(n)
            return [ids[0]] * n

    model = VirtualModel(StutteringTarget())
    with pytest.raises(DuplicateEncodingError):
        model.encode("x", Unary(), bounds=(0, 2))
    assert model.variables == []
    assert model.target_variables == []


def test_large_encoding_warning(caplog):  # noqa: F811
    VirtualModel().encode("x", Unary(), bounds=(0, 1), n=65)
    assert "uses 65 bits" in caplog.text


def test_large_encoding_warning_can_be_disabled(caplog):  # noqa: F811
    VirtualModel(warnings=False).encode("x", Unary(), bounds=(0, 1), n=65)
    assert "uses 65 bits" not in caplog.text


# ---------- Energy ----------
def test_unary_objective_normal_form(model):
    x = model.encode("x", Unary(), bounds=(0, 3), n=3)
    model.set_objective(x.expansion)
    model.assemble()
    normal_form = model.export()
    assert normal_form.num_variables == 3
    assert normal_form.linear == {0: 1, 1: 1, 2: 1}
    assert normal_form.quadratic == {}
    assert normal_form.offset == 0
    assert model.normal_form is normal_form
    assert model.target_model.objective is normal_form


def test_one_hot_penalty_separates_invalid_patterns(model):
    x = model.encode("x", OneHot(), bounds=(0, 2))
    x.penalty = 10
    model.set_objective(x.expansion)
    model.assemble()
    normal_form = model.export()

    valid, invalid = [], []
    for bits in product((0, 1), repeat=3):
        energy = normal_form.evaluate(list(bits))
        if sum(bits) == 1:
            valid.append(energy)
        else:
            invalid.append(energy)
            assert energy - x.expansion.evaluate(dict(zip(x.target, bits))) >= 10
    assert sorted(valid) == [0, 1, 2]
    assert min(invalid) > max(valid)


def test_assemble(model):
    x = model.encode("x", Unary(), bounds=(0, 2))
    y = model.encode("y", DomainWall(), n=3)
    model.set_objective(x.expansion - y.expansion)
    model.add_constraint("c", (x.expansion - 1) ** 2, penalty=3)
    y.penalty = 5
    energy = model.assemble()
    assert energy == x.expansion - y.expansion + 3 * (x.expansion - 1) ** 2 + 5 * y.constraint
    assert model.energy == energy
    assert model.constraint_penalties == {"c": 3}


def test_assemble_requires_penalties(model):
    x = model.encode("x", Unary(), bounds=(0, 2))
    model.add_constraint("c", (x.expansion - 1) ** 2)
    with pytest.raises(ValueError):  # noqa: PT011
        model.assemble()
    model.set_constraint_penalty("c", 2)
    model.assemble()

    y = model.encode("y", OneHot(), n=2)
    with pytest.raises(ValueError):  # noqa: PT011
        model.assemble()
    y.penalty = 4
    model.assemble()


def test_constraint_errors(model):
    model.add_constraint("c", PBF({("a",): 1}))
    with pytest.raises(ValueError):  # noqa: PT011
        model.add_constraint("c", PBF({("b",): 1}))
    with pytest.raises(KeyError):
        model.set_constraint_penalty("d", 1)


def test_energy_before_assembly(model):
    with pytest.raises(ValueError):  # noqa: PT011
        _ = model.energy
    with pytest.raises(ValueError):  # noqa: PT011
        model.energy_of({})


def test_quadratize_allocates_auxiliary_variables(model):
    x = model.encode("x", Unary(), bounds=(0, 1))
    y = model.encode("y", Unary(), bounds=(0, 1))
    z = model.encode("z", Unary(), bounds=(0, 1))
    model.set_objective(x.expansion * y.expansion * z.expansion)
    model.assemble()
    energy = model.quadratize(stable=True)

    assert energy.degree == 2
    assert model.auxiliary == [3]
    assert model.target_variables == [0, 1, 2, 3]
    assert model.target_model.binary_variables == [0, 1, 2, 3]
    normal_form = model.export()
    assert normal_form.num_variables == 4
    for sample in _samples([0, 1, 2]):
        best = min(normal_form.evaluate({**sample, 3: w}) for w in (0, 1))
        assert best == model.energy_of(sample)


def test_normal_form_of_non_integer_targets():
    class NamedTarget:
        def __init__(self):
            self.names = []
            self.objective = None

        def allocate_binary_variables(self, n):
            names = [f"b{len(self.names) + k}" for k in range(n)]
            self.names.extend(names)
            return names

        def add_binary_domain_constraint(self, variable):
            assert variable in self.names

        def set_objective(self, normal_form):
            self.objective = normal_form

    target = NamedTarget()
    model = VirtualModel(target)
    x = model.encode("x", Binary(), bounds=(0, 3))
    model.set_objective(x.expansion)
    model.assemble()
    normal_form = model.export()
    assert target.objective is normal_form
    assert normal_form.linear == {0: 1, 1: 2}


# ---------- Decoding ----------
def test_decode_and_validity(model):
    x = model.encode("x", Binary(), bounds=(0, 3))
    y = model.encode("y", OneHot(), values=[10, 20, 30])
    s = model.encode(None, Unary(), bounds=(0, 1), constraint="c")
    model.set_objective(x.expansion + y.expansion)
    model.add_constraint("c", (x.expansion + s.expansion - 2) ** 2, penalty=1)
    y.penalty = 1

    sample = {0: 0, 1: 1, 2: 0, 3: 1, 4: 0, 5: 0}
    assert model.decode(sample) == {"x": 2, "y": 20}
    assert model.is_valid(sample)
    assert model.is_feasible(sample)

    invalid = {**sample, 2: 1}
    assert not model.is_valid(invalid)
    assert not model.is_feasible(invalid)

    violated = {**sample, 5: 1}
    assert model.is_valid(violated)
    assert not model.is_feasible(violated)


def test_energy_of(model):
    x = model.encode("x", Unary(), bounds=(0, 2))
    model.set_objective(x.expansion * 3)
    model.add_constraint("c", (x.expansion - 1) ** 2, penalty=2)
    model.assemble()
    assert model.energy_of({0: 0, 1: 0}) == 2
    assert model.energy_of({0: 1, 1: 0}) == 3
    assert model.energy_of({0: 1, 1: 1}) == 8
