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
"""The shared ruamel.yaml handler, with tags for the numeric and container types found in compiled models."""

# ruff: noqa: ANN001, ANN201 DOC201

from fractions import Fraction

import numpy as np
from ruamel.yaml import YAML
from scipy import sparse


def _represent_csr(representer, data: sparse.csr_matrix):
    return representer.represent_mapping(
        "!csr_matrix",
        {
            "data": data.data.tolist(),
            "indices": data.indices.tolist(),
            "indptr": data.indptr.tolist(),
            "shape": list(data.shape),
        },
    )


def _construct_csr(constructor, node):
    mapping = constructor.construct_mapping(node, deep=True)
    return sparse.csr_matrix((mapping["data"], mapping["indices"], mapping["indptr"]), shape=tuple(mapping["shape"]))


def _represent_ndarray(representer, data: np.ndarray):
    return representer.represent_mapping(
        "!ndarray", {"dtype": str(data.dtype), "shape": list(data.shape), "data": data.ravel().tolist()}
    )


def _construct_ndarray(constructor, node):
    mapping = constructor.construct_mapping(node, deep=True)
    return np.array(mapping["data"], dtype=np.dtype(mapping["dtype"])).reshape(tuple(mapping["shape"]))


def _represent_np_scalar(representer, data: np.generic):
    return representer.represent_mapping("!np_scalar", {"dtype": str(data.dtype), "value": data.item()})


def _construct_np_scalar(constructor, node):
    mapping = constructor.construct_mapping(node, deep=True)
    return np.dtype(mapping["dtype"]).type(mapping["value"])


def _represent_fraction(representer, data: Fraction):
    """Exact coefficients are written as ``numerator/denominator``."""
    return representer.represent_scalar("!fraction", f"{data.numerator}/{data.denominator}")


def _construct_fraction(constructor, node):
    return Fraction(node.value)


def _represent_tuple(representer, data: tuple):
    return representer.represent_sequence("!tuple", list(data))


def _construct_tuple(constructor, node):
    return tuple(constructor.construct_sequence(node, deep=True))


def _represent_frozenset(representer, data: frozenset):
    """Polynomial terms are written with their variables sorted, so that dumps are reproducible."""
    return representer.represent_sequence("!frozenset", sorted(data, key=lambda v: (type(v).__name__, v)))


def _construct_frozenset(constructor, node):
    return frozenset(constructor.construct_sequence(node, deep=True))


yaml = YAML(typ="unsafe")

for _type, _tag, _represent, _construct in (
    (sparse.csr_matrix, "!csr_matrix", _represent_csr, _construct_csr),
    (np.ndarray, "!ndarray", _represent_ndarray, _construct_ndarray),
    (Fraction, "!fraction", _represent_fraction, _construct_fraction),
    (tuple, "!tuple", _represent_tuple, _construct_tuple),
    (frozenset, "!frozenset", _represent_frozenset, _construct_frozenset),
):
    yaml.representer.add_representer(_type, _represent)
    yaml.constructor.add_constructor(_tag, _construct)

# every numpy scalar type shares one tag
yaml.representer.add_multi_representer(np.generic, _represent_np_scalar)
yaml.constructor.add_constructor("!np_scalar", _construct_np_scalar)
