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
from dataclasses import dataclass, field, replace
from fractions import Fraction
from typing import TYPE_CHECKING, Mapping, Protocol, Sequence, runtime_checkable

import numpy as np
from loguru import logger
from scipy.sparse import csr_matrix

from quboforge.yaml import yaml

from .exceptions import QuadratizationError
from .pbf import PBF, _divide, _variable_key
from .types import Number, VariableId

if TYPE_CHECKING:
    from ruamel.yaml.nodes import MappingNode
    from ruamel.yaml.representer import RoundTripRepresenter


@yaml.register_class
@dataclass(frozen=True)
class QUBONormalForm:
    """
    A QUBO energy function given by integer-indexed linear and quadratic coefficients.

    The energy of a binary sample ``x`` is
    :math:`E(x) = scale \\cdot (\\sum_i l_i x_i + \\sum_{i<j} q_{ij} x_i x_j) + offset`.

    Example:
        .. code-block:: python

            from quboforge.core.pbf import PBF
            from quboforge.core.qubo import QUBONormalForm

            qubo = QUBONormalForm.from_pbf(PBF({(0,): 1, (0, 1): -2, None: 3}))
            matrix = qubo.to_matrix()
    """

    num_variables: int
    linear: dict[int, Number] = field(default_factory=dict)
    quadratic: dict[tuple[int, int], Number] = field(default_factory=dict)
    scale: Number = 1
    offset: Number = 0

    def __post_init__(self) -> None:
        for index in self.linear:
            self._check_index(index)
        for i, j in self.quadratic:
            if i >= j:
                raise ValueError(f"quadratic terms must be indexed by (i, j) with i < j but received ({i}, {j})")
            self._check_index(i)
            self._check_index(j)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.num_variables:
            raise ValueError(f"variable index {index} is out of range for {self.num_variables} variables")

    @classmethod
    def from_pbf(
        cls, function: PBF, index: Mapping[VariableId, int] | None = None, num_variables: int | None = None
    ) -> QUBONormalForm:
        """Builds the normal form of a pseudo-boolean function of degree at most 2.

        Args:
            function (PBF): the function to export.
            index (Mapping[VariableId, int] | None, optional): maps every variable of ``function`` to its
                index. When omitted the variables must already be non-negative integers. Defaults to None.
            num_variables (int | None, optional): the number of variables of the QUBO. Defaults to the number
                of indexed variables (or to the largest variable index plus one).

        Raises:
            QuadratizationError: if the function has degree higher than 2.
            ValueError: if a variable has no index.

        Returns:
            QUBONormalForm: the normal form of ``function``.
        """
        if function.degree > 2:  # noqa: PLR2004
            raise QuadratizationError(f"only functions of degree <= 2 have a QUBO normal form, received degree {function.degree}")

        def _index(variable: VariableId) -> int:
            if index is not None:
                if variable not in index:
                    raise ValueError(f"variable {variable!r} has no index in the QUBO")
                return index[variable]
            if not isinstance(variable, int) or isinstance(variable, bool) or variable < 0:
                raise ValueError(f"variable {variable!r} is not a valid QUBO index, provide an index mapping")
            return variable

        linear: dict[int, Number] = {}
        quadratic: dict[tuple[int, int], Number] = {}
        for term, coefficient in function.sorted_items():
            indices = sorted(_index(v) for v in sorted(term, key=_variable_key))
            if len(indices) == 1:
                linear[indices[0]] = coefficient
            elif len(indices) == 2:  # noqa: PLR2004
                quadratic[indices[0], indices[1]] = coefficient

        if num_variables is None:
            if index is not None:
                num_variables = max(index.values(), default=-1) + 1
            else:
                used = [i for i in linear] + [j for _, j in quadratic]
                num_variables = max(used, default=-1) + 1
        logger.debug(
            "Exported QUBO with {} variables, {} linear and {} quadratic terms",
            num_variables,
            len(linear),
            len(quadratic),
        )
        return cls(num_variables, linear, quadratic, 1, function.constant_term)

    def discretize(self, max_denominator: int = 10**6) -> QUBONormalForm:
        """Rescales the normal form so that every linear and quadratic coefficient is an integer.

        Float coefficients are first rationalized with :meth:`fractions.Fraction.limit_denominator`. The common
        denominator is absorbed by ``scale``, so the energy of every sample is preserved.

        Args:
            max_denominator (int, optional): the largest denominator used to rationalize floats. Defaults to 10**6.

        Returns:
            QUBONormalForm: the normal form with integer coefficients.
        """

        def _exact(value: Number) -> Fraction:
            if isinstance(value, float):
                return Fraction(value).limit_denominator(max_denominator)
            return Fraction(value)

        linear = {i: _exact(c) for i, c in self.linear.items()}
        quadratic = {ij: _exact(c) for ij, c in self.quadratic.items()}
        factor = math.lcm(*(c.denominator for c in (*linear.values(), *quadratic.values())))
        return replace(
            self,
            linear={i: int(c * factor) for i, c in linear.items()},
            quadratic={ij: int(c * factor) for ij, c in quadratic.items()},
            scale=_divide(self.scale, factor),
        )

    def to_pbf(self) -> PBF:
        """
        Returns:
            PBF: the energy function over the variable indices, with the scale applied.
        """
        function = PBF(self.offset)
        scaled = PBF(((i,), c) for i, c in self.linear.items())
        scaled += PBF(((i, j), c) for (i, j), c in self.quadratic.items())
        return function + scaled * self.scale

    def to_matrix(self) -> np.ndarray:
        """
        Returns:
            np.ndarray: the dense upper triangular matrix ``Q`` with the linear terms on its diagonal, such
            that the energy is ``scale * x @ Q @ x + offset``.
        """
        matrix = np.zeros((self.num_variables, self.num_variables), dtype=float)
        for i, c in self.linear.items():
            matrix[i, i] = float(c)
        for (i, j), c in self.quadratic.items():
            matrix[i, j] = float(c)
        return matrix

    def to_sparse(self) -> csr_matrix:
        """
        Returns:
            csr_matrix: the matrix of ``to_matrix`` in compressed sparse row format.
        """
        rows = [i for i in self.linear] + [i for i, _ in self.quadratic]
        cols = [i for i in self.linear] + [j for _, j in self.quadratic]
        data = [float(c) for c in self.linear.values()] + [float(c) for c in self.quadratic.values()]
        return csr_matrix((data, (rows, cols)), shape=(self.num_variables, self.num_variables))

    def evaluate(self, sample: Sequence[int] | Mapping[int, int]) -> Number:
        """Computes the energy of a binary sample.

        Args:
            sample (Sequence[int] | Mapping[int, int]): the value of each variable, indexed by position.

        Raises:
            ValueError: if the sample does not assign a binary value to every variable.

        Returns:
            Number: the energy of the sample.
        """
        values = [sample[i] for i in range(self.num_variables)]
        if any(v not in {0, 1} for v in values):
            raise ValueError("QUBO samples can only take binary values")
        energy: Number = 0
        for i, c in self.linear.items():
            if values[i]:
                energy += c
        for (i, j), c in self.quadratic.items():
            if values[i] and values[j]:
                energy += c
        return energy * self.scale + self.offset

    @classmethod
    def to_yaml(cls, representer: RoundTripRepresenter, node: QUBONormalForm) -> MappingNode:
        """
        Method to be called automatically during YAML serialization.

        Returns:
            MappingNode: The YAML mapping representing the normal form.
        """
        value = {
            "num_variables": node.num_variables,
            "linear": [[i, c] for i, c in sorted(node.linear.items())],
            "quadratic": [[i, j, c] for (i, j), c in sorted(node.quadratic.items())],
            "scale": node.scale,
            "offset": node.offset,
        }
        return representer.represent_mapping("!QUBONormalForm", value)

    @classmethod
    def from_yaml(cls, constructor, node: MappingNode) -> QUBONormalForm:  # noqa: ANN001
        """
        Method to be called automatically during YAML deserialization.

        Returns:
            QUBONormalForm: The normal form rebuilt from the YAML mapping.
        """
        mapping = constructor.construct_mapping(node, deep=True)
        return cls(
            num_variables=mapping["num_variables"],
            linear={i: c for i, c in mapping["linear"]},
            quadratic={(i, j): c for i, j, c in mapping["quadratic"]},
            scale=mapping["scale"],
            offset=mapping["offset"],
        )


@runtime_checkable
class TargetModel(Protocol):
    """Protocol for the models receiving the compiled QUBO."""

    def allocate_binary_variables(self, n: int) -> list[int]:
        """Return ``n`` fresh binary variable identifiers.

        Args:
            n (int): The number of variables to allocate.

        Returns:
            The identifiers of the new variables.
        """
        ...

    def add_binary_domain_constraint(self, variable: int) -> None:
        """Declare that a variable only takes the values 0 and 1.

        Args:
            variable (int): The variable identifier.
        """
        ...

    def set_objective(self, normal_form: QUBONormalForm) -> None:
        """Set the QUBO objective of the model.

        Args:
            normal_form (QUBONormalForm): The compiled energy function.
        """
        ...


class QUBOModel:
    """
    In-memory target model collecting the compiled QUBO.

    Variables are allocated as consecutive integers starting at 0, so they can be used directly as the
    indices of the normal form.
    """

    def __init__(self, label: str = "QUBO") -> None:
        self._label = label
        self._num_variables = 0
        self._binary: set[int] = set()
        self._objective: QUBONormalForm | None = None

    @property
    def label(self) -> str:
        return self._label

    @property
    def num_variables(self) -> int:
        return self._num_variables

    @property
    def binary_variables(self) -> list[int]:
        return sorted(self._binary)

    @property
    def objective(self) -> QUBONormalForm | None:
        return self._objective

    def allocate_binary_variables(self, n: int) -> list[int]:
        if n < 0:
            raise ValueError(f"can not allocate a negative number of variables ({n})")
        start = self._num_variables
        self._num_variables += n
        return list(range(start, self._num_variables))

    def add_binary_domain_constraint(self, variable: int) -> None:
        if not 0 <= variable < self._num_variables:
            raise ValueError(f"variable {variable} was not allocated by {self.label}")
        self._binary.add(variable)

    def set_objective(self, normal_form: QUBONormalForm) -> None:
        if normal_form.num_variables > self._num_variables:
            raise ValueError(
                f"the objective uses {normal_form.num_variables} variables but only {self._num_variables} were allocated"
            )
        self._objective = normal_form

    def __repr__(self) -> str:
        return self.label
