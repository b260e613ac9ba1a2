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
from typing import Sequence

from loguru import logger

from .encoding import Encoding
from .exceptions import DuplicateEncodingError
from .pbf import PBF
from .quadratization import quadratize
from .qubo import QUBOModel, QUBONormalForm, TargetModel
from .types import Bounds, Number, Sample, VariableId

LARGE_ENCODING_BITS = 64


class VirtualVariable:
    """
    Binds a source variable, or the slack variable of a constraint, to its encoding.

    The expansion ``ξ`` and the validity constraint ``χ`` only reference the target variables of the virtual
    variable. Everything but the penalty ``θ`` of ``χ`` is fixed at construction.
    """

    def __init__(
        self,
        source: str | None,
        target: Sequence[VariableId],
        expansion: PBF,
        encoding: Encoding,
        constraint: PBF | None = None,
        bounds: Bounds | None = None,
        constraint_label: str | None = None,
    ) -> None:
        if (source is None) == (constraint_label is None):
            raise ValueError("a virtual variable encodes either a source variable or the slack of a constraint")
        self._source = source
        self._target = tuple(target)
        self._expansion = expansion
        self._encoding = encoding
        self._constraint = constraint
        self._bounds = bounds
        self._constraint_label = constraint_label
        self.penalty: Number | None = None

    @property
    def source(self) -> str | None:
        return self._source

    @property
    def target(self) -> tuple[VariableId, ...]:
        return self._target

    @property
    def expansion(self) -> PBF:
        return self._expansion

    @property
    def constraint(self) -> PBF | None:
        return self._constraint

    @property
    def encoding(self) -> Encoding:
        return self._encoding

    @property
    def bounds(self) -> Bounds | None:
        return self._bounds

    @property
    def constraint_label(self) -> str | None:
        return self._constraint_label

    @property
    def is_slack(self) -> bool:
        return self._source is None

    def decode(self, sample: Sample) -> Number:
        """
        Returns:
            Number: the value of the expansion for the given assignment of the target variables.
        """
        return self._expansion.evaluate(sample)

    def is_valid(self, sample: Sample) -> bool:
        return self._constraint is None or self._constraint.evaluate(sample) == 0

    def __repr__(self) -> str:
        name = self._source if self._source is not None else f"slack({self._constraint_label})"
        return f"VirtualVariable({name}, {self._encoding}, target={list(self._target)})"


class VirtualModel:
    """
    Bookkeeping of a compilation: the virtual variables, the energy terms and their penalties.

    The target variables of the virtual variables form a partition: each of them belongs to exactly one
    virtual variable, and auxiliary variables introduced by quadratization belong to none.

    The total energy is :math:`\\mathbb{H} = \\mathbb{H}_0 + \\sum_i \\rho_i \\mathbb{H}_i + \\sum_v \\theta_v \\chi_v`.

    Example:
        .. code-block:: python

            from quboforge.core.encoding import Unary
            from quboforge.core.virtual import VirtualModel

            model = VirtualModel()
            x = model.encode("x", Unary(), bounds=(0, 3))
            model.set_objective(x.expansion)
            model.assemble()
            model.export()
    """

    def __init__(self, target: TargetModel | None = None, warnings: bool = True) -> None:
        self._target: TargetModel = target if target is not None else QUBOModel()
        self._warnings = warnings
        self._variables: list[VirtualVariable] = []
        self._by_source: dict[str, VirtualVariable] = {}
        self._by_slack: dict[str, VirtualVariable] = {}
        self._owner: dict[VariableId, VirtualVariable] = {}
        self._auxiliary: list[VariableId] = []
        self._objective = PBF()
        self._constraints: dict[str, PBF] = {}
        self._penalties: dict[str, Number] = {}
        self._assembled: PBF | None = None
        self._energy: PBF | None = None
        self._normal_form: QUBONormalForm | None = None

    @property
    def target_model(self) -> TargetModel:
        return self._target

    @property
    def variables(self) -> list[VirtualVariable]:
        return list(self._variables)

    @property
    def slacks(self) -> dict[str, VirtualVariable]:
        return dict(self._by_slack)

    @property
    def auxiliary(self) -> list[VariableId]:
        return list(self._auxiliary)

    @property
    def target_variables(self) -> list[VariableId]:
        return list(self._owner) + self._auxiliary

    @property
    def objective(self) -> PBF:
        return self._objective

    @property
    def constraints(self) -> dict[str, PBF]:
        return dict(self._constraints)

    @property
    def constraint_penalties(self) -> dict[str, Number]:
        return dict(self._penalties)

    @property
    def energy(self) -> PBF:
        """
        Raises:
            ValueError: if the energy was not assembled yet.

        Returns:
            PBF: the total energy, after quadratization if it was performed.
        """
        if self._energy is None:
            raise ValueError("the energy has not been assembled yet")
        return self._energy

    @property
    def normal_form(self) -> QUBONormalForm | None:
        return self._normal_form

    def variable(self, source: str) -> VirtualVariable:
        return self._by_source[source]

    def slack(self, constraint_label: str) -> VirtualVariable:
        return self._by_slack[constraint_label]

    def owner(self, target: VariableId) -> VirtualVariable:
        return self._owner[target]

    def encode(
        self,
        source: str | None,
        encoding: Encoding,
        bounds: Bounds | None = None,
        tol: Number | None = None,
        n: int | None = None,
        values: Sequence[Number] | None = None,
        constraint: str | None = None,
    ) -> VirtualVariable:
        """Encodes a source variable, or the slack variable of ``constraint`` when ``source`` is None.

        Args:
            source (str | None): the label of the source variable.
            encoding (Encoding): the encoding method.
            bounds (Bounds | None, optional): the bounds of the encoded variable. Defaults to None.
            tol (Number | None, optional): the tolerance used to size the encoding. Defaults to None.
            n (int | None, optional): an explicit encoding size. Defaults to None.
            values (Sequence[Number] | None, optional): explicit values for categorical encodings. Defaults to None.
            constraint (str | None, optional): the label of the constraint owning the slack. Defaults to None.

        Raises:
            ValueError: unless exactly one of ``source`` and ``constraint`` is given.
            DuplicateEncodingError: if the source variable or the constraint slack is already encoded, or if the
                target model returned a variable that is already in use. Nothing is registered in that case.

        Returns:
            VirtualVariable: the new virtual variable.
        """
        if (source is None) == (constraint is None):
            raise ValueError("exactly one of a source variable and a constraint label must be given")
        if source is not None and source in self._by_source:
            raise DuplicateEncodingError(f'variable "{source}" is already encoded')
        if constraint is not None and constraint in self._by_slack:
            raise DuplicateEncodingError(f'the slack of constraint "{constraint}" is already encoded')

        result = encoding.encode(self._target.allocate_binary_variables, bounds=bounds, tol=tol, n=n, values=values)
        if len(set(result.target)) != len(result.target):
            raise DuplicateEncodingError(f"the target model returned repeated variables: {result.target}")
        for target in result.target:
            if target in self._owner or target in self._auxiliary:
                raise DuplicateEncodingError(f"target variable {target!r} is already owned by {self._owner.get(target)}")

        variable = VirtualVariable(
            source,
            result.target,
            result.expansion,
            encoding,
            constraint=result.constraint,
            bounds=bounds,
            constraint_label=constraint,
        )
        for target in variable.target:
            self._owner[target] = variable
            self._target.add_binary_domain_constraint(target)
        if source is not None:
            self._by_source[source] = variable
        else:
            self._by_slack[constraint] = variable  # type: ignore[index]
        self._variables.append(variable)

        logger.debug("Encoded {} with {} over {} bits: {}", variable, encoding, len(variable.target), variable.expansion)
        if self._warnings and len(variable.target) > LARGE_ENCODING_BITS:
            logger.warning(
                "Encoding {} uses {} bits, consider a larger tolerance or a more compact encoding.",
                repr(variable),
                len(variable.target),
            )
        return variable

    def expansions(self) -> dict[str, PBF]:
        """
        Returns:
            dict[str, PBF]: the expansion of every encoded source variable, by label.
        """
        return {source: variable.expansion for source, variable in self._by_source.items()}

    def set_objective(self, objective: PBF) -> None:
        self._objective = PBF(objective)

    def add_constraint(self, label: str, function: PBF, penalty: Number | None = None) -> None:
        """Adds the penalty function ``ℍᵢ`` of a constraint, which is zero exactly when the constraint holds.

        Raises:
            ValueError: if there is already a constraint with the same label.
        """
        if label in self._constraints:
            raise ValueError(f'constraint "{label}" is already part of the energy')
        self._constraints[label] = PBF(function)
        if penalty is not None:
            self._penalties[label] = penalty

    def set_constraint_penalty(self, label: str, penalty: Number) -> None:
        if label not in self._constraints:
            raise KeyError(f'constraint "{label}" is not part of the energy')
        self._penalties[label] = penalty

    def assemble(self) -> PBF:
        """Builds ``ℍ = ℍ₀ + Σ ρᵢ ℍᵢ + Σ θ χ``.

        Raises:
            ValueError: if a constraint or a validity constraint has no penalty.

        Returns:
            PBF: the total energy.
        """
        energy = self._objective
        for label, function in self._constraints.items():
            if label not in self._penalties:
                raise ValueError(f'constraint "{label}" has no penalty')
            energy += function * self._penalties[label]
        for variable in self._variables:
            if variable.constraint is None:
                continue
            if variable.penalty is None:
                raise ValueError(f"{variable!r} has no encoding penalty")
            energy += variable.constraint * variable.penalty
        self._assembled = energy
        self._energy = energy
        self._normal_form = None
        logger.debug("Assembled an energy of degree {} with {} terms", energy.degree, energy.size)
        return energy

    def quadratize(self, stable: bool = False) -> PBF:
        """Reduces the assembled energy to degree 2, allocating the auxiliary variables in the target model.

        Returns:
            PBF: the quadratized energy.
        """
        result = quadratize(self.energy, allocator=self._allocate_auxiliary, stable=stable)
        self._energy = result.function
        return result.function

    def _allocate_auxiliary(self, n: int) -> list[VariableId]:
        ids = list(self._target.allocate_binary_variables(n))
        for target in ids:
            if target in self._owner or target in self._auxiliary:
                raise DuplicateEncodingError(f"target variable {target!r} is already in use")
            self._target.add_binary_domain_constraint(target)
            self._auxiliary.append(target)
        return ids

    def to_normal_form(self) -> QUBONormalForm:
        """
        Returns:
            QUBONormalForm: the energy in normal form. Integer target variables are used as indices, any other
            identifiers are numbered in allocation order.
        """
        ids = self.target_variables
        if all(isinstance(v, int) and not isinstance(v, bool) and v >= 0 for v in ids):
            return QUBONormalForm.from_pbf(self.energy, num_variables=max(ids, default=-1) + 1)  # type: ignore[type-var]
        return QUBONormalForm.from_pbf(self.energy, index={v: k for k, v in enumerate(ids)}, num_variables=len(ids))

    def export(self, discretize: bool = False, max_denominator: int = 10**6) -> QUBONormalForm:
        """Sets the energy as the objective of the target model.

        Args:
            discretize (bool, optional): rescale the normal form to integer coefficients. Defaults to False.
            max_denominator (int, optional): the largest denominator used to rationalize floats when
                discretizing. Defaults to 10**6.

        Returns:
            QUBONormalForm: the exported normal form.
        """
        normal_form = self.to_normal_form()
        if discretize:
            normal_form = normal_form.discretize(max_denominator)
            logger.debug("Discretized the normal form with scale {}", normal_form.scale)
        self._normal_form = normal_form
        self._target.set_objective(normal_form)
        return normal_form

    def decode(self, sample: Sample) -> dict[str, Number]:
        """Recovers the value of every source variable from an assignment of the target variables.

        Args:
            sample (Sample): the value of the target variables.

        Returns:
            dict[str, Number]: the value of each source variable, by label.
        """
        return {source: variable.decode(sample) for source, variable in self._by_source.items()}

    def energy_of(self, sample: Sample) -> Number:
        """
        Returns:
            Number: the value of the assembled energy (before quadratization) for an assignment of the encoded
            target variables.
        """
        if self._assembled is None:
            raise ValueError("the energy has not been assembled yet")
        return self._assembled.evaluate(sample)

    def is_valid(self, sample: Sample) -> bool:
        """
        Returns:
            bool: whether every validity constraint ``χ`` is zero.
        """
        return all(variable.is_valid(sample) for variable in self._variables)

    def is_feasible(self, sample: Sample) -> bool:
        """
        Returns:
            bool: whether the assignment is valid and every constraint function ``ℍᵢ`` is zero.
        """
        if not self.is_valid(sample):
            return False
        return all(math.isclose(function.evaluate(sample), 0, abs_tol=1e-9) for function in self._constraints.values())
