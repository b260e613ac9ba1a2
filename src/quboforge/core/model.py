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

from typing import Mapping

from quboforge.yaml import yaml

from .types import Number, YamledEnum
from .variables import ComparisonTerm, Expression, Variable, _as_expression


@yaml.register_class
class ObjectiveSense(YamledEnum):
    """An Enumeration of the Objective sense options."""

    MINIMIZE = "minimize"
    MAXIMIZE = "maximize"

    yaml_tag = "!ObjectiveSense"


@yaml.register_class
class Constraint:
    """
    Represent a symbolic constraint inside a ``Model``.

    Example:
        .. code-block:: python

            from quboforge.core.model import Constraint
            from quboforge.core.variables import LEQ, Domain, Variable

            x = Variable("x", Domain.BINARY)
            constraint = Constraint("limit", LEQ(x, 1))
    """

    def __init__(self, label: str, term: ComparisonTerm) -> None:
        """
        Build a constraint defined by a comparison term such as ``x + y <= 2``.

        Args:
            label (str): The constraint's label.
            term (ComparisonTerm): The comparison term that defines the constraint.

        Raises:
            ValueError: if the term provided is not a ComparisonTerm.
        """
        if not isinstance(term, ComparisonTerm):
            raise ValueError(f"the parameter term is expecting a {ComparisonTerm} but received {term.__class__}")
        self._label = label
        self._term = term

    @property
    def label(self) -> str:
        return self._label

    @property
    def term(self) -> ComparisonTerm:
        return self._term

    def variables(self) -> list[Variable]:
        return self._term.variables()

    @property
    def degree(self) -> int:
        return self._term.degree

    def __repr__(self) -> str:
        return f"{self.label}: {self.term}"

    __str__ = __repr__


@yaml.register_class
class Objective:
    """Represent the scalar objective function optimized by a ``Model``."""

    def __init__(
        self, label: str, term: Number | Variable | Expression, sense: ObjectiveSense = ObjectiveSense.MINIMIZE
    ) -> None:
        """
        Args:
            label (str): Objective label.
            term (Number | Variable | Expression): Expression to minimize or maximize.
            sense (ObjectiveSense, optional): Optimization sense. Defaults to ``ObjectiveSense.MINIMIZE``.

        Raises:
            ValueError: if the optimization sense provided is not one that is defined by the ObjectiveSense Enum.
        """
        if not isinstance(sense, ObjectiveSense):
            raise ValueError(f"the objective sense is expecting a {ObjectiveSense} but received {sense.__class__}")
        self._label = label
        self._term = _as_expression(term)
        self._sense = sense

    @property
    def label(self) -> str:
        return self._label

    @property
    def term(self) -> Expression:
        return self._term

    @property
    def sense(self) -> ObjectiveSense:
        return self._sense

    def variables(self) -> list[Variable]:
        return self._term.variables()

    def __repr__(self) -> str:
        return f"{self.label}: {self.sense.value} {self.term}"

    __str__ = __repr__


@yaml.register_class
class Model:
    """
    Aggregate an objective and constraints into an optimization problem.

    Example:
        .. code-block:: python

            from quboforge.core import LEQ, Domain, Model, Variable

            values = [1, 3, 5, 2]
            weights = [3, 2, 4, 5]
            items = [Variable(f"b{i}", Domain.BINARY) for i in range(4)]
            model = Model("Knapsack")
            model.set_objective(sum(v * b for v, b in zip(values, items)), sense=ObjectiveSense.MAXIMIZE)
            model.add_constraint("maximum weight", LEQ(sum(w * b for w, b in zip(weights, items)), 6))
    """

    def __init__(self, label: str) -> None:
        """
        Args:
            label (str): Model label.
        """
        self._label = label
        self._variables: dict[str, Variable] = {}
        self._constraints: dict[str, Constraint] = {}
        self._objective = Objective("obj", 0)

    @property
    def label(self) -> str:
        return self._label

    @property
    def constraints(self) -> list[Constraint]:
        return list(self._constraints.values())

    @property
    def objective(self) -> Objective:
        return self._objective

    def add_variable(self, variable: Variable) -> Variable:
        """Declares a variable in the model, even if no constraint or objective uses it.

        Raises:
            ValueError: if a different variable with the same label is already declared.

        Returns:
            Variable: the declared variable.
        """
        self._register(variable)
        return variable

    def _register(self, variable: Variable) -> None:
        known = self._variables.get(variable.label)
        if known is not None and known != variable:
            raise ValueError(f'variable "{variable.label}" is already declared with a different domain or bounds')
        self._variables[variable.label] = variable

    def variables(self) -> list[Variable]:
        """
        Returns:
            list[Variable]: the variables of the model (declared or used in the constraints/objective), sorted by label.
        """
        return [self._variables[label] for label in sorted(self._variables)]

    def add_constraint(self, label: str, term: ComparisonTerm) -> Constraint:
        """Add a constraint to the model.

        Args:
            label (str): constraint label.
            term (ComparisonTerm): The constraint's comparison term.

        Raises:
            ValueError: if the constraint label is already used in the model.

        Returns:
            Constraint: the added constraint.
        """
        if label in self._constraints:
            raise ValueError(f'Constraint "{label}" already exists:\n \t\t{self._constraints[label]}')
        constraint = Constraint(label=label, term=term)
        for variable in constraint.variables():
            self._register(variable)
        self._constraints[label] = constraint
        return constraint

    def set_objective(
        self, term: Number | Variable | Expression, label: str = "obj", sense: ObjectiveSense = ObjectiveSense.MINIMIZE
    ) -> None:
        """Sets the model's objective.

        Args:
            term (Number | Variable | Expression): the objective expression.
            label (str, optional): the objective's label. Defaults to "obj".
            sense (ObjectiveSense, optional): The optimization sense. Defaults to ObjectiveSense.MINIMIZE.
        """
        objective = Objective(label=label, term=term, sense=sense)
        for variable in objective.variables():
            self._register(variable)
        self._objective = objective

    def evaluate(self, sample: Mapping[str, Number]) -> dict[str, Number | bool]:
        """Evaluates the objective and the constraints of the model given a value for every variable.

        Args:
            sample (Mapping[str, Number]): maps each variable label to its value.

        Returns:
            dict[str, Number | bool]: the objective value under the objective's label, and whether each
            constraint holds under the constraint's label.
        """
        results: dict[str, Number | bool] = {self.objective.label: self.objective.term.evaluate(sample)}
        for constraint in self.constraints:
            results[constraint.label] = constraint.term.evaluate(sample)
        return results

    def __str__(self) -> str:
        output = f"Model name: {self.label} \n"
        output += f"objective ({self.objective.label}): \n\t {self.objective.sense.value} : \n\t {self.objective.term} \n\n"
        if len(self.constraints) > 0:
            output += "subject to the constraint/s: \n"
            for c in self.constraints:
                output += f"\t {c} \n"
        return output

    def __repr__(self) -> str:
        return self.label
