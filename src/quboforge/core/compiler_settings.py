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

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveFloat, PositiveInt, field_validator

from quboforge.settings import get_settings

from .encoding import Encoding, Mirror, encoding_from_name
from .types import Number


def _default_encoding() -> Encoding:
    return encoding_from_name(get_settings().default_encoding_method.value)


class CompilerSettings(BaseModel):
    """
    Options of a single compilation.

    Every default comes from the environment settings (see :class:`~quboforge.settings.QuboForgeSettings`),
    and every per-variable or per-constraint map overrides the corresponding default for the labels it contains.

    Example:
        .. code-block:: python

            from quboforge.core.compiler_settings import CompilerSettings
            from quboforge.core.encoding import OneHot, Unary

            settings = CompilerSettings(
                default_encoding=Unary(),
                variable_encoding={"colour": OneHot()},
                constraint_penalty={"capacity": 25},
            )
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    default_encoding: Encoding = Field(
        default_factory=_default_encoding, description="Encoding of the integer and real variables."
    )
    default_atol: PositiveFloat = Field(
        default_factory=lambda: get_settings().default_encoding_atol,
        description="Tolerance used to size the encoding of real variables.",
    )
    default_bits: PositiveInt | None = Field(
        default=None, description="Number of bits of every encoding, overriding the tolerance based sizing."
    )
    slack_encoding: Encoding | None = Field(
        default=None, description="Encoding of the inequality slack variables. Defaults to ``default_encoding``."
    )
    quadratize: bool = Field(default=True, description="Reduce the energy to degree 2 when it is higher.")
    stable_quadratization: bool = Field(
        default_factory=lambda: get_settings().stable_quadratization,
        description="Use the deterministic quadratization mode.",
    )
    warnings: bool = Field(default=True, description="Emit the compilation warnings.")
    discretize: bool = Field(
        default=False, description="Scale the energy so that every coefficient of the normal form is an integer."
    )
    penalty_max_denominator: PositiveInt = Field(
        default_factory=lambda: get_settings().penalty_max_denominator,
        description="Largest denominator used to rationalize the coefficients when computing penalties.",
    )

    variable_encoding: dict[str, Encoding] = Field(default_factory=dict)
    variable_atol: dict[str, PositiveFloat] = Field(default_factory=dict)
    variable_bits: dict[str, NonNegativeInt] = Field(default_factory=dict)
    variable_penalty: dict[str, Number] = Field(default_factory=dict)
    constraint_penalty: dict[str, Number] = Field(default_factory=dict)
    constraint_atol: dict[str, PositiveFloat] = Field(default_factory=dict)

    @field_validator("default_encoding", "slack_encoding")
    def _reject_mirror(cls, v):
        if isinstance(v, Mirror):
            raise ValueError("the Mirror encoding only represents binary variables and can not be a default or slack encoding")
        return v

    def encoding_for(self, label: str) -> Encoding:
        return self.variable_encoding.get(label, self.default_encoding)

    def atol_for(self, label: str) -> float:
        return self.variable_atol.get(label, self.default_atol)

    def bits_for(self, label: str) -> int | None:
        return self.variable_bits.get(label, self.default_bits)

    def variable_penalty_for(self, label: str) -> Number | None:
        return self.variable_penalty.get(label)

    def slack_encoding_for(self) -> Encoding:
        return self.slack_encoding if self.slack_encoding is not None else self.default_encoding

    def constraint_atol_for(self, label: str) -> float:
        """
        Returns:
            float: the tolerance of the slack variable of the constraint ``label``.
        """
        return self.constraint_atol.get(label, self.default_atol)

    def constraint_penalty_for(self, label: str) -> Number | None:
        return self.constraint_penalty.get(label)
