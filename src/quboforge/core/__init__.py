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

from .compiler import check_support, compile_model
from .compiler_settings import CompilerSettings
from .encoding import Arithmetic, Binary, Bounded, DomainWall, Encoding, EncodingResult, Mirror, OneHot, Unary
from .exceptions import (
    DivideByZeroError,
    DuplicateEncodingError,
    InfeasibleConstraintError,
    InvalidBoundsError,
    InvalidPowerError,
    InvalidToleranceError,
    NonConvertibleError,
    QuadratizationError,
    UnsupportedExpressionError,
)
from .model import Constraint, Model, Objective, ObjectiveSense
from .pbf import PBF, PseudoBooleanFunction
from .quadratization import QuadratizationResult, quadratize
from .qubo import QUBOModel, QUBONormalForm, TargetModel
from .variables import (
    EQ,
    GEQ,
    GT,
    LEQ,
    LT,
    NEQ,
    ComparisonTerm,
    Domain,
    Equal,
    Expression,
    GreaterThan,
    GreaterThanOrEqual,
    LessThan,
    LessThanOrEqual,
    NotEqual,
    Variable,
)
from .virtual import VirtualModel, VirtualVariable

__all__ = [
    "EQ",
    "GEQ",
    "GT",
    "LEQ",
    "LT",
    "NEQ",
    "PBF",
    "Arithmetic",
    "Binary",
    "Bounded",
    "ComparisonTerm",
    "CompilerSettings",
    "Constraint",
    "DivideByZeroError",
    "Domain",
    "DomainWall",
    "DuplicateEncodingError",
    "Encoding",
    "EncodingResult",
    "Equal",
    "Expression",
    "GreaterThan",
    "GreaterThanOrEqual",
    "InfeasibleConstraintError",
    "InvalidBoundsError",
    "InvalidPowerError",
    "InvalidToleranceError",
    "LessThan",
    "LessThanOrEqual",
    "Mirror",
    "Model",
    "NonConvertibleError",
    "NotEqual",
    "Objective",
    "ObjectiveSense",
    "OneHot",
    "PseudoBooleanFunction",
    "QUBOModel",
    "QUBONormalForm",
    "QuadratizationError",
    "QuadratizationResult",
    "TargetModel",
    "Unary",
    "UnsupportedExpressionError",
    "Variable",
    "VirtualModel",
    "VirtualVariable",
    "check_support",
    "compile_model",
    "quadratize",
]
