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


class DivideByZeroError(ZeroDivisionError):
    """Raised when a pseudo-boolean function is divided by a zero scalar."""


class InvalidPowerError(ValueError):
    """Raised when a pseudo-boolean function is raised to a negative power."""


class NonConvertibleError(TypeError):
    """Raised when a non-constant pseudo-boolean function is collapsed to a scalar."""


class UnsupportedExpressionError(Exception):
    """Raised when a model uses a function/relation combination that can not be compiled."""


class InvalidToleranceError(ValueError):
    """Raised when a non-positive tolerance is used to size a variable encoding."""


class DuplicateEncodingError(Exception):
    """Raised when a source variable, constraint slack or target variable is encoded more than once."""


class InvalidBoundsError(Exception):
    """Raised when lower/upper bounds are inconsistent or invalid."""


class InfeasibleConstraintError(Exception):
    """Raised when a constraint can never be satisfied given the bounds of its variables."""


class QuadratizationError(Exception):
    """Raised when a degree reduction step can not bound its penalty term."""
