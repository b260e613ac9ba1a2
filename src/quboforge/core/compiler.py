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
from fractions import Fraction

from loguru import logger

from .compiler_settings import CompilerSettings
from .encoding import Mirror
from .exceptions import InfeasibleConstraintError, InvalidBoundsError, QuadratizationError, UnsupportedExpressionError
from .model import Constraint, Model, ObjectiveSense
from .pbf import PBF, _divide
from .penalties import constraint_penalty, rationalize, step, variable_penalty
from .qubo import TargetModel
from .types import Number
from .variables import ComparisonOperation, Domain, FunctionKind, Variable
from .virtual import VirtualModel

SUPPORTED_FUNCTIONS = frozenset({FunctionKind.CONSTANT, FunctionKind.VARIABLE, FunctionKind.AFFINE, FunctionKind.QUADRATIC})
SUPPORTED_RELATIONS = frozenset({ComparisonOperation.EQ, ComparisonOperation.LEQ, ComparisonOperation.GEQ})


def _is_integral(value: Number) -> bool:
    if isinstance(value, Fraction):
        return value.denominator == 1
    return float(value).is_integer()


def check_support(model: Model) -> None:
    """Checks that every expression of the model can be compiled, before any encoding work.

    Raises:
        UnsupportedExpressionError: naming the first unsupported (function kind, relation) pair.
        InvalidBoundsError: if an integer or real variable is not bounded.
    """
    kind = model.objective.term.kind
    if kind not in SUPPORTED_FUNCTIONS:
        raise UnsupportedExpressionError(
            f'objective "{model.objective.label}" is not supported: ({kind.value}, {model.objective.sense.value})'
        )
    for constraint in model.constraints:
        kind = constraint.term.kind
        operation = constraint.term.operation
        if kind not in SUPPORTED_FUNCTIONS or operation not in SUPPORTED_RELATIONS:
            raise UnsupportedExpressionError(
                f'constraint "{constraint.label}" is not supported: ({kind.value}, {operation.value})'
            )
    for variable in model.variables():
        if variable.domain is not Domain.BINARY and not variable.is_bounded:
            raise InvalidBoundsError(f'variable "{variable.label}" ({variable.domain.value}) must be bounded')


def _encode_variable(virtual: VirtualModel, variable: Variable, settings: CompilerSettings) -> None:
    label = variable.label
    if variable.domain is Domain.BINARY:
        virtual.encode(label, Mirror(), bounds=(0, 1))
        return

    encoding = settings.encoding_for(label)
    bounds = (variable.lower_bound, variable.upper_bound)
    n = settings.bits_for(label)
    if n is not None:
        virtual.encode(label, encoding, bounds=bounds, n=n)
    elif variable.domain is Domain.INTEGER and label not in settings.variable_atol:
        virtual.encode(label, encoding, bounds=bounds)
    else:
        virtual.encode(label, encoding, bounds=bounds, tol=settings.atol_for(label))


def _constraint_residual(
    virtual: VirtualModel, model: Model, constraint: Constraint, settings: CompilerSettings
) -> PBF | None:
    """Builds the residual ``g`` of a constraint, equal to zero exactly when it holds, adding a slack if needed.

    The non-constant part of ``g`` only takes multiples of its step ``δ``. An inequality ``g <= 0`` is tightened
    by rounding the constant up to a multiple of ``δ``, and its slack counts units of ``δ``.

    Returns:
        PBF | None: the residual, or None when the constraint is always feasible.
    """
    label = constraint.label
    operation = constraint.term.operation
    g = rationalize(constraint.term.residual.substitute(virtual.expansions()), settings.penalty_max_denominator)
    if operation is ComparisonOperation.GEQ:
        g = -g

    constant = g.constant_term
    g = g - constant
    delta = step(g, settings.penalty_max_denominator)
    units = _divide(constant, delta)
    if operation is ComparisonOperation.EQ:
        # g == 0 has no solution when the constant is not a multiple of the step
        off_grid = not _is_integral(units)
    else:
        off_grid = False
        constant = _divide(delta * math.ceil(units), 1)
    g = g + constant
    lower, upper = g.bounds()

    if operation is ComparisonOperation.EQ:
        always_feasible = lower == upper == 0
        infeasible = off_grid or lower > 0 or upper < 0
    else:
        always_feasible = upper <= 0
        infeasible = lower > 0

    if infeasible:
        raise InfeasibleConstraintError(f'constraint "{label}" ({constraint.term}) can never be satisfied')
    if always_feasible:
        if settings.warnings:
            logger.warning(f'constraint "{label}" was not added to model "{model.label}" because it is always feasible.')
        return None
    if operation is ComparisonOperation.EQ or lower == 0:
        return g

    # g <= 0 becomes g + δ·s == 0 with the integer slack s in [0, -lower / δ]
    slack_encoding = settings.slack_encoding_for()
    if label in settings.constraint_atol:
        slack = virtual.encode(
            None, slack_encoding, bounds=(0, -lower), tol=settings.constraint_atol_for(label), constraint=label
        )
        return g + slack.expansion
    slack = virtual.encode(None, slack_encoding, bounds=(0, int(_divide(-lower, delta))), constraint=label)
    return g + slack.expansion * delta


def compile_model(
    model: Model, settings: CompilerSettings | None = None, target: TargetModel | None = None
) -> VirtualModel:
    """Compiles a model into a QUBO.

    The variables are encoded over binary variables of the target model, the objective and constraints are
    expanded into pseudo-boolean functions, penalties are calibrated, the energy is reduced to degree 2 and
    its normal form is set as the objective of the target model.

    Args:
        model (Model): the model to compile.
        settings (CompilerSettings | None, optional): the compilation options. Defaults to ``CompilerSettings()``.
        target (TargetModel | None, optional): the model receiving the QUBO. Defaults to a new ``QUBOModel``.

    Raises:
        QuadratizationError: if the energy has degree higher than 2 and quadratization is disabled.

    Returns:
        VirtualModel: the compiled model, which can decode samples of the target variables.

    Example:
        .. code-block:: python

            from quboforge.core import LEQ, Domain, Model, Variable, compile_model

            x = Variable("x", Domain.INTEGER, bounds=(0, 3))
            y = Variable("y", Domain.BINARY)
            model = Model("example")
            model.set_objective(x - 2 * y)
            model.add_constraint("c", LEQ(x + y, 3))
            virtual = compile_model(model)
            normal_form = virtual.normal_form
    """
    settings = settings if settings is not None else CompilerSettings()
    check_support(model)

    virtual = VirtualModel(target, warnings=settings.warnings)
    for variable in model.variables():
        _encode_variable(virtual, variable, settings)
        theta = settings.variable_penalty_for(variable.label)
        if theta is not None:
            virtual.variable(variable.label).penalty = theta

    objective = model.objective.term.substitute(virtual.expansions())
    if model.objective.sense is ObjectiveSense.MAXIMIZE:
        objective = -objective
    virtual.set_objective(objective)

    for constraint in model.constraints:
        residual = _constraint_residual(virtual, model, constraint, settings)
        if residual is None:
            continue
        rho = settings.constraint_penalty_for(constraint.label)
        if rho is None:
            rho = constraint_penalty(objective, residual, settings.penalty_max_denominator)
        logger.debug('Constraint "{}" penalty: {}', constraint.label, rho)
        virtual.add_constraint(constraint.label, residual**2, penalty=rho)

    weighted = objective
    for label, function in virtual.constraints.items():
        weighted += function * virtual.constraint_penalties[label]
    theta = variable_penalty(weighted)
    for variable in virtual.variables:
        if variable.constraint is not None and variable.penalty is None:
            variable.penalty = theta
            logger.debug("{} encoding penalty: {}", variable, theta)

    energy = virtual.assemble()
    if energy.degree > 2:  # noqa: PLR2004
        if not settings.quadratize:
            raise QuadratizationError(f'the energy of model "{model.label}" has degree {energy.degree} and quadratization is disabled')
        virtual.quadratize(stable=settings.stable_quadratization)

    virtual.export(discretize=settings.discretize, max_denominator=settings.penalty_max_denominator)
    logger.debug(
        'Compiled model "{}" into a QUBO over {} variables ({} auxiliary)',
        model.label,
        len(virtual.target_variables),
        len(virtual.auxiliary),
    )
    return virtual
