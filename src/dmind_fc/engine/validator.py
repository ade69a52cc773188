"""
Schema validation of extracted tool calls against a model profile.
"""

from __future__ import annotations

import re
from typing import Any

from dmind_fc.core.datamodels import (
    BasicValidationResult,
    ToolCallResult,
    ValidationIssue,
    ValidationResult,
)
from dmind_fc.core.exceptions import ErrorCode
from dmind_fc.core.helpers import is_finite_number, is_plain_object
from dmind_fc.engine.profiles import (
    DMIND_3_NANO_PROFILE,
    ModelProfile,
    ParameterSchema,
    ParameterType,
)


def _invalid(errors: list[ValidationIssue], message: str) -> None:
    errors.append(ValidationIssue(code=ErrorCode.PARAM_INVALID, message=message))


def _check_type(key: str, value: Any, schema: ParameterSchema, errors: list[ValidationIssue]) -> None:
    """Type check plus the constraints that apply to that type."""
    if schema.type is ParameterType.STRING:
        if not isinstance(value, str):
            _invalid(errors, f"{key} must be a string.")
            return
        if schema.non_empty and not value.strip():
            _invalid(errors, f"{key} must be a non-empty string.")
            return
        if schema.pattern and not re.search(schema.pattern, value):
            _invalid(errors, f"{key} does not match pattern {schema.pattern}.")
        return

    if schema.type is ParameterType.NUMBER:
        if not is_finite_number(value):
            _invalid(errors, f"{key} must be a number.")
            return
        if schema.min is not None and value < schema.min:
            _invalid(errors, f"{key} must be >= {schema.min}.")
        if schema.max is not None and value > schema.max:
            _invalid(errors, f"{key} must be <= {schema.max}.")
        return

    if schema.type is ParameterType.BOOLEAN:
        if not isinstance(value, bool):
            _invalid(errors, f"{key} must be a boolean.")
        return

    if not is_plain_object(value):
        _invalid(errors, f"{key} must be an object.")


def _enum_contains(options: list[Any], value: Any) -> bool:
    # True == 1 in Python; keep booleans and numbers apart.
    for option in options:
        if isinstance(option, bool) != isinstance(value, bool):
            continue
        if option == value:
            return True
    return False


def _check_enum(key: str, value: Any, schema: ParameterSchema, errors: list[ValidationIssue]) -> None:
    if schema.enum is None:
        return
    if not _enum_contains(schema.enum, value):
        allowed = ", ".join(str(option) for option in schema.enum)
        _invalid(errors, f"{key} must be one of: {allowed}.")


def validate_detailed(
    call: ToolCallResult,
    profile: ModelProfile = DMIND_3_NANO_PROFILE,
) -> ValidationResult:
    """Validate a tool call and report every violation found.

    Checks run in order: unknown tool (stops immediately), missing required
    parameters, undeclared parameters under a strict schema, per-parameter
    type/range/pattern/enum checks, then the tool's custom validator.
    """
    schema = profile.tools.get(call.tool)
    if schema is None:
        return ValidationResult(ok=False, errors=[ValidationIssue(
            code=ErrorCode.TOOL_UNKNOWN,
            message=f"Tool {call.tool} is not defined in profile {profile.id}.",
        )])

    errors: list[ValidationIssue] = []
    args = call.args or {}

    for key, param in schema.parameters.items():
        if param.required and key not in args:
            errors.append(ValidationIssue(
                code=ErrorCode.PARAM_MISSING,
                message=f"{key} is required for {call.tool}.",
            ))

    if schema.strict:
        for key in args:
            if key not in schema.parameters:
                errors.append(ValidationIssue(
                    code=ErrorCode.PARAM_FORBIDDEN,
                    message=f"{call.tool} does not allow parameter: {key}.",
                ))

    for key, value in args.items():
        param = schema.parameters.get(key)
        if param is None:
            continue
        _check_type(key, value, param, errors)
        _check_enum(key, value, param, errors)

    if schema.custom_validator:
        custom = profile.validators.get(schema.custom_validator)
        errors.extend(custom(args))

    if errors:
        return ValidationResult(ok=False, errors=errors)
    return ValidationResult(ok=True)


def validate(
    call: ToolCallResult,
    profile: ModelProfile = DMIND_3_NANO_PROFILE,
) -> BasicValidationResult:
    """Validate a tool call, flattening issues to ``"<CODE>: <message>"``."""
    detailed = validate_detailed(call, profile)
    if detailed.ok:
        return BasicValidationResult(ok=True)
    return BasicValidationResult(ok=False, errors=[str(issue) for issue in detailed.errors])
