"""
Model profiles: the tools a deployment recognizes and their parameter schemas.

A profile is plain, frozen configuration. Custom checks that cannot be
expressed declaratively live in a ValidatorRegistry and are referenced from
the tool schema by name.

The built-in profile describes DMind-3-nano and its two tools, SEARCH_TOKEN
and EXECUTE_SWAP. Other profiles can be built in code or loaded from a YAML
file with load_profile().
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from dmind_fc.core.datamodels import ValidationIssue
from dmind_fc.core.exceptions import ConfigError, ErrorCode
from dmind_fc.core.helpers import is_likely_token_address, is_non_empty_string
from dmind_fc.core.registry import ValidatorRegistry

logger = logging.getLogger(__name__)

EnumValue = Union[bool, int, float, str]


class ParameterType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"


class ParameterSchema(BaseModel):
    """Declarative constraints for one tool parameter."""
    type: ParameterType
    required: bool = False
    non_empty: bool = False
    enum: list[EnumValue] | None = None
    min: int | float | None = None
    max: int | float | None = None
    pattern: str | None = None
    description: str | None = None

    model_config = {"frozen": True}

    @field_validator("pattern")
    @classmethod
    def _check_pattern(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"invalid pattern {value!r}: {e}") from e
        return value

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type.value}
        if self.description:
            schema["description"] = self.description
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        if self.min is not None:
            schema["minimum"] = self.min
        if self.max is not None:
            schema["maximum"] = self.max
        if self.pattern is not None:
            schema["pattern"] = self.pattern
        if self.non_empty and self.type is ParameterType.STRING:
            schema["minLength"] = 1
        return schema


class ToolSchema(BaseModel):
    """Parameter schema for a single tool."""
    parameters: dict[str, ParameterSchema] = Field(default_factory=dict)
    strict: bool = True
    custom_validator: str | None = None
    description: str | None = None

    model_config = {"frozen": True}

    def to_openai_spec(self, name: str) -> dict[str, Any]:
        """Convert to OpenAI-style tool specification."""
        parameters: dict[str, Any] = {
            "type": "object",
            "properties": {
                key: param.to_json_schema() for key, param in self.parameters.items()
            },
            "required": [key for key, param in self.parameters.items() if param.required],
        }
        if self.strict:
            parameters["additionalProperties"] = False

        function: dict[str, Any] = {"name": name, "parameters": parameters}
        if self.description:
            function["description"] = self.description
        return {"type": "function", "function": function}


class DeveloperPromptPolicy(BaseModel):
    """Developer message a model requires at the head of every conversation."""
    canonical_prompt: str
    required_snippets: list[str] | None = None

    model_config = {"frozen": True}


class ModelProfile(BaseModel):
    """Closed universe of tools for one model deployment."""
    id: str
    tools: dict[str, ToolSchema] = Field(default_factory=dict)
    developer_prompt_policy: DeveloperPromptPolicy | None = None
    validators: ValidatorRegistry = Field(default_factory=ValidatorRegistry, exclude=True)

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @model_validator(mode="after")
    def _check_custom_validators(self) -> ModelProfile:
        for name, schema in self.tools.items():
            if schema.custom_validator and schema.custom_validator not in self.validators:
                raise ValueError(
                    f"tool {name} references unknown validator: {schema.custom_validator}"
                )
        return self

    def tool_names(self) -> frozenset[str]:
        return frozenset(self.tools)

    def to_openai_tools(self) -> list[dict[str, Any]]:
        """Get all tools as OpenAI-style tool specs."""
        return [schema.to_openai_spec(name) for name, schema in self.tools.items()]


# ---------------------------------------------------------------------------
# Built-in validators
# ---------------------------------------------------------------------------

BUILTIN_VALIDATORS = ValidatorRegistry()


@BUILTIN_VALIDATORS.register("search_token")
def validate_search_token(args: dict[str, Any]) -> list[ValidationIssue]:
    errors: list[ValidationIssue] = []

    has_search_seed = any(
        is_non_empty_string(args.get(key)) for key in ("symbol", "address", "keyword")
    )
    if not has_search_seed:
        errors.append(ValidationIssue(
            code=ErrorCode.PARAM_MISSING,
            message="SEARCH_TOKEN requires at least one of symbol, address, or keyword.",
        ))

    address = args.get("address")
    if is_non_empty_string(address) and not is_likely_token_address(address):
        errors.append(ValidationIssue(
            code=ErrorCode.PARAM_INVALID,
            message="SEARCH_TOKEN.address format is invalid.",
        ))

    return errors


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@BUILTIN_VALIDATORS.register("execute_swap")
def validate_execute_swap(args: dict[str, Any]) -> list[ValidationIssue]:
    errors: list[ValidationIssue] = []

    if "inputTokenAmount" in args and "inputTokenPercentage" in args:
        errors.append(ValidationIssue(
            code=ErrorCode.PARAM_FORBIDDEN,
            message="inputTokenAmount and inputTokenPercentage are mutually exclusive.",
        ))

    for key in ("inputTokenAmount", "outputTokenAmount"):
        value = args.get(key)
        if _is_number(value) and value <= 0:
            errors.append(ValidationIssue(
                code=ErrorCode.PARAM_INVALID,
                message=f"{key} must be greater than 0.",
            ))

    for key in ("inputTokenCA", "outputTokenCA"):
        value = args.get(key)
        if is_non_empty_string(value) and not is_likely_token_address(value):
            errors.append(ValidationIssue(
                code=ErrorCode.PARAM_INVALID,
                message=f"{key} format is invalid.",
            ))

    return errors


# ---------------------------------------------------------------------------
# DMind-3-nano
# ---------------------------------------------------------------------------

CHAIN_VALUES = ["solana", "ethereum", "bsc", "base"]

DMIND_3_NANO_DEVELOPER_PROMPT = """You are a model that can do function calling with the following functions.

You may use only two tools: SEARCH_TOKEN and EXECUTE_SWAP.

Do not call any tools besides SEARCH_TOKEN and EXECUTE_SWAP.

For function calls, output only this exact format:
<start_function_call>call:TOOL_NAME{...JSON...}<end_function_call>

If no function call is needed, output normal text without wrappers."""

DMIND_3_NANO_PROFILE = ModelProfile(
    id="dmind-3-nano",
    developer_prompt_policy=DeveloperPromptPolicy(
        canonical_prompt=DMIND_3_NANO_DEVELOPER_PROMPT,
    ),
    tools={
        "SEARCH_TOKEN": ToolSchema(
            description="Search for a cryptocurrency token on-chain to retrieve its metadata or address.",
            custom_validator="search_token",
            parameters={
                "symbol": ParameterSchema(
                    type=ParameterType.STRING,
                    non_empty=True,
                    description="The ticker symbol of the token (e.g., 'SOL', 'USDC').",
                ),
                "address": ParameterSchema(
                    type=ParameterType.STRING,
                    non_empty=True,
                    description="The specific contract address (CA) of the token, if known.",
                ),
                "chain": ParameterSchema(
                    type=ParameterType.STRING,
                    non_empty=True,
                    enum=CHAIN_VALUES,
                    description="The target blockchain network.",
                ),
                "keyword": ParameterSchema(
                    type=ParameterType.STRING,
                    non_empty=True,
                    description="General search keywords (e.g., project name) if symbol/address are unclear.",
                ),
            },
        ),
        "EXECUTE_SWAP": ToolSchema(
            description="Propose a token swap transaction.",
            custom_validator="execute_swap",
            parameters={
                "inputTokenSymbol": ParameterSchema(
                    type=ParameterType.STRING,
                    required=True,
                    non_empty=True,
                    description="Symbol of the token being sold (e.g., 'SOL').",
                ),
                "inputTokenCA": ParameterSchema(
                    type=ParameterType.STRING,
                    non_empty=True,
                    description="Contract address of the token being sold.",
                ),
                "outputTokenCA": ParameterSchema(
                    type=ParameterType.STRING,
                    non_empty=True,
                    description="Contract address of the token being bought.",
                ),
                "inputTokenAmount": ParameterSchema(
                    type=ParameterType.NUMBER,
                    description="Absolute amount of input token to swap.",
                ),
                "inputTokenPercentage": ParameterSchema(
                    type=ParameterType.NUMBER,
                    min=0,
                    max=1,
                    description="Percentage of balance to swap (0.0 to 1.0), used if exact amount is not specified.",
                ),
                "outputTokenAmount": ParameterSchema(
                    type=ParameterType.NUMBER,
                    description="Minimum amount of output token expected (optional/slippage related).",
                ),
            },
        ),
    },
    validators=BUILTIN_VALIDATORS,
)


def tool_name_set(profile: ModelProfile) -> frozenset[str]:
    return profile.tool_names()


def load_profile(path: Path | str, validators: ValidatorRegistry | None = None) -> ModelProfile:
    """Load a model profile from a YAML (or JSON) file.

    Args:
        path: File describing ``id``, ``tools`` and optionally
            ``developer_prompt_policy``.
        validators: Extra custom validators, layered over the built-ins.

    Returns:
        A frozen ModelProfile.

    Raises:
        ConfigError: If the file cannot be read, does not describe a profile,
            or references an unknown custom validator.
    """
    profile_path = Path(path)
    try:
        data = yaml.safe_load(profile_path.read_text())
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read profile file {profile_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Profile file {profile_path} must contain a mapping.")

    registry = BUILTIN_VALIDATORS.merged(validators) if validators else BUILTIN_VALIDATORS

    try:
        profile = ModelProfile.model_validate({**data, "validators": registry})
    except ValidationError as e:
        raise ConfigError(f"Invalid profile file {profile_path}: {e}") from e

    logger.debug("Loaded profile '%s' with %d tools from %s", profile.id, len(profile.tools), profile_path)
    return profile
