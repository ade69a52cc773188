"""
Core module for the dmind_fc package.

Provides the result models, error vocabulary, primitive helpers and the
handler/validator registries used by the protocol engine.
"""

from dmind_fc.core.datamodels import (
    BasicValidationResult,
    LegacyXmlResult,
    Message,
    ParsedResult,
    ParseErrorResult,
    RunLoopResult,
    TextResult,
    ToolCallResult,
    ValidationIssue,
    ValidationResult,
)
from dmind_fc.core.exceptions import (
    ChatAPIError,
    ConfigError,
    ErrorCode,
    SDKError,
    ToolNotFoundError,
)
from dmind_fc.core.registry import ToolRegistry, ValidatorRegistry

__all__ = [
    # Registries
    "ToolRegistry",
    "ValidatorRegistry",
    # Models
    "Message",
    "ParsedResult",
    "TextResult",
    "ToolCallResult",
    "ParseErrorResult",
    "ValidationIssue",
    "ValidationResult",
    "BasicValidationResult",
    "LegacyXmlResult",
    "RunLoopResult",
    # Exceptions
    "ErrorCode",
    "SDKError",
    "ToolNotFoundError",
    "ChatAPIError",
    "ConfigError",
]
