"""
Error vocabulary shared by every component.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Closed set of error codes reported by the protocol engine."""

    NO_WRAPPER = "E_NO_WRAPPER"
    WRONG_PROTOCOL = "E_WRONG_PROTOCOL"
    JSON_INVALID = "E_JSON_INVALID"
    TOOL_UNKNOWN = "E_TOOL_UNKNOWN"
    PARAM_MISSING = "E_PARAM_MISSING"
    PARAM_FORBIDDEN = "E_PARAM_FORBIDDEN"
    PARAM_INVALID = "E_PARAM_INVALID"
    INVOKE_COUNT = "E_INVOKE_COUNT"
    RUNTIME = "E_RUNTIME"

    def __str__(self) -> str:
        return self.value


class SDKError(Exception):
    """Base exception for errors that cannot be returned as data."""

    def __init__(self, code: ErrorCode | str, message: str, details: Any = None):
        super().__init__(message)
        self.code = ErrorCode(code)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ToolNotFoundError(SDKError):
    """No handler registered for a tool."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(ErrorCode.TOOL_UNKNOWN, message, details)


class ChatAPIError(SDKError):
    """Chat-completions endpoint returned a non-success status."""

    def __init__(self, status_code: int, message: str, details: Any = None):
        super().__init__(ErrorCode.RUNTIME, message, details)
        self.status_code = status_code


class ConfigError(SDKError):
    """Invalid configuration or profile file."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(ErrorCode.RUNTIME, message, details)
