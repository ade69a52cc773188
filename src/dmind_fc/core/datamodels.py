"""
Data models for parse, validation and run-loop results.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from dmind_fc.core.exceptions import ErrorCode

Role = Literal["developer", "user", "assistant", "system", "tool"]
Protocol = Literal["official", "legacy"]


class Message(BaseModel):
    """Single conversation turn."""
    role: Role
    content: str | None = None

    model_config = {"frozen": True}


class TextResult(BaseModel):
    """Model output with no tool-call encoding."""
    type: Literal["text"] = "text"
    text: str
    raw: str

    model_config = {"frozen": True}


class ToolCallResult(BaseModel):
    """A single, syntactically valid tool invocation."""
    type: Literal["tool_call"] = "tool_call"
    tool: str
    args: dict[str, Any] = Field(default_factory=dict)
    raw: str = ""
    protocol: Protocol = "official"

    model_config = {"frozen": True}


class ParseErrorResult(BaseModel):
    """Extraction failure, returned as data."""
    type: Literal["parse_error"] = "parse_error"
    code: ErrorCode
    message: str
    raw: str

    model_config = {"frozen": True}


ParsedResult = Annotated[
    Union[TextResult, ToolCallResult, ParseErrorResult],
    Field(discriminator="type"),
]


class ValidationIssue(BaseModel):
    """One schema violation."""
    code: ErrorCode
    message: str

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationResult(BaseModel):
    """Detailed validation outcome."""
    ok: bool
    errors: list[ValidationIssue] = Field(default_factory=list)


class BasicValidationResult(BaseModel):
    """Validation outcome with issues flattened to ``"<CODE>: <message>"``."""
    ok: bool
    errors: list[str] = Field(default_factory=list)


class LegacyXmlResult(BaseModel):
    """Successful official-to-legacy conversion."""
    ok: Literal[True] = True
    xml: str


class RunLoopResult(BaseModel):
    """Outcome of a run loop: terminal result, transcript and hop count."""
    final: ParsedResult
    messages: list[Message]
    tool_hops: int = 0
