"""
Function-calling engine facade.

FunctionCallEngine binds a model profile, a protocol mode, a generation
collaborator and a tool registry, and exposes the parse, validate, execute and
interop operations against them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Literal, Mapping, Sequence

from dmind_fc.core.datamodels import (
    BasicValidationResult,
    LegacyXmlResult,
    Message,
    ParsedResult,
    ParseErrorResult,
    RunLoopResult,
    ToolCallResult,
    ValidationResult,
)
from dmind_fc.core.exceptions import ErrorCode, SDKError
from dmind_fc.core.registry import ToolHandler, ToolRegistry
from dmind_fc.engine import interop, toolcall, validator
from dmind_fc.engine.contract import enforce_developer_prompt
from dmind_fc.engine.profiles import DMIND_3_NANO_PROFILE, ModelProfile, load_profile
from dmind_fc.engine.runtime import DEFAULT_MAX_TOOL_HOPS, run_loop
from dmind_fc.engine.toolcall import ProtocolMode

if TYPE_CHECKING:
    from dmind_fc.config import Config

logger = logging.getLogger(__name__)

GenerateFn = Callable[[list[Message]], Awaitable[str]]


class FunctionCallEngine:
    """Protocol engine for one model deployment.

    Args:
        profile: Tool profile; defaults to DMind-3-nano.
        protocol_mode: Default parse mode (``official``, ``dual`` or ``legacy``).
        generate: Async callable producing raw model text from a transcript.
        tools: Tool handlers, as a ToolRegistry or a name -> callable mapping.
        max_tool_hops: Default hop bound for run().
        function_response_role: Default role of function-response turns in run().
    """

    def __init__(
        self,
        profile: ModelProfile = DMIND_3_NANO_PROFILE,
        protocol_mode: ProtocolMode | str = ProtocolMode.OFFICIAL,
        generate: GenerateFn | None = None,
        tools: ToolRegistry | Mapping[str, ToolHandler] | None = None,
        max_tool_hops: int = DEFAULT_MAX_TOOL_HOPS,
        function_response_role: str = "user",
    ):
        self.profile = profile
        self.protocol_mode = ProtocolMode(protocol_mode)
        self._generate = generate
        self.tools = tools if isinstance(tools, ToolRegistry) else ToolRegistry(tools)
        self.allowed_tools = profile.tool_names()
        self.max_tool_hops = max_tool_hops
        self.function_response_role = function_response_role

    @classmethod
    def from_config(
        cls,
        config: Config,
        generate: GenerateFn | None = None,
        tools: ToolRegistry | Mapping[str, ToolHandler] | None = None,
    ) -> FunctionCallEngine:
        """Build an engine from a Config (profile file, protocol mode, loop defaults)."""
        profile_path = config.get("profile_path")
        profile = load_profile(profile_path) if profile_path else DMIND_3_NANO_PROFILE
        return cls(
            profile=profile,
            protocol_mode=config.get("protocol_mode"),
            generate=generate,
            tools=tools,
            max_tool_hops=config.get("max_tool_hops"),
            function_response_role=config.get("function_response_role"),
        )

    # ------------------------------------------------------------------
    # Generation and parsing
    # ------------------------------------------------------------------

    async def generate(self, messages: Sequence[Message]) -> str:
        """Call the generation collaborator with the prompt contract applied.

        Raises:
            SDKError: E_RUNTIME if no generation collaborator is configured.
        """
        if self._generate is None:
            raise SDKError(
                ErrorCode.RUNTIME,
                "generate is not configured. Pass generate= to FunctionCallEngine.",
            )
        prepared = enforce_developer_prompt(list(messages), self.profile.developer_prompt_policy)
        return await self._generate(prepared)

    def parse(self, raw: str, mode: ProtocolMode | str | None = None) -> ParsedResult:
        """Parse raw output, restricted to the profile's tools."""
        return toolcall.parse_assistant_output(raw, mode or self.protocol_mode, self.allowed_tools)

    def validate(self, call: ToolCallResult) -> BasicValidationResult:
        return validator.validate(call, self.profile)

    def validate_detailed(self, call: ToolCallResult) -> ValidationResult:
        return validator.validate_detailed(call, self.profile)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute_tool(self, call: ToolCallResult) -> Any:
        """Validate a call and run its handler.

        Raises:
            SDKError: With the first issue's code if validation fails.
            ToolNotFoundError: If no handler is registered for the tool.
        """
        validation = validator.validate_detailed(call, self.profile)
        if not validation.ok:
            raise SDKError(
                validation.errors[0].code,
                "; ".join(str(issue) for issue in validation.errors),
                validation.errors,
            )
        return await self.tools.execute(call.tool, call.args)

    def wrap_function_response(self, payload: Any) -> str:
        return toolcall.wrap_function_response(payload)

    def convert_official_to_legacy_xml(self, raw: str) -> LegacyXmlResult | ParseErrorResult:
        return toolcall.convert_official_to_legacy_xml(raw)

    # ------------------------------------------------------------------
    # OpenAI interop
    # ------------------------------------------------------------------

    def to_openai_message(
        self, raw: str, mode: ProtocolMode | str | None = None
    ) -> interop.InteropResult:
        """Raw model text -> OpenAI-style assistant message."""
        return interop.raw_to_openai_message(raw, mode or self.protocol_mode, self.allowed_tools)

    def from_openai_message(
        self, message: Any, protocol: Literal["official", "legacy"] = "official"
    ) -> interop.RawResult | ParseErrorResult:
        """OpenAI-style assistant message -> raw text protocol."""
        return interop.openai_message_to_raw(message, protocol, self.allowed_tools)

    def tool_result_as_openai(self, tool_call_id: str, payload: Any) -> interop.OpenAIToolMessage:
        return interop.tool_result_message(tool_call_id, payload)

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def run(
        self,
        messages: Sequence[Message],
        *,
        max_tool_hops: int | None = None,
        mode: ProtocolMode | str | None = None,
        function_response_role: str | None = None,
    ) -> RunLoopResult:
        """Drive generate -> parse -> validate -> execute until a final answer."""
        logger.debug("Starting run loop with %d messages", len(messages))
        return await run_loop(
            self,
            messages,
            max_tool_hops=self.max_tool_hops if max_tool_hops is None else max_tool_hops,
            mode=mode,
            function_response_role=function_response_role or self.function_response_role,
        )
