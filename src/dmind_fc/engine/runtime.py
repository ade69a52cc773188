"""
Turn orchestration: generate, parse, validate, execute, feed back.

run_loop() drives one conversation until the model answers with something
other than a tool call, a call fails validation, or the hop bound is reached.
Only one tool call is processed per hop.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

from dmind_fc.core.datamodels import Message, ParseErrorResult, RunLoopResult, ToolCallResult
from dmind_fc.core.exceptions import ErrorCode
from dmind_fc.engine.toolcall import ProtocolMode

if TYPE_CHECKING:
    from dmind_fc.engine.chat import FunctionCallEngine

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOOL_HOPS = 3


async def run_loop(
    engine: FunctionCallEngine,
    messages: Sequence[Message],
    *,
    max_tool_hops: int = DEFAULT_MAX_TOOL_HOPS,
    mode: ProtocolMode | str | None = None,
    function_response_role: str = "user",
) -> RunLoopResult:
    """Run the tool-calling loop over a conversation.

    Args:
        engine: Supplies generation, parsing, validation and tool execution.
        messages: Starting transcript. It is copied, never mutated.
        max_tool_hops: Maximum number of tools executed before giving up.
        mode: Parse mode override; defaults to the engine's protocol mode.
        function_response_role: Role of the injected function-response turns.

    Returns:
        RunLoopResult with the terminal parse result, the full transcript and
        the number of tools executed.

    Raises:
        SDKError: If the engine has no generation collaborator.
        Exception: Whatever the generation collaborator or a tool handler
            raises propagates unchanged.
    """
    history = list(messages)
    tool_hops = 0

    while True:
        raw = await engine.generate(history)
        history.append(Message(role="assistant", content=raw))
        parsed = engine.parse(raw, mode)

        if not isinstance(parsed, ToolCallResult):
            logger.debug("Run loop finished after %d tool hops (%s)", tool_hops, parsed.type)
            return RunLoopResult(final=parsed, messages=history, tool_hops=tool_hops)

        if tool_hops >= max_tool_hops:
            logger.warning("Tool call count exceeds max_tool_hops=%d; stopping", max_tool_hops)
            return RunLoopResult(
                final=ParseErrorResult(
                    code=ErrorCode.INVOKE_COUNT,
                    message=f"Tool call count exceeds max_tool_hops={max_tool_hops}.",
                    raw=raw,
                ),
                messages=history,
                tool_hops=tool_hops,
            )

        validation = engine.validate_detailed(parsed)
        if not validation.ok:
            return RunLoopResult(
                final=ParseErrorResult(
                    code=ErrorCode.PARAM_INVALID,
                    message="; ".join(str(issue) for issue in validation.errors),
                    raw=raw,
                ),
                messages=history,
                tool_hops=tool_hops,
            )

        logger.debug("Hop %d: executing %s", tool_hops + 1, parsed.tool)
        result = await engine.execute_tool(parsed)
        history.append(Message(
            role=function_response_role,
            content=engine.wrap_function_response({"status": "ok", "result": result}),
        ))
        tool_hops += 1
