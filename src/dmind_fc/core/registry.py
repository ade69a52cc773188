"""
Registries for tool handlers and custom argument validators.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Iterator, Mapping

from dmind_fc.core.datamodels import ValidationIssue
from dmind_fc.core.exceptions import SDKError, ErrorCode, ToolNotFoundError

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Any]
CustomValidator = Callable[[dict[str, Any]], list[ValidationIssue]]


class ToolRegistry:
    """Registry mapping tool names to execution handlers.

    Handlers receive the argument mapping and may be plain functions or
    coroutine functions.
    """

    def __init__(self, handlers: Mapping[str, ToolHandler] | None = None):
        self._handlers: dict[str, ToolHandler] = {}
        for name, fn in (handlers or {}).items():
            self.register(fn, name=name)

    def register(
        self,
        fn: ToolHandler | None = None,
        *,
        name: str | None = None,
    ) -> Callable:
        """
        Register a handler. Can be used as decorator with or without arguments.

        Usage:
            @registry.register
            def SEARCH_TOKEN(args): ...

            @registry.register(name="EXECUTE_SWAP")
            async def swap(args): ...
        """
        def decorator(func: ToolHandler) -> ToolHandler:
            tool_name = (name or func.__name__).strip()
            if not tool_name:
                raise SDKError(ErrorCode.RUNTIME, "Tool handler name is empty.")
            if tool_name in self._handlers:
                raise SDKError(ErrorCode.RUNTIME, f"Tool handler collision: {tool_name}")
            self._handlers[tool_name] = func
            return func

        if fn is not None:
            return decorator(fn)
        return decorator

    def get(self, name: str) -> ToolHandler:
        if name not in self._handlers:
            raise ToolNotFoundError(f"No tool executor registered for {name}.")
        return self._handlers[name]

    async def execute(self, name: str, args: dict[str, Any]) -> Any:
        """Run the handler for *name*. Handler exceptions propagate unchanged."""
        handler = self.get(name)
        logger.debug("Executing tool '%s' with args=%s", name, args)
        result = handler(args)
        if inspect.isawaitable(result):
            result = await result
        return result

    def __contains__(self, name: str) -> bool:
        return name in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)


class ValidatorRegistry:
    """Registry mapping validator names to custom argument checks.

    Profiles reference validators by name, so tool schemas stay plain data.
    """

    def __init__(self, validators: Mapping[str, CustomValidator] | None = None):
        self._validators: dict[str, CustomValidator] = dict(validators or {})

    def register(self, name: str) -> Callable[[CustomValidator], CustomValidator]:
        def decorator(fn: CustomValidator) -> CustomValidator:
            if name in self._validators and self._validators[name] is not fn:
                raise SDKError(ErrorCode.RUNTIME, f"Validator name collision: {name}")
            self._validators[name] = fn
            return fn
        return decorator

    def get(self, name: str) -> CustomValidator | None:
        return self._validators.get(name)

    def merged(self, other: "ValidatorRegistry") -> "ValidatorRegistry":
        """Return a new registry with *other*'s validators layered on top."""
        return ValidatorRegistry({**self._validators, **other._validators})

    def __contains__(self, name: str) -> bool:
        return name in self._validators

    def __iter__(self) -> Iterator[str]:
        return iter(self._validators)

    def __len__(self) -> int:
        return len(self._validators)
