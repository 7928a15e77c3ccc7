"""Fault-containing execution boundary between the loop and the tools."""

from __future__ import annotations

import logging
from collections.abc import Callable
from time import perf_counter
from typing import Any

from langchain_core.tools import StructuredTool
from pydantic import ValidationError

from nerve_agent.agent.registry import ToolRegistry, ToolSpec
from nerve_agent.errors import ToolError
from nerve_agent.types import ToolCallRequest, ToolResult, ToolTrace

logger = logging.getLogger(__name__)

GENERIC_FAILURE_TEXT = "Error: The tool failed unexpectedly. Please try again later."


def describe_validation_error(tool_name: str, exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "arguments"
        problems.append(f"{location}: {error.get('msg', 'invalid value')}")
    return f"Error: Invalid arguments for {tool_name}: " + "; ".join(problems)


class ToolDispatcher:
    """Executes tool calls for one caller, always returning text.

    Failure mapping:
    - schema mismatch or unknown tool -> an input-invalid message,
    - `ToolError` subclasses -> their own (model-safe) message,
    - anything else -> logged with traceback, replaced by a generic message.
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry
        self._observer: Callable[[ToolTrace], None] | None = None

    def set_observer(self, observer: Callable[[ToolTrace], None] | None) -> None:
        """Set an optional callback invoked after each dispatched call."""
        self._observer = observer

    def dispatch(self, request: ToolCallRequest, caller_id: str) -> ToolResult:
        start = perf_counter()
        ok = False
        try:
            text = self.registry.execute(request.name, request.args, caller_id)
            ok = True
        except ValidationError as exc:
            text = describe_validation_error(request.name, exc)
        except ToolError as exc:
            text = str(exc)
        except Exception:
            logger.exception(
                "Tool %s failed for call %s", request.name, request.call_id
            )
            text = GENERIC_FAILURE_TEXT
        latency_ms = (perf_counter() - start) * 1000.0

        if self._observer is not None:
            self._observer(
                ToolTrace(
                    name=request.name,
                    input_payload=request.args,
                    output_preview=text[:320],
                    latency_ms=latency_ms,
                )
            )
        return ToolResult(call_id=request.call_id, name=request.name, text=text, ok=ok)

    def execute(self, name: str, payload: dict[str, Any], caller_id: str) -> str:
        return self.dispatch(
            ToolCallRequest(name=name, args=payload, call_id=""), caller_id
        ).text

    def as_langchain_tools(self, caller_id: str) -> list[StructuredTool]:
        """Export the registry as LangChain tools bound to one caller."""

        return [self._build_tool(spec, caller_id) for spec in self.registry.specs()]

    def _build_tool(self, spec: ToolSpec, caller_id: str) -> StructuredTool:
        def _callable(**kwargs: Any) -> str:
            return self.execute(spec.name, kwargs, caller_id)

        return StructuredTool.from_function(
            name=spec.name,
            description=spec.description,
            args_schema=spec.args_schema,
            func=_callable,
        )
