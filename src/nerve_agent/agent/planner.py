"""Bounded tool-calling loop between a chat model and the tool dispatcher."""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage

from nerve_agent.agent.dispatcher import ToolDispatcher
from nerve_agent.agent.registry import ToolRegistry
from nerve_agent.agent.transcript import Transcript
from nerve_agent.config import AgentConfig
from nerve_agent.obs.tracing import Timer, TraceStore
from nerve_agent.types import ToolCallRequest, ToolResult, ToolTrace

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """
You are the assistant integrated into NERVE AGENT, a project management application for software developers.

You have access to tools that let you:
- List and view projects, sprints, and tasks
- Create new projects, sprints, tasks, and notes
- Read local directories to analyze codebases

When the user asks you to import or analyze a codebase, use the read_local_directory tool first, then create a project with appropriate sprints and tasks based on what you find.

If a tool result reports an error, correct the arguments and try again rather than guessing.

Be concise and helpful. When creating projects, organize work into logical sprints with realistic time estimates.
""".strip()


class TerminationSignal(str, Enum):
    FINAL = "final"
    NO_TOOL_CALLS = "no_tool_calls"
    ROUND_LIMIT = "round_limit_exceeded"


@dataclass(slots=True)
class LoopOutcome:
    """Result of one loop invocation."""

    signal: TerminationSignal
    text: str
    rounds: int
    trace_id: str
    tool_calls: int

    @property
    def completed(self) -> bool:
        return self.signal is not TerminationSignal.ROUND_LIMIT


@dataclass(slots=True)
class _RoundPlan:
    message: AIMessage
    requests: list[ToolCallRequest]
    rejected: list[ToolResult]

    @property
    def order(self) -> list[str]:
        return [call["id"] for call in self.message.tool_calls] + [
            call["id"] for call in self.message.invalid_tool_calls
        ]


class AgentLoop:
    """Drives a multi-turn exchange with a tool-calling chat model.

    Each round sends the full transcript to the model. If the reply requests
    tools, every requested call is dispatched (siblings in parallel), all
    results are appended as one batch of `ToolMessage`s, and the model is
    called again. At most `max_rounds` rounds of tool execution happen; a
    request for one more stops the loop with `ROUND_LIMIT`.
    """

    def __init__(
        self,
        *,
        tool_registry: ToolRegistry,
        trace_store: TraceStore,
        llm: Any | None = None,
        config: AgentConfig | None = None,
        model: Any | None = None,
        system_prompt: str = _SYSTEM_PROMPT,
    ) -> None:
        if llm is None and model is None:
            raise ValueError("Either llm or a tool-bound model is required.")
        self.llm = llm
        self.tool_registry = tool_registry
        self.trace_store = trace_store
        self.config = config or AgentConfig()
        self.system_prompt = system_prompt
        self._model = model

    def invoke(
        self,
        message: str,
        *,
        caller_id: str,
        history: list[BaseMessage] | None = None,
        context_note: str | None = None,
    ) -> LoopOutcome:
        """Run the loop until the model answers or the round bound is hit.

        Tool failures never escape: they come back to the model as tool
        result text. Errors raised by the model backend itself propagate.
        """

        dispatcher = ToolDispatcher(self.tool_registry)
        observed: list[ToolTrace] = []
        dispatcher.set_observer(observed.append)

        system_prompt = self.system_prompt
        if context_note:
            system_prompt = f"{system_prompt}\n\n{context_note}"
        transcript = Transcript(system_prompt=system_prompt, history=history)
        transcript.append(HumanMessage(content=message))
        model = self._bind_model(dispatcher, caller_id)

        rounds = 0
        partial_texts: list[str] = []
        with Timer() as timer:
            while True:
                plan = _plan_round(_as_ai_message(model.invoke(transcript.replay())))
                transcript.append(plan.message)
                text = _message_text(plan.message)
                if text:
                    partial_texts.append(text)

                if not plan.order:
                    signal = (
                        TerminationSignal.FINAL if text else TerminationSignal.NO_TOOL_CALLS
                    )
                    answer = text
                    break

                if rounds >= self.config.max_rounds:
                    logger.warning(
                        "Agent loop for caller %s stopped after %d rounds",
                        caller_id,
                        rounds,
                    )
                    signal = TerminationSignal.ROUND_LIMIT
                    answer = "\n\n".join(partial_texts)
                    break

                results = self._execute_round(dispatcher, plan, caller_id)
                transcript.extend(
                    ToolMessage(
                        content=result.text,
                        tool_call_id=result.call_id,
                        name=result.name,
                        status="success" if result.ok else "error",
                    )
                    for result in results
                )
                rounds += 1
                logger.debug(
                    "Round %d dispatched %d tool calls for caller %s",
                    rounds,
                    len(results),
                    caller_id,
                )

        record = self.trace_store.create_record(
            caller_id=caller_id,
            message=message,
            answer=answer,
            signal=signal.value,
            rounds=rounds,
            tool_traces=observed,
            latency_ms=timer.elapsed_ms,
        )
        return LoopOutcome(
            signal=signal,
            text=answer,
            rounds=rounds,
            trace_id=record.trace_id,
            tool_calls=len(observed),
        )

    def _bind_model(self, dispatcher: ToolDispatcher, caller_id: str) -> Any:
        if self._model is not None:
            return self._model
        return self.llm.bind_tools(dispatcher.as_langchain_tools(caller_id))

    def _execute_round(
        self, dispatcher: ToolDispatcher, plan: _RoundPlan, caller_id: str
    ) -> list[ToolResult]:
        if len(plan.requests) > 1:
            workers = min(self.config.max_parallel_tools, len(plan.requests))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                executed = list(
                    pool.map(lambda request: dispatcher.dispatch(request, caller_id), plan.requests)
                )
        else:
            executed = [dispatcher.dispatch(request, caller_id) for request in plan.requests]

        by_id = {result.call_id: result for result in executed + plan.rejected}
        return [by_id[call_id] for call_id in plan.order]


def _plan_round(message: AIMessage) -> _RoundPlan:
    """Give every call a unique id and split valid calls from unparseable ones.

    Missing or repeated ids are replaced before the message is recorded, so
    each id in the transcript is answered by exactly one tool result.
    """

    seen: set[str] = set()

    def _unique_id(raw: Any) -> str:
        call_id = str(raw) if raw else ""
        if not call_id or call_id in seen:
            if call_id:
                logger.warning("Duplicate tool call id %s; assigning a new one", call_id)
            call_id = f"call_{uuid.uuid4().hex[:16]}"
        seen.add(call_id)
        return call_id

    tool_calls = [dict(call, id=_unique_id(call.get("id"))) for call in message.tool_calls]
    invalid_calls = [
        dict(call, id=_unique_id(call.get("id"))) for call in message.invalid_tool_calls
    ]
    if tool_calls != message.tool_calls or invalid_calls != message.invalid_tool_calls:
        message = message.model_copy(
            update={"tool_calls": tool_calls, "invalid_tool_calls": invalid_calls}
        )

    requests = [
        ToolCallRequest(name=call["name"], args=dict(call.get("args") or {}), call_id=call["id"])
        for call in tool_calls
    ]
    rejected = []
    for call in invalid_calls:
        name = call.get("name") or "unknown"
        logger.warning("Model produced unparseable arguments for tool %s", name)
        rejected.append(
            ToolResult(
                call_id=call["id"],
                name=name,
                text=f"Error: Invalid arguments for {name}: arguments were not valid JSON",
                ok=False,
            )
        )
    return _RoundPlan(message=message, requests=requests, rejected=rejected)


def _as_ai_message(response: Any) -> AIMessage:
    if isinstance(response, AIMessage):
        return response
    return AIMessage(content=str(getattr(response, "content", response)))


def _message_text(message: AIMessage) -> str:
    content = message.content
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict):
                if item.get("type", "text") == "text" and "text" in item:
                    parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return "".join(parts).strip()
    return str(content).strip()
