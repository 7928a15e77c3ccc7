"""FastAPI entrypoint for context, chat, and trace endpoints."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, Header, HTTPException
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from pydantic import BaseModel, Field

from nerve_agent.agent.planner import AgentLoop
from nerve_agent.agent.registry import ToolRegistry
from nerve_agent.agent.tools import register_builtin_tools
from nerve_agent.config import AgentConfig, ContextBudgetConfig, ScanConfig
from nerve_agent.errors import ScanRootInvalid
from nerve_agent.ingest.pipeline import ContextPipeline
from nerve_agent.obs.tracing import TraceStore
from nerve_agent.store.repository import ProjectStore

logger = logging.getLogger(__name__)


def _create_llm(config: AgentConfig) -> Any:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return None

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=config.model_name,
        temperature=0,
        max_tokens=config.max_output_tokens,
    )


class ChatTurn(BaseModel):
    role: str = Field(pattern="^(user|assistant)$")
    content: str


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    history: list[ChatTurn] = Field(default_factory=list)
    current_project_slug: str | None = None


class ContextRequest(BaseModel):
    path: str = Field(min_length=1)
    token_ceiling: int | None = Field(default=None, ge=1)


app = FastAPI(title="Nerve Agent Core", version="0.1.0")

_agent_config = AgentConfig(model_name=os.getenv("OPENAI_MODEL", "gpt-4o-mini"))
_store = ProjectStore(os.getenv("NERVE_AGENT_DB", "nerve_agent.db"))
_pipeline = ContextPipeline(budget_config=ContextBudgetConfig(), scan_config=ScanConfig())
_registry = ToolRegistry()
register_builtin_tools(_registry, _store, pipeline=_pipeline)

_trace_store = TraceStore()
_llm = _create_llm(_agent_config)


def _history_messages(turns: list[ChatTurn]) -> list[BaseMessage]:
    return [
        HumanMessage(content=turn.content)
        if turn.role == "user"
        else AIMessage(content=turn.content)
        for turn in turns
    ]


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "llm_configured": _llm is not None,
        "tools": _registry.names(),
        "trace_count": len(_trace_store.list_recent(limit=1000)),
    }


@app.post("/context")
def build_context(
    request: ContextRequest,
    x_user_id: str = Header(..., min_length=1),
) -> dict[str, Any]:
    logger.info("Building context for caller %s", x_user_id)
    try:
        bundle = _pipeline.build(request.path, ceiling=request.token_ceiling)
    except ScanRootInvalid as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if bundle.scan is not None and not bundle.scan.records:
        raise HTTPException(status_code=400, detail=bundle.text)

    selection = bundle.selection
    return {
        "context": bundle.text,
        "stats": {
            "total_files": selection.total_files,
            "analyzed_files": len(selection.files),
            "path_only_files": len(selection.path_only),
            "estimated_tokens": selection.estimated_tokens,
            "scan_capped": bundle.scan.capped if bundle.scan is not None else False,
        },
    }


@app.post("/chat")
def chat(
    request: ChatRequest,
    x_user_id: str = Header(..., min_length=1),
) -> dict[str, Any]:
    if _llm is None:
        raise HTTPException(status_code=503, detail="No language model configured")

    loop = AgentLoop(
        llm=_llm,
        tool_registry=_registry,
        trace_store=_trace_store,
        config=_agent_config,
    )
    context_note = None
    if request.current_project_slug:
        context_note = (
            f"The user is currently viewing project: {request.current_project_slug}"
        )
    try:
        outcome = loop.invoke(
            request.message,
            caller_id=x_user_id,
            history=_history_messages(request.history),
            context_note=context_note,
        )
    except Exception as exc:
        logger.exception("Agent loop failed for caller %s", x_user_id)
        raise HTTPException(status_code=502, detail="Model request failed") from exc

    return {
        "response": outcome.text,
        "completed": outcome.completed,
        "signal": outcome.signal.value,
        "rounds": outcome.rounds,
        "tool_calls": outcome.tool_calls,
        "trace_id": outcome.trace_id,
    }


@app.get("/traces")
def traces(limit: int = 20) -> dict[str, Any]:
    records = [asdict(record) for record in _trace_store.list_recent(limit=limit)]
    return {"items": records}


@app.get("/traces/{trace_id}")
def trace_detail(trace_id: str) -> dict[str, Any]:
    try:
        record = _trace_store.get(trace_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return asdict(record)


@app.get("/metrics")
def metrics() -> dict[str, Any]:
    return _trace_store.summary()
