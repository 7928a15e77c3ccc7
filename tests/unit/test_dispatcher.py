import logging

from pydantic import BaseModel, Field

from nerve_agent.agent.dispatcher import GENERIC_FAILURE_TEXT, ToolDispatcher
from nerve_agent.agent.registry import ToolRegistry, ToolSpec
from nerve_agent.errors import ToolLookupMiss
from nerve_agent.types import ToolCallRequest


class LookupInput(BaseModel):
    key: str = Field(min_length=1)
    limit: int = Field(default=1, ge=1)


def _dispatcher() -> ToolDispatcher:
    registry = ToolRegistry()

    def _lookup(data: LookupInput, caller_id: str) -> str:
        if data.key == "boom":
            raise RuntimeError("database password is hunter2")
        if data.key != "known":
            raise ToolLookupMiss("Record not found")
        return f"found for {caller_id}"

    registry.register(
        ToolSpec(name="lookup", description="lookup", args_schema=LookupInput, handler=_lookup)
    )
    return ToolDispatcher(registry)


def _call(dispatcher: ToolDispatcher, name: str, args: dict) -> tuple[str, bool]:
    result = dispatcher.dispatch(ToolCallRequest(name=name, args=args, call_id="c1"), "user-1")
    assert result.call_id == "c1"
    return result.text, result.ok


def test_success_returns_handler_text() -> None:
    assert _call(_dispatcher(), "lookup", {"key": "known"}) == ("found for user-1", True)


def test_invalid_shape_becomes_descriptive_text() -> None:
    text, ok = _call(_dispatcher(), "lookup", {"limit": 0})

    assert not ok
    assert text.startswith("Error: Invalid arguments for lookup")
    assert "key" in text
    assert "limit" in text


def test_unknown_tool_becomes_text() -> None:
    text, ok = _call(_dispatcher(), "missing_tool", {})

    assert not ok
    assert text == "Unknown tool: missing_tool"


def test_lookup_miss_uses_its_own_message() -> None:
    assert _call(_dispatcher(), "lookup", {"key": "other"}) == ("Record not found", False)


def test_unexpected_fault_is_logged_and_not_leaked(caplog) -> None:
    with caplog.at_level(logging.ERROR, logger="nerve_agent.agent.dispatcher"):
        text, ok = _call(_dispatcher(), "lookup", {"key": "boom"})

    assert not ok
    assert text == GENERIC_FAILURE_TEXT
    assert "hunter2" not in text
    assert any("lookup" in record.getMessage() for record in caplog.records)


def test_langchain_tools_expose_registry_schema() -> None:
    tools = _dispatcher().as_langchain_tools("user-1")

    assert [tool.name for tool in tools] == ["lookup"]
    assert tools[0].invoke({"key": "known"}) == "found for user-1"
