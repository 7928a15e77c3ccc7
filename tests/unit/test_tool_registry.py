import pytest
from pydantic import BaseModel, Field, ValidationError

from nerve_agent.agent.registry import ToolRegistry, ToolSpec
from nerve_agent.errors import ToolInputInvalid


class EchoInput(BaseModel):
    value: int = Field(ge=1)


def _echo_spec() -> ToolSpec:
    def _handler(data: EchoInput, caller_id: str) -> str:
        return f"{caller_id}:{data.value}"

    return ToolSpec(
        name="echo",
        description="echo positive int",
        args_schema=EchoInput,
        handler=_handler,
    )


def test_tool_registry_validation() -> None:
    registry = ToolRegistry()
    registry.register(_echo_spec())

    assert registry.execute("echo", {"value": 3}, "user-1") == "user-1:3"

    with pytest.raises(ValidationError):
        registry.execute("echo", {"value": 0}, "user-1")


def test_unknown_tool_is_input_invalid() -> None:
    registry = ToolRegistry()

    with pytest.raises(ToolInputInvalid, match="Unknown tool: nope"):
        registry.execute("nope", {}, "user-1")


def test_duplicate_tool_registration_rejected() -> None:
    registry = ToolRegistry()
    spec = _echo_spec()

    registry.register(spec)
    with pytest.raises(ValueError):
        registry.register(spec)


def test_registry_is_enumerable_in_registration_order() -> None:
    registry = ToolRegistry()
    registry.register(_echo_spec())
    registry.register(
        ToolSpec(
            name="second",
            description="second",
            args_schema=EchoInput,
            handler=lambda data, caller_id: "ok",
        )
    )

    assert registry.names() == ["echo", "second"]
    assert [spec.name for spec in registry.specs()] == ["echo", "second"]
