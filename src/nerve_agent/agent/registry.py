"""Tool registry built on Pydantic v2 models."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from nerve_agent.errors import ToolInputInvalid


class ToolSpec(BaseModel):
    """Declarative tool specification for registration and validation.

    `args_schema` documents the argument shape for the model and is also the
    decode step: `invoke` validates the raw payload into it before the
    handler runs.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    args_schema: type[BaseModel]
    handler: Callable[[Any, str], str]
    tags: list[str] = Field(default_factory=list)

    def invoke(self, payload: dict[str, Any], caller_id: str) -> str:
        data = self.args_schema.model_validate(payload)
        return self.handler(data, caller_id)


class ToolRegistry:
    """Stores tool specs in registration order."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._tools[spec.name] = spec

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def execute(self, name: str, payload: dict[str, Any], caller_id: str) -> str:
        """Run a tool and let any failure propagate.

        Raises:
            ToolInputInvalid: no tool is registered under `name`.
            pydantic.ValidationError: `payload` does not match the schema.
        """

        spec = self._tools.get(name)
        if spec is None:
            raise ToolInputInvalid(f"Unknown tool: {name}")
        return spec.invoke(payload, caller_id)

    def specs(self) -> list[ToolSpec]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)
