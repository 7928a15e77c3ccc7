"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PriorityTier(str, Enum):
    """Processing bucket assigned to every scanned file."""

    CRITICAL = "critical"
    STRUCTURAL = "structural"
    CODE = "code"
    EXCLUDED = "excluded"


@dataclass(slots=True)
class FileRecord:
    """A scanned file, keyed by its forward-slash relative path."""

    path: str
    content: str

    @property
    def char_length(self) -> int:
        return len(self.content)


@dataclass(slots=True)
class ClassifiedFile:
    """A file record paired with its priority tier."""

    record: FileRecord
    tier: PriorityTier

    @property
    def path(self) -> str:
        return self.record.path


@dataclass(slots=True)
class Budget:
    """Fixed token ceiling with a running consumed counter."""

    ceiling: int
    consumed: int = 0

    @property
    def remaining(self) -> int:
        return self.ceiling - self.consumed

    def fits(self, tokens: int) -> bool:
        return self.consumed + tokens <= self.ceiling

    def consume(self, tokens: int) -> None:
        if not self.fits(tokens):
            raise ValueError(
                f"Consuming {tokens} tokens would exceed ceiling {self.ceiling}"
            )
        self.consumed += tokens


@dataclass(slots=True)
class SelectedFile:
    """A file whose full or truncated content made it into the context."""

    path: str
    content: str
    truncated: bool = False


@dataclass(slots=True)
class SelectionResult:
    """Outcome of packing classified files into a budget."""

    files: list[SelectedFile] = field(default_factory=list)
    path_only: list[str] = field(default_factory=list)
    total_files: int = 0
    estimated_tokens: int = 0

    @property
    def selected_paths(self) -> list[str]:
        return [item.path for item in self.files]


@dataclass(slots=True)
class TaskDraft:
    """A task to be created as part of a project hierarchy."""

    title: str
    estimated_hours: float
    description: str | None = None
    category: str | None = None


@dataclass(slots=True)
class SprintDraft:
    """A sprint, with its tasks, to be created under a new project."""

    name: str
    description: str | None = None
    tasks: list[TaskDraft] = field(default_factory=list)

    @property
    def estimated_hours(self) -> float:
        return sum(task.estimated_hours for task in self.tasks)


@dataclass(slots=True)
class ToolCallRequest:
    """A tool invocation requested by the model."""

    name: str
    args: dict[str, Any]
    call_id: str


@dataclass(slots=True)
class ToolResult:
    """Text outcome of a tool call, echoed back under the same call id."""

    call_id: str
    name: str
    text: str
    ok: bool = True


@dataclass(slots=True)
class ToolTrace:
    """Trace record for an executed tool call."""

    name: str
    input_payload: dict[str, Any]
    output_preview: str
    latency_ms: float
