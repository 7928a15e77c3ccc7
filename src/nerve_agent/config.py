"""Configuration models for the codebase-context and agent core."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ContextBudgetConfig(BaseModel):
    """Configures token budgeting for codebase context assembly."""

    token_ceiling: int = Field(default=50_000, ge=1)
    chars_per_token: int = Field(default=4, ge=1)
    max_truncated_lines: int = Field(default=100, ge=1)
    code_floor_tokens: int = Field(default=500, ge=0)
    full_content_fraction: float = Field(default=0.3, gt=0.0, le=1.0)


class ScanConfig(BaseModel):
    """Configures the self-bounding local directory scan."""

    max_files: int = Field(default=500, ge=1)
    max_file_bytes: int = Field(default=1024 * 1024, ge=1)


class AgentConfig(BaseModel):
    """Configures the tool-calling orchestration loop."""

    max_rounds: int = Field(default=10, ge=1)
    max_parallel_tools: int = Field(default=4, ge=1)
    model_name: str = "gpt-4o-mini"
    max_output_tokens: int = Field(default=4096, ge=1)
