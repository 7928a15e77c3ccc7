"""Nerve Agent codebase-context and tool-calling core."""

from .config import AgentConfig, ContextBudgetConfig, ScanConfig

__all__ = ["AgentConfig", "ContextBudgetConfig", "ScanConfig"]
