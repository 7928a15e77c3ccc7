"""Tool-level failures whose messages are safe to return to the model."""

from __future__ import annotations


class ToolError(Exception):
    """Base class for failures surfaced to the model as tool-result text."""


class ToolInputInvalid(ToolError):
    """Arguments were missing, malformed, or named an unknown tool."""


class ToolLookupMiss(ToolError):
    """A caller-scoped lookup found nothing.

    Raised identically whether the record does not exist or belongs to
    another caller.
    """


class ScanRootInvalid(ToolError):
    """The directory scan root is missing or not a directory."""
