"""Tiered token-budget packing of classified files."""

from __future__ import annotations

import math
from collections.abc import Sequence

from nerve_agent.config import ContextBudgetConfig
from nerve_agent.types import (
    Budget,
    ClassifiedFile,
    PriorityTier,
    SelectedFile,
    SelectionResult,
)


def estimate_tokens(text: str, chars_per_token: int = 4) -> int:
    return math.ceil(len(text) / chars_per_token)


def truncate_lines(content: str, max_lines: int) -> tuple[str, bool]:
    """Keep the first `max_lines` lines and append an omission marker."""

    lines = content.split("\n")
    if len(lines) <= max_lines:
        return content, False
    kept = "\n".join(lines[:max_lines])
    omitted = len(lines) - max_lines
    return f"{kept}\n\n... ({omitted} lines omitted)", True


class BudgetAllocator:
    """Packs classified files into a fixed token ceiling.

    Policy:
    1. Tiers are processed CRITICAL -> STRUCTURAL -> CODE. CRITICAL and
       STRUCTURAL keep their input order; CODE is sorted by path.
    2. CRITICAL/STRUCTURAL files are tried in full, then truncated to
       `max_truncated_lines`, and only then recorded as path-only.
    3. CODE files are taken in full while they are small relative to what is
       left (`full_content_fraction` of the remaining budget), truncated while
       they are smaller than the remaining budget, otherwise path-only.
       Once the remaining budget drops under `code_floor_tokens` every
       remaining CODE file is path-listed without further checks.

    EXCLUDED files are dropped without being listed. `Budget.consume` guards
    the ceiling, so the consumed total can never exceed it.
    """

    def __init__(self, config: ContextBudgetConfig | None = None) -> None:
        self.config = config or ContextBudgetConfig()

    def allocate(
        self,
        files: Sequence[ClassifiedFile],
        *,
        ceiling: int | None = None,
    ) -> SelectionResult:
        budget = Budget(ceiling=ceiling if ceiling is not None else self.config.token_ceiling)
        result = SelectionResult(total_files=len(files))

        critical = [item for item in files if item.tier is PriorityTier.CRITICAL]
        structural = [item for item in files if item.tier is PriorityTier.STRUCTURAL]
        code = sorted(
            (item for item in files if item.tier is PriorityTier.CODE),
            key=lambda item: item.path,
        )

        for item in critical + structural:
            self._place_priority_file(item, budget, result)

        for index, item in enumerate(code):
            if budget.remaining < self.config.code_floor_tokens:
                result.path_only.extend(rest.path for rest in code[index:])
                break
            self._place_code_file(item, budget, result)

        result.estimated_tokens = budget.consumed
        return result

    def _place_priority_file(
        self, item: ClassifiedFile, budget: Budget, result: SelectionResult
    ) -> None:
        content = item.record.content
        if self._try_take(item.path, content, False, budget, result):
            return
        truncated, was_truncated = truncate_lines(content, self.config.max_truncated_lines)
        if was_truncated and self._try_take(item.path, truncated, True, budget, result):
            return
        result.path_only.append(item.path)

    def _place_code_file(
        self, item: ClassifiedFile, budget: Budget, result: SelectionResult
    ) -> None:
        content = item.record.content
        tokens = self._estimate(content)
        remaining = budget.remaining

        if tokens < remaining * self.config.full_content_fraction:
            if self._try_take(item.path, content, False, budget, result):
                return
        elif tokens < remaining:
            truncated, was_truncated = truncate_lines(content, self.config.max_truncated_lines)
            if self._try_take(item.path, truncated, was_truncated, budget, result):
                return
        result.path_only.append(item.path)

    def _try_take(
        self,
        path: str,
        content: str,
        truncated: bool,
        budget: Budget,
        result: SelectionResult,
    ) -> bool:
        tokens = self._estimate(content)
        if not budget.fits(tokens):
            return False
        budget.consume(tokens)
        result.files.append(SelectedFile(path=path, content=content, truncated=truncated))
        return True

    def _estimate(self, text: str) -> int:
        return estimate_tokens(text, self.config.chars_per_token)
