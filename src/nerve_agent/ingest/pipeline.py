"""End-to-end context pipeline: scan -> classify -> allocate -> format."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from nerve_agent.config import ContextBudgetConfig, ScanConfig
from nerve_agent.ingest.allocator import BudgetAllocator
from nerve_agent.ingest.classifier import classify_records
from nerve_agent.ingest.formatter import format_context
from nerve_agent.ingest.scanner import ScanResult, scan_directory
from nerve_agent.types import FileRecord, SelectionResult

EMPTY_SCAN_TEXT = "No readable files found in directory"


@dataclass(slots=True)
class ContextBundle:
    """Formatted context together with the selection that produced it."""

    text: str
    selection: SelectionResult
    scan: ScanResult | None = None


class ContextPipeline:
    """Coordinates scanner/classifier/allocator/formatter stages.

    A fresh `Budget` is created by the allocator on every call, so one
    pipeline instance can serve concurrent requests.
    """

    def __init__(
        self,
        *,
        budget_config: ContextBudgetConfig | None = None,
        scan_config: ScanConfig | None = None,
    ) -> None:
        self.budget_config = budget_config or ContextBudgetConfig()
        self.scan_config = scan_config or ScanConfig()
        self._allocator = BudgetAllocator(self.budget_config)

    def build(self, root: str | Path, *, ceiling: int | None = None) -> ContextBundle:
        """Scan a directory and render it as model context.

        Raises:
            ScanRootInvalid: propagated from the scanner.
        """

        scan = scan_directory(root, self.scan_config)
        if not scan.records:
            return ContextBundle(text=EMPTY_SCAN_TEXT, selection=SelectionResult(), scan=scan)
        bundle = self.build_from_records(scan.records, ceiling=ceiling)
        bundle.scan = scan
        return bundle

    def build_from_records(
        self, records: Iterable[FileRecord], *, ceiling: int | None = None
    ) -> ContextBundle:
        selection = self._allocator.allocate(classify_records(records), ceiling=ceiling)
        return ContextBundle(text=format_context(selection), selection=selection)
