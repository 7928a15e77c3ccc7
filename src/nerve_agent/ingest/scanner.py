"""Bounded local directory scanning."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from nerve_agent.config import ScanConfig
from nerve_agent.errors import ScanRootInvalid
from nerve_agent.ingest.classifier import classify, is_excluded_dir
from nerve_agent.types import FileRecord, PriorityTier

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ScanResult:
    """Files collected by a scan plus how much of the tree was visited."""

    records: list[FileRecord] = field(default_factory=list)
    visited_files: int = 0
    capped: bool = False


def scan_directory(root: str | Path, config: ScanConfig | None = None) -> ScanResult:
    """Collect readable text files below `root`.

    The walk uses an explicit stack of pending directories. Denylisted and
    dot-directories are pruned before they are listed, so nothing below them
    is ever touched. Every regular file entry counts toward `max_files`; the
    scan stops as soon as that many have been visited. Oversized, binary (NUL
    byte), undecodable and unreadable files are skipped, as are files whose
    names contain a line break.

    Raises:
        ScanRootInvalid: `root` does not exist, is not a directory, or cannot
            be listed.
    """

    config = config or ScanConfig()
    root_path = Path(root)
    if not root_path.exists():
        raise ScanRootInvalid("Error: Directory not found")
    if not root_path.is_dir():
        raise ScanRootInvalid("Error: Path is not a directory")

    result = ScanResult()
    pending: list[Path] = [root_path]
    is_root = True

    while pending:
        directory = pending.pop()
        try:
            with os.scandir(directory) as iterator:
                entries = sorted(iterator, key=lambda entry: entry.name)
        except OSError as exc:
            if is_root:
                raise ScanRootInvalid("Error: Directory could not be read") from exc
            logger.debug("Skipping unreadable directory %s: %s", directory, exc)
            continue
        is_root = False

        subdirectories: list[Path] = []
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                if not is_excluded_dir(entry.name) and not entry.name.startswith("."):
                    subdirectories.append(Path(entry.path))
                continue
            if not entry.is_file(follow_symlinks=False):
                continue

            result.visited_files += 1
            relative_path = Path(entry.path).relative_to(root_path).as_posix()
            if "\n" in relative_path or "\r" in relative_path:
                logger.debug("Skipping file with a line break in its name: %r", relative_path)
            else:
                record = _read_text_file(entry, relative_path, config)
                if record is not None:
                    result.records.append(record)

            if result.visited_files >= config.max_files:
                result.capped = True
                return result

        # Reversed so the stack yields subdirectories in name order.
        pending.extend(reversed(subdirectories))

    return result


def _read_text_file(
    entry: os.DirEntry[str], relative_path: str, config: ScanConfig
) -> FileRecord | None:
    if classify(relative_path) is PriorityTier.EXCLUDED:
        return None
    try:
        if entry.stat(follow_symlinks=False).st_size > config.max_file_bytes:
            return None
        with open(entry.path, "rb") as handle:
            data = handle.read(config.max_file_bytes + 1)
    except OSError as exc:
        logger.debug("Skipping unreadable file %s: %s", entry.path, exc)
        return None

    if len(data) > config.max_file_bytes or b"\0" in data:
        return None
    try:
        content = data.decode("utf-8")
    except UnicodeDecodeError:
        return None
    return FileRecord(path=relative_path, content=content)
