"""Path-based priority classification for codebase files."""

from __future__ import annotations

import re
from collections.abc import Iterable

from nerve_agent.types import ClassifiedFile, FileRecord, PriorityTier

EXCLUDED_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        ".next",
        "dist",
        "build",
        ".cache",
        "coverage",
        ".vscode",
        ".idea",
        "__pycache__",
        "venv",
        ".venv",
    }
)

EXCLUDED_NAMES = frozenset(
    {
        ".DS_Store",
        ".env",
        ".env.local",
        ".env.production",
        "yarn.lock",
        "package-lock.json",
        "pnpm-lock.yaml",
        "poetry.lock",
    }
)

_EXCLUDED_NAME_PATTERNS = (
    re.compile(r"^\.pnp\..*$"),
    re.compile(r"\.map$"),
    re.compile(r"\.(min|chunk|bundle)\.(js|css)$"),
    re.compile(r"\.(png|jpg|jpeg|gif|ico|svg|webp|avif)$", re.IGNORECASE),
    re.compile(r"\.(woff|woff2|ttf|eot|otf)$", re.IGNORECASE),
    re.compile(r"\.(mp3|mp4|wav|avi|mov|webm)$", re.IGNORECASE),
    re.compile(r"\.(pdf|doc|docx|xls|xlsx|ppt|pptx)$", re.IGNORECASE),
    re.compile(r"\.(zip|tar|gz|rar|7z)$", re.IGNORECASE),
)

CRITICAL_NAMES = frozenset(
    {
        "package.json",
        "README.md",
        "readme.md",
        "README",
        "tsconfig.json",
        "next.config.js",
        "next.config.mjs",
        "next.config.ts",
        "vite.config.ts",
        "vite.config.js",
        "pyproject.toml",
    }
)

_STRUCTURAL_PATTERNS = (
    re.compile(r"^prisma/schema\.prisma$"),
    re.compile(r"^src/app/.*/route\.ts$"),
    re.compile(r"^src/pages/api/.*\.ts$"),
    re.compile(r"^app/.*/route\.ts$"),
    re.compile(r"^pages/api/.*\.ts$"),
    re.compile(r"^\.env\.example$"),
    re.compile(r"^docker-compose\.ya?ml$"),
    re.compile(r"^Dockerfile$"),
)

CODE_EXTENSIONS = (
    ".ts",
    ".tsx",
    ".js",
    ".jsx",
    ".mjs",
    ".cjs",
    ".json",
    ".prisma",
    ".graphql",
    ".gql",
    ".css",
    ".scss",
    ".sass",
    ".less",
    ".yaml",
    ".yml",
    ".toml",
    ".md",
    ".mdx",
    ".sql",
    ".py",
    ".go",
    ".rs",
    ".java",
    ".kt",
    ".swift",
    ".rb",
    ".php",
    ".vue",
    ".svelte",
)


def normalize_path(path: str) -> str:
    """Return a forward-slash relative path without a leading `./`."""

    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.lstrip("/")


def is_excluded_dir(name: str) -> bool:
    return name in EXCLUDED_DIRS


def classify(path: str) -> PriorityTier:
    """Assign exactly one tier to a path; first matching rule wins.

    Rules, in order:
    1. Denylisted directory segment or file name/extension -> EXCLUDED.
    2. Base name in the manifest set -> CRITICAL.
    3. Schema, routed handler, env example or container descriptor -> STRUCTURAL.
    4. Extension in the source/text allow-set -> CODE.

    Anything else is EXCLUDED as well: not being denylisted does not make a
    file eligible.
    """

    normalized = normalize_path(path)
    segments = normalized.split("/")
    name = segments[-1]

    if any(is_excluded_dir(segment) for segment in segments[:-1]):
        return PriorityTier.EXCLUDED
    if name in EXCLUDED_NAMES or any(p.search(name) for p in _EXCLUDED_NAME_PATTERNS):
        return PriorityTier.EXCLUDED

    if name in CRITICAL_NAMES:
        return PriorityTier.CRITICAL

    if any(pattern.match(normalized) for pattern in _STRUCTURAL_PATTERNS):
        return PriorityTier.STRUCTURAL

    if normalized.lower().endswith(CODE_EXTENSIONS):
        return PriorityTier.CODE

    return PriorityTier.EXCLUDED


def classify_records(records: Iterable[FileRecord]) -> list[ClassifiedFile]:
    return [ClassifiedFile(record=record, tier=classify(record.path)) for record in records]
