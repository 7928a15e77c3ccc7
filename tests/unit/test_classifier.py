import pytest

from nerve_agent.ingest.classifier import classify, classify_records, normalize_path
from nerve_agent.types import FileRecord, PriorityTier


@pytest.mark.parametrize(
    "path",
    [
        "node_modules/react/package.json",
        ".git/config",
        "web/.next/server/app.js",
        "dist/index.js",
        "packages/api/build/main.py",
        "src/__pycache__/mod.py",
        ".venv/lib/site.py",
        "coverage/lcov.json",
        ".idea/workspace.md",
    ],
)
def test_denylisted_directories_excluded_regardless_of_extension(path: str) -> None:
    assert classify(path) is PriorityTier.EXCLUDED


@pytest.mark.parametrize(
    "path",
    [
        "yarn.lock",
        "package-lock.json",
        "assets/logo.png",
        "public/font.woff2",
        "vendor/app.min.js",
        "static/app.js.map",
        ".env",
        ".env.local",
        "docs/spec.pdf",
        "release.zip",
    ],
)
def test_denylisted_files_excluded(path: str) -> None:
    assert classify(path) is PriorityTier.EXCLUDED


def test_critical_manifest_names_match_by_base_name() -> None:
    assert classify("package.json") is PriorityTier.CRITICAL
    assert classify("apps/web/package.json") is PriorityTier.CRITICAL
    assert classify("README.md") is PriorityTier.CRITICAL
    assert classify("next.config.ts") is PriorityTier.CRITICAL


def test_structural_patterns() -> None:
    assert classify("prisma/schema.prisma") is PriorityTier.STRUCTURAL
    assert classify("src/app/api/projects/route.ts") is PriorityTier.STRUCTURAL
    assert classify("pages/api/hello.ts") is PriorityTier.STRUCTURAL
    assert classify(".env.example") is PriorityTier.STRUCTURAL
    assert classify("docker-compose.yml") is PriorityTier.STRUCTURAL
    assert classify("Dockerfile") is PriorityTier.STRUCTURAL


def test_code_is_allow_list_only() -> None:
    assert classify("src/lib/utils.ts") is PriorityTier.CODE
    assert classify("scripts/migrate.py") is PriorityTier.CODE
    assert classify("bin/tool.exe") is PriorityTier.EXCLUDED
    assert classify("LICENSE") is PriorityTier.EXCLUDED


def test_classify_is_pure_and_normalizes_separators() -> None:
    assert normalize_path(".\\src\\app\\api\\route.ts") == "src/app/api/route.ts"
    first = classify("src\\app\\api\\route.ts")
    assert first is PriorityTier.STRUCTURAL
    assert classify("src\\app\\api\\route.ts") is first


def test_classify_records_assigns_one_tier_each() -> None:
    records = [
        FileRecord(path="package.json", content="{}"),
        FileRecord(path="src/index.ts", content="export {}"),
        FileRecord(path="image.png", content=""),
    ]
    tiers = [item.tier for item in classify_records(records)]
    assert tiers == [PriorityTier.CRITICAL, PriorityTier.CODE, PriorityTier.EXCLUDED]
