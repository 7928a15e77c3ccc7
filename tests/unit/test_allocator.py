from nerve_agent.config import ContextBudgetConfig
from nerve_agent.ingest.allocator import BudgetAllocator, estimate_tokens, truncate_lines
from nerve_agent.types import ClassifiedFile, FileRecord, PriorityTier


def _file(path: str, tokens: int, tier: PriorityTier, *, line_width: int = 80) -> ClassifiedFile:
    chars = tokens * 4
    line = "x" * (line_width - 1)
    lines = []
    while sum(len(item) + 1 for item in lines) < chars:
        lines.append(line)
    content = "\n".join(lines)[:chars]
    return ClassifiedFile(record=FileRecord(path=path, content=content), tier=tier)


def test_estimate_tokens_is_ceiling_of_quarter_length() -> None:
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_truncate_lines_appends_omission_marker() -> None:
    content = "\n".join(f"line {i}" for i in range(10))
    truncated, was_truncated = truncate_lines(content, 3)
    assert was_truncated
    assert truncated.startswith("line 0\nline 1\nline 2")
    assert truncated.endswith("... (7 lines omitted)")
    assert truncate_lines("short", 3) == ("short", False)


def test_scenario_critical_full_and_large_code_not_full() -> None:
    allocator = BudgetAllocator(ContextBudgetConfig(token_ceiling=1000))
    critical = _file("package.json", 200, PriorityTier.CRITICAL)
    code = _file("src/big.ts", 5000, PriorityTier.CODE)

    result = allocator.allocate([code, critical])

    assert result.files[0].path == "package.json"
    assert result.files[0].content == critical.record.content
    assert not any(item.path == "src/big.ts" and not item.truncated for item in result.files)
    assert result.estimated_tokens <= 1000
    assert "src/big.ts" in result.path_only


def test_oversized_files_never_included_in_full() -> None:
    allocator = BudgetAllocator(ContextBudgetConfig(token_ceiling=300, max_truncated_lines=5))
    files = [
        _file("README.md", 400, PriorityTier.CRITICAL),
        _file("Dockerfile", 350, PriorityTier.STRUCTURAL),
        _file("src/a.ts", 50, PriorityTier.CODE),
    ]

    result = allocator.allocate(files)

    by_path = {item.path: item for item in result.files}
    assert by_path["README.md"].truncated
    assert "lines omitted" in by_path["README.md"].content
    assert result.estimated_tokens <= 300
    for item in result.files:
        assert item.truncated or estimate_tokens(item.content) <= 300


def test_priority_file_path_only_when_truncation_does_not_fit() -> None:
    allocator = BudgetAllocator(
        ContextBudgetConfig(token_ceiling=10, max_truncated_lines=100)
    )
    files = [_file("package.json", 500, PriorityTier.CRITICAL, line_width=400)]

    result = allocator.allocate(files)

    assert result.files == []
    assert result.path_only == ["package.json"]
    assert result.estimated_tokens == 0


def test_code_tier_sorted_and_short_circuits_below_floor() -> None:
    allocator = BudgetAllocator(
        ContextBudgetConfig(token_ceiling=1000, code_floor_tokens=500)
    )
    files = [
        _file("src/z.ts", 100, PriorityTier.CODE),
        _file("README.md", 600, PriorityTier.CRITICAL),
        _file("src/a.ts", 10, PriorityTier.CODE),
    ]

    result = allocator.allocate(files)

    assert [item.path for item in result.files] == ["README.md"]
    assert result.path_only == ["src/a.ts", "src/z.ts"]


def test_code_tier_fraction_rules() -> None:
    allocator = BudgetAllocator(
        ContextBudgetConfig(token_ceiling=1000, code_floor_tokens=0, max_truncated_lines=2)
    )
    files = [
        _file("a/small.ts", 100, PriorityTier.CODE),
        _file("b/medium.ts", 500, PriorityTier.CODE),
        _file("c/huge.ts", 5000, PriorityTier.CODE),
    ]

    result = allocator.allocate(files)

    by_path = {item.path: item for item in result.files}
    assert not by_path["a/small.ts"].truncated
    assert by_path["b/medium.ts"].truncated
    assert result.path_only == ["c/huge.ts"]
    assert result.estimated_tokens <= 1000


def test_excluded_files_dropped_but_counted() -> None:
    allocator = BudgetAllocator()
    files = [
        _file("logo.png", 10, PriorityTier.EXCLUDED),
        _file("src/a.ts", 10, PriorityTier.CODE),
    ]

    result = allocator.allocate(files)

    assert result.total_files == 2
    assert result.selected_paths == ["src/a.ts"]
    assert result.path_only == []


def test_zero_files_yields_empty_result() -> None:
    result = BudgetAllocator().allocate([])
    assert result.files == []
    assert result.path_only == []
    assert result.total_files == 0
    assert result.estimated_tokens == 0


def test_explicit_ceiling_overrides_config() -> None:
    allocator = BudgetAllocator(ContextBudgetConfig(token_ceiling=50_000))
    files = [_file("package.json", 200, PriorityTier.CRITICAL)]

    result = allocator.allocate(files, ceiling=100)

    assert result.estimated_tokens <= 100
