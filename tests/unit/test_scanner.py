import time
from pathlib import Path

import pytest

from nerve_agent.config import ScanConfig
from nerve_agent.errors import ScanRootInvalid
from nerve_agent.ingest import scanner
from nerve_agent.ingest.formatter import split_sections
from nerve_agent.ingest.pipeline import ContextPipeline
from nerve_agent.ingest.scanner import scan_directory


def _write(root: Path, relative: str, content: str | bytes) -> None:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")


def test_scan_prunes_denylisted_directories_before_descent(tmp_path: Path) -> None:
    _write(tmp_path, "package.json", '{"name": "demo"}')
    _write(tmp_path, "src/index.ts", "export const a = 1")
    heavy = tmp_path / "node_modules" / "pkg"
    heavy.mkdir(parents=True)
    for i in range(10_000):
        (heavy / f"f{i}.js").write_text("x", encoding="utf-8")

    start = time.perf_counter()
    result = scan_directory(tmp_path, ScanConfig(max_files=500))
    elapsed = time.perf_counter() - start

    paths = [record.path for record in result.records]
    assert paths == ["package.json", "src/index.ts"]
    assert not any(path.startswith("node_modules/") for path in paths)
    assert result.visited_files == 2
    assert not result.capped
    assert elapsed < 5.0


def test_scan_skips_binary_oversized_and_dot_directories(tmp_path: Path) -> None:
    _write(tmp_path, "src/ok.ts", "const ok = true")
    _write(tmp_path, "src/binary.ts", b"abc\x00def")
    _write(tmp_path, "src/latin1.ts", b"caf\xe9")
    _write(tmp_path, "src/big.ts", "x" * 2048)
    _write(tmp_path, ".hidden/secret.ts", "hidden")

    result = scan_directory(tmp_path, ScanConfig(max_file_bytes=1024))

    assert [record.path for record in result.records] == ["src/ok.ts"]


def test_scan_stops_at_visited_file_cap(tmp_path: Path) -> None:
    for i in range(20):
        _write(tmp_path, f"src/file{i:02d}.ts", f"export const v = {i}")

    result = scan_directory(tmp_path, ScanConfig(max_files=5))

    assert result.capped
    assert result.visited_files == 5
    assert len(result.records) == 5
    assert [record.path for record in result.records] == [
        f"src/file{i:02d}.ts" for i in range(5)
    ]


def test_scan_uses_forward_slash_relative_paths(tmp_path: Path) -> None:
    _write(tmp_path, "a/b/c/deep.py", "print('hi')")

    result = scan_directory(tmp_path)

    assert result.records[0].path == "a/b/c/deep.py"


def test_scan_rejects_missing_or_file_roots(tmp_path: Path) -> None:
    with pytest.raises(ScanRootInvalid, match="Directory not found"):
        scan_directory(tmp_path / "missing")

    file_root = tmp_path / "file.txt"
    file_root.write_text("x", encoding="utf-8")
    with pytest.raises(ScanRootInvalid, match="not a directory"):
        scan_directory(file_root)


def test_scan_skips_unreadable_files(monkeypatch, tmp_path: Path) -> None:
    _write(tmp_path, "src/locked.ts", "const locked = true")
    _write(tmp_path, "src/ok.ts", "const ok = true")
    real_open = open

    def _open(path, *args, **kwargs):
        if str(path).endswith("locked.ts"):
            raise PermissionError(13, "Permission denied", str(path))
        return real_open(path, *args, **kwargs)

    monkeypatch.setattr(scanner, "open", _open, raising=False)

    result = scan_directory(tmp_path)

    assert [record.path for record in result.records] == ["src/ok.ts"]
    assert result.visited_files == 2


def test_scan_skips_unreadable_subdirectories(monkeypatch, tmp_path: Path) -> None:
    _write(tmp_path, "locked/hidden.ts", "const hidden = true")
    _write(tmp_path, "src/ok.ts", "const ok = true")
    real_scandir = scanner.os.scandir

    def _scandir(path):
        if Path(path).name == "locked":
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    monkeypatch.setattr(scanner.os, "scandir", _scandir)

    result = scan_directory(tmp_path)

    assert [record.path for record in result.records] == ["src/ok.ts"]


def test_unreadable_root_is_rejected(monkeypatch, tmp_path: Path) -> None:
    def _scandir(path):
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr(scanner.os, "scandir", _scandir)

    with pytest.raises(ScanRootInvalid, match="could not be read"):
        scan_directory(tmp_path)


def test_line_break_file_names_stay_out_of_the_context(tmp_path: Path) -> None:
    _write(tmp_path, "a\nb.ts", "const broken = 1")
    _write(tmp_path, "ok.ts", "const ok = 1")

    bundle = ContextPipeline().build(tmp_path)

    assert bundle.scan is not None
    assert bundle.scan.visited_files == 2
    assert bundle.selection.selected_paths == ["ok.ts"]
    assert [path for path, _ in split_sections(bundle.text)] == ["ok.ts"]
