"""Tests for the list_files / read_file / write_file tools."""

import os
from pathlib import Path
from typing import List

import pytest

from codemender.tools.filesystem import (
    EXCLUDED_NAMES,
    SOURCE_EXTENSIONS,
    list_files,
    read_file,
    write_file,
)


def _touch(root: Path, *relative: str) -> None:
    for rel in relative:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"// {rel}\n", encoding="utf-8")


def _recursive_scan(directory: str) -> List[str]:
    """Straightforward recursive walk used as the reference ordering."""
    found: List[str] = []
    for name in os.listdir(directory):
        full = os.path.join(directory, name)
        if any(excluded in full for excluded in EXCLUDED_NAMES):
            continue
        if os.path.isdir(full):
            found.extend(_recursive_scan(full))
        elif os.path.splitext(name)[1] in SOURCE_EXTENSIONS:
            found.append(full)
    return found


# ---------------------------------------------------------------------------
# list_files
# ---------------------------------------------------------------------------
def test_list_files_keeps_only_allowed_extensions_at_every_depth(tmp_path: Path) -> None:
    _touch(
        tmp_path,
        "index.html",
        "style.css",
        "notes.md",
        "a/app.jsx",
        "a/setup.py",
        "a/b/view.tsx",
        "a/b/c/lib.ts",
        "a/b/c/data.json",
        "a/b/c/d/main.js",
    )

    files = list_files(str(tmp_path))["files"]

    assert sorted(os.path.relpath(f, tmp_path) for f in files) == sorted(
        [
            "index.html",
            "style.css",
            os.path.join("a", "app.jsx"),
            os.path.join("a", "b", "view.tsx"),
            os.path.join("a", "b", "c", "lib.ts"),
            os.path.join("a", "b", "c", "d", "main.js"),
        ]
    )
    assert all(os.path.splitext(f)[1] in SOURCE_EXTENSIONS for f in files)


def test_list_files_skips_excluded_segments_anywhere(tmp_path: Path) -> None:
    _touch(
        tmp_path,
        "src/ok.js",
        "node_modules/pkg/index.js",
        "src/deep/node_modules/x.js",
        "dist/bundle.js",
        "packages/ui/dist/ui.js",
        "build/out.js",
        "src/rebuilder/helper.js",  # substring match, not segment match
        "src/distance.ts",
    )

    files = list_files(str(tmp_path))["files"]

    assert files == [str(tmp_path / "src" / "ok.js")]
    for path in files:
        assert not any(name in path for name in EXCLUDED_NAMES)


def test_list_files_returns_absolute_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _touch(tmp_path, "web/page.html")
    monkeypatch.chdir(tmp_path)

    files = list_files(".")["files"]

    assert files == [str(tmp_path / "web" / "page.html")]
    assert all(os.path.isabs(f) for f in files)


def test_list_files_follows_depth_first_traversal_order(tmp_path: Path) -> None:
    _touch(
        tmp_path,
        "a.js",
        "m/one.js",
        "m/n/two.js",
        "m/three.js",
        "z.css",
        "k/four.ts",
        "k/l/five.tsx",
    )

    files = list_files(str(tmp_path))["files"]

    assert files == _recursive_scan(str(tmp_path))


def test_list_files_empty_directory(tmp_path: Path) -> None:
    assert list_files(str(tmp_path)) == {"files": []}


def test_list_files_missing_directory_is_not_fatal(tmp_path: Path) -> None:
    assert list_files(str(tmp_path / "missing")) == {"files": []}


def test_list_files_skips_broken_entries(tmp_path: Path) -> None:
    _touch(tmp_path, "good.js")
    os.symlink(tmp_path / "gone.js", tmp_path / "dangling.js")

    assert list_files(str(tmp_path))["files"] == [str(tmp_path / "good.js")]


@pytest.mark.skipif(hasattr(os, "geteuid") and os.geteuid() == 0, reason="root ignores modes")
def test_list_files_skips_unreadable_directory(tmp_path: Path) -> None:
    _touch(tmp_path, "open/a.js", "locked/b.js")
    locked = tmp_path / "locked"
    locked.chmod(0)
    try:
        files = list_files(str(tmp_path))["files"]
    finally:
        locked.chmod(0o755)

    assert files == [str(tmp_path / "open" / "a.js")]


def test_list_files_is_not_cached(tmp_path: Path) -> None:
    assert list_files(str(tmp_path))["files"] == []
    _touch(tmp_path, "late.js")
    assert list_files(str(tmp_path))["files"] == [str(tmp_path / "late.js")]


# ---------------------------------------------------------------------------
# read_file / write_file
# ---------------------------------------------------------------------------
def test_read_file_missing_returns_error_payload(tmp_path: Path) -> None:
    result = read_file(str(tmp_path / "nope.js"))

    assert result["error"] is True
    assert "nope.js" in result["message"]


def test_read_file_directory_returns_error_payload(tmp_path: Path) -> None:
    result = read_file(str(tmp_path))

    assert result["error"] is True


def test_read_file_invalid_utf8_returns_error_payload(tmp_path: Path) -> None:
    target = tmp_path / "blob.js"
    target.write_bytes(b"\xff\xfe\xfa")

    assert read_file(str(target))["error"] is True


def test_read_file_is_not_limited_to_scanned_files(tmp_path: Path) -> None:
    target = tmp_path / "README.txt"
    target.write_text("plain text", encoding="utf-8")

    assert list_files(str(tmp_path))["files"] == []
    assert read_file(str(target)) == {"content": "plain text"}


@pytest.mark.parametrize(
    "content",
    ["", "const a = 1;\n", "line1\r\nline2\r\n", "naïve ünïcödé ✓\n\tindent"],
)
def test_write_then_read_round_trip(tmp_path: Path, content: str) -> None:
    target = tmp_path / "file.js"

    assert write_file(str(target), content) == {"success": True}
    assert read_file(str(target)) == {"content": content}


def test_write_file_overwrites_existing_content(tmp_path: Path) -> None:
    target = tmp_path / "app.js"
    target.write_text("a much longer original body\n", encoding="utf-8")

    write_file(str(target), "short")

    assert target.read_text(encoding="utf-8") == "short"


def test_write_file_missing_parent_returns_error_payload(tmp_path: Path) -> None:
    result = write_file(str(tmp_path / "no" / "such" / "dir.js"), "x")

    assert result["error"] is True
    assert result["message"]


def test_write_file_unencodable_content_keeps_original(tmp_path: Path) -> None:
    target = tmp_path / "app.js"
    target.write_text("const keep = true;\n", encoding="utf-8")

    result = write_file(str(target), "half a pair: \ud800")

    assert result["error"] is True
    assert target.read_text(encoding="utf-8") == "const keep = true;\n"


def test_write_file_non_string_content_keeps_original(tmp_path: Path) -> None:
    target = tmp_path / "app.js"
    target.write_text("const keep = true;\n", encoding="utf-8")

    result = write_file(str(target), None)  # type: ignore[arg-type]

    assert result["error"] is True
    assert "content" in result["message"]
    assert target.read_text(encoding="utf-8") == "const keep = true;\n"


def test_file_tools_never_treat_an_integer_path_as_a_descriptor(tmp_path: Path) -> None:
    target = tmp_path / "open.js"
    target.write_text("original", encoding="utf-8")
    fd = os.open(target, os.O_RDWR)
    try:
        written = write_file(fd, "clobbered")  # type: ignore[arg-type]
        read = read_file(fd)  # type: ignore[arg-type]

        assert written["error"] is True
        assert read["error"] is True
        assert "file_path" in read["message"]
        # The descriptor is still open and untouched.
        assert os.fstat(fd).st_size == len("original")
    finally:
        os.close(fd)
    assert target.read_text(encoding="utf-8") == "original"
