"""Tests for writing fetched files out as digest text."""

from __future__ import annotations

from conftest import SEP
from repochat_app.parser import PLACEHOLDER_SUMMARY, parse_digest
from repochat_app.synthesis import build_digest_text


def test_layout() -> None:
    text = build_digest_text([("b.py", "b = 1"), ("a.py", "a = 1")])
    assert text == (
        f"{PLACEHOLDER_SUMMARY}\n\n"
        "Directory structure (from fetched files):\n"
        "a.py\nb.py\n\n"
        f"{SEP}\nFILE: b.py\nb = 1\n\n"
        f"{SEP}\nFILE: a.py\na = 1\n\n"
    )


def test_round_trip_preserves_files_summary_and_tree() -> None:
    files = [
        ("src/main.py", "import os\n\n\ndef main():\n    return os.getcwd()\n   \n"),
        ("README.md", "# Title\n\nFILE: mentioned in prose\n========\n"),
        ("empty.txt", ""),
        ("docs/notes.md", "\n\nleading blank lines"),
    ]
    summary = "A tool that does things.\nSecond line."
    tree = "└── src/\n    └── main.py"

    digest = parse_digest(build_digest_text(files, summary=summary, tree=tree))

    assert [(f.path, f.content) for f in digest.files] == [(p, c.rstrip()) for p, c in files]
    assert digest.summary_text == summary
    assert digest.directory_tree_text == tree
    assert digest.total_files_analyzed == len(files)


def test_round_trip_with_generated_tree() -> None:
    files = [("z.py", "z"), ("a/b.py", "b")]
    digest = parse_digest(build_digest_text(files), repo_url="https://github.com/acme/widget")
    assert digest.summary_text == PLACEHOLDER_SUMMARY
    assert digest.directory_tree_text == "a/b.py\nz.py"
    assert [f.path for f in digest.files] == ["z.py", "a/b.py"]
    assert digest.title == "widget"


def test_no_files_still_parses_with_known_repository() -> None:
    digest = parse_digest(build_digest_text([]), repo_url="https://github.com/acme/empty")
    assert digest.files == ()
    assert digest.title == "empty"
