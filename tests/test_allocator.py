"""Tests for query context selection."""

from __future__ import annotations

from conftest import make_digest, make_file
from repochat_app.allocator import attribute_sources, select_context
from repochat_app.config import BudgetConfig
from repochat_app.parser import parse_digest


def test_query_match_then_fill(sample_digest_text: str, budget: BudgetConfig) -> None:
    digest = parse_digest(sample_digest_text)

    context = select_context(digest, "what does a.ts do", budget)

    assert [f.path for f in context.context_files] == ["src/a.ts", "src/b.ts"]
    assert context.summary == digest.summary_text
    assert context.tree == digest.directory_tree_text
    assert context.context_files[0].content == "console.log('a');"


def test_selection_is_deterministic(sample_digest_text: str, budget: BudgetConfig) -> None:
    digest = parse_digest(sample_digest_text)
    first = select_context(digest, "Explain src/b.ts", budget)
    second = select_context(digest, "Explain src/b.ts", budget)
    assert first == second
    assert first.model_dump_json() == second.model_dump_json()


def test_full_path_match_is_case_insensitive(budget: BudgetConfig) -> None:
    digest = make_digest([make_file("z.py", "z"), make_file("Src/Main.PY", "main")])
    context = select_context(digest, "walk me through SRC/main.py", budget)
    assert context.context_files[0].path == "Src/Main.PY"


def test_query_matches_keep_digest_order(budget: BudgetConfig) -> None:
    digest = make_digest([make_file("b.py", "b"), make_file("a.py", "a"), make_file("c.py", "c")])
    context = select_context(digest, "compare a.py with b.py", budget)
    assert [f.path for f in context.context_files] == ["b.py", "a.py", "c.py"]


def test_readme_comes_before_fill(budget: BudgetConfig) -> None:
    digest = make_digest([make_file("a.py", "a" * 100), make_file("docs/README.md", "r" * 100)])
    context = select_context(digest, "anything", budget)
    assert [f.path for f in context.context_files] == ["docs/README.md", "a.py"]


def test_fill_pass_sorted_by_path(budget: BudgetConfig) -> None:
    digest = make_digest([make_file("c.py", "c"), make_file("a.py", "a"), make_file("b.py", "b")])
    context = select_context(digest, "nothing relevant", budget)
    assert [f.path for f in context.context_files] == ["a.py", "b.py", "c.py"]


def test_fill_pass_skipped_above_threshold() -> None:
    budget = BudgetConfig(max_context_length_char=1000, max_file_content_length_char=1000)
    digest = make_digest([make_file("big.py", "x" * 898), make_file("c.py", "y" * 10)])

    context = select_context(digest, "look at big.py", budget)

    # 898 + 2 (summary and tree) reaches the 90% fill threshold
    assert [f.path for f in context.context_files] == ["big.py"]


def test_fill_pass_runs_below_threshold() -> None:
    budget = BudgetConfig(max_context_length_char=1000, max_file_content_length_char=1000)
    digest = make_digest([make_file("big.py", "x" * 897), make_file("c.py", "y" * 10)])

    context = select_context(digest, "look at big.py", budget)

    assert [f.path for f in context.context_files] == ["big.py", "c.py"]


def test_admission_is_strictly_under_budget() -> None:
    budget = BudgetConfig(max_context_length_char=100, max_file_content_length_char=100)
    too_big = make_digest([make_file("a.py", "x" * 98)])
    just_fits = make_digest([make_file("a.py", "x" * 97)])

    assert select_context(too_big, "a.py", budget).context_files == []
    assert [f.path for f in select_context(just_fits, "a.py", budget).context_files] == ["a.py"]


def test_long_file_is_capped_with_marker() -> None:
    budget = BudgetConfig(max_file_content_length_char=100)
    digest = make_digest([make_file("a.py", "x" * 300)])

    capped = select_context(digest, "a.py", budget).context_files[0]

    assert len(capped.content) == 100
    assert capped.content.endswith(budget.truncation_marker)
    assert capped.content.startswith("x" * (100 - len(budget.truncation_marker)))
    assert capped.size == 100


def test_cap_smaller_than_marker_truncates_plainly() -> None:
    budget = BudgetConfig(max_file_content_length_char=5)
    digest = make_digest([make_file("a.py", "abcdefghij")])
    assert select_context(digest, "a.py", budget).context_files[0].content == "abcde"


def test_budget_invariants_hold() -> None:
    files = [make_file(f"pkg/mod_{i}.py", chr(97 + i % 26) * (i * 377 % 5000)) for i in range(1, 40)]
    files.append(make_file("README.md", "readme " * 900))
    digest = make_digest(files, summary="summary " * 50, tree="tree\n" * 80)

    for limit, per_file in [(30000, 10000), (5000, 1000), (12000, 4000), (1500, 700)]:
        budget = BudgetConfig(max_context_length_char=limit, max_file_content_length_char=per_file)
        for query in ["", "mod_3.py and mod_17.py", "README.md", "pkg/mod_39.py"]:
            context = select_context(digest, query, budget)
            lengths = [len(f.content) for f in context.context_files]
            assert all(length <= per_file for length in lengths)
            assert sum(lengths) + len(digest.summary_text) + len(digest.directory_tree_text) < limit
            assert len({f.path for f in context.context_files}) == len(context.context_files)


def test_summary_kept_tree_truncated() -> None:
    budget = BudgetConfig(max_context_length_char=100)
    digest = make_digest([make_file("a.py", "a")], summary="s" * 30, tree="t" * 200)

    context = select_context(digest, "a.py", budget)

    assert context.context_files == []
    assert context.summary == "s" * 30
    assert context.tree == "t" * 67 + "..."


def test_tree_kept_summary_truncated() -> None:
    budget = BudgetConfig(max_context_length_char=100)
    digest = make_digest([], summary="s" * 200, tree="t" * 50)

    context = select_context(digest, "", budget)

    assert context.tree == "t" * 50
    assert context.summary == "s" * 47 + "..."


def test_both_truncated_to_shares() -> None:
    budget = BudgetConfig(max_context_length_char=100)
    digest = make_digest([], summary="s" * 200, tree="t" * 200)

    context = select_context(digest, "", budget)

    assert context.summary == "s" * 37 + "..."
    assert context.tree == "t" * 57 + "..."
    assert len(context.summary) + len(context.tree) == 100


def test_no_space_empties_summary_and_tree() -> None:
    budget = BudgetConfig(max_context_length_char=0)
    digest = make_digest([make_file("a.py", "a")], summary="summary", tree="tree")

    context = select_context(digest, "a.py", budget)

    assert context.context_files == []
    assert context.summary == ""
    assert context.tree == ""


def test_custom_shares_are_respected() -> None:
    budget = BudgetConfig(max_context_length_char=100, summary_share=0.7, tree_share=0.3)
    digest = make_digest([], summary="s" * 60, tree="t" * 200)

    context = select_context(digest, "", budget)

    assert context.summary == "s" * 60
    assert context.tree == "t" * 37 + "..."


def test_attribute_sources_matches_path_or_name() -> None:
    files = [make_file("src/a.ts", "a"), make_file("src/b.ts", "b"), make_file("lib/c.ts", "c")]
    answer = "The entry point is `src/a.ts`, and C.TS holds helpers."
    assert [f.path for f in attribute_sources(answer, files)] == ["src/a.ts", "lib/c.ts"]


def test_attribute_sources_empty_answer() -> None:
    assert attribute_sources("", [make_file("a.py", "a")]) == []
