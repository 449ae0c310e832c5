"""Pick the files, summary and tree sent with a chat query, within a character budget.

Selection is greedy and runs in four phases:

1. files whose path or file name appears in the query, in digest order;
2. the README, if not already picked;
3. every other file, sorted by path, but only while the running total is
   below ``fill_threshold`` of the budget;
4. summary and tree are truncated if files + summary + tree overflow.

A file is admitted only while ``files so far + this file + summary + tree``
stays strictly under ``max_context_length_char``.
"""
import logging
import math

from repochat_app.config import BudgetConfig
from repochat_app.models import ParsedDigest, ParsedFile, SelectedContext

logger = logging.getLogger(__name__)


def _file_name(path: str) -> str:
    return path.rsplit("/", 1)[-1].lower()


def _cap_file(file: ParsedFile, budget: BudgetConfig) -> ParsedFile:
    limit = budget.max_file_content_length_char
    if len(file.content) <= limit:
        return file
    marker = budget.truncation_marker
    if limit > len(marker):
        content = file.content[:limit - len(marker)] + marker
    else:
        content = file.content[:limit]
    return ParsedFile(path=file.path, content=content, size=len(content))


def _truncate(text: str, space: int, ellipsis: str) -> str:
    if len(text) <= space:
        return text
    if space <= len(ellipsis):
        return text[:max(space, 0)]
    return text[:space - len(ellipsis)] + ellipsis


def _reconcile_summary_and_tree(summary: str, tree: str, files_length: int,
                                budget: BudgetConfig) -> tuple[str, str]:
    limit = budget.max_context_length_char
    if files_length + len(summary) + len(tree) <= limit:
        return summary, tree

    remaining = limit - files_length
    if remaining <= 0:
        return "", ""

    summary_fits = len(summary) <= remaining * budget.summary_share
    tree_fits = len(tree) <= remaining * budget.tree_share

    if summary_fits and not tree_fits:
        logger.debug("Context: keeping summary, truncating tree to %d chars", remaining - len(summary))
        return summary, _truncate(tree, remaining - len(summary), budget.ellipsis)
    if tree_fits and not summary_fits:
        logger.debug("Context: keeping tree, truncating summary to %d chars", remaining - len(tree))
        return _truncate(summary, remaining - len(tree), budget.ellipsis), tree

    summary_space = min(len(summary), math.floor(remaining * budget.summary_share))
    summary = _truncate(summary, summary_space, budget.ellipsis)
    tree = _truncate(tree, remaining - len(summary), budget.ellipsis)
    logger.debug("Context: truncated summary to %d and tree to %d chars", len(summary), len(tree))
    return summary, tree


def select_context(digest: ParsedDigest, query: str, budget: BudgetConfig) -> SelectedContext:
    """Select the budget-bounded context for one query. Never raises."""
    limit = budget.max_context_length_char
    summary = digest.summary_text or ""
    tree = digest.directory_tree_text or ""
    # Summary and tree count at full length while files are being picked
    overhead = len(summary) + len(tree)
    query_lower = query.lower()

    selected: list[ParsedFile] = []
    selected_paths: set[str] = set()
    current_length = 0

    def try_add(file: ParsedFile) -> bool:
        nonlocal current_length
        capped = _cap_file(file, budget)
        if current_length + len(capped.content) + overhead >= limit:
            return False
        selected.append(capped)
        selected_paths.add(file.path)
        current_length += len(capped.content)
        return True

    for file in digest.files:
        name = _file_name(file.path)
        if file.path.lower() in query_lower or (name and name in query_lower):
            if file.path not in selected_paths and try_add(file):
                logger.debug("Context: query match %s", file.path)

    readme = next((f for f in digest.files if "readme.md" in f.path.lower()), None)
    if readme is not None and readme.path not in selected_paths:
        if try_add(readme):
            logger.debug("Context: added README %s", readme.path)

    if current_length + overhead < limit * budget.fill_threshold:
        for file in sorted(digest.files, key=lambda f: f.path):
            if file.path not in selected_paths:
                try_add(file)

    summary, tree = _reconcile_summary_and_tree(summary, tree, current_length, budget)

    logger.info("Selected context: %d/%d files, %d file chars, summary %d chars, tree %d chars",
                len(selected), len(digest.files), current_length, len(summary), len(tree))
    return SelectedContext(context_files=selected, summary=summary, tree=tree)


def attribute_sources(answer: str, context_files: list[ParsedFile]) -> list[ParsedFile]:
    """Context files the answer mentions by path or file name."""
    answer_lower = answer.lower()
    sources = []
    seen = set()
    for file in context_files:
        name = _file_name(file.path)
        if file.path.lower() in answer_lower or (name and name in answer_lower):
            if file.path not in seen:
                sources.append(file)
                seen.add(file.path)
    return sources
