"""Generated-summary handling: prompt assembly, keyword extraction and the enrichment policy."""
import logging
import os
import re

from repochat_app.config import BudgetConfig, SummarySettings
from repochat_app.models import ParsedDigest, ParsedFile
from repochat_app.parser import is_placeholder_summary

logger = logging.getLogger(__name__)

KEYWORDS_MARKER = "\n\n**Keywords**: "
MAX_KEYWORD_LENGTH = 50

SUMMARY_NOT_CREATED = "AI-generated summary could not be created at this time."
SUMMARY_GENERATION_FAILED = "An error occurred during AI summary generation."

PROMPT_PATH = os.path.join(os.path.dirname(__file__), "prompt.txt")

_BULLET_RE = re.compile(r"^[*-]\s*")


def split_keywords(raw_summary: str) -> tuple[str, list[str]]:
    """Split a generated summary into (clean summary, keywords).

    Keywords follow the ``**Keywords**:`` marker as a comma-separated list.
    Without the marker the whole text is the summary.
    """
    idx = raw_summary.find(KEYWORDS_MARKER)
    if idx == -1:
        return raw_summary.strip(), []

    block = raw_summary[idx + len(KEYWORDS_MARKER):]
    keywords = []
    for token in block.split(","):
        keyword = _BULLET_RE.sub("", token.strip()).strip()
        if 0 < len(keyword) < MAX_KEYWORD_LENGTH:
            keywords.append(keyword)
    return raw_summary[:idx].strip(), keywords


def needs_generated_summary(digest: ParsedDigest, settings: SummarySettings) -> bool:
    """A summary is generated when the digest has none, or only a very short one."""
    summary = digest.summary_text
    if is_placeholder_summary(summary):
        return True
    return len(summary) < settings.short_summary_length and "error" not in summary.lower()


def _file_entry(file: ParsedFile, limit: int) -> str:
    excerpt = file.content[:limit]
    truncated = "... (content truncated for brevity in summary prompt)\n" if len(file.content) > limit else ""
    return f"--- File: {file.path} ---\n{excerpt}\n{truncated}\n"


def _files_detail(files: tuple[ParsedFile, ...], settings: SummarySettings, budget: BudgetConfig) -> str:
    parts = ["Key File Contents (code snippets, configurations, documentation excerpts):\n"]
    used = 0
    limit = settings.max_files_detail_length

    readme = next((f for f in files if "readme.md" in f.path.lower()), None)
    if readme is not None and readme.content:
        entry = _file_entry(readme, budget.max_file_content_length_char)
        if used + len(entry) <= limit:
            parts.append(entry)
            used += len(entry)

    for file in files:
        if (readme is not None and file.path == readme.path) or not file.content:
            continue
        entry = _file_entry(file, settings.file_excerpt_length)
        if used + len(entry) <= limit:
            parts.append(entry)
            used += len(entry)
            continue
        path_entry = f"--- File: {file.path} (content omitted due to length constraints for summary prompt) ---\n"
        if used + len(path_entry) <= limit:
            parts.append(path_entry)
            used += len(path_entry)
        else:
            parts.append("--- (Reached content limit for including more file details in summary prompt) ---\n")
            break

    return "".join(parts)


def build_summary_prompt(digest: ParsedDigest, settings: SummarySettings, budget: BudgetConfig) -> str:
    context = (
        f"Repository Name: {digest.title or 'N/A'}\n\n"
        "Initial Information (this could be a basic placeholder, a README.md excerpt, "
        f"or a user-provided digest summary):\n{digest.summary_text}\n\n"
        f"Directory Structure:\n{digest.directory_tree_text}\n\n"
        + _files_detail(digest.files, settings, budget)
    )
    with open(PROMPT_PATH, "r") as f:
        template = f.read()
    return template.replace("{context}", context)


def apply_generated_summary(digest: ParsedDigest, raw_summary: str,
                            settings: SummarySettings) -> ParsedDigest:
    """Return a copy of ``digest`` carrying the generated summary and its keywords.

    Replies that are too short or report an error replace the summary with a
    fixed notice and no keywords.
    """
    raw = (raw_summary or "").strip()
    if not raw or raw.lower().startswith("error generating summary") or len(raw) <= settings.min_substantial_length:
        logger.warning("Generated summary rejected (%d chars): %.100s", len(raw), raw)
        return digest.model_copy(update={"summary_text": SUMMARY_NOT_CREATED, "keywords": ()})

    summary, keywords = split_keywords(raw_summary)
    logger.info("Generated summary accepted (%d chars, %d keywords)", len(summary), len(keywords))
    return digest.model_copy(update={"summary_text": summary, "keywords": tuple(keywords)})


def summary_generation_failed(digest: ParsedDigest) -> ParsedDigest:
    return digest.model_copy(update={"summary_text": SUMMARY_GENERATION_FAILED, "keywords": ()})
