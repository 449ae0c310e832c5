"""Parse a plain-text repository digest into summary, directory tree and file blocks.

Expected layout (every section optional):

    Repository: owner/repo
    Branch: main
    <free-form summary lines>

    Directory structure (from fetched files):
    <tree lines>

    ================================================
    FILE: path/to/file
    <file content>

The file-block section is read with an explicit two-state machine, see
``ScanState`` and ``_TRANSITIONS``.
"""
import logging
import re
from enum import Enum

from repochat_app.github import parse_repo_url
from repochat_app.models import DigestStats, ParsedDigest, ParsedFile

logger = logging.getLogger(__name__)

SEPARATOR_LINE = "=" * 48
FILE_HEADER_PREFIX = "FILE: "
DIRECTORY_HEADERS = ("Directory structure (from fetched files):", "Directory structure:")

PLACEHOLDER_SUMMARY = "Summary: An AI-generated overview is being prepared for this repository."
PLACEHOLDER_TREE = "Directory tree not provided or detected in digest."

_PLACEHOLDER_SUMMARY_RE = re.compile(
    r"^(Summary: An AI-generated overview is being prepared for this repository\."
    r"|Summary not provided"
    r"|No summary found"
    r"|To be generated"
    r"|AI-generated summary will be created"
    r"|Placeholder: AI summary will be generated)",
    re.IGNORECASE,
)
_PLACEHOLDER_TREE_RE = re.compile(
    r"^(Directory tree not provided"
    r"|Directory structure not provided"
    r"|No directory structure)",
    re.IGNORECASE,
)
_DIRECTORY_HEADER_RES = [
    re.compile(r"^Directory structure \(from fetched files\):\s*", re.IGNORECASE),
    re.compile(r"^Directory structure:\s*", re.IGNORECASE),
]


class DigestParseError(ValueError):
    """Raised when the text holds no summary, tree, file or repository name."""

    kind = "EmptyOrInvalidDigest"


def estimate_tokens(text: str) -> int:
    # chars / 3.5 tracks code better than a word count
    return int(len(text) / 3.5)


def is_placeholder_summary(text: str) -> bool:
    return bool(_PLACEHOLDER_SUMMARY_RE.match(text.strip()))


def is_placeholder_tree(text: str) -> bool:
    return bool(_PLACEHOLDER_TREE_RE.match(text.strip()))


# --- File-block state machine ---

class ScanState(Enum):
    EXPECTING_CONTENT_OR_SEPARATOR = "expecting_content_or_separator"
    EXPECTING_FILE_HEADER = "expecting_file_header"


class LineKind(Enum):
    SEPARATOR = "separator"
    FILE_HEADER = "file_header"
    BLANK = "blank"
    TEXT = "text"


def _classify(line: str) -> LineKind:
    if line == SEPARATOR_LINE:
        return LineKind.SEPARATOR
    if line.startswith(FILE_HEADER_PREFIX):
        return LineKind.FILE_HEADER
    if not line.strip():
        return LineKind.BLANK
    return LineKind.TEXT


_CONTENT = ScanState.EXPECTING_CONTENT_OR_SEPARATOR
_HEADER = ScanState.EXPECTING_FILE_HEADER

# (state, line kind) -> (action, next state)
_TRANSITIONS = {
    (_CONTENT, LineKind.SEPARATOR): ("skip", _HEADER),
    (_CONTENT, LineKind.FILE_HEADER): ("append", _CONTENT),
    (_CONTENT, LineKind.BLANK): ("append", _CONTENT),
    (_CONTENT, LineKind.TEXT): ("append", _CONTENT),
    (_HEADER, LineKind.SEPARATOR): ("skip", _HEADER),
    (_HEADER, LineKind.FILE_HEADER): ("open", _CONTENT),
    (_HEADER, LineKind.BLANK): ("skip", _HEADER),
    (_HEADER, LineKind.TEXT): ("orphan", _HEADER),
}


class _FileBlockScanner:
    """Collects file records from the file-block section of a digest."""

    def __init__(self):
        self.state = _CONTENT
        self.files: list[ParsedFile] = []
        self._seen: set[str] = set()
        self._path: str | None = None
        self._buffer: list[str] = []
        self._duplicate = False
        self._orphan_logged = False

    def feed(self, line: str) -> None:
        action, next_state = _TRANSITIONS[(self.state, _classify(line))]
        getattr(self, f"_{action}")(line)
        self.state = next_state

    def finish(self) -> list[ParsedFile]:
        self._close()
        return self.files

    def _skip(self, line: str) -> None:
        pass

    def _append(self, line: str) -> None:
        if self._path is not None:
            self._buffer.append(line)

    def _orphan(self, line: str) -> None:
        # Content right after a separator with no FILE: header belongs to the open record
        if self._path is None:
            logger.debug("Dropping orphaned line with no open file: %.80s", line)
            return
        # Warn once per record
        if not self._orphan_logged:
            logger.warning("Attaching content found after a separator without FILE: header to %s", self._path)
            self._orphan_logged = True
        self._buffer.append(line)

    def _open(self, line: str) -> None:
        self._close()
        path = line[len(FILE_HEADER_PREFIX):].strip()
        if not path:
            logger.warning("Ignoring FILE: header with an empty path")
            return
        self._path = path
        self._duplicate = path in self._seen
        if self._duplicate:
            logger.warning("Duplicate file block for %s; keeping the first one", path)

    def _close(self) -> None:
        if self._path is not None and not self._duplicate:
            content = "\n".join(self._buffer).rstrip()
            self.files.append(ParsedFile(path=self._path, content=content, size=len(content)))
            self._seen.add(self._path)
        self._path = None
        self._buffer = []
        self._duplicate = False
        self._orphan_logged = False


# --- Section boundaries ---

def _find_directory_header(lines: list[str]) -> int | None:
    for i, line in enumerate(lines):
        if line.startswith(DIRECTORY_HEADERS):
            return i
    return None


def _find_first_file_boundary(lines: list[str]) -> int | None:
    for i in range(len(lines) - 1):
        if lines[i] == SEPARATOR_LINE and lines[i + 1].startswith(FILE_HEADER_PREFIX):
            return i
    return None


def _find_bare_separator(lines: list[str]) -> int | None:
    for i, line in enumerate(lines):
        if line == SEPARATOR_LINE:
            return i
    return None


def _strip_summary_headers(summary: str) -> tuple[str, str | None]:
    """Remove leading Repository:/Branch: lines, returning (summary, repo name)."""
    summary_lines = summary.split("\n")
    repo_name = None
    start = 0
    if summary_lines[start].lower().startswith("repository:"):
        repo_name = summary_lines[start].split(":", 1)[1].strip() or None
        start += 1
    if start < len(summary_lines) and summary_lines[start].lower().startswith("branch:"):
        start += 1
    if start > 0:
        summary = "\n".join(summary_lines[start:]).strip()
    return summary, repo_name


def _strip_tree_header(tree: str) -> str:
    for pattern in _DIRECTORY_HEADER_RES:
        tree = pattern.sub("", tree, count=1).strip()
    return tree


def resolve_title(repo_url: str | None, repo_name_from_summary: str | None) -> str:
    if repo_url:
        try:
            return parse_repo_url(repo_url)["repo"]
        except ValueError:
            pass
    if repo_name_from_summary:
        return repo_name_from_summary
    if repo_url:
        segments = [s for s in repo_url.rstrip("/").split("/") if s]
        if segments:
            return segments[-1]
    return "Repository"


def parse_digest(text: str, repo_url: str | None = None) -> ParsedDigest:
    """Parse digest text into a ParsedDigest.

    ``repo_url`` is the repository the digest was taken from, when the caller
    knows it. It feeds the title and, since the repository is then known,
    suppresses the empty-digest failure.

    Raises DigestParseError when the text does not look like a digest at all.
    """
    lines = re.split(r"\r?\n", text)

    dir_start = _find_directory_header(lines)
    boundary = _find_first_file_boundary(lines)
    if dir_start is not None and boundary is not None and dir_start > boundary:
        # A "Directory structure:" line inside a file body is just content
        dir_start = None

    if dir_start is not None:
        summary_end = dir_start
    elif boundary is not None:
        summary_end = boundary
    else:
        bare = _find_bare_separator(lines)
        summary_end = bare if bare is not None else len(lines)

    directory_tree = ""
    if dir_start is not None:
        tree_end = boundary if boundary is not None else len(lines)
        directory_tree = "\n".join(lines[dir_start:tree_end])
        scan_start = tree_end
    elif boundary is not None:
        scan_start = boundary
    else:
        scan_start = summary_end

    scanner = _FileBlockScanner()
    for line in lines[scan_start:]:
        scanner.feed(line)
    files = scanner.finish()

    summary, repo_name = _strip_summary_headers("\n".join(lines[:summary_end]).strip())

    directory_tree = _strip_tree_header(directory_tree) if directory_tree else ""

    if not summary or is_placeholder_summary(summary):
        summary = PLACEHOLDER_SUMMARY
    if not directory_tree or is_placeholder_tree(directory_tree):
        directory_tree = PLACEHOLDER_TREE

    if (summary == PLACEHOLDER_SUMMARY and directory_tree == PLACEHOLDER_TREE
            and not files and not repo_name and not repo_url):
        logger.error("Digest parse failed: no summary, tree, files or repository name found")
        logger.debug("Digest excerpt: %r", text[:500])
        raise DigestParseError(
            "Failed to parse digest: content does not appear to be a valid digest or is empty. "
            "Please ensure the digest includes a summary, directory structure, or file contents."
        )

    total_size = sum(f.size for f in files)
    logger.info("Parsed digest: %d files, %d chars of content, repository=%s",
                len(files), total_size, repo_name)

    return ParsedDigest(
        summary_text=summary,
        directory_tree_text=directory_tree,
        files=tuple(files),
        repo_name_from_summary=repo_name,
        title=resolve_title(repo_url, repo_name),
        total_files_analyzed=len(files),
        total_size_analyzed=total_size,
    )


def digest_stats(text: str, digest: ParsedDigest) -> DigestStats:
    return DigestStats(
        lines=text.count("\n"),
        words=len(text.split()),
        estimated_tokens=estimate_tokens(text),
        file_count=digest.total_files_analyzed,
        total_size=digest.total_size_analyzed,
    )
