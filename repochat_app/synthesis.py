"""Write (path, content) pairs out as digest text that parse_digest reads back."""
from collections.abc import Iterable

from repochat_app.parser import DIRECTORY_HEADERS, FILE_HEADER_PREFIX, PLACEHOLDER_SUMMARY, SEPARATOR_LINE


def build_digest_text(files: Iterable[tuple[str, str]], summary: str = PLACEHOLDER_SUMMARY,
                      tree: str | None = None) -> str:
    """Build digest text from fetched files.

    When ``tree`` is omitted the directory section lists the sorted file paths.
    """
    files = list(files)
    if tree is None:
        tree = "\n".join(sorted(path for path, _ in files))

    parts = [f"{summary}\n\n", f"{DIRECTORY_HEADERS[0]}\n", f"{tree}\n\n"]
    for path, content in files:
        parts.append(f"{SEPARATOR_LINE}\n")
        parts.append(f"{FILE_HEADER_PREFIX}{path}\n")
        parts.append(f"{content}\n\n")
    return "".join(parts)
