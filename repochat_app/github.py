"""GitHub REST API access: list a repository tree and fetch file blobs."""
import base64
import logging
import re
from urllib.parse import urlparse

import httpx
import pathspec

from repochat_app.config import GitHubSettings

logger = logging.getLogger(__name__)

BINARY_EXTENSIONS = (
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".ico", ".webp",
    ".mp3", ".wav", ".ogg", ".flac", ".aac",
    ".mp4", ".avi", ".mov", ".wmv", ".mkv", ".flv",
    ".zip", ".tar", ".tar.gz", ".gz", ".rar", ".7z", ".bz2", ".xz", ".tgz",
    ".pdf", ".doc", ".docx", ".ppt", ".pptx", ".xls", ".xlsx", ".odt", ".odp", ".ods",
    ".exe", ".dll", ".so", ".dylib", ".o", ".obj", ".a", ".lib",
    ".jar", ".class", ".war", ".ear", ".pyc", ".pyo",
    ".iso", ".img", ".dmg", ".vdi", ".vmdk",
    ".ttf", ".otf", ".woff", ".woff2", ".eot",
    ".psd", ".ai", ".eps", ".svg",
    ".db", ".sqlite", ".mdb", ".accdb",
    ".app", ".pkg", ".deb", ".rpm",
    ".dat", ".bin", ".wasm",
)


class GitHubError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def parse_repo_url(url: str) -> dict:
    """Parse any GitHub URL to extract owner, repo, branch, and path."""

    url = url.strip().rstrip('/').removesuffix('.git')

    # Handle SSH format (git@github.com:owner/repo...)
    if url.startswith('git@'):
        match = re.match(r'git@github\.com:(.+)', url)
        if match:
            path = match.group(1)
        else:
            raise ValueError(f"Invalid SSH GitHub URL: {url}")
    else:
        parsed = urlparse(url if '://' in url else f"https://{url}")
        if parsed.hostname not in ("github.com", "www.github.com"):
            raise ValueError(f"Not a GitHub URL: {url}")
        path = parsed.path.lstrip('/')

    parts = [p for p in path.split('/') if p]

    if len(parts) < 2:
        raise ValueError(f"Invalid GitHub URL: {url}")

    result = {"owner": parts[0], "repo": parts[1], "branch": None, "path": ""}

    if len(parts) > 3 and parts[2] in ("tree", "blob"):
        result["branch"] = parts[3]
        result["path"] = "/".join(parts[4:])

    return result


def build_ignore_spec(patterns: list[str]) -> pathspec.PathSpec:
    """Compile ignore patterns with gitignore semantics ("docs/*", "*.py[cod]", "!keep.md")."""
    return pathspec.PathSpec.from_lines("gitwildmatch", patterns)


def is_ignored(path: str, spec: pathspec.PathSpec) -> bool:
    path = path.lstrip("/")
    if spec.match_file(path):
        return True
    return path.lower().endswith(BINARY_EXTENSIONS)


def _headers(settings: GitHubSettings) -> dict:
    headers = {"Accept": "application/vnd.github+json"}
    if settings.token:
        headers["Authorization"] = f"token {settings.token}"
    return headers


def get_repo_tree(owner: str, repo: str, branch: str | None,
                  settings: GitHubSettings, client: httpx.Client) -> list[dict]:
    """Return the blob entries of a repository worth fetching.

    With no branch, ``main`` is tried first and ``master`` on a 404.
    """
    ignore_spec = build_ignore_spec(settings.ignore_patterns)

    def fetch_branch_tree(branch_name: str) -> list[dict]:
        url = f"{settings.api_base_url}/repos/{owner}/{repo}/git/trees/{branch_name}"
        try:
            response = client.get(url, params={"recursive": "1"}, headers=_headers(settings))
        except httpx.HTTPError as e:
            raise GitHubError(f"Failed to reach GitHub API for {owner}/{repo} (branch: {branch_name}): {e}") from e
        if response.status_code != 200:
            raise GitHubError(
                f"Failed to fetch repository tree from GitHub API (branch: {branch_name}). "
                f"Status: {response.status_code}",
                status_code=response.status_code,
            )
        data = response.json()
        if data.get("truncated"):
            logger.warning("GitHub tree listing for %s/%s is truncated", owner, repo)
        return [
            item for item in data.get("tree", [])
            if item.get("path") and item.get("type") == "blob"
            and not is_ignored(item["path"], ignore_spec)
            and 0 < item.get("size", 0) < settings.max_file_size
        ]

    if branch:
        return fetch_branch_tree(branch)
    try:
        return fetch_branch_tree("main")
    except GitHubError as e:
        if e.status_code != 404:
            raise
        logger.warning("Branch 'main' not found for %s/%s, trying 'master'", owner, repo)
        return fetch_branch_tree("master")


def get_file_content(owner: str, repo: str, sha: str,
                     settings: GitHubSettings, client: httpx.Client) -> str | None:
    """Fetch and decode one blob; None when it is unavailable or binary."""
    url = f"{settings.api_base_url}/repos/{owner}/{repo}/git/blobs/{sha}"
    try:
        response = client.get(url, headers=_headers(settings))
    except httpx.HTTPError as e:
        logger.warning("Fetching blob %s failed: %s", sha, e)
        return None
    if response.status_code != 200:
        logger.warning("Failed to fetch blob %s (status %d)", sha, response.status_code)
        return None

    data = response.json()
    encoding = data.get("encoding")
    content = data.get("content", "")
    if encoding == "base64":
        try:
            raw = base64.b64decode(content)
        except ValueError:
            logger.warning("Blob %s has invalid base64 content", sha)
            return None
        if b"\0" in raw[:1024]:
            logger.info("Skipping binary blob %s", sha)
            return None
        return raw.decode("utf-8", errors="replace")
    if encoding in ("utf-8", "utf8"):
        if "\0" in content:
            logger.info("Skipping blob %s with NUL bytes", sha)
            return None
        return content

    logger.warning("Unsupported encoding %r for blob %s", encoding, sha)
    return None


def fetch_repo_files(owner: str, repo: str, branch: str | None,
                     settings: GitHubSettings, client: httpx.Client) -> list[tuple[str, str]]:
    """Return (path, content) pairs for up to ``settings.max_files`` files."""
    items = get_repo_tree(owner, repo, branch, settings, client)
    to_fetch = items[:settings.max_files]
    logger.info("Found %d candidate files in %s/%s, fetching %d", len(items), owner, repo, len(to_fetch))

    files = []
    total_chars = 0
    for i, item in enumerate(to_fetch, start=1):
        if not item.get("sha"):
            continue
        content = get_file_content(owner, repo, item["sha"], settings, client)
        if content is not None:
            files.append((item["path"], content))
            total_chars += len(content)
        if i % 10 == 0 or i == len(to_fetch):
            logger.info("Fetched %d/%d files (%.1f KB)", i, len(to_fetch), total_chars / 1024)
    return files
