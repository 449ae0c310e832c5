"""Load config.toml and turn its tables into the settings objects passed to each component."""
import logging
import os
import tomllib

import dotenv
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
CONFIG_PATH = os.getenv("REPOCHAT_CONFIG", os.path.join(_PROJECT_ROOT, "config.toml"))
ENV_PATH = os.path.join(_PROJECT_ROOT, ".env")


def load_config(path: str | None = None) -> dict:
    """Read config.toml; a missing file means "use the defaults"."""
    path = path or CONFIG_PATH
    if not os.path.exists(path):
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_env(path: str | None = None) -> None:
    dotenv.load_dotenv(path or ENV_PATH)


class BudgetConfig(BaseModel):
    """Character budgets for the context sent alongside each chat query."""

    model_config = ConfigDict(frozen=True)

    max_context_length_char: int = 30000
    max_file_content_length_char: int = 10000
    # Fill pass only runs while below this fraction of the total budget
    fill_threshold: float = 0.9
    summary_share: float = 0.4
    tree_share: float = 0.6
    truncation_marker: str = "\n... (content truncated)"
    ellipsis: str = "..."

    @classmethod
    def from_config(cls, config: dict) -> "BudgetConfig":
        return cls(**config.get("context", {}))


DEFAULT_IGNORE_PATTERNS = [
    # Version control
    ".git/", ".svn/", ".hg/", ".gitignore", ".gitattributes", ".gitmodules",
    # IDE/editor
    ".idea/", ".vscode/", "*.swp", "*.swo", ".DS_Store",
    # Dependency folders / lock files
    "node_modules/", "bower_components/", "vendor/",
    "package-lock.json", "yarn.lock", "composer.lock", "Gemfile.lock", "Poetry.lock", "Pipfile.lock",
    # Build output
    "dist/", "build/", "out/", "target/", "bin/",
    # Logs & temp
    "*.log", "*.tmp", "*.temp", "*.bak",
    # Python
    "__pycache__/", "*.pyc", "*.pyo", ".pytest_cache/", ".coverage", ".tox/",
    "digest.txt",
    # Minified files and source maps
    "*.min.js", "*.min.css", "*.map",
]


class GitHubSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_base_url: str = "https://api.github.com"
    max_files: int = 200
    max_file_size: int = 1024 * 1024
    timeout: float = 30.0
    token_env: str = "GITHUB_PERSONAL_ACCESS_TOKEN"
    token: str | None = None
    ignore_patterns: list[str] = DEFAULT_IGNORE_PATTERNS

    @classmethod
    def from_config(cls, config: dict, token: str | None = None) -> "GitHubSettings":
        gh_cfg = dict(config.get("github", {}))
        extra = gh_cfg.pop("ignore_patterns", [])
        token_env = gh_cfg.get("token_env", cls.model_fields["token_env"].default)
        return cls(
            **gh_cfg,
            token=token or os.getenv(token_env) or None,
            ignore_patterns=DEFAULT_IGNORE_PATTERNS + list(extra),
        )


class LLMSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: str
    base_url: str
    model: str
    api_key: str
    max_output_tokens: int = 2048
    temperature: float | None = None
    timeout: float = 300.0

    @classmethod
    def from_config(cls, config: dict, api_key: str | None = None) -> "LLMSettings":
        llm_cfg = config.get("llm", {})
        provider = llm_cfg.get("provider", "gemini")
        provider_config = llm_cfg.get(provider, {})

        auth_env = provider_config.get("auth_env", "GEMINI_API_KEY")
        api_key = api_key or os.getenv(auth_env)
        if not api_key:
            raise ValueError(f"{auth_env} must be set in environment")

        model = os.getenv(provider_config.get("model_env", ""), "") or provider_config.get("model", "gemini-2.5-flash")

        kwargs = {
            "provider": provider,
            "base_url": provider_config.get("base_url", "https://generativelanguage.googleapis.com/v1beta/openai/"),
            "model": model,
            "api_key": api_key,
            "timeout": llm_cfg.get("timeout", 300.0),
            "temperature": llm_cfg.get("temperature"),
        }
        if "max_output_tokens" in provider_config:
            kwargs["max_output_tokens"] = provider_config["max_output_tokens"]
        return cls(**kwargs)


class SummarySettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_files_detail_length: int = 20000
    file_excerpt_length: int = 1500
    min_substantial_length: int = 50
    short_summary_length: int = 200

    @classmethod
    def from_config(cls, config: dict) -> "SummarySettings":
        return cls(**config.get("summary", {}))
