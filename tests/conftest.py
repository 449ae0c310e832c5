from __future__ import annotations

from types import SimpleNamespace

import pytest

from repochat_app.config import BudgetConfig, LLMSettings, SummarySettings
from repochat_app.models import ParsedDigest, ParsedFile

SEP = "=" * 48

SAMPLE_DIGEST = (
    "Repository: acme/widget\n"
    "Branch: main\n"
    "\n"
    "Directory structure (from fetched files):\n"
    "src/a.ts\n"
    "src/b.ts\n"
    "\n"
    f"{SEP}\n"
    "FILE: src/a.ts\n"
    "console.log('a');\n"
    "\n"
    f"{SEP}\n"
    "FILE: src/b.ts\n"
    "console.log('b');\n"
)


class StubLLMClient:
    """Mimics ``OpenAI().chat.completions.create`` and records each call."""

    def __init__(self, reply: str | Exception | None = "stub answer"):
        self.reply = reply
        self.calls: list[dict] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        if isinstance(self.reply, Exception):
            raise self.reply
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_file(path: str, content: str) -> ParsedFile:
    return ParsedFile(path=path, content=content, size=len(content))


def make_digest(files: list[ParsedFile], summary: str = "S", tree: str = "T",
                title: str | None = "widget") -> ParsedDigest:
    return ParsedDigest(
        summary_text=summary,
        directory_tree_text=tree,
        files=tuple(files),
        title=title,
        total_files_analyzed=len(files),
        total_size_analyzed=sum(f.size for f in files),
    )


@pytest.fixture
def sample_digest_text() -> str:
    return SAMPLE_DIGEST


@pytest.fixture
def budget() -> BudgetConfig:
    return BudgetConfig()


@pytest.fixture
def summary_settings() -> SummarySettings:
    return SummarySettings()


@pytest.fixture
def llm_settings() -> LLMSettings:
    return LLMSettings(provider="test", base_url="http://llm.test/v1", model="test-model", api_key="sk-test")
