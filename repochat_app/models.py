from pydantic import BaseModel, ConfigDict, Field


class ParsedFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str = Field(min_length=1)
    content: str
    size: int


class ParsedDigest(BaseModel):
    model_config = ConfigDict(frozen=True)

    summary_text: str
    directory_tree_text: str
    files: tuple[ParsedFile, ...] = ()
    repo_name_from_summary: str | None = None
    title: str | None = None
    total_files_analyzed: int = 0
    total_size_analyzed: int = 0
    # Only set once a generated summary has been split into text + keywords
    keywords: tuple[str, ...] | None = None


class SelectedContext(BaseModel):
    context_files: list[ParsedFile]
    summary: str
    tree: str


class DigestStats(BaseModel):
    lines: int
    words: int
    estimated_tokens: int
    file_count: int
    total_size: int


class ChatAnswer(BaseModel):
    answer: str
    sources: list[ParsedFile]
