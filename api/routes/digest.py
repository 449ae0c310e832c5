# api/routes/digest.py
import logging
import time
from collections.abc import Callable
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, SecretStr

from api.deps import get_budget, get_config, get_llm_factory, get_summary_settings
from repochat_app.allocator import select_context
from repochat_app.config import BudgetConfig, GitHubSettings, SummarySettings
from repochat_app.github import GitHubError
from repochat_app.main import enrich_summary, fetch_digest, load_digest
from repochat_app.models import ParsedDigest, SelectedContext
from repochat_app.parser import DigestParseError, digest_stats

logger = logging.getLogger(__name__)

router = APIRouter()


class DigestParseRequest(BaseModel):
    digest_text: str = Field(
        ...,
        description=(
            "Plain-text repository digest: optional Repository:/Branch: header and summary, an optional "
            "'Directory structure:' section, then file blocks introduced by a line of 48 '=' and 'FILE: <path>'."
        ),
    )
    repo_url: Optional[str] = Field(
        None,
        description="GitHub URL the digest was taken from. Used for the title; an empty digest is then accepted.",
    )
    generate_summary: bool = Field(
        False,
        description=(
            "When true, a summary is generated by the LLM if the digest has none or only a very short one. "
            "Keywords extracted from the generated summary are returned in 'keywords'."
        ),
    )


class DigestFetchRequest(BaseModel):
    github_url: str = Field(
        ...,
        description="GitHub repository URL. HTTPS, SSH and /tree/<branch> URLs are accepted.",
    )
    token: SecretStr | None = Field(
        None,
        description="GitHub Personal Access Token for private repos. Never logged or stored.",
    )
    branch: Optional[str] = Field(
        None,
        description="Branch override. Defaults to the branch in the URL, else 'main' then 'master'.",
    )
    generate_summary: bool = Field(True, description="Generate a summary with the LLM (digests fetched via the API have none).")


class ContextRequest(BaseModel):
    digest: ParsedDigest
    query: str


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "message": message, **extra})


def _digest_response(text: str, digest: ParsedDigest) -> dict:
    return {
        "status": "success",
        "digest": digest.model_dump(),
        "digest_stats": digest_stats(text, digest).model_dump(),
    }


@router.post("/digest/parse", summary="Parse a pasted or uploaded repository digest")
def parse_digest_endpoint(
    request: DigestParseRequest,
    budget: BudgetConfig = Depends(get_budget),
    summary_settings: SummarySettings = Depends(get_summary_settings),
    llm_factory: Callable = Depends(get_llm_factory),
):
    """
    Parse digest text into summary, directory tree and files.

    - **digest_text**: the digest
    - **repo_url**: optional repository URL the digest came from
    - **generate_summary**: generate a summary with the LLM when the digest lacks one
    """
    logger.info("POST /digest/parse chars=%d repo_url=%s summary=%s",
                len(request.digest_text), request.repo_url, request.generate_summary)
    t0 = time.time()
    try:
        digest = load_digest(request.digest_text, repo_url=request.repo_url)
        if request.generate_summary:
            llm_client, llm_settings = llm_factory()
            digest = enrich_summary(digest, llm_client, llm_settings, summary_settings, budget)
    except DigestParseError as e:
        logger.error("POST /digest/parse rejected after %.1fs: %s", time.time() - t0, e)
        return _error(422, str(e), kind=e.kind)
    except ValueError as e:
        logger.error("POST /digest/parse bad request after %.1fs: %s", time.time() - t0, e)
        return _error(400, str(e))

    logger.info("POST /digest/parse completed in %.1fs (%d files)", time.time() - t0, digest.total_files_analyzed)
    return _digest_response(request.digest_text, digest)


@router.post("/digest/fetch", summary="Build a digest from a GitHub repository via the API")
def fetch_digest_endpoint(
    request: DigestFetchRequest,
    config: dict = Depends(get_config),
    budget: BudgetConfig = Depends(get_budget),
    summary_settings: SummarySettings = Depends(get_summary_settings),
    llm_factory: Callable = Depends(get_llm_factory),
):
    """
    Fetch the repository tree and file contents from the GitHub REST API, write them out as a
    digest and parse it. Binary files, lockfiles and build output are skipped.
    """
    token = request.token.get_secret_value() if request.token and request.token.get_secret_value() != "string" else None
    branch = request.branch if request.branch and request.branch != "string" else None

    logger.info("POST /digest/fetch url=%s branch=%s summary=%s", request.github_url, branch, request.generate_summary)
    t0 = time.time()
    try:
        settings = GitHubSettings.from_config(config, token=token)
        text, digest = fetch_digest(request.github_url, settings, branch=branch)
        if request.generate_summary:
            llm_client, llm_settings = llm_factory()
            digest = enrich_summary(digest, llm_client, llm_settings, summary_settings, budget)
    except ValueError as e:
        logger.error("POST /digest/fetch bad request after %.1fs: %s", time.time() - t0, e)
        return _error(400, str(e))
    except GitHubError as e:
        logger.error("POST /digest/fetch failed after %.1fs: %s", time.time() - t0, e)
        if e.status_code in (401, 403, 404):
            return _error(e.status_code, f"{e}. The repository may be private, missing, or rate limited; "
                                         "provide a token or paste a digest instead.")
        return _error(502, str(e))
    except Exception as e:
        logger.error("POST /digest/fetch failed after %.1fs: %s", time.time() - t0, e, exc_info=True)
        return _error(500, str(e))

    logger.info("POST /digest/fetch completed in %.1fs (%d files)", time.time() - t0, digest.total_files_analyzed)
    return _digest_response(text, digest)


@router.post("/context", summary="Select the budget-bounded context for a query", response_model=SelectedContext)
async def context_endpoint(request: ContextRequest, budget: BudgetConfig = Depends(get_budget)):
    """Returns the files (possibly truncated), summary and tree that would be sent with the query."""
    return select_context(request.digest, request.query, budget)
