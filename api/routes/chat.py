# api/routes/chat.py
import logging
import time
from collections.abc import Callable
from typing import Literal

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from api.deps import get_budget, get_llm_factory
from repochat_app.config import BudgetConfig
from repochat_app.main import answer_query
from repochat_app.models import ParsedDigest

logger = logging.getLogger(__name__)

router = APIRouter()


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    digest: ParsedDigest = Field(..., description="Parsed digest as returned by /digest/parse or /digest/fetch")
    query: str
    history: list[ChatTurn] = Field(default_factory=list, description="Earlier turns of this conversation")


@router.post("/chat", summary="Ask a question about a parsed repository digest")
def chat_endpoint(
    request: ChatRequest,
    budget: BudgetConfig = Depends(get_budget),
    llm_factory: Callable = Depends(get_llm_factory),
):
    """Selects context for the query, asks the LLM and returns the answer with the files it cites."""
    logger.info("POST /chat repo=%s query_chars=%d history=%d",
                request.digest.title, len(request.query), len(request.history))
    t0 = time.time()
    try:
        llm_client, llm_settings = llm_factory()
    except ValueError as e:
        logger.error("POST /chat misconfigured: %s", e)
        return JSONResponse(status_code=400, content={"status": "error", "message": str(e)})

    result = answer_query(
        request.digest, request.query, llm_client, llm_settings, budget,
        history=[turn.model_dump() for turn in request.history],
    )
    logger.info("POST /chat completed in %.1fs (%d sources)", time.time() - t0, len(result.sources))
    return {"status": "success", "answer": result.answer, "sources": [f.model_dump() for f in result.sources]}
