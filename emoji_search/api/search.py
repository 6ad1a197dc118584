"""
Emoji search endpoint
"""

from typing import List

from emoji_search.core.dependencies import get_client_key, get_search_pipeline
from emoji_search.core.logging import get_logger
from emoji_search.services.search_pipeline import SearchPipeline
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

router = APIRouter(prefix="/emojis", tags=["search"])
logger = get_logger(__name__)


class SearchResponse(BaseModel):
    """Emojis matching the query, most relevant first"""

    emojis: List[str]


class ErrorResponse(BaseModel):
    error: str


@router.get(
    "/search",
    response_model=SearchResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing or empty query"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Upstream failure"},
    },
)
async def search_emojis(
    query: str = Query(..., min_length=1, description="Free-text search query"),
    client_key: str = Depends(get_client_key),
    pipeline: SearchPipeline = Depends(get_search_pipeline),
):
    """
    Search emojis by free-text query.

    Candidates come from vector similarity over the emoji vocabulary and
    are filtered and ordered by an LLM. Results are all-or-nothing: a
    failure never returns a partial list.
    """
    emojis = await pipeline.search(query, client_key=client_key)
    return SearchResponse(emojis=emojis)
