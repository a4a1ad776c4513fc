from fastapi import APIRouter, HTTPException

from vector_search.api.dependencies import get_search_service
from vector_search.domain.errors import EmbeddingFailedError, RequirementsNotMetError
from vector_search.domain.models import SearchRequest, SearchResponse
from vector_search.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/search", tags=["search"])


@router.post(
    "",
    response_model=SearchResponse,
    summary="Semantic search over the vault",
    responses={
        503: {"description": "Embedding service or model not ready"},
    },
)
async def search_notes(request: SearchRequest) -> SearchResponse:
    """Accept a natural language query and return ranked chunks."""
    service = get_search_service()

    try:
        return await service.search(request)
    except (RequirementsNotMetError, EmbeddingFailedError) as e:
        logger.warning("Search failed for query %r: %s", request.query, e)
        raise HTTPException(
            status_code=503,
            detail={"error_code": e.error_code, "detail": str(e)},
        ) from e
