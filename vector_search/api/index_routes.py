from fastapi import APIRouter, HTTPException

from vector_search.api.dependencies import get_index_service
from vector_search.domain.errors import RequirementsNotMetError
from vector_search.domain.models import (
    CancelResponse,
    IndexedDocumentsResponse,
    IndexRebuildResponse,
    IndexStatus,
)
from vector_search.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/index", tags=["index"])


@router.post(
    "/rebuild",
    response_model=IndexRebuildResponse,
    summary="Trigger full vault re-index",
    responses={
        409: {"description": "Re-index already in progress"},
        503: {"description": "Embedding service or model not available"},
    },
)
async def rebuild_index() -> IndexRebuildResponse:
    """Force a full re-index of the vault (manual trigger)."""
    service = get_index_service()

    try:
        result = await service.index_full_vault()
    except RequirementsNotMetError as e:
        raise HTTPException(
            status_code=503,
            detail={"error_code": e.error_code, "detail": str(e)},
        ) from e

    if result is None:
        raise HTTPException(
            status_code=409,
            detail={
                "error_code": "REINDEX_IN_PROGRESS",
                "detail": "A re-index operation is already running.",
            },
        )

    return result


@router.post(
    "/cancel",
    response_model=CancelResponse,
    summary="Cancel a running full re-index",
)
def cancel_rebuild() -> CancelResponse:
    """Stop the running rebuild at its next checkpoint, keeping the old index."""
    service = get_index_service()
    return CancelResponse(cancelled=service.cancel())


@router.post(
    "/reset",
    status_code=204,
    summary="Delete the whole index",
    responses={409: {"description": "Re-index in progress"}},
)
def reset_index() -> None:
    """Clear every stored chunk and remove the persisted index file."""
    service = get_index_service()
    if not service.reset_index():
        raise HTTPException(
            status_code=409,
            detail={
                "error_code": "REINDEX_IN_PROGRESS",
                "detail": "Cannot reset the index while a re-index is running.",
            },
        )


@router.get(
    "/status",
    response_model=IndexStatus,
    summary="Get index health, statistics and rebuild progress",
)
def get_index_status() -> IndexStatus:
    """Return current index statistics."""
    service = get_index_service()
    return service.get_status()


@router.get(
    "/documents",
    response_model=IndexedDocumentsResponse,
    summary="List all indexed documents",
)
def get_indexed_documents() -> IndexedDocumentsResponse:
    """Return every indexed document with its chunk count."""
    service = get_index_service()
    documents = service.get_indexed_documents()
    return IndexedDocumentsResponse(documents=documents, total=len(documents))
