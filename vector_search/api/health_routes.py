from datetime import datetime, timezone

from fastapi import APIRouter

from vector_search.api.dependencies import get_requirements_gate
from vector_search.domain.models import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse, summary="Health check endpoint")
def health_check() -> HealthResponse:
    """Return service health and the cached embedding-service readiness.

    Never triggers a network call to the embedding service.
    """
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(tz=timezone.utc).isoformat(),
        embedding_service=get_requirements_gate().state.value,
    )
