from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from vector_search.api.dependencies import get_settings, update_settings
from vector_search.config import Settings, SettingsUpdate

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=Settings, summary="Get the active settings")
def read_settings() -> Settings:
    return get_settings()


@router.patch(
    "",
    response_model=Settings,
    summary="Change settings at runtime",
    responses={422: {"description": "Resulting settings are invalid"}},
)
def patch_settings(update: SettingsUpdate) -> Settings:
    """Apply a partial change. Changing the URL or model forces a readiness recheck."""
    try:
        return update_settings(update)
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"error_code": "INVALID_SETTINGS", "detail": str(e)},
        ) from e
