"""Configuration for the vector search service.

Loaded from environment variables with sensible defaults, and patchable at
runtime through the settings API.
"""

import os

from typing import Annotated

from pydantic import (
    AfterValidator,
    AnyHttpUrl,
    BaseModel,
    Field,
    TypeAdapter,
    ValidationError,
)

from vector_search.domain.constants import (
    CHUNK_OVERLAP,
    CHUNK_SIZE,
    CHUNKING_STRATEGY,
    DATA_DIR,
    FILE_DEBOUNCE_MS,
    INDEX_FILENAME,
    MAX_RESULTS_DEFAULT,
    MAX_RESULTS_LIMIT,
    MODEL_NAME,
    REQUEST_TIMEOUT_SECONDS,
    SEARCH_DEBOUNCE_MS,
    SERVICE_URL,
    SIMILARITY_THRESHOLD,
)
from vector_search.domain.models import ChunkingConfig, ChunkingStrategy

# Settings field -> environment variable
_ENV_VARS = {
    "vault_path": "OBSIDIAN_VAULT_PATH",
    "index_path": "VECTOR_SEARCH_INDEX_PATH",
    "service_url": "OLLAMA_URL",
    "model_name": "OLLAMA_MODEL",
    "search_threshold": "VECTOR_SEARCH_THRESHOLD",
    "max_results": "VECTOR_SEARCH_MAX_RESULTS",
    "chunk_size": "VECTOR_SEARCH_CHUNK_SIZE",
    "chunk_overlap": "VECTOR_SEARCH_CHUNK_OVERLAP",
    "chunking_strategy": "VECTOR_SEARCH_CHUNKING_STRATEGY",
    "debounce_time_ms": "VECTOR_SEARCH_DEBOUNCE_MS",
    "file_processing_debounce_ms": "VECTOR_SEARCH_FILE_DEBOUNCE_MS",
    "request_timeout_seconds": "OLLAMA_TIMEOUT",
}


_HTTP_URL = TypeAdapter(AnyHttpUrl)


def _check_service_url(value: str) -> str:
    """Accept only absolute http(s) URLs; the string itself is kept as given."""
    try:
        _HTTP_URL.validate_python(value)
    except ValidationError as e:
        raise ValueError(f"not a valid http(s) URL: {value!r}") from e
    return value


ServiceUrl = Annotated[str, AfterValidator(_check_service_url)]


class Settings(BaseModel):
    """Application configuration."""

    vault_path: str = "/vault"
    index_path: str = os.path.join(DATA_DIR, INDEX_FILENAME)
    service_url: ServiceUrl = SERVICE_URL
    model_name: str = Field(default=MODEL_NAME, min_length=1)
    search_threshold: float = Field(default=SIMILARITY_THRESHOLD, ge=0.0, le=1.0)
    max_results: int = Field(default=MAX_RESULTS_DEFAULT, ge=1, le=MAX_RESULTS_LIMIT)
    chunk_size: int = Field(default=CHUNK_SIZE, ge=0)
    chunk_overlap: int = Field(default=CHUNK_OVERLAP, ge=0)
    chunking_strategy: ChunkingStrategy = CHUNKING_STRATEGY
    debounce_time_ms: int = Field(default=SEARCH_DEBOUNCE_MS, ge=0)
    file_processing_debounce_ms: int = Field(default=FILE_DEBOUNCE_MS, ge=0)
    request_timeout_seconds: float = Field(default=REQUEST_TIMEOUT_SECONDS, gt=0)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables.

        Raises:
            ValueError: If a variable holds a value the field does not accept.
        """
        raw: dict[str, str] = {}
        for field_name, env_var in _ENV_VARS.items():
            value = os.getenv(env_var)
            if value is not None and value != "":
                raw[field_name] = value

        if "index_path" not in raw:
            data_dir = os.getenv("VECTOR_SEARCH_DATA_DIR", DATA_DIR)
            raw["index_path"] = os.path.join(data_dir, INDEX_FILENAME)

        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            bad = ", ".join(
                _ENV_VARS.get(str(err["loc"][0]), str(err["loc"][0]))
                for err in e.errors()
            )
            raise ValueError(f"Invalid configuration in {bad}: {e}") from e

    @property
    def chunking(self) -> ChunkingConfig:
        return ChunkingConfig(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            strategy=self.chunking_strategy,
        )

    @property
    def file_debounce_seconds(self) -> float:
        return self.file_processing_debounce_ms / 1000


class SettingsUpdate(BaseModel):
    """Partial settings change accepted by PATCH /settings."""

    service_url: ServiceUrl | None = None
    model_name: str | None = Field(default=None, min_length=1)
    search_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    max_results: int | None = Field(default=None, ge=1, le=MAX_RESULTS_LIMIT)
    chunk_size: int | None = Field(default=None, ge=0)
    chunk_overlap: int | None = Field(default=None, ge=0)
    chunking_strategy: ChunkingStrategy | None = None
    debounce_time_ms: int | None = Field(default=None, ge=0)
    file_processing_debounce_ms: int | None = Field(default=None, ge=0)

    def apply_to(self, settings: Settings) -> Settings:
        """Return a copy of settings with the provided fields replaced."""
        changes = self.model_dump(exclude_none=True)
        return Settings.model_validate({**settings.model_dump(), **changes})
