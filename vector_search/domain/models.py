from datetime import datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field

from vector_search.domain.constants import (
    CHUNK_OVERLAP,
    CHUNK_SIZE,
    CHUNKING_STRATEGY,
    MAX_RESULTS_LIMIT,
)

ChunkingStrategy = Literal["character", "paragraph"]


# --- Core Entities ---


class ChunkingConfig(BaseModel):
    """How documents are split before embedding."""

    chunk_size: int = Field(default=CHUNK_SIZE, ge=0)
    chunk_overlap: int = Field(default=CHUNK_OVERLAP, ge=0)
    strategy: ChunkingStrategy = CHUNKING_STRATEGY


class ChunkRecord(BaseModel):
    """One embedded chunk of a document, as stored and persisted."""

    # Older index files used "path" for the owning document.
    document_path: str = Field(
        validation_alias=AliasChoices("document_path", "path"),
    )
    chunk_index: int = Field(ge=0)
    embedding: list[float] = Field(min_length=1)
    title: str = ""
    start_line: int = 0
    end_line: int = 0
    last_updated: float = 0.0
    checksum: str = ""

    @property
    def key(self) -> str:
        return make_key(self.document_path, self.chunk_index)


def make_key(document_path: str, chunk_index: int) -> str:
    """Identity key of a chunk record: '<path>#<index>'."""
    return f"{document_path}#{chunk_index}"


# --- Search Models ---


class SearchRequest(BaseModel):
    """Request body for POST /search."""

    query: str
    top_k: int | None = Field(default=None, ge=1, le=MAX_RESULTS_LIMIT)
    threshold: float | None = Field(default=None, ge=0.0, le=1.0)


class SearchResultItem(BaseModel):
    """A single ranked chunk."""

    chunk_id: str
    document_path: str
    title: str
    score: float
    start_line: int
    end_line: int


class SearchResponse(BaseModel):
    """Response from POST /search."""

    query: str
    status: Literal["ok", "query_too_short", "index_empty"] = "ok"
    message: str | None = None
    results: list[SearchResultItem] = []
    total_hits: int = Field(
        default=0,
        description="Number of results returned after threshold and top-k filtering.",
    )
    search_time_ms: float = 0.0


# --- Index Rebuild ---


class IndexProgress(BaseModel):
    """Progress of an in-flight full rebuild."""

    processed: int
    total: int
    percent: int


class IndexRebuildResponse(BaseModel):
    """Response from POST /index/rebuild."""

    status: Literal["success", "canceled"]
    message: str
    documents_indexed: int
    chunks_created: int
    failed_documents: list[str] = []
    failed_chunks: int = 0
    persisted: bool = True
    time_taken_seconds: float


class CancelResponse(BaseModel):
    """Response from POST /index/cancel."""

    cancelled: bool


# --- Health ---


class HealthResponse(BaseModel):
    """Response from GET /health."""

    status: str
    timestamp: str
    embedding_service: str = "unknown"


# --- Index Status ---


class IndexStatus(BaseModel):
    """Response from GET /index/status."""

    state: str
    indexed_documents: int
    indexed_chunks: int
    last_indexed: datetime | None = None
    progress: IndexProgress | None = None
    readiness: str
    last_error: str | None = None
    watcher_running: bool


class IndexedDocumentItem(BaseModel):
    """A document present in the index."""

    document_path: str
    chunk_count: int


class IndexedDocumentsResponse(BaseModel):
    """Response from GET /index/documents."""

    documents: list[IndexedDocumentItem]
    total: int
