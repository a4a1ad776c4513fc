import time

from vector_search.application.requirements_gate import RequirementsGate
from vector_search.config import Settings
from vector_search.domain.constants import MIN_QUERY_LENGTH
from vector_search.domain.errors import EmbeddingFailedError, RequirementsNotMetError
from vector_search.domain.models import SearchRequest, SearchResponse, SearchResultItem
from vector_search.infrastructure.embedding import EmbeddingClient
from vector_search.infrastructure.similarity import rank
from vector_search.infrastructure.vector_store import VectorStore
from vector_search.logging_config import get_logger

logger = get_logger(__name__)


class SearchService:
    """Embed a query and rank stored chunks against it by cosine similarity."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        store: VectorStore,
        gate: RequirementsGate,
        settings: Settings | None = None,
    ) -> None:
        self._embedder = embedder
        self._store = store
        self._gate = gate
        self._settings = settings or Settings()

    def configure(self, settings: Settings) -> None:
        self._settings = settings

    async def search(self, request: SearchRequest) -> SearchResponse:
        """Rank indexed chunks for a natural-language query.

        Raises:
            RequirementsNotMetError: If the embedding service or model is missing.
            EmbeddingFailedError: If the query embedding could not be produced.
        """
        start = time.time()

        if len(request.query.strip()) < MIN_QUERY_LENGTH:
            return SearchResponse(
                query=request.query,
                status="query_too_short",
                message=f"Type at least {MIN_QUERY_LENGTH} characters to search",
            )

        if len(self._store) == 0:
            return SearchResponse(
                query=request.query,
                status="index_empty",
                message="Vector index is empty. Please rebuild the index first.",
            )

        if not await self._gate.ensure_ready(force_notify=True):
            raise self._gate.last_error or RequirementsNotMetError(
                "Embedding service is not ready"
            )

        query_vector = await self._embedder.embed(request.query)
        if not query_vector:
            raise EmbeddingFailedError("Error getting embedding for the search query")

        threshold = (
            request.threshold
            if request.threshold is not None
            else self._settings.search_threshold
        )
        max_results = (
            request.top_k if request.top_k is not None else self._settings.max_results
        )

        ranked = rank(query_vector, self._store.records(), threshold, max_results)
        results = [
            SearchResultItem(
                chunk_id=record.key,
                document_path=record.document_path,
                title=record.title,
                score=score,
                start_line=record.start_line,
                end_line=record.end_line,
            )
            for record, score in ranked
        ]

        elapsed_ms = (time.time() - start) * 1000
        logger.info(
            "Search '%s': %d results in %.1fms", request.query, len(results), elapsed_ms
        )

        return SearchResponse(
            query=request.query,
            results=results,
            total_hits=len(results),
            search_time_ms=round(elapsed_ms, 1),
        )
