"""Tests for SearchService query handling and ranking."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from vector_search.application.search_service import SearchService
from vector_search.config import Settings
from vector_search.domain.errors import EmbeddingFailedError, ModelMissingError
from vector_search.domain.models import ChunkRecord, SearchRequest
from vector_search.infrastructure.vector_store import VectorStore


def _make_service(
    tmp_path,
    query_vector: list[float] | None = None,
    ready: bool = True,
    settings: Settings | None = None,
) -> tuple[SearchService, VectorStore, MagicMock, MagicMock]:
    store = VectorStore(str(tmp_path / "vectors.json"))
    embedder = MagicMock()
    embedder.embed = AsyncMock(return_value=[1.0, 0.0] if query_vector is None else query_vector)
    gate = MagicMock()
    gate.ensure_ready = AsyncMock(return_value=ready)
    gate.last_error = None if ready else ModelMissingError("nomic-embed-text:latest")
    service = SearchService(embedder=embedder, store=store, gate=gate, settings=settings)
    return service, store, embedder, gate


def _add(store: VectorStore, path: str, index: int, embedding: list[float]) -> None:
    store.add(
        ChunkRecord(
            document_path=path,
            chunk_index=index,
            embedding=embedding,
            title=f"{path} (chunk {index + 1})",
            start_line=index * 3,
            end_line=index * 3 + 2,
        )
    )


class TestSearchGuards:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "ab", "  a  ", "\n\t"])
    async def test_short_query_should_return_no_results(self, tmp_path, query: str) -> None:
        service, store, embedder, gate = _make_service(tmp_path)
        _add(store, "a.md", 0, [1.0, 0.0])

        response = await service.search(SearchRequest(query=query))

        assert response.status == "query_too_short"
        assert response.results == []
        embedder.embed.assert_not_awaited()
        gate.ensure_ready.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_index_should_return_index_empty(self, tmp_path) -> None:
        service, _, embedder, _ = _make_service(tmp_path)

        response = await service.search(SearchRequest(query="project plans"))

        assert response.status == "index_empty"
        assert "rebuild" in response.message
        embedder.embed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_search_should_raise_when_requirements_not_met(self, tmp_path) -> None:
        service, store, embedder, gate = _make_service(tmp_path, ready=False)
        _add(store, "a.md", 0, [1.0, 0.0])

        with pytest.raises(ModelMissingError, match="ollama pull"):
            await service.search(SearchRequest(query="project plans"))

        gate.ensure_ready.assert_awaited_once_with(force_notify=True)
        embedder.embed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_search_should_raise_when_query_embedding_fails(self, tmp_path) -> None:
        service, store, _, _ = _make_service(tmp_path, query_vector=[])
        _add(store, "a.md", 0, [1.0, 0.0])

        with pytest.raises(EmbeddingFailedError):
            await service.search(SearchRequest(query="project plans"))


class TestSearchRanking:
    @pytest.mark.asyncio
    async def test_search_should_rank_above_threshold(self, tmp_path) -> None:
        service, store, _, _ = _make_service(tmp_path)
        _add(store, "far.md", 0, [0.0, 1.0])
        _add(store, "close.md", 0, [1.0, 0.1])
        _add(store, "exact.md", 1, [2.0, 0.0])

        response = await service.search(SearchRequest(query="project plans"))

        assert response.status == "ok"
        assert [r.document_path for r in response.results] == ["exact.md", "close.md"]
        assert response.total_hits == 2
        top = response.results[0]
        assert top.chunk_id == "exact.md#1"
        assert top.score == pytest.approx(1.0)
        assert (top.start_line, top.end_line) == (3, 5)
        assert top.title == "exact.md (chunk 2)"

    @pytest.mark.asyncio
    async def test_request_values_should_override_settings(self, tmp_path) -> None:
        service, store, _, _ = _make_service(tmp_path)
        for i in range(5):
            _add(store, f"n{i}.md", 0, [1.0, i / 2])

        response = await service.search(
            SearchRequest(query="project plans", top_k=2, threshold=0.0)
        )

        assert [r.document_path for r in response.results] == ["n0.md", "n1.md"]

    @pytest.mark.asyncio
    async def test_settings_should_supply_default_threshold_and_limit(
        self, tmp_path
    ) -> None:
        settings = Settings(search_threshold=0.1, max_results=3)
        service, store, _, _ = _make_service(tmp_path, settings=settings)
        for i in range(6):
            _add(store, f"n{i}.md", 0, [1.0, i / 10])

        response = await service.search(SearchRequest(query="project plans"))

        assert len(response.results) == 3

    @pytest.mark.asyncio
    async def test_configure_should_change_defaults(self, tmp_path) -> None:
        service, store, _, _ = _make_service(tmp_path)
        _add(store, "diagonal.md", 0, [1.0, 1.0])

        before = await service.search(SearchRequest(query="project plans"))
        service.configure(Settings(search_threshold=0.5))
        after = await service.search(SearchRequest(query="project plans"))

        assert before.results == []
        assert [r.document_path for r in after.results] == ["diagonal.md"]

    @pytest.mark.asyncio
    async def test_search_should_return_empty_results_when_nothing_matches(
        self, tmp_path
    ) -> None:
        service, store, _, _ = _make_service(tmp_path, query_vector=[-1.0, 0.0])
        _add(store, "a.md", 0, [1.0, 0.0])

        response = await service.search(SearchRequest(query="unrelated topic"))

        assert response.status == "ok"
        assert response.results == []
        assert response.total_hits == 0
