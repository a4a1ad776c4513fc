"""Tests for the EmbeddingClient against a mocked Ollama HTTP API."""

import json
import logging
from collections.abc import Callable

import httpx
import pytest

from vector_search.infrastructure.embedding import EmbeddingClient

Handler = Callable[[httpx.Request], httpx.Response]


def _client(handler: Handler) -> EmbeddingClient:
    return EmbeddingClient(
        base_url="http://ollama.test:11434/",
        model_name="nomic-embed-text:latest",
        transport=httpx.MockTransport(handler),
    )


class TestEmbed:
    @pytest.mark.asyncio
    async def test_embed_should_post_model_and_prompt(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"embedding": [0.1, 0.2, 3]})

        client = _client(handler)
        vector = await client.embed("hello world", context="a.md#0")
        await client.aclose()

        assert vector == [0.1, 0.2, 3.0]
        assert seen[0].method == "POST"
        assert str(seen[0].url) == "http://ollama.test:11434/api/embeddings"
        assert json.loads(seen[0].content) == {
            "model": "nomic-embed-text:latest",
            "prompt": "hello world",
        }

    @pytest.mark.asyncio
    async def test_embed_should_return_empty_on_http_error(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        client = _client(lambda request: httpx.Response(500, text="boom"))

        with caplog.at_level(logging.WARNING):
            vector = await client.embed("text", context="notes/a.md#3")

        assert vector == []
        assert "notes/a.md#3" in caplog.text

    @pytest.mark.asyncio
    async def test_embed_should_return_empty_when_unreachable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        vector = await _client(handler).embed("text")

        assert vector == []

    @pytest.mark.asyncio
    async def test_embed_should_return_empty_on_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        vector = await _client(handler).embed("text")

        assert vector == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"error": "model not found"},
            {"embedding": []},
            {"embedding": "0.1,0.2"},
            {"embedding": [0.1, "x"]},
            {"embedding": [True, False]},
            {"embedding": None},
            [0.1, 0.2],
        ],
    )
    async def test_embed_should_reject_malformed_embedding(self, body: object) -> None:
        client = _client(lambda request: httpx.Response(200, json=body))

        assert await client.embed("text") == []

    @pytest.mark.asyncio
    async def test_embed_should_return_empty_for_non_json_body(self) -> None:
        client = _client(lambda request: httpx.Response(200, text="<html>"))

        assert await client.embed("text") == []


class TestServiceChecks:
    @pytest.mark.asyncio
    async def test_check_version_should_hit_version_endpoint(self) -> None:
        paths: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, json={"version": "0.5.1"})

        assert await _client(handler).check_version() is True
        assert paths == ["/api/version"]

    @pytest.mark.asyncio
    async def test_check_version_should_fail_on_error_status(self) -> None:
        client = _client(lambda request: httpx.Response(503))

        assert await client.check_version() is False

    @pytest.mark.asyncio
    async def test_check_version_should_fail_when_unreachable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert await _client(handler).check_version() is False

    @pytest.mark.asyncio
    async def test_list_models_should_return_model_names(self) -> None:
        body = {
            "models": [
                {"name": "nomic-embed-text:latest", "size": 1},
                {"name": "llama3:8b"},
                {"size": 2},
            ]
        }
        client = _client(lambda request: httpx.Response(200, json=body))

        assert await client.list_models() == ["nomic-embed-text:latest", "llama3:8b"]

    @pytest.mark.asyncio
    async def test_list_models_should_return_empty_when_field_missing(self) -> None:
        client = _client(lambda request: httpx.Response(200, json={}))

        assert await client.list_models() == []

    @pytest.mark.asyncio
    async def test_list_models_should_return_none_on_failure(self) -> None:
        client = _client(lambda request: httpx.Response(404))

        assert await client.list_models() is None


class TestMalformedBaseUrl:
    BAD_URLS = ["http://[::1", "http://exa\x00mple"]

    @staticmethod
    def _client_for(base_url: str) -> EmbeddingClient:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"embedding": [1.0]})

        return EmbeddingClient(
            base_url=base_url,
            model_name="nomic-embed-text:latest",
            transport=httpx.MockTransport(handler),
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("base_url", BAD_URLS)
    async def test_embed_should_return_empty_for_malformed_url(self, base_url: str) -> None:
        assert await self._client_for(base_url).embed("hello") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("base_url", BAD_URLS)
    async def test_check_version_should_fail_for_malformed_url(self, base_url: str) -> None:
        assert await self._client_for(base_url).check_version() is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("base_url", BAD_URLS)
    async def test_list_models_should_return_none_for_malformed_url(
        self, base_url: str
    ) -> None:
        assert await self._client_for(base_url).list_models() is None


class TestConfigure:
    @pytest.mark.asyncio
    async def test_configure_should_change_url_and_model(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"embedding": [1.0]})

        client = _client(handler)
        client.configure("http://other:9999", "mxbai-embed-large")
        await client.embed("text")

        assert seen[0].url.host == "other"
        assert json.loads(seen[0].content)["model"] == "mxbai-embed-large"
        assert client.model_name == "mxbai-embed-large"
