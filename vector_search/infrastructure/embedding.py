import math
from numbers import Real
from typing import Any

import httpx

from vector_search.domain.constants import MODEL_NAME, REQUEST_TIMEOUT_SECONDS, SERVICE_URL
from vector_search.logging_config import get_logger

logger = get_logger(__name__)

# A malformed base URL raises InvalidURL, which is not a RequestError
_CONNECT_ERRORS = (httpx.RequestError, httpx.InvalidURL)


class EmbeddingClient:
    """Thin async wrapper around an Ollama-compatible embedding service.

    Never raises across its boundary: failed calls are logged and reported as
    an empty vector (embed), False (check_version) or None (list_models).
    """

    def __init__(
        self,
        base_url: str = SERVICE_URL,
        model_name: str = MODEL_NAME,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model_name = model_name
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def model_name(self) -> str:
        return self._model_name

    def configure(self, base_url: str, model_name: str) -> None:
        """Point subsequent calls at a different service URL or model."""
        self._base_url = base_url.rstrip("/")
        self._model_name = model_name

    async def aclose(self) -> None:
        await self._client.aclose()

    async def embed(self, text: str, context: str = "") -> list[float]:
        """Embed a single text. Returns [] on any failure."""
        label = context or "query"
        try:
            response = await self._client.post(
                f"{self._base_url}/api/embeddings",
                json={"model": self._model_name, "prompt": text},
            )
        except httpx.TimeoutException:
            logger.warning("Embedding request timed out for %s", label)
            return []
        except _CONNECT_ERRORS as e:
            logger.warning("Embedding service unreachable for %s: %s", label, e)
            return []

        if not response.is_success:
            logger.warning(
                "Embedding request failed for %s: HTTP %d: %s",
                label,
                response.status_code,
                response.text[:200],
            )
            return []

        try:
            data = response.json()
        except ValueError:
            logger.warning("Embedding response for %s is not JSON", label)
            return []

        vector = self._parse_embedding(data)
        if vector is None:
            logger.warning(
                "Embedding response for %s has no valid 'embedding' array", label
            )
            return []
        return vector

    async def check_version(self) -> bool:
        """Liveness probe: GET /api/version must answer with a 2xx status."""
        try:
            response = await self._client.get(f"{self._base_url}/api/version")
        except _CONNECT_ERRORS as e:
            logger.warning("Embedding service at %s unreachable: %s", self._base_url, e)
            return False
        if not response.is_success:
            logger.warning(
                "Embedding service version check failed: HTTP %d", response.status_code
            )
            return False
        return True

    async def list_models(self) -> list[str] | None:
        """Names of installed models from GET /api/tags, or None on failure."""
        try:
            response = await self._client.get(f"{self._base_url}/api/tags")
        except _CONNECT_ERRORS as e:
            logger.warning("Could not list models at %s: %s", self._base_url, e)
            return None
        if not response.is_success:
            logger.warning("Model listing failed: HTTP %d", response.status_code)
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("Model listing response is not JSON")
            return None

        models = data.get("models") if isinstance(data, dict) else None
        if not isinstance(models, list):
            return []
        return [
            m["name"]
            for m in models
            if isinstance(m, dict) and isinstance(m.get("name"), str)
        ]

    @staticmethod
    def _parse_embedding(data: Any) -> list[float] | None:
        """Extract a non-empty list of finite numbers from the 'embedding' field."""
        if not isinstance(data, dict):
            return None
        raw = data.get("embedding")
        if not isinstance(raw, list) or not raw:
            return None
        vector: list[float] = []
        for value in raw:
            # bool is a Real subclass but never a valid component
            if isinstance(value, bool) or not isinstance(value, Real):
                return None
            number = float(value)
            if not math.isfinite(number):
                return None
            vector.append(number)
        return vector
