from enum import Enum

from vector_search.config import Settings
from vector_search.domain.errors import (
    ModelMissingError,
    RequirementsNotMetError,
    ServiceUnavailableError,
)
from vector_search.infrastructure.embedding import EmbeddingClient
from vector_search.logging_config import get_logger

logger = get_logger(__name__)


class ReadinessState(str, Enum):
    UNKNOWN = "unknown"
    READY = "ready"
    NOT_READY = "not_ready"


class RequirementsGate:
    """Cached check that the embedding service is up and has the model.

    The live check runs only from UNKNOWN, or from NOT_READY when the caller
    forces it (user-initiated search or rebuild). Background re-indexing uses
    the cached answer so per-edit work never hammers the service.
    """

    def __init__(self, client: EmbeddingClient) -> None:
        self._client = client
        self._state = ReadinessState.UNKNOWN
        self._last_error: RequirementsNotMetError | None = None

    @property
    def state(self) -> ReadinessState:
        return self._state

    @property
    def last_error(self) -> RequirementsNotMetError | None:
        """Why the last live check failed, or None."""
        return self._last_error

    async def ensure_ready(self, force_notify: bool = False) -> bool:
        if self._state is ReadinessState.READY:
            return True
        if self._state is ReadinessState.NOT_READY and not force_notify:
            return False

        error = await self._check()
        if error is None:
            self._state = ReadinessState.READY
            self._last_error = None
            logger.info(
                "Embedding service ready at %s with model %s",
                self._client.base_url,
                self._client.model_name,
            )
            return True

        self._state = ReadinessState.NOT_READY
        self._last_error = error
        logger.error("Embedding requirements not met: %s", error)
        return False

    def invalidate(self) -> None:
        """Forget the cached answer; the next ensure_ready() checks again."""
        self._state = ReadinessState.UNKNOWN
        self._last_error = None

    def on_settings_changed(self, old: Settings, new: Settings) -> None:
        if old.service_url != new.service_url or old.model_name != new.model_name:
            logger.info("Embedding service settings changed, rechecking on next use")
            self.invalidate()

    async def _check(self) -> RequirementsNotMetError | None:
        if not await self._client.check_version():
            return ServiceUnavailableError(
                f"Could not connect to the embedding service at {self._client.base_url}. "
                "Please ensure Ollama is installed and running."
            )

        models = await self._client.list_models()
        if models is None:
            return ServiceUnavailableError(
                "Could not check available models. Please verify the Ollama installation."
            )

        if self._client.model_name not in models:
            return ModelMissingError(self._client.model_name)
        return None
