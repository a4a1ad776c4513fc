class VectorSearchError(Exception):
    """Base class for errors raised by the vector search service."""


class RequirementsNotMetError(VectorSearchError):
    """The embedding service or the configured model is not usable."""

    error_code = "REQUIREMENTS_NOT_MET"


class ServiceUnavailableError(RequirementsNotMetError):
    """The embedding service did not answer its liveness or model-list call."""

    error_code = "SERVICE_UNAVAILABLE"


class ModelMissingError(RequirementsNotMetError):
    """The service is reachable but the configured model is not installed."""

    error_code = "MODEL_MISSING"

    def __init__(self, model_name: str) -> None:
        super().__init__(
            f"Required model '{model_name}' not found. "
            f"Please run: ollama pull {model_name}"
        )
        self.model_name = model_name


class EmbeddingFailedError(VectorSearchError):
    """A query could not be turned into an embedding vector."""

    error_code = "EMBEDDING_FAILED"
