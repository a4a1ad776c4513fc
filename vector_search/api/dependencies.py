from vector_search.application.index_service import IndexService
from vector_search.application.requirements_gate import RequirementsGate
from vector_search.application.search_service import SearchService
from vector_search.config import Settings, SettingsUpdate
from vector_search.infrastructure.chunker import Chunker
from vector_search.infrastructure.embedding import EmbeddingClient
from vector_search.infrastructure.vault_reader import VaultReader
from vector_search.infrastructure.vector_store import VectorStore
from vector_search.logging_config import get_logger

logger = get_logger(__name__)

_settings: Settings | None = None
_index_service: IndexService | None = None
_search_service: SearchService | None = None

# Shared infrastructure singletons (created once, shared across services)
_embedder: EmbeddingClient | None = None
_store: VectorStore | None = None
_gate: RequirementsGate | None = None


def initialize_services() -> None:
    """Initialize all services at startup. Called from FastAPI lifespan."""
    get_index_service()
    get_search_service()


async def shutdown_services() -> None:
    """Release the embedding client's connections."""
    if _embedder is not None:
        await _embedder.aclose()


def get_settings() -> Settings:
    """Return the active settings, loading them from the environment once."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def _shared() -> tuple[EmbeddingClient, VectorStore, RequirementsGate]:
    global _embedder, _store, _gate  # noqa: PLW0603
    settings = get_settings()
    if _embedder is None:
        _embedder = EmbeddingClient(
            base_url=settings.service_url,
            model_name=settings.model_name,
            timeout=settings.request_timeout_seconds,
        )
    # VectorStore defines __len__, so an empty store is falsy
    if _store is None:
        _store = VectorStore(settings.index_path)
    if _gate is None:
        _gate = RequirementsGate(_embedder)
    return _embedder, _store, _gate


def get_index_service() -> IndexService:
    """Return the singleton IndexService, creating it on first call."""
    global _index_service  # noqa: PLW0603
    if _index_service is None:
        settings = get_settings()
        logger.info("Initializing IndexService with vault: %s", settings.vault_path)
        embedder, store, gate = _shared()

        _index_service = IndexService(
            vault=VaultReader(settings.vault_path),
            chunker=Chunker(settings.chunking),
            embedder=embedder,
            store=store,
            gate=gate,
            debounce_delay=settings.file_debounce_seconds,
        )
        _index_service.initialize()

    return _index_service


def get_search_service() -> SearchService:
    """Return the singleton SearchService, creating it on first call."""
    global _search_service  # noqa: PLW0603
    if _search_service is None:
        embedder, store, gate = _shared()
        _search_service = SearchService(
            embedder=embedder,
            store=store,
            gate=gate,
            settings=get_settings(),
        )
        logger.info("Initialized SearchService")

    return _search_service


def update_settings(update: SettingsUpdate) -> Settings:
    """Apply a partial settings change to every component that reads it.

    Raises:
        pydantic.ValidationError: If the merged settings are invalid.
    """
    global _settings  # noqa: PLW0603
    old = get_settings()
    new = update.apply_to(old)
    _settings = new

    embedder, _, gate = _shared()
    embedder.configure(new.service_url, new.model_name)
    gate.on_settings_changed(old, new)
    get_index_service().configure(new)
    get_search_service().configure(new)

    logger.info("Settings updated: %s", ", ".join(update.model_dump(exclude_none=True)))
    return new


def set_settings(settings: Settings | None) -> None:
    """Override the settings singleton (for testing)."""
    global _settings  # noqa: PLW0603
    _settings = settings


def set_index_service(service: IndexService | None) -> None:
    """Override the IndexService singleton (for testing)."""
    global _index_service  # noqa: PLW0603
    _index_service = service


def set_search_service(service: SearchService | None) -> None:
    """Override the SearchService singleton (for testing)."""
    global _search_service  # noqa: PLW0603
    _search_service = service


def get_requirements_gate() -> RequirementsGate:
    """Return the shared RequirementsGate."""
    return _shared()[2]
