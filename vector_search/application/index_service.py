import asyncio
import concurrent.futures
import hashlib
import time
from collections.abc import Callable, Coroutine
from typing import Any
from dataclasses import dataclass, field
from enum import Enum

from vector_search.application.requirements_gate import RequirementsGate
from vector_search.config import Settings
from vector_search.domain.constants import FILE_DEBOUNCE_MS
from vector_search.domain.errors import RequirementsNotMetError
from vector_search.domain.models import (
    ChunkRecord,
    IndexedDocumentItem,
    IndexProgress,
    IndexRebuildResponse,
    IndexStatus,
)
from vector_search.infrastructure.chunker import Chunker, TextChunk
from vector_search.infrastructure.debouncer import Debouncer
from vector_search.infrastructure.embedding import EmbeddingClient
from vector_search.infrastructure.file_watcher import FileWatcher
from vector_search.infrastructure.vault_reader import (
    VaultReader,
    document_title,
    normalize_path,
)
from vector_search.infrastructure.vector_store import VectorStore
from vector_search.logging_config import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[IndexProgress], None]


class IndexerState(str, Enum):
    IDLE = "idle"
    INDEXING = "indexing"
    CANCELLING = "cancelling"


@dataclass
class IndexingRun:
    """Working state of one full rebuild, kept apart from the live store."""

    total: int = 0
    processed: int = 0
    cancel_requested: bool = False
    records: list[ChunkRecord] = field(default_factory=list)
    failed_documents: list[str] = field(default_factory=list)
    failed_chunks: int = 0

    @property
    def progress(self) -> IndexProgress:
        percent = round(self.processed / self.total * 100) if self.total else 100
        return IndexProgress(processed=self.processed, total=self.total, percent=percent)


def _log_progress(progress: IndexProgress) -> None:
    logger.info(
        "Indexing documents: %d/%d (%d%%)",
        progress.processed,
        progress.total,
        progress.percent,
    )


def _log_event_failure(future: concurrent.futures.Future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error("Handling of a vault event failed", exc_info=error)


class IndexService:
    """Keep the vector store in step with the vault.

    Owns every mutation of the store: full rebuilds, per-document re-indexing
    on change events, removal on delete/rename. Each mutation ends with a save.
    """

    def __init__(
        self,
        vault: VaultReader,
        chunker: Chunker,
        embedder: EmbeddingClient,
        store: VectorStore,
        gate: RequirementsGate,
        debounce_delay: float = FILE_DEBOUNCE_MS / 1000,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._vault = vault
        self._chunker = chunker
        self._embedder = embedder
        self._store = store
        self._gate = gate
        self._on_progress = on_progress or _log_progress
        self._state = IndexerState.IDLE
        self._run: IndexingRun | None = None
        # Bumped on every request touching a path; stale results are dropped
        self._generations: dict[str, int] = {}
        # Paths that changed while a full rebuild held the store
        self._deferred: dict[str, None] = {}
        self._last_error: str | None = None
        self._debouncer = Debouncer(callback=self._on_debounced, delay=debounce_delay)
        self._watcher: FileWatcher | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def state(self) -> IndexerState:
        return self._state

    def initialize(self) -> None:
        """Load the persisted index into memory."""
        self._store.load()

    def configure(self, settings: Settings) -> None:
        """Apply changed chunking and debounce settings."""
        self._chunker.configure(settings.chunking)
        self._debouncer.delay = settings.file_debounce_seconds

    # --- Watcher wiring ---

    def start_watcher(self) -> None:
        """Create and start the file watcher. Call from the event loop."""
        if self._watcher is not None and self._watcher.is_running:
            return

        self._loop = asyncio.get_running_loop()
        self._watcher = FileWatcher(
            vault_path=self._vault.vault_path,
            on_changed=self._on_file_changed,  # Debounced: coalesce rapid saves
            on_deleted=self._on_file_deleted,  # Immediate: deletes are one-shot
            on_moved=self._on_file_moved,  # Immediate: renames are one-shot
        )
        self._watcher.start()
        logger.info("Watcher started for vault: %s", self._vault.vault_path)

    def stop_watcher(self) -> None:
        """Stop the file watcher and cancel pending debounce timers."""
        self._debouncer.cancel_all()
        if self._watcher is not None:
            self._watcher.stop()
        logger.info("Watcher stopped")

    def _on_file_changed(self, path: str) -> None:
        # Called on the watchdog thread
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self.schedule_document, path)

    def _on_file_deleted(self, path: str) -> None:
        self._submit(self.remove_document(path))

    def _on_file_moved(self, old_path: str, new_path: str) -> None:
        self._submit(self.rename_document(old_path, new_path))

    def _submit(self, coro: Coroutine[Any, Any, Any]) -> None:
        """Run a coroutine on the service loop from the watchdog thread."""
        if self._loop is None:
            coro.close()
            return
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        future.add_done_callback(_log_event_failure)

    async def _on_debounced(self, path: str) -> None:
        await self.index_document(path)

    # --- Full rebuild ---

    def cancel(self) -> bool:
        """Ask the running rebuild to stop at its next checkpoint."""
        if self._state is not IndexerState.INDEXING or self._run is None:
            return False
        self._run.cancel_requested = True
        self._state = IndexerState.CANCELLING
        logger.info("Cancellation requested for full rebuild")
        return True

    async def index_full_vault(
        self, documents: list[str] | None = None
    ) -> IndexRebuildResponse | None:
        """Re-index every document from scratch. Returns None if already running.

        Raises:
            RequirementsNotMetError: If the embedding service or model is missing.
        """
        if self._state is not IndexerState.IDLE:
            logger.warning("Full rebuild requested while one is in progress")
            return None

        self._state = IndexerState.INDEXING
        # Re-indexes already in flight must not write over this run's records
        for path in self._generations:
            self._generations[path] += 1
        run = IndexingRun()
        self._run = run
        start_time = time.time()

        try:
            if not await self._gate.ensure_ready(force_notify=True):
                raise self._gate.last_error or RequirementsNotMetError(
                    "Embedding service is not ready"
                )

            if documents is None:
                documents = await asyncio.to_thread(self._vault.list_documents)
            paths = [normalize_path(p) for p in documents]
            run.total = len(paths)
            logger.info("Full rebuild started: %d documents", run.total)

            for path in paths:
                if run.cancel_requested:
                    break
                await self._index_into_run(path, run)
                if run.cancel_requested:
                    break
                run.processed += 1
                self._on_progress(run.progress)

            elapsed = round(time.time() - start_time, 1)

            if run.cancel_requested:
                self._store.load()
                logger.info(
                    "Full rebuild canceled after %d/%d documents; existing index preserved",
                    run.processed,
                    run.total,
                )
                return IndexRebuildResponse(
                    status="canceled",
                    message="Indexing canceled, existing index preserved",
                    documents_indexed=run.processed,
                    chunks_created=0,
                    failed_documents=run.failed_documents,
                    failed_chunks=run.failed_chunks,
                    persisted=False,
                    time_taken_seconds=elapsed,
                )

            self._store.replace_all(run.records)
            persisted = self._persist()

            logger.info(
                "Rebuild complete: %d documents, %d chunks in %.1fs "
                "(%d documents failed, %d chunks skipped)",
                run.processed,
                len(run.records),
                elapsed,
                len(run.failed_documents),
                run.failed_chunks,
            )
            return IndexRebuildResponse(
                status="success",
                message="Vector index rebuilt successfully",
                documents_indexed=run.processed - len(run.failed_documents),
                chunks_created=len(run.records),
                failed_documents=run.failed_documents,
                failed_chunks=run.failed_chunks,
                persisted=persisted,
                time_taken_seconds=elapsed,
            )
        finally:
            self._state = IndexerState.IDLE
            self._run = None
            self._flush_deferred()

    async def _index_into_run(self, path: str, run: IndexingRun) -> None:
        try:
            text = await self._read(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read %s, skipping: %s", path, e)
            run.failed_documents.append(path)
            return

        records, failed = await self._embed_chunks(
            path,
            self._chunker.chunk(text),
            should_stop=lambda: run.cancel_requested,
        )
        run.records.extend(records)
        run.failed_chunks += failed

    # --- Incremental updates ---

    def schedule_document(self, path: str) -> None:
        """Debounced re-index request for a created or modified document."""
        self._debouncer.trigger(normalize_path(path))

    async def index_document(self, path: str) -> int | None:
        """Re-index one document. Returns the new chunk count, or None if skipped.

        A document that no longer exists has its records removed.
        """
        path = normalize_path(path)
        if self._defer_if_rebuilding(path):
            return None

        generation = self._bump(path)

        # Background path: never re-check a cached failure
        if not await self._gate.ensure_ready():
            logger.debug("Embedding service not ready, skipping %s", path)
            return None

        try:
            text = await self._read(path)
        except FileNotFoundError:
            logger.info("Document %s no longer exists, removing from index", path)
            await self.remove_document(path)
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read %s, skipping: %s", path, e)
            self._last_error = f"Failed to read {path}: {e}"
            return None

        records, failed = await self._embed_chunks(
            path,
            self._chunker.chunk(text),
            should_stop=lambda: self._generations.get(path) != generation,
        )

        if self._generations.get(path) != generation:
            logger.debug("Discarding superseded re-index of %s", path)
            return None
        if self._defer_if_rebuilding(path):
            return None

        self._store.remove_document(path)
        for record in records:
            self._store.add(record)
        self._persist()

        logger.info(
            "Re-indexed %s: %d chunks (%d skipped)", path, len(records), failed
        )
        return len(records)

    async def remove_document(self, path: str) -> int:
        """Remove every chunk of a deleted document and persist."""
        path = normalize_path(path)
        if self._defer_if_rebuilding(path):
            return 0

        self._bump(path)
        self._debouncer.cancel(path)
        removed = self._store.remove_document(path)
        if removed:
            self._persist()
        logger.info("Removed %s from index (%d chunks)", path, removed)
        return removed

    async def rename_document(self, old_path: str, new_path: str) -> None:
        """Drop the old path's chunks and queue the new path for indexing."""
        old_path = normalize_path(old_path)
        new_path = normalize_path(new_path)
        if self._state is not IndexerState.IDLE:
            self._defer_if_rebuilding(old_path)
            self._defer_if_rebuilding(new_path)
            return

        await self.remove_document(old_path)
        self.schedule_document(new_path)
        logger.info("Renamed document in index: %s -> %s", old_path, new_path)

    def reset_index(self) -> bool:
        """Empty the store and delete its backing file. False while rebuilding."""
        if self._state is not IndexerState.IDLE:
            return False
        # In-flight re-indexes see a changed generation and drop their result
        self._generations.clear()
        self._store.clear()
        return True

    # --- Status ---

    def get_status(self) -> IndexStatus:
        """Return current index statistics."""
        return IndexStatus(
            state=self._state.value,
            indexed_documents=len(self._store.document_paths()),
            indexed_chunks=len(self._store),
            last_indexed=self._store.last_indexed,
            progress=self._run.progress if self._run is not None else None,
            readiness=self._gate.state.value,
            last_error=self._last_error,
            watcher_running=self._watcher is not None and self._watcher.is_running,
        )

    def get_indexed_documents(self) -> list[IndexedDocumentItem]:
        return [
            IndexedDocumentItem(document_path=path, chunk_count=count)
            for path, count in sorted(self._store.document_paths().items())
        ]

    # --- Internals ---

    async def _embed_chunks(
        self,
        path: str,
        chunks: list[TextChunk],
        should_stop: Callable[[], bool],
    ) -> tuple[list[ChunkRecord], int]:
        """Embed chunks in order. Returns (records, number of failed chunks)."""
        title = document_title(path)
        total = len(chunks)
        records: list[ChunkRecord] = []
        failed = 0

        for index, chunk in enumerate(chunks):
            if should_stop():
                break
            if not chunk.text.strip():
                continue

            embedding = await self._embedder.embed(chunk.text, context=f"{path}#{index}")
            if not embedding:
                failed += 1
                continue

            records.append(
                ChunkRecord(
                    document_path=path,
                    chunk_index=index,
                    embedding=embedding,
                    title=f"{title} (chunk {index + 1}/{total})",
                    start_line=chunk.start_line,
                    end_line=chunk.end_line,
                    last_updated=time.time(),
                    checksum=hashlib.sha256(chunk.text.encode("utf-8")).hexdigest(),
                )
            )

        return records, failed

    async def _read(self, path: str) -> str:
        return await asyncio.to_thread(self._vault.read, path)

    def _persist(self) -> bool:
        """Save the store; failures are logged and kept, memory is not rolled back."""
        try:
            self._store.save()
        except OSError as e:
            logger.exception("Failed to save vector index")
            self._last_error = f"Failed to save index: {e}"
            return False
        self._last_error = None
        return True

    def _bump(self, path: str) -> int:
        generation = self._generations.get(path, 0) + 1
        self._generations[path] = generation
        return generation

    def _defer_if_rebuilding(self, path: str) -> bool:
        if self._state is IndexerState.IDLE:
            return False
        self._bump(path)
        self._deferred[path] = None
        logger.info("Full rebuild in progress, deferring %s", path)
        return True

    def _flush_deferred(self) -> None:
        if not self._deferred:
            return
        paths = list(self._deferred)
        self._deferred.clear()
        logger.info("Re-indexing %d documents changed during rebuild", len(paths))
        for path in paths:
            self._debouncer.trigger(path)
