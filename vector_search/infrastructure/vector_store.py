"""In-memory chunk store persisted as a JSON array of chunk records."""

import json
import os
import tempfile
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from vector_search.domain.constants import META_SUFFIX
from vector_search.domain.models import ChunkRecord
from vector_search.infrastructure.vault_reader import normalize_path
from vector_search.logging_config import get_logger

logger = get_logger(__name__)


class VectorStore:
    """Keyed collection of ChunkRecords ('<path>#<index>' -> record).

    The JSON file at ``index_path`` is the durable copy; callers mutate the
    in-memory map and then call ``save()``. A sidecar ``<index_path>.meta.json``
    holds the last-indexed timestamp and chunk count.
    """

    def __init__(self, index_path: str) -> None:
        self._index_path = index_path
        self._records: dict[str, ChunkRecord] = {}
        self.last_indexed: datetime | None = None
        self.chunk_count = 0

    @property
    def index_path(self) -> str:
        return self._index_path

    @property
    def meta_path(self) -> str:
        return self._index_path + META_SUFFIX

    def __len__(self) -> int:
        return len(self._records)

    # --- Persistence ---

    def load(self) -> "VectorStore":
        """Replace the in-memory records with the persisted ones.

        A missing file yields an empty store; an unreadable or malformed one is
        logged and also yields an empty store.
        """
        self._records = {}
        self._load_meta()

        if not os.path.exists(self._index_path):
            logger.info("No index file at %s, starting empty", self._index_path)
            return self

        try:
            with open(self._index_path, encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, ValueError):
            logger.exception("Failed to read index file %s, starting empty", self._index_path)
            return self

        if not isinstance(payload, list):
            logger.error(
                "Index file %s does not hold a JSON array, starting empty",
                self._index_path,
            )
            return self

        skipped = 0
        for position, item in enumerate(payload):
            record = self._parse_record(item, position)
            if record is None:
                skipped += 1
                continue
            self._records[record.key] = record
        self.chunk_count = len(self._records)

        if skipped:
            logger.warning("Skipped %d invalid records in %s", skipped, self._index_path)
        logger.info("Loaded %d chunk records from %s", len(self._records), self._index_path)
        return self

    def save(self) -> None:
        """Write every record to the backing file, replacing it atomically.

        Raises:
            OSError: If the directory or file cannot be written.
        """
        directory = os.path.dirname(os.path.abspath(self._index_path))
        os.makedirs(directory, exist_ok=True)

        payload = [record.model_dump() for record in self._records.values()]
        self._write_json(self._index_path, payload)

        self.last_indexed = datetime.now(tz=timezone.utc)
        self.chunk_count = len(payload)
        self._write_json(
            self.meta_path,
            {
                "last_indexed": self.last_indexed.isoformat(),
                "chunk_count": self.chunk_count,
            },
        )
        logger.info("Saved %d chunk records to %s", self.chunk_count, self._index_path)

    def clear(self) -> None:
        """Drop all records and delete the backing files."""
        self._records = {}
        self.last_indexed = None
        self.chunk_count = 0
        for path in (self._index_path, self.meta_path):
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
        logger.info("Cleared vector store at %s", self._index_path)

    # --- Mutation ---

    def add(self, record: ChunkRecord) -> None:
        self._records[record.key] = record

    def replace_all(self, records: Iterable[ChunkRecord]) -> None:
        """Swap the whole in-memory content for the given records."""
        self._records = {record.key: record for record in records}

    def remove_document(self, document_path: str) -> int:
        """Remove every record of a document. Returns how many were removed."""
        path = normalize_path(document_path)
        stale = [key for key, r in self._records.items() if r.document_path == path]
        for key in stale:
            del self._records[key]
        if stale:
            logger.debug("Removed %d chunks for %s", len(stale), path)
        return len(stale)

    # --- Queries ---

    def get(self, key: str) -> ChunkRecord | None:
        return self._records.get(key)

    def records(self) -> list[ChunkRecord]:
        """All records in insertion order."""
        return list(self._records.values())

    def records_for(self, document_path: str) -> list[ChunkRecord]:
        path = normalize_path(document_path)
        return [r for r in self._records.values() if r.document_path == path]

    def document_paths(self) -> dict[str, int]:
        """Indexed document paths mapped to their chunk counts."""
        counts: dict[str, int] = {}
        for record in self._records.values():
            counts[record.document_path] = counts.get(record.document_path, 0) + 1
        return counts

    # --- Internals ---

    @staticmethod
    def _parse_record(item: Any, position: int) -> ChunkRecord | None:
        if not isinstance(item, dict):
            return None
        data = dict(item)
        index = data.get("chunk_index")
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            data["chunk_index"] = position
        try:
            record = ChunkRecord.model_validate(data)
        except ValidationError as e:
            logger.debug("Invalid chunk record at position %d: %s", position, e)
            return None
        record.document_path = normalize_path(record.document_path)
        return record

    def _load_meta(self) -> None:
        """Restore last_indexed from the sidecar written by save()."""
        self.last_indexed = None
        self.chunk_count = 0
        try:
            with open(self.meta_path, encoding="utf-8") as f:
                meta = json.load(f)
        except FileNotFoundError:
            return
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable index metadata %s", self.meta_path)
            return

        if not isinstance(meta, dict):
            return
        try:
            if meta.get("last_indexed"):
                self.last_indexed = datetime.fromisoformat(meta["last_indexed"])
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed index metadata %s", self.meta_path)

    @staticmethod
    def _write_json(path: str, payload: Any) -> None:
        directory = os.path.dirname(os.path.abspath(path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f)
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.remove(tmp_path)
            except OSError:
                pass
            raise
