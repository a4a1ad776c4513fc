"""File system watcher for the note vault using watchdog.

Callbacks run on the watchdog observer thread; receivers must hand the work
over to their own event loop.
"""

import os
from collections.abc import Callable

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from vector_search.infrastructure.vault_reader import is_watched, normalize_path
from vector_search.logging_config import get_logger

logger = get_logger(__name__)

PathCallback = Callable[[str], None]
MoveCallback = Callable[[str, str], None]


class _VaultEventHandler(FileSystemEventHandler):
    """Turn raw watchdog events into changed/deleted/moved document callbacks."""

    def __init__(
        self,
        vault_path: str,
        on_changed: PathCallback,
        on_deleted: PathCallback,
        on_moved: MoveCallback,
    ) -> None:
        self._vault_path = vault_path
        self._on_changed = on_changed
        self._on_deleted = on_deleted
        self._on_moved = on_moved

    def document_path(self, abs_path: str | bytes) -> str | None:
        """Vault-relative path of an indexable document, or None if out of scope.

        Out of scope: non-.md files and anything under a dot-folder such as
        .obsidian or .trash.
        """
        abs_path = os.fsdecode(abs_path)
        if not is_watched(abs_path):
            return None
        rel = normalize_path(os.path.relpath(abs_path, self._vault_path))
        if any(folder.startswith(".") for folder in rel.split("/")[:-1]):
            return None
        return rel

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return

        if event.event_type == EVENT_TYPE_MOVED:
            self._handle_move(event.src_path, event.dest_path)
            return

        path = self.document_path(event.src_path)
        if path is None:
            return

        if event.event_type in (EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED):
            logger.debug("Document %s: %s", event.event_type, path)
            self._on_changed(path)
        elif event.event_type == EVENT_TYPE_DELETED:
            logger.info("Document deleted: %s", path)
            self._on_deleted(path)

    def _handle_move(self, src_path: str | bytes, dest_path: str | bytes) -> None:
        old = self.document_path(src_path)
        new = self.document_path(dest_path)

        if old is not None and new is not None:
            logger.info("Document renamed: %s -> %s", old, new)
            self._on_moved(old, new)
        elif old is not None:
            # Renamed to another extension or into a dot-folder
            logger.info("Document left the index scope: %s", old)
            self._on_deleted(old)
        elif new is not None:
            logger.info("Document entered the index scope: %s", new)
            self._on_changed(new)


class FileWatcher:
    """Recursive watch of a vault directory for Markdown document changes."""

    def __init__(
        self,
        vault_path: str,
        on_changed: PathCallback,
        on_deleted: PathCallback,
        on_moved: MoveCallback,
    ) -> None:
        self._vault_path = vault_path
        self._handler = _VaultEventHandler(
            vault_path=vault_path,
            on_changed=on_changed,
            on_deleted=on_deleted,
            on_moved=on_moved,
        )
        self._observer: Observer | None = None

    def start(self) -> None:
        """Start watching. A no-op while already running."""
        if self._observer is not None:
            return
        # Observer threads cannot be restarted, so each start gets a new one
        observer = Observer()
        observer.schedule(self._handler, self._vault_path, recursive=True)
        observer.start()
        self._observer = observer
        logger.info("File watcher started for: %s", self._vault_path)

    def stop(self) -> None:
        """Stop watching and wait briefly for the observer thread to exit."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None
        logger.info("File watcher stopped")

    @property
    def is_running(self) -> bool:
        return self._observer is not None
