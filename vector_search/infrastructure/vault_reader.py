import os
import posixpath
import re
import unicodedata

from vector_search.domain.constants import WATCH_EXTENSIONS
from vector_search.logging_config import get_logger

logger = get_logger(__name__)

_MULTI_SLASH_RE = re.compile(r"/{2,}")


def normalize_path(path: str) -> str:
    """Canonical vault-relative form: forward slashes, no leading './' or '/'."""
    path = unicodedata.normalize("NFC", path.replace("\\", "/"))
    path = _MULTI_SLASH_RE.sub("/", path)
    while path.startswith("./"):
        path = path[2:]
    return path.strip("/")


def is_watched(path: str) -> bool:
    """Check if the file has a watched extension."""
    return any(path.endswith(ext) for ext in WATCH_EXTENSIONS)


def document_title(path: str) -> str:
    """Display name of a document: file name without extension."""
    return posixpath.splitext(posixpath.basename(path))[0]


class VaultReader:
    """Lists and reads the Markdown documents of a vault directory."""

    def __init__(self, vault_path: str) -> None:
        self._vault_path = vault_path

    @property
    def vault_path(self) -> str:
        return self._vault_path

    def list_documents(self) -> list[str]:
        """Walk the vault and return sorted normalized paths of .md files."""
        documents: list[str] = []
        for root, dirs, files in os.walk(self._vault_path):
            # Skip hidden folders such as .obsidian and .trash
            dirs[:] = [d for d in dirs if not d.startswith(".")]
            for filename in files:
                if not is_watched(filename):
                    continue
                abs_path = os.path.join(root, filename)
                rel_path = os.path.relpath(abs_path, self._vault_path)
                documents.append(normalize_path(rel_path))
        documents.sort()
        logger.info("Found %d documents in %s", len(documents), self._vault_path)
        return documents

    def read(self, path: str) -> str:
        """Return the UTF-8 text of a document.

        Raises:
            OSError: If the file cannot be read.
            UnicodeDecodeError: If the file is not valid UTF-8.
        """
        with open(self.abs_path(path), encoding="utf-8") as f:
            return f.read()

    def exists(self, path: str) -> bool:
        return os.path.isfile(self.abs_path(path))

    def abs_path(self, path: str) -> str:
        return os.path.join(self._vault_path, *normalize_path(path).split("/"))
