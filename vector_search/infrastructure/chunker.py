import re
from dataclasses import dataclass

from vector_search.domain.models import ChunkingConfig
from vector_search.logging_config import get_logger

logger = get_logger(__name__)

# A paragraph is a maximal run of lines containing at least one non-space char
_PARAGRAPH_RE = re.compile(r"(?:^[^\n]*\S[^\n]*(?:\n|$))+", re.MULTILINE)


@dataclass(frozen=True)
class TextChunk:
    """A contiguous slice of a document with its source position."""

    text: str
    start_offset: int
    end_offset: int
    start_line: int
    end_line: int  # exclusive


class Chunker:
    """Split note text into character windows or paragraph groups."""

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self._config = config or ChunkingConfig()
        self._warn_on_bad_step()

    @property
    def config(self) -> ChunkingConfig:
        return self._config

    def configure(self, config: ChunkingConfig) -> None:
        """Swap the chunking configuration (applies to the next chunk() call)."""
        self._config = config
        self._warn_on_bad_step()

    def chunk(self, text: str) -> list[TextChunk]:
        """Split text into ordered chunks according to the configuration."""
        if self._config.chunk_size == 0:
            return [self._make_chunk(text, 0, len(text))]

        if self._config.strategy == "paragraph":
            spans = self._paragraph_spans(text)
        else:
            spans = self._character_spans(len(text))

        return [self._make_chunk(text, start, end) for start, end in spans]

    def _character_spans(self, length: int) -> list[tuple[int, int]]:
        """Fixed-size windows; consecutive windows share chunk_overlap chars."""
        size = self._config.chunk_size
        step = self._step()
        spans: list[tuple[int, int]] = []
        start = 0

        while start < length:
            spans.append((start, min(start + size, length)))
            start += step

        return spans

    def _paragraph_spans(self, text: str) -> list[tuple[int, int]]:
        """Greedily pack whole paragraphs into chunks of at most chunk_size."""
        size = self._config.chunk_size
        spans: list[tuple[int, int]] = []
        current: tuple[int, int] | None = None

        for start, end in self._find_paragraphs(text):
            if current is None:
                current = (start, end)
                continue

            # Merged length covers the original gap between the paragraphs
            if end - current[0] <= size:
                current = (current[0], end)
            else:
                spans.append(current)
                current = (start, end)

        if current is not None:
            spans.append(current)

        oversized = sum(1 for s, e in spans if e - s > size)
        if oversized:
            logger.debug("%d paragraph(s) exceed chunk size %d", oversized, size)
        return spans

    @staticmethod
    def _find_paragraphs(text: str) -> list[tuple[int, int]]:
        """Return (start, end) of each paragraph, trailing newline excluded."""
        paragraphs: list[tuple[int, int]] = []
        for match in _PARAGRAPH_RE.finditer(text):
            start, end = match.start(), match.end()
            if text[start:end].endswith("\n"):
                end -= 1
            paragraphs.append((start, end))
        return paragraphs

    def _step(self) -> int:
        step = self._config.chunk_size - self._config.chunk_overlap
        if step <= 0:
            return self._config.chunk_size
        return step

    def _warn_on_bad_step(self) -> None:
        cfg = self._config
        if (
            cfg.strategy == "character"
            and cfg.chunk_size > 0
            and cfg.chunk_overlap >= cfg.chunk_size
        ):
            logger.warning(
                "chunk_overlap (%d) >= chunk_size (%d); advancing by the full "
                "chunk size instead",
                cfg.chunk_overlap,
                cfg.chunk_size,
            )

    @staticmethod
    def _make_chunk(text: str, start: int, end: int) -> TextChunk:
        body = text[start:end]
        start_line = text.count("\n", 0, start)
        return TextChunk(
            text=body,
            start_offset=start,
            end_offset=end,
            start_line=start_line,
            end_line=start_line + body.count("\n") + 1,
        )
