from docsync.domain.constants import BOUNDARY_LOOKAHEAD, CHUNK_OVERLAP, MAX_CHUNK_SIZE
from docsync.logging_config import get_logger

logger = get_logger(__name__)

_BREAKS = (". ", "\n\n")


class Chunker:
    """Split document text into overlapping chunks that prefer natural breaks.

    Each chunk is proposed at `max_chunk_size` characters. When the text
    continues past that point, the end snaps to just after the nearest sentence
    terminator or paragraph break found at or after `end - overlap`, provided
    it lies before `end + lookahead`. The next chunk starts `overlap`
    characters before the previous end, until the start passes the text.
    """

    def __init__(
        self,
        max_chunk_size: int = MAX_CHUNK_SIZE,
        overlap: int = CHUNK_OVERLAP,
        lookahead: int = BOUNDARY_LOOKAHEAD,
    ) -> None:
        if max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be positive")
        if not 0 <= overlap < max_chunk_size:
            raise ValueError("overlap must be in [0, max_chunk_size)")
        self._max_chunk_size = max_chunk_size
        self._overlap = overlap
        self._lookahead = lookahead

    @property
    def overlap(self) -> int:
        return self._overlap

    def chunk(self, text: str) -> list[str]:
        """Return the ordered, non-empty chunk texts for `text`."""
        chunks: list[str] = []
        for start, end in self.spans(text):
            piece = text[start:end].strip()
            if piece:
                chunks.append(piece)
        return chunks

    def spans(self, text: str) -> list[tuple[int, int]]:
        """Return the raw [start, end) offsets before whitespace trimming."""
        length = len(text)
        spans: list[tuple[int, int]] = []
        start = 0

        while start < length:
            end = start + self._max_chunk_size
            if end < length:
                end = self._snap_to_break(text, start, end)
            spans.append((start, min(end, length)))

            # `end` stays unclamped so a window landing in the last `overlap`
            # characters still yields one more tail chunk.
            next_start = end - self._overlap
            start = next_start if next_start > start else end

        return spans

    def _snap_to_break(self, text: str, start: int, end: int) -> int:
        """Move `end` to just after the nearest break, if one is close enough."""
        search_from = end - self._overlap
        candidates = [
            pos for pos in (text.find(marker, search_from) for marker in _BREAKS)
            if pos >= 0
        ]
        if not candidates:
            return end

        nearest = min(candidates)
        if start < nearest < end + self._lookahead:
            return nearest + 1
        return end
