"""Token-bounded chunking of content units.

Bodies are split at paragraph boundaries and greedily packed up to the token
budget. Oversized paragraphs fall back to sentence boundaries and finally to
a hard split at the token limit.
"""

import logging
import re
from collections.abc import Iterable

from .. import config
from ..models.domain import Chunk, ContentUnit

logger = logging.getLogger(__name__)

PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
SENTENCE_BOUNDARIES = (". ", "! ", "? ", "\n")


def default_tokenizer():
    """Load the tiktoken encoding used for token budgeting."""
    import tiktoken

    return tiktoken.get_encoding(config.TOKENIZER_ENCODING)


class Chunker:
    """Split content units into chunks of at most ``max_tokens`` tokens.

    The tokenizer needs ``encode(text) -> list[int]`` and
    ``decode(tokens) -> str``; a tiktoken encoding is loaded on first use
    when none is given.
    """

    def __init__(self, max_tokens: int = config.CHUNK_MAX_TOKENS, tokenizer=None):
        if max_tokens < 1:
            raise ValueError("max_tokens must be at least 1")
        self.max_tokens = max_tokens
        self._tokenizer = tokenizer

    @property
    def tokenizer(self):
        if self._tokenizer is None:
            self._tokenizer = default_tokenizer()
        return self._tokenizer

    def count_tokens(self, text: str) -> int:
        return len(self.tokenizer.encode(text))

    def chunk_units(self, units: Iterable[ContentUnit]) -> list[Chunk]:
        chunks = []
        for unit in units:
            chunks.extend(self.chunk_unit(unit))
        return chunks

    def chunk_unit(self, unit: ContentUnit) -> list[Chunk]:
        """Chunk one unit; units with an empty body produce no chunks."""
        body = unit.body.strip()
        if not body:
            return []

        pieces = []
        for paragraph in PARAGRAPH_BREAK.split(body):
            paragraph = paragraph.strip()
            if not paragraph:
                continue
            if self.count_tokens(paragraph) <= self.max_tokens:
                pieces.append(paragraph)
            else:
                pieces.extend(self._split_oversized(paragraph))

        texts = []
        current: list[str] = []
        for piece in pieces:
            candidate = "\n\n".join(current + [piece])
            if current and self.count_tokens(candidate) > self.max_tokens:
                texts.append("\n\n".join(current))
                current = [piece]
            else:
                current.append(piece)
        if current:
            texts.append("\n\n".join(current))

        return [
            Chunk(
                unit=unit,
                sequence=sequence,
                text=text,
                token_count=self.count_tokens(text),
            )
            for sequence, text in enumerate(texts)
        ]

    def _split_oversized(self, text: str) -> list[str]:
        pieces = []
        remaining = text
        while remaining:
            if self.count_tokens(remaining) <= self.max_tokens:
                pieces.append(remaining)
                break

            prefix = self._token_prefix(remaining)
            cut = self._sentence_cut(prefix)
            piece = remaining[:cut] if cut else prefix
            if not piece.strip():
                piece = prefix

            pieces.append(piece.strip())
            remaining = remaining[len(piece):].lstrip()

        return [p for p in pieces if p]

    def _sentence_cut(self, prefix: str) -> int:
        cut = 0
        for boundary in SENTENCE_BOUNDARIES:
            position = prefix.rfind(boundary)
            if position >= 0:
                cut = max(cut, position + 1)
        if cut and self.count_tokens(prefix[:cut].strip()) <= self.max_tokens:
            return cut
        return 0

    def _token_prefix(self, text: str) -> str:
        """Longest decoded prefix of ``text`` that stays within the budget."""
        tokens = self.tokenizer.encode(text)
        n = min(self.max_tokens, len(tokens))
        while n > 0:
            prefix = self.tokenizer.decode(tokens[:n])
            if (
                prefix.strip()
                and text.startswith(prefix)
                and self.count_tokens(prefix.strip()) <= self.max_tokens
            ):
                return prefix
            n -= 1
        logger.debug("No token prefix fits the budget, splitting off one character")
        return text[0]
