"""
Text normalization utilities - canonical whitespace, previews and chunking.

Every extractor's output goes through prepare_text_payload() so that the
rest of the pipeline sees one canonical text representation.
"""
import re
from dataclasses import dataclass, field
from typing import List

from ..core.config import TEXT_CHUNK_CHAR_TARGET, PREVIEW_CHAR_LIMIT

PREVIEW_PLACEHOLDER = "Preview unavailable"
ELLIPSIS = "…"

_LINE_BREAKS = re.compile(r"\r\n|\r")
_HARD_SPACES = re.compile(r"[\u00a0\f]+")
_MULTI_SPACES = re.compile(r" {2,}")
_MULTI_NEWLINES = re.compile(r"\n{3,}")
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")
_WHITESPACE = re.compile(r"\s")


@dataclass
class TextPayload:
    """Normalized text plus everything derived from it."""
    cleaned_text: str
    preview: str
    chunks: List[str] = field(default_factory=list)
    word_count: int = 0


def normalize_whitespace(text: str) -> str:
    """
    Canonicalize whitespace.

    CR/CRLF become LF, tabs and non-breaking spaces become single spaces,
    runs of spaces collapse to one and runs of three or more newlines
    collapse to a single blank line. Leading/trailing whitespace is trimmed.

    Args:
        text: Raw text (None is treated as empty)

    Returns:
        Normalized text
    """
    if not text:
        return ""
    text = _LINE_BREAKS.sub("\n", text)
    text = text.replace("\t", " ")
    text = _HARD_SPACES.sub(" ", text)
    text = _MULTI_SPACES.sub(" ", text)
    text = _MULTI_NEWLINES.sub("\n\n", text)
    return text.strip()


def create_preview(text: str, limit: int = PREVIEW_CHAR_LIMIT) -> str:
    """
    Create a short preview, truncated on a word boundary.

    Args:
        text: Normalized text
        limit: Maximum preview length before the ellipsis marker

    Returns:
        Preview string, or a placeholder when there is no text
    """
    if not text or not text.strip():
        return PREVIEW_PLACEHOLDER
    if len(text) <= limit:
        return text

    window = text[:limit + 1]
    cut = -1
    for match in _WHITESPACE.finditer(window):
        cut = match.start()

    if cut > 0:
        return f"{text[:cut].rstrip()}{ELLIPSIS}"
    return f"{text[:limit]}{ELLIPSIS}"


def chunk_text(text: str, target_length: int = TEXT_CHUNK_CHAR_TARGET) -> List[str]:
    """
    Split text into sentence-aligned chunks of at most target_length chars.

    Sentences are packed greedily. A sentence longer than target_length is
    never split and becomes a chunk of its own.

    Args:
        text: Text to chunk (normalized first)
        target_length: Target maximum chunk length

    Returns:
        Ordered list of chunks (empty for empty text)
    """
    normalized = normalize_whitespace(text)
    if not normalized:
        return []
    if len(normalized) <= target_length:
        return [normalized]

    chunks: List[str] = []
    current = ""
    for sentence in _SENTENCE_BOUNDARY.split(normalized):
        sentence = sentence.strip()
        if not sentence:
            continue
        candidate = f"{current} {sentence}" if current else sentence
        if len(candidate) <= target_length:
            current = candidate
        else:
            if current:
                chunks.append(current)
            current = sentence

    if current:
        chunks.append(current)
    return chunks


def count_words(text: str) -> int:
    """Count whitespace-delimited tokens."""
    if not text:
        return 0
    return len(text.split())


def prepare_text_payload(
    raw_text: str,
    preview_limit: int = PREVIEW_CHAR_LIMIT,
    chunk_target: int = TEXT_CHUNK_CHAR_TARGET
) -> TextPayload:
    """
    Normalize extracted text and derive preview, chunks and word count.

    Args:
        raw_text: Text as returned by an extractor
        preview_limit: Preview length limit
        chunk_target: Target chunk length

    Returns:
        TextPayload for the document
    """
    cleaned = normalize_whitespace(raw_text)
    return TextPayload(
        cleaned_text=cleaned,
        preview=create_preview(cleaned, preview_limit),
        chunks=chunk_text(cleaned, chunk_target),
        word_count=count_words(cleaned),
    )
