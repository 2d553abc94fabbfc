"""
PDF Text Extractor.

Extracts text page by page using the pypdf library.
"""
import asyncio
import io
import re
from typing import List, Optional

from pypdf import PdfReader

from ...api.exceptions import ProcessingAbortedError
from ...core.logging_config import get_logger
from ...models.document import ExtractionMethod
from .base import ExtractionResult, LocalTextExtractor

logger = get_logger(__name__)

_WHITESPACE_RUN = re.compile(r"\s+")


class PDFExtractor(LocalTextExtractor):
    """Extractor for PDF files."""

    def __init__(self):
        super().__init__("pdf", "PDF", ExtractionMethod.PDF)

    def parse(self, file_bytes: bytes, abort_signal: Optional[asyncio.Event] = None) -> ExtractionResult:
        """
        Extract text from every page.

        Pages without text are kept as empty strings and reported as
        warnings instead of failing the document.
        """
        reader = PdfReader(io.BytesIO(file_bytes))
        warnings: List[str] = []
        page_texts: List[str] = []

        for page_number, page in enumerate(reader.pages, start=1):
            if abort_signal is not None and abort_signal.is_set():
                raise ProcessingAbortedError("PDF extraction aborted")

            page_text = _WHITESPACE_RUN.sub(" ", page.extract_text() or "").strip()
            if not page_text:
                warnings.append(f"Page {page_number} appears to be empty or image-based.")
            page_texts.append(page_text)

        logger.debug(f"PDF parsed: {len(page_texts)} pages, {len(warnings)} without text")
        text = "".join(f"{page_text}\n" for page_text in page_texts)
        return ExtractionResult(
            text=text,
            method=self.method,
            page_count=len(page_texts),
            warnings=warnings,
        )
