"""
DOCX Text Extractor.

Extracts text from DOCX files using python-docx library.
"""
import asyncio
import io
from typing import List, Optional

from docx import Document as DocxDocument

from ...core.logging_config import get_logger
from ...models.document import ExtractionMethod
from .base import ExtractionResult, LocalTextExtractor

logger = get_logger(__name__)


class DOCXExtractor(LocalTextExtractor):
    """Extractor for DOCX files."""

    def __init__(self):
        super().__init__("docx", "DOCX", ExtractionMethod.DOCX)

    def parse(self, file_bytes: bytes, abort_signal: Optional[asyncio.Event] = None) -> ExtractionResult:
        doc = DocxDocument(io.BytesIO(file_bytes))
        lines: List[str] = []
        warnings: List[str] = []

        for paragraph in doc.paragraphs:
            if paragraph.text.strip():
                lines.append(paragraph.text)

        # Tables are flattened one row per line
        for table in doc.tables:
            for row in table.rows:
                row_text = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if row_text:
                    lines.append(" | ".join(row_text))

        if not lines:
            warnings.append("DOCX file contains no extractable text.")

        logger.debug(f"DOCX parsed: {len(doc.paragraphs)} paragraphs, {len(doc.tables)} tables")

        return ExtractionResult(
            text="\n".join(lines),
            method=self.method,
            warnings=warnings,
        )
