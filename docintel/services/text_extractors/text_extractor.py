"""
Plain Text Extractor.

Extracts text from plain text files.
"""
import asyncio
from typing import List, Optional

from ...models.document import ExtractionMethod
from .base import ExtractionResult, LocalTextExtractor


class TextExtractor(LocalTextExtractor):
    """Extractor for plain text files."""

    def __init__(self, file_extension: str = "txt", format_name: str = "TXT"):
        super().__init__(file_extension, format_name, ExtractionMethod.TXT)

    def parse(self, file_bytes: bytes, abort_signal: Optional[asyncio.Event] = None) -> ExtractionResult:
        warnings: List[str] = []
        try:
            text = file_bytes.decode("utf-8-sig")
        except UnicodeDecodeError:
            text = file_bytes.decode("utf-8-sig", errors="replace")
            warnings.append("File is not valid UTF-8; undecodable bytes were replaced.")
        return ExtractionResult(text=text, method=self.method, warnings=warnings)
