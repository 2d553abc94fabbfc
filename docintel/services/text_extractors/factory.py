"""
Text Extractor Factory.

Manages registration and retrieval of text extractors for different file formats.
Uses the Factory pattern to provide plug-and-play text extraction.
"""
from typing import Dict, List, Optional

from ...api.exceptions import UnsupportedTypeError
from ...core.logging_config import get_logger
from ..providers.gemini_provider import GeminiProvider
from .base import BaseTextExtractor
from .docx_extractor import DOCXExtractor
from .ocr_extractor import OCRExtractor
from .pdf_extractor import PDFExtractor
from .text_extractor import TextExtractor

logger = get_logger(__name__)

IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "webp")


class TextExtractorFactory:
    """
    Factory for managing text extractors.

    Provides a registry of extractors keyed by extension (without the dot)
    and easy extension for new file formats. The OCR provider is injected
    so the queue and tests can share one Gemini client.
    """

    def __init__(self, ocr_provider: Optional[GeminiProvider] = None):
        self._extractors: Dict[str, BaseTextExtractor] = {}
        self.register(PDFExtractor())
        self.register(DOCXExtractor())
        self.register(TextExtractor("txt", "TXT"))

        ocr_provider = ocr_provider if ocr_provider is not None else GeminiProvider()
        for extension in IMAGE_EXTENSIONS:
            self.register(OCRExtractor(extension, ocr_provider))

        logger.info(f"TextExtractorFactory initialized with {len(self._extractors)} extractors")

    def register(self, extractor: BaseTextExtractor) -> None:
        """
        Register a text extractor.

        Args:
            extractor: Text extractor instance to register
        """
        extension = extractor.file_extension
        if extension in self._extractors:
            logger.warning(f"Overriding existing extractor for .{extension}")
        self._extractors[extension] = extractor
        logger.debug(f"Registered extractor for .{extension}: {extractor.format_name}")

    def get_extractor_by_extension(self, extension: str) -> BaseTextExtractor:
        """
        Get extractor by file extension.

        Args:
            extension: File extension (e.g. 'pdf' or '.PDF')

        Returns:
            Text extractor instance

        Raises:
            UnsupportedTypeError: If no extractor handles the extension
        """
        extension = (extension or "").lower().lstrip(".")
        extractor = self._extractors.get(extension)
        if extractor is None:
            logger.warning(f"Unsupported file format attempted: .{extension}")
            raise UnsupportedTypeError(
                f"Unsupported file type: .{extension}. Upload PDF, DOCX, TXT, or images."
            )
        return extractor

    def is_extension_supported(self, extension: str) -> bool:
        return (extension or "").lower().lstrip(".") in self._extractors

    def get_supported_extensions(self) -> List[str]:
        return sorted(self._extractors.keys())
