"""
Base Text Extractor Interface.

All text extractors must inherit from this base class and implement
the extract() method. Extractors for local formats inherit from
LocalTextExtractor and only implement the blocking parse() step.
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from ...api.exceptions import DocumentError, ExtractionFailedError
from ...core.logging_config import get_logger
from ...models.document import ExtractionMethod
from ...utils.async_utils import check_abort, run_abortable

logger = get_logger(__name__)


@dataclass
class ExtractionResult:
    """Raw text plus format-specific diagnostics."""
    text: str
    method: ExtractionMethod
    page_count: Optional[int] = None
    warnings: List[str] = field(default_factory=list)
    ocr_model: Optional[str] = None


class BaseTextExtractor(ABC):
    """
    Abstract base class for text extractors.

    Each file format has its own extractor class. extract() is the single
    place where extraction exceptions propagate to callers; the processing
    queue converts them into document errors.
    """

    def __init__(self, file_extension: str, format_name: str, method: ExtractionMethod):
        """
        Initialize the extractor.

        Args:
            file_extension: File extension without the dot (e.g. 'pdf')
            format_name: Human-readable format name (e.g. 'PDF')
            method: Extraction method recorded in extraction details
        """
        self.file_extension = file_extension.lower().lstrip(".")
        self.format_name = format_name
        self.method = method

    @abstractmethod
    async def extract(
        self,
        file_bytes: bytes,
        mime_type: Optional[str] = None,
        abort_signal: Optional[asyncio.Event] = None
    ) -> ExtractionResult:
        """
        Extract text from file bytes.

        Args:
            file_bytes: Raw file content as bytes
            mime_type: MIME type reported at ingestion
            abort_signal: Event that cancels the extraction when set

        Returns:
            ExtractionResult with text and diagnostics

        Raises:
            ExtractionFailedError: If the file is malformed
            ProcessingAbortedError: If the abort signal fires
        """
        pass


class LocalTextExtractor(BaseTextExtractor):
    """Extractor whose parsing runs in a worker thread."""

    @abstractmethod
    def parse(self, file_bytes: bytes, abort_signal: Optional[asyncio.Event] = None) -> ExtractionResult:
        """Blocking parse step. May poll abort_signal between units of work."""
        pass

    async def extract(
        self,
        file_bytes: bytes,
        mime_type: Optional[str] = None,
        abort_signal: Optional[asyncio.Event] = None
    ) -> ExtractionResult:
        check_abort(abort_signal, f"{self.format_name} extraction aborted")
        loop = asyncio.get_running_loop()
        try:
            result = await run_abortable(
                loop.run_in_executor(None, self.parse, file_bytes, abort_signal),
                abort_signal,
                f"{self.format_name} extraction aborted",
            )
        except DocumentError:
            raise
        except Exception as e:
            logger.error(f"Error extracting text from {self.format_name}: {e}", exc_info=True)
            raise ExtractionFailedError(
                f"Error extracting text from {self.format_name}: {e}", details=e
            ) from e

        logger.debug(f"Extracted {len(result.text)} characters ({self.format_name})")
        return result
