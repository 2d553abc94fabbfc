"""
Raw file retention.

Keeps the original bytes of every ingested document on the local
filesystem so that a retry re-extracts exactly the same input.
"""
import asyncio
import re
from pathlib import Path
from typing import Optional

from ..api.exceptions import StorageError
from ..core.config import BLOB_DIR
from ..core.logging_config import get_logger

logger = get_logger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class BlobStore:
    """
    Local filesystem blob storage keyed by document id.
    """

    def __init__(self, base_dir: Optional[Path] = None):
        """
        Initialize blob storage.

        Args:
            base_dir: Directory for blobs (defaults to BLOB_DIR)
        """
        self.base_dir = Path(base_dir) if base_dir is not None else BLOB_DIR

    async def initialize(self) -> None:
        """Ensure the base directory exists."""
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, document_id: str) -> Path:
        # Document ids are generated internally; anything else could escape base_dir
        if not _SAFE_ID.match(document_id) or document_id.startswith("."):
            raise StorageError(f"Invalid blob id: {document_id}")
        return self.base_dir / f"{document_id}.bin"

    async def save(self, document_id: str, file_bytes: bytes) -> None:
        full_path = self._get_full_path(document_id)

        def _save():
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(file_bytes)

        # Run in executor to avoid blocking
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, _save)
        except OSError as e:
            raise StorageError(f"Could not retain file for {document_id}: {e}", details=e) from e
        logger.debug(f"Retained {len(file_bytes)} bytes for {document_id}")

    async def get(self, document_id: str) -> Optional[bytes]:
        """Retained bytes of a document, or None if nothing was retained."""
        full_path = self._get_full_path(document_id)
        if not full_path.exists():
            return None
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, full_path.read_bytes)

    async def delete(self, document_id: str) -> bool:
        full_path = self._get_full_path(document_id)
        if not full_path.exists():
            return False
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, full_path.unlink)
        return True

    async def exists(self, document_id: str) -> bool:
        return self._get_full_path(document_id).exists()
