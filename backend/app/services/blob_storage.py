"""
Blob storage for report attachments.
"""
import mimetypes
import os
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from app.core.config import settings
from app.core.errors import TransportFailure
from app.core.logging import get_logger

logger = get_logger(__name__)


class BlobStorage(ABC):
    """Stores binary content and hands back a reference (path or URL)."""

    @abstractmethod
    def store(
        self,
        data: bytes,
        content_type: Optional[str],
        folder: str = "",
        filename: Optional[str] = None,
    ) -> str:
        pass

    @abstractmethod
    def delete(self, reference: str) -> None:
        """Remove stored content. A missing reference is not an error."""
        pass


class LocalBlobStorage(BlobStorage):
    """Files under ``UPLOAD_DIR/<folder>/<uuid><ext>``."""

    def __init__(self, root: Optional[str] = None):
        self.root = root or settings.UPLOAD_DIR

    def store(
        self,
        data: bytes,
        content_type: Optional[str],
        folder: str = "",
        filename: Optional[str] = None,
    ) -> str:
        file_ext = os.path.splitext(filename)[1] if filename else ""
        if not file_ext and content_type:
            file_ext = mimetypes.guess_extension(content_type) or ""

        upload_dir = os.path.join(self.root, folder) if folder else self.root
        file_path = os.path.join(upload_dir, f"{uuid.uuid4()}{file_ext}")

        try:
            os.makedirs(upload_dir, exist_ok=True)
            with open(file_path, "wb") as f:
                f.write(data)
        except OSError as exc:
            logger.error(f"Blob write failed for {file_path}: {exc}")
            raise TransportFailure("blob_storage", "Attachment could not be stored", exc)

        return file_path

    def delete(self, reference: str) -> None:
        try:
            os.remove(reference)
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning(f"Blob {reference} could not be removed: {exc}")
            return

        # Drop the report folder once its last file is gone
        folder = os.path.dirname(reference)
        if os.path.abspath(folder) != os.path.abspath(self.root) and not os.listdir(folder):
            os.rmdir(folder)


def get_blob_storage() -> BlobStorage:
    """Dependency returning the configured blob storage."""
    return LocalBlobStorage()
