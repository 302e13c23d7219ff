"""
Receipt Image Store using Cloudinary

DESIGN DECISION: Original receipt images are kept in Cloudinary because:
1. Reliable cloud infrastructure with signed deletes
2. PDFs and images share one API (PDFs are image resources)
3. Simple API and a free tier sufficient for a small business

Each owner's receipts live in their own folder. The Cloudinary public_id
is the storage key; it is all that is needed to delete the object later.

CRITICAL: This store only keeps the file. It never reads, enhances or
OCRs it - recognition runs on the bytes the user uploaded.
"""

import hashlib
from typing import Optional
from uuid import uuid4

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from smallbooks.config import CloudinarySettings, get_settings
from smallbooks.models.transaction import ReceiptRef
from smallbooks.services.storage.interface import (
    ReceiptImageStoreInterface,
    StorageFailure,
)

logger = structlog.get_logger(__name__)


class CloudinaryReceiptStore(ReceiptImageStoreInterface):
    """
    Cloudinary-backed receipt image storage.

    Flow:
    1. Receive raw receipt bytes
    2. Upload under {folder}/{owner_id}/ with a unique public id
    3. Return the public id as storage key and the secure URL
    """

    def __init__(self, settings: Optional[CloudinarySettings] = None):
        self._settings = settings or get_settings().cloudinary
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    def _generate_public_id(self, filename: Optional[str]) -> str:
        """
        Generate a unique public ID.

        Format: {uuid}_{filename_hash}
        """
        filename_hash = hashlib.md5((filename or "receipt").encode()).hexdigest()[:8]
        return f"{uuid4().hex}_{filename_hash}"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def store(
        self,
        owner_id: str,
        data: bytes,
        content_type: str,
        filename: Optional[str] = None,
    ) -> ReceiptRef:
        """
        Upload a receipt to Cloudinary.

        Raises:
            StorageFailure: If upload fails or returns no URL
        """
        if not data:
            raise StorageFailure("Refusing to store an empty receipt")

        self._configure()
        try:
            result = cloudinary.uploader.upload(
                data,
                public_id=self._generate_public_id(filename),
                folder=f"{self._settings.folder}/{owner_id}",
                resource_type="image",
                context={"content_type": content_type},
            )
        except cloudinary.exceptions.Error as e:
            raise StorageFailure(f"Cloudinary error: {e}") from e

        url = result.get("secure_url") or result.get("url")
        public_id = result.get("public_id")
        if not url or not public_id:
            raise StorageFailure("No URL returned from Cloudinary")

        logger.info("receipt_stored", owner_id=owner_id, storage_key=public_id)
        return ReceiptRef(storage_key=public_id, retrieval_url=url)

    async def delete(self, storage_key: str) -> None:
        """
        Delete a receipt from Cloudinary.

        Raises:
            StorageFailure: If Cloudinary does not confirm the delete
        """
        self._configure()
        try:
            result = cloudinary.uploader.destroy(
                storage_key,
                resource_type="image",
                invalidate=True,
            )
        except cloudinary.exceptions.Error as e:
            raise StorageFailure(f"Cloudinary error: {e}") from e

        if result.get("result") != "ok":
            raise StorageFailure(
                f"Cloudinary did not delete {storage_key}: {result.get('result')}"
            )
        logger.info("receipt_released", storage_key=storage_key)
