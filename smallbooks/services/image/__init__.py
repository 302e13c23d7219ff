"""Receipt image storage package."""

from smallbooks.services.image.cloudinary_service import CloudinaryReceiptStore

__all__ = ["CloudinaryReceiptStore"]
