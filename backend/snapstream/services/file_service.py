"""
SnapStream Backend — Upload Staging Service
=============================================

What:  Validates uploaded images and stages them on disk until they are
       written into the snaps table.
How:   Checks the declared content type, the size and the type libmagic
       sniffs from the bytes, writes the bytes to a UUID-named file under <storage_root>/staging with aiofiles, reads the
       staged bytes back for the database insert, and removes the staged file
       afterwards whatever the outcome.
Who:   Called by SnapService.create_snap.

Validation order (cheapest first):
    1. Content type in the allow-list (JPEG, PNG, GIF, WEBP)
    2. Content-Length header against max_file_size
    3. Actual byte count (non-empty, within max_file_size)
    4. Sniffed content type (python-magic): allowed, and equal to the
       declared type, so HTML labelled image/png never reaches storage

Validation happens before anything touches disk or the database.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
import magic

from snapstream.config import settings
from snapstream.exceptions import FileStorageError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class FileService:
    """
    Manages the validate → stage → read → discard lifecycle of an upload.

    Directory Structure:
        storage/
        └── staging/
            ├── 0f8e...c1.jpg     ← exists only while an upload is in flight
            └── 9a41...77.png
    """

    def __init__(self, storage_root: Optional[str] = None):
        """
        Args:
            storage_root: Override the default storage path (used in tests).
                          If None, uses settings.storage_root.
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.staging_dir = self.storage_root / "staging"
        self.staging_dir.mkdir(parents=True, exist_ok=True)
        logger.info("FileService initialized with staging_dir=%s", self.staging_dir)

    def validate_mime_type(self, content_type: Optional[str]) -> str:
        """
        Validate the declared content type of the upload.

        Returns: Normalized mime type (lowercase, parameters stripped,
                 image/jpg folded into image/jpeg).
        Raises:  ValidationError if the type is not an allowed image type.
        """
        mime_type = (content_type or "").split(";")[0].strip().lower()
        if mime_type not in ALLOWED_MIME_TYPES:
            allowed = sorted({m for m in ALLOWED_MIME_TYPES if m != "image/jpg"})
            raise ValidationError(
                message=(
                    f"Image type '{mime_type or 'unknown'}' is not supported. "
                    f"Allowed types: {', '.join(allowed)}"
                ),
                field="image",
                context={"content_type": mime_type, "allowed": allowed},
            )
        if mime_type == "image/jpg":
            mime_type = "image/jpeg"
        return mime_type

    def detect_mime_type(self, content: bytes) -> str:
        """
        Determine the real type of the upload from its header bytes.

        Returns: Normalized sniffed mime type.
        Raises:  ValidationError if it is not an allowed image type,
                 FileStorageError if libmagic itself fails.
        """
        try:
            detected = magic.from_buffer(content[:2048], mime=True)
        except Exception as e:
            logger.error("MIME type detection failed: %s", str(e))
            raise FileStorageError(
                message="Could not verify image type. Please try again.",
                context={"error": str(e)},
            )

        if detected not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=f"Image content type '{detected}' is not supported.",
                field="image",
                context={"detected_type": detected},
            )
        return "image/jpeg" if detected == "image/jpg" else detected

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Validate upload size against the configured maximum.

        Args:
            content_length: Size reported by the client (may be None or inaccurate)
            actual_size: Actual byte count of the uploaded file

        Raises:
            ValidationError for empty or oversized uploads
        """
        max_mb = settings.max_file_size / (1024 * 1024)

        if actual_size == 0:
            raise ValidationError(
                message="Image file is empty.",
                field="image",
                context={"actual_size": 0},
            )

        if content_length and content_length > settings.max_file_size:
            raise ValidationError(
                message=f"Image is too large. Maximum size is {max_mb:.0f}MB.",
                field="image",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size > settings.max_file_size:
            raise ValidationError(
                message=(
                    f"Image is too large ({actual_size / (1024 * 1024):.1f}MB). "
                    f"Maximum size is {max_mb:.0f}MB."
                ),
                field="image",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def validate_upload(
        self,
        content: bytes,
        content_type: Optional[str],
        content_length: Optional[int] = None,
    ) -> str:
        """
        Run every upload check; returns the normalized mime type.

        Raises:
            ValidationError: Declared type, size or sniffed type rejected,
                             or the bytes do not match the declared type
        """
        mime_type = self.validate_mime_type(content_type)
        self.validate_size(content_length, len(content))

        detected = self.detect_mime_type(content)
        if detected != mime_type:
            logger.warning("Upload declared %s but content is %s", mime_type, detected)
            raise ValidationError(
                message=f"Image content does not match declared type '{mime_type}'.",
                field="image",
                context={"content_type": mime_type, "detected_type": detected},
            )
        return mime_type

    async def stage(self, content: bytes, mime_type: str) -> Path:
        """
        Write validated upload bytes to a fresh staging file.

        Returns: Absolute path of the staged file.
        Raises:  FileStorageError if the write fails.
        """
        staged_path = self.staging_dir / f"{uuid.uuid4()}{ALLOWED_MIME_TYPES[mime_type]}"
        try:
            self.staging_dir.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(staged_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to stage upload at %s: %s", staged_path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(staged_path), "os_error": str(e)},
            )

        logger.debug("Staged upload: %s (%d bytes)", staged_path.name, len(content))
        return staged_path

    async def read_staged(self, staged_path: Path) -> bytes:
        """Read a staged file back into memory for the database insert."""
        try:
            async with aiofiles.open(staged_path, "rb") as f:
                return await f.read()
        except OSError as e:
            logger.error("Failed to read staged upload %s: %s", staged_path, str(e))
            raise FileStorageError(
                message="Failed to read uploaded image. Please try again.",
                context={"path": str(staged_path), "os_error": str(e)},
            )

    async def discard(self, staged_path: Optional[Path]) -> None:
        """
        Remove a staged file. Best-effort: a missing file is fine and an
        OS error is logged, not raised, so it never masks the upload's own
        outcome.
        """
        if staged_path is None:
            return
        try:
            if staged_path.exists():
                os.remove(staged_path)
                logger.debug("Discarded staged upload: %s", staged_path.name)
        except OSError as e:
            logger.warning("Failed to discard staged upload %s: %s", staged_path, str(e))


file_service = FileService()
