"""
SnapStream Backend — File Service Unit Tests
===============================================

What:  Upload validation (declared type, size, sniffed content) and the
       stage → read → discard cycle.
How:   Each test gets a FileService rooted in its own tmp_path.
"""

import pytest
from unittest.mock import patch

from snapstream.config import settings
from snapstream.exceptions import FileStorageError, ValidationError
from snapstream.services.file_service import FileService


class TestMimeValidation:
    """Only JPEG, PNG, GIF and WEBP are accepted."""

    @pytest.fixture(autouse=True)
    def _service(self, tmp_path):
        self.service = FileService(storage_root=str(tmp_path))

    @pytest.mark.parametrize("content_type", ["image/jpeg", "image/png", "image/gif", "image/webp"])
    def test_allowed_types_pass(self, content_type):
        assert self.service.validate_mime_type(content_type) == content_type

    def test_jpg_alias_normalized_to_jpeg(self):
        assert self.service.validate_mime_type("image/jpg") == "image/jpeg"

    def test_parameters_and_case_are_ignored(self):
        assert self.service.validate_mime_type("Image/PNG; charset=binary") == "image/png"

    @pytest.mark.parametrize("content_type", ["application/pdf", "image/bmp", "text/plain", ""])
    def test_disallowed_types_rejected(self, content_type):
        with pytest.raises(ValidationError, match="not supported") as exc_info:
            self.service.validate_mime_type(content_type)
        assert exc_info.value.field == "image"

    def test_missing_type_rejected(self):
        with pytest.raises(ValidationError, match="'unknown' is not supported"):
            self.service.validate_mime_type(None)


class TestSizeValidation:

    @pytest.fixture(autouse=True)
    def _service(self, tmp_path):
        self.service = FileService(storage_root=str(tmp_path))

    def test_within_limit_passes(self):
        self.service.validate_size(None, 1000)

    def test_exactly_at_limit_passes(self):
        self.service.validate_size(settings.max_file_size, settings.max_file_size)

    def test_empty_rejected(self):
        with pytest.raises(ValidationError, match="empty"):
            self.service.validate_size(None, 0)

    def test_oversized_rejected(self):
        with pytest.raises(ValidationError, match="too large"):
            self.service.validate_size(None, settings.max_file_size + 1)

    def test_oversized_content_length_rejected_before_reading(self):
        """A Content-Length over the limit fails even if the body looks small."""
        with pytest.raises(ValidationError, match="too large"):
            self.service.validate_size(settings.max_file_size + 1, 10)

    def test_validate_upload_returns_normalized_type(self, sample_image_bytes):
        assert self.service.validate_upload(sample_image_bytes, "image/jpg") == "image/jpeg"


class TestContentSniffing:
    """The bytes themselves must be an allowed image of the declared type."""

    @pytest.fixture(autouse=True)
    def _service(self, tmp_path):
        self.service = FileService(storage_root=str(tmp_path))

    def test_real_png_detected(self, sample_png_bytes):
        assert self.service.detect_mime_type(sample_png_bytes) == "image/png"
        assert self.service.validate_upload(sample_png_bytes, "image/png") == "image/png"

    def test_html_labelled_as_png_rejected(self):
        with pytest.raises(ValidationError, match="not supported") as exc_info:
            self.service.validate_upload(
                b"<html><script>alert(1)</script></html>", "image/png"
            )
        assert exc_info.value.field == "image"

    def test_declared_type_mismatch_rejected(self, sample_image_bytes):
        with pytest.raises(ValidationError, match="does not match"):
            self.service.validate_upload(sample_image_bytes, "image/png")

    def test_detection_failure_raises_file_storage_error(self, sample_png_bytes):
        with patch(
            "snapstream.services.file_service.magic.from_buffer",
            side_effect=RuntimeError("libmagic exploded"),
        ):
            with pytest.raises(FileStorageError):
                self.service.detect_mime_type(sample_png_bytes)


class TestStaging:

    @pytest.fixture(autouse=True)
    def _service(self, tmp_path):
        self.service = FileService(storage_root=str(tmp_path))

    def test_staging_dir_created(self, tmp_path):
        assert (tmp_path / "staging").is_dir()

    @pytest.mark.asyncio
    async def test_stage_read_discard_cycle(self, sample_png_bytes):
        path = await self.service.stage(sample_png_bytes, "image/png")

        assert path.parent == self.service.staging_dir
        assert path.suffix == ".png"
        assert await self.service.read_staged(path) == sample_png_bytes

        await self.service.discard(path)
        assert not path.exists()

    @pytest.mark.asyncio
    async def test_discard_tolerates_missing_file_and_none(self, tmp_path):
        await self.service.discard(None)
        await self.service.discard(tmp_path / "staging" / "never-existed.png")

    @pytest.mark.asyncio
    async def test_stage_failure_raises_file_storage_error(self, sample_png_bytes):
        with patch("snapstream.services.file_service.aiofiles.open", side_effect=OSError("disk full")):
            with pytest.raises(FileStorageError):
                await self.service.stage(sample_png_bytes, "image/png")
