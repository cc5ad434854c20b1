# ============================================================================
# tests/unit/test_extraction_router.py
# ============================================================================
"""
Tests for extraction routing
"""

import pytest

from exam_pipeline.core.models import (
    Attachment,
    ExtractionFailure,
    ExtractionSuccess,
    ExtractionWarning,
    ImageQualityFailure,
)
from exam_pipeline.extractors.extraction_router import (
    STATUS_DOCUMENT,
    STATUS_IMAGE_OCR,
    ExtractionRouter,
)


class TestRouting:
    """Test strategy selection"""

    async def test_image_mime_takes_image_path(self, router, extraction_service, png_bytes):
        statuses = []
        source = Attachment(file_name="scan", file_type="image/png", blob=png_bytes)

        await router.extract(source, on_status=statuses.append)

        assert STATUS_IMAGE_OCR in statuses
        assert STATUS_DOCUMENT not in statuses
        assert extraction_service.requests[0]["extractType"] == "exam"

    async def test_image_extension_takes_image_path(self, router, png_bytes):
        statuses = []
        source = Attachment(file_name="scan.PNG", file_type="", blob=png_bytes)
        await router.extract(source, on_status=statuses.append)
        assert STATUS_IMAGE_OCR in statuses

    async def test_pdf_takes_document_path(self, router, extraction_service):
        statuses = []
        source = Attachment(file_name="exam.pdf", file_type="application/pdf", blob=b"%PDF")
        await router.extract(source, on_status=statuses.append)
        assert statuses == [STATUS_DOCUMENT]
        assert extraction_service.requests[0]["data"] == b"%PDF"

    async def test_success_passes_through(self, router, extraction_service, lab_response):
        extraction_service.body = lab_response
        source = Attachment(file_name="exam.pdf", blob=b"%PDF")
        outcome = await router.extract(source)
        assert isinstance(outcome, ExtractionSuccess)

    async def test_quality_failure_for_image(self, router, extraction_service, png_bytes):
        extraction_service.body = {"status": "image_processing_failed", "message": "blurry"}
        source = Attachment(file_name="scan.jpg", blob=png_bytes)
        outcome = await router.extract(source)
        assert isinstance(outcome, ImageQualityFailure)


class TestRejection:
    """Test inputs rejected before any remote call"""

    async def test_unsupported_type_no_http(self, router, extraction_service):
        source = Attachment(file_name="notes.txt", file_type="text/plain", blob=b"hello")
        outcome = await router.extract(source)
        assert outcome == ExtractionWarning("unsupported type")
        assert extraction_service.requests == []

    async def test_empty_file_no_http(self, router, extraction_service):
        source = Attachment(file_name="exam.pdf", blob=b"")
        outcome = await router.extract(source)
        assert outcome == ExtractionWarning("empty file")
        assert extraction_service.requests == []

    async def test_oversized_file_no_http(self, extraction_client, extraction_service):
        router = ExtractionRouter(extraction_client, max_upload_bytes=10)
        source = Attachment(file_name="exam.pdf", blob=b"x" * 11)
        outcome = await router.extract(source)
        assert isinstance(outcome, ExtractionWarning)
        assert outcome.message.startswith("file too large")
        assert extraction_service.requests == []


class TestByteResolution:
    """Test how the router obtains file bytes"""

    async def test_remote_url(self, router, extraction_service):
        extraction_service.files["exam.pdf"] = b"%PDF-remote"
        source = Attachment(file_name="exam.pdf", file_url=extraction_service.file_url("exam.pdf"))
        await router.extract(source)
        assert extraction_service.requests[0]["data"] == b"%PDF-remote"

    async def test_legacy_alternate_url(self, router, extraction_service):
        extraction_service.files["old.pdf"] = b"%PDF-old"
        source = Attachment(
            file_name="old.pdf",
            alternate_urls={"downloadURL": extraction_service.file_url("old.pdf")},
        )
        await router.extract(source)
        assert extraction_service.requests[0]["data"] == b"%PDF-old"

    async def test_storage_path(self, router, extraction_service, object_store):
        await object_store.upload("o/patients/p/exams/e/exam.pdf", b"%PDF-stored")
        source = Attachment(file_name="exam.pdf", storage_path="o/patients/p/exams/e/exam.pdf")
        await router.extract(source)
        assert extraction_service.requests[0]["data"] == b"%PDF-stored"

    async def test_fetch_failure_becomes_failure(self, router, extraction_service):
        source = Attachment(file_name="exam.pdf", file_url=extraction_service.file_url("gone.pdf"))
        outcome = await router.extract(source)
        assert isinstance(outcome, ExtractionFailure)
        assert "404" in outcome.error_message
        assert extraction_service.requests == []

    async def test_storage_failure_keeps_cause(self, router, extraction_service):
        source = Attachment(file_name="exam.pdf", storage_path="o/patients/p/exams/e/missing.pdf")
        outcome = await router.extract(source)
        assert isinstance(outcome, ExtractionFailure)
        assert "missing.pdf" in outcome.error_message

    async def test_nothing_to_resolve(self, router):
        outcome = await router.extract(Attachment(file_name="exam.pdf"))
        assert isinstance(outcome, ExtractionFailure)

    async def test_resolve_bytes_prefers_blob(self, router):
        source = Attachment(file_name="exam.pdf", blob=b"local")
        assert await router.resolve_bytes(source) == b"local"


class TestImagePreparationInRouting:
    """Test that large images are downscaled before submission"""

    async def test_large_image_resized(self, extraction_client, extraction_service, make_image):
        router = ExtractionRouter(extraction_client)
        big = make_image(size=(3000, 1000))
        source = Attachment(file_name="big.png", file_type="image/png", blob=big)

        await router.extract(source)

        sent = extraction_service.requests[0]
        assert sent["file_name"] == "big.jpg"
        assert sent["content_type"] == "image/jpeg"

    async def test_preparation_disabled(self, extraction_client, extraction_service, make_image):
        router = ExtractionRouter(extraction_client, prepare_images=False)
        big = make_image(size=(3000, 1000))
        await router.extract(Attachment(file_name="big.png", blob=big))
        assert extraction_service.requests[0]["data"] == big
