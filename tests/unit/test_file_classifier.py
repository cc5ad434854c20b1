# ============================================================================
# tests/unit/test_file_classifier.py
# ============================================================================
"""
Tests for file classification
"""

import pytest

from exam_pipeline.classifiers.file_classifier import FileClassifier, classify
from exam_pipeline.core.models import Attachment, FileKind


@pytest.fixture
def classifier():
    return FileClassifier()


class TestMimeSignal:
    """Test classification from the declared MIME type"""

    def test_pdf_mime(self, classifier):
        result = classifier.classify({"fileName": "report", "fileType": "application/pdf"})
        assert result.is_pdf
        assert not result.is_docx
        assert not result.is_image
        assert result.is_supported

    def test_docx_mime(self, classifier):
        result = classifier.classify({
            "name": "laudo",
            "type": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        })
        assert result.is_docx
        assert result.kind is FileKind.DOCX

    def test_msword_mime(self, classifier):
        result = classifier.classify({"name": "laudo", "type": "application/msword"})
        assert result.is_docx

    def test_image_mime_routes_to_image(self, classifier):
        result = classifier.classify({"name": "photo", "type": "image/heic"})
        assert result.is_image
        assert result.kind is FileKind.IMAGE


class TestExtensionSignal:
    """Test classification from the file name extension"""

    def test_uppercase_pdf_extension_without_type(self, classifier):
        result = classifier.classify({"fileName": "exam.PDF", "fileType": ""})
        assert result.is_pdf
        assert not result.is_docx
        assert not result.is_image
        assert result.is_supported

    @pytest.mark.parametrize("name", ["a.jpg", "a.jpeg", "a.png", "a.gif", "a.bmp", "a.webp"])
    def test_image_extensions(self, classifier, name):
        assert classifier.classify({"name": name}).is_image

    @pytest.mark.parametrize("name", ["a.doc", "a.docx"])
    def test_docx_extensions(self, classifier, name):
        assert classifier.classify({"name": name}).is_docx

    def test_plain_string_name(self, classifier):
        assert classifier.classify("scan.JPG").is_image


class TestUnsupported:
    """Test inputs that must not be routed"""

    def test_unknown_type(self, classifier):
        result = classifier.classify({"name": "notes.txt", "type": "text/plain"})
        assert not result.is_supported
        assert result.kind is FileKind.UNSUPPORTED

    @pytest.mark.parametrize("file_ref", [None, {}, 42, {"name": None, "type": 7}, object()])
    def test_malformed_input_never_raises(self, classifier, file_ref):
        result = classifier.classify(file_ref)
        assert not result.is_pdf
        assert not result.is_docx
        assert not result.is_image
        assert not result.is_supported


class TestShapes:
    """Test the different file reference shapes"""

    def test_attachment(self):
        attachment = Attachment(file_name="x.png", file_type="image/png", blob=b"123")
        assert classify(attachment).is_image

    def test_upload_like_object(self):
        class Upload:
            filename = "resultado.pdf"
            content_type = "application/octet-stream"

        assert classify(Upload()).is_pdf

    def test_idempotent(self, classifier):
        ref = {"fileName": "exam.pdf", "fileType": "image/png"}
        assert classifier.classify(ref) == classifier.classify(ref)

    def test_image_wins_routing(self, classifier):
        result = classifier.classify({"fileName": "exam.pdf", "fileType": "image/png"})
        assert result.is_pdf and result.is_image
        assert result.kind is FileKind.IMAGE
