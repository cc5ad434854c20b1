# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.
"""

import asyncio
import io
from datetime import date
from typing import Any, Dict, List, Optional

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from PIL import Image

from exam_pipeline.core.models import ExamDraft, PatientRef
from exam_pipeline.core.notifications import RecordingNotificationSink
from exam_pipeline.extractors.extraction_client import ExtractionClient
from exam_pipeline.extractors.extraction_router import ExtractionRouter
from exam_pipeline.pipeline import ExamPipeline
from exam_pipeline.storage.attachment_store import AttachmentStore
from exam_pipeline.storage.object_store import LocalObjectStore
from exam_pipeline.storage.record_store import SQLiteRecordStore


class FakeExtractionService:
    """
    Local stand-in for the extraction endpoint.

    Set `status` / `body` (or `raw_body`) to control the reply; every
    request's multipart fields are recorded in `requests`. Files placed in
    `files` are served under /files/{name}.
    """

    def __init__(self):
        self.status = 200
        self.body: Any = {"success": True, "data": {}}
        self.raw_body: Optional[str] = None
        self.delay = 0.0
        self.requests: List[Dict[str, Any]] = []
        self.files: Dict[str, bytes] = {}
        self.server: Optional[TestServer] = None

    async def handle_extract(self, request: web.Request) -> web.Response:
        form = await request.post()
        upload = form.get("file")
        self.requests.append({
            "extractType": form.get("extractType"),
            "file_name": upload.filename if upload is not None else None,
            "content_type": upload.content_type if upload is not None else None,
            "data": upload.file.read() if upload is not None else b"",
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raw_body is not None:
            return web.Response(status=self.status, text=self.raw_body)
        return web.json_response(self.body, status=self.status)

    async def handle_file(self, request: web.Request) -> web.Response:
        name = request.match_info["name"]
        if name not in self.files:
            return web.Response(status=404)
        return web.Response(body=self.files[name])

    @property
    def url(self) -> str:
        return str(self.server.make_url("/extract"))

    def file_url(self, name: str) -> str:
        return str(self.server.make_url(f"/files/{name}"))


@pytest.fixture
async def extraction_service():
    """Running local extraction service."""
    service = FakeExtractionService()
    app = web.Application()
    app.router.add_post("/extract", service.handle_extract)
    app.router.add_get("/files/{name}", service.handle_file)

    server = TestServer(app)
    await server.start_server()
    service.server = server
    yield service
    await server.close()


@pytest.fixture
async def extraction_client(extraction_service):
    client = ExtractionClient(endpoint=extraction_service.url, timeout=5)
    yield client
    await client.close()


@pytest.fixture
def patient():
    return PatientRef(owner_id="doctor-1", patient_id="patient-1")


@pytest.fixture
def draft():
    return ExamDraft(title="Hemograma", exam_date=date(2024, 3, 15))


@pytest.fixture
def object_store(tmp_path):
    return LocalObjectStore(tmp_path / "storage")


@pytest.fixture
def record_store(tmp_path):
    return SQLiteRecordStore(tmp_path / "records.db")


@pytest.fixture
def attachment_store(object_store, tmp_path):
    temp_dir = tmp_path / "blobs"
    temp_dir.mkdir()
    return AttachmentStore(object_store, temp_dir=temp_dir)


@pytest.fixture
def router(extraction_client, object_store):
    return ExtractionRouter(extraction_client, object_store=object_store)


@pytest.fixture
def notifier():
    return RecordingNotificationSink()


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    delays: List[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays
    return sleep


@pytest.fixture
async def pipeline(tmp_path, extraction_service, notifier, no_sleep):
    pipeline = ExamPipeline.from_settings(
        storage_root=tmp_path / "storage",
        db_path=tmp_path / "records.db",
        endpoint=extraction_service.url,
        notifier=notifier,
        backoff_seconds=0,
        sleep=no_sleep,
    )
    yield pipeline
    await pipeline.close()


def make_image_bytes(size=(64, 48), fmt="PNG", color=(200, 30, 30), exif_orientation=None) -> bytes:
    """Small in-memory image, optionally tagged with an EXIF orientation."""
    img = Image.new("RGB", size, color)
    buf = io.BytesIO()
    if exif_orientation is not None:
        exif = Image.Exif()
        exif[0x0112] = exif_orientation
        img.save(buf, format=fmt, exif=exif.tobytes())
    else:
        img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    return make_image_bytes()


@pytest.fixture
def make_image():
    return make_image_bytes


@pytest.fixture
def lab_response():
    return {"success": True, "data": {"LabGerais": {"Hemoglobina": "14 g/dL"}}}
