# ============================================================================
# tests/unit/test_save_coordinator.py
# ============================================================================
"""
Tests for multi-step exam persistence
"""

import pytest

from exam_pipeline.core.models import (
    Attachment,
    ExamDraft,
    ExtractionResultTable,
    Severity,
)
from exam_pipeline.core.exam_session import ExamEditingSession
from exam_pipeline.core.save_coordinator import SaveCoordinator
from exam_pipeline.storage.attachment_store import AttachmentStore
from exam_pipeline.storage.object_store import LocalObjectStore
from exam_pipeline.storage.record_store import SQLiteRecordStore
from exam_pipeline.utils.exceptions import SaveFailedError, StorageError, ValidationError


class FlakyRecordStore(SQLiteRecordStore):
    """SQLite store that fails a chosen number of create/update calls."""

    def __init__(self, db_path, fail_create=0, fail_update=0, fail_notes=False):
        super().__init__(db_path)
        self.fail_create = fail_create
        self.fail_update = fail_update
        self.fail_notes = fail_notes
        self.create_calls = 0
        self.update_calls = 0

    async def create_exam(self, patient, fields):
        self.create_calls += 1
        if self.fail_create:
            self.fail_create -= 1
            raise ConnectionError("record store offline")
        return await super().create_exam(patient, fields)

    async def update_exam(self, patient, exam_id, fields):
        self.update_calls += 1
        if self.fail_update:
            self.fail_update -= 1
            raise ConnectionError("record store offline")
        return await super().update_exam(patient, exam_id, fields)

    async def create_note(self, patient, note):
        if self.fail_notes:
            raise ConnectionError("notes offline")
        return await super().create_note(patient, note)


class FlakyObjectStore(LocalObjectStore):
    """Local store rejecting uploads of chosen file names."""

    def __init__(self, root, reject=()):
        super().__init__(root)
        self.reject = set(reject)

    async def upload(self, path, data, content_type=None):
        if path.rsplit("/", 1)[-1] in self.reject:
            raise StorageError(f"upload rejected: {path}")
        return await super().upload(path, data, content_type)


@pytest.fixture
def build(tmp_path, notifier, no_sleep):
    """Coordinator factory over flaky stores."""

    def _build(reject=(), **record_kwargs):
        records = FlakyRecordStore(tmp_path / "records.db", **record_kwargs)
        attachments = AttachmentStore(FlakyObjectStore(tmp_path / "storage", reject=reject))
        coordinator = SaveCoordinator(
            records, attachments, notifier=notifier,
            max_attempts=3, backoff_seconds=1.0, sleep=no_sleep,
        )
        return coordinator, records, attachments

    return _build


class TestSave:
    """Test the happy path"""

    async def test_creates_exam_uploads_and_note(self, build, patient, draft):
        coordinator, records, store = build()
        results = ExtractionResultTable.from_dict({"LabGerais": {"Hemoglobina": "14 g/dL"}})
        staged = store.stage("exam.pdf", b"%PDF")

        result = await coordinator.save(patient, draft, [staged], results)

        assert result.attempts == 1
        assert result.failed_upload_count == 0
        assert result.note_id is not None

        exam = await records.get_exam(patient, result.exam_id)
        assert exam.title == "Hemograma"
        assert exam.results.get("LabGerais", "Hemoglobina") == "14 g/dL"
        assert [a.storage_path for a in exam.attachments] == [
            f"doctor-1/patients/patient-1/exams/{result.exam_id}/exam.pdf"
        ]

        note = await records.find_note_for_exam(patient, result.exam_id)
        assert note.note_title == "Exame - Hemograma"
        assert "Exame processado com resultados estruturados." in note.note_text

    async def test_missing_title_rejected_before_any_call(self, build, patient):
        coordinator, records, _ = build()
        with pytest.raises(ValidationError):
            await coordinator.save(patient, ExamDraft(title="  "), [], None)
        assert records.create_calls == 0

    async def test_unknown_category_rejected(self, build, patient):
        coordinator, records, _ = build()
        with pytest.raises(ValidationError, match="Bogus"):
            await coordinator.save(patient, ExamDraft(title="TSH", category="Bogus"), [], None)
        assert records.create_calls == 0

    async def test_second_save_updates_note(self, build, patient, draft):
        coordinator, records, _ = build()
        first = await coordinator.save(patient, draft, [], None)

        draft.id = first.exam_id
        second = await coordinator.save(patient, draft, first.attachments, None)

        notes = await records.list_notes(patient)
        assert len(notes) == 1
        assert second.note_id == first.note_id
        assert notes[0].note_text.startswith("Exame atualizado em 15 de março de 2024.")
        assert len(await records.list_exams(patient)) == 1


class TestPartialFailure:
    """Test per-upload failure handling"""

    async def test_two_of_three_uploads(self, build, patient, draft):
        coordinator, records, store = build(reject={"b.pdf"})
        prior = await store.upload(store.stage("prior.pdf", b"p"), "doctor-1/patients/patient-1/old")
        attachments = [
            prior,
            store.stage("a.pdf", b"a"),
            store.stage("b.pdf", b"b"),
            store.stage("c.pdf", b"c"),
        ]

        result = await coordinator.save(patient, draft, attachments, None)

        assert result.attempts == 1
        assert result.failed_upload_count == 1
        assert result.failed_uploads[0].file_name == "b.pdf"
        assert [a.file_name for a in result.attachments] == ["prior.pdf", "a.pdf", "c.pdf"]

        exam = await records.get_exam(patient, result.exam_id)
        assert [a.file_name for a in exam.attachments] == ["prior.pdf", "a.pdf", "c.pdf"]
        assert all(a.blob is None for a in exam.attachments)

    async def test_all_uploads_fail_still_saves(self, build, patient, draft):
        coordinator, records, store = build(reject={"a.pdf"})
        result = await coordinator.save(patient, draft, [store.stage("a.pdf", b"a")], None)
        assert result.failed_upload_count == 1
        exam = await records.get_exam(patient, result.exam_id)
        assert exam.attachments == []

    async def test_note_failure_is_not_fatal(self, build, patient, draft, notifier):
        coordinator, _, _ = build(fail_notes=True)
        result = await coordinator.save(patient, draft, [], None)

        assert result.attempts == 1
        assert result.note_id is None
        assert "notes offline" in result.note_error
        assert notifier.messages(Severity.WARNING)


class TestRetry:
    """Test bounded retry"""

    async def test_at_most_three_attempts(self, build, patient, draft, no_sleep):
        coordinator, records, _ = build(fail_create=10)

        with pytest.raises(SaveFailedError) as exc:
            await coordinator.save(patient, draft, [], None)

        assert exc.value.attempts == 3
        assert isinstance(exc.value.last_error, ConnectionError)
        assert records.create_calls == 3
        assert no_sleep.delays == [1.0, 1.0]

    async def test_recovers_on_later_attempt(self, build, patient, draft):
        coordinator, records, _ = build(fail_create=2)
        result = await coordinator.save(patient, draft, [], None)
        assert result.attempts == 3
        assert records.create_calls == 3

    async def test_retry_reuses_created_exam(self, build, patient, draft):
        # Step 3 fails once after the exam was created in step 1
        coordinator, records, store = build(fail_update=1)

        result = await coordinator.save(patient, draft, [store.stage("a.pdf", b"a")], None)

        assert result.attempts == 2
        assert records.create_calls == 1
        exams = await records.list_exams(patient)
        assert len(exams) == 1
        assert [a.file_name for a in exams[0].attachments] == ["a.pdf"]

    async def test_fatal_error_carries_created_exam_id(self, build, patient, draft):
        coordinator, records, store = build(fail_update=3)

        with pytest.raises(SaveFailedError) as exc:
            await coordinator.save(patient, draft, [store.stage("a.pdf", b"a")], None)

        exams = await records.list_exams(patient)
        assert len(exams) == 1
        assert exc.value.exam_id == exams[0].id

    async def test_session_resave_after_fatal_error_updates(
        self, build, patient, draft, router, notifier
    ):
        coordinator, records, store = build(fail_update=3)
        session = ExamEditingSession(patient, router, coordinator, store, notifier=notifier)
        session.draft = draft
        session.add_files([("a.pdf", b"a", None)])

        assert await session.save() is None
        assert session.exam_id is not None

        result = await session.save()

        assert result.exam_id == session.exam_id
        assert records.create_calls == 1
        exams = await records.list_exams(patient)
        assert len(exams) == 1
        assert [a.file_name for a in exams[0].attachments] == ["a.pdf"]


class TestDelete:
    """Test cascading delete"""

    async def test_delete_removes_objects_record_and_note(self, build, patient, draft, tmp_path):
        coordinator, records, store = build()
        saved = await coordinator.save(patient, draft, [store.stage("a.pdf", b"a")], None)
        object_path = tmp_path / "storage" / saved.attachments[0].storage_path
        assert object_path.exists()

        result = await coordinator.delete(patient, saved.exam_id)

        assert result.removed_objects == 1
        assert result.note_deleted
        assert not object_path.exists()
        assert await records.list_exams(patient) == []
        assert await records.list_notes(patient) == []

    async def test_delete_tolerates_missing_objects(self, build, patient, draft):
        coordinator, records, _ = build()
        saved = await coordinator.save(patient, draft, [], None)
        await records.update_exam(patient, saved.exam_id, {
            "attachments": [Attachment(file_name="gone.pdf", storage_path="x/gone.pdf").to_record()]
        })

        result = await coordinator.delete(patient, saved.exam_id)

        assert [f.file_name for f in result.failed_removals] == ["gone.pdf"]
        assert await records.list_exams(patient) == []
