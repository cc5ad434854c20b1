# ============================================================================
# tests/unit/test_storage.py
# ============================================================================
"""
Tests for the local object store and the SQLite record store
"""

import sqlite3
from datetime import date

import pytest

from exam_pipeline.core.models import LinkedNote, PatientRef
from exam_pipeline.storage.paths import exam_attachment_path, reconstruction_candidates
from exam_pipeline.storage.record_store import SQLiteRecordStore
from exam_pipeline.utils.exceptions import (
    ObjectNotFoundError,
    RecordNotFoundError,
    RecordStoreError,
    StorageError,
)


class TestLocalObjectStore:
    """Test LocalObjectStore"""

    async def test_upload_download_delete(self, object_store):
        url = await object_store.upload("o/patients/p/exams/e/a.pdf", b"data", "application/pdf")
        assert url.startswith("file://")
        assert await object_store.download("o/patients/p/exams/e/a.pdf") == b"data"
        assert await object_store.get_url("o/patients/p/exams/e/a.pdf") == url

        await object_store.delete("o/patients/p/exams/e/a.pdf")
        with pytest.raises(ObjectNotFoundError):
            await object_store.get_url("o/patients/p/exams/e/a.pdf")

    async def test_missing_objects(self, object_store):
        with pytest.raises(ObjectNotFoundError):
            await object_store.download("nope.pdf")
        with pytest.raises(ObjectNotFoundError):
            await object_store.delete("nope.pdf")

    async def test_traversal_rejected(self, object_store):
        with pytest.raises(StorageError):
            await object_store.upload("../outside.pdf", b"x")

    async def test_path_from_url(self, object_store, tmp_path):
        url = await object_store.upload("o/a.pdf", b"x")
        assert object_store.path_from_url(url) == "o/a.pdf"
        assert object_store.path_from_url("https://cdn.example/a.pdf") is None
        assert object_store.path_from_url((tmp_path / "elsewhere.pdf").as_uri()) is None


class TestPaths:
    """Test storage path templates"""

    def test_exam_attachment_path(self, patient):
        path = exam_attachment_path(patient, "e1", "a/b.pdf")
        assert path == "doctor-1/patients/patient-1/exams/e1/a_b.pdf"

    def test_reconstruction_order(self, patient):
        candidates = reconstruction_candidates(patient, "e1", "a.pdf")
        assert [path for _, path in candidates] == [
            "doctor-1/patients/patient-1/exams/e1/a.pdf",
            "doctor-1/patients/patient-1/notes/e1/a.pdf",
        ]

    def test_no_candidates_without_exam(self, patient):
        assert reconstruction_candidates(patient, None, "a.pdf") == []


class TestSQLiteRecordStore:
    """Test SQLiteRecordStore"""

    async def test_create_and_get_exam(self, record_store, patient):
        exam = await record_store.create_exam(patient, {
            "title": "Hemograma",
            "examDate": "2024-03-15",
            "category": "LabGerais",
            "results": {"LabGerais": {"Glicose": "90"}},
        })
        assert exam.id
        assert exam.created_at is not None

        loaded = await record_store.get_exam(patient, exam.id)
        assert loaded.title == "Hemograma"
        assert loaded.exam_date == date(2024, 3, 15)
        assert loaded.results.get("LabGerais", "Glicose") == "90"

    async def test_update_merges_fields(self, record_store, patient):
        exam = await record_store.create_exam(patient, {"title": "A", "examDate": "2024-01-01"})
        updated = await record_store.update_exam(patient, exam.id, {"title": "B"})
        assert updated.title == "B"
        assert updated.exam_date == date(2024, 1, 1)

    async def test_scoped_by_patient(self, record_store, patient):
        exam = await record_store.create_exam(patient, {"title": "A"})
        other = PatientRef(owner_id="doctor-1", patient_id="patient-2")
        with pytest.raises(RecordNotFoundError):
            await record_store.get_exam(other, exam.id)
        assert await record_store.list_exams(other) == []
        assert len(await record_store.list_exams(patient)) == 1

    async def test_delete_exam(self, record_store, patient):
        exam = await record_store.create_exam(patient, {"title": "A"})
        await record_store.delete_exam(patient, exam.id)
        with pytest.raises(RecordNotFoundError):
            await record_store.delete_exam(patient, exam.id)

    async def test_update_missing_exam(self, record_store, patient):
        with pytest.raises(RecordNotFoundError):
            await record_store.update_exam(patient, "missing", {"title": "x"})

    async def test_notes(self, record_store, patient):
        note = LinkedNote(
            note_title="Exame - A",
            note_text="Exame realizado em 01 de janeiro de 2024.",
            consultation_date=date(2024, 1, 1),
            exame_id="e1",
        )
        created = await record_store.create_note(patient, note)
        assert created.id
        assert created.created_at

        found = await record_store.find_note_for_exam(patient, "e1")
        assert found.id == created.id
        assert await record_store.find_note_for_exam(patient, "e2") is None

        note.note_text = "changed"
        updated = await record_store.update_note(patient, created.id, note)
        assert updated.note_text == "changed"

        await record_store.delete_note(patient, created.id)
        assert await record_store.list_notes(patient) == []

    async def test_update_missing_note(self, record_store, patient):
        note = LinkedNote("t", "x", date(2024, 1, 1), "e1")
        with pytest.raises(RecordNotFoundError):
            await record_store.update_note(patient, "missing", note)

    def test_creates_database_file(self, tmp_path):
        SQLiteRecordStore(tmp_path / "db" / "r.db")
        assert (tmp_path / "db" / "r.db").exists()

    async def test_sqlite_errors_wrapped(self, record_store, patient):
        with sqlite3.connect(str(record_store.db_path)) as conn:
            conn.execute("DROP TABLE exams")
        with pytest.raises(RecordStoreError):
            await record_store.create_exam(patient, {"title": "A"})

    def test_connection_closed_on_error(self, record_store, patient, monkeypatch):
        opened = []
        connect = sqlite3.connect

        def tracking_connect(*args, **kwargs):
            conn = connect(*args, **kwargs)
            opened.append(conn)
            return conn

        with sqlite3.connect(str(record_store.db_path)) as conn:
            conn.execute("DROP TABLE notes")
        monkeypatch.setattr(sqlite3, "connect", tracking_connect)

        with pytest.raises(sqlite3.OperationalError):
            record_store._list_records("notes", "note_data", patient)

        assert len(opened) == 1
        with pytest.raises(sqlite3.ProgrammingError, match="closed"):
            opened[0].execute("SELECT 1")
