# ============================================================================
# src/exam_pipeline/storage/record_store.py
# ============================================================================
"""
Record Store

Exam records and their linked notes, scoped to (owner_id, patient_id).
SQLiteRecordStore follows the document store pattern: raw sqlite3, JSON
for the record body, blocking calls pushed to a worker thread.
"""

import asyncio
import json
import logging
import sqlite3
import uuid
from abc import ABC, abstractmethod
from contextlib import closing
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.models import Exam, LinkedNote, PatientRef
from ..utils.exceptions import RecordNotFoundError, RecordStoreError

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Async CRUD over exams and notes. Field dicts use the record (camelCase) keys."""

    @abstractmethod
    async def create_exam(self, patient: PatientRef, fields: Dict[str, Any]) -> Exam:
        ...

    @abstractmethod
    async def update_exam(self, patient: PatientRef, exam_id: str, fields: Dict[str, Any]) -> Exam:
        """Merge `fields` into an existing exam. Raises RecordNotFoundError."""

    @abstractmethod
    async def get_exam(self, patient: PatientRef, exam_id: str) -> Exam:
        ...

    @abstractmethod
    async def list_exams(self, patient: PatientRef) -> List[Exam]:
        ...

    @abstractmethod
    async def delete_exam(self, patient: PatientRef, exam_id: str) -> None:
        ...

    @abstractmethod
    async def list_notes(self, patient: PatientRef) -> List[LinkedNote]:
        ...

    @abstractmethod
    async def create_note(self, patient: PatientRef, note: LinkedNote) -> LinkedNote:
        ...

    @abstractmethod
    async def update_note(self, patient: PatientRef, note_id: str, note: LinkedNote) -> LinkedNote:
        ...

    @abstractmethod
    async def delete_note(self, patient: PatientRef, note_id: str) -> None:
        ...

    async def find_note_for_exam(self, patient: PatientRef, exam_id: str) -> Optional[LinkedNote]:
        """The note whose exameId points at `exam_id`, if any."""
        for note in await self.list_notes(patient):
            if note.exame_id == exam_id:
                return note
        return None


class SQLiteRecordStore(RecordStore):
    """
    SQLite-backed record store.

    Args:
        db_path: Database file (created on first use)
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._init_database()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------
    def _init_database(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(sqlite3.connect(str(self.db_path))) as conn:
            cur = conn.cursor()

            cur.execute("""
                CREATE TABLE IF NOT EXISTS exams (
                    exam_id         TEXT PRIMARY KEY,
                    owner_id        TEXT NOT NULL,
                    patient_id      TEXT NOT NULL,
                    created_at      TEXT NOT NULL,
                    last_modified   TEXT NOT NULL,
                    -- Full exam record as JSON
                    exam_data       TEXT NOT NULL
                )
            """)
            cur.execute("""
                CREATE TABLE IF NOT EXISTS notes (
                    note_id         TEXT PRIMARY KEY,
                    owner_id        TEXT NOT NULL,
                    patient_id      TEXT NOT NULL,
                    exame_id        TEXT,
                    created_at      TEXT NOT NULL,
                    note_data       TEXT NOT NULL
                )
            """)
            cur.execute("""
                CREATE INDEX IF NOT EXISTS idx_exams_patient
                ON exams (owner_id, patient_id)
            """)
            cur.execute("""
                CREATE INDEX IF NOT EXISTS idx_notes_patient
                ON notes (owner_id, patient_id)
            """)

            conn.commit()
        logger.info(f"Record store initialized: {self.db_path}")

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as e:
            raise RecordStoreError(f"Record store error: {e}") from e

    # ------------------------------------------------------------------
    # Exams
    # ------------------------------------------------------------------
    async def create_exam(self, patient: PatientRef, fields: Dict[str, Any]) -> Exam:
        return await self._run(self._create_exam, patient, fields)

    async def update_exam(self, patient: PatientRef, exam_id: str, fields: Dict[str, Any]) -> Exam:
        return await self._run(self._update_exam, patient, exam_id, fields)

    async def get_exam(self, patient: PatientRef, exam_id: str) -> Exam:
        record = await self._run(self._get_exam_record, patient, exam_id)
        return Exam.from_record(record)

    async def list_exams(self, patient: PatientRef) -> List[Exam]:
        records = await self._run(self._list_records, "exams", "exam_data", patient)
        return [Exam.from_record(r) for r in records]

    async def delete_exam(self, patient: PatientRef, exam_id: str) -> None:
        await self._run(self._delete_record, "exams", "exam_id", "Exam", patient, exam_id)

    def _create_exam(self, patient: PatientRef, fields: Dict[str, Any]) -> Exam:
        now = datetime.now().isoformat()
        exam_id = uuid.uuid4().hex
        record = {
            "results": {},
            "attachments": [],
            **fields,
            "id": exam_id,
            "createdAt": now,
            "lastModified": now,
        }

        with closing(sqlite3.connect(str(self.db_path))) as conn:
            cur = conn.cursor()
            cur.execute("""
                INSERT INTO exams
                    (exam_id, owner_id, patient_id, created_at, last_modified, exam_data)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                exam_id, patient.owner_id, patient.patient_id, now, now,
                json.dumps(record, default=str),
            ))
            conn.commit()

        logger.info(f"Created exam {exam_id} for patient {patient.patient_id}")
        return Exam.from_record(record)

    def _update_exam(self, patient: PatientRef, exam_id: str, fields: Dict[str, Any]) -> Exam:
        record = self._get_exam_record(patient, exam_id)
        now = datetime.now().isoformat()
        record.update(fields)
        record["id"] = exam_id
        record["lastModified"] = now

        with closing(sqlite3.connect(str(self.db_path))) as conn:
            cur = conn.cursor()
            cur.execute("""
                UPDATE exams SET last_modified = ?, exam_data = ?
                WHERE exam_id = ? AND owner_id = ? AND patient_id = ?
            """, (
                now, json.dumps(record, default=str),
                exam_id, patient.owner_id, patient.patient_id,
            ))
            conn.commit()

        logger.info(f"Updated exam {exam_id} ({', '.join(sorted(fields))})")
        return Exam.from_record(record)

    def _get_exam_record(self, patient: PatientRef, exam_id: str) -> Dict[str, Any]:
        with closing(sqlite3.connect(str(self.db_path))) as conn:
            cur = conn.cursor()
            cur.execute("""
                SELECT exam_data FROM exams
                WHERE exam_id = ? AND owner_id = ? AND patient_id = ?
            """, (exam_id, patient.owner_id, patient.patient_id))
            row = cur.fetchone()
        if not row:
            raise RecordNotFoundError("Exam", exam_id)
        return json.loads(row[0])

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------
    async def list_notes(self, patient: PatientRef) -> List[LinkedNote]:
        records = await self._run(self._list_records, "notes", "note_data", patient)
        return [LinkedNote.from_record(r) for r in records]

    async def create_note(self, patient: PatientRef, note: LinkedNote) -> LinkedNote:
        return await self._run(self._create_note, patient, note)

    async def update_note(self, patient: PatientRef, note_id: str, note: LinkedNote) -> LinkedNote:
        return await self._run(self._update_note, patient, note_id, note)

    async def delete_note(self, patient: PatientRef, note_id: str) -> None:
        await self._run(self._delete_record, "notes", "note_id", "Note", patient, note_id)

    def _create_note(self, patient: PatientRef, note: LinkedNote) -> LinkedNote:
        note_id = uuid.uuid4().hex
        record = note.to_record()
        record["id"] = note_id
        created_at = record.setdefault("createdAt", datetime.now().isoformat())

        with closing(sqlite3.connect(str(self.db_path))) as conn:
            cur = conn.cursor()
            cur.execute("""
                INSERT INTO notes
                    (note_id, owner_id, patient_id, exame_id, created_at, note_data)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                note_id, patient.owner_id, patient.patient_id, note.exame_id,
                created_at, json.dumps(record, default=str),
            ))
            conn.commit()

        logger.info(f"Created note {note_id} linked to exam {note.exame_id}")
        return LinkedNote.from_record(record)

    def _update_note(self, patient: PatientRef, note_id: str, note: LinkedNote) -> LinkedNote:
        record = note.to_record()
        record["id"] = note_id

        with closing(sqlite3.connect(str(self.db_path))) as conn:
            cur = conn.cursor()
            cur.execute("""
                UPDATE notes SET exame_id = ?, note_data = ?
                WHERE note_id = ? AND owner_id = ? AND patient_id = ?
            """, (
                note.exame_id, json.dumps(record, default=str),
                note_id, patient.owner_id, patient.patient_id,
            ))
            updated = cur.rowcount
            conn.commit()

        if not updated:
            raise RecordNotFoundError("Note", note_id)
        return LinkedNote.from_record(record)

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------
    def _list_records(self, table: str, column: str, patient: PatientRef) -> List[Dict[str, Any]]:
        with closing(sqlite3.connect(str(self.db_path))) as conn:
            cur = conn.cursor()
            cur.execute(
                f"SELECT {column} FROM {table} WHERE owner_id = ? AND patient_id = ? "
                f"ORDER BY created_at DESC",
                (patient.owner_id, patient.patient_id),
            )
            rows = cur.fetchall()
        return [json.loads(row[0]) for row in rows]

    def _delete_record(self, table: str, key: str, kind: str, patient: PatientRef, record_id: str) -> None:
        with closing(sqlite3.connect(str(self.db_path))) as conn:
            cur = conn.cursor()
            cur.execute(
                f"DELETE FROM {table} WHERE {key} = ? AND owner_id = ? AND patient_id = ?",
                (record_id, patient.owner_id, patient.patient_id),
            )
            deleted = cur.rowcount
            conn.commit()

        if not deleted:
            raise RecordNotFoundError(kind, record_id)
        logger.info(f"Deleted {kind.lower()} {record_id}")
