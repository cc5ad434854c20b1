# ============================================================================
# src/exam_pipeline/api/main.py
# ============================================================================
"""
FastAPI Backend for the Exam Ingestion Pipeline

Provides REST endpoints to extract structured results from an exam file,
save exams with their attachments, delete them, and open attachments.
Patients are scoped by the X-Owner-Id header.
"""

import json
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from fastapi import FastAPI, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..core.models import (
    ExamDraft,
    ExtractionResultTable,
    OutcomeKind,
    PatientRef,
)
from ..pipeline import ExamPipeline
from ..storage.attachment_store import ResolveContext
from ..utils.exceptions import (
    AttachmentResolutionError,
    RecordNotFoundError,
    SaveFailedError,
    ValidationError,
)
from ..utils.logging import configure_from_settings

logger = logging.getLogger(__name__)

GENERIC_ERROR = "An unexpected error occurred. Please try again."


def _parse_results(raw: Optional[str]) -> ExtractionResultTable:
    if not raw:
        return ExtractionResultTable()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"results is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValidationError("results must be a JSON object")
    return ExtractionResultTable.from_dict(data)


def create_app(pipeline: Optional[ExamPipeline] = None) -> FastAPI:
    """
    Build the API app.

    Args:
        pipeline: Pre-wired pipeline (built from settings on startup if None)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.pipeline is None:
            configure_from_settings()
            app.state.pipeline = ExamPipeline.from_settings()
        yield
        await app.state.pipeline.close()

    app = FastAPI(
        title="Exam Ingestion Pipeline API",
        description="API for extracting and saving structured medical exam results",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_pipeline() -> ExamPipeline:
        return app.state.pipeline

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"error": str(exc)})

    @app.exception_handler(RecordNotFoundError)
    async def not_found_handler(request: Request, exc: RecordNotFoundError):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(SaveFailedError)
    async def save_failed_handler(request: Request, exc: SaveFailedError):
        return JSONResponse(
            status_code=503,
            content={"error": str(exc), "attempts": exc.attempts, "exam_id": exc.exam_id},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": GENERIC_ERROR})

    # ========================================================================
    # Endpoints
    # ========================================================================

    @app.get("/api/health")
    async def health():
        """Health check for monitoring."""
        return {"status": "healthy"}

    @app.post("/api/patients/{patient_id}/exams/extract")
    async def extract_exam(
        patient_id: str,
        file: UploadFile = File(...),
        results: Optional[str] = Form(None),
        x_owner_id: str = Header(...),
    ):
        """
        Extract structured results from one exam file.

        Unsupported, empty or oversized files are rejected with 400 before
        the extraction service is called. The returned table is `results`
        (if given) merged with whatever the service extracted.
        """
        pipeline = get_pipeline()
        content = await file.read()
        attachment = pipeline.attachments.stage(
            file.filename or "upload", content, file.content_type or None
        )

        classification = pipeline.classifier.classify(attachment)
        if not classification.is_supported:
            raise HTTPException(status_code=400, detail={"error": "unsupported type"})
        rejection = pipeline.router.check_size(len(content))
        if rejection:
            raise HTTPException(status_code=400, detail={"error": rejection.message})

        existing = _parse_results(results)
        outcome = await pipeline.router.extract(attachment)
        merged = (
            pipeline.merger.merge(existing, outcome.data)
            if outcome.kind is OutcomeKind.SUCCESS
            else existing
        )

        logger.info(
            f"Extraction for patient {patient_id} (owner {x_owner_id}): "
            f"{attachment.file_name!r} -> {outcome.kind.value}"
        )
        body = {
            "classification": classification.to_dict(),
            "outcome": outcome.to_dict(),
            "message": outcome.user_message,
            "results": merged.to_dict(),
        }
        status_code = 502 if outcome.kind is OutcomeKind.FAILURE else 200
        return JSONResponse(status_code=status_code, content=body)

    @app.post("/api/patients/{patient_id}/exams")
    async def save_exam(
        patient_id: str,
        title: str = Form(...),
        exam_date: Optional[date] = Form(None),
        category: Optional[str] = Form(None),
        observations: str = Form(""),
        results: Optional[str] = Form(None),
        exam_id: Optional[str] = Form(None),
        files: Optional[List[UploadFile]] = File(None),
        x_owner_id: str = Header(...),
    ):
        """Create or update an exam, uploading any attached files."""
        pipeline = get_pipeline()
        patient = PatientRef(owner_id=x_owner_id, patient_id=patient_id)

        draft = ExamDraft(title=title, observations=observations, id=exam_id or None)
        if exam_date:
            draft.exam_date = exam_date
        if category:
            draft.category = category

        table = _parse_results(results)
        attachments = []
        if draft.id:
            attachments = list((await pipeline.records.get_exam(patient, draft.id)).attachments)
        for upload in files or []:
            attachments.append(
                pipeline.attachments.stage(
                    upload.filename or "upload", await upload.read(), upload.content_type or None
                )
            )

        result = await pipeline.coordinator.save(patient, draft, attachments, table)
        status_code = 200 if exam_id else 201
        return JSONResponse(status_code=status_code, content=result.to_dict())

    @app.get("/api/patients/{patient_id}/exams/{exam_id}")
    async def get_exam(patient_id: str, exam_id: str, x_owner_id: str = Header(...)):
        pipeline = get_pipeline()
        exam = await pipeline.records.get_exam(PatientRef(x_owner_id, patient_id), exam_id)
        return exam.to_record()

    @app.delete("/api/patients/{patient_id}/exams/{exam_id}")
    async def delete_exam(patient_id: str, exam_id: str, x_owner_id: str = Header(...)):
        """Delete an exam, its stored attachments and its linked note."""
        pipeline = get_pipeline()
        result = await pipeline.coordinator.delete(PatientRef(x_owner_id, patient_id), exam_id)
        return {
            "exam_id": result.exam_id,
            "removed_objects": result.removed_objects,
            "failed_removals": [f.file_name for f in result.failed_removals],
            "note_deleted": result.note_deleted,
        }

    @app.get("/api/patients/{patient_id}/exams/{exam_id}/attachments/{index}/url")
    async def attachment_url(
        patient_id: str, exam_id: str, index: int, x_owner_id: str = Header(...)
    ):
        """Resolve a URL the attachment can be opened from."""
        pipeline = get_pipeline()
        patient = PatientRef(x_owner_id, patient_id)
        exam = await pipeline.records.get_exam(patient, exam_id)
        if not 0 <= index < len(exam.attachments):
            raise HTTPException(status_code=404, detail={"error": "Attachment not found"})

        try:
            resolved = await pipeline.attachments.resolve_url(
                exam.attachments[index], ResolveContext(patient=patient, exam_id=exam_id)
            )
        except AttachmentResolutionError as e:
            raise HTTPException(
                status_code=404, detail={"error": str(e), "tried": e.tried}
            ) from e
        return {"url": resolved.url, "strategy": resolved.strategy.value}

    return app


app = create_app()


def run():
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
