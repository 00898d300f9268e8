# src/engine/pdf_jobs.py
"""
PdfJobManager: record and status tracker for PDF generation jobs.

Jobs are rendered by an external worker; this side only creates the row and
applies the status/content updates the worker reports.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from engine import states
from engine.errors import (
    AuthenticationRequired,
    ForeignKeyViolation,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    PersistenceError,
    ValidationError,
)
from engine.models import Audit, PdfGenerationJob
from engine.notifications import notify
from utils.date_utils import utcnow

JOB_TTL = timedelta(days=7)


class PdfJobManager:
    def __init__(self, db):
        self.db = db

    def create(self, user_id: Optional[str], audit_id: str, parameters: dict = None) -> str:
        if not user_id:
            raise AuthenticationRequired()
        audit = self.db.get(Audit, audit_id)
        if audit is None:
            raise ForeignKeyViolation(f"Audit {audit_id} does not exist")
        if audit.user_id != user_id:
            raise PermissionDenied("Permission denied for this audit")

        now = utcnow()
        job = PdfGenerationJob(
            audit_id=audit_id,
            user_id=user_id,
            status=states.PENDING,
            progress=0,
            parameters=parameters or {},
            created_at=now,
            expires_at=now + JOB_TTL,
        )
        self.db.add(job)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ForeignKeyViolation(f"Failed to create PDF generation job: {e.orig}")
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to create PDF generation job: {e}")
        logging.info(f"[job_id={job.id}] Created PDF generation job for audit {audit_id}. parameters={parameters}")
        return job.id

    def get(self, job_id: str, user_id: str = None) -> PdfGenerationJob:
        job = self.db.get(PdfGenerationJob, job_id)
        if job is None or (user_id is not None and job.user_id != user_id):
            raise NotFound("PDF generation job not found")
        return job

    def list_by_audit(self, audit_id: str, user_id: str = None) -> list:
        query = self.db.query(PdfGenerationJob).filter(PdfGenerationJob.audit_id == audit_id)
        if user_id is not None:
            query = query.filter(PdfGenerationJob.user_id == user_id)
        return query.order_by(PdfGenerationJob.created_at.desc()).all()

    def update_status(self, job_id: str, status: str, progress: int = None, error_message: str = None) -> PdfGenerationJob:
        job = self.get(job_id)
        states.ensure_transition(job.status, status)

        if status == states.COMPLETED:
            progress = 100
        if progress is not None:
            if not 0 <= progress <= 100:
                raise ValidationError("progress must be between 0 and 100")
            if progress < (job.progress or 0) and status != states.FAILED:
                raise InvalidTransition(f"progress cannot go back from {job.progress} to {progress}")
            job.progress = max(progress, job.progress or 0)

        job.status = status
        if status == states.FAILED:
            job.error_message = error_message or job.error_message or "PDF generation failed"
            notify(self.db, job.user_id, "PDF report failed",
                   f"Your PDF report could not be generated: {job.error_message}",
                   type="report", link=f"/reports/{job.id}", commit=False)
        elif status == states.COMPLETED:
            notify(self.db, job.user_id, "PDF report ready",
                   "Your PDF report has been generated.",
                   type="report", link=f"/reports/{job.id}", commit=False)
        self.db.commit()
        logging.info(f"[job_id={job_id}] status={status} progress={job.progress}")
        return job

    def update_content(self, job_id: str, content: dict) -> PdfGenerationJob:
        job = self.get(job_id)
        if job.status == states.FAILED:
            raise InvalidTransition("Cannot attach content to a failed job")
        merged = dict(job.content or {})
        merged.update(content or {})
        merged.setdefault("generatedAt", utcnow().isoformat())
        job.content = merged
        self.db.commit()
        logging.info(f"[job_id={job_id}] Content updated. keys={sorted(merged)}")
        return job

    def delete(self, job_id: str, user_id: str = None) -> bool:
        job = self.get(job_id, user_id)
        self.db.delete(job)
        self.db.commit()
        logging.info(f"[job_id={job_id}] Deleted PDF generation job.")
        return True

    @staticmethod
    def is_expired(job: PdfGenerationJob, now: datetime = None) -> bool:
        return job.expires_at is not None and job.expires_at <= (now or utcnow())


def job_to_dict(job: PdfGenerationJob) -> dict:
    return {
        "id": job.id,
        "audit_id": job.audit_id,
        "user_id": job.user_id,
        "status": job.status,
        "progress": job.progress,
        "parameters": job.parameters,
        "content": job.content,
        "error_message": job.error_message,
        "created_at": str(job.created_at),
        "updated_at": str(job.updated_at) if job.updated_at else None,
        "expires_at": str(job.expires_at),
        "expired": PdfJobManager.is_expired(job),
    }
