# src/engine/audit_dispatcher.py
"""
Audit dispatch: hands audits to the crawler service and applies the status
the crawler reports back.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from engine import states
from engine.errors import LimitExceeded, NotFound, UpstreamError, ValidationError
from engine.models import Audit, Project
from engine.notifications import notify
from engine.usage import check_feature_access
from tools.base import error_body
from utils.date_utils import utcnow


@dataclass
class DispatchResult:
    ok: bool
    status: str
    error: Optional[str] = None


def dispatch_audit(db, crawler, audit: Audit, options: dict = None) -> DispatchResult:
    """
    Forward a pending audit to the crawler and record the outcome on the row:
    processing when the crawler accepts it, failed otherwise. No retries.
    """
    try:
        response = crawler.start_audit(audit.project_id, audit.url, audit.id, options or {})
    except UpstreamError as e:
        return _fail(db, audit, e.message)
    except Exception as e:
        logging.exception(f"[audit_id={audit.id}] Unexpected error calling crawler service")
        return _fail(db, audit, f"Crawler dispatch error: {e}")

    if not response.ok:
        body = error_body(response)
        return _fail(db, audit, body.get("error") or response.reason or f"HTTP {response.status_code}")

    states.ensure_transition(audit.status, states.PROCESSING)
    audit.status = states.PROCESSING
    db.commit()
    logging.info(f"[audit_id={audit.id}] Audit started with crawler service.")
    return DispatchResult(ok=True, status=audit.status)


def _fail(db, audit: Audit, message: str) -> DispatchResult:
    logging.error(f"[audit_id={audit.id}] Failed to start audit with crawler service: {message}")
    states.ensure_transition(audit.status, states.FAILED)
    audit.status = states.FAILED
    audit.error_message = message
    db.commit()
    return DispatchResult(ok=False, status=audit.status, error=message)


def get_owned_project(db, user_id: str, project_id: str) -> Project:
    project = db.get(Project, project_id)
    if project is None or project.user_id != user_id:
        raise NotFound("Project not found or unauthorized")
    return project


def get_owned_audit(db, user_id: str, audit_id: str) -> Audit:
    audit = db.get(Audit, audit_id)
    if audit is None or audit.user_id != user_id:
        raise NotFound("Audit not found or access denied")
    return audit


def create_audit(db, crawler, user_id: str, project_id: str, options: dict = None, scheduled: bool = False):
    """User-triggered crawl: quota check, pending row, dispatch."""
    project = get_owned_project(db, user_id, project_id)
    access = check_feature_access(db, user_id, "audits")
    if not access.allowed:
        raise LimitExceeded(access.message)

    audit = Audit(project_id=project.id, user_id=user_id, url=project.url,
                  status=states.PENDING, scheduled=scheduled)
    db.add(audit)
    db.commit()
    logging.info(f"[audit_id={audit.id}] Created audit for project {project.id}.")

    opts = {"crawlDepth": project.crawl_depth or 3}
    opts.update(options or {})
    result = dispatch_audit(db, crawler, audit, opts)
    return audit, result


def apply_crawler_callback(db, audit_id: str, project_id: str, status: str, score: int = None,
                           report: dict = None, error_message: str = None) -> Audit:
    """
    Status report from the crawler. Only forward moves are accepted; the owner
    is notified when the audit reaches a terminal state.
    """
    audit = db.get(Audit, audit_id)
    if audit is None or audit.project_id != project_id:
        raise NotFound("Audit not found")
    project = db.get(Project, project_id)
    if project is None:
        raise NotFound("Project not found")

    states.ensure_transition(audit.status, status)
    audit.status = status
    if score is not None:
        audit.score = score
    if report is not None:
        audit.report = report
    if error_message:
        audit.error_message = error_message
    if status == states.COMPLETED:
        audit.completed_at = utcnow()

    name = project.name or project.url
    if status == states.COMPLETED:
        notify(db, project.user_id, "Audit completed",
               f"The audit for {name} has completed.", type="audit", link=f"/audits/{audit.id}", commit=False)
    elif status == states.FAILED:
        notify(db, project.user_id, "Audit failed",
               f"The audit for {name} failed: {audit.error_message or 'unknown error'}",
               type="audit", link=f"/audits/{audit.id}", commit=False)
    db.commit()
    logging.info(f"[audit_id={audit.id}] Crawler reported status={status}")
    return audit


def refresh_audit_status(db, crawler, audit: Audit) -> Audit:
    """Pull the crawler's view of a running audit and apply it if it moved forward."""
    if states.is_terminal(audit.status):
        return audit
    remote = crawler.get_audit_status(audit.id) or {}
    status = remote.get("status")
    if status not in states.STATUSES or status == audit.status or not states.can_transition(audit.status, status):
        return audit
    return apply_crawler_callback(
        db, audit.id, audit.project_id, status,
        score=remote.get("score"),
        report=remote.get("result"),
        error_message=remote.get("error"),
    )


def delete_audit(db, user_id: str, audit_id: str):
    audit = get_owned_audit(db, user_id, audit_id)
    db.delete(audit)
    db.commit()
    logging.info(f"[audit_id={audit_id}] Deleted audit.")


BULK_ACTIONS = ("delete",)


def bulk_audit_action(db, user_id: str, audit_ids: list, action: str) -> int:
    """Apply an action to several of the user's audits; ids the user does not own are ignored."""
    if not audit_ids:
        raise ValidationError("No audits selected")
    if action not in BULK_ACTIONS:
        raise ValidationError("Invalid action")
    audits = db.query(Audit).filter(Audit.id.in_(audit_ids), Audit.user_id == user_id).all()
    for audit in audits:
        db.delete(audit)
    db.commit()
    logging.info(f"[user_id={user_id}] Bulk {action} of {len(audits)} audits")
    return len(audits)


def audit_to_dict(audit: Audit) -> dict:
    return {
        "id": audit.id,
        "project_id": audit.project_id,
        "user_id": audit.user_id,
        "url": audit.url,
        "status": audit.status,
        "score": audit.score,
        "report": audit.report,
        "error_message": audit.error_message,
        "scheduled": audit.scheduled,
        "created_at": str(audit.created_at),
        "completed_at": str(audit.completed_at) if audit.completed_at else None,
    }
