# src/engine/scheduler.py
"""
Scheduled audit verification: finds active projects whose latest audit is
older than their crawl frequency allows and dispatches a new one.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, inspect

from engine import states
from engine.audit_dispatcher import dispatch_audit
from engine.models import Audit, Project
from engine.usage import get_audit_limits
from utils.date_utils import utcnow

FREQUENCY_WINDOWS = {
    "daily": timedelta(days=1),
    "weekly": timedelta(days=7),
    "monthly": timedelta(days=30),
}
DEFAULT_FREQUENCY = "monthly"


def is_audit_due(frequency: Optional[str], latest_audit_at: Optional[datetime], now: datetime) -> bool:
    if latest_audit_at is None:
        return True
    window = FREQUENCY_WINDOWS.get(frequency or DEFAULT_FREQUENCY, FREQUENCY_WINDOWS[DEFAULT_FREQUENCY])
    return latest_audit_at < now - window


def latest_audit_at(db, project_id: str) -> Optional[datetime]:
    return db.query(func.max(Audit.created_at)).filter(Audit.project_id == project_id).scalar()


def verify_audits(db, crawler, now: datetime = None) -> dict:
    now = now or utcnow()
    projects = db.query(Project).filter(Project.status == "active").order_by(Project.created_at).all()
    if not projects:
        return {"message": "No active projects found", "scheduledAudits": 0, "audits": [],
                "failedAudits": [], "skippedProjects": 0}

    scheduled, failed = [], []
    skipped = 0
    for project in projects:
        if not project.user_id:
            continue
        audit = None
        try:
            limits = get_audit_limits(db, project.user_id, now=now)
            if limits.is_limited and limits.remaining <= 0:
                logging.info(f"User {project.user_id} has reached their audit limit. Skipping project {project.id}")
                skipped += 1
                continue

            if not is_audit_due(project.crawl_frequency, latest_audit_at(db, project.id), now):
                continue

            audit = Audit(project_id=project.id, user_id=project.user_id, url=project.url,
                          status=states.PENDING, scheduled=True)
            db.add(audit)
            db.commit()

            result = dispatch_audit(db, crawler, audit, {"crawlDepth": project.crawl_depth or 3})
            entry = {
                "projectId": project.id,
                "projectName": project.name,
                "auditId": audit.id,
                "frequency": project.crawl_frequency,
            }
            if result.ok:
                scheduled.append(entry)
            else:
                entry["error"] = result.error
                failed.append(entry)
        except Exception as e:
            db.rollback()
            logging.error(f"[project_id={project.id}] Error scheduling audit: {e}")
            entry = {"projectId": project.id, "projectName": project.name, "error": str(e)}
            if audit is not None and inspect(audit).persistent and not states.is_terminal(audit.status):
                audit.status = states.FAILED
                audit.error_message = str(e)
                db.commit()
                entry["auditId"] = audit.id
            failed.append(entry)

    logging.info(f"Scheduled audits verification completed: scheduled={len(scheduled)} failed={len(failed)}")
    return {
        "message": "Scheduled audits verification completed",
        "scheduledAudits": len(scheduled),
        "audits": scheduled,
        "failedAudits": failed,
        "skippedProjects": skipped,
    }
