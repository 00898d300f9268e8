# src/engine/competitors.py
import logging
from urllib.parse import urlparse

from sqlalchemy import func

from engine.audit_dispatcher import get_owned_project
from engine.errors import LimitExceeded, NotFound, ValidationError
from engine.models import Competitor
from engine.usage import check_feature_access


def competitor_name_from_url(url: str) -> str:
    host = urlparse(url).netloc.lower()
    return host[4:] if host.startswith("www.") else host


def validate_url(url: str) -> str:
    parsed = urlparse((url or "").strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("Please enter a valid URL")
    return url.strip()


def list_competitors(db, user_id: str, project_id: str) -> list:
    get_owned_project(db, user_id, project_id)
    return (db.query(Competitor)
            .filter(Competitor.project_id == project_id)
            .order_by(Competitor.created_at.desc())
            .all())


def add_competitor(db, user_id: str, project_id: str, url: str, name: str = None) -> Competitor:
    url = validate_url(url)
    get_owned_project(db, user_id, project_id)

    access = check_feature_access(db, user_id, "max_competitors", project_id=project_id)
    if not access.allowed:
        logging.warning(f"[project_id={project_id}] Competitor limit reached for user {user_id}")
        raise LimitExceeded(
            f"You have reached your plan's limit of {access.limit} competitors. "
            f"Please upgrade or contact support to add more."
        )

    duplicate = db.query(Competitor).filter(
        Competitor.project_id == project_id,
        func.lower(Competitor.url) == url.lower(),
    ).first()
    if duplicate is not None:
        raise ValidationError("This competitor URL already exists in your project")

    competitor = Competitor(project_id=project_id, url=url,
                            name=name or competitor_name_from_url(url), status="pending")
    db.add(competitor)
    db.commit()
    logging.info(f"[project_id={project_id}] Added competitor {competitor.url}")
    return competitor


def delete_competitor(db, user_id: str, project_id: str, competitor_id: str):
    get_owned_project(db, user_id, project_id)
    competitor = db.get(Competitor, competitor_id)
    if competitor is None or competitor.project_id != project_id:
        raise NotFound("Competitor not found")
    db.delete(competitor)
    db.commit()


def competitor_to_dict(competitor: Competitor) -> dict:
    return {
        "id": competitor.id,
        "project_id": competitor.project_id,
        "url": competitor.url,
        "name": competitor.name,
        "status": competitor.status,
        "created_at": str(competitor.created_at),
    }
