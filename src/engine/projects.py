"""
Project CRUD. A project's crawl settings drive the scheduler and its keyword
list drives the weekly rank tracker.
"""
import logging
from urllib.parse import urlparse

from engine.audit_dispatcher import get_owned_project
from engine.errors import LimitExceeded, ValidationError
from engine.models import Project
from engine.scheduler import FREQUENCY_WINDOWS
from engine.usage import check_feature_access, get_user_tier
from utils.date_utils import utcnow

PROJECT_STATUSES = ("active", "paused", "archived")
MAX_CRAWL_DEPTH = 10
UPDATABLE_FIELDS = ("name", "url", "crawl_frequency", "crawl_depth", "status", "keywords")


def _validate(fields: dict) -> dict:
    cleaned = {}
    for key, value in fields.items():
        if value is None:
            continue
        if key == "url":
            value = value.strip()
            parsed = urlparse(value if "://" in value else f"https://{value}")
            if parsed.scheme not in ("http", "https") or not parsed.netloc or "." not in parsed.netloc:
                raise ValidationError("Please enter a valid URL")
            value = parsed.geturl()
        elif key == "name":
            value = value.strip()
            if not value:
                raise ValidationError("Project name is required")
        elif key == "crawl_frequency":
            value = value.lower()
            if value not in FREQUENCY_WINDOWS:
                raise ValidationError(f"crawl_frequency must be one of: {', '.join(FREQUENCY_WINDOWS)}")
        elif key == "crawl_depth":
            if not 1 <= value <= MAX_CRAWL_DEPTH:
                raise ValidationError(f"crawl_depth must be between 1 and {MAX_CRAWL_DEPTH}")
        elif key == "status":
            if value not in PROJECT_STATUSES:
                raise ValidationError(f"status must be one of: {', '.join(PROJECT_STATUSES)}")
        elif key == "keywords":
            # de-duplicated, order kept
            value = list(dict.fromkeys(k.strip() for k in value if k and k.strip()))
        cleaned[key] = value
    return cleaned


def list_projects(db, user_id: str) -> list:
    return (db.query(Project)
            .filter(Project.user_id == user_id)
            .order_by(Project.updated_at.desc())
            .all())


def create_project(db, user_id: str, name: str, url: str, crawl_frequency: str = "monthly",
                   crawl_depth: int = 3, keywords: list = None) -> Project:
    fields = _validate({"name": name, "url": url, "crawl_frequency": crawl_frequency or "monthly",
                        "crawl_depth": crawl_depth or 3, "keywords": keywords or []})

    access = check_feature_access(db, user_id, "max_projects")
    if not access.allowed:
        logging.warning(f"[user_id={user_id}] Project limit reached: {access.used}/{access.limit}")
        raise LimitExceeded(
            f"You have reached your plan's limit of {access.limit} projects. "
            f"Please upgrade or contact support to add more."
        )

    project = Project(user_id=user_id, status="active", subscription_tier=get_user_tier(db, user_id), **fields)
    db.add(project)
    db.commit()
    logging.info(f"[project_id={project.id}] Created project for user {user_id}: {project.url}")
    return project


def get_project(db, user_id: str, project_id: str) -> Project:
    return get_owned_project(db, user_id, project_id)


def update_project(db, user_id: str, project_id: str, changes: dict) -> Project:
    project = get_owned_project(db, user_id, project_id)
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown project fields: {', '.join(sorted(unknown))}")
    for key, value in _validate(changes).items():
        setattr(project, key, value)
    project.updated_at = utcnow()
    db.commit()
    logging.info(f"[project_id={project.id}] Updated fields: {sorted(changes)}")
    return project


def delete_project(db, user_id: str, project_id: str):
    project = get_owned_project(db, user_id, project_id)
    db.delete(project)
    db.commit()
    logging.info(f"[project_id={project_id}] Deleted project.")


def project_to_dict(project: Project) -> dict:
    return {
        "id": project.id,
        "user_id": project.user_id,
        "name": project.name,
        "url": project.url,
        "crawl_frequency": project.crawl_frequency,
        "crawl_depth": project.crawl_depth,
        "status": project.status,
        "subscription_tier": project.subscription_tier,
        "keywords": project.keywords or [],
        "created_at": str(project.created_at),
        "updated_at": str(project.updated_at) if project.updated_at else None,
    }
