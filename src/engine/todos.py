"""
Todo items per project, created by hand, from an audit's recommendations, or
from AI todo suggestions.
"""
import logging

from sqlalchemy import or_

from engine import states
from engine.audit_dispatcher import get_owned_project
from engine.errors import NotFound, ValidationError
from engine.models import Audit, Todo
from utils.date_utils import utcnow

TODO_STATUSES = ("pending", "in_progress", "completed")
PRIORITIES = ("low", "medium", "high")
IMPACT_PRIORITY = {
    "critical": "high",
    "high": "high",
    "medium": "medium",
    "low": "low",
    "minor": "low",
}


def priority_from_impact(impact) -> str:
    return IMPACT_PRIORITY.get(str(impact or "").lower(), "medium")


def _check(priority=None, status=None):
    if priority is not None and priority not in PRIORITIES:
        raise ValidationError(f"priority must be one of: {', '.join(PRIORITIES)}")
    if status is not None and status not in TODO_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(TODO_STATUSES)}")


def _owned_audit_of_project(db, audit_id: str, project_id: str) -> Audit:
    audit = db.get(Audit, audit_id)
    if audit is None or audit.project_id != project_id:
        raise NotFound("Audit not found or access denied")
    return audit


def list_todos(db, user_id: str, project_id: str = None, search: str = None) -> list:
    query = db.query(Todo).filter(Todo.user_id == user_id)
    if project_id:
        query = query.filter(Todo.project_id == project_id)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Todo.title.ilike(pattern), Todo.description.ilike(pattern)))
    return query.order_by(Todo.created_at.desc()).all()


def create_todo(db, user_id: str, project_id: str, title: str, description: str = None,
                priority: str = "medium", status: str = "pending", audit_id: str = None) -> Todo:
    get_owned_project(db, user_id, project_id)
    if not (title or "").strip():
        raise ValidationError("title is required")
    priority = priority or "medium"
    status = status or "pending"
    _check(priority, status)
    if audit_id:
        _owned_audit_of_project(db, audit_id, project_id)

    todo = Todo(user_id=user_id, project_id=project_id, audit_id=audit_id, title=title.strip(),
                description=description or "", priority=priority, status=status)
    db.add(todo)
    db.commit()
    logging.info(f"[project_id={project_id}] Added todo {todo.id}")
    return todo


def get_todo(db, user_id: str, todo_id: str) -> Todo:
    todo = db.get(Todo, todo_id)
    if todo is None or todo.user_id != user_id:
        raise NotFound("Todo not found or access denied")
    return todo


def update_todo(db, user_id: str, todo_id: str, title: str = None, description: str = None,
                priority: str = None, status: str = None) -> Todo:
    todo = get_todo(db, user_id, todo_id)
    _check(priority, status)
    if title is not None:
        if not title.strip():
            raise ValidationError("title is required")
        todo.title = title.strip()
    if description is not None:
        todo.description = description
    if priority is not None:
        todo.priority = priority
    if status is not None:
        todo.status = status
    todo.updated_at = utcnow()
    db.commit()
    return todo


def delete_todo(db, user_id: str, todo_id: str):
    todo = get_todo(db, user_id, todo_id)
    db.delete(todo)
    db.commit()


def generate_todos_from_audit(db, user_id: str, audit_id: str, project_id: str) -> int:
    """
    One todo per actionable recommendation in a completed audit's report.
    """
    get_owned_project(db, user_id, project_id)
    audit = _owned_audit_of_project(db, audit_id, project_id)
    if audit.status != states.COMPLETED:
        raise ValidationError("Can only generate todos from completed audits")

    recommendations = (audit.report or {}).get("recommendations") if isinstance(audit.report, dict) else None
    if not recommendations:
        raise NotFound("No recommendations found")

    todos = []
    for rec in recommendations:
        if not isinstance(rec, dict) or not rec.get("action_required"):
            continue
        description = rec.get("description") or ""
        todos.append(Todo(
            user_id=user_id,
            project_id=project_id,
            audit_id=audit_id,
            title=rec.get("title") or f"Fix issue: {description[:50]}...",
            description=f"{description}\n\nCategory: {rec.get('category')}\nImpact: {rec.get('impact') or 'Medium'}",
            priority=priority_from_impact(rec.get("impact")),
            status="pending",
        ))
    db.add_all(todos)
    db.commit()
    logging.info(f"[audit_id={audit_id}] Generated {len(todos)} todos from audit")
    return len(todos)


def todo_to_dict(todo: Todo) -> dict:
    return {
        "id": todo.id,
        "user_id": todo.user_id,
        "project_id": todo.project_id,
        "audit_id": todo.audit_id,
        "title": todo.title,
        "description": todo.description,
        "priority": todo.priority,
        "status": todo.status,
        "created_at": str(todo.created_at),
        "updated_at": str(todo.updated_at) if todo.updated_at else None,
    }
