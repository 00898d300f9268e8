# src/api/routes.py
from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging

from api.dependencies import (
    get_ai_client,
    get_crawler,
    get_current_user_id,
    get_serper,
    verify_cron_secret,
    verify_scheduler_access,
    verify_worker_key,
)
from api.schemas import (
    AuditAIRequest,
    AuditBulkActionRequest,
    AuditCallback,
    AuditCreateRequest,
    CompetitorCreateRequest,
    ContentRequest,
    ErrorResult,
    KeywordSuggestionRequest,
    PdfGenerateRequest,
    PdfGenerationContent,
    PdfJobCreateRequest,
    PdfJobStatusUpdate,
    ProjectCreateRequest,
    ProjectUpdateRequest,
    TodoCreateRequest,
    TodoGenerateRequest,
    TodoUpdateRequest,
)
from engine import competitors as competitor_ops
from engine import notifications as notification_ops
from engine import projects as project_ops
from engine import todos as todo_ops
from engine.ai_content import AIContentService
from engine.audit_dispatcher import (
    apply_crawler_callback,
    audit_to_dict,
    bulk_audit_action,
    create_audit,
    delete_audit,
    get_owned_audit,
    get_owned_project,
    refresh_audit_status,
)
from engine.db import get_db
from engine.keyword_tracker import keyword_history, track_keywords
from engine.pdf_jobs import PdfJobManager, job_to_dict
from engine.pdf_service import PdfService
from engine.scheduler import verify_audits
from engine.subscriptions import process_webhook_event
from engine.usage import get_limits_table
from settings import settings

router = APIRouter(
    responses={
        400: {"model": ErrorResult, "description": "Invalid request"},
        401: {"model": ErrorResult, "description": "Not authenticated"},
        403: {"model": ErrorResult, "description": "Forbidden or plan limit reached"},
        404: {"model": ErrorResult, "description": "Not found"},
    },
)


@router.get("/health")
def health_check():
    return {"status": "ok"}


@router.get("/api/limits", tags=["Subscriptions"])
def get_limits(db: Session = Depends(get_db)):
    """
    Plan limits per feature; unlimited features are reported as "Unlimited".
    """
    return get_limits_table(db)


# --- Scheduling & cron -------------------------------------------------------

@router.get(
    "/api/scheduler/verify-audits",
    summary="Dispatch audits for projects that are due",
    response_description="Scheduled and failed audits",
    tags=["Scheduler"],
    response_model=dict,
    responses={
        200: {"description": "Verification completed"},
        401: {"description": "Invalid API key or not authenticated"},
        500: {"description": "Internal server error"}
    },
)
def scheduler_verify_audits(
    caller: str = Depends(verify_scheduler_access),
    db: Session = Depends(get_db),
    crawler=Depends(get_crawler),
):
    """
    Check every active project against its crawl frequency and start an audit
    for each one that is due. One project's failure does not stop the others.
    """
    logging.info(f"Scheduled audit verification requested by {caller}")
    return verify_audits(db, crawler)


@router.get(
    "/api/cron/track-keywords",
    summary="Record keyword rankings for all active projects",
    tags=["Scheduler"],
    response_model=dict,
    responses={
        200: {"description": "Tracking summary"},
        401: {"description": "Unauthorized"},
    },
)
def cron_track_keywords(
    _: None = Depends(verify_cron_secret),
    db: Session = Depends(get_db),
    serper=Depends(get_serper),
):
    logging.info("Starting weekly keyword tracking job...")
    return track_keywords(db, serper)


@router.get("/api/cron/daily", tags=["Scheduler"], response_model=dict)
def cron_daily(
    _: None = Depends(verify_cron_secret),
    db: Session = Depends(get_db),
    crawler=Depends(get_crawler),
):
    """
    Daily cron entry point; runs the scheduled audit verification.
    """
    logging.info("Starting daily cron job...")
    result = verify_audits(db, crawler)
    return {
        "success": True,
        "message": "Daily cron job completed successfully",
        "verifyAuditsResult": result,
    }


# --- Projects ----------------------------------------------------------------

@router.get("/api/projects", tags=["Projects"])
def list_projects(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return {"data": [project_ops.project_to_dict(p) for p in project_ops.list_projects(db, user_id)]}


@router.post(
    "/api/projects",
    summary="Create a project",
    tags=["Projects"],
    response_model=dict,
    responses={
        200: {"description": "Project created"},
        403: {"description": "Project limit reached"},
    },
)
def create_project(
    body: ProjectCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    project = project_ops.create_project(
        db, user_id, body.name, body.url,
        crawl_frequency=body.crawl_frequency,
        crawl_depth=body.crawl_depth,
        keywords=body.keywords,
    )
    return project_ops.project_to_dict(project)


@router.get("/api/projects/{project_id}", tags=["Projects"])
def get_project(project_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return project_ops.project_to_dict(project_ops.get_project(db, user_id, project_id))


@router.patch("/api/projects/{project_id}", tags=["Projects"])
def update_project(
    project_id: str,
    body: ProjectUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Settings change: only the fields present in the body are updated.
    """
    project = project_ops.update_project(db, user_id, project_id, body.model_dump(exclude_none=True))
    return project_ops.project_to_dict(project)


@router.delete("/api/projects/{project_id}", tags=["Projects"])
def delete_project(project_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    project_ops.delete_project(db, user_id, project_id)
    return {"success": True}


# --- Audits ------------------------------------------------------------------

@router.post(
    "/api/projects/{project_id}/audits",
    summary="Start an audit for a project",
    tags=["Audits"],
    response_model=dict,
    responses={
        200: {"description": "Audit created and dispatched"},
        403: {"description": "Monthly audit limit reached"},
        404: {"description": "Project not found"},
    },
)
def start_project_audit(
    project_id: str,
    body: Optional[AuditCreateRequest] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    crawler=Depends(get_crawler),
):
    audit, result = create_audit(db, crawler, user_id, project_id, body.options if body else None)
    return {"auditId": audit.id, "status": result.status, "error": result.error}


@router.get("/api/audits/{audit_id}", tags=["Audits"])
def get_audit(
    audit_id: str,
    refresh: bool = False,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    crawler=Depends(get_crawler),
):
    """
    Audit record. With ``refresh=true`` a running audit's status is pulled from
    the crawler first.
    """
    audit = get_owned_audit(db, user_id, audit_id)
    if refresh:
        audit = refresh_audit_status(db, crawler, audit)
    return audit_to_dict(audit)


@router.delete("/api/audits/{audit_id}", tags=["Audits"])
def remove_audit(audit_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    delete_audit(db, user_id, audit_id)
    return {"success": True}


@router.post("/api/audits/bulk-action", tags=["Audits"], response_model=dict)
def audits_bulk_action(
    body: AuditBulkActionRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    count = bulk_audit_action(db, user_id, body.auditIds, body.action)
    return {"success": True, "action": body.action, "count": count}


@router.post(
    "/api/audits/webhook",
    summary="Crawler status callback",
    tags=["Audits"],
    response_model=dict,
)
def audit_webhook(
    payload: AuditCallback,
    _: None = Depends(verify_worker_key),
    db: Session = Depends(get_db),
):
    audit = apply_crawler_callback(
        db,
        payload.audit_id,
        payload.project_id,
        payload.status,
        score=payload.score,
        report=payload.result,
        error_message=payload.error,
    )
    return {"success": True, "status": audit.status}


@router.get("/api/crawler/health", tags=["Audits"])
def crawler_health(crawler=Depends(get_crawler)):
    available = crawler.health()
    return {"available": available, "url": crawler.base_url}


@router.get("/api/projects/{project_id}/keywords/history", tags=["Keywords"])
def get_keyword_history(
    project_id: str,
    keyword: Optional[str] = None,
    limit: int = Query(500, ge=1, le=5000),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    get_owned_project(db, user_id, project_id)
    return keyword_history(db, project_id, keyword=keyword, limit=limit)


# --- PDF jobs ----------------------------------------------------------------

@router.post(
    "/api/pdf/job",
    summary="Create a PDF generation job",
    response_description="Job ID",
    tags=["PDF Jobs"],
    response_model=dict,
    responses={
        200: {"description": "Job created"},
        401: {"description": "Authentication required"},
        403: {"description": "Permission denied for the audit"},
        404: {"description": "Audit not found"},
    },
)
def create_pdf_job(
    body: PdfJobCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    parameters = body.parameters.model_dump(exclude_none=True)
    job_id = PdfJobManager(db).create(user_id, body.auditId, parameters)
    return {"jobId": job_id}


@router.get("/api/pdf/job", tags=["PDF Jobs"])
def list_pdf_jobs(
    auditId: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    PDF generation jobs of an audit, newest first.
    """
    return [job_to_dict(job) for job in PdfJobManager(db).list_by_audit(auditId, user_id)]


@router.get(
    "/api/pdf/job/{job_id}",
    summary="Get PDF generation job status",
    tags=["PDF Jobs"],
    response_model=dict,
    responses={
        200: {"description": "Job record"},
        404: {"description": "Job not found"},
    },
)
def get_pdf_job(job_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return job_to_dict(PdfJobManager(db).get(job_id, user_id))


@router.delete("/api/pdf/job/{job_id}", tags=["PDF Jobs"])
def delete_pdf_job(job_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    PdfJobManager(db).delete(job_id, user_id)
    return {"success": True}


@router.patch("/api/pdf/job/{job_id}/status", tags=["PDF Jobs"])
def update_pdf_job_status(
    job_id: str,
    body: PdfJobStatusUpdate,
    _: None = Depends(verify_worker_key),
    db: Session = Depends(get_db),
):
    """
    Called by the PDF worker as the job progresses.
    """
    job = PdfJobManager(db).update_status(job_id, body.status, body.progress, body.errorMessage)
    return job_to_dict(job)


@router.patch("/api/pdf/job/{job_id}/content", tags=["PDF Jobs"])
def update_pdf_job_content(
    job_id: str,
    body: PdfGenerationContent,
    _: None = Depends(verify_worker_key),
    db: Session = Depends(get_db),
):
    job = PdfJobManager(db).update_content(job_id, body.model_dump(exclude_none=True))
    return job_to_dict(job)


@router.post(
    "/api/pdf/generate",
    summary="Forward a PDF generation request to the crawler service",
    tags=["PDF Jobs"],
    response_model=dict,
    responses={
        200: {"description": "Crawler accepted the request"},
        404: {"description": "Project or report not found"},
        502: {"description": "Crawler service error"},
    },
)
def generate_pdf(
    body: PdfGenerateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    crawler=Depends(get_crawler),
):
    theme = body.theme.model_dump(exclude_none=True)
    return PdfService(db, crawler).generate(user_id, body.projectId, body.templateId, theme)


@router.get("/api/pdf/status/{job_id}", tags=["PDF Jobs"])
def pdf_status(
    job_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    crawler=Depends(get_crawler),
):
    return PdfService(db, crawler).status(user_id, job_id)


# --- Competitors -------------------------------------------------------------

@router.get("/api/projects/{project_id}/competitors", tags=["Competitors"])
def list_competitors(project_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return [competitor_ops.competitor_to_dict(c) for c in competitor_ops.list_competitors(db, user_id, project_id)]


@router.post(
    "/api/projects/{project_id}/competitors",
    summary="Add a competitor to a project",
    tags=["Competitors"],
    response_model=dict,
    responses={
        200: {"description": "Competitor added"},
        400: {"description": "Invalid or duplicate URL"},
        403: {"description": "Competitor limit reached"},
        404: {"description": "Project not found"},
    },
)
def add_competitor(
    project_id: str,
    body: CompetitorCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    competitor = competitor_ops.add_competitor(db, user_id, project_id, body.url, body.name)
    return competitor_ops.competitor_to_dict(competitor)


@router.delete("/api/projects/{project_id}/competitors/{competitor_id}", tags=["Competitors"])
def delete_competitor(
    project_id: str,
    competitor_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    competitor_ops.delete_competitor(db, user_id, project_id, competitor_id)
    return {"success": True}


# --- Subscriptions -----------------------------------------------------------

@router.post("/api/subscriptions/webhook", tags=["Subscriptions"])
def subscriptions_webhook(event: Optional[dict] = Body(None), db: Session = Depends(get_db)):
    """
    PayPal webhook receiver.
    """
    return process_webhook_event(db, event, settings.billing.paypal_webhook_id)


# --- AI ----------------------------------------------------------------------

@router.post("/api/ai/keyword-suggestions", tags=["AI"])
def ai_keyword_suggestions(
    body: KeywordSuggestionRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    client=Depends(get_ai_client),
):
    return AIContentService(db, client).keyword_suggestions(user_id, body.url, body.industry, body.projectName)


@router.post("/api/ai/generate-content", tags=["AI"])
def ai_generate_content(
    body: ContentRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    client=Depends(get_ai_client),
):
    return AIContentService(db, client).generate_content(user_id, body.topic, body.contentType, body.keywords, body.tone)


@router.post("/api/ai/recommendations", tags=["AI"])
def ai_recommendations(
    body: AuditAIRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    client=Depends(get_ai_client),
):
    audit = get_owned_audit(db, user_id, body.auditId)
    return AIContentService(db, client).recommendations(user_id, audit)


@router.post("/api/ai/todo-recommendations", tags=["AI"])
def ai_todo_recommendations(
    body: AuditAIRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    client=Depends(get_ai_client),
):
    audit = get_owned_audit(db, user_id, body.auditId)
    return AIContentService(db, client).todo_recommendations(user_id, audit)


# --- Todos -------------------------------------------------------------------

@router.get("/api/todos", tags=["Todos"])
def list_todos(
    projectId: Optional[str] = None,
    search: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return [todo_ops.todo_to_dict(t) for t in todo_ops.list_todos(db, user_id, projectId, search)]


@router.post("/api/todos", tags=["Todos"])
def create_todo(body: TodoCreateRequest, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    todo = todo_ops.create_todo(db, user_id, body.projectId, body.title, body.description,
                                body.priority, body.status, body.auditId)
    return {"todo": todo_ops.todo_to_dict(todo)}


@router.post(
    "/api/todos/generate",
    summary="Create todos from a completed audit's recommendations",
    tags=["Todos"],
    response_model=dict,
)
def generate_todos(body: TodoGenerateRequest, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    count = todo_ops.generate_todos_from_audit(db, user_id, body.auditId, body.projectId)
    return {"success": True, "count": count, "message": f"Generated {count} todos from audit"}


@router.get("/api/todos/{todo_id}", tags=["Todos"])
def get_todo(todo_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return todo_ops.todo_to_dict(todo_ops.get_todo(db, user_id, todo_id))


@router.patch("/api/todos/{todo_id}", tags=["Todos"])
def update_todo(
    todo_id: str,
    body: TodoUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    todo = todo_ops.update_todo(db, user_id, todo_id, body.title, body.description, body.priority, body.status)
    return todo_ops.todo_to_dict(todo)


@router.delete("/api/todos/{todo_id}", tags=["Todos"])
def delete_todo(todo_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    todo_ops.delete_todo(db, user_id, todo_id)
    return {"success": True}


# --- Notifications -----------------------------------------------------------

@router.get("/api/notifications", tags=["Notifications"])
def list_notifications(
    unread: bool = False,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    notifications = notification_ops.list_notifications(db, user_id, unread_only=unread)
    return [notification_ops.notification_to_dict(n) for n in notifications]


@router.patch("/api/notifications/{notification_id}/read", tags=["Notifications"])
def mark_notification_read(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return notification_ops.notification_to_dict(notification_ops.mark_read(db, user_id, notification_id))
