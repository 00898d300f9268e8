from datetime import timedelta

import pytest

from engine.errors import (
    AuthenticationRequired,
    ForeignKeyViolation,
    InvalidTransition,
    LimitExceeded,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from engine.models import Notification
from engine.pdf_jobs import JOB_TTL, PdfJobManager, job_to_dict
from engine.pdf_service import PdfService
from engine.usage import record_usage

PARAMETERS = {
    "clientInfo": {"name": "Acme", "email": "seo@acme.test"},
    "customColors": {"primary": "#ff0000"},
    "includeSections": ["overview", "performance"],
}


@pytest.fixture
def audit(make_user, make_project, make_audit):
    make_user("user-1")
    project = make_project(user_id="user-1")
    return make_audit(project, report={"score": 88, "issues": []}, score=88)


@pytest.fixture
def jobs(db):
    return PdfJobManager(db)


def test_create_and_get_round_trip(jobs, audit):
    job_id = jobs.create("user-1", audit.id, PARAMETERS)
    job = jobs.get(job_id, "user-1")

    assert job.status == "pending"
    assert job.progress == 0
    assert job.parameters == PARAMETERS
    assert job.expires_at - job.created_at == JOB_TTL
    assert job_to_dict(job)["expired"] is False


def test_create_requires_user(jobs, audit):
    with pytest.raises(AuthenticationRequired):
        jobs.create(None, audit.id, {})


def test_create_requires_existing_audit(jobs, audit):
    with pytest.raises(ForeignKeyViolation):
        jobs.create("user-1", "missing-audit", {})


def test_create_requires_audit_owner(jobs, audit):
    with pytest.raises(PermissionDenied):
        jobs.create("someone-else", audit.id, {})


def test_get_hides_other_users_jobs(jobs, audit):
    job_id = jobs.create("user-1", audit.id, {})
    with pytest.raises(NotFound):
        jobs.get(job_id, "someone-else")
    with pytest.raises(NotFound):
        jobs.get("missing-job")


def test_processing_to_failed_is_accepted(db, jobs, audit):
    job_id = jobs.create("user-1", audit.id, {})
    jobs.update_status(job_id, "processing", progress=40)
    job = jobs.update_status(job_id, "failed", progress=10, error_message="renderer crashed")

    assert job.status == "failed"
    assert job.error_message == "renderer crashed"
    assert job.progress == 40
    note = db.query(Notification).filter(Notification.user_id == "user-1").one()
    assert note.title == "PDF report failed"
    assert "renderer crashed" in note.message


def test_completed_sets_full_progress_and_notifies(db, jobs, audit):
    job_id = jobs.create("user-1", audit.id, {})
    jobs.update_status(job_id, "processing", progress=50)
    job = jobs.update_status(job_id, "completed")

    assert job.progress == 100
    assert db.query(Notification).filter(Notification.title == "PDF report ready").count() == 1


def test_terminal_jobs_cannot_revert(jobs, audit):
    job_id = jobs.create("user-1", audit.id, {})
    jobs.update_status(job_id, "completed")
    for status in ("processing", "pending", "failed", "completed"):
        with pytest.raises(InvalidTransition):
            jobs.update_status(job_id, status)
    assert jobs.get(job_id).status == "completed"


def test_progress_cannot_decrease(jobs, audit):
    job_id = jobs.create("user-1", audit.id, {})
    jobs.update_status(job_id, "processing", progress=60)
    with pytest.raises(InvalidTransition):
        jobs.update_status(job_id, "processing", progress=30)
    assert jobs.update_status(job_id, "processing", progress=75).progress == 75


def test_progress_out_of_range(jobs, audit):
    job_id = jobs.create("user-1", audit.id, {})
    with pytest.raises(ValidationError):
        jobs.update_status(job_id, "processing", progress=150)


def test_unknown_status_is_rejected(jobs, audit):
    job_id = jobs.create("user-1", audit.id, {})
    with pytest.raises(ValidationError):
        jobs.update_status(job_id, "archived")


def test_update_content_merges(jobs, audit):
    job_id = jobs.create("user-1", audit.id, {})
    jobs.update_content(job_id, {"executiveSummary": "Good"})
    job = jobs.update_content(job_id, {"recommendations": ["Fix titles"]})

    assert job.content["executiveSummary"] == "Good"
    assert job.content["recommendations"] == ["Fix titles"]
    assert "generatedAt" in job.content


def test_update_content_rejected_for_failed_job(jobs, audit):
    job_id = jobs.create("user-1", audit.id, {})
    jobs.update_status(job_id, "failed", error_message="boom")
    with pytest.raises(InvalidTransition):
        jobs.update_content(job_id, {"executiveSummary": "late"})


def test_list_and_delete(jobs, audit):
    first = jobs.create("user-1", audit.id, {})
    jobs.create("user-1", audit.id, {})
    assert len(jobs.list_by_audit(audit.id, "user-1")) == 2
    assert jobs.list_by_audit(audit.id, "someone-else") == []

    jobs.delete(first, "user-1")
    assert len(jobs.list_by_audit(audit.id)) == 1


def test_is_expired(jobs, audit):
    job = jobs.get(jobs.create("user-1", audit.id, {}))
    assert not PdfJobManager.is_expired(job)
    assert PdfJobManager.is_expired(job, now=job.created_at + JOB_TTL + timedelta(seconds=1))


def test_pdf_service_builds_payload_defaults(db, crawler, audit):
    service = PdfService(db, crawler)
    service.generate("user-1", audit.project_id, "modern", {"clientName": "Acme"})

    payload, user_id = crawler.pdf_requests[0]
    assert user_id == "user-1"
    assert payload["auditData"] == {"score": 88, "issues": []}
    assert payload["clientDetails"] == {"name": "Acme", "preparedBy": "LilySEO"}
    assert payload["primaryColor"] == "#000000"
    assert payload["coverStyle"] == 1
    assert payload["generateAiContent"] is True
    assert payload["templateId"] == "modern"


def test_pdf_service_requires_report(db, crawler, make_user, make_project):
    make_user("user-1")
    project = make_project(user_id="user-1")
    with pytest.raises(NotFound):
        PdfService(db, crawler).generate("user-1", project.id, "modern", {})
    assert crawler.pdf_requests == []


def test_pdf_service_checks_report_quota(db, crawler, audit):
    for _ in range(3):
        record_usage(db, "user-1", "reports")
    with pytest.raises(LimitExceeded):
        PdfService(db, crawler).generate("user-1", audit.project_id, "modern", {})
    assert crawler.pdf_requests == []
