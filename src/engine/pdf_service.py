# src/engine/pdf_service.py
"""
PdfService: builds the crawler's PDF payload from the latest completed audit
of a project and forwards generate/status calls.
"""
import logging

from engine import states
from engine.audit_dispatcher import get_owned_project
from engine.errors import LimitExceeded, NotFound
from engine.models import Audit
from engine.usage import check_feature_access, record_usage


class PdfService:
    def __init__(self, db, crawler):
        self.db = db
        self.crawler = crawler

    def latest_report(self, project_id: str) -> dict:
        audit = (
            self.db.query(Audit)
            .filter(Audit.project_id == project_id, Audit.status == states.COMPLETED)
            .order_by(Audit.completed_at.desc(), Audit.created_at.desc())
            .first()
        )
        if audit is None or not audit.report:
            raise NotFound(f"No report data found for project {project_id}")
        return audit.report

    def build_payload(self, audit_data: dict, theme: dict, template_id: str) -> dict:
        return {
            "auditData": audit_data,
            "clientDetails": {
                "name": theme.get("clientName") or "Client",
                "preparedBy": theme.get("preparedBy") or "LilySEO",
            },
            "customNotes": theme.get("customNotes"),
            "logoUrl": theme.get("logoUrl"),
            "primaryColor": theme.get("primaryColor") or "#000000",
            "coverStyle": theme.get("coverStyle") or 1,
            "generateAiContent": True,
            "templateId": template_id,
        }

    def generate(self, user_id: str, project_id: str, template_id: str, theme: dict) -> dict:
        get_owned_project(self.db, user_id, project_id)
        access = check_feature_access(self.db, user_id, "reports")
        if not access.allowed:
            raise LimitExceeded(access.message)

        payload = self.build_payload(self.latest_report(project_id), theme or {}, template_id)
        logging.info(f"[project_id={project_id}] Forwarding PDF generation to crawler. "
                     f"client={payload['clientDetails']['name']} template={template_id}")
        result = self.crawler.generate_pdf(payload, user_id)
        record_usage(self.db, user_id, "reports")
        return result

    def status(self, user_id: str, job_id: str) -> dict:
        return self.crawler.get_pdf_status(job_id, user_id)
