from .base import ExternalServiceAdapter
import logging

import requests

from settings import settings


class CrawlerAdapter(ExternalServiceAdapter):
    """Client for the crawler service that runs audits and renders PDFs."""
    name = "Crawler service"

    def __init__(self, base_url: str = None, pdf_api_key: str = None, timeout: float = None, session=None):
        super().__init__(timeout=timeout or settings.crawler.timeout, session=session)
        self.base_url = (base_url or settings.crawler.base_url).rstrip("/")
        self.pdf_api_key = settings.auth.pdf_api_key if pdf_api_key is None else pdf_api_key

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def health(self) -> bool:
        try:
            response = self.session.get(self.url("/health"), timeout=5)
            return response.ok
        except requests.RequestException as e:
            logging.error(f"Error checking crawler service health: {e}")
            return False

    def start_audit(self, project_id: str, url: str, audit_id: str, options: dict = None) -> requests.Response:
        """Forward an audit request; the caller interprets the response."""
        return self._request("POST", self.url("/api/audit/start"), json={
            "projectId": project_id,
            "url": url,
            "auditId": audit_id,
            "options": options or {},
        })

    def get_audit_status(self, audit_id: str) -> dict:
        response = self._request("GET", self.url(f"/api/audit/status/{audit_id}"))
        return self._json_or_raise(response, "get audit status")

    def _pdf_headers(self, user_id: str) -> dict:
        return {"x-api-key": self.pdf_api_key or "", "x-user-id": user_id}

    def generate_pdf(self, payload: dict, user_id: str) -> dict:
        response = self._request("POST", self.url("/api/pdf/generate"), json=payload, headers=self._pdf_headers(user_id))
        return self._json_or_raise(response, "generate PDF")

    def get_pdf_status(self, job_id: str, user_id: str) -> dict:
        response = self._request("GET", self.url(f"/api/pdf/status/{job_id}"), headers=self._pdf_headers(user_id))
        return self._json_or_raise(response, "check PDF status")
