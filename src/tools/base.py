# src/tools/base.py
from abc import ABC, abstractmethod
import logging

import requests

from engine.errors import UpstreamError


class ExternalServiceAdapter(ABC):
    """HTTP adapter for a service this backend delegates work to."""
    name = "external service"

    def __init__(self, timeout: float = 30, session: requests.Session = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    @abstractmethod
    def health(self) -> bool:
        pass

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        try:
            return self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            logging.error(f"{self.name} request failed: {method} {url}: {e}")
            raise UpstreamError(f"{self.name} unreachable: {e}")

    def _json_or_raise(self, response: requests.Response, action: str):
        if not response.ok:
            body = error_body(response)
            message = body.get("error") or body.get("message") or response.reason or "request failed"
            raise UpstreamError(f"{self.name} failed to {action}: {message}", response.status_code, body)
        try:
            return response.json()
        except ValueError:
            raise UpstreamError(f"{self.name} returned invalid JSON while trying to {action}")


def error_body(response: requests.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {"error": response.text} if response.text else {}
    return body if isinstance(body, dict) else {"error": body}
