# src/api/dependencies.py
"""
Request dependencies: authentication and the external service adapters.
"""
import hmac
import logging
from typing import Optional

import jwt
from fastapi import Header

from engine.errors import Unauthorized
from settings import settings
from tools.azure_openai_adapter import AzureOpenAIAdapter
from tools.crawler_adapter import CrawlerAdapter
from tools.serper_adapter import SerperAdapter


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[7:].strip() or None


def _same(value: Optional[str], expected: str) -> bool:
    return bool(expected) and value is not None and hmac.compare_digest(value, expected)


def verify_access_token(token: str) -> Optional[str]:
    """Return the user id (``sub``) of a valid access token, else None."""
    if not token or not settings.auth.jwt_secret:
        return None
    try:
        payload = jwt.decode(
            token,
            settings.auth.jwt_secret,
            algorithms=["HS256"],
            audience=settings.auth.jwt_audience or None,
        )
    except jwt.InvalidTokenError as e:
        logging.info(f"Rejected access token: {e}")
        return None
    return payload.get("sub") or None


def get_optional_user_id(authorization: Optional[str] = Header(None)) -> Optional[str]:
    token = _bearer(authorization)
    return verify_access_token(token) if token else None


def get_current_user_id(authorization: Optional[str] = Header(None)) -> str:
    user_id = get_optional_user_id(authorization)
    if not user_id:
        raise Unauthorized("Not authenticated")
    return user_id


def verify_scheduler_access(
    x_api_key: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
) -> str:
    """An x-api-key call must carry the scheduler key; otherwise a user session is required."""
    if x_api_key is not None:
        if not _same(x_api_key, settings.auth.scheduler_api_key):
            raise Unauthorized("Invalid API key")
        return "scheduler"
    return get_current_user_id(authorization)


def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    if not _same(_bearer(authorization), settings.auth.cron_secret):
        logging.warning("Unauthorized attempt to run keyword tracking cron job.")
        raise Unauthorized("Unauthorized")


def verify_worker_key(x_api_key: Optional[str] = Header(None)) -> None:
    """Crawler callbacks and PDF worker updates."""
    if not _same(x_api_key, settings.auth.pdf_api_key):
        raise Unauthorized("Invalid API key")


def get_crawler() -> CrawlerAdapter:
    return CrawlerAdapter()


def get_serper() -> SerperAdapter:
    return SerperAdapter()


def get_ai_client() -> AzureOpenAIAdapter:
    return AzureOpenAIAdapter()
