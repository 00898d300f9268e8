import json
from datetime import datetime, timedelta, timezone

import jwt
import pytest
import requests
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api import dependencies
from engine.db import get_db, seed_usage_limits
from engine.models import Audit, Base, Profile, Project
from main import app
from settings import settings
from utils.date_utils import utcnow

JWT_SECRET = "test-jwt-secret"
CRON_SECRET = "test-cron-secret"
SCHEDULER_KEY = "test-scheduler-key"
WORKER_KEY = "test-worker-key"


def make_response(status_code=200, body=None, reason=None):
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason or ("OK" if status_code < 400 else "Error")
    response._content = json.dumps(body if body is not None else {}).encode()
    return response


class FakeCrawler:
    base_url = "http://crawler.test"

    def __init__(self):
        self.started = []
        self.pdf_requests = []
        self.responses = {}  # project_id -> requests.Response or Exception
        self.available = True
        self.audit_statuses = {}  # audit_id -> status payload

    def health(self):
        return self.available

    def start_audit(self, project_id, url, audit_id, options=None):
        self.started.append({"project_id": project_id, "url": url, "audit_id": audit_id, "options": options})
        outcome = self.responses.get(project_id, make_response(200, {"status": "started"}))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def get_audit_status(self, audit_id):
        return self.audit_statuses.get(audit_id, {"status": "processing"})

    def generate_pdf(self, payload, user_id):
        self.pdf_requests.append((payload, user_id))
        return {"jobId": "remote-job", "status": "queued"}

    def get_pdf_status(self, job_id, user_id):
        return {"jobId": job_id, "status": "processing"}


class FakeSerper:
    search_engine = "google_us_en"

    def __init__(self, results=None):
        self.results = results or {}
        self.queries = []

    def lookup(self, keyword):
        self.queries.append(keyword)
        outcome = self.results.get(keyword, {"position": 1, "link": f"https://example.com/{keyword}"})
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeAI:
    def __init__(self, content="[]", tokens=42):
        self.content = content
        self.tokens = tokens
        self.messages = []

    def chat(self, messages, max_tokens=800):
        self.messages.append(messages)
        if isinstance(self.content, Exception):
            raise self.content
        return {"content": self.content, "total_tokens": self.tokens}


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    monkeypatch.setattr(settings.auth, "jwt_secret", JWT_SECRET)
    monkeypatch.setattr(settings.auth, "jwt_audience", "authenticated")
    monkeypatch.setattr(settings.auth, "cron_secret", CRON_SECRET)
    monkeypatch.setattr(settings.auth, "scheduler_api_key", SCHEDULER_KEY)
    monkeypatch.setattr(settings.auth, "pdf_api_key", WORKER_KEY)
    monkeypatch.setattr(settings.billing, "paypal_webhook_id", None)
    monkeypatch.setattr(settings.usage, "missing_limit", 0)


@pytest.fixture
def db():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    seed_usage_limits(session)
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def crawler():
    return FakeCrawler()


@pytest.fixture
def serper():
    return FakeSerper()


@pytest.fixture
def ai():
    return FakeAI()


@pytest.fixture
def client(db, crawler, serper, ai):
    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[dependencies.get_crawler] = lambda: crawler
    app.dependency_overrides[dependencies.get_serper] = lambda: serper
    app.dependency_overrides[dependencies.get_ai_client] = lambda: ai
    yield TestClient(app)
    app.dependency_overrides.clear()


def token_for(user_id, secret=JWT_SECRET, expires_in=3600):
    now = datetime.now(tz=timezone.utc)
    payload = {"sub": user_id, "aud": "authenticated", "iat": now, "exp": now + timedelta(seconds=expires_in)}
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def auth_headers():
    def _headers(user_id="user-1"):
        return {"Authorization": f"Bearer {token_for(user_id)}"}
    return _headers


@pytest.fixture
def make_user(db):
    def _make(user_id="user-1", tier="free", status="active"):
        profile = Profile(id=user_id, email=f"{user_id}@example.com", subscription_tier=tier,
                          subscription_status=status)
        db.add(profile)
        db.commit()
        return profile
    return _make


@pytest.fixture
def make_project(db):
    def _make(user_id="user-1", url="https://example.com", frequency="weekly", status="active",
              keywords=None, name="Example"):
        project = Project(user_id=user_id, url=url, name=name, crawl_frequency=frequency,
                          crawl_depth=3, status=status, keywords=keywords)
        db.add(project)
        db.commit()
        return project
    return _make


@pytest.fixture
def make_audit(db):
    def _make(project, status="completed", age=timedelta(0), report=None, score=None):
        created = utcnow() - age
        audit = Audit(project_id=project.id, user_id=project.user_id, url=project.url, status=status,
                      report=report, score=score, created_at=created,
                      completed_at=created if status == "completed" else None)
        db.add(audit)
        db.commit()
        return audit
    return _make
