import pytest

from conftest import FakeAI
from engine.ai_content import (
    AIContentService,
    extract_json_array,
    fallback_keywords,
    normalize_todo,
    normalize_url,
    parse_keywords,
    parse_lines,
)
from engine.errors import LimitExceeded, ValidationError
from engine.models import UsageEvent


def test_normalize_url():
    assert normalize_url("example.com") == "https://example.com"
    assert normalize_url(" http://example.com ") == "http://example.com"
    with pytest.raises(ValidationError):
        normalize_url("  ")


def test_extract_json_array():
    assert extract_json_array('Sure! ["a", "b"] hope that helps') == ["a", "b"]
    assert extract_json_array("no array here") is None
    assert extract_json_array("[not json]") is None


def test_parse_keywords_from_json_and_lines():
    assert parse_keywords('["seo audit", "site speed"]', "https://example.com") == ["seo audit", "site speed"]
    assert parse_keywords("1. seo audit\n2. site speed\nHere are your keywords", "https://example.com") == [
        "seo audit", "site speed",
    ]


def test_parse_keywords_falls_back():
    keywords = parse_keywords("", "https://www.example.com", "bakery")
    assert keywords == fallback_keywords("https://www.example.com", "bakery")
    assert len(keywords) == 10
    assert keywords[0] == "example.com"
    assert "bakery near me" in keywords


def test_parse_lines():
    assert parse_lines("- Fix titles\n- Compress images\n\n") == ["Fix titles", "Compress images"]


def test_normalize_todo():
    assert normalize_todo({"task": "Fix titles", "priority": "HIGH"}) == {
        "title": "Fix titles", "description": "", "priority": "high",
    }
    assert normalize_todo({"title": "x", "priority": "urgent"})["priority"] == "medium"
    assert normalize_todo("Compress images") == {"title": "Compress images", "description": "", "priority": "medium"}


def test_keyword_suggestions_records_usage(db, make_user):
    make_user("user-1")
    ai = FakeAI(content='["seo audit", "site speed"]', tokens=120)

    result = AIContentService(db, ai).keyword_suggestions("user-1", "example.com", industry="software")

    assert result == {"keywords": ["seo audit", "site speed"], "count": 2}
    assert "https://example.com" in ai.messages[0][-1]["content"]
    event = db.query(UsageEvent).one()
    assert event.feature_name == "ai_keywords"
    assert event.tokens_used == 120


def test_ai_quota_is_enforced(db, make_user):
    make_user("user-1")
    ai = FakeAI(content="Draft")
    service = AIContentService(db, ai)
    for _ in range(5):
        service.generate_content("user-1", "Local SEO")
    with pytest.raises(LimitExceeded):
        service.generate_content("user-1", "Local SEO")
    assert len(ai.messages) == 5


def test_todo_recommendations(db, make_user, make_project, make_audit):
    make_user("user-1")
    audit = make_audit(make_project(user_id="user-1"), report={"issues": ["missing titles"]}, score=61)
    ai = FakeAI(content='[{"title": "Add titles", "description": "Every page", "priority": "high"}, "Check links"]')

    result = AIContentService(db, ai).todo_recommendations("user-1", audit)

    assert result["todos"] == [
        {"title": "Add titles", "description": "Every page", "priority": "high"},
        {"title": "Check links", "description": "", "priority": "medium"},
    ]
    assert "missing titles" in ai.messages[0][-1]["content"]
