from datetime import timedelta

from engine.models import Subscription, UsageEvent, UsageLimit
from engine.usage import (
    check_feature_access,
    get_audit_limits,
    get_limits_table,
    get_monthly_limit,
    get_user_tier,
    record_usage,
)
from settings import settings
from utils.date_utils import start_of_month, utcnow


def test_unlimited_tier_always_allowed(db, make_user, make_project, make_audit):
    make_user("ent", tier="enterprise")
    project = make_project(user_id="ent")
    for _ in range(25):
        make_audit(project)
    check = check_feature_access(db, "ent", "audits", requested=1000)
    assert check.allowed
    assert check.limit == -1


def test_limited_tier_allows_until_limit(db, make_user):
    make_user("pro-user", tier="pro")
    for _ in range(19):
        record_usage(db, "pro-user", "reports")

    assert check_feature_access(db, "pro-user", "reports", requested=1).allowed
    denied = check_feature_access(db, "pro-user", "reports", requested=2)
    assert not denied.allowed
    assert denied.used == 19
    assert denied.remaining == 1


def test_usage_from_previous_month_is_ignored(db, make_user):
    make_user("u", tier="free")
    last_month = start_of_month(utcnow()) - timedelta(days=1)
    for _ in range(3):
        db.add(UsageEvent(user_id="u", feature_name="reports", created_at=last_month))
    db.commit()
    assert check_feature_access(db, "u", "reports").allowed


def test_audit_count_uses_audits_table(db, make_user, make_project, make_audit):
    make_user("u", tier="free")
    project = make_project(user_id="u")
    for _ in range(10):
        make_audit(project)
    limits = get_audit_limits(db, "u")
    assert limits.is_limited
    assert limits.used == 10
    assert limits.remaining == 0
    assert not check_feature_access(db, "u", "audits").allowed


def test_unlimited_audit_limits(db, make_user):
    make_user("ent", tier="enterprise")
    limits = get_audit_limits(db, "ent")
    assert not limits.is_limited
    assert limits.remaining == -1


def test_tier_falls_back_to_legacy_table_then_free(db):
    db.add(Subscription(user_id="legacy", plan="PRO"))
    db.commit()
    assert get_user_tier(db, "legacy") == "pro"
    assert get_user_tier(db, "nobody") == "free"


def test_missing_limit_row_uses_free_tier_then_setting(db, monkeypatch):
    assert get_monthly_limit(db, "business", "reports") == 3
    assert get_monthly_limit(db, "free", "unknown_feature") == 0
    monkeypatch.setattr(settings.usage, "missing_limit", -1)
    assert get_monthly_limit(db, "free", "unknown_feature") == -1


def test_missing_limit_blocks_by_default(db, make_user):
    make_user("u")
    check = check_feature_access(db, "u", "unknown_feature")
    assert not check.allowed


def test_limits_table(db):
    db.add(UsageLimit(plan_type="pro", feature_name="lead_searches", monthly_limit=-1))
    db.commit()
    table = get_limits_table(db)
    assert table["free"]["audits"] == 10
    assert table["enterprise"]["ai_content"] == "Unlimited"
    assert table["pro"]["lead_searches"] == "Unlimited"
