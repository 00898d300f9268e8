# src/engine/usage.py
"""
Usage/limit checker: tier lookup, monthly limit lookup and usage counting.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

from sqlalchemy import func

from engine.models import Audit, Competitor, Profile, Project, Subscription, UsageEvent, UsageLimit
from settings import settings
from utils.date_utils import start_of_month, utcnow

UNLIMITED = -1
DEFAULT_TIER = "free"


@dataclass
class UsageCheck:
    allowed: bool
    message: str
    limit: int
    used: int
    remaining: int


@dataclass
class AuditLimits:
    total: int
    used: int
    remaining: int
    is_limited: bool


def get_user_tier(db, user_id: str) -> str:
    profile = db.get(Profile, user_id)
    if profile and profile.subscription_tier:
        return profile.subscription_tier.lower()
    legacy = db.query(Subscription).filter(Subscription.user_id == user_id).first()
    if legacy and legacy.plan:
        return legacy.plan.lower()
    return DEFAULT_TIER


def get_monthly_limit(db, tier: str, feature: str, missing_limit: Optional[int] = None) -> int:
    """
    Limit for (tier, feature). A missing row falls back to the free tier's row,
    then to the configured missing limit.
    """
    for plan in (tier, DEFAULT_TIER):
        row = db.query(UsageLimit).filter(
            UsageLimit.plan_type == plan,
            UsageLimit.feature_name == feature,
        ).first()
        if row is not None:
            return row.monthly_limit
    fallback = settings.usage.missing_limit if missing_limit is None else missing_limit
    logging.warning(f"No usage limit row for tier={tier} feature={feature}; using {fallback}")
    return fallback


def _count_audits(db, user_id, since, project_id):
    return db.query(func.count(Audit.id)).filter(
        Audit.user_id == user_id,
        Audit.created_at >= since,
    ).scalar()


def _count_competitors(db, user_id, since, project_id):
    return db.query(func.count(Competitor.id)).filter(Competitor.project_id == project_id).scalar()


def _count_projects(db, user_id, since, project_id):
    return db.query(func.count(Project.id)).filter(Project.user_id == user_id).scalar()


def _count_events(feature):
    def counter(db, user_id, since, project_id):
        return db.query(func.count(UsageEvent.id)).filter(
            UsageEvent.user_id == user_id,
            UsageEvent.feature_name == feature,
            UsageEvent.created_at >= since,
        ).scalar()
    return counter


USAGE_COUNTERS: Dict[str, Callable] = {
    "audits": _count_audits,
    "max_competitors": _count_competitors,
    "max_projects": _count_projects,
}


def count_usage(db, user_id: str, feature: str, since: datetime, project_id: str = None) -> int:
    counter = USAGE_COUNTERS.get(feature) or _count_events(feature)
    return counter(db, user_id, since, project_id) or 0


def check_feature_access(db, user_id: str, feature: str, requested: int = 1,
                         project_id: str = None, now: datetime = None) -> UsageCheck:
    tier = get_user_tier(db, user_id)
    limit = get_monthly_limit(db, tier, feature)
    if limit == UNLIMITED:
        return UsageCheck(True, "Unlimited access", UNLIMITED, 0, UNLIMITED)

    since = start_of_month(now or utcnow())
    used = count_usage(db, user_id, feature, since, project_id=project_id)
    remaining = limit - used
    if used + requested > limit:
        logging.info(f"[user_id={user_id}] {feature} limit reached: used={used} limit={limit} tier={tier}")
        return UsageCheck(
            False,
            "You've reached your monthly limit for this feature. Upgrade your plan for more.",
            limit, used, remaining,
        )
    return UsageCheck(
        True,
        f"Operation allowed. {remaining - requested} uses remaining this month.",
        limit, used, remaining,
    )


def get_audit_limits(db, user_id: str, now: datetime = None) -> AuditLimits:
    tier = get_user_tier(db, user_id)
    total = get_monthly_limit(db, tier, "audits")
    if total == UNLIMITED:
        return AuditLimits(total=UNLIMITED, used=0, remaining=UNLIMITED, is_limited=False)
    used = count_usage(db, user_id, "audits", start_of_month(now or utcnow()))
    return AuditLimits(total=total, used=used, remaining=total - used, is_limited=True)


def record_usage(db, user_id: str, feature: str, tokens_used: int = 0, status: str = "success"):
    db.add(UsageEvent(user_id=user_id, feature_name=feature, tokens_used=tokens_used or 0, status=status))
    db.commit()


def get_limits_table(db) -> dict:
    table: Dict[str, dict] = {}
    for row in db.query(UsageLimit).order_by(UsageLimit.plan_type, UsageLimit.feature_name).all():
        value = "Unlimited" if row.monthly_limit == UNLIMITED else row.monthly_limit
        table.setdefault(row.plan_type, {})[row.feature_name] = value
    return table
