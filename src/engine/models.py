# src/engine/models.py
import json
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

from utils.date_utils import utcnow

Base = declarative_base()


def _uuid():
    return str(uuid.uuid4())


class JSONText(TypeDecorator):
    """JSON document stored in a text column."""
    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return json.dumps(value) if value is not None else None

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        try:
            return json.loads(value)
        except ValueError:
            return value


class Profile(Base):
    __tablename__ = 'profiles'
    id = Column(String, primary_key=True)
    email = Column(String, nullable=True)
    full_name = Column(String, nullable=True)
    subscription_tier = Column(String, nullable=True, default='free')
    subscription_status = Column(String, nullable=True)
    subscription_id = Column(String, nullable=True)
    subscription_updated_at = Column(DateTime, nullable=True)
    subscription_renewal_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)


class Subscription(Base):
    """Legacy per-user plan table, consulted when a profile carries no tier."""
    __tablename__ = 'subscriptions'
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, unique=True)
    plan = Column(String, nullable=False, default='free')
    created_at = Column(DateTime, default=utcnow)


class Project(Base):
    __tablename__ = 'projects'
    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=True)
    url = Column(String, nullable=False)
    crawl_frequency = Column(String, default='monthly')  # daily | weekly | monthly
    crawl_depth = Column(Integer, default=3)
    status = Column(String, default='active')
    subscription_tier = Column(String, nullable=True)
    keywords = Column(JSONText, nullable=True)  # list of tracked keywords
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Audit(Base):
    __tablename__ = 'audits'
    id = Column(String, primary_key=True, default=_uuid)
    project_id = Column(String, ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    url = Column(String, nullable=False)
    status = Column(String, default='pending')  # pending | processing | completed | failed
    score = Column(Integer, nullable=True)
    report = Column(JSONText, nullable=True)
    error_message = Column(Text, nullable=True)
    scheduled = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)


class PdfGenerationJob(Base):
    __tablename__ = 'pdf_generation_jobs'
    id = Column(String, primary_key=True, default=_uuid)
    audit_id = Column(String, ForeignKey('audits.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    status = Column(String, default='pending')
    progress = Column(Integer, default=0)
    parameters = Column(JSONText, nullable=True)
    content = Column(JSONText, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    expires_at = Column(DateTime, nullable=False)


class Competitor(Base):
    __tablename__ = 'competitors'
    id = Column(String, primary_key=True, default=_uuid)
    project_id = Column(String, ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True)
    url = Column(String, nullable=False)
    name = Column(String, nullable=True)
    status = Column(String, default='pending')  # pending | in_progress | completed | failed
    created_at = Column(DateTime, default=utcnow)


class UsageLimit(Base):
    __tablename__ = 'usage_limits'
    __table_args__ = (UniqueConstraint('plan_type', 'feature_name'),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    plan_type = Column(String, nullable=False)
    feature_name = Column(String, nullable=False)
    monthly_limit = Column(Integer, nullable=False)  # -1 is unlimited


class UsageEvent(Base):
    """One metered call of a feature (AI endpoints, report exports)."""
    __tablename__ = 'usage_events'
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    feature_name = Column(String, nullable=False)
    tokens_used = Column(Integer, default=0)
    status = Column(String, default='success')
    created_at = Column(DateTime, default=utcnow, index=True)


class KeywordRankingHistory(Base):
    __tablename__ = 'keyword_rankings_history'
    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(String, ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True)
    keyword = Column(String, nullable=False)
    ranking = Column(Integer, nullable=True)
    url = Column(String, nullable=True)
    search_engine = Column(String, nullable=False)
    checked_at = Column(DateTime, nullable=False)


class PaymentOrder(Base):
    __tablename__ = 'payment_orders'
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False)
    plan_id = Column(String, nullable=False)
    subscription_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow)


class SubscriptionPayment(Base):
    __tablename__ = 'subscription_payments'
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False)
    payment_id = Column(String, nullable=False, unique=True)
    subscription_id = Column(String, nullable=True)
    amount = Column(String, nullable=True)
    currency = Column(String, nullable=True)
    status = Column(String, nullable=True)
    payment_date = Column(DateTime, default=utcnow)


class Notification(Base):
    __tablename__ = 'notifications'
    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String, default='info')
    link = Column(String, nullable=True)
    read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)


class Todo(Base):
    __tablename__ = 'todos'
    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, nullable=False, index=True)
    project_id = Column(String, ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True)
    audit_id = Column(String, ForeignKey('audits.id', ondelete='SET NULL'), nullable=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(String, default='medium')  # low | medium | high
    status = Column(String, default='pending')  # pending | in_progress | completed
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
