# src/engine/db.py
import logging

import yaml
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from engine.models import Base, UsageLimit
from settings import settings

DATABASE_URL = settings.database.url

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Request-scoped session, closed when the request finishes."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def load_usage_limits(path: str) -> list:
    """
    Read the plan -> feature -> monthly_limit seed file into UsageLimit rows.
    """
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    rows = []
    for plan_type, features in data.get("plans", {}).items():
        for feature_name, monthly_limit in (features or {}).items():
            rows.append(UsageLimit(
                plan_type=str(plan_type).lower(),
                feature_name=feature_name,
                monthly_limit=int(monthly_limit),
            ))
    return rows


def seed_usage_limits(db, path: str = None) -> int:
    if db.query(UsageLimit).first() is not None:
        return 0
    rows = load_usage_limits(path or settings.usage.limits_file)
    db.add_all(rows)
    db.commit()
    logging.info(f"Seeded {len(rows)} usage limit rows.")
    return len(rows)


def init_db(bind=None):
    # Create tables if they don't exist
    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    db = sessionmaker(bind=bind)()
    try:
        seed_usage_limits(db)
    finally:
        db.close()
