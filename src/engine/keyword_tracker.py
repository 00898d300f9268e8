# src/engine/keyword_tracker.py
"""
Weekly keyword rank tracking: one rank lookup per project keyword, one batch
insert of history rows per project.
"""
import logging
import time
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from engine.errors import UpstreamError
from engine.models import KeywordRankingHistory, Project
from utils.date_utils import utcnow


def projects_with_keywords(db) -> list:
    projects = db.query(Project).filter(Project.status == "active", Project.keywords.isnot(None)).all()
    return [p for p in projects if isinstance(p.keywords, list) and p.keywords]


def track_keywords(db, serper, checked_at: datetime = None, delay_seconds: float = 0) -> dict:
    checked_at = checked_at or utcnow()
    projects = projects_with_keywords(db)
    if not projects:
        logging.info("No active projects with keywords found to track.")
        return {"message": "No projects to process", "projectsProcessed": 0,
                "keywordsProcessed": 0, "failedLookups": 0, "rankingsInserted": 0}

    keywords_processed = 0
    failed_lookups = 0
    inserted = 0
    logging.info(f"Starting keyword tracking for {len(projects)} projects.")

    for project in projects:
        rows = []
        for keyword in project.keywords:
            keywords_processed += 1
            try:
                ranking = serper.lookup(keyword)
            except UpstreamError as e:
                logging.error(f"[project_id={project.id}] Lookup failed for keyword \"{keyword}\": {e.message}")
                ranking = None
            if ranking:
                rows.append(KeywordRankingHistory(
                    project_id=project.id,
                    keyword=keyword,
                    ranking=ranking.get("position"),
                    url=ranking.get("link"),
                    search_engine=getattr(serper, "search_engine", "google_us_en"),
                    checked_at=checked_at,
                ))
            else:
                failed_lookups += 1
                logging.warning(f"Failed to get ranking for keyword \"{keyword}\" in project {project.id}")
            if delay_seconds:
                time.sleep(delay_seconds)

        if not rows:
            continue
        try:
            db.add_all(rows)
            db.commit()
            inserted += len(rows)
            logging.info(f"[project_id={project.id}] Inserted {len(rows)} rankings.")
        except SQLAlchemyError as e:
            db.rollback()
            logging.error(f"[project_id={project.id}] Error inserting rankings: {e}")

    logging.info(f"Keyword tracking summary: projects={len(projects)} keywords={keywords_processed} "
                 f"failed={failed_lookups}")
    return {
        "message": "Keyword tracking job completed successfully",
        "projectsProcessed": len(projects),
        "keywordsProcessed": keywords_processed,
        "failedLookups": failed_lookups,
        "rankingsInserted": inserted,
    }


def keyword_history(db, project_id: str, keyword: str = None, limit: int = 500) -> list:
    query = db.query(KeywordRankingHistory).filter(KeywordRankingHistory.project_id == project_id)
    if keyword:
        query = query.filter(KeywordRankingHistory.keyword == keyword)
    rows = query.order_by(KeywordRankingHistory.checked_at.desc()).limit(limit).all()
    return [{
        "keyword": row.keyword,
        "ranking": row.ranking,
        "url": row.url,
        "search_engine": row.search_engine,
        "checked_at": str(row.checked_at),
    } for row in rows]
