# src/engine/notifications.py
import logging

from engine.errors import NotFound
from engine.models import Notification


def notify(db, user_id: str, title: str, message: str, type: str = "info", link: str = None,
           commit: bool = True) -> Notification:
    notification = Notification(user_id=user_id, title=title, message=message, type=type, link=link)
    db.add(notification)
    if commit:
        db.commit()
    logging.info(f"[user_id={user_id}] Notification queued: {title}")
    return notification


def list_notifications(db, user_id: str, unread_only: bool = False, limit: int = 50):
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return query.order_by(Notification.created_at.desc()).limit(limit).all()


def mark_read(db, user_id: str, notification_id: str) -> Notification:
    notification = db.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotFound("Notification not found")
    notification.read = True
    db.commit()
    return notification


def notification_to_dict(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type,
        "link": notification.link,
        "read": notification.read,
        "created_at": str(notification.created_at),
    }
