# src/engine/subscriptions.py
"""
PayPal webhook handling. Each handler updates the profile (and projects) of
the user the event belongs to; events for unknown orders are acknowledged and
logged.
"""
import logging
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError

from engine.errors import Unauthorized, ValidationError
from engine.models import PaymentOrder, Profile, Project, SubscriptionPayment
from engine.notifications import notify
from utils.date_utils import utcnow

RENEWAL_PERIOD = timedelta(days=30)


def _get_profile(db, user_id: str) -> Profile:
    profile = db.get(Profile, user_id)
    if profile is None:
        profile = Profile(id=user_id, subscription_tier="free")
        db.add(profile)
    return profile


def _latest_order(db, subscription_id: str):
    if not subscription_id:
        return None
    return (db.query(PaymentOrder)
            .filter(PaymentOrder.subscription_id == subscription_id)
            .order_by(PaymentOrder.created_at.desc(), PaymentOrder.id.desc())
            .first())


def update_user_subscription(db, user_id: str, tier: str) -> int:
    """Copy the user's tier onto all of their projects."""
    projects = db.query(Project).filter(Project.user_id == user_id).all()
    for project in projects:
        project.subscription_tier = tier
    return len(projects)


def handle_payment_completed(db, resource: dict) -> bool:
    payment_id = resource.get("id")
    subscription_id = resource.get("billing_agreement_id")
    if not payment_id:
        logging.error(f"Payment event without an id for subscription {subscription_id}")
        return False
    amount = resource.get("amount") or {}
    if not isinstance(amount, dict):
        logging.error(f"Payment {payment_id} has a malformed amount: {amount!r}")
        return False
    order = _latest_order(db, subscription_id)
    if order is None:
        logging.error(f"Payment record not found for: {subscription_id}")
        return False
    if db.query(SubscriptionPayment).filter(SubscriptionPayment.payment_id == payment_id).first():
        logging.info(f"Payment {payment_id} already recorded")
        return True

    now = utcnow()
    db.add(SubscriptionPayment(
        user_id=order.user_id,
        payment_id=payment_id,
        subscription_id=subscription_id,
        amount=str(amount.get("total")) if amount.get("total") is not None else None,
        currency=amount.get("currency"),
        status=resource.get("state"),
        payment_date=now,
    ))
    profile = _get_profile(db, order.user_id)
    profile.subscription_status = "active"
    profile.subscription_renewal_date = now + RENEWAL_PERIOD
    db.commit()
    logging.info(f"Payment processed for user {order.user_id}, subscription {subscription_id}")
    return True


def handle_subscription_activated(db, resource: dict) -> bool:
    subscription_id = resource.get("id")
    order = _latest_order(db, subscription_id)
    if order is None:
        logging.error(f"Subscription not found: {subscription_id}")
        return False
    now = utcnow()
    profile = _get_profile(db, order.user_id)
    profile.subscription_tier = order.plan_id
    profile.subscription_status = "active"
    profile.subscription_id = subscription_id
    profile.subscription_updated_at = now
    profile.subscription_renewal_date = now + RENEWAL_PERIOD
    count = update_user_subscription(db, order.user_id, order.plan_id)
    db.commit()
    logging.info(f"Subscription activated for user {order.user_id}, plan {order.plan_id}, projects={count}")
    return True


def handle_subscription_cancelled(db, resource: dict) -> bool:
    subscription_id = resource.get("id")
    order = _latest_order(db, subscription_id)
    if order is None:
        logging.error(f"Subscription not found: {subscription_id}")
        return False
    profile = _get_profile(db, order.user_id)
    # tier stays until the end of the billing period
    profile.subscription_status = "canceled"
    profile.subscription_updated_at = utcnow()
    db.commit()
    logging.info(f"Subscription cancelled for user {order.user_id}")
    return True


def handle_payment_failed(db, resource: dict) -> bool:
    user_id = resource.get("custom_id")
    if not user_id:
        logging.error(f"Payment failure without custom_id for subscription {resource.get('id')}")
        return False
    profile = _get_profile(db, user_id)
    profile.subscription_status = "past_due"
    profile.subscription_updated_at = utcnow()
    notify(db, user_id, "Payment failed",
           "We couldn't process your subscription payment. Please update your payment method.",
           type="billing", link="/dashboard/subscription", commit=False)
    db.commit()
    logging.info(f"Payment failed for user {user_id}, subscription {resource.get('id')}")
    return True


EVENT_HANDLERS = {
    "PAYMENT.SALE.COMPLETED": handle_payment_completed,
    "BILLING.SUBSCRIPTION.ACTIVATED": handle_subscription_activated,
    "BILLING.SUBSCRIPTION.CANCELLED": handle_subscription_cancelled,
    "BILLING.SUBSCRIPTION.PAYMENT.FAILED": handle_payment_failed,
}


def process_webhook_event(db, event: dict, expected_webhook_id: str = None) -> dict:
    if not isinstance(event, dict) or not event.get("event_type"):
        raise ValidationError("Invalid webhook payload")
    if expected_webhook_id and event.get("webhook_id") != expected_webhook_id:
        raise Unauthorized("Invalid webhook signature")

    event_type = event["event_type"]
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logging.info(f"Unhandled PayPal webhook event: {event_type}")
        return {"received": True, "handled": False}
    resource = event.get("resource")
    if not isinstance(resource, dict):
        logging.error(f"PayPal webhook {event_type} without a resource object")
        return {"received": True, "handled": False}
    try:
        handled = handler(db, resource)
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Error handling PayPal webhook {event_type}: {e}")
        handled = False
    return {"received": True, "handled": handled}
