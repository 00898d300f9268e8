# src/engine/states.py
"""
Status machine shared by audits and PDF generation jobs:

    pending -> processing -> completed
    pending -> completed | failed
    processing -> failed

Statuses may repeat (progress updates) until a terminal status is reached.
"""
from engine.errors import InvalidTransition, ValidationError

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"

STATUSES = (PENDING, PROCESSING, COMPLETED, FAILED)
TERMINAL_STATUSES = (COMPLETED, FAILED)

_ALLOWED = {
    PENDING: {PENDING, PROCESSING, COMPLETED, FAILED},
    PROCESSING: {PROCESSING, COMPLETED, FAILED},
    COMPLETED: set(),
    FAILED: set(),
}


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: str, new: str) -> bool:
    return new in _ALLOWED.get(current or PENDING, set())


def ensure_transition(current: str, new: str):
    if new not in STATUSES:
        raise ValidationError(f"Unknown status: {new}")
    if not can_transition(current, new):
        raise InvalidTransition(f"Cannot move from '{current}' to '{new}'")
