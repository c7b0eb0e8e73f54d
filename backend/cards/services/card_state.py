"""Lifecycle state and extension policy for cards.

Pure functions only: state is derived from timestamps on every read and never
stored, because the same row changes state as the clock moves.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone as dt_tz
from typing import Literal

CardState = Literal["active", "ended", "featured", "evergreen", "open", "closed", "open_ended"]

PROMPT_FEATURED_HOURS = 72
EXTENDABLE_TYPES = ("poll", "challenge", "opportunity")


@dataclass(frozen=True)
class ExtensionLimit:
    max_extensions: int
    lockout_hours: int = 0


EXTENSION_LIMITS: dict[str, ExtensionLimit] = {
    "poll": ExtensionLimit(max_extensions=1),
    "challenge": ExtensionLimit(max_extensions=2, lockout_hours=2),
    "opportunity": ExtensionLimit(max_extensions=999),  # effectively unlimited
}


@dataclass(frozen=True)
class ExtensionDecision:
    allowed: bool
    reason: str | None = None


def as_utc(dt: datetime | None) -> datetime | None:
    """Normalise a stored timestamp; some drivers hand back naive UTC values."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=dt_tz.utc)
    return dt.astimezone(dt_tz.utc)


def _now(now: datetime | None) -> datetime:
    return as_utc(now) if now is not None else datetime.now(dt_tz.utc)


def get_card_state(
    post_type: str,
    created_at: datetime | None,
    expires_at: datetime | None,
    closed_at: datetime | None = None,
    now: datetime | None = None,
) -> CardState:
    now = _now(now)
    if post_type == "prompt":
        # Prompts never end: featured while fresh, evergreen after
        age = now - (as_utc(created_at) or now)
        return "featured" if age < timedelta(hours=PROMPT_FEATURED_HOURS) else "evergreen"
    if post_type == "qna":
        # Resolution lives on the question rows, not the post
        return "open"
    if post_type == "opportunity" and closed_at is not None:
        return "closed"
    if expires_at is not None:
        return "ended" if now >= as_utc(expires_at) else "active"
    return "open_ended"


def post_state(post, now: datetime | None = None) -> CardState:
    return get_card_state(post.post_type, post.created_at, post.expires_at, post.closed_at, now)


def has_ended(expires_at: datetime | None, now: datetime | None = None) -> bool:
    return expires_at is not None and _now(now) >= as_utc(expires_at)


STATE_LABELS = {
    "active": "Active",
    "ended": "Ended",
    "featured": "Active",
    "evergreen": "Active",
    "open": "Open",
    "resolved": "Resolved",
    "closed": "Closed",
    "open_ended": "Active",
}


def state_label(state: str) -> str:
    return STATE_LABELS.get(state, "Active")


def is_interaction_disabled(state: str, post_type: str) -> bool:
    if post_type in ("poll", "challenge"):
        return state == "ended"
    if post_type == "opportunity":
        return state == "closed"
    return False


def can_extend(
    post_type: str,
    expires_at: datetime | None,
    extension_count: int = 0,
    now: datetime | None = None,
) -> ExtensionDecision:
    """Whether the card's deadline may be pushed out right now.

    Checked in order: supported type, deadline not passed, deadline exists,
    per-type extension ceiling, challenge lockout window.
    """
    now = _now(now)
    if post_type not in EXTENDABLE_TYPES:
        return ExtensionDecision(False, "This card type does not support extensions")
    expires_at = as_utc(expires_at)
    if expires_at is not None and expires_at <= now:
        return ExtensionDecision(False, "Cannot extend after end time has passed")
    if expires_at is None:
        return ExtensionDecision(False, "No deadline set to extend")

    limit = EXTENSION_LIMITS[post_type]
    if (extension_count or 0) >= limit.max_extensions:
        return ExtensionDecision(False, f"Maximum {limit.max_extensions} extension(s) already used")
    if limit.lockout_hours and expires_at - now < timedelta(hours=limit.lockout_hours):
        return ExtensionDecision(False, f"Cannot extend in the final {limit.lockout_hours} hours before deadline")
    return ExtensionDecision(True)


def validate_new_end_time(
    post_type: str,
    current_end: datetime,
    new_end: datetime,
    submission_count: int = 0,
    min_extension_hours: int = 24,
) -> str | None:
    """Write-path checks for an extension. Returns an error message, or None when acceptable."""
    current_end, new_end = as_utc(current_end), as_utc(new_end)
    if post_type == "challenge" and submission_count > 0 and new_end < current_end:
        return "Cannot shorten deadline after submissions have been received"
    if new_end <= current_end:
        return "New end time must be after the current end time"
    if new_end - current_end < timedelta(hours=min_extension_hours):
        return f"Minimum extension is {min_extension_hours} hours"
    return None
