"""
Input validation and timestamp helpers shared by the services.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from .errors import InvalidInput


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_user_id(user_id: Any) -> str:
    """
    Normalise a user id or raise InvalidInput.

    Supabase Auth user ids are UUIDs. An unknown but well-formed id is valid
    (it simply has no rows yet).
    """
    if user_id is None or (isinstance(user_id, str) and not user_id.strip()):
        raise InvalidInput("User ID is required")
    try:
        return str(uuid.UUID(str(user_id).strip()))
    except (ValueError, AttributeError, TypeError):
        raise InvalidInput(f"Malformed user ID: {user_id!r}")


def ensure_site_id(site_id: Any) -> str:
    """Site ids are UUIDs; anything else would reach PostgREST as a cast error."""
    if site_id is None or (isinstance(site_id, str) and not site_id.strip()):
        raise InvalidInput("Site ID is required")
    try:
        return str(uuid.UUID(str(site_id).strip()))
    except (ValueError, AttributeError, TypeError):
        raise InvalidInput(f"Malformed site ID: {site_id!r}", details={"site_id": str(site_id)})


def ensure_plan_id(plan_id: Any) -> str:
    if not isinstance(plan_id, str) or not plan_id.strip():
        raise InvalidInput("Plan ID is required")
    return plan_id.strip()


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_timestamp(value: datetime) -> str:
    """
    Serialise a datetime for the record store.

    Always UTC with microsecond precision so that string ordering in
    PostgREST filters matches chronological ordering.
    """
    return ensure_aware(value).astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: Optional[Any]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_aware(datetime.fromisoformat(text))
