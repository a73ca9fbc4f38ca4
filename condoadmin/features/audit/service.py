import logging
from typing import Any, Dict, Optional
from datetime import datetime, timezone

from pydantic_core import to_jsonable_python
from sqlalchemy import insert, select

from condoadmin.core.config import settings
from condoadmin.core.database import audit_logs, get_db_session, get_database_url
from condoadmin.core.logging import get_request_id

logger = logging.getLogger(__name__)

_memory_events = []  # Fallback buffer when DB is unavailable

# Actions recorded against the subscriptions table
ADD_EXTRA_DAYS = "ADD_EXTRA_DAYS"
RESET_USAGE = "RESET_USAGE"
PLAN_CHANGE = "PLAN_CHANGE"
ACTIVATE_TRIAL = "ACTIVATE_TRIAL"
EXTEND_TRIAL = "EXTEND_TRIAL"
END_TRIAL = "END_TRIAL"
SET_LIFETIME = "SET_LIFETIME"
UPDATE = "UPDATE"


def _safe_truncate(value: Any, limit: int = 500):
    try:
        text = str(value)
    except Exception:
        return "<unserializable>"
    if len(text) <= limit:
        return text
    return text[:limit] + "...<truncated>"


def _jsonable(data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if data is None:
        return None
    return to_jsonable_python(data, fallback=_safe_truncate)


def record_audit_log(
    *,
    action: str,
    table_name: str = "subscriptions",
    record_id: Optional[str] = None,
    user_id: Optional[str] = None,
    old_data: Optional[Dict[str, Any]] = None,
    new_data: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Record an audit log row (or fallback buffer).

    Best-effort: a failed insert is logged and buffered, never raised, so
    the audited mutation is never rolled back because of its audit trail.

    Returns True when the row reached the database.
    """

    if not settings.AUDIT_ENABLED:
        return False

    record = {
        "action": action,
        "table_name": table_name,
        "record_id": record_id,
        "user_id": user_id,
        "old_data": _jsonable(old_data),
        "new_data": _jsonable(new_data),
        "ip_address": ip_address,
        "user_agent": _safe_truncate(user_agent) if user_agent else None,
        "created_at": now or datetime.now(timezone.utc),
    }

    if not get_database_url():
        _memory_events.append(record)
        logger.debug("Audit log buffered in memory (no DB configured)")
        return False

    try:
        with get_db_session() as session:
            session.execute(insert(audit_logs).values(**record))
        return True
    except Exception as exc:
        logger.warning(
            "Audit log write failed: %s",
            exc,
            extra={"request_id": get_request_id(), "error_code": "audit_write_failed"},
        )
        _memory_events.append(record)
        return False


def list_audit_logs(record_id: str, action: Optional[str] = None) -> list[dict]:
    """Audit rows for a record, oldest first."""
    stmt = select(audit_logs).where(audit_logs.c.record_id == record_id)
    if action:
        stmt = stmt.where(audit_logs.c.action == action)
    stmt = stmt.order_by(audit_logs.c.id)
    with get_db_session() as session:
        return [dict(row._mapping) for row in session.execute(stmt)]


def get_buffered_audit_logs():
    return list(_memory_events)


def clear_buffered_audit_logs() -> None:
    _memory_events.clear()
