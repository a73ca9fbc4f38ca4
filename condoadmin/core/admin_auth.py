"""
Admin authentication for the super-admin billing surface.

The upstream gateway authenticates users; this service only checks the
shared X-Admin-Key secret on admin routes and reads the acting user id
from X-User-Id for audit attribution.
"""
import os
import hashlib
from typing import Optional, Literal
from dataclasses import dataclass

from fastapi import Request, HTTPException

from condoadmin.core.config import settings


@dataclass
class AdminActor:
    """Represents an authenticated admin actor."""
    actor_id: str  # X-User-Id when supplied, else "legacy:<hash>"
    actor_display: Optional[str] = None
    auth_mechanism: Literal["x_admin_key"] = "x_admin_key"


def get_admin_api_key() -> str | None:
    """Get admin API key.
    Prefer ADMIN_API_KEY env var; fall back to settings.ADMIN_KEY.
    """
    env_key = os.getenv("ADMIN_API_KEY")
    if env_key:
        return env_key
    return settings.ADMIN_KEY


def get_acting_user_id(request: Request) -> Optional[str]:
    """Return the user id forwarded by the auth gateway, if any."""
    value = request.headers.get("X-User-Id", "").strip()
    return value or None


def verify_admin_key(request: Request) -> Optional[AdminActor]:
    """
    Verify X-Admin-Key header.
    Returns AdminActor if valid, None if not present/invalid.
    """
    expected_key = get_admin_api_key()
    if not expected_key:
        return None

    header_key = request.headers.get("X-Admin-Key", "").strip()
    if not header_key or header_key != expected_key:
        return None

    user_id = get_acting_user_id(request)
    if user_id:
        return AdminActor(actor_id=user_id, actor_display=user_id)

    key_hash = hashlib.sha256(header_key.encode()).hexdigest()[:16]
    return AdminActor(actor_id=f"legacy:{key_hash}", actor_display="Admin Key")


def require_admin(request: Request) -> AdminActor:
    """
    FastAPI dependency: Require admin authentication.
    Raises HTTPException if authentication fails.

    Usage:
        @router.post("/admin/endpoint")
        def admin_endpoint(actor: AdminActor = Depends(require_admin)):
            pass
    """
    actor = verify_admin_key(request)
    if actor:
        return actor

    if not get_admin_api_key():
        raise HTTPException(
            status_code=503,
            detail="Admin authentication not configured: set ADMIN_API_KEY",
        )

    raise HTTPException(
        status_code=401,
        detail="Unauthorized: invalid or missing X-Admin-Key",
    )
