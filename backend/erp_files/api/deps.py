from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from jose import jwt

from erp_files.core.config import get_settings
from erp_files.core.errors import NotAuthenticated, NotFound
from erp_files.db.session import get_db_session  # re-exported for convenience


@dataclass(frozen=True)
class CurrentUser:
    """Caller identity taken from an already-issued bearer token."""

    id: int
    role: str


def _bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization") or ""
    scheme, _, token = auth.partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


def get_current_user(request: Request) -> CurrentUser:
    """Extract the caller from the Authorization header. Raises 401 if invalid."""
    settings = get_settings()
    token = _bearer_token(request)
    if not token:
        raise NotAuthenticated("Not authenticated")
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        raw_id = payload.get("id", payload.get("sub"))
        user_id = int(raw_id)
        role = str(payload.get("role") or "").strip().lower()
    except Exception:
        raise NotAuthenticated("Invalid token")
    return CurrentUser(id=user_id, role=role)


def parse_path_id(raw: str, not_found: str) -> int:
    # An id that is not an integer cannot match a row.
    try:
        return int(raw.strip())
    except ValueError:
        raise NotFound(not_found)


__all__ = ["CurrentUser", "get_current_user", "get_db_session", "parse_path_id"]
