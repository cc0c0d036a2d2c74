"""
Session-based role helpers and FastAPI dependencies.

Reads roles from request.session (set by the auth callback from the user's app
role assignments) and provides dependency factories for route protection:
require_role, require_roles, require_any_role.

Staleness follows Settings: role_refresh_interval_seconds forces re-login when
roles are older than that, session_max_idle_seconds treats the user as
inactive after that long without a request. 0 disables either check. Without
explicit settings the environment is read on every check.
"""

import time
from typing import Callable, Optional, Set

from fastapi import HTTPException, Request

from msgraph_login.config import Settings


def get_roles(request: Request) -> Set[str]:
    """Return the set of role names stored in the session (empty if not authenticated)."""
    raw = request.session.get("roles", [])
    return {r.lower() for r in raw} if isinstance(raw, list) else set()


def is_session_stale(request: Request, settings: Settings) -> bool:
    interval = settings.role_refresh_interval_seconds
    max_idle = settings.session_max_idle_seconds
    now = int(time.time())

    if interval > 0 and now - request.session.get("roles_fetched_at", 0) >= interval:
        return True
    if max_idle > 0 and now - request.session.get("last_activity_at", now) >= max_idle:
        return True
    return False


def touch_session_activity(request: Request) -> None:
    request.session["last_activity_at"] = int(time.time())


def _require(check: Callable[[Set[str]], bool], detail: str, settings: Optional[Settings]):
    async def _dep(request: Request):
        if "user" not in request.session:
            raise HTTPException(status_code=401, detail="Not authenticated")
        if is_session_stale(request, settings or Settings.from_env()):
            raise HTTPException(
                status_code=401,
                detail="Session expired or inactive; please log in again",
            )
        touch_session_activity(request)
        if not check(get_roles(request)):
            raise HTTPException(status_code=403, detail=detail)
        return True

    return _dep


def require_roles(*required_roles: str, settings: Optional[Settings] = None):
    """
    Dependency: user must have ALL of the given roles.
    Use as: Depends(require_roles("admin", "editor")).
    """
    required = {role.lower() for role in required_roles if role}
    return _require(lambda roles: required <= roles, "Forbidden (missing required roles)", settings)


def require_role(role: str, settings: Optional[Settings] = None):
    return require_roles(role, settings=settings)


def require_any_role(*roles: str, settings: Optional[Settings] = None):
    """Dependency: user must have at least one of the given roles."""
    accepted = {r.lower() for r in roles if r}
    return _require(lambda held: bool(accepted & held), "Forbidden (no acceptable role)", settings)
