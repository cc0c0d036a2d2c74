"""
FastAPI app: Microsoft Entra (Azure AD) login + session-based app role auth.

Decisions:
- .env is loaded before importing msgraph_login so AZURE_* and SESSION_SECRET
  are available when Settings are read (Ruff E402 suppressed for that).
- ROLE_MAP: role name -> set of appRoleId GUIDs from the app registration.
  Role assignments are only fetched when AZURE_APPLICATION_ID is set (the
  service principal object id of this app).
- ROLE_INHERITS: e.g. admin -> support, user; used to expand roles after
  resolving assignments.
- Session secret from SESSION_SECRET env; default "change-me" is for dev only.
"""

import os

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from starlette.middleware.sessions import SessionMiddleware

load_dotenv()

# Load .env before msgraph_login so AZURE_* and SESSION_SECRET are set; Ruff E402.
from msgraph_login import (  # noqa: E402
    MicrosoftOAuth,
    MicrosoftStrategy,
    Settings,
    create_auth_router,
    require_any_role,
    require_roles,
    touch_session_activity,
)

settings = Settings.from_env()

# Role -> app role ids. Any assignment of one of these app roles grants the role.
ROLE_MAP = {
    "admin": {os.getenv("admin_app_role_id")},
    "support": {os.getenv("support_app_role_id")},
    "user": {os.getenv("user_app_role_id")},
}

# Inheritance: admin implies support & user; support implies user.
ROLE_INHERITS = {
    "admin": {"support", "user"},
    "support": {"user"},
    "user": set(),
}

strategy = MicrosoftStrategy(
    MicrosoftOAuth(settings),
    settings,
    options={"prompt": os.getenv("MS_PROMPT"), "extra_scopes": os.getenv("MS_EXTRA_SCOPES")},
)

app = FastAPI()
app.add_middleware(SessionMiddleware, secret_key=settings.session_secret)


@app.middleware("http")
async def update_activity(request: Request, call_next):
    """Update last_activity_at for logged-in users so idle timeout is accurate."""
    response = await call_next(request)
    if "user" in request.session:
        touch_session_activity(request)
    return response

app.include_router(create_auth_router(strategy, ROLE_MAP, ROLE_INHERITS))


@app.get("/")
async def home(request: Request):
    user = request.session.get("user")
    return {"logged_in": bool(user), "user": user}


@app.get("/admin")
async def admin_area(_=Depends(require_roles("admin", settings=settings))):
    return {"ok": True, "area": "admin"}


@app.get("/support")
async def support_area(_=Depends(require_roles("support", settings=settings))):
    return {"ok": True, "area": "support"}


@app.get("/support-or-admin")
async def support_or_admin_area(_=Depends(require_any_role("support", "admin", settings=settings))):
    return {"ok": True, "area": "support or admin"}
