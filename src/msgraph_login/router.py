"""
FastAPI auth router: login, callback, /me, logout.

Drives a login strategy (MicrosoftStrategy) and keeps the resulting identity
and application roles in the session. The anti-forgery state is generated here
and checked on the callback; the strategy only forwards it.
"""

import logging
import secrets
import time
from dataclasses import asdict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse

from msgraph_login.authz_config import assigned_app_role_ids, compute_roles
from msgraph_login.protocol import OAuthProvider

logger = logging.getLogger(__name__)

STATE_SESSION_KEY = "oauth_state"


def _error_response(errors) -> JSONResponse:
    return JSONResponse({"errors": errors}, status_code=400)


def create_auth_router(provider: OAuthProvider, role_map: dict, role_inherits: dict) -> APIRouter:
    """Create an APIRouter with /login, /auth/callback, /me, and /logout endpoints."""
    router = APIRouter()

    @router.get("/login")
    async def login(request: Request):
        """Redirect the user to the IdP (Microsoft) login page."""
        state = secrets.token_urlsafe(32)
        request.session[STATE_SESSION_KEY] = state
        url = provider.handle_request(
            dict(request.query_params), str(request.url_for("auth_callback")), state
        )
        return RedirectResponse(url=url)

    @router.get("/auth/callback", name="auth_callback")
    async def auth_callback(request: Request):
        """Exchange the code, store user and roles in the session, redirect to /me."""
        params = dict(request.query_params)
        expected = request.session.pop(STATE_SESSION_KEY, None)
        if not expected or not secrets.compare_digest(expected.encode(), params.get("state", "").encode()):
            logger.warning("OAuth callback with missing or mismatched state")
            return _error_response(
                [{"kind": "csrf", "code": "csrf_attack", "message": "Cross-Site Request Forgery attack"}]
            )

        state = await provider.handle_callback(params, str(request.url_for("auth_callback")))
        request.state.login = state
        try:
            errors = provider.errors(state)
            if errors:
                return _error_response([e.to_dict() for e in errors])

            request.session["user"] = {"uid": provider.uid(state), **asdict(provider.info(state))}
            request.session["roles"] = compute_roles(
                assigned_app_role_ids(provider.extra(state).roles), role_map, role_inherits
            )
            request.session["roles_fetched_at"] = int(time.time())
            return RedirectResponse(url="/me")
        finally:
            request.state.login = provider.cleanup(state)

    @router.get("/me")
    async def me(request: Request):
        """Return current user and roles; redirect to /login if not authenticated."""
        if "user" not in request.session:
            return RedirectResponse(url="/login")
        return {
            "user": request.session["user"],
            "roles": request.session.get("roles", []),
            "roles_fetched_at": request.session.get("roles_fetched_at"),
        }

    @router.get("/logout")
    async def logout(request: Request):
        """Clear session and redirect to home."""
        request.session.clear()
        return RedirectResponse(url="/")

    return router
