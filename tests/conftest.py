from __future__ import annotations

from typing import Any

import pytest

from msgraph_login.config import Settings
from msgraph_login.enrichment import PHOTO_METADATA_URL, PHOTO_URL, USER_URL
from msgraph_login.errors import OAuth2Error
from msgraph_login.microsoft import MicrosoftStrategy
from msgraph_login.models import GraphResponse, TokenResult

IMAGE_NOT_FOUND = GraphResponse(
    404, {"error": {"code": "ImageNotFound", "message": "The photo wasn't found."}}
)


class FakeOAuth:
    """In-memory stand-in for MicrosoftOAuth (OAuth client + Graph fetcher)."""

    def __init__(self, token: Any = None, responses: dict | None = None):
        self.token = token
        self.responses = dict(responses or {})
        self.token_calls: list[tuple[str, dict]] = []
        self.get_calls: list[str] = []
        self.authorize_calls: list[tuple[list, dict]] = []

    def authorize_url(self, params, client_options):
        self.authorize_calls.append((list(params), dict(client_options)))
        return "https://login.example/authorize"

    async def get_token(self, code, client_options):
        self.token_calls.append((code, dict(client_options)))
        if isinstance(self.token, Exception):
            raise self.token
        return self.token

    async def get(self, token, url):
        self.get_calls.append(url)
        response = self.responses.get(url)
        if response is None:
            raise OAuth2Error(f"no route for {url}")
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture()
def settings():
    return Settings(client_id="cid", client_secret="secret")


@pytest.fixture()
def token():
    return TokenResult(
        access_token="tok",
        refresh_token="rtok",
        token_type="Bearer",
        expires_at=1_900_000_000,
        other_params={"scope": "openid email"},
    )


@pytest.fixture()
def user():
    return {"id": "u1", "displayName": "Jane Doe", "mail": "jane@x.com"}


@pytest.fixture()
def graph_ok(user):
    """Graph routes for a user without a profile photo."""
    return {
        USER_URL: GraphResponse(200, user),
        PHOTO_URL: IMAGE_NOT_FOUND,
        PHOTO_METADATA_URL: IMAGE_NOT_FOUND,
    }


@pytest.fixture()
def make_strategy(settings):
    def _make(fake: FakeOAuth, settings: Settings = settings, options: dict | None = None):
        return MicrosoftStrategy(fake, settings, options=options)

    return _make
