"""Callback state machine: code check, token exchange, enrichment, normalization."""
from __future__ import annotations

import pytest
from conftest import FakeOAuth

from msgraph_login.config import Settings
from msgraph_login.enrichment import PHOTO_METADATA_URL, PHOTO_URL, USER_URL, roles_url
from msgraph_login.errors import ErrorKind, NormalizedError, OAuth2Error
from msgraph_login.models import EnrichmentContext, GraphResponse, TokenResult

CALLBACK = "https://app.example/auth/callback"


@pytest.mark.asyncio
async def test_end_to_end_login_without_roles_or_photo(make_strategy, token, graph_ok):
    fake = FakeOAuth(token=token, responses=graph_ok)
    strategy = make_strategy(fake)

    state = await strategy.handle_callback({"code": "abc", "state": "s"}, CALLBACK)

    assert strategy.errors(state) == []
    assert strategy.uid(state) == "u1"
    info = strategy.info(state)
    assert info.name == "Jane Doe"
    assert info.email == "jane@x.com"
    assert strategy.credentials(state).scopes == ["openid", "email"]
    raw = strategy.extra(state)
    assert raw.roles is None
    assert raw.photo is None
    assert raw.photo_metadata is None
    assert fake.token_calls == [("abc", {"redirect_uri": CALLBACK})]
    assert fake.get_calls == [USER_URL, PHOTO_URL, PHOTO_METADATA_URL]


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [{}, {"state": "s"}, {"code": ""}])
async def test_missing_code_short_circuits_before_any_network_call(make_strategy, params):
    fake = FakeOAuth()
    strategy = make_strategy(fake)

    state = await strategy.handle_callback(params, CALLBACK)

    assert strategy.errors(state) == [
        NormalizedError(ErrorKind.MISSING_CODE, "missing_code", "No code received")
    ]
    assert fake.token_calls == []
    assert fake.get_calls == []


@pytest.mark.asyncio
async def test_token_without_access_token_is_provider_rejected(make_strategy):
    rejected = TokenResult(
        access_token=None,
        other_params={"error": "invalid_grant", "error_description": "AADSTS70008: code expired"},
    )
    fake = FakeOAuth(token=rejected)
    strategy = make_strategy(fake)

    state = await strategy.handle_callback({"code": "abc"}, CALLBACK)

    assert strategy.errors(state) == [
        NormalizedError(ErrorKind.PROVIDER_REJECTED, "invalid_grant", "AADSTS70008: code expired")
    ]
    assert fake.get_calls == []
    assert state.token is None


@pytest.mark.asyncio
async def test_transport_failure_during_exchange_is_caught(make_strategy):
    fake = FakeOAuth(token=OAuth2Error("connection refused"))
    strategy = make_strategy(fake)

    state = await strategy.handle_callback({"code": "abc"}, CALLBACK)

    assert strategy.errors(state) == [
        NormalizedError(ErrorKind.TRANSPORT_ERROR, "OAuth2", "connection refused")
    ]
    assert fake.get_calls == []


@pytest.mark.asyncio
async def test_user_fetch_api_error_stops_remaining_steps(make_strategy, token):
    settings = Settings(client_id="cid", client_secret="secret", application_id="app-1")
    fake = FakeOAuth(
        token=token,
        responses={
            USER_URL: GraphResponse(
                403, {"error": {"code": "Authorization_RequestDenied", "message": "Insufficient privileges"}}
            )
        },
    )
    strategy = make_strategy(fake, settings=settings)

    state = await strategy.handle_callback({"code": "abc"}, CALLBACK)

    assert strategy.errors(state) == [
        NormalizedError(ErrorKind.API_ERROR, "Authorization_RequestDenied", "Insufficient privileges")
    ]
    assert fake.get_calls == [USER_URL]
    assert state.enrichment == EnrichmentContext()


@pytest.mark.asyncio
async def test_roles_fetched_with_configured_application_id(make_strategy, token, graph_ok):
    settings = Settings(client_id="cid", client_secret="secret", application_id="app-1")
    assignments = {"value": [{"appRoleId": "role-1", "resourceId": "app-1"}]}
    url = roles_url("u1", "app-1")
    fake = FakeOAuth(token=token, responses={**graph_ok, url: GraphResponse(200, assignments)})
    strategy = make_strategy(fake, settings=settings)

    state = await strategy.handle_callback({"code": "abc"}, CALLBACK)

    assert strategy.errors(state) == []
    assert url == (
        "https://graph.microsoft.com/v1.0/users/u1/appRoleAssignments"
        "?$filter=resourceId%20eq%20app-1"
    )
    assert fake.get_calls == [USER_URL, url, PHOTO_URL, PHOTO_METADATA_URL]
    assert strategy.extra(state).roles == assignments


@pytest.mark.asyncio
async def test_photo_and_metadata_are_kept(make_strategy, token, user):
    metadata = {"id": "240X240", "height": 240, "width": 240}
    fake = FakeOAuth(
        token=token,
        responses={
            USER_URL: GraphResponse(200, user),
            PHOTO_URL: GraphResponse(200, b"\xff\xd8jpeg"),
            PHOTO_METADATA_URL: GraphResponse(200, metadata),
        },
    )
    strategy = make_strategy(fake)

    state = await strategy.handle_callback({"code": "abc"}, CALLBACK)

    raw = strategy.extra(state)
    assert raw.photo == b"\xff\xd8jpeg"
    assert raw.photo_metadata == metadata
    assert raw.token is token


@pytest.mark.asyncio
async def test_unauthorized_photo_fetch_is_reported(make_strategy, token, user):
    fake = FakeOAuth(
        token=token,
        responses={USER_URL: GraphResponse(200, user), PHOTO_URL: GraphResponse(401, {})},
    )
    strategy = make_strategy(fake)

    state = await strategy.handle_callback({"code": "abc"}, CALLBACK)

    assert strategy.errors(state) == [NormalizedError(ErrorKind.UNAUTHORIZED, "token", "unauthorized")]
    assert PHOTO_METADATA_URL not in fake.get_calls
    # Data gathered before the failure stays available to the host
    assert strategy.extra(state).user == user


@pytest.mark.asyncio
async def test_client_overrides_are_passed_only_when_complete(make_strategy, token, graph_ok):
    overrides = {
        "tenant_id": "contoso",
        "client_id": "other",
        "client_secret": "other-secret",
        "authorize_url": "https://login.example/authorize",
        "token_url": "https://login.example/token",
        "request_opts": {"timeout": 5},
    }
    fake = FakeOAuth(token=token, responses=graph_ok)
    strategy = make_strategy(fake, options=overrides)

    await strategy.handle_callback({"code": "abc"}, CALLBACK)
    await strategy.handle_callback({"code": "def"}, CALLBACK, options={"tenant_id": None})

    assert fake.token_calls[0] == ("abc", {**overrides, "redirect_uri": CALLBACK})
    assert fake.token_calls[1] == ("def", {"redirect_uri": CALLBACK})


@pytest.mark.asyncio
async def test_cleanup_clears_token_and_profile_data(make_strategy, token, graph_ok):
    strategy = make_strategy(FakeOAuth(token=token, responses=graph_ok))
    state = await strategy.handle_callback({"code": "abc"}, CALLBACK)

    cleaned = strategy.cleanup(state)

    assert cleaned.token is None
    assert cleaned.enrichment == EnrichmentContext()
    assert strategy.uid(cleaned) is None
    # The original state is untouched
    assert strategy.uid(state) == "u1"


@pytest.mark.asyncio
async def test_uid_field_option(make_strategy, token, graph_ok):
    strategy = make_strategy(FakeOAuth(token=token, responses=graph_ok), options={"uid_field": "mail"})
    state = await strategy.handle_callback({"code": "abc"}, CALLBACK)
    assert strategy.uid(state) == "jane@x.com"


def test_handle_request_builds_params_and_client_options(make_strategy):
    fake = FakeOAuth()
    strategy = make_strategy(fake, options={"prompt": "select_account", "extra_scopes": "Calendars.Read"})

    url = strategy.handle_request({"lc": "1033"}, CALLBACK, "xyz")

    assert url == "https://login.example/authorize"
    params, client_options = fake.authorize_calls[0]
    assert params == [
        ("scope", "https://graph.microsoft.com/user.read openid email offline_access Calendars.Read"),
        ("prompt", "select_account"),
        ("state", "xyz"),
        ("lc", "1033"),
    ]
    assert client_options == {"redirect_uri": CALLBACK}



def test_handle_request_passes_resolved_client_overrides(make_strategy):
    overrides = {
        "tenant_id": "contoso",
        "client_id": "other",
        "client_secret": "other-secret",
        "authorize_url": "https://login.example/authorize",
        "token_url": "https://login.example/token",
        "request_opts": {"timeout": 5},
    }
    fake = FakeOAuth()
    strategy = make_strategy(fake, options=overrides)

    strategy.handle_request({"client_secret": "evil"}, CALLBACK, "xyz")

    _, client_options = fake.authorize_calls[0]
    assert client_options == {**overrides, "redirect_uri": CALLBACK}


@pytest.mark.asyncio
async def test_non_json_user_body_is_reported_not_raised(make_strategy, token):
    fake = FakeOAuth(token=token, responses={USER_URL: GraphResponse(200, b"<html>oops</html>")})
    settings = Settings(client_id="cid", client_secret="secret", application_id="app-1")
    strategy = make_strategy(fake, settings=settings)

    state = await strategy.handle_callback({"code": "abc"}, CALLBACK)

    assert strategy.errors(state) == [
        NormalizedError(ErrorKind.TRANSPORT_ERROR, "OAuth2", "unexpected response body for user")
    ]
    assert fake.get_calls == [USER_URL]
    assert strategy.uid(state) is None
