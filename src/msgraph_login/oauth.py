"""
Microsoft identity platform OAuth2 client and Graph fetcher.

Uses Authlib for the authorization-code exchange and httpx for Microsoft Graph.
Client id/secret/tenant come from Settings unless the strategy passes a complete
override set in client_options (see config.token_client_options).
"""

import logging
from typing import Any, Mapping, Optional, Sequence, Tuple

import httpx
from authlib.integrations.httpx_client import AsyncOAuth2Client, OAuthError
from authlib.oauth2.rfc6749.parameters import prepare_grant_uri

from msgraph_login.config import Settings
from msgraph_login.errors import OAuth2Error
from msgraph_login.models import GraphResponse, TokenResult

logger = logging.getLogger(__name__)

AUTHORITY = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0"
AUTHORIZE_URL = AUTHORITY + "/authorize"
TOKEN_URL = AUTHORITY + "/token"


def decode_body(response: httpx.Response) -> Any:
    """JSON for JSON content types, raw bytes otherwise (e.g. photo $value)."""
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.content
    return response.content


class MicrosoftOAuth:
    """OAuth client (authorize URL + token exchange) and Graph fetcher for Microsoft Entra."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 20.0,
    ):
        """transport lets callers (and tests) swap the httpx transport."""
        self.settings = settings
        self._transport = transport
        self._timeout = timeout

    def client_config(self, client_options: Mapping[str, Any]) -> dict:
        """Merge client options over Settings and expand the tenant into the endpoints."""
        tenant_id = client_options.get("tenant_id") or self.settings.tenant_id
        return {
            "client_id": client_options.get("client_id") or self.settings.client_id,
            "client_secret": client_options.get("client_secret") or self.settings.client_secret,
            "redirect_uri": client_options.get("redirect_uri"),
            "authorize_url": client_options.get("authorize_url")
            or AUTHORIZE_URL.format(tenant_id=tenant_id),
            "token_url": client_options.get("token_url") or TOKEN_URL.format(tenant_id=tenant_id),
            "request_opts": dict(client_options.get("request_opts") or {}),
        }

    def authorize_url(self, params: Sequence[Tuple[str, str]], client_options: Mapping[str, Any]) -> str:
        config = self.client_config(client_options)
        return prepare_grant_uri(
            config["authorize_url"],
            client_id=config["client_id"],
            response_type="code",
            redirect_uri=config["redirect_uri"],
            **dict(params),
        )

    async def get_token(self, code: str, client_options: Mapping[str, Any]) -> TokenResult:
        """
        Exchange an authorization code at the token endpoint.

        A provider error response comes back as a TokenResult without an
        access token, with error/error_description in other_params. Connection
        failures, 5xx answers and undecodable bodies raise OAuth2Error.
        """
        config = self.client_config(client_options)
        request_opts = {"timeout": self._timeout, **config["request_opts"]}
        if self._transport is not None:
            request_opts["transport"] = self._transport

        logger.info(
            f"Token exchange attempt | code_hash={abs(hash(code))} "
            f"client_id={config['client_id']} redirect_uri={config['redirect_uri']}"
        )
        async with AsyncOAuth2Client(
            client_id=config["client_id"],
            client_secret=config["client_secret"],
            token_endpoint_auth_method="client_secret_post",
            redirect_uri=config["redirect_uri"],
            **request_opts,
        ) as client:
            try:
                token = await client.fetch_token(
                    config["token_url"], code=code, grant_type="authorization_code"
                )
            except OAuthError as e:
                logger.warning(f"Token exchange rejected: {e.error}")
                return TokenResult(
                    access_token=None,
                    other_params={"error": e.error, "error_description": e.description},
                )
            except httpx.HTTPError as e:
                logger.error(f"Token exchange request failed: {e}")
                raise OAuth2Error(str(e) or type(e).__name__) from e
            except ValueError as e:
                logger.error(f"Token exchange returned an undecodable body: {e}")
                raise OAuth2Error(f"invalid token response: {e}") from e

        logger.info(f"Token exchange SUCCESS | code_hash={abs(hash(code))}")
        return TokenResult.from_response(dict(token))

    async def get(self, token: TokenResult, url: str) -> GraphResponse:
        """Bearer-authenticated GET against Microsoft Graph."""
        headers = {"Authorization": f"Bearer {token.access_token}"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                r = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Graph request failed | url={url} error={e}")
            raise OAuth2Error(str(e) or type(e).__name__) from e
        return GraphResponse(status_code=r.status_code, body=decode_body(r))
