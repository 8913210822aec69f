"""Server-to-server calls to the JetPass token and user-info endpoints."""

import json
import logging
from typing import Any, Optional

import httpx

from jetpass.core.exceptions import (
    BackchannelResponseTooLarge,
    ProfileFetchError,
    TokenExchangeError,
)
from jetpass.options import JetPassAuthenticationOptions
from jetpass.schemas.auth import TokenResponse

logger = logging.getLogger(__name__)

MAX_RESPONSE_CONTENT_BUFFER_SIZE = 10 * 1024 * 1024  # 10 MB


def create_backchannel_client(options: JetPassAuthenticationOptions) -> httpx.AsyncClient:
    """Create the pooled client shared by every request of one middleware."""
    kwargs: dict[str, Any] = {"timeout": options.backchannel_timeout}
    if options.backchannel_transport is not None:
        kwargs["transport"] = options.backchannel_transport
    elif options.backchannel_certificate_validator is not None:
        kwargs["verify"] = options.backchannel_certificate_validator
    return httpx.AsyncClient(**kwargs)


async def _send(
    client: httpx.AsyncClient,
    request: httpx.Request,
    auth: Optional[httpx.Auth] = None,
) -> tuple[httpx.Response, bytes]:
    """Send a request and buffer its body, refusing oversized responses."""
    response = await client.send(request, auth=auth, stream=True)
    try:
        body = bytearray()
        async for chunk in response.aiter_bytes():
            body.extend(chunk)
            if len(body) > MAX_RESPONSE_CONTENT_BUFFER_SIZE:
                raise BackchannelResponseTooLarge(
                    f"Response from {request.url} exceeds {MAX_RESPONSE_CONTENT_BUFFER_SIZE} bytes"
                )
    finally:
        await response.aclose()
    return response, bytes(body)


async def exchange_code(
    client: httpx.AsyncClient,
    options: JetPassAuthenticationOptions,
    code: str,
    redirect_uri: str,
) -> TokenResponse:
    """Exchange an authorization code for tokens.

    ``redirect_uri`` must be the exact callback URL sent with the
    authorization request; the token endpoint compares the two.

    Raises:
        TokenExchangeError: On a non-2xx status or when no access token
            is present in the response.
    """
    request = client.build_request(
        "POST",
        options.endpoints.token_endpoint,
        data={
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        },
        headers={"Accept": "application/json"},
    )
    auth = httpx.BasicAuth(options.client_id or "", options.client_secret.get_secret_value())
    response, body = await _send(client, request, auth)
    if not response.is_success:
        raise TokenExchangeError(
            f"Token endpoint returned HTTP {response.status_code}", response.status_code
        )

    payload = json.loads(body)
    if not isinstance(payload, dict):
        raise TokenExchangeError("Token endpoint returned an unexpected document", response.status_code)
    tokens = TokenResponse.model_validate(payload)
    if not tokens.access_token or not tokens.access_token.strip():
        raise TokenExchangeError("Access token was not found", response.status_code)
    return tokens


async def fetch_user(
    client: httpx.AsyncClient,
    options: JetPassAuthenticationOptions,
    access_token: str,
) -> dict[str, Any]:
    """Fetch the authenticated user's document from the user-info endpoint."""
    request = client.build_request(
        "GET",
        options.endpoints.user_info_endpoint,
        headers={
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        },
    )
    response, body = await _send(client, request)
    if not response.is_success:
        raise ProfileFetchError(
            f"User-info endpoint returned HTTP {response.status_code}", response.status_code
        )

    user = json.loads(body)
    if not isinstance(user, dict):
        raise ProfileFetchError("User-info endpoint returned an unexpected document", response.status_code)
    return user
