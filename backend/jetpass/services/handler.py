"""Per-request JetPass authentication handler.

A handler is created for every request that reaches the middleware. It
owns the request's authentication properties and the cookies that must be
written to whatever response is finally sent.

Callback processing runs strictly in order and stops at the first failure::

    state validated -> token exchanged -> profile fetched -> identity built

Failures never escape :meth:`JetPassAuthenticationHandler.authenticate`;
they turn into a ticket without an identity.
"""

import asyncio
import inspect
import logging
import secrets
from datetime import timedelta
from typing import Any, Awaitable, Optional, TypeVar

import httpx
from starlette.datastructures import QueryParams
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from jetpass.core.exceptions import JetPassError, MalformedCallbackError, RequestAbortedError
from jetpass.core.security import (
    CORRELATION_PROPERTY,
    correlation_cookie_kwargs,
    correlation_cookie_name,
    expired_cookie_kwargs,
    generate_correlation_id,
)
from jetpass.options import JetPassAuthenticationOptions
from jetpass.provider import ApplyRedirectContext, AuthenticatedContext, ReturnEndpointContext
from jetpass.schemas.auth import AuthenticationProperties, AuthenticationTicket
from jetpass.services.backchannel import exchange_code, fetch_user
from jetpass.services.identity import build_identity, read_profile
from jetpass.services.redirect import add_query_string, build_authorization_url, callback_uri

logger = logging.getLogger(__name__)

T = TypeVar("T")

DISCONNECT_POLL_INTERVAL = 0.1  # Seconds


def _single_value(query: QueryParams, name: str) -> Optional[str]:
    """The parameter's value if it occurs exactly once, else None."""
    values = query.getlist(name)
    if len(values) != 1:
        return None
    return values[0]


class JetPassAuthenticationHandler:
    def __init__(
        self,
        options: JetPassAuthenticationOptions,
        http_client: httpx.AsyncClient,
        request: Request,
    ):
        self.options = options
        self.http_client = http_client
        self.request = request
        # Response.set_cookie arguments for the outgoing response
        self.response_cookies: list[dict[str, Any]] = []

    @property
    def correlation_cookie(self) -> str:
        return correlation_cookie_name(self.options.authentication_type)

    def _cookie_options(self) -> dict[str, Any]:
        return {
            "path": self.request.scope.get("root_path") or "/",
            "secure": self.request.url.scheme == "https",
        }

    # -----------------------------------------------------------------------
    # CSRF correlation
    # -----------------------------------------------------------------------

    def generate_correlation_id(self) -> str:
        correlation_id = generate_correlation_id()
        self.response_cookies.append(
            correlation_cookie_kwargs(
                self.correlation_cookie,
                correlation_id,
                max_age=self.options.state_lifetime,
                **self._cookie_options(),
            )
        )
        return correlation_id

    def validate_correlation_id(self, properties: AuthenticationProperties) -> bool:
        """Compare the correlation cookie with the id carried in the state.

        The cookie is deleted whenever it was presented, so a correlation id
        can be consumed only once.
        """
        expected = properties.pop(CORRELATION_PROPERTY)
        cookie = self.request.cookies.get(self.correlation_cookie)
        if not cookie:
            logger.warning(f"{self.correlation_cookie} cookie not found.")
            return False

        self.response_cookies.append(
            expired_cookie_kwargs(self.correlation_cookie, **self._cookie_options())
        )

        if not expected:
            logger.warning(f"{CORRELATION_PROPERTY} state property not found.")
            return False
        if not secrets.compare_digest(cookie.encode("utf-8"), expected.encode("utf-8")):
            logger.warning(f"{self.correlation_cookie} correlation cookie and state property mismatch.")
            return False
        return True

    # -----------------------------------------------------------------------
    # Challenge
    # -----------------------------------------------------------------------

    def apply_response_challenge(self, properties: AuthenticationProperties) -> ApplyRedirectContext:
        """Build the authorization redirect and hand it to the provider."""
        correlation_id = self.generate_correlation_id()
        authorization_url = build_authorization_url(
            self.request,
            self.options,
            self.options.state_data_format,
            properties,
            correlation_id,
        )
        logger.info(
            f"Challenge for {self.request.url.path}: redirecting to "
            f"{self.options.endpoints.authorization_endpoint}"
        )
        context = ApplyRedirectContext(
            request=self.request,
            options=self.options,
            properties=properties,
            redirect_uri=authorization_url,
        )
        self.options.provider.apply_redirect(context)
        return context

    # -----------------------------------------------------------------------
    # Callback
    # -----------------------------------------------------------------------

    async def authenticate(self) -> AuthenticationTicket:
        """Turn the callback request into a ticket.

        The ticket has no identity when authentication failed, and no
        properties when the state itself could not be recovered.
        """
        properties: Optional[AuthenticationProperties] = None
        try:
            code = _single_value(self.request.query_params, "code")
            state = _single_value(self.request.query_params, "state")

            properties = self.options.state_data_format.unprotect(state)
            if properties is None:
                logger.warning("The state parameter was missing or invalid.")
                return AuthenticationTicket(None, None)

            # OAuth2 10.12 CSRF
            if not self.validate_correlation_id(properties):
                return AuthenticationTicket(None, properties)

            if code is None:
                raise MalformedCallbackError("The callback did not carry exactly one code.")

            tokens = await exchange_code(
                self.http_client,
                self.options,
                code,
                callback_uri(self.request, self.options),
            )
            user = await self._until_disconnected(
                fetch_user(self.http_client, self.options, tokens.access_token)
            )

            profile = read_profile(user)
            context = AuthenticatedContext(
                request=self.request,
                user=user,
                profile=profile,
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
                expires_in=(
                    timedelta(seconds=tokens.expires_in) if tokens.expires_in is not None else None
                ),
            )
            context.identity = build_identity(profile, self.options.authentication_type)
            context.properties = properties
            await self.options.provider.authenticated(context)
            return AuthenticationTicket(context.identity, context.properties)

        except JetPassError as exc:
            logger.warning(f"Authentication failed: {exc}")
        except Exception:
            logger.exception("Authentication failed")
        return AuthenticationTicket(None, properties)

    async def invoke_reply_path(self) -> Optional[Response]:
        """Finish the callback: sign in and send the user back.

        Returns None when the request should continue down the pipeline.
        """
        ticket = await self.authenticate()
        if ticket.properties is None:
            logger.warning("Invalid return state, unable to redirect.")
            return Response(status_code=500)

        context = ReturnEndpointContext.from_ticket(self.request, ticket)
        context.sign_in_as_authentication_type = self.options.sign_in_as_authentication_type
        context.redirect_uri = ticket.properties.redirect_uri
        await self.options.provider.return_endpoint(context)

        if context.sign_in_as_authentication_type is not None and context.identity is not None:
            grant_identity = context.identity.with_authentication_type(
                context.sign_in_as_authentication_type
            )
            result = self.options.sign_in(self.request, grant_identity, context.properties)
            if inspect.isawaitable(result):
                await result

        if not context.is_request_completed and context.redirect_uri is not None:
            redirect_uri = context.redirect_uri
            if context.identity is None:
                # Tell the return target that sign-in failed
                redirect_uri = add_query_string(redirect_uri, {"error": "access_denied"})
            context.request_completed(RedirectResponse(redirect_uri, status_code=302))

        if not context.is_request_completed:
            return None
        return context.response if context.response is not None else Response()

    async def _until_disconnected(self, awaitable: Awaitable[T]) -> T:
        """Await a backchannel call, abandoning it if the client goes away."""
        call = asyncio.ensure_future(awaitable)
        watcher = asyncio.ensure_future(self._wait_for_disconnect())
        try:
            await asyncio.wait({call, watcher}, return_when=asyncio.FIRST_COMPLETED)
            if not call.done():
                raise RequestAbortedError("The request was aborted during a backchannel call.")
            return call.result()
        finally:
            watcher.cancel()
            call.cancel()

    async def _wait_for_disconnect(self) -> None:
        while not await self.request.is_disconnected():
            await asyncio.sleep(DISCONNECT_POLL_INTERVAL)
