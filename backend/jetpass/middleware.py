"""ASGI middleware that plugs the JetPass flow into a Starlette/FastAPI app.

Usage::

    app.add_middleware(JetPassAuthenticationMiddleware, options=options)
    app.add_middleware(SessionMiddleware, secret_key=...)

Routes ask for authentication by returning :func:`challenge` (or raising a
401 after calling it); the middleware turns that 401 into a redirect to the
authorization endpoint.
"""

import logging
from typing import Optional

from starlette.datastructures import MutableHeaders
from starlette.requests import HTTPConnection, Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from jetpass.core.security import PropertiesDataFormat, generate_secret_key
from jetpass.options import (
    DEFAULT_AUTHENTICATION_TYPE,
    DEFAULT_SIGN_IN_AS_AUTHENTICATION_TYPE,
    JetPassAuthenticationOptions,
)
from jetpass.provider import JetPassAuthenticationProvider
from jetpass.schemas.auth import AuthenticationProperties
from jetpass.services.backchannel import create_backchannel_client
from jetpass.services.handler import JetPassAuthenticationHandler
from jetpass.session import session_sign_in

logger = logging.getLogger(__name__)

CHALLENGES_SCOPE_KEY = "jetpass.challenges"


def challenge(
    conn: HTTPConnection,
    properties: Optional[AuthenticationProperties] = None,
    authentication_type: str = DEFAULT_AUTHENTICATION_TYPE,
) -> Response:
    """Stage a sign-in challenge and return the 401 that triggers it."""
    challenges = conn.scope.setdefault(CHALLENGES_SCOPE_KEY, {})
    challenges[authentication_type] = properties or AuthenticationProperties()
    return Response(status_code=401)


def lookup_challenge(scope: Scope, authentication_type: str) -> Optional[AuthenticationProperties]:
    return scope.get(CHALLENGES_SCOPE_KEY, {}).get(authentication_type)


def resolve_options(options: JetPassAuthenticationOptions) -> JetPassAuthenticationOptions:
    """Validate options and fill in the default collaborators."""
    options.ensure_valid()
    updates = {}
    if options.provider is None:
        updates["provider"] = JetPassAuthenticationProvider()
    if options.state_data_format is None:
        if options.state_secret_key is not None:
            secret = options.state_secret_key.get_secret_value()
        else:
            logger.warning(
                "No state_secret_key configured; using a per-process key. Pending sign-ins "
                "will not survive a restart or move between workers."
            )
            secret = generate_secret_key()
        updates["state_data_format"] = PropertiesDataFormat(
            secret,
            purpose=f"jetpass:{options.authentication_type}:v1",
            lifetime=options.state_lifetime,
        )
    if not options.sign_in_as_authentication_type:
        updates["sign_in_as_authentication_type"] = DEFAULT_SIGN_IN_AS_AUTHENTICATION_TYPE
    if options.sign_in is None:
        updates["sign_in"] = session_sign_in
    return options.model_copy(update=updates)


class JetPassAuthenticationMiddleware:
    def __init__(self, app: ASGIApp, options: JetPassAuthenticationOptions) -> None:
        self.app = app
        self.options = resolve_options(options)
        self.http_client = create_backchannel_client(self.options)

    def create_handler(self, request: Request) -> JetPassAuthenticationHandler:
        return JetPassAuthenticationHandler(self.options, self.http_client, request)

    def is_callback(self, scope: Scope) -> bool:
        path = scope["path"]
        root_path = scope.get("root_path", "")
        if root_path and path.startswith(root_path):
            path = path[len(root_path):]
        return path == self.options.callback_path

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        handler = self.create_handler(request)

        if self.is_callback(scope):
            try:
                response = await handler.invoke_reply_path()
            except Exception:
                logger.exception("Unhandled error while completing the JetPass callback")
                response = Response(status_code=500)
            if response is not None:
                self._attach_cookies(response, handler)
                await response(scope, receive, send)
                return
            # Passed on to the app; its response still carries the cookie deletion

        replaced = False

        async def send_wrapper(message: Message) -> None:
            nonlocal replaced
            if message["type"] == "http.response.start":
                properties = None
                if message["status"] == 401:
                    properties = lookup_challenge(scope, self.options.authentication_type)
                if properties is not None:
                    context = handler.apply_response_challenge(properties)
                    if context.response is not None:
                        replaced = True
                        self._attach_cookies(context.response, handler)
                        await context.response(scope, receive, send)
                        return
                if handler.response_cookies:
                    headers = MutableHeaders(scope=message)
                    for value in self._cookie_headers(handler):
                        headers.append("set-cookie", value)
            elif replaced:
                # Drop the body of the response that was replaced
                return
            await send(message)

        await self.app(scope, receive, send_wrapper)

    @staticmethod
    def _attach_cookies(response: Response, handler: JetPassAuthenticationHandler) -> None:
        for cookie in handler.response_cookies:
            response.set_cookie(**cookie)

    @classmethod
    def _cookie_headers(cls, handler: JetPassAuthenticationHandler) -> list[str]:
        """Render the handler's cookies for a response sent by the app itself."""
        carrier = Response()
        cls._attach_cookies(carrier, handler)
        return carrier.headers.getlist("set-cookie")

    async def aclose(self) -> None:
        await self.http_client.aclose()
