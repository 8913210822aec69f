"""Extension points invoked at each stage of the JetPass flow.

Subclass :class:`JetPassAuthenticationProvider` and override the stages you
care about, then pass an instance as ``options.provider``::

    class AuditingProvider(JetPassAuthenticationProvider):
        async def authenticated(self, context):
            context.identity.add_claim(Claim(type="urn:jetpass:hub", value="main"))
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Optional

from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from jetpass.schemas.auth import (
    AuthenticationProperties,
    AuthenticationTicket,
    ClaimsIdentity,
    UserProfile,
)

if TYPE_CHECKING:
    from jetpass.options import JetPassAuthenticationOptions


@dataclass
class AuthenticatedContext:
    """Everything known about the user after a successful backchannel round.

    ``identity`` and ``properties`` are the objects that end up in the
    ticket; a provider may mutate or replace them.
    """

    request: Request
    user: dict[str, Any]
    profile: UserProfile
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[timedelta] = None
    identity: Optional[ClaimsIdentity] = None
    properties: Optional[AuthenticationProperties] = None

    @property
    def id(self) -> Optional[str]:
        return self.profile.id

    @property
    def name(self) -> Optional[str]:
        return self.profile.display_name

    @property
    def emails(self) -> list[str]:
        return self.profile.emails


@dataclass
class ReturnEndpointContext:
    """State of the callback request once the ticket is known."""

    request: Request
    identity: Optional[ClaimsIdentity]
    properties: AuthenticationProperties
    sign_in_as_authentication_type: Optional[str] = None
    redirect_uri: Optional[str] = None
    response: Optional[Response] = None
    is_request_completed: bool = field(default=False, init=False)

    @classmethod
    def from_ticket(cls, request: Request, ticket: AuthenticationTicket) -> ReturnEndpointContext:
        return cls(request=request, identity=ticket.identity, properties=ticket.properties)

    def request_completed(self, response: Optional[Response] = None) -> None:
        """Mark the request handled; ``response`` is what gets sent back."""
        if response is not None:
            self.response = response
        self.is_request_completed = True


@dataclass
class ApplyRedirectContext:
    """The assembled authorization redirect, before it is sent."""

    request: Request
    options: JetPassAuthenticationOptions
    properties: AuthenticationProperties
    redirect_uri: str
    response: Optional[Response] = None


class BaseAuthenticationProvider(ABC):
    @abstractmethod
    async def authenticated(self, context: AuthenticatedContext) -> None:
        """Called once the identity is built, before the ticket is issued."""

    @abstractmethod
    async def return_endpoint(self, context: ReturnEndpointContext) -> None:
        """Called before the user is signed in and sent back."""

    @abstractmethod
    def apply_redirect(self, context: ApplyRedirectContext) -> None:
        """Called with the authorization URL the user should be sent to."""


class JetPassAuthenticationProvider(BaseAuthenticationProvider):
    """Default provider: no-op hooks and a plain 302 to the provider."""

    async def authenticated(self, context: AuthenticatedContext) -> None:
        return None

    async def return_endpoint(self, context: ReturnEndpointContext) -> None:
        return None

    def apply_redirect(self, context: ApplyRedirectContext) -> None:
        context.response = RedirectResponse(context.redirect_uri, status_code=302)
