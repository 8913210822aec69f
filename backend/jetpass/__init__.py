"""JetPass (JetBrains Hub) OAuth 2.0 sign-in for Starlette and FastAPI."""

from jetpass.core.exceptions import JetPassError, MissingConfigurationError
from jetpass.extensions import use_jetpass_authentication
from jetpass.middleware import JetPassAuthenticationMiddleware, challenge
from jetpass.options import JetPassAuthenticationOptions, JetPassEndpoints
from jetpass.provider import (
    ApplyRedirectContext,
    AuthenticatedContext,
    BaseAuthenticationProvider,
    JetPassAuthenticationProvider,
    ReturnEndpointContext,
)
from jetpass.schemas.auth import (
    AuthenticationProperties,
    AuthenticationTicket,
    Claim,
    ClaimsIdentity,
    ClaimTypes,
)

__all__ = [
    "ApplyRedirectContext",
    "AuthenticatedContext",
    "AuthenticationProperties",
    "AuthenticationTicket",
    "BaseAuthenticationProvider",
    "Claim",
    "ClaimTypes",
    "ClaimsIdentity",
    "JetPassAuthenticationMiddleware",
    "JetPassAuthenticationOptions",
    "JetPassAuthenticationProvider",
    "JetPassEndpoints",
    "JetPassError",
    "MissingConfigurationError",
    "ReturnEndpointContext",
    "challenge",
    "use_jetpass_authentication",
]
