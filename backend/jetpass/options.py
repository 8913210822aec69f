"""Options for the JetPass authentication middleware.

``Settings`` covers what can come from the environment; the options object
additionally carries the runtime collaborators (provider, state format,
TLS context, transport, sign-in callable).
"""

import ssl
from typing import Any, Callable, Optional
from urllib.parse import urljoin

import httpx
from pydantic import BaseModel, ConfigDict, Field, SecretStr

from jetpass.config import Settings
from jetpass.core.exceptions import BackchannelConfigurationError, MissingConfigurationError
from jetpass.core.security import SecureDataFormat
from jetpass.provider import BaseAuthenticationProvider

DEFAULT_AUTHENTICATION_TYPE = "JetPass"
DEFAULT_HUB_URL = "https://hub.jetbrains.com"
DEFAULT_SIGN_IN_AS_AUTHENTICATION_TYPE = "session"

# Scope of the hub's own user service; required to read /rest/users/me
USER_INFO_SCOPE = "0-0-0-0-0"


class JetPassEndpoints(BaseModel):
    authorization_endpoint: str
    token_endpoint: str
    user_info_endpoint: str

    @classmethod
    def from_root(cls, root_uri: str) -> "JetPassEndpoints":
        """Derive the three endpoints from a hub root URL."""
        return cls(
            authorization_endpoint=urljoin(root_uri, "/rest/oauth2/auth"),
            token_endpoint=urljoin(root_uri, "/rest/oauth2/token"),
            user_info_endpoint=urljoin(root_uri, "/rest/users/me"),
        )


class JetPassAuthenticationOptions(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    authentication_type: str = DEFAULT_AUTHENTICATION_TYPE
    client_id: Optional[str] = None
    client_secret: Optional[SecretStr] = None
    endpoints: JetPassEndpoints = Field(
        default_factory=lambda: JetPassEndpoints.from_root(DEFAULT_HUB_URL)
    )
    callback_path: str = "/JetPass"
    scope: list[str] = Field(default_factory=list)

    # Backchannel
    backchannel_timeout: float = 60.0  # Seconds
    backchannel_certificate_validator: Optional[ssl.SSLContext] = None
    backchannel_transport: Optional[httpx.AsyncBaseTransport] = None

    # State and correlation
    state_data_format: Optional[SecureDataFormat] = None
    state_secret_key: Optional[SecretStr] = None
    state_lifetime: int = 15 * 60  # Seconds

    # Sign-in
    sign_in_as_authentication_type: Optional[str] = None
    sign_in: Optional[Callable[..., Any]] = None
    provider: Optional[BaseAuthenticationProvider] = None

    def ensure_valid(self) -> None:
        """Raise if the options cannot work. Called at startup."""
        if not self.client_id or not self.client_id.strip():
            raise MissingConfigurationError("client_id")
        if self.client_secret is None or not self.client_secret.get_secret_value().strip():
            raise MissingConfigurationError("client_secret")
        if (
            self.backchannel_certificate_validator is not None
            and self.backchannel_transport is not None
        ):
            # A custom transport owns its TLS setup; the validator would be ignored
            raise BackchannelConfigurationError(
                "backchannel_certificate_validator cannot be combined with a custom "
                "backchannel_transport; configure TLS on the transport instead."
            )


def options_from_settings(settings: Settings, **overrides: Any) -> JetPassAuthenticationOptions:
    """Build middleware options from application settings."""
    endpoints = JetPassEndpoints.from_root(settings.hub_url)
    if settings.authorization_endpoint:
        endpoints.authorization_endpoint = settings.authorization_endpoint
    if settings.token_endpoint:
        endpoints.token_endpoint = settings.token_endpoint
    if settings.user_info_endpoint:
        endpoints.user_info_endpoint = settings.user_info_endpoint

    values: dict[str, Any] = {
        "client_id": settings.client_id,
        "client_secret": settings.client_secret,
        "endpoints": endpoints,
        "callback_path": settings.callback_path,
        "scope": list(settings.scope),
        "backchannel_timeout": settings.backchannel_timeout,
        "state_secret_key": settings.secret_key,
        "state_lifetime": settings.state_lifetime,
        "sign_in_as_authentication_type": settings.sign_in_as_authentication_type,
    }
    values.update(overrides)
    return JetPassAuthenticationOptions(**values)
