"""Construction of the authorization redirect."""

from typing import Mapping
from urllib.parse import quote, urlencode

from starlette.requests import HTTPConnection

from jetpass.core.security import CORRELATION_PROPERTY, SecureDataFormat
from jetpass.options import USER_INFO_SCOPE, JetPassAuthenticationOptions
from jetpass.schemas.auth import AuthenticationProperties

# Moved from the properties into the query string when present
FORWARDED_PARAMETERS = ("access_type", "approval_prompt", "login_hint")


def add_query_string(uri: str, params: Mapping[str, str]) -> str:
    """Append percent-encoded parameters to a URI, keeping any fragment last."""
    if not params:
        return uri
    fragment = ""
    anchor = uri.find("#")
    if anchor >= 0:
        uri, fragment = uri[:anchor], uri[anchor:]
    separator = "&" if "?" in uri else "?"
    return uri + separator + urlencode(dict(params), quote_via=quote) + fragment


def base_uri(conn: HTTPConnection) -> str:
    """scheme://host plus the application's mount prefix."""
    return f"{conn.url.scheme}://{conn.url.netloc}{conn.scope.get('root_path', '')}"


def callback_uri(conn: HTTPConnection, options: JetPassAuthenticationOptions) -> str:
    """Absolute URL of the callback endpoint.

    Sent as ``redirect_uri`` with both the authorization request and the
    token request, so both must compute it identically.
    """
    return base_uri(conn) + options.callback_path


def build_scope(options: JetPassAuthenticationOptions, properties: AuthenticationProperties) -> str:
    """Space-joined scopes, always ending with the user-info scope.

    A ``scope`` entry in the properties replaces the configured scopes for
    this challenge. The user-info scope is appended even when it was
    already requested.
    """
    requested = properties.pop("scope")
    scopes = requested.split() if requested is not None else list(options.scope)
    return " ".join([*scopes, USER_INFO_SCOPE])


def build_authorization_url(
    conn: HTTPConnection,
    options: JetPassAuthenticationOptions,
    state_data_format: SecureDataFormat,
    properties: AuthenticationProperties,
    correlation_id: str,
) -> str:
    """Assemble the authorization endpoint URL for a challenge.

    Mutates ``properties``: defaults ``redirect_uri`` to the current URL,
    stores the correlation id and removes the keys that travel in the query
    string instead of the state.
    """
    if not properties.redirect_uri:
        properties.redirect_uri = str(conn.url)

    properties[CORRELATION_PROPERTY] = correlation_id

    params = {
        "response_type": "code",
        "client_id": options.client_id or "",
        "redirect_uri": callback_uri(conn, options),
        "scope": build_scope(options, properties),
    }
    for name in FORWARDED_PARAMETERS:
        value = properties.pop(name)
        if value is not None:
            params[name] = value

    params["state"] = state_data_format.protect(properties)
    return add_query_string(options.endpoints.authorization_endpoint, params)
