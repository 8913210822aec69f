"""Security utilities: state protection and the CSRF correlation cookie."""

import logging
import secrets
from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta
from typing import Any, Optional

import jwt

from jetpass.schemas.auth import AuthenticationProperties

logger = logging.getLogger(__name__)

# Reserved properties key holding the correlation id
CORRELATION_PROPERTY = ".xsrf"
CORRELATION_COOKIE_PREFIX = "jetpass.correlation."


def generate_correlation_id() -> str:
    """Generate a cryptographically secure, URL-safe correlation id."""
    return secrets.token_urlsafe(32)


def generate_secret_key() -> str:
    return secrets.token_urlsafe(48)


def correlation_cookie_name(authentication_type: str) -> str:
    return CORRELATION_COOKIE_PREFIX + authentication_type


def correlation_cookie_kwargs(
    name: str,
    value: str,
    *,
    max_age: int,
    path: str = "/",
    secure: bool = False,
) -> dict[str, Any]:
    """Keyword arguments for ``Response.set_cookie`` issuing the correlation cookie.

    The cookie is hidden from scripts and withheld from cross-site
    subrequests; lax same-site still lets the provider's top-level redirect
    back to the callback carry it.
    """
    return {
        "key": name,
        "value": value,
        "max_age": max_age,
        "path": path,
        "secure": secure,
        "httponly": True,
        "samesite": "lax",
    }


def expired_cookie_kwargs(name: str, *, path: str = "/", secure: bool = False) -> dict[str, Any]:
    """Keyword arguments for ``Response.set_cookie`` deleting a cookie.

    Mirrors ``Response.delete_cookie`` so the deletion can be staged before
    the response exists.
    """
    return {
        "key": name,
        "value": "",
        "max_age": 0,
        "expires": 0,
        "path": path,
        "secure": secure,
        "httponly": True,
        "samesite": "lax",
    }


class SecureDataFormat(ABC):
    """Turns authentication properties into an opaque, tamper-proof string."""

    @abstractmethod
    def protect(self, properties: AuthenticationProperties) -> str:
        ...

    @abstractmethod
    def unprotect(self, protected: Optional[str]) -> Optional[AuthenticationProperties]:
        """Return the properties, or None if the input cannot be trusted."""


class PropertiesDataFormat(SecureDataFormat):
    """Signs properties as a short-lived JWT bound to a single purpose.

    The purpose is checked as the token audience, so a state minted for one
    authentication type is rejected by another.
    """

    algorithm = "HS256"

    def __init__(self, secret_key: str, purpose: str, lifetime: int = 15 * 60):
        self.secret_key = secret_key
        self.purpose = purpose
        self.lifetime = lifetime

    def protect(self, properties: AuthenticationProperties) -> str:
        now = datetime.now(tz=UTC)
        to_encode = {
            "aud": self.purpose,
            "iat": now,
            "exp": now + timedelta(seconds=self.lifetime),
            "props": properties.to_dict(),
        }
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def unprotect(self, protected: Optional[str]) -> Optional[AuthenticationProperties]:
        if not protected:
            return None
        try:
            payload = jwt.decode(
                protected,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.purpose,
            )
        except jwt.PyJWTError as exc:
            logger.debug(f"State rejected: {exc}")
            return None

        items = payload.get("props")
        if not isinstance(items, dict) or not all(
            isinstance(key, str) and isinstance(value, str) for key, value in items.items()
        ):
            return None
        return AuthenticationProperties(items)
