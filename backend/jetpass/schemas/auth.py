from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuthenticationProperties:
    """Per-attempt property bag carried through the state parameter.

    Keys and values are strings. The final "return to" URL lives under a
    reserved key so that the whole bag round-trips through the state codec
    as a flat mapping.
    """

    REDIRECT_URI_KEY = ".redirect"

    def __init__(
        self,
        items: Optional[dict[str, str]] = None,
        redirect_uri: Optional[str] = None,
    ) -> None:
        self.items: dict[str, str] = dict(items or {})
        if redirect_uri is not None:
            self.redirect_uri = redirect_uri

    @property
    def redirect_uri(self) -> Optional[str]:
        return self.items.get(self.REDIRECT_URI_KEY)

    @redirect_uri.setter
    def redirect_uri(self, value: Optional[str]) -> None:
        if value is None:
            self.items.pop(self.REDIRECT_URI_KEY, None)
        else:
            self.items[self.REDIRECT_URI_KEY] = value

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.items.get(key, default)

    def pop(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.items.pop(key, default)

    def to_dict(self) -> dict[str, str]:
        return dict(self.items)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthenticationProperties":
        return cls({str(key): str(value) for key, value in data.items()})

    def __getitem__(self, key: str) -> str:
        return self.items[key]

    def __setitem__(self, key: str, value: str) -> None:
        self.items[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self.items

    def __iter__(self) -> Iterator[str]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AuthenticationProperties):
            return NotImplemented
        return self.items == other.items

    def __repr__(self) -> str:
        return f"AuthenticationProperties({self.items!r})"


class ClaimTypes:
    NAME_IDENTIFIER = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/nameidentifier"
    NAME = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/name"
    EMAIL = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/emailaddress"


class Claim(BaseModel):
    type: str
    value: str
    value_type: str = "string"
    issuer: Optional[str] = None


class ClaimsIdentity(BaseModel):
    """An ordered set of claims tagged with the scheme that produced them."""

    authentication_type: Optional[str] = None
    claims: list[Claim] = Field(default_factory=list)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.authentication_type)

    @property
    def name(self) -> Optional[str]:
        claim = self.find_first(ClaimTypes.NAME)
        return claim.value if claim else None

    def add_claim(self, claim: Claim) -> None:
        self.claims.append(claim)

    def find_first(self, claim_type: str) -> Optional[Claim]:
        return next((c for c in self.claims if c.type == claim_type), None)

    def find_all(self, claim_type: str) -> list[Claim]:
        return [c for c in self.claims if c.type == claim_type]

    def with_authentication_type(self, authentication_type: str) -> "ClaimsIdentity":
        """Copy of this identity re-tagged for another authentication type."""
        if self.authentication_type == authentication_type:
            return self
        return ClaimsIdentity(
            authentication_type=authentication_type,
            claims=[claim.model_copy() for claim in self.claims],
        )


class AuthenticationTicket:
    """Outcome of a callback: identity is None when authentication failed.

    Properties are None only when the state parameter could not be
    recovered, in which case there is nowhere to send the user back to.
    """

    def __init__(
        self,
        identity: Optional[ClaimsIdentity],
        properties: Optional[AuthenticationProperties],
    ) -> None:
        self.identity = identity
        self.properties = properties

    @property
    def succeeded(self) -> bool:
        return self.identity is not None

    def __repr__(self) -> str:
        return f"AuthenticationTicket(identity={self.identity!r}, properties={self.properties!r})"


class TokenResponse(BaseModel):
    """Token endpoint response. Only lives for one callback."""

    model_config = ConfigDict(extra="ignore")

    access_token: Optional[str] = None
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None

    @field_validator("expires_in", mode="before")
    @classmethod
    def parse_expires_in(cls, value: Any) -> Optional[int]:
        # Providers send seconds as a number or a numeric string
        if value is None or isinstance(value, bool):
            return None
        try:
            return int(str(value).strip())
        except ValueError:
            return None

    @field_validator("access_token", "refresh_token", mode="before")
    @classmethod
    def stringify(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value)


class UserProfile(BaseModel):
    """Normalized view of the provider's user document."""

    raw: dict[str, Any] = Field(default_factory=dict)
    id: Optional[str] = None
    display_name: Optional[str] = None
    emails: list[str] = Field(default_factory=list)
