"""Mapping of the JetPass user document onto claims.

The user-info endpoint returns a document shaped like::

    {
        "id": "42",
        "name": "Ann",
        "contacts": [
            {"verified": true, "email": "ann@example.com"},
            {"verified": false, "email": "old@example.com"}
        ]
    }

Only verified e-mail addresses become claims, in the order the provider
lists them.
"""

from typing import Any, Optional

from jetpass.schemas.auth import Claim, ClaimsIdentity, ClaimTypes, UserProfile


def _string_value(user: dict[str, Any], key: str) -> Optional[str]:
    value = user.get(key)
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def read_profile(user: dict[str, Any]) -> UserProfile:
    """Extract id, display name and verified e-mails from a user document."""
    emails: list[str] = []
    contacts = user.get("contacts")
    if isinstance(contacts, list):
        for contact in contacts:
            if not isinstance(contact, dict):
                continue
            if contact.get("verified") is not True:
                continue
            email = _string_value(contact, "email")
            if email is not None:
                emails.append(email)

    return UserProfile(
        raw=user,
        id=_string_value(user, "id"),
        display_name=_string_value(user, "name"),
        emails=emails,
    )


def build_identity(profile: UserProfile, authentication_type: str) -> ClaimsIdentity:
    """Build the claims identity for a profile.

    Claims are added in a fixed order: name identifier, name, then one
    e-mail claim per verified address. Empty values produce no claim.
    """
    identity = ClaimsIdentity(authentication_type=authentication_type)
    if profile.id:
        identity.add_claim(
            Claim(type=ClaimTypes.NAME_IDENTIFIER, value=profile.id, issuer=authentication_type)
        )
    if profile.display_name:
        identity.add_claim(
            Claim(type=ClaimTypes.NAME, value=profile.display_name, issuer=authentication_type)
        )
    for email in profile.emails:
        identity.add_claim(Claim(type=ClaimTypes.EMAIL, value=email, issuer=authentication_type))
    return identity
