"""Default session establishment on top of Starlette's SessionMiddleware."""

import logging
from typing import Optional

from starlette.requests import Request

from jetpass.schemas.auth import AuthenticationProperties, ClaimsIdentity

logger = logging.getLogger(__name__)

IDENTITY_SESSION_KEY = "jetpass.identity"


def session_sign_in(
    request: Request,
    identity: ClaimsIdentity,
    properties: Optional[AuthenticationProperties] = None,
) -> None:
    """Store the identity in the cookie session."""
    if "session" not in request.scope:
        logger.warning("SessionMiddleware is not installed; the identity was not persisted")
        return
    request.session[IDENTITY_SESSION_KEY] = identity.model_dump()


def load_identity(request: Request) -> Optional[ClaimsIdentity]:
    if "session" not in request.scope:
        return None
    data = request.session.get(IDENTITY_SESSION_KEY)
    if not data:
        return None
    return ClaimsIdentity.model_validate(data)


def sign_out(request: Request) -> None:
    if "session" in request.scope:
        request.session.pop(IDENTITY_SESSION_KEY, None)
