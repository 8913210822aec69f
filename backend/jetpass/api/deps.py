from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status

from jetpass.middleware import challenge
from jetpass.schemas.auth import ClaimsIdentity
from jetpass.session import load_identity


async def get_current_identity(request: Request) -> Optional[ClaimsIdentity]:
    """The signed-in identity from the session, if any."""
    return load_identity(request)


async def require_identity(
    request: Request,
    identity: Annotated[Optional[ClaimsIdentity], Depends(get_current_identity)],
) -> ClaimsIdentity:
    """Validates that the user is signed in, otherwise starts JetPass sign-in.

    The staged challenge makes the middleware turn the 401 into a redirect
    to the authorization endpoint; after sign-in the user comes back to the
    URL they asked for.
    """
    if identity is None:
        challenge(request)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign-in required",
        )
    return identity
