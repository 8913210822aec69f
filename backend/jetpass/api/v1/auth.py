"""Sign-in endpoints backed by the JetPass middleware."""

from typing import Annotated, Optional
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse, Response

from jetpass.api.deps import require_identity
from jetpass.middleware import challenge
from jetpass.schemas.auth import AuthenticationProperties, ClaimsIdentity
from jetpass.schemas.user import UserResponse
from jetpass.session import sign_out

router = APIRouter(prefix="/auth", tags=["auth"])


def safe_return_url(return_url: Optional[str]) -> str:
    """Only allow local paths as a post sign-in target."""
    if not return_url or not return_url.startswith("/"):
        return "/"
    # Browsers treat a leading backslash after the slash like "//"
    if return_url[1:2] in ("/", "\\"):
        return "/"
    parts = urlsplit(return_url)
    if parts.scheme or parts.netloc:
        return "/"
    return return_url


@router.get("/login")
async def login(
    request: Request,
    return_url: Annotated[Optional[str], Query(alias="returnUrl")] = None,
    login_hint: Optional[str] = None,
) -> Response:
    """
    Start JetPass sign-in.

    Stages a challenge; the middleware answers it with a redirect to the
    hub's authorization page. After the callback the user is sent to
    ``returnUrl`` (a local path), with ``error=access_denied`` appended if
    sign-in failed.
    """
    properties = AuthenticationProperties(redirect_uri=safe_return_url(return_url))
    if login_hint:
        properties["login_hint"] = login_hint
    return challenge(request, properties)


@router.get("/me", response_model=UserResponse)
async def read_current_user(
    identity: Annotated[ClaimsIdentity, Depends(require_identity)],
) -> UserResponse:
    """Get the signed-in user's claims."""
    return UserResponse.from_identity(identity)


@router.get("/logout")
async def logout(
    request: Request,
    return_url: Annotated[Optional[str], Query(alias="returnUrl")] = None,
) -> RedirectResponse:
    """Forget the signed-in identity."""
    sign_out(request)
    return RedirectResponse(url=safe_return_url(return_url), status_code=302)
