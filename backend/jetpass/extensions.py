"""Registration helpers for FastAPI/Starlette applications."""

from typing import Optional

from starlette.applications import Starlette

from jetpass.middleware import JetPassAuthenticationMiddleware
from jetpass.options import JetPassAuthenticationOptions


def use_jetpass_authentication(
    app: Starlette,
    options: Optional[JetPassAuthenticationOptions] = None,
    *,
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
) -> Starlette:
    """Add JetPass sign-in to ``app``.

    Either pass complete ``options`` or just the client credentials. The
    options are validated here: Starlette builds its middleware stack on the
    first request, which would be too late to report misconfiguration.

    Raises:
        MissingConfigurationError: If the client id or secret is blank.
    """
    if options is None:
        options = JetPassAuthenticationOptions(client_id=client_id, client_secret=client_secret)
    options.ensure_valid()
    app.add_middleware(JetPassAuthenticationMiddleware, options=options)
    return app
