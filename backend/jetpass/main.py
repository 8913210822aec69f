"""Example host application.

Run with ``uvicorn jetpass.main:create_app --factory`` after setting
``JETPASS_CLIENT_ID`` and ``JETPASS_CLIENT_SECRET``.
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from jetpass.api.v1 import api_router
from jetpass.config import Settings, get_settings
from jetpass.extensions import use_jetpass_authentication
from jetpass.options import JetPassAuthenticationOptions, options_from_settings


def create_app(
    settings: Optional[Settings] = None,
    options: Optional[JetPassAuthenticationOptions] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    app = FastAPI(title=settings.app_name)
    app.include_router(api_router)

    # JetPass middleware first so that the session middleware wraps it:
    # the callback signs the user in by writing to request.session
    use_jetpass_authentication(app, options or options_from_settings(settings))

    # Session Middleware is the sign-in target of the JetPass callback
    # In production (debug=False): secure cookies (HTTPS only)
    # In development (debug=True): relaxed settings for localhost testing
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.secret_key.get_secret_value(),
        same_site="lax",  # Lets the provider's redirect back carry the cookie
        https_only=not settings.debug,
    )

    @app.get("/health")
    async def health_check():
        return JSONResponse(content={"status": "ok"}, status_code=200)

    return app
