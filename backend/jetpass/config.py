from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import SecretStr


class Settings(BaseSettings):
    """Application settings using Pydantic Settings."""

    # --- Core Application Settings ---
    app_name: str = "JetPass Sign-In"  # Name used in OpenAPI docs
    debug: bool = False  # If True, enables debug logs and relaxed cookies
    log_level: str = "INFO"

    # --- Security ---
    # Signs the session cookie and the OAuth state parameter
    secret_key: SecretStr = SecretStr("dev-secret-key-change-in-production")
    state_lifetime: int = 15 * 60  # Seconds a challenge may stay pending

    # --- JetPass client registration ---
    client_id: Optional[str] = None
    client_secret: Optional[SecretStr] = None

    # --- JetPass endpoints ---
    # Endpoint URLs default to well-known paths below hub_url
    hub_url: str = "https://hub.jetbrains.com"
    authorization_endpoint: Optional[str] = None
    token_endpoint: Optional[str] = None
    user_info_endpoint: Optional[str] = None

    # --- Flow ---
    callback_path: str = "/JetPass"
    scope: list[str] = []  # JSON list in the environment, e.g. '["youtrack"]'
    backchannel_timeout: float = 60.0  # Seconds
    sign_in_as_authentication_type: str = "session"

    # --- Configuration ---
    model_config = SettingsConfigDict(
        env_file=".env",  # Look for a file named .env
        env_file_encoding="utf-8",
        env_prefix="JETPASS_",  # JETPASS_CLIENT_ID, JETPASS_CLIENT_SECRET, ...
        extra="ignore",  # Don't crash if .env has extra keys we don't know about
    )


@lru_cache
def get_settings() -> Settings:
    """
    Returns a cached instance of Settings.
    The lru_cache decorator ensures that we instantiate the Settings class
    (and read the .env file) only once. Subsequent calls return the same object.
    """
    return Settings()
