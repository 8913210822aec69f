# tests/conftest.py
from contextlib import ExitStack
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from fastapi.testclient import TestClient

from jetpass.config import Settings
from jetpass.core.security import PropertiesDataFormat, correlation_cookie_name
from jetpass.main import create_app
from jetpass.options import JetPassAuthenticationOptions, JetPassEndpoints

HUB_URL = "https://hub.test"
CALLBACK_URL = "http://testserver/JetPass"
CORRELATION_COOKIE = correlation_cookie_name("JetPass")


class FakeHub:
    """Stands in for the hub's token and user-info endpoints."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_status = 200
        self.token_body: object = {"access_token": "T", "expires_in": "3600"}
        self.user_status = 200
        self.user_body: object = {
            "id": "1",
            "name": "U",
            "contacts": [{"verified": True, "email": "u@x"}],
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/rest/oauth2/token":
            return httpx.Response(self.token_status, json=self.token_body)
        if request.url.path == "/rest/users/me":
            return httpx.Response(self.user_status, json=self.user_body)
        return httpx.Response(404)

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture()
def hub():
    return FakeHub()


@pytest.fixture()
def state_format():
    return PropertiesDataFormat("state-secret", purpose="jetpass:JetPass:v1")


@pytest.fixture()
def options(hub, state_format):
    return JetPassAuthenticationOptions(
        client_id="client",
        client_secret="secret",
        endpoints=JetPassEndpoints.from_root(HUB_URL),
        scope=["youtrack"],
        state_data_format=state_format,
        backchannel_transport=httpx.MockTransport(hub),
    )


@pytest.fixture()
def settings():
    # debug relaxes https_only on the session cookie for the http test server
    return Settings(debug=True, secret_key="session-secret", _env_file=None)


@pytest.fixture()
def app(settings, options):
    return create_app(settings, options)


@pytest.fixture()
def client(app):
    with TestClient(app, follow_redirects=False) as client:
        yield client


def authorization_params(response) -> dict[str, str]:
    """Query parameters of an authorization redirect, one value each."""
    assert response.status_code == 302, response.text
    location = response.headers["location"]
    assert location.startswith(HUB_URL + "/rest/oauth2/auth?")
    return {k: v[0] for k, v in parse_qs(urlsplit(location).query).items()}


def start_sign_in(client, return_url: str = "/dashboard") -> dict[str, str]:
    response = client.get("/auth/login", params={"returnUrl": return_url})
    return authorization_params(response)


@pytest.fixture()
def make_client(settings, options):
    """Build a client for an app whose options differ from the defaults."""
    with ExitStack() as stack:

        def _make(**updates):
            app = create_app(settings, options.model_copy(update=updates))
            return stack.enter_context(TestClient(app, follow_redirects=False))

        yield _make
