import asyncio
import ssl

import httpx

from jetpass.services import backchannel
from jetpass.services.backchannel import MAX_RESPONSE_CONTENT_BUFFER_SIZE, create_backchannel_client

from conftest import start_sign_in


def test_client_uses_backchannel_timeout(options):
    client = create_backchannel_client(options.model_copy(update={"backchannel_timeout": 12.5}))
    try:
        assert client.timeout == httpx.Timeout(12.5)
    finally:
        asyncio.run(client.aclose())


def test_client_uses_certificate_validator(options, monkeypatch):
    created = []

    class RecordingClient:
        def __init__(self, **kwargs):
            created.append(kwargs)

    monkeypatch.setattr(backchannel.httpx, "AsyncClient", RecordingClient)
    context = ssl.create_default_context()

    create_backchannel_client(
        options.model_copy(
            update={"backchannel_transport": None, "backchannel_certificate_validator": context}
        )
    )

    (kwargs,) = created
    assert kwargs["verify"] is context
    assert kwargs["timeout"] == options.backchannel_timeout
    assert "transport" not in kwargs


def test_transport_takes_precedence_over_default_verification(options, monkeypatch):
    created = []

    class RecordingClient:
        def __init__(self, **kwargs):
            created.append(kwargs)

    monkeypatch.setattr(backchannel.httpx, "AsyncClient", RecordingClient)

    create_backchannel_client(options)

    (kwargs,) = created
    assert kwargs["transport"] is options.backchannel_transport
    assert "verify" not in kwargs


def test_oversized_token_response_fails_without_profile_fetch(make_client, hub):
    def oversized(request):
        hub.requests.append(request)
        if request.url.path == "/rest/oauth2/token":
            return httpx.Response(200, content=b" " * (MAX_RESPONSE_CONTENT_BUFFER_SIZE + 1))
        return httpx.Response(200, json=hub.user_body)

    client = make_client(backchannel_transport=httpx.MockTransport(oversized))
    state = start_sign_in(client, "/dashboard")["state"]

    response = client.get("/JetPass", params={"code": "abc", "state": state})

    assert response.headers["location"] == "/dashboard?error=access_denied"
    assert hub.paths == ["/rest/oauth2/token"]


def test_response_at_the_limit_is_accepted(make_client, hub):
    def padded(request):
        hub.requests.append(request)
        if request.url.path == "/rest/oauth2/token":
            body = b'{"access_token": "T"}'
            return httpx.Response(
                200, content=body + b" " * (MAX_RESPONSE_CONTENT_BUFFER_SIZE - len(body))
            )
        return httpx.Response(200, json=hub.user_body)

    client = make_client(backchannel_transport=httpx.MockTransport(padded))
    state = start_sign_in(client, "/dashboard")["state"]

    response = client.get("/JetPass", params={"code": "abc", "state": state})

    assert response.headers["location"] == "/dashboard"
    assert hub.paths == ["/rest/oauth2/token", "/rest/users/me"]
