from datetime import timedelta

from fastapi.responses import JSONResponse

from jetpass.provider import JetPassAuthenticationProvider
from jetpass.schemas.auth import Claim

from conftest import CORRELATION_COOKIE, start_sign_in


def _callback(client, state):
    return client.get("/JetPass", params={"code": "abc", "state": state})


def test_authenticated_hook_sees_tokens_and_can_add_claims(make_client, hub):
    hub.token_body = {"access_token": "T", "expires_in": "3600", "refresh_token": "R"}
    seen = {}

    class EnrichingProvider(JetPassAuthenticationProvider):
        async def authenticated(self, context):
            seen["access_token"] = context.access_token
            seen["refresh_token"] = context.refresh_token
            seen["expires_in"] = context.expires_in
            seen["user"] = context.user
            seen["id"] = context.id
            seen["emails"] = context.emails
            context.identity.add_claim(Claim(type="urn:jetpass:role", value="admin", issuer="JetPass"))

    client = make_client(provider=EnrichingProvider())
    _callback(client, start_sign_in(client)["state"])

    assert seen["access_token"] == "T"
    assert seen["refresh_token"] == "R"
    assert seen["expires_in"] == timedelta(seconds=3600)
    assert seen["user"] == hub.user_body
    assert seen["id"] == "1"
    assert seen["emails"] == ["u@x"]

    claims = client.get("/auth/me").json()["claims"]
    assert claims[-1] == {"type": "urn:jetpass:role", "value": "admin", "issuer": "JetPass"}


def test_authenticated_hook_can_reject_the_user(make_client):
    class RejectingProvider(JetPassAuthenticationProvider):
        async def authenticated(self, context):
            context.identity = None

    client = make_client(provider=RejectingProvider())
    response = _callback(client, start_sign_in(client, "/dashboard")["state"])

    assert response.headers["location"] == "/dashboard?error=access_denied"
    assert client.get("/auth/me").status_code == 302


def test_failing_authenticated_hook_fails_the_attempt(make_client):
    class BrokenProvider(JetPassAuthenticationProvider):
        async def authenticated(self, context):
            raise RuntimeError("boom")

    client = make_client(provider=BrokenProvider())
    response = _callback(client, start_sign_in(client, "/dashboard")["state"])

    assert response.headers["location"] == "/dashboard?error=access_denied"


def test_return_endpoint_hook_can_complete_the_request(make_client):
    class ApiProvider(JetPassAuthenticationProvider):
        async def return_endpoint(self, context):
            context.request_completed(
                JSONResponse({"signed_in": context.identity is not None, "next": context.redirect_uri})
            )

    client = make_client(provider=ApiProvider())
    response = _callback(client, start_sign_in(client, "/dashboard")["state"])

    assert response.status_code == 200
    assert response.json() == {"signed_in": True, "next": "/dashboard"}
    # Sign-in still happened
    assert client.get("/auth/me").status_code == 200


def test_return_endpoint_hook_can_change_target(make_client):
    class RoutingProvider(JetPassAuthenticationProvider):
        async def return_endpoint(self, context):
            context.redirect_uri = "/welcome"

    client = make_client(provider=RoutingProvider())
    response = _callback(client, start_sign_in(client, "/dashboard")["state"])

    assert response.headers["location"] == "/welcome"


def test_return_endpoint_hook_can_skip_sign_in(make_client):
    class NoSessionProvider(JetPassAuthenticationProvider):
        async def return_endpoint(self, context):
            context.sign_in_as_authentication_type = None

    client = make_client(provider=NoSessionProvider())
    response = _callback(client, start_sign_in(client, "/dashboard")["state"])

    assert response.headers["location"] == "/dashboard"
    assert client.get("/auth/me").status_code == 302


def test_passed_on_callback_still_consumes_correlation_cookie(make_client, hub):
    class PassThroughProvider(JetPassAuthenticationProvider):
        async def return_endpoint(self, context):
            context.redirect_uri = None

    client = make_client(provider=PassThroughProvider())
    state = start_sign_in(client, "/dashboard")["state"]

    first = _callback(client, state)

    # No route is mounted at the callback path, so the app answers 404
    assert first.status_code == 404
    assert any(
        cookie.startswith(f'{CORRELATION_COOKIE}="";') and "Max-Age=0" in cookie
        for cookie in first.headers.get_list("set-cookie")
    )
    assert client.cookies.get(CORRELATION_COOKIE) is None

    replay = _callback(client, state)

    assert replay.status_code == 404
    assert hub.paths == ["/rest/oauth2/token", "/rest/users/me"]


def test_failing_return_endpoint_hook_is_a_server_error(make_client):
    class BrokenProvider(JetPassAuthenticationProvider):
        async def return_endpoint(self, context):
            raise RuntimeError("boom")

    client = make_client(provider=BrokenProvider())
    response = _callback(client, start_sign_in(client)["state"])

    assert response.status_code == 500


def test_custom_sign_in_receives_retagged_identity(make_client):
    signed_in = []

    async def remember(request, identity, properties):
        signed_in.append((identity, properties))

    client = make_client(sign_in=remember, sign_in_as_authentication_type="cookies")
    _callback(client, start_sign_in(client, "/dashboard")["state"])

    (identity, properties), = signed_in
    assert identity.authentication_type == "cookies"
    assert [c.issuer for c in identity.claims] == ["JetPass", "JetPass", "JetPass"]
    assert properties.redirect_uri == "/dashboard"
    assert ".xsrf" not in properties
