from datetime import UTC, datetime, timedelta
from urllib.parse import parse_qs, urlparse

import pytest

from goaltracker.core.security import TokenService

from conftest import TEST_SECRET

UNAUTHENTICATED_BODY = {
    "status_code": 401,
    "code": "UNAUTHENTICATED",
    "message": "Could not validate credentials",
}


async def _start_login(client) -> str:
    response = await client.get("/auth/login")
    assert response.status_code == 302
    return parse_qs(urlparse(response.headers["location"]).query)["state"][0]


# ==========================================
#  LOGIN + CALLBACK
# ==========================================


@pytest.mark.asyncio
async def test_login_redirects_to_github_with_nonce_cookie(client):
    response = await client.get("/auth/login")

    assert response.status_code == 302
    assert response.headers["location"].startswith("https://github.com/login/oauth/authorize?")
    set_cookie = response.headers["set-cookie"]
    assert "oauth_nonce=" in set_cookie
    assert "HttpOnly" in set_cookie
    assert "Path=/auth" in set_cookie


@pytest.mark.asyncio
async def test_callback_issues_token(client, db, token_service):
    state = await _start_login(client)

    response = await client.get("/auth/callback", params={"code": "good-code", "state": state})

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] == 24 * 3600
    assert body["principal"]["username"] == "alice"
    assert body["principal"]["email"] == "alice@github.local"

    assert token_service.verify(body["token"]) == body["principal"]["id"]
    assert len(db.user.records) == 1


@pytest.mark.asyncio
async def test_second_login_reuses_principal(client, db, fake_github):
    state = await _start_login(client)
    first = await client.get("/auth/callback", params={"code": "good-code", "state": state})

    fake_github.user["login"] = "alice-renamed"
    state = await _start_login(client)
    second = await client.get("/auth/callback", params={"code": "good-code", "state": state})

    assert first.json()["principal"]["id"] == second.json()["principal"]["id"]
    assert second.json()["principal"]["username"] == "alice-renamed"
    assert len(db.user.records) == 1


@pytest.mark.asyncio
async def test_callback_with_bad_code_returns_401_without_token(client, db):
    state = await _start_login(client)

    response = await client.get("/auth/callback", params={"code": "wrong", "state": state})

    assert response.status_code == 401
    assert response.json() == {
        "status_code": 401,
        "code": "AUTHENTICATION_FAILED",
        "message": "Authentication with the identity provider failed",
    }
    assert "token" not in response.json()
    assert db.user.records == []


@pytest.mark.asyncio
async def test_callback_with_forged_state_is_rejected(client, fake_github):
    await _start_login(client)

    response = await client.get(
        "/auth/callback", params={"code": "good-code", "state": "forged-state"}
    )

    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_FAILED"
    assert fake_github.requests == []


@pytest.mark.asyncio
async def test_callback_without_nonce_cookie_is_rejected(client):
    state = await _start_login(client)
    client.cookies.clear()

    response = await client.get("/auth/callback", params={"code": "good-code", "state": state})

    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "params",
    [
        {"error": "access_denied", "state": "s"},
        {"state": "s"},
        {"code": "good-code"},
    ],
)
async def test_callback_missing_parameters(client, params):
    response = await client.get("/auth/callback", params=params)

    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_FAILED"


@pytest.mark.asyncio
async def test_callback_profile_failure(client, fake_github):
    fake_github.user_status = 502
    state = await _start_login(client)

    response = await client.get("/auth/callback", params={"code": "good-code", "state": state})

    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_FAILED"


# ==========================================
#  ACCESS GATE
# ==========================================


@pytest.mark.asyncio
async def test_me_returns_principal(client, make_principal, auth_headers):
    user = await make_principal(email="alice@example.com")

    response = await client.get("/auth/me", headers=auth_headers(user))

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == user.id
    assert data["provider"] == "github"
    assert data["username"] == "alice"
    assert data["email"] == "alice@example.com"


@pytest.mark.asyncio
async def test_missing_token(client):
    response = await client.get("/auth/me")

    assert response.status_code == 401
    assert response.json() == UNAUTHENTICATED_BODY
    assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_every_credential_failure_looks_the_same(client, db, make_principal, auth_headers):
    user = await make_principal()
    expired = TokenService(
        TEST_SECRET, clock=lambda: datetime.now(UTC) - timedelta(days=2)
    ).issue(user)
    wrong_issuer = TokenService(TEST_SECRET, issuer="elsewhere").issue(user)
    forged = TokenService("not-the-server-secret-000000000000").issue(user)

    ghost = await make_principal(subject_id="99", username="ghost")
    ghost_headers = auth_headers(ghost)
    db.user.records = [r for r in db.user.records if r["id"] != ghost.id]

    attempts = [
        {},
        {"Authorization": "Basic YWxpY2U6c2VjcmV0"},
        {"Authorization": "Bearer not-a-token"},
        {"Authorization": f"Bearer {expired}"},
        {"Authorization": f"Bearer {wrong_issuer}"},
        {"Authorization": f"Bearer {forged}"},
        ghost_headers,
    ]
    for headers in attempts:
        response = await client.get("/auth/me", headers=headers)
        assert response.status_code == 401, headers
        assert response.json() == UNAUTHENTICATED_BODY, headers
        assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_logout(client, make_principal, auth_headers):
    user = await make_principal()

    response = await client.post("/auth/logout", headers=auth_headers(user))

    assert response.status_code == 200
    assert response.json() == {"message": "Logged out successfully"}


@pytest.mark.asyncio
async def test_logout_requires_token(client):
    response = await client.post("/auth/logout")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_full_sign_in_then_protected_call(client):
    state = await _start_login(client)
    token = (
        await client.get("/auth/callback", params={"code": "good-code", "state": state})
    ).json()["token"]

    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["username"] == "alice"


@pytest.mark.asyncio
async def test_failed_callback_expires_nonce_cookie(client):
    state = await _start_login(client)
    assert "oauth_nonce" in client.cookies

    response = await client.get("/auth/callback", params={"code": "wrong", "state": state})

    assert response.status_code == 401
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith('oauth_nonce=""')
    assert "Max-Age=0" in set_cookie
    assert "Path=/auth" in set_cookie
    assert "oauth_nonce" not in client.cookies

    # The same state cannot be replayed once the nonce is gone
    retry = await client.get("/auth/callback", params={"code": "good-code", "state": state})
    assert retry.status_code == 401
