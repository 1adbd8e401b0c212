import asyncio
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from conftest import client, auth_headers_for, PASSWORD
from app.core.config import settings
from app.core.redis import RateLimiter, login_rate_limiter
from app.models.user import User


class FakeCache:
    """In-memory stand-in for the Redis cache used by the rate limiter."""

    def __init__(self):
        self.values = {}
        self.ttls = {}

    async def increment(self, key, amount=1):
        self.values[key] = self.values.get(key, 0) + amount
        return self.values[key]

    async def expire(self, key, seconds):
        self.ttls[key] = seconds

    async def ttl(self, key):
        return self.ttls.get(key, -1)

    async def delete(self, key):
        self.values.pop(key, None)
        self.ttls.pop(key, None)


class BrokenCache(FakeCache):
    async def increment(self, key, amount=1):
        raise RedisConnectionError("connection refused")


def login(email, password=PASSWORD):
    return client.post("/api/auth/login", data={"username": email, "password": password})


def test_login_returns_token(admin):
    response = login(admin.email)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["access_token"] == body["data"]["access_token"]
    assert body["token_type"] == "bearer"


def test_login_is_case_insensitive(admin):
    assert login(admin.email.upper()).status_code == 200


def test_wrong_password(admin):
    response = login(admin.email, "nope-nope")
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Incorrect email or password"}


def test_unknown_email():
    assert login("ghost@test.com").status_code == 401


def test_inactive_user_cannot_log_in(make_user, db):
    user = make_user("member", email="gone@test.com")
    db.query(User).filter(User.id == user.id).update({"is_active": False})
    db.commit()
    assert login(user.email).status_code == 403


def test_me(member):
    response = client.get("/api/auth/me", headers=auth_headers_for(member))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["email"] == member.email
    assert data["role"] == "member"
    assert "hashed_password" not in data


def test_invalid_token():
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_signup_creates_organization_with_admin():
    response = client.post("/api/auth/signup", json={
        "email": "Founder@Startup.io",
        "password": "secret123",
        "name": "Founder",
        "organization_name": "Startup"
    })
    assert response.status_code == 201
    body = response.json()
    assert body["access_token"]
    user = body["data"]["user"]
    assert user["email"] == "founder@startup.io"
    assert user["role"] == "admin"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.json()["data"]["id"] == user["id"]


def test_signup_into_existing_organization_defaults_to_member(test_org):
    response = client.post("/api/auth/signup", json={
        "email": "joiner@test.com",
        "password": "secret123",
        "organization_id": test_org.id
    })
    assert response.status_code == 201
    assert response.json()["data"]["user"]["role"] == "member"
    assert response.json()["data"]["user"]["organization_id"] == test_org.id


def test_signup_into_existing_organization_cannot_pick_a_higher_role(test_org):
    response = client.post("/api/auth/signup", json={
        "email": "climber@test.com",
        "password": "secret123",
        "organization_id": test_org.id,
        "role": "admin"
    })
    assert response.status_code == 403
    assert client.post("/api/auth/login", data={"username": "climber@test.com", "password": "secret123"}).status_code == 401


def test_signup_duplicate_email(member):
    response = client.post("/api/auth/signup", json={
        "email": member.email,
        "password": "secret123",
        "organization_name": "Another"
    })
    assert response.status_code == 409
    assert response.json() == {"success": False, "error": "Email already registered"}


def test_signup_requires_a_path():
    response = client.post("/api/auth/signup", json={"email": "lost@test.com", "password": "secret123"})
    assert response.status_code == 400


def test_signup_with_invitation_token(admin):
    invitation = client.post(
        "/api/invitations", json={"email": "invited@test.com", "role": "finance"}, headers=auth_headers_for(admin)
    ).json()["data"]

    response = client.post("/api/auth/signup", json={
        "email": "invited@test.com",
        "password": "secret123",
        "invitation_token": invitation["token"]
    })

    assert response.status_code == 201
    user = response.json()["data"]["user"]
    assert user["organization_id"] == admin.organization_id
    assert user["role"] == "finance"

    token_lookup = client.get(f"/api/invitations/token/{invitation['token']}")
    assert token_lookup.json()["data"]["status"] == "accepted"


def test_signup_invitation_token_email_must_match(admin):
    invitation = client.post(
        "/api/invitations", json={"email": "right@test.com", "role": "member"}, headers=auth_headers_for(admin)
    ).json()["data"]
    response = client.post("/api/auth/signup", json={
        "email": "wrong@test.com",
        "password": "secret123",
        "invitation_token": invitation["token"]
    })
    assert response.status_code == 403


@pytest.fixture
def fake_limiter(monkeypatch):
    fake = FakeCache()
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(login_rate_limiter, "cache", fake)
    return fake


def test_login_rate_limit(admin, fake_limiter):
    for _ in range(settings.LOGIN_MAX_ATTEMPTS):
        assert login(admin.email, "bad-password").status_code == 401

    response = login(admin.email, "bad-password")
    assert response.status_code == 429
    assert response.headers["Retry-After"] == str(settings.LOGIN_WINDOW_SECONDS)
    assert response.json()["success"] is False

    # Correct password is refused too while the window is open
    assert login(admin.email).status_code == 429


def test_successful_login_resets_counter(admin, fake_limiter):
    login(admin.email, "bad-password")
    assert login(admin.email).status_code == 200
    assert fake_limiter.values == {}


def test_rate_limiter_allows_requests_when_redis_is_down():
    limiter = RateLimiter("test:", BrokenCache())
    limited, retry_after = asyncio.run(limiter.hit("someone@test.com", 1, 60))
    assert limited is False
    assert retry_after == 0
