import uuid

from finance_tracker.auth import create_access_token, decode_access_token, hash_password, verify_password


def test_password_hash_roundtrip():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("secret123", None)


def test_token_decode_rejects_tampering_and_expiry():
    token = create_access_token(42, "a@example.com")
    assert decode_access_token(token) == {"id": 42, "email": "a@example.com"}
    assert decode_access_token(token + "x") is None
    assert decode_access_token(create_access_token(42, "a@example.com", expires_minutes=-1)) is None


def test_health_is_public(app_client):
    r = app_client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_register_login_me(app_client):
    email = f"Login-{uuid.uuid4().hex[:8]}@Example.com"
    r = app_client.post("/api/auth/register", json={"email": email, "password": "secret123", "name": "Ann"})
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["user"]["email"] == email.lower()
    assert body["token"]

    dup = app_client.post("/api/auth/register", json={"email": email.lower(), "password": "secret123"})
    assert dup.status_code == 400

    bad = app_client.post("/api/auth/login", json={"email": email, "password": "nope-nope"})
    assert bad.status_code == 401

    ok = app_client.post("/api/auth/login", json={"email": email, "password": "secret123"})
    assert ok.status_code == 200, ok.text
    token = ok.json()["token"]

    me = app_client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["name"] == "Ann"


def test_register_validates_payload(app_client):
    r = app_client.post("/api/auth/register", json={"email": "not-an-email", "password": "secret123"})
    assert r.status_code == 422
    r = app_client.post("/api/auth/register", json={"email": "short@example.com", "password": "123"})
    assert r.status_code == 422


def test_protected_routes_require_token(app_client):
    assert app_client.get("/api/transactions").status_code == 401
    assert app_client.get("/api/auth/me").status_code == 401
    r = app_client.get("/api/recurring", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid token"


def test_public_matchers_are_collected_from_routers():
    from fastapi import APIRouter, FastAPI

    from finance_tracker.auth import build_public_route_matchers, public

    router = APIRouter(prefix="/api/open")

    @router.post("/ping")
    @public
    async def ping():
        return {"ok": True}

    @router.get("/private")
    async def private():
        return {"ok": True}

    app = FastAPI()
    app.include_router(router)

    matchers = build_public_route_matchers(app, router)
    assert len(matchers) == 1
    regex, methods = matchers[0]
    assert regex.match("/api/open/ping")
    assert methods == {"POST"}


def test_auth_routes_reachable_without_token(app_client):
    r = app_client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "secret123"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid email or password"
