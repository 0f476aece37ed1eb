from __future__ import annotations

from jose import jwt

from timeflow.auth_security import account_id_from_token, create_access_token
from timeflow.auth_service import authenticate, create_account
from timeflow.config import JWT_ALG, JWT_SECRET


def test_register_and_me(client):
    r = client.post("/api/auth/register", json={"username": " Alice ", "password": "pw"})
    assert r.status_code == 200
    assert r.json()["ok"] is True

    r = client.post("/api/auth/login", data={"username": "alice", "password": "pw"})
    assert r.status_code == 200
    token = r.json()["access_token"]
    assert r.json()["token_type"] == "bearer"

    r = client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["username"] == "alice"
    assert r.json()["is_active"] is True
    assert r.json()["last_login_at"] is not None


def test_duplicate_username(client):
    client.post("/api/auth/register", json={"username": "bob", "password": "pw"})
    r = client.post("/api/auth/register", json={"username": "BOB", "password": "other"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Username already registered."


def test_empty_credentials(client):
    r = client.post("/api/auth/register", json={"username": " ", "password": "pw"})
    assert r.status_code == 400


def test_wrong_password(client):
    client.post("/api/auth/register", json={"username": "bob", "password": "pw"})
    r = client.post("/api/auth/login", data={"username": "bob", "password": "nope"})
    assert r.status_code == 401


def test_bad_or_missing_token(client):
    assert client.get("/api/me").status_code == 401
    assert client.get("/api/me", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401


def test_token_from_another_issuer(client):
    account_id = create_account("carol", "pw")
    token = create_access_token(account_id, "carol")
    assert client.get("/api/me", headers={"Authorization": f"Bearer {token}"}).status_code == 200

    foreign = jwt.encode({"sub": account_id, "iss": "elsewhere"}, JWT_SECRET, algorithm=JWT_ALG)
    assert client.get("/api/me", headers={"Authorization": f"Bearer {foreign}"}).status_code == 401
    assert account_id_from_token(foreign) is None


def test_last_login_moves_on_each_login(client):
    create_account("dave", "pw")
    first = authenticate("dave", "pw").last_login_at
    second = authenticate("dave", "pw").last_login_at
    assert first is not None
    assert second >= first
