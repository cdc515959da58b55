"""Integration tests for registration, login, /me and bearer-token handling.

Covers:
- POST /register: 201, normal role, unassigned, token identifies the new user
- POST /register: duplicate email (case-insensitive) -> 409 conflict
- POST /register: missing/invalid fields -> 400 validation_error
- POST /register: disabled by settings -> 403 registration_disabled
- POST /login: success and the single generic 401 for bad email/password
- GET /me and every bearer failure mode (missing, malformed, invalid,
  expired, unknown user)
"""

from conftest import DEFAULT_PASSWORD, bearer, unique_email

from auth.models import ROLE_ADMIN, ROLE_MANAGEMENT, User
from auth.tokens import SessionTokens
from core.config import get_settings


def _register(client, email: str, name: str = "Alice", password: str = DEFAULT_PASSWORD):
    return client.post("/api/v1/register", json={"name": name, "email": email, "password": password})


class TestRegister:
    def test_register_creates_normal_unassigned_user(self, api_env) -> None:
        email = unique_email("alice")
        resp = _register(api_env.client, email)
        assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"

        body = resp.json()
        user = body["user"]
        assert body["message"] == "Registered"
        assert user["role"] == "normal"
        assert user["email"] == email
        assert user["unitId"] is None and user["divisionId"] is None
        assert "password" not in user and "hashedPassword" not in user

        claims = api_env.tokens.verify(body["token"])
        assert claims is not None
        assert claims["user_id"] == user["id"]
        assert claims["role"] == "normal"
        assert resp.headers.get("cache-control") == "no-store"

    def test_duplicate_email_conflict(self, api_env) -> None:
        email = unique_email("dup")
        assert _register(api_env.client, email).status_code == 201

        resp = _register(api_env.client, email.upper(), name="Someone Else")
        assert resp.status_code == 409, f"Expected 409, got {resp.status_code}"
        assert resp.json()["error"]["code"] == "conflict"

    def test_missing_field_is_400(self, api_env) -> None:
        resp = api_env.client.post("/api/v1/register", json={"name": "NoMail", "password": "pw"})
        assert resp.status_code == 400, f"Expected 400, got {resp.status_code}"
        error = resp.json()["error"]
        assert error["code"] == "validation_error"
        assert "email" in error["message"]

    def test_blank_name_is_400(self, api_env) -> None:
        resp = _register(api_env.client, unique_email("blank"), name="   ")
        assert resp.status_code == 400

    def test_invalid_email_is_400(self, api_env) -> None:
        resp = _register(api_env.client, "not-an-email")
        assert resp.status_code == 400

    def test_oversized_password_is_400(self, api_env) -> None:
        resp = _register(api_env.client, unique_email("long"), password="x" * 73)
        assert resp.status_code == 400

    def test_registration_disabled(self, api_env, monkeypatch) -> None:
        monkeypatch.setattr(get_settings(), "self_registration_enabled", False)
        email = unique_email("closed")
        resp = _register(api_env.client, email)
        assert resp.status_code == 403, f"Expected 403, got {resp.status_code}"
        assert resp.json()["error"]["code"] == "registration_disabled"
        assert api_env.user_store.get_by_email(email) is None


class TestLogin:
    def test_login_returns_token_with_current_role(self, api_env) -> None:
        user, _ = api_env.make_user(role=ROLE_MANAGEMENT)
        resp = api_env.client.post("/api/v1/login", json={"email": user.email, "password": DEFAULT_PASSWORD})
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"

        body = resp.json()
        assert body["message"] == "Login successful"
        assert body["user"]["id"] == user.id
        assert api_env.tokens.verify(body["token"])["role"] == "management"
        assert resp.headers.get("cache-control") == "no-store"

    def test_login_email_case_insensitive(self, api_env) -> None:
        user, _ = api_env.make_user()
        resp = api_env.client.post(
            "/api/v1/login", json={"email": user.email.upper(), "password": DEFAULT_PASSWORD}
        )
        assert resp.status_code == 200

    def test_wrong_password_and_unknown_email_look_the_same(self, api_env) -> None:
        user, _ = api_env.make_user()
        wrong = api_env.client.post("/api/v1/login", json={"email": user.email, "password": "nope"})
        unknown = api_env.client.post(
            "/api/v1/login", json={"email": unique_email("ghost"), "password": DEFAULT_PASSWORD}
        )
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()
        assert wrong.json()["error"]["code"] == "bad_credentials"

    def test_missing_password_is_400(self, api_env) -> None:
        resp = api_env.client.post("/api/v1/login", json={"email": unique_email()})
        assert resp.status_code == 400

    def test_login_reflects_role_change(self, api_env) -> None:
        user, _ = api_env.make_user()
        api_env.user_store.update_role(user.id, ROLE_ADMIN)
        resp = api_env.client.post("/api/v1/login", json={"email": user.email, "password": DEFAULT_PASSWORD})
        assert api_env.tokens.verify(resp.json()["token"])["role"] == "admin"


class TestBearer:
    def test_me_returns_live_record(self, api_env) -> None:
        user, token = api_env.make_user()
        api_env.user_store.update_role(user.id, ROLE_MANAGEMENT)

        resp = api_env.client.get("/api/v1/me", headers=bearer(token))
        assert resp.status_code == 200
        assert resp.json()["user"]["role"] == "management"

    def test_missing_header(self, api_env) -> None:
        resp = api_env.client.get("/api/v1/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "missing_token"
        assert resp.headers.get("www-authenticate") == "Bearer"

    def test_malformed_header(self, api_env) -> None:
        _, token = api_env.make_user()
        for value in (token, f"Basic {token}", "Bearer", "Bearer a b"):
            resp = api_env.client.get("/api/v1/me", headers={"Authorization": value})
            assert resp.status_code == 401, f"Expected 401 for {value!r}, got {resp.status_code}"
            assert resp.json()["error"]["code"] == "malformed_token"

    def test_invalid_token(self, api_env) -> None:
        resp = api_env.client.get("/api/v1/me", headers=bearer("not.a.jwt"))
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_token"

    def test_token_signed_with_other_key(self, api_env) -> None:
        user, _ = api_env.make_user()
        foreign = SessionTokens("z" * 64).issue(user)
        resp = api_env.client.get("/api/v1/me", headers=bearer(foreign))
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_token"

    def test_expired_token(self, api_env) -> None:
        user, _ = api_env.make_user()
        expired = SessionTokens(get_settings().secret_key, expire_seconds=-5).issue(user)
        resp = api_env.client.get("/api/v1/me", headers=bearer(expired))
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_token"

    def test_unknown_user(self, api_env) -> None:
        ghost = User(id=987654, name="Ghost", email="ghost@example.com", role=ROLE_ADMIN)
        resp = api_env.client.get("/api/v1/me", headers=bearer(api_env.tokens.issue(ghost)))
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unknown_user"
