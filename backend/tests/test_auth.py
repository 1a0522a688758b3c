"""
Tests for Supabase JWT authentication and account resolution.
"""

import time

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from jose import jwt

from neuroleaf.main import app
from neuroleaf.dependencies.auth import get_current_account, verify_account_access, verify_supabase_jwt
from neuroleaf.models.models import Account


JWT_SECRET = "test-jwt-secret"


def make_token(sub="user-abc", email="new@neuroleaf.test", secret=JWT_SECRET, expires_in=3600, **claims) -> str:
    payload = {"sub": sub, "exp": int(time.time()) + expires_in, "aud": "authenticated", **claims}
    if email is not None:
        payload["email"] = email
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def auth_client(client: TestClient) -> TestClient:
    """Test client with real token verification"""
    app.dependency_overrides.pop(get_current_account, None)
    return client


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestTokenVerification:

    @pytest.mark.unit
    def test_valid_token(self):
        claims = verify_supabase_jwt(make_token())
        assert claims["sub"] == "user-abc"

    @pytest.mark.unit
    def test_wrong_secret(self):
        with pytest.raises(HTTPException) as exc:
            verify_supabase_jwt(make_token(secret="other-secret"))
        assert exc.value.status_code == 401

    @pytest.mark.unit
    def test_expired_token(self):
        with pytest.raises(HTTPException) as exc:
            verify_supabase_jwt(make_token(expires_in=-60))
        assert exc.value.status_code == 401

    @pytest.mark.unit
    def test_audience_is_checked_when_configured(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_JWT_AUDIENCE", "neuroleaf")
        with pytest.raises(HTTPException):
            verify_supabase_jwt(make_token())
        assert verify_supabase_jwt(make_token(aud="neuroleaf"))["aud"] == "neuroleaf"

    @pytest.mark.unit
    def test_missing_secret_is_server_error(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_JWT_SECRET")
        with pytest.raises(HTTPException) as exc:
            verify_supabase_jwt(make_token())
        assert exc.value.status_code == 500


class TestCurrentAccount:

    @pytest.mark.api
    def test_no_token(self, auth_client: TestClient):
        response = auth_client.get("/api/decks")
        assert response.status_code == 401
        assert response.json()["detail"] == "Not authenticated"

    @pytest.mark.api
    def test_invalid_token(self, auth_client: TestClient):
        response = auth_client.get("/api/decks", headers=auth_header("not-a-jwt"))
        assert response.status_code == 401

    @pytest.mark.api
    def test_existing_account(self, auth_client: TestClient, test_deck, test_account):
        response = auth_client.get("/api/decks", headers=auth_header(make_token(sub=test_account.id)))
        assert response.status_code == 200
        assert response.json()["total"] == 1

    @pytest.mark.api
    def test_first_sign_in_creates_free_account(self, auth_client: TestClient, db):
        token = make_token(sub="brand-new", email="brand-new@neuroleaf.test", user_metadata={"full_name": "Ada L"})

        response = auth_client.get("/api/subscription/usage", headers=auth_header(token))

        assert response.status_code == 200
        assert response.json()["tier"] == "free"
        account = db.query(Account).filter(Account.id == "brand-new").one()
        assert account.email == "brand-new@neuroleaf.test"
        assert account.name == "Ada L"
        assert account.deck_limit == 3

    @pytest.mark.api
    def test_unknown_subject_without_email(self, auth_client: TestClient, db):
        response = auth_client.get("/api/decks", headers=auth_header(make_token(sub="no-email", email=None)))

        assert response.status_code == 401
        assert response.json()["detail"] == "Token missing email claim"
        assert db.query(Account).filter(Account.id == "no-email").first() is None


class TestAccountAccess:

    @pytest.mark.unit
    def test_own_account(self, test_account):
        verify_account_access(test_account, test_account.id)

    @pytest.mark.unit
    def test_other_account(self, test_account):
        with pytest.raises(HTTPException) as exc:
            verify_account_access(test_account, "someone-else")
        assert exc.value.status_code == 403

    @pytest.mark.unit
    @pytest.mark.parametrize("account_id", ["", "   "])
    def test_blank_account_id(self, test_account, account_id):
        with pytest.raises(HTTPException) as exc:
            verify_account_access(test_account, account_id)
        assert exc.value.status_code == 400
