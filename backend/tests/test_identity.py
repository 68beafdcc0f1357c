import firebase_admin
import pytest
from fastapi.testclient import TestClient
from firebase_admin import auth as firebase_auth

from servicehub.main import create_app
from servicehub.services.errors import AuthenticationError
from servicehub.services.identity import FirebaseIdentityVerifier
from servicehub.services.storage import USERS

FIREBASE_APP = object()


@pytest.fixture
def firebase_calls(monkeypatch):
    calls = {"initialize_app": [], "verify_id_token": []}

    def fake_get_app():
        if calls["initialize_app"]:
            return FIREBASE_APP
        raise ValueError("The default Firebase app does not exist.")

    def fake_initialize_app(credential=None, options=None):
        calls["initialize_app"].append((credential, options))
        return FIREBASE_APP

    monkeypatch.delenv("FIREBASE_CREDENTIALS_PATH", raising=False)
    monkeypatch.setenv("FIREBASE_PROJECT_ID", "servicehub-test")
    monkeypatch.setattr(firebase_admin, "get_app", fake_get_app)
    monkeypatch.setattr(firebase_admin, "initialize_app", fake_initialize_app)
    return calls


def _accepting(calls, claims):
    def fake_verify(id_token, app=None, check_revoked=False):
        calls["verify_id_token"].append((id_token, app))
        return claims

    return fake_verify


def test_verify_returns_firebase_claims(firebase_calls, monkeypatch):
    claims = {"uid": "uid-c", "email": "c@x.com", "email_verified": True}
    monkeypatch.setattr(firebase_auth, "verify_id_token", _accepting(firebase_calls, claims))
    verifier = FirebaseIdentityVerifier()

    assert verifier.verify("header.payload.signature") == claims
    assert verifier.verify("header.payload.signature") == claims
    assert firebase_calls["initialize_app"] == [(None, {"projectId": "servicehub-test"})]
    assert firebase_calls["verify_id_token"] == [("header.payload.signature", FIREBASE_APP)] * 2


@pytest.mark.parametrize(
    "error",
    [
        ValueError("Illegal ID token provided."),
        firebase_auth.InvalidIdTokenError("Token signature is invalid."),
    ],
)
def test_verify_rejections_become_authentication_errors(firebase_calls, monkeypatch, error):
    def fake_verify(id_token, app=None, check_revoked=False):
        raise error

    monkeypatch.setattr(firebase_auth, "verify_id_token", fake_verify)

    with pytest.raises(AuthenticationError):
        FirebaseIdentityVerifier().verify("forged")


def test_login_through_firebase_verifier(firebase_calls, monkeypatch, gateway):
    claims = {"uid": "uid-c", "email": "c@x.com", "name": "Casey", "email_verified": True}
    monkeypatch.setattr(firebase_auth, "verify_id_token", _accepting(firebase_calls, claims))
    client = TestClient(create_app(gateway=gateway, verifier=FirebaseIdentityVerifier()))

    response = client.post("/api/auth/firebase-login", json={"idToken": "header.payload.signature"})
    assert response.status_code == 200
    assert response.json()["user"]["email"] == "c@x.com"
    assert response.json()["user"]["displayName"] == "Casey"
    assert gateway.count(USERS) == 1


@pytest.mark.parametrize(
    "error",
    [
        ValueError("Illegal ID token provided."),
        firebase_auth.InvalidIdTokenError("Token signature is invalid."),
    ],
)
def test_login_with_rejected_firebase_token_is_401(firebase_calls, monkeypatch, gateway, error):
    def fake_verify(id_token, app=None, check_revoked=False):
        raise error

    monkeypatch.setattr(firebase_auth, "verify_id_token", fake_verify)
    client = TestClient(create_app(gateway=gateway, verifier=FirebaseIdentityVerifier()))

    response = client.post("/api/auth/firebase-login", json={"idToken": "forged"})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid or expired identity token"}
    assert gateway.count(USERS) == 0
