from conftest import id_token_for


def test_health_ok(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_ready_reports_backend_and_counts(client, login, create_service):
    headers = login("p@x.com")
    create_service(headers)

    response = client.get("/ready")
    assert response.status_code == 200
    payload = response.json()
    assert payload["database"] == "memory"
    assert payload["stats"]["services"] == 1
    assert payload["stats"]["users"] == 1
    assert "POST /api/auth/firebase-login" in payload["endpoints"]


def test_firebase_login_verify_and_logout(client, gateway):
    login = client.post(
        "/api/auth/firebase-login",
        json={"idToken": id_token_for("alice@x.com", "Alice"), "photoURL": "https://example.com/a.png"},
    )
    assert login.status_code == 200
    payload = login.json()
    assert payload["user"]["email"] == "alice@x.com"
    assert payload["user"]["displayName"] == "Alice"
    assert payload["user"]["photoURL"] == "https://example.com/a.png"
    assert payload["user"]["emailVerified"] is True
    token = payload["token"]

    verify = client.get("/api/auth/verify", headers={"Authorization": f"Bearer {token}"})
    assert verify.status_code == 200
    assert verify.json()["user"]["uid"] == "uid-alice"

    logout = client.post("/api/auth/logout", headers={"Authorization": f"Bearer {token}"})
    assert logout.status_code == 200
    assert logout.json()["message"] == "Logged out successfully"

    users = gateway.find("users", {"uid": "uid-alice"})
    assert len(users) == 1
    assert users[0]["lastLoginAt"] is not None
    assert users[0]["lastLogoutAt"] is not None

    # Logout does not revoke the credential.
    still_valid = client.get("/api/auth/verify", headers={"Authorization": f"Bearer {token}"})
    assert still_valid.status_code == 200


def test_repeated_login_upserts_single_user(client, gateway):
    for _ in range(2):
        response = client.post("/api/auth/firebase-login", json={"idToken": id_token_for("bob@x.com")})
        assert response.status_code == 200
    assert gateway.count("users") == 1


def test_login_without_id_token_is_rejected(client, gateway):
    response = client.post(
        "/api/auth/firebase-login",
        json={"uid": "u1", "email": "mallory@x.com", "displayName": "Mallory"},
    )
    assert response.status_code == 401
    assert response.json() == {"error": "Firebase ID token required"}
    assert gateway.count("users") == 0


def test_login_with_unverifiable_token_is_rejected(client):
    response = client.post("/api/auth/firebase-login", json={"idToken": "forged.token.value"})
    assert response.status_code == 401
    assert "error" in response.json()


def test_login_rejects_identity_fields_that_contradict_token(client):
    response = client.post(
        "/api/auth/firebase-login",
        json={"idToken": id_token_for("alice@x.com"), "email": "admin@x.com"},
    )
    assert response.status_code == 401


def test_verify_requires_bearer_token(client):
    missing = client.get("/api/auth/verify")
    assert missing.status_code == 401
    assert missing.json() == {"error": "Access token required"}

    garbage = client.get("/api/auth/verify", headers={"Authorization": "Bearer not-a-token"})
    assert garbage.status_code == 401
    assert garbage.json() == {"error": "Invalid or expired token"}

    wrong_scheme = client.get("/api/auth/verify", headers={"Authorization": "Basic abc"})
    assert wrong_scheme.status_code == 401


def test_unknown_route_returns_error_body(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"error": "Route not found"}


def test_malformed_json_body_returns_400(client, login):
    headers = {**login("p@x.com"), "Content-Type": "application/json"}
    response = client.post("/api/services", content="{not json", headers=headers)
    assert response.status_code == 400
    assert "error" in response.json()
