from datetime import timedelta

from plutify.auth import create_access_token
from plutify.models import User

TEST_PASSWORD = "Password123!"


def test_signup_creates_client(api_client, db_session):
    response = api_client.post(
        "/api/users/signup",
        json={
            "first_name": "Nina",
            "last_name": "New",
            "email": "Nina@Example.com",
            "password": "longpassword",
            "confirm_password": "longpassword",
            "phoneNumber": "(555) 123-4567",
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["email"] == "nina@example.com"
    assert body["data"]["role"] == "CLIENT"
    assert body["data"]["phoneNumber"] == "+15551234567"
    assert "password" not in body["data"]

    user = db_session.query(User).filter(User.email == "nina@example.com").one()
    assert user.password != "longpassword"


def test_signup_rejects_password_mismatch(api_client):
    response = api_client.post(
        "/api/users/signup",
        json={
            "first_name": "Nina",
            "email": "nina@example.com",
            "password": "longpassword",
            "confirm_password": "different1",
        },
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_signup_rejects_duplicate_email(api_client, client_user):
    response = api_client.post(
        "/api/users/signup",
        json={
            "first_name": "Dup",
            "email": client_user.email,
            "password": "longpassword",
            "confirm_password": "longpassword",
        },
    )
    assert response.status_code == 400
    assert response.json()["message"] == "User Already Exists"


def test_signup_validation_error_is_422(api_client):
    response = api_client.post("/api/users/signup", json={"email": "not-an-email"})
    assert response.status_code == 422
    assert response.json()["success"] is False


def test_signin_returns_token(api_client, client_user):
    response = api_client.post(
        "/api/users/signin", json={"email": client_user.email, "password": TEST_PASSWORD}
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["token"]
    assert data["user"]["id"] == client_user.id

    me = api_client.get("/api/users/me", headers={"Authorization": f"Bearer {data['token']}"})
    assert me.status_code == 200
    assert me.json()["data"]["email"] == client_user.email


def test_signin_wrong_password(api_client, client_user):
    response = api_client.post("/api/users/signin", json={"email": client_user.email, "password": "nope"})
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid Credentials"


def test_signin_deactivated_account(api_client, user_factory):
    user = user_factory("gone@example.com", active=False)
    response = api_client.post("/api/users/signin", json={"email": user.email, "password": TEST_PASSWORD})
    assert response.status_code == 403


def test_missing_token(api_client):
    response = api_client.get("/api/users/me")
    assert response.status_code == 401
    assert response.json()["error"] == "TOKEN_REQUIRED"


def test_wrong_auth_scheme(api_client):
    response = api_client.get("/api/users/me", headers={"Authorization": "Token abc"})
    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_AUTH_FORMAT"


def test_malformed_auth_header(api_client):
    response = api_client.get("/api/users/me", headers={"Authorization": "Bearer"})
    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_AUTH_HEADER"


def test_garbage_token(api_client):
    response = api_client.get("/api/users/me", headers={"Authorization": "Bearer not.a.jwt"})
    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_TOKEN_FORMAT"


def test_expired_token(api_client, client_user):
    token = create_access_token(client_user, expires_delta=timedelta(seconds=-10))
    response = api_client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["error"] == "TOKEN_EXPIRED"


def test_token_for_deleted_user(api_client, db_session, client_user, headers_for):
    headers = headers_for(client_user)
    db_session.delete(client_user)
    db_session.commit()

    response = api_client.get("/api/users/me", headers=headers)
    assert response.status_code == 401
    assert response.json()["error"] == "USER_NOT_FOUND"


def test_deactivated_user_token_is_rejected(api_client, db_session, client_user, client_headers):
    client_user.active = False
    db_session.commit()

    response = api_client.get("/api/users/me", headers=client_headers)
    assert response.status_code == 403
    assert response.json()["error"] == "ACCOUNT_DEACTIVATED"


def test_update_profile(api_client, client_headers):
    response = api_client.patch(
        "/api/users/me", headers=client_headers, json={"first_name": "Carlotta", "phoneNumber": "555-987-6543"}
    )
    assert response.status_code == 200
    assert response.json()["data"]["first_name"] == "Carlotta"
    assert response.json()["data"]["phoneNumber"] == "+15559876543"
