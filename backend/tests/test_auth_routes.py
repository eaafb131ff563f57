from datetime import datetime, timedelta, timezone

from backend.auth_service.models import Role, User
from backend.auth_service.tokens import sign_token


def register(client, email="test@example.com", password="password123"):
    return client.post("/api/users/register", json={"email": email, "password": password})


def login(client, email="test@example.com", password="password123"):
    return client.post("/api/users/login", json={"email": email, "password": password})


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_register_success(client, users):
    response = register(client)

    assert response.status_code == 201
    data = response.get_json()
    assert data["email"] == "test@example.com"
    assert data["id"] in users.rows
    assert users.rows[data["id"]].role == Role.ATTENDEE
    # Only the hash is stored
    assert users.rows[data["id"]].password_hash != "password123"


def test_attendee_session_lifecycle(client, users):
    created = register(client, email="a@example.com", password="password123456")
    assert created.status_code == 201

    token = login(client, email="a@example.com", password="password123456").get_json()["token"]
    assert client.get("/api/users/protected", headers=bearer(token)).get_json() == {"role": "ATTENDEE"}
    assert client.post("/api/users/logout", headers=bearer(token)).status_code == 200
    assert client.get("/api/users/protected", headers=bearer(token)).status_code == 401
    assert len(users.rows) == 1


def test_register_duplicate_email(client, users):
    register(client)

    response = register(client, email="Test@Example.com")

    assert response.status_code == 400
    assert response.get_json() == {"message": "Email is already taken."}
    assert len(users.rows) == 1


def test_register_rejects_short_password(client):
    response = register(client, password="short")
    assert response.status_code == 400
    assert response.get_json()["message"] == "Password must be at least 8 characters"


def test_register_rejects_invalid_email(client):
    response = register(client, email="not-an-email")
    assert response.status_code == 400
    assert response.get_json()["message"] == "Enter a valid email"


def test_register_missing_fields(client):
    response = client.post("/api/users/register", json={})
    assert response.status_code == 400
    assert response.get_json()["message"] == "Email is required"


def test_login_success(client):
    register(client)

    response = login(client)

    assert response.status_code == 200
    assert isinstance(response.get_json()["token"], str)


def test_login_invalid_credentials(client):
    register(client)

    wrong_password = login(client, password="wrongpassword")
    unknown_email = login(client, email="nobody@example.com")

    assert wrong_password.status_code == 401
    assert wrong_password.get_json() == {"message": "Invalid credentials."}
    assert unknown_email.status_code == 401
    assert unknown_email.get_json() == {"message": "Invalid credentials."}


def test_login_missing_fields(client):
    response = client.post("/api/users/login", json={"email": "test@example.com"})
    assert response.status_code == 400


def test_login_database_error(client, users, mocker):
    mocker.patch.object(users, "get_by_email", side_effect=RuntimeError("connection refused"))

    response = login(client)

    assert response.status_code == 500
    assert response.get_json() == {"message": "Failed to login."}


def test_register_login_logout_flow(client):
    assert register(client).status_code == 201
    token = login(client).get_json()["token"]

    protected = client.get("/api/users/protected", headers=bearer(token))
    assert protected.status_code == 200
    assert protected.get_json() == {"role": "ATTENDEE"}

    logout = client.post("/api/users/logout", headers=bearer(token))
    assert logout.status_code == 200
    assert logout.get_json() == {"message": "Successfully logged out"}

    after = client.get("/api/users/protected", headers=bearer(token))
    assert after.status_code == 401
    assert after.get_json() == {"message": "Authentication token has been revoked"}

    # The route guard on logout rejects an already revoked token as well
    again = client.post("/api/users/logout", headers=bearer(token))
    assert again.status_code == 401
    assert again.get_json() == {"message": "Authentication token has been revoked"}


def test_logout_only_revokes_presented_token(client):
    register(client)
    first = login(client).get_json()["token"]
    second = login(client).get_json()["token"]
    assert first != second

    client.post("/api/users/logout", headers=bearer(first))

    assert client.get("/api/users/protected", headers=bearer(second)).status_code == 200


def test_protected_missing_token(client):
    response = client.get("/api/users/protected")

    assert response.status_code == 401
    assert response.get_json() == {"message": "Missing authentication token"}
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_protected_non_bearer_header(client):
    response = client.get("/api/users/protected", headers={"Authorization": "Basic dXNlcjpwdw=="})
    assert response.status_code == 401
    assert response.get_json() == {"message": "Missing authentication token"}


def test_protected_invalid_token(client):
    response = client.get("/api/users/protected", headers=bearer("not.a.jwt"))
    assert response.status_code == 401
    assert response.get_json() == {"message": "Invalid authentication token"}


def test_protected_expired_token(client, make_user):
    user = make_user("late@example.com")
    token = sign_token(
        {"user_id": user.id, "email": user.email, "role": user.role},
        "test_secret",
        timedelta(minutes=5),
        now=datetime.now(timezone.utc) - timedelta(hours=1),
    )

    response = client.get("/api/users/protected", headers=bearer(token))

    assert response.status_code == 401
    assert response.get_json() == {"message": "Invalid authentication token"}


def test_protected_user_not_found(client, auth_header):
    ghost = User(id="00000000-0000-0000-0000-000000000000", email="ghost@example.com", password_hash="x")

    response = client.get("/api/users/protected", headers=auth_header(ghost))

    assert response.status_code == 401
    assert response.get_json() == {"message": "User not found"}


def test_logout_missing_token(client):
    response = client.post("/api/users/logout")
    assert response.status_code == 401
    assert response.get_json() == {"message": "Missing authentication token"}


def test_revocation_store_failure_is_not_leaked(client, make_user, auth_header, revoked_tokens, mocker):
    user = make_user("test@example.com")
    mocker.patch.object(revoked_tokens, "get", side_effect=RuntimeError("db down"))

    response = client.get("/api/users/protected", headers=auth_header(user))

    assert response.status_code == 401
    assert response.get_json() == {"message": "Authentication required"}


def test_admin_create_forbidden_for_non_admin(client, make_user, auth_header, users):
    organizer = make_user("org@example.com", role=Role.ORGANIZER)

    response = client.post(
        "/api/users/admin/create",
        json={"email": "new@example.com", "password": "password123", "role": "ADMIN"},
        headers=auth_header(organizer),
    )

    assert response.status_code == 403
    assert response.get_json() == {"message": "Forbidden"}
    assert users.get_by_email("new@example.com") is None


def test_admin_create_success(client, make_user, auth_header, users):
    admin = make_user("admin@example.com", role=Role.ADMIN)

    response = client.post(
        "/api/users/admin/create",
        json={"email": "new@example.com", "password": "password123", "role": "organizer"},
        headers=auth_header(admin),
    )

    assert response.status_code == 201
    data = response.get_json()
    assert data["email"] == "new@example.com"
    assert users.get_by_id(data["id"]).role == Role.ORGANIZER


def test_admin_create_invalid_role(client, make_user, auth_header):
    admin = make_user("admin@example.com", role=Role.ADMIN)

    response = client.post(
        "/api/users/admin/create",
        json={"email": "new@example.com", "password": "password123", "role": "SUPERUSER"},
        headers=auth_header(admin),
    )

    assert response.status_code == 400
    assert response.get_json() == {"message": "role must be one of: ATTENDEE, ORGANIZER, ADMIN"}


def test_admin_create_duplicate_email(client, make_user, auth_header):
    admin = make_user("admin@example.com", role=Role.ADMIN)

    response = client.post(
        "/api/users/admin/create",
        json={"email": "admin@example.com", "password": "password123"},
        headers=auth_header(admin),
    )

    assert response.status_code == 400
    assert response.get_json() == {"message": "Email is already taken."}


def test_register_non_string_email(client, users):
    response = register(client, email=123)

    assert response.status_code == 400
    assert response.get_json() == {"message": "Email is required"}
    assert users.rows == {}


def test_login_non_string_email(client):
    register(client)

    response = login(client, email=["test@example.com"])

    assert response.status_code == 400
    assert response.get_json() == {"message": "Email and password are required"}


def test_admin_create_non_string_email(client, make_user, auth_header):
    admin = make_user("admin@example.com", role=Role.ADMIN)

    response = client.post(
        "/api/users/admin/create",
        json={"email": {"address": "new@example.com"}, "password": "password123"},
        headers=auth_header(admin),
    )

    assert response.status_code == 400
    assert response.get_json() == {"message": "Email is required"}
