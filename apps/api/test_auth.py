"""Login, token verification and role checks"""
from jose import jwt

from auth import SECRET_KEY, ALGORITHM, create_access_token
from conftest import TEST_PASSWORD, auth_headers, make_user
from models import UserRole, RecordStatus


def test_login_returns_token_with_scope_claims(client, kam):
    response = client.post("/api/auth/login", json={"email": "KAM@dasteyaar.com", "password": TEST_PASSWORD})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Login successful"
    assert body["data"]["user"]["role"] == "kam"

    claims = jwt.decode(body["data"]["token"], SECRET_KEY, algorithms=[ALGORITHM])
    assert claims["userId"] == str(kam.id)
    assert claims["role"] == "kam"
    assert claims["district_id"] == kam.district_id
    assert claims["team_id"] == kam.team_id
    assert "exp" not in claims


def test_login_requires_email_and_password(client):
    response = client.post("/api/auth/login", json={"email": "admin@dasteyaar.com"})

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": {"code": "BAD_REQUEST", "message": "Email and password are required"},
    }


def test_login_rejects_wrong_password(client, admin):
    response = client.post("/api/auth/login", json={"email": admin.email, "password": "wrong"})

    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Invalid email or password"


def test_login_rejects_unknown_email(client):
    response = client.post("/api/auth/login", json={"email": "nobody@dasteyaar.com", "password": TEST_PASSWORD})

    assert response.status_code == 401


def test_login_rejects_deactivated_account(client, session):
    make_user(session, "former@dasteyaar.com", UserRole.SUPER_ADMIN, status=RecordStatus.INACTIVE.value)

    response = client.post("/api/auth/login", json={"email": "former@dasteyaar.com", "password": TEST_PASSWORD})

    assert response.status_code == 403
    assert response.json()["error"]["message"] == "Your account has been deactivated"


def test_distributor_login_carries_city(client, distributor, city):
    response = client.post(
        "/api/auth/distributor-login",
        json={"email": distributor.email, "password": TEST_PASSWORD},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["role"] == "distributor"
    assert data["user"]["city_id"] == city.id
    claims = jwt.decode(data["token"], SECRET_KEY, algorithms=[ALGORITHM])
    assert claims["city_id"] == city.id


def test_inactive_distributor_cannot_login(client, session, distributor):
    distributor.status = RecordStatus.INACTIVE.value
    session.add(distributor)
    session.commit()

    response = client.post(
        "/api/auth/distributor-login",
        json={"email": distributor.email, "password": TEST_PASSWORD},
    )

    assert response.status_code == 403
    assert response.json()["error"]["message"] == "Your account is inactive. Please contact support."


def test_me_returns_current_account(client, admin, admin_headers):
    response = client.get("/api/auth/me", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"]["email"] == admin.email


def test_missing_token_is_rejected(client):
    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json()["error"] == {"code": "UNAUTHORIZED", "message": "No token provided"}


def test_token_signed_with_another_key_is_rejected(client, admin):
    token = jwt.encode(
        {"userId": str(admin.id), "email": admin.email, "role": "super_admin"},
        "not-the-server-key",
        algorithm=ALGORITHM,
    )

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Invalid token"


def test_unknown_role_claim_is_rejected(client, admin):
    token = create_access_token({"userId": admin.id, "email": admin.email, "role": "pharmacist"})

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_kam_cannot_reach_super_admin_routes(client, kam_headers):
    response = client.get("/api/users", headers=kam_headers)

    assert response.status_code == 403
    assert response.json()["error"] == {"code": "FORBIDDEN", "message": "Insufficient permissions"}


def test_distributor_cannot_reach_staff_routes(client, distributor, city):
    headers = auth_headers(distributor, UserRole.DISTRIBUTOR, city_id=city.id)

    response = client.get("/api/doctors", headers=headers)

    assert response.status_code == 403


def test_security_headers_present(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
