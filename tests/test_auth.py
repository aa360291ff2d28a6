# =============================================================================
# tests/test_auth.py - Authentication and Profile Tests
# =============================================================================

import uuid

from zaltyko.core.security import create_access_token, decode_access_token
from zaltyko.models.user import User, UserRole

from tests.conftest import TEST_PASSWORD


class TestRegister:
    """Test owner self-registration."""

    def test_register_owner(self, client, db):
        response = client.post(
            "/api/auth/register",
            json={"email": "Marta@Gimnasia.es", "password": "contraseña-segura", "name": "Marta"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["email"] == "marta@gimnasia.es"
        assert body["role"] == "owner"
        assert body["tenantId"] is None
        assert "hashedPassword" not in body

    def test_duplicate_email_is_409(self, client, owner):
        response = client.post(
            "/api/auth/register",
            json={"email": owner.email.upper(), "password": "contraseña-segura", "name": "Otra"},
        )

        assert response.status_code == 409
        assert response.json()["error"] == "EMAIL_TAKEN"

    def test_short_password_is_400(self, client, db):
        response = client.post("/api/auth/register",
                               json={"email": "a@gimnasia.es", "password": "corta", "name": "A"})

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"


class TestLogin:
    """Test token issuance."""

    def test_login_returns_token(self, client, db, owner, academy):
        # Act
        response = client.post("/api/auth/login", json={"email": owner.email, "password": TEST_PASSWORD})

        # Assert
        assert response.status_code == 200
        payload = decode_access_token(response.json()["accessToken"])
        assert payload["sub"] == owner.id
        assert payload["tenant_id"] == academy.tenant_id
        db.refresh(owner)
        assert owner.last_login_at is not None

    def test_wrong_password_is_generic_401(self, client, owner):
        response = client.post("/api/auth/login", json={"email": owner.email, "password": "otra-clave-123"})

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_unknown_email_is_same_401(self, client, db):
        response = client.post("/api/auth/login", json={"email": "nadie@gimnasia.es", "password": TEST_PASSWORD})

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_login_disabled(self, client, make_user):
        blocked = make_user(can_login=False)

        response = client.post("/api/auth/login", json={"email": blocked.email, "password": TEST_PASSWORD})

        assert response.status_code == 401

    def test_super_admin_ignores_can_login(self, client, make_user):
        admin = make_user(role=UserRole.SUPER_ADMIN, can_login=False)

        response = client.post("/api/auth/login", json={"email": admin.email, "password": TEST_PASSWORD})

        assert response.status_code == 200

    def test_garbage_token_is_401(self, client, db):
        response = client.get("/api/profile", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHENTICATED"


class TestProfile:
    """Test the caller's own profile."""

    def test_profile_without_tenant(self, client, make_user, auth_headers):
        """Profile routes work before the first academy exists."""
        newcomer = make_user()

        response = client.get("/api/profile", headers=auth_headers(newcomer))

        assert response.status_code == 200
        assert response.json()["tenantId"] is None

    def test_update_name(self, client, owner, academy, owner_headers):
        response = client.patch("/api/profile", json={"name": "Marta L."}, headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["name"] == "Marta L."

    def test_cannot_activate_foreign_academy(self, client, make_user, make_academy, academy, owner_headers):
        rival_academy = make_academy(make_user(), name="Club Rival")

        response = client.patch("/api/profile", json={"activeAcademyId": rival_academy.id}, headers=owner_headers)

        assert response.status_code == 403

    def test_role_cannot_be_self_assigned(self, client, db, owner, academy, owner_headers):
        client.patch("/api/profile", json={"role": "super_admin"}, headers=owner_headers)

        assert db.query(User).filter(User.id == owner.id).one().role == UserRole.OWNER

    def test_subscription_summary(self, client, academy, owner_headers):
        response = client.get("/api/profile/subscription", headers=owner_headers)

        body = response.json()
        assert body["planCode"] == "free"
        assert body["limits"]["athletes"] == 50
        assert body["upgrade"]["next_plan"] == "pro"


class TestErrorShape:
    """Test that framework errors use the API error body."""

    def test_unknown_route(self, client, db):
        response = client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"

    def test_health(self, client, db):
        response = client.get("/health")

        assert response.json()["status"] == "healthy"


class TestMissingProfile:
    """Test tokens whose user row no longer exists."""

    def test_unknown_subject_is_404(self, client, db):
        # Arrange
        token = create_access_token({"sub": str(uuid.uuid4())})

        # Act
        response = client.get("/api/profile", headers={"Authorization": f"Bearer {token}"})

        # Assert
        assert response.status_code == 404
        assert response.json()["error"] == "PROFILE_NOT_FOUND"

    def test_deleted_user_is_404(self, client, db, make_user, auth_headers):
        user = make_user()
        headers = auth_headers(user)
        db.delete(user)
        db.commit()

        response = client.get("/api/profile", headers=headers)

        assert response.status_code == 404
