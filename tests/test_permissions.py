# =============================================================================
# tests/test_permissions.py - Role and Resource Access Tests
# =============================================================================
# Tests for the access checks in zaltyko.core.permissions and for the
# role gates on academy management and super admin routes.
# =============================================================================

import uuid

import pytest

from zaltyko.core.exceptions import AuthorizationError
from zaltyko.core.permissions import (
    ensure_allowed,
    require_roles,
    verify_academy_access,
    verify_athlete_access,
    verify_resource_access,
)
from zaltyko.models.athlete import Athlete
from zaltyko.models.audit import AuditLog
from zaltyko.models.user import UserRole


# =============================================================================
# Resource Check Tests
# =============================================================================

class TestResourceChecks:
    """Test PermissionCheck results."""

    def test_academy_in_tenant_is_allowed(self, db, academy):
        check = verify_academy_access(db, academy.id, academy.tenant_id)

        assert check.allowed
        assert check.reason is None

    def test_academy_in_other_tenant_is_denied(self, db, academy):
        check = verify_academy_access(db, academy.id, str(uuid.uuid4()))

        assert not check.allowed
        assert check.reason == "ACADEMY_NOT_FOUND_OR_ACCESS_DENIED"

    def test_athlete_scoped_to_academy(self, db, make_academy, owner, academy):
        """An athlete of the same tenant but another academy is denied when scoped."""
        # Arrange
        second = make_academy(owner, name="Club Sur")
        athlete = Athlete(tenant_id=academy.tenant_id, academy_id=second.id, name="Ana", status="active")
        db.add(athlete)
        db.commit()

        # Act / Assert
        assert verify_athlete_access(db, athlete.id, academy.tenant_id).allowed
        denied = verify_athlete_access(db, athlete.id, academy.tenant_id, academy_id=academy.id)
        assert denied.reason == "ATHLETE_NOT_FOUND_OR_ACCESS_DENIED"

    def test_profile_bound_to_other_tenant_fails_first(self, db, owner, academy):
        check = verify_resource_access(db, owner, str(uuid.uuid4()), "academy", academy.id)

        assert check.reason == "TENANT_MISMATCH"

    def test_platform_roles_pass(self, db, super_admin):
        check = verify_resource_access(db, super_admin, "any-tenant", "athlete", "any-id")

        assert check.allowed

    def test_unknown_resource_type(self, db, owner, academy):
        check = verify_resource_access(db, owner, academy.tenant_id, "spaceship", "x")

        assert check.reason == "UNKNOWN_RESOURCE_TYPE"

    def test_ensure_allowed_raises_with_reason(self, db, academy):
        with pytest.raises(AuthorizationError) as exc_info:
            ensure_allowed(verify_academy_access(db, "missing", academy.tenant_id))

        assert exc_info.value.status_code == 403
        assert exc_info.value.code == "ACADEMY_NOT_FOUND_OR_ACCESS_DENIED"

    def test_require_roles(self, make_user):
        coach = make_user(role=UserRole.COACH)

        require_roles(coach, UserRole.COACH, UserRole.OWNER)
        with pytest.raises(AuthorizationError) as exc_info:
            require_roles(coach, UserRole.OWNER)
        assert exc_info.value.code == "INSUFFICIENT_PERMISSIONS"


# =============================================================================
# Academy Management Tests
# =============================================================================

class TestAcademyEndpoints:
    """Test academy creation, tenant assignment and role gates."""

    def test_first_academy_creates_tenant(self, client, db, make_user, auth_headers):
        """A fresh owner gets a tenant, a membership and a free subscription."""
        # Arrange
        newcomer = make_user()

        # Act
        response = client.post(
            "/api/academies",
            json={"name": "Club Trampolín", "academyType": "trampolin", "city": "Valencia"},
            headers=auth_headers(newcomer),
        )

        # Assert
        assert response.status_code == 201
        body = response.json()
        assert body["academyType"] == "trampolin"
        assert body["ownerId"] == newcomer.id
        db.refresh(newcomer)
        assert newcomer.tenant_id == body["tenantId"]
        assert newcomer.active_academy_id == body["id"]
        assert newcomer.subscription is not None
        assert db.query(AuditLog).filter(AuditLog.action == "academy.created").count() == 1

    def test_free_plan_allows_one_academy(self, client, owner_headers):
        response = client.post("/api/academies", json={"name": "Segunda"}, headers=owner_headers)

        assert response.status_code == 402
        body = response.json()
        assert body["error"] == "ACADEMY_LIMIT_REACHED"
        assert body["details"]["upgradeTo"] == "pro"
        assert body["details"]["currentCount"] == 1

    def test_coach_cannot_create_academy(self, client, make_user, academy, auth_headers):
        coach = make_user(role=UserRole.COACH, tenant_id=academy.tenant_id)

        response = client.post("/api/academies", json={"name": "Club Coach"}, headers=auth_headers(coach))

        assert response.status_code == 403
        assert response.json()["error"] == "INSUFFICIENT_PERMISSIONS"

    def test_owner_cannot_create_for_others(self, client, make_user, owner_headers):
        other = make_user()

        response = client.post(
            "/api/academies",
            json={"name": "Ajena", "ownerProfileId": other.id},
            headers=owner_headers,
        )

        assert response.status_code == 403

    def test_admin_creates_for_owner(self, client, db, make_user, super_admin, auth_headers):
        """Admins may create an academy on behalf of an owner profile."""
        target = make_user()

        response = client.post(
            "/api/academies",
            json={"name": "Club Delegado", "ownerProfileId": target.id},
            headers=auth_headers(super_admin),
        )

        assert response.status_code == 201
        assert response.json()["ownerId"] == target.id
        db.refresh(target)
        assert target.tenant_id == response.json()["tenantId"]

    def test_invalid_academy_type_is_400(self, client, owner_headers):
        response = client.post("/api/academies", json={"name": "X", "academyType": "futbol"},
                               headers=owner_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_owner_updates_and_deletes(self, client, db, owner, academy, owner_headers):
        patched = client.patch(f"/api/academies/{academy.id}", json={"city": "Sevilla"}, headers=owner_headers)
        assert patched.status_code == 200
        assert patched.json()["city"] == "Sevilla"

        deleted = client.delete(f"/api/academies/{academy.id}", headers=owner_headers)
        assert deleted.status_code == 204
        db.refresh(owner)
        assert owner.active_academy_id is None

    def test_list_is_tenant_scoped(self, client, make_user, make_academy, academy, owner_headers):
        make_academy(make_user(), name="Club Rival")

        response = client.get("/api/academies", headers=owner_headers)

        assert [a["id"] for a in response.json()] == [academy.id]

    def test_super_admin_lists_everything(self, client, make_user, make_academy, academy,
                                          super_admin, auth_headers):
        make_academy(make_user(), name="Club Rival")

        response = client.get("/api/academies", headers=auth_headers(super_admin))

        assert len(response.json()) == 2


# =============================================================================
# Super Admin Tests
# =============================================================================

class TestSuperAdmin:
    """Test super admin gates and actions."""

    def test_owner_is_rejected(self, client, owner_headers):
        response = client.get("/api/super-admin/users", headers=owner_headers)

        assert response.status_code == 403
        assert response.json()["error"] == "SUPER_ADMIN_REQUIRED"

    def test_suspend_hides_from_directory(self, client, academy, super_admin, auth_headers):
        headers = auth_headers(super_admin)

        response = client.post(f"/api/super-admin/academies/{academy.id}/suspend", headers=headers)

        assert response.status_code == 200
        assert response.json()["isSuspended"] is True
        assert client.get("/api/public/academies").json()["total"] == 0

        client.post(f"/api/super-admin/academies/{academy.id}/unsuspend", headers=headers)
        assert client.get("/api/public/academies").json()["total"] == 1

    def test_disable_login(self, client, owner, academy, super_admin, auth_headers):
        response = client.patch(
            f"/api/super-admin/users/{owner.id}",
            json={"canLogin": False},
            headers=auth_headers(super_admin),
        )

        assert response.status_code == 200
        assert response.json()["canLogin"] is False
        assert client.get("/api/profile", headers=auth_headers(owner)).status_code == 403

    def test_cannot_lock_self_out(self, client, super_admin, auth_headers):
        response = client.patch(
            f"/api/super-admin/users/{super_admin.id}",
            json={"role": "owner"},
            headers=auth_headers(super_admin),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "SELF_LOCKOUT"

    def test_list_users_filters_by_role(self, client, owner, make_user, super_admin, auth_headers):
        make_user(role=UserRole.COACH)

        response = client.get("/api/super-admin/users?role=coach", headers=auth_headers(super_admin))

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["role"] == "coach"
        assert body["pageSize"] == 50
