# =============================================================================
# tests/test_limits.py - Plan Limit Tests
# =============================================================================
# Tests for plan quotas: limit evaluation, enforcement on creation and the
# usage summary used by the dashboard.
# =============================================================================

import pytest

from zaltyko.core.exceptions import NotFoundError, PlanLimitError
from zaltyko.core.limits import (
    DEFAULT_ATHLETE_LIMIT,
    assert_within_plan_limits,
    check_plan_limit_violations,
    evaluate_limit,
    get_active_subscription,
    get_remaining_limits,
    get_upgrade_info,
)
from zaltyko.models.athlete import Athlete
from zaltyko.models.billing import Plan, Subscription
from zaltyko.models.group import Group


def _groups(db, academy, count):
    for i in range(count):
        db.add(Group(tenant_id=academy.tenant_id, academy_id=academy.id, name=f"Grupo {i}"))
    db.commit()


def _athletes(db, academy, count):
    for i in range(count):
        db.add(Athlete(tenant_id=academy.tenant_id, academy_id=academy.id, name=f"Atleta {i}", status="active"))
    db.commit()


def _set_plan(db, user, code):
    plan = db.query(Plan).filter(Plan.code == code).first()
    subscription = db.query(Subscription).filter(Subscription.user_id == user.id).first()
    subscription.plan_id = plan.id
    db.commit()


# =============================================================================
# Limit Evaluation Tests
# =============================================================================

class TestEvaluateLimit:
    """Test the exceeded rule."""

    def test_below_limit(self):
        assert not evaluate_limit("free", 3, 2).exceeded

    def test_at_limit_is_exceeded(self):
        """Being at the limit blocks the next creation."""
        result = evaluate_limit("free", 3, 3)

        assert result.exceeded
        assert result.upgrade_to == "pro"

    def test_pro_upgrades_to_premium(self):
        assert evaluate_limit("pro", 10, 12).upgrade_to == "premium"

    def test_unlimited(self):
        assert not evaluate_limit("premium", None, 10_000).exceeded


# =============================================================================
# Subscription Resolution Tests
# =============================================================================

class TestActiveSubscription:
    """Test how an academy inherits its owner's plan."""

    def test_owner_on_free_plan(self, db, academy):
        info = get_active_subscription(db, academy.id)

        assert info.plan_code == "free"
        assert info.athlete_limit == 50
        assert info.group_limit == 3
        assert info.class_limit == 10

    def test_premium_is_unlimited(self, db, owner, academy):
        _set_plan(db, owner, "premium")

        info = get_active_subscription(db, academy.id)

        assert info.athlete_limit is None
        assert info.academy_limit is None

    def test_missing_academy_is_free(self, db):
        info = get_active_subscription(db, "missing")

        assert info.plan_code == "free"
        assert info.athlete_limit == DEFAULT_ATHLETE_LIMIT


# =============================================================================
# Enforcement Tests
# =============================================================================

class TestAssertWithinPlanLimits:
    """Test 402 enforcement on creation."""

    def test_group_limit_on_free(self, db, academy):
        _groups(db, academy, 3)

        with pytest.raises(PlanLimitError) as exc_info:
            assert_within_plan_limits(db, academy.tenant_id, academy.id, "groups")

        assert exc_info.value.status_code == 402
        assert exc_info.value.details == {"code": "LIMIT_REACHED", "upgradeTo": "pro", "resource": "groups"}

    def test_pro_allows_more_groups(self, db, owner, academy):
        _groups(db, academy, 3)
        _set_plan(db, owner, "pro")

        assert_within_plan_limits(db, academy.tenant_id, academy.id, "groups")

    def test_academy_of_other_tenant_is_404(self, db, academy):
        with pytest.raises(NotFoundError):
            assert_within_plan_limits(db, "other-tenant", academy.id, "athletes")

    def test_api_returns_upgrade_hint(self, client, db, academy, owner_headers):
        _groups(db, academy, 3)

        response = client.post("/api/groups", json={"academyId": academy.id, "name": "Cuarto"},
                               headers=owner_headers)

        assert response.status_code == 402
        body = response.json()
        assert body["error"] == "LIMIT_REACHED"
        assert body["details"]["upgradeTo"] == "pro"


# =============================================================================
# Usage Summary Tests
# =============================================================================

class TestRemainingLimits:
    """Test the dashboard usage summary."""

    def test_remaining_athletes(self, db, academy):
        _athletes(db, academy, 45)

        result = get_remaining_limits(db, academy.tenant_id, academy.id, "athletes")

        assert result["current"] == 45
        assert result["remaining"] == 5
        assert result["exceeded"] is False

    def test_check_limits_endpoint(self, client, db, academy, owner_headers):
        _groups(db, academy, 3)

        response = client.get(
            f"/api/profile/check-limits?academyId={academy.id}&resource=groups",
            headers=owner_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["exceeded"] is True
        assert body["upgrade"]["next_plan"] == "pro"

    def test_upgrade_info_top_plan(self):
        assert get_upgrade_info("premium") is None


# =============================================================================
# Downgrade Violation Tests
# =============================================================================

class TestPlanLimitViolations:
    """Test what blocks a downgrade."""

    def test_no_violations_within_limits(self, db, owner, academy):
        _athletes(db, academy, 10)

        assert check_plan_limit_violations(db, owner.id, "free") == []

    def test_over_athletes_and_academies(self, db, owner, academy, make_academy):
        # Arrange
        _set_plan(db, owner, "pro")
        make_academy(owner, name="Club Sur")
        _athletes(db, academy, 51)

        # Act
        violations = check_plan_limit_violations(db, owner.id, "free")

        # Assert
        by_resource = {v.resource: v for v in violations}
        assert set(by_resource) == {"academies", "athletes"}
        assert by_resource["academies"].current == 2
        assert by_resource["athletes"].limit == 50
        assert len(by_resource["athletes"].items) == 51
