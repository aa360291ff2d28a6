# =============================================================================
# tests/test_charges.py - Charge Tests
# =============================================================================
# Tests for monthly fee generation, repricing after a group change, status
# changes and the charge endpoints.
# =============================================================================

from datetime import date, datetime

import pytest

from zaltyko.models.athlete import Athlete
from zaltyko.models.charges import Charge
from zaltyko.models.group import Group, GroupAthlete
from zaltyko.services.charges import (
    apply_status,
    bulk_update_status,
    generate_monthly_charges,
    group_fee_label,
    period_due_date,
    period_month_name,
    sync_charges_for_athlete_current_period,
)

PERIOD = "2025-02"


@pytest.fixture
def group(db, academy):
    group = Group(tenant_id=academy.tenant_id, academy_id=academy.id, name="Competición", monthly_fee_cents=4500)
    db.add(group)
    db.commit()
    return group


def _athlete(db, academy, group=None, name="Lucía", status="active"):
    athlete = Athlete(tenant_id=academy.tenant_id, academy_id=academy.id, name=name, status=status,
                      group_id=group.id if group else None)
    db.add(athlete)
    db.flush()
    if group:
        db.add(GroupAthlete(tenant_id=academy.tenant_id, group_id=group.id, athlete_id=athlete.id))
    db.commit()
    return athlete


def _charge(db, academy, athlete, status="pending", period=PERIOD, amount_cents=4500):
    charge = Charge(tenant_id=academy.tenant_id, academy_id=academy.id, athlete_id=athlete.id,
                    label="Cuota", amount_cents=amount_cents, period=period, status=status)
    db.add(charge)
    db.commit()
    return charge


# =============================================================================
# Period Helper Tests
# =============================================================================

class TestPeriodHelpers:
    """Test period formatting."""

    def test_due_date_is_last_day(self):
        assert period_due_date("2024-02") == date(2024, 2, 29)
        assert period_due_date("2025-12") == date(2025, 12, 31)

    def test_month_name_in_spanish(self):
        assert period_month_name("2025-03") == "Marzo 2025"

    def test_group_fee_label(self):
        assert group_fee_label("Competición", "2025-01") == "Cuota grupo Competición – Enero 2025"


# =============================================================================
# Monthly Generation Tests
# =============================================================================

class TestGenerateMonthlyCharges:
    """Test generate_monthly_charges."""

    def test_one_charge_per_paying_athlete(self, db, academy, group):
        # Arrange
        _athlete(db, academy, group, name="Lucía")
        _athlete(db, academy, group, name="Carmen")
        _athlete(db, academy, None, name="Sin grupo")
        _athlete(db, academy, group, name="Baja", status="inactive")

        # Act
        result = generate_monthly_charges(db, academy.tenant_id, academy.id, PERIOD)

        # Assert
        assert result.created == 2
        assert result.skipped == 1
        charge = result.charges[0]
        assert charge.amount_cents == 4500
        assert charge.due_date == date(2025, 2, 28)
        assert charge.label == "Cuota grupo Competición – Febrero 2025"

    def test_zero_fee_group_is_skipped(self, db, academy):
        free_group = Group(tenant_id=academy.tenant_id, academy_id=academy.id, name="Recreo", monthly_fee_cents=0)
        db.add(free_group)
        db.commit()
        _athlete(db, academy, free_group)

        result = generate_monthly_charges(db, academy.tenant_id, academy.id, PERIOD)

        assert result.created == 0
        assert result.skipped == 1

    def test_running_twice_skips_billed_athletes(self, db, academy, group):
        _athlete(db, academy, group)
        generate_monthly_charges(db, academy.tenant_id, academy.id, PERIOD)

        result = generate_monthly_charges(db, academy.tenant_id, academy.id, PERIOD)

        assert result.created == 0
        assert result.skipped == 1
        assert "ya tienen cargos" in result.message

    def test_cancelled_charge_does_not_block(self, db, academy, group):
        athlete = _athlete(db, academy, group)
        _charge(db, academy, athlete, status="cancelled")

        result = generate_monthly_charges(db, academy.tenant_id, academy.id, PERIOD)

        assert result.created == 1

    def test_duplicates_allowed_when_asked(self, db, academy, group):
        athlete = _athlete(db, academy, group)
        _charge(db, academy, athlete)

        result = generate_monthly_charges(db, academy.tenant_id, academy.id, PERIOD, skip_duplicates=False)

        assert result.created == 1

    def test_group_filter(self, db, academy, group):
        other = Group(tenant_id=academy.tenant_id, academy_id=academy.id, name="Base", monthly_fee_cents=3000)
        db.add(other)
        db.commit()
        _athlete(db, academy, group)
        _athlete(db, academy, other, name="Carmen")

        result = generate_monthly_charges(db, academy.tenant_id, academy.id, PERIOD, group_id=other.id)

        assert result.created == 1
        assert result.charges[0].amount_cents == 3000

    def test_no_athletes_message(self, db, academy):
        result = generate_monthly_charges(db, academy.tenant_id, academy.id, PERIOD)

        assert result.message == "No hay atletas activos para generar cargos."


# =============================================================================
# Repricing Tests
# =============================================================================

class TestSyncChargesForAthlete:
    """Test repricing open charges after a group change."""

    def test_reprices_open_charges_only(self, db, academy, group):
        # Arrange
        athlete = _athlete(db, academy)
        pending = _charge(db, academy, athlete, status="pending", amount_cents=1000)
        paid = _charge(db, academy, athlete, status="paid", amount_cents=1000)

        # Act
        updated = sync_charges_for_athlete_current_period(
            db, academy.id, athlete.id, group.id, now=datetime(2025, 2, 10)
        )

        # Assert
        assert updated == 1
        db.refresh(pending)
        db.refresh(paid)
        assert pending.amount_cents == 4500
        assert pending.label.startswith("Cuota grupo Competición")
        assert paid.amount_cents == 1000

    def test_other_period_untouched(self, db, academy, group):
        athlete = _athlete(db, academy)
        _charge(db, academy, athlete, period="2025-01")

        assert sync_charges_for_athlete_current_period(
            db, academy.id, athlete.id, group.id, now=datetime(2025, 2, 10)
        ) == 0


# =============================================================================
# Status Tests
# =============================================================================

class TestStatusChanges:
    """Test paid_at stamping."""

    def test_paid_stamps_paid_at(self, db, academy):
        athlete = _athlete(db, academy)
        charge = _charge(db, academy, athlete)

        apply_status(charge, "paid", "bizum")

        assert charge.paid_at is not None
        assert charge.payment_method == "bizum"

    def test_reopening_clears_paid_at(self, db, academy):
        athlete = _athlete(db, academy)
        charge = _charge(db, academy, athlete)
        apply_status(charge, "paid")

        apply_status(charge, "pending")

        assert charge.paid_at is None

    def test_bulk_is_tenant_scoped(self, db, academy, make_user, make_academy):
        own = _charge(db, academy, _athlete(db, academy))
        rival_academy = make_academy(make_user(), name="Club Rival")
        foreign = _charge(db, rival_academy, _athlete(db, rival_academy))

        updated = bulk_update_status(db, academy.tenant_id, [own.id, foreign.id], "paid")

        assert updated == 1
        db.refresh(foreign)
        assert foreign.status == "pending"


# =============================================================================
# Endpoint Tests
# =============================================================================

class TestChargeEndpoints:
    """Test the charge API."""

    def test_generate_monthly_status_codes(self, client, db, academy, group, owner_headers):
        """201 when charges were created, 200 when everything was skipped."""
        _athlete(db, academy, group)
        payload = {"academyId": academy.id, "period": PERIOD}

        first = client.post("/api/charges/generate-monthly", json=payload, headers=owner_headers)
        second = client.post("/api/charges/generate-monthly", json=payload, headers=owner_headers)

        assert first.status_code == 201
        assert first.json()["created"] == 1
        assert second.status_code == 200
        assert second.json()["created"] == 0

    def test_invalid_period_is_400(self, client, academy, owner_headers):
        response = client.post("/api/charges/generate-monthly",
                               json={"academyId": academy.id, "period": "2025-2"},
                               headers=owner_headers)

        assert response.status_code == 400

    def test_create_from_billing_item(self, client, db, academy, owner_headers):
        athlete = _athlete(db, academy)
        item = client.post(
            "/api/billing-items",
            json={"academyId": academy.id, "name": "Licencia federativa", "amountCents": 3500,
                  "periodicity": "yearly"},
            headers=owner_headers,
        ).json()

        response = client.post(
            "/api/charges",
            json={"academyId": academy.id, "athleteId": athlete.id, "billingItemId": item["id"],
                  "period": PERIOD},
            headers=owner_headers,
        )

        assert response.status_code == 201
        assert response.json()["label"] == "Licencia federativa"
        assert response.json()["amountCents"] == 3500

    def test_create_requires_amount_without_item(self, client, db, academy, owner_headers):
        athlete = _athlete(db, academy)

        response = client.post(
            "/api/charges",
            json={"academyId": academy.id, "athleteId": athlete.id, "period": PERIOD},
            headers=owner_headers,
        )

        assert response.status_code == 400

    def test_list_filters_by_status(self, client, db, academy, owner_headers):
        athlete = _athlete(db, academy)
        _charge(db, academy, athlete, status="pending")
        _charge(db, academy, athlete, status="overdue")
        _charge(db, academy, athlete, status="paid")

        response = client.get(f"/api/charges?academyId={academy.id}&status=pending,overdue",
                              headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["total"] == 2
        assert response.json()["totalPages"] == 1

    def test_list_rejects_unknown_status(self, client, academy, owner_headers):
        response = client.get(f"/api/charges?academyId={academy.id}&status=lost", headers=owner_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_STATUS"

    def test_mark_paid(self, client, db, academy, owner_headers):
        charge = _charge(db, academy, _athlete(db, academy))

        response = client.patch(f"/api/charges/{charge.id}", json={"status": "paid", "paymentMethod": "cash"},
                                headers=owner_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "paid"
        assert body["paidAt"] is not None
        assert body["paymentMethod"] == "cash"

    def test_bulk_endpoint(self, client, db, academy, owner_headers):
        athlete = _athlete(db, academy)
        ids = [_charge(db, academy, athlete).id for _ in range(3)]

        response = client.post("/api/charges/bulk", json={"chargeIds": ids, "status": "overdue"},
                                headers=owner_headers)

        assert response.json() == {"success": True, "updated": 3}

    def test_group_change_reprices_current_period(self, client, db, academy, group, owner_headers):
        """Moving an athlete to another group updates this month's open fee."""
        athlete = _athlete(db, academy)
        current_period = datetime.utcnow().strftime("%Y-%m")
        charge = _charge(db, academy, athlete, period=current_period, amount_cents=1000)

        response = client.patch(f"/api/athletes/{athlete.id}", json={"groupId": group.id}, headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["groupId"] == group.id
        db.refresh(charge)
        assert charge.amount_cents == 4500


# =============================================================================
# Period Validation Tests
# =============================================================================

class TestPeriodValidation:
    """Test that impossible months are rejected before reaching the services."""

    @pytest.mark.parametrize("period", ["2024-13", "2024-00"])
    def test_generate_monthly_rejects_month(self, client, db, academy, group, owner_headers, period):
        # Arrange
        _athlete(db, academy, group)

        # Act
        response = client.post("/api/charges/generate-monthly",
                               json={"academyId": academy.id, "period": period},
                               headers=owner_headers)

        # Assert
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"
        assert db.query(Charge).count() == 0

    @pytest.mark.parametrize("period", ["2024-13", "2024-00"])
    def test_create_rejects_month(self, client, db, academy, owner_headers, period):
        athlete = _athlete(db, academy)

        response = client.post(
            "/api/charges",
            json={"academyId": academy.id, "athleteId": athlete.id, "label": "Cuota",
                  "amountCents": 4500, "period": period},
            headers=owner_headers,
        )

        assert response.status_code == 400

    def test_list_rejects_month(self, client, academy, owner_headers):
        response = client.get(f"/api/charges?academyId={academy.id}&period=2024-13", headers=owner_headers)

        assert response.status_code == 400

    def test_financial_metrics_rejects_month(self, client, academy, owner_headers):
        response = client.get(f"/api/dashboard/{academy.id}/financial-metrics?period=2024-00",
                              headers=owner_headers)

        assert response.status_code == 400

    def test_december_is_accepted(self, client, db, academy, group, owner_headers):
        _athlete(db, academy, group)

        response = client.post("/api/charges/generate-monthly",
                               json={"academyId": academy.id, "period": "2024-12"},
                               headers=owner_headers)

        assert response.status_code == 201
