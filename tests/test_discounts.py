# =============================================================================
# tests/test_discounts.py - Discount and Scholarship Tests
# =============================================================================
# Tests for discount code and scholarship selection, amount computation and
# how a discount is applied to a new charge.
# =============================================================================

from datetime import date, timedelta
from decimal import Decimal

import pytest

from zaltyko.models.athlete import Athlete
from zaltyko.models.charges import Discount, Scholarship
from zaltyko.services.discounts import calculate_discount, compute_discount_amount

TODAY = date(2025, 3, 10)


@pytest.fixture
def athlete(db, academy):
    athlete = Athlete(tenant_id=academy.tenant_id, academy_id=academy.id, name="Lucía", status="active")
    db.add(athlete)
    db.commit()
    return athlete


def _discount(db, academy, code="VERANO", discount_type="percentage", value="20", **fields):
    values = {"start_date": TODAY - timedelta(days=30), "is_active": True, "current_uses": 0}
    values.update(fields)
    discount = Discount(tenant_id=academy.tenant_id, academy_id=academy.id, code=code, name=f"Código {code}",
                        discount_type=discount_type, discount_value=Decimal(value), **values)
    db.add(discount)
    db.commit()
    return discount


def _scholarship(db, academy, athlete, discount_type="fixed", value="15", **fields):
    values = {"start_date": TODAY - timedelta(days=30), "is_active": True}
    values.update(fields)
    scholarship = Scholarship(tenant_id=academy.tenant_id, academy_id=academy.id, athlete_id=athlete.id,
                              name="Beca deportiva", discount_type=discount_type,
                              discount_value=Decimal(value), **values)
    db.add(scholarship)
    db.commit()
    return scholarship


# =============================================================================
# Amount Computation Tests
# =============================================================================

class TestComputeDiscountAmount:
    """Test percentage and fixed amounts."""

    def test_percentage(self):
        assert compute_discount_amount(45.0, "percentage", 20) == 9.0

    def test_percentage_cap(self):
        assert compute_discount_amount(100.0, "percentage", 50, cap=30) == 30.0

    def test_fixed(self):
        assert compute_discount_amount(45.0, "fixed", Decimal("12.50")) == 12.5

    def test_rounds_to_cents(self):
        assert compute_discount_amount(33.33, "percentage", 10) == 3.33


# =============================================================================
# Selection Tests
# =============================================================================

class TestCalculateDiscount:
    """Test which reduction applies."""

    def test_code_applies(self, db, academy):
        discount = _discount(db, academy)

        result = calculate_discount(db, academy.id, academy.tenant_id, 45.0, discount_code="VERANO", today=TODAY)

        assert result.source == "discount"
        assert result.source_id == discount.id
        assert result.discount_amount == 9.0
        assert result.final_amount == 36.0

    def test_code_beats_scholarship(self, db, academy, athlete):
        _discount(db, academy)
        _scholarship(db, academy, athlete)

        result = calculate_discount(db, academy.id, academy.tenant_id, 45.0,
                                    discount_code="VERANO", athlete_id=athlete.id, today=TODAY)

        assert result.source == "discount"

    def test_unknown_code_falls_back_to_scholarship(self, db, academy, athlete):
        _scholarship(db, academy, athlete)

        result = calculate_discount(db, academy.id, academy.tenant_id, 45.0,
                                    discount_code="NOPE", athlete_id=athlete.id, today=TODAY)

        assert result.source == "scholarship"
        assert result.final_amount == 30.0

    def test_expired_code_is_ignored(self, db, academy):
        _discount(db, academy, end_date=TODAY - timedelta(days=1))

        assert calculate_discount(db, academy.id, academy.tenant_id, 45.0, discount_code="VERANO",
                                  today=TODAY) is None

    def test_future_code_is_ignored(self, db, academy):
        _discount(db, academy, start_date=TODAY + timedelta(days=1))

        assert calculate_discount(db, academy.id, academy.tenant_id, 45.0, discount_code="VERANO",
                                  today=TODAY) is None

    def test_used_up_code_is_ignored(self, db, academy):
        _discount(db, academy, max_uses=2, current_uses=2)

        assert calculate_discount(db, academy.id, academy.tenant_id, 45.0, discount_code="VERANO",
                                  today=TODAY) is None

    def test_code_of_other_tenant_is_ignored(self, db, academy, make_user, make_academy):
        rival_academy = make_academy(make_user(), name="Club Rival")
        _discount(db, rival_academy)

        assert calculate_discount(db, academy.id, academy.tenant_id, 45.0, discount_code="VERANO",
                                  today=TODAY) is None

    def test_final_amount_never_negative(self, db, academy):
        _discount(db, academy, discount_type="fixed", value="60")

        result = calculate_discount(db, academy.id, academy.tenant_id, 45.0, discount_code="VERANO", today=TODAY)

        assert result.final_amount == 0.0

    def test_inactive_scholarship_is_ignored(self, db, academy, athlete):
        _scholarship(db, academy, athlete, is_active=False)

        assert calculate_discount(db, academy.id, academy.tenant_id, 45.0, athlete_id=athlete.id,
                                  today=TODAY) is None


# =============================================================================
# Endpoint Tests
# =============================================================================

class TestDiscountEndpoints:
    """Test discount codes through the API."""

    def test_charge_with_code_counts_a_use(self, client, db, academy, athlete, owner_headers):
        """The charge stores the discounted amount and the code's use count goes up."""
        # Arrange
        discount = _discount(db, academy, start_date=date.today() - timedelta(days=1))

        # Act
        response = client.post(
            "/api/charges",
            json={"academyId": academy.id, "athleteId": athlete.id, "label": "Cuota marzo",
                  "amountCents": 4500, "period": "2025-03", "discountCode": "VERANO"},
            headers=owner_headers,
        )

        # Assert
        assert response.status_code == 201
        assert response.json()["amountCents"] == 3600
        db.refresh(discount)
        assert discount.current_uses == 1

    def test_scholarship_can_be_skipped(self, client, db, academy, athlete, owner_headers):
        _scholarship(db, academy, athlete, start_date=date.today() - timedelta(days=1))

        response = client.post(
            "/api/charges",
            json={"academyId": academy.id, "athleteId": athlete.id, "label": "Cuota",
                  "amountCents": 4500, "period": "2025-03", "applyScholarship": False},
            headers=owner_headers,
        )

        assert response.json()["amountCents"] == 4500

    def test_preview_does_not_count_a_use(self, client, db, academy, owner_headers):
        discount = _discount(db, academy, start_date=date.today() - timedelta(days=1))

        response = client.post(
            "/api/discounts/preview",
            json={"academyId": academy.id, "amount": 45, "discountCode": "VERANO"},
            headers=owner_headers,
        )

        assert response.status_code == 200
        assert response.json()["applied"] is True
        assert response.json()["finalAmount"] == 36.0
        db.refresh(discount)
        assert discount.current_uses == 0

    def test_preview_without_match(self, client, academy, owner_headers):
        response = client.post(
            "/api/discounts/preview",
            json={"academyId": academy.id, "amount": 45, "discountCode": "NOPE"},
            headers=owner_headers,
        )

        assert response.json() == {"applied": False, "finalAmount": 45.0}

    def test_duplicate_active_code_is_409(self, client, academy, owner_headers):
        payload = {"academyId": academy.id, "code": "VERANO", "name": "Verano", "discountType": "percentage",
                   "discountValue": 10, "startDate": "2025-06-01"}

        assert client.post("/api/discounts", json=payload, headers=owner_headers).status_code == 201
        response = client.post("/api/discounts", json=payload, headers=owner_headers)

        assert response.status_code == 409
        assert response.json()["error"] == "DISCOUNT_CODE_TAKEN"

    def test_percentage_over_100_is_400(self, client, academy, owner_headers):
        response = client.post(
            "/api/discounts",
            json={"academyId": academy.id, "name": "Gratis", "discountType": "percentage",
                  "discountValue": 150, "startDate": "2025-06-01"},
            headers=owner_headers,
        )

        assert response.status_code == 400


# =============================================================================
# Scholarship Endpoint Tests
# =============================================================================

class TestScholarshipEndpoints:
    """Test scholarship create, list, update and delete."""

    def _create(self, client, headers, academy, athlete, **fields):
        payload = {"academyId": academy.id, "athleteId": athlete.id, "name": "Beca deportiva",
                   "discountType": "percentage", "discountValue": 50, "startDate": "2025-01-01"}
        payload.update(fields)
        return client.post("/api/scholarships", json=payload, headers=headers)

    def test_create_and_list(self, client, academy, athlete, owner_headers):
        # Act
        created = self._create(client, owner_headers, academy, athlete)
        listed = client.get(f"/api/scholarships?athleteId={athlete.id}", headers=owner_headers)

        # Assert
        assert created.status_code == 201
        assert created.json()["isActive"] is True
        assert [s["id"] for s in listed.json()] == [created.json()["id"]]

    def test_athlete_must_be_in_academy(self, client, db, make_user, make_academy, academy, owner_headers):
        rival_academy = make_academy(make_user(), name="Club Rival")
        stranger = Athlete(tenant_id=rival_academy.tenant_id, academy_id=rival_academy.id, name="Ana",
                           status="active")
        db.add(stranger)
        db.commit()

        response = self._create(client, owner_headers, academy, stranger)

        assert response.status_code == 404
        assert response.json()["error"] == "ATHLETE_NOT_FOUND"

    def test_unknown_type_is_400(self, client, academy, athlete, owner_headers):
        response = self._create(client, owner_headers, academy, athlete, discountType="gift")

        assert response.status_code == 400

    def test_update_deactivates(self, client, db, academy, athlete, owner_headers):
        scholarship_id = self._create(client, owner_headers, academy, athlete).json()["id"]

        response = client.patch(f"/api/scholarships/{scholarship_id}",
                                json={"isActive": False, "discountValue": 25}, headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["discountValue"] == 25
        assert calculate_discount(db, academy.id, academy.tenant_id, 45.0, athlete_id=athlete.id,
                                  today=date(2025, 3, 1)) is None

    def test_delete(self, client, db, academy, athlete, owner_headers):
        scholarship_id = self._create(client, owner_headers, academy, athlete).json()["id"]

        response = client.delete(f"/api/scholarships/{scholarship_id}", headers=owner_headers)

        assert response.status_code == 204
        assert db.query(Scholarship).count() == 0

    def test_other_tenant_cannot_touch(self, client, make_user, make_academy, academy, athlete, owner_headers,
                                       auth_headers):
        scholarship_id = self._create(client, owner_headers, academy, athlete).json()["id"]
        rival_owner = make_user()
        make_academy(rival_owner, name="Club Rival")

        response = client.delete(f"/api/scholarships/{scholarship_id}", headers=auth_headers(rival_owner))

        assert response.status_code == 404
        assert response.json()["error"] == "SCHOLARSHIP_NOT_FOUND"
