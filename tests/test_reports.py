# =============================================================================
# tests/test_reports.py - Attendance and Financial Report Tests
# =============================================================================
# Tests for attendance recording, attendance reports and the financial
# metrics shown on the academy dashboard.
# =============================================================================

from datetime import date, time

import pytest

from zaltyko.models.athlete import Athlete
from zaltyko.models.charges import Charge
from zaltyko.models.group import Group, GroupAthlete
from zaltyko.models.schedule import AcademyClass, AttendanceRecord, ClassSession
from zaltyko.services.reports import (
    athlete_attendance_report,
    attendance_rate,
    financial_metrics,
    group_attendance_report,
)


@pytest.fixture
def academy_class(db, academy):
    academy_class = AcademyClass(tenant_id=academy.tenant_id, academy_id=academy.id, name="Artística Base",
                                 start_time=time(17, 0), end_time=time(18, 0))
    db.add(academy_class)
    db.commit()
    return academy_class


@pytest.fixture
def sessions(db, academy, academy_class):
    rows = [
        ClassSession(tenant_id=academy.tenant_id, class_id=academy_class.id, session_date=date(2025, 3, day))
        for day in (3, 5, 10, 12)
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture
def athlete(db, academy):
    athlete = Athlete(tenant_id=academy.tenant_id, academy_id=academy.id, name="Lucía", status="active")
    db.add(athlete)
    db.commit()
    return athlete


def _mark(db, session, athlete, status):
    db.add(AttendanceRecord(tenant_id=session.tenant_id, session_id=session.id, athlete_id=athlete.id,
                            status=status))
    db.commit()


def _charge(db, academy, athlete, status, amount_cents, period="2025-03"):
    db.add(Charge(tenant_id=academy.tenant_id, academy_id=academy.id, athlete_id=athlete.id,
                  label="Cuota", amount_cents=amount_cents, period=period, status=status))
    db.commit()


# =============================================================================
# Attendance Report Tests
# =============================================================================

class TestAttendanceReports:
    """Test attendance aggregation."""

    def test_rate_rounding(self):
        assert attendance_rate(2, 3) == 66.67
        assert attendance_rate(0, 0) == 0.0

    def test_athlete_report(self, db, academy, athlete, sessions):
        # Arrange
        for session, status in zip(sessions, ("present", "present", "absent", "late")):
            _mark(db, session, athlete, status)

        # Act
        report = athlete_attendance_report(db, academy.tenant_id, athlete.id)

        # Assert
        assert report["total"] == 4
        assert report["present"] == 2
        assert report["late"] == 1
        assert report["attendanceRate"] == 50.0
        assert report["sessions"][0]["date"] == "2025-03-03"
        assert report["sessions"][0]["className"] == "Artística Base"

    def test_date_range(self, db, academy, athlete, sessions):
        for session in sessions:
            _mark(db, session, athlete, "present")

        report = athlete_attendance_report(db, academy.tenant_id, athlete.id,
                                           date_from=date(2025, 3, 4), date_to=date(2025, 3, 10))

        assert report["total"] == 2

    def test_other_tenant_sees_nothing(self, db, athlete, sessions):
        _mark(db, sessions[0], athlete, "present")

        assert athlete_attendance_report(db, "other-tenant", athlete.id)["total"] == 0

    def test_group_report(self, db, academy, athlete, sessions):
        group = Group(tenant_id=academy.tenant_id, academy_id=academy.id, name="Competición")
        carmen = Athlete(tenant_id=academy.tenant_id, academy_id=academy.id, name="Carmen", status="active")
        db.add_all([group, carmen])
        db.flush()
        db.add_all([
            GroupAthlete(tenant_id=academy.tenant_id, group_id=group.id, athlete_id=athlete.id),
            GroupAthlete(tenant_id=academy.tenant_id, group_id=group.id, athlete_id=carmen.id),
        ])
        db.commit()
        _mark(db, sessions[0], athlete, "present")
        _mark(db, sessions[0], carmen, "absent")

        report = group_attendance_report(db, academy.tenant_id, group.id)

        assert [e["name"] for e in report["athletes"]] == ["Carmen", "Lucía"]
        assert report["averageRate"] == 50.0


class TestAttendanceEndpoints:
    """Test recording attendance and reading reports through the API."""

    def test_record_then_correct(self, client, db, athlete, sessions, owner_headers):
        """Posting again for the same athlete updates the existing record."""
        payload = {"sessionId": sessions[0].id, "entries": [{"athleteId": athlete.id, "status": "late"}]}
        client.post("/api/attendance", json=payload, headers=owner_headers)

        payload["entries"][0]["status"] = "present"
        response = client.post("/api/attendance", json=payload, headers=owner_headers)

        assert response.status_code == 200
        assert response.json()[0]["status"] == "present"
        assert db.query(AttendanceRecord).count() == 1

    def test_unknown_status_is_400(self, client, athlete, sessions, owner_headers):
        response = client.post(
            "/api/attendance",
            json={"sessionId": sessions[0].id, "entries": [{"athleteId": athlete.id, "status": "sick"}]},
            headers=owner_headers,
        )

        assert response.status_code == 400

    def test_athlete_of_other_academy_is_rejected(self, client, db, make_user, make_academy, sessions,
                                                  owner_headers):
        rival_academy = make_academy(make_user(), name="Club Rival")
        stranger = Athlete(tenant_id=rival_academy.tenant_id, academy_id=rival_academy.id, name="Ana",
                           status="active")
        db.add(stranger)
        db.commit()

        response = client.post(
            "/api/attendance",
            json={"sessionId": sessions[0].id, "entries": [{"athleteId": stranger.id, "status": "present"}]},
            headers=owner_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_ATHLETES"

    def test_report_needs_filter(self, client, academy, owner_headers):
        response = client.get("/api/reports/attendance", headers=owner_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "MISSING_FILTER"

    def test_athlete_report_endpoint(self, client, db, athlete, sessions, owner_headers):
        _mark(db, sessions[0], athlete, "present")

        response = client.get(f"/api/reports/attendance?athleteId={athlete.id}&from=2025-03-01",
                              headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["attendanceRate"] == 100.0


# =============================================================================
# Financial Metrics Tests
# =============================================================================

class TestFinancialMetrics:
    """Test dashboard billing totals."""

    def test_totals_exclude_cancelled(self, db, academy, athlete):
        # Arrange
        _charge(db, academy, athlete, "paid", 4500)
        _charge(db, academy, athlete, "pending", 4500)
        _charge(db, academy, athlete, "overdue", 3000)
        _charge(db, academy, athlete, "cancelled", 9999)

        # Act
        metrics = financial_metrics(db, academy.tenant_id, academy.id)

        # Assert
        assert metrics["totalBilledCents"] == 12000
        assert metrics["collectedCents"] == 4500
        assert metrics["pendingCents"] == 4500
        assert metrics["overdueCents"] == 3000
        assert metrics["collectionRate"] == 37.5
        assert metrics["activeAthletes"] == 1
        assert metrics["averageRevenuePerAthlete"] == 4500
        assert "cancelled" not in metrics["byStatus"]

    def test_period_filter(self, db, academy, athlete):
        _charge(db, academy, athlete, "paid", 4500, period="2025-02")
        _charge(db, academy, athlete, "paid", 4500, period="2025-03")

        metrics = financial_metrics(db, academy.tenant_id, academy.id, period="2025-03")

        assert metrics["totalBilledCents"] == 4500

    def test_empty_academy(self, db, academy):
        metrics = financial_metrics(db, academy.tenant_id, academy.id)

        assert metrics["collectionRate"] == 0.0
        assert metrics["byStatus"] == {}

    def test_endpoint_is_tenant_guarded(self, client, make_user, make_academy, academy, owner_headers):
        rival_academy = make_academy(make_user(), name="Club Rival")

        own = client.get(f"/api/dashboard/{academy.id}/financial-metrics", headers=owner_headers)
        foreign = client.get(f"/api/dashboard/{rival_academy.id}/financial-metrics", headers=owner_headers)

        assert own.status_code == 200
        assert foreign.status_code == 403
