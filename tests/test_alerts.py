# =============================================================================
# tests/test_alerts.py - Daily Alert and Notification Tests
# =============================================================================
# Tests for the daily alerts job (overdue payments, low attendance, nearly
# full classes), its cron endpoint and the in-app notification inbox.
# =============================================================================

from datetime import date, timedelta

import pytest

from zaltyko.models.academy import Membership
from zaltyko.models.athlete import Athlete
from zaltyko.models.charges import Charge
from zaltyko.models.guardian import Guardian, GuardianAthlete
from zaltyko.models.notification import Notification
from zaltyko.models.schedule import AcademyClass, AttendanceRecord, ClassEnrollment, ClassSession
from zaltyko.models.user import UserRole
from zaltyko.services.alerts import (
    detect_attendance_alerts,
    detect_capacity_alerts,
    detect_payment_alerts,
    run_daily_alerts,
)

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}
TODAY = date.today()


@pytest.fixture
def athlete(db, academy):
    athlete = Athlete(tenant_id=academy.tenant_id, academy_id=academy.id, name="Lucía", status="active")
    db.add(athlete)
    db.commit()
    return athlete


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []
    monkeypatch.setattr("zaltyko.services.alerts.send_email",
                        lambda to, subject, html, text=None, reply_to=None: sent.append(to) or True)
    return sent


def _charge(db, academy, athlete, days_ago, status="pending", amount_cents=4500):
    charge = Charge(tenant_id=academy.tenant_id, academy_id=academy.id, athlete_id=athlete.id,
                    label="Cuota", amount_cents=amount_cents, period="2025-03", status=status,
                    due_date=TODAY - timedelta(days=days_ago) if days_ago is not None else None)
    db.add(charge)
    db.commit()
    return charge


def _class(db, academy, name="Artística Base", capacity=None):
    academy_class = AcademyClass(tenant_id=academy.tenant_id, academy_id=academy.id, name=name,
                                 capacity=capacity)
    db.add(academy_class)
    db.commit()
    return academy_class


def _attendance(db, academy_class, athlete, statuses, start_days_ago=20):
    for offset, status in enumerate(statuses):
        session = ClassSession(tenant_id=academy_class.tenant_id, class_id=academy_class.id,
                               session_date=TODAY - timedelta(days=start_days_ago - offset))
        db.add(session)
        db.flush()
        db.add(AttendanceRecord(tenant_id=academy_class.tenant_id, session_id=session.id,
                                athlete_id=athlete.id, status=status))
    db.commit()


def _enroll(db, academy_class, count):
    for i in range(count):
        athlete = Athlete(tenant_id=academy_class.tenant_id, academy_id=academy_class.academy_id,
                          name=f"Alumna {i}")
        db.add(athlete)
        db.flush()
        db.add(ClassEnrollment(tenant_id=academy_class.tenant_id, academy_id=academy_class.academy_id,
                               class_id=academy_class.id, athlete_id=athlete.id))
    db.commit()


def _guardian(db, athlete, email="carmen@correo.es", notify_email=True):
    guardian = Guardian(tenant_id=athlete.tenant_id, name="Carmen", email=email, notify_email=notify_email)
    db.add(guardian)
    db.flush()
    db.add(GuardianAthlete(tenant_id=athlete.tenant_id, guardian_id=guardian.id, athlete_id=athlete.id))
    db.commit()
    return guardian


# =============================================================================
# Detection Tests
# =============================================================================

class TestPaymentAlerts:
    """Test which charges count as overdue."""

    def test_pending_charge_a_week_late(self, db, academy, athlete):
        # Arrange
        charge = _charge(db, academy, athlete, days_ago=10)
        _charge(db, academy, athlete, days_ago=3)
        _charge(db, academy, athlete, days_ago=30, status="paid")
        _charge(db, academy, athlete, days_ago=None)

        # Act
        alerts = detect_payment_alerts(db, academy, TODAY)

        # Assert
        assert len(alerts) == 1
        assert alerts[0].resource_id == charge.id
        assert alerts[0].title == "Pago atrasado: Lucía"
        assert alerts[0].message == "El pago de 45.00 € está 10 días atrasado."
        assert alerts[0].data == {"chargeId": charge.id, "athleteId": athlete.id, "amount": 45.0,
                                  "daysOverdue": 10}

    def test_exactly_seven_days_counts(self, db, academy, athlete):
        _charge(db, academy, athlete, days_ago=7, status="overdue")

        assert len(detect_payment_alerts(db, academy, TODAY)) == 1


class TestAttendanceAlerts:
    """Test the low attendance threshold."""

    def test_below_threshold_alerts(self, db, academy, athlete):
        _attendance(db, _class(db, academy), athlete, ["present", "absent", "absent", "late"])

        alerts = detect_attendance_alerts(db, academy, TODAY)

        assert len(alerts) == 1
        assert alerts[0].data["attendanceRate"] == 25.0
        assert alerts[0].data["total"] == 4

    def test_at_threshold_is_fine(self, db, academy, athlete):
        _attendance(db, _class(db, academy), athlete, ["present"] * 7 + ["absent"] * 3)

        assert detect_attendance_alerts(db, academy, TODAY) == []

    def test_sessions_outside_window_ignored(self, db, academy, athlete):
        _attendance(db, _class(db, academy), athlete, ["absent", "absent"], start_days_ago=60)

        assert detect_attendance_alerts(db, academy, TODAY) == []

    def test_inactive_athletes_ignored(self, db, academy, athlete):
        athlete.status = "inactive"
        db.commit()
        _attendance(db, _class(db, academy), athlete, ["absent", "absent"])

        assert detect_attendance_alerts(db, academy, TODAY) == []


class TestCapacityAlerts:
    """Test nearly full class detection."""

    def test_only_classes_at_ninety_percent(self, db, academy):
        # Arrange
        full = _class(db, academy, name="Competición", capacity=10)
        _enroll(db, full, 9)
        roomy = _class(db, academy, name="Iniciación", capacity=10)
        _enroll(db, roomy, 1)
        _class(db, academy, name="Libre")

        # Act
        alerts = detect_capacity_alerts(db, academy)

        # Assert
        assert [a.title for a in alerts] == ["Cupo casi lleno: Competición"]
        assert alerts[0].data["percentage"] == 90.0


# =============================================================================
# Job Tests
# =============================================================================

class TestRunDailyAlerts:
    """Test the job across academies."""

    def test_owner_is_notified(self, db, owner, academy, athlete, sent_emails):
        _charge(db, academy, athlete, days_ago=10)

        result = run_daily_alerts(db, today=TODAY)

        assert result.academies_processed == 1
        assert result.payment_alerts == 1
        notification = db.query(Notification).one()
        assert notification.user_id == owner.id
        assert notification.tenant_id == academy.tenant_id
        assert notification.type == "payment_overdue"

    def test_second_run_same_day_adds_nothing(self, db, academy, athlete, sent_emails):
        # Arrange
        _charge(db, academy, athlete, days_ago=10)
        _guardian(db, athlete)
        run_daily_alerts(db, today=TODAY)

        # Act
        result = run_daily_alerts(db, today=TODAY)

        # Assert
        assert result.payment_alerts == 1
        assert result.notifications_created == 0
        assert result.emails_sent == 0
        assert db.query(Notification).count() == 1
        assert sent_emails == ["carmen@correo.es"]

    def test_guardians_opted_out_get_no_email(self, db, academy, athlete, sent_emails):
        _charge(db, academy, athlete, days_ago=10)
        _guardian(db, athlete, email="jorge@correo.es", notify_email=False)

        result = run_daily_alerts(db, today=TODAY)

        assert result.emails_sent == 0
        assert sent_emails == []

    def test_coaches_get_capacity_but_not_payment_alerts(self, db, make_user, academy, athlete, sent_emails):
        # Arrange
        coach = make_user(role=UserRole.COACH, tenant_id=academy.tenant_id)
        db.add(Membership(user_id=coach.id, academy_id=academy.id, role="coach"))
        db.commit()
        _charge(db, academy, athlete, days_ago=10)
        _enroll(db, _class(db, academy, capacity=1), 1)

        # Act
        run_daily_alerts(db, today=TODAY)

        # Assert
        coach_types = [n.type for n in db.query(Notification).filter(Notification.user_id == coach.id)]
        assert coach_types == ["capacity_alert"]

    def test_suspended_academies_skipped(self, db, academy, athlete, sent_emails):
        _charge(db, academy, athlete, days_ago=10)
        academy.is_suspended = True
        db.commit()

        result = run_daily_alerts(db, today=TODAY)

        assert result.academies_processed == 0
        assert db.query(Notification).count() == 0

    def test_one_academy_failing_does_not_stop_others(self, db, monkeypatch, make_user, make_academy, academy,
                                                     athlete, sent_emails):
        # Arrange
        broken = make_academy(make_user(), name="Club Roto")
        _charge(db, academy, athlete, days_ago=10)

        def capacity(db_, target, threshold=90.0):
            if target.id == broken.id:
                raise RuntimeError("boom")
            return []

        monkeypatch.setattr("zaltyko.services.alerts.detect_capacity_alerts", capacity)

        # Act
        result = run_daily_alerts(db, today=TODAY)

        # Assert
        assert result.academies_processed == 1
        assert len(result.errors) == 1
        assert broken.id in result.errors[0]
        assert db.query(Notification).count() == 1


class TestDailyAlertsEndpoint:
    """Test POST /api/cron/daily-alerts."""

    def test_requires_cron_secret(self, client):
        response = client.post("/api/cron/daily-alerts", headers={"Authorization": "Bearer wrong"})

        assert response.status_code == 401

    def test_returns_counts(self, client, db, academy, athlete, sent_emails):
        _charge(db, academy, athlete, days_ago=10)

        response = client.post("/api/cron/daily-alerts", headers=CRON_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["academiesProcessed"] == 1
        assert body["results"] == {"paymentAlerts": 1, "attendanceAlerts": 0, "capacityAlerts": 0}
        assert body["notificationsCreated"] == 1


# =============================================================================
# Inbox Tests
# =============================================================================

def _notification(db, user, title="Pago atrasado: Lucía", read=False):
    notification = Notification(tenant_id=user.tenant_id or "t", user_id=user.id, type="payment_overdue",
                                title=title, message="El pago está atrasado.", read=read)
    db.add(notification)
    db.commit()
    return notification


class TestNotificationInbox:
    """Test the /api/notifications endpoints."""

    def test_list_counts_unread(self, client, db, owner, owner_headers):
        _notification(db, owner)
        _notification(db, owner, title="Leída", read=True)

        response = client.get("/api/notifications", headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["unreadCount"] == 1
        assert len(response.json()["items"]) == 2

    def test_unread_only(self, client, db, owner, owner_headers):
        _notification(db, owner)
        _notification(db, owner, title="Leída", read=True)

        items = client.get("/api/notifications?unreadOnly=true", headers=owner_headers).json()["items"]

        assert [n["title"] for n in items] == ["Pago atrasado: Lucía"]

    def test_mark_read(self, client, db, owner, owner_headers):
        notification = _notification(db, owner)

        response = client.post(f"/api/notifications/{notification.id}/read", headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["read"] is True
        assert response.json()["readAt"] is not None

    def test_mark_all_read(self, client, db, owner, owner_headers):
        _notification(db, owner)
        _notification(db, owner, title="Otra")

        response = client.post("/api/notifications/read-all", headers=owner_headers)

        assert response.json() == {"updated": 2}
        assert db.query(Notification).filter(Notification.read.is_(False)).count() == 0

    def test_other_users_notification_is_404(self, client, db, make_user, owner_headers):
        stranger = make_user()
        notification = _notification(db, stranger)

        assert client.post(f"/api/notifications/{notification.id}/read",
                           headers=owner_headers).status_code == 404
        assert client.delete(f"/api/notifications/{notification.id}", headers=owner_headers).status_code == 404

    def test_delete(self, client, db, owner, owner_headers):
        notification = _notification(db, owner)

        response = client.delete(f"/api/notifications/{notification.id}", headers=owner_headers)

        assert response.status_code == 204
        assert db.query(Notification).count() == 0
