import asyncio
from datetime import datetime, timedelta

from cnvidas.models import Appointment, AuditLog, Notification, User
from cnvidas.services.emergency_reconciliation import (
    diagnose_emergency_status,
    expire_stale_emergencies,
    fix_emergency_status,
)
from cnvidas.worker import send_emergency_alert_emails_task

from .conftest import auth_headers


def open_case(client, patient):
    response = client.post("/api/emergency/start", json={}, headers=auth_headers(patient))
    assert response.status_code == 201
    return response.json()["appointment"]["id"]


def backdate(db, appointment_id, minutes):
    case = db.query(Appointment).filter(Appointment.id == appointment_id).one()
    case.date = datetime.utcnow() - timedelta(minutes=minutes)
    db.commit()


def emergency_row(db, patient, status, doctor=None):
    appointment = Appointment(
        user_id=patient.id,
        doctor_id=doctor.id if doctor else None,
        is_emergency=True,
        status=status,
        type="emergency",
        date=datetime.utcnow(),
        duration=30,
        payment_status="included_in_plan",
    )
    db.add(appointment)
    db.commit()
    return appointment


class TestExpireStale:
    def test_old_waiting_case_is_cancelled_and_refunded(self, client, db, make_user):
        patient = make_user(plan="basic", allowance=2)
        case_id = open_case(client, patient)
        backdate(db, case_id, minutes=45)

        summary = expire_stale_emergencies(db, timeout_minutes=30)

        assert summary["expired"] == 1
        assert summary["refunded"] == 1
        assert summary["appointment_ids"] == [case_id]

        db.expire_all()
        case = db.query(Appointment).filter(Appointment.id == case_id).one()
        assert case.status == "cancelled"
        assert case.cancellation_reason == "timeout"
        assert case.allowance_reserved is False
        assert db.query(User).filter(User.id == patient.id).one().emergency_consultations_left == 2

        notice = db.query(Notification).filter(Notification.user_id == patient.id).one()
        assert notice.related_id == case_id

    def test_recent_and_claimed_cases_are_left_alone(self, client, db, make_user, make_doctor):
        doctor = make_doctor()
        fresh_patient = make_user(plan="basic", allowance=2)
        claimed_patient = make_user(plan="basic", allowance=2)
        fresh_id = open_case(client, fresh_patient)
        claimed_id = open_case(client, claimed_patient)
        client.post(f"/api/emergency/{claimed_id}/accept", headers=auth_headers(doctor.user))
        backdate(db, claimed_id, minutes=120)

        summary = expire_stale_emergencies(db, timeout_minutes=30)

        assert summary["expired"] == 0
        db.expire_all()
        assert db.query(Appointment).filter(Appointment.id == fresh_id).one().status == "waiting"
        assert db.query(Appointment).filter(Appointment.id == claimed_id).one().status == "in_progress"

    def test_unlimited_plan_case_expires_without_refund(self, client, db, make_user):
        patient = make_user(plan="premium")
        case_id = open_case(client, patient)
        backdate(db, case_id, minutes=60)

        summary = expire_stale_emergencies(db, timeout_minutes=30)

        assert summary["expired"] == 1
        assert summary["refunded"] == 0

    def test_admin_endpoint_expires_and_audits(self, client, db, make_user, admin):
        patient = make_user(plan="basic", allowance=1)
        case_id = open_case(client, patient)
        backdate(db, case_id, minutes=24 * 60)

        response = client.post("/api/admin/emergency/expire-stale", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.json()["appointment_ids"] == [case_id]
        audit = db.query(AuditLog).filter(AuditLog.action == "emergency_expire_stale").one()
        assert audit.user_id == admin.id

    def test_admin_endpoint_requires_admin(self, client, make_user, db):
        patient = make_user(plan="basic", allowance=1)
        response = client.post("/api/admin/emergency/expire-stale", headers=auth_headers(patient))
        assert response.status_code == 403


class TestDiagnostics:
    def test_reports_each_kind_of_inconsistency(self, db, make_user, make_doctor):
        doctor = make_doctor()
        scheduled = emergency_row(db, make_user(plan="premium"), "scheduled")
        waiting_with_doctor = emergency_row(db, make_user(plan="premium"), "waiting", doctor)
        orphaned = emergency_row(db, make_user(plan="premium"), "in_progress")
        emergency_row(db, make_user(plan="premium"), "waiting")

        report = diagnose_emergency_status(db)

        assert [row["id"] for row in report["scheduled_emergencies"]] == [scheduled.id]
        assert [row["id"] for row in report["waiting_with_doctor"]] == [waiting_with_doctor.id]
        assert [row["id"] for row in report["in_progress_without_doctor"]] == [orphaned.id]
        assert report["total_inconsistent"] == 3
        assert report["status_counts"]["waiting"] == 2

    def test_fix_normalizes_rows(self, db, make_user, make_doctor):
        doctor = make_doctor()
        scheduled_with_doctor = emergency_row(db, make_user(plan="premium"), "scheduled", doctor)
        scheduled_alone = emergency_row(db, make_user(plan="premium"), "scheduled")
        waiting_with_doctor = emergency_row(db, make_user(plan="premium"), "waiting", doctor)
        orphaned = emergency_row(db, make_user(plan="premium"), "in_progress")

        summary = fix_emergency_status(db)

        assert summary == {"to_in_progress": 2, "to_waiting": 2, "total_fixed": 4}
        db.expire_all()
        status = {a.id: a.status for a in db.query(Appointment).all()}
        assert status[scheduled_with_doctor.id] == "in_progress"
        assert status[scheduled_alone.id] == "waiting"
        assert status[waiting_with_doctor.id] == "in_progress"
        assert status[orphaned.id] == "waiting"
        assert diagnose_emergency_status(db)["total_inconsistent"] == 0

    def test_admin_diagnostics_endpoint(self, client, db, make_user, admin):
        patient = make_user(plan="premium")
        emergency_row(db, patient, "scheduled")

        response = client.get("/api/admin/emergency/diagnostics", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.json()["total_inconsistent"] == 1


class TestAlertJob:
    def test_missing_case_is_skipped(self, db):
        result = asyncio.run(send_emergency_alert_emails_task({"job_id": "job-1"}, 9999))
        assert result == {"sent": 0, "failed": 0, "skipped": True}

    def test_claimed_case_is_skipped(self, client, db, make_user, make_doctor):
        case_id = open_case(client, make_user(plan="premium"))
        client.post(f"/api/emergency/{case_id}/accept", headers=auth_headers(make_doctor().user))

        result = asyncio.run(send_emergency_alert_emails_task({"job_id": "job-2"}, case_id))

        assert result["skipped"] is True
