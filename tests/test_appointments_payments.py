from datetime import datetime, timedelta

from cnvidas.models import Appointment, Notification

from .conftest import auth_headers


def in_days(days):
    return (datetime.utcnow() + timedelta(days=days)).isoformat()


def book(client, patient, doctor, **overrides):
    payload = {"doctor_id": doctor.id, "date": in_days(2)}
    payload.update(overrides)
    return client.post("/api/appointments", json=payload, headers=auth_headers(patient))


class TestBooking:
    def test_plan_discount_is_applied(self, client, db, make_user, make_doctor, video):
        patient = make_user(plan="basic", allowance=2)
        doctor = make_doctor(fee=20000)

        response = book(client, patient, doctor)

        assert response.status_code == 201
        body = response.json()
        assert body["payment_amount"] == 14000
        assert body["status"] == "scheduled"
        assert body["is_emergency"] is False
        assert body["telemed_room_name"] == f"appointment-{body['id']}"
        assert video.rooms == [body["telemed_room_name"]]
        assert db.query(Notification).filter(Notification.user_id == doctor.user_id).count() == 1

    def test_family_plan_shares_base_discount(self, client, db, make_user, make_doctor):
        patient = make_user(plan="premium_family")
        response = book(client, patient, make_doctor(fee=20000))
        assert response.json()["payment_amount"] == 10000

    def test_presential_booking_has_no_room(self, client, db, make_user, make_doctor, video):
        response = book(client, make_user(), make_doctor(), type="presential")

        assert response.status_code == 201
        assert response.json()["telemed_room_name"] is None
        assert video.rooms == []

    def test_past_date_is_rejected(self, client, db, make_user, make_doctor):
        response = book(client, make_user(), make_doctor(), date=in_days(-1))
        assert response.status_code == 400

    def test_pending_doctor_cannot_be_booked(self, client, db, make_user, make_doctor):
        response = book(client, make_user(), make_doctor(status="pending"))
        assert response.status_code == 404

    def test_only_patients_book(self, client, db, make_doctor):
        doctor = make_doctor()
        response = book(client, make_doctor().user, doctor)
        assert response.status_code == 403

    def test_listing_is_scoped_to_participants(self, client, db, make_user, make_doctor):
        patient = make_user()
        doctor = make_doctor()
        book(client, patient, doctor)
        book(client, make_user(), make_doctor())

        mine = client.get("/api/appointments", headers=auth_headers(patient)).json()
        doctors = client.get("/api/appointments", headers=auth_headers(doctor.user)).json()

        assert len(mine) == 1
        assert len(doctors) == 1
        assert mine[0]["id"] == doctors[0]["id"]


class TestLifecycle:
    def test_doctor_starts_and_completes(self, client, db, make_user, make_doctor):
        patient = make_user()
        doctor = make_doctor()
        appointment_id = book(client, patient, doctor).json()["id"]

        started = client.post(f"/api/appointments/{appointment_id}/start", headers=auth_headers(doctor.user))
        completed = client.post(
            f"/api/appointments/{appointment_id}/complete",
            json={"notes": "Retorno em 30 dias"},
            headers=auth_headers(doctor.user),
        )
        again = client.post(f"/api/appointments/{appointment_id}/complete", headers=auth_headers(doctor.user))

        assert started.json()["status"] == "in_progress"
        assert completed.json()["status"] == "completed"
        assert completed.json()["notes"] == "Retorno em 30 dias"
        assert again.status_code == 409

    def test_other_doctor_cannot_start(self, client, db, make_user, make_doctor):
        appointment_id = book(client, make_user(), make_doctor()).json()["id"]

        response = client.post(f"/api/appointments/{appointment_id}/start", headers=auth_headers(make_doctor().user))

        assert response.status_code == 403

    def test_reschedule_only_while_scheduled(self, client, db, make_user, make_doctor):
        patient = make_user()
        appointment_id = book(client, patient, make_doctor()).json()["id"]

        moved = client.put(
            f"/api/appointments/{appointment_id}", json={"date": in_days(5)}, headers=auth_headers(patient)
        )
        client.post(f"/api/appointments/{appointment_id}/cancel", headers=auth_headers(patient))
        blocked = client.put(
            f"/api/appointments/{appointment_id}", json={"date": in_days(6)}, headers=auth_headers(patient)
        )

        assert moved.status_code == 200
        assert blocked.status_code == 409

    def test_patient_cancel_notifies_doctor(self, client, db, make_user, make_doctor):
        patient = make_user()
        doctor = make_doctor()
        appointment_id = book(client, patient, doctor).json()["id"]

        response = client.post(
            f"/api/appointments/{appointment_id}/cancel", json={"reason": "Imprevisto"}, headers=auth_headers(patient)
        )

        assert response.status_code == 200
        assert response.json()["cancellation_reason"] == "Imprevisto"
        # one for the booking, one for the cancellation
        assert db.query(Notification).filter(Notification.user_id == doctor.user_id).count() == 2


class TestConsultationPayments:
    def test_preauthorize_then_capture(self, client, db, make_user, make_doctor, payments):
        patient = make_user(plan="basic", allowance=2)
        doctor = make_doctor(fee=20000)
        appointment_id = book(client, patient, doctor).json()["id"]

        held = client.post(
            "/api/payments/preauthorize", json={"appointment_id": appointment_id}, headers=auth_headers(patient)
        )
        captured = client.post(f"/api/payments/capture/{appointment_id}", headers=auth_headers(doctor.user))

        assert held.status_code == 200
        assert held.json()["payment_status"] == "authorized"
        assert held.json()["client_secret"] == "pi_1_secret"
        assert payments.intents["pi_1"].amount == 14000
        assert payments.intents["pi_1"].metadata["appointment_id"] == str(appointment_id)

        assert captured.status_code == 200
        assert captured.json()["payment_status"] == "completed"
        assert payments.captured == ["pi_1"]
        db.expire_all()
        assert db.query(Appointment).filter(Appointment.id == appointment_id).one().status == "completed"

    def test_second_preauthorize_conflicts(self, client, db, make_user, make_doctor):
        patient = make_user()
        appointment_id = book(client, patient, make_doctor()).json()["id"]
        body = {"appointment_id": appointment_id}

        client.post("/api/payments/preauthorize", json=body, headers=auth_headers(patient))
        response = client.post("/api/payments/preauthorize", json=body, headers=auth_headers(patient))

        assert response.status_code == 409

    def test_capture_without_authorization(self, client, db, make_user, make_doctor):
        doctor = make_doctor()
        appointment_id = book(client, make_user(), doctor).json()["id"]

        response = client.post(f"/api/payments/capture/{appointment_id}", headers=auth_headers(doctor.user))

        assert response.status_code == 400

    def test_cancel_releases_authorization(self, client, db, make_user, make_doctor, payments):
        patient = make_user()
        appointment_id = book(client, patient, make_doctor()).json()["id"]
        client.post("/api/payments/preauthorize", json={"appointment_id": appointment_id}, headers=auth_headers(patient))

        response = client.post(f"/api/payments/cancel/{appointment_id}", headers=auth_headers(patient))

        assert response.status_code == 200
        assert response.json()["payment_status"] == "cancelled"
        assert payments.cancelled == ["pi_1"]

    def test_cancelling_appointment_releases_authorization(self, client, db, make_user, make_doctor, payments):
        patient = make_user()
        appointment_id = book(client, patient, make_doctor()).json()["id"]
        client.post("/api/payments/preauthorize", json={"appointment_id": appointment_id}, headers=auth_headers(patient))

        response = client.post(f"/api/appointments/{appointment_id}/cancel", headers=auth_headers(patient))

        assert response.json()["payment_status"] == "cancelled"
        assert payments.cancelled == ["pi_1"]

    def test_emergency_covered_by_allowance_is_not_charged(self, client, db, make_user, payments):
        patient = make_user(plan="basic", allowance=2)
        case_id = client.post("/api/emergency/start", json={}, headers=auth_headers(patient)).json()["appointment"]["id"]

        response = client.post(
            "/api/payments/preauthorize", json={"appointment_id": case_id}, headers=auth_headers(patient)
        )

        assert response.status_code == 200
        assert response.json()["is_plan_included"] is True
        assert payments.intents == {}

    def test_emergency_payment_cannot_be_cancelled_here(self, client, db, make_user):
        patient = make_user(plan="premium")
        case_id = client.post("/api/emergency/start", json={}, headers=auth_headers(patient)).json()["appointment"]["id"]

        response = client.post(f"/api/payments/cancel/{case_id}", headers=auth_headers(patient))

        assert response.status_code == 400
