from cnvidas.domain.emergency.repository import EmergencyRepository
from cnvidas.models import Appointment, Notification, User

from .conftest import auth_headers


def start(client, patient, **body):
    return client.post("/api/emergency/start", json=body, headers=auth_headers(patient))


def reload_user(db, user_id):
    db.expire_all()
    return db.query(User).filter(User.id == user_id).one()


class TestStartEmergency:
    def test_case_starts_waiting_and_unassigned(self, client, db, make_user, make_doctor):
        make_doctor()
        patient = make_user(plan="basic", allowance=2)

        response = start(client, patient)

        assert response.status_code == 201
        body = response.json()
        assert body["appointment"]["status"] == "waiting"
        assert body["appointment"]["doctor_id"] is None
        assert body["appointment"]["is_emergency"] is True
        assert body["appointment"]["payment_status"] == "included_in_plan"
        assert body["room_url"].endswith(body["appointment"]["telemed_room_name"])
        assert body["emergency_consultations_left"] == 1
        assert reload_user(db, patient.id).emergency_consultations_left == 1

    def test_preferred_doctor_is_only_a_notification_target(self, client, db, make_user, make_doctor):
        preferred = make_doctor()
        other = make_doctor()
        patient = make_user(plan="basic", allowance=2)

        response = start(client, patient, preferred_doctor_id=preferred.id)

        assert response.status_code == 201
        appointment = response.json()["appointment"]
        assert appointment["doctor_id"] is None
        assert appointment["preferred_doctor_id"] == preferred.id

        notified = {n.user_id for n in db.query(Notification).filter(Notification.type == "emergency").all()}
        assert preferred.user_id in notified
        assert other.user_id not in notified

    def test_all_on_duty_doctors_are_notified(self, client, db, make_user, make_doctor):
        on_duty = make_doctor(emergency=True)
        off_duty = make_doctor(emergency=False)
        patient = make_user(plan="premium")

        assert start(client, patient).status_code == 201

        notified = {n.user_id for n in db.query(Notification).filter(Notification.type == "emergency").all()}
        assert on_duty.user_id in notified
        assert off_duty.user_id not in notified

    def test_unknown_preferred_doctor_is_rejected(self, client, db, make_user):
        patient = make_user(plan="basic", allowance=2)

        response = start(client, patient, preferred_doctor_id=9999)

        assert response.status_code == 400
        assert reload_user(db, patient.id).emergency_consultations_left == 2

    def test_no_allowance_left_is_forbidden(self, client, db, make_user):
        patient = make_user(plan="basic", allowance=0)

        response = start(client, patient)

        assert response.status_code == 403
        assert db.query(Appointment).count() == 0

    def test_free_plan_cannot_start(self, client, make_user):
        patient = make_user(plan="free", allowance=0)
        assert start(client, patient).status_code == 403

    def test_unlimited_plan_does_not_consume_allowance(self, client, db, make_user):
        patient = make_user(plan="premium_family", allowance=0)

        response = start(client, patient)

        assert response.status_code == 201
        assert response.json()["emergency_consultations_left"] is None
        case = db.query(Appointment).one()
        assert case.allowance_reserved is False

    def test_second_case_while_active_conflicts(self, client, db, make_user):
        patient = make_user(plan="basic", allowance=2)
        first = start(client, patient).json()["appointment"]

        response = start(client, patient)

        assert response.status_code == 409
        assert response.json()["detail"]["appointment_id"] == first["id"]
        assert reload_user(db, patient.id).emergency_consultations_left == 1

    def test_concurrent_start_is_stopped_by_database(self, client, db, make_user, monkeypatch):
        patient = make_user(plan="basic", allowance=2)
        first = start(client, patient).json()["appointment"]

        # The second request read before the first one committed
        lookup = EmergencyRepository.get_active_case_for_patient
        reads = []

        def stale_then_fresh(session, user_id):
            reads.append(user_id)
            return None if len(reads) == 1 else lookup(session, user_id)

        monkeypatch.setattr(EmergencyRepository, "get_active_case_for_patient", staticmethod(stale_then_fresh))
        response = start(client, patient)

        assert response.status_code == 409
        assert response.json()["detail"]["appointment_id"] == first["id"]
        assert db.query(Appointment).filter(Appointment.user_id == patient.id).count() == 1
        assert reload_user(db, patient.id).emergency_consultations_left == 1

    def test_only_patients_start_emergencies(self, client, make_doctor, db):
        doctor = make_doctor()
        assert start(client, doctor.user).status_code == 403

    def test_requires_authentication(self, client, db):
        assert client.post("/api/emergency/start", json={}).status_code == 401


class TestAcceptEmergency:
    def test_first_doctor_wins_and_second_gets_conflict(self, client, db, make_user, make_doctor):
        patient = make_user(plan="basic", allowance=2)
        first_doctor = make_doctor()
        second_doctor = make_doctor()
        case_id = start(client, patient).json()["appointment"]["id"]

        won = client.post(f"/api/emergency/{case_id}/accept", headers=auth_headers(first_doctor.user))
        lost = client.post(f"/api/emergency/{case_id}/accept", headers=auth_headers(second_doctor.user))

        assert won.status_code == 200
        assert won.json()["appointment"]["status"] == "in_progress"
        assert won.json()["appointment"]["doctor_id"] == first_doctor.id
        assert won.json()["appointment"]["accepted_at"] is not None
        assert lost.status_code == 409

        db.expire_all()
        case = db.query(Appointment).filter(Appointment.id == case_id).one()
        assert case.doctor_id == first_doctor.id

    def test_repeated_accept_by_winner_is_idempotent(self, client, make_user, make_doctor, db):
        patient = make_user(plan="basic", allowance=2)
        doctor = make_doctor()
        case_id = start(client, patient).json()["appointment"]["id"]

        first = client.post(f"/api/emergency/{case_id}/accept", headers=auth_headers(doctor.user))
        again = client.post(f"/api/emergency/{case_id}/accept", headers=auth_headers(doctor.user))

        assert first.status_code == 200
        assert again.status_code == 200
        assert again.json()["appointment"]["doctor_id"] == doctor.id
        assert again.json()["appointment"]["accepted_at"] == first.json()["appointment"]["accepted_at"]

    def test_accept_returns_owner_token(self, client, make_user, make_doctor, db):
        patient = make_user(plan="basic", allowance=2)
        doctor = make_doctor()
        case = start(client, patient).json()["appointment"]

        response = client.post(f"/api/emergency/{case['id']}/accept", headers=auth_headers(doctor.user))

        assert response.json()["token"] == f"token-{case['telemed_room_name']}-{doctor.user_id}"

    def test_token_failure_does_not_undo_the_claim(self, client, video, make_user, make_doctor, db):
        patient = make_user(plan="basic", allowance=2)
        doctor = make_doctor()
        case_id = start(client, patient).json()["appointment"]["id"]
        video.fail_tokens = True

        response = client.post(f"/api/emergency/{case_id}/accept", headers=auth_headers(doctor.user))

        assert response.status_code == 200
        assert response.json()["token"] is None
        assert response.json()["appointment"]["status"] == "in_progress"

    def test_pending_doctor_cannot_accept(self, client, make_user, make_doctor, db):
        patient = make_user(plan="basic", allowance=2)
        doctor = make_doctor(status="pending")
        case_id = start(client, patient).json()["appointment"]["id"]

        response = client.post(f"/api/emergency/{case_id}/accept", headers=auth_headers(doctor.user))

        assert response.status_code == 403

    def test_accepting_cancelled_case_conflicts(self, client, make_user, make_doctor, db):
        patient = make_user(plan="basic", allowance=2)
        doctor = make_doctor()
        case_id = start(client, patient).json()["appointment"]["id"]
        client.post(f"/api/emergency/{case_id}/cancel", headers=auth_headers(patient))

        response = client.post(f"/api/emergency/{case_id}/accept", headers=auth_headers(doctor.user))

        assert response.status_code == 409

    def test_waiting_room_lists_only_unclaimed_cases(self, client, make_user, make_doctor, db):
        doctor = make_doctor()
        first_patient = make_user(plan="basic", allowance=2, full_name="Maria Souza")
        second_patient = make_user(plan="basic", allowance=2)
        claimed_id = start(client, first_patient).json()["appointment"]["id"]
        waiting_id = start(client, second_patient).json()["appointment"]["id"]
        client.post(f"/api/emergency/{claimed_id}/accept", headers=auth_headers(doctor.user))

        response = client.get("/api/emergency/waiting", headers=auth_headers(doctor.user))

        assert response.status_code == 200
        assert [case["id"] for case in response.json()] == [waiting_id]

    def test_patients_cannot_see_waiting_room(self, client, make_user, db):
        patient = make_user(plan="basic", allowance=2)
        assert client.get("/api/emergency/waiting", headers=auth_headers(patient)).status_code == 403


class TestAllowanceAccounting:
    def test_allowance_is_consumed_exactly_once(self, client, db, make_user, make_doctor):
        patient = make_user(plan="basic", allowance=5)
        doctor = make_doctor()

        case_id = start(client, patient).json()["appointment"]["id"]
        assert reload_user(db, patient.id).emergency_consultations_left == 4

        client.post(f"/api/emergency/{case_id}/accept", headers=auth_headers(doctor.user))
        assert reload_user(db, patient.id).emergency_consultations_left == 4

        response = client.post(
            f"/api/emergency/{case_id}/complete",
            json={"notes": "Paciente orientado", "duration": 20},
            headers=auth_headers(doctor.user),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert response.json()["completed_at"] is not None
        assert reload_user(db, patient.id).emergency_consultations_left == 4

    def test_patient_cancel_while_waiting_refunds(self, client, db, make_user):
        patient = make_user(plan="basic", allowance=2)
        case_id = start(client, patient).json()["appointment"]["id"]

        response = client.post(f"/api/emergency/{case_id}/cancel", headers=auth_headers(patient))

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert response.json()["cancellation_reason"] == "patient_cancelled"
        assert reload_user(db, patient.id).emergency_consultations_left == 2

    def test_cancelling_twice_refunds_once(self, client, db, make_user):
        patient = make_user(plan="basic", allowance=2)
        case_id = start(client, patient).json()["appointment"]["id"]

        client.post(f"/api/emergency/{case_id}/cancel", headers=auth_headers(patient))
        again = client.post(f"/api/emergency/{case_id}/cancel", headers=auth_headers(patient))

        assert again.status_code == 409
        assert reload_user(db, patient.id).emergency_consultations_left == 2

    def test_patient_cannot_cancel_in_progress_case(self, client, db, make_user, make_doctor):
        patient = make_user(plan="basic", allowance=2)
        doctor = make_doctor()
        case_id = start(client, patient).json()["appointment"]["id"]
        client.post(f"/api/emergency/{case_id}/accept", headers=auth_headers(doctor.user))

        response = client.post(f"/api/emergency/{case_id}/cancel", headers=auth_headers(patient))

        assert response.status_code == 409

    def test_admin_cancel_in_progress_keeps_allowance_consumed(self, client, db, make_user, make_doctor, admin):
        patient = make_user(plan="basic", allowance=2)
        doctor = make_doctor()
        case_id = start(client, patient).json()["appointment"]["id"]
        client.post(f"/api/emergency/{case_id}/accept", headers=auth_headers(doctor.user))

        response = client.post(f"/api/emergency/{case_id}/cancel", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.json()["cancellation_reason"] == "admin_cancelled"
        assert reload_user(db, patient.id).emergency_consultations_left == 1

    def test_other_patient_cannot_cancel(self, client, make_user, db):
        patient = make_user(plan="basic", allowance=2)
        intruder = make_user(plan="basic", allowance=2)
        case_id = start(client, patient).json()["appointment"]["id"]

        response = client.post(f"/api/emergency/{case_id}/cancel", headers=auth_headers(intruder))

        assert response.status_code == 403

    def test_patient_can_start_again_after_cancelling(self, client, make_user, db):
        patient = make_user(plan="basic", allowance=1)
        case_id = start(client, patient).json()["appointment"]["id"]
        client.post(f"/api/emergency/{case_id}/cancel", headers=auth_headers(patient))

        assert start(client, patient).status_code == 201


class TestParticipants:
    def test_join_token_for_patient_and_assigned_doctor(self, client, make_user, make_doctor, db):
        patient = make_user(plan="basic", allowance=2)
        doctor = make_doctor()
        case_id = start(client, patient).json()["appointment"]["id"]
        client.post(f"/api/emergency/{case_id}/accept", headers=auth_headers(doctor.user))

        as_patient = client.post(f"/api/emergency/{case_id}/token", headers=auth_headers(patient))
        as_doctor = client.post(f"/api/emergency/{case_id}/token", headers=auth_headers(doctor.user))

        assert as_patient.status_code == 200
        assert as_patient.json()["is_owner"] is False
        assert as_doctor.status_code == 200
        assert as_doctor.json()["is_owner"] is True

    def test_unassigned_doctor_cannot_get_token(self, client, make_user, make_doctor, db):
        patient = make_user(plan="basic", allowance=2)
        assigned = make_doctor()
        outsider = make_doctor()
        case_id = start(client, patient).json()["appointment"]["id"]
        client.post(f"/api/emergency/{case_id}/accept", headers=auth_headers(assigned.user))

        response = client.post(f"/api/emergency/{case_id}/token", headers=auth_headers(outsider.user))

        assert response.status_code == 403

    def test_token_provider_failure_is_bad_gateway(self, client, video, make_user, db):
        patient = make_user(plan="basic", allowance=2)
        case_id = start(client, patient).json()["appointment"]["id"]
        video.fail_tokens = True

        response = client.post(f"/api/emergency/{case_id}/token", headers=auth_headers(patient))

        assert response.status_code == 502

    def test_status_shows_assigned_doctor(self, client, make_user, make_doctor, db):
        patient = make_user(plan="basic", allowance=2)
        doctor = make_doctor(full_name="Dra. Ana Lima")
        case_id = start(client, patient).json()["appointment"]["id"]

        waiting = client.get(f"/api/emergency/{case_id}/status", headers=auth_headers(patient)).json()
        client.post(f"/api/emergency/{case_id}/accept", headers=auth_headers(doctor.user))
        accepted = client.get(f"/api/emergency/{case_id}/status", headers=auth_headers(patient)).json()

        assert waiting["status"] == "waiting"
        assert waiting["doctor_name"] is None
        assert accepted["status"] == "in_progress"
        assert accepted["doctor_name"] == "Dra. Ana Lima"

    def test_latest_returns_most_recent_case(self, client, make_user, db):
        patient = make_user(plan="basic", allowance=2)
        assert client.get("/api/emergency/latest", headers=auth_headers(patient)).status_code == 404

        first_id = start(client, patient).json()["appointment"]["id"]
        client.post(f"/api/emergency/{first_id}/cancel", headers=auth_headers(patient))
        second_id = start(client, patient).json()["appointment"]["id"]

        response = client.get("/api/emergency/latest", headers=auth_headers(patient))

        assert response.json()["id"] == second_id

    def test_complete_requires_in_progress(self, client, make_user, db):
        patient = make_user(plan="basic", allowance=2)
        case_id = start(client, patient).json()["appointment"]["id"]

        response = client.post(f"/api/emergency/{case_id}/complete", headers=auth_headers(patient))

        assert response.status_code == 409

    def test_patient_can_complete_without_body(self, client, make_user, make_doctor, db):
        patient = make_user(plan="basic", allowance=2)
        doctor = make_doctor()
        case_id = start(client, patient).json()["appointment"]["id"]
        client.post(f"/api/emergency/{case_id}/accept", headers=auth_headers(doctor.user))

        response = client.post(f"/api/emergency/{case_id}/complete", headers=auth_headers(patient))

        assert response.status_code == 200
        assert response.json()["status"] == "completed"
