import pytest

from medbook.core.security import UserRole

booking_data = {
    "slot_date": "2024-05-01",
    "slot_time": "10:00"
}


@pytest.fixture
def patient(make_user):
    return make_user()


@pytest.fixture
def doctor(make_doctor):
    return make_doctor(fees=100)


def book(client, headers, doctor_id, **overrides):
    payload = {"doctor_id": doctor_id, **booking_data, **overrides}
    return client.post("/api/v1/appointments", json=payload, headers=headers)


class TestBooking:

    def test_book_appointment(self, client, patient, doctor, auth_headers):
        """Test booking a free slot."""
        response = book(client, auth_headers(patient), doctor.id)
        assert response.status_code == 201

        data = response.json()
        assert data["patient_id"] == patient.id
        assert data["doctor_id"] == doctor.id
        assert data["slot_date"] == "2024-05-01"
        assert data["slot_time"] == "10:00"
        assert data["amount"] == 100
        assert data["cancelled"] is False
        assert data["is_completed"] is False
        assert data["payment"] == "pending"

    def test_book_normalizes_slot(self, client, patient, doctor, auth_headers):
        """Test that unpadded times map onto the same calendar key."""
        response = book(client, auth_headers(patient), doctor.id, slot_time="9:05")
        assert response.status_code == 201
        assert response.json()["slot_time"] == "09:05"

    def test_book_taken_slot(self, client, make_user, doctor, auth_headers):
        """Test booking a slot that is already taken."""
        first, second = make_user(), make_user()
        book(client, auth_headers(first), doctor.id)

        response = book(client, auth_headers(second), doctor.id)
        assert response.status_code == 409
        assert response.json()["error"] == "slot_taken"

    def test_book_unavailable_doctor(self, client, patient, make_doctor, auth_headers):
        """Test booking a doctor who is not available."""
        doctor = make_doctor(available=False)

        response = book(client, auth_headers(patient), doctor.id)
        assert response.status_code == 409
        assert response.json()["error"] == "doctor_unavailable"

    def test_book_unknown_doctor(self, client, patient, auth_headers):
        """Test booking a doctor that does not exist."""
        response = book(client, auth_headers(patient), 9999)
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"
        assert response.json()["message"] == "Doctor not found"

    def test_book_invalid_date(self, client, patient, doctor, auth_headers):
        """Test booking with a malformed date."""
        response = book(client, auth_headers(patient), doctor.id, slot_date="01/05/2024")
        assert response.status_code == 422

    def test_book_invalid_time(self, client, patient, doctor, auth_headers):
        """Test booking with a malformed time."""
        response = book(client, auth_headers(patient), doctor.id, slot_time="25:00")
        assert response.status_code == 422

    def test_book_missing_fields(self, client, patient, auth_headers):
        """Test booking without required fields."""
        response = client.post(
            "/api/v1/appointments", json={"doctor_id": 1}, headers=auth_headers(patient)
        )
        assert response.status_code == 422

    def test_book_requires_patient_role(self, client, make_user, doctor, auth_headers):
        """Test that doctors cannot book as patients."""
        doctor_user = make_user(role=UserRole.DOCTOR)

        response = book(client, auth_headers(doctor_user), doctor.id)
        assert response.status_code == 403

    def test_book_without_token(self, client, doctor):
        """Test booking without authentication."""
        response = client.post(
            "/api/v1/appointments", json={"doctor_id": doctor.id, **booking_data}
        )
        assert response.status_code in (401, 403)

    def test_book_invalid_token(self, client, doctor):
        """Test booking with an invalid token."""
        headers = {"Authorization": "Bearer invalid_token"}

        response = book(client, headers, doctor.id)
        assert response.status_code == 401

    def test_book_inactive_user(self, client, make_user, doctor, auth_headers):
        """Test booking as a deactivated user."""
        user = make_user(is_active=False)

        response = book(client, auth_headers(user), doctor.id)
        assert response.status_code == 401


class TestCancellation:

    def test_cancel_appointment(self, client, make_user, doctor, auth_headers):
        """Test cancelling frees the slot for the next patient."""
        first, second = make_user(), make_user()
        appointment_id = book(client, auth_headers(first), doctor.id).json()["id"]

        response = client.post(
            f"/api/v1/appointments/{appointment_id}/cancel", headers=auth_headers(first)
        )
        assert response.status_code == 200
        assert response.json()["cancelled"] is True

        response = book(client, auth_headers(second), doctor.id)
        assert response.status_code == 201

    def test_cancel_twice(self, client, patient, doctor, auth_headers):
        """Test that cancelling again succeeds without side effects."""
        appointment_id = book(client, auth_headers(patient), doctor.id).json()["id"]
        url = f"/api/v1/appointments/{appointment_id}/cancel"

        assert client.post(url, headers=auth_headers(patient)).status_code == 200
        response = client.post(url, headers=auth_headers(patient))
        assert response.status_code == 200
        assert response.json()["cancelled"] is True

    def test_cancel_other_patients_appointment(self, client, make_user, doctor, auth_headers):
        """Test that a patient cannot cancel someone else's appointment."""
        owner, other = make_user(), make_user()
        appointment_id = book(client, auth_headers(owner), doctor.id).json()["id"]

        response = client.post(
            f"/api/v1/appointments/{appointment_id}/cancel", headers=auth_headers(other)
        )
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"

        slots = client.get(
            f"/api/v1/doctors/{doctor.id}/slots",
            params={"slot_date": "2024-05-01", "slot_time": "10:00"}
        ).json()
        assert slots["is_booked"] is True

    def test_cancel_unknown_appointment(self, client, patient, auth_headers):
        """Test cancelling an appointment that does not exist."""
        response = client.post("/api/v1/appointments/9999/cancel", headers=auth_headers(patient))
        assert response.status_code == 404


class TestAppointmentReads:

    def test_list_my_appointments(self, client, make_user, doctor, auth_headers):
        """Test listing only the caller's appointments, newest first."""
        patient, other = make_user(), make_user()
        first = book(client, auth_headers(patient), doctor.id, slot_time="09:00").json()
        second = book(client, auth_headers(patient), doctor.id, slot_time="09:30").json()
        book(client, auth_headers(other), doctor.id, slot_time="11:00")

        response = client.get("/api/v1/appointments", headers=auth_headers(patient))
        assert response.status_code == 200

        ids = [a["id"] for a in response.json()["appointments"]]
        assert ids == [second["id"], first["id"]]

    def test_get_appointment(self, client, patient, doctor, auth_headers):
        """Test reading an appointment as its owner."""
        appointment_id = book(client, auth_headers(patient), doctor.id).json()["id"]

        response = client.get(f"/api/v1/appointments/{appointment_id}", headers=auth_headers(patient))
        assert response.status_code == 200
        assert response.json()["id"] == appointment_id

    def test_get_appointment_other_patient(self, client, make_user, doctor, auth_headers):
        """Test that other patients cannot read an appointment."""
        owner, other = make_user(), make_user()
        appointment_id = book(client, auth_headers(owner), doctor.id).json()["id"]

        response = client.get(f"/api/v1/appointments/{appointment_id}", headers=auth_headers(other))
        assert response.status_code == 403

    def test_get_appointment_as_admin(self, client, make_user, doctor, auth_headers):
        """Test that admins can read any appointment."""
        owner, admin = make_user(), make_user(role=UserRole.ADMIN)
        appointment_id = book(client, auth_headers(owner), doctor.id).json()["id"]

        response = client.get(f"/api/v1/appointments/{appointment_id}", headers=auth_headers(admin))
        assert response.status_code == 200

    def test_list_all_as_admin(self, client, make_user, doctor, auth_headers):
        """Test that admins see every appointment, newest first."""
        first, second = make_user(), make_user()
        admin = make_user(role=UserRole.ADMIN)
        older = book(client, auth_headers(first), doctor.id, slot_time="09:00").json()
        newer = book(client, auth_headers(second), doctor.id, slot_time="09:30").json()

        response = client.get("/api/v1/appointments/all", headers=auth_headers(admin))
        assert response.status_code == 200

        ids = [a["id"] for a in response.json()["appointments"]]
        assert ids == [newer["id"], older["id"]]

    def test_list_all_requires_admin(self, client, patient, auth_headers):
        """Test that patients cannot list everyone's appointments."""
        response = client.get("/api/v1/appointments/all", headers=auth_headers(patient))
        assert response.status_code == 403


class TestDoctors:

    def test_list_doctors(self, client, patient, doctor, auth_headers):
        """Test doctor listing shows booked slots."""
        book(client, auth_headers(patient), doctor.id)

        response = client.get("/api/v1/doctors")
        assert response.status_code == 200

        data = response.json()
        assert len(data) == 1
        assert data[0]["available"] is True
        assert data[0]["fees"] == 100
        assert data[0]["slots_booked"] == {"2024-05-01": ["10:00"]}

    def test_booked_slots(self, client, patient, doctor, auth_headers):
        """Test the availability query for a date and time."""
        book(client, auth_headers(patient), doctor.id)

        response = client.get(
            f"/api/v1/doctors/{doctor.id}/slots",
            params={"slot_date": "2024-05-01", "slot_time": "10:30"}
        )
        assert response.status_code == 200

        data = response.json()
        assert data["booked_times"] == ["10:00"]
        assert data["is_booked"] is False

    def test_booked_slots_invalid_date(self, client, doctor):
        """Test the availability query with a malformed date."""
        response = client.get(f"/api/v1/doctors/{doctor.id}/slots", params={"slot_date": "May 1"})
        assert response.status_code == 422

    def test_booked_slots_unknown_doctor(self, client):
        """Test the availability query for a missing doctor."""
        response = client.get("/api/v1/doctors/9999/slots", params={"slot_date": "2024-05-01"})
        assert response.status_code == 404

    def test_toggle_availability(self, client, make_user, patient, doctor, auth_headers):
        """Test that an admin can make a doctor unavailable for booking."""
        admin = make_user(role=UserRole.ADMIN)

        response = client.post(
            f"/api/v1/doctors/{doctor.id}/availability", headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json()["available"] is False

        response = book(client, auth_headers(patient), doctor.id)
        assert response.status_code == 409

    def test_toggle_availability_requires_admin(self, client, patient, doctor, auth_headers):
        """Test that patients cannot change availability."""
        response = client.post(
            f"/api/v1/doctors/{doctor.id}/availability", headers=auth_headers(patient)
        )
        assert response.status_code == 403


class TestService:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_unknown_route(self, client):
        response = client.get("/api/v1/nothing-here")
        assert response.status_code == 404
        assert response.json()["error"] == "Not Found"

    def test_root_lists_entry_points(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["appointments"] == "/api/v1/appointments"
