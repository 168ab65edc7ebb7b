"""Tests for appointment status transitions."""

from datetime import UTC, datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update

from app.core.exceptions import InvalidTransitionException
from app.models.appointments import appointments
from app.models.doctors import doctors
from app.schemas.appointments import AppointmentStatus
from app.schemas.users import Caller, UserRole
from app.services.appointment_status_service import (
    AppointmentStatusService,
    can_transition,
    is_valid_cancellation_note,
)
from conftest import (
    CARDIOLOGY_ID,
    GREY_DOCTOR_ID,
    GREY_USER_ID,
    HOUSE_DOCTOR_ID,
    HOUSE_USER_ID,
    PATIENT_2_ID,
)

PAST_SLOT = datetime(2025, 3, 10, 9, 0, tzinfo=UTC)


def status_url(appointment_id: int) -> str:
    return f"/api/v1/appointments/{appointment_id}/status"


def test_only_pending_can_move():
    """PENDING is the only state with outgoing transitions."""
    assert can_transition(AppointmentStatus.PENDING, AppointmentStatus.APPROVED)
    assert can_transition(AppointmentStatus.PENDING, AppointmentStatus.CANCELLED)
    for final in (
        AppointmentStatus.APPROVED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
    ):
        for target in AppointmentStatus:
            assert not can_transition(final, target)


@pytest.mark.parametrize(
    ("note", "valid"),
    [
        (None, False),
        ("", False),
        ("ok", False),
        ("  a b  ", False),
        ("abc", True),
        ("Emergency surgery", True),
    ],
)
def test_cancellation_note_length(note, valid):
    """Notes need three non-whitespace characters."""
    assert is_valid_cancellation_note(note) is valid


@pytest.mark.asyncio
async def test_doctor_approves(client: AsyncClient, house_headers, make_appointment) -> None:
    """The owning doctor approves with the client's 'upcoming' status."""
    appointment_id = await make_appointment(PAST_SLOT)

    response = await client.patch(
        status_url(appointment_id), json={"status": "upcoming"}, headers=house_headers
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "APPROVED"
    assert data["cancelledBy"] is None


@pytest.mark.asyncio
async def test_doctor_cancel_needs_reason(
    client: AsyncClient, house_headers, make_appointment
) -> None:
    """A too-short note is rejected and the appointment stays pending."""
    appointment_id = await make_appointment(PAST_SLOT)

    response = await client.patch(
        status_url(appointment_id),
        json={"status": "cancelled", "cancellationReason": "ok"},
        headers=house_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "InvalidCancellationReason"

    listing = await client.get("/api/v1/appointments/schedule", headers=house_headers)
    assert listing.json()["schedule"][0]["status"] == "PENDING"


@pytest.mark.asyncio
async def test_doctor_cancels_with_reason(
    client: AsyncClient, house_headers, make_appointment
) -> None:
    """A valid note cancels and is recorded with the cancelling side."""
    appointment_id = await make_appointment(PAST_SLOT)

    response = await client.patch(
        status_url(appointment_id),
        json={"status": "cancelled", "cancellationReason": "  Emergency surgery "},
        headers=house_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "CANCELLED"
    assert data["cancellationNote"] == "Emergency surgery"
    assert data["cancelledBy"] == "doctor"


@pytest.mark.asyncio
async def test_finalized_appointment_cannot_change(
    client: AsyncClient, house_headers, make_appointment
) -> None:
    """Approving a cancelled appointment is an invalid transition."""
    appointment_id = await make_appointment(
        PAST_SLOT, status="CANCELLED", cancelled_by="doctor", cancellation_note="Sick leave"
    )

    response = await client.patch(
        status_url(appointment_id), json={"status": "upcoming"}, headers=house_headers
    )

    assert response.status_code == 409
    assert response.json()["error"] == "InvalidTransition"


@pytest.mark.asyncio
async def test_patient_cancelled_appointment_message(
    client: AsyncClient, house_headers, make_appointment
) -> None:
    """The doctor is told when the patient already cancelled."""
    appointment_id = await make_appointment(
        PAST_SLOT, status="CANCELLED", cancelled_by="patient"
    )

    response = await client.patch(
        status_url(appointment_id), json={"status": "upcoming"}, headers=house_headers
    )

    assert response.status_code == 409
    assert "cancelled by the patient" in response.json()["message"]


@pytest.mark.asyncio
async def test_other_doctor_is_forbidden(
    client: AsyncClient, grey_headers, make_appointment
) -> None:
    """Only the appointment's own doctor may act on it."""
    appointment_id = await make_appointment(PAST_SLOT)

    response = await client.patch(
        status_url(appointment_id), json={"status": "upcoming"}, headers=grey_headers
    )

    assert response.status_code == 403
    assert response.json()["error"] == "Forbidden"


@pytest.mark.asyncio
async def test_ownership_checked_before_state(
    client: AsyncClient, grey_headers, make_appointment
) -> None:
    """A non-owner learns nothing about a finalized appointment."""
    appointment_id = await make_appointment(PAST_SLOT, status="APPROVED")

    response = await client.patch(
        status_url(appointment_id), json={"status": "upcoming"}, headers=grey_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_patient_cannot_approve(
    client: AsyncClient, patient_headers, make_appointment, future_slot
) -> None:
    """Patients can only cancel."""
    appointment_id = await make_appointment(future_slot)

    response = await client.patch(
        status_url(appointment_id), json={"status": "upcoming"}, headers=patient_headers
    )

    assert response.status_code == 403
    assert response.json()["error"] == "Forbidden"


@pytest.mark.asyncio
async def test_patient_cancels_future_appointment(
    client: AsyncClient, patient_headers, make_appointment, future_slot
) -> None:
    """Patients cancel their own future appointments without a note."""
    appointment_id = await make_appointment(future_slot)

    response = await client.patch(
        status_url(appointment_id), json={"status": "cancelled"}, headers=patient_headers
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "CANCELLED"
    assert data["cancelledBy"] == "patient"
    assert data["cancellationNote"] is None


@pytest.mark.asyncio
async def test_patient_cannot_cancel_past_appointment(
    client: AsyncClient, patient_headers, make_appointment
) -> None:
    """Past appointments cannot be cancelled by the patient."""
    appointment_id = await make_appointment(PAST_SLOT)

    response = await client.patch(
        status_url(appointment_id), json={"status": "cancelled"}, headers=patient_headers
    )

    assert response.status_code == 409
    assert response.json()["error"] == "InvalidTransition"


@pytest.mark.asyncio
async def test_patient_cannot_cancel_someone_elses(
    client: AsyncClient, patient2_headers, make_appointment, future_slot
) -> None:
    """Patients only act on their own bookings."""
    appointment_id = await make_appointment(future_slot)

    response = await client.patch(
        status_url(appointment_id), json={"status": "cancelled"}, headers=patient2_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_cannot_transition(
    client: AsyncClient, admin_headers, make_appointment
) -> None:
    """Admins manage the directory, not appointments."""
    appointment_id = await make_appointment(PAST_SLOT)

    response = await client.patch(
        status_url(appointment_id), json={"status": "upcoming"}, headers=admin_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_appointment(client: AsyncClient, house_headers) -> None:
    """Unknown ids are reported as not found."""
    response = await client.patch(status_url(404), json={"status": "upcoming"}, headers=house_headers)

    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"


@pytest.mark.asyncio
async def test_unknown_status_value(client: AsyncClient, house_headers, make_appointment) -> None:
    """Only the client vocabulary is accepted."""
    appointment_id = await make_appointment(PAST_SLOT)

    response = await client.patch(
        status_url(appointment_id), json={"status": "completed"}, headers=house_headers
    )

    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


@pytest.mark.asyncio
async def test_deactivated_doctor_can_still_cancel(
    client: AsyncClient, db_session, house_headers, make_appointment
) -> None:
    """Ownership does not depend on the doctor being bookable."""
    appointment_id = await make_appointment(PAST_SLOT)
    await db_session.execute(
        update(doctors).where(doctors.c.id == HOUSE_DOCTOR_ID).values(is_active=False)
    )
    await db_session.commit()

    response = await client.patch(
        status_url(appointment_id),
        json={"status": "cancelled", "cancellationReason": "Leaving the hospital"},
        headers=house_headers,
    )

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_stale_read_loses_race(db_session, make_appointment, monkeypatch) -> None:
    """A transition based on a stale PENDING read does not overwrite the winner."""
    appointment_id = await make_appointment(PAST_SLOT)
    service = AppointmentStatusService(db_session)
    stale = await service.get_appointment(appointment_id)

    # Another request approves first
    await db_session.execute(
        update(appointments)
        .where(appointments.c.id == appointment_id)
        .values(status="APPROVED")
    )
    await db_session.commit()

    async def stale_read(appointment_id):
        return stale

    monkeypatch.setattr(service, "get_appointment", stale_read)
    caller = Caller(account_id=HOUSE_USER_ID, role=UserRole.DOCTOR)

    with pytest.raises(InvalidTransitionException):
        await service.update_status(
            caller, appointment_id, AppointmentStatus.CANCELLED, "Emergency surgery"
        )

    result = await db_session.execute(
        select(appointments.c.status, appointments.c.cancelled_by).where(
            appointments.c.id == appointment_id
        )
    )
    assert tuple(result.one()) == ("APPROVED", None)


@pytest.mark.asyncio
async def test_patient_cancel_ignores_note(db_session, make_appointment, future_slot) -> None:
    """A note sent by a patient is not stored."""
    appointment_id = await make_appointment(future_slot, patient_id=PATIENT_2_ID)
    service = AppointmentStatusService(db_session)

    view = await service.update_status(
        Caller(account_id=PATIENT_2_ID, role=UserRole.PATIENT),
        appointment_id,
        AppointmentStatus.CANCELLED,
        cancellation_note="Feeling better",
    )

    assert view.status is AppointmentStatus.CANCELLED
    assert view.cancellation_note is None
    assert view.updated_at >= datetime.now(UTC) - timedelta(minutes=1)


@pytest.mark.asyncio
async def test_doctor_booking_as_patient_can_cancel(
    client: AsyncClient, grey_headers, future_slot
) -> None:
    """A doctor who booked another doctor acts as that appointment's patient."""
    booked = await client.post(
        "/api/v1/appointments/",
        json={
            "doctorId": HOUSE_DOCTOR_ID,
            "departmentId": CARDIOLOGY_ID,
            "startsAt": future_slot.isoformat(),
        },
        headers=grey_headers,
    )
    assert booked.status_code == 201
    assert booked.json()["patient"]["id"] == GREY_USER_ID

    approve = await client.patch(
        status_url(booked.json()["id"]), json={"status": "upcoming"}, headers=grey_headers
    )
    assert approve.status_code == 403

    cancel = await client.patch(
        status_url(booked.json()["id"]), json={"status": "cancelled"}, headers=grey_headers
    )
    assert cancel.status_code == 200
    assert cancel.json()["cancelledBy"] == "patient"


@pytest.mark.asyncio
async def test_admin_can_cancel_own_booking(
    client: AsyncClient, admin_headers, future_slot
) -> None:
    """Any account that booked an appointment may cancel it."""
    booked = await client.post(
        "/api/v1/appointments/",
        json={
            "doctorId": GREY_DOCTOR_ID,
            "departmentId": CARDIOLOGY_ID,
            "startsAt": future_slot.isoformat(),
        },
        headers=admin_headers,
    )
    assert booked.status_code == 201

    response = await client.patch(
        status_url(booked.json()["id"]),
        json={"status": "cancelled"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["cancelledBy"] == "patient"


@pytest.mark.asyncio
async def test_doctor_keeps_doctor_side_on_own_appointments(
    client: AsyncClient, house_headers, make_appointment
) -> None:
    """The owning doctor still approves appointments booked with them."""
    appointment_id = await make_appointment(PAST_SLOT, patient_id=GREY_USER_ID)

    response = await client.patch(
        status_url(appointment_id), json={"status": "upcoming"}, headers=house_headers
    )

    assert response.status_code == 200
    assert response.json()["status"] == "APPROVED"
