"""Appointment endpoints."""

from fastapi import APIRouter, Depends, status

from app.dependencies import CacheManagerDep, CurrentCaller, DatabaseSession
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentStatusUpdate,
    AppointmentView,
    DoctorScheduleResponse,
)
from app.schemas.directory import (
    DepartmentListResponse,
    DepartmentResponse,
    DoctorListItem,
    DoctorListResponse,
)
from app.services.appointment_status_service import AppointmentStatusService
from app.services.booking_service import BookingService
from app.services.directory_service import DirectoryService
from app.services.schedule_service import ScheduleService

router = APIRouter()


def get_directory_service(db: DatabaseSession, cache_manager: CacheManagerDep) -> DirectoryService:
    """Get directory service instance."""
    return DirectoryService(db, cache_manager=cache_manager)


@router.post(
    "/",
    response_model=AppointmentView,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment slot",
)
async def create_appointment(
    data: AppointmentCreate,
    caller: CurrentCaller,
    db: DatabaseSession,
    directory: DirectoryService = Depends(get_directory_service),
) -> AppointmentView:
    """
    Book a 30-minute slot with a doctor for the authenticated user.

    - **doctorId**: Doctor profile ID
    - **departmentId**: Department the doctor currently belongs to
    - **startsAt**: ISO-8601 slot start
    - **reason**: Optional complaint text

    Fails with 404 `DoctorNotAvailable` or 409 `SlotTaken`.
    """
    service = BookingService(db, directory=directory)
    return await service.create_appointment(
        caller,
        doctor_id=data.doctor_id,
        department_id=data.department_id,
        starts_at=data.starts_at,
        reason=data.reason,
    )


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List my appointments",
)
async def list_appointments(
    caller: CurrentCaller,
    db: DatabaseSession,
) -> AppointmentListResponse:
    """List the authenticated patient's appointments ordered by start."""
    items = await ScheduleService(db).get_patient_appointments(caller.account_id)
    return AppointmentListResponse(appointments=items)


@router.get(
    "/departments",
    response_model=DepartmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List active departments",
)
async def list_departments(
    caller: CurrentCaller,
    directory: DirectoryService = Depends(get_directory_service),
) -> DepartmentListResponse:
    """List active departments ordered by name."""
    items = await directory.list_active_departments()
    return DepartmentListResponse(
        departments=[DepartmentResponse.model_validate(d) for d in items]
    )


@router.get(
    "/doctors/{department_id}",
    response_model=DoctorListResponse,
    status_code=status.HTTP_200_OK,
    summary="List doctors of a department",
)
async def list_department_doctors(
    department_id: int,
    caller: CurrentCaller,
    directory: DirectoryService = Depends(get_directory_service),
) -> DoctorListResponse:
    """List active doctors of a department ordered by name."""
    items = await directory.list_active_doctors_in_department(department_id)
    return DoctorListResponse(doctors=[DoctorListItem.model_validate(d) for d in items])


@router.get(
    "/schedule",
    response_model=DoctorScheduleResponse,
    status_code=status.HTTP_200_OK,
    summary="Get my schedule (doctors)",
)
async def get_doctor_schedule(
    caller: CurrentCaller,
    db: DatabaseSession,
) -> DoctorScheduleResponse:
    """
    Get the authenticated doctor's appointments ordered by start.

    Returns 404 when the caller has no active doctor profile.
    """
    items = await ScheduleService(db).get_doctor_schedule(caller.account_id)
    return DoctorScheduleResponse(schedule=items)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentView,
    status_code=status.HTTP_200_OK,
    summary="Approve or cancel an appointment",
)
async def update_appointment_status(
    appointment_id: int,
    data: AppointmentStatusUpdate,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> AppointmentView:
    """
    Move a pending appointment to approved (`upcoming`) or `cancelled`.

    Doctors must give a `cancellationReason` of at least 3 characters when
    cancelling. Patients may only cancel their own future appointments.
    The response is the authoritative post-transition state.
    """
    service = AppointmentStatusService(db)
    return await service.update_status(
        caller,
        appointment_id,
        data.status,
        cancellation_note=data.cancellation_reason,
    )
