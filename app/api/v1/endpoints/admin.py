"""Admin-only directory management endpoints."""

from fastapi import APIRouter, status

from app.dependencies import AdminUser, CacheManagerDep, DatabaseSession
from app.schemas.directory import (
    DepartmentResponse,
    DepartmentUpdate,
    DoctorProfileResponse,
    DoctorProfileUpdate,
)
from app.services.directory_service import DirectoryService

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.patch(
    "/departments/{department_id}",
    response_model=DepartmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Activate or deactivate a department (admin only)",
)
async def update_department(
    department_id: int,
    data: DepartmentUpdate,
    admin_user: AdminUser,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> DepartmentResponse:
    """Toggle a department's active flag."""
    service = DirectoryService(db, cache_manager=cache_manager)
    department = await service.set_department_active(department_id, data.is_active)
    return DepartmentResponse.model_validate(department)


@router.patch(
    "/doctors/{doctor_id}",
    response_model=DoctorProfileResponse,
    status_code=status.HTTP_200_OK,
    summary="Update a doctor profile (admin only)",
)
async def update_doctor(
    doctor_id: int,
    data: DoctorProfileUpdate,
    admin_user: AdminUser,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> DoctorProfileResponse:
    """
    Deactivate/reactivate a doctor or move them to another department.

    Appointments already booked keep their original department.
    """
    service = DirectoryService(db, cache_manager=cache_manager)
    doctor = await service.update_doctor_profile(doctor_id, data)
    return DoctorProfileResponse.model_validate(doctor)
