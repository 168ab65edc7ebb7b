"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
    text,
)

from app.models.base import metadata

# Name of the storage-level guard against double-booking
SLOT_UNIQUE_CONSTRAINT = "uq_appointments_doctor_slot"

appointments = Table(
    "appointments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    # Ownership / references
    Column("doctor_id", Integer, ForeignKey("doctors.id"), nullable=False),
    Column("patient_id", Integer, ForeignKey("users.id"), nullable=False),
    # Snapshot of the doctor's department at booking time
    Column("department_id", Integer, nullable=False),
    # Slot boundaries (UTC)
    Column("starts_at", DateTime(timezone=True), nullable=False),
    Column("ends_at", DateTime(timezone=True), nullable=False),
    # Status management
    Column("status", String(20), nullable=False, server_default=text("'PENDING'")),
    Column("reason", String(500)),
    Column("cancellation_note", Text),
    Column("cancelled_by", String(20)),
    # Metadata
    Column("source", String(20), nullable=False, server_default=text("'MOBILE'")),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    # Constraints
    UniqueConstraint("doctor_id", "starts_at", name=SLOT_UNIQUE_CONSTRAINT),
    CheckConstraint(
        "status IN ('PENDING', 'APPROVED', 'CANCELLED', 'COMPLETED')",
        name="status",
    ),
    CheckConstraint(
        "cancelled_by IS NULL OR cancelled_by IN ('doctor', 'patient')",
        name="cancelled_by",
    ),
    Index("ix_appointments_patient_starts_at", "patient_id", "starts_at"),
)
