"""Create users, departments, doctors and appointments tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    """Create the booking schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'patient'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('patient', 'doctor', 'admin')", name="ck_users_role"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "departments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("code", sa.String(20), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("location", sa.String(50), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("name", name="uq_departments_name"),
    )
    op.create_index("ix_departments_is_active", "departments", ["is_active"])

    op.create_table(
        "doctors",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", name="fk_doctors_user_id_users", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "department_id",
            sa.Integer(),
            sa.ForeignKey(
                "departments.id",
                name="fk_doctors_department_id_departments",
                ondelete="SET NULL",
            ),
            nullable=True,
        ),
        sa.Column("title", sa.String(50), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("room", sa.String(20), nullable=True),
        sa.Column("room_phone", sa.String(20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_doctors_user_id", "doctors", ["user_id"], unique=True)
    op.create_index("ix_doctors_department_id", "doctors", ["department_id"])
    op.create_index("ix_doctors_is_active", "doctors", ["is_active"])

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "doctor_id",
            sa.Integer(),
            sa.ForeignKey("doctors.id", name="fk_appointments_doctor_id_doctors"),
            nullable=False,
        ),
        sa.Column(
            "patient_id",
            sa.Integer(),
            sa.ForeignKey("users.id", name="fk_appointments_patient_id_users"),
            nullable=False,
        ),
        sa.Column("department_id", sa.Integer(), nullable=False),
        sa.Column("starts_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("ends_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("reason", sa.String(500), nullable=True),
        sa.Column("cancellation_note", sa.Text(), nullable=True),
        sa.Column("cancelled_by", sa.String(20), nullable=True),
        sa.Column("source", sa.String(20), nullable=False, server_default=sa.text("'MOBILE'")),
        *_timestamps(),
        # One appointment per doctor per slot, whatever its status
        sa.UniqueConstraint("doctor_id", "starts_at", name="uq_appointments_doctor_slot"),
        sa.CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'CANCELLED', 'COMPLETED')",
            name="ck_appointments_status",
        ),
        sa.CheckConstraint(
            "cancelled_by IS NULL OR cancelled_by IN ('doctor', 'patient')",
            name="ck_appointments_cancelled_by",
        ),
    )
    op.create_index(
        "ix_appointments_patient_starts_at",
        "appointments",
        ["patient_id", "starts_at"],
    )


def downgrade() -> None:
    """Drop the booking schema."""
    op.drop_index("ix_appointments_patient_starts_at", table_name="appointments")
    op.drop_table("appointments")
    op.drop_index("ix_doctors_is_active", table_name="doctors")
    op.drop_index("ix_doctors_department_id", table_name="doctors")
    op.drop_index("ix_doctors_user_id", table_name="doctors")
    op.drop_table("doctors")
    op.drop_index("ix_departments_is_active", table_name="departments")
    op.drop_table("departments")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
