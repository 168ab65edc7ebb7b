"""User account model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    String,
    Table,
    Text,
    func,
    text,
)

from app.models.base import metadata

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    # Identity
    Column("name", String(100), nullable=False),
    Column("email", String(255), nullable=False, unique=True, index=True),
    Column("password_hash", Text, nullable=False),
    # Contact (digits only)
    Column("phone", String(20)),
    # Account role drives which appointment transitions the caller may fire
    Column("role", String(20), nullable=False, server_default=text("'patient'")),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("role IN ('patient', 'doctor', 'admin')", name="role"),
)
