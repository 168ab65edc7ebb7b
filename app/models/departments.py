"""Department model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
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

departments = Table(
    "departments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("code", String(20)),
    Column("description", Text),
    Column("phone", String(30)),
    Column("location", String(50)),
    # Only the active flag changes after seeding
    Column("is_active", Boolean, nullable=False, server_default=text("true"), index=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
