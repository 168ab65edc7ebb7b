"""Doctor profile model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    func,
    text,
)

from app.models.base import metadata

doctors = Table(
    "doctors",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    # Owning account (exactly one)
    Column(
        "user_id",
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    ),
    # A doctor may be briefly unassigned
    Column(
        "department_id",
        Integer,
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    ),
    Column("title", String(50)),
    Column("bio", Text),
    Column("room", String(20)),
    Column("room_phone", String(20)),
    # Deactivated, never deleted
    Column("is_active", Boolean, nullable=False, server_default=text("true"), index=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
