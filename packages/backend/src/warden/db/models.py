"""SQLAlchemy ORM models — single source of truth for the database schema.

Declarative mapping, SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Three tables:
- users: login identity + profile, unique email and Telegram handle
- apps: relying parties, each with its own signing secret
- confirmation_codes: one row per user, flipped to confirmed exactly once

Integer autoincrement keys — ids are handed to clients and embedded in
tokens. server_default is used for defaults so raw SQL inserts behave too.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
    false,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    pass_hash: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    date_of_birth: Mapped[str] = mapped_column(String(32), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(64), nullable=False)
    telegram_name: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True
    )
    is_admin: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=false()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class App(Base):
    """A relying party. The secret signs every token issued for it."""

    __tablename__ = "apps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    secret: Mapped[str] = mapped_column(String(255), nullable=False)


class ConfirmationCode(Base):
    """Proof of channel ownership. Rows are kept after confirmation."""

    __tablename__ = "confirmation_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), unique=True, nullable=False
    )
    code: Mapped[str] = mapped_column(String(16), nullable=False)
    confirmed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=false()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
