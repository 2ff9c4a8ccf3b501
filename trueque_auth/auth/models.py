"""
Auth service — SQLAlchemy ORM models.

Tables owned by this module:
  - users          Accounts; email and/or phone, optional password
  - auth_sessions  Server-side session rows, one per issued token
  - otp_records    One-time codes keyed by email or phone (no user FK: a code
                   is issued before the account exists during registration)
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trueque_common.database import Base

from trueque_auth.auth.constants import OTPChannel, OTPPurpose


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        sa.CheckConstraint(
            "email IS NOT NULL OR phone IS NOT NULL",
            name="ck_users_email_or_phone",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(), primary_key=True, default=uuid.uuid4
    )

    # ── Identifiers (each unique on its own; at least one present) ────────────
    email: Mapped[str | None] = mapped_column(
        sa.String(255), unique=True, nullable=True, index=True
    )
    phone: Mapped[str | None] = mapped_column(
        sa.String(20), unique=True, nullable=True, index=True
    )

    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    # nullable: OTP-only accounts never authenticate with a password
    password_hash: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    is_verified: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, default=False, server_default=sa.false()
    )

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    sessions: Mapped[list["AuthSession"]] = relationship(
        back_populates="user", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, phone={self.phone})>"


class AuthSession(Base):
    __tablename__ = "auth_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token: Mapped[str] = mapped_column(
        sa.String(1024), unique=True, nullable=False, index=True
    )
    expires_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow
    )

    user: Mapped[User] = relationship(back_populates="sessions")


class OTPRecord(Base):
    __tablename__ = "otp_records"
    __table_args__ = (
        sa.CheckConstraint(
            "(channel = 'email' AND email IS NOT NULL AND phone IS NULL) OR "
            "(channel = 'phone' AND phone IS NOT NULL AND email IS NULL)",
            name="ck_otp_records_identifier_matches_channel",
        ),
    )

    # Integer PK: doubles as the tie-break when two records share created_at
    id: Mapped[int] = mapped_column(sa.Integer(), primary_key=True, autoincrement=True)
    email: Mapped[str | None] = mapped_column(sa.String(255), nullable=True, index=True)
    phone: Mapped[str | None] = mapped_column(sa.String(20), nullable=True, index=True)
    code: Mapped[str] = mapped_column(sa.String(6), nullable=False)
    channel: Mapped[OTPChannel] = mapped_column(
        sa.Enum(
            OTPChannel,
            name="otpchannel",
            native_enum=False,
            values_callable=lambda e: [x.value for x in e],
        ),
        nullable=False,
    )
    purpose: Mapped[OTPPurpose] = mapped_column(
        sa.Enum(
            OTPPurpose,
            name="otppurpose",
            native_enum=False,
            values_callable=lambda e: [x.value for x in e],
        ),
        nullable=False,
    )
    is_used: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, default=False, server_default=sa.false()
    )
    expires_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow
    )
    used_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
