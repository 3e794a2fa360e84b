from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gainz.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_user_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "(email_verification_code IS NULL) = (email_verification_expiry IS NULL)",
            name="ck_users_email_verification_pair",
        ),
        CheckConstraint(
            "(reset_password_token IS NULL) = (reset_password_expiry IS NULL)",
            name="ck_users_reset_password_pair",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_user_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    # Embedded in refresh tokens; bumping it revokes every outstanding refresh token
    token_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_verification_code: Mapped[str | None] = mapped_column(String(6), nullable=True)
    email_verification_expiry: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # SHA256 of the issued reset token, never the token itself
    reset_password_token: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    reset_password_expiry: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    tokens: Mapped[list["Token"]] = relationship(
        "Token", back_populates="user", cascade="all, delete-orphan"
    )
