# ------------------------------------------
# SQLAlchemy identity models
# - User: registered account with lockout tracking, never hard-deleted
# - UserRoleAssignment: many roles per user
# - RefreshToken: persisted refresh-token ledger rows (hash only)
# ------------------------------------------

from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Enum, Integer, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from typing import Optional, Set
import uuid
from app.core.clock import utcnow, as_utc
from app.core.roles import Role, DEFAULT_ROLE  # noqa: F401
from app.db.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    email = Column(String(256), nullable=False)
    normalized_email = Column(String(256), unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    failed_access_count = Column(Integer, nullable=False, default=0)
    lockout_ends_at = Column(DateTime(timezone=True), nullable=True)

    role_assignments = relationship(
        "UserRoleAssignment", back_populates="user", cascade="all, delete-orphan", lazy="selectin"
    )
    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def roles(self) -> Set[Role]:
        return {assignment.role for assignment in self.role_assignments}

    def is_locked_out(self, now: datetime) -> bool:
        ends_at = as_utc(self.lockout_ends_at)
        return ends_at is not None and ends_at > now


class UserRoleAssignment(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(Enum(Role), nullable=False)

    user = relationship("User", back_populates="role_assignments")


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_by_ip = Column(String(50), nullable=False, default="Unknown")
    expiry_date = Column(DateTime(timezone=True), nullable=False)
    is_revoked = Column(Boolean, nullable=False, default=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_by_ip = Column(String(50), nullable=True)
    replaced_by_token_hash = Column(String(64), nullable=True)

    user = relationship("User", back_populates="refresh_tokens")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= as_utc(self.expiry_date)

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return not self.is_revoked and not self.is_expired(now)


Index("ix_refresh_tokens_user_active", RefreshToken.user_id, RefreshToken.is_revoked)
