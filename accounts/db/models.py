"""SQLAlchemy models for accounts, credential tokens and sessions."""
from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from .session import Base

SUBSCRIPTION_INACTIVE = "inactive"
SUBSCRIPTION_PENDING = "pending"
SUBSCRIPTION_ACTIVE = "active"
SUBSCRIPTION_STATUSES = (SUBSCRIPTION_INACTIVE, SUBSCRIPTION_PENDING, SUBSCRIPTION_ACTIVE)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    verification_code_hash = Column(Text, nullable=True)
    verification_expires_at = Column(DateTime(timezone=True), nullable=True)
    reset_token_hash = Column(Text, nullable=True)
    reset_expires_at = Column(DateTime(timezone=True), nullable=True)
    subscription_status = Column(String(16), default=SUBSCRIPTION_INACTIVE, nullable=False)
    subscription_version = Column(Integer, default=0, nullable=False)
    subscription_claimed_at = Column(DateTime(timezone=True), nullable=True)
    provider_customer_id = Column(String(255), nullable=True)
    provider_subscription_id = Column(String(255), index=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    sessions = relationship("UserSession", back_populates="user", cascade="all,delete-orphan")


class UserSession(Base):
    __tablename__ = "sessions"

    token = Column(String(128), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="sessions")
