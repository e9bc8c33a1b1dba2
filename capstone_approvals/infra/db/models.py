"""SQLAlchemy ORM models for the Capstone Approvals service.

This module defines the database schema using SQLAlchemy 2.x ORM models.
All models support both SQLite (development) and PostgreSQL (production).

Design Principles:
- Domain models are kept separate (no SQLAlchemy in capstone_approvals/domain/)
- All timestamps use timezone-aware datetime
- JSON fields for opaque payloads
- Proper indexes for the listing queries
- Recipient rows are owned by their request (cascade delete)
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all database models.

    Provides:
    - Async attribute loading via AsyncAttrs
    - Common timestamp fields (created_at, updated_at)
    - Utility methods for dict conversion and repr
    """

    # Python-side defaults keep the values loaded after flush, so async
    # callers never trigger an implicit refresh.
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        comment="Record creation timestamp",
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
        comment="Record last update timestamp",
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary.

        Returns:
            Dictionary representation of model with all column values
        """
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}

    def __repr__(self) -> str:
        """String representation of model."""
        class_name = self.__class__.__name__
        pk_value = getattr(self, "id", None)
        return f"<{class_name}(id={pk_value})>"


class ApprovalRequest(Base):
    """Multi-approver request.

    ``version_id`` is the optimistic concurrency counter: every vote
    updates the row, so two votes computed from the same ledger snapshot
    cannot both commit.

    Relationships:
        recipients: Roster with per-recipient decisions (1:N)
    """

    __tablename__ = "approval_requests"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True, comment="Approval request identifier"
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False, comment="Request title")

    description: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Optional long description"
    )

    requested_by: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="User id of the requester"
    )

    action_key: Mapped[str] = mapped_column(
        String(128), nullable=False, comment="Action executed once the request resolves"
    )

    action_payload: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True, comment="Opaque payload for the action handler"
    )

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="pending",
        server_default="pending",
        comment="Request status: pending/approved/rejected",
    )

    resolved_decision: Mapped[str | None] = mapped_column(
        String(32), nullable=True, comment="Winning decision once resolved"
    )

    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="Resolution timestamp"
    )

    version_id: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Optimistic concurrency counter"
    )

    recipients: Mapped[list["ApprovalRequestRecipient"]] = relationship(
        "ApprovalRequestRecipient",
        back_populates="approval_request",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ApprovalRequestRecipient.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index("idx_approval_request_requested_by", "requested_by"),
        Index("idx_approval_request_status", "status"),
        Index("idx_approval_request_created_at", "created_at"),
    )


class ApprovalRequestRecipient(Base):
    """One roster entry: a recipient and their (possibly absent) decision."""

    __tablename__ = "approval_request_recipients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    approval_request_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("approval_requests.id", ondelete="CASCADE"),
        nullable=False,
        comment="Owning approval request",
    )

    user_id: Mapped[int] = mapped_column(Integer, nullable=False, comment="Recipient user id")

    decision: Mapped[str | None] = mapped_column(
        String(32), nullable=True, comment="approved/rejected, NULL while undecided"
    )

    comment: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Optional note left with the decision"
    )

    decision_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="When the decision was recorded"
    )

    approval_request: Mapped[ApprovalRequest] = relationship(
        "ApprovalRequest", back_populates="recipients"
    )

    __table_args__ = (
        UniqueConstraint(
            "approval_request_id", "user_id", name="uq_approval_request_recipient"
        ),
        Index("idx_approval_request_recipient_user_id", "user_id"),
    )
