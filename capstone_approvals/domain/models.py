"""Domain models for the approval workflow.

Pydantic models representing payloads and read views for the service layer.
These are separate from SQLAlchemy ORM models to maintain clean separation
between domain and infrastructure layers.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, StrictInt, field_validator


class ApprovalStatus(str, Enum):
    """Approval request status state machine.

    Valid transitions:
    - pending → approved
    - pending → rejected

    Terminal states never transition again.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not ApprovalStatus.PENDING


class Decision(str, Enum):
    """A recipient's vote. An undecided recipient has no Decision."""

    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def terminal_status(self) -> ApprovalStatus:
        """Status a request takes when this decision wins."""
        return ApprovalStatus(self.value)


class ApprovalRequestCreate(BaseModel):
    """Payload for submitting a new approval request."""

    title: str = Field(..., min_length=1, max_length=255, description="Short request title")
    description: str | None = Field(default=None, description="Optional long description")
    action_key: str = Field(
        ..., min_length=1, description="Registered action executed on resolution"
    )
    action_payload: dict[str, Any] | None = Field(
        default=None, description="Opaque payload handed to the action handler"
    )
    recipient_ids: list[StrictInt] = Field(
        ..., min_length=1, description="User ids entitled to vote (duplicates are dropped)"
    )

    @field_validator("recipient_ids")
    @classmethod
    def validate_recipient_ids(cls, v: list[int]) -> list[int]:
        """Reject non-positive ids and drop duplicates, keeping first-seen order."""
        invalid = [user_id for user_id in v if user_id <= 0]
        if invalid:
            raise ValueError(f"recipient ids must be positive integers: {invalid}")
        return list(dict.fromkeys(v))


class VoteSubmit(BaseModel):
    """Payload for casting a decision."""

    decision: Decision = Field(..., description="approved or rejected")
    comment: str | None = Field(default=None, description="Optional note from the recipient")

    @field_validator("decision", mode="before")
    @classmethod
    def normalize_decision(cls, v: Any) -> Any:
        """Accept decisions regardless of case."""
        if isinstance(v, str):
            return v.strip().lower()
        return v


class DecisionComment(BaseModel):
    """Optional body of the approve/reject shortcuts."""

    comment: str | None = Field(default=None, description="Optional note from the recipient")


class RecipientDecisionView(BaseModel):
    """One roster entry as exposed to callers."""

    user_id: int
    decision: Decision | None = None
    comment: str | None = None
    decision_at: datetime | None = None


class ApprovalRequestView(BaseModel):
    """Full approval request resource."""

    id: int
    title: str
    description: str | None = None
    status: ApprovalStatus
    resolved_decision: Decision | None = None
    resolved_at: datetime | None = None
    action_key: str
    action_payload: dict[str, Any] | None = None
    requested_by: int
    recipients: list[RecipientDecisionView]
    pending_decision: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ApprovalRequestSummary(BaseModel):
    """Compact listing entry used by the sent/received views."""

    id: int
    title: str
    status: ApprovalStatus
    recipients: str
    description: str | None = None
