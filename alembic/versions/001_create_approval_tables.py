"""Create approval_requests and approval_request_recipients tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema - add approval request tables."""

    op.create_table(
        "approval_requests",
        sa.Column(
            "id",
            sa.Integer(),
            autoincrement=True,
            nullable=False,
            comment="Approval request identifier",
        ),
        sa.Column("title", sa.String(length=255), nullable=False, comment="Request title"),
        sa.Column("description", sa.Text(), nullable=True, comment="Optional long description"),
        sa.Column(
            "requested_by",
            sa.Integer(),
            nullable=False,
            comment="User id of the requester",
        ),
        sa.Column(
            "action_key",
            sa.String(length=128),
            nullable=False,
            comment="Action executed once the request resolves",
        ),
        sa.Column(
            "action_payload",
            sa.JSON(),
            nullable=True,
            comment="Opaque payload for the action handler",
        ),
        sa.Column(
            "status",
            sa.String(length=32),
            nullable=False,
            server_default="pending",
            comment="Request status: pending/approved/rejected",
        ),
        sa.Column(
            "resolved_decision",
            sa.String(length=32),
            nullable=True,
            comment="Winning decision once resolved",
        ),
        sa.Column(
            "resolved_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="Resolution timestamp",
        ),
        sa.Column(
            "version_id",
            sa.Integer(),
            nullable=False,
            comment="Optimistic concurrency counter",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
            comment="Record creation timestamp",
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
            comment="Record last update timestamp",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index("idx_approval_request_requested_by", "approval_requests", ["requested_by"])
    op.create_index("idx_approval_request_status", "approval_requests", ["status"])
    op.create_index("idx_approval_request_created_at", "approval_requests", ["created_at"])

    op.create_table(
        "approval_request_recipients",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "approval_request_id",
            sa.Integer(),
            nullable=False,
            comment="Owning approval request",
        ),
        sa.Column("user_id", sa.Integer(), nullable=False, comment="Recipient user id"),
        sa.Column(
            "decision",
            sa.String(length=32),
            nullable=True,
            comment="approved/rejected, NULL while undecided",
        ),
        sa.Column(
            "comment",
            sa.Text(),
            nullable=True,
            comment="Optional note left with the decision",
        ),
        sa.Column(
            "decision_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="When the decision was recorded",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
            comment="Record creation timestamp",
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
            comment="Record last update timestamp",
        ),
        sa.ForeignKeyConstraint(
            ["approval_request_id"], ["approval_requests.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "approval_request_id", "user_id", name="uq_approval_request_recipient"
        ),
    )

    op.create_index(
        "idx_approval_request_recipient_user_id", "approval_request_recipients", ["user_id"]
    )


def downgrade() -> None:
    """Downgrade database schema - remove approval request tables."""

    op.drop_index("idx_approval_request_recipient_user_id", "approval_request_recipients")
    op.drop_table("approval_request_recipients")

    op.drop_index("idx_approval_request_created_at", "approval_requests")
    op.drop_index("idx_approval_request_status", "approval_requests")
    op.drop_index("idx_approval_request_requested_by", "approval_requests")
    op.drop_table("approval_requests")
