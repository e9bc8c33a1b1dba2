"""Database infrastructure module.

This module provides database models, session management, and the repository
used to persist approval requests.

Key components:
- models: SQLAlchemy ORM models
- session: Database session management with connection pooling
- repository: Load/save operations for a request and its recipient decisions
"""

from capstone_approvals.infra.db.models import (
    ApprovalRequest,
    ApprovalRequestRecipient,
    Base,
)
from capstone_approvals.infra.db.repository import ApprovalRequestRepository
from capstone_approvals.infra.db.session import (
    DatabaseSessionManager,
    get_session,
    get_session_factory,
    get_session_manager,
    initialize_session_manager,
    reset_session_manager,
)

__all__ = [
    # Models
    "Base",
    "ApprovalRequest",
    "ApprovalRequestRecipient",
    # Repository
    "ApprovalRequestRepository",
    # Session management
    "DatabaseSessionManager",
    "get_session_factory",
    "get_session_manager",
    "initialize_session_manager",
    "get_session",
    "reset_session_manager",
]
