"""Domain services for the approval workflow.

Domain services encapsulate business logic and orchestrate operations
across persistence, domain models and resolution actions. They provide
typed interfaces for the HTTP API and the admin CLI.

Services in this package:
- ApprovalService: Request submission, voting, resolution and read views
- ActionRunner: Post-resolution action handlers keyed by action_key
"""

from capstone_approvals.domain.services.actions import ActionRunner, ApprovalAction, NoOpAction
from capstone_approvals.domain.services.approval import ApprovalService

__all__ = [
    "ActionRunner",
    "ApprovalAction",
    "ApprovalService",
    "NoOpAction",
]
