"""Domain-specific exceptions for the approval workflow.

Domain exceptions represent business rule violations and are separate from
infrastructure (database) and HTTP errors. They are translated into HTTP
responses at the API layer and into exit codes at the CLI layer.
"""


class DomainError(Exception):
    """Base exception for domain layer errors.

    Domain errors represent violations of business rules or constraints
    that are enforced at the service layer.
    """

    def __init__(self, message: str, *, context: dict | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message
            context: Additional context about the error
        """
        self.message = message
        self.context = context or {}
        super().__init__(message)


class ApprovalRequestNotFoundError(DomainError):
    """Raised when the referenced approval request does not exist."""

    def __init__(self, request_id: int) -> None:
        super().__init__(
            f"Approval request not found: {request_id}",
            context={"approval_request_id": request_id},
        )


class NotARecipientError(DomainError):
    """Raised when a user outside the roster tries to vote.

    Context should include:
        - approval_request_id: The request identifier
        - user_id: The rejected voter
    """

    def __init__(self, request_id: int, user_id: int) -> None:
        super().__init__(
            "You are not allowed to vote on this request.",
            context={"approval_request_id": request_id, "user_id": user_id},
        )


class ApprovalConflictError(DomainError):
    """Base class for votes that lose against the current ledger state.

    Conflicts are an expected outcome when recipients vote concurrently;
    callers report them, they do not treat them as failures.
    """


class RequestAlreadyResolvedError(ApprovalConflictError):
    """Raised when voting on a request that already reached a terminal status."""

    def __init__(self, request_id: int, status: str) -> None:
        super().__init__(
            "Request is already resolved.",
            context={"approval_request_id": request_id, "status": status},
        )


class DecisionAlreadyRecordedError(ApprovalConflictError):
    """Raised when a recipient votes a second time."""

    def __init__(self, request_id: int, user_id: int) -> None:
        super().__init__(
            "You already submitted your decision for this request.",
            context={"approval_request_id": request_id, "user_id": user_id},
        )


class ApprovalValidationError(DomainError):
    """Raised for malformed creation or vote payloads.

    Example:
        raise ApprovalValidationError(
            "The given data was invalid.",
            errors={"recipient_ids": ["At least one recipient is required."]},
        )
    """

    def __init__(self, message: str, *, errors: dict[str, list[str]] | None = None) -> None:
        self.errors = errors or {}
        super().__init__(message, context={"errors": self.errors})


class VoteRetryExhaustedError(DomainError):
    """Raised when the vote transaction kept conflicting at the storage layer."""

    def __init__(self, request_id: int, attempts: int) -> None:
        super().__init__(
            "Could not record the decision, please try again.",
            context={"approval_request_id": request_id, "attempts": attempts},
        )
