"""Recipient roster for a single approval request.

The roster is fixed when the request is submitted and never changes
afterwards; every vote is checked against it.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from capstone_approvals.domain.exceptions import ApprovalValidationError


def normalize_recipient_ids(recipient_ids: Iterable[int]) -> list[int]:
    """Deduplicate recipient ids, keeping first-seen order.

    Args:
        recipient_ids: Raw ids as supplied by the caller

    Returns:
        Distinct positive ids

    Raises:
        ApprovalValidationError: If an id is not a positive integer or nothing is left
    """
    seen: dict[int, None] = {}
    problems: list[str] = []

    for raw in recipient_ids:
        if isinstance(raw, bool) or not isinstance(raw, int) or raw <= 0:
            problems.append(f"Invalid recipient id: {raw!r}")
            continue
        seen.setdefault(raw, None)

    if problems:
        raise ApprovalValidationError(
            "The given data was invalid.", errors={"recipient_ids": problems}
        )

    if not seen:
        raise ApprovalValidationError(
            "The given data was invalid.",
            errors={"recipient_ids": ["At least one recipient is required."]},
        )

    return list(seen)


@dataclass(frozen=True)
class Roster:
    """Frozen set of users entitled to vote on one request."""

    user_ids: tuple[int, ...]

    @classmethod
    def from_ids(cls, recipient_ids: Iterable[int]) -> "Roster":
        return cls(tuple(normalize_recipient_ids(recipient_ids)))

    def __contains__(self, user_id: object) -> bool:
        return user_id in self.user_ids

    def __len__(self) -> int:
        return len(self.user_ids)

    def label(self) -> str:
        """Human-readable list of recipients."""
        return ", ".join(f"User #{user_id}" for user_id in self.user_ids)
