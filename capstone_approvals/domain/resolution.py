"""Resolution rule for approval requests.

A request resolves once one decision holds a strict majority of the whole
roster, not of the votes cast so far. Such a majority cannot be overturned
by the votes still outstanding, so the outcome is final the moment it is
reached. Even-sized rosters need more than half (4 recipients need 3), and
ties stay pending.
"""

from capstone_approvals.domain.ledger import Ledger, Tally
from capstone_approvals.domain.models import Decision


def majority_threshold(total: int) -> int:
    """Smallest vote count strictly greater than half of ``total``."""
    return total // 2 + 1


def resolve_tally(tally: Tally) -> Decision | None:
    """Return the winning decision for ``tally``, or None while unresolved.

    An empty roster never resolves.
    """
    if tally.total <= 0:
        return None

    threshold = majority_threshold(tally.total)

    if tally.approved >= threshold:
        return Decision.APPROVED
    if tally.rejected >= threshold:
        return Decision.REJECTED
    return None


def resolve(ledger: Ledger) -> Decision | None:
    """Apply the resolution rule to a full ledger."""
    return resolve_tally(ledger.tally())
