"""Decision ledger: per-recipient decision state for one request."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from capstone_approvals.domain.models import Decision


@dataclass(frozen=True)
class LedgerEntry:
    """Decision state of one recipient. ``decision`` is None while undecided."""

    user_id: int
    decision: Decision | None = None
    decision_at: datetime | None = None

    @property
    def is_undecided(self) -> bool:
        return self.decision is None


@dataclass(frozen=True)
class Tally:
    """Vote counts over a full roster."""

    total: int
    approved: int
    rejected: int

    @property
    def undecided(self) -> int:
        return self.total - self.approved - self.rejected


class Ledger:
    """Read-only snapshot of every recipient's decision for one request."""

    def __init__(self, entries: Iterable[LedgerEntry]) -> None:
        self._entries: dict[int, LedgerEntry] = {}
        for entry in entries:
            if entry.user_id in self._entries:
                raise ValueError(f"Duplicate ledger entry for user {entry.user_id}")
            self._entries[entry.user_id] = entry

    @classmethod
    def from_rows(cls, rows: Iterable[Any]) -> "Ledger":
        """Build a ledger from persisted recipient rows.

        Rows only need ``user_id``, ``decision`` and ``decision_at`` attributes;
        ``decision`` may be a plain string as stored in the database.
        """
        return cls(
            LedgerEntry(
                user_id=row.user_id,
                decision=Decision(row.decision) if row.decision is not None else None,
                decision_at=row.decision_at,
            )
            for row in rows
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries.values())

    def entry_for(self, user_id: int) -> LedgerEntry | None:
        return self._entries.get(user_id)

    def tally(self) -> Tally:
        approved = rejected = 0
        for entry in self._entries.values():
            if entry.decision is Decision.APPROVED:
                approved += 1
            elif entry.decision is Decision.REJECTED:
                rejected += 1
        return Tally(total=len(self._entries), approved=approved, rejected=rejected)
