"""
Reviewer decision ledger (``forms_kernel.domain.ledger``).

Responsibility
--------------
An append-only, per-response sequence of reviewer decisions and the pure
tally the workflow derives its review outcome from.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* At most one entry per reviewer identity.  ``append`` refuses a second
  entry with ``DuplicateDecisionError``; the database repeats the check
  with ``UNIQUE(response_id, reviewer_id)``.
* Entries are never edited or removed; ``append`` returns a new ledger.
* Counts are always recomputed from the entries, never cached.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from forms_kernel.exceptions import DuplicateDecisionError


class ReviewDecision(str, Enum):
    """A reviewer's vote. Values are the wire strings."""

    YES = "yes"
    NO = "no"


@dataclass(frozen=True)
class DecisionRecord:
    """One reviewer's decision on a response. Immutable once appended."""

    reviewer_id: str
    decision: ReviewDecision
    decided_at: datetime
    comments: str | None = None


@dataclass(frozen=True)
class DecisionCounts:
    approved: int = 0
    denied: int = 0

    @property
    def total(self) -> int:
        return self.approved + self.denied


def count_decisions(entries: Iterable[DecisionRecord]) -> DecisionCounts:
    """Tally yes / no votes."""
    approved = denied = 0
    for entry in entries:
        if entry.decision is ReviewDecision.YES:
            approved += 1
        else:
            denied += 1
    return DecisionCounts(approved=approved, denied=denied)


@dataclass(frozen=True)
class DecisionLedger:
    """Append-only view over a response's reviewer decisions."""

    entries: tuple[DecisionRecord, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[DecisionRecord]:
        return iter(self.entries)

    def has_decided(self, reviewer_id: str) -> bool:
        return any(e.reviewer_id == reviewer_id for e in self.entries)

    def append(
        self, entry: DecisionRecord, response_id: str | None = None
    ) -> DecisionLedger:
        """Return a new ledger with ``entry`` added.

        Raises:
            DuplicateDecisionError: The reviewer already has an entry.
        """
        if self.has_decided(entry.reviewer_id):
            raise DuplicateDecisionError(response_id, entry.reviewer_id)
        return DecisionLedger(self.entries + (entry,))

    def counts(self) -> DecisionCounts:
        return count_decisions(self.entries)
