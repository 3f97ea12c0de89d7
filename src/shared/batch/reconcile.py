"""Set reconciliation between a desired and an actual remote collection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional


@dataclass(frozen=True)
class ReconcileDelta:
    """Creates and deletes that bring the remote set to the desired set."""

    to_create: List[str] = field(default_factory=list)
    to_delete: List[str] = field(default_factory=list)
    truncated: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.to_create and not self.to_delete


def reconcile(
    desired: Iterable[str],
    actual_remote: Iterable[str],
    *,
    capacity: Optional[int] = None,
) -> ReconcileDelta:
    """Compute the minimal delta from ``actual_remote`` to ``desired``.

    Both lists are sorted by identifier. When ``capacity`` is given, at most
    that many creations are returned; the lexicographically first ones win.
    Nothing is remembered between calls, so capacity freed later is picked
    up by the next computation.

    Example:
        >>> reconcile({"A", "B", "C"}, {"B", "D"}, capacity=2)
        ReconcileDelta(to_create=['A', 'C'], to_delete=['D'], truncated=0)
    """
    desired_set = set(desired)
    actual_set = set(actual_remote)

    to_create = sorted(desired_set - actual_set)
    to_delete = sorted(actual_set - desired_set)

    truncated = 0
    if capacity is not None:
        limit = max(capacity, 0)
        if len(to_create) > limit:
            truncated = len(to_create) - limit
            to_create = to_create[:limit]

    return ReconcileDelta(to_create=to_create, to_delete=to_delete, truncated=truncated)


def apply_delta(actual_remote: Iterable[str], delta: ReconcileDelta) -> set:
    """Return the remote set as it looks after ``delta`` was applied."""
    return (set(actual_remote) - set(delta.to_delete)) | set(delta.to_create)
