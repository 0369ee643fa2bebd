# src/quotas/domain/services/quota_policy.py
"""Per-user ceiling policy for instance count and daily message volume."""

from dataclasses import dataclass
from enum import Enum


class QuotaKind(str, Enum):
    INSTANCES = "instances"
    MESSAGES_PER_DAY = "messages_per_day"


@dataclass(frozen=True, slots=True)
class QuotaDecision:
    """Result of an admission check. A denial is a value, not an error."""
    kind: QuotaKind
    admitted: bool
    current: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(self.limit - self.current, 0)


def evaluate(kind: QuotaKind, current: int, limit: int) -> QuotaDecision:
    """Admit iff usage is strictly below the ceiling."""
    return QuotaDecision(kind=kind, admitted=current < limit, current=current, limit=limit)
