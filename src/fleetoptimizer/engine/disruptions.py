"""Disruption history summary used as an over-provisioning signal"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from ..core.base import DisruptionEvent

DEFAULT_WINDOW_DAYS = 7
HIGH_CONSOLIDATION_RATE = 2.0  # consolidations per day
EXPIRATION_ISSUE_RATIO = 0.2


class DisruptionKind(Enum):
    CONSOLIDATION = "consolidation"
    EXPIRATION = "expiration"
    TERMINATION = "termination"
    OTHER = "other"


def classify_reason(reason: str) -> DisruptionKind:
    reason = (reason or "").lower()
    if "consolidat" in reason:
        return DisruptionKind.CONSOLIDATION
    if "expir" in reason or "drift" in reason:
        return DisruptionKind.EXPIRATION
    if "terminat" in reason or "delet" in reason:
        return DisruptionKind.TERMINATION
    return DisruptionKind.OTHER


@dataclass(frozen=True)
class DisruptionInsights:
    total: int = 0
    consolidations: int = 0
    expirations: int = 0
    terminations: int = 0
    window_days: int = DEFAULT_WINDOW_DAYS

    @property
    def consolidation_rate(self) -> float:
        """Consolidations per day over the window"""
        if self.window_days <= 0:
            return 0.0
        return self.consolidations / self.window_days

    @property
    def average_per_day(self) -> float:
        """Disruptions of any kind per day over the window"""
        if self.window_days <= 0:
            return 0.0
        return self.total / self.window_days

    @property
    def has_high_consolidation(self) -> bool:
        return self.consolidation_rate > HIGH_CONSOLIDATION_RATE

    @property
    def has_expiration_issues(self) -> bool:
        if self.total == 0:
            return False
        return self.expirations / self.total > EXPIRATION_ISSUE_RATIO

    def to_dict(self):
        return {
            "total": self.total,
            "consolidations": self.consolidations,
            "expirations": self.expirations,
            "terminations": self.terminations,
            "consolidation_rate": self.consolidation_rate,
            "average_per_day": self.average_per_day,
            "has_high_consolidation": self.has_high_consolidation,
            "has_expiration_issues": self.has_expiration_issues,
        }


def summarize_disruptions(events: Iterable[DisruptionEvent],
                          node_pool: Optional[str] = None,
                          window_days: int = DEFAULT_WINDOW_DAYS) -> DisruptionInsights:
    """Count events by kind, optionally restricted to one node pool"""
    counts = {kind: 0 for kind in DisruptionKind}
    total = 0
    for event in events:
        if node_pool is not None and event.node_pool != node_pool:
            continue
        total += 1
        counts[classify_reason(event.reason)] += 1

    return DisruptionInsights(
        total=total,
        consolidations=counts[DisruptionKind.CONSOLIDATION],
        expirations=counts[DisruptionKind.EXPIRATION],
        terminations=counts[DisruptionKind.TERMINATION],
        window_days=window_days,
    )
