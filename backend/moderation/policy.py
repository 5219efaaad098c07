"""
Static moderation policy: report reasons, reporter credibility tiers and
auto-flag escalation tiers.

The tables are immutable and built once per process by ``load_policy()``.
Services receive the policy explicitly instead of reaching for module state.
"""
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from community.models import FLAG_SEVERITIES


@dataclass(frozen=True)
class ReportReason:
    code: str
    label: str
    weight: float


@dataclass(frozen=True)
class CredibilityTier:
    """Account-age bracket [min_days, max_days) and its trust weight."""
    name: str
    min_days: float
    max_days: Optional[float]
    weight: float

    def contains(self, age_days: float) -> bool:
        if age_days < self.min_days:
            return False
        return self.max_days is None or age_days < self.max_days


@dataclass(frozen=True)
class EscalationTier:
    """Weighted report score that must accumulate inside ``window``."""
    severity: str
    window: timedelta
    threshold: float

    @property
    def window_hours(self) -> int:
        return int(self.window.total_seconds() // 3600)


REPORT_REASONS = (
    ReportReason('SPAM', 'Spam', 1.0),
    ReportReason('INAPPROPRIATE_CONTENT', 'Inappropriate Content', 1.5),
    ReportReason('HARASSMENT', 'Harassment or Bullying', 2.0),
    ReportReason('MISINFORMATION', 'Misinformation', 1.8),
    ReportReason('SCAM_OR_FRAUD', 'Scam or Fraud', 2.5),
    ReportReason('HATE_SPEECH', 'Hate Speech', 2.8),
    ReportReason('VIOLENCE', 'Violence or Dangerous Content', 3.0),
    ReportReason('COPYRIGHT', 'Copyright Violation', 1.2),
    ReportReason('OTHER', 'Other', 1.0),
)

CREDIBILITY_TIERS = (
    CredibilityTier('NEW_USER', 0, 7, 0.5),
    CredibilityTier('REGULAR_USER', 7, 30, 1.0),
    CredibilityTier('TRUSTED_USER', 30, 90, 1.5),
    CredibilityTier('VETERAN_USER', 90, None, 2.0),
)

VERIFIED_MULTIPLIER = 1.5

# Tightest window first; the first tier met decides the severity
ESCALATION_TIERS = (
    EscalationTier('critical', timedelta(hours=1), 15.0),
    EscalationTier('high', timedelta(hours=24), 30.0),
    EscalationTier('moderate', timedelta(days=7), 50.0),
)

MAX_DESCRIPTION_LENGTH = 500


@dataclass(frozen=True)
class TrustPolicy:
    reasons: Mapping[str, ReportReason]
    credibility_tiers: Tuple[CredibilityTier, ...]
    verified_multiplier: float
    escalation_tiers: Tuple[EscalationTier, ...]
    severity_order: Tuple[str, ...] = FLAG_SEVERITIES
    max_description_length: int = MAX_DESCRIPTION_LENGTH

    def reason(self, code: str) -> Optional[ReportReason]:
        return self.reasons.get(code)

    def severity_rank(self, severity: Optional[str]) -> int:
        try:
            return self.severity_order.index(severity or 'none')
        except ValueError:
            return 0

    def severities_below(self, severity: str) -> Tuple[str, ...]:
        """Severities an item may be escalated from to reach ``severity``."""
        return self.severity_order[:self.severity_rank(severity)]

    @property
    def longest_window(self) -> timedelta:
        return max(tier.window for tier in self.escalation_tiers)


def build_policy(reasons=REPORT_REASONS, credibility_tiers=CREDIBILITY_TIERS,
                 verified_multiplier=VERIFIED_MULTIPLIER, escalation_tiers=ESCALATION_TIERS) -> TrustPolicy:
    return TrustPolicy(
        reasons=MappingProxyType({reason.code: reason for reason in reasons}),
        credibility_tiers=tuple(credibility_tiers),
        verified_multiplier=verified_multiplier,
        escalation_tiers=tuple(escalation_tiers),
    )


@lru_cache(maxsize=None)
def load_policy() -> TrustPolicy:
    """Process-wide policy instance."""
    return build_policy()
