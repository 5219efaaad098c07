"""
Reporter credibility: how much a single report from a given account counts.
"""
from datetime import datetime
from typing import Optional

from community.timeutils import ensure_aware, now as current_time
from .policy import CredibilityTier, TrustPolicy

SECONDS_PER_DAY = 24 * 60 * 60


class CredibilityWeigher:
    """
    Converts reporter account age and verification into a trust multiplier.

    Tiers: <7d 0.5, 7-30d 1.0, 30-90d 1.5, >=90d 2.0; verified accounts get
    x1.5 on top. The weight is computed once at submission time and stored on
    the report, so later account aging never changes historical reports.
    """

    def __init__(self, policy: TrustPolicy):
        self.policy = policy

    def tier_for(self, age_days: float) -> CredibilityTier:
        for tier in self.policy.credibility_tiers:
            if tier.contains(age_days):
                return tier
        # Accounts dated in the future fall in the newest bracket
        return self.policy.credibility_tiers[0]

    def account_age_days(self, account_created_at: datetime, now: Optional[datetime] = None) -> float:
        now = ensure_aware(now or current_time())
        return (now - ensure_aware(account_created_at)).total_seconds() / SECONDS_PER_DAY

    def weigh(self, account_created_at: datetime, is_verified: bool, now: Optional[datetime] = None) -> float:
        weight = self.tier_for(self.account_age_days(account_created_at, now)).weight
        if is_verified:
            weight *= self.policy.verified_multiplier
        return weight
