"""
Data Transfer Objects (DTOs) for ranking configuration and results.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Tuple

from trips.dtos import UserTravelProfile


class RankingStrategy(Enum):
    """Which scoring formula a feed request uses. Chosen once per request."""
    PERSONALIZED = 'personalized'
    GENERIC = 'generic'

    @classmethod
    def for_profile(cls, profile: Optional[UserTravelProfile]) -> 'RankingStrategy':
        if profile is None or profile.is_empty:
            return cls.GENERIC
        return cls.PERSONALIZED


@dataclass(frozen=True)
class RankingWeights:
    """
    Tunable constants of the ranking formulas.
    Defaults reproduce the production feed.
    """
    # Engagement
    like_weight: float = 3.0
    comment_weight: float = 5.0
    view_weight: float = 0.1

    # Personalized formula
    location_match_bonus: float = 100.0
    relevant_tag_bonus: float = 15.0
    personalized_engagement_factor: float = 0.5
    personalized_recency_factor: float = 0.3
    personalized_media_bonus: float = 10.0
    personalized_flag_multiplier: float = 0.5
    relevant_tags: Tuple[str, ...] = ('experience', 'tips', 'guide', 'adventure', 'food', 'culture')

    # Generic formula
    generic_engagement_factor: float = 1.0
    generic_recency_factor: float = 0.5
    popular_destination_bonus: float = 30.0
    tag_diversity_bonus: float = 5.0
    generic_media_bonus: float = 15.0
    generic_flag_multiplier: float = 0.3
    popular_destinations: Tuple[str, ...] = (
        'colombo', 'kandy', 'galle', 'ella', 'sigiriya', 'nuwara eliya',
        'mirissa', 'unawatuna', 'arugam bay', 'yala', 'trincomalee',
    )


@dataclass
class ScoreBreakdown:
    """
    Per-term contributions of a score. ``total`` already includes the flag
    penalty, which multiplies the additive subtotal.
    """
    strategy: RankingStrategy
    location: float = 0.0
    tags: float = 0.0
    engagement: float = 0.0
    recency: float = 0.0
    media: float = 0.0
    penalty_multiplier: float = 1.0

    @property
    def subtotal(self) -> float:
        return self.location + self.tags + self.engagement + self.recency + self.media

    @property
    def total(self) -> float:
        return self.subtotal * self.penalty_multiplier

    def as_dict(self) -> dict:
        return {
            'strategy': self.strategy.value,
            'location': self.location,
            'tags': self.tags,
            'engagement': self.engagement,
            'recency': self.recency,
            'media': self.media,
            'penalty_multiplier': self.penalty_multiplier,
            'total': self.total,
        }


@dataclass
class ScoredContent:
    """A candidate content item with its computed score."""
    item: Any
    breakdown: ScoreBreakdown

    @property
    def score(self) -> float:
        return self.breakdown.total


@dataclass
class FeedPage:
    """One page of a ranked feed."""
    items: List[ScoredContent]
    algorithm: RankingStrategy
    total: int
    skip: int
    limit: int
    profile: Optional[UserTravelProfile] = None

    @property
    def has_more(self) -> bool:
        return self.skip + len(self.items) < self.total

    @property
    def contents(self) -> list:
        return [scored.item for scored in self.items]
