"""
ScoringService: The core ranking engine for the community feed.
Implements a personalized formula driven by the user's travel history and a
generic popularity formula used when no travel history is available.
"""
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from community.timeutils import ensure_aware, now as current_time
from recommendations.dtos import RankingStrategy, RankingWeights, ScoreBreakdown, ScoredContent
from trips.dtos import UserTravelProfile

DEFAULT_WEIGHTS = RankingWeights()

SECONDS_PER_DAY = 24 * 60 * 60


def calculate_engagement_score(likes: Optional[int], comments: Optional[int], views: Optional[int],
                               weights: RankingWeights = DEFAULT_WEIGHTS) -> float:
    """
    Engagement magnitude of a content item.

    Formula: likes * 3 + comments * 5 + views * 0.1
    Comments weigh most, views are heavily down-weighted so raw view counts
    cannot dominate the feed.
    """
    return (
        (likes or 0) * weights.like_weight +
        (comments or 0) * weights.comment_weight +
        (views or 0) * weights.view_weight
    )


def calculate_recency_score(created_at: datetime, now: Optional[datetime] = None) -> float:
    """
    Piecewise-linear time relevance in [0, 100] using fractional-day age.

        age <= 7d       -> 100
        7d < age <= 30  -> 100 - (age - 7) * 2
        30 < age <= 90  -> 50 - (age - 30) * 0.5
        age > 90        -> max(0, 20 - (age - 90) * 0.1)
    """
    now = ensure_aware(now or current_time())
    age_days = (now - ensure_aware(created_at)).total_seconds() / SECONDS_PER_DAY

    if age_days <= 7:
        return 100.0
    if age_days <= 30:
        return 100.0 - (age_days - 7) * 2
    if age_days <= 90:
        return 50.0 - (age_days - 30) * 0.5
    return max(0.0, 20.0 - (age_days - 90) * 0.1)


def is_location_match(location_name: Optional[str], user_locations: Iterable[str]) -> bool:
    """
    Fuzzy, case-insensitive location match.

    Matches when the item location contains a user token or is contained in
    one, or when any comma-separated part of the item location equals or is
    contained in a user token ("Galle" vs "Galle Fort, Galle, Sri Lanka").
    Short tokens can over-match; that tolerance is kept on purpose.
    """
    if not location_name:
        return False

    item_location = location_name.strip().lower()
    if not item_location:
        return False
    parts = [p.strip() for p in item_location.split(',') if p.strip()]

    for user_location in user_locations:
        if not user_location:
            continue
        if user_location in item_location or item_location in user_location:
            return True
        if any(part == user_location or part in user_location for part in parts):
            return True
    return False


class ScoringService:
    """
    Algorithm Service: scores and orders feed candidates.

    Candidates are duck-typed: anything exposing likes_count, comments_count,
    views_count, tags, location_name, has_images, is_flagged and created_at
    can be ranked.
    """

    def __init__(self, weights: Optional[RankingWeights] = None):
        self.weights = weights or DEFAULT_WEIGHTS

    def engagement_score(self, item) -> float:
        return calculate_engagement_score(
            getattr(item, 'likes_count', 0),
            getattr(item, 'comments_count', 0),
            getattr(item, 'views_count', 0),
            self.weights,
        )

    def personalized_score(self, item, profile: UserTravelProfile, now: Optional[datetime] = None) -> ScoreBreakdown:
        """
        Score = location match + relevant tags + engagement * 0.5
                + recency * 0.3 + media bonus, then * 0.5 if flagged.
        """
        w = self.weights
        breakdown = ScoreBreakdown(strategy=RankingStrategy.PERSONALIZED)

        if is_location_match(getattr(item, 'location_name', None), profile.location_tokens):
            breakdown.location = w.location_match_bonus

        matching_tags = self._tag_set(item) & set(w.relevant_tags)
        breakdown.tags = len(matching_tags) * w.relevant_tag_bonus

        breakdown.engagement = self.engagement_score(item) * w.personalized_engagement_factor
        breakdown.recency = calculate_recency_score(item.created_at, now) * w.personalized_recency_factor

        if getattr(item, 'has_images', False):
            breakdown.media = w.personalized_media_bonus

        # Applied to the whole additive subtotal
        if getattr(item, 'is_flagged', False):
            breakdown.penalty_multiplier = w.personalized_flag_multiplier

        return breakdown

    def generic_score(self, item, now: Optional[datetime] = None) -> ScoreBreakdown:
        """
        Score = engagement + recency * 0.5 + popular destination bonus
                + tag count * 5 + media bonus, then * 0.3 if flagged.
        """
        w = self.weights
        breakdown = ScoreBreakdown(strategy=RankingStrategy.GENERIC)

        breakdown.engagement = self.engagement_score(item) * w.generic_engagement_factor
        breakdown.recency = calculate_recency_score(item.created_at, now) * w.generic_recency_factor

        location_name = (getattr(item, 'location_name', None) or '').lower()
        if location_name and any(dest in location_name for dest in w.popular_destinations):
            breakdown.location = w.popular_destination_bonus

        breakdown.tags = len(self._tag_set(item)) * w.tag_diversity_bonus

        if getattr(item, 'has_images', False):
            breakdown.media = w.generic_media_bonus

        if getattr(item, 'is_flagged', False):
            breakdown.penalty_multiplier = w.generic_flag_multiplier

        return breakdown

    def rank(self, items: Iterable, profile: Optional[UserTravelProfile] = None,
             now: Optional[datetime] = None) -> Tuple[RankingStrategy, List[ScoredContent]]:
        """
        Orchestrator method that scores every candidate with the strategy
        selected for the profile and returns them highest score first.
        The sort is stable, so ties keep candidate order.
        """
        now = now or current_time()
        strategy = RankingStrategy.for_profile(profile)

        scored = []
        for item in items:
            if strategy is RankingStrategy.PERSONALIZED:
                breakdown = self.personalized_score(item, profile, now)
            else:
                breakdown = self.generic_score(item, now)
            scored.append(ScoredContent(item=item, breakdown=breakdown))

        scored.sort(key=lambda s: s.score, reverse=True)
        return strategy, scored

    @staticmethod
    def paginate(scored: List[ScoredContent], skip: int = 0, limit: int = 20) -> List[ScoredContent]:
        skip = max(0, skip)
        return scored[skip:skip + max(0, limit)]

    # Helper methods
    @staticmethod
    def _tag_set(item) -> set:
        tags = getattr(item, 'tags', None) or []
        return {t.strip().lower() for t in tags if isinstance(t, str) and t.strip()}
