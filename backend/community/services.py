"""
Domain service for the user's recommended feed.
Orchestrates candidate retrieval, travel signal extraction and ranking.
"""
import logging
from datetime import datetime
from typing import Optional

from bson import ObjectId
from django.conf import settings

from recommendations.dtos import FeedPage
from recommendations.scoring_service import ScoringService
from trips.dtos import UserTravelProfile
from trips.services import HttpItinerarySource, ItinerarySource, TravelSignalExtractor
from user.services import CallerIdentity
from .models import get_content_model
from .timeutils import now as current_time

logger = logging.getLogger(__name__)


class FeedService:
    """
    Domain service responsible for curating the recommended feed.

    Per request:
    1. Fetch published candidates, excluding the caller's own and hidden items
    2. Build the caller's travel profile from the itinerary service
    3. Rank with the personalized formula when the profile has itineraries,
       the generic popularity formula otherwise
    4. Slice the requested page out of the ranked list
    """

    PAGE_SIZE = 20

    def __init__(self, itinerary_source: Optional[ItinerarySource] = None,
                 extractor: Optional[TravelSignalExtractor] = None,
                 scoring_service: Optional[ScoringService] = None,
                 candidate_limit: Optional[int] = None):
        self.itinerary_source = itinerary_source or HttpItinerarySource.from_settings()
        self.extractor = extractor or TravelSignalExtractor()
        self.scoring_service = scoring_service or ScoringService()
        self.candidate_limit = candidate_limit or settings.FEED_CANDIDATE_LIMIT

    def get_recommended_feed(self, caller: Optional[CallerIdentity], credential: Optional[str],
                             skip: int = 0, limit: int = PAGE_SIZE, content_type: str = 'blog_post',
                             now: Optional[datetime] = None) -> FeedPage:
        """
        Generates one page of the ranked feed.

        Args:
            caller: Authenticated caller, or None for anonymous requests
            credential: Bearer credential forwarded to the itinerary service
            skip: Number of ranked items to skip
            limit: Page size
            content_type: Kind of content to rank
            now: Reference time for recency; defaults to the current time

        Returns:
            FeedPage with the ranked items, the algorithm used and pagination info
        """
        model = get_content_model(content_type)
        if model is None:
            raise ValueError(f"Unknown content type '{content_type}'")

        now = now or current_time()
        profile = self.build_profile(caller, credential)

        exclude_user_id = caller.user_id if caller else None
        candidates = list(model.get_feed_candidates(exclude_user_id=exclude_user_id, limit=self.candidate_limit))

        algorithm, ranked = self.scoring_service.rank(candidates, profile, now)
        page = self.scoring_service.paginate(ranked, skip, limit)

        logger.info(
            f"Ranked {len(candidates)} {content_type} candidates with the {algorithm.value} algorithm "
            f"for {caller.username if caller else 'anonymous'} "
            f"({len(profile.location_tokens)} profile locations)"
        )

        return FeedPage(
            items=page,
            algorithm=algorithm,
            total=len(ranked),
            skip=skip,
            limit=limit,
            profile=profile,
        )

    def build_profile(self, caller: Optional[CallerIdentity], credential: Optional[str]) -> UserTravelProfile:
        """Travel profile of the caller. Anonymous callers get an empty profile."""
        if caller is None:
            return self.extractor.build_profile([])
        itineraries = self.itinerary_source.fetch_user_itineraries(caller.user_id, credential)
        return self.extractor.build_profile(itineraries)

    def hide_content(self, user_id: str, content_type: str, content_id: str) -> Optional[bool]:
        """
        Removes an item from the user's own feed.

        Returns:
            None if the item does not exist, False if it was already hidden,
            True once hidden

        Raises:
            ValueError: the user authored the item
        """
        content = self._get_content(content_type, content_id)
        if content is None:
            return None
        if content.author.user_id == user_id:
            raise ValueError("You cannot hide your own content")
        if content.is_hidden_for_user(user_id):
            return False

        content.hide_for_user(user_id)
        logger.info(f"{content_type}:{content.id} hidden by {user_id}")
        return True

    def unhide_content(self, user_id: str, content_type: str, content_id: str) -> Optional[bool]:
        """None if the item does not exist, False if it was not hidden."""
        content = self._get_content(content_type, content_id)
        if content is None:
            return None
        if not content.is_hidden_for_user(user_id):
            return False

        content.unhide_for_user(user_id)
        logger.info(f"{content_type}:{content.id} unhidden by {user_id}")
        return True

    # Helper methods
    @staticmethod
    def _get_content(content_type: str, content_id: str):
        model = get_content_model(content_type)
        if model is None:
            raise ValueError(f"Unknown content type '{content_type}'")
        if not ObjectId.is_valid(str(content_id)):
            return None
        return model.objects(id=content_id).first()
