"""
Serializers for the recommendations module.
"""
from rest_framework import serializers

from community.models import CONTENT_MODELS
from community.serializers import ContentItemSerializer, ScoredContentSerializer


class FeedQuerySerializer(serializers.Serializer):
    """Query parameters of the recommended feed."""
    page = serializers.IntegerField(min_value=1, default=1)
    limit = serializers.IntegerField(min_value=1, max_value=100, default=20)
    content_type = serializers.ChoiceField(choices=list(CONTENT_MODELS), default='blog_post')

    @property
    def skip(self) -> int:
        return (self.validated_data['page'] - 1) * self.validated_data['limit']


class TravelProfileSerializer(serializers.Serializer):
    locations = serializers.SerializerMethodField()
    preferences = serializers.SerializerMethodField()
    itinerary_count = serializers.IntegerField()

    def get_locations(self, profile):
        return sorted(profile.location_tokens)

    def get_preferences(self, profile):
        return profile.preference_tags()


class FeedPageSerializer(serializers.Serializer):
    """Response body of the recommended feed."""

    def to_representation(self, page):
        return {
            'items': ScoredContentSerializer(page.items, many=True).data,
            'algorithm': page.algorithm.value,
            'pagination': {
                'page': page.skip // page.limit + 1 if page.limit else 1,
                'limit': page.limit,
                'total': page.total,
                'has_more': page.has_more,
            },
        }


class ScoreBreakdownEntrySerializer(serializers.Serializer):
    """One ranked item with every term of its score."""

    def to_representation(self, scored):
        return {
            'item': ContentItemSerializer(scored.item).data,
            'score': scored.score,
            'breakdown': scored.breakdown.as_dict(),
        }
