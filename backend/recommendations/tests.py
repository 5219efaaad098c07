"""
Tests for the recommendations module.
"""
import base64
import unittest
from datetime import timedelta
from unittest.mock import patch

from django.contrib.auth.models import User
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from community.models import Author, BlogPost, Image, Location
from community.timeutils import to_storage
from config.testing import MongoTestMixin
from recommendations.dtos import FeedPage, RankingStrategy, RankingWeights, ScoreBreakdown
from recommendations.scoring_service import (
    ScoringService, calculate_engagement_score, calculate_recency_score, is_location_match
)
from trips.dtos import UserTravelProfile
from user.services import get_caller_identity


def make_post(now, age_days=0, location=None, tags=None, likes=0, comments=0, views=0,
              images=0, is_flagged=False, title='Post'):
    return BlogPost(
        author=Author(user_id='author-1', username='author'),
        title=title,
        content='Body',
        location=Location(name=location) if location is not None else None,
        tags=tags or [],
        likes_count=likes,
        comments_count=comments,
        views_count=views,
        images=[Image(url=f'https://cdn.example.com/{i}.jpg', public_id=str(i)) for i in range(images)],
        is_flagged=is_flagged,
        created_at=now - timedelta(days=age_days),
    )


class EngagementScoreTestCase(unittest.TestCase):
    """Test cases for the engagement formula"""

    def test_weights(self):
        """Likes x3, comments x5, views x0.1"""
        self.assertAlmostEqual(calculate_engagement_score(10, 5, 100), 65.0)

    def test_missing_counters_count_as_zero(self):
        """Test engagement with missing counters."""
        self.assertEqual(calculate_engagement_score(None, None, None), 0.0)

    def test_monotonic_in_each_input(self):
        """Test that every counter raises the score."""
        base = calculate_engagement_score(4, 4, 4)
        self.assertGreater(calculate_engagement_score(5, 4, 4), base)
        self.assertGreater(calculate_engagement_score(4, 5, 4), base)
        self.assertGreater(calculate_engagement_score(4, 4, 5), base)

    def test_comments_outweigh_likes(self):
        """Test comment weight over like weight."""
        self.assertGreater(calculate_engagement_score(0, 1, 0), calculate_engagement_score(1, 0, 0))


class RecencyScoreTestCase(unittest.TestCase):
    """Test cases for the piecewise recency decay"""

    def setUp(self):
        self.now = timezone.now()

    def score_at(self, days):
        return calculate_recency_score(self.now - timedelta(days=days), self.now)

    def test_first_week_is_full_score(self):
        """Test full recency in the first week."""
        self.assertEqual(self.score_at(0), 100.0)
        self.assertEqual(self.score_at(7), 100.0)

    def test_linear_pieces(self):
        """Test each linear decay segment."""
        self.assertAlmostEqual(self.score_at(8), 98.0)
        self.assertAlmostEqual(self.score_at(30), 54.0)
        self.assertAlmostEqual(self.score_at(60), 35.0)
        self.assertAlmostEqual(self.score_at(90), 20.0)
        self.assertAlmostEqual(self.score_at(100), 19.0)

    def test_floor_at_zero(self):
        """Test that very old items score zero."""
        self.assertEqual(self.score_at(400), 0.0)
        self.assertEqual(self.score_at(5000), 0.0)

    def test_fractional_days(self):
        self.assertAlmostEqual(self.score_at(7.5), 99.0)

    def test_future_dated_item_is_full_score(self):
        """Test items dated in the future."""
        self.assertEqual(self.score_at(-3), 100.0)

    def test_bounded_and_non_increasing(self):
        previous = 100.0
        for days in range(0, 400, 3):
            score = self.score_at(days)
            self.assertGreaterEqual(score, 0.0)
            self.assertLessEqual(score, 100.0)
            self.assertLessEqual(score, previous)
            previous = score

    def test_naive_created_at_is_utc(self):
        """Test naive dates are read as UTC."""
        naive = (self.now - timedelta(days=8)).replace(tzinfo=None)
        self.assertAlmostEqual(calculate_recency_score(naive, self.now), 98.0)


class LocationMatchTestCase(unittest.TestCase):
    """Test cases for fuzzy location matching"""

    def test_item_contains_user_location(self):
        self.assertTrue(is_location_match('Galle Fort, Galle, Sri Lanka', {'galle'}))

    def test_user_location_contains_item(self):
        self.assertTrue(is_location_match('Kandy', {'kandy lake'}))

    def test_comma_part_match(self):
        """Test matching on a comma-separated part."""
        self.assertTrue(is_location_match('Ella Rock, Badulla', {'badulla district'}))

    def test_case_insensitive(self):
        """Test case-insensitive matching."""
        self.assertTrue(is_location_match('SIGIRIYA', {'sigiriya'}))

    def test_no_match(self):
        self.assertFalse(is_location_match('Colombo', {'galle', 'ella'}))

    def test_blank_values_never_match(self):
        """Test that blank locations never match."""
        self.assertFalse(is_location_match(None, {'galle'}))
        self.assertFalse(is_location_match('   ', {'galle'}))
        self.assertFalse(is_location_match('Colombo', {''}))
        self.assertFalse(is_location_match('Colombo,, ', {'kandy'}))


class ScoringServiceTestCase(unittest.TestCase):
    """Test cases for ScoringService"""

    def setUp(self):
        self.now = timezone.now()
        self.service = ScoringService()
        self.profile = UserTravelProfile(location_tokens=frozenset({'galle'}), itinerary_count=1)

    def test_personalized_score(self):
        """100 location + 2 relevant tags + engagement*0.5 + recency*0.3 + media"""
        post = make_post(self.now, location='Galle, Sri Lanka', tags=['food', 'Culture', 'beach'],
                         likes=2, comments=1, views=10, images=1)
        breakdown = self.service.personalized_score(post, self.profile, self.now)

        self.assertEqual(breakdown.strategy, RankingStrategy.PERSONALIZED)
        self.assertEqual(breakdown.location, 100.0)
        self.assertEqual(breakdown.tags, 30.0)
        self.assertAlmostEqual(breakdown.engagement, 6.0)
        self.assertAlmostEqual(breakdown.recency, 30.0)
        self.assertEqual(breakdown.media, 10.0)
        self.assertAlmostEqual(breakdown.total, 176.0)

    def test_generic_score(self):
        """engagement + recency*0.5 + popular destination + tag count*5 + media"""
        post = make_post(self.now, location='Galle, Sri Lanka', tags=['food', 'Culture', 'beach'],
                         likes=2, comments=1, views=10, images=1)
        breakdown = self.service.generic_score(post, self.now)

        self.assertEqual(breakdown.strategy, RankingStrategy.GENERIC)
        self.assertAlmostEqual(breakdown.engagement, 12.0)
        self.assertAlmostEqual(breakdown.recency, 50.0)
        self.assertEqual(breakdown.location, 30.0)
        self.assertEqual(breakdown.tags, 15.0)
        self.assertEqual(breakdown.media, 15.0)
        self.assertAlmostEqual(breakdown.total, 122.0)

    def test_duplicate_tags_count_once(self):
        """Test repeated tags count once."""
        post = make_post(self.now, tags=['food', 'Food', ' food '])
        self.assertEqual(self.service.generic_score(post, self.now).tags, 5.0)
        self.assertEqual(self.service.personalized_score(post, self.profile, self.now).tags, 15.0)

    def test_flag_penalty_is_multiplicative(self):
        """Test the flagged item penalty."""
        clean = make_post(self.now, location='Galle', tags=['food'], likes=3, images=1)
        flagged = make_post(self.now, location='Galle', tags=['food'], likes=3, images=1, is_flagged=True)

        personalized_clean = self.service.personalized_score(clean, self.profile, self.now)
        personalized_flagged = self.service.personalized_score(flagged, self.profile, self.now)
        self.assertAlmostEqual(personalized_flagged.total, personalized_clean.total * 0.5)
        self.assertEqual(personalized_flagged.subtotal, personalized_clean.subtotal)

        generic_clean = self.service.generic_score(clean, self.now)
        generic_flagged = self.service.generic_score(flagged, self.now)
        self.assertAlmostEqual(generic_flagged.total, generic_clean.total * 0.3)

    def test_location_match_dominates_personalized_ranking(self):
        """Test a matching item outranks a popular one."""
        local = make_post(self.now, location='Galle', title='local')
        popular = make_post(self.now, location='Colombo', likes=20, title='popular')

        strategy, ranked = self.service.rank([popular, local], self.profile, self.now)

        self.assertEqual(strategy, RankingStrategy.PERSONALIZED)
        self.assertEqual([s.item.title for s in ranked], ['local', 'popular'])

    def test_empty_profile_uses_generic_strategy(self):
        """Test strategy selection for an empty profile."""
        strategy, ranked = self.service.rank([make_post(self.now)], UserTravelProfile(), self.now)
        self.assertEqual(strategy, RankingStrategy.GENERIC)
        self.assertTrue(all(s.breakdown.strategy is RankingStrategy.GENERIC for s in ranked))

        strategy, _ = self.service.rank([make_post(self.now)], None, self.now)
        self.assertEqual(strategy, RankingStrategy.GENERIC)

    def test_profile_with_itineraries_uses_personalized_strategy(self):
        """Itineraries without any usable location still select the personalized path"""
        profile = UserTravelProfile(itinerary_count=2)
        strategy, ranked = self.service.rank([make_post(self.now)], profile, self.now)
        self.assertEqual(strategy, RankingStrategy.PERSONALIZED)
        self.assertTrue(all(s.breakdown.strategy is RankingStrategy.PERSONALIZED for s in ranked))

    def test_ranking_is_deterministic(self):
        """Test repeated ranking gives the same order."""
        posts = [
            make_post(self.now, age_days=i * 5, likes=i % 3, tags=['tips'] * (i % 2), title=str(i))
            for i in range(12)
        ]
        _, first = self.service.rank(posts, self.profile, self.now)
        _, second = self.service.rank(posts, self.profile, self.now)
        self.assertEqual([s.item.title for s in first], [s.item.title for s in second])

    def test_ties_keep_candidate_order(self):
        """Test that ties keep their input order."""
        posts = [make_post(self.now, title=str(i)) for i in range(5)]
        _, ranked = self.service.rank(posts, None, self.now)
        self.assertEqual([s.item.title for s in ranked], ['0', '1', '2', '3', '4'])

    def test_scores_are_descending(self):
        posts = [make_post(self.now, age_days=i * 11, likes=i, title=str(i)) for i in range(10)]
        _, ranked = self.service.rank(posts, None, self.now)
        scores = [s.score for s in ranked]
        self.assertEqual(scores, sorted(scores, reverse=True))

    def test_paginate(self):
        """Test slicing ranked results."""
        posts = [make_post(self.now, title=str(i)) for i in range(5)]
        _, ranked = self.service.rank(posts, None, self.now)

        self.assertEqual([s.item.title for s in ScoringService.paginate(ranked, 2, 2)], ['2', '3'])
        self.assertEqual(len(ScoringService.paginate(ranked, 4, 10)), 1)
        self.assertEqual(ScoringService.paginate(ranked, 10, 10), [])

    def test_custom_weights(self):
        """Test ranking with custom weights."""
        service = ScoringService(RankingWeights(like_weight=1.0, comment_weight=1.0, view_weight=1.0))
        post = make_post(self.now, likes=1, comments=1, views=1)
        self.assertEqual(service.engagement_score(post), 3.0)


class FeedPageTestCase(unittest.TestCase):
    """Test cases for ranking DTOs"""

    def test_has_more(self):
        """Test the has_more flag."""
        page = FeedPage(items=[], algorithm=RankingStrategy.GENERIC, total=30, skip=20, limit=5)
        self.assertTrue(page.has_more)
        page = FeedPage(items=[], algorithm=RankingStrategy.GENERIC, total=20, skip=20, limit=5)
        self.assertFalse(page.has_more)

    def test_breakdown_as_dict(self):
        breakdown = ScoreBreakdown(strategy=RankingStrategy.GENERIC, engagement=10.0, recency=20.0,
                                   penalty_multiplier=0.3)
        data = breakdown.as_dict()
        self.assertEqual(data['strategy'], 'generic')
        self.assertAlmostEqual(data['total'], 9.0)


class RecommendedFeedAPITest(MongoTestMixin, APITestCase):
    """Test cases for the feed endpoints"""

    mongo_documents = (BlogPost,)

    def setUp(self):
        super().setUp()
        self.user = User.objects.create_user(username='traveller', password='testpass123')
        now = timezone.now()
        for title, location, likes in (('kandy', 'Kandy', 0), ('colombo', 'Colombo', 30), ('mine', 'Kandy', 0)):
            BlogPost(
                author=Author(user_id='someone' if title != 'mine' else self.profile_id(), username=title),
                title=title,
                content='Body',
                location=Location(name=location),
                likes_count=likes,
                created_at=to_storage(now),
            ).save()
        self.url = reverse('recommendations:recommended_feed')

    def profile_id(self):
        return get_caller_identity(self.user).user_id

    def test_anonymous_feed_is_generic(self):
        """Test the feed for anonymous users."""
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data['data']
        self.assertEqual(data['algorithm'], 'generic')
        self.assertEqual(data['items'][0]['title'], 'colombo')
        self.assertEqual(data['pagination']['total'], 3)
        self.assertIn('score', data['items'][0])

    @patch('trips.services.HttpItinerarySource.fetch_user_itineraries')
    def test_personalized_feed(self, fetch):
        """Test the feed for a traveller with history."""
        fetch.return_value = [{'destinations': [{'name': 'Kandy'}]}]
        self.client.force_authenticate(user=self.user)

        response = self.client.get(self.url, {'limit': 1}, HTTP_AUTHORIZATION='Bearer tok')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data['data']
        self.assertEqual(data['algorithm'], 'personalized')
        self.assertEqual([item['title'] for item in data['items']], ['kandy'])
        self.assertEqual(data['pagination'], {'page': 1, 'limit': 1, 'total': 2, 'has_more': True})
        fetch.assert_called_once_with(self.profile_id(), 'tok')

    @patch('trips.services.HttpItinerarySource.fetch_user_itineraries', return_value=[])
    def test_basic_auth_caller_gets_generic_feed(self, fetch):
        """Basic auth leaves no bearer token to forward, so the feed is generic."""
        token = base64.b64encode(b'traveller:testpass123').decode()

        response = self.client.get(self.url, HTTP_AUTHORIZATION=f'Basic {token}')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data['data']
        self.assertEqual(data['algorithm'], 'generic')
        self.assertEqual(data['pagination']['total'], 2)
        fetch.assert_called_once_with(self.profile_id(), None)

    def test_invalid_query(self):
        """Test rejecting bad paging parameters."""
        response = self.client.get(self.url, {'limit': 500})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(self.url, {'page': 0})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @patch('trips.services.HttpItinerarySource.fetch_user_itineraries', return_value=[])
    def test_debug_feed(self, fetch):
        """Test the score breakdown endpoint."""
        response = self.client.get(reverse('recommendations:recommended_feed_debug'))
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

        self.client.force_authenticate(user=self.user)
        response = self.client.get(reverse('recommendations:recommended_feed_debug'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data['data']
        self.assertEqual(data['algorithm'], 'generic')
        self.assertEqual(data['profile']['itinerary_count'], 0)
        breakdown = data['items'][0]['breakdown']
        self.assertEqual(breakdown['strategy'], 'generic')
        self.assertAlmostEqual(breakdown['total'], data['items'][0]['score'])
