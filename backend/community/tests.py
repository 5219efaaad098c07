"""
Unit tests for community app models and services.
"""
import unittest
from datetime import timedelta
from unittest.mock import MagicMock

from bson import ObjectId
from django.contrib.auth.models import User
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from community.models import Author, BlogPost, Image, Location, MapPoint, get_content_model
from community.services import FeedService
from community.timeutils import to_storage
from config.testing import MongoTestMixin
from recommendations.dtos import RankingStrategy
from trips.services import ItinerarySource
from user.services import CallerIdentity, get_caller_identity

GALLE_ITINERARY = {
    'startLocation': {'name': 'Galle'},
    'preferences': {'budget': 'medium'},
}


def make_post(author_id='author-1', title='Post', location=None, likes=0, age_days=0, **kwargs):
    post = BlogPost(
        author=Author(user_id=author_id, username=author_id),
        title=title,
        content='Body',
        location=Location(name=location) if location else None,
        likes_count=likes,
        created_at=to_storage(timezone.now() - timedelta(days=age_days)),
        **kwargs
    )
    post.save()
    return post


class ContentItemTestCase(MongoTestMixin, unittest.TestCase):
    """Test cases for the shared content document behaviour."""

    mongo_documents = (BlogPost, MapPoint)

    def test_tags_are_normalized(self):
        """Test that tags are trimmed, lower-cased and blanks dropped."""
        post = make_post(tags=[' Food ', 'CULTURE', '  '])
        post.reload()
        self.assertEqual(post.tags, ['food', 'culture'])

    def test_derived_properties(self):
        """Test location name and image helpers."""
        post = BlogPost(
            author=Author(user_id='a', username='a'), title='t', content='c',
            location=Location(name='Kandy'),
            images=[Image(url='https://cdn.example.com/1.jpg', public_id='1')],
        )
        self.assertEqual(post.location_name, 'Kandy')
        self.assertTrue(post.has_images)
        self.assertIsNone(BlogPost(title='t', content='c').location_name)

    def test_hide_and_unhide(self):
        """Test hiding and unhiding an item for one viewer."""
        post = make_post()
        post.hide_for_user('viewer')
        post.hide_for_user('viewer')
        self.assertEqual(post.hidden_by, ['viewer'])

        post.unhide_for_user('viewer')
        self.assertFalse(post.is_hidden_for_user('viewer'))

    def test_record_report_is_atomic_increment(self):
        """Test report counters are incremented in place."""
        post = make_post()
        BlogPost.record_report(post.id, 2.0)
        updated = BlogPost.record_report(post.id, 1.5)

        self.assertEqual(updated.report_count, 2)
        self.assertAlmostEqual(updated.total_report_score, 3.5)
        self.assertIsNone(BlogPost.record_report(ObjectId(), 1.0))

    def test_escalate_flag_only_moves_up(self):
        """Test that a lower severity never replaces a higher one."""
        post = make_post()

        self.assertTrue(BlogPost.escalate_flag(post.id, 'high', 'first', ('none', 'moderate')))
        self.assertFalse(BlogPost.escalate_flag(post.id, 'moderate', 'second', ('none',)))

        post.reload()
        self.assertEqual(post.flag_severity, 'high')
        self.assertEqual(post.flag_reason, 'first')

    def test_content_type_registry(self):
        """Test content type lookup."""
        self.assertIs(get_content_model('blog_post'), BlogPost)
        self.assertIs(get_content_model('map_point'), MapPoint)
        self.assertIsNone(get_content_model('podcast'))


class FeedServiceTestCase(MongoTestMixin, unittest.TestCase):
    """Test cases for FeedService."""

    mongo_documents = (BlogPost,)

    def setUp(self):
        super().setUp()
        self.now = timezone.now()
        self.caller = CallerIdentity('viewer', 'viewer', self.now - timedelta(days=200))
        self.source = MagicMock(spec=ItinerarySource)
        self.source.fetch_user_itineraries.return_value = [GALLE_ITINERARY]
        self.service = FeedService(itinerary_source=self.source, candidate_limit=100)

        self.galle = make_post(title='galle', location='Galle Fort, Galle')
        self.colombo = make_post(title='colombo', location='Colombo', likes=25)
        self.own = make_post(author_id='viewer', title='own', location='Galle')
        self.hidden = make_post(title='hidden', location='Galle', hidden_by=['viewer'])
        self.draft = make_post(title='draft', location='Galle', status=BlogPost.Status.DRAFT)

    def titles(self, page):
        return [scored.item.title for scored in page.items]

    def test_personalized_feed(self):
        """Test ranking by the caller's travel locations."""
        page = self.service.get_recommended_feed(self.caller, 'token', now=self.now)

        self.assertEqual(page.algorithm, RankingStrategy.PERSONALIZED)
        self.assertEqual(self.titles(page), ['galle', 'colombo'])
        self.source.fetch_user_itineraries.assert_called_once_with('viewer', 'token')
        self.assertIn('galle', page.profile.location_tokens)

    def test_generic_feed_without_itineraries(self):
        """Test popularity ranking when the caller has no itineraries."""
        self.source.fetch_user_itineraries.return_value = []

        page = self.service.get_recommended_feed(self.caller, 'token', now=self.now)

        self.assertEqual(page.algorithm, RankingStrategy.GENERIC)
        self.assertEqual(self.titles(page), ['colombo', 'galle'])

    def test_anonymous_feed_is_generic(self):
        """Test that anonymous callers skip the itinerary fetch."""
        page = self.service.get_recommended_feed(None, None, now=self.now)

        self.assertEqual(page.algorithm, RankingStrategy.GENERIC)
        self.source.fetch_user_itineraries.assert_not_called()
        self.assertCountEqual(self.titles(page), ['galle', 'colombo', 'own', 'hidden'])

    def test_pagination(self):
        """Test that pages do not overlap."""
        for i in range(5):
            make_post(title=f'extra{i}', age_days=i * 20)

        first = self.service.get_recommended_feed(self.caller, 'token', skip=0, limit=3, now=self.now)
        second = self.service.get_recommended_feed(self.caller, 'token', skip=3, limit=3, now=self.now)
        third = self.service.get_recommended_feed(self.caller, 'token', skip=6, limit=3, now=self.now)

        self.assertEqual(first.total, 7)
        self.assertTrue(first.has_more)
        self.assertTrue(second.has_more)
        self.assertEqual(len(third.items), 1)
        self.assertFalse(third.has_more)
        seen = self.titles(first) + self.titles(second) + self.titles(third)
        self.assertEqual(len(set(seen)), 7)

    def test_candidate_limit(self):
        """Test the candidate cap."""
        service = FeedService(itinerary_source=self.source, candidate_limit=1)
        page = service.get_recommended_feed(self.caller, 'token', now=self.now)
        self.assertEqual(page.total, 1)

    def test_unknown_content_type(self):
        """Test rejecting an unknown content type."""
        with self.assertRaises(ValueError):
            self.service.get_recommended_feed(self.caller, 'token', content_type='podcast')

    def test_hide_content(self):
        """Test that hidden items leave the feed."""
        self.assertTrue(self.service.hide_content('viewer', 'blog_post', str(self.colombo.id)))
        self.assertFalse(self.service.hide_content('viewer', 'blog_post', str(self.colombo.id)))

        page = self.service.get_recommended_feed(self.caller, 'token', now=self.now)
        self.assertEqual(self.titles(page), ['galle'])

    def test_cannot_hide_own_content(self):
        """Test that users cannot hide their own items."""
        with self.assertRaises(ValueError):
            self.service.hide_content('viewer', 'blog_post', str(self.own.id))

    def test_unhide_content(self):
        """Test unhiding an item."""
        self.assertTrue(self.service.unhide_content('viewer', 'blog_post', str(self.hidden.id)))
        self.assertFalse(self.service.unhide_content('viewer', 'blog_post', str(self.hidden.id)))
        self.assertIsNone(self.service.unhide_content('viewer', 'blog_post', str(ObjectId())))

        page = self.service.get_recommended_feed(self.caller, 'token', now=self.now)
        self.assertIn('hidden', self.titles(page))


class HideContentAPITest(MongoTestMixin, APITestCase):

    mongo_documents = (BlogPost,)

    def setUp(self):
        super().setUp()
        self.user = User.objects.create_user(username='viewer', password='testpass')
        self.caller = get_caller_identity(self.user)
        self.post = make_post()
        self.client.force_authenticate(user=self.user)

    def url(self, name, post_id=None):
        return reverse(name, kwargs={'content_type': 'blog_post', 'content_id': post_id or str(self.post.id)})

    def test_hide_and_unhide(self):
        """Test hiding and unhiding an item for one viewer."""
        response = self.client.post(self.url('hide-content'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.post.reload()
        self.assertIn(self.caller.user_id, self.post.hidden_by)

        response = self.client.post(self.url('hide-content'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(self.url('unhide-content'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post(self.url('unhide-content'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_hide_own_content(self):
        """Test hiding one's own item via API."""
        own = make_post(author_id=self.caller.user_id)
        response = self.client.post(self.url('hide-content', str(own.id)))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_missing_content(self):
        """Test hiding an unknown item via API."""
        response = self.client.post(self.url('hide-content', str(ObjectId())))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.post(
            reverse('hide-content', kwargs={'content_type': 'podcast', 'content_id': str(self.post.id)})
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
