from datetime import timedelta

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.test import RequestFactory, TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from .models import UserProfile
from .services import get_bearer_credential, get_caller_identity

User = get_user_model()


class CallerIdentityTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='user1', password='password123')

    def test_profile_created_on_first_use(self):
        """The profile is created lazily and reused afterwards."""
        caller = get_caller_identity(self.user)

        self.assertEqual(UserProfile.objects.count(), 1)
        self.assertEqual(caller.user_id, str(self.user.profile.id))
        self.assertEqual(caller.username, 'user1')
        self.assertEqual(caller.account_created_at, self.user.date_joined)
        self.assertFalse(caller.is_verified)

        self.assertEqual(get_caller_identity(self.user).user_id, caller.user_id)
        self.assertEqual(UserProfile.objects.count(), 1)

    def test_verified_profile(self):
        """Test a verified guide profile."""
        UserProfile.objects.create(user=self.user, is_verified=True, role='guide')

        caller = get_caller_identity(self.user)

        self.assertTrue(caller.is_verified)
        self.assertEqual(caller.role, 'guide')

    def test_anonymous_user(self):
        """Test anonymous users have no identity."""
        self.assertIsNone(get_caller_identity(AnonymousUser()))
        self.assertIsNone(get_caller_identity(None))

    def test_bearer_credential(self):
        """Test reading the bearer token."""
        factory = RequestFactory()
        self.assertEqual(get_bearer_credential(factory.get('/', HTTP_AUTHORIZATION='Bearer abc')), 'abc')
        self.assertIsNone(get_bearer_credential(factory.get('/', HTTP_AUTHORIZATION='Basic abc')))
        self.assertIsNone(get_bearer_credential(factory.get('/', HTTP_AUTHORIZATION='Bearer ')))
        self.assertIsNone(get_bearer_credential(factory.get('/')))


class MeAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='veteran', password='password123')
        self.user.date_joined = timezone.now() - timedelta(days=100)
        self.user.save()
        UserProfile.objects.create(user=self.user, is_verified=True)

    def test_me(self):
        """Test retrieving the current user with credibility."""
        self.client.force_authenticate(user=self.user)

        response = self.client.get(reverse('me'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['data']['username'], 'veteran')
        self.assertEqual(response.data['data']['credibility_weight'], 3.0)

    def test_me_requires_authentication(self):
        response = self.client.get(reverse('me'))
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))
