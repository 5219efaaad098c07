"""
Tests for reporter credibility, the escalation policy and report aggregation.
"""
import unittest
from dataclasses import FrozenInstanceError
from datetime import timedelta
from unittest.mock import patch

from bson import ObjectId
from django.contrib.auth import get_user_model
from django.urls import reverse
from django.utils import timezone
from mongoengine.queryset import QuerySet
from rest_framework import status
from rest_framework.test import APITestCase

from community.models import Author, BlogPost, MapPoint
from config.testing import MongoTestMixin
from user.services import CallerIdentity
from .credibility import CredibilityWeigher
from .exceptions import DuplicateReportError, InvalidReportError, SelfReportError
from .models import Report
from .policy import EscalationTier, build_policy, load_policy
from .report_aggregator import ReportAggregator

User = get_user_model()


def make_reporter(name, now, age_days=120, is_verified=False):
    return CallerIdentity(
        user_id=f"id-{name}",
        username=name,
        account_created_at=now - timedelta(days=age_days),
        is_verified=is_verified,
    )


class TrustPolicyTest(unittest.TestCase):

    def setUp(self):
        self.policy = load_policy()

    def test_reason_catalog(self):
        """Test the report reason weights."""
        self.assertEqual(len(self.policy.reasons), 9)
        self.assertEqual(self.policy.reason('HARASSMENT').weight, 2.0)
        self.assertEqual(self.policy.reason('VIOLENCE').weight, 3.0)
        self.assertIsNone(self.policy.reason('BORING'))

    def test_policy_is_immutable(self):
        """Test that policy tables cannot be changed."""
        with self.assertRaises(FrozenInstanceError):
            self.policy.verified_multiplier = 10
        with self.assertRaises(TypeError):
            self.policy.reasons['SPAM'] = None

    def test_policy_is_shared(self):
        self.assertIs(load_policy(), self.policy)

    def test_severities_below(self):
        self.assertEqual(self.policy.severities_below('critical'), ('none', 'moderate', 'high'))
        self.assertEqual(self.policy.severities_below('moderate'), ('none',))

    def test_longest_window(self):
        """Test the widest escalation window."""
        self.assertEqual(self.policy.longest_window, timedelta(days=7))


class CredibilityWeigherTest(unittest.TestCase):

    def setUp(self):
        self.now = timezone.now()
        self.weigher = CredibilityWeigher(load_policy())

    def weigh(self, age_days, is_verified=False):
        return self.weigher.weigh(self.now - timedelta(days=age_days), is_verified, self.now)

    def test_verified_veteran(self):
        """Test the top credibility weight."""
        self.assertEqual(self.weigh(100, is_verified=True), 3.0)

    def test_unverified_new_account(self):
        self.assertEqual(self.weigh(3), 0.5)

    def test_tier_boundaries(self):
        """Test that each tier starts at its lower bound."""
        self.assertEqual(self.weigh(6.9), 0.5)
        self.assertEqual(self.weigh(7), 1.0)
        self.assertEqual(self.weigh(29), 1.0)
        self.assertEqual(self.weigh(30), 1.5)
        self.assertEqual(self.weigh(89), 1.5)
        self.assertEqual(self.weigh(90), 2.0)

    def test_future_dated_account(self):
        """Test that a future join date counts as a new account."""
        self.assertEqual(self.weigh(-5), 0.5)

    def test_naive_creation_date(self):
        created = (self.now - timedelta(days=40)).replace(tzinfo=None)
        self.assertEqual(self.weigher.weigh(created, False, self.now), 1.5)


class EscalationPolicyTest(unittest.TestCase):
    """evaluate_escalation is pure and needs no storage"""

    def setUp(self):
        self.now = timezone.now()
        self.aggregator = ReportAggregator(load_policy())

    def history(self, count, spacing, score=4.0):
        return [(self.now - spacing * i, score) for i in range(count)]

    def test_critical_within_an_hour(self):
        """Test a burst of reports flags critical."""
        decision = self.aggregator.evaluate_escalation(self.history(4, timedelta(minutes=15)), self.now)

        self.assertTrue(decision.should_flag)
        self.assertEqual(decision.severity, 'critical')
        self.assertEqual(decision.reason, '4 reports with weighted score 16.00 in 1h')

    def test_below_every_threshold(self):
        """Test no flag below every threshold."""
        decision = self.aggregator.evaluate_escalation(self.history(3, timedelta(minutes=15)), self.now)
        self.assertFalse(decision.should_flag)
        self.assertEqual(decision.severity, 'none')

    def test_high_within_a_day(self):
        """Test the 24 hour tier."""
        decision = self.aggregator.evaluate_escalation(self.history(8, timedelta(hours=2, minutes=30)), self.now)

        self.assertEqual(decision.severity, 'high')
        self.assertEqual(decision.reason, '8 reports with weighted score 32.00 in 24h')

    def test_moderate_within_a_week(self):
        """Test the 7 day tier."""
        decision = self.aggregator.evaluate_escalation(self.history(13, timedelta(hours=12)), self.now)

        self.assertEqual(decision.severity, 'moderate')
        self.assertEqual(decision.stats.report_count, 13)
        self.assertEqual(decision.reason, '13 reports with weighted score 52.00 in 168h')

    def test_old_reports_are_ignored(self):
        history = [(self.now - timedelta(days=8), 100.0)]
        self.assertFalse(self.aggregator.evaluate_escalation(history, self.now).should_flag)

    def test_window_start_is_inclusive(self):
        """Test a report exactly at the window start counts."""
        history = [(self.now - timedelta(hours=1), 15.0)]
        self.assertEqual(self.aggregator.evaluate_escalation(history, self.now).severity, 'critical')

    def test_custom_tiers(self):
        policy = build_policy(escalation_tiers=(EscalationTier('high', timedelta(hours=1), 1.0),))
        decision = ReportAggregator(policy).evaluate_escalation([(self.now, 1.0)], self.now)
        self.assertEqual(decision.severity, 'high')


class ReportAggregatorTest(MongoTestMixin, unittest.TestCase):

    mongo_documents = (BlogPost, MapPoint, Report)

    def setUp(self):
        super().setUp()
        self.now = timezone.now()
        self.aggregator = ReportAggregator(load_policy())
        self.post = BlogPost(
            author=Author(user_id='author-1', username='author'),
            title='Sunset at Galle Fort',
            content='Best spot on the ramparts',
        )
        self.post.save()

    def submit(self, reporter, reason='HARASSMENT', minutes=0, **kwargs):
        return self.aggregator.submit_report(
            reporter, 'blog_post', str(self.post.id), reason,
            now=self.now + timedelta(minutes=minutes), **kwargs
        )

    def test_submission_weighs_the_report(self):
        """Test report weight is reason weight times credibility."""
        submission = self.submit(make_reporter('vera', self.now, is_verified=True), reason='SPAM')

        self.assertEqual(submission.report.reason_weight, 1.0)
        self.assertEqual(submission.report.credibility_weight, 3.0)
        self.assertEqual(submission.report.weighted_score, 3.0)
        self.assertEqual(submission.report.reason_label, 'Spam')
        self.assertEqual(submission.report_count, 1)
        self.assertEqual(submission.total_report_score, 3.0)
        self.assertFalse(submission.auto_flagged)

    def test_four_veteran_harassment_reports_flag_critical(self):
        """Test that the fourth report in 45 minutes flags critical."""
        reporters = [make_reporter(f'veteran{i}', self.now) for i in range(4)]

        for i, reporter in enumerate(reporters[:3]):
            submission = self.submit(reporter, minutes=i * 15)
            self.assertFalse(submission.is_flagged)
            self.assertEqual(submission.flag_severity, 'none')

        submission = self.submit(reporters[3], minutes=45)

        self.assertTrue(submission.auto_flagged)
        self.assertTrue(submission.is_flagged)
        self.assertEqual(submission.flag_severity, 'critical')
        self.assertEqual(submission.report_count, 4)
        self.assertAlmostEqual(submission.total_report_score, 16.0)

        self.post.reload()
        self.assertEqual(self.post.flag_reason, '4 reports with weighted score 16.00 in 1h')
        self.assertIsNotNone(self.post.flagged_at)

    def test_duplicate_report_leaves_counters_unchanged(self):
        """Test that a second report by the same user is rejected."""
        reporter = make_reporter('dup', self.now)
        self.submit(reporter)

        with self.assertRaises(DuplicateReportError):
            self.submit(reporter, reason='SPAM', minutes=5)

        self.post.reload()
        self.assertEqual(self.post.report_count, 1)
        self.assertAlmostEqual(self.post.total_report_score, 4.0)
        self.assertEqual(Report.objects.count(), 1)

    def test_unique_index_rejects_concurrent_duplicate(self):
        """The unique index still rejects a duplicate that slips past the lookup."""
        reporter = make_reporter('racer', self.now)
        self.submit(reporter)

        with patch.object(ReportAggregator, 'find_content', return_value=self.post), \
                patch.object(QuerySet, 'first', return_value=None):
            with self.assertRaises(DuplicateReportError):
                self.submit(reporter, reason='SPAM', minutes=1)

        self.post.reload()
        self.assertEqual(self.post.report_count, 1)
        self.assertAlmostEqual(self.post.total_report_score, 4.0)
        self.assertEqual(Report.objects.count(), 1)

    def test_self_report_is_rejected(self):
        """Test that authors cannot report their own content."""
        author = CallerIdentity('author-1', 'author', self.now - timedelta(days=200))

        with self.assertRaises(SelfReportError):
            self.submit(author)

        self.post.reload()
        self.assertEqual(self.post.report_count, 0)
        self.assertEqual(Report.objects.count(), 0)

    def test_invalid_input_is_rejected(self):
        """Test unknown types, unknown reasons and long descriptions."""
        reporter = make_reporter('picky', self.now)

        with self.assertRaises(InvalidReportError):
            self.submit(reporter, reason='BORING')
        with self.assertRaises(InvalidReportError):
            self.submit(reporter, reason='OTHER', description='x' * 501)
        with self.assertRaises(InvalidReportError):
            self.aggregator.submit_report(reporter, 'podcast', str(self.post.id), 'SPAM')

        self.assertEqual(Report.objects.count(), 0)

    def test_description_is_trimmed(self):
        submission = self.submit(make_reporter('wordy', self.now), reason='OTHER', description='  rude  ')
        self.assertEqual(submission.report.description, 'rude')

    def test_missing_content_returns_none(self):
        """Test reporting an item that does not exist."""
        reporter = make_reporter('lost', self.now)

        self.assertIsNone(self.aggregator.submit_report(reporter, 'blog_post', str(ObjectId()), 'SPAM'))
        self.assertIsNone(self.aggregator.submit_report(reporter, 'blog_post', 'not-an-id', 'SPAM'))
        self.assertEqual(Report.objects.count(), 0)

    def test_report_is_removed_when_content_disappears(self):
        """Test rollback when the item vanishes before the increment."""
        with patch.object(BlogPost, 'record_report', return_value=None):
            result = self.submit(make_reporter('late', self.now))

        self.assertIsNone(result)
        self.assertEqual(Report.objects.count(), 0)

    def test_critical_is_never_downgraded(self):
        """Test that a critical flag survives lower tiers."""
        BlogPost.escalate_flag(self.post.id, 'critical', 'manual', ('none', 'moderate', 'high'), self.now)

        # 13 reports 12h apart: moderate pressure only
        for i in range(13):
            submission = self.submit(make_reporter(f'slow{i}', self.now), minutes=i * 12 * 60)
            self.assertFalse(submission.auto_flagged)

        self.assertEqual(submission.decision.severity, 'moderate')
        self.post.reload()
        self.assertEqual(self.post.flag_severity, 'critical')
        self.assertEqual(self.post.flag_reason, 'manual')

    def test_moderate_flag_escalates_to_critical(self):
        """Test escalating an existing moderate flag."""
        BlogPost.escalate_flag(self.post.id, 'moderate', 'earlier', ('none',), self.now)

        for i in range(4):
            submission = self.submit(make_reporter(f'fast{i}', self.now), minutes=i * 10)

        self.assertTrue(submission.auto_flagged)
        self.assertEqual(submission.flag_severity, 'critical')

    def test_dismissed_reports_do_not_count(self):
        """Test that dismissed reports leave the window sums."""
        reporters = [make_reporter(f'r{i}', self.now) for i in range(4)]
        first = self.submit(reporters[0])
        self.submit(reporters[1], minutes=5)
        self.submit(reporters[2], minutes=10)

        self.aggregator.review_report(str(first.report.id), 'mod-1', status=Report.Status.DISMISSED)
        submission = self.submit(reporters[3], minutes=15)

        self.assertFalse(submission.is_flagged)
        self.assertFalse(submission.decision.should_flag)
        self.assertEqual(submission.report_count, 4)

    def test_reports_are_scoped_per_content_item(self):
        """Test that reports on one item do not flag another."""
        other = MapPoint(author=Author(user_id='author-2', username='other'), title='Lighthouse')
        other.save()

        for i in range(4):
            self.aggregator.submit_report(
                make_reporter(f'm{i}', self.now), 'map_point', str(other.id), 'HARASSMENT', now=self.now
            )
        submission = self.submit(make_reporter('m0', self.now))

        self.assertEqual(submission.report_count, 1)
        self.assertFalse(submission.is_flagged)
        other.reload()
        self.assertEqual(other.flag_severity, 'critical')

    def test_review_report(self):
        """Test reviewing a report."""
        submission = self.submit(make_reporter('rev', self.now))

        report = self.aggregator.review_report(
            str(submission.report.id), 'mod-1', action='warned', notes='first offence',
            status=Report.Status.ACTION_TAKEN
        )

        self.assertEqual(report.status, Report.Status.ACTION_TAKEN)
        self.assertEqual(report.action_taken, 'warned')
        self.assertEqual(report.reviewed_by, 'mod-1')
        self.assertIsNotNone(report.reviewed_at)

        with self.assertRaises(InvalidReportError):
            self.aggregator.review_report(str(submission.report.id), 'mod-1', action='banished')
        self.assertIsNone(self.aggregator.review_report(str(ObjectId()), 'mod-1'))

    def test_report_stats_and_listing(self):
        """Test report stats and paging."""
        self.submit(make_reporter('s1', self.now), reason='SPAM')
        self.submit(make_reporter('s2', self.now), reason='HARASSMENT', minutes=30)
        self.submit(make_reporter('s3', self.now, age_days=2), reason='OTHER', minutes=60)

        stats = self.aggregator.report_stats('blog_post', self.post.id)
        self.assertEqual(stats['total_reports'], 3)
        self.assertAlmostEqual(stats['total_weighted_score'], 2.0 + 4.0 + 0.5)
        self.assertAlmostEqual(stats['avg_weighted_score'], 6.5 / 3)
        self.assertCountEqual(stats['reasons'], ['SPAM', 'HARASSMENT', 'OTHER'])

        windowed = self.aggregator.report_stats(
            'blog_post', self.post.id, window=timedelta(minutes=45), now=self.now + timedelta(minutes=60)
        )
        self.assertEqual(windowed['total_reports'], 2)

        reports, total = self.aggregator.list_reports('blog_post', self.post.id, skip=0, limit=2)
        self.assertEqual(total, 3)
        self.assertEqual([r.reason for r in reports], ['OTHER', 'HARASSMENT'])

        self.assertIsNone(self.aggregator.report_stats('blog_post', ObjectId()))

    def test_unflag_content(self):
        """Test clearing a flag."""
        BlogPost.escalate_flag(self.post.id, 'high', 'spam wave', ('none', 'moderate'), self.now)

        self.assertTrue(self.aggregator.unflag_content('blog_post', str(self.post.id)))

        self.post.reload()
        self.assertFalse(self.post.is_flagged)
        self.assertEqual(self.post.flag_severity, 'none')
        self.assertIsNone(self.post.flag_reason)
        self.assertIsNone(self.aggregator.unflag_content('blog_post', str(ObjectId())))


class ReportAPITest(MongoTestMixin, APITestCase):

    mongo_documents = (BlogPost, Report)

    def setUp(self):
        super().setUp()
        self.reporter = User.objects.create_user(username='reporter', password='testpass')
        self.moderator = User.objects.create_user(username='moderator', password='testpass', is_staff=True)
        self.post = BlogPost(
            author=Author(user_id='author-1', username='author'),
            title='Ella hike',
            content='Little Adams Peak at dawn',
        )
        self.post.save()
        self.report_url = reverse(
            'submit-report', kwargs={'content_type': 'blog_post', 'content_id': str(self.post.id)}
        )

    def test_list_reasons(self):
        """Test listing report reasons via API."""
        response = self.client.get(reverse('report-reasons'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['data']), 9)

    def test_submit_report(self):
        """Test submitting a report via API."""
        self.client.force_authenticate(user=self.reporter)

        response = self.client.post(self.report_url, {'reason': 'HARASSMENT', 'description': 'rude'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        data = response.data['data']
        # Brand new account: 2.0 x 0.5
        self.assertEqual(data['report']['weighted_score'], 1.0)
        self.assertEqual(data['report_count'], 1)
        self.assertFalse(data['auto_flagged'])

    def test_duplicate_report(self):
        """Test duplicate reports return DUPLICATE_REPORT."""
        self.client.force_authenticate(user=self.reporter)
        self.client.post(self.report_url, {'reason': 'SPAM'}, format='json')

        response = self.client.post(self.report_url, {'reason': 'SPAM'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'DUPLICATE_REPORT')

    def test_invalid_reason(self):
        """Test rejecting an unknown reason via API."""
        self.client.force_authenticate(user=self.reporter)
        response = self.client.post(self.report_url, {'reason': 'BORING'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])

    def test_missing_content(self):
        """Test reporting an unknown item via API."""
        self.client.force_authenticate(user=self.reporter)
        url = reverse('submit-report', kwargs={'content_type': 'blog_post', 'content_id': str(ObjectId())})

        response = self.client.post(url, {'reason': 'SPAM'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_anonymous_cannot_report(self):
        """Test that reporting requires login."""
        response = self.client.post(self.report_url, {'reason': 'SPAM'}, format='json')
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_moderator_endpoints(self):
        """Test listing, review and unflag for staff only."""
        self.client.force_authenticate(user=self.reporter)
        self.client.post(self.report_url, {'reason': 'SPAM'}, format='json')

        reports_url = reverse(
            'content-reports', kwargs={'content_type': 'blog_post', 'content_id': str(self.post.id)}
        )
        self.assertEqual(self.client.get(reports_url).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.moderator)
        response = self.client.get(reports_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['pagination']['total'], 1)
        self.assertEqual(response.data['data']['stats']['total_reports'], 1)

        report_id = response.data['data']['reports'][0]['id']
        response = self.client.post(
            reverse('review-report', kwargs={'report_id': report_id}),
            {'status': 'dismissed', 'notes': 'not spam'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'dismissed')

        response = self.client.post(
            reverse('unflag-content', kwargs={'content_type': 'blog_post', 'content_id': str(self.post.id)})
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_window_hours_must_be_positive(self):
        """Report listings reject an empty or negative stats window."""
        self.client.force_authenticate(user=self.moderator)
        reports_url = reverse(
            'content-reports', kwargs={'content_type': 'blog_post', 'content_id': str(self.post.id)}
        )

        for window_hours in ('0', '-3'):
            response = self.client.get(reports_url, {'window_hours': window_hours})
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertFalse(response.data['success'])

        response = self.client.get(reports_url, {'window_hours': '24'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
