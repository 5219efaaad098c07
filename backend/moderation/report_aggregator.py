"""
ReportAggregator: weighted, time-windowed abuse report aggregation and the
auto-flag escalation policy.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from bson import ObjectId
from mongoengine.errors import NotUniqueError

from community.models import get_content_model
from community.timeutils import ensure_aware, now as current_time, to_storage
from user.services import CallerIdentity
from .credibility import CredibilityWeigher
from .exceptions import DuplicateReportError, InvalidReportError, SelfReportError
from .models import Report, Reporter
from .policy import EscalationTier, TrustPolicy

logger = logging.getLogger(__name__)


@dataclass
class WindowStats:
    window: timedelta
    report_count: int
    total_weighted_score: float


@dataclass
class EscalationDecision:
    should_flag: bool
    severity: str = 'none'
    reason: Optional[str] = None
    stats: Optional[WindowStats] = None


@dataclass
class ReportSubmission:
    """Created report plus the moderation state after aggregation."""
    report: Report
    report_count: int
    total_report_score: float
    is_flagged: bool
    flag_severity: str
    auto_flagged: bool
    decision: EscalationDecision


class ReportAggregator:
    """
    Domain service handling report submission end to end:

    1. Validate the input and refuse self / duplicate reports (no writes)
    2. Weigh the report: reason weight x reporter credibility
    3. Persist it and atomically bump the item's report counters
    4. Evaluate the 1h / 24h / 7d windows and escalate the flag, never
       lowering an existing severity
    """

    def __init__(self, policy: TrustPolicy, weigher: Optional[CredibilityWeigher] = None):
        self.policy = policy
        self.weigher = weigher or CredibilityWeigher(policy)

    def submit_report(self, reporter: CallerIdentity, content_type: str, content_id: str,
                      reason: str, description: str = '', now: Optional[datetime] = None) -> Optional[ReportSubmission]:
        """
        Submits a report. Returns None when the content item does not exist.

        Raises:
            InvalidReportError: unknown content type or reason, description too long
            SelfReportError: the reporter authored the item
            DuplicateReportError: the reporter already reported the item
        """
        now = ensure_aware(now or current_time())
        model, report_reason, description = self._validate(content_type, reason, description)

        content = self.find_content(model, content_id)
        if content is None:
            return None

        if content.author and content.author.user_id == reporter.user_id:
            raise SelfReportError("You cannot report your own content")

        if Report.objects(content_type=content_type, content_id=content.id,
                          reporter__user_id=reporter.user_id).first():
            raise DuplicateReportError("You have already reported this content")

        credibility_weight = self.weigher.weigh(reporter.account_created_at, reporter.is_verified, now)
        weighted_score = report_reason.weight * credibility_weight

        report = Report(
            content_type=content_type,
            content_id=content.id,
            reporter=Reporter(
                user_id=reporter.user_id,
                username=reporter.username,
                account_created_at=to_storage(reporter.account_created_at),
                is_verified=reporter.is_verified,
            ),
            reason=report_reason.code,
            reason_label=report_reason.label,
            description=description,
            reason_weight=report_reason.weight,
            credibility_weight=credibility_weight,
            weighted_score=weighted_score,
            created_at=to_storage(now),
        )
        try:
            report.save(force_insert=True)
        except NotUniqueError:
            # Lost the race against a concurrent submission by the same user
            raise DuplicateReportError("You have already reported this content")

        updated = model.record_report(content.id, weighted_score)
        if updated is None:
            # Item deleted between lookup and increment: keep the store consistent
            report.delete()
            return None

        logger.info(
            f"{reporter.username} reported {content_type}:{content.id} "
            f"reason={report_reason.code} weighted_score={weighted_score:.2f} "
            f"(reason {report_reason.weight}, credibility {credibility_weight})"
        )

        decision = self.check_escalation(content_type, content.id, now)
        auto_flagged = False
        if decision.should_flag:
            auto_flagged = model.escalate_flag(
                content.id,
                decision.severity,
                decision.reason,
                self.policy.severities_below(decision.severity),
                flagged_at=now,
            )
            if auto_flagged:
                logger.info(f"Auto-flagged {content_type}:{content.id} as {decision.severity}: {decision.reason}")
                updated.reload()

        return ReportSubmission(
            report=report,
            report_count=updated.report_count,
            total_report_score=updated.total_report_score,
            is_flagged=updated.is_flagged,
            flag_severity=updated.flag_severity,
            auto_flagged=auto_flagged,
            decision=decision,
        )

    def check_escalation(self, content_type: str, content_id, now: Optional[datetime] = None) -> EscalationDecision:
        """Loads the non-dismissed report history of an item and evaluates it."""
        now = ensure_aware(now or current_time())
        history = Report.objects(
            content_type=content_type,
            content_id=content_id,
            status__in=list(Report.ACTIVE_STATUSES),
            created_at__gte=to_storage(now - self.policy.longest_window),
        ).only('created_at', 'weighted_score')
        return self.evaluate_escalation(((r.created_at, r.weighted_score) for r in history), now)

    def evaluate_escalation(self, reports: Iterable[Tuple[datetime, float]],
                            now: Optional[datetime] = None) -> EscalationDecision:
        """
        Pure escalation policy over (created_at, weighted_score) pairs.
        Tiers are checked tightest window first and the first tier whose
        threshold is met wins.
        """
        now = ensure_aware(now or current_time())
        history = [(ensure_aware(created_at), score) for created_at, score in reports]

        for tier in self.policy.escalation_tiers:
            stats = self._window_stats(history, tier.window, now)
            if stats.total_weighted_score >= tier.threshold:
                return EscalationDecision(
                    should_flag=True,
                    severity=tier.severity,
                    reason=self._flag_reason(stats, tier),
                    stats=stats,
                )

        return EscalationDecision(should_flag=False)

    def report_stats(self, content_type: str, content_id, window: Optional[timedelta] = None,
                     now: Optional[datetime] = None) -> Optional[dict]:
        """
        Aggregate statistics over the non-dismissed reports of an item,
        optionally restricted to a trailing window. None when there are none.
        """
        query = Report.objects(
            content_type=content_type,
            content_id=content_id,
            status__in=list(Report.ACTIVE_STATUSES),
        )
        if window is not None:
            now = ensure_aware(now or current_time())
            query = query.filter(created_at__gte=to_storage(now - window))

        reports = list(query.only('reason', 'weighted_score', 'created_at'))
        if not reports:
            return None

        total = sum(r.weighted_score for r in reports)
        created = [ensure_aware(r.created_at) for r in reports]
        return {
            'total_reports': len(reports),
            'total_weighted_score': total,
            'avg_weighted_score': total / len(reports),
            'reasons': [r.reason for r in reports],
            'first_report_at': min(created),
            'last_report_at': max(created),
        }

    def list_reports(self, content_type: str, content_id, skip: int = 0, limit: int = 20) -> Tuple[List[Report], int]:
        query = Report.objects(content_type=content_type, content_id=content_id)
        total = query.count()
        reports = list(query.order_by('-created_at').skip(skip).limit(limit))
        return reports, total

    def review_report(self, report_id: str, reviewer_id: str, action: str = 'none',
                      notes: str = '', status: str = Report.Status.REVIEWED) -> Optional[Report]:
        """
        Records a moderator decision on a report. Dismissed reports stop
        counting towards auto-flagging; the item flag itself is left alone.
        """
        if action not in Report.ACTIONS:
            raise InvalidReportError(f"Unknown moderation action '{action}'")
        if status == Report.Status.PENDING or status not in (
                Report.Status.REVIEWED, Report.Status.DISMISSED, Report.Status.ACTION_TAKEN):
            raise InvalidReportError(f"Invalid review status '{status}'")
        if not ObjectId.is_valid(report_id):
            return None

        report = Report.objects(id=report_id).first()
        if report is None:
            return None

        report.status = status
        report.reviewed_by = reviewer_id
        report.reviewed_at = to_storage(current_time())
        report.action_taken = action
        report.review_notes = notes
        report.save()

        logger.info(f"Report {report.id} reviewed by {reviewer_id}: status={status} action={action}")
        return report

    def unflag_content(self, content_type: str, content_id: str) -> Optional[bool]:
        """Explicit moderator unflag. None when the item does not exist."""
        model = get_content_model(content_type)
        if model is None:
            raise InvalidReportError(f"Unknown content type '{content_type}'")
        content = self.find_content(model, content_id)
        if content is None:
            return None
        cleared = model.clear_flag(content.id)
        logger.info(f"Flag cleared on {content_type}:{content.id}")
        return cleared

    # Helper methods
    def _validate(self, content_type: str, reason: str, description: Optional[str]):
        model = get_content_model(content_type)
        if model is None:
            raise InvalidReportError(f"Unknown content type '{content_type}'")

        report_reason = self.policy.reason(reason)
        if report_reason is None:
            raise InvalidReportError("Invalid report reason")

        description = (description or '').strip()
        if len(description) > self.policy.max_description_length:
            raise InvalidReportError(
                f"Description must be at most {self.policy.max_description_length} characters"
            )
        return model, report_reason, description

    @staticmethod
    def find_content(model, content_id):
        if not ObjectId.is_valid(str(content_id)):
            return None
        return model.objects(id=content_id).first()

    @staticmethod
    def _window_stats(history: List[Tuple[datetime, float]], window: timedelta, now: datetime) -> WindowStats:
        cutoff = now - window
        in_window = [score for created_at, score in history if created_at >= cutoff]
        return WindowStats(window=window, report_count=len(in_window), total_weighted_score=sum(in_window))

    @staticmethod
    def _flag_reason(stats: WindowStats, tier: EscalationTier) -> str:
        return (
            f"{stats.report_count} reports with weighted score "
            f"{stats.total_weighted_score:.2f} in {tier.window_hours}h"
        )
