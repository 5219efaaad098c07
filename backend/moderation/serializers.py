"""
DRF serializers for report submission, review and moderation listings.
"""
from rest_framework import serializers

from .models import Report
from .policy import load_policy


class ReportReasonSerializer(serializers.Serializer):
    code = serializers.CharField()
    label = serializers.CharField()
    weight = serializers.FloatField()


class ReportCreateSerializer(serializers.Serializer):
    """Validates a report submission body."""
    reason = serializers.ChoiceField(choices=list(load_policy().reasons))
    description = serializers.CharField(
        max_length=load_policy().max_description_length,
        required=False,
        allow_blank=True,
        default=''
    )


class ReporterSerializer(serializers.Serializer):
    user_id = serializers.CharField()
    username = serializers.CharField()
    is_verified = serializers.BooleanField()


class ReportSerializer(serializers.Serializer):
    id = serializers.CharField(read_only=True)
    content_type = serializers.CharField()
    content_id = serializers.CharField()
    reporter = ReporterSerializer()
    reason = serializers.CharField()
    reason_label = serializers.CharField()
    description = serializers.CharField()
    reason_weight = serializers.FloatField()
    credibility_weight = serializers.FloatField()
    weighted_score = serializers.FloatField()
    status = serializers.CharField()
    reviewed_by = serializers.CharField(allow_null=True)
    reviewed_at = serializers.DateTimeField(allow_null=True)
    review_notes = serializers.CharField(allow_null=True)
    action_taken = serializers.CharField()
    created_at = serializers.DateTimeField()


class ReportSubmissionSerializer(serializers.Serializer):
    """Outcome of a submission: the report plus the item's moderation state."""
    report = ReportSerializer()
    report_count = serializers.IntegerField()
    total_report_score = serializers.FloatField()
    is_flagged = serializers.BooleanField()
    flag_severity = serializers.CharField()
    auto_flagged = serializers.BooleanField()


class ReportReviewSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=[Report.Status.REVIEWED, Report.Status.DISMISSED, Report.Status.ACTION_TAKEN],
        default=Report.Status.REVIEWED
    )
    action = serializers.ChoiceField(choices=Report.ACTIONS, default='none')
    notes = serializers.CharField(max_length=1000, required=False, allow_blank=True, default='')


class ReportStatsSerializer(serializers.Serializer):
    total_reports = serializers.IntegerField()
    total_weighted_score = serializers.FloatField()
    avg_weighted_score = serializers.FloatField()
    reasons = serializers.ListField(child=serializers.CharField())
    first_report_at = serializers.DateTimeField()
    last_report_at = serializers.DateTimeField()
