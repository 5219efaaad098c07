"""
API views for report submission and moderator tooling.
"""
import logging
from datetime import timedelta

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from community.models import get_content_model
from user.services import get_caller_identity
from .exceptions import ReportError
from .policy import load_policy
from .report_aggregator import ReportAggregator
from .serializers import (
    ReportCreateSerializer, ReportReasonSerializer, ReportReviewSerializer,
    ReportSerializer, ReportStatsSerializer, ReportSubmissionSerializer
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def error_response(message, http_status, code=None):
    body = {"success": False, "message": message}
    if code:
        body["code"] = code
    return Response(body, status=http_status)


class ReportReasonListView(APIView):
    """GET /api/moderation/reasons/ - the report reason catalog."""
    permission_classes = [AllowAny]

    def get(self, request):
        reasons = load_policy().reasons.values()
        serializer = ReportReasonSerializer(reasons, many=True)
        return Response({"success": True, "data": serializer.data})


class SubmitReportView(APIView):
    """
    POST /api/moderation/<content_type>/<content_id>/report/
    Body:
    {
        "reason": "HARASSMENT",
        "description": "optional, up to 500 characters"
    }
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, content_type, content_id):
        if get_content_model(content_type) is None:
            return error_response(f"Unknown content type '{content_type}'", status.HTTP_404_NOT_FOUND)

        serializer = ReportCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {"success": False, "message": "Invalid report", "code": "INVALID_REPORT",
                 "errors": serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        caller = get_caller_identity(request.user)
        aggregator = ReportAggregator(load_policy())
        try:
            submission = aggregator.submit_report(
                caller,
                content_type,
                content_id,
                serializer.validated_data["reason"],
                serializer.validated_data.get("description", ""),
            )
        except ReportError as e:
            return error_response(e.message, status.HTTP_400_BAD_REQUEST, e.code)

        if submission is None:
            return error_response("Content not found", status.HTTP_404_NOT_FOUND)

        return Response(
            {
                "success": True,
                "message": "Report submitted successfully",
                "data": ReportSubmissionSerializer(submission).data,
            },
            status=status.HTTP_201_CREATED
        )


class ContentReportsView(APIView):
    """
    GET /api/moderation/<content_type>/<content_id>/reports/?skip=0&limit=20&window_hours=24

    Moderator view of the reports against one item with aggregate stats.
    """
    permission_classes = [IsAdminUser]

    def get(self, request, content_type, content_id):
        if get_content_model(content_type) is None:
            return error_response(f"Unknown content type '{content_type}'", status.HTTP_404_NOT_FOUND)

        try:
            skip = max(int(request.query_params.get("skip", 0)), 0)
            limit = min(max(int(request.query_params.get("limit", 20)), 1), MAX_PAGE_SIZE)
            window_hours = request.query_params.get("window_hours")
            window = timedelta(hours=int(window_hours)) if window_hours else None
        except ValueError:
            return error_response("skip, limit and window_hours must be integers", status.HTTP_400_BAD_REQUEST)
        if window is not None and window < timedelta(hours=1):
            return error_response("window_hours must be at least 1", status.HTTP_400_BAD_REQUEST)

        aggregator = ReportAggregator(load_policy())
        content = aggregator.find_content(get_content_model(content_type), content_id)
        if content is None:
            return error_response("Content not found", status.HTTP_404_NOT_FOUND)

        reports, total = aggregator.list_reports(content_type, content.id, skip=skip, limit=limit)
        stats = aggregator.report_stats(content_type, content.id, window=window)

        return Response({
            "success": True,
            "data": {
                "reports": ReportSerializer(reports, many=True).data,
                "stats": ReportStatsSerializer(stats).data if stats else None,
                "moderation": {
                    "report_count": content.report_count,
                    "total_report_score": content.total_report_score,
                    "is_flagged": content.is_flagged,
                    "flag_severity": content.flag_severity,
                    "flag_reason": content.flag_reason,
                },
                "pagination": {
                    "skip": skip,
                    "limit": limit,
                    "total": total,
                    "has_more": skip + len(reports) < total,
                },
            },
        })


class ReviewReportView(APIView):
    """POST /api/moderation/reports/<report_id>/review/"""
    permission_classes = [IsAdminUser]

    def post(self, request, report_id):
        serializer = ReportReviewSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {"success": False, "message": "Invalid review", "errors": serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        reviewer = get_caller_identity(request.user)
        aggregator = ReportAggregator(load_policy())
        try:
            report = aggregator.review_report(
                report_id,
                reviewer.user_id,
                action=serializer.validated_data["action"],
                notes=serializer.validated_data.get("notes", ""),
                status=serializer.validated_data["status"],
            )
        except ReportError as e:
            return error_response(e.message, status.HTTP_400_BAD_REQUEST, e.code)

        if report is None:
            return error_response("Report not found", status.HTTP_404_NOT_FOUND)

        return Response({"success": True, "data": ReportSerializer(report).data})


class UnflagContentView(APIView):
    """POST /api/moderation/<content_type>/<content_id>/unflag/"""
    permission_classes = [IsAdminUser]

    def post(self, request, content_type, content_id):
        if get_content_model(content_type) is None:
            return error_response(f"Unknown content type '{content_type}'", status.HTTP_404_NOT_FOUND)

        aggregator = ReportAggregator(load_policy())
        cleared = aggregator.unflag_content(content_type, content_id)
        if cleared is None:
            return error_response("Content not found", status.HTTP_404_NOT_FOUND)

        logger.info(f"{request.user.get_username()} unflagged {content_type}:{content_id}")
        return Response({"success": True, "message": "Content unflagged"})
