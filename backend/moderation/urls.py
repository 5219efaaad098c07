"""
URL routing for moderation endpoints.
"""
from django.urls import path

from .views import (
    ContentReportsView, ReportReasonListView, ReviewReportView,
    SubmitReportView, UnflagContentView
)

urlpatterns = [
    path('reasons/', ReportReasonListView.as_view(), name='report-reasons'),
    path('reports/<str:report_id>/review/', ReviewReportView.as_view(), name='review-report'),
    path('<str:content_type>/<str:content_id>/report/', SubmitReportView.as_view(), name='submit-report'),
    path('<str:content_type>/<str:content_id>/reports/', ContentReportsView.as_view(), name='content-reports'),
    path('<str:content_type>/<str:content_id>/unflag/', UnflagContentView.as_view(), name='unflag-content'),
]
