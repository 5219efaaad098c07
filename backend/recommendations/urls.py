"""
URL configuration for the recommendations module.
"""
from django.urls import path
from recommendations.views import RecommendedFeedDebugView, RecommendedFeedView

app_name = 'recommendations'

urlpatterns = [
    path('feed/', RecommendedFeedView.as_view(), name='recommended_feed'),
    path('feed/debug/', RecommendedFeedDebugView.as_view(), name='recommended_feed_debug'),
]
