"""
URL routing for community app endpoints.
"""
from django.urls import path

from .views import HideContentView, UnhideContentView

urlpatterns = [
    path('<str:content_type>/<str:content_id>/hide/', HideContentView.as_view(), name='hide-content'),
    path('<str:content_type>/<str:content_id>/unhide/', UnhideContentView.as_view(), name='unhide-content'),
]
