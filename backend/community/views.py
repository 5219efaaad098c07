"""
API views for community app endpoints.
Handles removing content from, and restoring it to, the caller's own feed.
"""
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from user.services import get_caller_identity
from .models import get_content_model
from .services import FeedService


class HideContentView(APIView):
    """POST /api/community/<content_type>/<content_id>/hide/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, content_type, content_id):
        if get_content_model(content_type) is None:
            return Response(
                {'success': False, 'message': f"Unknown content type '{content_type}'"},
                status=status.HTTP_404_NOT_FOUND
            )

        caller = get_caller_identity(request.user)
        try:
            hidden = FeedService().hide_content(caller.user_id, content_type, content_id)
        except ValueError as e:
            return Response({'success': False, 'message': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        if hidden is None:
            return Response({'success': False, 'message': 'Content not found'}, status=status.HTTP_404_NOT_FOUND)
        if not hidden:
            return Response(
                {'success': False, 'message': 'Content is already hidden'},
                status=status.HTTP_400_BAD_REQUEST
            )
        return Response({'success': True, 'message': 'Content hidden from your feed'})


class UnhideContentView(APIView):
    """POST /api/community/<content_type>/<content_id>/unhide/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, content_type, content_id):
        if get_content_model(content_type) is None:
            return Response(
                {'success': False, 'message': f"Unknown content type '{content_type}'"},
                status=status.HTTP_404_NOT_FOUND
            )

        caller = get_caller_identity(request.user)
        unhidden = FeedService().unhide_content(caller.user_id, content_type, content_id)

        if unhidden is None:
            return Response({'success': False, 'message': 'Content not found'}, status=status.HTTP_404_NOT_FOUND)
        if not unhidden:
            return Response(
                {'success': False, 'message': 'Content is not hidden'},
                status=status.HTTP_400_BAD_REQUEST
            )
        return Response({'success': True, 'message': 'Content restored to your feed'})
