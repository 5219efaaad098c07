"""
Views for the recommendations module.
"""
import logging

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from community.services import FeedService
from user.services import get_bearer_credential, get_caller_identity
from recommendations.serializers import (
    FeedPageSerializer, FeedQuerySerializer, ScoreBreakdownEntrySerializer, TravelProfileSerializer
)

logger = logging.getLogger(__name__)


class RecommendedFeedView(APIView):
    """
    API endpoint for the ranked community feed.

    GET /api/recommendations/feed/?page=1&limit=20&content_type=blog_post

    Authenticated callers with travel history get the personalized ranking,
    everyone else the generic popularity ranking.

    Travel history is fetched with the caller's `Authorization: Bearer` token.
    Clients authenticated by session cookie must send that header as well;
    Basic auth occupies the Authorization header, so those callers always get
    the generic ranking.
    """
    permission_classes = [AllowAny]

    def get(self, request):
        query = FeedQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return Response(
                {'success': False, 'message': 'Invalid query parameters', 'errors': query.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        caller = get_caller_identity(request.user)
        try:
            page = FeedService().get_recommended_feed(
                caller,
                get_bearer_credential(request),
                skip=query.skip,
                limit=query.validated_data['limit'],
                content_type=query.validated_data['content_type'],
            )
        except Exception as e:
            logger.exception(f"Failed to build recommended feed: {str(e)}")
            return Response(
                {'success': False, 'message': 'Failed to build feed'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        return Response({'success': True, 'data': FeedPageSerializer(page).data})


class RecommendedFeedDebugView(APIView):
    """
    API endpoint exposing every term of the ranking for the caller.

    GET /api/recommendations/feed/debug/?page=1&limit=20&content_type=blog_post
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        query = FeedQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return Response(
                {'success': False, 'message': 'Invalid query parameters', 'errors': query.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        caller = get_caller_identity(request.user)
        page = FeedService().get_recommended_feed(
            caller,
            get_bearer_credential(request),
            skip=query.skip,
            limit=query.validated_data['limit'],
            content_type=query.validated_data['content_type'],
        )

        return Response({
            'success': True,
            'data': {
                'algorithm': page.algorithm.value,
                'profile': TravelProfileSerializer(page.profile).data,
                'items': ScoreBreakdownEntrySerializer(page.items, many=True).data,
                'total': page.total,
            },
        })
