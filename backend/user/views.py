from dataclasses import asdict

from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from moderation.credibility import CredibilityWeigher
from moderation.policy import load_policy
from .serializers import CallerIdentitySerializer
from .services import get_caller_identity


class MeView(APIView):
    """
    Identity of the caller as the trust engine sees it, including the weight
    a report submitted right now would carry.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        caller = get_caller_identity(request.user)
        weigher = CredibilityWeigher(load_policy())
        data = asdict(caller)
        data["credibility_weight"] = weigher.weigh(caller.account_created_at, caller.is_verified)
        serializer = CallerIdentitySerializer(data)
        return Response({"success": True, "data": serializer.data})
