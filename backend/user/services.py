"""
Resolves the authenticated caller into the identity snapshot consumed by the
ranking and moderation services.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .models import UserProfile


@dataclass(frozen=True)
class CallerIdentity:
    user_id: str
    username: str
    account_created_at: datetime
    is_verified: bool = False
    role: str = "traveller"


def get_caller_identity(user) -> Optional[CallerIdentity]:
    """
    Builds a CallerIdentity for an authenticated Django user, creating the
    profile on first use. Returns None for anonymous users.
    """
    if user is None or not user.is_authenticated:
        return None

    profile, _ = UserProfile.objects.get_or_create(user=user)
    return CallerIdentity(
        user_id=str(profile.id),
        username=user.get_username(),
        account_created_at=user.date_joined,
        is_verified=profile.is_verified,
        role=profile.role,
    )


def get_bearer_credential(request) -> Optional[str]:
    """Raw bearer token of the request, forwarded to downstream services."""
    header = request.META.get("HTTP_AUTHORIZATION", "")
    if not header.startswith("Bearer "):
        return None
    return header[len("Bearer "):].strip() or None
