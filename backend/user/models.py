import uuid

from django.db import models
from django.conf import settings


class UserProfile(models.Model):
    """
    Community profile attached to an auth user. Its id is the user reference
    stored on community documents and reports.
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile"
    )
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    avatar_url = models.URLField(max_length=500, blank=True, null=True)
    bio = models.TextField(max_length=200, blank=True, default="")
    role = models.CharField(
        max_length=20,
        choices=[("traveller", "Traveller"), ("guide", "Guide")],
        default="traveller"
    )
    is_verified = models.BooleanField(null=False, default=False)

    def __str__(self):
        return f"{self.user.username} ({self.role})"
