"""
MongoDB models for the moderation app using mongoengine.
"""
from mongoengine import (
    Document, EmbeddedDocument, EmbeddedDocumentField, StringField,
    FloatField, BooleanField, DateTimeField, ObjectIdField
)

from community.models import CONTENT_MODELS
from community.timeutils import storage_now


class Reporter(EmbeddedDocument):
    """
    Snapshot of the reporting account taken at submission time.
    Credibility is judged as of the report, so this is never refreshed.
    """
    user_id = StringField(required=True)
    username = StringField(required=True)
    account_created_at = DateTimeField(required=True)
    is_verified = BooleanField(default=False)


class Report(Document):
    """
    A single abuse report against a content item.
    At most one report exists per (reporter, content item); the unique index
    enforces it even when two submissions race.
    """

    class Status(str):
        PENDING = 'pending'
        REVIEWED = 'reviewed'
        DISMISSED = 'dismissed'
        ACTION_TAKEN = 'action_taken'

    # Statuses that still count towards auto-flagging
    ACTIVE_STATUSES = (Status.PENDING, Status.REVIEWED)

    ACTIONS = ('none', 'warned', 'post_hidden', 'post_removed', 'user_suspended')

    content_type = StringField(required=True, choices=list(CONTENT_MODELS))
    content_id = ObjectIdField(required=True)

    reporter = EmbeddedDocumentField(Reporter, required=True)

    reason = StringField(required=True)
    reason_label = StringField(required=True)
    description = StringField(max_length=500, default='')

    reason_weight = FloatField(required=True, min_value=0)
    credibility_weight = FloatField(required=True, min_value=0)
    weighted_score = FloatField(required=True, min_value=0)

    status = StringField(
        choices=[Status.PENDING, Status.REVIEWED, Status.DISMISSED, Status.ACTION_TAKEN],
        default=Status.PENDING
    )

    # Moderator review
    reviewed_by = StringField(null=True)
    reviewed_at = DateTimeField(null=True)
    review_notes = StringField(max_length=1000, null=True)
    action_taken = StringField(choices=ACTIONS, default='none')

    created_at = DateTimeField(default=storage_now)

    meta = {
        'collection': 'reports',
        'indexes': [
            {
                'fields': ['content_type', 'content_id', 'reporter.user_id'],
                'unique': True,
            },
            ('content_type', 'content_id', '-created_at'),
            ('content_type', 'content_id', 'status'),
            ('reporter.user_id', '-created_at'),
            ('status', '-created_at'),
        ]
    }

    def __str__(self):
        return f"Report {self.reason} on {self.content_type}:{self.content_id} by {self.reporter.username}"
