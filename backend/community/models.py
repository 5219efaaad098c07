"""
MongoDB models for the community app using mongoengine.

Every rankable and reportable unit (blog post, map point, place review) shares
the ContentItem base: engagement counters, tags, location, images and the
moderation state mutated by the report aggregator.
"""
from typing import Iterable, Optional

from mongoengine import (
    Document, EmbeddedDocument, EmbeddedDocumentField, StringField, ListField,
    IntField, FloatField, BooleanField, DateTimeField, ObjectIdField, URLField
)

from .timeutils import storage_now, to_storage


# Ordered from least to most severe
FLAG_SEVERITIES = ('none', 'moderate', 'high', 'critical')


class Author(EmbeddedDocument):
    """Denormalized author reference (user ids come from the relational store)."""
    user_id = StringField(required=True)
    username = StringField(required=True)
    role = StringField(choices=['traveller', 'guide'], default='traveller')


class Location(EmbeddedDocument):
    name = StringField()
    latitude = FloatField(min_value=-90, max_value=90, null=True)
    longitude = FloatField(min_value=-180, max_value=180, null=True)


class Image(EmbeddedDocument):
    """CDN reference for an uploaded image. Binary storage lives elsewhere."""
    url = URLField(required=True)
    public_id = StringField(required=True)
    uploaded_at = DateTimeField(default=storage_now)


class ContentItem(Document):
    """
    Abstract document for anything that can be ranked in a feed or reported.
    Concrete subclasses set CONTENT_TYPE, the key used in URLs and reports.
    """

    CONTENT_TYPE = None

    class Status(str):
        DRAFT = 'draft'
        PUBLISHED = 'published'
        ARCHIVED = 'archived'

    author = EmbeddedDocumentField(Author, required=True)

    # Engagement counters
    likes_count = IntField(min_value=0, default=0)
    comments_count = IntField(min_value=0, default=0)
    views_count = IntField(min_value=0, default=0)

    tags = ListField(StringField(), default=list)
    location = EmbeddedDocumentField(Location, null=True)
    images = ListField(EmbeddedDocumentField(Image), default=list)

    status = StringField(
        choices=[Status.DRAFT, Status.PUBLISHED, Status.ARCHIVED],
        default=Status.PUBLISHED
    )

    # User ids that removed this item from their own feed
    hidden_by = ListField(StringField(), default=list)

    # Moderation state, written only through atomic updates
    report_count = IntField(min_value=0, default=0)
    total_report_score = FloatField(min_value=0, default=0.0)
    is_flagged = BooleanField(default=False)
    flag_severity = StringField(choices=FLAG_SEVERITIES, default='none')
    flag_reason = StringField(null=True)
    flagged_at = DateTimeField(null=True)

    created_at = DateTimeField(default=storage_now)
    updated_at = DateTimeField(default=storage_now)

    meta = {
        'abstract': True,
        'indexes': [
            'author.user_id',
            '-created_at',
            'tags',
            ('status', '-created_at'),
        ]
    }

    def clean(self):
        """Normalize tags to trimmed lower-case values, dropping blanks."""
        self.tags = [t.strip().lower() for t in self.tags if t and t.strip()]
        self.updated_at = storage_now()

    @property
    def location_name(self) -> Optional[str]:
        return self.location.name if self.location else None

    @property
    def has_images(self) -> bool:
        return bool(self.images)

    def is_hidden_for_user(self, user_id: str) -> bool:
        return user_id in self.hidden_by

    def hide_for_user(self, user_id: str) -> None:
        """Adds user_id to hidden_by without racing other writers."""
        type(self).objects(id=self.id).update_one(add_to_set__hidden_by=user_id)
        self.reload('hidden_by')

    def unhide_for_user(self, user_id: str) -> None:
        type(self).objects(id=self.id).update_one(pull__hidden_by=user_id)
        self.reload('hidden_by')

    @classmethod
    def get_feed_candidates(cls, exclude_user_id: Optional[str] = None, limit: int = 500):
        """
        Returns published items, newest first, capped at ``limit``.
        When exclude_user_id is given, the user's own items and the items
        they hid are filtered out.
        """
        query = cls.objects(status=cls.Status.PUBLISHED)
        if exclude_user_id:
            query = query.filter(author__user_id__ne=exclude_user_id, hidden_by__ne=exclude_user_id)
        return query.order_by('-created_at').limit(limit)

    @classmethod
    def record_report(cls, content_id, weighted_score: float):
        """
        Atomically increments report_count and total_report_score and returns
        the post-increment document, or None if the item no longer exists.
        """
        return cls.objects(id=content_id).modify(
            new=True,
            inc__report_count=1,
            inc__total_report_score=weighted_score,
        )

    @classmethod
    def escalate_flag(cls, content_id, severity: str, reason: str,
                      lower_severities: Iterable[str], flagged_at=None) -> bool:
        """
        Compare-and-set: flags the item only while its stored severity is one
        of ``lower_severities``. Returns True when this call applied the flag.
        """
        updated = cls.objects(id=content_id, flag_severity__in=list(lower_severities)).update_one(
            set__is_flagged=True,
            set__flag_severity=severity,
            set__flag_reason=reason,
            set__flagged_at=to_storage(flagged_at),
        )
        return updated == 1

    @classmethod
    def clear_flag(cls, content_id) -> bool:
        updated = cls.objects(id=content_id).update_one(
            set__is_flagged=False,
            set__flag_severity='none',
            set__flag_reason=None,
            set__flagged_at=None,
        )
        return updated == 1


class BlogPost(ContentItem):
    """Long-form travel story shared on the community feed."""

    CONTENT_TYPE = 'blog_post'

    title = StringField(required=True, max_length=200)
    content = StringField(required=True, max_length=5000)

    meta = {'collection': 'blog_posts'}


class MapPoint(ContentItem):
    """A user-pinned place on the community map."""

    CONTENT_TYPE = 'map_point'

    title = StringField(required=True, max_length=200)
    description = StringField(max_length=2000, default='')
    address = StringField(null=True)
    category = StringField(default='other')

    meta = {'collection': 'map_points'}


class PlaceReview(ContentItem):
    """A rated review attached to a map point."""

    CONTENT_TYPE = 'review'

    map_point_id = ObjectIdField(required=True)
    rating = IntField(min_value=1, max_value=5, required=True)
    comment = StringField(max_length=1000, default='')

    meta = {'collection': 'place_reviews'}


CONTENT_MODELS = {
    model.CONTENT_TYPE: model
    for model in (BlogPost, MapPoint, PlaceReview)
}


def get_content_model(content_type: str):
    """Resolves a content type key to its document class, or None."""
    return CONTENT_MODELS.get(content_type)
