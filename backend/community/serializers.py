"""
DRF Serializers for community content documents.
Handles conversion between mongoengine documents and API responses.
"""
from rest_framework import serializers


class AuthorSerializer(serializers.Serializer):
    user_id = serializers.CharField()
    username = serializers.CharField()
    role = serializers.CharField()


class LocationSerializer(serializers.Serializer):
    name = serializers.CharField(allow_null=True)
    latitude = serializers.FloatField(allow_null=True)
    longitude = serializers.FloatField(allow_null=True)


class ImageSerializer(serializers.Serializer):
    url = serializers.URLField()
    public_id = serializers.CharField()


class ContentItemSerializer(serializers.Serializer):
    """
    Data Transfer Object for any ContentItem subclass.
    Kind-specific fields (title, rating, ...) are added when present.
    """
    id = serializers.CharField(read_only=True)
    content_type = serializers.CharField(source='CONTENT_TYPE', read_only=True)
    author = AuthorSerializer()
    likes_count = serializers.IntegerField()
    comments_count = serializers.IntegerField()
    views_count = serializers.IntegerField()
    tags = serializers.ListField(child=serializers.CharField())
    location = LocationSerializer(allow_null=True)
    images = ImageSerializer(many=True)
    is_flagged = serializers.BooleanField()
    flag_severity = serializers.CharField()
    created_at = serializers.DateTimeField()

    KIND_FIELDS = ('title', 'content', 'description', 'address', 'category', 'rating', 'comment')

    def to_representation(self, instance):
        data = super().to_representation(instance)
        for name in self.KIND_FIELDS:
            if name in instance._fields:
                data[name] = getattr(instance, name)
        if 'map_point_id' in instance._fields:
            data['map_point_id'] = str(instance.map_point_id)
        return data


class ScoredContentSerializer(serializers.Serializer):
    """A ranked feed entry: the content item plus its score."""

    def to_representation(self, instance):
        data = ContentItemSerializer(instance.item).data
        data['score'] = instance.score
        return data
