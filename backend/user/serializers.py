from rest_framework import serializers


class CallerIdentitySerializer(serializers.Serializer):
    user_id = serializers.CharField()
    username = serializers.CharField()
    account_created_at = serializers.DateTimeField()
    is_verified = serializers.BooleanField()
    role = serializers.CharField()
    credibility_weight = serializers.FloatField()
