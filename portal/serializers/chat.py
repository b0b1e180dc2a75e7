from rest_framework import serializers

MAX_MESSAGE_LENGTH = 2000


class ChatMessageSerializer(serializers.Serializer):
    message = serializers.CharField(required=False, allow_blank=True, default='')
    type = serializers.CharField(required=False, allow_blank=True, default='support', max_length=32)

    def validate_message(self, v):
        return v.strip()[:MAX_MESSAGE_LENGTH]
