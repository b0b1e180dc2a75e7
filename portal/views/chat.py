from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from portal.serializers.chat import ChatMessageSerializer
from portal.services import chat


@api_view(['POST'])
@permission_classes([AllowAny])
def chat_view(request):
    """Support chat.  Always answers 200; provider failures use the canned replies."""
    s = ChatMessageSerializer(data=request.data)
    message = s.validated_data['message'] if s.is_valid() else ''
    response, source = chat.reply(message)
    return Response({'ok': True, 'response': response, 'source': source})

chat_view.cls.throttle_scope = 'chat'
