from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.serializers.auth import ProfileUpdateSerializer, RoleSerializer, TwoFactorTokenSerializer
from portal.services import accounts, twofa
from portal.services.audit import client_ip, log_action


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def profile_view(request):
    return Response({'ok': True, 'data': accounts.user_profile(request.user)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def profile_update_view(request):
    s = ProfileUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    user = accounts.update_profile(
        request.user,
        display_name=v.get('displayName'),
        phone=v.get('phone'),
        photo_url=v.get('photoURL'),
    )
    return Response({'ok': True, 'data': accounts.user_profile(user)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def update_role_view(request):
    s = RoleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    before = request.user.role
    user = accounts.update_role(request.user, s.validated_data['role'])
    log_action(user=user, action='role_change', object_type='user', object_id=user.id,
               detail={'from': before, 'to': user.role}, ip=client_ip(request))
    return Response({'ok': True, 'role': user.role, 'data': accounts.user_profile(user)})


# ---------------------------------------------------------------------
# Two-factor authentication
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def twofa_setup_view(request):
    return Response({'ok': True, **accounts.setup_2fa(request.user)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def twofa_enable_view(request):
    s = TwoFactorTokenSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    accounts.enable_2fa(request.user, s.validated_data['token'])
    log_action(user=request.user, action='2fa_enable', object_type='user', object_id=request.user.id,
               ip=client_ip(request))
    return Response({'ok': True, 'twoFactorEnabled': True})

twofa_enable_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def twofa_verify_view(request):
    s = TwoFactorTokenSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = request.user
    valid = bool(user.totp_secret) and twofa.verify_token(user.totp_secret, s.validated_data['token'])
    return Response({'ok': True, 'valid': valid})

twofa_verify_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def twofa_disable_view(request):
    s = TwoFactorTokenSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    accounts.disable_2fa(request.user, s.validated_data['token'])
    log_action(user=request.user, action='2fa_disable', object_type='user', object_id=request.user.id,
               ip=client_ip(request))
    return Response({'ok': True, 'twoFactorEnabled': False})

twofa_disable_view.cls.throttle_scope = 'login'
