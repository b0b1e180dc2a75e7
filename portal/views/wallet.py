from django.http import HttpResponse
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.exceptions import NotFoundError
from portal.models import Wallet
from portal.services.audit import client_ip, log_action
from portal.services.wallets import create_wallet, wallet_backup, wallet_summary


def _own_wallet(user) -> Wallet:
    wallet = Wallet.objects.filter(user=user).first()
    if wallet is None:
        raise NotFoundError('wallet-not-found', 'No wallet has been created for this account.')
    return wallet


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def wallet_view(request):
    return Response({'ok': True, 'data': wallet_summary(_own_wallet(request.user))})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def create_wallet_view(request):
    wallet, keys, funding = create_wallet(request.user)
    log_action(user=request.user, action='wallet_create', object_type='wallet', object_id=wallet.id,
               detail={'address': wallet.address}, ip=client_ip(request))
    return Response({
        'ok': True,
        'data': wallet_summary(wallet),
        # shown once; only the encrypted mnemonic is kept
        'privateKey': keys.private_key,
        'mnemonic': keys.mnemonic,
        'funding': funding,
    }, status=201)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def wallet_backup_view(request):
    filename, body = wallet_backup(_own_wallet(request.user))
    log_action(user=request.user, action='wallet_backup', object_type='wallet', ip=client_ip(request))
    resp = HttpResponse(body, content_type='application/json')
    resp['Content-Disposition'] = f'attachment; filename="{filename}"'
    return resp
