import json
from typing import Tuple

from django.db import IntegrityError, transaction
from django.utils import timezone

from portal.exceptions import PortalError
from portal.models import Wallet
from portal.services.crypto import decrypt_text, encrypt_text
from portal.services.ledger import get_ledger, WalletKeys


def _has_wallet(user) -> bool:
    return Wallet.objects.filter(user=user).exists()


def _wallet_exists() -> PortalError:
    return PortalError('wallet-exists', 'A wallet already exists for this account.', status_code=409)


@transaction.atomic
def create_wallet(user) -> Tuple[Wallet, WalletKeys, dict]:
    """Create and fund the user's wallet.  The private key is returned once and never stored."""
    if _has_wallet(user):
        raise _wallet_exists()
    ledger = get_ledger()
    keys = ledger.create_wallet()
    try:
        with transaction.atomic():
            wallet = Wallet.objects.create(
                user=user,
                address=keys.address,
                mnemonic_encrypted=encrypt_text(keys.mnemonic),
            )
    except IntegrityError:
        # a concurrent request created it first
        raise _wallet_exists()
    funding = ledger.auto_fund(keys.address)
    if funding.get('success'):
        wallet.funded_amount = funding['amount']
        wallet.funding_tx_id = funding['txId']
        wallet.save(update_fields=['funded_amount', 'funding_tx_id'])
    return wallet, keys, funding


def wallet_summary(wallet: Wallet) -> dict:
    ledger = get_ledger()
    return {
        'address': wallet.address,
        'balance': ledger.balance(wallet.address),
        'fundedAmount': wallet.funded_amount,
        'fundingTxId': wallet.funding_tx_id,
        'createdAt': wallet.created_at.isoformat(),
        'network': ledger.network,
        'config': ledger.config.public(),
    }


def wallet_backup(wallet: Wallet) -> Tuple[str, str]:
    """Return (filename, json text) for the downloadable backup."""
    backup = {
        'address': wallet.address,
        'mnemonic': decrypt_text(wallet.mnemonic_encrypted),
        'createdAt': wallet.created_at.isoformat(),
        'platform': 'TrustRx',
        'network': 'TestNet',
    }
    filename = f"trustrx-wallet-backup-{int(timezone.now().timestamp() * 1000)}.json"
    return filename, json.dumps(backup, indent=2)
