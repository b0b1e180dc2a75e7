"""
Record notarisation on Algorand TestNet.

Only a mock backend exists: it hands out realistic-looking transaction
ids and wallet keys and keeps the anchored hashes in ``LedgerAnchor`` so
that verification compares against what was actually stored.  Every
operation reports failure in its result instead of raising.
"""
from __future__ import annotations

import logging
import secrets
import string
from dataclasses import asdict, dataclass
from typing import Optional

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError, transaction
from django.utils import timezone

from portal.models import LedgerAnchor, Wallet

logger = logging.getLogger(__name__)

BASE36 = string.digits + string.ascii_lowercase
MICROALGOS_PER_ALGO = 1_000_000
FUNDING_AMOUNT_ALGO = 10

MNEMONIC_WORDS = [
    'abandon', 'ability', 'able', 'about', 'above', 'absent', 'absorb', 'abstract', 'absurd', 'abuse',
    'access', 'accident', 'account', 'accuse', 'achieve', 'acid', 'acoustic', 'acquire', 'across', 'act',
    'action', 'actor', 'actress', 'actual', 'adapt', 'add', 'addict', 'address', 'adjust', 'admit',
    'adult', 'advance', 'advice', 'aerobic', 'affair', 'afford', 'afraid', 'again', 'agent', 'agree',
    'ahead', 'aim', 'air', 'airport', 'aisle', 'alarm', 'album', 'alcohol', 'alert', 'alien',
]


@dataclass
class LedgerConfig:
    server: str
    port: int
    token: str
    indexer: str

    @classmethod
    def from_settings(cls) -> 'LedgerConfig':
        return cls(
            server=settings.ALGORAND_SERVER,
            port=settings.ALGORAND_PORT,
            token=settings.ALGORAND_TOKEN,
            indexer=settings.ALGORAND_INDEXER,
        )

    def public(self) -> dict:
        data = asdict(self)
        data.pop('token')
        return data


@dataclass
class WalletKeys:
    address: str
    private_key: str
    mnemonic: str


def _base36(n: int) -> str:
    return ''.join(secrets.choice(BASE36) for _ in range(n))


def _now_ms() -> int:
    return int(timezone.now().timestamp() * 1000)


class MockLedger:
    """Simulated Algorand client backed by the local database."""

    network = 'TestNet'

    def __init__(self, config: Optional[LedgerConfig] = None):
        self.config = config or LedgerConfig.from_settings()

    def new_tx_id(self, prefix: str = 'algo-tx') -> str:
        return f"{prefix}-{_now_ms()}-{_base36(9)}"

    def store_hash(self, hash_hex: str, address: str = '') -> dict:
        logger.info('anchoring hash %s on %s', hash_hex[:18], self.config.server)
        # own savepoint; callers are usually inside a transaction already
        try:
            with transaction.atomic():
                anchor = LedgerAnchor.objects.create(
                    tx_id=self.new_tx_id(),
                    hash=hash_hex,
                    address=address,
                    confirmed_round=LedgerAnchor.objects.count() + 1001,
                )
        except DatabaseError as e:
            logger.error('ledger store failed: %s', e)
            return {'success': False, 'error': str(e)}
        return {'success': True, 'transactionId': anchor.tx_id, 'timestamp': anchor.created_at.isoformat()}

    def verify_hash(self, transaction_id: str, expected_hash: str) -> dict:
        try:
            with transaction.atomic():
                anchor = LedgerAnchor.objects.filter(tx_id=transaction_id).first()
        except DatabaseError as e:
            logger.error('ledger verify failed: %s', e)
            return {'success': False, 'error': str(e)}
        if anchor is None:
            return {'success': True, 'verified': False, 'timestamp': None}
        verified = secrets.compare_digest(anchor.hash, expected_hash)
        if not verified:
            logger.warning('hash mismatch for %s', transaction_id)
        return {'success': True, 'verified': verified, 'timestamp': anchor.created_at.isoformat()}

    def create_wallet(self) -> WalletKeys:
        return WalletKeys(
            address=f"ALGO{_base36(25).upper()}TESTNET",
            private_key=secrets.token_hex(32),
            mnemonic=' '.join(secrets.choice(MNEMONIC_WORDS) for _ in range(12)),
        )

    def auto_fund(self, address: str) -> dict:
        logger.info('funding wallet %s with %d test ALGO', address, FUNDING_AMOUNT_ALGO)
        return {'success': True, 'amount': FUNDING_AMOUNT_ALGO, 'txId': self.new_tx_id('funding-tx')}

    def balance(self, address: str) -> int:
        """Balance in microAlgos."""
        try:
            with transaction.atomic():
                wallet = Wallet.objects.filter(address=address).first()
        except DatabaseError as e:
            logger.error('balance lookup failed: %s', e)
            return 0
        if wallet is None:
            return 0
        return wallet.funded_amount * MICROALGOS_PER_ALGO


_BACKENDS = {
    'mock': MockLedger,
}


def get_ledger() -> MockLedger:
    try:
        backend = _BACKENDS[settings.LEDGER_BACKEND]
    except KeyError:
        raise ImproperlyConfigured(f"Unknown LEDGER_BACKEND {settings.LEDGER_BACKEND!r}")
    return backend()
