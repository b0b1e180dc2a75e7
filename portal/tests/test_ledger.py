import json
import re

import pytest
from django.urls import reverse

from portal.models import LedgerAnchor, Wallet
from portal.services import wallets
from portal.services.crypto import decrypt_text
from portal.services.ledger import MNEMONIC_WORDS, MockLedger, get_ledger

pytestmark = pytest.mark.django_db

TX_RE = re.compile(r'^algo-tx-\d+-[0-9a-z]{9}$')
ADDRESS_RE = re.compile(r'^ALGO[0-9A-Z]{25}TESTNET$')


def test_store_and_verify_hash():
    ledger = get_ledger()
    result = ledger.store_hash('0x' + 'ab' * 32, 'ALGOXYZ')
    assert result['success'] is True
    assert TX_RE.match(result['transactionId'])
    assert LedgerAnchor.objects.get(tx_id=result['transactionId']).address == 'ALGOXYZ'

    ok = ledger.verify_hash(result['transactionId'], '0x' + 'ab' * 32)
    assert ok['success'] is True and ok['verified'] is True
    assert ok['timestamp'] == result['timestamp']

    assert ledger.verify_hash(result['transactionId'], '0x' + 'cd' * 32)['verified'] is False
    assert ledger.verify_hash('algo-tx-1-unknown00', '0x00') == {'success': True, 'verified': False, 'timestamp': None}


def test_transaction_ids_are_unique():
    ledger = MockLedger()
    assert len({ledger.new_tx_id() for _ in range(50)}) == 50
    assert ledger.new_tx_id('funding-tx').startswith('funding-tx-')


def test_unknown_backend(settings):
    from django.core.exceptions import ImproperlyConfigured
    settings.LEDGER_BACKEND = 'mainnet'
    with pytest.raises(ImproperlyConfigured):
        get_ledger()


def test_wallet_keys_shape():
    keys = MockLedger().create_wallet()
    assert ADDRESS_RE.match(keys.address)
    assert len(keys.private_key) == 64
    words = keys.mnemonic.split()
    assert len(words) == 12
    assert set(words) <= set(MNEMONIC_WORDS)


def test_wallet_lifecycle(patient, patient_client):
    assert patient_client.get(reverse('wallet_view')).status_code == 404

    r = patient_client.post(reverse('create_wallet_view'))
    assert r.status_code == 201
    assert ADDRESS_RE.match(r.data['data']['address'])
    assert r.data['data']['balance'] == 10_000_000
    assert r.data['data']['network'] == 'TestNet'
    assert 'token' not in r.data['data']['config']
    assert r.data['funding']['success'] is True
    assert r.data['funding']['amount'] == 10
    mnemonic = r.data['mnemonic']

    wallet = Wallet.objects.get(user=patient)
    # only the encrypted phrase is persisted
    assert mnemonic not in wallet.mnemonic_encrypted
    assert decrypt_text(wallet.mnemonic_encrypted) == mnemonic
    assert r.data['privateKey'] not in json.dumps(list(Wallet.objects.values()), default=str)

    r = patient_client.post(reverse('create_wallet_view'))
    assert r.status_code == 409
    assert r.data['error']['code'] == 'wallet-exists'

    r = patient_client.get(reverse('wallet_view'))
    assert r.data['data']['address'] == wallet.address
    assert 'privateKey' not in r.data


def test_concurrent_wallet_create_is_a_conflict(monkeypatch, patient, patient_client):
    assert patient_client.post(reverse('create_wallet_view')).status_code == 201
    # the other request passed the existence check before this one committed
    monkeypatch.setattr(wallets, '_has_wallet', lambda user: False)

    r = patient_client.post(reverse('create_wallet_view'))
    assert r.status_code == 409
    assert r.data['error']['code'] == 'wallet-exists'
    assert Wallet.objects.filter(user=patient).count() == 1


def test_wallet_backup(patient_client):
    mnemonic = patient_client.post(reverse('create_wallet_view')).data['mnemonic']
    r = patient_client.get(reverse('wallet_backup_view'))
    assert r.status_code == 200
    assert r['Content-Type'] == 'application/json'
    assert re.match(r'^attachment; filename="trustrx-wallet-backup-\d+\.json"$', r['Content-Disposition'])
    backup = json.loads(r.content)
    assert backup['mnemonic'] == mnemonic
    assert backup['platform'] == 'TrustRx'
    assert backup['network'] == 'TestNet'


def test_uploads_anchor_with_wallet_address(patient, patient_client):
    from django.core.files.uploadedfile import SimpleUploadedFile
    address = patient_client.post(reverse('create_wallet_view')).data['data']['address']
    r = patient_client.post(reverse('upload_record_view'),
                            {'file': SimpleUploadedFile('a.pdf', b'%PDF-1.4', content_type='application/pdf')},
                            format='multipart')
    tx = r.data['data']['blockchainVerification']['transactionId']
    assert LedgerAnchor.objects.get(tx_id=tx).address == address
