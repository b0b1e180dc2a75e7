import re
from pathlib import Path

import pytest
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import DatabaseError
from django.urls import reverse

from portal.models import AuditEvent, LedgerAnchor, MedicalRecord
from portal.services import records as records_svc
from portal.services.crypto import encrypt_bytes, sha256_hex
from portal.services.ledger import MockLedger
from portal.tests.conftest import auth_client, make_user

pytestmark = pytest.mark.django_db

PDF = b'%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\ntrailer\n%%EOF\n'


def upload(client, name='cbc.pdf', body=PDF, content_type='application/pdf', **fields):
    data = {'file': SimpleUploadedFile(name, body, content_type=content_type), **fields}
    return client.post(reverse('upload_record_view'), data, format='multipart')


def test_upload_encrypts_hashes_and_anchors(patient_client, patient):
    r = upload(patient_client, category='imaging', description='<i>Chest</i> x-ray')
    assert r.status_code == 201
    data = r.data['data']
    assert data['fileName'] == 'cbc.pdf'
    assert data['fileType'] == 'application/pdf'
    assert data['fileSize'] == len(PDF)
    assert data['category'] == 'imaging'
    assert data['description'] == 'Chest x-ray'
    assert data['url'].endswith(f"/api/records/{data['id']}/download")
    proof = data['blockchainVerification']
    assert proof['hash'] == '0x' + sha256_hex(PDF)
    assert proof['verified'] is True
    assert re.match(r'^algo-tx-\d+-[0-9a-z]{9}$', proof['transactionId'])
    assert proof['timestamp']

    record = MedicalRecord.objects.get(id=data['id'])
    with default_storage.open(record.file.name, 'rb') as fh:
        stored = fh.read()
    assert PDF not in stored
    assert record.file.name.endswith('.pdf.enc')
    assert LedgerAnchor.objects.get(tx_id=proof['transactionId']).hash == proof['hash']
    assert AuditEvent.objects.filter(action='record_upload', user=patient).exists()


def test_upload_survives_ledger_failure(monkeypatch, patient_client):
    LedgerAnchor.objects.create(tx_id='algo-tx-fixed', hash='0x' + '1' * 64)
    monkeypatch.setattr(MockLedger, 'new_tx_id', lambda self, prefix='algo-tx': 'algo-tx-fixed')

    r = upload(patient_client)
    assert r.status_code == 201
    proof = r.data['data']['blockchainVerification']
    assert proof['verified'] is False
    assert proof['transactionId'] is None
    record = MedicalRecord.objects.get(id=r.data['data']['id'])
    assert default_storage.exists(record.file.name)


def test_failed_upload_leaves_no_blob(monkeypatch, settings, patient):
    def broken(**kwargs):
        raise DatabaseError('audit table gone')

    monkeypatch.setattr(records_svc, 'log_action', broken)
    upload_file = SimpleUploadedFile('cbc.pdf', PDF, content_type='application/pdf')
    with pytest.raises(DatabaseError):
        records_svc.upload_record(patient, upload_file)

    assert not MedicalRecord.objects.exists()
    assert [p for p in Path(settings.MEDIA_ROOT).rglob('*') if p.is_file()] == []


def test_upload_defaults_category(patient_client):
    r = upload(patient_client, name='scan.png', body=b'\x89PNG\r\n', content_type='image/png')
    assert r.status_code == 201
    assert r.data['data']['category'] == 'labResults'


def test_upload_rejects_type(patient_client):
    r = upload(patient_client, name='notes.txt', body=b'hello', content_type='text/plain')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'invalid-file-type'
    assert not MedicalRecord.objects.exists()


def test_upload_rejects_large_files(settings, patient_client):
    settings.RECORDS_MAX_BYTES = 16
    r = upload(patient_client)
    assert r.status_code == 400
    assert r.data['error']['code'] == 'file-too-large'


def test_upload_respects_quota(settings, patient_client, patient):
    settings.STORAGE_QUOTAS = {'free': len(PDF) + 10, 'basic': None, 'premium': None, 'unlimited': None}
    assert upload(patient_client).status_code == 201
    r = upload(patient_client)
    assert r.status_code == 413
    assert r.data['error']['code'] == 'storage-quota-exceeded'

    patient.subscription_tier = 'premium'
    patient.save(update_fields=['subscription_tier'])
    assert upload(patient_client).status_code == 201


def test_list_search_and_category(patient_client):
    upload(patient_client, name='blood-panel.pdf', category='labResults', description='Annual')
    upload(patient_client, name='knee.png', body=b'\x89PNG', content_type='image/png', category='imaging')
    upload(patient_client, name='amoxicillin.pdf', category='prescriptions', description='Blood infection')

    url = reverse('list_records_view')
    r = patient_client.get(url)
    assert r.data['total'] == 3
    # newest first
    assert [d['fileName'] for d in r.data['data']] == ['amoxicillin.pdf', 'knee.png', 'blood-panel.pdf']

    r = patient_client.get(url, {'q': 'blood'})
    assert sorted(d['fileName'] for d in r.data['data']) == ['amoxicillin.pdf', 'blood-panel.pdf']

    r = patient_client.get(url, {'category': 'imaging'})
    assert [d['fileName'] for d in r.data['data']] == ['knee.png']
    assert patient_client.get(url, {'category': 'all'}).data['total'] == 3
    assert patient_client.get(url, {'category': 'nope'}).status_code == 400


def test_records_are_private(patient_client):
    record_id = upload(patient_client).data['data']['id']
    other = auth_client(make_user('other@example.com'))
    assert other.get(reverse('list_records_view')).data['total'] == 0
    assert other.get(reverse('record_detail_view', args=[record_id])).status_code == 404
    assert other.get(reverse('download_record_view', args=[record_id])).status_code == 404
    assert other.delete(reverse('record_detail_view', args=[record_id])).status_code == 404
    assert MedicalRecord.objects.filter(id=record_id).exists()


def test_download_returns_plaintext(patient_client, patient):
    record_id = upload(patient_client, name='lab results.pdf').data['data']['id']
    r = patient_client.get(reverse('download_record_view', args=[record_id]))
    assert r.status_code == 200
    assert r.content == PDF
    assert r['Content-Type'] == 'application/pdf'
    assert r['Content-Disposition'] == 'attachment; filename="lab results.pdf"'
    assert r['X-Content-SHA256'] == sha256_hex(PDF)
    assert AuditEvent.objects.filter(action='record_download', user=patient).exists()


@pytest.mark.parametrize('tampered', ['garbage', 'reencrypted'])
def test_download_refuses_tampered_file(patient_client, tampered):
    blob = b'garbage' if tampered == 'garbage' else encrypt_bytes(b'%PDF-1.4 something else')
    record_id = upload(patient_client).data['data']['id']
    record = MedicalRecord.objects.get(id=record_id)
    with open(record.file.path, 'wb') as fh:
        fh.write(blob)
    r = patient_client.get(reverse('download_record_view', args=[record_id]))
    assert r.status_code == 409
    assert r.data['error']['code'] == 'integrity-error'


def test_verify(patient_client):
    record_id = upload(patient_client).data['data']['id']
    url = reverse('verify_record_view', args=[record_id])
    r = patient_client.post(url)
    assert r.status_code == 200
    assert r.data['verified'] is True
    assert r.data['hash'] == '0x' + sha256_hex(PDF)

    record = MedicalRecord.objects.get(id=record_id)
    LedgerAnchor.objects.filter(tx_id=record.transaction_id).update(hash='0x' + '0' * 64)
    r = patient_client.post(url)
    assert r.data['verified'] is False
    record.refresh_from_db()
    assert record.verified is False


def test_delete_removes_blob(patient_client, patient, django_capture_on_commit_callbacks):
    record_id = upload(patient_client).data['data']['id']
    name = MedicalRecord.objects.get(id=record_id).file.name
    assert default_storage.exists(name)

    with django_capture_on_commit_callbacks(execute=True):
        r = patient_client.delete(reverse('record_detail_view', args=[record_id]))
    assert r.status_code == 200
    assert not MedicalRecord.objects.filter(id=record_id).exists()
    assert not default_storage.exists(name)
    assert AuditEvent.objects.filter(action='record_delete', object_id=str(record_id)).exists()


def test_storage_usage(patient_client):
    upload(patient_client)
    upload(patient_client)
    r = patient_client.get(reverse('storage_usage_view'))
    assert r.data['data']['usedBytes'] == 2 * len(PDF)
    assert r.data['data']['recordCount'] == 2
    assert r.data['data']['tier'] == 'free'
    assert r.data['data']['quotaBytes'] == 2 * 1024 ** 3
