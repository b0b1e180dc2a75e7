"""
Encrypted medical record storage.

Uploads are hashed (SHA-256 over the plaintext), encrypted with the
server key and anchored on the ledger.  Downloads decrypt and re-hash so
a tampered blob is never handed back to the owner.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

from django.conf import settings
from django.core.files.base import ContentFile
from django.db import transaction
from django.db.models import Q, Sum
from django.utils.dateparse import parse_datetime

from portal.exceptions import NotFoundError, PortalError
from portal.models import MedicalRecord
from portal.services.audit import log_action
from portal.services.crypto import DecryptionError, decrypt_bytes, encrypt_bytes, sha256_hex
from portal.services.ledger import get_ledger

logger = logging.getLogger(__name__)

ALL_CATEGORIES = 'all'


def serialize_record(r: MedicalRecord, *, request=None) -> dict:
    url = f"/api/records/{r.id}/download"
    if request is not None:
        url = request.build_absolute_uri(url)
    return {
        'id': r.id,
        'fileName': r.file_name,
        'fileType': r.file_type,
        'fileSize': r.file_size,
        'uploadDate': r.upload_date.isoformat(),
        'category': r.category,
        'description': r.description,
        'url': url,
        'blockchainVerification': {
            'transactionId': r.transaction_id or None,
            'hash': r.hash_hex,
            'timestamp': r.verified_at.isoformat() if r.verified_at else None,
            'verified': r.verified,
        },
    }


def quota_for(user) -> Optional[int]:
    return settings.STORAGE_QUOTAS.get(user.subscription_tier, settings.STORAGE_QUOTAS['free'])


def used_bytes(user) -> int:
    return MedicalRecord.objects.filter(owner=user).aggregate(total=Sum('file_size'))['total'] or 0


def storage_usage(user) -> dict:
    qs = MedicalRecord.objects.filter(owner=user)
    return {
        'usedBytes': used_bytes(user),
        'quotaBytes': quota_for(user),
        'tier': user.subscription_tier,
        'recordCount': qs.count(),
    }


def validate_upload(upload) -> None:
    content_type = getattr(upload, 'content_type', '') or ''
    if content_type not in settings.RECORDS_ALLOWED_TYPES:
        raise PortalError('invalid-file-type', 'Only PDF, JPG and PNG files are supported.')
    if upload.size > settings.RECORDS_MAX_BYTES:
        limit_mb = settings.RECORDS_MAX_BYTES // (1024 * 1024)
        raise PortalError('file-too-large', f"Files must be {limit_mb}MB or smaller.")


def upload_record(user, upload, *, category: str = 'labResults', description: str = '', ip=None) -> MedicalRecord:
    validate_upload(upload)
    quota = quota_for(user)
    if quota is not None and used_bytes(user) + upload.size > quota:
        raise PortalError('storage-quota-exceeded',
                          'Storage limit reached for your plan. Upgrade your plan for more storage.',
                          status_code=413)

    data = upload.read()
    digest = sha256_hex(data)
    record = MedicalRecord(
        owner=user,
        file_name=os.path.basename(upload.name)[:255],
        file_type=upload.content_type,
        file_size=len(data),
        category=category,
        description=description,
        sha256=digest,
    )
    record.file.save(upload.name, ContentFile(encrypt_bytes(data)), save=False)

    try:
        with transaction.atomic():
            _anchor_and_save(user, record)
            log_action(user=user, action='record_upload', object_type='record', object_id=record.id,
                       detail={'size': record.file_size, 'type': record.file_type}, ip=ip)
    except Exception:
        record.file.storage.delete(record.file.name)
        raise
    return record


def _anchor_and_save(user, record: MedicalRecord) -> None:
    wallet = getattr(user, 'wallet', None)
    result = get_ledger().store_hash(record.hash_hex, wallet.address if wallet else '')
    if result.get('success'):
        record.transaction_id = result['transactionId']
        record.verified = True
        record.verified_at = parse_datetime(result['timestamp'])
    else:
        logger.warning('record %s stored without ledger anchor: %s', record.file_name, result.get('error'))
    record.save()


def list_records(user, *, q: Optional[str] = None, category: Optional[str] = None):
    qs = MedicalRecord.objects.filter(owner=user)
    if q:
        qs = qs.filter(Q(file_name__icontains=q) | Q(description__icontains=q))
    if category and category != ALL_CATEGORIES:
        qs = qs.filter(category=category)
    return qs.order_by('-created_at', '-id')


def get_record(user, record_id: int) -> MedicalRecord:
    record = MedicalRecord.objects.filter(id=record_id, owner=user).first()
    if record is None:
        raise NotFoundError('record-not-found', 'Record not found.')
    return record


@transaction.atomic
def delete_record(user, record: MedicalRecord, *, ip=None) -> None:
    record_id = record.id
    name = record.file.name
    record.delete()
    transaction.on_commit(lambda: record.file.storage.delete(name))
    log_action(user=user, action='record_delete', object_type='record', object_id=record_id, ip=ip)


def read_plaintext(record: MedicalRecord) -> bytes:
    """Decrypt the stored blob and confirm it still matches the recorded hash."""
    with record.file.open('rb') as fh:
        blob = fh.read()
    try:
        data = decrypt_bytes(blob)
    except DecryptionError:
        logger.error('record %s failed to decrypt', record.id)
        raise PortalError('integrity-error', 'This file failed its integrity check.', status_code=409)
    if sha256_hex(data) != record.sha256:
        logger.error('record %s hash mismatch', record.id)
        raise PortalError('integrity-error', 'This file failed its integrity check.', status_code=409)
    return data


def verify_record(record: MedicalRecord) -> dict:
    if not record.transaction_id:
        return {'verified': False, 'timestamp': None, 'transactionId': None, 'hash': record.hash_hex}
    result = get_ledger().verify_hash(record.transaction_id, record.hash_hex)
    verified = bool(result.get('success') and result.get('verified'))
    if verified != record.verified:
        record.verified = verified
        record.save(update_fields=['verified'])
    return {
        'verified': verified,
        'timestamp': result.get('timestamp'),
        'transactionId': record.transaction_id,
        'hash': record.hash_hex,
    }
