"""
At-rest encryption for uploaded records and wallet secrets.

AES-256-GCM under the server key ``RECORDS_ENCRYPTION_KEY``.  A blob is
``nonce (12) || tag (16) || ciphertext``.
"""
import base64
import hashlib

from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes
from django.conf import settings

NONCE_SIZE = 12
TAG_SIZE = 16


class DecryptionError(Exception):
    pass


def _key() -> bytes:
    key = bytes.fromhex(settings.RECORDS_ENCRYPTION_KEY)
    if len(key) != 32:
        raise ValueError('RECORDS_ENCRYPTION_KEY must be 32 bytes hex encoded')
    return key


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def encrypt_bytes(data: bytes) -> bytes:
    nonce = get_random_bytes(NONCE_SIZE)
    cipher = AES.new(_key(), AES.MODE_GCM, nonce=nonce)
    ciphertext, tag = cipher.encrypt_and_digest(data)
    return nonce + tag + ciphertext


def decrypt_bytes(blob: bytes) -> bytes:
    if len(blob) < NONCE_SIZE + TAG_SIZE:
        raise DecryptionError('ciphertext too short')
    nonce, tag, ciphertext = blob[:NONCE_SIZE], blob[NONCE_SIZE:NONCE_SIZE + TAG_SIZE], blob[NONCE_SIZE + TAG_SIZE:]
    cipher = AES.new(_key(), AES.MODE_GCM, nonce=nonce)
    try:
        return cipher.decrypt_and_verify(ciphertext, tag)
    except ValueError as e:
        raise DecryptionError(str(e)) from e


def encrypt_text(text: str) -> str:
    return base64.b64encode(encrypt_bytes(text.encode('utf-8'))).decode('ascii')


def decrypt_text(token: str) -> str:
    return decrypt_bytes(base64.b64decode(token)).decode('utf-8')
