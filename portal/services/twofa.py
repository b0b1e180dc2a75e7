import base64
import io

import pyotp
import qrcode
import qrcode.image.svg
from django.conf import settings


def new_secret() -> str:
    return pyotp.random_base32()


def provisioning_uri(secret: str, account: str) -> str:
    return pyotp.TOTP(secret).provisioning_uri(name=account, issuer_name=settings.TOTP_ISSUER)


def qr_data_url(uri: str) -> str:
    img = qrcode.make(uri, image_factory=qrcode.image.svg.SvgPathImage)
    buf = io.BytesIO()
    img.save(buf)
    return 'data:image/svg+xml;base64,' + base64.b64encode(buf.getvalue()).decode('ascii')


def verify_token(secret: str, token: str) -> bool:
    if not secret or not token:
        return False
    # accept one step of clock drift either side
    return pyotp.TOTP(secret).verify(str(token).strip(), valid_window=1)
