"""TOTP secrets, backup codes and QR rendering."""

import base64
import secrets
from dataclasses import dataclass
from hashlib import sha256
from io import BytesIO

import pyotp
import qrcode
import qrcode.image.svg

DEFAULT_BACKUP_CODE_COUNT = 10


@dataclass(frozen=True)
class TOTPSecret:
    base32: str
    provisioning_uri: str


def generate_totp_secret(label: str, issuer: str) -> TOTPSecret:
    """Generate a random base32 secret and its otpauth:// provisioning URI."""
    secret = pyotp.random_base32()
    uri = pyotp.TOTP(secret).provisioning_uri(name=label, issuer_name=issuer)
    return TOTPSecret(base32=secret, provisioning_uri=uri)


def verify_totp(secret: str, code: str, window: int) -> bool:
    """Check `code` against `secret`, tolerating `window` steps of drift each way."""
    code = code.strip().replace(" ", "")
    if not code.isdigit():
        return False
    return pyotp.TOTP(secret).verify(code, valid_window=window)


def generate_backup_codes(count: int = DEFAULT_BACKUP_CODE_COUNT) -> list[str]:
    """Generate `count` distinct single-use codes, 8 upper-case hex characters each."""
    codes: list[str] = []
    while len(codes) < count:
        code = secrets.token_hex(4).upper()
        if code not in codes:
            codes.append(code)
    return codes


def normalize_backup_code(code: str) -> str:
    return code.strip().upper().replace("-", "").replace(" ", "")


def hash_backup_code(code: str) -> str:
    """One-way hash of a backup code; only hashes are ever stored."""
    return sha256(normalize_backup_code(code).encode()).hexdigest()


def qr_code_data_url(uri: str) -> str:
    """Render `uri` as an SVG QR code and return it as a data: URL."""
    image = qrcode.make(uri, image_factory=qrcode.image.svg.SvgPathImage)
    buffer = BytesIO()
    image.save(buffer)
    encoded = base64.b64encode(buffer.getvalue()).decode()
    return f"data:image/svg+xml;base64,{encoded}"
