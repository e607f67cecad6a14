"""Security utilities - tokens, encryption and TOTP.

Re-exports all security-related functions for convenience.
"""

from src.careteam.core.security.crypto import (
    InvalidAccessTokenError,
    create_access_token,
    decode_token,
    generate_invitation_token,
    hash_token,
    principal_from_token,
)
from src.careteam.core.security.encryption import decrypt_secret, encrypt_secret
from src.careteam.core.security.principal import Principal
from src.careteam.core.security.totp import (
    DEFAULT_BACKUP_CODE_COUNT,
    TOTPSecret,
    generate_backup_codes,
    generate_totp_secret,
    hash_backup_code,
    normalize_backup_code,
    qr_code_data_url,
    verify_totp,
)

__all__ = [
    # Tokens
    "InvalidAccessTokenError",
    "create_access_token",
    "decode_token",
    "generate_invitation_token",
    "hash_token",
    "principal_from_token",
    # Principal
    "Principal",
    # Encryption
    "decrypt_secret",
    "encrypt_secret",
    # TOTP
    "DEFAULT_BACKUP_CODE_COUNT",
    "TOTPSecret",
    "generate_backup_codes",
    "generate_totp_secret",
    "hash_backup_code",
    "normalize_backup_code",
    "qr_code_data_url",
    "verify_totp",
]
