"""Symmetric encryption for TOTP secrets at rest.

AES-256-CBC with PKCS7 padding. Every call uses a fresh random IV, stored
alongside the ciphertext as ``base64(iv):base64(ciphertext)``. The key is the
SHA-256 digest of the configured MFA_ENCRYPTION_KEY.
"""

import base64
import binascii
import os
from hashlib import sha256

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from src.careteam.core.config import get_settings
from src.careteam.core.exceptions import ConfigurationError

IV_SIZE = 16
_SEPARATOR = ":"


def _derive_key(secret: str | None = None) -> bytes:
    if secret is None:
        secret = get_settings().mfa_encryption_key
    return sha256(secret.encode()).digest()


def encrypt_secret(plaintext: str, key: str | None = None) -> str:
    """Encrypt `plaintext`; two calls with the same input never match."""
    iv = os.urandom(IV_SIZE)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode()) + padder.finalize()

    encryptor = Cipher(algorithms.AES(_derive_key(key)), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    return (
        base64.b64encode(iv).decode()
        + _SEPARATOR
        + base64.b64encode(ciphertext).decode()
    )


def decrypt_secret(token: str, key: str | None = None) -> str:
    """Decrypt a value produced by encrypt_secret.

    Raises:
        ConfigurationError: The value is malformed or was encrypted with a
            different key.
    """
    try:
        iv_b64, ciphertext_b64 = token.split(_SEPARATOR, 1)
        iv = base64.b64decode(iv_b64, validate=True)
        ciphertext = base64.b64decode(ciphertext_b64, validate=True)
        if len(iv) != IV_SIZE:
            raise ValueError("bad IV length")

        decryptor = Cipher(algorithms.AES(_derive_key(key)), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()

        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
        return plaintext.decode()
    except (ValueError, binascii.Error) as e:
        raise ConfigurationError("Stored secret cannot be decrypted") from e
