"""
Reversible encryption for stored provider API keys.

Keys are wrapped with AES-256-CBC and stored as ``<iv hex>:<ciphertext hex>``.
"""

import hashlib
import logging
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from app.core.config import get_settings
from app.core.exceptions import DecryptionError

settings = get_settings()

logger = logging.getLogger(__name__)

IV_LENGTH = 16


def _derive_key(raw_key: str) -> bytes:
    """
    Build the 32-byte AES key from the configured value.

    A 64 character value is read as hex; anything else is right-padded with
    ``0`` and truncated to 32 bytes.
    """
    if len(raw_key) == 64:
        try:
            return bytes.fromhex(raw_key)
        except ValueError:
            pass
    return raw_key.encode("utf-8").ljust(32, b"0")[:32]


def _cipher(iv: bytes) -> Cipher:
    return Cipher(algorithms.AES(_derive_key(settings.encryption_key)), modes.CBC(iv))


def encrypt(text: str) -> str:
    """
    Encrypt text using AES-256-CBC with a random IV.

    Args:
        text: Plain text to encrypt

    Returns:
        ``iv:ciphertext`` with both parts hex encoded
    """
    iv = os.urandom(IV_LENGTH)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(text.encode("utf-8")) + padder.finalize()

    encryptor = _cipher(iv).encryptor()
    encrypted = encryptor.update(padded) + encryptor.finalize()
    return iv.hex() + ":" + encrypted.hex()


def decrypt(text: str) -> str:
    """
    Decrypt a value produced by :func:`encrypt`.

    Raises:
        DecryptionError: If the value is malformed or cannot be decrypted
    """
    try:
        if not text or not isinstance(text, str):
            raise ValueError("Invalid encrypted text")

        parts = text.split(":")
        if len(parts) < 2:
            raise ValueError("Malformed encrypted text")

        iv_hex = parts.pop(0)
        if len(iv_hex) != IV_LENGTH * 2:
            raise ValueError("Invalid IV length")

        iv = bytes.fromhex(iv_hex)
        encrypted = bytes.fromhex(":".join(parts))

        decryptor = _cipher(iv).decryptor()
        padded = decryptor.update(encrypted) + decryptor.finalize()

        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        return (unpadder.update(padded) + unpadder.finalize()).decode("utf-8")

    except Exception as e:
        logger.error(f"Decryption failed: {e}")
        raise DecryptionError("Failed to decrypt data") from e


def mask_api_key(api_key: str) -> str:
    """Mask an API key for display, e.g. ``sk-proj-...abcd``."""
    if not api_key:
        return ""
    return f"{api_key[:8]}...{api_key[-4:]}"


def hash_api_key(api_key: str) -> str:
    """Short SHA-256 digest of a key, safe to use inside cache keys."""
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]
