"""
Utility functions package for AI Job Master.

This package provides:
- AES encryption of stored provider keys
- Sanitization of user input before it reaches a prompt

Usage:
    from app.utils.encryption import encrypt, decrypt, mask_api_key
    from app.utils.sanitization import sanitize_api_inputs, sanitize_email
"""

from .encryption import (
    encrypt,
    decrypt,
    mask_api_key,
    hash_api_key
)

from .sanitization import (
    sanitize_prompt_input,
    sanitize_name,
    sanitize_email,
    sanitize_url,
    sanitize_api_inputs
)

__all__ = [
    # Encryption
    "encrypt",
    "decrypt",
    "mask_api_key",
    "hash_api_key",

    # Sanitization
    "sanitize_prompt_input",
    "sanitize_name",
    "sanitize_email",
    "sanitize_url",
    "sanitize_api_inputs",
]
