"""Fernet encryption for provider tokens and credential configs stored at rest"""

import base64
import hashlib
import json
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from ..config import SECRET_KEY

# Fernet needs 32 url-safe base64 bytes; derive them from SECRET_KEY
cipher_suite = Fernet(base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest()))


def encrypt_token(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    return cipher_suite.encrypt(token.encode()).decode()


def decrypt_token(encrypted_token: Optional[str]) -> Optional[str]:
    """Decrypt a stored token; None when missing or unreadable"""
    if not encrypted_token:
        return None
    try:
        return cipher_suite.decrypt(encrypted_token.encode()).decode()
    except InvalidToken:
        return None


def encrypt_config(config: dict) -> str:
    return cipher_suite.encrypt(json.dumps(config).encode()).decode()


def decrypt_config(encrypted_config: Optional[str]) -> dict:
    if not encrypted_config:
        return {}
    decrypted = decrypt_token(encrypted_config)
    return json.loads(decrypted) if decrypted else {}
