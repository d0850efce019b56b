"""Token encryption for third-party OAuth credentials stored at rest"""

import base64
import hashlib

from cryptography.fernet import Fernet

from .config import SECRET_KEY

# Fernet needs a 32-byte urlsafe key; derive it from SECRET_KEY
cipher_suite = Fernet(base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest()))


def encrypt_token(token: str) -> str:
    """Encrypt a token for storage"""
    return cipher_suite.encrypt(token.encode()).decode()


def decrypt_token(encrypted_token: str) -> str:
    """Decrypt a stored token"""
    return cipher_suite.decrypt(encrypted_token.encode()).decode()
