# authapp/core/security.py
"""Protección en reposo: secretos TOTP cifrados y códigos de respaldo hasheados."""
from __future__ import annotations

import base64
import hashlib
import hmac
import os
from io import BytesIO

import qrcode
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from authapp.core.config import settings

NONCE_SIZE = 12  # 96-bit nonce para AES-GCM
KEY_SIZE = 32


class SecretBox:
    """AES-256-GCM para secretos + HMAC-SHA256 con clave para los códigos de respaldo."""

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise ValueError("MASTER_KEY debe tener 32 bytes (base64)")
        self._aead = AESGCM(key)
        # subclave distinta para los digests, derivada de la misma master key
        self._digest_key = hmac.new(key, b"authapp/backup-codes", hashlib.sha256).digest()

    @classmethod
    def from_settings(cls) -> "SecretBox":
        raw = settings.MASTER_KEY
        if not raw:
            raise RuntimeError("MASTER_KEY no configurada")
        return cls(base64.b64decode(raw))

    def encrypt(self, plaintext: str) -> str:
        """Devuelve base64(nonce + ciphertext)."""
        nonce = os.urandom(NONCE_SIZE)
        ct = self._aead.encrypt(nonce, plaintext.encode(), None)
        return base64.b64encode(nonce + ct).decode()

    def decrypt(self, token: str) -> str:
        raw = base64.b64decode(token)
        nonce, ct = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
        return self._aead.decrypt(nonce, ct, None).decode()

    def digest(self, value: str) -> str:
        # determinístico: permite el UPDATE ... WHERE code_hash = ? atómico
        return hmac.new(self._digest_key, value.encode(), hashlib.sha256).hexdigest()


def qr_png_base64_from_text(text: str) -> str:
    img = qrcode.make(text)          # -> PIL.Image.Image
    buf = BytesIO()
    img.save(buf, "PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")
