# authapp/core/secret.py
"""Canonicalización y validación del secreto compartido (base32, RFC 4648).

La forma canónica es mayúscula, sin espacios y sin padding ``=``. La
normalización se hace una sola vez, al entrar el secreto al sistema; después
solo circula el ``Secret`` canónico.
"""
import base64
import binascii
import secrets
from typing import NewType

from authapp.core.errors import InvalidSecretFormat

Secret = NewType("Secret", str)

BASE32_ALPHABET = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZ234567")
DEFAULT_SECRET_BYTES = 20   # 160 bits, tamaño recomendado para HMAC-SHA1

# largos (mod 8) que ningún bloque base32 puede producir
_IMPOSSIBLE_LENGTHS = {1, 3, 6}


def _pad(value: str) -> str:
    missing = len(value) % 8
    return value + "=" * (8 - missing) if missing else value


def decode(secret: str) -> bytes:
    """Decodifica un secreto canónico; el padding es opcional."""
    if not isinstance(secret, str) or not secret:
        raise InvalidSecretFormat()
    body = secret.rstrip("=")
    if not body or any(ch not in BASE32_ALPHABET for ch in body):
        raise InvalidSecretFormat()
    if len(body) % 8 in _IMPOSSIBLE_LENGTHS:
        raise InvalidSecretFormat()
    try:
        raw = base64.b32decode(_pad(body))
    except binascii.Error as e:
        raise InvalidSecretFormat() from e
    if not raw:
        raise InvalidSecretFormat()
    return raw


def normalize(raw: str) -> Secret:
    """
    Quita todo whitespace, pasa a mayúsculas y valida el alfabeto ``A-Z2-7``.

    No trunca ni reemplaza caracteres: cualquier cosa fuera del alfabeto es
    ``InvalidSecretFormat``.
    """
    if not isinstance(raw, str):
        raise InvalidSecretFormat()
    cleaned = "".join(raw.split())
    # solo ASCII: "ß".upper() == "SS" colaría letras válidas
    if not cleaned.isascii():
        raise InvalidSecretFormat()
    cleaned = cleaned.upper().rstrip("=")
    decode(cleaned)
    return Secret(cleaned)


def encode(raw: bytes) -> Secret:
    if not raw:
        raise InvalidSecretFormat("No se puede codificar un secreto vacío")
    return Secret(base64.b32encode(raw).decode("ascii").rstrip("="))


def generate_secret(num_bytes: int = DEFAULT_SECRET_BYTES) -> Secret:
    # secrets usa el CSPRNG del sistema; si falla, la excepción sube tal cual
    return encode(secrets.token_bytes(num_bytes))
