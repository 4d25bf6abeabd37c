# authapp/core/otp.py
"""
Generación y verificación HOTP/TOTP (RFC 4226 / RFC 6238).

Todo en este módulo es puro: misma entrada, mismo código. No hay estado
global de configuración; los parámetros viajan en un ``TotpParams`` inmutable.
"""
from __future__ import annotations

import enum
import hashlib
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Union

import pyotp
from pyotp.utils import strings_equal

from authapp.core.errors import InvalidCodeFormat, InvalidConfiguration, UnsupportedParameter
from authapp.core.secret import Secret, decode

DEFAULT_DIGITS = 6
DEFAULT_STEP_SECONDS = 30
DEFAULT_WINDOW = 1
SUPPORTED_DIGITS = range(6, 9)
MAX_STEP_INDEX = 2**64 - 1   # el contador es un entero de 8 bytes

Instant = Union[datetime, int, float]


class HashAlgorithm(str, enum.Enum):
    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA512 = "SHA512"

    @property
    def digest(self) -> Callable:
        return _DIGESTS[self]

    @classmethod
    def parse(cls, value: "HashAlgorithm | str") -> "HashAlgorithm":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper().replace("-", ""))
            except ValueError:
                pass
        raise UnsupportedParameter(f"Algoritmo no soportado: {value!r}")


_DIGESTS = {
    HashAlgorithm.SHA1: hashlib.sha1,
    HashAlgorithm.SHA256: hashlib.sha256,
    HashAlgorithm.SHA512: hashlib.sha512,
}


def _check_digits(digits: int) -> int:
    if isinstance(digits, bool) or not isinstance(digits, int) or digits not in SUPPORTED_DIGITS:
        raise UnsupportedParameter(f"digits debe estar entre 6 y 8 (recibido {digits!r})")
    return digits


def _check_step(step_seconds: int) -> int:
    if isinstance(step_seconds, bool) or not isinstance(step_seconds, int) or step_seconds <= 0:
        raise InvalidConfiguration(f"step_seconds debe ser un entero positivo (recibido {step_seconds!r})")
    return step_seconds


@dataclass(frozen=True)
class TotpParams:
    """Parámetros fijos de una credencial: algoritmo, largo del código y período."""

    algorithm: HashAlgorithm = HashAlgorithm.SHA1
    digits: int = DEFAULT_DIGITS
    step_seconds: int = DEFAULT_STEP_SECONDS

    def __post_init__(self) -> None:
        object.__setattr__(self, "algorithm", HashAlgorithm.parse(self.algorithm))
        _check_digits(self.digits)
        _check_step(self.step_seconds)


def _unix_seconds(now: Instant) -> float:
    if isinstance(now, datetime):
        # un datetime naive se interpretaría en la zona local del servidor
        if now.tzinfo is None or now.utcoffset() is None:
            raise InvalidConfiguration(f"El instante debe tener zona horaria: {now!r}")
        return now.timestamp()
    if isinstance(now, bool) or not isinstance(now, (int, float)):
        raise InvalidConfiguration(f"Instante inválido: {now!r}")
    return now


def current_step_index(now: Instant, step_seconds: int = DEFAULT_STEP_SECONDS) -> int:
    """floor(unix_time / step_seconds)"""
    _check_step(step_seconds)
    return int(_unix_seconds(now) // step_seconds)


def seconds_remaining(now: Instant, step_seconds: int = DEFAULT_STEP_SECONDS) -> int:
    """Segundos de validez que le quedan al código del paso actual."""
    _check_step(step_seconds)
    return int(step_seconds - (_unix_seconds(now) % step_seconds))


def generate(
    secret: Secret,
    step_index: int,
    digits: int = DEFAULT_DIGITS,
    algorithm: HashAlgorithm | str = HashAlgorithm.SHA1,
) -> str:
    """
    HOTP(secret, step_index): HMAC sobre el contador de 8 bytes big-endian,
    truncado dinámico a 31 bits y ``mod 10**digits`` con ceros a la izquierda.
    """
    _check_digits(digits)
    alg = HashAlgorithm.parse(algorithm)
    if isinstance(step_index, bool) or not isinstance(step_index, int) or not 0 <= step_index <= MAX_STEP_INDEX:
        raise UnsupportedParameter(f"step_index fuera de rango: {step_index!r}")
    # valida el secreto con nuestros errores antes de que pyotp lo decodifique
    decode(secret)
    return pyotp.HOTP(secret, digits=digits, digest=alg.digest).generate_otp(step_index)


def current_code(secret: Secret, now: Instant | None = None, params: TotpParams = TotpParams()) -> str:
    if now is None:
        now = time.time()
    step = current_step_index(now, params.step_seconds)
    return generate(secret, step, params.digits, params.algorithm)


def normalize_candidate(candidate: str, digits: int = DEFAULT_DIGITS) -> str:
    """Deja solo dígitos ("287 082" -> "287082"); cualquier otra cosa falla."""
    _check_digits(digits)
    if not isinstance(candidate, str):
        raise InvalidCodeFormat()
    cleaned = "".join(candidate.split()).replace("-", "")
    if len(cleaned) != digits or not (cleaned.isascii() and cleaned.isdigit()):
        raise InvalidCodeFormat(f"El código debe tener {digits} dígitos")
    return cleaned


def find_matching_step(
    secret: Secret,
    candidate: str,
    now: Instant,
    window: int = DEFAULT_WINDOW,
    params: TotpParams = TotpParams(),
) -> int | None:
    """
    Devuelve el paso absoluto cuyo código coincide con ``candidate`` dentro de
    ``[actual - window, actual + window]``, o ``None`` si ninguno coincide.
    """
    if isinstance(window, bool) or not isinstance(window, int) or window < 0:
        raise InvalidConfiguration(f"window debe ser un entero >= 0 (recibido {window!r})")
    code = normalize_candidate(candidate, params.digits)
    current = current_step_index(now, params.step_seconds)
    for offset in range(-window, window + 1):
        step = current + offset
        if step < 0:
            continue
        expected = generate(secret, step, params.digits, params.algorithm)
        if strings_equal(expected, code):
            return step
    return None


def verify(
    secret: Secret,
    candidate: str,
    now: Instant,
    window: int = DEFAULT_WINDOW,
    params: TotpParams = TotpParams(),
) -> bool:
    return find_matching_step(secret, candidate, now, window, params) is not None
