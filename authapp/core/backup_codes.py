# authapp/core/backup_codes.py
"""Códigos de respaldo de un solo uso.

El canje es un compare-and-set contra el almacenamiento: el manager no guarda
estado propio, solo pregunta al ledger si *esta* llamada ganó la carrera.
"""
from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass
from typing import Protocol

from authapp.core.errors import BackupCodeNotFound, InvalidConfiguration

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
CODE_BYTES = 4            # 32 bits de entropía por código
CODE_LENGTH = CODE_BYTES * 2
_HEX = frozenset("0123456789ABCDEF")


@dataclass(frozen=True)
class BackupCode:
    owner_id: str
    code: str
    batch_id: str
    consumed: bool = False


def new_code() -> str:
    return secrets.token_hex(CODE_BYTES).upper()


def generate_batch(
    owner_id: str,
    count: int = DEFAULT_BATCH_SIZE,
    batch_id: str | None = None,
) -> list[BackupCode]:
    """Genera ``count`` códigos distintos entre sí, todos sin usar."""
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise InvalidConfiguration(f"count debe ser un entero >= 1 (recibido {count!r})")
    batch_id = batch_id or str(uuid.uuid4())
    seen: set[str] = set()
    codes: list[BackupCode] = []
    while len(codes) < count:
        code = new_code()
        if code in seen:
            continue   # colisión dentro del lote: se vuelve a tirar
        seen.add(code)
        codes.append(BackupCode(owner_id=owner_id, code=code, batch_id=batch_id))
    return codes


def normalize_backup_code(submitted: str) -> str:
    # un código mal formado tampoco puede existir: mismo error uniforme
    if not isinstance(submitted, str):
        raise BackupCodeNotFound()
    cleaned = "".join(submitted.split()).replace("-", "").upper()
    if len(cleaned) != CODE_LENGTH or any(ch not in _HEX for ch in cleaned):
        raise BackupCodeNotFound()
    return cleaned


class BackupCodeLedger(Protocol):
    async def atomic_mark_consumed(self, owner_id: str, code: str) -> bool:
        """True solo si esta llamada marcó el código como usado."""
        ...


class BackupCodeManager:
    def __init__(self, ledger: BackupCodeLedger):
        self.ledger = ledger

    async def redeem(self, owner_id: str, submitted_code: str) -> None:
        """
        Canjea un código una única vez. Si no existe, ya fue usado o perdió la
        carrera contra otro canje simultáneo, levanta ``BackupCodeNotFound``.
        """
        code = normalize_backup_code(submitted_code)
        won = await self.ledger.atomic_mark_consumed(owner_id, code)
        if not won:
            logger.info("Backup code rejected for owner %s", owner_id)
            raise BackupCodeNotFound()
        logger.info("Backup code redeemed for owner %s", owner_id)
