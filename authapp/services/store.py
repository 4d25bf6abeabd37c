# authapp/services/store.py
"""Persistencia de credenciales TOTP y del ledger de códigos de respaldo."""
import logging
from datetime import datetime, timezone

from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from authapp.core.backup_codes import BackupCode
from authapp.core.enrollment import BindingKind, BindingStatus, CredentialBinding
from authapp.core.errors import InvalidConfiguration
from authapp.core.otp import TotpParams
from authapp.core.secret import Secret
from authapp.core.security import SecretBox
from authapp.models.backup_code import BackupCodeRow
from authapp.models.credential_binding import CredentialBindingRow

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CredentialStore:
    """
    Colaborador de almacenamiento del motor 2FA sobre una ``AsyncSession``.

    Los secretos se guardan cifrados con ``SecretBox`` y los códigos de respaldo
    solo como digest. Cada operación que escribe hace su propio commit.
    """

    def __init__(self, db: AsyncSession, box: SecretBox):
        self.db = db
        self.box = box

    # ---------- credenciales ----------
    def _to_binding(self, row: CredentialBindingRow) -> CredentialBinding:
        return CredentialBinding(
            owner_id=row.owner_id,
            label=row.label,
            issuer=row.issuer,
            secret=Secret(self.box.decrypt(row.secret_encrypted)),
            params=TotpParams(algorithm=row.algorithm, digits=row.digits, step_seconds=row.period),
            kind=row.kind,
            status=row.status,
            last_used_step=row.last_used_step,
        )

    async def _get_row(self, owner_id: str, label: str) -> CredentialBindingRow | None:
        res = await self.db.execute(
            select(CredentialBindingRow).execution_options(populate_existing=True).where(
                CredentialBindingRow.owner_id == owner_id,
                CredentialBindingRow.label == label,
            )
        )
        return res.scalar_one_or_none()

    async def load_binding(self, owner_id: str, label: str) -> CredentialBinding | None:
        row = await self._get_row(owner_id, label)
        return self._to_binding(row) if row else None

    async def load_account_binding(self, owner_id: str) -> CredentialBinding | None:
        res = await self.db.execute(
            select(CredentialBindingRow).execution_options(populate_existing=True).where(
                CredentialBindingRow.owner_id == owner_id,
                CredentialBindingRow.kind == BindingKind.account,
            )
        )
        row = res.scalars().first()
        return self._to_binding(row) if row else None

    async def list_bindings(self, owner_id: str, kind: BindingKind | None = None) -> list[CredentialBinding]:
        q = (
            select(CredentialBindingRow)
            .execution_options(populate_existing=True)
            .where(CredentialBindingRow.owner_id == owner_id)
        )
        if kind is not None:
            q = q.where(CredentialBindingRow.kind == kind)
        res = await self.db.execute(q.order_by(CredentialBindingRow.created_at, CredentialBindingRow.label))
        return [self._to_binding(row) for row in res.scalars().all()]

    async def save_binding(self, binding: CredentialBinding) -> CredentialBinding:
        """Upsert por (owner_id, label)."""
        row = await self._get_row(binding.owner_id, binding.label)
        if row is None:
            row = CredentialBindingRow(owner_id=binding.owner_id, label=binding.label, created_at=_now())
            self.db.add(row)
        elif row.kind != binding.kind:
            raise InvalidConfiguration(f"{binding.label!r} ya existe como credencial de tipo {row.kind.value}")
        elif binding.status == BindingStatus.pending and (
            row.status != BindingStatus.pending or self.box.decrypt(row.secret_encrypted) != binding.secret
        ):
            # reenrolamiento: el TTL de pendientes cuenta desde ahora
            row.created_at = _now()
        row.issuer = binding.issuer
        row.kind = binding.kind
        row.status = binding.status
        row.secret_encrypted = self.box.encrypt(binding.secret)
        row.algorithm = binding.params.algorithm.value
        row.digits = binding.params.digits
        row.period = binding.params.step_seconds
        row.last_used_step = binding.last_used_step
        if binding.status == BindingStatus.active:
            row.confirmed_at = row.confirmed_at or _now()
        else:
            row.confirmed_at = None
        await self.db.commit()
        logger.debug("Saved %s binding %r for owner %s (%s)",
                     binding.kind.value, binding.label, binding.owner_id, binding.status.value)
        return binding

    async def delete_binding(self, owner_id: str, label: str) -> bool:
        res = await self.db.execute(
            delete(CredentialBindingRow)
            .where(CredentialBindingRow.owner_id == owner_id, CredentialBindingRow.label == label)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return res.rowcount > 0

    async def record_used_step(self, owner_id: str, label: str, step: int) -> bool:
        """Compare-and-set del último paso aceptado: False si es un replay."""
        res = await self.db.execute(
            update(CredentialBindingRow)
            .where(
                CredentialBindingRow.owner_id == owner_id,
                CredentialBindingRow.label == label,
                or_(CredentialBindingRow.last_used_step.is_(None),
                    CredentialBindingRow.last_used_step < step),
            )
            .values(last_used_step=step)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return res.rowcount > 0

    async def abandon_pending_before(self, cutoff: datetime) -> int:
        res = await self.db.execute(
            update(CredentialBindingRow)
            .where(
                CredentialBindingRow.status == BindingStatus.pending,
                CredentialBindingRow.created_at < cutoff,
            )
            .values(status=BindingStatus.abandoned)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return res.rowcount

    # ---------- códigos de respaldo ----------
    async def replace_backup_codes(self, owner_id: str, codes: list[BackupCode]) -> None:
        """Revoca el lote vigente e inserta el nuevo en la misma transacción."""
        await self.db.execute(
            update(BackupCodeRow)
            .where(BackupCodeRow.owner_id == owner_id, BackupCodeRow.revoked.is_(False))
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        self.db.add_all([
            BackupCodeRow(owner_id=owner_id, batch_id=c.batch_id, code_hash=self.box.digest(c.code))
            for c in codes
        ])
        await self.db.commit()
        logger.info("Stored %d backup codes for owner %s", len(codes), owner_id)

    async def revoke_backup_codes(self, owner_id: str) -> int:
        res = await self.db.execute(
            update(BackupCodeRow)
            .where(BackupCodeRow.owner_id == owner_id, BackupCodeRow.revoked.is_(False))
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return res.rowcount

    async def load_backup_codes(self, owner_id: str) -> list[BackupCodeRow]:
        """Lote vigente (sin revocar), usados incluidos."""
        res = await self.db.execute(
            select(BackupCodeRow).execution_options(populate_existing=True)
            .where(BackupCodeRow.owner_id == owner_id, BackupCodeRow.revoked.is_(False))
            .order_by(BackupCodeRow.id)
        )
        return list(res.scalars().all())

    async def count_remaining_backup_codes(self, owner_id: str) -> int:
        res = await self.db.execute(
            select(func.count(BackupCodeRow.id)).where(
                BackupCodeRow.owner_id == owner_id,
                BackupCodeRow.used.is_(False),
                BackupCodeRow.revoked.is_(False),
            )
        )
        return res.scalar_one()

    async def atomic_mark_consumed(self, owner_id: str, code: str) -> bool:
        """
        UPDATE ... WHERE used = false: de dos canjes simultáneos del mismo código
        solo uno ve una fila afectada.
        """
        res = await self.db.execute(
            update(BackupCodeRow)
            .where(
                BackupCodeRow.owner_id == owner_id,
                BackupCodeRow.code_hash == self.box.digest(code),
                BackupCodeRow.used.is_(False),
                BackupCodeRow.revoked.is_(False),
            )
            .values(used=True, used_at=_now())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return res.rowcount > 0
