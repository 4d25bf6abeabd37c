# authapp/services/two_factor.py
"""
Orquestación del motor 2FA con el almacenamiento.

Cada función recibe un ``CredentialStore`` y el reloj (``now``) como
parámetros; ``now=None`` significa la hora actual en UTC.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from authapp.core.backup_codes import DEFAULT_BATCH_SIZE, BackupCode, BackupCodeManager, generate_batch
from authapp.core.enrollment import (
    BindingKind, BindingStatus, CredentialBinding, Enrollment,
    activate, confirm, enroll, import_service_binding, require_active,
)
from authapp.core.errors import BindingNotFound, InvalidConfiguration
from authapp.core.otp import DEFAULT_WINDOW, TotpParams, current_code, find_matching_step, seconds_remaining
from authapp.services.store import CredentialStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceCode:
    binding: CredentialBinding
    code: str
    seconds_remaining: int


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


async def _account_binding_or_404(store: CredentialStore, owner_id: str) -> CredentialBinding:
    binding = await store.load_account_binding(owner_id)
    if binding is None:
        raise BindingNotFound("No hay 2FA configurado. Ejecutá /2fa/setup")
    return binding


# ---------- 2FA de la cuenta ----------
async def setup_two_factor(
    store: CredentialStore,
    owner_id: str,
    account_label: str,
    issuer: str,
    params: TotpParams | None = None,
    backup_code_count: int = DEFAULT_BATCH_SIZE,
) -> Enrollment:
    """Secreto nuevo (pendiente hasta confirmar) y lote nuevo de códigos de respaldo."""
    enrollment = enroll(owner_id, account_label, issuer, params, backup_code_count)
    existing = await store.load_binding(owner_id, account_label)
    if existing is not None and existing.kind != BindingKind.account:
        raise InvalidConfiguration(f"Ya existe una credencial de servicio llamada {account_label!r}")
    # si tenía otro 2FA con otro label, lo reemplazamos
    previous = await store.load_account_binding(owner_id)
    if previous is not None and previous.label != account_label:
        await store.delete_binding(owner_id, previous.label)
    await store.save_binding(enrollment.binding)
    await store.replace_backup_codes(owner_id, enrollment.backup_codes)
    logger.info("2FA enrollment started for owner %s", owner_id)
    return enrollment


async def confirm_two_factor(
    store: CredentialStore,
    owner_id: str,
    otp: str,
    window: int = DEFAULT_WINDOW,
    now: datetime | None = None,
) -> bool:
    binding = await _account_binding_or_404(store, owner_id)
    if binding.is_active:
        return True
    if not confirm(binding, otp, _now(now), window):
        logger.info("2FA confirmation failed for owner %s", owner_id)
        return False
    await store.save_binding(activate(binding))
    logger.info("2FA enabled for owner %s", owner_id)
    return True


async def verify_second_factor(
    store: CredentialStore,
    owner_id: str,
    otp: str,
    window: int = DEFAULT_WINDOW,
    now: datetime | None = None,
) -> bool:
    """Chequeo del segundo factor en el login; un mismo paso no se acepta dos veces."""
    binding = require_active(await _account_binding_or_404(store, owner_id))
    step = find_matching_step(binding.secret, otp, _now(now), window, binding.params)
    if step is None:
        return False
    if not await store.record_used_step(owner_id, binding.label, step):
        logger.warning("Replayed TOTP step rejected for owner %s", owner_id)
        return False
    return True


async def redeem_backup_code(store: CredentialStore, owner_id: str, code: str) -> None:
    await BackupCodeManager(store).redeem(owner_id, code)


async def regenerate_backup_codes(
    store: CredentialStore,
    owner_id: str,
    otp: str,
    count: int = DEFAULT_BATCH_SIZE,
    window: int = DEFAULT_WINDOW,
    now: datetime | None = None,
) -> list[BackupCode] | None:
    """Lote nuevo, invalidando el anterior. ``None`` si el OTP no es válido."""
    if not await verify_second_factor(store, owner_id, otp, window, now):
        return None
    codes = generate_batch(owner_id, count)
    await store.replace_backup_codes(owner_id, codes)
    return codes


async def disable_two_factor(
    store: CredentialStore,
    owner_id: str,
    otp: str,
    window: int = DEFAULT_WINDOW,
    now: datetime | None = None,
) -> bool:
    binding = await store.load_account_binding(owner_id)
    if binding is None:
        # ya está deshabilitado
        await store.revoke_backup_codes(owner_id)
        return True
    if binding.is_active:
        if not await verify_second_factor(store, owner_id, otp, window, now):
            return False
    elif binding.status == BindingStatus.pending and not confirm(binding, otp, _now(now), window):
        return False
    await store.delete_binding(owner_id, binding.label)
    await store.revoke_backup_codes(owner_id)
    logger.info("2FA disabled for owner %s", owner_id)
    return True


async def abandon_stale_enrollments(
    store: CredentialStore,
    ttl_minutes: int,
    now: datetime | None = None,
) -> int:
    if ttl_minutes <= 0:
        raise InvalidConfiguration("ttl_minutes debe ser positivo")
    count = await store.abandon_pending_before(_now(now) - timedelta(minutes=ttl_minutes))
    if count:
        logger.info("Marked %d pending enrollments as abandoned", count)
    return count


# ---------- entradas de servicios (auth codes) ----------
def _service_code(binding: CredentialBinding, now: datetime) -> ServiceCode:
    # cada código se calcula con el reloj real, sin offsets por fila
    return ServiceCode(
        binding=binding,
        code=current_code(binding.secret, now, binding.params),
        seconds_remaining=seconds_remaining(now, binding.params.step_seconds),
    )


async def add_service_entry(
    store: CredentialStore,
    owner_id: str,
    service_name: str,
    secret_key: str,
    params: TotpParams | None = None,
    now: datetime | None = None,
) -> ServiceCode:
    binding = import_service_binding(owner_id, service_name, secret_key, params)
    if await store.load_binding(owner_id, service_name) is not None:
        raise InvalidConfiguration(f"Ya existe una credencial llamada {service_name!r}")
    await store.save_binding(binding)
    logger.info("Service entry %r added for owner %s", service_name, owner_id)
    return _service_code(binding, _now(now))


async def list_service_codes(
    store: CredentialStore,
    owner_id: str,
    now: datetime | None = None,
) -> list[ServiceCode]:
    now = _now(now)
    bindings = await store.list_bindings(owner_id, kind=BindingKind.service)
    return [_service_code(b, now) for b in bindings]


async def service_code(
    store: CredentialStore,
    owner_id: str,
    service_name: str,
    now: datetime | None = None,
) -> ServiceCode:
    binding = await store.load_binding(owner_id, service_name)
    if binding is None or binding.kind != BindingKind.service:
        raise BindingNotFound()
    return _service_code(binding, _now(now))


async def remove_service_entry(store: CredentialStore, owner_id: str, service_name: str) -> None:
    binding = await store.load_binding(owner_id, service_name)
    if binding is None or binding.kind != BindingKind.service:
        raise BindingNotFound()
    await store.delete_binding(owner_id, service_name)

