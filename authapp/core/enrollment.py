# authapp/core/enrollment.py
"""Credenciales TOTP asociadas a un dueño y máquina de estados del enrolamiento.

    pending --confirm OK--> active
    pending --TTL externo--> abandoned
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from urllib.parse import quote

from authapp.core.backup_codes import DEFAULT_BATCH_SIZE, BackupCode, generate_batch
from authapp.core.errors import EnrollmentNotConfirmed
from authapp.core.otp import DEFAULT_WINDOW, Instant, TotpParams, verify
from authapp.core.secret import Secret, generate_secret, normalize


class BindingKind(str, enum.Enum):
    account = "account"    # el 2FA propio de la cuenta
    service = "service"    # secreto importado de un servicio externo


class BindingStatus(str, enum.Enum):
    pending = "pending"
    active = "active"
    abandoned = "abandoned"


@dataclass(frozen=True)
class CredentialBinding:
    owner_id: str
    label: str
    issuer: str
    secret: Secret = field(repr=False)
    params: TotpParams = TotpParams()
    kind: BindingKind = BindingKind.account
    status: BindingStatus = BindingStatus.pending
    last_used_step: int | None = None

    @property
    def is_active(self) -> bool:
        return self.status == BindingStatus.active


@dataclass(frozen=True)
class Enrollment:
    binding: CredentialBinding
    backup_codes: list[BackupCode]
    provisioning_uri: str


def provisioning_uri(label: str, secret: Secret, issuer: str, params: TotpParams = TotpParams()) -> str:
    """otpauth://totp/{issuer}:{label}?secret=...&issuer=...&algorithm=...&digits=...&period=..."""
    issuer_q = quote(issuer, safe="")
    label_q = quote(label, safe="")
    return (
        f"otpauth://totp/{issuer_q}:{label_q}?secret={secret}&issuer={issuer_q}"
        f"&algorithm={params.algorithm.value}&digits={params.digits}&period={params.step_seconds}"
    )


def enroll(
    owner_id: str,
    label: str,
    issuer: str,
    params: TotpParams | None = None,
    backup_code_count: int = DEFAULT_BATCH_SIZE,
) -> Enrollment:
    """Secreto nuevo + lote de códigos de respaldo; el llamador los persiste."""
    params = params or TotpParams()
    binding = CredentialBinding(
        owner_id=owner_id,
        label=label,
        issuer=issuer,
        secret=generate_secret(),
        params=params,
    )
    codes = generate_batch(owner_id, backup_code_count)
    return Enrollment(
        binding=binding,
        backup_codes=codes,
        provisioning_uri=provisioning_uri(label, binding.secret, issuer, params),
    )


def confirm(binding: CredentialBinding, candidate: str, now: Instant, window: int = DEFAULT_WINDOW) -> bool:
    """Una sola verificación para probar que el usuario cargó bien el secreto."""
    if binding.status == BindingStatus.abandoned:
        raise EnrollmentNotConfirmed("El enrolamiento expiró; volvé a configurar 2FA")
    return verify(binding.secret, candidate, now, window, binding.params)


def activate(binding: CredentialBinding) -> CredentialBinding:
    return replace(binding, status=BindingStatus.active)


def abandon(binding: CredentialBinding) -> CredentialBinding:
    if binding.status != BindingStatus.pending:
        return binding
    return replace(binding, status=BindingStatus.abandoned)


def require_active(binding: CredentialBinding) -> CredentialBinding:
    if not binding.is_active:
        raise EnrollmentNotConfirmed()
    return binding


def import_service_binding(
    owner_id: str,
    service_name: str,
    raw_secret: str,
    params: TotpParams | None = None,
) -> CredentialBinding:
    """Entrada de servicio con un secreto existente; queda activa de entrada."""
    return CredentialBinding(
        owner_id=owner_id,
        label=service_name,
        issuer=service_name,
        secret=normalize(raw_secret),
        params=params or TotpParams(),
        kind=BindingKind.service,
        status=BindingStatus.active,
    )
