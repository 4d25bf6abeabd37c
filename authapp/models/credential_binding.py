# authapp/models/credential_binding.py
import datetime as dt
import uuid
from sqlalchemy import String, Text, Integer, BigInteger, DateTime, Enum, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column
from authapp.core.db import Base
from authapp.core.enrollment import BindingKind, BindingStatus


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class CredentialBindingRow(Base):
    __tablename__ = "credential_bindings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # el dueño vive en el servicio de cuentas: sin FK
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    issuer: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[BindingKind] = mapped_column(Enum(BindingKind), default=BindingKind.account, nullable=False)
    status: Mapped[BindingStatus] = mapped_column(Enum(BindingStatus), default=BindingStatus.pending, nullable=False)
    secret_encrypted: Mapped[str] = mapped_column(Text, nullable=False)   # AES-GCM, nunca en claro
    algorithm: Mapped[str] = mapped_column(String(16), default="SHA1", nullable=False)
    digits: Mapped[int] = mapped_column(Integer, default=6, nullable=False)
    period: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    last_used_step: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    confirmed_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("owner_id", "label", name="uq_binding_owner_label"),
        Index("ix_binding_owner", "owner_id"),
        Index("ix_binding_status_created", "status", "created_at"),
    )
