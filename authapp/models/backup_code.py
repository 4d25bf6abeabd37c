# authapp/models/backup_code.py
import datetime as dt
from sqlalchemy import String, DateTime, Boolean, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column
from authapp.core.db import Base
from authapp.models.credential_binding import _utcnow


class BackupCodeRow(Base):
    __tablename__ = "backup_codes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    batch_id: Mapped[str] = mapped_column(String(36), nullable=False)
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)   # HMAC-SHA256 hex, nunca el código
    used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    used_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # True cuando el lote fue reemplazado (re-enrolamiento / regeneración / disable)
    revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("owner_id", "batch_id", "code_hash", name="uq_backup_owner_batch_hash"),
        Index("ix_backup_owner_hash", "owner_id", "code_hash"),
    )
