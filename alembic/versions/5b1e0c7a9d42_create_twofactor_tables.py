"""create credential_bindings and backup_codes

Revision ID: 5b1e0c7a9d42
Revises:
Create Date: 2026-10-19 10:12:41.402118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5b1e0c7a9d42'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "credential_bindings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("owner_id", sa.String(36), nullable=False),
        sa.Column("label", sa.String(255), nullable=False),
        sa.Column("issuer", sa.String(255), nullable=False),
        sa.Column("kind", sa.Enum("account", "service", name="bindingkind"), nullable=False),
        sa.Column("status", sa.Enum("pending", "active", "abandoned", name="bindingstatus"), nullable=False),
        sa.Column("secret_encrypted", sa.Text(), nullable=False),
        sa.Column("algorithm", sa.String(16), nullable=False),
        sa.Column("digits", sa.Integer(), nullable=False),
        sa.Column("period", sa.Integer(), nullable=False),
        sa.Column("last_used_step", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("owner_id", "label", name="uq_binding_owner_label"),
    )
    op.create_index("ix_binding_owner", "credential_bindings", ["owner_id"], unique=False)
    # para el barrido de enrolamientos pendientes vencidos
    op.create_index("ix_binding_status_created", "credential_bindings", ["status", "created_at"], unique=False)

    op.create_table(
        "backup_codes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("owner_id", sa.String(36), nullable=False),
        sa.Column("batch_id", sa.String(36), nullable=False),
        sa.Column("code_hash", sa.String(64), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("owner_id", "batch_id", "code_hash", name="uq_backup_owner_batch_hash"),
    )
    # el canje busca por dueño + hash
    op.create_index("ix_backup_owner_hash", "backup_codes", ["owner_id", "code_hash"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_backup_owner_hash", table_name="backup_codes")
    op.drop_table("backup_codes")
    op.drop_index("ix_binding_status_created", table_name="credential_bindings")
    op.drop_index("ix_binding_owner", table_name="credential_bindings")
    op.drop_table("credential_bindings")
