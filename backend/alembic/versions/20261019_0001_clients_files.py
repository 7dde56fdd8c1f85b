"""clients_files

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19

- clients: organizational records (name + business code)
- files: uploaded documents attached to a client; binaries live on disk at `path`
"""

from alembic import op
import sqlalchemy as sa


# Alembic's default version table uses VARCHAR(32), so keep revision <= 32 chars.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _has_table(bind, table: str) -> bool:
    insp = sa.inspect(bind)
    return insp.has_table(table)


def upgrade() -> None:
    bind = op.get_bind()

    if not _has_table(bind, "clients"):
        op.create_table(
            "clients",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("code", sa.String(length=64), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_clients_id", "clients", ["id"])
        op.create_index("ix_clients_name", "clients", ["name"])
        op.create_index("ix_clients_code", "clients", ["code"])

    if not _has_table(bind, "files"):
        op.create_table(
            "files",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "client_id",
                sa.Integer(),
                sa.ForeignKey("clients.id", ondelete="RESTRICT"),
                nullable=False,
            ),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("category", sa.String(length=100), nullable=False),
            sa.Column("path", sa.String(length=1024), nullable=False),
            sa.Column("type", sa.String(length=255), nullable=True),
            sa.Column("size", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("uploaded_by", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_files_id", "files", ["id"])
        op.create_index("ix_files_client_id", "files", ["client_id"])
        op.create_index("ix_files_uploaded_by", "files", ["uploaded_by"])


def downgrade() -> None:
    bind = op.get_bind()
    if _has_table(bind, "files"):
        op.drop_table("files")
    if _has_table(bind, "clients"):
        op.drop_table("clients")
