"""initial reliefhub schema

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

import sqlalchemy as sa
import sqlmodel
from alembic import op

# revision identifiers, used by Alembic.
revision = "1a2b3c4d5e6f"
down_revision = None
branch_labels = None
depends_on = None


def _has_table(table_name: str) -> bool:
    return sa.inspect(op.get_bind()).has_table(table_name)


def _audit_trail_column() -> sa.Column:
    return sa.Column("audit_trail", sa.JSON(), nullable=False, server_default=sa.text("'[]'"))


def upgrade() -> None:
    if not _has_table("disasters"):
        op.create_table(
            "disasters",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("title", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
            sa.Column("location_name", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
            sa.Column("location", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
            sa.Column("latitude", sa.Float(), nullable=True),
            sa.Column("longitude", sa.Float(), nullable=True),
            sa.Column("description", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
            sa.Column("tags", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
            sa.Column("owner_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
            _audit_trail_column(),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_disasters_latitude", "disasters", ["latitude"])
        op.create_index("ix_disasters_longitude", "disasters", ["longitude"])
        op.create_index("ix_disasters_owner_id", "disasters", ["owner_id"])
        op.create_index("ix_disasters_created_at", "disasters", ["created_at"])

    if not _has_table("reports"):
        op.create_table(
            "reports",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("disaster_id", sa.Uuid(), nullable=False),
            sa.Column("reporter_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
            sa.Column("content", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
            sa.Column("image_url", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
            sa.Column(
                "verification_status",
                sqlmodel.sql.sqltypes.AutoString(),
                nullable=False,
                server_default="pending",
            ),
            _audit_trail_column(),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["disaster_id"], ["disasters.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_reports_disaster_id", "reports", ["disaster_id"])
        op.create_index("ix_reports_reporter_id", "reports", ["reporter_id"])
        op.create_index("ix_reports_verification_status", "reports", ["verification_status"])
        op.create_index("ix_reports_created_at", "reports", ["created_at"])

    if not _has_table("resources"):
        op.create_table(
            "resources",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("disaster_id", sa.Uuid(), nullable=False),
            sa.Column("name", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
            sa.Column("location_name", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
            sa.Column("location", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
            sa.Column("latitude", sa.Float(), nullable=True),
            sa.Column("longitude", sa.Float(), nullable=True),
            sa.Column("type", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
            _audit_trail_column(),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["disaster_id"], ["disasters.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_resources_disaster_id", "resources", ["disaster_id"])
        op.create_index("ix_resources_latitude", "resources", ["latitude"])
        op.create_index("ix_resources_longitude", "resources", ["longitude"])
        op.create_index("ix_resources_created_at", "resources", ["created_at"])

    if not _has_table("cache"):
        op.create_table(
            "cache",
            sa.Column("key", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
            sa.Column("value", sa.JSON(), nullable=True),
            sa.Column("expires_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("key"),
        )
        op.create_index("ix_cache_expires_at", "cache", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_cache_expires_at", table_name="cache")
    op.drop_table("cache")
    for index_name in (
        "ix_resources_created_at",
        "ix_resources_longitude",
        "ix_resources_latitude",
        "ix_resources_disaster_id",
    ):
        op.drop_index(index_name, table_name="resources")
    op.drop_table("resources")
    for index_name in (
        "ix_reports_created_at",
        "ix_reports_verification_status",
        "ix_reports_reporter_id",
        "ix_reports_disaster_id",
    ):
        op.drop_index(index_name, table_name="reports")
    op.drop_table("reports")
    for index_name in (
        "ix_disasters_created_at",
        "ix_disasters_owner_id",
        "ix_disasters_longitude",
        "ix_disasters_latitude",
    ):
        op.drop_index(index_name, table_name="disasters")
    op.drop_table("disasters")
