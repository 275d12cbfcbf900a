"""indicator data core schema

Revision ID: 0001_indicator_data_core
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_indicator_data_core'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table("indicators",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(50)),
        sa.Column("no", sa.Integer, nullable=False, server_default="0"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("subcategory", sa.String(100)),
        sa.Column("unit", sa.String(50), nullable=False),
        sa.Column("period_type", sa.String(20), nullable=False, server_default="yearly"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("source", sa.String(255)),
        sa.Column("description", sa.Text),
        sa.Column("methodology", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_indicators_category", "indicators", ["category"])
    op.create_index("ix_indicators_active", "indicators", ["is_active"])

    op.create_table("indicator_data",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("indicator_id", sa.String(36), sa.ForeignKey("indicators.id"), nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("period_month", sa.Integer),
        sa.Column("period_quarter", sa.Integer),
        sa.Column("period_key", sa.String(16), nullable=False),
        sa.Column("value", sa.Float),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("notes", sa.Text),
        sa.Column("source_document", sa.String(500)),
        sa.Column("revision_number", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_by", sa.String(36)),
        sa.Column("verified_by", sa.String(36)),
        sa.Column("verified_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("indicator_id", "period_key", name="uq_indicator_data_period"),
        sa.CheckConstraint("period_month IS NULL OR period_quarter IS NULL", name="ck_indicator_data_one_subperiod"),
        sa.CheckConstraint("revision_number >= 1", name="ck_indicator_data_revision"),
    )
    op.create_index("ix_indicator_data_indicator_year", "indicator_data", ["indicator_id", "year"])
    op.create_index("ix_indicator_data_status", "indicator_data", ["status"])

    op.create_table("data_audit_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("table_name", sa.String(64), nullable=False),
        sa.Column("record_id", sa.String(64), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("user_id", sa.String(36)),
        sa.Column("old_values", sa.JSON),
        sa.Column("new_values", sa.JSON),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_log_record", "data_audit_log", ["table_name", "record_id"])
    op.create_index("ix_audit_log_created_at", "data_audit_log", ["created_at"])


def downgrade() -> None:
    op.drop_table("data_audit_log")
    op.drop_table("indicator_data")
    op.drop_table("indicators")
