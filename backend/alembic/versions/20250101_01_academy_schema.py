"""Accounts, progress documents, quiz results and strikes."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20250101_01_academy_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("uid", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("password", sa.Text(), nullable=False),
        sa.Column("displayName", sa.Text(), nullable=False),
        sa.Column("created", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "user_data",
        sa.Column("uid", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
    )

    op.create_table(
        "results",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("uid", sa.String(length=128), nullable=False),
        sa.Column("qid", sa.Text(), nullable=False),
        sa.Column("qname", sa.Text(), nullable=True),
        sa.Column("score", sa.Integer(), nullable=True),
        sa.Column("total", sa.Integer(), nullable=True),
        sa.Column("pct", sa.Integer(), nullable=True),
        sa.Column("time", sa.Integer(), nullable=True),
        sa.Column("passed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("num", sa.Integer(), nullable=True),
    )
    op.create_index("ix_results_uid", "results", ["uid"])
    op.create_index("ix_results_date", "results", ["date"])

    op.create_table(
        "strikes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("uid", sa.String(length=128), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("removedAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("removedReason", sa.Text(), nullable=True),
    )
    op.create_index("ix_strikes_uid", "strikes", ["uid"])
    op.create_index("ix_strikes_date", "strikes", ["date"])


def downgrade() -> None:
    op.drop_index("ix_strikes_date", table_name="strikes")
    op.drop_index("ix_strikes_uid", table_name="strikes")
    op.drop_table("strikes")
    op.drop_index("ix_results_date", table_name="results")
    op.drop_index("ix_results_uid", table_name="results")
    op.drop_table("results")
    op.drop_table("user_data")
    op.drop_table("accounts")
