"""Initial schema: circles, members, expenses, balances, settlements, ledger.

Revision: 001_initial_schema

Append-only: this file must never be edited after it has been applied to a
database. Schema changes go into a new migration.

Creation order follows FK dependencies:
  circles → members, user_circles → expenses → expense_participants
  → pairwise_balances, settlements; ledger tables have no FKs.

Ids of circles, expenses and settlements are assigned from ledger_counters,
so those primary keys are plain BIGINTs without a sequence.

ON DELETE policies:
  expense_participants.expense_id → CASCADE   (shares owned by the expense)
  every other circle FK           → RESTRICT  (circles are never deleted)
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration, no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None

PRINCIPAL = sa.String(128)


def upgrade() -> None:

    # ── circles ────────────────────────────────────────────────────────────
    op.create_table(
        "circles",
        sa.Column("id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("creator", PRINCIPAL, nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("paused", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("member_count", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id", name="pk_circles"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_circles_name_nonempty"),
        sa.CheckConstraint(
            "member_count >= 0 AND member_count <= 50",
            name="ck_circles_member_count_range",
        ),
    )
    op.create_index("ix_circles_creator", "circles", ["creator"])

    # ── members ────────────────────────────────────────────────────────────
    op.create_table(
        "members",
        sa.Column(
            "circle_id",
            sa.BigInteger(),
            sa.ForeignKey("circles.id", ondelete="RESTRICT", name="fk_members_circle"),
            nullable=False,
        ),
        sa.Column("address", PRINCIPAL, nullable=False),
        sa.Column("nickname", sa.String(20), nullable=False),
        sa.Column("joined_at", sa.BigInteger(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("circle_id", "address", name="pk_members"),
    )

    # ── user_circles (reverse index for getUserCircles) ───────────────────
    op.create_table(
        "user_circles",
        sa.Column("address", PRINCIPAL, nullable=False),
        sa.Column(
            "circle_id",
            sa.BigInteger(),
            sa.ForeignKey("circles.id", ondelete="RESTRICT", name="fk_user_circles_circle"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("address", "circle_id", name="pk_user_circles"),
    )

    # ── expenses ───────────────────────────────────────────────────────────
    op.create_table(
        "expenses",
        sa.Column("id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column(
            "circle_id",
            sa.BigInteger(),
            sa.ForeignKey("circles.id", ondelete="RESTRICT", name="fk_expenses_circle"),
            nullable=False,
        ),
        sa.Column("description", sa.String(100), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("payer", PRINCIPAL, nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("expires_at", sa.BigInteger(), nullable=True),
        sa.Column("settled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("settled_at", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_expenses"),
        sa.CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        sa.CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_expenses_description_nonempty",
        ),
    )
    op.create_index("ix_expenses_circle_id", "expenses", ["circle_id"])

    # ── expense_participants ───────────────────────────────────────────────
    op.create_table(
        "expense_participants",
        sa.Column(
            "expense_id",
            sa.BigInteger(),
            sa.ForeignKey(
                "expenses.id",
                ondelete="CASCADE",
                name="fk_expense_participants_expense",
            ),
            nullable=False,
        ),
        sa.Column("participant", PRINCIPAL, nullable=False),
        sa.Column("share", sa.BigInteger(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("expense_id", "participant", name="pk_expense_participants"),
        sa.CheckConstraint("share >= 0", name="ck_expense_participants_share_nonneg"),
    )

    # ── pairwise_balances ──────────────────────────────────────────────────
    op.create_table(
        "pairwise_balances",
        sa.Column(
            "circle_id",
            sa.BigInteger(),
            sa.ForeignKey("circles.id", ondelete="RESTRICT", name="fk_pairwise_balances_circle"),
            nullable=False,
        ),
        sa.Column("debtor", PRINCIPAL, nullable=False),
        sa.Column("creditor", PRINCIPAL, nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint(
            "circle_id", "debtor", "creditor",
            name="pk_pairwise_balances",
        ),
        sa.CheckConstraint("amount > 0", name="ck_pairwise_balances_amount_positive"),
        sa.CheckConstraint("debtor <> creditor", name="ck_pairwise_balances_no_self_debt"),
    )

    # ── settlements ────────────────────────────────────────────────────────
    op.create_table(
        "settlements",
        sa.Column("id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column(
            "circle_id",
            sa.BigInteger(),
            sa.ForeignKey("circles.id", ondelete="RESTRICT", name="fk_settlements_circle"),
            nullable=False,
        ),
        sa.Column("debtor", PRINCIPAL, nullable=False),
        sa.Column("creditor", PRINCIPAL, nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("block_height", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_settlements"),
        sa.CheckConstraint("amount > 0", name="ck_settlements_amount_positive"),
        sa.CheckConstraint("debtor <> creditor", name="ck_settlements_no_self_settlement"),
    )
    op.create_index("ix_settlements_circle_id", "settlements", ["circle_id"])

    # ── ledger tables ──────────────────────────────────────────────────────
    op.create_table(
        "ledger_counters",
        sa.Column("name", sa.String(32), nullable=False),
        sa.Column("value", sa.BigInteger(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("name", name="pk_ledger_counters"),
    )

    op.create_table(
        "ledger_settings",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("owner", PRINCIPAL, nullable=False),
        sa.Column("creation_fee", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("max_circles_per_user", sa.Integer(), nullable=False, server_default="10"),
        sa.PrimaryKeyConstraint("id", name="pk_ledger_settings"),
        sa.CheckConstraint("creation_fee >= 0", name="ck_ledger_settings_fee_nonneg"),
        sa.CheckConstraint(
            "max_circles_per_user >= 1 AND max_circles_per_user <= 100",
            name="ck_ledger_settings_max_circles_range",
        ),
    )

    op.create_table(
        "stx_transfers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sender", PRINCIPAL, nullable=False),
        sa.Column("recipient", PRINCIPAL, nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("memo", sa.String(32), nullable=False),
        sa.Column("circle_id", sa.BigInteger(), nullable=True),
        sa.Column("block_height", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_stx_transfers"),
        sa.CheckConstraint("amount > 0", name="ck_stx_transfers_amount_positive"),
    )
    op.create_index("ix_stx_transfers_circle_id", "stx_transfers", ["circle_id"])


def downgrade() -> None:
    """
    Drops everything created in upgrade(), in reverse dependency order.
    For local development resets only.
    """
    op.drop_index("ix_stx_transfers_circle_id", table_name="stx_transfers")
    op.drop_table("stx_transfers")
    op.drop_table("ledger_settings")
    op.drop_table("ledger_counters")

    op.drop_index("ix_settlements_circle_id", table_name="settlements")
    op.drop_table("settlements")
    op.drop_table("pairwise_balances")
    op.drop_table("expense_participants")
    op.drop_index("ix_expenses_circle_id", table_name="expenses")
    op.drop_table("expenses")
    op.drop_table("user_circles")
    op.drop_table("members")
    op.drop_index("ix_circles_creator", table_name="circles")
    op.drop_table("circles")
