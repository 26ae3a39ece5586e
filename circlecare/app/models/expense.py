"""
models/expense.py: Expense and ExpenseParticipant table definitions.

No business logic. No imports from services or routes.

Key design points:
  - `amount` and `share` are integer microSTX (BigInteger), never Float or
    Numeric with a scale.
  - `created_at`, `expires_at` and `settled_at` are block heights.
  - Only `description`, `settled` and `settled_at` change after insert.
  - `expense_participants` records the share assigned to each participant.
    The shares of one expense always sum to its amount; the payer's own share
    never becomes a pairwise debt.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from circlecare.app.extensions import db
from circlecare.app.models.circle import PRINCIPAL_MAX

DESCRIPTION_MAX = 100
MAX_PARTICIPANTS = 20

# ~100 days at 10-minute blocks.
DEFAULT_EXPIRY_BLOCKS = 144000


class Expense(db.Model):
    __tablename__ = "expenses"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_expenses_description_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    circle_id: Mapped[int] = mapped_column(
        ForeignKey("circles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    description: Mapped[str] = mapped_column(String(DESCRIPTION_MAX), nullable=False)

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    payer: Mapped[str] = mapped_column(String(PRINCIPAL_MAX), nullable=False)

    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expires_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    settled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    settled_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    # ── Relationships ──────────────────────────────────────────────────────

    participants: Mapped[list["ExpenseParticipant"]] = relationship(
        "ExpenseParticipant",
        back_populates="expense",
        order_by="ExpenseParticipant.position",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Expense id={self.id} "
            f"circle_id={self.circle_id} "
            f"amount={self.amount} "
            f"settled={self.settled}>"
        )


class ExpenseParticipant(db.Model):
    __tablename__ = "expense_participants"

    __table_args__ = (
        CheckConstraint("share >= 0", name="ck_expense_participants_share_nonneg"),
    )

    expense_id: Mapped[int] = mapped_column(
        ForeignKey("expenses.id", ondelete="CASCADE"),
        primary_key=True,
    )

    participant: Mapped[str] = mapped_column(String(PRINCIPAL_MAX), primary_key=True)

    share: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Order in which the participant was listed on the expense.
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    expense: Mapped["Expense"] = relationship(
        "Expense",
        back_populates="participants",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<ExpenseParticipant expense_id={self.expense_id} "
            f"participant={self.participant} share={self.share}>"
        )
