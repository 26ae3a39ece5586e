"""
models/pairwise_balance.py: one-directional debt between two members.

Row (circle_id, debtor, creditor) holds how much `debtor` owes `creditor`.
The reverse direction is a separate row. A missing row means zero; rows that
reach zero are deleted by the ledger store, so stored amounts are always > 0.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from circlecare.app.extensions import db
from circlecare.app.models.circle import PRINCIPAL_MAX


class PairwiseBalance(db.Model):
    __tablename__ = "pairwise_balances"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_pairwise_balances_amount_positive"),
        CheckConstraint(
            "debtor <> creditor",
            name="ck_pairwise_balances_no_self_debt",
        ),
    )

    circle_id: Mapped[int] = mapped_column(
        ForeignKey("circles.id", ondelete="RESTRICT"),
        primary_key=True,
    )
    debtor: Mapped[str] = mapped_column(String(PRINCIPAL_MAX), primary_key=True)
    creditor: Mapped[str] = mapped_column(String(PRINCIPAL_MAX), primary_key=True)

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<PairwiseBalance circle_id={self.circle_id} "
            f"{self.debtor} owes {self.creditor} {self.amount}>"
        )
