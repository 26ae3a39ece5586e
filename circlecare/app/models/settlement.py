"""
models/settlement.py: Settlement table definition.

Append-only history of debt payments. Rows are never updated or deleted,
including when a member leaves the circle.

Key design points:
  - `amount` is integer microSTX, CHECK(amount > 0).
  - CHECK(debtor <> creditor): nobody settles a debt with themselves.
  - `block_height` is the host block height at which the payment was applied.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from circlecare.app.extensions import db
from circlecare.app.models.circle import PRINCIPAL_MAX


class Settlement(db.Model):
    __tablename__ = "settlements"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_settlements_amount_positive"),
        CheckConstraint(
            "debtor <> creditor",
            name="ck_settlements_no_self_settlement",
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    circle_id: Mapped[int] = mapped_column(
        ForeignKey("circles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    debtor: Mapped[str] = mapped_column(String(PRINCIPAL_MAX), nullable=False)
    creditor: Mapped[str] = mapped_column(String(PRINCIPAL_MAX), nullable=False)

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    block_height: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Settlement id={self.id} "
            f"circle_id={self.circle_id} "
            f"from={self.debtor} "
            f"to={self.creditor} "
            f"amount={self.amount}>"
        )
