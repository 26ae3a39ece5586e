"""
models/ledger.py: deployment-wide ledger tables.

  ledger_counters  One row per entity type (circle, expense, settlement)
                   holding the last id handed out. Incremented in the same
                   transaction as the insert it numbers.
  ledger_settings  Singleton row (id = 1): owner principal, circle creation
                   fee and the per-user circle limit.
  stx_transfers    Journal written by the value-transfer primitive. Each
                   row is one movement of microSTX from sender to recipient.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from circlecare.app.extensions import db
from circlecare.app.models.circle import PRINCIPAL_MAX

SETTINGS_ROW_ID = 1
DEFAULT_MAX_CIRCLES_PER_USER = 10
MAX_CIRCLES_PER_USER_CAP = 100

# Largest value the BIGINT amount columns can hold.
MICRO_STX_MAX = 2**63 - 1


class LedgerCounter(db.Model):
    __tablename__ = "ledger_counters"

    name: Mapped[str] = mapped_column(String(32), primary_key=True)

    value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<LedgerCounter {self.name}={self.value}>"


class LedgerSettings(db.Model):
    __tablename__ = "ledger_settings"

    __table_args__ = (
        CheckConstraint("creation_fee >= 0", name="ck_ledger_settings_fee_nonneg"),
        CheckConstraint(
            f"max_circles_per_user >= 1 AND max_circles_per_user <= {MAX_CIRCLES_PER_USER_CAP}",
            name="ck_ledger_settings_max_circles_range",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)

    owner: Mapped[str] = mapped_column(String(PRINCIPAL_MAX), nullable=False)

    creation_fee: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    max_circles_per_user: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_MAX_CIRCLES_PER_USER,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<LedgerSettings owner={self.owner} "
            f"fee={self.creation_fee} "
            f"max_circles={self.max_circles_per_user}>"
        )


class StxTransfer(db.Model):
    __tablename__ = "stx_transfers"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_stx_transfers_amount_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    sender: Mapped[str] = mapped_column(String(PRINCIPAL_MAX), nullable=False)
    recipient: Mapped[str] = mapped_column(String(PRINCIPAL_MAX), nullable=False)

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # "settlement" or "creation-fee"
    memo: Mapped[str] = mapped_column(String(32), nullable=False)

    circle_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)

    block_height: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<StxTransfer id={self.id} {self.sender} -> {self.recipient} "
            f"amount={self.amount} memo={self.memo!r}>"
        )
