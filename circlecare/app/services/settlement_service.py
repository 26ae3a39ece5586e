"""
services/settlement_service.py: debt settlement.

The caller is always the debtor. A settlement:
  1. checks the circle is open and a debt to the creditor exists,
  2. resolves the amount (full outstanding balance when none is given),
  3. transfers the STX, capped at the outstanding balance,
  4. reduces the pairwise balance,
  5. appends a Settlement record with the next settlement id.
All five steps share one transaction; a failure in any of them leaves the
ledger untouched once the route rolls back.

Amount rules:
  - amount == 0                   -> INVALID_INPUT
  - amount > outstanding balance  -> INVALID_INPUT (overpayment is refused,
                                     never clamped)
  - no debt to the creditor       -> NO_DEBT

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility: only flush here.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from circlecare.app.errors import AppError, ErrorCode
from circlecare.app.models.circle import Circle
from circlecare.app.models.settlement import Settlement
from circlecare.app.principals import require_principal
from circlecare.app.services import ledger_store, transfer_service

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _settle_one(
        circle: Circle,
        debtor: str,
        creditor: str,
        amount: int | None,
        block_height: int,
        session: Session,
) -> Settlement:
    """Settles one debt inside an already locked, open circle."""
    require_principal(creditor, field="creditor")

    if amount is not None and amount == 0:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            "Settlement amount must be greater than zero.",
            400,
            field="amount",
        )

    outstanding = ledger_store.get_balance(circle.id, debtor, creditor, session)
    if outstanding == 0:
        raise AppError(
            ErrorCode.NO_DEBT,
            f"{debtor} owes nothing to {creditor} in circle {circle.id}.",
            422,
        )

    if amount is None:
        amount = outstanding
    elif amount > outstanding:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            f"Settlement amount {amount} exceeds the outstanding balance of {outstanding}.",
            400,
            field="amount",
        )

    transfer_service.transfer_stx(
        sender=debtor,
        recipient=creditor,
        amount=amount,
        ceiling=outstanding,
        memo=transfer_service.MEMO_SETTLEMENT,
        block_height=block_height,
        session=session,
        circle_id=circle.id,
    )

    remaining = ledger_store.reduce_balance(circle.id, debtor, creditor, amount, session)

    settlement = Settlement(
        id=ledger_store.next_id(ledger_store.SETTLEMENT_COUNTER, session),
        circle_id=circle.id,
        debtor=debtor,
        creditor=creditor,
        amount=amount,
        block_height=block_height,
    )
    session.add(settlement)
    session.flush()

    logger.info(
        "settlement %d in circle %d: %s paid %s amount=%d remaining=%d",
        settlement.id, circle.id, debtor, creditor, amount, remaining,
    )
    return settlement


def _open_circle_for_debtor(circle_id: int, debtor: str, session: Session) -> Circle:
    circle = ledger_store.lock_circle(circle_id, session)
    ledger_store.require_open(circle)
    ledger_store.require_active_member(circle_id, debtor, session)
    return circle


# ── Public service functions ───────────────────────────────────────────────

def settle_debt_stx(
        circle_id: int,
        debtor: str,
        creditor: str,
        block_height: int,
        session: Session,
        amount: int | None = None,
) -> Settlement:
    """
    Pays `creditor` what `debtor` (the caller) owes, in full or in part.

    Raises:
      AppError(CIRCLE_NOT_FOUND, 404)
      AppError(CIRCLE_INACTIVE, 409) / AppError(CIRCLE_PAUSED, 409)
      AppError(UNAUTHORIZED, 403)     : caller is not an active member
      AppError(INVALID_PRINCIPAL, 400): malformed creditor
      AppError(INVALID_INPUT, 400)    : zero amount or overpayment
      AppError(NO_DEBT, 422)          : nothing owed to the creditor
    """
    circle = _open_circle_for_debtor(circle_id, debtor, session)
    return _settle_one(circle, debtor, creditor, amount, block_height, session)


def settle_multiple_debts(
        circle_id: int,
        debtor: str,
        creditors: list[str],
        block_height: int,
        session: Session,
) -> list[Settlement]:
    """
    Clears the full balance owed to each creditor, in order, or none.

    A creditor listed twice fails with NO_DEBT on its second entry because
    the first entry already cleared the balance.
    """
    circle = _open_circle_for_debtor(circle_id, debtor, session)

    if not creditors:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            "At least one creditor is required.",
            400,
            field="creditors",
        )
    if len(creditors) > ledger_store.BULK_BATCH_LIMIT:
        raise AppError(
            ErrorCode.LIMIT_EXCEEDED,
            f"At most {ledger_store.BULK_BATCH_LIMIT} debts may be settled in one batch.",
            422,
            field="creditors",
        )

    return [
        _settle_one(circle, debtor, creditor, None, block_height, session)
        for creditor in creditors
    ]


def get_settlement(circle_id: int, settlement_id: int, session: Session) -> Settlement:
    ledger_store.get_circle_or_404(circle_id, session)
    settlement = session.get(Settlement, settlement_id)
    if settlement is None or settlement.circle_id != circle_id:
        raise AppError(
            ErrorCode.SETTLEMENT_NOT_FOUND,
            f"Settlement {settlement_id} does not exist in circle {circle_id}.",
            404,
        )
    return settlement


def list_settlements(circle_id: int, session: Session) -> list[Settlement]:
    """Settlement history of a circle, oldest first."""
    ledger_store.get_circle_or_404(circle_id, session)
    stmt = (
        select(Settlement)
        .where(Settlement.circle_id == circle_id)
        .order_by(Settlement.id.asc())
    )
    return list(session.execute(stmt).scalars().all())
