"""
services/balance_service.py: balance projections and circle statistics.

This file is the SINGLE SOURCE OF TRUTH for how net positions are derived
from pairwise balances. Nothing else in the codebase sums balance rows.

Definitions (all amounts in microSTX):
  B(a, b)               what a owes b in the circle (0 when no row exists)
  net_balance(m)        sum over x of B(x, m)  -  sum over x of B(m, x)
  net_position(a, b)    B(b, a) - B(a, b)   (positive: b owes a on balance)

Conservation:
  Every pairwise row adds its amount to one member's net balance and
  subtracts it from another's, so the net balances of a circle always sum to
  zero. get_circle_balances() asserts this and surfaces a violation as
  INTERNAL_ERROR (500) rather than returning inconsistent numbers.

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - Read-only: never flushes or writes.
"""

from __future__ import annotations

from collections import defaultdict

from sqlalchemy import select
from sqlalchemy.orm import Session

from circlecare.app.errors import AppError, ErrorCode
from circlecare.app.models.expense import Expense
from circlecare.app.models.member import Member
from circlecare.app.models.pairwise_balance import PairwiseBalance
from circlecare.app.models.settlement import Settlement
from circlecare.app.services import ledger_store


# ── Core algorithm ─────────────────────────────────────────────────────────

def compute_net_balances(
        balances: list[PairwiseBalance],
        members: list[str],
) -> dict[str, int]:
    """
    Returns {principal: net_balance} for every member and every principal
    that appears in a balance row.

    Pure function: takes rows already loaded, so it is unit-testable
    without a database.
    """
    nets: dict[str, int] = defaultdict(int)

    for member in members:
        nets[member] += 0

    for row in balances:
        nets[row.creditor] += row.amount
        nets[row.debtor] -= row.amount

    return dict(nets)


# ── Point lookups ──────────────────────────────────────────────────────────

def get_balance(circle_id: int, debtor: str, creditor: str, session: Session) -> int:
    """One-directional debt; 0 when none is recorded."""
    ledger_store.get_circle_or_404(circle_id, session)
    return ledger_store.get_balance(circle_id, debtor, creditor, session)


def get_net_balance(circle_id: int, member: str, session: Session) -> int:
    """
    What `member` is owed minus what `member` owes, across the circle.
    Positive: the circle owes the member. Negative: the member owes.
    """
    ledger_store.get_circle_or_404(circle_id, session)

    owed_to = session.execute(
        select(PairwiseBalance.amount).where(
            PairwiseBalance.circle_id == circle_id,
            PairwiseBalance.creditor == member,
        )
    ).scalars().all()

    owes = session.execute(
        select(PairwiseBalance.amount).where(
            PairwiseBalance.circle_id == circle_id,
            PairwiseBalance.debtor == member,
        )
    ).scalars().all()

    return sum(owed_to) - sum(owes)


def get_net_position(circle_id: int, a: str, b: str, session: Session) -> int:
    """B(b, a) - B(a, b): the netted view of two independent debts."""
    ledger_store.get_circle_or_404(circle_id, session)
    return (
        ledger_store.get_balance(circle_id, b, a, session)
        - ledger_store.get_balance(circle_id, a, b, session)
    )


# ── Circle-wide views ──────────────────────────────────────────────────────

def get_circle_balances(circle_id: int, session: Session) -> dict:
    """
    Net balance of every member plus every non-zero pairwise debt.

    Returns:
      {
        "circle_id": int,
        "members":  [{"address", "nickname", "net_balance"}] in join order,
        "balances": [{"debtor", "creditor", "amount"}],
        "balance_sum": 0,
      }
    """
    ledger_store.get_circle_or_404(circle_id, session)

    members = list(session.execute(
        select(Member)
        .where(Member.circle_id == circle_id)
        .order_by(Member.position.asc())
    ).scalars().all())
    rows = ledger_store.list_balances(circle_id, session)

    nets = compute_net_balances(rows, [m.address for m in members])

    balance_sum = sum(nets.values())
    if balance_sum != 0:
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            f"Net balances of circle {circle_id} sum to {balance_sum}, expected 0.",
            500,
        )

    return {
        "circle_id": circle_id,
        "members": [
            {
                "address": m.address,
                "nickname": m.nickname,
                "net_balance": nets[m.address],
            }
            for m in members
        ],
        "balances": [
            {
                "debtor": row.debtor,
                "creditor": row.creditor,
                "amount": row.amount,
            }
            for row in rows
        ],
        "balance_sum": balance_sum,
    }


def get_circle_stats(circle_id: int, session: Session) -> dict:
    """
    Counters and totals of a circle.

    Totals are summed in Python; SQL SUM over BIGINT amounts can overflow.
    """
    circle = ledger_store.get_circle_or_404(circle_id, session)

    expenses = session.execute(
        select(Expense.amount, Expense.settled).where(Expense.circle_id == circle_id)
    ).all()

    settled_amounts = session.execute(
        select(Settlement.amount).where(Settlement.circle_id == circle_id)
    ).scalars().all()

    return {
        "circle_id": circle_id,
        "member_count": circle.member_count,
        "expense_count": len(expenses),
        "total_expenses": sum(amount for amount, _ in expenses),
        "settled_expense_count": sum(1 for _, settled in expenses if settled),
        "settlement_count": len(settled_amounts),
        "total_settled": sum(settled_amounts),
    }
