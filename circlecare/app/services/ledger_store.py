"""
services/ledger_store.py: keyed access to ledger records.

Every read and write of pairwise balances, id counters and the settings row
goes through this module. The engines (circle_service, expense_service,
settlement_service) never touch those tables directly.

Locking:
  - lock_circle() issues SELECT ... FOR UPDATE on the circle row. Every
    mutating service call locks its circle before validating, which gives
    one writer at a time per circle on PostgreSQL. SQLite ignores FOR UPDATE
    and serialises writers on its own database lock.
  - next_id() locks the counter row, so two transactions never receive the
    same id.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Only flush here; the route commits.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from circlecare.app.errors import AppError, ErrorCode
from circlecare.app.models.circle import Circle
from circlecare.app.models.expense import Expense
from circlecare.app.models.ledger import (
    DEFAULT_MAX_CIRCLES_PER_USER,
    MICRO_STX_MAX,
    SETTINGS_ROW_ID,
    LedgerCounter,
    LedgerSettings,
)
from circlecare.app.models.member import Member
from circlecare.app.models.pairwise_balance import PairwiseBalance

CIRCLE_COUNTER = "circle"
EXPENSE_COUNTER = "expense"
SETTLEMENT_COUNTER = "settlement"

# Most items accepted by one bulk call (members, expenses or debts).
BULK_BATCH_LIMIT = 20


# ── Sequential ids ─────────────────────────────────────────────────────────

def _lock_counter(name: str, session: Session) -> LedgerCounter:
    counter = session.execute(
        select(LedgerCounter)
        .where(LedgerCounter.name == name)
        .with_for_update()
    ).scalar_one_or_none()

    if counter is None:
        counter = LedgerCounter(name=name, value=0)
        session.add(counter)
        session.flush()
    return counter


def next_id(name: str, session: Session) -> int:
    """Hands out the next id for `name`. Ids start at 1 and are never reused."""
    counter = _lock_counter(name, session)
    counter.value += 1
    session.flush()
    return counter.value


def issued_count(name: str, session: Session) -> int:
    """Number of ids handed out so far for `name` (0 before the first)."""
    value = session.execute(
        select(LedgerCounter.value).where(LedgerCounter.name == name)
    ).scalar_one_or_none()
    return value or 0


# ── Circle and member lookups ──────────────────────────────────────────────

def get_circle_or_404(circle_id: int, session: Session) -> Circle:
    """Returns the Circle or raises CIRCLE_NOT_FOUND (404)."""
    circle = session.get(Circle, circle_id)
    if circle is None:
        raise AppError(
            ErrorCode.CIRCLE_NOT_FOUND,
            f"Circle {circle_id} does not exist.",
            404,
        )
    return circle


def lock_circle(circle_id: int, session: Session) -> Circle:
    """Like get_circle_or_404, but takes the row lock for the transaction."""
    circle = session.execute(
        select(Circle)
        .where(Circle.id == circle_id)
        .with_for_update()
    ).scalar_one_or_none()

    if circle is None:
        raise AppError(
            ErrorCode.CIRCLE_NOT_FOUND,
            f"Circle {circle_id} does not exist.",
            404,
        )
    return circle


def require_open(circle: Circle) -> None:
    """
    Raises if the circle refuses ledger mutations.

    Deactivation is checked first: a deactivated circle reports
    CIRCLE_INACTIVE even if it was also paused.
    """
    if not circle.active:
        raise AppError(
            ErrorCode.CIRCLE_INACTIVE,
            f"Circle {circle.id} has been deactivated.",
            409,
        )
    if circle.paused:
        raise AppError(
            ErrorCode.CIRCLE_PAUSED,
            f"Circle {circle.id} is paused.",
            409,
        )


def get_member(circle_id: int, address: str, session: Session) -> Member | None:
    return session.get(Member, (circle_id, address))


def is_active_member(circle_id: int, address: str, session: Session) -> bool:
    member = get_member(circle_id, address, session)
    return member is not None and member.active


def require_active_member(circle_id: int, address: str, session: Session) -> None:
    """Raises UNAUTHORIZED (403) unless `address` is an active member."""
    if not is_active_member(circle_id, address, session):
        raise AppError(
            ErrorCode.UNAUTHORIZED,
            f"{address} is not a member of circle {circle_id}.",
            403,
        )


def get_expense_or_404(expense_id: int, session: Session, lock: bool = False) -> Expense:
    """
    Returns the Expense or raises EXPENSE_NOT_FOUND (404).

    With `lock`, the row is re-read under FOR UPDATE and overwrites any copy
    already in the session, so checks made after lock_circle() see the state
    committed by the previous writer.
    """
    if lock:
        expense = session.execute(
            select(Expense)
            .where(Expense.id == expense_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
    else:
        expense = session.get(Expense, expense_id)
    if expense is None:
        raise AppError(
            ErrorCode.EXPENSE_NOT_FOUND,
            f"Expense {expense_id} does not exist.",
            404,
        )
    return expense


# ── Pairwise balances ──────────────────────────────────────────────────────
#
# A missing row means zero. Rows never hold zero: reduce_balance() deletes a
# row when it is paid off, add_balance() ignores zero amounts.
# ──────────────────────────────────────────────────────────────────────────

def _balance_row(
        circle_id: int,
        debtor: str,
        creditor: str,
        session: Session,
) -> PairwiseBalance | None:
    return session.get(PairwiseBalance, (circle_id, debtor, creditor))


def get_balance(circle_id: int, debtor: str, creditor: str, session: Session) -> int:
    """Amount `debtor` owes `creditor` in the circle; 0 when absent."""
    row = _balance_row(circle_id, debtor, creditor, session)
    return row.amount if row is not None else 0


def add_balance(
        circle_id: int,
        debtor: str,
        creditor: str,
        amount: int,
        session: Session,
) -> None:
    if amount == 0:
        return
    if debtor == creditor:
        # A payer never owes themselves; reaching this is a programming error.
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            f"Refusing to record a self-debt for {debtor} in circle {circle_id}.",
            500,
        )

    row = _balance_row(circle_id, debtor, creditor, session)
    current = row.amount if row is not None else 0
    if current + amount > MICRO_STX_MAX:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            f"{debtor} would owe {creditor} more than {MICRO_STX_MAX} microSTX in circle {circle_id}.",
            400,
            field="amount",
        )

    if row is None:
        session.add(PairwiseBalance(
            circle_id=circle_id,
            debtor=debtor,
            creditor=creditor,
            amount=amount,
        ))
    else:
        row.amount += amount
    session.flush()


def reduce_balance(
        circle_id: int,
        debtor: str,
        creditor: str,
        amount: int,
        session: Session,
) -> int:
    """Subtracts `amount` from the debt and returns what remains."""
    row = _balance_row(circle_id, debtor, creditor, session)
    outstanding = row.amount if row is not None else 0

    if amount <= 0 or amount > outstanding:
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            f"Cannot reduce balance {debtor} -> {creditor} of {outstanding} by {amount}.",
            500,
        )

    remaining = outstanding - amount
    if remaining == 0:
        session.delete(row)
    else:
        row.amount = remaining
    session.flush()
    return remaining


def list_balances(circle_id: int, session: Session) -> list[PairwiseBalance]:
    """All non-zero pairwise balances of a circle, in a stable order."""
    stmt = (
        select(PairwiseBalance)
        .where(PairwiseBalance.circle_id == circle_id)
        .order_by(PairwiseBalance.debtor.asc(), PairwiseBalance.creditor.asc())
    )
    return list(session.execute(stmt).scalars().all())


def has_open_balances(circle_id: int, address: str, session: Session) -> bool:
    """True if `address` owes, or is owed, anything in the circle."""
    stmt = (
        select(PairwiseBalance.amount)
        .where(
            PairwiseBalance.circle_id == circle_id,
            (PairwiseBalance.debtor == address) | (PairwiseBalance.creditor == address),
        )
        .limit(1)
    )
    return session.execute(stmt).first() is not None


# ── Ledger settings ────────────────────────────────────────────────────────

def get_settings(session: Session, default_owner: str, lock: bool = False) -> LedgerSettings:
    """
    Returns the settings row, creating it on first use.

    `default_owner` seeds the owner column only when the row does not exist
    yet; after that the stored owner is authoritative.
    """
    stmt = select(LedgerSettings).where(LedgerSettings.id == SETTINGS_ROW_ID)
    if lock:
        stmt = stmt.with_for_update()
    settings = session.execute(stmt).scalar_one_or_none()

    if settings is None:
        settings = LedgerSettings(
            id=SETTINGS_ROW_ID,
            owner=default_owner,
            creation_fee=0,
            max_circles_per_user=DEFAULT_MAX_CIRCLES_PER_USER,
        )
        session.add(settings)
        session.flush()
    return settings
