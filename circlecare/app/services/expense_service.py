"""
services/expense_service.py: Expense business logic.

Rules enforced here:
  - Only an active member of an open circle (active, not paused) may record
    an expense. The caller is always the payer.
  - description: 1..100 characters, not blank           (INVALID_INPUT)
  - amount: strictly positive microSTX                   (INVALID_INPUT)
  - participants: 1..20 active members, no duplicates
      empty list                      -> INVALID_INPUT
      more than MAX_PARTICIPANTS      -> LIMIT_EXCEEDED
      duplicate or non-member         -> INVALID_PARTICIPANT
  - explicit expiry must lie strictly after the current block height.

Equal split:
  - Every participant's share is amount // n. The remainder (at most n - 1
    microSTX) is added to the payer's share when the payer participates,
    otherwise to the first listed participant. Shares always sum to amount.
  - Every participant except the payer then owes the payer their share.
    The payer never accrues a debt to themselves.

Expense lifecycle:
  Open -> Settled  via settle_expense (terminal)
  Open -> Expired  when block height >= expires_at (terminal, checked lazily)
  Settling an expense marks it closed; it does not move pairwise balances.
  Debts are cleared through settlement_service.

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
from circlecare.app.models.expense import (
    DEFAULT_EXPIRY_BLOCKS,
    DESCRIPTION_MAX,
    MAX_PARTICIPANTS,
    Expense,
    ExpenseParticipant,
)
from circlecare.app.services import ledger_store

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _validate_description(description: str) -> None:
    if (
        not isinstance(description, str)
        or not description.strip()
        or len(description) > DESCRIPTION_MAX
    ):
        raise AppError(
            ErrorCode.INVALID_INPUT,
            f"Description must be 1 to {DESCRIPTION_MAX} characters.",
            400,
            field="description",
        )


def _validate_amount(amount: int) -> None:
    if amount <= 0:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            "Amount must be greater than zero.",
            400,
            field="amount",
        )


def _validate_participants(
        circle_id: int,
        participants: list[str],
        session: Session,
) -> None:
    """Checks count, uniqueness and membership, in that order."""
    if not participants:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            "At least one participant is required.",
            400,
            field="participants",
        )

    if len(participants) > MAX_PARTICIPANTS:
        raise AppError(
            ErrorCode.LIMIT_EXCEEDED,
            f"An expense may have at most {MAX_PARTICIPANTS} participants.",
            422,
            field="participants",
        )

    seen: set[str] = set()
    for participant in participants:
        if participant in seen:
            raise AppError(
                ErrorCode.INVALID_PARTICIPANT,
                f"{participant} is listed more than once.",
                422,
                field="participants",
            )
        seen.add(participant)

        if not ledger_store.is_active_member(circle_id, participant, session):
            raise AppError(
                ErrorCode.INVALID_PARTICIPANT,
                f"{participant} is not a member of circle {circle_id}.",
                422,
                field="participants",
            )


def _compute_equal_shares(
        amount: int,
        participants: list[str],
        payer: str,
) -> list[tuple[str, int]]:
    """
    Divides amount among participants with integer division.

    Returns (participant, share) pairs in the order given. The remainder goes
    to the payer's share, or to the first participant when the payer is not
    among them. Guarantees: sum(shares) == amount.
    """
    n = len(participants)
    base = amount // n
    remainder = amount - base * n

    shares = {participant: base for participant in participants}
    if remainder:
        absorber = payer if payer in shares else participants[0]
        shares[absorber] += remainder

    result = [(participant, shares[participant]) for participant in participants]

    # Sanity check: this must always hold; a failure here is a programming error.
    computed_sum = sum(share for _, share in result)
    if computed_sum != amount:
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            f"Equal split computation produced sum {computed_sum} for amount {amount}. "
            "This is a bug.",
            500,
        )

    return result


def _record_expense(
        circle: Circle,
        payer: str,
        description: str,
        amount: int,
        participants: list[str],
        block_height: int,
        expires_at: int | None,
        session: Session,
) -> Expense:
    """
    Validates and writes one expense plus its debts. Shared by single and
    bulk creation. The circle must already be locked and open, and the payer
    an active member.
    """
    _validate_description(description)
    _validate_amount(amount)
    _validate_participants(circle.id, participants, session)

    if expires_at is None:
        expires_at = block_height + DEFAULT_EXPIRY_BLOCKS
    elif expires_at <= block_height:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            f"expires_at ({expires_at}) must be after the current block height ({block_height}).",
            400,
            field="expires_at",
        )

    shares = _compute_equal_shares(amount, participants, payer)

    expense = Expense(
        id=ledger_store.next_id(ledger_store.EXPENSE_COUNTER, session),
        circle_id=circle.id,
        description=description,
        amount=amount,
        payer=payer,
        created_at=block_height,
        expires_at=expires_at,
        settled=False,
        settled_at=None,
    )
    session.add(expense)
    session.flush()  # expense row must exist before its participants

    for position, (participant, share) in enumerate(shares):
        session.add(ExpenseParticipant(
            expense_id=expense.id,
            participant=participant,
            share=share,
            position=position,
        ))
        if participant != payer:
            ledger_store.add_balance(circle.id, participant, payer, share, session)
    session.flush()

    # Refresh to load the participants relationship for serialisation.
    session.refresh(expense)

    logger.info(
        "expense %d recorded in circle %d: payer=%s amount=%d participants=%d",
        expense.id, circle.id, payer, amount, len(participants),
    )
    return expense


def _open_circle_for_member(circle_id: int, caller: str, session: Session) -> Circle:
    circle = ledger_store.lock_circle(circle_id, session)
    ledger_store.require_open(circle)
    ledger_store.require_active_member(circle_id, caller, session)
    return circle


# ── Public service functions ───────────────────────────────────────────────

def create_expense(
        circle_id: int,
        caller: str,
        description: str,
        amount: int,
        participants: list[str],
        block_height: int,
        session: Session,
        expires_at: int | None = None,
) -> Expense:
    """
    Records an expense paid by `caller` and split equally among participants.

    With `expires_at` left as None the expense expires DEFAULT_EXPIRY_BLOCKS
    after `block_height`.

    Raises:
      AppError(CIRCLE_NOT_FOUND, 404)
      AppError(CIRCLE_INACTIVE, 409) / AppError(CIRCLE_PAUSED, 409)
      AppError(UNAUTHORIZED, 403)       : caller is not an active member
      AppError(INVALID_INPUT, 400)      : description, amount, empty
                                           participants or past expiry
      AppError(LIMIT_EXCEEDED, 422)     : too many participants
      AppError(INVALID_PARTICIPANT, 422): duplicate or non-member participant
    """
    circle = _open_circle_for_member(circle_id, caller, session)
    return _record_expense(
        circle, caller, description, amount, participants,
        block_height, expires_at, session,
    )


def add_multiple_expenses(
        circle_id: int,
        caller: str,
        expenses: list[dict],
        block_height: int,
        session: Session,
) -> list[Expense]:
    """
    Records each {description, amount, participants[, expires_at]} entry in
    order, or none of them. Returns the new expenses in input order.
    """
    circle = _open_circle_for_member(circle_id, caller, session)

    if not expenses:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            "At least one expense is required.",
            400,
            field="expenses",
        )
    if len(expenses) > ledger_store.BULK_BATCH_LIMIT:
        raise AppError(
            ErrorCode.LIMIT_EXCEEDED,
            f"At most {ledger_store.BULK_BATCH_LIMIT} expenses may be added in one batch.",
            422,
            field="expenses",
        )

    return [
        _record_expense(
            circle,
            caller,
            entry["description"],
            entry["amount"],
            entry["participants"],
            block_height,
            entry.get("expires_at"),
            session,
        )
        for entry in expenses
    ]


def update_expense_description(
        circle_id: int,
        expense_id: int,
        caller: str,
        description: str,
        session: Session,
) -> Expense:
    """
    Replaces the description of an unsettled expense. Payer only.

    Raises:
      AppError(CIRCLE_NOT_FOUND, 404) / AppError(EXPENSE_NOT_FOUND, 404)
      AppError(CIRCLE_INACTIVE, 409) / AppError(CIRCLE_PAUSED, 409)
      AppError(UNAUTHORIZED, 403)    : caller is not the payer
      AppError(ALREADY_SETTLED, 409)
      AppError(INVALID_INPUT, 400)   : new description invalid
    """
    circle = ledger_store.lock_circle(circle_id, session)

    expense = ledger_store.get_expense_or_404(expense_id, session, lock=True)
    if expense.circle_id != circle.id:
        raise AppError(
            ErrorCode.EXPENSE_NOT_FOUND,
            f"Expense {expense_id} does not belong to circle {circle_id}.",
            404,
        )

    ledger_store.require_open(circle)

    if caller != expense.payer:
        raise AppError(
            ErrorCode.UNAUTHORIZED,
            "Only the payer may edit this expense.",
            403,
        )

    if expense.settled:
        raise AppError(
            ErrorCode.ALREADY_SETTLED,
            f"Expense {expense_id} is settled and can no longer be edited.",
            409,
        )

    _validate_description(description)

    expense.description = description
    session.flush()
    logger.info("expense %d description updated", expense_id)
    return expense


def settle_expense(
        expense_id: int,
        caller: str,
        block_height: int,
        session: Session,
) -> Expense:
    """
    Marks a whole expense as settled.

    Check order: expense exists -> circle open -> not already settled ->
    not expired -> caller is an active member -> caller is a participant.
    An expired open expense fails with EXPIRED for every caller.

    The first read only finds the circle. The expense is read again once
    the circle lock is held, so a settle committed meanwhile is seen.
    """
    circle_id = ledger_store.get_expense_or_404(expense_id, session).circle_id
    circle = ledger_store.lock_circle(circle_id, session)
    expense = ledger_store.get_expense_or_404(expense_id, session, lock=True)
    ledger_store.require_open(circle)

    if expense.settled:
        raise AppError(
            ErrorCode.ALREADY_SETTLED,
            f"Expense {expense_id} has already been settled.",
            409,
        )

    if is_expired(expense, block_height):
        raise AppError(
            ErrorCode.EXPIRED,
            f"Expense {expense_id} expired at block {expense.expires_at}.",
            422,
        )

    ledger_store.require_active_member(circle.id, caller, session)

    if caller not in {p.participant for p in expense.participants}:
        raise AppError(
            ErrorCode.UNAUTHORIZED,
            f"Only a participant of expense {expense_id} may settle it.",
            403,
        )

    expense.settled = True
    expense.settled_at = block_height
    session.flush()

    logger.info("expense %d settled by %s at block %d", expense_id, caller, block_height)
    return expense


def is_expired(expense: Expense, block_height: int) -> bool:
    """Pure predicate: expired once block_height reaches expires_at."""
    return expense.expires_at is not None and block_height >= expense.expires_at


def is_expense_expired(expense_id: int, block_height: int, session: Session) -> bool:
    expense = ledger_store.get_expense_or_404(expense_id, session)
    return is_expired(expense, block_height)


def get_expense(expense_id: int, session: Session) -> Expense:
    return ledger_store.get_expense_or_404(expense_id, session)


def get_expense_receipt(expense_id: int, session: Session) -> str:
    expense = ledger_store.get_expense_or_404(expense_id, session)
    return f"Expense: {expense.description} Amount: {expense.amount}"


def list_expenses(circle_id: int, session: Session) -> list[Expense]:
    """All expenses of a circle, newest first."""
    ledger_store.get_circle_or_404(circle_id, session)
    stmt = (
        select(Expense)
        .where(Expense.circle_id == circle_id)
        .order_by(Expense.id.desc())
    )
    return list(session.execute(stmt).scalars().all())
