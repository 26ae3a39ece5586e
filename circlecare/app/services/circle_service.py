"""
services/circle_service.py: circle lifecycle and membership.

Authorization rules:
  - Creating a circle:          any authenticated principal
  - Adding / removing members:  circle creator only
  - Pause / unpause / deactivate: circle creator only
  - The creator can never be removed from their own circle.

State rules:
  - Deactivation is terminal. Every later mutation on the circle fails with
    CIRCLE_INACTIVE (including pause / unpause).
  - Pausing blocks expense and settlement mutations only; membership can
    still change while a circle is paused.
  - A member can be removed only when every pairwise balance involving them
    is zero (NON_ZERO_BALANCE otherwise).

Ordering of checks for member mutations:
  circle exists -> caller is creator -> circle active -> input -> capacity

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility: only flush here.
  - Bulk calls run every item through the same code path as the single call;
    the first failure propagates and the route rolls the whole batch back.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from circlecare.app.errors import AppError, ErrorCode
from circlecare.app.models.circle import CIRCLE_NAME_MAX, MAX_MEMBERS, Circle
from circlecare.app.models.member import NICKNAME_MAX, Member, UserCircle
from circlecare.app.principals import require_principal
from circlecare.app.services import ledger_store, transfer_service

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _validate_name(name: str) -> str:
    if not isinstance(name, str) or not name.strip() or len(name) > CIRCLE_NAME_MAX:
        raise AppError(
            ErrorCode.INVALID_NAME,
            f"Circle name must be 1 to {CIRCLE_NAME_MAX} characters.",
            400,
            field="name",
        )
    return name


def _validate_nickname(nickname: str) -> str:
    if not isinstance(nickname, str) or not nickname.strip() or len(nickname) > NICKNAME_MAX:
        raise AppError(
            ErrorCode.INVALID_NICKNAME,
            f"Nickname must be 1 to {NICKNAME_MAX} characters.",
            400,
            field="nickname",
        )
    return nickname


def _require_creator(circle: Circle, caller: str) -> None:
    if caller != circle.creator:
        raise AppError(
            ErrorCode.UNAUTHORIZED,
            f"Only the creator of circle {circle.id} may do this.",
            403,
        )


def _require_active(circle: Circle) -> None:
    if not circle.active:
        raise AppError(
            ErrorCode.CIRCLE_INACTIVE,
            f"Circle {circle.id} has been deactivated.",
            409,
        )


def _locked_circle_for_creator(circle_id: int, caller: str, session: Session) -> Circle:
    circle = ledger_store.lock_circle(circle_id, session)
    _require_creator(circle, caller)
    _require_active(circle)
    return circle


def _enroll(
        circle: Circle,
        address: str,
        nickname: str,
        block_height: int,
        session: Session,
) -> Member:
    """Writes the member row and the reverse index; bumps member_count."""
    member = Member(
        circle_id=circle.id,
        address=address,
        nickname=nickname,
        joined_at=block_height,
        active=True,
        position=circle.member_count,
    )
    session.add(member)
    session.add(UserCircle(address=address, circle_id=circle.id))
    circle.member_count += 1
    session.flush()
    return member


def _admit_member(
        circle: Circle,
        address: str,
        nickname: str,
        block_height: int,
        session: Session,
) -> Member:
    """Validates and enrolls one new member. Shared by single and bulk add."""
    require_principal(address, field="address")
    _validate_nickname(nickname)

    if ledger_store.get_member(circle.id, address, session) is not None:
        raise AppError(
            ErrorCode.MEMBER_EXISTS,
            f"{address} is already a member of circle {circle.id}.",
            409,
        )

    if circle.member_count >= MAX_MEMBERS:
        raise AppError(
            ErrorCode.MAX_MEMBERS,
            f"Circle {circle.id} already has the maximum of {MAX_MEMBERS} members.",
            422,
        )

    member = _enroll(circle, address, nickname, block_height, session)
    logger.info("member %s added to circle %d", address, circle.id)
    return member


# ── Circle lifecycle ───────────────────────────────────────────────────────

def create_circle(
        name: str,
        nickname: str,
        creator: str,
        block_height: int,
        ledger_owner: str,
        session: Session,
) -> Circle:
    """
    Creates a circle with the next sequential id and enrolls the creator as
    its first member.

    When the ledger charges a creation fee, the fee is transferred from the
    creator to the ledger owner in the same transaction. The owner creating
    their own circle pays nothing.

    Raises:
      AppError(INVALID_NAME, 400)     : name empty, blank or too long
      AppError(INVALID_NICKNAME, 400) : nickname empty, blank or too long
      AppError(MAX_CIRCLES, 422)      : creator reached the per-user limit
    """
    _validate_name(name)
    _validate_nickname(nickname)

    # The settings row lock serialises creates, so the per-user count below
    # cannot be passed by two concurrent requests.
    settings = ledger_store.get_settings(session, default_owner=ledger_owner, lock=True)

    created = session.execute(
        select(func.count()).select_from(Circle).where(Circle.creator == creator)
    ).scalar_one()
    if created >= settings.max_circles_per_user:
        raise AppError(
            ErrorCode.MAX_CIRCLES,
            f"{creator} has already created the maximum of "
            f"{settings.max_circles_per_user} circles.",
            422,
        )

    circle_id = ledger_store.next_id(ledger_store.CIRCLE_COUNTER, session)

    if settings.creation_fee > 0 and creator != settings.owner:
        transfer_service.transfer_stx(
            sender=creator,
            recipient=settings.owner,
            amount=settings.creation_fee,
            ceiling=settings.creation_fee,
            memo=transfer_service.MEMO_CREATION_FEE,
            block_height=block_height,
            session=session,
            circle_id=circle_id,
        )

    circle = Circle(
        id=circle_id,
        name=name,
        creator=creator,
        created_at=block_height,
        active=True,
        paused=False,
        member_count=0,
    )
    session.add(circle)
    session.flush()

    _enroll(circle, creator, nickname, block_height, session)

    logger.info("circle %d created by %s", circle.id, creator)
    return circle


def pause_circle(circle_id: int, caller: str, session: Session) -> Circle:
    circle = _locked_circle_for_creator(circle_id, caller, session)
    circle.paused = True
    session.flush()
    logger.info("circle %d paused", circle_id)
    return circle


def unpause_circle(circle_id: int, caller: str, session: Session) -> Circle:
    circle = _locked_circle_for_creator(circle_id, caller, session)
    circle.paused = False
    session.flush()
    logger.info("circle %d unpaused", circle_id)
    return circle


def deactivate_circle(circle_id: int, caller: str, session: Session) -> Circle:
    """Terminal. History (expenses, balances, settlements) is kept."""
    circle = _locked_circle_for_creator(circle_id, caller, session)
    circle.active = False
    session.flush()
    logger.info("circle %d deactivated", circle_id)
    return circle


# ── Membership ─────────────────────────────────────────────────────────────

def add_member(
        circle_id: int,
        caller: str,
        address: str,
        nickname: str,
        block_height: int,
        session: Session,
) -> Member:
    """
    Adds `address` to the circle. Only the circle creator may call this.

    Raises:
      AppError(CIRCLE_NOT_FOUND, 404)
      AppError(UNAUTHORIZED, 403)      : caller is not the creator
      AppError(CIRCLE_INACTIVE, 409)
      AppError(INVALID_PRINCIPAL, 400) : malformed address
      AppError(INVALID_NICKNAME, 400)
      AppError(MEMBER_EXISTS, 409)
      AppError(MAX_MEMBERS, 422)
    """
    circle = _locked_circle_for_creator(circle_id, caller, session)
    return _admit_member(circle, address, nickname, block_height, session)


def add_multiple_members(
        circle_id: int,
        caller: str,
        members: list[dict],
        block_height: int,
        session: Session,
) -> list[Member]:
    """
    Adds every {address, nickname} entry in order, or none of them.

    The first failing entry's error propagates unchanged; rows flushed for
    earlier entries are discarded when the route rolls back.
    """
    circle = _locked_circle_for_creator(circle_id, caller, session)

    if not members:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            "At least one member is required.",
            400,
            field="members",
        )
    if len(members) > ledger_store.BULK_BATCH_LIMIT:
        raise AppError(
            ErrorCode.LIMIT_EXCEEDED,
            f"At most {ledger_store.BULK_BATCH_LIMIT} members may be added in one batch.",
            422,
            field="members",
        )

    return [
        _admit_member(circle, entry["address"], entry["nickname"], block_height, session)
        for entry in members
    ]


def remove_member(circle_id: int, caller: str, address: str, session: Session) -> None:
    """
    Removes a member whose pairwise balances are all zero.

    Expense and settlement history that mentions the member is kept.

    Raises:
      AppError(CIRCLE_NOT_FOUND, 404)
      AppError(UNAUTHORIZED, 403)     : caller not creator, or target is creator
      AppError(CIRCLE_INACTIVE, 409)
      AppError(MEMBER_NOT_FOUND, 404)
      AppError(NON_ZERO_BALANCE, 409)
    """
    circle = _locked_circle_for_creator(circle_id, caller, session)

    if address == circle.creator:
        raise AppError(
            ErrorCode.UNAUTHORIZED,
            "The circle creator cannot be removed.",
            403,
        )

    member = ledger_store.get_member(circle_id, address, session)
    if member is None:
        raise AppError(
            ErrorCode.MEMBER_NOT_FOUND,
            f"{address} is not a member of circle {circle_id}.",
            404,
        )

    if ledger_store.has_open_balances(circle_id, address, session):
        raise AppError(
            ErrorCode.NON_ZERO_BALANCE,
            f"{address} still has outstanding balances in circle {circle_id}.",
            409,
        )

    removed_position = member.position
    session.delete(member)

    index_row = session.get(UserCircle, (address, circle_id))
    if index_row is not None:
        session.delete(index_row)
    session.flush()

    # Keep positions dense so getMemberAtIndex stays a point lookup.
    session.execute(
        update(Member)
        .where(Member.circle_id == circle_id, Member.position > removed_position)
        .values(position=Member.position - 1)
        .execution_options(synchronize_session="fetch")
    )
    circle.member_count -= 1
    session.flush()

    logger.info("member %s removed from circle %d", address, circle_id)


# ── Reads ──────────────────────────────────────────────────────────────────

def get_circle(circle_id: int, session: Session) -> Circle:
    return ledger_store.get_circle_or_404(circle_id, session)


def get_member_info(circle_id: int, address: str, session: Session) -> Member:
    ledger_store.get_circle_or_404(circle_id, session)
    member = ledger_store.get_member(circle_id, address, session)
    if member is None:
        raise AppError(
            ErrorCode.MEMBER_NOT_FOUND,
            f"{address} is not a member of circle {circle_id}.",
            404,
        )
    return member


def get_circle_members(circle_id: int, session: Session) -> list[Member]:
    """Members in join order."""
    ledger_store.get_circle_or_404(circle_id, session)
    stmt = (
        select(Member)
        .where(Member.circle_id == circle_id)
        .order_by(Member.position.asc())
    )
    return list(session.execute(stmt).scalars().all())


def get_member_at_index(circle_id: int, index: int, session: Session) -> str | None:
    """Principal at `index` in join order, or None when out of range."""
    ledger_store.get_circle_or_404(circle_id, session)
    return session.execute(
        select(Member.address).where(
            Member.circle_id == circle_id,
            Member.position == index,
        )
    ).scalar_one_or_none()


def is_circle_member(circle_id: int, address: str, session: Session) -> bool:
    return ledger_store.is_active_member(circle_id, address, session)


def get_user_circles(address: str, session: Session) -> list[int]:
    require_principal(address, field="address")
    stmt = (
        select(UserCircle.circle_id)
        .where(UserCircle.address == address)
        .order_by(UserCircle.circle_id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def get_next_circle_id(session: Session) -> int:
    return ledger_store.issued_count(ledger_store.CIRCLE_COUNTER, session) + 1


def get_total_circles(session: Session) -> int:
    return ledger_store.issued_count(ledger_store.CIRCLE_COUNTER, session)
