"""
services/admin_service.py: ledger-wide settings.

Only the ledger owner (the principal stored in ledger_settings.owner,
seeded from the LEDGER_OWNER config value) may change settings. Everyone
may read them.

Layer rules:
  - No Flask imports. The route passes the configured owner in.
  - Commits are the route's responsibility: only flush here.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from circlecare.app.errors import AppError, ErrorCode
from circlecare.app.models.ledger import MAX_CIRCLES_PER_USER_CAP, LedgerSettings
from circlecare.app.services import ledger_store

logger = logging.getLogger(__name__)


def _locked_settings_for_owner(caller: str, ledger_owner: str, session: Session) -> LedgerSettings:
    settings = ledger_store.get_settings(session, default_owner=ledger_owner, lock=True)
    if caller != settings.owner:
        raise AppError(
            ErrorCode.OWNER_ONLY,
            "Only the ledger owner may change ledger settings.",
            403,
        )
    return settings


def get_settings(ledger_owner: str, session: Session) -> LedgerSettings:
    return ledger_store.get_settings(session, default_owner=ledger_owner)


def set_creation_fee(
        caller: str,
        fee: int,
        ledger_owner: str,
        session: Session,
) -> LedgerSettings:
    """Sets the fee (microSTX) charged to create a circle. 0 disables it."""
    settings = _locked_settings_for_owner(caller, ledger_owner, session)

    if fee < 0:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            "Creation fee cannot be negative.",
            400,
            field="fee",
        )

    settings.creation_fee = fee
    session.flush()
    logger.info("creation fee set to %d by %s", fee, caller)
    return settings


def set_max_circles_per_user(
        caller: str,
        limit: int,
        ledger_owner: str,
        session: Session,
) -> LedgerSettings:
    """Sets how many circles one principal may create (1..MAX_CIRCLES_PER_USER_CAP)."""
    settings = _locked_settings_for_owner(caller, ledger_owner, session)

    if limit < 1 or limit > MAX_CIRCLES_PER_USER_CAP:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            f"max_circles_per_user must be between 1 and {MAX_CIRCLES_PER_USER_CAP}.",
            400,
            field="max_circles_per_user",
        )

    settings.max_circles_per_user = limit
    session.flush()
    logger.info("max circles per user set to %d by %s", limit, caller)
    return settings
