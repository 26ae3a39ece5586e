"""
services/transfer_service.py: value-transfer primitive.

Moves microSTX from one principal to another inside the caller's database
transaction, so a transfer and the ledger change it pays for commit or roll
back together. The journal (`stx_transfers`) is what a chain relayer would
broadcast; this service never talks to a node itself.

The `ceiling` argument is the asset restriction: the caller states the most
it authorises, and any transfer above it is refused before anything is
written.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from circlecare.app.errors import AppError, ErrorCode
from circlecare.app.models.ledger import StxTransfer

logger = logging.getLogger(__name__)

MEMO_SETTLEMENT = "settlement"
MEMO_CREATION_FEE = "creation-fee"


def transfer_stx(
        sender: str,
        recipient: str,
        amount: int,
        ceiling: int,
        memo: str,
        block_height: int,
        session: Session,
        circle_id: int | None = None,
) -> StxTransfer:
    """
    Records a transfer of `amount` microSTX from `sender` to `recipient`.

    Raises:
      AppError(INVALID_INPUT, 400): amount not positive, amount above
                                     ceiling, or sender == recipient
    """
    if amount <= 0:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            "Transfer amount must be greater than zero.",
            400,
        )
    if amount > ceiling:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            f"Transfer of {amount} exceeds the authorised ceiling of {ceiling}.",
            400,
        )
    if sender == recipient:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            "Sender and recipient of a transfer must differ.",
            400,
        )

    transfer = StxTransfer(
        sender=sender,
        recipient=recipient,
        amount=amount,
        memo=memo,
        circle_id=circle_id,
        block_height=block_height,
    )
    session.add(transfer)
    session.flush()

    logger.info(
        "stx transfer %s: %s -> %s amount=%d memo=%s",
        transfer.id, sender, recipient, amount, memo,
    )
    return transfer
