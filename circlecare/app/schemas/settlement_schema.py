"""
schemas/settlement_schema.py: Marshmallow schemas for settlement endpoints.

The debtor is always the authenticated caller (flask.g.principal), never a
body field.

Validation responsibility:
  - This file: field types; `amount` as MicroStx.
  - services/settlement_service.py:
      - INVALID_PRINCIPAL for a malformed creditor
      - amount == 0 and overpayment (INVALID_INPUT)
      - NO_DEBT (requires the current balance)

IMPORTANT: Inherits from marshmallow.Schema directly, never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, fields

from circlecare.app.schemas.fields import MicroStx


class SettleDebtSchema(Schema):
    """
    POST /circles/:id/settlements

    amount : optional. Omitted or null settles the full outstanding balance.
    """

    creditor = fields.Str(required=True)

    amount = MicroStx(load_default=None, allow_none=True)


class SettleMultipleDebtsSchema(Schema):
    """POST /circles/:id/settlements/bulk: clears each listed debt in full."""

    creditors = fields.List(fields.Str(), required=True)
