"""
schemas/expense_schema.py: Marshmallow schemas for expense endpoints.

Validation responsibility:
  - This file:
      - Field types. `amount` accepts an integer or a digit string (MicroStx).
      - `expires_at` is an optional non-negative integer block height.
  - services/expense_service.py:
      - description length / blank         (INVALID_INPUT)
      - amount == 0                         (INVALID_INPUT)
      - participant count                   (INVALID_INPUT / LIMIT_EXCEEDED)
      - duplicate / non-member participants (INVALID_PARTICIPANT)
      - expires_at after the current block  (INVALID_INPUT)

IMPORTANT: Inherits from marshmallow.Schema directly, never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from circlecare.app.schemas.fields import MicroStx


class CreateExpenseSchema(Schema):
    """
    POST /circles/:id/expenses, and one entry of a bulk add.

    The payer is always the authenticated caller; it is not a body field.
    """

    description = fields.Str(required=True)

    amount = MicroStx(required=True)

    participants = fields.List(fields.Str(), required=True)

    # Explicit expiry (block height). Omitted: the default expiry window applies.
    expires_at = fields.Int(
        strict=True,
        load_default=None,
        validate=validate.Range(min=0, error="expires_at must be a non-negative block height."),
    )


class AddMultipleExpensesSchema(Schema):
    """POST /circles/:id/expenses/bulk"""

    expenses = fields.List(fields.Nested(CreateExpenseSchema), required=True)


class UpdateExpenseDescriptionSchema(Schema):
    """PATCH /circles/:id/expenses/:eid: only the description is editable."""

    description = fields.Str(required=True)
