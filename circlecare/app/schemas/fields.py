"""
schemas/fields.py: custom marshmallow fields shared by request and response
schemas.

MicroStx
  Amounts are whole microSTX (1 STX = 1,000,000 microSTX). JavaScript clients
  cannot hold integers above 2**53 exactly, so amounts travel as strings on
  the way out. On the way in both a JSON integer and a digit string are
  accepted. Floats, booleans, signs, decimal points and exponents are
  rejected rather than rounded.
"""

from __future__ import annotations

from marshmallow import fields

from circlecare.app.models.ledger import MICRO_STX_MAX


class MicroStx(fields.Field):

    default_error_messages = {
        "invalid": "Amount must be a non-negative whole number of microSTX.",
        "too_large": f"Amount must not exceed {MICRO_STX_MAX} microSTX.",
    }

    def _serialize(self, value, attr, obj, **kwargs):
        if value is None:
            return None
        return str(int(value))

    def _deserialize(self, value, attr, data, **kwargs):
        # bool is a subclass of int; True must not become 1 microSTX.
        if isinstance(value, bool):
            raise self.make_error("invalid")

        if isinstance(value, int):
            amount = value
        elif isinstance(value, str) and value.isascii() and value.isdigit():
            amount = int(value)
        else:
            raise self.make_error("invalid")

        if amount < 0:
            raise self.make_error("invalid")
        if amount > MICRO_STX_MAX:
            raise self.make_error("too_large")
        return amount