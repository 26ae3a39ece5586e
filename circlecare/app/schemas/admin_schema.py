"""
schemas/admin_schema.py: request schemas for ledger settings.

Range checks (fee >= 0 is guaranteed by MicroStx; the 1..100 circle limit)
live in services/admin_service.py so they report INVALID_INPUT.
"""

from __future__ import annotations

from marshmallow import Schema, fields

from circlecare.app.schemas.fields import MicroStx


class SetCreationFeeSchema(Schema):
    fee = MicroStx(required=True)


class SetMaxCirclesSchema(Schema):
    max_circles_per_user = fields.Int(required=True, strict=True)
