"""
schemas/circle_schema.py: Marshmallow schemas for circle and membership
endpoints.

Validation responsibility:
  - This file: request shape and field types only.
  - services/circle_service.py:
      - INVALID_NAME / INVALID_NICKNAME (length and blank checks, which carry
        ledger error codes)
      - INVALID_PRINCIPAL (address shape; checked per item so a bulk call
        reports the first failing entry)
      - MEMBER_EXISTS, MAX_MEMBERS (require DB lookups)

IMPORTANT: Inherits from marshmallow.Schema directly, never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, fields


class CreateCircleSchema(Schema):
    """POST /circles"""

    name = fields.Str(required=True)

    # Nickname the creator is enrolled under.
    nickname = fields.Str(required=True)


class AddMemberSchema(Schema):
    """POST /circles/:id/members, and one entry of a bulk add."""

    address = fields.Str(required=True)
    nickname = fields.Str(required=True)


class AddMultipleMembersSchema(Schema):
    """
    POST /circles/:id/members/bulk

    Empty and oversized batches are rejected by the service with
    INVALID_INPUT / LIMIT_EXCEEDED so that all batch endpoints report the
    same ledger codes.
    """

    members = fields.List(fields.Nested(AddMemberSchema), required=True)
