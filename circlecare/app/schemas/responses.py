"""
schemas/responses.py: response serializers.

These are the only schemas built on ma.Schema (flask-marshmallow); they run
inside a request and are never used to load input. Amount fields use MicroStx
so every amount leaves the API as a string.
"""

from __future__ import annotations

from marshmallow import fields

from circlecare.app.extensions import ma
from circlecare.app.schemas.fields import MicroStx


class CircleResponseSchema(ma.Schema):
    id = fields.Int()
    name = fields.Str()
    creator = fields.Str()
    created_at = fields.Int()
    active = fields.Bool()
    paused = fields.Bool()
    member_count = fields.Int()


class MemberResponseSchema(ma.Schema):
    circle_id = fields.Int()
    address = fields.Str()
    nickname = fields.Str()
    joined_at = fields.Int()
    active = fields.Bool()
    index = fields.Int(attribute="position")


class ParticipantResponseSchema(ma.Schema):
    participant = fields.Str()
    share = MicroStx()


class ExpenseResponseSchema(ma.Schema):
    id = fields.Int()
    circle_id = fields.Int()
    description = fields.Str()
    amount = MicroStx()
    payer = fields.Str()
    participants = fields.List(fields.Nested(ParticipantResponseSchema))
    created_at = fields.Int()
    expires_at = fields.Int(allow_none=True)
    settled = fields.Bool()
    settled_at = fields.Int(allow_none=True)


class SettlementResponseSchema(ma.Schema):
    id = fields.Int()
    circle_id = fields.Int()
    debtor = fields.Str()
    creditor = fields.Str()
    amount = MicroStx()
    block_height = fields.Int()


class SettingsResponseSchema(ma.Schema):
    owner = fields.Str()
    creation_fee = MicroStx()
    max_circles_per_user = fields.Int()


class MemberNetBalanceSchema(ma.Schema):
    address = fields.Str()
    nickname = fields.Str()
    # Signed, so not MicroStx; still emitted as a string.
    net_balance = fields.Function(lambda row: str(row["net_balance"]))


class PairwiseBalanceSchema(ma.Schema):
    debtor = fields.Str()
    creditor = fields.Str()
    amount = MicroStx()


class CircleBalancesResponseSchema(ma.Schema):
    circle_id = fields.Int()
    members = fields.List(fields.Nested(MemberNetBalanceSchema))
    balances = fields.List(fields.Nested(PairwiseBalanceSchema))
    balance_sum = fields.Function(lambda data: str(data["balance_sum"]))


class CircleStatsResponseSchema(ma.Schema):
    circle_id = fields.Int()
    member_count = fields.Int()
    expense_count = fields.Int()
    total_expenses = MicroStx()
    settled_expense_count = fields.Int()
    settlement_count = fields.Int()
    total_settled = MicroStx()


circle_response = CircleResponseSchema()
member_response = MemberResponseSchema()
members_response = MemberResponseSchema(many=True)
expense_response = ExpenseResponseSchema()
expenses_response = ExpenseResponseSchema(many=True)
settlement_response = SettlementResponseSchema()
settlements_response = SettlementResponseSchema(many=True)
settings_response = SettingsResponseSchema()
circle_balances_response = CircleBalancesResponseSchema()
circle_stats_response = CircleStatsResponseSchema()
