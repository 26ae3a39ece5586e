"""
tests/unit/test_validation_schemas.py: Unit tests for the request schemas
and the MicroStx field.

What this file proves:
  - Every schema accepts well-formed input.
  - Missing required fields and wrong types raise ValidationError.
  - Ledger rules (lengths, principal shape, membership) are NOT checked here;
    those belong to the services and carry ledger error codes.

Schemas inherit from marshmallow.Schema directly, so no Flask application
context is needed.
"""

from __future__ import annotations

import pytest
from marshmallow import ValidationError

from circlecare.app.schemas.admin_schema import SetCreationFeeSchema, SetMaxCirclesSchema
from circlecare.app.schemas.circle_schema import (
    AddMemberSchema,
    AddMultipleMembersSchema,
    CreateCircleSchema,
)
from circlecare.app.schemas.expense_schema import (
    AddMultipleExpensesSchema,
    CreateExpenseSchema,
    UpdateExpenseDescriptionSchema,
)
from circlecare.app.schemas.fields import MICRO_STX_MAX, MicroStx
from circlecare.app.schemas.settlement_schema import SettleDebtSchema, SettleMultipleDebtsSchema

W1 = "ST1SJ3DTE5DN7X54YDH5D64R3BCB6A2AG2ZQ8YPD5"
W2 = "ST2CY5V39NHDPWSXMW9QDT3HC3GD6Q6XX4CFRK9AG"


# ═══════════════════════════════════════════════════════════════════════════
# MicroStx
# ═══════════════════════════════════════════════════════════════════════════

class TestMicroStx:

    def _load(self, value):
        return SetCreationFeeSchema().load({"fee": value})["fee"]

    def test_accepts_int(self):
        assert self._load(1500) == 1500

    def test_accepts_digit_string(self):
        assert self._load("9007199254740993") == 9007199254740993

    def test_accepts_zero(self):
        assert self._load(0) == 0

    def test_accepts_max(self):
        assert self._load(str(MICRO_STX_MAX)) == MICRO_STX_MAX

    @pytest.mark.parametrize("value", [-1, "-1", 1.5, "1.5", "1e6", "", " 5", True, None, "١٢"])
    def test_rejects_non_whole_numbers(self, value):
        with pytest.raises(ValidationError) as exc_info:
            self._load(value)
        assert "fee" in exc_info.value.messages

    def test_rejects_above_max(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load(MICRO_STX_MAX + 1)
        assert "exceed" in exc_info.value.messages["fee"][0]

    def test_serializes_to_string(self):
        field = MicroStx()
        assert field.serialize("amount", {"amount": 42}) == "42"
        assert field.serialize("amount", {"amount": None}) is None


# ═══════════════════════════════════════════════════════════════════════════
# Circle schemas
# ═══════════════════════════════════════════════════════════════════════════

class TestCircleSchemas:

    def test_create_circle_valid(self):
        data = CreateCircleSchema().load({"name": "Flat", "nickname": "me"})
        assert data == {"name": "Flat", "nickname": "me"}

    def test_create_circle_missing_nickname(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateCircleSchema().load({"name": "Flat"})
        assert "nickname" in exc_info.value.messages

    def test_name_length_left_to_service(self):
        # Over-long names load; circle_service reports INVALID_NAME.
        data = CreateCircleSchema().load({"name": "x" * 80, "nickname": "me"})
        assert len(data["name"]) == 80

    def test_add_member_rejects_non_string_address(self):
        with pytest.raises(ValidationError):
            AddMemberSchema().load({"address": 12, "nickname": "bob"})

    def test_bulk_members_nested_error_path(self):
        with pytest.raises(ValidationError) as exc_info:
            AddMultipleMembersSchema().load({"members": [
                {"address": W1, "nickname": "a"},
                {"address": W2},
            ]})
        assert "nickname" in exc_info.value.messages["members"][1]

    def test_bulk_members_empty_list_loads(self):
        assert AddMultipleMembersSchema().load({"members": []}) == {"members": []}


# ═══════════════════════════════════════════════════════════════════════════
# Expense schemas
# ═══════════════════════════════════════════════════════════════════════════

class TestExpenseSchemas:

    def test_create_expense_defaults_expiry_to_none(self):
        data = CreateExpenseSchema().load({
            "description": "Lunch",
            "amount": "1200",
            "participants": [W1, W2],
        })
        assert data["amount"] == 1200
        assert data["expires_at"] is None

    def test_create_expense_explicit_expiry(self):
        data = CreateExpenseSchema().load({
            "description": "Lunch",
            "amount": 1,
            "participants": [W1],
            "expires_at": 5000,
        })
        assert data["expires_at"] == 5000

    @pytest.mark.parametrize("expires_at", [-1, "5000", 12.5])
    def test_expiry_must_be_non_negative_int(self, expires_at):
        with pytest.raises(ValidationError) as exc_info:
            CreateExpenseSchema().load({
                "description": "Lunch",
                "amount": 1,
                "participants": [W1],
                "expires_at": expires_at,
            })
        assert "expires_at" in exc_info.value.messages

    def test_participants_must_be_a_list(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateExpenseSchema().load({
                "description": "Lunch",
                "amount": 1,
                "participants": W1,
            })
        assert "participants" in exc_info.value.messages

    def test_payer_is_not_a_body_field(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateExpenseSchema().load({
                "description": "Lunch",
                "amount": 1,
                "participants": [W1],
                "payer": W2,
            })
        assert "payer" in exc_info.value.messages

    def test_bulk_expenses(self):
        data = AddMultipleExpensesSchema().load({"expenses": [
            {"description": "a", "amount": 1, "participants": [W1]},
            {"description": "b", "amount": "2", "participants": [W2]},
        ]})
        assert [e["amount"] for e in data["expenses"]] == [1, 2]

    def test_update_description_requires_description(self):
        with pytest.raises(ValidationError):
            UpdateExpenseDescriptionSchema().load({})


# ═══════════════════════════════════════════════════════════════════════════
# Settlement and admin schemas
# ═══════════════════════════════════════════════════════════════════════════

class TestSettlementSchemas:

    def test_amount_optional(self):
        assert SettleDebtSchema().load({"creditor": W1}) == {"creditor": W1, "amount": None}

    def test_amount_null_means_full(self):
        assert SettleDebtSchema().load({"creditor": W1, "amount": None})["amount"] is None

    def test_debtor_is_not_a_body_field(self):
        with pytest.raises(ValidationError):
            SettleDebtSchema().load({"creditor": W1, "debtor": W2})

    def test_bulk_creditors(self):
        assert SettleMultipleDebtsSchema().load({"creditors": [W1, W2]}) == {"creditors": [W1, W2]}


class TestAdminSchemas:

    def test_limit_must_be_integer(self):
        with pytest.raises(ValidationError):
            SetMaxCirclesSchema().load({"max_circles_per_user": "10"})

    def test_limit_range_left_to_service(self):
        assert SetMaxCirclesSchema().load({"max_circles_per_user": 0}) == {"max_circles_per_user": 0}
