"""
Unit tests for expense_service validation, expiry and settle-expense paths.

DB-free via patched ledger_store helpers and a mocked session.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from circlecare.app.errors import AppError, ErrorCode
from circlecare.app.services import expense_service

W1 = "ST1SJ3DTE5DN7X54YDH5D64R3BCB6A2AG2ZQ8YPD5"
W2 = "ST2CY5V39NHDPWSXMW9QDT3HC3GD6Q6XX4CFRK9AG"
W3 = "ST2JHG361ZXG51QTKY2NQCVBPPRRE2KZB1HR05NNC"

_STORE = "circlecare.app.services.ledger_store"


def _circle(**overrides):
    fields = dict(id=1, creator=W1, active=True, paused=False, member_count=3)
    fields.update(overrides)
    return SimpleNamespace(**fields)


def _expense(**overrides):
    fields = dict(
        id=9,
        circle_id=1,
        description="Dinner",
        amount=100,
        payer=W1,
        settled=False,
        settled_at=None,
        expires_at=200,
        participants=[SimpleNamespace(participant=W1), SimpleNamespace(participant=W2)],
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


# ── field validation ───────────────────────────────────────────────────────

@pytest.mark.parametrize("description", ["", "  ", "d" * 101])
def test_validate_description(description):
    with pytest.raises(AppError) as exc_info:
        expense_service._validate_description(description)
    assert exc_info.value.code == ErrorCode.INVALID_INPUT


def test_validate_amount_zero():
    with pytest.raises(AppError) as exc_info:
        expense_service._validate_amount(0)
    assert exc_info.value.field == "amount"


def test_participants_duplicate_detected_before_membership():
    with patch(f"{_STORE}.is_active_member", return_value=True) as is_member:
        with pytest.raises(AppError) as exc_info:
            expense_service._validate_participants(1, [W2, W3, W2], MagicMock())
    assert exc_info.value.code == ErrorCode.INVALID_PARTICIPANT
    assert is_member.call_count == 2


def test_participants_non_member():
    with patch(f"{_STORE}.is_active_member", side_effect=lambda c, a, s: a != W3):
        with pytest.raises(AppError) as exc_info:
            expense_service._validate_participants(1, [W2, W3], MagicMock())
    assert exc_info.value.code == ErrorCode.INVALID_PARTICIPANT
    assert W3 in exc_info.value.message


def test_record_expense_rejects_past_expiry_before_taking_an_id():
    session = MagicMock()
    with patch(f"{_STORE}.is_active_member", return_value=True), \
         patch(f"{_STORE}.next_id") as next_id:
        with pytest.raises(AppError) as exc_info:
            expense_service._record_expense(
                _circle(), W1, "Dinner", 100, [W1, W2], 500, 499, session,
            )
    assert exc_info.value.field == "expires_at"
    next_id.assert_not_called()


def test_record_expense_debits_only_non_payers():
    session = MagicMock()
    with patch(f"{_STORE}.is_active_member", return_value=True), \
         patch(f"{_STORE}.next_id", return_value=4), \
         patch(f"{_STORE}.add_balance") as add_balance:
        expense = expense_service._record_expense(
            _circle(), W1, "Dinner", 100, [W1, W2, W3], 500, None, session,
        )

    assert expense.id == 4
    assert expense.expires_at == 500 + 144000
    assert add_balance.call_count == 2
    debts = {(c.args[1], c.args[2], c.args[3]) for c in add_balance.call_args_list}
    assert debts == {(W2, W1, 33), (W3, W1, 33)}


# ── expiry ─────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("height, expected", [(0, False), (199, False), (200, True), (10**9, True)])
def test_is_expired(height, expected):
    assert expense_service.is_expired(_expense(expires_at=200), height) is expected


def test_no_expiry_never_expires():
    assert expense_service.is_expired(_expense(expires_at=None), 10**12) is False


# ── settle_expense ─────────────────────────────────────────────────────────

def _settle(expense, caller=W2, height=150, circle=None):
    session = MagicMock()
    with patch(f"{_STORE}.get_expense_or_404", return_value=expense), \
         patch(f"{_STORE}.lock_circle", return_value=circle or _circle()), \
         patch(f"{_STORE}.require_active_member"):
        return expense_service.settle_expense(expense.id, caller, height, session)


def test_settle_expense_marks_settled():
    result = _settle(_expense(), caller=W2, height=150)
    assert result.settled is True
    assert result.settled_at == 150


def test_settle_expense_already_settled_wins_over_expired():
    with pytest.raises(AppError) as exc_info:
        _settle(_expense(settled=True), height=500)
    assert exc_info.value.code == ErrorCode.ALREADY_SETTLED


def test_settle_expense_expired_wins_over_non_participant():
    with pytest.raises(AppError) as exc_info:
        _settle(_expense(), caller=W3, height=200)
    assert exc_info.value.code == ErrorCode.EXPIRED


def test_settle_expense_non_participant():
    with pytest.raises(AppError) as exc_info:
        _settle(_expense(), caller=W3)
    assert exc_info.value.code == ErrorCode.UNAUTHORIZED


def test_settle_expense_by_removed_participant():
    session = MagicMock()
    refused = AppError(ErrorCode.UNAUTHORIZED, "not a member", 403)
    with patch(f"{_STORE}.get_expense_or_404", return_value=_expense()), \
         patch(f"{_STORE}.lock_circle", return_value=_circle()), \
         patch(f"{_STORE}.require_active_member", side_effect=refused) as require_member:
        with pytest.raises(AppError) as exc_info:
            expense_service.settle_expense(9, W2, 150, session)
    assert exc_info.value.code == ErrorCode.UNAUTHORIZED
    require_member.assert_called_once_with(1, W2, session)


def test_settle_expense_rereads_expense_under_lock():
    session = MagicMock()
    with patch(f"{_STORE}.get_expense_or_404", return_value=_expense()) as get_expense, \
         patch(f"{_STORE}.lock_circle", return_value=_circle()), \
         patch(f"{_STORE}.require_active_member"):
        expense_service.settle_expense(9, W2, 150, session)
    assert get_expense.call_count == 2
    assert get_expense.call_args.kwargs == {"lock": True}


def test_settle_expense_on_paused_circle():
    with pytest.raises(AppError) as exc_info:
        _settle(_expense(), circle=_circle(paused=True))
    assert exc_info.value.code == ErrorCode.CIRCLE_PAUSED


# ── update_expense_description ─────────────────────────────────────────────

def test_update_description_wrong_circle():
    session = MagicMock()
    with patch(f"{_STORE}.lock_circle", return_value=_circle(id=2)), \
         patch(f"{_STORE}.get_expense_or_404", return_value=_expense(circle_id=1)):
        with pytest.raises(AppError) as exc_info:
            expense_service.update_expense_description(2, 9, W1, "New", session)
    assert exc_info.value.code == ErrorCode.EXPENSE_NOT_FOUND


def test_receipt_format():
    with patch(f"{_STORE}.get_expense_or_404", return_value=_expense(description="Taxi", amount=1500)):
        assert expense_service.get_expense_receipt(9, MagicMock()) == "Expense: Taxi Amount: 1500"
