"""
routes/expenses.py: Expense route handlers.

Registered at url_prefix=/api/v1 (not /api/v1/expenses) because this blueprint
owns BOTH the circle-scoped paths (/circles/:id/expenses) and the
expense-id paths (/expenses/:id). Expense ids are global, so the settle and
read endpoints do not need the circle id.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints:
  GET    /circles/:id/expenses          → 200  list expenses, newest first
  POST   /circles/:id/expenses          → 201  record expense (optional expires_at)
  POST   /circles/:id/expenses/bulk     → 201  record expenses, all or none
  PATCH  /circles/:id/expenses/:eid     → 200  update description (payer only)
  GET    /expenses/:eid                 → 200  expense + participant shares
  GET    /expenses/:eid/receipt         → 200  receipt line
  GET    /expenses/:eid/expired         → 200  expiry check at X-Block-Height
  POST   /expenses/:eid/settle          → 200  mark settled (participant only)
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from circlecare.app.extensions import db
from circlecare.app.middleware.auth_middleware import read_block_height, require_auth
from circlecare.app.schemas.expense_schema import (
    AddMultipleExpensesSchema,
    CreateExpenseSchema,
    UpdateExpenseDescriptionSchema,
)
from circlecare.app.schemas.responses import expense_response, expenses_response
from circlecare.app.services import expense_service

expenses_bp = Blueprint("expenses", __name__)


# ── Circle-scoped expense routes ───────────────────────────────────────────

@expenses_bp.route("/circles/<int:circle_id>/expenses", methods=["GET"])
def list_expenses(circle_id: int):
    expenses = expense_service.list_expenses(circle_id, session=db.session)
    return jsonify({"data": expenses_response.dump(expenses), "warnings": []}), 200


@expenses_bp.route("/circles/<int:circle_id>/expenses", methods=["POST"])
@require_auth
def create_expense(circle_id: int):
    """
    POST /circles/:id/expenses: Record an expense paid by the caller and
    split equally among the participants.
    """
    data = CreateExpenseSchema().load(request.get_json(force=True) or {})
    expense = expense_service.create_expense(
        circle_id=circle_id,
        caller=g.principal,
        description=data["description"],
        amount=data["amount"],
        participants=data["participants"],
        block_height=read_block_height(),
        expires_at=data["expires_at"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": expense_response.dump(expense), "warnings": []}), 201


@expenses_bp.route("/circles/<int:circle_id>/expenses/bulk", methods=["POST"])
@require_auth
def add_multiple_expenses(circle_id: int):
    data = AddMultipleExpensesSchema().load(request.get_json(force=True) or {})
    expenses = expense_service.add_multiple_expenses(
        circle_id=circle_id,
        caller=g.principal,
        expenses=data["expenses"],
        block_height=read_block_height(),
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {
            "expense_ids": [e.id for e in expenses],
            "expenses": expenses_response.dump(expenses),
        },
        "warnings": [],
    }), 201


@expenses_bp.route("/circles/<int:circle_id>/expenses/<int:expense_id>", methods=["PATCH"])
@require_auth
def update_expense_description(circle_id: int, expense_id: int):
    data = UpdateExpenseDescriptionSchema().load(request.get_json(force=True) or {})
    expense = expense_service.update_expense_description(
        circle_id=circle_id,
        expense_id=expense_id,
        caller=g.principal,
        description=data["description"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": expense_response.dump(expense), "warnings": []}), 200


# ── Expense-id routes ──────────────────────────────────────────────────────

@expenses_bp.route("/expenses/<int:expense_id>", methods=["GET"])
def get_expense(expense_id: int):
    expense = expense_service.get_expense(expense_id, session=db.session)
    return jsonify({"data": expense_response.dump(expense), "warnings": []}), 200


@expenses_bp.route("/expenses/<int:expense_id>/receipt", methods=["GET"])
def get_expense_receipt(expense_id: int):
    receipt = expense_service.get_expense_receipt(expense_id, session=db.session)
    return jsonify({
        "data": {"expense_id": expense_id, "receipt": receipt},
        "warnings": [],
    }), 200


@expenses_bp.route("/expenses/<int:expense_id>/expired", methods=["GET"])
def is_expense_expired(expense_id: int):
    """GET /expenses/:eid/expired: evaluated against the X-Block-Height header."""
    block_height = read_block_height()
    expired = expense_service.is_expense_expired(expense_id, block_height, session=db.session)
    return jsonify({
        "data": {
            "expense_id": expense_id,
            "block_height": block_height,
            "expired": expired,
        },
        "warnings": [],
    }), 200


@expenses_bp.route("/expenses/<int:expense_id>/settle", methods=["POST"])
@require_auth
def settle_expense(expense_id: int):
    expense = expense_service.settle_expense(
        expense_id=expense_id,
        caller=g.principal,
        block_height=read_block_height(),
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": expense_response.dump(expense), "warnings": []}), 200
