"""
routes/settlements.py: debt settlement route handlers.

The debtor is always the authenticated caller.

Endpoints (url_prefix=/api/v1/circles):
  GET   /circles/:id/settlements          → 200  settlement history, oldest first
  POST  /circles/:id/settlements          → 201  settle one debt (full or partial)
  POST  /circles/:id/settlements/bulk     → 201  clear several debts, all or none
  GET   /circles/:id/settlements/:sid     → 200  one settlement record
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from circlecare.app.extensions import db
from circlecare.app.middleware.auth_middleware import read_block_height, require_auth
from circlecare.app.schemas.responses import settlement_response, settlements_response
from circlecare.app.schemas.settlement_schema import (
    SettleDebtSchema,
    SettleMultipleDebtsSchema,
)
from circlecare.app.services import settlement_service

settlements_bp = Blueprint("settlements", __name__)


@settlements_bp.route("/<int:circle_id>/settlements", methods=["GET"])
def list_settlements(circle_id: int):
    settlements = settlement_service.list_settlements(circle_id, session=db.session)
    return jsonify({"data": settlements_response.dump(settlements), "warnings": []}), 200


@settlements_bp.route("/<int:circle_id>/settlements", methods=["POST"])
@require_auth
def settle_debt(circle_id: int):
    """
    POST /circles/:id/settlements: Pay the creditor in STX.
    Omitting `amount` clears the whole outstanding balance.
    """
    data = SettleDebtSchema().load(request.get_json(force=True) or {})
    settlement = settlement_service.settle_debt_stx(
        circle_id=circle_id,
        debtor=g.principal,
        creditor=data["creditor"],
        amount=data["amount"],
        block_height=read_block_height(),
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": settlement_response.dump(settlement), "warnings": []}), 201


@settlements_bp.route("/<int:circle_id>/settlements/bulk", methods=["POST"])
@require_auth
def settle_multiple_debts(circle_id: int):
    data = SettleMultipleDebtsSchema().load(request.get_json(force=True) or {})
    settlements = settlement_service.settle_multiple_debts(
        circle_id=circle_id,
        debtor=g.principal,
        creditors=data["creditors"],
        block_height=read_block_height(),
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": settlements_response.dump(settlements), "warnings": []}), 201


@settlements_bp.route("/<int:circle_id>/settlements/<int:settlement_id>", methods=["GET"])
def get_settlement(circle_id: int, settlement_id: int):
    settlement = settlement_service.get_settlement(circle_id, settlement_id, session=db.session)
    return jsonify({"data": settlement_response.dump(settlement), "warnings": []}), 200
