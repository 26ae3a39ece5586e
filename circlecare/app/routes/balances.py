"""
routes/balances.py: read-only balance projections.

All endpoints are public reads; none of them write or commit.

Endpoints (url_prefix=/api/v1/circles):
  GET /circles/:id/balances                         → 200  net per member + debts
  GET /circles/:id/balances/:debtor/:creditor       → 200  one-directional debt
  GET /circles/:id/members/:address/net-balance     → 200  member's net balance
  GET /circles/:id/net-position/:a/:b               → 200  B(b,a) - B(a,b)
  GET /circles/:id/stats                            → 200  circle statistics
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from circlecare.app.extensions import db
from circlecare.app.schemas.responses import circle_balances_response, circle_stats_response
from circlecare.app.services import balance_service

balances_bp = Blueprint("balances", __name__)


@balances_bp.route("/<int:circle_id>/balances", methods=["GET"])
def get_circle_balances(circle_id: int):
    """
    GET /circles/:id/balances

    balance_sum is always "0"; the service raises INTERNAL_ERROR (500) if
    conservation ever fails instead of returning a wrong view.
    """
    result = balance_service.get_circle_balances(circle_id, session=db.session)
    return jsonify({"data": circle_balances_response.dump(result), "warnings": []}), 200


@balances_bp.route("/<int:circle_id>/balances/<string:debtor>/<string:creditor>", methods=["GET"])
def get_balance(circle_id: int, debtor: str, creditor: str):
    amount = balance_service.get_balance(circle_id, debtor, creditor, session=db.session)
    return jsonify({
        "data": {
            "circle_id": circle_id,
            "debtor": debtor,
            "creditor": creditor,
            "amount": str(amount),
        },
        "warnings": [],
    }), 200


@balances_bp.route("/<int:circle_id>/members/<string:address>/net-balance", methods=["GET"])
def get_net_balance(circle_id: int, address: str):
    net = balance_service.get_net_balance(circle_id, address, session=db.session)
    return jsonify({
        "data": {"circle_id": circle_id, "address": address, "net_balance": str(net)},
        "warnings": [],
    }), 200


@balances_bp.route("/<int:circle_id>/net-position/<string:a>/<string:b>", methods=["GET"])
def get_net_position(circle_id: int, a: str, b: str):
    position = balance_service.get_net_position(circle_id, a, b, session=db.session)
    return jsonify({
        "data": {"circle_id": circle_id, "a": a, "b": b, "net_position": str(position)},
        "warnings": [],
    }), 200


@balances_bp.route("/<int:circle_id>/stats", methods=["GET"])
def get_circle_stats(circle_id: int):
    stats = balance_service.get_circle_stats(circle_id, session=db.session)
    return jsonify({"data": circle_stats_response.dump(stats), "warnings": []}), 200
