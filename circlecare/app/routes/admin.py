"""
routes/admin.py: ledger settings.

Endpoints (url_prefix=/api/v1/admin):
  GET /admin/settings               → 200  owner, creation fee, circle limit
  PUT /admin/creation-fee           → 200  owner only
  PUT /admin/max-circles-per-user   → 200  owner only
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from circlecare.app.extensions import db
from circlecare.app.middleware.auth_middleware import require_auth
from circlecare.app.schemas.admin_schema import SetCreationFeeSchema, SetMaxCirclesSchema
from circlecare.app.schemas.responses import settings_response
from circlecare.app.services import admin_service

admin_bp = Blueprint("admin", __name__)


@admin_bp.route("/settings", methods=["GET"])
def get_settings():
    settings = admin_service.get_settings(
        ledger_owner=current_app.config["LEDGER_OWNER"],
        session=db.session,
    )
    # get_settings may have created the row on first use.
    db.session.commit()
    return jsonify({"data": settings_response.dump(settings), "warnings": []}), 200


@admin_bp.route("/creation-fee", methods=["PUT"])
@require_auth
def set_creation_fee():
    data = SetCreationFeeSchema().load(request.get_json(force=True) or {})
    settings = admin_service.set_creation_fee(
        caller=g.principal,
        fee=data["fee"],
        ledger_owner=current_app.config["LEDGER_OWNER"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": settings_response.dump(settings), "warnings": []}), 200


@admin_bp.route("/max-circles-per-user", methods=["PUT"])
@require_auth
def set_max_circles_per_user():
    data = SetMaxCirclesSchema().load(request.get_json(force=True) or {})
    settings = admin_service.set_max_circles_per_user(
        caller=g.principal,
        limit=data["max_circles_per_user"],
        ledger_owner=current_app.config["LEDGER_OWNER"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": settings_response.dump(settings), "warnings": []}), 200
