"""
routes/users.py: per-principal lookups.

  GET /users/:address/circles  → 200  ids of circles the principal belongs to
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from circlecare.app.extensions import db
from circlecare.app.services import circle_service

users_bp = Blueprint("users", __name__)


@users_bp.route("/<string:address>/circles", methods=["GET"])
def get_user_circles(address: str):
    circle_ids = circle_service.get_user_circles(address, session=db.session)
    return jsonify({
        "data": {"address": address, "circle_ids": circle_ids},
        "warnings": [],
    }), 200
