"""
routes/circles.py: circle lifecycle and membership route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.
  - Reads need no token. Mutations need a token and X-Block-Height where the
    service records a block height.

Endpoints (url_prefix=/api/v1/circles):
  POST   /circles                               → 201  create circle
  GET    /circles/next-id                       → 200  id the next circle gets
  GET    /circles/total                         → 200  circles created so far
  GET    /circles/:id                           → 200  circle record
  POST   /circles/:id/pause | unpause | deactivate → 200  lifecycle (creator)
  GET    /circles/:id/members                   → 200  members in join order
  POST   /circles/:id/members                   → 201  add member (creator)
  POST   /circles/:id/members/bulk              → 201  add members, all or none
  GET    /circles/:id/members/:address          → 200  member record
  DELETE /circles/:id/members/:address          → 200  remove member (creator)
  GET    /circles/:id/members/at/:index         → 200  principal at join index
  GET    /circles/:id/members/:address/is-member → 200 membership check
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from circlecare.app.extensions import db
from circlecare.app.middleware.auth_middleware import read_block_height, require_auth
from circlecare.app.schemas.circle_schema import (
    AddMemberSchema,
    AddMultipleMembersSchema,
    CreateCircleSchema,
)
from circlecare.app.schemas.responses import (
    circle_response,
    member_response,
    members_response,
)
from circlecare.app.services import circle_service

circles_bp = Blueprint("circles", __name__)


@circles_bp.route("", methods=["POST"])
@require_auth
def create_circle():
    """POST /circles: Create a circle. Caller becomes creator and first member."""
    data = CreateCircleSchema().load(request.get_json(force=True) or {})
    circle = circle_service.create_circle(
        name=data["name"],
        nickname=data["nickname"],
        creator=g.principal,
        block_height=read_block_height(),
        ledger_owner=current_app.config["LEDGER_OWNER"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": circle_response.dump(circle), "warnings": []}), 201


@circles_bp.route("/next-id", methods=["GET"])
def get_next_circle_id():
    next_id = circle_service.get_next_circle_id(session=db.session)
    return jsonify({"data": {"next_circle_id": next_id}, "warnings": []}), 200


@circles_bp.route("/total", methods=["GET"])
def get_total_circles():
    total = circle_service.get_total_circles(session=db.session)
    return jsonify({"data": {"total_circles": total}, "warnings": []}), 200


@circles_bp.route("/<int:circle_id>", methods=["GET"])
def get_circle(circle_id: int):
    circle = circle_service.get_circle(circle_id=circle_id, session=db.session)
    return jsonify({"data": circle_response.dump(circle), "warnings": []}), 200


# ── Lifecycle ──────────────────────────────────────────────────────────────

@circles_bp.route("/<int:circle_id>/pause", methods=["POST"])
@require_auth
def pause_circle(circle_id: int):
    circle = circle_service.pause_circle(circle_id, g.principal, session=db.session)
    db.session.commit()
    return jsonify({"data": circle_response.dump(circle), "warnings": []}), 200


@circles_bp.route("/<int:circle_id>/unpause", methods=["POST"])
@require_auth
def unpause_circle(circle_id: int):
    circle = circle_service.unpause_circle(circle_id, g.principal, session=db.session)
    db.session.commit()
    return jsonify({"data": circle_response.dump(circle), "warnings": []}), 200


@circles_bp.route("/<int:circle_id>/deactivate", methods=["POST"])
@require_auth
def deactivate_circle(circle_id: int):
    circle = circle_service.deactivate_circle(circle_id, g.principal, session=db.session)
    db.session.commit()
    return jsonify({"data": circle_response.dump(circle), "warnings": []}), 200


# ── Membership ─────────────────────────────────────────────────────────────

@circles_bp.route("/<int:circle_id>/members", methods=["GET"])
def list_members(circle_id: int):
    members = circle_service.get_circle_members(circle_id, session=db.session)
    return jsonify({"data": members_response.dump(members), "warnings": []}), 200


@circles_bp.route("/<int:circle_id>/members", methods=["POST"])
@require_auth
def add_member(circle_id: int):
    """POST /circles/:id/members: Add one member. Creator only."""
    data = AddMemberSchema().load(request.get_json(force=True) or {})
    member = circle_service.add_member(
        circle_id=circle_id,
        caller=g.principal,
        address=data["address"],
        nickname=data["nickname"],
        block_height=read_block_height(),
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": member_response.dump(member), "warnings": []}), 201


@circles_bp.route("/<int:circle_id>/members/bulk", methods=["POST"])
@require_auth
def add_multiple_members(circle_id: int):
    """POST /circles/:id/members/bulk: All entries are added, or none."""
    data = AddMultipleMembersSchema().load(request.get_json(force=True) or {})
    members = circle_service.add_multiple_members(
        circle_id=circle_id,
        caller=g.principal,
        members=data["members"],
        block_height=read_block_height(),
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": members_response.dump(members), "warnings": []}), 201


@circles_bp.route("/<int:circle_id>/members/<string:address>", methods=["GET"])
def get_member(circle_id: int, address: str):
    member = circle_service.get_member_info(circle_id, address, session=db.session)
    return jsonify({"data": member_response.dump(member), "warnings": []}), 200


@circles_bp.route("/<int:circle_id>/members/<string:address>", methods=["DELETE"])
@require_auth
def remove_member(circle_id: int, address: str):
    """DELETE /circles/:id/members/:address: Creator only; balances must be zero."""
    circle_service.remove_member(
        circle_id=circle_id,
        caller=g.principal,
        address=address,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {
            "removed": True,
            "circle_id": circle_id,
            "address": address,
        },
        "warnings": [],
    }), 200


@circles_bp.route("/<int:circle_id>/members/at/<int:index>", methods=["GET"])
def get_member_at_index(circle_id: int, index: int):
    address = circle_service.get_member_at_index(circle_id, index, session=db.session)
    return jsonify({
        "data": {"circle_id": circle_id, "index": index, "address": address},
        "warnings": [],
    }), 200


@circles_bp.route("/<int:circle_id>/members/<string:address>/is-member", methods=["GET"])
def is_circle_member(circle_id: int, address: str):
    is_member = circle_service.is_circle_member(circle_id, address, session=db.session)
    return jsonify({
        "data": {"circle_id": circle_id, "address": address, "is_member": is_member},
        "warnings": [],
    }), 200
