"""
middleware/auth_middleware.py: caller identity and block height.

The @require_auth decorator:
  1. Reads the Authorization header (expected: "Bearer <token>")
  2. Decodes and verifies the JWT issued by the wallet gateway
  3. Checks token expiry
  4. Attaches the caller's principal (the `sub` claim) to flask.g
  5. Returns the appropriate 401 error if any step fails

read_block_height() parses the X-Block-Height header supplied by the host.
The ledger only ever compares against it, never advances it.

Strict responsibility boundary:
  - This module identifies the caller ONLY. Role checks (creator, member,
    participant, debtor, owner) live in the service layer.
  - Services receive the principal and block height as plain arguments,
    with no knowledge of JWT or HTTP headers.

Error codes:
  TOKEN_MISSING         (401): no Authorization header
  TOKEN_INVALID         (401): malformed header, bad signature or bad `sub`
  TOKEN_EXPIRED         (401): valid token but exp claim is in the past
  BLOCK_HEIGHT_REQUIRED (400): X-Block-Height header absent
  INVALID_BLOCK_HEIGHT  (400): X-Block-Height is not a non-negative integer
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from circlecare.app.errors import AppError, ErrorCode
from circlecare.app.principals import is_valid_principal

BLOCK_HEIGHT_HEADER = "X-Block-Height"


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces JWT authentication.

    Attaches the authenticated principal to flask.g.principal.
    Raises AppError for all auth failures: the global error handler converts
    these to the correct JSON response. Routes never catch AppError.

    Usage:
        @circles_bp.route("/<int:circle_id>/pause", methods=["POST"])
        @require_auth
        def pause_circle(circle_id):
            caller = g.principal  # always a well-formed principal here
            ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def _authenticate_request() -> None:
    """
    Performs the full JWT authentication sequence and sets flask.g.principal.

    Separated from the decorator wrapper so tests can call it directly inside
    a request context.
    """
    auth_header = request.headers.get("Authorization", "")

    # ── Step 1: Require Authorization header ──────────────────────────────
    if not auth_header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
            401,
        )

    # ── Step 2: Parse "Bearer <token>" format ─────────────────────────────
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
            401,
        )

    # ── Step 3: Decode and verify the JWT ─────────────────────────────────
    try:
        payload = jwt.decode(
            parts[1],
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
            leeway=current_app.config.get("JWT_LEEWAY", 0),
        )
    except jwt.ExpiredSignatureError:
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Sign in with your wallet again.",
            401,
        )
    except jwt.InvalidTokenError:
        # Covers: bad signature, malformed token, invalid claims, etc.
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
            401,
        )

    # ── Step 4: Extract and validate the sub (principal) claim ────────────
    principal = payload.get("sub")
    if not is_valid_principal(principal):
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The 'sub' claim in the access token is not a valid principal.",
            401,
        )

    g.principal = principal


def read_block_height() -> int:
    """Returns the current block height from the X-Block-Height header."""
    raw = request.headers.get(BLOCK_HEIGHT_HEADER)
    if raw is None or raw.strip() == "":
        raise AppError(
            ErrorCode.BLOCK_HEIGHT_REQUIRED,
            f"The {BLOCK_HEIGHT_HEADER} header is required for this operation.",
            400,
        )

    raw = raw.strip()
    if not (raw.isascii() and raw.isdigit()):
        raise AppError(
            ErrorCode.INVALID_BLOCK_HEIGHT,
            f"{BLOCK_HEIGHT_HEADER} must be a non-negative integer.",
            400,
        )
    return int(raw)
