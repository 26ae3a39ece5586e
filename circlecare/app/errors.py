"""
errors.py: AppError base class and error code registry.

Every error returned by the CircleCare API uses a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Each ledger error also carries the numeric code the on-chain contracts
    returned for the same condition (LEDGER_CODES). Wallet clients written
    against the contracts match on that number, so it is preserved verbatim.
  - Error messages are human-readable prose. They may be improved at any time.
  - 401 means the caller could not be identified; 403 means the caller is
    known but lacks the role (creator, member, debtor, owner) for the call.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    @property
    def ledger_code(self) -> int | None:
        """Numeric contract error code, or None for transport-only errors."""
        return LEDGER_CODES.get(self.code)

    def to_dict(self) -> dict:
        payload = {
            "code":        self.code,
            "message":     self.message,
            "ledger_code": self.ledger_code,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
#
# IMPORTANT: these are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD         = "MISSING_FIELD"
    INVALID_FIELD         = "INVALID_FIELD"
    INVALID_NAME          = "INVALID_NAME"
    INVALID_NICKNAME      = "INVALID_NICKNAME"
    INVALID_INPUT         = "INVALID_INPUT"
    INVALID_PRINCIPAL     = "INVALID_PRINCIPAL"
    BLOCK_HEIGHT_REQUIRED = "BLOCK_HEIGHT_REQUIRED"
    INVALID_BLOCK_HEIGHT  = "INVALID_BLOCK_HEIGHT"

    # ── Authorization Errors (403) ─────────────────────────────────────────
    OWNER_ONLY            = "OWNER_ONLY"     # ledger owner only (admin settings)
    UNAUTHORIZED          = "UNAUTHORIZED"   # not creator / member / participant

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    CIRCLE_NOT_FOUND      = "CIRCLE_NOT_FOUND"
    MEMBER_NOT_FOUND      = "MEMBER_NOT_FOUND"
    EXPENSE_NOT_FOUND     = "EXPENSE_NOT_FOUND"
    SETTLEMENT_NOT_FOUND  = "SETTLEMENT_NOT_FOUND"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    MEMBER_EXISTS         = "MEMBER_EXISTS"
    ALREADY_SETTLED       = "ALREADY_SETTLED"
    NON_ZERO_BALANCE      = "NON_ZERO_BALANCE"
    CIRCLE_PAUSED         = "CIRCLE_PAUSED"
    CIRCLE_INACTIVE       = "CIRCLE_INACTIVE"

    # ── Business Rule Violations (422) ─────────────────────────────────────
    INVALID_PARTICIPANT   = "INVALID_PARTICIPANT"
    MAX_MEMBERS           = "MAX_MEMBERS"
    MAX_CIRCLES           = "MAX_CIRCLES"
    LIMIT_EXCEEDED        = "LIMIT_EXCEEDED"
    NO_DEBT               = "NO_DEBT"
    EXPIRED               = "EXPIRED"

    # ── Auth Errors (401) ──────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not allowed (UNAUTHORIZED above)
    TOKEN_MISSING         = "TOKEN_MISSING"
    TOKEN_INVALID         = "TOKEN_INVALID"
    TOKEN_EXPIRED         = "TOKEN_EXPIRED"

    # ── Transport Errors ───────────────────────────────────────────────────
    BAD_REQUEST           = "BAD_REQUEST"         # 400, e.g. body is not JSON
    ROUTE_NOT_FOUND       = "ROUTE_NOT_FOUND"     # 404, no such endpoint
    METHOD_NOT_ALLOWED    = "METHOD_NOT_ALLOWED"  # 405

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR        = "INTERNAL_ERROR"


# ── Contract compatibility table ───────────────────────────────────────────
#
# Numeric codes returned by the circle-factory (1xx) and circle-treasury
# (2xx, 4xx) contracts. Transport-only codes (token and header problems,
# marshmallow field errors) have no contract counterpart and map to None.
# ──────────────────────────────────────────────────────────────────────────

LEDGER_CODES: dict[str, int] = {
    ErrorCode.OWNER_ONLY:           100,
    ErrorCode.INVALID_NAME:         101,
    ErrorCode.INVALID_NICKNAME:     102,
    ErrorCode.MAX_CIRCLES:          103,
    ErrorCode.UNAUTHORIZED:         200,
    ErrorCode.INVALID_INPUT:        201,
    ErrorCode.INVALID_PARTICIPANT:  202,
    ErrorCode.NO_DEBT:              205,
    ErrorCode.MEMBER_NOT_FOUND:     206,
    ErrorCode.NON_ZERO_BALANCE:     207,
    ErrorCode.CIRCLE_PAUSED:        208,
    ErrorCode.MEMBER_EXISTS:        209,
    ErrorCode.MAX_MEMBERS:          210,
    ErrorCode.CIRCLE_INACTIVE:      211,
    ErrorCode.CIRCLE_NOT_FOUND:     212,
    ErrorCode.INVALID_PRINCIPAL:    400,
    ErrorCode.EXPENSE_NOT_FOUND:    404,
    ErrorCode.SETTLEMENT_NOT_FOUND: 404,
    ErrorCode.EXPIRED:              408,
    ErrorCode.ALREADY_SETTLED:      410,
    ErrorCode.LIMIT_EXCEEDED:       413,
    ErrorCode.INTERNAL_ERROR:       500,
}
