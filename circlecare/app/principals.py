"""
principals.py: Stacks principal validation.

A principal is either a standard address (`S` + version char + c32 body) or a
contract principal (`<address>.<contract-name>`). Only the textual shape is
checked; checksums belong to the wallet that signed the request.
"""

from __future__ import annotations

import re

from circlecare.app.errors import AppError, ErrorCode

# c32 alphabet: digits and upper-case letters without I, L, O, U.
_C32 = "0-9A-HJKMNP-TV-Z"

PRINCIPAL_RE = re.compile(
    rf"^S[PMTN][{_C32}]{{37,39}}(\.[A-Za-z][A-Za-z0-9\-_]{{0,39}})?$"
)


def is_valid_principal(value) -> bool:
    return isinstance(value, str) and PRINCIPAL_RE.match(value) is not None


def require_principal(value, field: str | None = None) -> str:
    """Returns `value` unchanged or raises INVALID_PRINCIPAL (400)."""
    if not is_valid_principal(value):
        raise AppError(
            ErrorCode.INVALID_PRINCIPAL,
            f"{value!r} is not a valid Stacks principal.",
            400,
            field=field,
        )
    return value
