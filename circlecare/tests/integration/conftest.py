"""
tests/integration/conftest.py: Fixtures and helpers for all integration tests.

Design:
  - Tests run against in-memory SQLite by default. Set TEST_DATABASE_URL to a
    PostgreSQL database to run the same suite with real row locks.
  - The app is created once per session using create_app("testing").
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.

Identity:
  The API trusts a JWT issued by the wallet gateway; its `sub` claim is the
  caller's principal. token_for() signs such a token with the testing secret.
  Mutations also need X-Block-Height, which auth_headers() adds.

Helper functions (not fixtures) are provided for common operations:
  - token_for(principal)             → signed JWT string
  - auth_headers(principal, height)  → Authorization + X-Block-Height headers
  - make_circle(client, ...)         → circle dict
  - add_member(client, ...)          → HTTP response
  - make_expense(client, ...)        → HTTP response
  - settle(client, ...)              → HTTP response
  - balance_of(client, ...)          → int amount debtor owes creditor

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

import jwt
import pytest

from circlecare.app import create_app
from circlecare.app.extensions import db as _db
from circlecare.config import TestingConfig

# Devnet accounts. DEPLOYER is the configured ledger owner in tests.
DEPLOYER = "ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM"
WALLET_1 = "ST1SJ3DTE5DN7X54YDH5D64R3BCB6A2AG2ZQ8YPD5"
WALLET_2 = "ST2CY5V39NHDPWSXMW9QDT3HC3GD6Q6XX4CFRK9AG"
WALLET_3 = "ST2JHG361ZXG51QTKY2NQCVBPPRRE2KZB1HR05NNC"
WALLET_4 = "ST2NEB84ASENDXKYGJPQW86YXQCEFEX2ZQPG87ND"

# FK-safe: children first.
_TABLES = (
    "expense_participants",
    "expenses",
    "settlements",
    "pairwise_balances",
    "user_circles",
    "members",
    "stx_transfers",
    "circles",
    "ledger_counters",
    "ledger_settings",
)


def principal(n: int) -> str:
    """A well-formed, distinct testnet principal for bulk tests."""
    return "ST" + str(n).zfill(38)


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """Creates the Flask application in 'testing' mode once per session."""
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows after every test, children before parents.
    """
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        from sqlalchemy import text
        with _db.engine.connect() as conn:
            for table in _TABLES:
                conn.execute(text(f"DELETE FROM {table}"))
            conn.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def token_for(address: str) -> str:
    return jwt.encode(
        {"sub": address},
        TestingConfig.JWT_SECRET_KEY,
        algorithm=TestingConfig.JWT_ALGORITHM,
    )


def auth_headers(address: str, block_height: int | None = 100) -> dict:
    """Authorization header for `address`, plus X-Block-Height unless None."""
    headers = {"Authorization": f"Bearer {token_for(address)}"}
    if block_height is not None:
        headers["X-Block-Height"] = str(block_height)
    return headers


def make_circle(
    client,
    creator: str = DEPLOYER,
    name: str = "Flatmates",
    nickname: str = "owner",
    block_height: int = 100,
) -> dict:
    """Creates a circle and returns the circle data dict."""
    resp = client.post(
        "/api/v1/circles",
        json={"name": name, "nickname": nickname},
        headers=auth_headers(creator, block_height),
    )
    assert resp.status_code == 201, f"make_circle failed: {resp.get_json()}"
    return resp.get_json()["data"]


def add_member(
    client,
    creator: str,
    circle_id: int,
    address: str,
    nickname: str = "member",
    block_height: int = 100,
):
    """Adds a member (creator token required). Returns the HTTP response."""
    return client.post(
        f"/api/v1/circles/{circle_id}/members",
        json={"address": address, "nickname": nickname},
        headers=auth_headers(creator, block_height),
    )


def make_circle_with(client, creator: str, *members: str) -> dict:
    """Circle owned by `creator` with every address in `members` enrolled."""
    circle = make_circle(client, creator)
    for i, address in enumerate(members):
        resp = add_member(client, creator, circle["id"], address, nickname=f"m{i}")
        assert resp.status_code == 201, f"add_member failed: {resp.get_json()}"
    return circle


def make_expense(
    client,
    payer: str,
    circle_id: int,
    amount,
    participants: list[str],
    description: str = "Groceries",
    block_height: int = 100,
    expires_at: int | None = None,
):
    """Records an expense paid by `payer`. Returns the HTTP response."""
    body = {
        "description": description,
        "amount": amount,
        "participants": participants,
    }
    if expires_at is not None:
        body["expires_at"] = expires_at
    return client.post(
        f"/api/v1/circles/{circle_id}/expenses",
        json=body,
        headers=auth_headers(payer, block_height),
    )


def settle(client, debtor: str, circle_id: int, creditor: str, amount=None, block_height: int = 100):
    """Settles a debt; omits `amount` (full settlement) when None."""
    body = {"creditor": creditor}
    if amount is not None:
        body["amount"] = amount
    return client.post(
        f"/api/v1/circles/{circle_id}/settlements",
        json=body,
        headers=auth_headers(debtor, block_height),
    )


def balance_of(client, circle_id: int, debtor: str, creditor: str) -> int:
    resp = client.get(f"/api/v1/circles/{circle_id}/balances/{debtor}/{creditor}")
    assert resp.status_code == 200, resp.get_json()
    return int(resp.get_json()["data"]["amount"])
