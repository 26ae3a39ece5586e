"""
tests/integration/test_settlements.py: settlement endpoints.

Endpoints covered:
  POST /circles/:id/settlements        → 201 pay a creditor (full or partial)
  POST /circles/:id/settlements/bulk   → 201 clear several debts, all or none
  GET  /circles/:id/settlements[/:sid] → 200 history

Rules verified:
  - The debtor is the authenticated caller, never a body field.
  - Overpayment is refused (INVALID_INPUT), never clamped.
  - Settling with nothing owed is NO_DEBT.
  - A full settlement deletes the pairwise balance; a partial one reduces it.
  - Every settlement records exactly one STX transfer to the creditor.
"""

from __future__ import annotations

from sqlalchemy import select

from circlecare.app.extensions import db
from circlecare.app.models.ledger import StxTransfer

from .conftest import (
    WALLET_1,
    WALLET_2,
    WALLET_3,
    WALLET_4,
    auth_headers,
    balance_of,
    make_circle_with,
    make_expense,
    settle,
)


def _setup(client):
    """W1 pays 1000 for W1 and W2: W2 owes W1 500."""
    circle = make_circle_with(client, WALLET_1, WALLET_2, WALLET_3)
    resp = make_expense(client, WALLET_1, circle["id"], 1000, [WALLET_1, WALLET_2])
    assert resp.status_code == 201
    return circle["id"]


def _transfers(app) -> list[StxTransfer]:
    with app.app_context():
        return list(db.session.execute(select(StxTransfer)).scalars().all())


# ═══════════════════════════════════════════════════════════════════════════
# POST /circles/:id/settlements
# ═══════════════════════════════════════════════════════════════════════════

class TestSettleDebt:

    def test_full_settlement_clears_balance(self, client, app):
        cid = _setup(client)

        resp = settle(client, WALLET_2, cid, WALLET_1, block_height=777)
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["id"] == 1
        assert data["debtor"] == WALLET_2
        assert data["creditor"] == WALLET_1
        assert data["amount"] == "500"
        assert data["block_height"] == 777

        assert balance_of(client, cid, WALLET_2, WALLET_1) == 0
        balances = client.get(f"/api/v1/circles/{cid}/balances").get_json()["data"]
        assert balances["balances"] == []

        transfers = _transfers(app)
        assert len(transfers) == 1
        assert (transfers[0].sender, transfers[0].recipient, transfers[0].amount) == (
            WALLET_2, WALLET_1, 500,
        )
        assert transfers[0].memo == "settlement"

    def test_partial_settlement_reduces_balance(self, client):
        cid = _setup(client)

        resp = settle(client, WALLET_2, cid, WALLET_1, amount=200)
        assert resp.status_code == 201
        assert resp.get_json()["data"]["amount"] == "200"
        assert balance_of(client, cid, WALLET_2, WALLET_1) == 300

        resp = settle(client, WALLET_2, cid, WALLET_1, amount="300")
        assert resp.status_code == 201
        assert balance_of(client, cid, WALLET_2, WALLET_1) == 0

    def test_overpayment_rejected(self, client, app):
        cid = _setup(client)

        resp = settle(client, WALLET_2, cid, WALLET_1, amount=501)
        assert resp.status_code == 400
        err = resp.get_json()["error"]
        assert err["code"] == "INVALID_INPUT"
        assert err["field"] == "amount"

        assert balance_of(client, cid, WALLET_2, WALLET_1) == 500
        assert _transfers(app) == []

    def test_zero_amount_rejected(self, client):
        cid = _setup(client)
        resp = settle(client, WALLET_2, cid, WALLET_1, amount=0)
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "INVALID_INPUT"

    def test_no_debt(self, client):
        cid = _setup(client)
        # W1 is owed, not owing.
        resp = settle(client, WALLET_1, cid, WALLET_2)
        assert resp.status_code == 422
        err = resp.get_json()["error"]
        assert err["code"] == "NO_DEBT"
        assert err["ledger_code"] == 205

    def test_second_full_settlement_is_no_debt(self, client):
        cid = _setup(client)
        assert settle(client, WALLET_2, cid, WALLET_1).status_code == 201
        resp = settle(client, WALLET_2, cid, WALLET_1)
        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "NO_DEBT"

    def test_non_member_cannot_settle(self, client):
        cid = _setup(client)
        resp = settle(client, WALLET_4, cid, WALLET_1)
        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "UNAUTHORIZED"

    def test_malformed_creditor(self, client):
        cid = _setup(client)
        resp = settle(client, WALLET_2, cid, "alice")
        assert resp.status_code == 400
        err = resp.get_json()["error"]
        assert err["code"] == "INVALID_PRINCIPAL"
        assert err["ledger_code"] == 400

    def test_paused_circle_refuses_settlement(self, client):
        cid = _setup(client)
        client.post(f"/api/v1/circles/{cid}/pause", headers=auth_headers(WALLET_1))

        resp = settle(client, WALLET_2, cid, WALLET_1)
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "CIRCLE_PAUSED"

        client.post(f"/api/v1/circles/{cid}/unpause", headers=auth_headers(WALLET_1))
        assert settle(client, WALLET_2, cid, WALLET_1).status_code == 201

    def test_settlement_leaves_opposite_debt_alone(self, client):
        cid = _setup(client)
        make_expense(client, WALLET_2, cid, 200, [WALLET_1, WALLET_2])
        # W2 owes W1 500, W1 owes W2 100.
        settle(client, WALLET_2, cid, WALLET_1)

        assert balance_of(client, cid, WALLET_2, WALLET_1) == 0
        assert balance_of(client, cid, WALLET_1, WALLET_2) == 100


# ═══════════════════════════════════════════════════════════════════════════
# POST /circles/:id/settlements/bulk
# ═══════════════════════════════════════════════════════════════════════════

class TestSettleMultipleDebts:

    def _bulk(self, client, debtor, circle_id, creditors):
        return client.post(
            f"/api/v1/circles/{circle_id}/settlements/bulk",
            json={"creditors": creditors},
            headers=auth_headers(debtor),
        )

    def test_clears_every_listed_debt(self, client):
        circle = make_circle_with(client, WALLET_1, WALLET_2, WALLET_3)
        cid = circle["id"]
        make_expense(client, WALLET_1, cid, 100, [WALLET_2])
        make_expense(client, WALLET_3, cid, 40, [WALLET_2])

        resp = self._bulk(client, WALLET_2, cid, [WALLET_1, WALLET_3])
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert [(s["creditor"], s["amount"]) for s in data] == [(WALLET_1, "100"), (WALLET_3, "40")]
        assert [s["id"] for s in data] == [1, 2]

        assert balance_of(client, cid, WALLET_2, WALLET_1) == 0
        assert balance_of(client, cid, WALLET_2, WALLET_3) == 0

    def test_bulk_is_all_or_nothing(self, client, app):
        circle = make_circle_with(client, WALLET_1, WALLET_2, WALLET_3)
        cid = circle["id"]
        make_expense(client, WALLET_1, cid, 100, [WALLET_2])

        # Nothing is owed to W3, so the whole batch fails.
        resp = self._bulk(client, WALLET_2, cid, [WALLET_1, WALLET_3])
        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "NO_DEBT"

        assert balance_of(client, cid, WALLET_2, WALLET_1) == 100
        assert client.get(f"/api/v1/circles/{cid}/settlements").get_json()["data"] == []
        assert _transfers(app) == []

    def test_duplicate_creditor_fails_on_second_entry(self, client):
        circle = make_circle_with(client, WALLET_1, WALLET_2)
        cid = circle["id"]
        make_expense(client, WALLET_1, cid, 100, [WALLET_2])

        resp = self._bulk(client, WALLET_2, cid, [WALLET_1, WALLET_1])
        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "NO_DEBT"
        assert balance_of(client, cid, WALLET_2, WALLET_1) == 100

    def test_empty_bulk_rejected(self, client):
        circle = make_circle_with(client, WALLET_1, WALLET_2)
        resp = self._bulk(client, WALLET_2, circle["id"], [])
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "INVALID_INPUT"

    def test_oversized_bulk_rejected(self, client):
        circle = make_circle_with(client, WALLET_1, WALLET_2)
        resp = self._bulk(client, WALLET_2, circle["id"], [WALLET_1] * 21)
        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "LIMIT_EXCEEDED"


# ═══════════════════════════════════════════════════════════════════════════
# Reads
# ═══════════════════════════════════════════════════════════════════════════

class TestSettlementReads:

    def test_history_is_oldest_first(self, client):
        cid = _setup(client)
        settle(client, WALLET_2, cid, WALLET_1, amount=100)
        settle(client, WALLET_2, cid, WALLET_1, amount=50)

        data = client.get(f"/api/v1/circles/{cid}/settlements").get_json()["data"]
        assert [s["amount"] for s in data] == ["100", "50"]

    def test_get_settlement(self, client):
        cid = _setup(client)
        sid = settle(client, WALLET_2, cid, WALLET_1).get_json()["data"]["id"]

        resp = client.get(f"/api/v1/circles/{cid}/settlements/{sid}")
        assert resp.status_code == 200
        assert resp.get_json()["data"]["amount"] == "500"

    def test_unknown_settlement(self, client):
        cid = _setup(client)
        resp = client.get(f"/api/v1/circles/{cid}/settlements/9")
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "SETTLEMENT_NOT_FOUND"
