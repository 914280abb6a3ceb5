"""
Tests for the HTTP API.
"""

import pytest
from fastapi.testclient import TestClient

from cashgame.server.app import create_app


@pytest.fixture
def client():
    return TestClient(create_app())


@pytest.fixture
def session_id(client):
    return client.post("/sessions", json={}).json()["session_id"]


@pytest.fixture
def table(client, session_id):
    """Session with three players bought in for 100, seated, with a croupier."""
    for name in ("Ana", "Ben", "Cy"):
        client.post(f"/sessions/{session_id}/players", json={"name": name, "amount": 100})
    client.post(f"/sessions/{session_id}/seating", json={})
    client.post(f"/sessions/{session_id}/croupier", json={"user_id": "host"})
    return session_id


def play(client, session_id, player_id, action_type, amount=None):
    body = {"croupier_id": "host", "player_id": player_id, "action_type": action_type}
    if amount is not None:
        body["amount"] = amount
    return client.post(f"/sessions/{session_id}/hand/actions", json=body)


class TestSessions:
    """Tests for creating, reading and deleting sessions."""

    def test_create(self, client):
        response = client.post("/sessions", json={"small_blind": "0.50", "big_blind": 1})
        assert response.status_code == 200
        data = response.json()
        assert data["version"] == 0
        assert data["game"]["players"] == []
        assert data["game"]["blinds"] == {"small_blind": "0.50", "big_blind": "1.00"}

    def test_invalid_blinds(self, client):
        response = client.post("/sessions", json={"small_blind": 5, "big_blind": 2})
        assert response.status_code == 400

    def test_read(self, client, session_id):
        data = client.get(f"/sessions/{session_id}").json()
        assert data["session_id"] == session_id
        assert len(data["game"]["denominations"]) == 4
        assert "inventory" in data

    def test_unknown_session(self, client):
        assert client.get("/sessions/nope").status_code == 404
        assert client.post("/sessions/nope/players", json={"name": "A", "amount": 10}).status_code == 404

    def test_delete(self, client, session_id):
        assert client.delete(f"/sessions/{session_id}").status_code == 200
        assert client.get(f"/sessions/{session_id}").status_code == 404


class TestChips:
    """Tests for chip set endpoints."""

    def test_add_chip(self, client, session_id):
        data = client.post(f"/sessions/{session_id}/chips", json={"name": "Blue", "value": 5}).json()
        assert data["game"]["denominations"][-1]["value"] == "5.00"

    def test_suggest(self, client, session_id):
        data = client.get(f"/sessions/{session_id}/chips/suggest", params={"amount": "37.75"}).json()
        assert data["amount"] == "37.75"
        assert set(data["chips"]) == {"1", "2", "3", "4"}

    def test_suggest_undistributable(self, client, session_id):
        response = client.get(f"/sessions/{session_id}/chips/suggest", params={"amount": "0.10"})
        assert response.status_code == 400
        assert response.json()["error"] == "UndistributableAmount"

    def test_locked_after_buy_in(self, client, session_id):
        client.post(f"/sessions/{session_id}/players", json={"name": "Ana", "amount": 100})
        response = client.delete(f"/sessions/{session_id}/chips/1")
        assert response.status_code == 409
        assert response.json()["error"] == "ChipSetLocked"


class TestPlayers:
    """Tests for buy-ins, rebuys and cash-outs over HTTP."""

    def test_buy_in_bumps_version(self, client, session_id):
        data = client.post(f"/sessions/{session_id}/players", json={"name": "Ana", "amount": 100}).json()
        assert data["version"] == 1
        assert data["game"]["players"][0]["transactions"][0]["type"] == "buy-in"

    def test_stale_version_rejected(self, client, session_id):
        client.post(f"/sessions/{session_id}/players", json={"name": "Ana", "amount": 100})
        response = client.post(
            f"/sessions/{session_id}/players",
            json={"name": "Ben", "amount": 100, "expected_version": 0},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "StateConflict"
        assert len(client.get(f"/sessions/{session_id}").json()["game"]["players"]) == 1

    def test_chip_mismatch(self, client, session_id):
        response = client.post(
            f"/sessions/{session_id}/players",
            json={"name": "Ana", "amount": 100, "chips": {"4": 9}},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "ChipCountMismatch"

    def test_admin_join(self, client, session_id):
        data = client.post(
            f"/sessions/{session_id}/players",
            json={"name": "Owner", "amount": 50, "player_id": "owner-1", "admin": True},
        ).json()
        assert data["game"]["players"][0]["transactions"][0]["type"] == "admin-join"

    def test_rebuy(self, client, session_id):
        client.post(f"/sessions/{session_id}/players", json={"name": "Ana", "amount": 100})
        data = client.post(f"/sessions/{session_id}/players/Ana/transactions", json={"amount": 50}).json()
        assert [t["id"] for t in data["game"]["players"][0]["transactions"]] == [1, 2]

    def test_rebuy_unknown_player(self, client, session_id):
        response = client.post(f"/sessions/{session_id}/players/Zed/transactions", json={"amount": 50})
        assert response.status_code == 404
        assert response.json()["error"] == "PlayerNotFound"

    def test_cash_out(self, client, session_id):
        client.post(f"/sessions/{session_id}/players", json={"name": "Ana", "amount": 100})
        data = client.post(
            f"/sessions/{session_id}/players/Ana/cash-out", json={"chip_counts": {"4": 12}}
        ).json()
        assert data["game"]["players"] == []
        assert data["game"]["cashed_out_players"][0]["amount_received"] == "120.00"

    def test_join_request_flow(self, client, session_id):
        client.post(f"/sessions/{session_id}/requests", json={"user_id": "u-1", "user_name": "Dee"})
        data = client.post(f"/sessions/{session_id}/requests/u-1/approve", json={"amount": 40}).json()
        assert data["game"]["players"][0]["id"] == "u-1"
        assert data["game"]["join_requests"][0]["status"] == "approved"


class TestHands:
    """Tests for driving a hand over HTTP."""

    def test_seating(self, client, session_id):
        for name in ("Ana", "Ben"):
            client.post(f"/sessions/{session_id}/players", json={"name": name, "amount": 100})
        data = client.post(f"/sessions/{session_id}/seating", json={}).json()
        assert len(data["dealt"]) == 2
        assert data["game"]["positions_finalized"] is True
        assert data["game"]["dealer_id"] == data["dealer_id"]

    def test_only_croupier_deals(self, client, table):
        response = client.post(f"/sessions/{table}/hand", json={"croupier_id": "someone"})
        assert response.status_code == 409
        assert client.get(f"/sessions/{table}").json()["game"]["hand_state"] is None

    def test_fold_out(self, client, table):
        hand = client.post(f"/sessions/{table}/hand", json={"croupier_id": "host"}).json()["game"]["hand_state"]
        assert hand["phase"] == "PRE_FLOP"

        actions = client.get(f"/sessions/{table}/hand/legal-actions").json()
        first = actions["player_id"]
        assert {a["type"] for a in actions["actions"]} >= {"FOLD", "CHECK_OR_CALL"}

        data = play(client, table, first, "FOLD").json()
        second = data["game"]["hand_state"]["active_player_id"]
        data = play(client, table, second, "FOLD").json()
        assert data["game"]["hand_state"] is None
        assert data["award"]["total"] == "3.00"

    def test_wrong_player(self, client, table):
        hand = client.post(f"/sessions/{table}/hand", json={"croupier_id": "host"}).json()["game"]["hand_state"]
        response = play(client, table, hand["big_blind_player_id"], "CHECK_OR_CALL")
        assert response.status_code == 409

    def test_invalid_bet(self, client, table):
        hand = client.post(f"/sessions/{table}/hand", json={"croupier_id": "host"}).json()["game"]["hand_state"]
        response = play(client, table, hand["active_player_id"], "BET_OR_RAISE", 1)
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidBet"

    def test_showdown_award(self, client, table):
        hand = client.post(f"/sessions/{table}/hand", json={"croupier_id": "host"}).json()["game"]["hand_state"]
        while hand["active_player_id"] is not None:
            hand = play(client, table, hand["active_player_id"], "CHECK_OR_CALL").json()["game"]["hand_state"]
        hand = client.post(f"/sessions/{table}/hand/advance", json={"croupier_id": "host"}).json()["game"]["hand_state"]
        assert hand["phase"] == "FLOP"
        assert len(hand["community_cards"]) == 3

        data = client.post(
            f"/sessions/{table}/hand/award",
            json={"croupier_id": "host", "winner_id": hand["dealer_id"]},
        ).json()
        assert data["award"]["winnings"] == {hand["dealer_id"]: "6.00"}
        assert data["game"]["hand_state"] is None

    def test_hand_hides_private_cards(self, client, table):
        client.post(f"/sessions/{table}/hand", json={"croupier_id": "host"})
        hand = client.get(f"/sessions/{table}").json()["game"]["hand_state"]
        assert "deck" not in hand
        assert all("hole_cards" not in p for p in hand["players"])

        hand = client.get(f"/sessions/{table}", params={"viewer_id": "Ana"}).json()["game"]["hand_state"]
        assert "deck" not in hand
        cards = {p["id"]: p.get("hole_cards") for p in hand["players"]}
        assert len(cards["Ana"]) == 2
        assert cards["Ben"] is None
        assert cards["Cy"] is None

    def test_croupier_sees_hole_cards(self, client, table):
        hand = client.post(f"/sessions/{table}/hand", json={"croupier_id": "host"}).json()["game"]["hand_state"]
        assert "deck" not in hand
        assert all(len(p["hole_cards"]) == 2 for p in hand["players"])


class TestSettlement:
    """Tests for settlement and closing."""

    def _count(self, client, session_id, counts):
        for player_id, chips in counts.items():
            client.put(f"/sessions/{session_id}/players/{player_id}/final-chips", json={"chip_counts": chips})

    def test_settlement_report(self, client, table):
        self._count(client, table, {"Ana": {"4": 15}, "Ben": {"4": 10}, "Cy": {"4": 5}})
        data = client.post(f"/sessions/{table}/settlement", json={}).json()
        assert data["is_balanced"] is True
        assert data["total_buy_in"] == "300.00"

    def test_unbalanced_close(self, client, table):
        self._count(client, table, {"Ana": {"4": 15}, "Ben": {"4": 10}, "Cy": {"4": 2}})
        response = client.post(f"/sessions/{table}/close", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "UnbalancedSettlement"
        assert client.get(f"/sessions/{table}").status_code == 200

    def test_forced_close(self, client, table):
        self._count(client, table, {"Ana": {"4": 15}, "Ben": {"4": 10}, "Cy": {"4": 2}})
        data = client.post(f"/sessions/{table}/close", json={"force": True}).json()
        assert data["difference"] == "-30.00"
        assert client.get(f"/sessions/{table}").status_code == 404

    def test_close_with_stale_version(self, client, table):
        self._count(client, table, {"Ana": {"4": 10}, "Ben": {"4": 10}, "Cy": {"4": 10}})
        response = client.post(f"/sessions/{table}/close", json={"expected_version": 0})
        assert response.status_code == 409
        assert response.json()["error"] == "StateConflict"
        assert client.get(f"/sessions/{table}").status_code == 200

    def test_player_position(self, client, table):
        data = client.post(
            f"/sessions/{table}/players/Ana/position", json={"chip_counts": {"4": 12}}
        ).json()
        assert data["total_invested"] == "100.00"
        assert data["balance"] == "20.00"

    def test_position_unknown_player(self, client, table):
        response = client.post(f"/sessions/{table}/players/Zed/position", json={})
        assert response.status_code == 404


class TestBlinds:
    def test_set_blinds(self, client, session_id):
        data = client.put(f"/sessions/{session_id}/blinds", json={"small_blind": 2, "big_blind": 5}).json()
        assert data["game"]["blinds"] == {"small_blind": "2.00", "big_blind": "5.00"}

    def test_small_above_big(self, client, session_id):
        response = client.put(f"/sessions/{session_id}/blinds", json={"small_blind": 5, "big_blind": 2})
        assert response.status_code == 400
