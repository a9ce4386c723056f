"""
Tests for the read-only observer API.
"""

import pytest

from conftest import chicken, egg, give_chicken, give_egg
from henhouse.trading.settings import TradeSettings
from henhouse.web.app import create_app


@pytest.fixture
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("HENHOUSE_INVENTORY_FILE", str(tmp_path / "inventories.json"))
    monkeypatch.setenv("HENHOUSE_EVENT_LEDGER_FILE", str(tmp_path / "events.jsonl"))
    app = create_app(TradeSettings(auto_complete=False), start_janitor=False)
    app.config["TESTING"] = True

    store = app.store
    for pid in ("p1", "p2", "p3"):
        store.add_player(pid)
    give_egg(store, "p1", "E1")
    give_chicken(store, "p2", "C1")
    yield app
    app.trade_service.stop()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def trade_id(app):
    service = app.trade_service
    trade_id = service.create_session("p1", "p2").trade_id
    service.add_item("p1", egg("E1"))
    service.add_item("p2", chicken("C1"))
    return trade_id


class TestObserverApi:

    def test_index(self, client, trade_id):
        data = client.get("/").get_json()
        assert data["name"] == "Henhouse"
        assert data["active_trades"] == 1
        assert data["lock_timeout"] == 10

    def test_list_trades(self, client, trade_id):
        data = client.get("/api/observer/trades").get_json()
        assert data["count"] == 1
        trade = data["trades"][0]
        assert trade["trade_id"] == trade_id
        assert trade["offer_a"]["item_count"] == 1
        assert trade["offer_b"]["items"] == [{"item_type": "chicken", "item_id": "C1"}]

    def test_filter_trades_by_status(self, client, trade_id):
        assert client.get("/api/observer/trades?status=locked").get_json()["count"] == 0
        assert client.get("/api/observer/trades?status=pending").get_json()["count"] == 1

    def test_unknown_status_rejected(self, client):
        response = client.get("/api/observer/trades?status=haggling")
        assert response.status_code == 400

    def test_get_trade(self, client, trade_id):
        data = client.get(f"/api/observer/trades/{trade_id}").get_json()
        assert data["status"] == "pending"
        assert data["party_a"] == "p1"
        assert client.get("/api/observer/trades/trade_nope").status_code == 404

    def test_trade_summary(self, client, trade_id):
        data = client.get(f"/api/observer/trades/{trade_id}/summary").get_json()
        assert data["summary"].startswith(f"Trade {trade_id}: A(1 items")
        assert client.get("/api/observer/trades/trade_nope/summary").status_code == 404

    def test_player_trade(self, client, trade_id):
        assert client.get("/api/observer/players/p2/trade").get_json()["trade_id"] == trade_id
        assert client.get("/api/observer/players/p3/trade").status_code == 404

    def test_ledger_events(self, client, trade_id):
        data = client.get(f"/api/observer/ledger/events?trade_id={trade_id}").get_json()
        types = [e["event_type"] for e in data["events"]]
        assert types == ["trade_started", "trade_updated", "trade_updated"]
        limited = client.get("/api/observer/ledger/events?limit=1").get_json()
        assert limited["count"] == 1
        assert client.get("/api/observer/ledger/events?event_type=bogus").status_code == 400

    def test_analytics_after_completion(self, app, client, trade_id):
        service = app.trade_service
        service.set_confirmation("p1", True)
        service.set_confirmation("p2", True)
        service.complete_trade(trade_id)

        data = client.get("/api/observer/analytics/summary").get_json()
        assert data["sessions"]["active"] == 0
        assert data["sessions"]["by_status"]["completed"] == 1
        assert data["economy"]["transfer_volume"] == {"egg": 1, "chicken": 1}
        assert data["ledger"]["total_events"] == app.event_ledger.count()

    def test_completed_trade_persists_inventories(self, app, trade_id, tmp_path):
        from henhouse.inventory.store import InventoryStore

        service = app.trade_service
        service.set_confirmation("p1", True)
        service.set_confirmation("p2", True)
        assert service.complete_trade(trade_id).success

        reloaded = InventoryStore()
        assert reloaded.load(str(tmp_path / "inventories.json"))
        assert len(reloaded.get_inventory("p1").chickens) == 1
        assert reloaded.get_inventory("p1").eggs == []

    def test_write_methods_rejected(self, client, trade_id):
        assert client.post("/api/observer/trades").status_code == 405
        assert client.delete(f"/api/observer/trades/{trade_id}").status_code == 405
