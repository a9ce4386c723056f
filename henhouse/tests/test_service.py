"""
Tests for the service surface around sessions:
1. Trade requests
2. Player-centric queries
3. Event and transfer ledgers
4. Inventory persistence and settings
"""

import threading

import pytest

from conftest import chicken, egg, give_egg
from henhouse.inventory.items import ChickenRecord, ItemType, fresh_copy
from henhouse.inventory.store import InventoryError, InventoryStore
from henhouse.ledger.events import EventLedger
from henhouse.ledger.transfers import TransferLedger
from henhouse.trading.models import TradeErrorKind, TradeStatus
from henhouse.trading.settings import TradeSettings


# ═══════════════════════════════════════════════════════════════════════════════
# 1. TRADE REQUESTS
# ═══════════════════════════════════════════════════════════════════════════════

class TestTradeRequests:

    def test_request_and_accept(self, service, events):
        assert service.request_trade("p1", "p2").success
        assert service.get_pending_request("p2") == {"has_pending": True, "from_player_id": "p1"}

        result = service.accept_trade("p2", "p1")
        assert result.success
        session = service.get_session(result.trade_id)
        assert session.party_a == "p1" and session.party_b == "p2"
        assert service.get_pending_request("p2")["has_pending"] is False
        assert [e["event_type"] for e in events] == ["trade_requested", "trade_started"]

    def test_decline(self, service, events):
        service.request_trade("p1", "p2")
        assert service.decline_trade("p2", "p1").success
        assert service.accept_trade("p2", "p1").error_kind == TradeErrorKind.NOT_FOUND
        assert events[-1]["event_type"] == "trade_request_declined"

    def test_accept_from_wrong_player(self, service):
        service.request_trade("p1", "p2")
        assert service.accept_trade("p2", "p3").error_kind == TradeErrorKind.NOT_FOUND

    def test_request_expires(self, service, clock):
        service.request_trade("p1", "p2")
        clock.advance(31)
        assert service.accept_trade("p2", "p1").error_kind == TradeErrorKind.EXPIRED
        assert service.active_session_count() == 0

    def test_pending_request_hides_expired(self, service, clock):
        service.request_trade("p1", "p2")
        clock.advance(31)
        assert service.get_pending_request("p2") == {"has_pending": False, "from_player_id": None}

    def test_duplicate_request(self, service, clock):
        service.request_trade("p1", "p2")
        assert service.request_trade("p1", "p2").error_kind == TradeErrorKind.BUSY
        clock.advance(31)
        assert service.request_trade("p1", "p2").success

    def test_request_validation(self, service):
        assert service.request_trade("p1", "p1").error_kind == TradeErrorKind.SELF_TRADE
        assert service.request_trade("p1", "ghost").error_kind == TradeErrorKind.NOT_FOUND
        assert service.request_trade("ghost", "p1").error_kind == TradeErrorKind.NOT_FOUND

    def test_request_to_busy_player(self, service):
        service.create_session("p1", "p2")
        assert service.request_trade("p3", "p1").error_kind == TradeErrorKind.BUSY
        assert service.request_trade("p2", "p3").error_kind == TradeErrorKind.BUSY

    def test_sweep_drops_expired_requests(self, service, clock):
        service.request_trade("p1", "p2")
        service.request_trade("p3", "p4")
        clock.advance(31)
        service.sweep()
        assert service.pending_requests() == []


# ═══════════════════════════════════════════════════════════════════════════════
# 2. PLAYER-CENTRIC QUERIES
# ═══════════════════════════════════════════════════════════════════════════════

class TestPlayerQueries:

    def test_current_trade_and_partner(self, service):
        result = service.create_session("p1", "p2")
        current = service.get_current_trade("p2")
        assert current["trade_id"] == result.trade_id
        assert current["status"] == "pending"
        assert service.get_partner_info("p1") == {"partner_id": "p2"}
        assert service.get_partner_info("p3") is None
        assert service.get_current_trade("p3") is None

    def test_complete_trade_by_id(self, service, store):
        trade_id = service.create_session("p1", "p2").trade_id
        service.add_item("p1", egg("E1"))
        service.add_item("p2", chicken("C1"))
        service.set_confirmation("p1", True)
        service.set_confirmation("p2", True)
        result = service.complete_trade(trade_id)
        assert result.success
        assert service.get_session(trade_id).status == TradeStatus.COMPLETED

    def test_execute_for_player(self, service):
        trade_id = service.create_session("p1", "p2").trade_id
        service.add_item("p1", egg("E1"))
        service.set_confirmation("p1", True)
        service.set_confirmation("p2", True)
        service.request_lock("p2")
        assert service.execute_for("p1").success
        assert service.get_session(trade_id).status == TradeStatus.COMPLETED

    def test_active_count(self, service):
        service.create_session("p1", "p2")
        service.create_session("p3", "p4")
        assert service.active_session_count() == 2
        service.cancel_trade("p3")
        assert service.active_session_count() == 1
        assert service.registry.count_by_status() == {
            "pending": 1, "locked": 0, "completed": 0, "cancelled": 1,
        }

    def test_actions_without_trade(self, service):
        assert service.remove_item("p1", "E1").error_kind == TradeErrorKind.NOT_FOUND
        assert service.set_confirmation("p1", True).error_kind == TradeErrorKind.NOT_FOUND
        assert service.request_lock("p1").error_kind == TradeErrorKind.NOT_FOUND
        assert service.cancel_trade("p1").error_kind == TradeErrorKind.NOT_FOUND
        assert service.cancel("trade_nope").error_kind == TradeErrorKind.NOT_FOUND


# ═══════════════════════════════════════════════════════════════════════════════
# 3. EVENT AND TRANSFER LEDGERS
# ═══════════════════════════════════════════════════════════════════════════════

class TestEventLedger:

    def test_append_assigns_monotonic_ids(self, tmp_path):
        ledger = EventLedger(str(tmp_path / "events.jsonl"))
        first = ledger.append({"event_type": "trade_started", "trade_id": "t1"})
        second = ledger.append({"event_type": "trade_cancelled", "trade_id": "t1"})
        assert (first.event_id, second.event_id) == (0, 1)
        assert ledger.get_event_by_id(1) is second
        assert ledger.get_event_by_id(5) is None

    def test_reload_from_disk(self, tmp_path):
        path = str(tmp_path / "events.jsonl")
        ledger = EventLedger(path)
        ledger.append({"event_type": "trade_started", "trade_id": "t1", "player_id": "p1"})
        ledger.append({"event_type": "trade_completed", "trade_id": "t1"})

        reloaded = EventLedger(path)
        assert reloaded.count() == 2
        assert reloaded.get_events(event_type="trade_completed")[0].trade_id == "t1"
        assert reloaded.append({"event_type": "trade_started"}).event_id == 2

    def test_filters(self, tmp_path):
        ledger = EventLedger(str(tmp_path / "events.jsonl"))
        ledger.append({"event_type": "trade_started", "trade_id": "t1", "player_id": "p1"})
        ledger.append({"event_type": "trade_started", "trade_id": "t2", "player_id": "p3"})
        ledger.append({"event_type": "trade_cancelled", "trade_id": "t1"})
        assert len(ledger.get_events(trade_id="t1")) == 2
        assert len(ledger.get_events(player_id="p3")) == 1
        assert len(ledger.get_events(limit=1)) == 1

    def test_service_events_reach_ledger(self, store, clock, tmp_path):
        from henhouse.trading.service import TradeService

        ledger = EventLedger(str(tmp_path / "events.jsonl"))
        service = TradeService(store, TradeSettings(), clock=clock, on_event=ledger.append)
        trade_id = service.create_session("p1", "p2").trade_id
        service.add_item("p1", egg("E1"))
        service.add_item("p2", chicken("C1"))
        service.set_confirmation("p1", True)
        service.set_confirmation("p2", True)

        types = [e.event_type for e in ledger.get_events(trade_id=trade_id)]
        assert types[0] == "trade_started"
        assert types[-1] == "trade_completed"
        assert types.count("item_transferred") == 2
        assert "trade_locked" in types


class TestTransferLedger:

    def test_balance_sheet_and_volume(self):
        ledger = TransferLedger()
        ledger.record_transfer("t1", "p1", "p2", "egg", "E1", "item_1", "Common")
        ledger.record_transfer("t1", "p2", "p1", "chicken", "C1", "item_2", "Rare")
        ledger.record_transfer("t2", "p1", "p3", "egg", "E2", "item_3", "Epic")
        assert ledger.get_balance_sheet("p1") == {"egg": -2, "chicken": 1}
        assert ledger.get_balance_sheet("p3") == {"egg": 1}
        assert ledger.total_volume() == {"egg": 2, "chicken": 1}
        assert len(ledger.get_transfers(trade_id="t1")) == 2
        assert len(ledger.get_transfers(player_id="p3")) == 1

    def test_reads_while_recording(self):
        ledger = TransferLedger()
        errors = []

        def writer():
            for i in range(500):
                ledger.record_transfer("t1", "p1", "p2", "egg", f"E{i}", f"item_{i}", "Common")

        def reader():
            try:
                for _ in range(200):
                    ledger.total_volume()
                    ledger.get_balance_sheet("p1")
                    ledger.get_transfers(player_id="p2")
            except RuntimeError as e:
                errors.append(e)

        threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert ledger.total_volume() == {"egg": 500}
        assert ledger.get_balance_sheet("p2") == {"egg": 500}


# ═══════════════════════════════════════════════════════════════════════════════
# 4. INVENTORY PERSISTENCE AND SETTINGS
# ═══════════════════════════════════════════════════════════════════════════════

class TestInventoryStore:

    def test_save_and_load(self, store, tmp_path):
        path = str(tmp_path / "inv.json")
        store.save(path)

        loaded = InventoryStore()
        assert loaded.load(path)
        c1 = loaded.find_item("p2", "C1", ItemType.CHICKEN)
        assert c1.accumulated_money == 250.0
        assert loaded.find_item("p1", "E2", ItemType.EGG).egg_type == "Golden"

    def test_load_missing_file(self, tmp_path):
        assert InventoryStore().load(str(tmp_path / "absent.json")) is False

    def test_insert_for_unknown_player(self, store):
        with pytest.raises(InventoryError):
            give_egg(store, "ghost", "E9")

    def test_insert_rejects_mismatched_record(self, store):
        record = ChickenRecord(id="C9", chicken_type="Clucker", rarity="Common")
        with pytest.raises(InventoryError):
            store.insert_item("p1", record, ItemType.EGG)

    def test_insert_generates_missing_id(self, store):
        new_id = give_egg(store, "p3", "")
        assert new_id.startswith("item_")
        assert store.find_item("p3", new_id, ItemType.EGG) is not None

    def test_fresh_copy_resets_production(self, store):
        original = store.find_item("p2", "C1", ItemType.CHICKEN)
        copy = fresh_copy(original, ItemType.CHICKEN, "item_x", 42.0)
        assert copy.id == "item_x"
        assert copy.accumulated_money == 0
        assert copy.last_egg_time == 42.0
        assert original.accumulated_money == 250.0


class TestSettings:

    def test_defaults(self):
        settings = TradeSettings()
        assert settings.trade_timeout == 300
        assert settings.lock_timeout == 10
        assert settings.auto_complete is True

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("HENHOUSE_TRADE_TIMEOUT", "60")
        monkeypatch.setenv("HENHOUSE_LOCK_TIMEOUT", "2.5")
        monkeypatch.setenv("HENHOUSE_AUTO_COMPLETE", "false")
        settings = TradeSettings.from_env()
        assert settings.trade_timeout == 60
        assert settings.lock_timeout == 2.5
        assert settings.auto_complete is False
