"""Shared fixtures for trade tests."""

import pytest

from henhouse.inventory.items import ChickenRecord, EggRecord, ItemType
from henhouse.inventory.store import InventoryStore
from henhouse.trading.models import TradeItem
from henhouse.trading.service import TradeService
from henhouse.trading.settings import TradeSettings


class FakeClock:
    """Manually advanced clock so timeouts can be tested without sleeping."""

    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def give_egg(store, player_id, egg_id, egg_type="Basic", rarity="Common"):
    return store.insert_item(player_id, EggRecord(id=egg_id, egg_type=egg_type, rarity=rarity), ItemType.EGG)


def give_chicken(store, player_id, chicken_id, chicken_type="Clucker", rarity="Rare", **fields):
    record = ChickenRecord(id=chicken_id, chicken_type=chicken_type, rarity=rarity, **fields)
    return store.insert_item(player_id, record, ItemType.CHICKEN)


def egg(item_id):
    return TradeItem(item_type=ItemType.EGG, item_id=item_id)


def chicken(item_id):
    return TradeItem(item_type=ItemType.CHICKEN, item_id=item_id)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    """Four players; p1 holds eggs E1/E2, p2 holds chicken C1 with uncollected money."""
    store = InventoryStore()
    for pid in ("p1", "p2", "p3", "p4"):
        store.add_player(pid)
    give_egg(store, "p1", "E1")
    give_egg(store, "p1", "E2", egg_type="Golden", rarity="Epic")
    give_chicken(store, "p2", "C1", accumulated_money=250.0, last_egg_time=5.0)
    return store


@pytest.fixture
def events():
    return []


@pytest.fixture
def service(store, clock, events):
    """Trade service driven step by step (no auto-complete on confirmation)."""
    settings = TradeSettings(auto_complete=False)
    return TradeService(store, settings=settings, clock=clock, on_event=events.append)


@pytest.fixture
def auto_service(store, clock, events):
    """Trade service that locks and executes as soon as both sides confirm."""
    return TradeService(store, settings=TradeSettings(), clock=clock, on_event=events.append)
