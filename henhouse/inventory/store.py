"""
Player inventory store.

Holds every player's eggs and chickens. Many subsystems read and mutate
it (hatching, selling, trading), so all access goes through the store's
lock. Persistence via JSON snapshots to survive restarts.
"""

from __future__ import annotations

import json
import os
import secrets
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from henhouse.inventory.items import (
    ChickenRecord,
    EggRecord,
    ItemRecord,
    ItemType,
)


def _get_inventory_file() -> str:
    return os.environ.get("HENHOUSE_INVENTORY_FILE", "inventories.json")


class InventoryError(Exception):
    pass


@dataclass
class PlayerInventory:
    player_id: str
    money: float = 100.0
    eggs: List[EggRecord] = field(default_factory=list)
    chickens: List[ChickenRecord] = field(default_factory=list)  # not placed in the coop
    placed_chickens: List[ChickenRecord] = field(default_factory=list)

    def item_count(self) -> int:
        return len(self.eggs) + len(self.chickens) + len(self.placed_chickens)

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "money": self.money,
            "eggs": [e.to_dict() for e in self.eggs],
            "chickens": [c.to_dict() for c in self.chickens],
            "placed_chickens": [c.to_dict() for c in self.placed_chickens],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PlayerInventory":
        return cls(
            player_id=data["player_id"],
            money=data.get("money", 100.0),
            eggs=[EggRecord.from_dict(e) for e in data.get("eggs", [])],
            chickens=[ChickenRecord.from_dict(c) for c in data.get("chickens", [])],
            placed_chickens=[ChickenRecord.from_dict(c) for c in data.get("placed_chickens", [])],
        )


class InventoryStore:
    """Canonical, thread-safe inventory store."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.inventories: Dict[str, PlayerInventory] = {}
        self._next_id: int = 0

    def add_player(self, player_id: str, money: float = 100.0) -> PlayerInventory:
        with self._lock:
            inventory = self.inventories.get(player_id)
            if inventory is None:
                inventory = PlayerInventory(player_id=player_id, money=money)
                self.inventories[player_id] = inventory
            return inventory

    def get_inventory(self, player_id: str) -> Optional[PlayerInventory]:
        with self._lock:
            return self.inventories.get(player_id)

    @contextmanager
    def transaction(self) -> Iterator["InventoryStore"]:
        """Hold the store lock so a multi-step mutation is seen as one change."""
        with self._lock:
            yield self

    def generate_id(self) -> str:
        with self._lock:
            self._next_id += 1
            return f"item_{self._next_id:08d}_{secrets.token_hex(8)}"

    def _locate(
        self, inventory: PlayerInventory, item_id: str, item_type: ItemType
    ) -> Tuple[Optional[List], int]:
        if ItemType(item_type) == ItemType.EGG:
            buckets = [inventory.eggs]
        else:
            # Un-placed chickens first, then the coop
            buckets = [inventory.chickens, inventory.placed_chickens]
        for bucket in buckets:
            for index, record in enumerate(bucket):
                if record.id == item_id:
                    return bucket, index
        return None, -1

    def find_item(self, player_id: str, item_id: str, item_type: ItemType) -> Optional[ItemRecord]:
        with self._lock:
            inventory = self.inventories.get(player_id)
            if inventory is None:
                return None
            bucket, index = self._locate(inventory, item_id, item_type)
            if bucket is None:
                return None
            return bucket[index]

    def remove_item(self, player_id: str, item_id: str, item_type: ItemType) -> Optional[ItemRecord]:
        with self._lock:
            inventory = self.inventories.get(player_id)
            if inventory is None:
                return None
            bucket, index = self._locate(inventory, item_id, item_type)
            if bucket is None:
                return None
            record = bucket.pop(index)
            if isinstance(record, ChickenRecord) and record.is_placed():
                record.spot_index = None
            return record

    def insert_item(self, player_id: str, record: ItemRecord, item_type: ItemType) -> str:
        """Insert a record as given. Returns its ID, generating one if it has none."""
        with self._lock:
            inventory = self.inventories.get(player_id)
            if inventory is None:
                raise InventoryError(f"Unknown player: {player_id}")
            if not record.id:
                record.id = self.generate_id()
            if ItemType(item_type) == ItemType.EGG:
                if not isinstance(record, EggRecord):
                    raise InventoryError(f"Expected egg record for {record.id}")
                inventory.eggs.append(record)
            else:
                if not isinstance(record, ChickenRecord):
                    raise InventoryError(f"Expected chicken record for {record.id}")
                if record.is_placed():
                    inventory.placed_chickens.append(record)
                else:
                    inventory.chickens.append(record)
            return record.id

    def reset(self) -> None:
        with self._lock:
            self.inventories = {}
            self._next_id = 0

    def save(self, filepath: Optional[str] = None) -> None:
        """Persist all inventories to JSON."""
        filepath = filepath or _get_inventory_file()
        with self._lock:
            data = {
                "next_id": self._next_id,
                "inventories": {pid: inv.to_dict() for pid, inv in self.inventories.items()},
            }
        with open(filepath, "w") as f:
            json.dump(data, f, indent=2)

    def load(self, filepath: Optional[str] = None) -> bool:
        """Load inventories from JSON. Returns True if loaded successfully."""
        filepath = filepath or _get_inventory_file()
        if not os.path.exists(filepath):
            return False
        try:
            with open(filepath, "r") as f:
                data = json.load(f)
            with self._lock:
                self._next_id = data.get("next_id", 0)
                self.inventories = {
                    pid: PlayerInventory.from_dict(idata)
                    for pid, idata in data.get("inventories", {}).items()
                }
            return True
        except (json.JSONDecodeError, KeyError):
            return False

