"""
Inventory item records.

Eggs and chickens are the only tradeable items. Each record carries a
string ID that is unique across all inventories.
"""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union


class ItemType(str, enum.Enum):
    EGG = "egg"
    CHICKEN = "chicken"


class Rarity(str, enum.Enum):
    COMMON = "Common"
    UNCOMMON = "Uncommon"
    RARE = "Rare"
    EPIC = "Epic"
    LEGENDARY = "Legendary"
    MYTHIC = "Mythic"


# Fields a received item starts with. Accrued state never crosses owners.
ARRIVAL_DEFAULTS: Dict[ItemType, Dict[str, Any]] = {
    ItemType.EGG: {},
    ItemType.CHICKEN: {
        "accumulated_money": 0.0,
        "spot_index": None,
        "placed_time": None,
    },
}


@dataclass
class EggRecord:
    id: str
    egg_type: str
    rarity: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "egg_type": self.egg_type,
            "rarity": self.rarity,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EggRecord":
        return cls(
            id=data["id"],
            egg_type=data.get("egg_type", ""),
            rarity=data.get("rarity", Rarity.COMMON.value),
        )


@dataclass
class ChickenRecord:
    id: str
    chicken_type: str
    rarity: str
    accumulated_money: float = 0.0
    last_egg_time: float = 0.0
    spot_index: Optional[int] = None  # None while in inventory
    placed_time: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def is_placed(self) -> bool:
        return self.spot_index is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "chicken_type": self.chicken_type,
            "rarity": self.rarity,
            "accumulated_money": self.accumulated_money,
            "last_egg_time": self.last_egg_time,
            "spot_index": self.spot_index,
            "placed_time": self.placed_time,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChickenRecord":
        return cls(
            id=data["id"],
            chicken_type=data.get("chicken_type", ""),
            rarity=data.get("rarity", Rarity.COMMON.value),
            accumulated_money=data.get("accumulated_money", 0.0),
            last_egg_time=data.get("last_egg_time", 0.0),
            spot_index=data.get("spot_index"),
            placed_time=data.get("placed_time"),
            metadata=data.get("metadata", {}),
        )


ItemRecord = Union[EggRecord, ChickenRecord]


def fresh_copy(record: ItemRecord, item_type: ItemType, new_id: str, now: float) -> ItemRecord:
    """Build the record a receiving player gets: new ID, accrued state reset."""
    defaults = ARRIVAL_DEFAULTS[ItemType(item_type)]
    if isinstance(record, EggRecord):
        return EggRecord(id=new_id, egg_type=record.egg_type, rarity=record.rarity)
    return ChickenRecord(
        id=new_id,
        chicken_type=record.chicken_type,
        rarity=record.rarity,
        accumulated_money=defaults["accumulated_money"],
        last_egg_time=now,
        spot_index=defaults["spot_index"],
        placed_time=defaults["placed_time"],
        metadata=copy.deepcopy(record.metadata),
    )
