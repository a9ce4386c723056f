"""
Item transfer ledger.

Records every item that changed owner through a completed trade, with
both the donor's and the recipient's item IDs.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class Transfer:
    transfer_id: str
    trade_id: str
    from_player: str
    to_player: str
    item_type: str
    donor_item_id: str
    new_item_id: str
    rarity: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "transfer_id": self.transfer_id,
            "trade_id": self.trade_id,
            "from_player": self.from_player,
            "to_player": self.to_player,
            "item_type": self.item_type,
            "donor_item_id": self.donor_item_id,
            "new_item_id": self.new_item_id,
            "rarity": self.rarity,
            "timestamp": self.timestamp,
        }


class TransferLedger:
    """Append-only record of item ownership changes."""

    def __init__(self) -> None:
        self._transfers: List[Transfer] = []
        self._next_id: int = 0
        self._lock = threading.Lock()

    def record_transfer(
        self,
        trade_id: str,
        from_player: str,
        to_player: str,
        item_type: str,
        donor_item_id: str,
        new_item_id: str,
        rarity: str,
    ) -> Transfer:
        with self._lock:
            transfer = Transfer(
                transfer_id=f"tx_{self._next_id:08d}",
                trade_id=trade_id,
                from_player=from_player,
                to_player=to_player,
                item_type=item_type,
                donor_item_id=donor_item_id,
                new_item_id=new_item_id,
                rarity=rarity,
            )
            self._transfers.append(transfer)
            self._next_id += 1
            return transfer

    def get_transfers(
        self,
        trade_id: Optional[str] = None,
        player_id: Optional[str] = None,
    ) -> List[Transfer]:
        results = []
        with self._lock:
            transfers = list(self._transfers)
        for tx in transfers:
            if trade_id and tx.trade_id != trade_id:
                continue
            if player_id and tx.from_player != player_id and tx.to_player != player_id:
                continue
            results.append(tx)
        return results

    def get_balance_sheet(self, player_id: str) -> Dict[str, int]:
        """Net item count gained or lost per item type."""
        balances: Dict[str, int] = {}
        with self._lock:
            transfers = list(self._transfers)
        for tx in transfers:
            if tx.from_player == player_id:
                balances[tx.item_type] = balances.get(tx.item_type, 0) - 1
            if tx.to_player == player_id:
                balances[tx.item_type] = balances.get(tx.item_type, 0) + 1
        return balances

    def total_volume(self) -> Dict[str, int]:
        """Items traded, by item type."""
        volumes: Dict[str, int] = {}
        with self._lock:
            transfers = list(self._transfers)
        for tx in transfers:
            volumes[tx.item_type] = volumes.get(tx.item_type, 0) + 1
        return volumes
