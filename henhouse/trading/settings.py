"""
Trade timing configuration.

Values come from the environment at application start; every field has
a default so tests can build settings directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class TradeSettings:
    trade_timeout: float = 300.0  # pending-session lifetime
    lock_timeout: float = 10.0  # window between lock and execute
    request_timeout: float = 30.0  # unanswered trade requests
    sweep_interval: float = 5.0
    auto_complete: bool = True  # lock + execute once both sides confirm

    @classmethod
    def from_env(cls) -> "TradeSettings":
        return cls(
            trade_timeout=float(os.environ.get("HENHOUSE_TRADE_TIMEOUT", "300")),
            lock_timeout=float(os.environ.get("HENHOUSE_LOCK_TIMEOUT", "10")),
            request_timeout=float(os.environ.get("HENHOUSE_REQUEST_TIMEOUT", "30")),
            sweep_interval=float(os.environ.get("HENHOUSE_SWEEP_INTERVAL", "5.0")),
            auto_complete=os.environ.get("HENHOUSE_AUTO_COMPLETE", "true").lower() == "true",
        )
