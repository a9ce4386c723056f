"""
Main web application.

Builds the trade subsystem (inventory store, trade service, janitor,
ledgers) for one process and serves the read-only observer API on top
of it. The trade service and its janitor live exactly as long as the app.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from flask import Flask, jsonify

from henhouse.inventory.store import InventoryStore
from henhouse.ledger.events import EventLedger
from henhouse.ledger.transfers import TransferLedger
from henhouse.observer_api.app import create_observer_routes
from henhouse.trading.service import TradeService
from henhouse.trading.settings import TradeSettings

logger = logging.getLogger("henhouse.web")

PROJECT_NAME = "Henhouse"


# ─── App factory ──────────────────────────────────────────────────────────────

def create_app(settings: Optional[TradeSettings] = None, start_janitor: bool = True) -> Flask:
    app = Flask(__name__)
    settings = settings or TradeSettings.from_env()

    # ── Initialize trade subsystem ────────────────────────────────────────
    store = InventoryStore()
    if not store.load():
        store.save()

    event_ledger = EventLedger()
    transfers = TransferLedger()

    def on_event(event_data: dict):
        event_ledger.append(event_data)
        if event_data["event_type"] == "trade_completed":
            store.save()

    trade_service = TradeService(store, settings=settings, on_event=on_event, transfers=transfers)

    if start_janitor:
        trade_service.start()

    # Store references on app for testing access
    app.store = store
    app.trade_service = trade_service
    app.event_ledger = event_ledger
    app.transfers = transfers

    @app.route("/")
    def index():
        return jsonify({
            "name": PROJECT_NAME,
            "active_trades": trade_service.active_session_count(),
            "trade_timeout": settings.trade_timeout,
            "lock_timeout": settings.lock_timeout,
        })

    # ── Observer API (READ-ONLY) ──────────────────────────────────────────
    observer_bp = create_observer_routes(trade_service, event_ledger)
    app.register_blueprint(observer_bp)

    logger.info(
        "Trade subsystem ready (trade timeout %.0fs, lock timeout %.0fs)",
        settings.trade_timeout, settings.lock_timeout,
    )
    return app


def main():
    """Entry point for running the diagnostics server."""
    host = os.environ.get("HENHOUSE_HOST", "0.0.0.0")
    port = int(os.environ.get("HENHOUSE_PORT", "8000"))
    debug = os.environ.get("HENHOUSE_DEBUG", "false").lower() == "true"

    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO)
    app = create_app()
    try:
        app.run(host=host, port=port, debug=debug)
    finally:
        app.trade_service.stop()


if __name__ == "__main__":
    main()
