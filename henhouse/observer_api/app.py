"""
Observer API: READ-ONLY trade diagnostics.

This API must NEVER mutate trade or inventory state.
Player intents reach the trade service through the game server, not here.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from henhouse.ledger.events import EVENT_TYPES
from henhouse.observer_api.schemas import (
    analytics_schema,
    error_schema,
    event_schema,
    session_schema,
)
from henhouse.trading.models import TradeStatus


def create_observer_routes(trade_service, event_ledger):
    """Create observer routes bound to the given service. Returns a new blueprint each time."""
    observer_bp = Blueprint("observer", __name__, url_prefix="/api/observer")

    @observer_bp.route("/trades", methods=["GET"])
    def get_trades():
        """GET /api/observer/trades: sessions in the registry, optionally by status."""
        status = request.args.get("status", None)
        if status is not None:
            try:
                status = TradeStatus(status)
            except ValueError:
                return jsonify(error_schema(f"Unknown status: {status}", 400)), 400

        sessions = [
            s for s in trade_service.registry.sessions()
            if status is None or s.status == status
        ]
        return jsonify({
            "trades": [session_schema(s.to_dict()) for s in sessions],
            "count": len(sessions),
        })

    @observer_bp.route("/trades/<trade_id>", methods=["GET"])
    def get_trade(trade_id):
        session = trade_service.get_session(trade_id)
        if not session:
            return jsonify(error_schema("Trade not found", 404)), 404
        return jsonify(session_schema(session.to_dict()))

    @observer_bp.route("/trades/<trade_id>/summary", methods=["GET"])
    def get_trade_summary(trade_id):
        summary = trade_service.summary(trade_id)
        if summary is None:
            return jsonify(error_schema("Trade not found", 404)), 404
        return jsonify({"trade_id": trade_id, "summary": summary})

    @observer_bp.route("/players/<player_id>/trade", methods=["GET"])
    def get_player_trade(player_id):
        session = trade_service.get_active_session_for_player(player_id)
        if not session:
            return jsonify(error_schema("Player has no active trade", 404)), 404
        return jsonify(session_schema(session.to_dict()))

    @observer_bp.route("/ledger/events", methods=["GET"])
    def get_ledger_events():
        limit = request.args.get("limit", 100, type=int)
        limit = min(limit, 1000)  # Cap at 1000

        event_type = request.args.get("event_type", None)
        if event_type is not None and event_type not in EVENT_TYPES:
            return jsonify(error_schema(f"Unknown event type: {event_type}", 400)), 400

        events = event_ledger.get_events(
            trade_id=request.args.get("trade_id", None),
            event_type=event_type,
            player_id=request.args.get("player_id", None),
            limit=limit,
        )
        return jsonify({
            "events": [event_schema(e.to_dict()) for e in events],
            "count": len(events),
        })

    @observer_bp.route("/analytics/summary", methods=["GET"])
    def get_analytics_summary():
        return jsonify(analytics_schema(
            trade_service.registry.count_by_status(),
            trade_service.active_session_count(),
            len(trade_service.pending_requests()),
            trade_service.transfers.total_volume(),
            event_ledger.count(),
        ))

    @observer_bp.after_request
    def enforce_read_only(response):
        """Safety: reject any non-GET request that somehow reaches observer."""
        if request.method not in ("GET", "HEAD", "OPTIONS"):
            return jsonify(error_schema("Observer API is read-only", 405)), 405
        return response

    return observer_bp
