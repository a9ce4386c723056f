"""
Observer API schemas.

Defines response schemas for the read-only trade diagnostics API.
"""

from __future__ import annotations

from typing import Dict


def offer_schema(offer: dict) -> dict:
    items = offer.get("items", [])
    return {
        "item_count": len(items),
        "items": [
            {"item_type": item.get("item_type"), "item_id": item.get("item_id")}
            for item in items
        ],
        "confirmed": offer.get("confirmed", False),
    }


def session_schema(session: dict) -> dict:
    """Format a trade session for observer consumption (no item snapshots)."""
    return {
        "trade_id": session.get("trade_id"),
        "party_a": session.get("party_a"),
        "party_b": session.get("party_b"),
        "offer_a": offer_schema(session.get("offer_a", {})),
        "offer_b": offer_schema(session.get("offer_b", {})),
        "status": session.get("status"),
        "locked_item_ids": session.get("locked_item_ids", []),
        "started_at": session.get("started_at"),
        "locked_at": session.get("locked_at"),
        "cancel_reason": session.get("cancel_reason"),
    }


def event_schema(event: dict) -> dict:
    return {
        "event_id": event.get("event_id"),
        "event_type": event.get("event_type"),
        "trade_id": event.get("trade_id"),
        "player_id": event.get("player_id"),
        "success": event.get("success"),
        "details": event.get("details", {}),
        "timestamp": event.get("timestamp"),
    }


def analytics_schema(
    sessions_by_status: Dict[str, int],
    active_sessions: int,
    pending_requests: int,
    transfer_volume: Dict[str, int],
    total_events: int,
) -> dict:
    return {
        "sessions": {
            "active": active_sessions,
            "by_status": sessions_by_status,
        },
        "requests": {
            "pending": pending_requests,
        },
        "economy": {
            "transfer_volume": transfer_volume,
        },
        "ledger": {
            "total_events": total_events,
        },
    }


def error_schema(message: str, code: int = 400) -> dict:
    return {"error": message, "code": code}
