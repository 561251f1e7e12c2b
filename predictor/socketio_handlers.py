"""
SocketIO event handlers for live competition updates

Clients on the /scores namespace receive `result_set` whenever a match result
is recorded and `week_scored` (with full-house and blank names) when a week's
points are distributed.
"""

import logging
from datetime import datetime, timezone

from flask import request
from flask_socketio import emit

from predictor import socketio

logger = logging.getLogger(__name__)

# Track connected clients
connected_clients = {}


@socketio.on("connect", namespace="/scores")
def on_connect():
    """Handle client connection to scores namespace"""
    try:
        from predictor.services import week_state

        client_id = request.sid
        connected_clients[client_id] = {"connected_at": datetime.now(timezone.utc)}
        logger.info(f"Client connected to /scores: {client_id}")

        overview = week_state.list_weeks()
        emit(
            "week_overview",
            {
                "latest": overview["latest"],
                "recommendedPickWeek": overview["recommendedPickWeek"],
                "recommendedViewWeek": overview["recommendedViewWeek"],
            },
        )
    except Exception as e:
        logger.error(f"Error in scores connect: {e}")


@socketio.on("disconnect", namespace="/scores")
def on_disconnect():
    """Handle client disconnection from scores namespace"""
    client_id = request.sid
    if connected_clients.pop(client_id, None) is not None:
        logger.info(f"Client disconnected from /scores: {client_id}")


# Broadcast functions (called from the result and scoring services)
def broadcast_result_set(match):
    """Broadcast a newly recorded match result"""
    try:
        payload = match.to_dict()
        payload["timestamp"] = datetime.now(timezone.utc).isoformat()

        socketio.emit("result_set", payload, namespace="/scores")
        logger.debug(f"Broadcasted result for match {match.id}")
    except Exception as e:
        logger.error(f"Error broadcasting result for match {match.id}: {e}")


def broadcast_week_scored(scoring_result):
    """Broadcast that a week has been scored, naming full houses and blanks"""
    try:
        socketio.emit(
            "week_scored",
            {
                "week": scoring_result.week,
                "usersUpdated": scoring_result.users_updated,
                "fullHouseNames": list(scoring_result.full_house_names),
                "blanksNames": list(scoring_result.blanks_names),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
            namespace="/scores",
        )
        logger.info(
            f"Broadcasted week {scoring_result.week} scored: "
            f"{len(scoring_result.full_house_names)} full house(s), "
            f"{len(scoring_result.blanks_names)} blank(s)"
        )
    except Exception as e:
        logger.error(f"Error broadcasting week {scoring_result.week} scored: {e}")


def get_connection_stats():
    """Get connection statistics"""
    return {"total_connections": len(connected_clients)}
