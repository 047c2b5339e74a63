# Overview: Realtime push adapter; publishes device status changes to shop and superadmin rooms.

"""
Broadcast Service

The transport (websocket server, message bus) is external. The app holds one
broadcaster object with an emit(room, event, payload) method in
app.extensions["broadcaster"]. The default writes to the app log;
create_app(broadcaster=...) installs any other implementation.

Broadcast failures are logged and never surfaced to the request.
"""

from __future__ import annotations

from flask import current_app

from ..time_utils import to_utc_z, utcnow


DEVICE_STATUS_CHANGED = "device-status-changed"
SUPERADMIN_ROOM = "superadmin"

EXTENSION_KEY = "broadcaster"


def shop_room(shop_id: int) -> str:
    return f"shop-{shop_id}"


class LoggingBroadcaster:
    def emit(self, room: str, event: str, payload: dict) -> None:
        current_app.logger.info("broadcast room=%s event=%s payload=%s", room, event, payload)


def init_app(app, broadcaster=None) -> None:
    app.extensions[EXTENSION_KEY] = broadcaster or LoggingBroadcaster()


def get_broadcaster():
    return current_app.extensions[EXTENSION_KEY]


def publish(rooms: list[str], event: str, payload: dict) -> None:
    broadcaster = get_broadcaster()
    for room in rooms:
        try:
            broadcaster.emit(room, event, payload)
        except Exception:
            current_app.logger.exception("Failed to broadcast %s to %s", event, room)


def publish_device_status(device, action: str, actor_id: int) -> None:
    payload = {
        "device_id": device.id,
        "device_name": device.display_name,
        "user_id": device.user_id,
        "shop_id": device.shop_id,
        "action": action,
        "is_locked": device.is_locked,
        "lock_reason": device.lock_reason,
        "performed_by_id": actor_id,
        "timestamp": to_utc_z(utcnow()),
    }
    publish([shop_room(device.shop_id), SUPERADMIN_ROOM], DEVICE_STATUS_CHANGED, payload)
