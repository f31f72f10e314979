"""
Purpose: Push notification collaborator.
What it does:
Delivers short title/body messages to a user, to whoever drives a vehicle,
or to every user holding a role. Delivery is best-effort; the engine never
waits on it (see notifications/side_effects.py).

Implementations:
- LoggingNotifier   logs the message (default, no network)
- WebhookNotifier   POSTs to a push gateway with requests; no-op without a URL
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Optional, Protocol

import requests

logger = logging.getLogger(__name__)

Payload = Optional[Dict[str, Any]]


class Role(str, Enum):
    ADMIN = "admin"
    DISPATCHER = "dispatcher"
    DRIVER = "driver"
    REQUESTER = "requester"


class Notifier(Protocol):
    def notify_user(self, user_id: str, title: str, body: str, data: Payload = None) -> None: ...
    def notify_vehicle_driver(self, vehicle_id: str, title: str, body: str, data: Payload = None) -> None: ...
    def notify_role(self, title: str, body: str, data: Payload, *roles: Role) -> None: ...


class LoggingNotifier:
    def notify_user(self, user_id, title, body, data=None):
        logger.info("push user=%s title=%r body=%r", user_id, title, body)

    def notify_vehicle_driver(self, vehicle_id, title, body, data=None):
        logger.info("push vehicle_driver=%s title=%r body=%r", vehicle_id, title, body)

    def notify_role(self, title, body, data, *roles):
        logger.info("push roles=%s title=%r body=%r", [Role(r).value for r in roles], title, body)


class WebhookNotifier:
    """
    Forwards every message to an HTTP push gateway, which owns device tokens
    and the vehicle -> driver lookup.

        POST {gateway_url}
        {"target": {"type": "user"|"vehicle_driver"|"role", ...}, "title", "body", "data"}
    """

    def __init__(self, gateway_url: Optional[str], *, timeout_seconds: int = 5, session: Optional[requests.Session] = None):
        self.gateway_url = gateway_url
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def _post(self, target: Dict[str, Any], title: str, body: str, data: Payload) -> None:
        if not self.gateway_url:
            logger.debug("push gateway not configured, dropping %r", title)
            return

        payload = {"target": target, "title": title, "body": body, "data": data or {}}
        response = self.session.post(self.gateway_url, json=payload, timeout=self.timeout_seconds)
        response.raise_for_status()

    def notify_user(self, user_id, title, body, data=None):
        self._post({"type": "user", "id": user_id}, title, body, data)

    def notify_vehicle_driver(self, vehicle_id, title, body, data=None):
        self._post({"type": "vehicle_driver", "vehicle_id": vehicle_id}, title, body, data)

    def notify_role(self, title, body, data, *roles):
        self._post({"type": "role", "roles": [Role(r).value for r in roles]}, title, body, data)
