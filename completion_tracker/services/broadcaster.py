"""
Data Completion Tracker
Completion Broadcaster.

Pushes freshly computed completion stats to everyone watching a client.
The push channel itself is injected: the application holds one transport,
attached once at startup, and every publish goes through it. Without a
transport, publishing is a logged no-op.

Events:
    - data-completion-update                 full completion stats
    - net-reduction-data-completion-update   per-project net reduction stats

Payload shape for both events:
    {"clientId": ..., "stats": {...}, "timestamp": "<ISO-8601>"}
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, Protocol

from completion_tracker.core.exceptions import DataStoreError, NotFoundError
from completion_tracker.services.access_filter import FullAccess
from completion_tracker.services.completion_service import (
    calculate_client_completion,
    calculate_net_reduction_stats,
)
from completion_tracker.services.reporting_window import Period

logger = logging.getLogger(__name__)

DATA_COMPLETION_EVENT = "data-completion-update"
NET_REDUCTION_EVENT = "net-reduction-data-completion-update"


class Transport(Protocol):
    def emit(self, client_id: str, event: str, payload: dict) -> int:
        ...


class InProcessTransport:
    """Per-client subscriber lists kept in memory.

    ``emit`` returns the number of subscribers that received the event. A
    subscriber that raises is logged and skipped; the rest still receive it.
    """

    def __init__(self):
        self._subscribers: dict[str, list[Callable]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, client_id: str, callback: Callable[[str, dict], None]) -> None:
        with self._lock:
            self._subscribers[client_id].append(callback)

    def unsubscribe(self, client_id: str, callback: Callable) -> bool:
        with self._lock:
            callbacks = self._subscribers.get(client_id, [])
            if callback in callbacks:
                callbacks.remove(callback)
                return True
        return False

    def subscriber_count(self, client_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(client_id, []))

    def emit(self, client_id: str, event: str, payload: dict) -> int:
        with self._lock:
            callbacks = list(self._subscribers.get(client_id, []))

        delivered = 0
        for callback in callbacks:
            try:
                callback(event, payload)
                delivered += 1
            except Exception:
                logger.exception("Subscriber failed on %s", event, extra={"client_id": client_id})
        return delivered


class CompletionBroadcaster:
    """Publishes completion updates through the attached transport."""

    def __init__(self, transport: Transport | None = None):
        self._transport = None
        if transport is not None:
            self.attach(transport)

    @property
    def transport(self):
        return self._transport

    @property
    def is_attached(self) -> bool:
        return self._transport is not None

    def attach(self, transport: Transport) -> None:
        """Attach the push channel. Re-attaching the same one is harmless."""
        if self._transport is not None and self._transport is not transport:
            raise RuntimeError("A transport is already attached to this broadcaster")
        self._transport = transport

    def publish(self, client_id: str, stats: dict, event: str = DATA_COMPLETION_EVENT) -> bool:
        """Emit one event to the client's audience.

        Returns:
            True when the event was handed to a transport, False when no
            transport is attached or the emit failed.
        """
        if self._transport is None:
            logger.debug("No transport attached; dropping %s", event, extra={"client_id": client_id})
            return False

        payload = {
            "clientId": client_id,
            "stats": stats,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self._transport.emit(client_id, event, payload)
        except Exception:
            logger.exception("Failed to emit %s", event, extra={"client_id": client_id})
            return False
        return True

    def broadcast_client_update(self, client_id: str, reference_instant: datetime | None = None) -> dict:
        """Recompute both stats views for a client and publish them.

        Stats are computed with full access; the audience of the push channel
        is the client's own room. Failures are logged, never raised.

        Returns:
            {event_name: delivered_bool}
        """
        delivered = {DATA_COMPLETION_EVENT: False, NET_REDUCTION_EVENT: False}
        if self._transport is None:
            logger.debug("No transport attached; skipping broadcast", extra={"client_id": client_id})
            return delivered

        period = Period.containing(reference_instant)
        try:
            stats = calculate_client_completion(client_id, period=period, access=FullAccess())
            delivered[DATA_COMPLETION_EVENT] = self.publish(client_id, stats, DATA_COMPLETION_EVENT)
        except (NotFoundError, DataStoreError) as exc:
            logger.error("Completion broadcast failed: %s", exc, extra={"client_id": client_id})

        try:
            net_stats = calculate_net_reduction_stats(client_id, reference_instant)
            delivered[NET_REDUCTION_EVENT] = self.publish(client_id, net_stats, NET_REDUCTION_EVENT)
        except DataStoreError as exc:
            logger.error("Net reduction broadcast failed: %s", exc, extra={"client_id": client_id})

        return delivered

    def init_app(self, app) -> None:
        app.extensions["completion_broadcaster"] = self


def get_broadcaster(app=None) -> CompletionBroadcaster | None:
    """Return the broadcaster registered on ``app`` (or the current app)."""
    if app is None:
        from flask import current_app
        app = current_app
    return app.extensions.get("completion_broadcaster")
