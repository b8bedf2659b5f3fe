"""Push channel for the signage screens.

Each committed write bumps a per-collection revision and, when any screen is
connected, sends ``{"event": "<collection>.changed", "revision": n,
"snapshot": {...}}``. A screen that sees a revision gap has missed a push and
should refetch ``/display/now``.
"""
from __future__ import annotations

import logging
from threading import Lock
from typing import Callable

from anyio import from_thread
from fastapi import WebSocket

from schoolboard.core.exceptions import AppError

logger = logging.getLogger(__name__)


class DisplayHub:
    def __init__(self) -> None:
        self._screens: set[WebSocket] = set()
        self._revisions: dict[str, int] = {}
        self._lock = Lock()

    @property
    def screen_count(self) -> int:
        return len(self._screens)

    def revisions(self) -> dict[str, int]:
        with self._lock:
            return dict(self._revisions)

    async def attach(self, websocket: WebSocket) -> None:
        await websocket.accept()
        with self._lock:
            self._screens.add(websocket)
        logger.debug("Display screen attached (%d connected)", self.screen_count)

    def detach(self, websocket: WebSocket) -> None:
        with self._lock:
            self._screens.discard(websocket)

    async def broadcast(self, payload: dict) -> int:
        """Send ``payload`` to every screen; returns how many received it."""
        with self._lock:
            screens = list(self._screens)
        delivered = 0
        for websocket in screens:
            try:
                await websocket.send_json(payload)
                delivered += 1
            except (RuntimeError, OSError):
                # Closed between the snapshot of the set and the send.
                self.detach(websocket)
        return delivered

    def notify_changed(self, collection: str, build_snapshot: Callable[[], dict]) -> bool:
        """Record a change to ``collection`` and push it from a sync route handler.

        The snapshot is only built when a screen is listening. Returns whether
        a push was attempted.
        """
        with self._lock:
            revision = self._revisions.get(collection, 0) + 1
            self._revisions[collection] = revision
            listening = bool(self._screens)
        if not listening:
            return False

        try:
            snapshot = build_snapshot()
        except AppError:
            logger.warning("Could not build display snapshot after %s change", collection, exc_info=True)
            snapshot = None
        payload = {"event": f"{collection}.changed", "revision": revision, "snapshot": snapshot}
        try:
            from_thread.run(self.broadcast, payload)
        except RuntimeError:
            # Not inside an anyio worker thread (scripts, direct service calls).
            logger.debug("No event loop to push %s to", payload["event"])
            return False
        return True


display_hub = DisplayHub()
