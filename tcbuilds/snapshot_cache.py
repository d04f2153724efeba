# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
In-memory snapshot cache with a single refresh worker.

- One published `Snapshot` at a time, swapped under a lock that is held only for the
  reference read/write, never while a page is being built.
- Refresh triggers go into a capacity-1 queue. A trigger that finds the slot full is
  dropped, so any burst during an in-flight refresh collapses into one more refresh.
- The worker also wakes up on its own every `refresh_interval_s` (the cache lifetime).
- A failed refresh (including `AggregationError`) is logged and leaves the previous
  snapshot in place; readers keep getting a 200 with stale (or placeholder) data.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from .exceptions import AggregationError
from .types import Snapshot

_logger = logging.getLogger(__name__)


@dataclass
class RefreshStats:
    """Refresh counters, updated by the worker only."""
    attempts: int = 0
    successes: int = 0
    failures: int = 0
    last_error: str = ""
    last_duration_s: float = 0.0


class SnapshotCache:
    """Owns the published snapshot, the pending-refresh slot and the refresh worker."""

    def __init__(
        self,
        build_page: Callable[[], bytes],
        *,
        placeholder: bytes = b"",
        refresh_interval_s: Optional[float] = None,
    ):
        self._build_page = build_page
        self.refresh_interval_s = refresh_interval_s if refresh_interval_s and refresh_interval_s > 0 else None

        self._mu = threading.Lock()
        self._published = threading.Condition(self._mu)
        self._snapshot = Snapshot(body=bytes(placeholder))

        self._pending: "queue.Queue[str]" = queue.Queue(maxsize=1)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._refreshing = threading.Event()
        self.stats = RefreshStats()

    # -----------------------------------------------------------------------------
    # Readers
    # -----------------------------------------------------------------------------

    def current_snapshot(self) -> Snapshot:
        with self._mu:
            return self._snapshot

    def current_bytes(self) -> bytes:
        return self.current_snapshot().body

    def wait_for_generation(self, generation: int, timeout: Optional[float] = None) -> bool:
        """Block until a snapshot with at least `generation` is published."""
        with self._published:
            return self._published.wait_for(lambda: self._snapshot.generation >= generation, timeout=timeout)

    # -----------------------------------------------------------------------------
    # Triggers
    # -----------------------------------------------------------------------------

    def request_refresh(self, reason: str = "trigger") -> bool:
        """Queue a refresh without blocking. Returns False when one is already pending."""
        try:
            self._pending.put_nowait(reason)
        except queue.Full:
            _logger.debug(f"Refresh already pending; dropping {reason} request")
            return False
        return True

    def refresh_pending(self) -> bool:
        return self._pending.full()

    # -----------------------------------------------------------------------------
    # Worker
    # -----------------------------------------------------------------------------

    def _publish(self, body: bytes) -> Snapshot:
        with self._published:
            snap = Snapshot(
                body=body,
                produced_at=datetime.now(timezone.utc),
                generation=self._snapshot.generation + 1,
            )
            self._snapshot = snap
            self._published.notify_all()
        return snap

    def refresh_once(self, reason: str = "manual") -> bool:
        """Build and publish one page. Returns False (old snapshot kept) on failure.

        Called by the worker; call it directly only when no worker is running.
        """
        self._refreshing.set()
        self.stats.attempts += 1
        t0 = time.monotonic()
        _logger.info(f"Refreshing cache ({reason})")
        try:
            body = self._build_page()
        except AggregationError as e:
            self.stats.failures += 1
            self.stats.last_error = str(e)
            _logger.error(f"Refresh failed, keeping previous page: {e}")
            return False
        except Exception as e:
            self.stats.failures += 1
            self.stats.last_error = f"{type(e).__name__}: {e}"
            _logger.exception("Refresh failed with an unexpected error, keeping previous page")
            return False
        finally:
            self.stats.last_duration_s = time.monotonic() - t0
            self._refreshing.clear()

        snap = self._publish(body)
        self.stats.successes += 1
        self.stats.last_error = ""
        _logger.info(
            f"Published generation {snap.generation} ({len(body)} bytes) in {self.stats.last_duration_s:.2f}s"
        )
        return True

    def run_refresh_loop(self) -> None:
        """Take one pending request at a time (or wake on the interval) until stopped."""
        _logger.info("Refresh worker started")
        while not self._stop_event.is_set():
            try:
                reason = self._pending.get(timeout=self.refresh_interval_s)
            except queue.Empty:
                reason = "timer"
            if self._stop_event.is_set():
                break
            self.refresh_once(reason=reason)
        _logger.info("Refresh worker stopped")

    def start(self) -> None:
        """Start the worker thread and queue the initial refresh."""
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run_refresh_loop, name="tcbuilds-refresh", daemon=True)
        self._thread.start()
        self.request_refresh(reason="startup")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the worker after any in-flight refresh finishes."""
        self._stop_event.set()
        # Wake the worker if it is idle; a full slot wakes it just the same.
        self.request_refresh(reason="shutdown")
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def status(self) -> Dict[str, Any]:
        snap = self.current_snapshot()
        return {
            "state": "refreshing" if self._refreshing.is_set() else "idle",
            "generation": snap.generation,
            "last_refresh": snap.produced_at.isoformat() if snap.produced_at else None,
            "refresh_pending": self.refresh_pending(),
            "refresh_interval_s": self.refresh_interval_s,
            "attempts": self.stats.attempts,
            "successes": self.stats.successes,
            "failures": self.stats.failures,
            "last_error": self.stats.last_error or None,
            "last_duration_s": round(self.stats.last_duration_s, 3),
        }
