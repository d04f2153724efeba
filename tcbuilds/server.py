# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""HTTP front door: serves the cached page and accepts refresh triggers.

Routes:
  GET|HEAD /, /index.html   current snapshot (always 200, placeholder before the first refresh)
  GET|POST /refresh         queue a refresh, answer 202 immediately
  GET /healthz              JSON refresh status + upstream REST stats
"""

from __future__ import annotations

import json
import logging
import socket
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlparse

from .snapshot_cache import SnapshotCache

_logger = logging.getLogger(__name__)

PAGE_PATHS = ("/", "/index.html")
REFRESH_PATH = "/refresh"
HEALTH_PATH = "/healthz"


def address_family_for(host: str) -> socket.AddressFamily:
    """IPv6 for hosts like "::1" (brackets already stripped), IPv4 otherwise."""
    return socket.AF_INET6 if ":" in str(host or "") else socket.AF_INET


class LatestBuildsServer(ThreadingHTTPServer):
    """ThreadingHTTPServer that carries the snapshot cache for its handlers."""

    daemon_threads = True

    def __init__(
        self,
        server_address: Tuple[str, int],
        cache: SnapshotCache,
        *,
        extra_status: Optional[Callable[[], Dict[str, Any]]] = None,
    ):
        self.cache = cache
        self.extra_status = extra_status
        self.address_family = address_family_for(server_address[0])
        super().__init__(server_address, LatestBuildsHandler)


class LatestBuildsHandler(BaseHTTPRequestHandler):
    server: LatestBuildsServer
    server_version = "tcbuilds"

    def log_message(self, format: str, *args: Any) -> None:
        _logger.info("%s - %s", self.address_string(), format % args)

    def _send(self, status: int, body: bytes, content_type: str, *, head_only: bool = False) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-cache")
        self.end_headers()
        if not head_only:
            self.wfile.write(body)

    def send_json_response(self, data: Dict[str, Any], status: int = 200) -> None:
        body = json.dumps(data, sort_keys=True).encode("utf-8")
        self._send(status, body, "application/json")

    def _serve_page(self, *, head_only: bool = False) -> None:
        t0 = time.monotonic()
        snap = self.server.cache.current_snapshot()
        self._send(200, snap.body, "text/html; charset=utf-8", head_only=head_only)
        _logger.debug(
            f"Served generation {snap.generation} "
            f"(from {snap.produced_at.isoformat() if snap.produced_at else 'placeholder'}) "
            f"in {(time.monotonic() - t0) * 1000:.1f}ms"
        )

    def _trigger_refresh(self) -> None:
        queued = self.server.cache.request_refresh(reason=f"http {self.command}")
        self.send_json_response({"queued": queued}, status=202)

    def _health(self) -> None:
        status = dict(self.server.cache.status())
        if self.server.extra_status is not None:
            status.update(self.server.extra_status())
        self.send_json_response(status)

    def do_GET(self) -> None:
        path = urlparse(self.path).path
        if path in PAGE_PATHS:
            self._serve_page()
        elif path == REFRESH_PATH:
            self._trigger_refresh()
        elif path == HEALTH_PATH:
            self._health()
        else:
            self.send_json_response({"error": "not found"}, status=404)

    def do_HEAD(self) -> None:
        path = urlparse(self.path).path
        if path in PAGE_PATHS:
            self._serve_page(head_only=True)
        else:
            self._send(404, b"", "text/plain", head_only=True)

    def do_POST(self) -> None:
        path = urlparse(self.path).path
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = -1
        if length < 0:
            self.close_connection = True
            self.send_json_response({"error": "invalid Content-Length"}, status=400)
            return
        if length > 0:
            self.rfile.read(length)
        if path == REFRESH_PATH:
            self._trigger_refresh()
        else:
            self.send_json_response({"error": "not found"}, status=404)
