# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""TeamCity REST API client for tcbuilds.

Every request goes through `TeamCityAPIClient.fetch_json()`, which picks the
guest/authenticated path prefix, attaches basic auth when a credential is
configured, and maps every failure onto the `TeamCityAPIError` family.

There are no retries: a failed call aborts only the unit of work that asked for it.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

import requests

from .exceptions import (
    TeamCityAPIError,
    TeamCityDecodeError,
    TeamCityHTTPStatusError,
    TeamCityTransportError,
)
from .types import ArtifactFile, Build, BuildConfiguration

_logger = logging.getLogger(__name__)

GUEST_AUTH_PREFIX = "/guestAuth"
HTTP_AUTH_PREFIX = "/httpAuth"

DEFAULT_TIMEOUT_S = 30.0


def parse_credential(auth: str) -> Optional[Tuple[str, str]]:
    """Split `user:password`; anything without exactly one colon is rejected."""
    fields = str(auth or "").split(":")
    if len(fields) != 2:
        return None
    return (fields[0], fields[1])


def build_types_path(project_id: Optional[str] = None) -> str:
    extra = ""
    if project_id:
        extra = f"?locator=affectedProject:(id:{project_id})"
    return f"/app/rest/buildTypes{extra}"


def latest_build_path(build_type_id: str, branch: str) -> str:
    return (
        f"/app/rest/buildTypes/id:{build_type_id}/builds"
        f"?locator=branch:{branch},state:finished,status:SUCCESS,count:1"
    )


def artifacts_path(build_id: int) -> str:
    return f"/app/rest/builds/id:{int(build_id)}/artifacts/children"


class TeamCityAPIClient:
    """TeamCity REST API client (guest or HTTP basic auth, JSON only)."""

    def __init__(self, base_url: str, auth: str = "", *, timeout: float = DEFAULT_TIMEOUT_S):
        self.base_url = str(base_url or "").rstrip("/")
        self.auth = str(auth or "")
        self.timeout = float(timeout)
        self.headers: Dict[str, str] = {"Accept": "application/json"}

        self._basic_auth = parse_credential(self.auth) if self.auth else None
        if self.auth and self._basic_auth is None:
            _logger.warning("Credential is not of the form user:password; requests will be sent without basic auth")

        # Per-client REST stats; the aggregator may call us from several threads.
        self._stats_mu = threading.Lock()
        self._rest_calls_total: int = 0
        self._rest_calls_by_label: Dict[str, int] = {}
        self._rest_success_total: int = 0
        self._rest_errors_total: int = 0
        self._rest_time_total_s: float = 0.0
        self._rest_errors_by_status: Dict[int, int] = {}

    def has_credential(self) -> bool:
        return bool(self.auth)

    def auth_prefix(self, path: str) -> str:
        """Return the prefix to put in front of `path` ("" when it already has one)."""
        if path.startswith(GUEST_AUTH_PREFIX) or path.startswith(HTTP_AUTH_PREFIX):
            return ""
        if self.auth:
            return HTTP_AUTH_PREFIX
        return GUEST_AUTH_PREFIX

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{self.auth_prefix(path)}{path}"

    def _rest_record(self, *, label: str, status_code: Optional[int], dt_s: float) -> None:
        lbl = str(label or "").strip() or "unknown"
        with self._stats_mu:
            self._rest_calls_total += 1
            self._rest_calls_by_label[lbl] = self._rest_calls_by_label.get(lbl, 0) + 1
            self._rest_time_total_s += max(0.0, float(dt_s))
            if status_code == 200:
                self._rest_success_total += 1
            else:
                self._rest_errors_total += 1
                sc = int(status_code or 0)
                self._rest_errors_by_status[sc] = self._rest_errors_by_status.get(sc, 0) + 1

    def get_rest_call_stats(self) -> Dict[str, Any]:
        """Return REST call stats for the lifetime of this client."""
        with self._stats_mu:
            return {
                "total": int(self._rest_calls_total),
                "success_total": int(self._rest_success_total),
                "error_total": int(self._rest_errors_total),
                "time_total_s": round(float(self._rest_time_total_s), 3),
                "by_label": dict(sorted(self._rest_calls_by_label.items(), key=lambda kv: (-kv[1], kv[0]))),
                # Status 0 means the request never got an HTTP answer.
                "errors_by_status": dict(sorted(self._rest_errors_by_status.items())),
            }

    def fetch_json(self, path: str, *, label: Optional[str] = None) -> Any:
        """GET `path` from TeamCity and return the decoded JSON body, or raise."""
        url = self.url_for(path)
        lbl = str(label or "").strip() or "unknown"
        t0 = time.monotonic()
        status_code: Optional[int] = None

        try:
            try:
                response = requests.get(url, headers=self.headers, auth=self._basic_auth, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                raise TeamCityTransportError(endpoint=path, message=f"TeamCity request failed for {path}: {e}") from e

            status_code = int(response.status_code)
            if status_code != 200:
                raise TeamCityHTTPStatusError(
                    endpoint=path,
                    status_code=status_code,
                    message=f"TeamCity returned {status_code} {response.reason or ''}".rstrip() + f" for {path}",
                )

            try:
                return response.json()
            except ValueError as e:
                raise TeamCityDecodeError(
                    endpoint=path, status_code=status_code, message=f"TeamCity returned invalid JSON for {path}: {e}"
                ) from e
        finally:
            dt = max(0.0, time.monotonic() - t0)
            _logger.debug(f"GET {url} -> {status_code if status_code is not None else 'ERR'} in {dt * 1000:.1f}ms")
            self._rest_record(label=lbl, status_code=status_code, dt_s=dt)

    # -----------------------------------------------------------------------------
    # Typed resources
    # -----------------------------------------------------------------------------

    def _decode_list(self, path: str, body: Any, key: str, record_type: Any) -> List[Any]:
        """Decode `body[key]` into a list of `record_type`; a missing key means empty."""
        if not isinstance(body, dict):
            raise TeamCityDecodeError(endpoint=path, status_code=200, message=f"Expected a JSON object from {path}")
        items = body.get(key) or []
        if not isinstance(items, list):
            raise TeamCityDecodeError(endpoint=path, status_code=200, message=f"Expected '{key}' to be a list in {path}")
        try:
            return [record_type.from_json(item) for item in items]
        except (KeyError, TypeError, ValueError) as e:
            raise TeamCityDecodeError(
                endpoint=path, status_code=200, message=f"Malformed '{key}' entry in {path}: {e!r}"
            ) from e

    def get_build_types(self, project_id: Optional[str] = None) -> List[BuildConfiguration]:
        path = build_types_path(project_id)
        return self._decode_list(path, self.fetch_json(path, label="build_types"), "buildType", BuildConfiguration)

    def get_latest_build(self, build_type_id: str, branch: str) -> Optional[Build]:
        """Return the latest successful finished build on `branch`, or None.

        Zero or more than one match counts as "not found". The list endpoint returns
        abbreviated records, so the match is re-fetched through its self-link.
        """
        path = latest_build_path(build_type_id, branch)
        builds = self._decode_list(path, self.fetch_json(path, label="latest_build"), "build", Build)
        if len(builds) != 1:
            _logger.debug(f"No unique build for {build_type_id} on {branch} ({len(builds)} matches)")
            return None
        return self.get_build(builds[0].href)

    def get_build(self, href: str) -> Build:
        if not href:
            raise TeamCityDecodeError(endpoint="", message="Build reference has no href")
        body = self.fetch_json(href, label="build")
        try:
            return Build.from_json(body)
        except (KeyError, TypeError, ValueError) as e:
            raise TeamCityDecodeError(endpoint=href, status_code=200, message=f"Malformed build record at {href}: {e!r}") from e

    def get_artifacts(self, build_id: int) -> List[ArtifactFile]:
        path = artifacts_path(build_id)
        return self._decode_list(path, self.fetch_json(path, label="artifacts"), "file", ArtifactFile)


__all__ = ["TeamCityAPIClient", "TeamCityAPIError", "parse_credential"]
