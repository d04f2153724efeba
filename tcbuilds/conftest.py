# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Shared pytest fixtures: an in-memory TeamCity behind a patched `requests.get`.

Run from the repository root:
    pytest -v
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional, Union
from unittest import mock

import pytest

from tcbuilds.teamcity import (
    GUEST_AUTH_PREFIX,
    artifacts_path,
    build_types_path,
    latest_build_path,
)

FAKE_BASE = "https://tc.example.com"


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, *, invalid_json: bool = False, reason: str = ""):
        self.status_code = status_code
        self.reason = reason or ("OK" if status_code == 200 else "Error")
        self._payload = payload
        self._invalid_json = invalid_json

    def json(self) -> Any:
        if self._invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeTeamCity:
    """Routes full URLs to canned responses and records every call."""

    def __init__(self, base: str = FAKE_BASE, branch: str = "main"):
        self.base = base
        self.branch = branch
        self.routes: Dict[str, Union[FakeResponse, Exception]] = {}
        self.calls: List[str] = []
        self.build_types: List[Dict[str, Any]] = []
        self._next_build_id = 100
        self._mu = threading.Lock()

    def url(self, path: str, prefix: str = GUEST_AUTH_PREFIX) -> str:
        return f"{self.base}{prefix}{path}"

    def add(self, path: str, payload: Any = None, *, status: int = 200, prefix: str = GUEST_AUTH_PREFIX,
            invalid_json: bool = False, error: Optional[Exception] = None) -> None:
        url = self.url(path, prefix)
        self.routes[url] = error if error is not None else FakeResponse(status, payload, invalid_json=invalid_json)

    def publish_build_types(self, project_id: Optional[str] = None, *, status: int = 200) -> None:
        self.add(build_types_path(project_id), {"count": len(self.build_types), "buildType": self.build_types},
                 status=status)

    def add_build_type(
        self,
        bt_id: str,
        name: str,
        project_name: str,
        *,
        files: Optional[List[Dict[str, Any]]] = None,
        matches: int = 1,
        finish_date: str = "20240102T030405+0000",
        artifacts_status: int = 200,
        build_status: int = 200,
    ) -> Optional[int]:
        """Register a configuration with `matches` successful builds; returns the build id."""
        self.build_types.append({
            "id": bt_id,
            "name": name,
            "projectName": project_name,
            "projectId": project_name.replace(" ", "_"),
            "href": f"/guestAuth/app/rest/buildTypes/id:{bt_id}",
            "webUrl": f"{self.base}/viewType.html?buildTypeId={bt_id}",
        })
        build_id = self._next_build_id
        self._next_build_id += 10
        refs = [
            {"id": build_id + i, "buildTypeId": bt_id, "href": f"/guestAuth/app/rest/builds/id:{build_id + i}"}
            for i in range(matches)
        ]
        self.add(latest_build_path(bt_id, self.branch), {"count": len(refs), "build": refs})
        if matches != 1:
            return None

        self.add(f"/app/rest/builds/id:{build_id}", {
            "id": build_id,
            "buildTypeId": bt_id,
            "number": f"{build_id}",
            "state": "finished",
            "status": "SUCCESS",
            "statusText": "Tests passed: 42",
            "branchName": self.branch,
            "finishDate": finish_date,
            "href": f"/guestAuth/app/rest/builds/id:{build_id}",
            "webUrl": f"{self.base}/viewLog.html?buildId={build_id}",
        }, status=build_status)
        file_list = files if files is not None else [
            {"name": f"{bt_id}.tar.gz", "size": 1500000,
             "content": {"href": f"/guestAuth/app/rest/builds/id:{build_id}/artifacts/content/{bt_id}.tar.gz"}},
        ]
        self.add(artifacts_path(build_id), {"count": len(file_list), "file": file_list}, status=artifacts_status)
        return build_id

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        with self._mu:
            self.calls.append(url)
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(404, {"error": "not found"}, reason="Not Found")
        if isinstance(route, Exception):
            raise route
        return route


@pytest.fixture
def teamcity():
    fake = FakeTeamCity()
    with mock.patch("tcbuilds.teamcity.requests.get", side_effect=fake.get) as patched:
        fake.mock = patched
        yield fake


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in ("TEAMCITY_AUTH", "TCBUILDS_CONFIG", "LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
