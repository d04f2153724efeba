# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Typed records for the latest-builds page.

Shared by:
- `tcbuilds.teamcity` (decodes upstream JSON into these records)
- `tcbuilds.aggregate` (groups and sorts them)
- `tcbuilds.render` (the template reads the display helpers)

This module MUST NOT import the client or the renderer to avoid cycles.

Upstream records are frozen. A refresh cycle attaches builds and files with
`dataclasses.replace()`, so nothing handed to a reader is ever mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

KIB = 1 << 10
MIB = 1 << 20

# TeamCity timestamps look like 20170412T101010+0200.
TEAMCITY_DATE_FORMAT = "%Y%m%dT%H%M%S%z"


def format_size(size: int) -> str:
    """Human-readable size: KiB with one decimal below 1 MiB, MiB with two at or above."""
    if size >= MIB:
        return f"{size / MIB:.2f} MiB"
    return f"{size / KIB:.1f} KiB"


def format_teamcity_date(value: str) -> str:
    """Re-render a TeamCity timestamp as `YYYY-MM-DD HH:MM:SS UTC`.

    Unparseable input is returned unchanged so the page still shows something.
    """
    try:
        dt = datetime.strptime(str(value or ""), TEAMCITY_DATE_FORMAT)
    except ValueError:
        return str(value or "")
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _require(d: Dict[str, Any], key: str) -> Any:
    if not isinstance(d, dict):
        raise TypeError(f"expected an object, got {type(d).__name__}")
    if key not in d:
        raise KeyError(key)
    return d[key]


@dataclass(frozen=True)
class ArtifactFile:
    """One file in a build's artifact root."""

    name: str
    size: int
    download_path: str
    modification_time: str = ""

    @classmethod
    def from_json(cls, d: Dict[str, Any]) -> "ArtifactFile":
        content = d.get("content") if isinstance(d, dict) else None
        if not isinstance(content, dict):
            content = {}
        return cls(
            name=str(_require(d, "name")),
            size=int(d.get("size") or 0),
            download_path=str(content.get("href") or ""),
            modification_time=str(d.get("modificationTime") or ""),
        )

    @property
    def size_str(self) -> str:
        return format_size(self.size)

    def download_url(self, base: str) -> str:
        return f"{base}{self.download_path}"


@dataclass(frozen=True)
class Build:
    """Latest successful build of a configuration on the target branch."""

    id: int
    number: str = ""
    state: str = ""
    status_text: str = ""
    finish_date: str = ""
    web_url: str = ""
    href: str = ""
    branch_name: str = ""
    files: Tuple[ArtifactFile, ...] = ()

    @classmethod
    def from_json(cls, d: Dict[str, Any]) -> "Build":
        return cls(
            id=int(_require(d, "id")),
            number=str(d.get("number") or ""),
            state=str(d.get("state") or ""),
            status_text=str(d.get("statusText") or ""),
            finish_date=str(d.get("finishDate") or ""),
            web_url=str(d.get("webUrl") or ""),
            href=str(d.get("href") or ""),
            branch_name=str(d.get("branchName") or ""),
        )

    @property
    def date_str(self) -> str:
        return format_teamcity_date(self.finish_date)


@dataclass(frozen=True)
class BuildConfiguration:
    """A TeamCity build type, optionally with its resolved build attached."""

    id: str
    name: str
    project_name: str
    project_id: str = ""
    href: str = ""
    web_url: str = ""
    build: Optional[Build] = None

    @classmethod
    def from_json(cls, d: Dict[str, Any]) -> "BuildConfiguration":
        return cls(
            id=str(_require(d, "id")),
            name=str(d.get("name") or ""),
            project_name=str(d.get("projectName") or ""),
            project_id=str(d.get("projectId") or ""),
            href=str(d.get("href") or ""),
            web_url=str(d.get("webUrl") or ""),
        )

    @property
    def sort_key(self) -> Tuple[str, str]:
        return (self.project_name, self.name)

    @property
    def has_files(self) -> bool:
        return self.build is not None and bool(self.build.files)


@dataclass
class Project:
    """Grouping of build configurations by project name.

    Mutable only while the aggregator is filling it; readers get it after publish.
    """

    name: str
    builds: List[BuildConfiguration] = field(default_factory=list)

    @property
    def anchor(self) -> str:
        return self.name.replace(" ", "-")

    @property
    def visible_builds(self) -> List[BuildConfiguration]:
        return [bt for bt in self.builds if bt.has_files]


@dataclass(frozen=True)
class Snapshot:
    """One published page. `produced_at` is None for the placeholder."""

    body: bytes
    produced_at: Optional[datetime] = None
    generation: int = 0

    @property
    def is_placeholder(self) -> bool:
        return self.produced_at is None
