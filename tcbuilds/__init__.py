# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Latest TeamCity builds of a branch, served as one cached HTML page.

Modules:
- `tcbuilds.teamcity` for the TeamCity REST client
- `tcbuilds.aggregate` for the per-refresh collection of builds and artifacts
- `tcbuilds.render` for the Jinja2 page
- `tcbuilds.snapshot_cache` for the published page and the refresh worker
- `tcbuilds.server` for the HTTP front door
- `tcbuilds.cli` for the command line (`python -m tcbuilds`)
"""

from .aggregate import collect_projects  # noqa: F401
from .exceptions import (  # noqa: F401
    AggregationError,
    ConfigError,
    TeamCityAPIError,
    TeamCityDecodeError,
    TeamCityHTTPStatusError,
    TeamCityTransportError,
)
from .render import PageRenderer  # noqa: F401
from .snapshot_cache import SnapshotCache  # noqa: F401
from .teamcity import TeamCityAPIClient  # noqa: F401

__version__ = "0.1.0"

__all__ = [
    "AggregationError",
    "ConfigError",
    "PageRenderer",
    "SnapshotCache",
    "TeamCityAPIClient",
    "TeamCityAPIError",
    "TeamCityDecodeError",
    "TeamCityHTTPStatusError",
    "TeamCityTransportError",
    "collect_projects",
]
