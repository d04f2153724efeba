# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Collect the latest successful build (and its artifacts) for every build configuration.

One refresh cycle:
  1. list build configurations (optionally scoped to one top-level project)
  2. sort by (project name, configuration name)
  3. group into projects in first-occurrence order
  4-6. per configuration: latest successful build on the branch -> full build record -> artifacts
  7. attach and append to the owning project

Only a failure in step 1 fails the cycle. Per-configuration failures just leave that
configuration out of the page.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from .exceptions import AggregationError, TeamCityAPIError
from .teamcity import TeamCityAPIClient
from .types import BuildConfiguration, Project

_logger = logging.getLogger(__name__)


def resolve_build_type(client: TeamCityAPIClient, bt: BuildConfiguration, branch: str) -> Optional[BuildConfiguration]:
    """Return `bt` with its latest build and files attached, or None to skip it."""
    try:
        build = client.get_latest_build(bt.id, branch)
        if build is None:
            return None
        files = client.get_artifacts(build.id)
    except TeamCityAPIError as e:
        _logger.warning(f"Skipping {bt.project_name} / {bt.name} ({bt.id}): {e}")
        return None
    return replace(bt, build=replace(build, files=tuple(files)))


def group_by_project(build_types: List[BuildConfiguration]) -> Tuple[List[Project], Dict[str, Project]]:
    """Create one empty project per project name, in first-occurrence order.

    `build_types` must already be sorted by `sort_key`. Returns the ordered projects
    and the same projects keyed by name.
    """
    projects: List[Project] = []
    by_name: Dict[str, Project] = {}
    for bt in build_types:
        if bt.project_name not in by_name:
            proj = Project(name=bt.project_name)
            by_name[bt.project_name] = proj
            projects.append(proj)
    return projects, by_name


def collect_projects(
    client: TeamCityAPIClient,
    branch: str,
    project_id: Optional[str] = None,
    *,
    max_workers: int = 1,
) -> List[Project]:
    """Run one aggregation cycle and return the ordered project list.

    Projects whose configurations all got skipped are still returned (with no
    builds); hiding them is up to the renderer.

    Raises:
        AggregationError: the build configuration listing failed.
    """
    t0 = time.monotonic()
    try:
        build_types = client.get_build_types(project_id)
    except TeamCityAPIError as e:
        raise AggregationError(f"Failed to list build configurations: {e}", cause=e) from e

    build_types = sorted(build_types, key=lambda b: b.sort_key)
    projects, by_name = group_by_project(build_types)

    if max_workers > 1 and len(build_types) > 1:
        # map() yields in submission order, which keeps the sort from above.
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            resolved = list(executor.map(lambda b: resolve_build_type(client, b, branch), build_types))
    else:
        resolved = [resolve_build_type(client, bt, branch) for bt in build_types]

    found = 0
    for bt in resolved:
        if bt is None:
            continue
        by_name[bt.project_name].builds.append(bt)
        found += 1

    _logger.info(
        f"Collected {found}/{len(build_types)} builds of {branch} across {len(projects)} projects "
        f"in {time.monotonic() - t0:.2f}s"
    )
    return projects
