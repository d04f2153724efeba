# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Error types for tcbuilds.

The TeamCity errors are kept lightweight so the aggregator can catch one class and
absorb per-configuration failures without caring which stage failed.
"""

from __future__ import annotations

from typing import Optional


class TeamCityAPIError(Exception):
    def __init__(self, *, endpoint: str, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = int(status_code)
        self.endpoint = str(endpoint or "")


class TeamCityTransportError(TeamCityAPIError):
    """Connection refused, DNS failure, timeout, ..."""


class TeamCityHTTPStatusError(TeamCityAPIError):
    """Upstream answered with anything other than 200 OK."""


class TeamCityDecodeError(TeamCityAPIError):
    """Body is not JSON, or not JSON of the shape we expect."""


class AggregationError(Exception):
    """The build configuration listing failed, so no page can be produced."""

    def __init__(self, message: str, *, cause: Optional[TeamCityAPIError] = None):
        super().__init__(message)
        self.cause = cause


class ConfigError(ValueError):
    pass
