#!/usr/bin/env python3
"""Module entrypoint for `tcbuilds`.

Usage:
  - `python3 -m tcbuilds --base https://teamcity.example.com --branch main`
  - `python3 -m tcbuilds --output latest.html`
"""

from __future__ import annotations

from .cli import main


if __name__ == "__main__":
    raise SystemExit(main())
