# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""HTML rendering for the latest-builds page (Jinja2).

The renderer is a pure function of the aggregated projects: it hides projects and
configurations without artifacts and returns UTF-8 bytes ready to be cached.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from .exceptions import ConfigError
from .types import Project

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
DEFAULT_TEMPLATE = "latest_builds.j2"


class PageRenderer:
    """Loads the page template once and renders projects into bytes."""

    def __init__(self, *, branch: str, base_url: str, title: str = "", template_path: Optional[Path] = None):
        self.branch = str(branch or "")
        self.base_url = str(base_url or "").rstrip("/")
        self.title = str(title or "")

        if template_path is not None:
            p = Path(template_path).expanduser().resolve()
            template_dir, template_name = p.parent, p.name
        else:
            template_dir, template_name = TEMPLATE_DIR, DEFAULT_TEMPLATE

        env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html", "xml", "j2"]),
        )
        try:
            self._template = env.get_template(template_name)
        except TemplateError as e:
            raise ConfigError(f"Cannot load template {template_dir / template_name}: {e}") from e

    def page_context(self, projects: List[Project], *, placeholder: bool = False) -> Dict[str, Any]:
        """Template context. Only projects with at least one build with artifacts are listed."""
        return {
            "branch": self.branch,
            "base": self.base_url,
            "title": self.title,
            "projects": [p for p in projects if p.visible_builds],
            "placeholder": placeholder,
            "generated_time": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC"),
        }

    def render(self, projects: List[Project]) -> bytes:
        return self._template.render(**self.page_context(projects)).encode("utf-8")

    def render_placeholder(self) -> bytes:
        """Page served before the first refresh completes."""
        return self._template.render(**self.page_context([], placeholder=True)).encode("utf-8")
