# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
CLI for tcbuilds.

Serves a page listing the artifacts of the latest successful TeamCity build of every
build configuration on one branch, or (with --output) renders that page once.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Optional, Sequence

from .aggregate import collect_projects
from .config import (
    DEFAULTS,
    ENV_AUTH,
    ENV_CONFIG_PATH,
    Settings,
    get_log_level,
    load_config_file,
    resolve_settings,
)
from .exceptions import AggregationError, ConfigError
from .render import PageRenderer
from .server import LatestBuildsServer
from .snapshot_cache import SnapshotCache
from .teamcity import TeamCityAPIClient

logger = logging.getLogger(__name__)


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write via a temp file in the same directory + os.replace(), so readers never see half a page."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_name(f".{p.name}.tmp.{os.getpid()}")
    tmp.write_text(content, encoding=encoding)
    os.replace(str(tmp), str(p))


def make_page_builder(settings: Settings, client: TeamCityAPIClient, renderer: PageRenderer) -> Callable[[], bytes]:
    """Return the refresh function: aggregate, then render."""

    def build_page() -> bytes:
        projects = collect_projects(
            client,
            settings.branch,
            settings.project or None,
            max_workers=settings.workers,
        )
        return renderer.render(projects)

    return build_page


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tcbuilds",
        description="Serve the artifacts of the latest successful TeamCity builds of a branch as one HTML page.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Environment Variables:
  {ENV_AUTH}
      TeamCity credential as user:password (alternative to --auth)
      Priority: --auth > {ENV_AUTH} > config file

  {ENV_CONFIG_PATH}
      Path to a YAML config file (alternative to --config)

  LOG_LEVEL
      DEBUG, INFO, WARNING, ERROR or CRITICAL (--verbose wins)
        """,
    )
    # Flag defaults are None so we can tell "not given" apart from "given".
    parser.add_argument("--config", type=Path, default=None, help="YAML config file with any of the keys below")
    parser.add_argument("--base", default=None, help=f"TeamCity server address (default: {DEFAULTS['base']})")
    parser.add_argument("--branch", default=None, help=f"Branch to show (default: {DEFAULTS['branch']})")
    parser.add_argument("--listen", default=None, help=f"Server listen address (default: {DEFAULTS['listen']})")
    parser.add_argument("--project", default=None, help="Top level project ID to scope the build list to")
    parser.add_argument("--auth", default=None, help="TeamCity credential as user:password (default: guest access)")
    parser.add_argument(
        "--cache",
        default=None,
        help=f"Cache life time; the page is rebuilt this often, 0 disables the timer (default: {DEFAULTS['cache']})",
    )
    parser.add_argument("--title", default=None, help="Custom page title (default: 'Latest builds of <branch>')")
    parser.add_argument("--template", default=None, help="Jinja2 template file to render instead of the built-in one")
    parser.add_argument(
        "--timeout", default=None, help=f"Timeout for each TeamCity request (default: {DEFAULTS['timeout']})"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Build configurations resolved in parallel during a refresh (default: 1, sequential)",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Render the page once to this file ('-' for stdout) and exit instead of serving",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging (includes every TeamCity URL)")
    return parser


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else (get_log_level() or logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def render_once(settings: Settings, client: TeamCityAPIClient, renderer: PageRenderer, output: str) -> int:
    try:
        body = make_page_builder(settings, client, renderer)()
    except AggregationError as e:
        logger.error(f"ERROR: {e}")
        return 1
    if output == "-":
        sys.stdout.write(body.decode("utf-8"))
    else:
        atomic_write_text(Path(output), body.decode("utf-8"))
        logger.info(f"Wrote {output} ({len(body)} bytes)")
    return 0


def serve(settings: Settings, client: TeamCityAPIClient, renderer: PageRenderer) -> int:
    cache = SnapshotCache(
        make_page_builder(settings, client, renderer),
        placeholder=renderer.render_placeholder(),
        refresh_interval_s=settings.cache_s,
    )
    try:
        httpd = LatestBuildsServer(
            (settings.host, settings.port),
            cache,
            extra_status=lambda: {"branch": settings.branch, "upstream": client.get_rest_call_stats()},
        )
    except OSError as e:
        logger.error(f"ERROR: cannot listen on {settings.listen}: {e}")
        return 1

    logger.info(
        f"Serving latest builds of {settings.branch} from {settings.base} on http://{settings.listen}/ "
        f"(refresh every {settings.cache_s:g}s, {'authenticated' if client.has_credential() else 'guest'} access)"
    )
    cache.start()
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        httpd.server_close()
        cache.stop(timeout=5.0)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    configure_logging(bool(args.verbose))

    try:
        config_path = args.config or (Path(os.environ[ENV_CONFIG_PATH]) if os.environ.get(ENV_CONFIG_PATH) else None)
        file_values = load_config_file(config_path) if config_path else {}
        settings = resolve_settings(vars(args), file_values=file_values)
        renderer = PageRenderer(
            branch=settings.branch, base_url=settings.base, title=settings.title, template_path=settings.template
        )
    except ConfigError as e:
        logger.error(f"ERROR: {e}")
        return 2

    client = TeamCityAPIClient(settings.base, settings.auth, timeout=settings.timeout_s)
    if args.output:
        return render_once(settings, client, renderer, args.output)
    return serve(settings, client, renderer)


if __name__ == "__main__":
    raise SystemExit(main())
