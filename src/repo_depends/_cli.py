"""Command-line interface for repo-depends."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from .config import Settings
from .filters import InclusionPolicy
from .inventory import Inventory
from .logger import setup_logger
from .nuget import NuGetPackageSource, PackageGraphResolver
from .output import ConsoleSink, OutputSink, buffered
from .render import RenderOptions, Shape, ViewDepth, renderer_by_name, write_inventory_warnings
from .repo_depends import version
from .scanner import discover_repositories

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_INVALID_PATH = 1
EXIT_UNKNOWN_OUTPUT = 2
EXIT_UNKNOWN_VIEW = 3
EXIT_UNHANDLED_ERROR = 99

EXIT_MESSAGES = {
    EXIT_SUCCESS: "",
    EXIT_INVALID_PATH: "Exit code 1: Invalid or missing path.",
    EXIT_UNKNOWN_OUTPUT: "Exit code 2: Unknown output type specified.",
    EXIT_UNKNOWN_VIEW: "Exit code 3: Unknown view mode specified.",
    EXIT_UNHANDLED_ERROR: "Exit code 99: Unhandled error occurred.",
}


def exit_with_code(code: int, sink: OutputSink) -> int:
    """Write the message that goes with an exit code and return the code."""
    message = EXIT_MESSAGES.get(code, f"Exit code {code}: Unknown result.")
    if code == EXIT_UNHANDLED_ERROR:
        sink.error(message)
    else:
        sink.warning(message)
    return code


def render_options(settings: Settings, view: ViewDepth) -> RenderOptions:
    """Translate the settings into render options."""
    return RenderOptions(
        view=view,
        policy=InclusionPolicy(settings.exclude.strip() or None, only_packable=settings.only_packable),
        project=settings.project.strip() or None,
        show_repo_deps=settings.repo_deps,
        show_project_deps=settings.project_deps,
        show_repo_usages=settings.repo_usages,
        show_project_usages=settings.project_usages,
    )


def package_resolver(settings: Settings, inventory: Inventory, options: RenderOptions) -> PackageGraphResolver:
    """Create the package resolver and, unless offline, download the metadata the report will need."""
    source = NuGetPackageSource(settings.cache_dir, offline=settings.offline, timeout=settings.fetch_timeout)
    resolver = PackageGraphResolver(source)
    if settings.offline:
        return resolver
    requests_ = [
        (package.name, package.version.strip(), project.target_framework, resolver.lock_graph(project))  # type: ignore[union-attr]
        for project in inventory.projects
        if options.policy.includes(project)
        for package in project.packages
        if package.is_versioned and package.name.strip()
    ]
    resolved = resolver.prefetch(requests_, max_workers=settings.max_workers, max_depth=options.max_package_depth)
    logger.info("Resolved the dependencies of %d package versions", resolved)
    return resolver


def run(settings: Settings, sink: OutputSink) -> int:
    """Scan the target directory and write the requested report to ``sink``."""
    root = Path(settings.target).expanduser()
    if not settings.target.strip() or not root.is_dir():
        sink.error("Error: Please provide a valid folder path.")
        return exit_with_code(EXIT_INVALID_PATH, sink)

    view = ViewDepth.parse(settings.view)
    if view is None:
        sink.error(f"Unknown view mode: {settings.view}")
        return exit_with_code(EXIT_UNKNOWN_VIEW, sink)

    try:
        renderer = renderer_by_name(settings.output)
    except KeyError:
        sink.error(f"Unknown output type: {settings.output}")
        return exit_with_code(EXIT_UNKNOWN_OUTPUT, sink)

    inventory = Inventory(discover_repositories(root))
    options = render_options(settings, view)
    resolver = None
    if renderer.shape is Shape.TREE and view is ViewDepth.FULL:
        resolver = package_resolver(settings, inventory, options)

    # nothing is written unless the whole report renders
    with buffered(sink) as report:
        write_inventory_warnings(inventory, report)
        renderer.render(inventory, options, report, resolver=resolver)
    return EXIT_SUCCESS


def main(argv: Sequence[str] | None = None, sink: OutputSink | None = None) -> int:
    """Run repo-depends.

    Args:
        argv: command-line arguments; ``sys.argv`` is used if ``None``
        sink: where the report goes; the console if ``None``

    Returns:
        the process exit code

    """
    settings = Settings() if argv is None else Settings(_cli_parse_args=list(argv))
    setup_logger(settings.log_level)

    # If max_workers isn't provided, use the number of CPUs.
    # If that fails, use 1.
    if settings.max_workers == -1:
        settings.max_workers = os.cpu_count() or 1

    logger.info("Starting repo-depends with settings: %s", settings)

    if sink is None:
        sink = ConsoleSink()

    if settings.version:
        sink.write_line(f"repo-depends {version()}")
        return EXIT_SUCCESS

    try:
        return run(settings, sink)
    except Exception:
        logger.exception("Unhandled error")
        return exit_with_code(EXIT_UNHANDLED_ERROR, sink)
