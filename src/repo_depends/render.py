"""Report renderers: flat and dependency-ordered listings of repositories, projects and packages."""

from __future__ import annotations

import functools
import logging
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, Flag, auto
from typing import TYPE_CHECKING, ClassVar

from .filters import InclusionPolicy
from .graphs import sort_key
from .output import Style
from .versions import UpgradeStatus, compare_for_upgrade

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .graphs import EntityGraph, LevelAssignment
    from .inventory import Inventory
    from .models import PackageEdge, Project, Repository
    from .nuget import PackageGraphResolver
    from .output import OutputSink

logger = logging.getLogger(__name__)


class Tier(Flag):
    """A layer of the inventory that a report can show."""

    REPOSITORIES = auto()
    PROJECTS = auto()
    PACKAGES = auto()


class ViewDepth(str, Enum):
    """How deep into the inventory a report goes."""

    DEFAULT = "default"
    FULL = "full"
    REPO_ONLY = "repo"
    PROJECT_ONLY = "project"

    @classmethod
    def parse(cls, value: str | None) -> ViewDepth | None:
        """Parse a view name or one of its aliases; ``None`` means the default view.

        Returns:
            the view, or ``None`` if ``value`` is not a known view name

        """
        if value is None:
            return cls.DEFAULT
        return _VIEW_ALIASES.get(value.strip().lower())

    @property
    def tiers(self) -> Tier:
        """The tiers shown by this view."""
        return _VIEW_TIERS[self]

    @property
    def show_repositories(self) -> bool:
        return Tier.REPOSITORIES in self.tiers

    @property
    def show_projects(self) -> bool:
        return Tier.PROJECTS in self.tiers

    @property
    def show_packages(self) -> bool:
        return Tier.PACKAGES in self.tiers


_VIEW_ALIASES: dict[str, ViewDepth] = {
    "default": ViewDepth.DEFAULT,
    "d": ViewDepth.DEFAULT,
    "full": ViewDepth.FULL,
    "f": ViewDepth.FULL,
    "repo": ViewDepth.REPO_ONLY,
    "repo-only": ViewDepth.REPO_ONLY,
    "repoonly": ViewDepth.REPO_ONLY,
    "r": ViewDepth.REPO_ONLY,
    "project": ViewDepth.PROJECT_ONLY,
    "project-only": ViewDepth.PROJECT_ONLY,
    "projectonly": ViewDepth.PROJECT_ONLY,
    "p": ViewDepth.PROJECT_ONLY,
}

_VIEW_TIERS: dict[ViewDepth, Tier] = {
    ViewDepth.DEFAULT: Tier.REPOSITORIES | Tier.PROJECTS,
    ViewDepth.FULL: Tier.REPOSITORIES | Tier.PROJECTS | Tier.PACKAGES,
    ViewDepth.REPO_ONLY: Tier.REPOSITORIES,
    ViewDepth.PROJECT_ONLY: Tier.PROJECTS,
}


class Ordering(Enum):
    """Order in which a renderer lists entities."""

    BY_NAME = "name"
    BY_LEVEL = "level"


class Shape(Enum):
    """Layout of a report."""

    FLAT = "flat"
    TREE = "tree"


@dataclass(frozen=True)
class RenderOptions:
    """Everything a renderer needs to know besides the inventory."""

    view: ViewDepth = ViewDepth.DEFAULT
    policy: InclusionPolicy = field(default_factory=InclusionPolicy)
    project: str | None = None
    show_repo_deps: bool = False
    show_project_deps: bool = False
    show_repo_usages: bool = False
    show_project_usages: bool = False
    max_package_depth: int = 10


def repository_key(repo: Repository) -> tuple[str, str]:
    """Display order for repositories."""
    return repo.display_name.casefold(), repo.path


def _count_text(references: int, users: int, noun: str) -> str:
    parts = []
    if references > 0:
        parts.append(f"Referenced by {references}")
    if users > 0:
        parts.append(f"used by {users}")
    if not parts:
        return ""
    plural = "s" if references + users > 1 else ""
    return f" ({', '.join(parts)} {noun}{plural})"


class NodePrinter:
    """Writes entity lines and their optional dependency and usage sections."""

    def __init__(self, inventory: Inventory, options: RenderOptions, sink: OutputSink) -> None:
        """Initialize a printer writing to ``sink``."""
        self.inventory = inventory
        self.options = options
        self.sink = sink

    def repository(
        self, repo: Repository, *, level: int | None = None, levels: LevelAssignment | None = None
    ) -> None:
        """Write a repository line, followed by its dependency and usage sections if enabled."""
        graph = self.inventory.repository_graph
        dependencies = graph.dependencies(repo)
        users = self.inventory.repository_usages.get(repo.path, [])
        level_text = f"[{level}] " if level is not None else ""
        counts = _count_text(len(dependencies), len(users), "repo")
        self.sink.write_line(f"- {level_text}{repo.display_name}{counts}", Style.REPO_NAME)
        if self.options.show_repo_deps:
            labels = [dep.display_name for dep in self._by_level(dependencies, levels)]
            self._section("Referenced by:", labels, 2, Style.REPO_NAME)
        if self.options.show_repo_usages:
            labels = [user.display_name for user in sorted(users, key=repository_key)]
            self._section("Used by:", labels, 2, Style.REPO_NAME)

    def project(
        self,
        project: Project,
        *,
        indent: int,
        section_indent: int,
        level: int | None = None,
        levels: LevelAssignment | None = None,
    ) -> None:
        """Write a project line, followed by its dependency and usage sections if enabled.

        Projects hidden by the inclusion policy are left out of the sections, but they still count towards
        the reference and usage totals on the project line.
        """
        policy = self.options.policy
        dependencies = self.inventory.project_graph.dependencies(project)
        users = self.inventory.project_usages.get(project.path, [])
        level_text = f"[{level}] " if level is not None else ""
        counts = _count_text(len(dependencies), len(users), "project")
        self.sink.write_line(
            f"{' ' * indent}- {level_text}{project.name}{self.inventory.format_id(project.package_id)}{counts}",
            Style.PROJECT_NAME,
        )
        if self.options.show_project_deps:
            visible = self._by_level((dep for dep in dependencies if policy.includes(dep)), levels)
            self._section("Referenced by:", self._labels(visible), section_indent, Style.PROJECT_DEPENDENCY)
        if self.options.show_project_usages:
            visible = sorted((user for user in users if policy.includes(user)), key=sort_key)
            self._section("Used by:", self._labels(visible), section_indent, Style.PROJECT_DEPENDENCY)

    def packages(self, project: Project, *, indent: int) -> None:
        """Write a line for every package edge of ``project`` that passes the inclusion policy."""
        policy = self.options.policy
        for package in sorted(project.packages, key=lambda p: p.name.casefold()):
            if policy.includes_package(package):
                self.package(package, indent=indent)

    def package(self, package: PackageEdge, *, indent: int) -> None:
        """Write a package line, flagging it when a newer version of the package is in use elsewhere."""
        prefix = f"{' ' * indent}- {package.name}{self.inventory.format_id(package.package_id)}"
        if not package.is_versioned:
            self.sink.write_line(f"{prefix} (Project)", Style.PACKAGE_REFERENCE)
            return
        latest = self.inventory.latest_versions.get(package.name.casefold())
        if compare_for_upgrade(package.version, latest) is UpgradeStatus.UPGRADE:
            self.sink.write_line(f"{prefix} ({package.version} -> {latest})", Style.UPGRADE_WARNING)
        else:
            self.sink.write_line(f"{prefix} ({package.version})", Style.PACKAGE_REFERENCE)

    def _labels(self, projects: Iterable[Project]) -> list[str]:
        return [f"{project.name}{self.inventory.format_id(project.package_id)}" for project in projects]

    def _section(self, header: str, labels: Sequence[str], indent: int, style: Style) -> None:
        if not labels:
            return
        pad = " " * indent
        self.sink.write_line(f"{pad}{header}", Style.INFO)
        for label in labels:
            self.sink.write_line(f"{pad}- {label}", style)

    @staticmethod
    def _by_level(members: Iterable[Project | Repository], levels: LevelAssignment | None) -> list:
        if levels is None:
            return sorted(members, key=sort_key)
        return sorted(members, key=lambda m: (levels.get(m.path, sys.maxsize), *sort_key(m)))


def write_inventory_warnings(inventory: Inventory, sink: OutputSink) -> None:
    """Write a warning block for project names and package ids that are claimed more than once."""
    duplicate_names = inventory.duplicate_project_names()
    if duplicate_names:
        sink.warning("Duplicate project names detected (same name in multiple locations):")
        for name, projects in duplicate_names:
            sink.write_line(f"  - Project: {name}", Style.WARNING)
            for project in sorted(projects, key=lambda p: p.path):
                sink.write_line(f"    - {project.path}", Style.PACKAGE_REFERENCE)
    duplicate_ids = inventory.duplicate_package_ids()
    if duplicate_ids:
        sink.warning("Duplicate package ids detected (same id published by multiple projects):")
        for package_id, projects in duplicate_ids:
            sink.write_line(f"  - Package: {package_id}", Style.WARNING)
            for project in sorted(projects, key=lambda p: p.path):
                sink.write_line(f"    - {project.path}", Style.PACKAGE_REFERENCE)


def write_cycle_warnings(graph: EntityGraph, header: str, sink: OutputSink) -> bool:
    """Write a warning block listing each dependency cycle of ``graph`` as ``A -> B -> A``.

    Returns:
        True if the graph has at least one cycle

    """
    cycles = graph.cycles()
    if not cycles:
        return False
    sink.warning(header)
    for cycle in cycles:
        chain = " -> ".join(getattr(entity, "display_name", entity.name) for entity in cycle)
        sink.write_line(f"   {chain}", Style.WARNING)
    return True


class ReportRenderer(ABC):
    """A way of laying out an inventory as report lines."""

    name: str
    aliases: tuple[str, ...] = ()
    ordering: ClassVar[Ordering]
    shape: ClassVar[Shape]

    def __init_subclass__(cls, **kwargs: object) -> None:
        """Validate subclass configuration."""
        if not hasattr(cls, "name") or cls.name is None:
            msg = f"{cls.__name__} must define a `name` class member"
            raise TypeError(msg)
        if not hasattr(cls, "ordering") or not hasattr(cls, "shape"):
            msg = f"{cls.__name__} must define `ordering` and `shape` class members"
            raise TypeError(msg)
        renderers.cache_clear()
        renderer_by_name.cache_clear()

    @abstractmethod
    def render(
        self,
        inventory: Inventory,
        options: RenderOptions,
        sink: OutputSink,
        *,
        resolver: PackageGraphResolver | None = None,
    ) -> None:
        """Write the report for ``inventory`` to ``sink``. Rendering never modifies the inventory."""
        raise NotImplementedError

    def __str__(self) -> str:
        """Return the renderer name."""
        return self.name


@functools.lru_cache
def renderers() -> tuple[ReportRenderer, ...]:
    """Get an instance of every known renderer."""
    return tuple(cls() for cls in ReportRenderer.__subclasses__())  # type: ignore[abstract]


@functools.lru_cache
def renderer_by_name(name: str) -> ReportRenderer:
    """Find a renderer by name or alias, case-insensitively."""
    wanted = name.strip().lower()
    for instance in renderers():
        if wanted == instance.name or wanted in instance.aliases:
            return instance
    raise KeyError(name)


class ListRenderer(ReportRenderer):
    """Repositories, projects and packages in name order."""

    name = "list"
    aliases = ("l",)
    ordering = Ordering.BY_NAME
    shape = Shape.FLAT

    def render(
        self,
        inventory: Inventory,
        options: RenderOptions,
        sink: OutputSink,
        *,
        resolver: PackageGraphResolver | None = None,  # noqa: ARG002
    ) -> None:
        """Write the listing."""
        printer = NodePrinter(inventory, options, sink)
        view = options.view
        repositories = sorted(inventory.repositories, key=repository_key)
        if options.project:
            wanted = options.project.casefold()
            repositories = [r for r in repositories if any(p.name.casefold() == wanted for p in r.projects)]

        if view is ViewDepth.PROJECT_ONLY:
            projects = (p for repo in repositories for p in repo.projects if options.policy.includes(p))
            for project in sorted(projects, key=sort_key):
                printer.project(project, indent=0, section_indent=2)
            return

        for repo in repositories:
            projects = sorted((p for p in repo.projects if options.policy.includes(p)), key=sort_key)
            if not projects and view.show_projects:
                continue
            if view.show_repositories:
                printer.repository(repo)
            if not view.show_projects:
                continue
            for project in projects:
                printer.project(project, indent=2, section_indent=4)
                if view.show_packages:
                    printer.packages(project, indent=4)


class DependencyRenderer(ReportRenderer):
    """Repositories and projects in build order, with their levels."""

    name = "dependency"
    aliases = ("d",)
    ordering = Ordering.BY_LEVEL
    shape = Shape.FLAT

    def render(
        self,
        inventory: Inventory,
        options: RenderOptions,
        sink: OutputSink,
        *,
        resolver: PackageGraphResolver | None = None,  # noqa: ARG002
    ) -> None:
        """Write the dependency-ordered listing.

        Entities caught in a dependency cycle have no level and are left out, after a warning that names
        each cycle. Repositories in a cycle that hold leveled projects are still listed, last and without a level.
        """
        policy = options.policy
        view = options.view

        scope: Project | None = None
        if options.project:
            scope = inventory.find_project(options.project)
            if scope is None:
                sink.warning(f"Warning: Project not found: {options.project}")
                return
            if not policy.includes(scope):
                sink.warning(
                    f"Warning: Project '{options.project}' is filtered from output "
                    "but still used for dependency resolution."
                )

        project_levels = inventory.project_graph.levels(scope)
        if project_levels.has_cycle:
            write_cycle_warnings(inventory.project_graph, "Circular project dependency detected:", sink)
        ordered = sorted(
            (p for p in inventory.projects if p.path in project_levels and policy.includes(p)),
            key=lambda p: (project_levels[p.path], *sort_key(p)),
        )

        write_cycle_warnings(inventory.repository_graph, "Circular Git repository dependency detected:", sink)
        repo_levels = inventory.repository_graph.levels()

        if view is ViewDepth.PROJECT_ONLY:
            printer = NodePrinter(inventory, options, sink)
            for project in ordered:
                printer.project(
                    project, indent=0, section_indent=4, level=project_levels[project.path], levels=project_levels
                )
            return

        printer = NodePrinter(inventory, options, sink)
        shown = {p.path for p in ordered}
        # repositories caught in a cycle come last, without a level
        repositories = sorted(
            (
                r
                for r in inventory.repositories
                if any(p.path in shown for p in r.projects) and (view.show_projects or r.path in repo_levels)
            ),
            key=lambda r: (repo_levels.get(r.path, sys.maxsize), *repository_key(r)),
        )
        for repo in repositories:
            repo_paths = {p.path for p in repo.projects}
            if view.show_repositories:
                printer.repository(repo, level=repo_levels.get(repo.path), levels=repo_levels)
            if not view.show_projects:
                continue
            for project in ordered:
                if project.path not in repo_paths:
                    continue
                printer.project(
                    project, indent=2, section_indent=4, level=project_levels[project.path], levels=project_levels
                )
                if view.show_packages:
                    printer.packages(project, indent=4)
