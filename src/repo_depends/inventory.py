"""The scanned inventory of one run and the graphs derived from it."""

from __future__ import annotations

import logging
from functools import cached_property
from typing import TYPE_CHECKING

from .graph import ProjectGraph, RepositoryGraph
from .versions import latest_known

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .models import Project, Repository

logger = logging.getLogger(__name__)


class Inventory:
    """All repositories found by a scan.

    Graphs, usage maps and version maps are built lazily and at most once, then shared by every renderer.
    The inventory never changes after construction.
    """

    def __init__(self, repositories: Iterable[Repository]) -> None:
        """Initialize the inventory from the scanned repositories."""
        self.repositories: tuple[Repository, ...] = tuple(repositories)
        self._repository_by_project: dict[str, Repository] = {
            project.path: repo for repo in self.repositories for project in repo.projects
        }

    @cached_property
    def projects(self) -> tuple[Project, ...]:
        """Every project of every repository, in scan order."""
        return tuple(project for repo in self.repositories for project in repo.projects)

    @cached_property
    def project_graph(self) -> ProjectGraph:
        """The project dependency graph."""
        return ProjectGraph.build(self.projects)

    @cached_property
    def repository_graph(self) -> RepositoryGraph:
        """The repository dependency graph."""
        return RepositoryGraph.build(self.repositories)

    @cached_property
    def project_usages(self) -> dict[str, list[Project]]:
        """Map from project path to the projects that depend on it."""
        return self.project_graph.usages()

    @cached_property
    def repository_usages(self) -> dict[str, list[Repository]]:
        """Map from repository path to the repositories that depend on it."""
        return self.repository_graph.usages()

    @cached_property
    def latest_versions(self) -> dict[str, str]:
        """The highest declared version of every package, keyed by case-folded name."""
        return latest_known(package for project in self.projects for package in project.packages)

    @cached_property
    def _known_ids(self) -> frozenset[str]:
        ids = {project.name.casefold() for project in self.projects}
        ids.update(project.package_id.casefold() for project in self.projects if project.is_packable)  # type: ignore[union-attr]
        return frozenset(ids)

    def repository_of(self, project: Project) -> Repository:
        """Return the repository that contains ``project``."""
        return self._repository_by_project[project.path]

    def is_known(self, package_id: str | None) -> bool:
        """Return whether a package id is published (or named) by a project of this inventory."""
        return bool(package_id and package_id.strip()) and package_id.casefold() in self._known_ids  # type: ignore[union-attr]

    def format_id(self, package_id: str | None) -> str:
        """Format a package id annotation (`` [id]``), or an empty string for ids no known project owns."""
        return f" [{package_id}]" if self.is_known(package_id) else ""

    def find_project(self, name: str) -> Project | None:
        """Find a project by name, case-insensitively. Duplicate names resolve to the smallest path."""
        candidates = [project for project in self.projects if project.name.casefold() == name.casefold()]
        if not candidates:
            return None
        return min(candidates, key=lambda p: p.path)

    def duplicate_project_names(self) -> list[tuple[str, list[Project]]]:
        """Return every project name used by more than one project, with the projects using it."""
        groups: dict[str, list[Project]] = {}
        for project in self.projects:
            groups.setdefault(project.name.casefold(), []).append(project)
        return [(members[0].name, members) for members in groups.values() if len(members) > 1]

    def duplicate_package_ids(self) -> list[tuple[str, list[Project]]]:
        """Return every package id published by more than one project, with the publishing projects."""
        groups: dict[str, list[Project]] = {}
        for project in self.projects:
            if project.is_packable:
                groups.setdefault(project.package_id.casefold(), []).append(project)  # type: ignore[union-attr]
        return [(members[0].package_id, members) for members in groups.values() if len(members) > 1]  # type: ignore[misc]
