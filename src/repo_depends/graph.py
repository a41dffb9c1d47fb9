"""Project and repository dependency graphs built from the parsed inventory."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .graphs import EntityGraph
from .models import Project, Repository

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


def _owners_by_name(projects: Iterable[Project]) -> dict[str, Project]:
    """Map each case-folded project name to the project that owns it.

    When several projects share a name, the one with the lexicographically smallest path wins so that the
    choice does not depend on scan order.
    """
    owners: dict[str, list[Project]] = {}
    for project in projects:
        owners.setdefault(project.name.casefold(), []).append(project)
    chosen: dict[str, Project] = {}
    for name, candidates in owners.items():
        winner = min(candidates, key=lambda p: p.path)
        if len(candidates) > 1:
            logger.warning(
                "Project name %s is used by %d projects; resolving references to %s",
                candidates[0].name,
                len(candidates),
                winner.path,
            )
        chosen[name] = winner
    return chosen


class ProjectGraph(EntityGraph[Project]):
    """Project-to-project dependency graph."""

    entity_type = Project

    @classmethod
    def build(cls, projects: Iterable[Project]) -> ProjectGraph:
        """Build the graph from a flat collection of projects.

        A package edge whose name matches another project's name (case-insensitively) resolves to that
        project, whatever the edge's declared kind.
        """
        projects = list(projects)
        graph = cls()
        for project in projects:
            graph.add_entity(project)
        owners = _owners_by_name(projects)
        for project in projects:
            for package in project.packages:
                target = owners.get(package.name.casefold())
                if target is not None:
                    graph.add_dependency(project, target)
        return graph


class RepositoryGraph(EntityGraph[Repository]):
    """Repository-to-repository dependency graph. Only cross-repository edges are kept."""

    entity_type = Repository

    @classmethod
    def build(cls, repositories: Iterable[Repository]) -> RepositoryGraph:
        """Build the graph from repositories and the package edges of their projects.

        Each edge's repository is resolved from the edge's project path if it names a project file of another
        repository, otherwise from its package id when another repository has a project publishing that id.
        """
        repositories = list(repositories)
        graph = cls()
        repository_by_project_path: dict[str, Repository] = {}
        publishers: dict[str, list[tuple[Project, Repository]]] = {}
        for repo in repositories:
            graph.add_entity(repo)
            for project in repo.projects:
                repository_by_project_path[project.path.casefold()] = repo
                if project.is_packable:
                    publishers.setdefault(project.package_id.casefold(), []).append((project, repo))  # type: ignore[union-attr]

        for repo in repositories:
            for project in repo.projects:
                for package in project.packages:
                    target: Repository | None = None
                    if package.path and package.path.strip():
                        target = repository_by_project_path.get(package.path.casefold())
                    if target in (None, repo) and package.package_id and package.package_id.strip():
                        candidates = [
                            (publisher, publisher_repo)
                            for publisher, publisher_repo in publishers.get(package.package_id.casefold(), ())
                            if publisher.path != project.path and publisher_repo != repo
                        ]
                        if candidates:
                            target = min(candidates, key=lambda c: c[0].path)[1]
                    if target is not None and target != repo:
                        graph.add_dependency(repo, target)
        return graph


def build_project_graph(projects: Iterable[Project]) -> ProjectGraph:
    """Build the project dependency graph."""
    return ProjectGraph.build(projects)


def build_repository_graph(repositories: Iterable[Repository]) -> RepositoryGraph:
    """Build the repository dependency graph."""
    return RepositoryGraph.build(repositories)
