"""ASCII tree rendering of repositories, projects and resolved package dependencies."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from .graphs import sort_key
from .output import Style
from .render import Ordering, ReportRenderer, Shape, ViewDepth, repository_key

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .inventory import Inventory
    from .models import PackageEdge, Project, Repository
    from .nuget import LockFileGraph, PackageGraphResolver
    from .output import OutputSink
    from .render import RenderOptions

logger = logging.getLogger(__name__)

Entity = TypeVar("Entity", "Project", "Repository")

ROOT_MARKER = "."
BRANCH = "├── "
LAST_BRANCH = "└── "
PIPE = "│   "
SPACE = "    "
CIRCULAR_MARKER = " (circular)"


@dataclass
class TreeNode:
    """A labeled node of a rendered tree."""

    label: str
    style: Style
    children: list[TreeNode] = field(default_factory=list)


def draw(roots: Sequence[TreeNode], sink: OutputSink) -> None:
    """Write ``roots`` and their descendants beneath a ``.`` root marker.

    The last child of every node is drawn with ``└── `` and continues with blank padding; every other child
    is drawn with ``├── `` and continues with a vertical bar.
    """
    sink.write_line(ROOT_MARKER, Style.INFO)
    stack = [(node, "", i == len(roots) - 1) for i, node in reversed(list(enumerate(roots)))]
    while stack:
        node, prefix, is_last = stack.pop()
        sink.write_line(f"{prefix}{LAST_BRANCH if is_last else BRANCH}{node.label}", node.style)
        child_prefix = prefix + (SPACE if is_last else PIPE)
        count = len(node.children)
        stack.extend(
            (child, child_prefix, i == count - 1) for i, child in reversed(list(enumerate(node.children)))
        )


class TreeBuilder:
    """Turns an inventory into tree nodes for one view."""

    def __init__(
        self, inventory: Inventory, options: RenderOptions, resolver: PackageGraphResolver | None = None
    ) -> None:
        """Initialize a builder for ``inventory``."""
        self.inventory = inventory
        self.options = options
        self.resolver = resolver

    def build(self) -> list[TreeNode]:
        """Build the top-level nodes for the configured view."""
        view = self.options.view
        if view is ViewDepth.REPO_ONLY:
            return [self.repository(repo) for repo in self.inventory.repository_graph.roots()]
        if view is ViewDepth.PROJECT_ONLY:
            roots = [p for p in self.inventory.project_graph.roots() if self.options.policy.includes(p)]
            return [self.project(project) for project in roots]
        if view is ViewDepth.FULL:
            return [self.full_repository(repo) for repo in sorted(self.inventory.repositories, key=repository_key)]
        return [self.mixed_repository(repo) for repo in self.inventory.repository_graph.roots()]

    def _project_label(self, project: Project) -> str:
        return f"{project.name}{self.inventory.format_id(project.package_id)}"

    def repository(self, repo: Repository) -> TreeNode:
        """A repository and the repositories it depends on, transitively."""
        return self._expand(
            repo,
            lambda r: sorted(self.inventory.repository_graph.dependencies(r), key=repository_key),
            lambda r: r.display_name,
            Style.REPO_NAME,
        )

    def project(self, project: Project) -> TreeNode:
        """A project and the projects it depends on, transitively."""
        return self._expand(
            project,
            lambda p: sorted(self.inventory.project_graph.dependencies(p), key=sort_key),
            self._project_label,
            Style.PROJECT_NAME,
        )

    def mixed_repository(self, repo: Repository) -> TreeNode:
        """A repository, its projects (each above its same-repository dependencies) and its dependency repositories."""
        return self._expand(
            repo,
            lambda r: sorted(self.inventory.repository_graph.dependencies(r), key=repository_key),
            lambda r: r.display_name,
            Style.REPO_NAME,
            self._project_nodes,
        )

    def _project_nodes(self, repo: Repository) -> list[TreeNode]:
        own_paths = {p.path for p in repo.projects}
        nodes = []
        for project in sorted(filter(self.options.policy.includes, repo.projects), key=sort_key):
            internal = sorted(
                (dep for dep in self.inventory.project_graph.dependencies(project) if dep.path in own_paths),
                key=sort_key,
            )
            nodes.append(
                TreeNode(
                    self._project_label(project),
                    Style.PROJECT_NAME,
                    [TreeNode(self._project_label(dep), Style.PROJECT_NAME) for dep in internal],
                )
            )
        return nodes

    @staticmethod
    def _expand(
        root: Entity,
        dependencies: Callable[[Entity], list[Entity]],
        label: Callable[[Entity], str],
        style: Style,
        leading: Callable[[Entity], list[TreeNode]] | None = None,
    ) -> TreeNode:
        """Build the dependency tree below ``root`` with an explicit stack.

        An entity that is already one of its own ancestors is marked circular and not expanded. ``leading``
        supplies extra children placed before the dependencies of each expanded entity.
        """
        top: list[TreeNode] = []
        # each frame: (entity, its ancestors, list to append its node to)
        stack: list[tuple[Entity, frozenset[str], list[TreeNode]]] = [(root, frozenset(), top)]
        while stack:
            entity, ancestors, siblings = stack.pop()
            if entity.path in ancestors:
                siblings.append(TreeNode(label(entity) + CIRCULAR_MARKER, style))
                continue
            node = TreeNode(label(entity), style, leading(entity) if leading is not None else [])
            siblings.append(node)
            inner = ancestors | {entity.path}
            stack.extend((dep, inner, node.children) for dep in reversed(dependencies(entity)))
        return top[0]

    def full_repository(self, repo: Repository) -> TreeNode:
        """A repository with its projects, their packages and the packages' resolved dependencies."""
        children = []
        for project in sorted(filter(self.options.policy.includes, repo.projects), key=sort_key):
            lock_graph = self.resolver.lock_graph(project) if self.resolver is not None else None
            packages = sorted(project.packages, key=lambda p: p.name.casefold())
            children.append(
                TreeNode(
                    self._project_label(project),
                    Style.PROJECT_NAME,
                    [self.package(package, project, lock_graph) for package in packages],
                )
            )
        return TreeNode(repo.display_name, Style.REPO_NAME, children)

    def package(self, package: PackageEdge, project: Project, lock_graph: LockFileGraph | None) -> TreeNode:
        """A package edge of ``project`` and, for published packages, its transitive dependencies."""
        label = f"{package.name}{self.inventory.format_id(package.package_id)} ({package.version or 'Project'})"
        node = TreeNode(label, Style.PACKAGE_REFERENCE)
        if package.is_versioned and package.name.strip():
            node.children = self.package_dependencies(
                package.name, package.version.strip(), project.target_framework, lock_graph  # type: ignore[union-attr]
            )
        return node

    def package_dependencies(
        self,
        name: str,
        version: str,
        target_framework: str | None,
        lock_graph: LockFileGraph | None,
    ) -> list[TreeNode]:
        """Expand the resolved dependencies of a package, depth first.

        The package passed in sits at depth 1; nothing deeper than ``max_package_depth`` is shown. A
        ``name:version`` pair that was already expanded under the same top-level package is shown again but
        not expanded a second time.
        """
        if self.resolver is None:
            return []
        resolver = self.resolver
        max_depth = self.options.max_package_depth
        visited = {_visit_key(name, version)}
        top: list[TreeNode] = []
        # each frame: (package name, version, depth, list to append the children to)
        stack = [(name, version, 1, top)]
        while stack:
            current_name, current_version, depth, siblings = stack.pop()
            if depth >= max_depth:
                continue
            children = resolver.resolve_dependencies(current_name, current_version, target_framework, lock_graph)
            nodes = []
            for dep_name, dep_version in children:
                node = TreeNode(f"{dep_name} ({dep_version})", Style.PACKAGE_REFERENCE)
                nodes.append((node, dep_name, dep_version))
            siblings.extend(node for node, _, _ in nodes)
            for node, dep_name, dep_version in reversed(nodes):
                key = _visit_key(dep_name, dep_version)
                if key in visited:
                    continue
                visited.add(key)
                stack.append((dep_name, dep_version, depth + 1, node.children))
        return top


def _visit_key(name: str, version: str) -> str:
    return f"{name.casefold()}:{version}"


class TreeRenderer(ReportRenderer):
    """Repositories, projects and packages drawn as a tree."""

    name = "tree"
    aliases = ("t",)
    ordering = Ordering.BY_NAME
    shape = Shape.TREE

    def render(
        self,
        inventory: Inventory,
        options: RenderOptions,
        sink: OutputSink,
        *,
        resolver: PackageGraphResolver | None = None,
    ) -> None:
        """Write the tree for the configured view."""
        draw(TreeBuilder(inventory, options, resolver).build(), sink)
