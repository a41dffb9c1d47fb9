"""Tests for building project and repository graphs."""

from __future__ import annotations

import logging

import pytest

from repo_depends.graph import build_project_graph, build_repository_graph
from repo_depends.models import PackageEdge, PackageKind, Project, Repository


def reference(name: str, version: str = "1.0.0") -> PackageEdge:
    return PackageEdge(name=name, version=version, package_id=name)


def link(target: Project) -> PackageEdge:
    return PackageEdge(
        name=target.name, kind=PackageKind.PROJECT_LINK, path=target.path, package_id=target.package_id
    )


class TestProjectGraph:
    def test_edges_join_on_name_case_insensitively(self) -> None:
        core = Project(path="/r/a/Core.csproj", name="Core", package_id="Core")
        app = Project(path="/r/b/App.csproj", name="App", packages=[reference("core")])
        graph = build_project_graph([core, app])
        assert graph.dependencies(app) == [core]
        assert graph.dependencies(core) == []

    def test_project_links_are_joined_by_name_too(self) -> None:
        core = Project(path="/r/a/Core.csproj", name="Core")
        app = Project(path="/r/a/App.csproj", name="App", packages=[link(core)])
        assert build_project_graph([app, core]).dependencies(app) == [core]

    def test_external_packages_add_no_edges(self) -> None:
        app = Project(path="/r/a/App.csproj", name="App", packages=[reference("Newtonsoft.Json")])
        graph = build_project_graph([app])
        assert graph.number_of_nodes() == 1
        assert graph.number_of_edges() == 0

    def test_self_reference_is_excluded(self) -> None:
        app = Project(path="/r/a/App.csproj", name="App", packages=[reference("App")])
        assert build_project_graph([app]).number_of_edges() == 0

    def test_duplicate_names_resolve_to_smallest_path(self, caplog: pytest.LogCaptureFixture) -> None:
        first = Project(path="/r/a/Foo.csproj", name="Foo")
        second = Project(path="/r/b/Foo.csproj", name="Foo")
        app = Project(path="/r/c/App.csproj", name="App", packages=[reference("Foo")])
        with caplog.at_level(logging.WARNING, logger="repo_depends.graph"):
            forward = build_project_graph([second, first, app])
        backward = build_project_graph([app, first, second])
        assert forward.dependencies(app) == [first]
        assert backward.dependencies(app) == [first]
        assert any("Foo" in record.getMessage() for record in caplog.records)

    def test_edge_set_does_not_depend_on_input_order(self) -> None:
        a = Project(path="/r/A.csproj", name="A", packages=[reference("B"), reference("C")])
        b = Project(path="/r/B.csproj", name="B", packages=[reference("C")])
        c = Project(path="/r/C.csproj", name="C")
        assert set(build_project_graph([a, b, c]).edges) == set(build_project_graph([c, b, a]).edges)


class TestRepositoryGraph:
    def test_path_resolution(self) -> None:
        core = Project(path="/r/a/Core.csproj", name="Core")
        repo_a = Repository(path="/r/a", name="a", projects=[core])
        app = Project(path="/r/b/App.csproj", name="App", packages=[link(core)])
        repo_b = Repository(path="/r/b", name="b", projects=[app])
        graph = build_repository_graph([repo_a, repo_b])
        assert graph.dependencies(repo_b) == [repo_a]
        assert graph.dependencies(repo_a) == []

    def test_path_lookup_ignores_case(self) -> None:
        core = Project(path="/r/a/Core.csproj", name="Core")
        repo_a = Repository(path="/r/a", name="a", projects=[core])
        edge = PackageEdge(name="Core", kind=PackageKind.PROJECT_LINK, path="/R/A/core.csproj")
        repo_b = Repository(path="/r/b", name="b", projects=[Project(path="/r/b/App.csproj", name="App", packages=[edge])])
        assert build_repository_graph([repo_a, repo_b]).dependencies(repo_b) == [repo_a]

    def test_package_id_resolution(self) -> None:
        core = Project(path="/r/a/Core.csproj", name="Core", package_id="Acme.Core")
        repo_a = Repository(path="/r/a", name="a", projects=[core])
        app = Project(path="/r/b/App.csproj", name="App", packages=[reference("acme.core", "2.0.0")])
        repo_b = Repository(path="/r/b", name="b", projects=[app])
        graph = build_repository_graph([repo_a, repo_b])
        assert graph.dependencies(repo_b) == [repo_a]

    def test_intra_repository_edges_are_discarded(self) -> None:
        core = Project(path="/r/a/Core.csproj", name="Core", package_id="Core")
        app = Project(path="/r/a/App.csproj", name="App", packages=[link(core), reference("Core")])
        repo = Repository(path="/r/a", name="a", projects=[core, app])
        graph = build_repository_graph([repo])
        assert graph.number_of_nodes() == 1
        assert graph.number_of_edges() == 0

    def test_package_id_published_in_same_and_other_repository(self) -> None:
        local = Project(path="/r/a/Core.csproj", name="Core", package_id="Core")
        app = Project(path="/r/a/App.csproj", name="App", packages=[reference("Core")])
        remote = Project(path="/r/b/Core.csproj", name="Core", package_id="Core")
        repo_a = Repository(path="/r/a", name="a", projects=[local, app])
        repo_b = Repository(path="/r/b", name="b", projects=[remote])
        assert build_repository_graph([repo_a, repo_b]).dependencies(repo_a) == [repo_b]

    def test_same_repository_path_falls_back_to_package_id(self) -> None:
        local = Project(path="/r/a/Core.csproj", name="Core", package_id="Core")
        remote = Project(path="/r/b/Core.csproj", name="Core", package_id="Core")
        app = Project(path="/r/a/App.csproj", name="App", packages=[link(local)])
        repo_a = Repository(path="/r/a", name="a", projects=[local, app])
        repo_b = Repository(path="/r/b", name="b", projects=[remote])
        assert build_repository_graph([repo_a, repo_b]).dependencies(repo_a) == [repo_b]

    def test_isolated_repositories_are_nodes(self) -> None:
        repos = [Repository(path=f"/r/{name}", name=name) for name in "xyz"]
        graph = build_repository_graph(repos)
        assert graph.number_of_nodes() == 3
        assert graph.roots() == repos
