"""Tests for the tree report."""

from __future__ import annotations

import pytest

from repo_depends.inventory import Inventory
from repo_depends.models import PackageEdge, PackageKind, Project, Repository
from repo_depends.output import LineBuffer
from repo_depends.render import RenderOptions, ViewDepth, renderer_by_name
from repo_depends.tree import TreeNode, draw


class FakeResolver:
    """Resolves package dependencies from a fixed table and records every lookup."""

    def __init__(self, table: dict[tuple[str, str], list[tuple[str, str]]]) -> None:
        self.table = table
        self.calls: list[tuple[str, str]] = []

    def lock_graph(self, project: Project) -> None:
        return None

    def resolve_dependencies(self, name, version, target_framework=None, lock_graph=None):
        self.calls.append((name, version))
        return list(self.table.get((name, version), []))


def reference(name: str, version: str) -> PackageEdge:
    return PackageEdge(name=name, version=version, package_id=name)


def core_and_app() -> Inventory:
    core = Project(path="/r/a/Core.csproj", name="Core", package_id="Core")
    app = Project(path="/r/b/App.csproj", name="App", packages=[reference("Core", "1.0.0")])
    return Inventory(
        [Repository(path="/r/a", name="a", projects=[core]), Repository(path="/r/b", name="b", projects=[app])]
    )


def render_tree(inventory: Inventory, resolver: FakeResolver | None = None, **options: object) -> list[str]:
    sink = LineBuffer()
    renderer_by_name("tree").render(inventory, RenderOptions(**options), sink, resolver=resolver)  # type: ignore[arg-type]
    return sink.texts()


class TestDraw:
    def test_connectors(self) -> None:
        roots = [
            TreeNode("one", None, [TreeNode("child", None), TreeNode("last child", None)]),  # type: ignore[arg-type]
            TreeNode("two", None, [TreeNode("only", None)]),  # type: ignore[arg-type]
        ]
        sink = LineBuffer()
        draw(roots, sink)
        assert sink.texts() == [
            ".",
            "├── one",
            "│   ├── child",
            "│   └── last child",
            "└── two",
            "    └── only",
        ]

    def test_no_roots(self) -> None:
        sink = LineBuffer()
        draw([], sink)
        assert sink.texts() == ["."]


class TestTreeRenderer:
    def test_repo_only_without_dependencies(self) -> None:
        inventory = Inventory([Repository(path=f"/r/{name}", name=name) for name in ("c", "a", "b")])
        lines = render_tree(inventory, view=ViewDepth.REPO_ONLY)
        assert lines == [".", "├── a", "├── b", "└── c"]
        assert len(lines) == len(inventory.repositories) + 1

    def test_repo_only(self) -> None:
        assert render_tree(core_and_app(), view=ViewDepth.REPO_ONLY) == [".", "└── b", "    └── a"]

    def test_project_only(self) -> None:
        assert render_tree(core_and_app(), view=ViewDepth.PROJECT_ONLY) == [".", "└── App", "    └── Core [Core]"]

    def test_default_view_mixes_repositories_and_projects(self) -> None:
        assert render_tree(core_and_app()) == [
            ".",
            "└── b",
            "    ├── App",
            "    └── a",
            "        └── Core [Core]",
        ]

    def test_cycle_is_marked_and_not_expanded(self) -> None:
        pa = Project(path="/r/a/PA.csproj", name="PA", package_id="PA", packages=[reference("PB", "1.0.0")])
        pb = Project(path="/r/b/PB.csproj", name="PB", package_id="PB", packages=[reference("PA", "1.0.0")])
        pc = Project(path="/r/c/PC.csproj", name="PC", packages=[reference("PA", "1.0.0")])
        inventory = Inventory(
            [
                Repository(path="/r/a", name="a", projects=[pa]),
                Repository(path="/r/b", name="b", projects=[pb]),
                Repository(path="/r/c", name="c", projects=[pc]),
            ]
        )
        assert render_tree(inventory, view=ViewDepth.REPO_ONLY) == [
            ".",
            "└── c",
            "    └── a",
            "        └── b",
            "            └── a (circular)",
        ]

    def test_long_dependency_chain(self) -> None:
        count = 1500
        projects = [
            Project(
                path=f"/r/a/P{i}.csproj",
                name=f"P{i}",
                package_id=f"P{i}",
                packages=[reference(f"P{i + 1}", "1.0.0")] if i + 1 < count else [],
            )
            for i in range(count)
        ]
        inventory = Inventory([Repository(path="/r/a", name="a", projects=projects)])
        lines = render_tree(inventory, view=ViewDepth.PROJECT_ONLY)
        assert len(lines) == count + 1
        assert lines[-1].endswith("└── P1499 [P1499]")

    def test_full_view_expands_packages(self) -> None:
        util = Project(path="/r/a/Util.csproj", name="Util")
        lib = Project(
            path="/r/a/Lib.csproj",
            name="Lib",
            packages=[
                PackageEdge(name="Util", kind=PackageKind.PROJECT_LINK, path=util.path),
                reference("Newtonsoft.Json", "13.0.1"),
            ],
        )
        resolver = FakeResolver(
            {
                ("Newtonsoft.Json", "13.0.1"): [("System.Memory", "4.5.0")],
                ("System.Memory", "4.5.0"): [("System.Buffers", "4.5.1")],
            }
        )
        inventory = Inventory([Repository(path="/r/a", name="a", projects=[lib, util])])
        assert render_tree(inventory, resolver, view=ViewDepth.FULL) == [
            ".",
            "└── a",
            "    ├── Lib",
            "    │   ├── Newtonsoft.Json (13.0.1)",
            "    │   │   └── System.Memory (4.5.0)",
            "    │   │       └── System.Buffers (4.5.1)",
            "    │   └── Util (Project)",
            "    └── Util",
        ]
        assert ("Util", "") not in resolver.calls

    def test_package_depth_limit(self) -> None:
        lib = Project(path="/r/a/Lib.csproj", name="Lib", packages=[reference("A", "1")])
        chain = {(name, "1"): [(chr(ord(name) + 1), "1")] for name in "ABCDEFGHIJKLMNOP"}
        inventory = Inventory([Repository(path="/r/a", name="a", projects=[lib])])
        lines = render_tree(inventory, FakeResolver(chain), view=ViewDepth.FULL, max_package_depth=3)
        assert [line.strip(" │├└─") for line in lines[3:]] == ["A (1)", "B (1)", "C (1)"]

    def test_repeated_package_is_not_expanded_twice(self) -> None:
        lib = Project(path="/r/a/Lib.csproj", name="Lib", packages=[reference("A", "1")])
        resolver = FakeResolver(
            {
                ("A", "1"): [("X", "1"), ("Y", "1")],
                ("X", "1"): [("Y", "1")],
                ("Y", "1"): [("Z", "1")],
            }
        )
        inventory = Inventory([Repository(path="/r/a", name="a", projects=[lib])])
        lines = render_tree(inventory, resolver, view=ViewDepth.FULL)
        labels = [line.strip(" │├└─") for line in lines]
        assert labels.count("Y (1)") == 2
        assert labels.count("Z (1)") == 1
        assert resolver.calls.count(("Y", "1")) == 1

    def test_full_view_without_resolver(self) -> None:
        assert render_tree(core_and_app(), view=ViewDepth.FULL) == [
            ".",
            "├── a",
            "│   └── Core [Core]",
            "└── b",
            "    └── App",
            "        └── Core [Core] (1.0.0)",
        ]


class TestRepeatability:
    @pytest.mark.parametrize("renderer_name", ["list", "dependency", "tree"])
    @pytest.mark.parametrize("view", list(ViewDepth))
    def test_same_inventory_renders_identically(self, renderer_name: str, view: ViewDepth) -> None:
        inventory = core_and_app()
        resolver = FakeResolver({("Core", "1.0.0"): [("Newtonsoft.Json", "13.0.1")]})
        options = RenderOptions(view=view, show_repo_deps=True, show_project_usages=True)
        outputs = []
        for _ in range(2):
            sink = LineBuffer()
            renderer_by_name(renderer_name).render(inventory, options, sink, resolver=resolver)  # type: ignore[arg-type]
            outputs.append(sink.texts())
        assert outputs[0] == outputs[1]
        assert outputs[0]
