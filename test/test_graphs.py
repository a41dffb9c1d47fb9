import logging
from unittest import TestCase

import networkx as nx
import pytest

from repo_depends.graph import ProjectGraph
from repo_depends.graphs import EntityGraph, assign_levels, dependency_closure, find_cycles, invert
from repo_depends.models import Project, Repository


def digraph(*edges: tuple[str, str], nodes: tuple[str, ...] = ()) -> nx.DiGraph:
    graph = nx.DiGraph()
    graph.add_nodes_from(nodes)
    graph.add_edges_from(edges)
    return graph


class TestAssignLevels(TestCase):
    def test_chain(self):
        levels = assign_levels(digraph(("a", "b"), ("b", "c")))
        self.assertEqual({"a": 2, "b": 1, "c": 0}, levels.levels)
        self.assertFalse(levels.has_cycle)

    def test_level_is_one_more_than_deepest_dependency(self):
        levels = assign_levels(digraph(("a", "b"), ("a", "c"), ("c", "d")))
        self.assertEqual(0, levels["b"])
        self.assertEqual(0, levels["d"])
        self.assertEqual(1, levels["c"])
        self.assertEqual(2, levels["a"])

    def test_diamond(self):
        levels = assign_levels(digraph(("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")))
        self.assertEqual({"a": 2, "b": 1, "c": 1, "d": 0}, levels.levels)

    def test_isolated_nodes_are_level_zero(self):
        levels = assign_levels(digraph(nodes=("x", "y")))
        self.assertEqual({"x": 0, "y": 0}, levels.levels)

    def test_deterministic(self):
        edges = [("a", "b"), ("b", "c"), ("d", "c"), ("e", "a")]
        forward = assign_levels(digraph(*edges))
        backward = assign_levels(digraph(*reversed(edges)))
        self.assertEqual(forward.levels, backward.levels)

    def test_scope_only_levels_dependency_closure(self):
        levels = assign_levels(digraph(("a", "b"), ("c", "d")), scope="a")
        self.assertEqual({"a": 1, "b": 0}, levels.levels)
        self.assertNotIn("c", levels)

    def test_unknown_scope(self):
        with self.assertRaises(KeyError):
            assign_levels(digraph(("a", "b")), scope="z")

    def test_cycle_members_get_no_level(self):
        levels = assign_levels(digraph(("a", "b"), ("b", "a"), nodes=("c",)))
        self.assertTrue(levels.has_cycle)
        self.assertNotIn("a", levels)
        self.assertNotIn("b", levels)
        self.assertEqual(0, levels["c"])

    def test_dependents_of_a_cycle_get_no_level(self):
        levels = assign_levels(digraph(("d", "a"), ("a", "b"), ("b", "a")))
        self.assertTrue(levels.has_cycle)
        self.assertEqual(0, len(levels))
        self.assertIsNone(levels.get("d"))


def test_cycle_logs_one_warning(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="repo_depends.graphs"):
        assign_levels(digraph(("a", "b"), ("b", "a")))
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "Circular dependency" in warnings[0].getMessage()


class TestFindCycles(TestCase):
    def test_two_node_cycle(self):
        self.assertEqual([["a", "b", "a"]], find_cycles(digraph(("a", "b"), ("b", "a"))))

    def test_acyclic(self):
        self.assertEqual([], find_cycles(digraph(("a", "b"), ("b", "c"), ("a", "c"))))

    def test_chain_starts_at_repeated_node(self):
        cycles = find_cycles(digraph(("x", "a"), ("a", "b"), ("b", "c"), ("c", "a")))
        self.assertEqual([["a", "b", "c", "a"]], cycles)

    def test_start_order(self):
        graph = digraph(("a", "b"), ("b", "a"))
        self.assertEqual([["b", "a", "b"]], find_cycles(graph, order=["b", "a"]))

    def test_long_chain_does_not_recurse(self):
        graph = digraph(*((str(i), str(i + 1)) for i in range(5000)))
        self.assertEqual([], find_cycles(graph))
        self.assertEqual(5001, len(dependency_closure(graph, "0")))


class TestEntityGraph(TestCase):
    def test_subclass_requires_entity_type(self):
        with self.assertRaises(TypeError):

            class Untyped(EntityGraph):
                pass

    def test_rejects_other_entities(self):
        with self.assertRaises(TypeError):
            ProjectGraph().add_entity(Repository(path="/r", name="r"))

    def test_self_edges_are_ignored(self):
        graph = ProjectGraph()
        project = Project(path="/p/A.csproj", name="A")
        self.assertFalse(graph.add_dependency(project, project))
        self.assertEqual(0, graph.number_of_edges())

    def test_usages_invert_dependencies(self):
        a = Project(path="/p/A.csproj", name="A")
        b = Project(path="/p/B.csproj", name="B")
        c = Project(path="/p/C.csproj", name="C")
        graph = ProjectGraph()
        for project in (a, b, c):
            graph.add_entity(project)
        graph.add_dependency(a, c)
        graph.add_dependency(b, c)
        usages = invert(graph)
        self.assertEqual([a, b], usages[c.path])
        self.assertNotIn(a.path, usages)
        for key in graph:
            for dep in graph.dependencies(graph.entity(key)):
                self.assertIn(graph.entity(key), usages[dep.path])

    def test_roots_sorted_by_name(self):
        graph = ProjectGraph()
        zed = Project(path="/p/Zed.csproj", name="Zed")
        alpha = Project(path="/p/alpha.csproj", name="alpha")
        used = Project(path="/p/Used.csproj", name="Used")
        for project in (zed, alpha, used):
            graph.add_entity(project)
        graph.add_dependency(zed, used)
        self.assertEqual([alpha, zed], graph.roots())
