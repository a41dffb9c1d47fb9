from unittest import TestCase

from repo_depends.filters import InclusionPolicy, should_include
from repo_depends.models import PackageEdge, Project

PACKABLE = Project(path="/r/Acme.Core.csproj", name="Acme.Core", package_id="Acme.Core")
PLAIN = Project(path="/r/Acme.Tests.csproj", name="Acme.Tests")


class TestInclusionPolicy(TestCase):
    def test_default_includes_everything(self):
        policy = InclusionPolicy()
        self.assertTrue(policy.includes(PACKABLE))
        self.assertTrue(policy(PLAIN))

    def test_exclude_pattern_is_a_case_insensitive_substring(self):
        policy = InclusionPolicy("TESTS")
        self.assertFalse(policy.includes(PLAIN))
        self.assertTrue(policy.includes(PACKABLE))

    def test_blank_pattern_excludes_nothing(self):
        self.assertTrue(InclusionPolicy("   ").includes(PLAIN))

    def test_only_packable(self):
        policy = InclusionPolicy(only_packable=True)
        self.assertTrue(policy.includes(PACKABLE))
        self.assertFalse(policy.includes(PLAIN))
        self.assertFalse(policy.includes(Project(path="/r/X.csproj", name="X", package_id="  ")))

    def test_both_filters_must_pass(self):
        policy = InclusionPolicy("core", only_packable=True)
        self.assertFalse(policy.includes(PACKABLE))
        self.assertFalse(policy.includes(PLAIN))

    def test_package_edges(self):
        policy = InclusionPolicy("json", only_packable=True)
        self.assertFalse(policy.includes_package(PackageEdge(name="Newtonsoft.Json", version="13.0.1", package_id="Newtonsoft.Json")))
        self.assertFalse(policy.includes_package(PackageEdge(name="Serilog", version="3.0.0")))
        self.assertTrue(policy.includes_package(PackageEdge(name="Serilog", version="3.0.0", package_id="Serilog")))

    def test_should_include(self):
        self.assertTrue(should_include(PACKABLE, "tests", only_packable=True))
        self.assertFalse(should_include(PLAIN, None, only_packable=True))
