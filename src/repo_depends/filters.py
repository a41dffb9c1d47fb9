"""Inclusion policy applied to report rows."""

from __future__ import annotations

from dataclasses import dataclass

from .models import PackageEdge, Project


@dataclass(frozen=True)
class InclusionPolicy:
    """Decide which projects and package edges appear in a report.

    The policy only filters what is printed; dependency and usage graphs are always built from the full
    inventory so that relationships to hidden projects stay accurate.
    """

    exclude_pattern: str | None = None
    only_packable: bool = False

    def _includes(self, name: str, package_id: str | None) -> bool:
        pattern = (self.exclude_pattern or "").strip()
        if pattern and pattern.casefold() in name.casefold():
            return False
        return not (self.only_packable and not (package_id or "").strip())

    def includes(self, project: Project) -> bool:
        """Return whether ``project`` should be printed."""
        return self._includes(project.name, project.package_id)

    def includes_package(self, package: PackageEdge) -> bool:
        """Return whether a package edge should be printed, using the same rules as for projects."""
        return self._includes(package.name, package.package_id)

    __call__ = includes


def should_include(project: Project, exclude_pattern: str | None = None, *, only_packable: bool = False) -> bool:
    """Return whether ``project`` passes the exclude pattern and packable-only filters."""
    return InclusionPolicy(exclude_pattern, only_packable).includes(project)
