"""Core data models: repositories, projects and the package edges between them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Any


class PackageKind(str, Enum):
    """How a project declares one of its dependencies."""

    REFERENCE = "reference"
    PROJECT_LINK = "project"


def _has_text(value: str | None) -> bool:
    return value is not None and value.strip() != ""


@dataclass(frozen=True, eq=False)
class PackageEdge:
    """A declared dependency of a project.

    A ``REFERENCE`` edge points at a published package and carries a concrete version. A ``PROJECT_LINK``
    edge points at another project file (``path``) and has no version, meaning "built from source".
    """

    name: str
    kind: PackageKind = PackageKind.REFERENCE
    version: str | None = None
    path: str | None = None
    package_id: str | None = None

    @property
    def is_versioned(self) -> bool:
        """Whether this edge refers to a published artifact with a version."""
        return _has_text(self.version)

    def to_obj(self) -> dict[str, Any]:
        """Convert the edge to a dictionary representation."""
        return {
            "name": self.name,
            "kind": self.kind.value,
            "version": self.version,
            "path": self.path,
            "package_id": self.package_id,
        }

    def __eq__(self, other: object) -> bool:
        """Check equality with another edge."""
        return isinstance(other, PackageEdge) and self.to_obj() == other.to_obj()

    def __hash__(self) -> int:
        """Compute hash for the edge."""
        return hash((self.name, self.kind, self.version, self.path, self.package_id))

    def __str__(self) -> str:
        """Return a short description of the edge."""
        return f"{self.name}@{self.version or 'project'}"


@dataclass(frozen=True, eq=False)
class Project:
    """A buildable unit. Identity is the project file path; names may collide across repositories."""

    path: str
    name: str
    target_framework: str | None = None
    package_id: str | None = None
    packages: tuple[PackageEdge, ...] = field(default=())

    def __post_init__(self) -> None:
        """Freeze the package sequence."""
        object.__setattr__(self, "packages", tuple(self.packages))

    @property
    def is_packable(self) -> bool:
        """Whether this project produces a publishable package."""
        return _has_text(self.package_id)

    def to_obj(self) -> dict[str, Any]:
        """Convert the project to a dictionary representation."""
        return {
            "path": self.path,
            "name": self.name,
            "target_framework": self.target_framework,
            "package_id": self.package_id,
            "packages": [package.to_obj() for package in self.packages],
        }

    def __eq__(self, other: object) -> bool:
        """Projects are equal when they live at the same path."""
        return isinstance(other, Project) and self.path == other.path

    def __hash__(self) -> int:
        """Compute hash for the project."""
        return hash(("project", self.path))

    def __str__(self) -> str:
        """Return the project name."""
        return self.name


@dataclass(frozen=True, eq=False)
class Repository:
    """A version-controlled source tree and the projects found in it. Identity is the path."""

    path: str
    name: str
    projects: tuple[Project, ...] = field(default=())

    def __post_init__(self) -> None:
        """Freeze the project sequence."""
        object.__setattr__(self, "projects", tuple(self.projects))

    @property
    def display_name(self) -> str:
        """Name to print, falling back to the directory name for the scan root."""
        if _has_text(self.name) and self.name != ".":
            return self.name
        dir_name = PurePath(self.path.rstrip("/\\")).name
        return dir_name or self.name

    def to_obj(self) -> dict[str, Any]:
        """Convert the repository to a dictionary representation."""
        return {
            "path": self.path,
            "name": self.name,
            "projects": [project.to_obj() for project in self.projects],
        }

    def __eq__(self, other: object) -> bool:
        """Repositories are equal when they live at the same path."""
        return isinstance(other, Repository) and self.path == other.path

    def __hash__(self) -> int:
        """Compute hash for the repository."""
        return hash(("repository", self.path))

    def __str__(self) -> str:
        """Return the display name."""
        return self.display_name
