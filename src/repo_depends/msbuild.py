"""Parsing of MSBuild project files (``*.csproj``)."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from xml.etree import ElementTree as ET  # noqa: N817

from .models import PackageEdge, PackageKind, Project

logger = logging.getLogger(__name__)

PROJECT_SUFFIX = ".csproj"

# any of these properties makes a project without an explicit IsPackable produce a package
NUGET_METADATA = frozenset(
    (
        "PackageId",
        "Version",
        "Authors",
        "Company",
        "Product",
        "Description",
        "PackageIconUrl",
        "PackageProjectUrl",
        "PackageReadmeFile",
    )
)


def normalize_path(path: str | os.PathLike[str]) -> str:
    """Absolute, normalized form of a path, used as the identity of projects and repositories."""
    return os.path.normpath(os.path.abspath(path))


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _elements(root: ET.Element, name: str) -> list[ET.Element]:
    return [el for el in root.iter() if isinstance(el.tag, str) and _local_name(el.tag) == name]


def _text(root: ET.Element, name: str) -> str | None:
    for el in _elements(root, name):
        if el.text and el.text.strip():
            return el.text.strip()
    return None


def _child_text(element: ET.Element, name: str) -> str | None:
    for child in element:
        if _local_name(child.tag) == name and child.text and child.text.strip():
            return child.text.strip()
    return None


def package_id(root: ET.Element, name: str) -> str | None:
    """Determine the package id a project publishes, or ``None`` if it is not packable.

    An explicit ``IsPackable`` of ``true`` or ``false`` decides. Otherwise the project is packable if it
    sets any NuGet metadata property. The id is ``PackageId`` if set, else the project name.
    """
    explicit = next(
        (el.text.strip().lower() for el in _elements(root, "IsPackable") if el.text is not None),
        None,
    )
    if explicit in ("true", "false"):
        packable = explicit == "true"
    else:
        packable = any(
            _local_name(prop.tag) in NUGET_METADATA
            for group in _elements(root, "PropertyGroup")
            for prop in group
        )
    if not packable:
        return None
    return _text(root, "PackageId") or name


def target_framework(root: ET.Element) -> str | None:
    """The project's target framework, or the first of its target frameworks."""
    single = _text(root, "TargetFramework")
    if single:
        return single
    several = _text(root, "TargetFrameworks")
    if several:
        return next((tfm.strip() for tfm in several.split(";") if tfm.strip()), None)
    return None


class ProjectParser:
    """Parses project files, remembering the package id of every file it has read."""

    def __init__(self) -> None:
        """Initialize a parser with an empty memo."""
        self._package_ids: dict[str, str | None] = {}

    def package_id_of(self, path: str) -> str | None:
        """The package id published by the project file at ``path``; ``None`` if it is missing or unreadable."""
        if path not in self._package_ids:
            result = None
            if os.path.isfile(path):
                try:
                    result = package_id(ET.parse(path).getroot(), Path(path).stem)  # noqa: S314
                except (OSError, ET.ParseError) as e:
                    logger.debug("Could not read referenced project %s: %s", path, e)
            self._package_ids[path] = result
        return self._package_ids[path]

    def parse(self, path: str | os.PathLike[str]) -> Project:
        """Parse a project file.

        Raises:
            OSError: if the file cannot be read
            xml.etree.ElementTree.ParseError: if the file is not well-formed XML

        """
        path = normalize_path(path)
        root = ET.parse(path).getroot()  # noqa: S314
        name = Path(path).stem
        project_id = package_id(root, name)
        self._package_ids[path] = project_id

        references: list[PackageEdge] = []
        for reference in _elements(root, "ProjectReference"):
            include = (reference.get("Include") or "").strip()
            if not include:
                continue
            target = normalize_path(os.path.join(os.path.dirname(path), include.replace("\\", os.sep)))
            references.append(
                PackageEdge(
                    name=Path(target).stem,
                    kind=PackageKind.PROJECT_LINK,
                    path=target,
                    package_id=self.package_id_of(target),
                )
            )
        for reference in _elements(root, "PackageReference"):
            include = (reference.get("Include") or "").strip()
            if not include:
                continue
            version = reference.get("Version") or _child_text(reference, "Version") or ""
            references.append(
                PackageEdge(
                    name=include,
                    kind=PackageKind.REFERENCE,
                    version=version.strip() or None,
                    package_id=include,
                )
            )

        return Project(
            path=path,
            name=name,
            target_framework=target_framework(root),
            package_id=project_id,
            packages=tuple(references),
        )


def parse_project(path: str | os.PathLike[str], parser: ProjectParser | None = None) -> Project:
    """Parse the project file at ``path``."""
    return (parser if parser is not None else ProjectParser()).parse(path)
