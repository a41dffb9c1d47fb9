"""Discovery of git repositories and the projects inside them."""

from __future__ import annotations

import logging
import os
from collections import deque
from pathlib import Path, PurePath
from xml.etree import ElementTree as ET  # noqa: N817

from tqdm import tqdm

from .models import Repository
from .msbuild import PROJECT_SUFFIX, ProjectParser, normalize_path

logger = logging.getLogger(__name__)

GIT_DIR = ".git"


def is_repository(directory: str | os.PathLike[str]) -> bool:
    """Whether ``directory`` is the root of a git repository (or of a worktree or submodule)."""
    return os.path.exists(os.path.join(directory, GIT_DIR))


def _subdirectories(directory: str) -> list[str]:
    with os.scandir(directory) as entries:
        return sorted(
            entry.path for entry in entries if entry.is_dir(follow_symlinks=False) and entry.name != GIT_DIR
        )


def find_repository_roots(root: str | os.PathLike[str]) -> list[str]:
    """Find every repository at or below ``root``, breadth first.

    Nested repositories are found too. Directories that cannot be read are logged and skipped.
    """
    found = []
    pending = deque([normalize_path(root)])
    while pending:
        current = pending.popleft()
        if is_repository(current):
            found.append(current)
        try:
            pending.extend(_subdirectories(current))
        except OSError as e:
            logger.warning("Skipping unreadable directory %s: %s", current, e)
    return found


def find_project_files(repository: str) -> list[str]:
    """Find the project files of a repository, leaving out those that belong to a nested repository."""

    def on_error(e: OSError) -> None:
        logger.warning("Skipping unreadable directory %s: %s", e.filename, e)

    found = []
    for directory, subdirs, files in os.walk(repository, onerror=on_error):
        subdirs[:] = sorted(
            d for d in subdirs if d != GIT_DIR and not is_repository(os.path.join(directory, d))
        )
        found.extend(
            os.path.join(directory, f) for f in sorted(files) if f.lower().endswith(PROJECT_SUFFIX)
        )
    return found


def repository_name(root: str, repository: str) -> str:
    """Name of a repository: its path relative to the scan root, with ``/`` separators."""
    return PurePath(os.path.relpath(repository, root)).as_posix()


def discover_repositories(root: str | os.PathLike[str], parser: ProjectParser | None = None) -> list[Repository]:
    """Find all repositories below ``root`` and parse their projects.

    Project files that cannot be parsed are logged and left out.

    Raises:
        NotADirectoryError: if ``root`` is not a directory

    """
    if not Path(root).is_dir():
        msg = f"Path {root} does not exist"
        raise NotADirectoryError(msg)
    root = normalize_path(root)
    parser = parser if parser is not None else ProjectParser()
    repositories = []
    for repo_path in tqdm(find_repository_roots(root), desc="Scanning repositories", leave=False, unit=" repos"):
        projects = []
        for project_path in find_project_files(repo_path):
            try:
                projects.append(parser.parse(project_path))
            except (OSError, ET.ParseError) as e:
                logger.warning("Skipping unreadable project %s: %s", project_path, e)
        repositories.append(Repository(path=repo_path, name=repository_name(root, repo_path), projects=projects))
    logger.info(
        "Found %d repositories with %d projects", len(repositories), sum(len(r.projects) for r in repositories)
    )
    return repositories
