"""Resolution of NuGet package dependencies from restore lock files and package manifests."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import zipfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING
from xml.etree import ElementTree as ET  # noqa: N817

import requests
from tqdm import tqdm

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from .models import Project

logger = logging.getLogger(__name__)

Dependency = tuple[str, str]
"""A ``(package id, version)`` pair."""

LOCK_FILE = Path("obj") / "project.assets.json"

# best effort; a higher rank is a newer framework
_FRAMEWORK_RANKS: tuple[tuple[str, int], ...] = (
    ("net10.0", 10000),
    ("net9.0", 9000),
    ("net8.0", 8000),
    ("net7.0", 7000),
    ("net6.0", 6000),
    ("net5.0", 5000),
    ("netcoreapp3.1", 3100),
    ("netstandard2.1", 2100),
    ("netstandard2.0", 2000),
    ("netstandard1.", 1100),
    ("net4", 400),
)


def normalize_version(range_or_exact: str) -> str:
    """Reduce a NuGet version range to its lower bound.

    ``[1.2.3]`` and ``(>=1.2.3)`` become ``1.2.3``; ``[1.0, 2.0)`` becomes ``1.0``. Plain versions are
    returned unchanged.
    """
    if not range_or_exact or not range_or_exact.strip():
        return range_or_exact
    text = range_or_exact.strip()
    if text.startswith("[") and text.endswith("]"):
        return text.strip("[]")
    if text.startswith(("(", "[")):
        text = text.strip("([)]")
    if text.startswith(">="):
        return text[2:].strip()
    if "," in text:
        return text.split(",")[0].strip()
    return text


def normalize_framework(target_framework: str) -> str:
    """Convert a manifest framework name such as ``.NETStandard2.0`` or ``.NETFramework4.6.2`` to its short moniker."""
    tfm = target_framework.strip().lower()
    if tfm.startswith(".netframework"):
        return "net" + tfm[len(".netframework") :].replace(".", "")
    if tfm.startswith(".net"):
        return tfm[1:]
    return tfm


def rank_framework(target_framework: str | None) -> int:
    """Rank a target framework moniker; unknown frameworks rank 1 and a missing one ranks 0."""
    if not target_framework or not target_framework.strip():
        return 0
    tfm = normalize_framework(target_framework)
    for prefix, rank in _FRAMEWORK_RANKS:
        if tfm.startswith(prefix):
            return rank
    return 1


def framework_major(target_framework: str) -> int:
    """Extract the major version of a framework moniker: ``net9.0`` is 9, ``net48`` is 48, ``netcoreapp3.1`` is 3."""
    tfm = target_framework.strip().lower()
    for prefix in ("netcoreapp", "netstandard", "net"):
        if tfm.startswith(prefix):
            rest = tfm[len(prefix) :].split(".")[0]
            return int(rest) if rest.isdigit() else 0
    return 0


def is_group_compatible(group_framework: str | None, requested_framework: str | None) -> bool:
    """Return whether the dependency group for ``group_framework`` applies to a ``requested_framework`` consumer.

    Ungrouped dependencies apply to every framework. A ``net*`` consumer can use any ``netstandard*`` group
    and any ``net*`` group with a major version no newer than its own.
    """
    if not group_framework or not group_framework.strip():
        return True
    if not requested_framework or not requested_framework.strip():
        return True
    group = normalize_framework(group_framework)
    requested = normalize_framework(requested_framework)
    if group == requested:
        return True
    if requested.startswith("net") and group.startswith("netstandard"):
        return True
    if requested.startswith("net") and group.startswith("net"):
        return framework_major(group) <= framework_major(requested)
    return False


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in element if _local_name(child.tag) == name]


def parse_nuspec(data: bytes | str, package_id: str, target_framework: str | None = None) -> list[Dependency]:
    """Extract the dependencies a package manifest declares for ``target_framework``.

    Args:
        data: the ``.nuspec`` XML document
        package_id: id of the package the manifest describes; references to itself are dropped
        target_framework: the consuming project's framework, if known

    Returns:
        the distinct ``(id, version)`` dependencies, with version ranges reduced to their lower bound

    Raises:
        xml.etree.ElementTree.ParseError: if the manifest is not well-formed XML

    """
    root = ET.fromstring(data)  # noqa: S314
    dependencies = next((el for el in root.iter() if _local_name(el.tag) == "dependencies"), None)
    if dependencies is None:
        return []

    groups = _children(dependencies, "group")
    if not groups:
        chosen = _children(dependencies, "dependency")
    elif not target_framework or not target_framework.strip():
        ungrouped = [
            dep
            for group in groups
            if not (group.get("targetFramework") or "").strip()
            for dep in _children(group, "dependency")
        ]
        chosen = ungrouped or _children(groups[0], "dependency")
    else:
        compatible = [g for g in groups if is_group_compatible(g.get("targetFramework"), target_framework)]
        compatible.sort(key=lambda g: rank_framework(g.get("targetFramework")), reverse=True)
        chosen = _children(compatible[0], "dependency") if compatible else []

    result: list[Dependency] = []
    for element in chosen:
        dep_id = element.get("id")
        if not dep_id or not dep_id.strip():
            continue
        dependency = (dep_id, normalize_version(element.get("version") or ""))
        if dependency not in result and dep_id.casefold() != package_id.casefold():
            result.append(dependency)
    return result


@dataclass
class LockFileGraph:
    """Resolved package dependencies of one project, read from its restore lock file."""

    packages: dict[str, dict[str, list[Dependency]]] = field(default_factory=dict)

    @classmethod
    def from_obj(cls, obj: dict, target_framework: str | None = None) -> LockFileGraph:
        """Build the graph from a parsed ``project.assets.json`` document.

        The target whose framework matches ``target_framework`` is used when there is one, otherwise the
        first target.
        """
        targets = obj.get("targets") if isinstance(obj, dict) else None
        if not isinstance(targets, dict) or not targets:
            return cls()
        target = next(iter(targets.values()))
        if target_framework:
            for name, candidate in targets.items():
                if name.split("/")[0].strip().lower() == target_framework.strip().lower():
                    target = candidate
                    break
        graph = cls()
        if not isinstance(target, dict):
            return graph
        for library, entry in target.items():
            parts = library.split("/")
            if len(parts) != 2 or not isinstance(entry, dict):  # noqa: PLR2004
                continue
            package_id, version = parts
            declared = entry.get("dependencies")
            if not isinstance(declared, dict):
                declared = {}
            dependencies = [
                (dep_id, normalize_version(dep_version))
                for dep_id, dep_version in declared.items()
                if dep_id.strip() and isinstance(dep_version, str) and dep_version.strip()
            ]
            graph.packages.setdefault(package_id.casefold(), {})[version.casefold()] = dependencies
        return graph

    @classmethod
    def load(cls, project_path: str | Path, target_framework: str | None = None) -> LockFileGraph:
        """Read the lock file that sits next to a project file; an absent or unreadable lock file gives an empty graph."""
        lock_path = Path(project_path).parent / LOCK_FILE
        if not lock_path.is_file():
            return cls()
        try:
            with lock_path.open(encoding="utf-8-sig") as f:
                obj = json.load(f)
        except (OSError, ValueError) as e:
            logger.debug("Ignoring unreadable lock file %s: %s", lock_path, e)
            return cls()
        if not isinstance(obj, dict):
            return cls()
        return cls.from_obj(obj, target_framework)

    def dependencies(self, package_id: str, version: str) -> list[Dependency] | None:
        """Return the locked dependencies of a package version, or ``None`` if the lock file does not list it."""
        versions = self.packages.get(package_id.casefold())
        if versions is None:
            return None
        return versions.get(version.casefold())

    def __len__(self) -> int:
        """Return the number of locked packages."""
        return len(self.packages)


class PackageMetadataCache:
    """Thread-safe memo of resolved dependencies, keyed by ``id:version:framework``.

    Every key is computed at most once, even when several threads ask for it at the same time.
    """

    def __init__(self) -> None:
        """Initialize an empty cache."""
        self._entries: dict[str, list[Dependency]] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key(package_id: str, version: str, target_framework: str | None = None) -> str:
        return f"{package_id.lower()}:{version}:{(target_framework or '').lower()}"

    def get_or_compute(self, key: str, compute: Callable[[], list[Dependency]]) -> list[Dependency]:
        """Return the cached value for ``key``, computing and storing it first if needed."""
        with self._lock:
            if key in self._entries:
                return self._entries[key]
            key_lock = self._locks.setdefault(key, threading.Lock())
        with key_lock:
            with self._lock:
                if key in self._entries:
                    return self._entries[key]
            try:
                value = compute()
                with self._lock:
                    self._entries[key] = value
            finally:
                with self._lock:
                    self._locks.pop(key, None)
        return value

    def __contains__(self, key: object) -> bool:
        """Check whether a key has been computed."""
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        """Return the number of computed keys."""
        with self._lock:
            return len(self._entries)


def default_packages_dir() -> Path:
    """The NuGet global packages folder (``NUGET_PACKAGES`` if set)."""
    override = os.environ.get("NUGET_PACKAGES")
    if override:
        return Path(override)
    return Path.home() / ".nuget" / "packages"


class NuGetPackageSource:
    """Finds package archives locally or downloads them from the NuGet flat container API."""

    API_BASE = "https://api.nuget.org/v3-flatcontainer"

    def __init__(
        self,
        cache_dir: str | Path | None = None,
        packages_dir: str | Path | None = None,
        *,
        offline: bool = False,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize a package source.

        Args:
            cache_dir: where downloaded archives are kept; nothing is saved if ``None``
            packages_dir: the local global packages folder
            offline: never access the network
            timeout: timeout in seconds for each download
            session: HTTP session to download with

        """
        self.cache_dir: Path | None = Path(cache_dir) if cache_dir is not None else None
        self.packages_dir: Path = Path(packages_dir) if packages_dir is not None else default_packages_dir()
        self.offline: bool = offline
        self.timeout: float = timeout
        self.session: requests.Session = session if session is not None else requests.Session()

    @staticmethod
    def archive_name(package_id: str, version: str) -> str:
        return f"{package_id.lower()}.{version.lower()}.nupkg"

    def url(self, package_id: str, version: str) -> str:
        """Download URL of a package archive."""
        return f"{self.API_BASE}/{package_id.lower()}/{version.lower()}/{self.archive_name(package_id, version)}"

    def local_archive(self, package_id: str, version: str) -> Path | None:
        """Find an archive in the global packages folder or the download cache."""
        name = self.archive_name(package_id, version)
        candidates = [self.packages_dir / package_id.lower() / version.lower() / name]
        if self.cache_dir is not None:
            candidates.append(self.cache_dir / name)
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        return None

    def download(self, package_id: str, version: str) -> Path | None:
        """Download an archive into the cache directory.

        Returns:
            the path of the downloaded archive, or ``None`` if offline or the package does not exist

        Raises:
            requests.RequestException: if the download fails

        """
        if self.offline:
            logger.debug("Offline; not downloading %s %s", package_id, version)
            return None
        url = self.url(package_id, version)
        logger.info("Downloading %s", url)
        response = self.session.get(url, timeout=self.timeout)
        if response.status_code == 404:  # noqa: PLR2004
            logger.debug("Package not found: %s %s", package_id, version)
            return None
        response.raise_for_status()

        target_dir = self.cache_dir if self.cache_dir is not None else Path(tempfile.gettempdir())
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / self.archive_name(package_id, version)
        # write to a temporary file first so that a concurrent reader never sees a partial archive
        with tempfile.NamedTemporaryFile(dir=target_dir, suffix=".part", delete=False) as f:
            f.write(response.content)
            partial = Path(f.name)
        partial.replace(target)
        return target

    def manifest(self, package_id: str, version: str) -> bytes | None:
        """Read the ``.nuspec`` manifest of a package, or ``None`` if the package cannot be found."""
        archive = self.local_archive(package_id, version) or self.download(package_id, version)
        if archive is None:
            return None
        with zipfile.ZipFile(archive) as z:
            entry = next((name for name in z.namelist() if name.lower().endswith(".nuspec")), None)
            if entry is None:
                logger.debug("%s has no manifest", archive)
                return None
            return z.read(entry)


class PackageGraphResolver:
    """Resolves the direct dependencies of package versions, preferring a project's lock file.

    Results are cached for the lifetime of the resolver. A package that cannot be resolved for any reason
    resolves to no dependencies, and that result is cached too.
    """

    def __init__(self, source: NuGetPackageSource | None = None, cache: PackageMetadataCache | None = None) -> None:
        """Initialize a resolver reading manifests from ``source``."""
        self.source: NuGetPackageSource = source if source is not None else NuGetPackageSource()
        self.cache: PackageMetadataCache = cache if cache is not None else PackageMetadataCache()
        self._lock_graphs: dict[str, LockFileGraph] = {}

    def lock_graph(self, project: Project) -> LockFileGraph:
        """Load (once) the lock file graph of a project."""
        if project.path not in self._lock_graphs:
            self._lock_graphs[project.path] = LockFileGraph.load(project.path, project.target_framework)
        return self._lock_graphs[project.path]

    def resolve_dependencies(
        self,
        package_id: str,
        version: str,
        target_framework: str | None = None,
        lock_graph: LockFileGraph | None = None,
    ) -> list[Dependency]:
        """Return the direct dependencies of a package version.

        Args:
            package_id: the package id
            version: the exact package version
            target_framework: framework of the consuming project, used to pick a manifest dependency group
            lock_graph: the consuming project's lock file graph, consulted before any manifest

        """
        if not package_id or not package_id.strip() or not version or not version.strip():
            return []
        if lock_graph is not None:
            locked = lock_graph.dependencies(package_id, version)
            if locked is not None:
                return [dep for dep in locked if dep[0].casefold() != package_id.casefold()]
        key = PackageMetadataCache.key(package_id, version, target_framework)
        return self.cache.get_or_compute(key, lambda: self._from_manifest(package_id, version, target_framework))

    def _from_manifest(self, package_id: str, version: str, target_framework: str | None) -> list[Dependency]:
        try:
            data = self.source.manifest(package_id, version)
            if data is None:
                return []
            return parse_nuspec(data, package_id, target_framework)
        except ET.ParseError as e:
            logger.debug("Malformed manifest for %s %s: %s", package_id, version, e)
        except Exception as e:  # noqa: BLE001
            # damaged archives raise zlib.error, EOFError or ValueError besides the usual I/O errors
            logger.debug("Could not read the manifest of %s %s: %s", package_id, version, e)
        return []

    def prefetch(
        self,
        requests_: Iterable[tuple[str, str, str | None, LockFileGraph | None]],
        max_workers: int | None = None,
        max_depth: int = 10,
    ) -> int:
        """Resolve packages and their transitive dependencies ahead of time in a thread pool.

        Args:
            requests_: ``(package id, version, target framework, lock graph)`` tuples
            max_workers: the maximum number of threads; ``None`` lets the executor decide
            max_depth: how many dependency levels to resolve

        Returns:
            the number of package versions resolved

        """
        seen: set[str] = set()
        frontier: list[tuple[str, str, str | None, LockFileGraph | None]] = []
        for request in requests_:
            key = PackageMetadataCache.key(request[0], request[1], request[2])
            if key not in seen:
                seen.add(key)
                frontier.append(request)

        resolved = 0
        with (
            ThreadPoolExecutor(max_workers=max_workers) as executor,
            tqdm(desc="Resolving package dependencies", leave=False, unit=" packages") as t,
        ):
            for _ in range(max_depth):
                if not frontier:
                    break
                futures = {executor.submit(self.resolve_dependencies, *request): request for request in frontier}
                t.total = (t.total or 0) + len(futures)
                frontier = []
                for future in as_completed(futures):
                    t.update(1)
                    resolved += 1
                    _, _, target_framework, lock_graph = futures[future]
                    for dep_id, dep_version in future.result():
                        key = PackageMetadataCache.key(dep_id, dep_version, target_framework)
                        if key not in seen:
                            seen.add(key)
                            frontier.append((dep_id, dep_version, target_framework, lock_graph))
        return resolved
