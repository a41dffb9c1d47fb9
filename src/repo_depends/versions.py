"""Package version comparison and "latest known version" computation."""

from __future__ import annotations

import logging
import re
from enum import Enum
from functools import total_ordering
from typing import TYPE_CHECKING

from semantic_version import Version

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .models import PackageEdge

logger = logging.getLogger(__name__)

# major[.minor[.patch[.revision]]][-prerelease][+metadata]
_VERSION_PATTERN = re.compile(
    r"^v?(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?(?:\.(?P<revision>\d+))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z.-]+))?(?:\+(?P<metadata>[0-9A-Za-z.-]+))?$"
)


class UpgradeStatus(str, Enum):
    """Result of comparing a declared package version with the latest known one."""

    UPGRADE = "upgrade"
    CURRENT = "current"
    UNPARSEABLE = "unparseable"


@total_ordering
class PackageVersion:
    """A semantic version extended with the optional fourth (revision) component used by NuGet.

    Precedence follows semantic versioning: the numeric release parts are compared first, then a
    pre-release sorts before the corresponding release. Build metadata is ignored.
    """

    def __init__(self, release: tuple[int, int, int, int], prerelease: tuple[str, ...] = ()) -> None:
        """Initialize a version from its release numbers and pre-release identifiers."""
        self.release: tuple[int, int, int, int] = release
        self.prerelease: tuple[str, ...] = prerelease
        # semantic_version validates the pre-release identifiers and gives us their precedence rules
        self._precedence = Version(major=0, minor=0, patch=0, prerelease=prerelease or None)

    @classmethod
    def parse(cls, text: str | None) -> PackageVersion | None:
        """Parse ``text``, returning ``None`` when it is not a recognizable version."""
        if text is None:
            return None
        match = _VERSION_PATTERN.match(text.strip())
        if match is None:
            return None
        release = tuple(int(match.group(part) or 0) for part in ("major", "minor", "patch", "revision"))
        prerelease = tuple(match.group("prerelease").lower().split(".")) if match.group("prerelease") else ()
        try:
            return cls(release, prerelease)  # type: ignore[arg-type]
        except ValueError:
            # e.g., numeric pre-release identifiers with leading zeros
            return None

    def _key(self) -> tuple[tuple[int, int, int, int], Version]:
        return self.release, self._precedence

    def __eq__(self, other: object) -> bool:
        """Check precedence equality with another version."""
        return isinstance(other, PackageVersion) and self._key() == other._key()

    def __lt__(self, other: object) -> bool:
        """Compare versions by precedence."""
        if not isinstance(other, PackageVersion):
            msg = "Need a PackageVersion"
            raise TypeError(msg)
        return self._key() < other._key()

    def __hash__(self) -> int:
        """Compute hash for the version."""
        return hash((self.release, self.prerelease))

    def __str__(self) -> str:
        """Return the normalized version string."""
        major, minor, patch, revision = self.release
        text = f"{major}.{minor}.{patch}" + (f".{revision}" if revision else "")
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        return text


def _ordinal_less(declared: str, latest: str) -> bool:
    return declared.casefold() < latest.casefold()


def is_newer(candidate: str, current: str) -> bool:
    """Return whether ``candidate`` is a higher version than ``current``.

    Versions that do not parse are compared as plain strings, which is imprecise but matches how such
    versions have always been ordered.
    """
    parsed_candidate = PackageVersion.parse(candidate)
    parsed_current = PackageVersion.parse(current)
    if parsed_candidate is not None and parsed_current is not None:
        return parsed_current < parsed_candidate
    return _ordinal_less(current, candidate)


def latest_known(packages: Iterable[PackageEdge]) -> dict[str, str]:
    """Compute the highest declared version of every package, keyed by the case-folded package name."""
    latest: dict[str, str] = {}
    for package in packages:
        if not package.name.strip() or not package.is_versioned:
            continue
        key = package.name.casefold()
        version = package.version.strip()  # type: ignore[union-attr]
        if key not in latest or is_newer(version, latest[key]):
            latest[key] = version
    return latest


def compare_for_upgrade(declared: str | None, latest: str | None) -> UpgradeStatus:
    """Compare a declared version with the latest known version of the same package."""
    if not declared or not declared.strip() or not latest:
        return UpgradeStatus.CURRENT
    parsed_declared = PackageVersion.parse(declared)
    parsed_latest = PackageVersion.parse(latest)
    if parsed_declared is not None and parsed_latest is not None:
        return UpgradeStatus.UPGRADE if parsed_declared < parsed_latest else UpgradeStatus.CURRENT
    logger.debug("Falling back to string comparison for versions %r and %r", declared, latest)
    if _ordinal_less(declared, latest):
        return UpgradeStatus.UPGRADE
    return UpgradeStatus.UNPARSEABLE
