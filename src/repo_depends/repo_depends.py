"""Version and configuration utilities for repo-depends."""

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as meta_version

from platformdirs import PlatformDirs


def version() -> str:
    """Get the installed version of repo-depends."""
    try:
        return meta_version("repo-depends")
    except PackageNotFoundError:
        from . import __version__  # noqa: PLC0415

        return __version__


APP_DIRS = PlatformDirs("repo-depends", "repo-depends")
