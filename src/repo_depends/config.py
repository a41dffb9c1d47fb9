"""Configuration settings for repo-depends."""

from __future__ import annotations

from pathlib import Path  # noqa: TC003

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    CliImplicitFlag,
    SettingsConfigDict,
)

from .repo_depends import APP_DIRS

DEFAULT_CACHE_DIR = Path(APP_DIRS.user_cache_dir) / "packages"


class Settings(BaseSettings):
    """Settings for repo-depends."""

    target: str = Field(
        default=".",
        description="""Root directory to scan. Every git repository at or
            below it is inventoried.""",
    )
    output: str = Field(
        default="dependency",
        description="""Report shape: `list` (`l`), `dependency` (`d`) or
            `tree` (`t`).""",
    )
    view: str = Field(
        default="default",
        description="""How deep the report goes: `default` (`d`, repositories
            and projects), `full` (`f`, adds packages), `repo` (`r`) or
            `project` (`p`).""",
    )
    exclude: str = Field(
        default="",
        description="""Hide projects and packages whose name contains this
            text (case-insensitive).""",
    )
    only_packable: CliImplicitFlag[bool] = Field(
        default=False,
        description="""Only show projects that publish a package.""",
    )
    project: str = Field(
        default="",
        description="""Only report on the repositories containing this project
            (`list`), or on this project and its dependencies (`dependency`).""",
    )
    repo_deps: CliImplicitFlag[bool] = Field(
        default=False,
        description="""List the repositories each repository depends on.""",
    )
    project_deps: CliImplicitFlag[bool] = Field(
        default=False,
        description="""List the projects each project depends on.""",
    )
    repo_usages: CliImplicitFlag[bool] = Field(
        default=False,
        description="""List the repositories that use each repository.""",
    )
    project_usages: CliImplicitFlag[bool] = Field(
        default=False,
        description="""List the projects that use each project.""",
    )
    offline: CliImplicitFlag[bool] = Field(
        default=False,
        description="""Never download package archives; only the local
            package folders and lock files are used.""",
    )
    fetch_timeout: float = Field(
        default=30.0,
        description="""Timeout in seconds for each package download.""",
    )
    max_workers: int = Field(
        default=-1,
        description="""Maximum number of concurrent package downloads. If not
            provided, the maximum number of logical CPUs will be used.""",
    )
    cache_dir: Path = Field(
        default=DEFAULT_CACHE_DIR,
        description="""Directory where downloaded package archives are kept.""",
    )
    log_level: str = Field(default="warning", description="Log level")
    version: CliImplicitFlag[bool] = Field(
        default=False,
        description="""Show the version of repo-depends and exit.""",
    )

    model_config = SettingsConfigDict(
        cli_parse_args=True,
        cli_prog_name="repo-depends",
        cli_kebab_case=True,
        env_prefix="REPO_DEPENDS_",
    )
