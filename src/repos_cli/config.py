import os
from pathlib import Path
from typing import Literal, Self

import yaml
from anyio import Path as AsyncPath
from pydantic import BaseModel, Field, ValidationError

from repos_cli.errors import ConfigError
from repos_cli.models.source import Source

DEFAULT_CONFIG_FILE = Path("~/.config/repos-cli/config.yml")


def get_default_repos_folder() -> Path:
    return Path(os.getenv("REPOS_FOLDER", "~/git")).expanduser()


def get_default_github_user() -> str | None:
    return os.getenv("GITHUB_USER") or None


class ContextOptions(BaseModel):
    """Everything a resolution context can be configured with."""

    repos_folder: Path = Field(default_factory=get_default_repos_folder, description="The folder your own repositories live in.")
    forks_folder: Path | None = Field(default=None, description="The folder forks are cloned into. Defaults to `<repos_folder>/.fork`.")
    gist_folder: Path | None = Field(default=None, description="The folder gists are cloned into. Defaults to `<repos_folder>/.gist`.")
    foreign_repos_folder: Path | None = Field(
        default=None, description="The folder repositories of other owners are cloned into. Defaults to `<repos_folder>/.foreign`."
    )
    as_folder: Path | None = Field(
        default=None, description="The folder holding one subfolder per alt account. Defaults to `<repos_folder>/.as`."
    )
    alt: list[str] | bool | None = Field(
        default=None,
        description="Alt account names. Unset or true discovers them from the subfolders of `as_folder`, false disables them.",
    )
    github_user: str | None = Field(default_factory=get_default_github_user, description="The GitHub user to look repositories up for.")
    github_clone_backend: Literal["ssh", "https"] = Field(default="ssh", description="Which URL to clone from.")
    parent: list[str] = Field(default_factory=list, description="Extra folders whose subfolders are repositories.")
    glob: list[str] = Field(default_factory=list, description="Extra glob patterns matching repository folders.")
    source: list[str] = Field(default_factory=list, description="Extra sources, classified as glob or parent by their syntax.")
    config_file: Path | None = Field(default=DEFAULT_CONFIG_FILE, description="The YAML file with additional sources.")
    cwd: Path | None = Field(default=None, description="The folder to resolve the enclosing repository from.")


class ConfigFile(BaseModel):
    """The contents of the YAML config file."""

    sources: list[Source | str] = Field(default_factory=list)

    @classmethod
    async def load(cls, config_file: str | os.PathLike[str]) -> Self | None:
        """Load and validate the config file. A missing file is not an error."""

        path = AsyncPath(config_file).expanduser()

        if not await path.exists():
            return None

        try:
            raw_config = yaml.safe_load(await path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigError(message=f"Invalid YAML: {e}", config_file=str(config_file)) from e

        if raw_config is None:
            return cls()

        try:
            return cls.model_validate(raw_config)
        except ValidationError as e:
            raise ConfigError(message=f"Invalid config: {e}", config_file=str(config_file)) from e
