import asyncio
import os
import re
import shutil
from logging import Logger, getLogger
from pathlib import Path
from typing import Self

from anyio import Path as AsyncPath
from git.exc import GitCommandError
from git.repo import Repo as GitRepo
from pydantic import BaseModel, Field

from repos_cli.clients.models.github import RemoteRepository
from repos_cli.errors import CloneError, ExpectedLocalRepoError, ExpectedRemoteRepoError
from repos_cli.models.status import RepoStatus
from repos_cli.utilities.terminal import style_path

logger: Logger = getLogger(__name__)

GIT_FOLDER_NAME = ".git"

PREFERRED_REMOTES = ("origin", "upstream")

GITHUB_REMOTE_URL = re.compile(
    r"^(?:git@github\.com:|ssh://git@github\.com/|https?://(?:[^@/]+@)?github\.com/)"
    r"(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+?)(?:\.git)?/?$"
)


class LocalCheckout(BaseModel):
    """Where a repository lives on disk."""

    parent_folder: Path = Field(description="The folder containing the checkout.")
    folder_name: str = Field(description="The name of the checkout folder.")

    @property
    def folder(self) -> Path:
        return self.parent_folder / self.folder_name


class RemoteSlug(BaseModel):
    """The owner and name of a GitHub repository, as parsed from a remote URL."""

    owner: str
    repo: str

    @classmethod
    def from_url(cls, url: str) -> Self | None:
        if match := GITHUB_REMOTE_URL.match(url.strip()):
            return cls(owner=match.group("owner"), repo=match.group("repo"))
        return None

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}"


def clone_repository(url: str, target_folder: Path) -> None:
    """Clone `url` into `target_folder`, blocking until git is done."""
    GitRepo.clone_from(url, target_folder)


def normalize_folder(folder: str | os.PathLike[str]) -> Path:
    return Path(os.path.abspath(os.path.expanduser(folder)))


class Repo:
    """A repository that is known locally, remotely, or both.

    A handle is created with one facet. The local facet is attached once a remote repository has been
    cloned or found on disk. Operations that need a facet the handle does not have raise a `RepoFacetError`.
    """

    local: LocalCheckout | None
    remote: RemoteRepository | None

    def __init__(self, local: LocalCheckout | None = None, remote: RemoteRepository | None = None):
        if local is None and remote is None:
            msg = "A repo needs a local checkout or a remote repository"
            raise ValueError(msg)

        self.local = local
        self.remote = remote

    @classmethod
    def from_folder(cls, folder: str | os.PathLike[str]) -> Self:
        normalized_folder: Path = normalize_folder(folder)

        # pointing at the git store resolves to the repository containing it
        if normalized_folder.name == GIT_FOLDER_NAME:
            return cls.from_folder(normalized_folder.parent)

        return cls.from_local(name=normalized_folder.name, parent_folder=normalized_folder.parent)

    @classmethod
    def from_local(cls, name: str, parent_folder: str | os.PathLike[str]) -> Self:
        return cls(local=LocalCheckout(parent_folder=Path(parent_folder), folder_name=name))

    @classmethod
    def from_remote(cls, remote: RemoteRepository) -> Self:
        return cls(remote=remote)

    def is_local(self) -> bool:
        return self.local is not None

    def is_remote(self) -> bool:
        return self.remote is not None

    def expect_local(self) -> LocalCheckout:
        if self.local is None:
            raise ExpectedLocalRepoError(slug=str(self))
        return self.local

    def expect_remote(self) -> RemoteRepository:
        if self.remote is None:
            raise ExpectedRemoteRepoError(folder=str(self))
        return self.remote

    def declare_local(self, parent_folder: str | os.PathLike[str], folder_name: str) -> None:
        self.local = LocalCheckout(parent_folder=Path(parent_folder), folder_name=folder_name)

    def declare_remote(self, remote: RemoteRepository) -> None:
        self.remote = remote

    @property
    def name(self) -> str:
        if self.local is not None:
            return self.local.folder_name
        return self.remote_name

    @property
    def owner(self) -> str:
        return self.expect_remote().owner

    @property
    def remote_name(self) -> str:
        return self.expect_remote().name

    def as_folder(self) -> Path:
        return self.expect_local().folder

    def as_slug(self) -> str:
        remote = self.expect_remote()
        return f"{remote.owner}/{remote.name}"

    def is_fork(self) -> bool:
        return self.expect_remote().fork

    def get_upstream_comparison_range(self) -> str:
        return self.expect_remote().get_upstream_comparison_range()

    async def clone(self, parent_folder: str | os.PathLike[str], use_https: bool = False, folder_name: str | None = None) -> None:
        """Clone the remote repository into `parent_folder` and attach the local facet."""

        remote = self.expect_remote()
        name: str = folder_name or remote.name
        target_folder: Path = Path(parent_folder) / name

        await AsyncPath(parent_folder).mkdir(parents=True, exist_ok=True)

        url: str = remote.get_clone_url(use_https=use_https)

        logger.info(f"Cloning repository {remote.slug} from {url} to {target_folder}")

        try:
            await asyncio.to_thread(clone_repository, url, target_folder)
        except GitCommandError as e:
            raise CloneError(slug=remote.slug, target_folder=str(target_folder), message=str(e)) from e

        logger.info(f"Cloned repository {remote.slug} to {target_folder}")

        self.declare_local(parent_folder, name)

    async def ensure_local(self, parent_folder: str | os.PathLike[str], use_https: bool = False, folder_name: str | None = None) -> None:
        """Make sure the repository exists on disk, cloning it only if the target folder is missing."""

        if self.is_local():
            return

        name: str = folder_name or self.remote_name

        if await AsyncPath(parent_folder, name).exists():
            logger.debug(f"Repository {self.as_slug()} already exists in {parent_folder}")
            self.declare_local(parent_folder, name)
            return

        await self.clone(parent_folder, use_https=use_https, folder_name=folder_name)

    async def delete_local(self) -> None:
        folder: Path = self.as_folder()

        logger.info(f"Deleting {folder}")

        await asyncio.to_thread(shutil.rmtree, folder)

    def _open_git_repo(self) -> GitRepo:
        return GitRepo(self.as_folder())

    def _read_remote_urls(self) -> dict[str, list[str]]:
        git_repo: GitRepo = self._open_git_repo()
        try:
            return {remote.name: list(remote.urls) for remote in git_repo.remotes}
        finally:
            git_repo.close()

    async def get_remote_origin_slug(self) -> RemoteSlug | None:
        """The GitHub owner and name of the checkout, read from `origin`, then `upstream`, then any other remote."""

        self.expect_local()

        remote_urls: dict[str, list[str]] = await asyncio.to_thread(self._read_remote_urls)

        preferred: list[str] = [remote for remote in PREFERRED_REMOTES if remote in remote_urls]
        others: list[str] = [remote for remote in remote_urls if remote not in PREFERRED_REMOTES]

        for remote_name in preferred + others:
            for url in remote_urls[remote_name]:
                if slug := RemoteSlug.from_url(url):
                    return slug

        return None

    async def get_github_url(self) -> str | None:
        if self.remote is not None:
            return self.remote.html_url or f"https://github.com/{self.as_slug()}"

        if slug := await self.get_remote_origin_slug():
            return f"https://github.com/{slug}"

        return None

    def _read_status(self) -> str:
        git_repo: GitRepo = self._open_git_repo()
        try:
            return git_repo.git.status("--porcelain=v1", "--branch")
        finally:
            git_repo.close()

    async def get_status(self) -> RepoStatus:
        self.expect_local()

        porcelain: str = await asyncio.to_thread(self._read_status)

        return RepoStatus.from_porcelain(porcelain)

    def to_styled_string(self) -> str:
        return style_path(str(self))

    def __str__(self) -> str:
        if self.local is not None:
            return str(self.as_folder())
        return self.as_slug()

    def __repr__(self) -> str:
        return f"Repo({self})"
