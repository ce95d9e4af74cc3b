import asyncio
import os
from collections.abc import AsyncGenerator
from logging import getLogger
from pathlib import Path
from typing import Any

import pytest
from git.repo import Repo as GitRepo
from githubkit.github import GitHub
from pydantic import BaseModel

from repos_cli.clients.github import GitHubReposClient, get_githubkit_client
from repos_cli.clients.models.github import CommitComparison, ParentRepository, RemoteRepository
from repos_cli.config import ContextOptions

GITHUB_TOKEN = os.getenv("GITHUB_TOKEN")

requires_github_token = pytest.mark.skipif(GITHUB_TOKEN is None, reason="GITHUB_TOKEN is not set")


def make_git_folder(folder: Path) -> Path:
    """Create a folder that looks like a git checkout without invoking git."""
    git_folder = folder / ".git"
    git_folder.mkdir(parents=True)
    _ = (git_folder / "HEAD").write_text("ref: refs/heads/main\n")
    return folder


def init_git_repo(folder: Path, remotes: dict[str, str] | None = None) -> GitRepo:
    """Create a real git repository with the given remotes."""
    git_repo = GitRepo.init(folder, initial_branch="main")
    for name, url in (remotes or {}).items():
        _ = git_repo.create_remote(name, url)
    return git_repo


def make_remote_repository(
    owner: str, name: str, fork: bool = False, parent: ParentRepository | None = None, **kwargs: Any
) -> RemoteRepository:
    return RemoteRepository(owner=owner, name=name, full_name=f"{owner}/{name}", fork=fork, parent=parent, **kwargs)


class FakeGitHubReposClient(GitHubReposClient):
    """Serves repositories from memory and counts the calls it receives."""

    def __init__(
        self,
        repositories: list[RemoteRepository] | None = None,
        authenticated_user: str | None = None,
        comparisons: dict[str, CommitComparison] | None = None,
    ):
        self.repositories = list(repositories or [])
        self.comparisons = dict(comparisons or {})
        self.authenticated_user = authenticated_user
        self.has_token = authenticated_user is not None
        self.logger = getLogger(__name__)
        self.authenticated_user_calls = 0
        self.find_repo_calls: list[tuple[str, str | None]] = []
        self.get_repository_calls: list[str] = []
        self.compare_calls: list[tuple[str, str, str]] = []

    async def get_authenticated_user(self) -> str:
        self.authenticated_user_calls += 1

        # give concurrent callers a chance to interleave
        await asyncio.sleep(0)

        if self.authenticated_user is None:
            msg = "No token"
            raise RuntimeError(msg)

        return self.authenticated_user

    async def find_repo(self, name: str, owner: str | None = None) -> RemoteRepository | None:
        self.find_repo_calls.append((name, owner))

        owner = owner or self.authenticated_user

        for repository in self.repositories:
            if repository.owner == owner and repository.name == name:
                return repository

        return None

    async def get_repository(self, owner: str, repo: str, error_on_not_found: bool = False) -> RemoteRepository | None:  # pyright: ignore[reportIncompatibleMethodOverride]
        self.get_repository_calls.append(f"{owner}/{repo}")

        for repository in self.repositories:
            if repository.owner == owner and repository.name == repo:
                return repository

        return None

    async def compare_commits(self, owner: str, repo: str, basehead: str) -> CommitComparison:
        self.compare_calls.append((owner, repo, basehead))
        return self.comparisons[basehead]

    async def list_repos(self, github_user: str | None = None) -> list[RemoteRepository]:
        return list(self.repositories)


@pytest.fixture
async def githubkit_client() -> AsyncGenerator[GitHub[Any], Any]:
    githubkit_client = get_githubkit_client()

    async with githubkit_client:
        yield githubkit_client


@pytest.fixture
def repos_folder(tmp_path: Path) -> Path:
    folder = tmp_path / "git"
    folder.mkdir()
    return folder


@pytest.fixture
def context_options(repos_folder: Path, tmp_path: Path) -> ContextOptions:
    return ContextOptions(repos_folder=repos_folder, github_user=None, config_file=tmp_path / "missing-config.yml", cwd=tmp_path)


@pytest.fixture
def fake_github_client() -> FakeGitHubReposClient:
    return FakeGitHubReposClient(
        repositories=[
            make_remote_repository("me", "remote-only"),
            make_remote_repository("me", "local-and-remote"),
        ],
        authenticated_user="me",
    )


# E2E Test Data


class E2ERepository(BaseModel):
    owner: str
    repo: str


@pytest.fixture
def e2e_repository() -> E2ERepository:
    """Points to a public repository that is not a fork."""
    return E2ERepository(owner="octocat", repo="Hello-World")


@pytest.fixture
def e2e_missing_repository() -> E2ERepository:
    """Points to a missing repository."""
    return E2ERepository(owner="octocat", repo="missing-repository-for-repos-cli")
