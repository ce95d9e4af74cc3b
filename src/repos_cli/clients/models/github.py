from datetime import datetime
from typing import Any, Self

from githubkit.utils import UNSET
from githubkit.versions.v2022_11_28.models import (
    FullRepository as GitHubKitFullRepository,
)
from githubkit.versions.v2022_11_28.models import (
    MinimalRepository as GitHubKitMinimalRepository,
)
from githubkit.versions.v2022_11_28.models import (
    Repository as GitHubKitRepository,
)
from pydantic import BaseModel, ConfigDict, Field

from repos_cli.errors import NotAForkError

GitHubKitAnyRepository = GitHubKitFullRepository | GitHubKitRepository | GitHubKitMinimalRepository


def present(value: Any) -> Any:
    """githubkit marks fields the API omitted as UNSET, treat them like null."""
    if value is UNSET:
        return None
    return value


class ParentRepository(BaseModel):
    """The upstream repository a fork was created from."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(description="The login of the upstream owner.")
    name: str = Field(description="The name of the upstream repository.")
    default_branch: str | None = Field(default=None, description="The default branch of the upstream repository.")

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"


class RemoteRepository(BaseModel):
    """A repository as known to GitHub."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(description="The login of the owner of the repository.")
    name: str = Field(description="The name of the repository.")
    full_name: str | None = Field(default=None, description="The owner/name slug reported by GitHub.")
    fork: bool = Field(default=False, description="Whether the repository is a fork.")
    parent: ParentRepository | None = Field(default=None, description="The upstream repository, if this is a fork.")
    default_branch: str | None = Field(default=None, description="The default branch of the repository.")
    archived: bool = Field(default=False, description="Whether the repository is archived.")
    html_url: str | None = Field(default=None, description="The web URL of the repository.")
    clone_url: str | None = Field(default=None, description="The HTTPS clone URL of the repository.")
    ssh_url: str | None = Field(default=None, description="The SSH clone URL of the repository.")
    created_at: datetime | None = Field(default=None, description="The date and time the repository was created.")
    updated_at: datetime | None = Field(default=None, description="The date and time the repository was updated.")
    pushed_at: datetime | None = Field(default=None, description="The date and time the repository was pushed to.")

    @property
    def slug(self) -> str:
        return self.full_name or f"{self.owner}/{self.name}"

    def get_clone_url(self, use_https: bool = False) -> str:
        if use_https:
            return self.clone_url or f"https://github.com/{self.owner}/{self.name}.git"

        return self.ssh_url or f"git@github.com:{self.owner}/{self.name}.git"

    def get_upstream_comparison_range(self) -> str:
        """The `BASE...HEAD` compare range from the fork's default branch to its upstream's.

        The `ahead_by` of that comparison is the number of upstream commits the fork is missing.
        """
        if not self.fork or self.parent is None:
            raise NotAForkError(slug=self.slug)

        return f"{self.owner}:{self.default_branch}...{self.parent.owner}:{self.parent.default_branch}"

    @classmethod
    def from_githubkit(cls, repository: GitHubKitAnyRepository) -> Self:
        parent: ParentRepository | None = None

        if githubkit_parent := present(getattr(repository, "parent", None)):
            parent = ParentRepository(
                owner=githubkit_parent.owner.login,
                name=githubkit_parent.name,
                default_branch=present(githubkit_parent.default_branch),
            )

        return cls(
            owner=repository.owner.login,
            name=repository.name,
            full_name=repository.full_name,
            fork=repository.fork,
            parent=parent,
            default_branch=present(repository.default_branch),
            archived=bool(present(repository.archived)),
            html_url=repository.html_url,
            clone_url=present(repository.clone_url),
            ssh_url=present(repository.ssh_url),
            created_at=present(repository.created_at),
            updated_at=present(repository.updated_at),
            pushed_at=present(repository.pushed_at),
        )


class CommitComparison(BaseModel):
    """How far two refs are apart."""

    ahead_by: int = Field(description="The number of commits the head has that the base lacks.")
    behind_by: int = Field(description="The number of commits the base has that the head lacks.")
