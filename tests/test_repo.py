from pathlib import Path

import click
import pytest
from git.exc import GitCommandError
from inline_snapshot import snapshot

from repos_cli.clients.models.github import ParentRepository
from repos_cli.errors import CloneError, ExpectedLocalRepoError, ExpectedRemoteRepoError, NotAForkError
from repos_cli.repo import RemoteSlug, Repo
from tests.conftest import init_git_repo, make_git_folder, make_remote_repository


@pytest.fixture
def clone_calls(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, Path]]:
    """Replace git clone with a function that records the call and creates the checkout."""

    calls: list[tuple[str, Path]] = []

    def fake_clone_repository(url: str, target_folder: Path) -> None:
        calls.append((url, target_folder))
        _ = make_git_folder(target_folder)

    monkeypatch.setattr("repos_cli.repo.clone_repository", fake_clone_repository)

    return calls


class TestFacets:
    def test_requires_a_facet(self):
        with pytest.raises(ValueError, match="local checkout or a remote repository"):
            _ = Repo()

    def test_local(self, tmp_path: Path):
        repo = Repo.from_folder(tmp_path / "project")

        assert repo.is_local()
        assert not repo.is_remote()
        assert repo.name == "project"
        assert repo.as_folder() == tmp_path / "project"
        assert str(repo) == str(tmp_path / "project")

    def test_remote(self):
        repo = Repo.from_remote(make_remote_repository("me", "project"))

        assert repo.is_remote()
        assert not repo.is_local()
        assert repo.name == "project"
        assert repo.owner == "me"
        assert repo.as_slug() == "me/project"
        assert str(repo) == "me/project"

    def test_as_folder_on_remote(self):
        repo = Repo.from_remote(make_remote_repository("me", "project"))

        with pytest.raises(ExpectedLocalRepoError, match="Expected local repo, got remote repo: me/project"):
            _ = repo.as_folder()

    def test_as_slug_on_local(self, tmp_path: Path):
        repo = Repo.from_folder(tmp_path / "project")

        with pytest.raises(ExpectedRemoteRepoError, match="Expected remote repo, got local repo: "):
            _ = repo.as_slug()

    def test_is_fork_on_local(self, tmp_path: Path):
        with pytest.raises(ExpectedRemoteRepoError):
            _ = Repo.from_folder(tmp_path / "project").is_fork()

    def test_upstream_comparison_range(self):
        fork = make_remote_repository(
            "me", "project", fork=True, default_branch="main", parent=ParentRepository(owner="them", name="project", default_branch="trunk")
        )

        assert Repo.from_remote(fork).get_upstream_comparison_range() == snapshot("me:main...them:trunk")

    def test_upstream_comparison_range_not_a_fork(self):
        with pytest.raises(NotAForkError, match="Repository me/project is not a fork"):
            _ = Repo.from_remote(make_remote_repository("me", "project")).get_upstream_comparison_range()


class TestEnsureLocal:
    async def test_clones_once(self, tmp_path: Path, clone_calls: list[tuple[str, Path]]):
        repo = Repo.from_remote(make_remote_repository("me", "project"))

        await repo.ensure_local(tmp_path / "git")
        await repo.ensure_local(tmp_path / "git")

        assert clone_calls == [("git@github.com:me/project.git", tmp_path / "git" / "project")]
        assert repo.as_folder() == tmp_path / "git" / "project"
        assert repo.as_slug() == "me/project"

    async def test_https(self, tmp_path: Path, clone_calls: list[tuple[str, Path]]):
        repo = Repo.from_remote(make_remote_repository("me", "project", clone_url="https://github.com/me/project.git"))

        await repo.ensure_local(tmp_path, use_https=True)

        assert clone_calls == [("https://github.com/me/project.git", tmp_path / "project")]

    async def test_existing_folder_is_adopted(self, tmp_path: Path, clone_calls: list[tuple[str, Path]]):
        _ = make_git_folder(tmp_path / "project")
        repo = Repo.from_remote(make_remote_repository("me", "project"))

        await repo.ensure_local(tmp_path)

        assert clone_calls == []
        assert repo.as_folder() == tmp_path / "project"

    async def test_local_repo_is_left_alone(self, tmp_path: Path, clone_calls: list[tuple[str, Path]]):
        repo = Repo.from_folder(tmp_path / "project")

        await repo.ensure_local(tmp_path / "elsewhere")

        assert clone_calls == []
        assert repo.as_folder() == tmp_path / "project"

    async def test_clone_failure(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        def failing_clone_repository(url: str, target_folder: Path) -> None:
            raise GitCommandError(["git", "clone", url], 128)

        monkeypatch.setattr("repos_cli.repo.clone_repository", failing_clone_repository)

        repo = Repo.from_remote(make_remote_repository("me", "project"))

        with pytest.raises(CloneError, match="Error cloning repository"):
            await repo.ensure_local(tmp_path)

        assert not repo.is_local()


async def test_delete_local(tmp_path: Path):
    folder = make_git_folder(tmp_path / "project")
    _ = (folder / "file.txt").write_text("content")

    await Repo.from_folder(folder).delete_local()

    assert not folder.exists()


class TestRemoteSlug:
    @pytest.mark.parametrize(
        "url",
        [
            "git@github.com:me/project.git",
            "git@github.com:me/project",
            "ssh://git@github.com/me/project.git",
            "https://github.com/me/project.git",
            "https://github.com/me/project",
            "https://token@github.com/me/project.git",
            "https://github.com/me/project/",
        ],
    )
    def test_from_url(self, url: str):
        assert RemoteSlug.from_url(url) == RemoteSlug(owner="me", repo="project")

    @pytest.mark.parametrize("url", ["https://gitlab.com/me/project.git", "/srv/git/project.git", "not a url"])
    def test_not_github(self, url: str):
        assert RemoteSlug.from_url(url) is None

    def test_dotted_name(self):
        assert str(RemoteSlug.from_url("git@github.com:me/my.dotfiles.git")) == "me/my.dotfiles"


class TestRemoteOriginSlug:
    async def test_origin(self, tmp_path: Path):
        _ = init_git_repo(
            tmp_path / "project", remotes={"upstream": "git@github.com:them/project.git", "origin": "git@github.com:me/project.git"}
        )

        slug = await Repo.from_folder(tmp_path / "project").get_remote_origin_slug()

        assert slug == RemoteSlug(owner="me", repo="project")

    async def test_upstream_when_origin_is_elsewhere(self, tmp_path: Path):
        _ = init_git_repo(
            tmp_path / "project", remotes={"origin": "https://gitlab.com/me/project.git", "upstream": "https://github.com/them/project"}
        )

        slug = await Repo.from_folder(tmp_path / "project").get_remote_origin_slug()

        assert slug == RemoteSlug(owner="them", repo="project")

    async def test_no_remotes(self, tmp_path: Path):
        _ = init_git_repo(tmp_path / "project")

        assert await Repo.from_folder(tmp_path / "project").get_remote_origin_slug() is None

    async def test_remote_only(self):
        with pytest.raises(ExpectedLocalRepoError):
            _ = await Repo.from_remote(make_remote_repository("me", "project")).get_remote_origin_slug()


class TestGitHubUrl:
    async def test_remote(self):
        repo = Repo.from_remote(make_remote_repository("me", "project", html_url="https://github.com/me/project"))

        assert await repo.get_github_url() == "https://github.com/me/project"

    async def test_local_with_github_origin(self, tmp_path: Path):
        _ = init_git_repo(tmp_path / "project", remotes={"origin": "git@github.com:me/project.git"})

        assert await Repo.from_folder(tmp_path / "project").get_github_url() == "https://github.com/me/project"

    async def test_local_without_github_remote(self, tmp_path: Path):
        _ = init_git_repo(tmp_path / "project")

        assert await Repo.from_folder(tmp_path / "project").get_github_url() is None


async def test_get_status(tmp_path: Path):
    _ = init_git_repo(tmp_path / "project")
    _ = (tmp_path / "project" / "notes.txt").write_text("hello")

    status = await Repo.from_folder(tmp_path / "project").get_status()

    assert status.current_branch == "main"
    assert status.not_added == ["notes.txt"]
    assert not status.is_clean


def test_to_styled_string(tmp_path: Path):
    repo = Repo.from_folder(tmp_path / "project")

    styled = repo.to_styled_string()

    assert styled != str(repo)
    assert click.unstyle(styled) == str(repo)


def test_declare_remote(tmp_path: Path):
    repo = Repo.from_folder(tmp_path / "project")

    repo.declare_remote(make_remote_repository("me", "project"))

    assert repo.is_local()
    assert repo.is_remote()
    assert repo.as_slug() == "me/project"
    assert str(repo) == str(tmp_path / "project")
