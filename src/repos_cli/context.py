import asyncio
import glob
import os
from enum import Enum, StrEnum
from logging import Logger, getLogger
from pathlib import Path

from anyio import Path as AsyncPath

from repos_cli.clients.errors.github import GitHubUserRequiredError
from repos_cli.clients.github import GitHubReposClient
from repos_cli.clients.models.github import RemoteRepository
from repos_cli.config import ConfigFile, ContextOptions
from repos_cli.errors import NeedleRequiredError
from repos_cli.finder import LocalFinder, Match
from repos_cli.models.source import Source
from repos_cli.repo import Repo, normalize_folder

FORKS_FOLDER_NAME = ".fork"
GIST_FOLDER_NAME = ".gist"
FOREIGN_REPOS_FOLDER_NAME = ".foreign"
AS_FOLDER_NAME = ".as"


class InitState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class FindOrigin(StrEnum):
    LOCAL = "local"
    GITHUB = "github"


class FindResult:
    """A repository resolved by name, and where it was resolved from."""

    repo: Repo
    origin: FindOrigin
    match: Match | None

    def __init__(self, repo: Repo, origin: FindOrigin, match: Match | None = None):
        self.repo = repo
        self.origin = origin
        self.match = match

    def __repr__(self) -> str:
        return f"FindResult(origin={self.origin}, repo={self.repo!s})"


class Context:
    """Resolves repositories by name against the configured folders and GitHub.

    The GitHub client, the authenticated identity and the alt account list are computed on first use
    and then reused. Concurrent first uses wait for a single computation.
    """

    options: ContextOptions
    config: ConfigFile | None
    logger: Logger

    def __init__(
        self,
        options: ContextOptions | None = None,
        github_client: GitHubReposClient | None = None,
        config: ConfigFile | None = None,
        logger: Logger | None = None,
    ):
        self.options = options or ContextOptions()
        self.config = config
        self.logger = logger or getLogger(__name__)

        self._github_client: GitHubReposClient | None = github_client
        self._authenticated_user: str | None = None
        self._client_state: InitState = InitState.UNINITIALIZED
        self._client_lock: asyncio.Lock = asyncio.Lock()

        self._alts: list[str] | None = None
        self._alts_lock: asyncio.Lock = asyncio.Lock()

    @classmethod
    async def from_options(cls, options: ContextOptions, github_client: GitHubReposClient | None = None) -> "Context":
        """Create a context and load the config file named in `options`, if any."""

        config: ConfigFile | None = None

        if options.config_file is not None:
            config = await ConfigFile.load(options.config_file)

        return cls(options=options, github_client=github_client, config=config)

    @property
    def repos_folder(self) -> Path:
        return normalize_folder(self.options.repos_folder)

    @property
    def forks_folder(self) -> Path:
        return normalize_folder(self.options.forks_folder or self.repos_folder / FORKS_FOLDER_NAME)

    @property
    def gist_folder(self) -> Path:
        return normalize_folder(self.options.gist_folder or self.repos_folder / GIST_FOLDER_NAME)

    @property
    def foreign_repos_folder(self) -> Path:
        return normalize_folder(self.options.foreign_repos_folder or self.repos_folder / FOREIGN_REPOS_FOLDER_NAME)

    @property
    def as_folder(self) -> Path:
        return normalize_folder(self.options.as_folder or self.repos_folder / AS_FOLDER_NAME)

    @property
    def use_https(self) -> bool:
        return self.options.github_clone_backend == "https"

    async def _initialize_client(self) -> None:
        if self._client_state is InitState.READY:
            return

        async with self._client_lock:
            if self._client_state is InitState.READY:
                return

            self._client_state = InitState.INITIALIZING

            try:
                github_client: GitHubReposClient = self._github_client or GitHubReposClient(logger=self.logger)

                authenticated_user: str | None = None
                if github_client.has_token:
                    authenticated_user = await github_client.get_authenticated_user()
                    self.logger.debug(f"Authenticated to GitHub as {authenticated_user}")
            except BaseException:
                self._client_state = InitState.UNINITIALIZED
                raise

            self._github_client = github_client
            self._authenticated_user = authenticated_user
            self._client_state = InitState.READY

    async def get_github_client(self) -> GitHubReposClient:
        await self._initialize_client()

        if self._github_client is None:
            msg = "GitHub client is not initialized"
            raise RuntimeError(msg)

        return self._github_client

    async def get_authenticated_user(self) -> str | None:
        """The login the GitHub token belongs to, None without a token."""

        await self._initialize_client()

        return self._authenticated_user

    async def get_identity(self) -> str | None:
        """Whose repositories count as "mine": the token's login, else the configured GitHub user."""

        return await self.get_authenticated_user() or self.options.github_user

    async def get_github_user(self) -> str | None:
        """Whose repositories are looked up on GitHub: the configured GitHub user, else the token's login."""

        return self.options.github_user or await self.get_authenticated_user()

    async def discover_alts(self) -> list[str]:
        """The names of the subfolders of the alt accounts folder."""

        as_folder = AsyncPath(self.as_folder)

        if not await as_folder.is_dir():
            self.logger.debug(f"Alt accounts folder {as_folder} does not exist")
            return []

        return sorted([entry.name async for entry in as_folder.iterdir() if await entry.is_dir()])

    async def get_alt(self) -> list[str]:
        """The alt account names, taken from the options or discovered once and then reused."""

        if isinstance(self.options.alt, list) and self.options.alt:
            return list(self.options.alt)

        if self.options.alt is False:
            return []

        if self._alts is not None:
            return self._alts

        async with self._alts_lock:
            if self._alts is None:
                self._alts = await self.discover_alts()
                self.logger.debug(f"Discovered alt accounts: {self._alts}")

        return self._alts or []

    async def gather_sources(self) -> list[Source]:
        """Every source to search, in priority order."""

        sources: list[Source] = [
            Source.parent(str(self.repos_folder)),
            Source.parent(str(self.forks_folder)),
            Source.parent(str(self.gist_folder)),
            Source.glob(os.path.join(glob.escape(str(self.foreign_repos_folder)), "*", "*")),
        ]

        sources.extend(Source.parent(str(self.as_folder / alt)) for alt in await self.get_alt())

        sources.extend(Source.parent(parent) for parent in self.options.parent)
        sources.extend(Source.glob(pattern) for pattern in self.options.glob)
        sources.extend(Source.normalize(source) for source in self.options.source)

        if self.config is not None:
            sources.extend(Source.normalize(source) for source in self.config.sources)

        return sources

    async def get_finder(self) -> LocalFinder:
        return LocalFinder.from_sources(await self.gather_sources(), cwd=self.options.cwd, logger=self.logger)

    async def get_expected_parent_folder(self, repo: Repo | RemoteRepository) -> Path:
        """The folder a remote repository belongs in, judged by its owner and whether it is a fork."""

        remote: RemoteRepository = repo.expect_remote() if isinstance(repo, Repo) else repo

        if remote.owner in await self.get_alt():
            return self.as_folder / remote.owner

        identity: str | None = await self.get_identity()

        # without any identity every owner is foreign
        if remote.owner != identity:
            return self.foreign_repos_folder / remote.owner

        if remote.fork:
            return self.forks_folder

        return self.repos_folder

    async def get_expected_folder(self, repo: Repo | RemoteRepository, folder_name: str | None = None) -> Path:
        remote: RemoteRepository = repo.expect_remote() if isinstance(repo, Repo) else repo

        return await self.get_expected_parent_folder(remote) / (folder_name or remote.name)

    async def find_local(self, needle: str | None = None) -> Match | None:
        """Find a repository on disk. Without a needle, the repository enclosing the working directory."""

        finder: LocalFinder = await self.get_finder()

        return await finder.find_by_name(needle)

    async def find_remote(self, needle: str) -> Repo | None:
        github_user: str | None = await self.get_github_user()

        if github_user is None:
            raise GitHubUserRequiredError

        github_client: GitHubReposClient = await self.get_github_client()

        if remote := await github_client.find_repo(name=needle, owner=github_user):
            return Repo.from_remote(remote)

        return None

    async def find_anywhere(self, needle: str | None = None) -> FindResult | None:
        """Find a repository on disk first, then on GitHub under the configured user."""

        if not needle:
            raise NeedleRequiredError

        if match := await self.find_local(needle):
            return FindResult(repo=match.repo, origin=FindOrigin.LOCAL, match=match)

        self.logger.debug(f"No local repo found for {needle}, looking on GitHub")

        if repo := await self.find_remote(needle):
            return FindResult(repo=repo, origin=FindOrigin.GITHUB)

        return None

    async def find_or_clone(self, needle: str | None = None) -> Repo | None:
        """Find a repository and make sure it is on disk, cloning a GitHub result into its expected folder."""

        result: FindResult | None = await self.find_anywhere(needle)

        if result is None:
            return None

        repo: Repo = result.repo

        if not repo.is_local():
            await repo.ensure_local(await self.get_expected_parent_folder(repo), use_https=self.use_https)

        return repo

    async def count_repos_by_account(self) -> dict[str, int]:
        """Count local repositories per account, judged by the folder they were found in.

        The main account is the configured GitHub user, else the token's login. It owns the checkouts directly
        in `repos_folder`, each alt owns the checkouts in its alt folder.
        Forks, gists and foreign checkouts are not counted.
        """

        github_user: str | None = await self.get_github_user()
        alts: list[str] = await self.get_alt()

        account_folders: dict[Path, str] = {self.as_folder / alt: alt for alt in alts}
        if github_user:
            account_folders[self.repos_folder] = github_user

        counts: dict[str, int] = {}
        if github_user:
            counts[github_user] = 0
        for alt in alts:
            counts.setdefault(alt, 0)

        finder: LocalFinder = await self.get_finder()

        for match in await finder.get_all_matches():
            if account := account_folders.get(match.repo.as_folder().parent):
                counts[account] += 1

        return counts
