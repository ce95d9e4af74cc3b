import asyncio
import glob
import os
from collections.abc import Iterable, Sequence
from logging import Logger, getLogger
from pathlib import Path
from typing import Self

from anyio import Path as AsyncPath

from repos_cli.errors import NoSourcesError, RepoNotFoundError
from repos_cli.models.source import Source, SourceInput, SourceType
from repos_cli.repo import GIT_FOLDER_NAME, Repo, normalize_folder

GIT_HEAD_FILE = "HEAD"


class Match:
    """A repository found on disk together with the source that found it."""

    repo: Repo
    source: Source

    def __init__(self, source: Source, repo: Repo):
        self.source = source
        self.repo = repo

    def __repr__(self) -> str:
        return f"Match(source={self.source!s}, repo={self.repo!s})"


async def is_git_folder(folder: str | os.PathLike[str]) -> bool:
    """Whether `folder` is the root of a git checkout, judged by the presence of `.git/HEAD`."""
    return await AsyncPath(folder, GIT_FOLDER_NAME, GIT_HEAD_FILE).exists()


def glob_git_folders(pattern: str) -> list[str]:
    """Match `<pattern>/.git` and keep the directories."""
    git_pattern: str = os.path.join(os.path.expanduser(pattern), GIT_FOLDER_NAME)
    return [entry for entry in glob.iglob(git_pattern, recursive=True) if os.path.isdir(entry)]


class LocalFinder:
    """Finds repositories on disk by searching a list of sources in order."""

    base_sources: list[Source]
    cwd: Path
    logger: Logger

    def __init__(self, cwd: str | os.PathLike[str] | None = None, logger: Logger | None = None):
        self.base_sources = []
        self.cwd = normalize_folder(cwd) if cwd is not None else Path.cwd()
        self.logger = logger or getLogger(__name__)

    @classmethod
    def from_sources(cls, sources: Iterable[SourceInput], cwd: str | os.PathLike[str] | None = None, logger: Logger | None = None) -> Self:
        finder = cls(cwd=cwd, logger=logger)
        for source in sources:
            finder.add_source(source)
        return finder

    def add_source(self, source: SourceInput) -> None:
        self.base_sources.append(Source.normalize(source))

    def add_parent_source(self, parent_folder: str) -> None:
        self.add_source(Source.parent(parent_folder))

    def add_glob_source(self, pattern: str) -> None:
        self.add_source(Source.glob(pattern))

    def add_deep_source(self, folder: str) -> None:
        self.add_source(Source.deep(folder))

    async def find_in_parent(self, parent_folder: str | os.PathLike[str]) -> list[Repo]:
        """The immediate subfolders of `parent_folder` that contain a `.git` folder, hidden subfolders excluded."""

        folder = AsyncPath(normalize_folder(parent_folder))

        if not await folder.is_dir():
            self.logger.debug(f"Parent folder {folder} does not exist")
            return []

        repos: list[Repo] = []

        async for entry in folder.iterdir():
            if entry.name.startswith("."):
                continue

            if await (entry / GIT_FOLDER_NAME).is_dir():
                repos.append(Repo.from_folder(Path(entry)))

        return repos

    async def find_in_glob(self, pattern: str) -> list[Repo]:
        """The folders matching `pattern` that contain a `.git` folder."""

        git_folders: list[str] = await asyncio.to_thread(glob_git_folders, pattern)

        return [Repo.from_folder(git_folder) for git_folder in git_folders]

    async def find_upward(self, start_folder: str | os.PathLike[str] | None = None) -> Repo | None:
        """The nearest repository enclosing `start_folder`, or None when the root is reached first."""

        current_folder: Path = normalize_folder(start_folder) if start_folder is not None else self.cwd

        while True:
            if await is_git_folder(current_folder):
                return Repo.from_folder(current_folder)

            parent_folder: Path = current_folder.parent

            if parent_folder == current_folder:
                return None

            current_folder = parent_folder

    async def get_all_repos_from_source(self, source: Source) -> list[Repo]:
        match source.type:
            case SourceType.DEEP:
                repo: Repo | None = await self.find_upward(source.input)
                return [repo] if repo else []
            case SourceType.GLOB:
                return await self.find_in_glob(source.input)
            case SourceType.PARENT:
                return await self.find_in_parent(source.input)

    async def get_all_matches(self, extra_sources: Sequence[SourceInput] | None = None) -> list[Match]:
        """Search every source in order. A folder found by more than one source is reported once, for the first source."""

        sources: list[Source] = [*self.base_sources, *[Source.normalize(source) for source in extra_sources or []]]

        if not sources:
            raise NoSourcesError

        matches: list[Match] = []
        seen_folders: set[Path] = set()

        for source in sources:
            for repo in await self.get_all_repos_from_source(source):
                folder: Path = repo.as_folder()

                if folder in seen_folders:
                    self.logger.debug(f"Skipping {folder} from {source}, it was already found by an earlier source")
                    continue

                seen_folders.add(folder)
                matches.append(Match(source=source, repo=repo))

        return matches

    async def get_all_repos(self, extra_sources: Sequence[SourceInput] | None = None) -> list[Path]:
        matches: list[Match] = await self.get_all_matches(extra_sources)
        return [match.repo.as_folder() for match in matches]

    async def find_by_name(self, needle: str | None = None, extra_sources: Sequence[SourceInput] | None = None) -> Match | None:
        """Find the repository whose folder is named `needle`.

        Without a needle, the repository enclosing the working directory is returned. When several
        repositories share the name, the first one in source order wins and the others are logged.
        """

        if not needle:
            source: Source = Source.deep(str(self.cwd))

            if repo := await self.find_upward(self.cwd):
                return Match(source=source, repo=repo)

            return None

        matches: list[Match] = await self.get_all_matches(extra_sources)

        suitable_matches: list[Match] = [match for match in matches if match.repo.name == needle]

        if not suitable_matches:
            return None

        if len(suitable_matches) > 1:
            folders: str = ", ".join(str(match.repo.as_folder()) for match in suitable_matches)
            self.logger.warning(f"Multiple repos found for {needle}: {folders}")

        return suitable_matches[0]

    async def expect_by_name(self, needle: str | None = None, extra_sources: Sequence[SourceInput] | None = None) -> Match:
        if match := await self.find_by_name(needle, extra_sources):
            return match

        searched: list[Source] = [*self.base_sources, *[Source.normalize(source) for source in extra_sources or []]]

        if not needle:
            searched = [Source.deep(str(self.cwd))]

        raise RepoNotFoundError(needle=needle or str(self.cwd), searched=[str(source) for source in searched])
