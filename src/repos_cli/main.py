import asyncio
import logging
import subprocess
from collections.abc import Coroutine
from logging import Logger, getLogger
from pathlib import Path
from typing import Any, Literal

import click
from rich.console import Console
from rich.logging import RichHandler

from repos_cli.clients.errors.github import ClientError
from repos_cli.clients.github import GitHubReposClient
from repos_cli.clients.models.github import RemoteRepository
from repos_cli.config import DEFAULT_CONFIG_FILE, ContextOptions
from repos_cli.context import Context, FindResult
from repos_cli.errors import ReposCliError, RepoNotFoundError
from repos_cli.finder import LocalFinder, Match
from repos_cli.models.status import RepoStatus
from repos_cli.repo import Repo, RemoteSlug

logger: Logger = getLogger(__name__)

ACCOUNTS_RULE = "─" * 50


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )


def run[T](coroutine: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coroutine)
    except ReposCliError as e:
        raise click.ClickException(str(e)) from e


def launch_editor(code_path: str, folder: Path) -> None:
    try:
        subprocess.run([code_path, "--new-window", "--goto", str(folder)], check=True)  # noqa: S603
    except (OSError, subprocess.CalledProcessError) as e:
        msg = f"Could not open {folder} with {code_path}: {e}"
        raise click.ClickException(msg) from e


async def load_context(options: ContextOptions) -> Context:
    return await Context.from_options(options)


@click.group()
@click.option("--repos-folder", type=click.Path(file_okay=False, path_type=Path), help="The folder your own repositories live in")
@click.option("--forks-folder", type=click.Path(file_okay=False, path_type=Path), help="The folder forks are cloned into")
@click.option("--gist-folder", type=click.Path(file_okay=False, path_type=Path), help="The folder gists are cloned into")
@click.option(
    "--foreign-repos-folder", type=click.Path(file_okay=False, path_type=Path), help="The folder repositories of other owners go into"
)
@click.option("--as-folder", type=click.Path(file_okay=False, path_type=Path), help="The folder alt account repositories are stored in")
@click.option("--alt", multiple=True, help="Alt account names to include, discovered from the alt folder when omitted")
@click.option("--github-user", envvar="GITHUB_USER", help="The GitHub user for remote retrieval")
@click.option("--github-clone-backend", type=click.Choice(["ssh", "https"]), default="ssh", show_default=True)
@click.option("--parent", multiple=True, help="A folder whose subfolders are repositories")
@click.option("--glob", multiple=True, help="A glob pattern matching repository folders")
@click.option("--source", multiple=True, help="A folder or glob pattern, classified by its syntax")
@click.option("--config-file", type=click.Path(dir_okay=False, path_type=Path), default=DEFAULT_CONFIG_FILE, show_default=True)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output")
@click.pass_context
def cli(
    ctx: click.Context,
    repos_folder: Path | None,
    forks_folder: Path | None,
    gist_folder: Path | None,
    foreign_repos_folder: Path | None,
    as_folder: Path | None,
    alt: tuple[str, ...],
    github_user: str | None,
    github_clone_backend: Literal["ssh", "https"],
    parent: tuple[str, ...],
    glob: tuple[str, ...],
    source: tuple[str, ...],
    config_file: Path,
    verbose: bool,
):
    """Find, clone and open your repositories."""

    configure_logging(verbose)

    options = ContextOptions(
        forks_folder=forks_folder,
        gist_folder=gist_folder,
        foreign_repos_folder=foreign_repos_folder,
        as_folder=as_folder,
        alt=list(alt) or None,
        github_user=github_user or None,
        github_clone_backend=github_clone_backend,
        parent=list(parent),
        glob=list(glob),
        source=list(source),
        config_file=config_file,
    )

    if repos_folder is not None:
        options.repos_folder = repos_folder

    ctx.obj = options


@cli.command()
@click.argument("needle", required=False)
@click.pass_obj
def find(options: ContextOptions, needle: str | None):
    """Print the folder of a local repository, or of the enclosing one without a needle."""

    async def _find() -> Match:
        context: Context = await load_context(options)
        finder: LocalFinder = await context.get_finder()
        return await finder.expect_by_name(needle)

    match: Match = run(_find())

    click.echo(match.repo.to_styled_string())


@cli.command()
@click.argument("needle")
@click.option("--print-only", is_flag=True, help="Print the URL instead of opening it")
@click.pass_obj
def go(options: ContextOptions, needle: str, print_only: bool):
    """Open the GitHub page of a repository."""

    async def _go() -> str | None:
        context: Context = await load_context(options)

        result: FindResult | None = await context.find_anywhere(needle)

        if result is None:
            raise RepoNotFoundError(needle=needle, searched=[str(source) for source in await context.gather_sources()])

        return await result.repo.get_github_url()

    url: str | None = run(_go())

    if url is None:
        msg = f"Repository {needle} has no GitHub remote"
        raise click.ClickException(msg)

    if print_only:
        click.echo(url)
        return

    click.launch(url)


@cli.command(name="open-in-code")
@click.argument("needle")
@click.option("--code-path", default="code", show_default=True, help="The editor executable")
@click.pass_obj
def open_in_code(options: ContextOptions, needle: str, code_path: str):
    """Open a repository in the editor, cloning it first if it only exists on GitHub."""

    async def _open_in_code() -> Repo:
        context: Context = await load_context(options)

        if repo := await context.find_or_clone(needle):
            return repo

        raise RepoNotFoundError(needle=needle, searched=[str(source) for source in await context.gather_sources()])

    repo: Repo = run(_open_in_code())

    logger.info(f"Opening {repo.as_folder()} in {code_path}")

    launch_editor(code_path, repo.as_folder())


@cli.command(name="list")
@click.pass_obj
def list_repos(options: ContextOptions):
    """Print the folder of every local repository."""

    async def _list() -> list[Path]:
        context: Context = await load_context(options)
        finder: LocalFinder = await context.get_finder()
        return await finder.get_all_repos()

    for folder in run(_list()):
        click.echo(folder)


@cli.command(name="list-sources")
@click.pass_obj
def list_sources(options: ContextOptions):
    """Print every source that is searched, in order."""

    async def _list_sources() -> list[tuple[str, str]]:
        context: Context = await load_context(options)
        return [(str(source.type), source.input) for source in await context.gather_sources()]

    for source_type, source_input in run(_list_sources()):
        click.echo(f"{source_type:<6} {source_input}")


@cli.command(name="list-accounts")
@click.pass_obj
def list_accounts(options: ContextOptions):
    """Print the main and alt accounts with the number of local repositories of each."""

    main_account, counts = run(_count_accounts(options))

    click.echo("\nAccounts:")
    click.echo(ACCOUNTS_RULE)

    for account, count in counts.items():
        label: str = f"{account} (main)" if account == main_account else account
        click.echo(f"{label:<30} {count:>5} repos")

    click.echo(ACCOUNTS_RULE)
    click.echo(f"{'Total':<30} {sum(counts.values()):>5} repos")


async def _count_accounts(options: ContextOptions) -> tuple[str | None, dict[str, int]]:
    context: Context = await load_context(options)
    return await context.get_github_user(), await context.count_repos_by_account()


@cli.command(name="list-remote")
@click.pass_obj
def list_remote(options: ContextOptions):
    """Print the full name of every repository that is not archived on GitHub."""

    async def _list_remote() -> list[RemoteRepository]:
        context: Context = await load_context(options)
        github_client: GitHubReposClient = await context.get_github_client()
        return await github_client.list_repos(github_user=options.github_user)

    for repository in run(_list_remote()):
        if not repository.archived:
            click.echo(repository.slug)


@cli.command(name="delete-local")
@click.argument("needle")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def delete_local(options: ContextOptions, needle: str, yes: bool):
    """Delete the local checkout of a repository."""

    async def _find() -> Match:
        context: Context = await load_context(options)
        finder: LocalFinder = await context.get_finder()
        return await finder.expect_by_name(needle)

    match: Match = run(_find())
    folder: Path = match.repo.as_folder()

    if not yes:
        click.confirm(f"Delete {folder}?", abort=True)

    run(match.repo.delete_local())

    click.echo(f"Deleted {folder}")


@cli.command()
@click.argument("needle", required=False)
@click.pass_obj
def status(options: ContextOptions, needle: str | None):
    """Print the working tree state of a local repository."""

    async def _status() -> tuple[Match, RepoStatus, RemoteSlug | None]:
        context: Context = await load_context(options)
        finder: LocalFinder = await context.get_finder()
        match: Match = await finder.expect_by_name(needle)

        return match, await match.repo.get_status(), await match.repo.get_remote_origin_slug()

    match, repo_status, slug = run(_status())

    click.echo(match.repo.to_styled_string())

    branch: str = repo_status.current_branch or "(detached)"
    if repo_status.tracking:
        branch += f" → {repo_status.tracking}"
    click.echo(f"Branch: {branch}")
    click.echo(f"Ahead: {repo_status.ahead}, Behind: {repo_status.behind}")

    if repo_status.is_clean:
        click.echo("Working tree clean")
    else:
        for label, paths in (
            ("Conflicted", repo_status.conflicted),
            ("Modified", repo_status.modified),
            ("Created", repo_status.created),
            ("Deleted", repo_status.deleted),
            ("Renamed", repo_status.renamed),
            ("Not added", repo_status.not_added),
        ):
            if paths:
                click.echo(f"{label}: {len(paths)}")

    if slug is None:
        return

    missing_upstream_commits: int | None = run(_count_missing_upstream_commits(options, slug))

    if missing_upstream_commits is not None:
        click.echo(f"Upstream commits missing from fork: {missing_upstream_commits}")


async def _count_missing_upstream_commits(options: ContextOptions, slug: RemoteSlug) -> int | None:
    context: Context = await load_context(options)
    github_client: GitHubReposClient = await context.get_github_client()

    try:
        repository: RemoteRepository | None = await github_client.get_repository(owner=slug.owner, repo=slug.repo)

        if repository is None or not repository.fork:
            return None

        return await github_client.count_commits_behind_upstream(repository)
    except ClientError as e:
        logger.warning(f"Could not compare {slug.owner}/{slug.repo} with its upstream: {e}")
        return None


if __name__ == "__main__":
    cli()
