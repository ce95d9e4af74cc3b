import os
from collections.abc import Awaitable, Callable, Sequence
from logging import Logger, getLogger
from typing import Any, Literal, overload

from githubkit import GitHub as GitHubKit
from githubkit.auth.token import TokenAuthStrategy
from githubkit.exception import GitHubException as GitHubKitGitHubException
from githubkit.exception import RequestFailed as GitHubKitRequestFailed
from githubkit.response import Response as GitHubKitResponse
from githubkit.retry import RetryChainDecision, RetryRateLimit, RetryServerError
from pydantic import BaseModel

from repos_cli.clients.errors.github import GitHubUserRequiredError, RequestError, ResourceNotFoundError
from repos_cli.clients.models.github import CommitComparison, RemoteRepository
from repos_cli.errors import NotAForkError

NOT_FOUND_ERROR = 404

PER_PAGE = 100

GITHUBKIT_RESPONSE_TYPE = BaseModel | Sequence[BaseModel]


def extract_response[T: GITHUBKIT_RESPONSE_TYPE](response: GitHubKitResponse[T], /) -> T:
    """Extract the response from a response."""

    return response.parsed_data


def get_github_token() -> str | None:
    for env_var in ("GITHUB_TOKEN", "GITHUB_PERSONAL_ACCESS_TOKEN"):
        if token := os.environ.get(env_var):
            return token
    return None


def get_githubkit_client(token: str | None = None) -> GitHubKit[Any]:
    # Retry server errors up to 3 times
    retry_server_error = RetryServerError()

    # Retry rate limit errors up to 2 times
    retry_rate_limit = RetryRateLimit(max_retry=3)

    retry_chain = RetryChainDecision(
        retry_server_error,
        retry_rate_limit,
    )

    if token is None:
        token = get_github_token()

    if token is None:
        return GitHubKit(auto_retry=retry_chain)

    return GitHubKit[TokenAuthStrategy](auth=TokenAuthStrategy(token=token), auto_retry=retry_chain)


class GitHubReposClient:
    githubkit_client: GitHubKit[Any]
    logger: Logger

    has_token: bool

    log_requests: bool
    log_responses: bool
    log_on_error: bool

    def __init__(
        self,
        githubkit_client: GitHubKit[Any] | None = None,
        token: str | None = None,
        logger: Logger | None = None,
        log_requests: bool = False,
        log_responses: bool = False,
        log_on_error: bool = True,
    ):
        if token is None and githubkit_client is None:
            token = get_github_token()

        self.githubkit_client = githubkit_client or get_githubkit_client(token=token)
        self.has_token = token is not None or isinstance(self.githubkit_client.auth, TokenAuthStrategy)
        self.logger = logger or getLogger(__name__)
        self.log_requests = log_requests
        self.log_responses = log_responses
        self.log_on_error = log_on_error

        self._auth_owner: str | None = None

    def _get_loggers(
        self, log_request: bool | None = None, log_response: bool | None = None, log_on_error: bool | None = None
    ) -> tuple[Callable[[str], Any], Callable[[str], Any], Callable[[BaseException | str], Any]]:
        request_logger = self.logger.info if log_request or self.log_requests else self.logger.debug
        response_logger = self.logger.info if log_response or self.log_responses else self.logger.debug
        error_logger = self.logger.exception if log_on_error or self.log_on_error else self.logger.debug
        return request_logger, response_logger, error_logger

    @overload
    async def _perform_rest_request[T: GITHUBKIT_RESPONSE_TYPE](
        self,
        action: str,
        log_request: bool | None = None,
        log_response: bool | None = None,
        log_on_error: bool | None = None,
        error_on_not_found: Literal[False] = False,
        *,
        method: Callable[..., Awaitable[GitHubKitResponse[T]]],
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> T | None: ...

    @overload
    async def _perform_rest_request[T: GITHUBKIT_RESPONSE_TYPE](
        self,
        action: str,
        log_request: bool | None = None,
        log_response: bool | None = None,
        log_on_error: bool | None = None,
        error_on_not_found: Literal[True] = True,
        *,
        method: Callable[..., Awaitable[GitHubKitResponse[T]]],
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> T: ...

    async def _perform_rest_request[T: GITHUBKIT_RESPONSE_TYPE](
        self,
        action: str,
        log_request: bool | None = None,
        log_response: bool | None = None,
        log_on_error: bool | None = None,
        error_on_not_found: bool | None = None,
        *,
        method: Callable[..., Awaitable[GitHubKitResponse[T]]],
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> T | None:
        """Perform a request and extract the response.

        Args:
            action: The action being performed.
            log_request: Whether to log the request.
            log_response: Whether to log the response.
            log_on_error: Whether to log on error.
            error_on_not_found: Whether to raise an error if the resource is not found.

        Raises:
            ResourceNotFoundError: If the resource is not found and error_on_not_found is True.
            RequestError: If the request fails.
        """

        request_logger, response_logger, error_logger = self._get_loggers(
            log_request=log_request, log_response=log_response, log_on_error=log_on_error
        )

        request_logger(f"Performing {action} using {method.__name__} with kwargs {request_args}")

        try:
            response: GitHubKitResponse[T] = await method(**request_args)
        except GitHubKitRequestFailed as e:
            if e.response.status_code == NOT_FOUND_ERROR:
                if error_on_not_found:
                    raise ResourceNotFoundError(action=action, resource=str(request_args)) from e

                return None

            error_logger(f"RequestFailed error performing {action} using {method.__name__} with kwargs {request_args}: {e}")

            raise RequestError(action=action, message=str(e)) from e
        except GitHubKitGitHubException as e:
            error_logger(f"Error performing {action} using {method.__name__} with kwargs {request_args}: {e}")

            raise RequestError(action=action, message=str(e)) from e

        extracted_response = extract_response(response)

        response_logger(f"Extracted response for {action} using {method.__name__} with kwargs {request_args}: {extracted_response}")

        return extracted_response

    async def _paginate[T: BaseModel](
        self,
        action: str,
        method: Callable[..., Awaitable[GitHubKitResponse[list[T]]]],
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> list[T]:
        """Collect every page of a list endpoint."""

        request_logger, _, error_logger = self._get_loggers()

        request_logger(f"Paginating {action} using {method.__name__} with kwargs {request_args}")

        results: list[T] = []

        try:
            async for item in self.githubkit_client.rest.paginate(method, per_page=PER_PAGE, **request_args):  # pyright: ignore[reportUnknownMemberType]
                results.append(item)
        except GitHubKitGitHubException as e:
            error_logger(f"Error paginating {action} using {method.__name__} with kwargs {request_args}: {e}")

            raise RequestError(action=action, message=str(e)) from e

        return results

    async def get_authenticated_user(self) -> str:
        """Get the login of the user the token belongs to."""

        if self._auth_owner is not None:
            return self._auth_owner

        authenticated_user = await self._perform_rest_request(
            action="Get authenticated user",
            error_on_not_found=True,
            method=self.githubkit_client.rest.users.async_get_authenticated,
        )

        self._auth_owner = authenticated_user.login

        return self._auth_owner

    @overload
    async def get_repository(self, owner: str, repo: str, error_on_not_found: Literal[True] = True) -> RemoteRepository: ...

    @overload
    async def get_repository(self, owner: str, repo: str, error_on_not_found: Literal[False] = False) -> RemoteRepository | None: ...

    async def get_repository(
        self,
        owner: str,
        repo: str,
        error_on_not_found: bool = False,
    ) -> RemoteRepository | None:
        """Get a repository."""

        if githubkit_repository := await self._perform_rest_request(
            action="Get repository",
            log_request=True,
            error_on_not_found=error_on_not_found,
            method=self.githubkit_client.rest.repos.async_get,
            owner=owner,
            repo=repo,
        ):
            return RemoteRepository.from_githubkit(repository=githubkit_repository)

        return None

    async def find_repo(self, name: str, owner: str | None = None) -> RemoteRepository | None:
        """Find a repository by name, owned by `owner` or by the authenticated user.

        A repository that does not exist is not an error, None is returned instead.
        """

        if owner is None:
            owner = await self.get_authenticated_user()

        return await self.get_repository(owner=owner, repo=name, error_on_not_found=False)

    async def list_repos_for_user(self, username: str) -> list[RemoteRepository]:
        """List the public repositories of a user."""

        githubkit_repositories = await self._paginate(
            action="List repositories for user",
            method=self.githubkit_client.rest.repos.async_list_for_user,
            username=username,
        )

        return [RemoteRepository.from_githubkit(repository=repository) for repository in githubkit_repositories]

    async def list_repos_for_authenticated_user(self) -> list[RemoteRepository]:
        """List every repository the token has access to."""

        githubkit_repositories = await self._paginate(
            action="List repositories for authenticated user",
            method=self.githubkit_client.rest.repos.async_list_for_authenticated_user,
        )

        return [RemoteRepository.from_githubkit(repository=repository) for repository in githubkit_repositories]

    async def list_repos(self, github_user: str | None = None) -> list[RemoteRepository]:
        """List the repositories of the authenticated user, or of `github_user` when there is no token."""

        if self.has_token:
            return await self.list_repos_for_authenticated_user()

        if not github_user:
            raise GitHubUserRequiredError

        return await self.list_repos_for_user(username=github_user)

    async def compare_commits(self, owner: str, repo: str, basehead: str) -> CommitComparison:
        """Compare two refs, `basehead` is `BASE...HEAD` and may use `owner:branch` refs."""

        comparison = await self._perform_rest_request(
            action="Compare commits",
            error_on_not_found=True,
            method=self.githubkit_client.rest.repos.async_compare_commits,
            owner=owner,
            repo=repo,
            basehead=basehead,
        )

        return CommitComparison(ahead_by=comparison.ahead_by, behind_by=comparison.behind_by)

    async def count_commits_behind_upstream(self, repository: RemoteRepository) -> int:
        """Count the upstream commits a fork has not picked up yet."""

        if not repository.fork:
            raise NotAForkError(slug=repository.slug)

        # the compare range needs the parent and both default branches, list endpoints leave out the parent
        if repository.parent is None or repository.parent.default_branch is None or repository.default_branch is None:
            repository = await self.get_repository(owner=repository.owner, repo=repository.name, error_on_not_found=True)

        if repository.parent is None or repository.parent.default_branch is None:
            raise NotAForkError(slug=repository.slug)

        comparison = await self.compare_commits(
            owner=repository.owner,
            repo=repository.name,
            basehead=repository.get_upstream_comparison_range(),
        )

        return comparison.ahead_by

