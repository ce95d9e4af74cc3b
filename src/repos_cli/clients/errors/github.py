from repos_cli.errors import ExtraInfoType, ReposCliError


class ClientError(ReposCliError):
    """An error from the GitHub repos client."""


class RequestError(ClientError):
    """A request to the GitHub API failed."""

    def __init__(self, action: str, message: str | None = None, extra_info: ExtraInfoType | None = None):
        if not extra_info:
            extra_info = {}
        super().__init__(message="A request error occured.", extra_info={"action": action, "message": message, **extra_info})


class ResourceNotFoundError(RequestError):
    """The requested GitHub resource does not exist or is not visible to the token."""

    def __init__(self, action: str, resource: str | None = None, extra_info: ExtraInfoType | None = None):
        if not extra_info:
            extra_info = {}
        super().__init__(
            action=action,
            message="The resource could not be found.",
            extra_info={"resource": resource, **extra_info},
        )


class GitHubUserRequiredError(ClientError):
    """Listing repositories needs either a token or a GitHub user name."""

    def __init__(self):
        super().__init__(message="No GitHub user specified – Either specify $GITHUB_USER or $GITHUB_TOKEN or --github-user")
