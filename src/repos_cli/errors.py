ExtraInfoType = dict[str, str | None]


class ReposCliError(Exception):
    """An error raised while resolving repositories."""

    def __init__(self, message: str, extra_info: ExtraInfoType | None = None):
        msg = message
        if extra_info:
            msg += " (" + ", ".join([f"{key}: {value}" for key, value in extra_info.items() if value is not None]) + ")"
        super().__init__(msg)


class ConfigError(ReposCliError):
    """The configuration could not be loaded."""

    def __init__(self, message: str, config_file: str | None = None):
        super().__init__(message=message, extra_info={"config_file": config_file})


class NoSourcesError(ConfigError):
    """No search sources were configured."""

    def __init__(self):
        super().__init__(message="No search sources specified")


class NeedleRequiredError(ConfigError):
    """A repository name was required but none was given."""

    def __init__(self):
        super().__init__(message="No needle provided")


class RepoNotFoundError(ReposCliError):
    """No repository matched the needle in any of the searched sources."""

    def __init__(self, needle: str, searched: list[str] | None = None):
        self.needle: str = needle
        self.searched: list[str] = searched or []

        msg = f"No repo found for needle: {needle}"
        if self.searched:
            msg += "\nSearched in:\n" + "\n".join(f"• {source}" for source in self.searched)

        super().__init__(message=msg)


class RepoFacetError(ReposCliError):
    """A repository handle was used in a mode it does not have."""


class ExpectedLocalRepoError(RepoFacetError):
    """A local-only operation was called on a remote-only repository."""

    def __init__(self, slug: str):
        super().__init__(message=f"Expected local repo, got remote repo: {slug}")


class ExpectedRemoteRepoError(RepoFacetError):
    """A remote-only operation was called on a local-only repository."""

    def __init__(self, folder: str):
        super().__init__(message=f"Expected remote repo, got local repo: {folder}")


class NotAForkError(ReposCliError):
    """A fork-only operation was called on a repository that is not a fork."""

    def __init__(self, slug: str):
        super().__init__(message=f"Repository {slug} is not a fork")


class CloneError(ReposCliError):
    """Cloning a repository failed."""

    def __init__(self, slug: str, target_folder: str, message: str | None = None):
        super().__init__(message="Error cloning repository.", extra_info={"repo": slug, "target": target_folder, "message": message})
