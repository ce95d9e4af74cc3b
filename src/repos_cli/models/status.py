import re
from typing import Self

from pydantic import BaseModel, Field

AHEAD = re.compile(r"ahead (\d+)")
BEHIND = re.compile(r"behind (\d+)")

CONFLICT_CODES = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}


class RepoStatus(BaseModel):
    """The working tree state of a local checkout."""

    current_branch: str | None = Field(default=None, description="The checked out branch, None when detached.")
    tracking: str | None = Field(default=None, description="The upstream branch the current branch tracks.")
    ahead: int = Field(default=0, description="Commits on the current branch missing from the upstream branch.")
    behind: int = Field(default=0, description="Commits on the upstream branch missing from the current branch.")
    conflicted: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    created: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)
    renamed: list[str] = Field(default_factory=list)
    not_added: list[str] = Field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not (self.conflicted or self.modified or self.created or self.deleted or self.renamed or self.not_added)

    @classmethod
    def from_porcelain(cls, text: str) -> Self:
        """Parse the output of `git status --porcelain=v1 --branch`."""

        status = cls()

        for line in text.splitlines():
            if not line:
                continue

            if line.startswith("## "):
                status._parse_branch_line(line)
                continue

            code, path = line[:2], line[3:]

            if code == "??":
                status.not_added.append(path)
                continue

            if code in CONFLICT_CODES:
                status.conflicted.append(path)
                continue

            index, working_tree = code[0], code[1]

            if index == "R":
                status.renamed.append(path.split(" -> ")[-1])
            if index == "A":
                status.created.append(path)
            if "M" in code:
                status.modified.append(path)
            if "D" in (index, working_tree):
                status.deleted.append(path)

        return status

    def _parse_branch_line(self, line: str) -> None:
        branch = line.removeprefix("## ")

        if branch.startswith("HEAD (no branch)"):
            return

        for prefix in ("No commits yet on ", "Initial commit on "):
            branch = branch.removeprefix(prefix)

        # git forbids ".." in ref names, so "..." always separates the tracking branch
        counts: str | None = None
        if " [" in branch:
            branch, counts = branch.split(" [", 1)

        if "..." in branch:
            self.current_branch, self.tracking = branch.split("...", 1)
        else:
            self.current_branch = branch

        if counts:
            if ahead := AHEAD.search(counts):
                self.ahead = int(ahead.group(1))
            if behind := BEHIND.search(counts):
                self.behind = int(behind.group(1))
