import re
from enum import StrEnum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field

# wildcards, closed character classes and extglob groups, other punctuation is a literal folder name
DYNAMIC_PATTERN = re.compile(r"[*?]|\[[^\]]+\]|[+@!]\(")


def is_dynamic_pattern(value: str) -> bool:
    return bool(DYNAMIC_PATTERN.search(value))


class SourceType(StrEnum):
    PARENT = "parent"
    """A folder whose immediate subfolders are repositories."""

    GLOB = "glob"
    """A glob pattern matching repository folders."""

    DEEP = "deep"
    """A folder inside a repository, the enclosing repository is found by walking upwards."""


class Source(BaseModel):
    """Where and how to look for repositories."""

    model_config = ConfigDict(frozen=True)

    input: str = Field(description="The folder, pattern or starting point to search.")
    type: SourceType = Field(description="How `input` is interpreted.")

    @classmethod
    def parent(cls, folder: str) -> Self:
        return cls(input=folder, type=SourceType.PARENT)

    @classmethod
    def glob(cls, pattern: str) -> Self:
        return cls(input=pattern, type=SourceType.GLOB)

    @classmethod
    def deep(cls, folder: str) -> Self:
        return cls(input=folder, type=SourceType.DEEP)

    @classmethod
    def normalize(cls, source: "SourceInput") -> Self:
        """Turn a plain string into a glob or parent source, pass typed sources through."""

        if isinstance(source, cls):
            return source

        if isinstance(source, str):
            if is_dynamic_pattern(source):
                return cls.glob(source)
            return cls.parent(source)

        return cls.model_validate(source)

    def __str__(self) -> str:
        return f"{self.type} “{self.input}”"


type SourceInput = Source | str | dict[str, str]
