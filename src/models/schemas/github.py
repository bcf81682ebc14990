"""
GitHub Schemas

Immutable views of the pull request data the review checks consume.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class ChangedFile(BaseModel):
    """A file touched by a commit or pull request."""

    model_config = ConfigDict(frozen=True)

    filename: str
    patch: Optional[str] = Field(None, description="Unified diff; absent for binary or rename-only changes")

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ChangedFile":
        return cls(filename=data.get("filename", ""), patch=data.get("patch"))


class Commit(BaseModel):
    """A commit with its parents and, when fetched individually, its files."""

    model_config = ConfigDict(frozen=True)

    sha: str
    parents: List[str] = Field(default_factory=list)
    files: List[ChangedFile] = Field(default_factory=list)

    @property
    def is_merge(self) -> bool:
        """Commits with more than one parent are merge commits."""
        return len(self.parents) > 1

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Commit":
        return cls(
            sha=data.get("sha", ""),
            parents=[parent.get("sha", "") for parent in data.get("parents") or []],
            files=[ChangedFile.from_api(f) for f in data.get("files") or []],
        )


class IssueComment(BaseModel):
    """A comment on an issue or pull request conversation."""

    model_config = ConfigDict(frozen=True)

    id: int
    body: str = ""
    user_login: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "IssueComment":
        user = data.get("user") or {}
        return cls(
            id=data["id"],
            body=data.get("body") or "",
            user_login=user.get("login") or "",
        )


class PullRequestRef(BaseModel):
    """Identifies one pull request."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., min_length=1)
    repo: str = Field(..., min_length=1)
    number: int = Field(..., ge=1)

    @property
    def repo_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return f"{self.repo_name}#{self.number}"
