"""
Analysis Verdict Schemas

Strict shapes decoded from the aggregated text of a generation call.
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class ChangelogSuggestion(BaseModel):
    """Free-form changelog reminder, posted verbatim."""

    text: str


class SecretLeakVerdict(BaseModel):
    """
    Result of scanning one commit diff for leaked secrets.

    `commit` is only set when the model attributes the leak to a commit other
    than the one requested; it is never filled in by decoding.
    """

    model_config = ConfigDict(strict=True, extra="ignore", frozen=True)

    leak: bool
    commit: Optional[str] = None
    response: str

    def attributed_commit(self, scanned_sha: str) -> str:
        """Commit to name in the comment: the override when present, else the scanned one."""
        return self.commit or scanned_sha


class IssueCreationVerdict(BaseModel):
    """Payload for opening an issue from generated text."""

    model_config = ConfigDict(strict=True, extra="ignore", frozen=True)

    title: str
    body: str
    labels: List[str] = Field(default_factory=list)


class UnparseableResponse(BaseModel):
    """Aggregated text that could not be decoded into the expected shape."""

    raw_text: str
    reason: str
