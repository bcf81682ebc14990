"""
Review Run Schemas

Input contract for a review run and the per-check results it reports.
"""

from enum import Enum
from typing import List, Optional, Union
from pydantic import BaseModel, Field

from src.exceptions.review_exceptions import AnalysisFailureKind
from src.models.schemas.github import PullRequestRef
from src.models.schemas.verdicts import SecretLeakVerdict, UnparseableResponse


class ReviewCheck(str, Enum):
    CHANGELOG = "changelog"
    SECRETS = "secrets"


class ReviewRequest(BaseModel):
    """Input contract for a pull request review run."""

    owner: str = Field(..., min_length=1, description="Repository owner")
    repo: str = Field(..., min_length=1, description="Repository name")
    pr_number: int = Field(..., ge=1, description="Pull request number")
    checks: List[ReviewCheck] = Field(
        default_factory=lambda: [ReviewCheck.CHANGELOG, ReviewCheck.SECRETS],
        description="Checks to run, in order"
    )
    clear_previous_comments: bool = Field(
        False, description="Delete earlier bot comments before posting new ones"
    )

    def pull_request(self) -> PullRequestRef:
        return PullRequestRef(owner=self.owner, repo=self.repo, number=self.pr_number)


class CommitScanStatus(str, Enum):
    SKIPPED_MERGE = "skipped_merge"
    COMMENTED = "commented"
    SILENT = "silent"
    FAILED = "failed"


class CommitScanOutcome(BaseModel):
    """What happened to one commit during a secret scan."""

    sha: str
    status: CommitScanStatus
    attributed_commit: Optional[str] = None
    failure_kind: Optional[AnalysisFailureKind] = None
    error_message: Optional[str] = None
    verdict: Optional[Union[SecretLeakVerdict, UnparseableResponse]] = None
    comment_id: Optional[int] = None


class SecretScanReport(BaseModel):
    pull_request: PullRequestRef
    outcomes: List[CommitScanOutcome] = Field(default_factory=list)
    error_message: Optional[str] = None

    def analyzed_shas(self) -> List[str]:
        return [o.sha for o in self.outcomes if o.status != CommitScanStatus.SKIPPED_MERGE]


class CheckStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class ChangelogCheckResult(BaseModel):
    pull_request: PullRequestRef
    status: CheckStatus
    changelog_updated: bool = False
    comment_id: Optional[int] = None
    error_message: Optional[str] = None


class ReviewRunResult(BaseModel):
    pull_request: PullRequestRef
    deleted_comments: int = 0
    changelog: Optional[ChangelogCheckResult] = None
    secrets: Optional[SecretScanReport] = None
