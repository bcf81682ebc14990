"""
Secret Scan Pipeline

Scans every non-merge commit of a pull request for leaked secrets, one
generation call per commit, and comments on the pull request when a leak is
found or when a commit could not be analyzed.
"""

import asyncio
from typing import List, Optional

from src.core.config import settings
from src.core.review_config import ReviewSettings, review_settings
from src.exceptions.review_exceptions import (
    AnalysisFailureKind,
    AnalysisTimeoutException,
    GenerationServiceException,
    GitHubAPIException,
    ResponseDecodeException,
    classify_analysis_failure,
)
from src.models.schemas.generation import TableType
from src.models.schemas.github import Commit, PullRequestRef
from src.models.schemas.review import CommitScanOutcome, CommitScanStatus, SecretScanReport
from src.models.schemas.verdicts import SecretLeakVerdict, UnparseableResponse
from src.services.github.pr_api_client import PRApiClient
from src.services.jamai.client import JamAIClient
from src.services.jamai.response_parser import parse_secret_leak
from src.services.review.prompts import (
    ANALYSIS_FAILURE_COMMENT_TEMPLATE,
    ANALYSIS_TIMEOUT_COMMENT_TEMPLATE,
    CONTENT_TOO_LARGE_COMMENT_TEMPLATE,
    LEAK_COMMENT_TEMPLATE,
    build_commit_diff,
    build_secret_scan_prompt,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)


class SecretScanPipeline:
    """
    Per-commit secret leak scan for one pull request.

    Merge commits are never analyzed and each listed commit is analyzed at
    most once. A failure while analyzing one commit is reported on the pull
    request and the scan moves on to the next commit.
    """

    def __init__(
        self,
        github_client: PRApiClient,
        jamai_client: JamAIClient,
        config: Optional[ReviewSettings] = None,
        bot_version: Optional[str] = None,
    ):
        self.github_client = github_client
        self.jamai_client = jamai_client
        self.config = config or review_settings
        self.bot_version = bot_version or settings.BOT_VERSION

    async def run(self, pull_request: PullRequestRef) -> SecretScanReport:
        """Scan every non-merge commit of `pull_request`."""
        report = SecretScanReport(pull_request=pull_request)

        try:
            commits = await self.github_client.list_pr_commits(pull_request.repo_name, pull_request.number)
        except GitHubAPIException as e:
            logger.error(f"Error listing commits for PR {pull_request}: {e.message}")
            report.error_message = e.message
            return report

        table_id = self.config.table_id_for(pull_request.owner, pull_request.repo, self.bot_version)
        seen = set()
        unique_commits: List[Commit] = []
        for commit in commits:
            if commit.sha in seen:
                continue
            seen.add(commit.sha)
            unique_commits.append(commit)

        max_concurrent = self.config.limits.max_concurrent_commits
        if max_concurrent <= 1:
            for commit in unique_commits:
                report.outcomes.append(await self.scan_commit(pull_request, table_id, commit))
        else:
            semaphore = asyncio.Semaphore(max_concurrent)

            async def _bounded(commit: Commit) -> CommitScanOutcome:
                async with semaphore:
                    return await self.scan_commit(pull_request, table_id, commit)

            report.outcomes.extend(await asyncio.gather(*(_bounded(c) for c in unique_commits)))

        analyzed = len(report.analyzed_shas())
        logger.info(
            f"Secret scan finished for PR {pull_request}: {analyzed} analyzed, "
            f"{len(report.outcomes) - analyzed} merge commits skipped"
        )
        return report

    async def scan_commit(self, pull_request: PullRequestRef, table_id: str, commit: Commit) -> CommitScanOutcome:
        """
        Analyze one commit and post the resulting comment, if any.

        Never raises for a failure of this commit; any error becomes a FAILED
        outcome so the remaining commits are still scanned.
        """
        try:
            return await self._scan_commit(pull_request, table_id, commit)
        except Exception as e:
            logger.exception(f"Unexpected error scanning commit {commit.sha}: {e}")
            return await self._report_failure(pull_request, commit.sha, e)

    async def _scan_commit(self, pull_request: PullRequestRef, table_id: str, commit: Commit) -> CommitScanOutcome:
        if commit.is_merge:
            logger.debug(f"Skipping merge commit {commit.sha}")
            return CommitScanOutcome(sha=commit.sha, status=CommitScanStatus.SKIPPED_MERGE)

        logger.info(f"Processing commit {commit.sha} of PR {pull_request}")
        diff = await self._fetch_diff(pull_request, commit.sha)
        row = {self.config.columns.secrets_body: build_secret_scan_prompt(commit.sha, diff)}

        timeout = self.config.limits.analysis_timeout_seconds
        try:
            result = await asyncio.wait_for(
                self.jamai_client.generate_text(
                    TableType.ACTION,
                    table_id,
                    row,
                    self.config.columns.secrets_response,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            error = AnalysisTimeoutException(f"commit {commit.sha}", timeout)
            logger.error(error.message)
            return await self._report_failure(pull_request, commit.sha, error)
        except GenerationServiceException as e:
            logger.error(f"Error generating secret scan for commit {commit.sha}: {e.message}")
            return await self._report_failure(pull_request, commit.sha, e)

        try:
            verdict = parse_secret_leak(result)
        except ResponseDecodeException as e:
            logger.error(f"Error decoding secret scan for commit {commit.sha}: {e.reason}")
            return await self._report_failure(pull_request, commit.sha, e)

        return await self._report_verdict(pull_request, commit.sha, verdict)

    async def _fetch_diff(self, pull_request: PullRequestRef, sha: str) -> str:
        # A missing diff degrades to an empty one; the commit is still scanned.
        try:
            commit = await self.github_client.get_commit(pull_request.repo_name, sha)
        except GitHubAPIException as e:
            logger.error(f"Error fetching diff for commit {sha}: {e.message}")
            return ""
        return build_commit_diff(commit)

    async def _report_verdict(
        self,
        pull_request: PullRequestRef,
        sha: str,
        verdict: SecretLeakVerdict,
    ) -> CommitScanOutcome:
        if not verdict.leak:
            logger.info(f"No leak found in commit {sha}")
            return CommitScanOutcome(sha=sha, status=CommitScanStatus.SILENT, verdict=verdict)

        attributed = verdict.attributed_commit(sha)
        logger.warning(f"Leak reported in commit {attributed} while scanning {sha}")
        body = LEAK_COMMENT_TEMPLATE.format(sha=attributed, response=verdict.response)
        comment_id = await self._post_comment(pull_request, body)
        return CommitScanOutcome(
            sha=sha,
            status=CommitScanStatus.COMMENTED,
            attributed_commit=attributed,
            verdict=verdict,
            comment_id=comment_id,
        )

    async def _report_failure(
        self,
        pull_request: PullRequestRef,
        sha: str,
        error: Exception,
    ) -> CommitScanOutcome:
        raw_text = error.raw_text if isinstance(error, ResponseDecodeException) else ""
        kind = classify_analysis_failure(error, self.config.context_window_marker, raw_text)

        if kind == AnalysisFailureKind.CONTENT_TOO_LARGE:
            body = CONTENT_TOO_LARGE_COMMENT_TEMPLATE.format(sha=sha)
        elif kind == AnalysisFailureKind.CANCELLED:
            body = ANALYSIS_TIMEOUT_COMMENT_TEMPLATE.format(
                sha=sha, timeout_seconds=self.config.limits.analysis_timeout_seconds
            )
        else:
            body = ANALYSIS_FAILURE_COMMENT_TEMPLATE.format(sha=sha, error=error, response=raw_text)

        comment_id = await self._post_comment(pull_request, body)
        verdict = None
        if isinstance(error, ResponseDecodeException):
            verdict = UnparseableResponse(raw_text=error.raw_text, reason=error.reason)
        return CommitScanOutcome(
            sha=sha,
            status=CommitScanStatus.FAILED,
            failure_kind=kind,
            error_message=str(error),
            verdict=verdict,
            comment_id=comment_id,
        )

    async def _post_comment(self, pull_request: PullRequestRef, body: str) -> Optional[int]:
        try:
            comment = await self.github_client.create_issue_comment(
                pull_request.repo_name, pull_request.number, body
            )
        except GitHubAPIException as e:
            logger.error(f"Error commenting on PR {pull_request}: {e.message}")
            return None
        return comment.id
