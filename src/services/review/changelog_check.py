"""
Changelog Check

Single generation call over the whole pull request diff; the generated
changelog reminder is posted verbatim as a comment.
"""

import asyncio
from typing import Optional

from src.core.config import settings
from src.core.review_config import ReviewSettings, review_settings
from src.exceptions.review_exceptions import AnalysisTimeoutException, ReviewException
from src.models.schemas.generation import TableType
from src.models.schemas.github import PullRequestRef
from src.models.schemas.review import ChangelogCheckResult, CheckStatus
from src.services.github.pr_api_client import PRApiClient
from src.services.jamai.client import JamAIClient
from src.services.jamai.response_parser import parse_changelog_suggestion
from src.services.review.prompts import build_changelog_prompt, build_pull_request_changes
from src.utils.logging import get_logger

logger = get_logger(__name__)


class ChangelogCheck:
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

    async def run(self, pull_request: PullRequestRef) -> ChangelogCheckResult:
        """
        Ask for changelog suggestions and comment them on the pull request.

        Any failure stops the check and is returned as a FAILED result; it is
        never raised to the caller.
        """
        result = ChangelogCheckResult(pull_request=pull_request, status=CheckStatus.FAILED)

        try:
            files = await self.github_client.list_pr_files(pull_request.repo_name, pull_request.number)

            result.changelog_updated = any(
                f.filename == self.config.changelog_filename for f in files
            )
            logger.info(
                f"{self.config.changelog_filename} "
                f"{'updated' if result.changelog_updated else 'not updated'} in PR {pull_request}"
            )

            # The prompt is the same whether or not the changelog was touched.
            prompt = build_changelog_prompt(
                build_pull_request_changes(files), self.config.changelog_filename
            )
            table_id = self.config.table_id_for(pull_request.owner, pull_request.repo, self.bot_version)
            timeout = self.config.limits.analysis_timeout_seconds
            try:
                text = await asyncio.wait_for(
                    self.jamai_client.generate_text(
                        TableType.ACTION,
                        table_id,
                        {self.config.columns.pull_request_body: prompt},
                        self.config.columns.changelog_response,
                    ),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                raise AnalysisTimeoutException(f"changelog for PR {pull_request}", timeout)

            suggestion = parse_changelog_suggestion(text)
            if not suggestion.text.strip():
                logger.warning(f"Empty changelog suggestion for PR {pull_request}, nothing to post")
                result.status = CheckStatus.COMPLETED
                return result

            comment = await self.github_client.create_issue_comment(
                pull_request.repo_name, pull_request.number, suggestion.text
            )
            result.comment_id = comment.id
            result.status = CheckStatus.COMPLETED

        except ReviewException as e:
            logger.error(f"Changelog check failed for PR {pull_request}: {e.message}")
            result.error_message = e.message

        return result
