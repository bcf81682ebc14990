"""
Review Service

Runs the configured checks for one pull request. Each check contains its own
failures, so one check failing never prevents the next from running.
"""

from typing import List, Optional

from src.core.config import settings
from src.core.review_config import ReviewSettings, review_settings
from src.models.schemas.github import PullRequestRef
from src.models.schemas.review import ReviewCheck, ReviewRunResult
from src.services.github.pr_api_client import PRApiClient
from src.services.jamai.client import JamAIClient
from src.services.review.changelog_check import ChangelogCheck
from src.services.review.comment_cleanup import delete_bot_comments
from src.services.review.secret_scan import SecretScanPipeline
from src.utils.logging import get_logger

logger = get_logger(__name__)


class ReviewService:
    def __init__(
        self,
        github_client: PRApiClient,
        jamai_client: JamAIClient,
        config: Optional[ReviewSettings] = None,
        bot_name: Optional[str] = None,
        bot_version: Optional[str] = None,
    ):
        self.github_client = github_client
        self.config = config or review_settings
        self.bot_name = bot_name or settings.BOT_NAME
        self.changelog_check = ChangelogCheck(github_client, jamai_client, self.config, bot_version)
        self.secret_scan = SecretScanPipeline(github_client, jamai_client, self.config, bot_version)

    async def run_pull_request_review(
        self,
        pull_request: PullRequestRef,
        checks: List[ReviewCheck],
        clear_previous_comments: bool = False,
    ) -> ReviewRunResult:
        logger.info(f"Starting review of PR {pull_request} with checks {[c.value for c in checks]}")
        result = ReviewRunResult(pull_request=pull_request)

        if clear_previous_comments:
            result.deleted_comments = await delete_bot_comments(
                self.github_client, pull_request, self.bot_name
            )

        if ReviewCheck.CHANGELOG in checks:
            result.changelog = await self.changelog_check.run(pull_request)

        if ReviewCheck.SECRETS in checks:
            result.secrets = await self.secret_scan.run(pull_request)

        logger.info(f"Finished review of PR {pull_request}")
        return result
