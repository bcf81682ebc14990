"""Removal of earlier bot comments before a review run posts new ones."""

from src.exceptions.review_exceptions import GitHubAPIException
from src.models.schemas.github import PullRequestRef
from src.services.github.pr_api_client import PRApiClient
from src.utils.logging import get_logger

logger = get_logger(__name__)


async def delete_bot_comments(github_client: PRApiClient, pull_request: PullRequestRef, bot_name: str) -> int:
    """
    Delete every comment on the pull request whose author login contains `bot_name`.

    Returns:
        Number of comments deleted
    """
    try:
        comments = await github_client.list_issue_comments(pull_request.repo_name, pull_request.number)
    except GitHubAPIException as e:
        logger.error(f"Error fetching comments on PR {pull_request}: {e.message}")
        return 0

    deleted = 0
    for comment in comments:
        if bot_name not in comment.user_login:
            continue
        logger.info(f"Deleting {bot_name}'s comment with ID {comment.id}")
        try:
            await github_client.delete_issue_comment(pull_request.repo_name, comment.id)
        except GitHubAPIException as e:
            logger.error(f"Error deleting {bot_name}'s comment with ID {comment.id}: {e.message}")
            continue
        deleted += 1

    return deleted
