"""
GitHub API Client for Pull Request Operations

Client for the pull request data the review checks read (files, commits) and
the conversation comments they write, with retry logic and typed errors.
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional
import httpx
from dataclasses import dataclass
from pydantic import ValidationError

from src.exceptions.review_exceptions import (
    GitHubAPIException,
    GitHubPRNotFoundException,
    GitHubCommitNotFoundException,
    GitHubRateLimitException,
    GitHubAuthenticationException,
    GitHubPermissionException,
    is_retryable_github_error,
)
from src.core.config import settings
from src.core.review_config import GitHubAPIConfig, review_settings
from src.models.schemas.github import ChangedFile, Commit, IssueComment
from src.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class GitHubAPIRateLimit:
    """Rate limit information from GitHub API headers."""
    limit: int
    remaining: int
    reset_time: int
    used: int

    @classmethod
    def from_headers(cls, headers: dict) -> Optional['GitHubAPIRateLimit']:
        """Create rate limit info from response headers."""
        if 'x-ratelimit-remaining' not in headers:
            return None
        try:
            return cls(
                limit=int(headers.get('x-ratelimit-limit', 0)),
                remaining=int(headers.get('x-ratelimit-remaining', 0)),
                reset_time=int(headers.get('x-ratelimit-reset', 0)),
                used=int(headers.get('x-ratelimit-used', 0))
            )
        except (ValueError, TypeError):
            return None

    @property
    def seconds_until_reset(self) -> int:
        """Seconds until rate limit resets."""
        return max(0, self.reset_time - int(time.time()))


class PRApiClient:
    """
    GitHub API client for pull request review operations.

    One httpx.AsyncClient is shared by every call made through an instance;
    close it with `aclose()` or use the client as an async context manager.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        config: Optional[GitHubAPIConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or review_settings.github_api
        self.base_url = (base_url or settings.GITHUB_API_URL).rstrip("/")
        token = token if token is not None else settings.GITHUB_TOKEN

        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self.config.api_version,
            "User-Agent": self.config.user_agent,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(self.config.request_timeout),
            transport=transport,
        )
        self._rate_limit_info: Optional[GitHubAPIRateLimit] = None

    async def __aenter__(self) -> "PRApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_pr_files(self, repo_name: str, pr_number: int) -> List[ChangedFile]:
        """
        Get files changed in a pull request with their patches.

        Raises:
            GitHubPRNotFoundException: If PR doesn't exist
            GitHubAPIException: For other API errors
        """
        endpoint = f"/repos/{repo_name}/pulls/{pr_number}/files"
        logger.info(f"Fetching PR files for {repo_name}#{pr_number}")

        try:
            items = await self._paginate(endpoint)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise GitHubPRNotFoundException(repo_name, pr_number)
            raise self._handle_http_error(e, f"list PR files for {repo_name}#{pr_number}")

        logger.info(f"Successfully fetched {len(items)} files for {repo_name}#{pr_number}")
        operation = f"list PR files for {repo_name}#{pr_number}"
        return [self._decode(ChangedFile.from_api, item, operation) for item in items]

    async def list_pr_commits(self, repo_name: str, pr_number: int) -> List[Commit]:
        """
        List the commits of a pull request in the order GitHub returns them.

        Listed commits carry their parents but no files; use `get_commit` for those.
        """
        endpoint = f"/repos/{repo_name}/pulls/{pr_number}/commits"
        logger.info(f"Fetching PR commits for {repo_name}#{pr_number}")

        try:
            items = await self._paginate(endpoint)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise GitHubPRNotFoundException(repo_name, pr_number)
            raise self._handle_http_error(e, f"list PR commits for {repo_name}#{pr_number}")

        logger.info(f"Successfully fetched {len(items)} commits for {repo_name}#{pr_number}")
        operation = f"list PR commits for {repo_name}#{pr_number}"
        return [self._decode(Commit.from_api, item, operation) for item in items]

    async def get_commit(self, repo_name: str, sha: str) -> Commit:
        """Get a single commit including its changed files."""
        endpoint = f"/repos/{repo_name}/commits/{sha}"

        try:
            data = await self._make_api_request(method="GET", endpoint=endpoint)
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (404, 422):
                raise GitHubCommitNotFoundException(repo_name, sha)
            raise self._handle_http_error(e, f"get commit {sha} in {repo_name}")

        return self._decode(Commit.from_api, data, f"get commit {sha} in {repo_name}")

    async def list_issue_comments(self, repo_name: str, issue_number: int) -> List[IssueComment]:
        """List conversation comments on an issue or pull request."""
        endpoint = f"/repos/{repo_name}/issues/{issue_number}/comments"

        try:
            items = await self._paginate(endpoint)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise GitHubPRNotFoundException(repo_name, issue_number)
            raise self._handle_http_error(e, f"list comments for {repo_name}#{issue_number}")

        operation = f"list comments for {repo_name}#{issue_number}"
        return [self._decode(IssueComment.from_api, item, operation) for item in items]

    async def create_issue_comment(self, repo_name: str, issue_number: int, body: str) -> IssueComment:
        """
        Post a comment to an issue or pull request conversation.

        Raises:
            GitHubPRNotFoundException: If the issue doesn't exist
            GitHubPermissionException: If lacking permissions to comment
            GitHubAPIException: For other API errors
        """
        endpoint = f"/repos/{repo_name}/issues/{issue_number}/comments"

        try:
            data = await self._make_api_request(
                method="POST",
                endpoint=endpoint,
                json_data={"body": body}
            )
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise GitHubPRNotFoundException(repo_name, issue_number)
            elif e.response.status_code == 403:
                raise GitHubPermissionException(
                    f"Insufficient permissions to comment on {repo_name}#{issue_number}"
                )
            raise self._handle_http_error(e, f"comment on {repo_name}#{issue_number}")

        comment = self._decode(IssueComment.from_api, data, f"comment on {repo_name}#{issue_number}")
        logger.info(f"Created comment {comment.id} on {repo_name}#{issue_number}")
        return comment

    async def delete_issue_comment(self, repo_name: str, comment_id: int) -> None:
        """Delete a conversation comment."""
        endpoint = f"/repos/{repo_name}/issues/comments/{comment_id}"

        try:
            await self._make_api_request(method="DELETE", endpoint=endpoint, expect_body=False)
        except httpx.HTTPStatusError as e:
            raise self._handle_http_error(e, f"delete comment {comment_id} in {repo_name}")

    async def _paginate(self, endpoint: str) -> List[Dict[str, Any]]:
        """Collect every page of a list endpoint."""
        per_page = self.config.per_page
        all_items: List[Dict[str, Any]] = []
        page = 1

        while True:
            response_data = await self._make_api_request(
                method="GET",
                endpoint=endpoint,
                params={"per_page": per_page, "page": page}
            )

            if not response_data:
                break
            if not isinstance(response_data, list):
                raise GitHubAPIException(f"Expected a list from {endpoint}, got {type(response_data).__name__}")

            all_items.extend(response_data)

            if len(response_data) < per_page:
                break

            page += 1
            if page > self.config.max_pages:
                logger.warning(f"Reached pagination limit fetching {endpoint}")
                break

        return all_items

    async def _make_api_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        expect_body: bool = True
    ) -> Any:
        """
        Make API request with retry logic and rate limiting.

        Returns:
            Decoded JSON body, or None when `expect_body` is False

        Raises:
            httpx.HTTPStatusError: For non-retryable HTTP errors (handled by callers)
            GitHubRateLimitException: When retries are exhausted on rate limiting
            GitHubAPIException: For transport errors after retries
        """
        max_retries = self.config.retry_attempts

        for attempt in range(max_retries + 1):
            try:
                await self._check_rate_limit()

                response = await self._client.request(
                    method=method,
                    url=endpoint,
                    params=params,
                    json=json_data
                )

                self._rate_limit_info = GitHubAPIRateLimit.from_headers(response.headers) or self._rate_limit_info

                if response.status_code == 429:
                    retry_after = int(response.headers.get('retry-after', 60))
                    raise GitHubRateLimitException(retry_after_seconds=retry_after)

                response.raise_for_status()

                if not expect_body or response.status_code == 204:
                    return None
                try:
                    return response.json()
                except ValueError as e:
                    raise GitHubAPIException(
                        f"Invalid JSON from {method} {endpoint}: {response.text[:200]!r}"
                    ) from e

            except GitHubRateLimitException as e:
                if attempt < max_retries:
                    delay = e.retry_after_seconds or 60
                    logger.warning(f"Rate limit hit, waiting {delay}s before retry {attempt + 1}")
                    await asyncio.sleep(delay)
                    continue
                raise

            except httpx.HTTPStatusError as e:
                if attempt < max_retries and e.response.status_code >= 500:
                    delay = self.config.retry_backoff ** attempt
                    logger.warning(f"Server error {e.response.status_code}, retrying in {delay}s")
                    await asyncio.sleep(delay)
                    continue
                raise

            except httpx.RequestError as e:
                if attempt < max_retries:
                    delay = self.config.retry_backoff ** attempt
                    logger.warning(f"Request error: {e}, retrying in {delay}s")
                    await asyncio.sleep(delay)
                    continue
                raise GitHubAPIException(f"Request failed after {max_retries + 1} attempts: {e}")

        raise GitHubAPIException(f"Failed to complete request after {max_retries + 1} attempts")

    async def _check_rate_limit(self) -> None:
        """Wait for the reset window when the remaining budget is nearly spent."""
        if not self._rate_limit_info:
            return

        if self._rate_limit_info.remaining < 10:
            wait_time = self._rate_limit_info.seconds_until_reset
            if wait_time > 0:
                logger.warning(
                    f"Rate limit nearly exceeded ({self._rate_limit_info.remaining} remaining), "
                    f"waiting {wait_time}s for reset"
                )
                await asyncio.sleep(wait_time)

    def _handle_http_error(self, error: httpx.HTTPStatusError, operation: str) -> GitHubAPIException:
        """Convert HTTP status error to appropriate GitHub exception."""
        status_code = error.response.status_code
        response_text = error.response.text

        if status_code == 401:
            return GitHubAuthenticationException()
        elif status_code == 403:
            return GitHubPermissionException(f"Permission denied to {operation}")
        elif status_code == 429:
            retry_after = int(error.response.headers.get('retry-after', 60))
            return GitHubRateLimitException(retry_after_seconds=retry_after)

        message = f"GitHub API error during {operation}: {status_code}"
        if response_text:
            message += f" - {response_text}"
        exception = GitHubAPIException(message=message, status_code=status_code)
        if is_retryable_github_error(exception):
            logger.warning(f"Giving up on retryable error during {operation}: {status_code}")
        return exception

    @staticmethod
    def _decode(parse: Callable[[Any], Any], data: Any, operation: str) -> Any:
        """Build a schema object from a payload, reporting a malformed one as GitHubAPIException."""
        try:
            return parse(data)
        except (ValidationError, AttributeError, KeyError, TypeError) as e:
            raise GitHubAPIException(f"Malformed GitHub response during {operation}: {e}") from e
