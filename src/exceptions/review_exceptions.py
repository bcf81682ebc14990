"""
Review Pipeline Specific Exceptions

Custom exceptions for the changelog check, the per-commit secret scan and the
collaborators they call.
"""

from enum import Enum
from typing import Optional

from src.utils.exception import AppException
from fastapi import status


# ============================================================================
# BASE REVIEW EXCEPTIONS
# ============================================================================

class ReviewException(AppException):
    """Base exception for review pipeline errors."""
    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(status_code=status_code, message=message)


# ============================================================================
# GENERATION SERVICE EXCEPTIONS
# ============================================================================

class GenerationServiceException(ReviewException):
    """Base exception for generation service calls."""
    def __init__(self, message: str, status_code: int = status.HTTP_502_BAD_GATEWAY):
        super().__init__(message=message, status_code=status_code)


class GenerationTransportException(GenerationServiceException):
    """Raised when the generation service cannot be reached or the stream breaks."""
    def __init__(self, operation: str, error_detail: str):
        message = f"Transport error during {operation}: {error_detail}"
        super().__init__(message=message)
        self.operation = operation


class UnexpectedStatusException(GenerationServiceException):
    """Raised when the generation service answers with a status other than 200 or 409."""
    def __init__(self, status_code: int, response_text: str):
        message = f"Unexpected status code: {status_code}, response: {response_text}"
        super().__init__(message=message)
        self.response_status_code = status_code
        self.response_text = response_text


class StreamDecodeException(GenerationServiceException):
    """Raised when a streamed data line is not a decodable chunk."""
    def __init__(self, line: str, error_detail: str):
        message = f"Failed to decode stream line {line[:200]!r}: {error_detail}"
        super().__init__(message=message)
        self.line = line
        self.error_detail = error_detail


class ResponseDecodeException(GenerationServiceException):
    """Raised when aggregated text does not match the expected result shape."""
    def __init__(self, shape: str, raw_text: str, reason: str):
        message = f"Failed to decode {shape} response: {reason}"
        super().__init__(message=message, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.shape = shape
        self.raw_text = raw_text
        self.reason = reason


class AnalysisTimeoutException(ReviewException):
    """Raised when an analysis call exceeds its deadline."""
    def __init__(self, subject: str, timeout_seconds: float):
        message = f"Analysis of {subject} did not finish within {timeout_seconds}s"
        super().__init__(message=message, status_code=status.HTTP_504_GATEWAY_TIMEOUT)
        self.subject = subject
        self.timeout_seconds = timeout_seconds


# ============================================================================
# GITHUB API EXCEPTIONS
# ============================================================================

class GitHubAPIException(ReviewException):
    """Base exception for GitHub API related errors."""
    def __init__(self, message: str, status_code: int = status.HTTP_502_BAD_GATEWAY):
        super().__init__(message=message, status_code=status_code)


class GitHubPRNotFoundException(GitHubAPIException):
    """Raised when a Pull Request is not found on GitHub."""
    def __init__(self, repo_name: str, pr_number: int):
        message = f"Pull request #{pr_number} not found in repository {repo_name}"
        super().__init__(message=message, status_code=status.HTTP_404_NOT_FOUND)


class GitHubCommitNotFoundException(GitHubAPIException):
    """Raised when a commit is not found on GitHub."""
    def __init__(self, repo_name: str, sha: str):
        message = f"Commit {sha} not found in repository {repo_name}"
        super().__init__(message=message, status_code=status.HTTP_404_NOT_FOUND)


class GitHubRateLimitException(GitHubAPIException):
    """Raised when GitHub API rate limit is exceeded."""
    def __init__(self, retry_after_seconds: int = None):
        message = "GitHub API rate limit exceeded"
        if retry_after_seconds:
            message += f". Retry after {retry_after_seconds} seconds"
        super().__init__(message=message, status_code=status.HTTP_429_TOO_MANY_REQUESTS)
        self.retry_after_seconds = retry_after_seconds


class GitHubAuthenticationException(GitHubAPIException):
    """Raised when GitHub API authentication fails."""
    def __init__(self):
        super().__init__(message="GitHub API authentication failed", status_code=status.HTTP_401_UNAUTHORIZED)


class GitHubPermissionException(GitHubAPIException):
    """Raised when GitHub API operation is not permitted."""
    def __init__(self, message: str = "Insufficient permissions for GitHub operation"):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN)


# ============================================================================
# FAILURE CLASSIFICATION
# ============================================================================

class AnalysisFailureKind(str, Enum):
    """How a failed commit analysis is reported back on the pull request."""
    CONTENT_TOO_LARGE = "content_too_large"
    GENERIC = "generic"
    CANCELLED = "cancelled"


def classify_analysis_failure(
    exception: Exception,
    context_window_marker: str = "ContextWindowExceededError",
    raw_text: Optional[str] = None,
) -> AnalysisFailureKind:
    """
    Classify a failed analysis call.

    Content-too-large detection is a substring heuristic on the raw model
    output: the generation service exposes no error code for it, so anything
    without the marker falls back to GENERIC.
    """
    if isinstance(exception, AnalysisTimeoutException):
        return AnalysisFailureKind.CANCELLED

    if raw_text is None and isinstance(exception, ResponseDecodeException):
        raw_text = exception.raw_text

    if raw_text and context_window_marker and context_window_marker in raw_text:
        return AnalysisFailureKind.CONTENT_TOO_LARGE

    return AnalysisFailureKind.GENERIC


def is_retryable_github_error(exception: Exception) -> bool:
    """
    Determine if a GitHub API error should be retried.

    Returns True for transient errors (rate limits, server errors),
    False for permanent errors (not found, permission denied).
    """
    if isinstance(exception, GitHubRateLimitException):
        return True

    if isinstance(exception, GitHubAPIException):
        return exception.status_code >= 500

    return False
