"""
Review Configuration

Generation parameters, output column names, limits and GitHub API settings for
the changelog check and the per-commit secret scan.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RagParams(BaseModel):
    """Retrieval parameters attached to generated columns."""

    model_config = ConfigDict(frozen=True)

    k: int = Field(default=5, ge=1, le=50)
    reranking_model: str = "ellm/BAAI/bge-reranker-v2-m3"
    table_id: Optional[str] = None


class GenerationConfig(BaseModel):
    """
    Immutable generation parameters.

    Passed explicitly into every table-building call instead of being read
    from shared process state.
    """

    model_config = ConfigDict(frozen=True)

    model: str = "ellm/Qwen/Qwen2.5-72B-w8a8"
    embedding_model: str = "ellm/BAAI/bge-m3"
    temperature: float = Field(default=0.01, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, ge=1, le=100_000)
    top_p: float = Field(default=0.001, ge=0.0, le=1.0)
    rag_params: RagParams = Field(default_factory=RagParams)


class OutputColumns(BaseModel):
    """Column names of the action table."""

    model_config = ConfigDict(frozen=True)

    pull_request_body: str = "PullReqBody"
    changelog_response: str = "PullReqResponse"
    secrets_body: str = "PullReqSecretsBody"
    secrets_response: str = "SecretsJSONResponse"


class ReviewLimits(BaseModel):
    """Concurrency and deadline limits for a review run."""

    max_concurrent_commits: int = Field(
        default=1,
        description="Commits analyzed in parallel (1 = strictly sequential)",
        ge=1,
        le=16
    )
    analysis_timeout_seconds: float = Field(
        default=300.0,
        description="Deadline for one generation call plus stream read",
        gt=0,
        le=3600
    )
    request_timeout_seconds: float = Field(
        default=120.0,
        description="Outbound HTTP timeout for the generation service",
        gt=0,
        le=3600
    )


class GitHubAPIConfig(BaseModel):
    """GitHub API configuration."""

    api_version: str = Field(
        default="2022-11-28",
        description="GitHub API version header"
    )
    user_agent: str = Field(
        default="Jambo-Review-Bot/1.0",
        description="User agent for API requests"
    )
    request_timeout: int = Field(
        default=30,
        description="Individual request timeout in seconds",
        ge=5,
        le=120
    )
    retry_attempts: int = Field(
        default=3,
        description="Retry attempts for failed requests",
        ge=0,
        le=5
    )
    retry_backoff: float = Field(
        default=2.0,
        description="Backoff factor for retries",
        ge=1.0,
        le=5.0
    )
    per_page: int = Field(
        default=100,
        description="Items per page for list endpoints",
        ge=1,
        le=100
    )
    max_pages: int = Field(
        default=30,
        description="Maximum pages fetched for a list endpoint",
        ge=1,
        le=1000
    )


class ReviewSettings(BaseSettings):
    """Main configuration settings for pull request reviews."""

    # Only REVIEW_* variables are read, nested with a double underscore:
    # REVIEW_LIMITS__MAX_CONCURRENT_COMMITS=4
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        env_prefix="REVIEW_",
        extra="ignore",
    )

    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    columns: OutputColumns = Field(default_factory=OutputColumns)
    limits: ReviewLimits = Field(default_factory=ReviewLimits)
    github_api: GitHubAPIConfig = Field(default_factory=GitHubAPIConfig)

    changelog_filename: str = Field(
        default="CHANGELOG.md",
        description="File whose presence in a PR marks the changelog as updated"
    )
    context_window_marker: str = Field(
        default="ContextWindowExceededError",
        description="Substring identifying a model input-size failure"
    )

    def table_id_for(self, owner: str, repo: str, bot_version: str) -> str:
        """Action table naming convention: owner, repo and bot version."""
        return f"{owner}_{repo}_{bot_version}"


def get_review_settings() -> ReviewSettings:
    """
    Get review settings with environment-based overrides.

    - REVIEW_GENERATION__TEMPERATURE=0.2
    - REVIEW_LIMITS__ANALYSIS_TIMEOUT_SECONDS=60
    - REVIEW_GITHUB_API__RETRY_ATTEMPTS=5
    """
    return ReviewSettings()


# Initialize global settings - can be overridden by tests
review_settings = get_review_settings()
