"""
API Routes for pull request reviews.

A review request is accepted immediately and runs as a background task; its
findings are reported as comments on the pull request.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, status

from src.api.fastapi.dependencies import get_jamai_client, get_review_service
from src.models.schemas.responses import (
    ProvisionTablesRequest,
    ProvisionTablesResponse,
    ReviewAcceptedResponse,
)
from src.models.schemas.review import ReviewRequest
from src.services.jamai.client import JamAIClient
from src.services.review.review_service import ReviewService
from src.services.review.table_provisioning import provision_tables
from src.utils.logging.otel_logger import logger

router = APIRouter(tags=["Reviews"])


@router.post("/reviews", response_model=ReviewAcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_review(
    review_request: ReviewRequest,
    background_tasks: BackgroundTasks,
    review_service: ReviewService = Depends(get_review_service),
):
    """Schedule the requested checks for a pull request."""
    pull_request = review_request.pull_request()
    logger.info(f"Review requested for PR {pull_request}")

    background_tasks.add_task(
        review_service.run_pull_request_review,
        pull_request,
        review_request.checks,
        review_request.clear_previous_comments,
    )

    return ReviewAcceptedResponse(
        message="Review scheduled",
        pull_request=str(pull_request),
        checks=[check.value for check in review_request.checks],
    )


@router.post("/tables", response_model=ProvisionTablesResponse)
async def create_tables(
    provision_request: ProvisionTablesRequest,
    jamai_client: JamAIClient = Depends(get_jamai_client),
):
    """Create the generation tables for a repository if they do not exist."""
    tables = await provision_tables(jamai_client, provision_request.owner, provision_request.repo)
    return ProvisionTablesResponse(tables=tables)
