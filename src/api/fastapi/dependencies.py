from fastapi import Depends, Request

from src.services.github.pr_api_client import PRApiClient
from src.services.jamai.client import JamAIClient
from src.services.review.review_service import ReviewService


def get_github_client(request: Request) -> PRApiClient:
    return request.app.state.github_client


def get_jamai_client(request: Request) -> JamAIClient:
    return request.app.state.jamai_client


def get_review_service(
    github_client: PRApiClient = Depends(get_github_client),
    jamai_client: JamAIClient = Depends(get_jamai_client),
) -> ReviewService:
    return ReviewService(github_client, jamai_client)
