from pydantic import BaseModel


class ErrorResponse(BaseModel):
    errorMessage: str


class HealthResponse(BaseModel):
    status: str
    app_name: str


class ReviewAcceptedResponse(BaseModel):
    message: str
    pull_request: str
    checks: list[str]


class ProvisionTablesRequest(BaseModel):
    owner: str
    repo: str


class ProvisionTablesResponse(BaseModel):
    tables: dict[str, bool]
