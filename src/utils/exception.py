from logging import Logger
from fastapi import Request, status
from fastapi.responses import JSONResponse
import traceback

from src.models.schemas.responses import ErrorResponse


class AppException(Exception):
    """Base application exception."""
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(self.message)

class AppExceptionHandler:
    def __init__(self, logger: Logger):
        self.logger = logger

    async def handle_app_exception(self, request: Request, exc: AppException):
        self.logger.warning(f"Application error: {exc.message} for request {request.method} {request.url.path}")
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                errorMessage=exc.message
            ).model_dump(),
        )

    async def handle_generic_exception(self, request: Request, exc: Exception):
        self.logger.error(
            f"An unexpected error occurred: {exc} for request {request.method} {request.url.path}\n{traceback.format_exc()}"
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                errorMessage="An unexpected internal server error occurred."
            ).model_dump(),
        )

def add_exception_handlers(app, logger: Logger):
    handler = AppExceptionHandler(logger)
    app.add_exception_handler(AppException, handler.handle_app_exception)
    app.add_exception_handler(Exception, handler.handle_generic_exception)
