"""
Global error handlers mapping forum errors to the JSON envelope.
"""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from lexforum.core.exceptions import (
    AuthorizationError,
    ForumError,
    InternalError,
    ValidationError,
)


def _error_response(exc: ForumError) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.to_dict()},
    )


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ForumError)
    async def forum_error_handler(request: Request, exc: ForumError) -> ORJSONResponse:
        if isinstance(exc, InternalError):
            logger.error(
                f"{request.method} {request.url.path} failed "
                f"[{exc.correlation_id}]: {exc.message}"
            )
        elif isinstance(exc, AuthorizationError):
            logger.warning(f"{request.method} {request.url.path} denied: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.kind}: {exc.message}")
        return _error_response(exc)

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(
        request: Request, exc: SQLAlchemyError
    ) -> ORJSONResponse:
        error = InternalError("Storage failure")
        logger.opt(exception=exc).error(
            f"{request.method} {request.url.path} storage failure [{error.correlation_id}]"
        )
        return _error_response(error)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        error = ValidationError("Request validation failed")
        return ORJSONResponse(
            status_code=error.status_code,
            content={
                "success": False,
                "error": {**error.to_dict(), "details": jsonable_encoder(exc.errors())},
            },
        )
