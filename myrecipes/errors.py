import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ValidationFailed(Exception):
    """Bad or forbidden field values. Surfaced to the client as-is."""

    status_code = 400

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class AuthenticationFailed(Exception):
    status_code = 401
    # never say which part of the credential check failed
    message = "Please authenticate."


class NotFound(Exception):
    status_code = 404
    message = "Not found."


def _error_details(errors):
    # ctx may hold the raised exception object, which is not JSON-serializable
    return [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in errors
    ]


def install_error_handlers(app: FastAPI):
    @app.exception_handler(ValidationFailed)
    async def validation_failed(request: Request, exc: ValidationFailed):
        body = {"error": exc.message}
        if exc.details:
            body["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(ValidationError)
    async def model_validation_failed(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "error": "Validation failed.",
                "details": _error_details(exc.errors()),
            },
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_failed(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=jsonable_encoder(
                {
                    "error": "Validation failed.",
                    "details": _error_details(exc.errors()),
                }
            ),
        )

    @app.exception_handler(AuthenticationFailed)
    async def authentication_failed(request: Request, exc: AuthenticationFailed):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(NotFound)
    async def not_found(request: Request, exc: NotFound):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(SQLAlchemyError)
    async def store_failed(request: Request, exc: SQLAlchemyError):
        logger.exception("Store failure on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error."})
