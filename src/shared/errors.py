"""Errors protean's FastAPI integration does not map on its own.

Business rules raise protean's exceptions directly: ``ValidationError`` (400)
for bad input and rejected requests, ``ObjectNotFoundError`` (404) and
``InvalidStateError`` (409). ``protean.integrations.fastapi`` turns those into
``{"error": ...}`` responses. The classes below cover service authentication
and upstream payment failures, rendered in the same shape.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ProteanException


class ServiceError(ProteanException):
    status_code = 500


class AuthenticationError(ServiceError):
    status_code = 401


class ForbiddenError(ServiceError):
    status_code = 403


class PaymentGatewayError(ServiceError):
    """The payment processor failed or timed out. Safe to retry."""

    status_code = 502


def register_service_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:  # noqa: ARG001
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})
