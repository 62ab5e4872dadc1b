# src/services/api/errors.py
"""
Преобразование доменных ошибок в HTTP-ответы.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.common.errors import (
    ExternalCollaboratorError,
    NotFoundError,
    PermissionDeniedError,
    ServiceError,
    StateConflictError,
    ValidationError,
)
from src.common.logger import log_error, log_warning

_STATUS_BY_ERROR: tuple[tuple[type[ServiceError], int], ...] = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (PermissionDeniedError, 403),
    (StateConflictError, 409),
    (ExternalCollaboratorError, 502),
)


def status_for(error: ServiceError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 500


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    status = status_for(exc)
    message = f"{request.method} {request.url.path} -> {status} {exc.kind}: {exc.message}"
    if status >= 500:
        await log_error(message)
    else:
        await log_warning(message)
    return JSONResponse(status_code=status, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationError.from_pydantic(exc)
    return await service_error_handler(request, error)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
