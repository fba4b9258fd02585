from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


logger = logging.getLogger(__name__)


class DomainError(ValueError):
    status_code = 400


class ValidationError(DomainError):
    pass


class ConflictError(DomainError):
    pass


class InvalidStateError(DomainError):
    pass


class NotFoundError(DomainError):
    status_code = 404


class AuthenticationError(DomainError):
    status_code = 401


class AccessDeniedError(PermissionError):
    status_code = 403


class DataIntegrityError(RuntimeError):
    """Persisted rows violate an invariant the schema cannot express."""

    status_code = 500


SERVICE_ERRORS = (DomainError, AccessDeniedError, DataIntegrityError)


def http_error(exc: Exception) -> HTTPException:
    return HTTPException(status_code=getattr(exc, 'status_code', 400), detail=str(exc))


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return 'Invalid request'
    first = errors[0]
    location = '.'.join(str(part) for part in first.get('loc', ()) if part not in ('body', 'query', 'path'))
    message = str(first.get('msg') or 'invalid value')
    return f'{location}: {message}' if location else message


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={'message': str(exc.detail)}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={'message': _validation_message(exc)})

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception('request_unhandled_error method=%s path=%s', request.method, request.url.path)
        return JSONResponse(status_code=500, content={'message': 'Internal server error'})
