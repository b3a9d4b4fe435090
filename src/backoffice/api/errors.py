"""Exception handlers that render every failure as one JSON envelope.

``{"success": false, "message": ..., "status_code": ...}`` plus any details
the error carries (``items`` for stock shortfalls, ``errors`` for field
validation).
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError
from protean.exceptions import ValidationError as DomainValidationError

from backoffice.exceptions import BackofficeError, ValidationError
from backoffice.transaction import translate


def error_response(error: BackofficeError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def _backoffice_error(request: Request, exc: BackofficeError) -> JSONResponse:
    return error_response(exc)


async def _domain_error(request: Request, exc: Exception) -> JSONResponse:
    return error_response(translate(exc))


async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg', 'Invalid request')}" if location else "Invalid request"
    details = [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in errors]
    return error_response(ValidationError(message, errors=details))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BackofficeError, _backoffice_error)
    app.add_exception_handler(DomainValidationError, _domain_error)
    app.add_exception_handler(ObjectNotFoundError, _domain_error)
    app.add_exception_handler(RequestValidationError, _request_validation_error)
