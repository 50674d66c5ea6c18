"""Maps domain exceptions and validation failures onto one JSON error envelope"""

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from fintara_gateway.domain.exceptions import DomainException


def _build_response(status_code: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    payload = {"code": code, "message": message, "details": details or {}}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    if exc.status_code >= 500:
        logging.error(f"{exc.code}: {exc.message}", extra={"request_id": request_id}, exc_info=exc)
    else:
        logging.warning(f"{exc.code}: {exc.message}", extra={"request_id": request_id})
    return _build_response(exc.status_code, exc.code, exc.message, exc.details)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _build_response(422, "validation_error", "Request validation failed", {"errors": exc.errors()})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
