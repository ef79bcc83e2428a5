"""
Translation of ServiceError and request validation errors into HTTP responses.

NOT_FOUND maps to 404 and the other business failures to 400. CONTENTION is
reported as 409 with `retryable: true`; STORE_FAILURE as 500.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ticket_service.core.errors import FailureKind, ServiceError
from ticket_service.core.logging import get_logger

logger = get_logger(__name__)

STATUS_BY_KIND = {
    FailureKind.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    FailureKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FailureKind.INSUFFICIENT_INVENTORY: status.HTTP_400_BAD_REQUEST,
    FailureKind.CONTENTION: status.HTTP_409_CONFLICT,
    FailureKind.STORE_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    status_code = STATUS_BY_KIND[exc.kind]
    if status_code >= 500:
        logger.error("service_error", kind=exc.kind.value, error=exc.message, **exc.details)
    else:
        logger.info("service_error", kind=exc.kind.value, error=exc.message)

    body = {"error": exc.message}
    if exc.retryable:
        body["retryable"] = True
    return JSONResponse(status_code=status_code, content=body)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    logger.info("request_invalid", error=problems)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": problems})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
