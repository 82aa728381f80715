import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from spa_ledger.api.routes import health
from spa_ledger.api.v1 import v1_router
from spa_ledger.api.v1.envelope import error_response
from spa_ledger.core.config import settings
from spa_ledger.core.logging_config import setup_logging
from spa_ledger.domain.errors import (
    BillNotFoundError,
    BillValidationError,
    InvalidTransitionError,
    LedgerError,
    RemoteUnavailableError,
    VersionConflictError,
)

logger = logging.getLogger("main")

_STATUS_FOR_ERROR = [
    (BillNotFoundError, status.HTTP_404_NOT_FOUND),
    (BillValidationError, status.HTTP_400_BAD_REQUEST),
    (InvalidTransitionError, status.HTTP_400_BAD_REQUEST),
    (VersionConflictError, status.HTTP_409_CONFLICT),
    (RemoteUnavailableError, status.HTTP_502_BAD_GATEWAY),
]


def status_for(exc: LedgerError) -> int:
    for cls, code in _STATUS_FOR_ERROR:
        if isinstance(exc, cls):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=code,
        content=error_response(exc),
        headers={"Cache-Control": "no-store"},
    )


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.include_router(health.router)
    app.include_router(v1_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("spa_ledger.main:app", host="0.0.0.0", port=settings.PORT)
