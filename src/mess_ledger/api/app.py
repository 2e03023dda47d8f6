"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from mess_ledger.api.admin import router as admin_router
from mess_ledger.api.ledger import router as ledger_router
from mess_ledger.api.messes import router as messes_router
from mess_ledger.api.notifications import router as notifications_router
from mess_ledger.app_logging import configure_logging
from mess_ledger.containers import AppContainer
from mess_ledger.domain.errors import (
    ExternalServiceError,
    LockedError,
    MessLedgerError,
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
    ValidationError,
)

_ERROR_STATUS: dict[type[MessLedgerError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    LockedError: status.HTTP_423_LOCKED,
    StateConflictError: status.HTTP_409_CONFLICT,
    ExternalServiceError: status.HTTP_502_BAD_GATEWAY,
}


def error_status(exc: MessLedgerError) -> int:
    """Return the HTTP status for a domain error."""
    for error_type, code in _ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)
    app.include_router(messes_router)
    app.include_router(ledger_router)
    app.include_router(notifications_router)

    @app.exception_handler(MessLedgerError)
    async def handle_domain_error(
        request: Request, exc: MessLedgerError
    ) -> JSONResponse:
        code = error_status(exc)
        logger.info("%s %s -> %d: %s", request.method, request.url.path, code, exc)
        return JSONResponse(status_code=code, content={"detail": str(exc)})

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
