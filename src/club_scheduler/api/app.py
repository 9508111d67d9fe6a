"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from club_scheduler.api.models import CancelPayload, ConflictPayload, SchedulePayload
from club_scheduler.app_logging import configure_logging
from club_scheduler.containers import AppContainer
from club_scheduler.domain.batches import batch_catalog
from club_scheduler.domain.errors import ErrorKind
from club_scheduler.domain.results import Envelope, FailureEnvelope

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.AUTHENTICATION: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.AUTHORIZATION: status.HTTP_403_FORBIDDEN,
    ErrorKind.PERMISSION: status.HTTP_403_FORBIDDEN,
    ErrorKind.RATE_LIMIT: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorKind.NETWORK: status.HTTP_503_SERVICE_UNAVAILABLE,
}
_STATUS_BY_CODE = {
    "operation_cancelled": status.HTTP_409_CONFLICT,
}


def _get_api_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.api_token


async def require_token(
    x_api_token: str | None = Header(default=None),
    api_token: str = Depends(_get_api_token),
) -> None:
    """Ensure requests include a valid API token."""
    if not x_api_token or x_api_token != api_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


def envelope_response(envelope: Envelope) -> JSONResponse:
    """Render an envelope, mapping failure kinds to HTTP status codes."""
    if isinstance(envelope, FailureEnvelope):
        status_code = _STATUS_BY_CODE.get(
            str(envelope.error.code),
            _STATUS_BY_KIND.get(
                envelope.error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR
            ),
        )
    else:
        status_code = status.HTTP_200_OK
    return JSONResponse(envelope.to_dict(), status_code=status_code)


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        try:
            await app.state.container.close_resources()
        except Exception:
            logger.exception("Failed to close resources")

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/sessions/schedule", dependencies=[Depends(require_token)])
    async def schedule_sessions(
        payload: SchedulePayload,
        request: Request,
        x_client_id: str | None = Header(default=None),
    ) -> JSONResponse:
        """Schedule sessions across a date range."""
        state_container: AppContainer = request.app.state.container
        envelope = await state_container.scheduling_service.schedule_sessions(
            payload.to_request(), caller=x_client_id
        )
        return envelope_response(envelope)

    @app.post("/sessions/cancel", dependencies=[Depends(require_token)])
    async def cancel_sessions(
        payload: CancelPayload,
        request: Request,
        x_client_id: str | None = Header(default=None),
    ) -> JSONResponse:
        """Cancel scheduled sessions across a date range."""
        state_container: AppContainer = request.app.state.container
        envelope = await state_container.scheduling_service.cancel_sessions(
            payload.to_request(), caller=x_client_id
        )
        return envelope_response(envelope)

    @app.post("/sessions/conflicts", dependencies=[Depends(require_token)])
    async def check_conflicts(
        payload: ConflictPayload, request: Request
    ) -> JSONResponse:
        """Report slots that already hold a scheduled session."""
        state_container: AppContainer = request.app.state.container
        envelope = await state_container.scheduling_service.check_conflicts(
            payload.dates, payload.batches
        )
        return envelope_response(envelope)

    @app.get("/sessions", dependencies=[Depends(require_token)])
    async def list_sessions(
        request: Request,
        start_date: date,
        end_date: date,
        batches: list[str] | None = Query(default=None),
        statuses: list[str] | None = Query(default=None),
    ) -> JSONResponse:
        """Return sessions in a date range."""
        state_container: AppContainer = request.app.state.container
        envelope = await state_container.scheduling_service.list_sessions(
            start_date, end_date, batches, statuses
        )
        return envelope_response(envelope)

    @app.get("/sessions/statistics", dependencies=[Depends(require_token)])
    async def session_statistics(
        request: Request, period: str = "week"
    ) -> JSONResponse:
        """Return session counts for the current day, week or month."""
        state_container: AppContainer = request.app.state.container
        envelope = await state_container.scheduling_service.get_statistics(period)
        return envelope_response(envelope)

    @app.get("/batches", dependencies=[Depends(require_token)])
    async def batches() -> dict[str, object]:
        """Return the batch catalog."""
        return {"batches": batch_catalog()}

    @app.get("/realtime/status", dependencies=[Depends(require_token)])
    async def realtime_status(request: Request) -> dict[str, object]:
        """Return active real-time subscriptions."""
        state_container: AppContainer = request.app.state.container
        return state_container.multiplexer.status()

    return app
