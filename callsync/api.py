"""
callsync HTTP API

FastAPI application exposing the telephony webhook, the disposition form
endpoint, the recording backup trigger and the recording streaming
redirect.

Clients (CRM, storage, recording fetcher, database sessions) are built
per request through FastAPI dependencies, so tests swap them with
``app.dependency_overrides``.

Usage:
    uvicorn callsync.api:create_app --factory --port 8000
"""

import logging
from typing import AsyncIterator, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from callsync.common.config import Settings, get_settings
from callsync.common.db import create_db_engine, create_session_factory
from callsync.common.errors import CallSyncError, FormValidationError, WebhookValidationError
from callsync.services import recording_store
from callsync.services.form_submission import submit_disposition
from callsync.services.hubspot_client import HubSpotClient, build_hubspot_client
from callsync.services.recording_backup import RecordingFetcher, run_backup_batch
from callsync.services.storage import RecordingStorage
from callsync.services.webhook_controller import reconcile_webhook

logger = logging.getLogger(__name__)


def settings_dependency(request: Request) -> Settings:
    return request.app.state.settings


def session_factory_dependency(request: Request):
    """Session factory for this app, built from settings on first use."""
    state = request.app.state
    if state.session_factory is None:
        state.session_factory = create_session_factory(create_db_engine(state.settings.database_url))
    return state.session_factory


async def crm_dependency(
    settings: Settings = Depends(settings_dependency),
) -> AsyncIterator[Optional[HubSpotClient]]:
    """CRM client for one request, or None when no token is configured."""
    if not settings.hubspot_access_token:
        logger.error("HUBSPOT_ACCESS_TOKEN not configured")
        yield None
        return
    async with build_hubspot_client(settings) as client:
        yield client


def storage_dependency(settings: Settings = Depends(settings_dependency)) -> RecordingStorage:
    return RecordingStorage.from_settings(settings)


async def fetcher_dependency(
    settings: Settings = Depends(settings_dependency),
) -> AsyncIterator[RecordingFetcher]:
    async with RecordingFetcher(
        settings.ringcx_access_token, timeout=settings.recording_download_timeout_seconds
    ) as fetcher:
        yield fetcher


async def _json_body(request: Request, error_type: type[CallSyncError]) -> dict:
    try:
        body = await request.json()
    except ValueError as ex:
        raise error_type('Request body must be valid JSON') from ex
    if not isinstance(body, dict):
        raise error_type('Request body must be a JSON object')
    return body


def create_app(settings: Optional[Settings] = None, session_factory=None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings (defaults to the environment)
        session_factory: Database session factory; built lazily from
            ``settings.database_url`` when omitted
    """
    app = FastAPI(title="callsync", version="1.0.0")
    app.state.settings = settings or get_settings()
    app.state.session_factory = session_factory

    # Map domain exceptions to {"success": false, "error": ...}
    @app.exception_handler(CallSyncError)
    async def _callsync_error(_: Request, exc: CallSyncError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc.message)
        else:
            logger.warning("%s: %s", type(exc).__name__, exc.message)
        return JSONResponse(status_code=exc.status_code, content={'success': False, 'error': exc.message})

    @app.exception_handler(Exception)
    async def _unexpected_error(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error")
        return JSONResponse(status_code=500, content={'success': False, 'error': str(exc) or 'Internal error'})

    @app.post("/webhooks/ringcx-disposition")
    async def ringcx_disposition_webhook(
        request: Request,
        crm=Depends(crm_dependency),
        session_factory=Depends(session_factory_dependency),
        settings: Settings = Depends(settings_dependency),
    ):
        """Telephony webhook: skip auto-fire, reconcile disposition-bearing calls."""
        payload = await _json_body(request, WebhookValidationError)
        outcome = await reconcile_webhook(payload, crm, session_factory, settings)
        return outcome.as_response()

    @app.post("/submit-disposition")
    async def post_disposition(
        request: Request,
        crm=Depends(crm_dependency),
        session_factory=Depends(session_factory_dependency),
        settings: Settings = Depends(settings_dependency),
    ):
        payload = await _json_body(request, FormValidationError)
        return await submit_disposition(payload, crm, session_factory, settings)

    @app.get("/submit-disposition")
    def disposition_status(settings: Settings = Depends(settings_dependency)):
        return {'status': 'ok', 'crmConfigured': bool(settings.hubspot_access_token)}

    @app.post("/recordings-backup")
    async def recordings_backup(
        crm=Depends(crm_dependency),
        session_factory=Depends(session_factory_dependency),
        storage=Depends(storage_dependency),
        fetcher=Depends(fetcher_dependency),
        settings: Settings = Depends(settings_dependency),
    ):
        """Run one backup batch and report what happened."""
        report = await run_backup_batch(session_factory, fetcher, storage, crm, settings)
        return report.as_dict()

    @app.get("/recording-stream")
    def recording_stream(
        id: str = Query(..., description="Storage file id of a backed-up recording"),
        session_factory=Depends(session_factory_dependency),
        storage=Depends(storage_dependency),
    ):
        """Redirect to a short-lived URL for a backed-up recording."""
        with session_factory() as session:
            recording = recording_store.find_by_storage_file_id(session, id)
        if recording is None or not storage.owns(id):
            return JSONResponse(status_code=404, content={'success': False, 'error': 'Recording not found'})
        return RedirectResponse(storage.presigned_url(id), status_code=307)

    @app.get("/health")
    def health_check():
        """Health check endpoint for monitoring."""
        return {'status': 'healthy'}

    return app
