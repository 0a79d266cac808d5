"""
Recording Backup Worker

Copies call recordings from the telephony provider to object storage
before the provider's links expire, then points the CRM call record at
this service's streaming URL.

Each run processes one batch of pending rows, oldest call first. Rows
move through an explicit state machine:

    pending -> downloading -> uploaded
                           -> no_recording
                           -> pending      (attempts left)
                           -> failed       (attempts exhausted)

``uploaded``, ``no_recording`` and ``failed`` are terminal. Every
transition is its own commit, so a crash mid-upload leaves the row in
``downloading`` until someone resets it by hand.

Usage:
    python -m callsync.services.recording_backup
"""

import asyncio
import enum
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import httpx
from prometheus_client import Counter, Histogram, start_http_server

from callsync.common.config import Settings, settings as default_settings
from callsync.common.db import create_db_engine, create_session_factory
from callsync.common.errors import CallSyncError, RecordingFetchError
from callsync.services import recording_store
from callsync.services.hubspot_client import build_hubspot_client
from callsync.services.steps import StepResult, best_effort
from callsync.services.storage import RecordingStorage

logger = logging.getLogger(__name__)

# Prometheus metrics for monitoring
BACKUP_RESULTS = Counter(
    'callsync_backup_results_total',
    'Recording backup attempts by resulting status',
    ['status'],
)
DOWNLOAD_LATENCY = Histogram(
    'callsync_recording_download_seconds',
    'Latency of telephony recording downloads',
)


class BackupStatus(str, enum.Enum):
    NO_RECORDING = 'no_recording'
    PENDING = 'pending'
    DOWNLOADING = 'downloading'
    UPLOADED = 'uploaded'
    FAILED = 'failed'

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    BackupStatus.NO_RECORDING, BackupStatus.UPLOADED, BackupStatus.FAILED,
})

ALLOWED_TRANSITIONS = {
    BackupStatus.PENDING: frozenset({BackupStatus.DOWNLOADING}),
    BackupStatus.DOWNLOADING: frozenset({
        BackupStatus.UPLOADED,
        BackupStatus.NO_RECORDING,
        BackupStatus.PENDING,
        BackupStatus.FAILED,
    }),
}


def transition(current: BackupStatus, target: BackupStatus) -> BackupStatus:
    """
    Validate a state change.

    Raises:
        ValueError: If ``target`` is not reachable from ``current``
    """
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise ValueError(f"Invalid backup transition {current.value} -> {target.value}")
    return target


def status_after_failure(attempts: int, max_attempts: int) -> BackupStatus:
    """Back to pending while attempts remain, otherwise failed for good."""
    return BackupStatus.FAILED if attempts >= max_attempts else BackupStatus.PENDING


class RecordingFetcher:
    """Downloads recordings from the telephony provider with bearer auth."""

    def __init__(
        self,
        access_token: Optional[str],
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {'Authorization': f'Bearer {access_token}'} if access_token else {}
        self._client = httpx.AsyncClient(
            timeout=timeout, transport=transport, headers=headers, follow_redirects=True
        )

    async def __aenter__(self) -> 'RecordingFetcher':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(self, url: str) -> tuple[bytes, str]:
        """
        Download one recording.

        Returns:
            tuple: (audio bytes, content type)

        Raises:
            RecordingFetchError: On transport errors, non-2xx responses, or an
                HTML page (an expired session answers 200 with a login page)
        """
        start_time = time.perf_counter()
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as ex:
            raise RecordingFetchError(f"Download failed: {ex}") from ex
        finally:
            # Record download latency regardless of success/failure
            DOWNLOAD_LATENCY.observe(time.perf_counter() - start_time)

        if response.is_error:
            raise RecordingFetchError(
                f"Download failed: {response.status_code} {response.reason_phrase}"
            )
        content_type = response.headers.get('content-type', '')
        if 'text/html' in content_type:
            raise RecordingFetchError(
                "Provider returned HTML instead of audio; auth may have expired"
            )
        return response.content, content_type


def clean_agent_name(name: Optional[str]) -> str:
    """Email-like names become their title-cased local part: josh.w+1@x -> Josh-W."""
    if not name:
        return 'Unknown'
    if '@' not in name:
        return name
    local_part = re.sub(r'\+.*$', '', name.split('@')[0])
    return '-'.join(
        part[:1].upper() + part[1:].lower() for part in re.split(r'[._]', local_part)
    )


def _sanitize(value: Optional[str]) -> str:
    value = re.sub(r'[^a-zA-Z0-9\s-]', '', value or 'Unknown')
    return re.sub(r'\s+', '-', value).strip()


def build_file_name(
    call_start: Optional[datetime],
    agent_name: Optional[str],
    disposition: Optional[str],
    phone_number: Optional[str],
) -> str:
    """
    Deterministic recording file name.

    Format: ``YYYY-MM-DD_HHMM_Agent_Disposition_Phone.wav`` with the time
    in UTC.
    """
    moment = call_start or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)

    agent = _sanitize(clean_agent_name(agent_name))
    phone = re.sub(r'[^0-9+]', '', phone_number or '')
    return f"{moment:%Y-%m-%d_%H%M}_{agent}_{_sanitize(disposition)}_{phone}.wav"


def streaming_url(public_base_url: str, file_id: str) -> str:
    return f"{public_base_url.rstrip('/')}/recording-stream?id={file_id}"


@dataclass
class BackupBatchReport:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    results: list[dict] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            'success': True,
            'processed': self.processed,
            'succeeded': self.succeeded,
            'failed': self.failed,
            'results': self.results,
        }


async def _backup_one(recording, session, fetcher, storage, crm, settings: Settings) -> dict:
    attempts = (recording.backup_attempts or 0) + 1
    status = transition(BackupStatus(recording.backup_status), BackupStatus.DOWNLOADING)
    recording_store.update_call_recording(
        session, recording.id, backup_status=status.value, backup_attempts=attempts
    )

    if not recording.source_url:
        status = transition(status, BackupStatus.NO_RECORDING)
        recording_store.update_call_recording(session, recording.id, backup_status=status.value)
        return {'call_id': recording.call_id, 'status': status.value}

    try:
        audio, content_type = await fetcher.fetch(recording.source_url)
        logger.info("Downloaded %.2f MB (%s) for call %s",
                    len(audio) / 1024 / 1024, content_type, recording.call_id)

        file_name = build_file_name(
            recording.call_start, recording.agent_name, recording.disposition, recording.phone_number
        )
        when = recording.call_start or datetime.now(timezone.utc)
        file_id, file_url = storage.upload(file_name, audio, when)
        storage.make_public(file_id)
    except Exception as ex:  # noqa: BLE001 - any failure consumes one attempt
        status = transition(status, status_after_failure(attempts, settings.backup_max_attempts))
        message = ex.message if isinstance(ex, CallSyncError) else str(ex)
        logger.error("Backup of call %s failed (attempt %d/%d): %s",
                     recording.call_id, attempts, settings.backup_max_attempts, message)
        recording_store.update_call_recording(
            session, recording.id, backup_status=status.value, backup_error=message
        )
        return {'call_id': recording.call_id, 'status': status.value, 'error': message}

    status = transition(status, BackupStatus.UPLOADED)
    recording_store.update_call_recording(
        session,
        recording.id,
        backup_status=status.value,
        backup_error=None,
        storage_file_id=file_id,
        storage_url=file_url,
        storage_file_name=file_name,
        backed_up_at=datetime.now(timezone.utc),
    )
    result = {'call_id': recording.call_id, 'status': status.value, 'file_name': file_name}

    if recording.crm_call_id and crm is not None:
        step: StepResult = await best_effort('crm_recording_url', crm.update_call(
            recording.crm_call_id,
            {'hs_call_recording_url': streaming_url(settings.public_base_url, file_id)},
        ))
        if step.ok:
            logger.info("CRM call %s recording URL updated", recording.crm_call_id)
        else:
            result['crm_update_error'] = step.error
    return result


async def run_backup_batch(
    session_factory,
    fetcher: RecordingFetcher,
    storage,
    crm,
    settings: Settings,
) -> BackupBatchReport:
    """
    Back up one batch of pending recordings.

    Args:
        session_factory: Callable returning a database session
        fetcher: Recording downloader
        storage: Recording storage (upload, make_public)
        crm: CRM client, or None to skip updating call records
        settings: Application settings (batch size, max attempts, public URL)

    Returns:
        BackupBatchReport: Counts and per-row results
    """
    report = BackupBatchReport()
    with session_factory() as session:
        pending = recording_store.select_pending_recordings(
            session, settings.backup_max_attempts, settings.backup_batch_size
        )
        if not pending:
            logger.info("No pending recordings to back up")
            return report

        logger.info("Backing up %d recording(s)", len(pending))
        for recording in pending:
            result = await _backup_one(recording, session, fetcher, storage, crm, settings)
            report.results.append(result)
            report.processed += 1
            BACKUP_RESULTS.labels(status=result['status']).inc()
            if result['status'] == BackupStatus.UPLOADED.value:
                report.succeeded += 1
            elif 'error' in result:
                report.failed += 1

    logger.info("Batch complete: %d uploaded, %d failed, %d total",
                report.succeeded, report.failed, report.processed)
    return report


async def main(settings: Settings = default_settings) -> BackupBatchReport:
    """Run one backup batch with clients built from settings."""
    if settings.backup_metrics_port > 0:
        start_http_server(settings.backup_metrics_port)

    session_factory = create_session_factory(create_db_engine(settings.database_url))
    storage = RecordingStorage.from_settings(settings)

    crm = None
    if settings.hubspot_access_token:
        crm = build_hubspot_client(settings)
    else:
        logger.warning("HUBSPOT_ACCESS_TOKEN not set; CRM recording URLs won't be updated")

    async with RecordingFetcher(
        settings.ringcx_access_token, timeout=settings.recording_download_timeout_seconds
    ) as fetcher:
        try:
            return await run_backup_batch(session_factory, fetcher, storage, crm, settings)
        finally:
            if crm is not None:
                await crm.aclose()


if __name__ == "__main__":
    logging.basicConfig(level=default_settings.log_level)
    asyncio.run(main())
