"""
Error types raised by the callsync services.

Every error carries the HTTP status the API layer answers with, so the
boundary can render ``{"success": false, "error": ...}`` without knowing
which component raised it.
"""


class CallSyncError(Exception):
    """Base class for expected, reportable failures."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class WebhookValidationError(CallSyncError):
    """A required webhook field is missing."""


class FormValidationError(CallSyncError):
    """A disposition form submission is malformed."""


class UnmappedDispositionError(CallSyncError):
    """A disposition label has no entry in the mapping table."""

    def __init__(self, raw_label: str, normalized: str, known_keys):
        self.raw_label = raw_label
        self.normalized = normalized
        self.known_keys = sorted(known_keys)
        super().__init__(
            f'Disposition "{raw_label}" (normalized: "{normalized}") is not '
            f'mapped to a CRM disposition. Add it to the disposition table. '
            f'Recognized keys: {", ".join(self.known_keys)}'
        )


class ContactNotFoundError(CallSyncError):
    """The CRM has no contact with the referenced id."""

    status_code = 404


class CrmNotConfiguredError(CallSyncError):
    """No CRM credentials are configured."""

    status_code = 500

    def __init__(self, message: str = "CRM integration not configured"):
        super().__init__(message)


class CrmRequestError(CallSyncError):
    """The CRM answered with a non-2xx status or could not be reached."""

    status_code = 500

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class CallLogWriteError(CallSyncError):
    """Creating the CRM call-log activity failed."""

    status_code = 500


class RecordingFetchError(CallSyncError):
    """The telephony provider did not return recording audio."""

    status_code = 502


class StorageNotConfiguredError(CallSyncError):
    """Object storage is needed but not configured."""

    status_code = 500
