"""
Recording Storage

S3-compatible object storage for backed-up call recordings. Objects are
keyed ``<prefix>/<YYYY>/<MM>/<file name>`` and the key doubles as the
file id the streaming endpoint resolves.
"""

import logging
from datetime import datetime

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from callsync.common.config import Settings
from callsync.common.errors import StorageNotConfiguredError

logger = logging.getLogger(__name__)


def build_s3_client(settings: Settings):
    """
    Create an S3 client from settings.

    Raises:
        StorageNotConfiguredError: If no bucket is configured
    """
    if not settings.s3_bucket:
        raise StorageNotConfiguredError("Recording storage bucket not configured")
    session = boto3.session.Session()
    return session.client(
        's3',
        endpoint_url=settings.s3_endpoint,
        aws_access_key_id=settings.s3_access_key,
        aws_secret_access_key=settings.s3_secret_key,
        config=Config(signature_version='s3v4'),
        region_name=settings.s3_region,
    )


class RecordingStorage:
    """Upload, share and link recordings in one bucket."""

    def __init__(self, client, bucket: str, key_prefix: str = 'recordings', url_ttl_seconds: int = 3600):
        self.client = client
        self.bucket = bucket
        self.key_prefix = key_prefix.strip('/')
        self.url_ttl_seconds = url_ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> 'RecordingStorage':
        return cls(
            build_s3_client(settings),
            settings.s3_bucket,
            key_prefix=settings.s3_key_prefix,
            url_ttl_seconds=settings.recording_stream_url_ttl_seconds,
        )

    def object_key(self, file_name: str, when: datetime) -> str:
        key = f"{when:%Y/%m}/{file_name}"
        return f"{self.key_prefix}/{key}" if self.key_prefix else key

    def upload(self, file_name: str, data: bytes, when: datetime, content_type: str = 'audio/wav') -> tuple[str, str]:
        """
        Upload recording bytes.

        Args:
            file_name: Target file name
            data: Raw audio bytes
            when: Call start, used to partition keys by month
            content_type: MIME type stored with the object

        Returns:
            tuple: (file id, object URL)
        """
        key = self.object_key(file_name, when)
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
            ContentDisposition=f'inline; filename="{file_name}"',
        )
        url = f"{self.client.meta.endpoint_url}/{self.bucket}/{key}"
        logger.info("Uploaded %s (%d bytes) to s3://%s/%s", file_name, len(data), self.bucket, key)
        return key, url

    def make_public(self, file_id: str) -> bool:
        """Grant public read on an object. Failures are logged, not raised."""
        try:
            self.client.put_object_acl(Bucket=self.bucket, Key=file_id, ACL='public-read')
        except (BotoCoreError, ClientError) as ex:
            logger.warning("Failed to set public-read on %s (non-fatal): %s", file_id, ex)
            return False
        return True

    def presigned_url(self, file_id: str) -> str:
        """Time-limited GET URL for streaming a stored recording."""
        return self.client.generate_presigned_url(
            'get_object',
            Params={'Bucket': self.bucket, 'Key': file_id},
            ExpiresIn=self.url_ttl_seconds,
        )

    def owns(self, file_id: str) -> bool:
        """True when ``file_id`` is a key this storage could have written."""
        if not file_id or '..' in file_id:
            return False
        return not self.key_prefix or file_id.startswith(f"{self.key_prefix}/")
