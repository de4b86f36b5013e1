"""
Storage Service - S3-compatible object storage

FileStore implementation for the SQL backend. Supports AWS S3, Cloudflare
R2, MinIO, and other S3-compatible services. The folder id handed in by the
asset migration step becomes the key prefix, and the object key is the file
id stored on the codex item.
"""
import asyncio
import logging
from typing import Optional, Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from codex_api.core.config import Settings
from codex_api.core.exceptions import StoreError

logger = logging.getLogger(__name__)


class S3FileStore:
    """
    S3-compatible FileStore.

    boto3 is synchronous; uploads run in a worker thread so the event loop
    keeps serving other tasks.
    """

    ALLOWED_IMAGE_TYPES = {
        'image/png': '.png',
        'image/jpeg': '.jpg',
        'image/gif': '.gif',
        'image/webp': '.webp',
        'image/svg+xml': '.svg',
    }

    MAX_ASSET_SIZE = 10 * 1024 * 1024  # 10MB

    def __init__(self, settings: Settings, client=None):
        self.settings = settings
        self._client = client
        self._bucket = settings.S3_BUCKET
        self._region = settings.S3_REGION

    @property
    def client(self):
        """Lazy-load S3 client."""
        if self._client is None:
            config = Config(
                signature_version='s3v4',
                retries={'max_attempts': 3, 'mode': 'standard'}
            )

            client_kwargs = {
                'service_name': 's3',
                'region_name': self._region,
                'config': config,
            }
            # Missing keys fall back to the default credential chain (IAM role)
            if self.settings.S3_ACCESS_KEY:
                client_kwargs['aws_access_key_id'] = self.settings.S3_ACCESS_KEY
                client_kwargs['aws_secret_access_key'] = self.settings.S3_SECRET_KEY

            # Custom endpoint for R2/MinIO
            if self.settings.S3_ENDPOINT:
                client_kwargs['endpoint_url'] = self.settings.S3_ENDPOINT

            self._client = boto3.client(**client_kwargs)

        return self._client

    def is_configured(self) -> bool:
        return bool(self._bucket)

    def _validate_image(self, content: bytes, content_type: str) -> Tuple[bool, Optional[str]]:
        """Validate declared type and size."""
        if content_type not in self.ALLOWED_IMAGE_TYPES:
            return False, f"Invalid content type: {content_type}. Allowed: {list(self.ALLOWED_IMAGE_TYPES.keys())}"

        if not content:
            return False, "Empty file"

        if len(content) > self.MAX_ASSET_SIZE:
            max_mb = self.MAX_ASSET_SIZE / (1024 * 1024)
            actual_mb = len(content) / (1024 * 1024)
            return False, f"File too large: {actual_mb:.1f}MB. Max: {max_mb:.0f}MB"

        return True, None

    async def upload_one(
        self,
        content: bytes,
        *,
        filename_download: str,
        type: str,
        folder: Optional[str] = None,
        storage: Optional[str] = None,
    ) -> str:
        """Upload and return the object key, which serves as the file id."""
        if not self.is_configured():
            raise StoreError("S3 storage not configured. Set S3_BUCKET.")

        is_valid, error = self._validate_image(content, type)
        if not is_valid:
            raise StoreError(f"Rejected {filename_download}: {error}")

        key = f"{folder}/{filename_download}" if folder else filename_download

        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=content,
                ContentType=type,
                CacheControl='public, max-age=31536000',  # 1 year cache
            )
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            error_msg = e.response.get('Error', {}).get('Message', str(e))
            raise StoreError(f"S3 upload failed for {key}: {error_code} - {error_msg}") from e
        except BotoCoreError as e:
            raise StoreError(f"S3 upload failed for {key}: {e}") from e

        logger.info(f"Uploaded: {key}")
        return key
