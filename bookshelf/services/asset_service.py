import asyncio
import logging
import os
from datetime import datetime
from typing import Callable
from urllib.parse import quote, unquote, urlparse

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.auth import default as google_auth_default
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage
from google.oauth2 import service_account

from bookshelf.core.errors import StorageError


logger = logging.getLogger("bookshelf.assets")

PUBLIC_HOST = "storage.googleapis.com"
FIREBASE_HOST = "firebasestorage.googleapis.com"

COVERS_PREFIX = "covers"
AI_COVERS_PREFIX = "ai_covers"
VOICES_PREFIX = "voices"


def _millis(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def cover_key(filename: str, now: datetime) -> str:
    return f"{COVERS_PREFIX}/{_millis(now)}_{os.path.basename(filename)}"


def ai_cover_key(now: datetime) -> str:
    return f"{AI_COVERS_PREFIX}/{_millis(now)}_ai.png"


def voice_key(now: datetime) -> str:
    return f"{VOICES_PREFIX}/{_millis(now)}_voice.mp3"


def build_credentials(key_path: str | None = None):
    scopes = ["https://www.googleapis.com/auth/cloud-platform"]
    key_path = key_path or os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
    if key_path and os.path.exists(key_path):
        return service_account.Credentials.from_service_account_file(key_path, scopes=scopes)
    creds, _ = google_auth_default(scopes=scopes)
    return creds


class AssetStore:
    """Blob storage for covers, AI covers and narration clips in one bucket.

    Objects are addressed by key and exposed through their public
    ``https://storage.googleapis.com/<bucket>/<key>`` URL. ``key_from_url`` is
    the inverse and also understands ``gs://`` and Firebase download URLs, so
    records written by older clients can still be cleaned up.

    The storage client is only built on the first upload or delete, so URL
    resolution and read-only callers never need credentials. Missing bucket
    configuration or credentials surface as StorageError at that point.
    """

    def __init__(self, client_factory: Callable[[], storage.Client], bucket_name: str) -> None:
        self.client_factory = client_factory
        self.bucket_name = bucket_name
        self._bucket: storage.Bucket | None = None

    def _get_bucket(self) -> storage.Bucket:
        if self._bucket is None:
            if not self.bucket_name:
                raise StorageError("No storage bucket configured (GCS_BUCKET_NAME)")
            try:
                client = self.client_factory()
            except (GoogleAuthError, ValueError, OSError) as e:
                raise StorageError(f"Cannot create storage client: {e}") from e
            self._bucket = client.bucket(self.bucket_name)
        return self._bucket

    def public_url(self, key: str) -> str:
        return f"https://{PUBLIC_HOST}/{self.bucket_name}/{quote(key)}"

    def key_from_url(self, url: str) -> str | None:
        if not self.bucket_name:
            return None
        parsed = urlparse(url)

        if parsed.scheme == "gs":
            if parsed.netloc != self.bucket_name:
                return None
            return parsed.path.lstrip("/") or None

        if parsed.scheme not in ("http", "https"):
            return None

        if parsed.netloc == PUBLIC_HOST:
            bucket, _, key = parsed.path.lstrip("/").partition("/")
            if bucket != self.bucket_name or not key:
                return None
            return unquote(key)

        if parsed.netloc == FIREBASE_HOST:
            # /v0/b/<bucket>/o/<percent-encoded key>
            parts = parsed.path.split("/")
            if len(parts) != 6 or parts[1:3] != ["v0", "b"] or parts[4] != "o":
                return None
            if parts[3] != self.bucket_name or not parts[5]:
                return None
            return unquote(parts[5])

        return None

    def owns(self, url: str | None) -> bool:
        return bool(url) and self.key_from_url(url) is not None

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        blob = self._get_bucket().blob(key)
        try:
            await asyncio.to_thread(blob.upload_from_string, data, content_type=content_type)
        except (GoogleAPIError, GoogleAuthError, OSError) as e:
            raise StorageError(f"Upload of {key} failed: {e}") from e
        logger.info(f"Uploaded {len(data)} bytes to {key}")
        return self.public_url(key)

    async def delete_by_url(self, url: str) -> bool:
        """Remove the blob behind ``url``.

        Returns False, without raising, for URLs outside this bucket and for
        blobs that are already gone. Backend failures raise StorageError.
        """
        key = self.key_from_url(url)
        if key is None:
            logger.warning(f"Not an asset of bucket {self.bucket_name}, skipping delete: {url}")
            return False

        blob = self._get_bucket().blob(key)
        try:
            await asyncio.to_thread(blob.delete)
        except NotFound:
            logger.warning(f"Asset {key} was already deleted")
            return False
        except (GoogleAPIError, GoogleAuthError, OSError) as e:
            raise StorageError(f"Delete of {key} failed: {e}") from e
        logger.info(f"Deleted asset {key}")
        return True


def create_asset_store(bucket_name: str, project_id: str | None = None, key_path: str | None = None) -> AssetStore:
    def _client() -> storage.Client:
        return storage.Client(project=project_id or None, credentials=build_credentials(key_path))

    return AssetStore(_client, bucket_name)
