"""S3-compatible snapshot storage using MinIO.

The whole ledger lives in one object, so each save is a single
``put_object`` and readers observe either the old or the new snapshot.

Based on MinIO Python SDK:
https://min.io/docs/minio/linux/developers/python/API.html
"""

import io
import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime

from minio import Minio
from minio.error import S3Error
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from priceguard.ledger.models import Document
from priceguard.shared.config import Settings
from priceguard.shared.errors import PersistenceError
from priceguard.storage.base import LedgerSnapshot, SnapshotStore

logger = logging.getLogger(__name__)

# S3 error codes meaning "nothing saved yet" rather than a failure.
MISSING_SNAPSHOT_CODES = {"NoSuchKey", "NoSuchBucket"}


class MinioSnapshotStore(SnapshotStore):
    """Ledger snapshot kept as a JSON object in S3-compatible storage.

    Supports data sovereignty through on-premises MinIO deployment.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize storage service.

        Args:
            settings: Application settings with storage configuration
        """
        self.settings = settings
        self.bucket = settings.storage_bucket
        self.object_name = settings.storage_snapshot_object
        self._client: Minio | None = None
        self._bucket_ready = False

    @property
    def backend_name(self) -> str:
        return "minio"

    def _get_client(self) -> Minio:
        """Get or create MinIO client (lazy initialization).

        Returns:
            Configured Minio client instance

        Raises:
            ValueError: If storage credentials are not configured
        """
        if self._client is None:
            if not self.settings.storage_access_key:
                raise ValueError(
                    "Storage access key not configured. "
                    "Set APP_STORAGE_ACCESS_KEY environment variable."
                )
            if not self.settings.storage_secret_key:
                raise ValueError(
                    "Storage secret key not configured. "
                    "Set APP_STORAGE_SECRET_KEY environment variable."
                )

            self._client = Minio(
                endpoint=self.settings.storage_endpoint,
                access_key=self.settings.storage_access_key,
                secret_key=self.settings.storage_secret_key,
                secure=self.settings.storage_secure,
            )
            logger.info(f"MinIO client initialized for endpoint: {self.settings.storage_endpoint}")

        return self._client

    def is_available(self) -> bool:
        """Check if storage credentials are configured.

        Returns:
            True if both access and secret key are set
        """
        return bool(self.settings.storage_access_key and self.settings.storage_secret_key)

    def health_check(self) -> bool:
        """Check if storage backend is reachable.

        Returns:
            True if MinIO server responds to bucket_exists
        """
        if not self.is_available():
            return False

        try:
            self._get_client().bucket_exists(self.bucket)
            return True
        except Exception as e:
            logger.warning(f"Storage health check failed: {e}")
            return False

    def _ensure_bucket(self) -> None:
        """Ensure the snapshot bucket exists, create if missing."""
        if self._bucket_ready:
            return

        client = self._get_client()
        if not client.bucket_exists(self.bucket):
            client.make_bucket(self.bucket)
            logger.info(f"Created bucket: {self.bucket}")

        self._bucket_ready = True

    @retry(
        retry=retry_if_exception_type(S3Error),
        stop=stop_after_attempt(3),
        wait=wait_exponential_jitter(initial=1, max=10),
        reraise=True,
    )
    def _put_snapshot(self, payload: bytes) -> None:
        self._ensure_bucket()
        self._get_client().put_object(
            bucket_name=self.bucket,
            object_name=self.object_name,
            data=io.BytesIO(payload),
            length=len(payload),
            content_type="application/json",
        )

    def _get_snapshot(self) -> bytes:
        response = self._get_client().get_object(
            bucket_name=self.bucket, object_name=self.object_name
        )
        try:
            data: bytes = response.read()
            return data
        finally:
            response.close()
            response.release_conn()

    def load(self) -> LedgerSnapshot:
        try:
            raw = self._get_snapshot()
        except S3Error as e:
            if e.code in MISSING_SNAPSHOT_CODES:
                logger.info(
                    f"No snapshot at {self.bucket}/{self.object_name}, "
                    "starting with an empty ledger"
                )
                return LedgerSnapshot()
            logger.error(f"S3 error loading snapshot: {e}")
            raise PersistenceError(f"S3 error: {e.code} - {e.message}") from e
        except ValueError as e:
            raise PersistenceError(str(e)) from e

        try:
            snapshot = LedgerSnapshot.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Corrupt snapshot at {self.bucket}/{self.object_name}: {e}")
            raise PersistenceError(f"Corrupt snapshot: {e}") from e

        logger.info(
            f"Loaded snapshot from {self.bucket}/{self.object_name} "
            f"({len(snapshot.documents)} documents, {len(snapshot.baselines)} suppliers)"
        )
        return snapshot

    def save(
        self,
        documents: Sequence[Document],
        baselines: Mapping[str, Mapping[str, float]],
    ) -> None:
        snapshot = self.build_snapshot(documents, baselines, saved_at=datetime.now(UTC))
        payload = snapshot.model_dump_json().encode("utf-8")

        try:
            self._put_snapshot(payload)
        except S3Error as e:
            logger.error(f"S3 error saving snapshot: {e}")
            raise PersistenceError(f"S3 error: {e.code} - {e.message}") from e
        except ValueError as e:
            raise PersistenceError(str(e)) from e

        logger.info(f"Saved snapshot to {self.bucket}/{self.object_name} ({len(payload)} bytes)")
