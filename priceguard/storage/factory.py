"""Factory for creating the configured snapshot store."""

import logging

from priceguard.shared.config import Settings
from priceguard.storage.base import SnapshotStore
from priceguard.storage.file_store import FileSnapshotStore
from priceguard.storage.service import MinioSnapshotStore

logger = logging.getLogger(__name__)


def create_snapshot_store(settings: Settings) -> SnapshotStore:
    """Create snapshot store based on settings.persistence_backend.

    Args:
        settings: Application settings

    Returns:
        Snapshot store instance
    """
    store: SnapshotStore
    if settings.persistence_backend == "minio":
        store = MinioSnapshotStore(settings)
        if not store.is_available():
            logger.warning(
                "MinIO persistence selected but storage credentials are missing. "
                "Set APP_STORAGE_ACCESS_KEY and APP_STORAGE_SECRET_KEY."
            )
    else:
        store = FileSnapshotStore(settings.snapshot_path)

    logger.info(f"Created snapshot store: {store.backend_name}")
    return store
