"""Abstract base class for ledger snapshot persistence.

The ledger is persisted as one whole-state snapshot holding both the
documents and the baselines. There is no API for writing either half on
its own.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from datetime import datetime

from pydantic import BaseModel, Field

from priceguard.ledger.models import Document

SNAPSHOT_SCHEMA_VERSION = 1


class LedgerSnapshot(BaseModel):
    """Serialized ledger state.

    Attributes:
        schema_version: Snapshot format version
        saved_at: When the snapshot was written (None for an empty ledger)
        documents: Stored documents in ledger order
        baselines: supplier -> item -> reference unit price
    """

    schema_version: int = SNAPSHOT_SCHEMA_VERSION
    saved_at: datetime | None = None
    documents: list[Document] = Field(default_factory=list)
    baselines: dict[str, dict[str, float]] = Field(default_factory=dict)


class SnapshotStore(ABC):
    """Load and save complete ledger snapshots.

    Implementations must make ``save`` all-or-nothing: a reader either sees
    the previous snapshot or the new one, never a mix.
    """

    @abstractmethod
    def load(self) -> LedgerSnapshot:
        """Load the latest snapshot.

        Returns:
            Stored snapshot, or an empty one if nothing was saved yet

        Raises:
            PersistenceError: If the snapshot exists but cannot be read
        """

    @abstractmethod
    def save(
        self,
        documents: Sequence[Document],
        baselines: Mapping[str, Mapping[str, float]],
    ) -> None:
        """Replace the stored snapshot with the given state.

        Raises:
            PersistenceError: If the snapshot could not be written
        """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Backend identifier for logging (e.g., 'file', 'minio')."""

    @staticmethod
    def build_snapshot(
        documents: Sequence[Document],
        baselines: Mapping[str, Mapping[str, float]],
        saved_at: datetime,
    ) -> LedgerSnapshot:
        return LedgerSnapshot(
            saved_at=saved_at,
            documents=list(documents),
            baselines={supplier: dict(items) for supplier, items in baselines.items()},
        )
