"""Local JSON file snapshot store.

Writes go to a temporary file in the target directory which then replaces
the snapshot with ``os.replace``, so a crash mid-write leaves the previous
snapshot intact.
"""

import logging
import os
import tempfile
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from priceguard.ledger.models import Document
from priceguard.shared.errors import PersistenceError
from priceguard.storage.base import LedgerSnapshot, SnapshotStore

logger = logging.getLogger(__name__)


class FileSnapshotStore(SnapshotStore):
    """Snapshot store backed by a single JSON file."""

    def __init__(self, path: Path | str) -> None:
        """Initialize file store.

        Args:
            path: Snapshot file location (parent directory is created on save)
        """
        self.path = Path(path)

    @property
    def backend_name(self) -> str:
        return "file"

    def load(self) -> LedgerSnapshot:
        if not self.path.exists():
            logger.info(f"No snapshot at {self.path}, starting with an empty ledger")
            return LedgerSnapshot()

        try:
            snapshot = LedgerSnapshot.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.error(f"Failed to read snapshot {self.path}: {e}")
            raise PersistenceError(f"Cannot read snapshot {self.path}: {e}") from e

        logger.info(
            f"Loaded snapshot from {self.path} "
            f"({len(snapshot.documents)} documents, {len(snapshot.baselines)} suppliers)"
        )
        return snapshot

    def save(
        self,
        documents: Sequence[Document],
        baselines: Mapping[str, Mapping[str, float]],
    ) -> None:
        snapshot = self.build_snapshot(documents, baselines, saved_at=datetime.now(UTC))
        payload = snapshot.model_dump_json(indent=2)

        tmp_path: Path | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_path = Path(tmp.name)
                tmp.write(payload)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            logger.error(f"Failed to write snapshot {self.path}: {e}")
            raise PersistenceError(f"Cannot write snapshot {self.path}: {e}") from e

        logger.debug(f"Saved snapshot to {self.path} ({len(payload)} bytes)")
