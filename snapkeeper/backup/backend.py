"""
Snapshot backend - saves, finds, opens and purges versioned snapshots.

The backend keeps no state of its own. Every query re-lists the blob store,
because the store is the only source of truth and other writers may change
it at any time.
"""

import logging
from typing import BinaryIO, List, Tuple

from .naming import SnapshotName, make_backup_name, parse_backup_name, MalformedNameError
from .storage import BlobStore, Payload, StorageError, NotFoundError


logger = logging.getLogger(__name__)


class PurgeError(StorageError):
    """
    Raised when one or more deletions fail during a purge.

    Attributes:
        failures: List of (snapshot name, exception) pairs
        deleted: Names that were deleted before and after the failures
    """

    def __init__(self, failures: List[Tuple[str, Exception]], deleted: List[str]):
        self.failures = failures
        self.deleted = deleted
        details = '; '.join(f"{name}: {error}" for name, error in failures)
        super().__init__(f"Purge failed for {len(failures)} snapshot(s): {details}")


class SnapshotBackend:
    """
    Versioned snapshot naming and retention on top of a blob store.
    """

    def __init__(self, store: BlobStore):
        """
        Args:
            store: Blob store scoped to one backup stream prefix
        """
        self.store = store

    @property
    def prefix(self) -> str:
        return self.store.prefix

    def save(self, version: str, revision: int, data: Payload) -> str:
        """
        Store a snapshot taken at the given version and revision.

        Args:
            version: Datastore version, e.g. "3.1.0"
            revision: Revision the snapshot was taken at
            data: Snapshot bytes or a readable binary stream

        Returns:
            Name the snapshot was stored under

        Raises:
            ValueError: If version or revision is invalid
            StorageError: If the store rejects the write
        """
        name = make_backup_name(version, revision)
        self.store.put(name, data)
        logger.info(f"Saved snapshot {name} under prefix {self.prefix}")
        return name

    def list_snapshots(self) -> List[SnapshotName]:
        """
        List valid snapshots, newest first.

        Keys that are not snapshot names are logged and skipped.
        """
        snapshots = []
        for key in self.store.list():
            try:
                snapshots.append(parse_backup_name(key))
            except MalformedNameError as e:
                logger.warning(f"Ignoring unrecognized key under prefix {self.prefix}: {e}")

        snapshots.sort(key=lambda s: s.sort_key, reverse=True)
        return snapshots

    def get_latest(self) -> str:
        """
        Return the name of the most recent snapshot.

        Raises:
            NotFoundError: If no valid snapshot exists under the prefix
            StorageError: If listing fails
        """
        snapshots = self.list_snapshots()
        if not snapshots:
            raise NotFoundError(f"No snapshots found under prefix {self.prefix}")
        return snapshots[0].name

    def open(self, name: str) -> BinaryIO:
        """Open a snapshot for reading. Raises NotFoundError if absent."""
        return self.store.get(name)

    def purge(self, keep_count: int) -> List[str]:
        """
        Delete all but the keep_count most recent snapshots.

        Deletion continues past individual failures. A snapshot that is
        already gone counts as deleted.

        Args:
            keep_count: Number of snapshots to keep; 0 deletes every snapshot

        Returns:
            Names of deleted snapshots

        Raises:
            ValueError: If keep_count is negative
            PurgeError: If any deletion failed
            StorageError: If listing fails
        """
        if keep_count < 0:
            raise ValueError(f"keep_count must be non-negative, got {keep_count}")

        snapshots = self.list_snapshots()
        to_delete = snapshots[keep_count:]

        deleted = []
        failures = []
        for snapshot in to_delete:
            try:
                self.store.delete(snapshot.name)
                deleted.append(snapshot.name)
                logger.info(f"Deleted snapshot {snapshot.name} under prefix {self.prefix}")
            except NotFoundError:
                deleted.append(snapshot.name)
                logger.info(f"Snapshot {snapshot.name} already deleted")
            except StorageError as e:
                failures.append((snapshot.name, e))
                logger.error(f"Failed to delete snapshot {snapshot.name}: {e}")

        if failures:
            raise PurgeError(failures, deleted)

        return deleted

    def total_size(self) -> int:
        """Total bytes stored under the prefix, snapshots and foreign keys alike."""
        return self.store.total_size()

    def promote(self, from_prefix: str):
        """Copy every object from a staging prefix into this backend's prefix."""
        self.store.copy_prefix(from_prefix)
        logger.info(f"Copied prefix {from_prefix} into {self.prefix}")
