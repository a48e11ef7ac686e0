"""
Retention policy enforcement for snapshot streams.

Keeps the newest N snapshots in each configured backup stream and deletes
the rest.
"""

import logging
from datetime import datetime, timezone
from typing import List, Dict, Any

from .backend import SnapshotBackend, PurgeError
from .storage import StorageError


logger = logging.getLogger(__name__)


class RetentionManager:
    """
    Applies a keep-count retention policy to a set of snapshot backends.

    Failures in one stream are recorded and do not stop the others.
    """

    def __init__(self, backends: List[SnapshotBackend], keep_count: int):
        """
        Args:
            backends: One backend per backup stream
            keep_count: Number of snapshots to keep in each stream
        """
        if keep_count < 0:
            raise ValueError(f"keep_count must be non-negative, got {keep_count}")

        self.backends = backends
        self.keep_count = keep_count
        self.logs = []

    def enforce_all_policies(self) -> Dict[str, Any]:
        """
        Enforce the retention policy for every stream.

        Returns:
            Dict with summary of cleanup operations:
            {
                'streams_processed': int,
                'deleted': int,
                'errors': List[str],
                'logs': List[str]
            }
        """
        self._log(f"Starting retention enforcement for {len(self.backends)} stream(s), keeping {self.keep_count}")

        summary = {
            'streams_processed': 0,
            'deleted': 0,
            'errors': []
        }

        for backend in self.backends:
            try:
                deleted = self.enforce_stream_policy(backend)
                summary['deleted'] += len(deleted)
            except PurgeError as e:
                summary['deleted'] += len(e.deleted)
                for name, error in e.failures:
                    summary['errors'].append(f"{backend.prefix}/{name}: {error}")
            except StorageError as e:
                error_msg = f"Failed to enforce policy for stream {backend.prefix}: {e}"
                self._log(error_msg)
                summary['errors'].append(error_msg)
                continue
            summary['streams_processed'] += 1

        self._log(
            f"Retention enforcement complete. "
            f"Streams: {summary['streams_processed']}, "
            f"Deleted: {summary['deleted']}, "
            f"Errors: {len(summary['errors'])}"
        )

        summary['logs'] = self.logs
        return summary

    def enforce_stream_policy(self, backend: SnapshotBackend) -> List[str]:
        """
        Enforce the retention policy for one stream.

        Returns:
            Names of deleted snapshots

        Raises:
            PurgeError: If some deletions failed
            StorageError: If the stream could not be listed
        """
        self._log(f"Enforcing retention policy for stream: {backend.prefix}")

        try:
            deleted = backend.purge(self.keep_count)
        except PurgeError as e:
            for name in e.deleted:
                self._log(f"Deleted snapshot: {name}")
            for name, error in e.failures:
                self._log(f"Failed to delete snapshot {name}: {error}")
            raise

        for name in deleted:
            self._log(f"Deleted snapshot: {name}")
        if not deleted:
            self._log("Nothing to delete")

        return deleted

    def _log(self, message: str):
        """
        Add a log message with timestamp.

        Args:
            message: Log message
        """
        timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')
        self.logs.append(f"[{timestamp}] {message}")
        logger.info(message)


def enforce_retention_policies(app) -> Dict[str, Any]:
    """
    Enforce retention policies for all configured streams.

    This function is called by the scheduler.

    Args:
        app: Flask app whose config names the streams and keep count

    Returns:
        Summary dict from RetentionManager.enforce_all_policies()
    """
    from snapkeeper import create_backend

    backends = [
        create_backend(app.config, prefix=prefix)
        for prefix in app.config['RETENTION_STREAMS']
    ]
    manager = RetentionManager(backends, app.config['RETENTION_KEEP_COUNT'])
    return manager.enforce_all_policies()
