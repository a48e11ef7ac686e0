"""
Backup module for Snapkeeper.

This module handles the core snapshot functionality including:
- Blob storage (S3 and local)
- Snapshot naming and ordering
- Save, latest lookup and purge
- Retention policy enforcement
"""

from .storage import S3Storage, LocalStorage, StorageError, NotFoundError
from .naming import make_backup_name, parse_backup_name, MalformedNameError
from .backend import SnapshotBackend, PurgeError
from .retention import RetentionManager

__all__ = [
    'S3Storage',
    'LocalStorage',
    'StorageError',
    'NotFoundError',
    'make_backup_name',
    'parse_backup_name',
    'MalformedNameError',
    'SnapshotBackend',
    'PurgeError',
    'RetentionManager'
]
