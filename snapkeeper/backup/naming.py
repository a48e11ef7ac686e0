"""
Snapshot naming scheme.

A snapshot name embeds the datastore version and the revision the snapshot
was taken at:

    {version}_{revision:016x}_etcd.backup

e.g. 3.1.0_0000000000000002_etcd.backup. The revision is written as 16 hex
digits, which covers every non-negative signed 64-bit value, so the field
never changes width. This layout is part of the persisted format; changing
it requires a new schema segment in the key layout.
"""

import re
from typing import NamedTuple, Tuple


BACKUP_SUFFIX = 'etcd.backup'
REVISION_WIDTH = 16
MAX_REVISION = 2 ** 63 - 1

_VERSION_RE = re.compile(r'^\d+(\.\d+)*$')
_REVISION_RE = re.compile(r'^[0-9a-f]{%d}$' % REVISION_WIDTH)


class MalformedNameError(ValueError):
    """Raised when a key is not a valid snapshot name."""
    pass


class SnapshotName(NamedTuple):
    """A decoded snapshot name."""

    version: str
    revision: int
    name: str

    @property
    def version_info(self) -> Tuple[int, ...]:
        return tuple(int(part) for part in self.version.split('.'))

    @property
    def sort_key(self) -> Tuple[int, Tuple[int, ...], str]:
        """
        Ordering key: revision first, then version, then the raw name.

        Revisions are monotonic per backup stream, so revision alone decides
        recency; the other fields only make the order total.
        """
        return (self.revision, self.version_info, self.name)


def _check_version(version: str):
    if not isinstance(version, str) or not _VERSION_RE.match(version):
        raise ValueError(f"Invalid version {version!r}: expected dot-separated integers")


def _check_revision(revision: int):
    if isinstance(revision, bool) or not isinstance(revision, int):
        raise ValueError(f"Invalid revision {revision!r}: expected an integer")
    if revision < 0 or revision > MAX_REVISION:
        raise ValueError(f"Invalid revision {revision}: must be in [0, {MAX_REVISION}]")


def make_backup_name(version: str, revision: int) -> str:
    """
    Encode a version and revision into a snapshot name.

    Raises:
        ValueError: If version or revision cannot be encoded unambiguously
    """
    _check_version(version)
    _check_revision(revision)
    return f"{version}_{revision:0{REVISION_WIDTH}x}_{BACKUP_SUFFIX}"


def parse_backup_name(name: str) -> SnapshotName:
    """
    Decode a snapshot name.

    Raises:
        MalformedNameError: If name is not exactly what make_backup_name produces
    """
    parts = name.split('_')
    if len(parts) != 3:
        raise MalformedNameError(f"Bad backup name: {name}")

    version, revision_hex, suffix = parts
    if suffix != BACKUP_SUFFIX:
        raise MalformedNameError(f"Bad backup name suffix: {name}")
    if not _VERSION_RE.match(version):
        raise MalformedNameError(f"Bad backup name version: {name}")
    if not _REVISION_RE.match(revision_hex):
        raise MalformedNameError(f"Bad backup name revision: {name}")

    revision = int(revision_hex, 16)
    if revision > MAX_REVISION:
        raise MalformedNameError(f"Backup name revision out of range: {name}")

    return SnapshotName(version=version, revision=revision, name=name)

