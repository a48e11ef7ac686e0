"""
Blob store adapters for snapshot archives.

Supports:
- S3Storage: AWS S3 or any S3-compatible service
- LocalStorage: Local directory

Every adapter namespaces its keys as v1/{prefix}/{key}, where v1 is the
schema revision of the snapshot naming scheme.
"""

import os
import posixpath
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO, List, Optional, Protocol, Union

import boto3
from botocore.exceptions import ClientError, BotoCoreError


SCHEMA_VERSION = 'v1'

Payload = Union[bytes, BinaryIO]


class StorageError(Exception):
    """Raised when storage operation fails."""
    pass


class NotFoundError(StorageError):
    """Raised when a key does not exist in the store."""
    pass


class InvalidPrefixError(ValueError):
    """Raised when a stream prefix is empty or leaves the schema namespace."""
    pass


class BlobStore(Protocol):
    """Capabilities the snapshot backend needs from a blob store."""

    prefix: str

    def put(self, key: str, data: Payload) -> None: ...

    def get(self, key: str) -> BinaryIO: ...

    def delete(self, key: str) -> None: ...

    def list(self) -> List[str]: ...

    def total_size(self) -> int: ...

    def copy_prefix(self, from_prefix: str) -> None: ...


def normalize_prefix(prefix: str) -> str:
    """
    Strip surrounding slashes and validate a stream prefix.

    Raises:
        InvalidPrefixError: If the prefix is empty or has empty, "." or ".." segments
    """
    normalized = (prefix or '').strip('/')
    if not normalized:
        raise InvalidPrefixError("Prefix must not be empty")
    if any(segment in ('', '.', '..') for segment in normalized.split('/')):
        raise InvalidPrefixError(f"Invalid prefix: {prefix!r}")
    return normalized


def _read_payload(data: Payload) -> bytes:
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    return data.read()


def _error_code(e: ClientError) -> str:
    return e.response.get('Error', {}).get('Code', 'Unknown')


class S3Storage:
    """
    Blob store backed by an S3 bucket.

    Object keys: v1/{prefix}/{key}
    """

    NOT_FOUND_CODES = ('404', 'NoSuchKey', 'NotFound')

    def __init__(self, bucket_name: str, prefix: str, access_key: Optional[str] = None,
                 secret_key: Optional[str] = None, region: str = 'us-east-1',
                 endpoint_url: Optional[str] = None, client=None):
        """
        Initialize S3 storage handler.

        Args:
            bucket_name: S3 bucket name
            prefix: Backup stream prefix inside the bucket
            access_key: AWS access key ID
            secret_key: AWS secret access key
            region: AWS region (default: us-east-1)
            endpoint_url: Custom endpoint for S3-compatible services
            client: Pre-built boto3 S3 client (overrides the credentials above)
        """
        self.bucket_name = bucket_name
        self.prefix = normalize_prefix(prefix)
        self.region = region

        if client is not None:
            self.s3_client = client
            return

        try:
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region,
                endpoint_url=endpoint_url
            )
        except Exception as e:
            raise StorageError(f"Failed to initialize S3 client: {e}")

    def _object_key(self, key: str, prefix: Optional[str] = None) -> str:
        return posixpath.join(SCHEMA_VERSION, self.prefix if prefix is None else normalize_prefix(prefix), key)

    def _list_prefix(self, prefix: str) -> str:
        return posixpath.join(SCHEMA_VERSION, normalize_prefix(prefix)) + '/'

    def _wrap(self, op: str, key: str, e: Exception) -> StorageError:
        if isinstance(e, ClientError):
            code = _error_code(e)
            if code in self.NOT_FOUND_CODES:
                return NotFoundError(f"S3 {op} {key}: not found")
            return StorageError(f"S3 {op} {key} failed ({code}): {e}")
        return StorageError(f"S3 {op} {key} failed: {e}")

    def put(self, key: str, data: Payload):
        """
        Store data under key, creating or overwriting the object.

        Raises:
            StorageError: If upload fails
        """
        object_key = self._object_key(key)
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=object_key,
                Body=_read_payload(data)
            )
        except (ClientError, BotoCoreError) as e:
            raise self._wrap('put', object_key, e)
        except OSError as e:
            raise StorageError(f"S3 put {object_key} failed reading payload: {e}")

    def get(self, key: str):
        """
        Open the object stored under key.

        Returns:
            Readable streaming body; caller closes it

        Raises:
            NotFoundError: If key does not exist
            StorageError: If download fails
        """
        object_key = self._object_key(key)
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=object_key)
        except (ClientError, BotoCoreError) as e:
            raise self._wrap('get', object_key, e)
        return response['Body']

    def delete(self, key: str):
        """
        Delete the object stored under key.

        S3 deletes are silent for missing keys, so existence is checked first.

        Raises:
            NotFoundError: If key does not exist
            StorageError: If deletion fails
        """
        object_key = self._object_key(key)
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=object_key)
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=object_key)
        except (ClientError, BotoCoreError) as e:
            raise self._wrap('delete', object_key, e)

    def _list(self, prefix: str) -> List[dict]:
        list_prefix = self._list_prefix(prefix)
        try:
            objects = []
            paginator = self.s3_client.get_paginator('list_objects_v2')

            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=list_prefix):
                for obj in page.get('Contents', []):
                    objects.append({
                        'key': obj['Key'][len(list_prefix):],
                        'size': obj['Size']
                    })

            return objects

        except (ClientError, BotoCoreError) as e:
            raise self._wrap('list', list_prefix, e)

    def list(self) -> List[str]:
        """
        List keys under this store's prefix, with the prefix stripped.

        Raises:
            StorageError: If listing fails
        """
        return [obj['key'] for obj in self._list(self.prefix)]

    def total_size(self) -> int:
        """Return the summed content length of every object under the prefix."""
        return sum(obj['size'] for obj in self._list(self.prefix))

    def copy_prefix(self, from_prefix: str):
        """
        Server-side copy every object under from_prefix into this store's prefix.

        Raises:
            StorageError: If listing or any copy fails
        """
        for obj in self._list(from_prefix):
            source_key = self._object_key(obj['key'], prefix=from_prefix)
            dest_key = self._object_key(obj['key'])
            try:
                self.s3_client.copy_object(
                    Bucket=self.bucket_name,
                    Key=dest_key,
                    CopySource={'Bucket': self.bucket_name, 'Key': source_key}
                )
            except (ClientError, BotoCoreError) as e:
                raise self._wrap('copy', source_key, e)


class LocalStorage:
    """
    Blob store backed by a local directory.

    Uses the same layout as S3:
    {base_path}/v1/{prefix}/{key}
    """

    def __init__(self, base_path: str, prefix: str):
        """
        Initialize local storage handler.

        Args:
            base_path: Base directory for snapshots
            prefix: Backup stream prefix under the base directory
        """
        self.base_path = Path(base_path).resolve()
        self.prefix = normalize_prefix(prefix)
        self._prefix_dir()

        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create local storage directory: {e}")

    def _prefix_dir(self, prefix: Optional[str] = None) -> Path:
        schema_dir = self.base_path / SCHEMA_VERSION
        prefix_dir = (schema_dir / (self.prefix if prefix is None else normalize_prefix(prefix))).resolve()
        if schema_dir.resolve() not in prefix_dir.parents:
            raise InvalidPrefixError(f"Prefix escapes storage directory: {prefix or self.prefix}")
        return prefix_dir

    def _path(self, key: str) -> Path:
        prefix_dir = self._prefix_dir()
        path = (prefix_dir / key).resolve()
        if prefix_dir not in path.parents:
            raise StorageError(f"Key escapes prefix directory: {key}")
        return path

    def put(self, key: str, data: Payload):
        """
        Store data under key.

        Writes to a temporary file in the destination directory and renames it
        into place, so readers never see a partially written blob.

        Raises:
            StorageError: If the write fails
        """
        dest_path = self._path(key)
        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=dest_path.parent, prefix='.tmp_')
            try:
                with os.fdopen(fd, 'wb') as f:
                    if isinstance(data, (bytes, bytearray, memoryview)):
                        f.write(data)
                    else:
                        shutil.copyfileobj(data, f)
                os.replace(tmp_name, dest_path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except PermissionError as e:
            raise StorageError(f"Permission denied writing to {dest_path}: {e}")
        except OSError as e:
            raise StorageError(f"Failed to store {dest_path}: {e}")

    def get(self, key: str) -> BinaryIO:
        """
        Open the file stored under key for reading.

        Raises:
            NotFoundError: If key does not exist
        """
        path = self._path(key)
        try:
            return open(path, 'rb')
        except FileNotFoundError:
            raise NotFoundError(f"Local get {path}: not found")
        except OSError as e:
            raise StorageError(f"Failed to open {path}: {e}")

    def delete(self, key: str):
        """
        Delete the file stored under key.

        Raises:
            NotFoundError: If key does not exist
            StorageError: If deletion fails
        """
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            raise NotFoundError(f"Local delete {path}: not found")
        except PermissionError as e:
            raise StorageError(f"Permission denied deleting {path}: {e}")
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}")

    def _list(self, prefix: Optional[str] = None) -> List[dict]:
        prefix_dir = self._prefix_dir(prefix)

        if not prefix_dir.exists():
            return []

        try:
            files = []

            for file_path in prefix_dir.rglob('*'):
                if file_path.is_file() and not file_path.name.startswith('.tmp_'):
                    files.append({
                        'key': file_path.relative_to(prefix_dir).as_posix(),
                        'size': file_path.stat().st_size
                    })

            return files

        except OSError as e:
            raise StorageError(f"Failed to list {prefix_dir}: {e}")

    def list(self) -> List[str]:
        """List keys under this store's prefix, relative to it."""
        return [f['key'] for f in self._list()]

    def total_size(self) -> int:
        """Return the summed size of every file under the prefix."""
        return sum(f['size'] for f in self._list())

    def copy_prefix(self, from_prefix: str):
        """
        Copy every file under from_prefix into this store's prefix.

        Raises:
            StorageError: If any copy fails
        """
        source_dir = self._prefix_dir(from_prefix)
        for f in self._list(from_prefix):
            dest_path = self._path(f['key'])
            try:
                dest_path.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source_dir / f['key'], dest_path)
            except OSError as e:
                raise StorageError(f"Failed to copy {source_dir / f['key']}: {e}")

