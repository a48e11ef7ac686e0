"""
Shared pytest fixtures for Snapkeeper tests.

This module provides fixtures for:
- Flask app and test client
- Local and S3 (moto) blob stores
- Snapshot backends over those stores
"""

import pytest
import boto3
from moto import mock_aws

from snapkeeper import create_app
from snapkeeper.backup.storage import S3Storage, LocalStorage
from snapkeeper.backup.backend import SnapshotBackend


TEST_BUCKET = 'test-bucket'
TEST_PREFIX = 'testprefix'


@pytest.fixture(scope='function')
def app(tmp_path):
    """
    Create Flask app with test configuration.

    Uses local storage in a temporary directory and no scheduler.
    """
    app = create_app('development', overrides={
        'TESTING': True,
        'STORAGE_TYPE': 'local',
        'STORAGE_PREFIX': TEST_PREFIX,
        'RETENTION_STREAMS': [TEST_PREFIX],
        'RETENTION_KEEP_COUNT': 2,
        'LOCAL_STORAGE_DIR': str(tmp_path / 'snapshots'),
        'LOG_DIR': str(tmp_path / 'logs'),
        'SCHEDULER_ENABLED': False,
    })

    yield app


@pytest.fixture(scope='function')
def client(app):
    """Flask test client for making HTTP requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def local_store(tmp_path):
    """LocalStorage rooted in a temporary directory."""
    return LocalStorage(str(tmp_path / 'store'), TEST_PREFIX)


@pytest.fixture(scope='function')
def local_backend(local_store):
    """SnapshotBackend over local storage."""
    return SnapshotBackend(local_store)


@pytest.fixture
def mock_s3():
    """
    Mock AWS S3 service using moto.

    Creates a test bucket 'test-bucket' in us-east-1 region.
    """
    with mock_aws():
        s3 = boto3.resource('s3', region_name='us-east-1')
        s3.create_bucket(Bucket=TEST_BUCKET)

        yield s3


@pytest.fixture
def s3_store(mock_s3):
    """S3Storage against the mocked bucket."""
    return S3Storage(
        bucket_name=TEST_BUCKET,
        prefix=TEST_PREFIX,
        access_key='test_access_key',
        secret_key='test_secret_key',
        region='us-east-1'
    )


@pytest.fixture
def s3_backend(s3_store):
    """SnapshotBackend over mocked S3."""
    return SnapshotBackend(s3_store)


@pytest.fixture(params=['local', 's3'])
def backend(request):
    """SnapshotBackend over each store implementation in turn."""
    return request.getfixturevalue(f'{request.param}_backend')
