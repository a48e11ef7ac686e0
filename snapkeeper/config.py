import os


def _split_list(value):
    return [item.strip() for item in value.split(',') if item.strip()]


class Config:
    """Base configuration"""

    # Storage backend: 's3' or 'local'
    STORAGE_TYPE = os.environ.get('STORAGE_TYPE') or 'local'
    STORAGE_PREFIX = os.environ.get('STORAGE_PREFIX') or 'default'
    LOCAL_STORAGE_DIR = os.environ.get('LOCAL_STORAGE_DIR') or '/data/snapshots'

    # S3 (credentials are handed to S3Storage explicitly, never read there)
    S3_BUCKET = os.environ.get('S3_BUCKET')
    S3_REGION = os.environ.get('S3_REGION') or 'us-east-1'
    S3_ACCESS_KEY = os.environ.get('S3_ACCESS_KEY')
    S3_SECRET_KEY = os.environ.get('S3_SECRET_KEY')
    S3_ENDPOINT_URL = os.environ.get('S3_ENDPOINT_URL')

    # Retention
    RETENTION_KEEP_COUNT = int(os.environ.get('RETENTION_KEEP_COUNT', 5))
    RETENTION_STREAMS = _split_list(os.environ.get('RETENTION_STREAMS', '')) or [STORAGE_PREFIX]
    RETENTION_CRON = os.environ.get('RETENTION_CRON') or '0 2 * * *'

    # Scheduler
    SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED', 'true').lower() == 'true'
    SCHEDULER_TIMEZONE = 'UTC'

    # Logging
    LOG_DIR = os.environ.get('LOG_DIR') or '/data/logs'


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True

    # Use local data directory for development
    BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    DATA_DIR = os.path.join(BASE_DIR, 'data')
    LOCAL_STORAGE_DIR = os.path.join(DATA_DIR, 'snapshots')
    LOG_DIR = os.path.join(DATA_DIR, 'logs')


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'default': ProductionConfig
}
