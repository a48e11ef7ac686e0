import os
import logging
from logging.handlers import RotatingFileHandler
from flask import Flask


def configure_logging(app):
    """Configure application logging"""

    log_dir = app.config['LOG_DIR']
    os.makedirs(log_dir, exist_ok=True)

    # Set log level based on environment
    log_level = logging.DEBUG if app.config.get('DEBUG', False) else logging.INFO

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
    )
    console_handler.setFormatter(console_formatter)

    # File handler
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, 'snapkeeper.log'),
        maxBytes=10485760,  # 10MB
        backupCount=10
    )
    file_handler.setLevel(log_level)
    file_formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s'
    )
    file_handler.setFormatter(file_formatter)

    # Configure root logger
    logging.basicConfig(level=log_level, handlers=[console_handler, file_handler])

    # Configure Flask app logger
    app.logger.setLevel(log_level)
    app.logger.addHandler(console_handler)
    app.logger.addHandler(file_handler)

    app.logger.info(f"Logging configured (level: {logging.getLevelName(log_level)})")


def create_store(config, prefix=None):
    """
    Build the blob store named by config['STORAGE_TYPE'].

    Args:
        config: Flask config (or any mapping with the same keys)
        prefix: Backup stream prefix (default: config['STORAGE_PREFIX'])

    Raises:
        ValueError: If the storage type is unknown or S3 has no bucket
    """
    from snapkeeper.backup.storage import S3Storage, LocalStorage

    prefix = prefix or config['STORAGE_PREFIX']
    storage_type = config['STORAGE_TYPE']

    if storage_type == 's3':
        if not config.get('S3_BUCKET'):
            raise ValueError("S3_BUCKET must be set when STORAGE_TYPE is 's3'")
        return S3Storage(
            bucket_name=config['S3_BUCKET'],
            prefix=prefix,
            access_key=config.get('S3_ACCESS_KEY'),
            secret_key=config.get('S3_SECRET_KEY'),
            region=config.get('S3_REGION') or 'us-east-1',
            endpoint_url=config.get('S3_ENDPOINT_URL')
        )
    if storage_type == 'local':
        return LocalStorage(config['LOCAL_STORAGE_DIR'], prefix)

    raise ValueError(f"Unknown storage type: {storage_type}")


def create_backend(config, prefix=None):
    """Build a SnapshotBackend over the configured blob store."""
    from snapkeeper.backup.backend import SnapshotBackend
    return SnapshotBackend(create_store(config, prefix=prefix))


def create_app(config_name=None, overrides=None):
    """Flask application factory"""

    app = Flask(__name__)

    # Load configuration
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'production')

    from snapkeeper.config import config
    app.config.from_object(config[config_name])
    if overrides:
        app.config.update(overrides)

    # Configure logging
    configure_logging(app)

    if app.config['STORAGE_TYPE'] == 'local':
        os.makedirs(app.config['LOCAL_STORAGE_DIR'], exist_ok=True)

    from snapkeeper.routes import snapshot_routes
    app.register_blueprint(snapshot_routes.bp)

    # Health check endpoint
    @app.route('/health')
    def health():
        return {'status': 'healthy'}, 200

    # Initialize and start scheduler (only in designated worker or development child process)
    from snapkeeper.scheduler import init_scheduler, start_scheduler, stop_scheduler
    import atexit

    is_reloader_child = os.environ.get('WERKZEUG_RUN_MAIN') == 'true'
    is_development = app.config.get('DEBUG', False)
    is_scheduler_worker = os.environ.get('SCHEDULER_WORKER', 'true').lower() == 'true'

    # - Development mode: Only in Flask reloader child process (not parent)
    # - Production mode: Only in designated scheduler worker (SCHEDULER_WORKER=true)
    if not app.config.get('SCHEDULER_ENABLED', True):
        should_init_scheduler = False
        app.logger.info("Scheduler disabled by configuration")
    elif is_development:
        should_init_scheduler = is_reloader_child
        app.logger.info(f"Development mode: is_reloader_child={is_reloader_child}")
    else:
        should_init_scheduler = is_scheduler_worker
        app.logger.info(f"Production mode: is_scheduler_worker={is_scheduler_worker}")

    if should_init_scheduler:
        app.logger.info("Initializing scheduler in this process...")
        init_scheduler(app)
        start_scheduler()

        atexit.register(stop_scheduler)
        app.logger.info("Scheduler initialized and started successfully")
    else:
        app.logger.info("Scheduler initialization skipped in this process")

    return app
