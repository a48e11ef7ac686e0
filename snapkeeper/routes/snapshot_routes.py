"""
Snapshot routes - list, download, upload and purge snapshots of one stream.
"""

from flask import Blueprint, Response, current_app, jsonify, request

from snapkeeper import create_backend
from snapkeeper.backup.backend import PurgeError
from snapkeeper.backup.naming import parse_backup_name, MalformedNameError
from snapkeeper.backup.storage import StorageError, NotFoundError, InvalidPrefixError


bp = Blueprint('snapshots', __name__, url_prefix='/api/snapshots')

CHUNK_SIZE = 64 * 1024


def _backend():
    return create_backend(current_app.config, prefix=request.args.get('prefix'))


def _stream_snapshot(backend, name):
    snapshot = parse_backup_name(name)
    body = backend.open(snapshot.name)

    def generate():
        try:
            while True:
                chunk = body.read(CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk
        finally:
            body.close()

    response = Response(generate(), mimetype='application/octet-stream')
    response.headers['X-Snapshot-Name'] = snapshot.name
    response.headers['X-Snapshot-Version'] = snapshot.version
    response.headers['X-Snapshot-Revision'] = str(snapshot.revision)
    return response


@bp.errorhandler(InvalidPrefixError)
def handle_invalid_prefix(e):
    return jsonify({'error': str(e)}), 400


@bp.errorhandler(NotFoundError)
def handle_not_found(e):
    return jsonify({'error': str(e)}), 404


@bp.errorhandler(StorageError)
def handle_storage_error(e):
    current_app.logger.error(f"Storage error: {e}")
    return jsonify({'error': str(e)}), 502


@bp.route('/', methods=['GET'])
def list_snapshots():
    """
    List snapshots of a stream, newest first.

    Query params:
        - prefix: Backup stream (default: STORAGE_PREFIX)

    Returns:
        JSON with prefix, snapshots and total stored size
    """
    backend = _backend()
    snapshots = backend.list_snapshots()

    return jsonify({
        'prefix': backend.prefix,
        'snapshots': [
            {'name': s.name, 'version': s.version, 'revision': s.revision}
            for s in snapshots
        ],
        'total_size_bytes': backend.total_size()
    })


@bp.route('/latest', methods=['GET'])
def get_latest_snapshot():
    """Stream the most recent snapshot."""
    backend = _backend()
    return _stream_snapshot(backend, backend.get_latest())


@bp.route('/<name>', methods=['GET'])
def get_snapshot(name):
    """Stream a snapshot by name."""
    try:
        parse_backup_name(name)
    except MalformedNameError as e:
        return jsonify({'error': str(e)}), 400

    return _stream_snapshot(_backend(), name)


@bp.route('/<version>/<int:revision>', methods=['PUT'])
def save_snapshot(version, revision):
    """
    Store the request body as a snapshot.

    Returns:
        201 with the stored name
    """
    backend = _backend()
    try:
        name = backend.save(version, revision, request.get_data())
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({'name': name}), 201


@bp.route('/purge', methods=['POST'])
def purge_snapshots():
    """
    Delete all but the newest snapshots.

    Request JSON:
        - keep: Number of snapshots to keep (default: RETENTION_KEEP_COUNT)

    Returns:
        JSON with deleted names; 207 with failures when some deletions failed
    """
    data = request.get_json(silent=True) or {}
    keep = data.get('keep', current_app.config['RETENTION_KEEP_COUNT'])

    if isinstance(keep, bool) or not isinstance(keep, int) or keep < 0:
        return jsonify({'error': 'keep must be a non-negative integer'}), 400

    backend = _backend()
    try:
        deleted = backend.purge(keep)
    except PurgeError as e:
        return jsonify({
            'deleted': e.deleted,
            'failures': [{'name': name, 'error': str(error)} for name, error in e.failures]
        }), 207

    return jsonify({'deleted': deleted})
