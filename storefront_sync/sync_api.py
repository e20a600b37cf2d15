"""Admin endpoints to trigger catalog syncs and poll their progress."""

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError
import logging

from .context import get_context
from .schemas import sync_options_schema

# Configure logging
logger = logging.getLogger(__name__)

# Create Blueprint
sync_bp = Blueprint('sync', __name__, url_prefix='/api/admin/sync')


@sync_bp.route('', methods=['POST'])
@jwt_required()
def trigger_sync():
    """Queue a full catalog sync and return its sync log for polling."""
    try:
        options = sync_options_schema.load(request.get_json(silent=True) or {})
    except ValidationError as e:
        return jsonify({'error': 'Invalid sync options', 'details': e.messages}), 400

    ctx = get_context()
    operation = ctx.sync_settings.operation

    holder = ctx.store.lock_owner(operation)
    if holder:
        return jsonify({'error': 'A sync is already running', 'lock_owner': holder}), 409

    sync_log = ctx.store.create_sync_log(operation, options)
    try:
        task_id = ctx.enqueue_sync(sync_log['id'], options)
    except Exception as e:
        logger.error(f"Failed to enqueue sync {sync_log['id']}: {e}")
        ctx.store.fail_sync_log(sync_log['id'], f"Failed to enqueue: {e}")
        return jsonify({'error': 'Failed to queue sync'}), 503

    logger.info(f"Sync {sync_log['id']} queued by {get_jwt_identity()} as task {task_id}")
    return jsonify({'sync_log': sync_log, 'task_id': task_id}), 202


@sync_bp.route('', methods=['GET'])
@jwt_required()
def list_syncs():
    """Recent sync runs, newest first."""
    limit = min(request.args.get('limit', 20, type=int), 100)
    ctx = get_context()
    logs = ctx.store.recent_sync_logs(ctx.sync_settings.operation, limit=limit)
    return jsonify({'sync_logs': logs, 'total': len(logs)}), 200


@sync_bp.route('/<int:sync_id>', methods=['GET'])
@jwt_required()
def get_sync(sync_id: int):
    """One sync log; the admin UI polls this while a run is in progress."""
    sync_log = get_context().store.get_sync_log(sync_id)
    if not sync_log:
        return jsonify({'error': 'Sync log not found'}), 404
    return jsonify(sync_log), 200
