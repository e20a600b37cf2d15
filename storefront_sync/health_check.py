"""Health check endpoints for monitoring."""
import time
from datetime import datetime
from typing import Dict, Any

from flask import Blueprint, jsonify

from .context import get_context

health_bp = Blueprint('health', __name__, url_prefix='/api/health')


def check_database() -> Dict[str, Any]:
    """Check database connectivity and report catalog size."""
    start_time = time.time()
    ctx = get_context()
    result = ctx.db.health_check()
    if result['status'] == 'healthy':
        result['stats'] = {'product_count': ctx.store.count_products()}
    result['response_time_ms'] = round((time.time() - start_time) * 1000, 2)
    return result


def check_sync() -> Dict[str, Any]:
    """Latest sync run and whether one is holding the lock."""
    ctx = get_context()
    recent = ctx.store.recent_sync_logs(ctx.sync_settings.operation, limit=1)
    latest = recent[0] if recent else None
    return {
        'running': ctx.store.lock_owner(ctx.sync_settings.operation) is not None,
        'last_status': latest['status'] if latest else None,
        'last_completed_at': latest['completed_at'] if latest else None,
    }


@health_bp.route('', methods=['GET'])
def health():
    database = check_database()
    body = {
        'status': database['status'],
        'timestamp': datetime.utcnow().isoformat(),
        'checks': {'database': database},
    }
    if database['status'] == 'healthy':
        body['checks']['sync'] = check_sync()
    return jsonify(body), 200 if database['status'] == 'healthy' else 503
