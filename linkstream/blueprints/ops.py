from flask import Blueprint, request

from linkstream.services import ops_api_service

ops_bp = Blueprint('ops_api', __name__)


@ops_bp.route('/healthz', methods=['GET'])
def healthz():
    from linkstream import runtime

    return ops_api_service.healthz(runtime)


@ops_bp.route('/api/health', methods=['GET'])
def health():
    from linkstream import runtime

    return ops_api_service.health(runtime)


@ops_bp.route('/api/cron/cleanup-expired-backups', methods=['POST', 'GET'])
def cleanup_expired_backups():
    from linkstream import runtime

    return ops_api_service.cleanup_expired_backups(runtime, request)
