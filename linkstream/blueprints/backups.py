from flask import Blueprint, request

from linkstream.services import backups_api_service

backups_bp = Blueprint('backups_api', __name__)


@backups_bp.route('/api/backups', methods=['GET'])
def list_backups():
    from linkstream import runtime

    return backups_api_service.list_backups(runtime, request)


@backups_bp.route('/api/backups/upload', methods=['POST'])
def create_upload_url():
    from linkstream import runtime

    return backups_api_service.create_upload_url(runtime, request)


@backups_bp.route('/api/backups/<backup_id>', methods=['GET'])
def get_backup(backup_id):
    from linkstream import runtime

    return backups_api_service.get_backup(runtime, request, backup_id)


@backups_bp.route('/api/backups/<backup_id>/process', methods=['POST'])
def process_backup(backup_id):
    from linkstream import runtime

    return backups_api_service.process_backup(runtime, request, backup_id)


@backups_bp.route('/api/backups/<backup_id>/summarize', methods=['POST'])
def summarize_backup(backup_id):
    from linkstream import runtime

    return backups_api_service.summarize_backup(runtime, request, backup_id)


@backups_bp.route('/api/backups/<backup_id>/export-connections', methods=['GET'])
def export_connections(backup_id):
    from linkstream import runtime

    return backups_api_service.export_connections(runtime, request, backup_id)


@backups_bp.route('/api/backups/<backup_id>/report', methods=['GET'])
def download_report(backup_id):
    from linkstream import runtime

    return backups_api_service.download_report(runtime, request, backup_id)


@backups_bp.route('/api/usage', methods=['GET'])
def get_usage():
    from linkstream import runtime

    return backups_api_service.get_usage(runtime, request)


@backups_bp.route('/api/usage', methods=['POST'])
def record_usage():
    from linkstream import runtime

    return backups_api_service.record_usage(runtime, request)


@backups_bp.route('/api/ai/post-suggestions', methods=['POST'])
def suggest_posts():
    from linkstream import runtime

    return backups_api_service.suggest_posts(runtime, request)
