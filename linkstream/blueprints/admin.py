from flask import Blueprint, request

from linkstream.services import admin_api_service

admin_bp = Blueprint('admin_api', __name__)


@admin_bp.route('/api/admin/check-role', methods=['GET'])
def check_role():
    from linkstream import runtime

    return admin_api_service.check_role(runtime, request)


@admin_bp.route('/api/admin/users', methods=['GET'])
def list_users():
    from linkstream import runtime

    return admin_api_service.list_users(runtime, request)


@admin_bp.route('/api/admin/upgrade-user', methods=['POST'])
def upgrade_user():
    from linkstream import runtime

    return admin_api_service.upgrade_user(runtime, request)


@admin_bp.route('/api/admin/analytics', methods=['GET'])
def analytics():
    from linkstream import runtime

    return admin_api_service.get_analytics(runtime, request)


@admin_bp.route('/api/admin/audit-logs', methods=['GET'])
def audit_logs():
    from linkstream import runtime

    return admin_api_service.list_audit_logs(runtime, request)
