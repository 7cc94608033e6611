from flask import Blueprint, request

from linkstream.services import auth_api_service

auth_bp = Blueprint('auth_api', __name__)


@auth_bp.route('/api/csrf', methods=['GET'])
def issue_csrf_token():
    from linkstream import runtime

    return auth_api_service.issue_csrf_token(runtime, request)


@auth_bp.route('/api/auth/session', methods=['POST'])
def create_session():
    from linkstream import runtime

    return auth_api_service.create_session(runtime, request)


@auth_bp.route('/api/auth/logout', methods=['POST'])
def logout():
    from linkstream import runtime

    return auth_api_service.logout(runtime, request)


@auth_bp.route('/api/auth/user', methods=['GET'])
def get_user():
    from linkstream import runtime

    return auth_api_service.get_user(runtime, request)
