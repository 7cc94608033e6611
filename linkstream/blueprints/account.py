from flask import Blueprint, request

from linkstream.services import account_api_service

account_bp = Blueprint('account_api', __name__)


@account_bp.route('/api/gdpr/export-data', methods=['GET'])
def export_account_data():
    from linkstream import runtime

    return account_api_service.export_account_data(runtime, request)


@account_bp.route('/api/gdpr/delete-account', methods=['POST'])
def delete_account_data():
    from linkstream import runtime

    return account_api_service.delete_account_data(runtime, request)
