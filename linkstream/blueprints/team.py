from flask import Blueprint, request

from linkstream.services import team_api_service

team_bp = Blueprint('team_api', __name__)


@team_bp.route('/api/team', methods=['GET'])
def get_team():
    from linkstream import runtime

    return team_api_service.get_team(runtime, request)


@team_bp.route('/api/team', methods=['POST'])
def create_team():
    from linkstream import runtime

    return team_api_service.create_team(runtime, request)


@team_bp.route('/api/team/invite', methods=['POST'])
def send_invite():
    from linkstream import runtime

    return team_api_service.send_invite(runtime, request)


@team_bp.route('/api/team/accept-invite', methods=['POST'])
def accept_invite():
    from linkstream import runtime

    return team_api_service.accept_invite(runtime, request)


@team_bp.route('/api/team/validate-invite/<token>', methods=['GET'])
def validate_invite(token):
    from linkstream import runtime

    return team_api_service.validate_invite(runtime, token)


@team_bp.route('/api/team/members/<member_id>', methods=['DELETE'])
def remove_member(member_id):
    from linkstream import runtime

    return team_api_service.remove_member(runtime, request, member_id)
