"""Business logic handlers for team and invite APIs."""

import logging


def _team_error_response(app_ctx, exc):
    return app_ctx.jsonify({'error': exc.message}), exc.status_code


def _member_rows(app_ctx, team):
    rows = []
    owner_id = team.get('ownerId', '')
    for member_uid in team.get('memberIds') or []:
        snapshot = app_ctx.users_repo.get_doc(app_ctx.db, member_uid)
        data = (snapshot.to_dict() or {}) if snapshot.exists else {}
        rows.append({
            'uid': member_uid,
            'email': data.get('email', ''),
            'displayName': data.get('displayName', ''),
            'role': 'owner' if member_uid == owner_id else 'member',
            'joinedAt': data.get('teamJoinedAt'),
        })
    return rows


def get_team(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503

    uid = decoded_token['uid']
    user = app_ctx.get_or_create_user(uid, decoded_token.get('email', ''))
    team_id = user.get('teamId')
    if not team_id:
        return app_ctx.jsonify({'team': None})
    snapshot = app_ctx.teams_repo.get_doc(app_ctx.db, team_id)
    if not snapshot.exists:
        return app_ctx.jsonify({'team': None})
    team = snapshot.to_dict() or {}
    return app_ctx.jsonify({
        'team': app_ctx.team_service.team_payload(team_id, team, _member_rows(app_ctx, team), uid),
    })


def create_team(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503

    uid = decoded_token['uid']
    email = decoded_token.get('email', '')
    user = app_ctx.get_or_create_user(uid, email)
    if user.get('teamId'):
        return app_ctx.jsonify({'error': 'You already belong to a team'}), 409
    try:
        team_id, team = app_ctx.team_service.create_team(
            uid,
            email,
            user.get('tier'),
            db=app_ctx.db,
            time_module=app_ctx.time,
            subscription_id=user.get('stripeSubscriptionId', ''),
        )
    except app_ctx.team_service.TeamError as exc:
        return _team_error_response(app_ctx, exc)
    app_ctx.logger.info(f"✅ Team {team_id} created by {uid}")
    return app_ctx.jsonify({'team': app_ctx.team_service.team_payload(team_id, team, _member_rows(app_ctx, team), uid)}), 201


def send_invite(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503

    uid = decoded_token['uid']
    owner_email = str(decoded_token.get('email', '') or '').strip().lower()
    data = request.get_json(silent=True) or {}
    invite_email = app_ctx.team_service.normalize_email(data.get('email', ''))
    if not app_ctx.team_service.is_valid_email(invite_email):
        return app_ctx.jsonify({'error': 'Valid email is required'}), 400
    if invite_email == owner_email:
        return app_ctx.jsonify({'error': 'Cannot invite yourself'}), 400

    allowed_invite, retry_after = app_ctx.check_rate_limit(
        key=f"team_invite:{app_ctx.normalize_rate_limit_key_part(uid, fallback='anon_uid')}",
        limit=app_ctx.TEAM_INVITE_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=app_ctx.TEAM_INVITE_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed_invite:
        app_ctx.log_rate_limit_hit('team_invite', retry_after)
        return app_ctx.build_rate_limited_response('Too many invites. Please wait before sending more.', retry_after)

    user = app_ctx.get_or_create_user(uid, owner_email)
    team_id = user.get('teamId')
    if not team_id:
        return app_ctx.jsonify({'error': 'You are not part of a team'}), 400

    existing = app_ctx.users_repo.find_by_email(app_ctx.db, invite_email)
    try:
        invite, team = app_ctx.team_service.create_invite(
            team_id,
            uid,
            invite_email,
            db=app_ctx.db,
            firestore_module=app_ctx.firestore,
            time_module=app_ctx.time,
            existing_member_uid=existing.id if existing is not None else '',
        )
    except app_ctx.team_service.TeamError as exc:
        return _team_error_response(app_ctx, exc)

    email_error = app_ctx.send_team_invite_email(invite_email, team.get('ownerEmail') or owner_email, invite['token'])
    if email_error:
        app_ctx.logger.warning(f"⚠️ Invite created but email failed for team {team_id}: {email_error}")
    app_ctx.log_event(logging.INFO, 'team_invite_created', team_id=team_id, invited_by=uid, email_sent=not email_error)
    return app_ctx.jsonify({
        'success': True,
        'invite': {
            'email': invite['email'],
            'token': invite['token'],
            'status': invite['status'],
            'invitedAt': invite['invitedAt'],
        },
        'emailSent': not email_error,
    })


def accept_invite(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503

    data = request.get_json(silent=True) or {}
    token = str(data.get('token', '') or '').strip()
    if not token:
        return app_ctx.jsonify({'error': 'Invite token is required'}), 400

    uid = decoded_token['uid']
    try:
        team_id = app_ctx.team_service.accept_invite(
            token,
            uid,
            decoded_token.get('email', ''),
            db=app_ctx.db,
            firestore_module=app_ctx.firestore,
            time_module=app_ctx.time,
        )
    except app_ctx.team_service.TeamError as exc:
        return _team_error_response(app_ctx, exc)
    except Exception as e:
        app_ctx.logger.error(f"Accept invite error for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Failed to accept invitation'}), 500

    app_ctx.logger.info(f"✅ User {uid} joined team {team_id}")
    return app_ctx.jsonify({'success': True, 'teamId': team_id})


def validate_invite(app_ctx, token):
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503
    try:
        details = app_ctx.team_service.validate_invite(app_ctx.db, token)
    except app_ctx.team_service.TeamError as exc:
        return app_ctx.jsonify({'valid': False, 'error': exc.message}), exc.status_code
    return app_ctx.jsonify(dict(details, valid=True))


def remove_member(app_ctx, request, member_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503

    uid = decoded_token['uid']
    user = app_ctx.get_or_create_user(uid, decoded_token.get('email', ''))
    team_id = user.get('teamId')
    if not team_id:
        return app_ctx.jsonify({'error': 'You are not part of a team'}), 400
    try:
        result = app_ctx.team_service.remove_member_or_invite(
            team_id, uid, member_id, db=app_ctx.db, time_module=app_ctx.time,
        )
    except app_ctx.team_service.TeamError as exc:
        return _team_error_response(app_ctx, exc)
    return app_ctx.jsonify(dict(result, success=True))
