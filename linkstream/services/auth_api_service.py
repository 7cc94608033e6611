"""Business logic handlers for auth/session APIs."""

from datetime import timedelta


def issue_csrf_token(app_ctx, request):
    token = app_ctx.csrf_service.generate_csrf_token()
    response = app_ctx.jsonify({'csrfToken': token})
    app_ctx.csrf_service.set_csrf_cookie(response, token, secure=app_ctx.request_is_secure(request))
    return response


def create_session(app_ctx, request):
    id_token = app_ctx._extract_bearer_token(request)
    if not id_token:
        payload = request.get_json(silent=True) or {}
        id_token = str(payload.get('idToken', '') or '').strip()
    if not id_token:
        return app_ctx.jsonify({'error': 'Missing ID token'}), 400

    try:
        decoded_token = app_ctx.auth.verify_id_token(id_token)
    except Exception as e:
        app_ctx.logger.info(f"Session creation rejected: {e}")
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401

    uid = decoded_token['uid']
    try:
        session_cookie = app_ctx.auth.create_session_cookie(
            id_token,
            expires_in=timedelta(seconds=app_ctx.SESSION_DURATION_SECONDS),
        )
    except Exception as e:
        app_ctx.logger.error(f"Error creating session cookie for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not create session'}), 500

    now_ts = app_ctx.time.time()
    try:
        app_ctx.sessions_repo.set_session(app_ctx.db, app_ctx.uuid.uuid4().hex, {
            'uid': uid,
            'createdAt': now_ts,
            'expiresAt': now_ts + app_ctx.SESSION_DURATION_SECONDS,
            'userAgent': str(request.headers.get('User-Agent', '') or '')[:200],
        })
    except Exception as e:
        app_ctx.logger.info(f"⚠️ Could not record session for {uid}: {e}")

    response = app_ctx.jsonify({'ok': True, 'uid': uid})
    response.set_cookie(
        app_ctx.SESSION_COOKIE_NAME,
        session_cookie,
        max_age=app_ctx.SESSION_DURATION_SECONDS,
        httponly=True,
        secure=app_ctx.request_is_secure(request),
        samesite='Lax',
        path='/',
    )
    return response


def logout(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if decoded_token and decoded_token.get('uid'):
        try:
            app_ctx.auth.revoke_refresh_tokens(decoded_token['uid'])
        except Exception as e:
            app_ctx.logger.info(f"⚠️ Could not revoke refresh tokens: {e}")
    response = app_ctx.jsonify({'ok': True})
    response.set_cookie(
        app_ctx.SESSION_COOKIE_NAME,
        '',
        expires=0,
        max_age=0,
        httponly=True,
        secure=app_ctx.request_is_secure(request),
        samesite='Lax',
        path='/',
    )
    return response


def get_user(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503

    uid = decoded_token['uid']
    email = decoded_token.get('email', '')
    try:
        user = app_ctx.get_or_create_user(uid, email, decoded_token.get('name', ''))
        tier = app_ctx.tier_service.normalize_tier(user.get('tier'))
        used = app_ctx.get_backups_this_month(uid)
        return app_ctx.jsonify({
            'uid': uid,
            'email': user.get('email', email),
            'displayName': user.get('displayName', ''),
            'tier': tier,
            'teamId': user.get('teamId'),
            'isAdmin': app_ctx.is_admin_user(decoded_token),
            'limits': app_ctx.tier_service.public_tier_payload(tier),
            'usage': app_ctx.usage_service.usage_summary(tier, used),
        })
    except Exception as e:
        app_ctx.logger.error(f"Error loading user {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load user profile'}), 500
