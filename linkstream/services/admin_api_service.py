"""Business logic handlers for admin APIs."""

MAX_ADMIN_USER_SCAN = 5000


def _admin_error_response(app_ctx, exc):
    status = app_ctx.admin_service.classify_error_status(exc)
    message = str(exc) if status != 500 else 'Internal server error'
    return app_ctx.jsonify({'error': message}), status


def check_role(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'isAdmin': False, 'error': 'Unauthorized'}), 401
    return app_ctx.jsonify({
        'isAdmin': app_ctx.is_admin_user(decoded_token),
        'uid': decoded_token.get('uid', ''),
        'email': decoded_token.get('email', ''),
    })


def list_users(app_ctx, request):
    try:
        admin = app_ctx.verify_admin_access(request)
    except app_ctx.admin_service.AdminAccessError as exc:
        return _admin_error_response(app_ctx, exc)

    allowed, retry_after = app_ctx.check_rate_limit(
        key=f"admin_list:{app_ctx.normalize_rate_limit_key_part(admin['uid'])}",
        limit=app_ctx.ADMIN_LIST_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=app_ctx.ADMIN_LIST_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed:
        app_ctx.log_rate_limit_hit('admin_list', retry_after)
        return app_ctx.build_rate_limited_response('Too many admin list requests.', retry_after)
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503

    tier = str(request.args.get('tier', '') or '').strip().lower()
    if tier and tier not in app_ctx.tier_service.VALID_TIERS:
        return app_ctx.jsonify({'error': 'Invalid tier filter'}), 400
    try:
        docs = app_ctx.users_repo.list_users(app_ctx.db, MAX_ADMIN_USER_SCAN, tier=tier)
        rows = [app_ctx.admin_service.user_admin_row(doc.id, doc.to_dict() or {}) for doc in docs]
        rows.sort(key=lambda row: row['createdAt'] if isinstance(row['createdAt'], (int, float)) else 0, reverse=True)
        rows = app_ctx.admin_service.filter_user_rows(
            rows,
            search=request.args.get('search', ''),
            status=request.args.get('status', ''),
        )
        page = app_ctx.admin_service.paginate(rows, request.args.get('page', 1), request.args.get('pageSize', 25))
    except Exception as exc:
        app_ctx.logger.error(f"Admin user list failed: {exc}")
        return _admin_error_response(app_ctx, exc)
    return app_ctx.jsonify({
        'users': page['items'],
        'pagination': {key: page[key] for key in ('page', 'pageSize', 'total', 'totalPages')},
    })


def upgrade_user(app_ctx, request):
    try:
        admin = app_ctx.verify_admin_access(request)
    except app_ctx.admin_service.AdminAccessError as exc:
        return _admin_error_response(app_ctx, exc)

    allowed, retry_after = app_ctx.check_rate_limit(
        key=f"admin_modify:{app_ctx.normalize_rate_limit_key_part(admin['uid'])}",
        limit=app_ctx.ADMIN_MODIFY_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=app_ctx.ADMIN_MODIFY_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed:
        app_ctx.log_rate_limit_hit('admin_modify', retry_after)
        return app_ctx.build_rate_limited_response('Too many admin modifications.', retry_after)

    data = request.get_json(silent=True) or {}
    target_uid = str(data.get('uid', '') or '').strip()
    new_tier = str(data.get('tier', '') or '').strip().lower()
    if not target_uid or not new_tier:
        return app_ctx.jsonify({'error': 'uid and tier are required'}), 400
    if new_tier not in app_ctx.tier_service.VALID_TIERS:
        return app_ctx.jsonify({'error': f"Invalid tier. Must be one of: {', '.join(app_ctx.tier_service.VALID_TIERS)}"}), 400
    try:
        reason = app_ctx.admin_service.validate_reason(data.get('reason'))
    except app_ctx.admin_service.AdminValidationError as exc:
        return app_ctx.jsonify({'error': str(exc)}), 400
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503

    snapshot = app_ctx.users_repo.get_doc(app_ctx.db, target_uid)
    if not snapshot.exists:
        return app_ctx.jsonify({'error': 'User not found'}), 404
    target = snapshot.to_dict() or {}
    old_tier = app_ctx.tier_service.normalize_tier(target.get('tier'))
    app_ctx.users_repo.update_doc(app_ctx.db, target_uid, {
        'tier': new_tier,
        'updatedAt': app_ctx.time.time(),
        'tierChangedBy': admin['uid'],
    })
    app_ctx.create_audit_log(
        admin_uid=admin['uid'],
        admin_email=admin['email'],
        action='upgrade_user_tier',
        target_uid=target_uid,
        target_email=target.get('email', ''),
        reason=reason,
        metadata={'oldTier': old_tier, 'newTier': new_tier},
    )
    return app_ctx.jsonify({
        'success': True,
        'uid': target_uid,
        'oldTier': old_tier,
        'newTier': new_tier,
    })


def get_analytics(app_ctx, request):
    try:
        app_ctx.verify_admin_access(request)
    except app_ctx.admin_service.AdminAccessError as exc:
        return _admin_error_response(app_ctx, exc)
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503
    try:
        rows = [app_ctx.admin_service.user_admin_row(doc.id, doc.to_dict() or {})
                for doc in app_ctx.users_repo.stream_all(app_ctx.db)]
        analytics = app_ctx.admin_service.compute_subscriber_analytics(rows, app_ctx.time.time())
        team_count = sum(1 for _ in app_ctx.teams_repo.stream_all(app_ctx.db))
    except Exception as exc:
        app_ctx.logger.error(f"Admin analytics failed: {exc}")
        return _admin_error_response(app_ctx, exc)
    analytics['teams'] = team_count
    analytics['runtime'] = app_ctx.build_runtime_checks()
    return app_ctx.jsonify(analytics)


def list_audit_logs(app_ctx, request):
    try:
        app_ctx.verify_admin_access(request)
    except app_ctx.admin_service.AdminAccessError as exc:
        return _admin_error_response(app_ctx, exc)
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503
    try:
        limit = min(max(int(request.args.get('limit', 50)), 1), 200)
    except (TypeError, ValueError):
        limit = 50
    docs = app_ctx.audit_repo.list_recent(app_ctx.db, limit, app_ctx.firestore)
    return app_ctx.jsonify({'logs': [dict(doc.to_dict() or {}, id=doc.id) for doc in docs]})
