"""Health probes and scheduled maintenance endpoints."""

import hmac


def healthz(app_ctx):
    return app_ctx.jsonify({'status': 'ok'}), 200


def health(app_ctx):
    checks = app_ctx.build_runtime_checks()
    status = 'ok' if checks.get('firebase_ready') else 'degraded'
    return app_ctx.jsonify({'status': status, 'checks': checks}), 200 if status == 'ok' else 503


def _cron_authorized(app_ctx, request):
    if not app_ctx.CRON_SECRET:
        return False
    header = request.headers.get('Authorization', '') or ''
    expected = f"Bearer {app_ctx.CRON_SECRET}"
    return hmac.compare_digest(header.encode('utf-8'), expected.encode('utf-8'))


def cleanup_expired_backups(app_ctx, request):
    if not app_ctx.CRON_SECRET:
        app_ctx.logger.warning("⚠️ Cleanup rejected: CRON_SECRET is not configured")
        return app_ctx.jsonify({'error': 'Cron not configured'}), 500
    if not _cron_authorized(app_ctx, request):
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503
    bucket = app_ctx.get_storage_bucket()
    if bucket is None:
        return app_ctx.jsonify({'error': 'Storage unavailable'}), 503

    result = app_ctx.retention_service.cleanup_expired_backups(
        app_ctx.db,
        bucket,
        app_ctx.time.time(),
        limit=app_ctx.CLEANUP_MAX_DOCS_PER_RUN,
        logger=app_ctx.logger,
    )
    return app_ctx.jsonify(dict(result, success=not result['errors']))
