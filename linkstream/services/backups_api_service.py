"""Business logic handlers for backup upload, processing and downloads."""

import io
import logging


def _require_user(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return None, (app_ctx.jsonify({'error': 'Unauthorized'}), 401)
    if app_ctx.db is None:
        return None, (app_ctx.jsonify({'error': 'Database unavailable'}), 503)
    return decoded_token, None


def _load_owned_backup(app_ctx, backup_id, uid):
    snapshot = app_ctx.backups_repo.get_doc(app_ctx.db, backup_id)
    if not snapshot.exists:
        return None, (app_ctx.jsonify({'error': 'Backup not found'}), 404)
    backup = snapshot.to_dict() or {}
    if backup.get('uid') != uid:
        return None, (app_ctx.jsonify({'error': 'Unauthorized access to backup'}), 403)
    return backup, None


def _public_backup(backup_id, backup):
    return {
        'backupId': backup_id,
        'status': backup.get('status', ''),
        'source': backup.get('source', ''),
        'fileSize': backup.get('fileSize', 0),
        'fileName': (backup.get('metadata', {}) or {}).get('fileName', ''),
        'contains': backup.get('contains', {}),
        'stats': backup.get('stats'),
        'insights': backup.get('insights', []),
        'hasSummary': bool(backup.get('summary')),
        'errorMessage': backup.get('errorMessage', ''),
        'createdAt': backup.get('createdAt'),
        'processedAt': backup.get('processedAt'),
        'retention': backup.get('retention', {}),
    }


def list_backups(app_ctx, request):
    decoded_token, error = _require_user(app_ctx, request)
    if error:
        return error
    uid = decoded_token['uid']
    try:
        docs = app_ctx.backups_repo.list_by_uid_recent(app_ctx.db, uid, app_ctx.BACKUP_LIST_LIMIT, app_ctx.firestore)
        return app_ctx.jsonify({'backups': [_public_backup(doc.id, doc.to_dict() or {}) for doc in docs]})
    except Exception as e:
        app_ctx.logger.error(f"Error listing backups for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not list backups'}), 500


def get_backup(app_ctx, request, backup_id):
    decoded_token, error = _require_user(app_ctx, request)
    if error:
        return error
    backup, error = _load_owned_backup(app_ctx, backup_id, decoded_token['uid'])
    if error:
        return error
    payload = _public_backup(backup_id, backup)
    payload['analytics'] = backup.get('analytics', {})
    payload['summary'] = backup.get('summary', '')
    return app_ctx.jsonify(payload)


def create_upload_url(app_ctx, request):
    decoded_token, error = _require_user(app_ctx, request)
    if error:
        return error
    uid = decoded_token['uid']
    email = decoded_token.get('email', '')

    allowed_upload, retry_after = app_ctx.check_rate_limit(
        key=f"upload:{app_ctx.normalize_rate_limit_key_part(uid, fallback='anon_uid')}",
        limit=app_ctx.UPLOAD_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=app_ctx.UPLOAD_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed_upload:
        app_ctx.log_rate_limit_hit('upload', retry_after)
        return app_ctx.build_rate_limited_response('Too many uploads. Please wait before uploading again.', retry_after)

    data = request.get_json(silent=True) or {}
    file_name = str(data.get('fileName', '') or '').strip()[:255]
    content_type = str(data.get('contentType', '') or '').strip().lower()
    try:
        file_size = int(data.get('fileSize', 0) or 0)
    except (TypeError, ValueError):
        file_size = 0
    if not file_name or not content_type or file_size <= 0:
        return app_ctx.jsonify({'error': 'Missing required fields: fileName, fileSize, contentType'}), 400
    if file_size > app_ctx.MAX_EXPORT_UPLOAD_BYTES:
        return app_ctx.jsonify({
            'error': 'File too large',
            'message': f"Maximum file size is {app_ctx.MAX_EXPORT_UPLOAD_BYTES // (1024 * 1024)}MB",
        }), 400
    if content_type not in app_ctx.ALLOWED_EXPORT_CONTENT_TYPES:
        return app_ctx.jsonify({'error': 'Invalid file type', 'message': 'Only ZIP files are allowed'}), 400

    bucket = app_ctx.get_storage_bucket()
    if bucket is None:
        return app_ctx.jsonify({'error': 'Storage unavailable'}), 503

    user = app_ctx.get_or_create_user(uid, email)
    tier = app_ctx.tier_service.normalize_tier(user.get('tier'))
    allowed, count = app_ctx.reserve_backup_slot(uid, tier)
    if not allowed:
        return app_ctx.jsonify({
            'error': 'Monthly backup limit reached',
            'usage': app_ctx.usage_service.usage_summary(tier, count),
        }), 403

    backup_id = app_ctx.new_backup_id()
    storage_path = app_ctx.storage_repo.raw_archive_path(uid, backup_id)
    now_ts = app_ctx.time.time()
    try:
        upload_url = app_ctx.storage_repo.generate_upload_url(
            bucket, storage_path, content_type, app_ctx.UPLOAD_URL_EXPIRES_SECONDS,
        )
        app_ctx.backups_repo.set_doc(app_ctx.db, backup_id, {
            'backupId': backup_id,
            'uid': uid,
            'source': 'manual_upload',
            'status': 'uploaded',
            'storagePaths': {'raw': storage_path},
            'contains': {
                'connections': False,
                'profile': False,
                'messages': False,
                'positions': False,
                'education': False,
                'skills': False,
                'recommendations': False,
            },
            'retention': {
                'rawExpiresAt': now_ts + app_ctx.RAW_RETENTION_SECONDS,
                'derivedExpiresAt': now_ts + app_ctx.DERIVED_RETENTION_SECONDS,
                'keepRawForever': False,
            },
            'fileSize': file_size,
            'metadata': {
                'fileName': file_name,
                'uploadedFromIp': request.headers.get('X-Forwarded-For', request.remote_addr or '') or '',
                'userAgent': str(request.headers.get('User-Agent', '') or '')[:200],
            },
            'createdAt': now_ts,
            'updatedAt': now_ts,
        })
    except Exception as e:
        app_ctx.logger.error(f"Error creating upload URL for {uid}: {e}")
        app_ctx.release_backup_slot(uid)
        return app_ctx.jsonify({'error': 'Failed to generate upload URL'}), 500

    app_ctx.log_event(logging.INFO, 'backup_upload_url_issued', uid=uid, backup_id=backup_id, file_size=file_size)
    return app_ctx.jsonify({
        'backupId': backup_id,
        'uploadUrl': upload_url,
        'storagePath': storage_path,
        'expiresIn': app_ctx.UPLOAD_URL_EXPIRES_SECONDS,
        'usage': app_ctx.usage_service.usage_summary(tier, count),
    })


def run_backup_pipeline(app_ctx, backup_id, uid, backup, include_summary=True):
    """Download, analyse and summarize one backup; return the fields written."""
    bucket = app_ctx.get_storage_bucket()
    if bucket is None:
        raise RuntimeError('Storage unavailable')
    raw_path = (backup.get('storagePaths', {}) or {}).get('raw')
    if not raw_path:
        raise RuntimeError('Raw backup file not found')
    archive_bytes = app_ctx.storage_repo.download_bytes(bucket, raw_path)

    result = app_ctx.export_stats_service.compute_export_stats(archive_bytes)
    insights = app_ctx.insights_service.generate_insights(result)
    document = app_ctx.extraction_service.extract_export_text(archive_bytes)
    processed_path = app_ctx.storage_repo.upload_text(
        bucket, app_ctx.storage_repo.processed_text_path(uid, backup_id), document,
    )

    summary = ''
    if include_summary and app_ctx.client is not None:
        summary = app_ctx.summarize_export(document)

    now_ts = app_ctx.time.time()
    snapshot_id = app_ctx.new_backup_id()
    app_ctx.backups_repo.snapshot_doc_ref(app_ctx.db, uid, snapshot_id).set(
        dict(app_ctx.export_stats_service.build_snapshot(result, backup_id, uid, now_ts), snapshotId=snapshot_id)
    )
    updates = {
        'status': 'ready',
        'contains': result['contains'],
        'stats': result['stats'],
        'analytics': result['analytics'],
        'profileCompleteness': result['completeness'],
        'insights': insights,
        'summary': summary,
        'storagePaths.processed': processed_path,
        'errorMessage': '',
        'processedAt': now_ts,
        'updatedAt': now_ts,
    }
    app_ctx.backups_repo.update_doc(app_ctx.db, backup_id, updates)
    return updates, snapshot_id


def process_backup(app_ctx, request, backup_id):
    decoded_token, error = _require_user(app_ctx, request)
    if error:
        return error
    uid = decoded_token['uid']
    backup, error = _load_owned_backup(app_ctx, backup_id, uid)
    if error:
        return error

    status = backup.get('status', '')
    if status == 'processing':
        return app_ctx.jsonify({'error': 'Backup is already being processed'}), 400
    if status == 'ready':
        return app_ctx.jsonify({'message': 'Backup already processed', 'backupId': backup_id}), 200

    allowed_ai, retry_after = app_ctx.check_rate_limit(
        key=f"ai_analysis:{app_ctx.normalize_rate_limit_key_part(uid, fallback='anon_uid')}",
        limit=app_ctx.AI_ANALYSIS_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=app_ctx.AI_ANALYSIS_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed_ai:
        app_ctx.log_rate_limit_hit('ai_analysis', retry_after)
        return app_ctx.build_rate_limited_response('Too many processing requests. Please retry later.', retry_after)

    payload = request.get_json(silent=True) or {}
    include_summary = payload.get('summarize', True) is not False
    app_ctx.backups_repo.update_doc(app_ctx.db, backup_id, {'status': 'processing', 'updatedAt': app_ctx.time.time()})
    try:
        updates, snapshot_id = run_backup_pipeline(app_ctx, backup_id, uid, backup, include_summary=include_summary)
    except app_ctx.archive_service.ArchiveError as e:
        app_ctx.backups_repo.update_doc(app_ctx.db, backup_id, {
            'status': 'error',
            'errorMessage': f"Failed to parse export: {e}",
            'updatedAt': app_ctx.time.time(),
        })
        return app_ctx.jsonify({'error': 'Failed to parse LinkedIn export', 'details': str(e)}), 400
    except Exception as e:
        app_ctx.logger.error(f"❌ Backup processing failed for {backup_id}: {e}")
        app_ctx.backups_repo.update_doc(app_ctx.db, backup_id, {
            'status': 'error',
            'errorMessage': str(e)[:500],
            'updatedAt': app_ctx.time.time(),
        })
        return app_ctx.jsonify({'error': 'Failed to process backup', 'details': str(e)[:500]}), 500

    app_ctx.log_event(logging.INFO, 'backup_processed', uid=uid, backup_id=backup_id,
                      connections=updates['stats'].get('connections', 0), summarized=bool(updates['summary']))
    return app_ctx.jsonify({
        'success': True,
        'backupId': backup_id,
        'snapshotId': snapshot_id,
        'stats': updates['stats'],
        'insights': updates['insights'],
        'summary': updates['summary'],
        'contains': updates['contains'],
    })


def summarize_backup(app_ctx, request, backup_id):
    decoded_token, error = _require_user(app_ctx, request)
    if error:
        return error
    uid = decoded_token['uid']
    backup, error = _load_owned_backup(app_ctx, backup_id, uid)
    if error:
        return error
    if app_ctx.client is None:
        return app_ctx.jsonify({'error': 'AI summarization is not configured'}), 503

    allowed_ai, retry_after = app_ctx.check_rate_limit(
        key=f"ai_analysis:{app_ctx.normalize_rate_limit_key_part(uid, fallback='anon_uid')}",
        limit=app_ctx.AI_ANALYSIS_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=app_ctx.AI_ANALYSIS_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed_ai:
        app_ctx.log_rate_limit_hit('ai_analysis', retry_after)
        return app_ctx.build_rate_limited_response('Too many AI requests. Please retry later.', retry_after)

    bucket = app_ctx.get_storage_bucket()
    if bucket is None:
        return app_ctx.jsonify({'error': 'Storage unavailable'}), 503
    paths = backup.get('storagePaths', {}) or {}
    try:
        if paths.get('processed'):
            document = app_ctx.storage_repo.download_bytes(bucket, paths['processed']).decode('utf-8', errors='replace')
        elif paths.get('raw'):
            document = app_ctx.extraction_service.extract_export_text(app_ctx.storage_repo.download_bytes(bucket, paths['raw']))
        else:
            return app_ctx.jsonify({'error': 'Backup file no longer exists in storage'}), 404
        summary = app_ctx.summarize_export(document)
    except app_ctx.archive_service.ArchiveError as e:
        return app_ctx.jsonify({'error': 'Failed to parse LinkedIn export', 'details': str(e)}), 400
    except Exception as e:
        app_ctx.logger.error(f"❌ Summary failed for backup {backup_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not summarize backup'}), 500

    app_ctx.backups_repo.update_doc(app_ctx.db, backup_id, {'summary': summary, 'updatedAt': app_ctx.time.time()})
    return app_ctx.jsonify({'backupId': backup_id, 'summary': summary})


def export_connections(app_ctx, request, backup_id):
    decoded_token, error = _require_user(app_ctx, request)
    if error:
        return error
    backup, error = _load_owned_backup(app_ctx, backup_id, decoded_token['uid'])
    if error:
        return error
    raw_path = (backup.get('storagePaths', {}) or {}).get('raw')
    if not raw_path:
        return app_ctx.jsonify({'error': 'Raw backup file not found'}), 404
    bucket = app_ctx.get_storage_bucket()
    if bucket is None:
        return app_ctx.jsonify({'error': 'Storage unavailable'}), 503
    try:
        if not app_ctx.storage_repo.exists(bucket, raw_path):
            return app_ctx.jsonify({'error': 'Backup file no longer exists in storage'}), 404
        archive_bytes = app_ctx.storage_repo.download_bytes(bucket, raw_path)
        csv_text = app_ctx.archive_service.read_entry_text(archive_bytes, 'Connections.csv')
    except app_ctx.archive_service.ArchiveError as e:
        return app_ctx.jsonify({'error': 'Failed to parse LinkedIn export', 'details': str(e)}), 400
    except Exception as e:
        app_ctx.logger.error(f"Error exporting connections for backup {backup_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not export connections'}), 500
    if not csv_text:
        return app_ctx.jsonify({'error': 'Connections.csv not found in this export'}), 404

    created_at = backup.get('createdAt')
    date_str = app_ctx.datetime.fromtimestamp(created_at, tz=app_ctx.timezone.utc).strftime('%Y-%m-%d') \
        if isinstance(created_at, (int, float)) else 'export'
    return app_ctx.send_file(
        io.BytesIO(csv_text.encode('utf-8')),
        mimetype='text/csv',
        as_attachment=True,
        download_name=f"linkedin-connections-{date_str}.csv",
    )


def download_report(app_ctx, request, backup_id):
    decoded_token, error = _require_user(app_ctx, request)
    if error:
        return error
    backup, error = _load_owned_backup(app_ctx, backup_id, decoded_token['uid'])
    if error:
        return error
    if backup.get('status') != 'ready':
        return app_ctx.jsonify({'error': 'Backup has not been processed yet'}), 409
    backup.setdefault('backupId', backup_id)
    try:
        pdf_buffer = app_ctx.report_service.build_backup_report_pdf(backup)
    except Exception as e:
        app_ctx.logger.error(f"Error building PDF report for {backup_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not build PDF report'}), 500
    return app_ctx.send_file(
        pdf_buffer,
        mimetype='application/pdf',
        as_attachment=True,
        download_name=f"linkstream-report-{backup_id[:8]}.pdf",
    )


def get_usage(app_ctx, request):
    decoded_token, error = _require_user(app_ctx, request)
    if error:
        return error
    uid = decoded_token['uid']
    user = app_ctx.get_or_create_user(uid, decoded_token.get('email', ''))
    tier = app_ctx.tier_service.normalize_tier(user.get('tier'))
    count = app_ctx.get_backups_this_month(uid)
    return app_ctx.jsonify(app_ctx.usage_service.usage_summary(tier, count))


def record_usage(app_ctx, request):
    decoded_token, error = _require_user(app_ctx, request)
    if error:
        return error
    uid = decoded_token['uid']
    try:
        count = app_ctx.record_backup_usage(uid)
    except Exception as e:
        app_ctx.logger.error(f"Error recording usage for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not record usage'}), 500
    return app_ctx.jsonify({'ok': True, 'backupsThisMonth': count})


def suggest_posts(app_ctx, request):
    decoded_token, error = _require_user(app_ctx, request)
    if error:
        return error
    uid = decoded_token['uid']
    data = request.get_json(silent=True) or {}
    prompt = str(data.get('prompt', '') or '').strip()[:2000]
    if not prompt:
        return app_ctx.jsonify({'error': 'Prompt is required'}), 400
    try:
        count = int(data.get('count', 3) or 3)
    except (TypeError, ValueError):
        return app_ctx.jsonify({'error': 'count must be an integer'}), 400
    if app_ctx.client is None:
        return app_ctx.jsonify({'error': 'AI suggestions are not configured'}), 503

    allowed_ai, retry_after = app_ctx.check_rate_limit(
        key=f"ai_analysis:{app_ctx.normalize_rate_limit_key_part(uid, fallback='anon_uid')}",
        limit=app_ctx.AI_ANALYSIS_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=app_ctx.AI_ANALYSIS_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed_ai:
        app_ctx.log_rate_limit_hit('ai_analysis', retry_after)
        return app_ctx.build_rate_limited_response('Too many AI requests. Please retry later.', retry_after)
    try:
        suggestions = app_ctx.suggest_posts(prompt, count)
    except Exception as e:
        app_ctx.logger.error(f"Post suggestion error for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not generate suggestions'}), 500
    return app_ctx.jsonify({'suggestions': suggestions})
