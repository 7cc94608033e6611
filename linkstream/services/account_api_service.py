"""Business logic handlers for GDPR export and account erasure."""

import io
import json
import logging
from datetime import datetime, timezone


DELETE_CONFIRM_TEXT = 'DELETE MY ACCOUNT'


def collect_user_export_payload(app_ctx, uid, email):
    limit = app_ctx.ACCOUNT_EXPORT_MAX_DOCS_PER_COLLECTION
    user_doc = app_ctx.users_repo.get_doc(app_ctx.db, uid)
    profile = (user_doc.to_dict() or {}) if user_doc.exists else {}
    backups, backups_truncated = app_ctx.list_docs_by_uid('backups', uid, limit)
    sessions, sessions_truncated = app_ctx.list_docs_by_uid('authSessions', uid, limit)
    usage = {doc.id: doc.to_dict() or {} for doc in app_ctx.usage_repo.list_months(app_ctx.db, uid)}
    snapshots = [dict(doc.to_dict() or {}, _id=doc.id) for doc in app_ctx.backups_repo.list_snapshots(app_ctx.db, uid)]

    team = None
    team_id = profile.get('teamId')
    if team_id:
        team_doc = app_ctx.teams_repo.get_doc(app_ctx.db, team_id)
        if team_doc.exists:
            team_data = team_doc.to_dict() or {}
            team = {
                'id': team_id,
                'role': 'owner' if team_data.get('ownerId') == uid else 'member',
                'ownerEmail': team_data.get('ownerEmail', ''),
                'memberCount': len(team_data.get('memberIds') or []),
            }

    return {
        'exportedAt': datetime.now(timezone.utc).isoformat(),
        'uid': uid,
        'email': email,
        'profile': profile,
        'backups': backups,
        'backupSnapshots': snapshots,
        'usage': usage,
        'sessions': sessions,
        'team': team,
        'truncated': {'backups': backups_truncated, 'authSessions': sessions_truncated},
    }


def export_account_data(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503

    uid = decoded_token['uid']
    email = decoded_token.get('email', '')
    try:
        payload = collect_user_export_payload(app_ctx, uid, email)
        date_str = datetime.now(timezone.utc).strftime('%Y-%m-%d')
        data_bytes = json.dumps(payload, ensure_ascii=False, indent=2, default=str).encode('utf-8')
        file_obj = io.BytesIO(data_bytes)
        file_obj.seek(0)
        app_ctx.log_event(logging.INFO, 'account_exported', uid=uid)
        return app_ctx.send_file(
            file_obj,
            mimetype='application/json',
            as_attachment=True,
            download_name=f"linkstream-account-export-{date_str}.json",
        )
    except Exception as e:
        app_ctx.logger.info(f"Error exporting account data for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not export account data'}), 500


def _leave_team(app_ctx, uid, team_id, warnings_list):
    team_doc = app_ctx.teams_repo.get_doc(app_ctx.db, team_id)
    if not team_doc.exists:
        return
    team = team_doc.to_dict() or {}
    now_ts = app_ctx.time.time()
    if team.get('ownerId') == uid:
        for member_uid in team.get('memberIds') or []:
            if member_uid == uid:
                continue
            try:
                app_ctx.users_repo.set_doc(app_ctx.db, member_uid, {'teamId': None, 'tier': 'free', 'updatedAt': now_ts}, merge=True)
            except Exception as e:
                warnings_list.append(f"Could not detach member {member_uid}: {e}")
        app_ctx.teams_repo.doc_ref(app_ctx.db, team_id).delete()
        return
    member_ids = [member for member in (team.get('memberIds') or []) if member != uid]
    app_ctx.teams_repo.update_doc(app_ctx.db, team_id, {'memberIds': member_ids, 'updatedAt': now_ts})


def delete_account_data(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if not app_ctx.validate_csrf(request):
        return app_ctx.build_csrf_failed_response()

    uid = decoded_token['uid']
    email = str(decoded_token.get('email', '') or '').strip().lower()
    payload = request.get_json(silent=True) or {}

    confirm_text = str(payload.get('confirm_text', '') or '').strip().upper()
    if confirm_text != DELETE_CONFIRM_TEXT:
        return app_ctx.jsonify({'error': f'Invalid confirmation text. Type {DELETE_CONFIRM_TEXT} exactly.'}), 400

    confirm_email = str(payload.get('confirm_email', '') or '').strip().lower()
    if email and confirm_email != email:
        return app_ctx.jsonify({'error': 'Confirmation email does not match your account email.'}), 400

    allowed, retry_after = app_ctx.check_rate_limit(
        key=f"account_delete:{app_ctx.normalize_rate_limit_key_part(uid, fallback='anon_uid')}",
        limit=app_ctx.ACCOUNT_DELETE_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=app_ctx.ACCOUNT_DELETE_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed:
        app_ctx.log_rate_limit_hit('account_delete', retry_after)
        return app_ctx.build_rate_limited_response('Account deletion was already requested recently.', retry_after)
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Database unavailable'}), 503

    limit = app_ctx.ACCOUNT_DELETE_MAX_DOCS_PER_COLLECTION
    try:
        deleted = {}
        truncated = {}
        warnings_list = []

        user_doc = app_ctx.users_repo.get_doc(app_ctx.db, uid)
        profile = (user_doc.to_dict() or {}) if user_doc.exists else {}
        if profile.get('stripeSubscriptionId'):
            try:
                app_ctx.stripe.Subscription.cancel(profile['stripeSubscriptionId'])
                deleted['stripe_subscription_cancelled'] = 1
            except Exception as e:
                warnings_list.append(f"Could not cancel Stripe subscription: {e}")

        if profile.get('teamId'):
            try:
                _leave_team(app_ctx, uid, profile['teamId'], warnings_list)
            except Exception as e:
                warnings_list.append(f"Could not update team membership: {e}")

        bucket = app_ctx.get_storage_bucket()
        if bucket is not None:
            try:
                deleted['storage_files'] = app_ctx.storage_repo.delete_prefix(bucket, app_ctx.storage_repo.user_prefix(uid))
            except Exception as e:
                warnings_list.append(f"Could not delete stored files: {e}")

        for snapshot in app_ctx.backups_repo.list_snapshots(app_ctx.db, uid):
            snapshot.reference.delete()
        deleted['backups'], truncated['backups'] = app_ctx.delete_docs_by_uid('backups', uid, limit)
        deleted['authSessions'], truncated['authSessions'] = app_ctx.delete_docs_by_uid('authSessions', uid, limit)
        deleted['usage_months'] = app_ctx.usage_repo.delete_months(app_ctx.db, uid)

        try:
            app_ctx.users_repo.delete_doc(app_ctx.db, uid)
            deleted['user_profile_doc'] = 1
        except Exception:
            deleted['user_profile_doc'] = 0

        try:
            app_ctx.auth.delete_user(uid)
            deleted['auth_user'] = 1
        except Exception as e:
            warnings_list.append(f"Could not delete auth user: {e}")
            deleted['auth_user'] = 0

        app_ctx.log_event(logging.INFO, 'account_deleted', uid=uid, warnings=len(warnings_list))
        return app_ctx.jsonify({
            'ok': True,
            'deleted': deleted,
            'truncated': truncated,
            'warnings': warnings_list,
        })
    except Exception as e:
        app_ctx.logger.error(f"❌ Error deleting account data for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not delete account data'}), 500
