"""Admin authorization, audit logging and subscriber analytics."""

from datetime import datetime, timezone

from linkstream.repositories import audit_repo
from linkstream.services import auth_service, tier_service


REASON_MIN_LENGTH = 10
REASON_MAX_LENGTH = 500
MONTHLY_PRICE_BY_TIER = {'pro': 10, 'business': 29}


class AdminAccessError(Exception):
    pass


class AdminValidationError(ValueError):
    pass


def verify_admin_access(request, *, auth_module, logger, admin_uids=frozenset(), admin_emails=frozenset()):
    token = auth_service.extract_bearer_token(request)
    if not token:
        raise AdminAccessError('Unauthorized: Missing or invalid Authorization header')
    try:
        decoded_token = auth_module.verify_id_token(token)
    except Exception as exc:
        raise AdminAccessError(f"Unauthorized: invalid token ({exc})") from exc
    if not auth_service.is_admin_token(decoded_token, admin_uids, admin_emails):
        logger.warning(f"⚠️ Unauthorized admin access attempt by {decoded_token.get('email', '')}")
        raise AdminAccessError('Admin access required. User does not have admin privileges.')
    return {
        'uid': decoded_token.get('uid', ''),
        'email': decoded_token.get('email', '') or '',
        'isAdmin': True,
    }


def classify_error_status(exc):
    message = str(exc or '')
    if 'Admin access' in message:
        return 403
    if 'Unauthorized' in message or 'token' in message.lower():
        return 401
    return 500


def validate_reason(reason):
    trimmed = str(reason or '').strip()
    if not trimmed:
        raise AdminValidationError('Reason is required for this admin action')
    if len(trimmed) < REASON_MIN_LENGTH:
        raise AdminValidationError(f'Reason must be at least {REASON_MIN_LENGTH} characters long')
    if len(trimmed) > REASON_MAX_LENGTH:
        raise AdminValidationError(f'Reason must be no more than {REASON_MAX_LENGTH} characters')
    return trimmed


def create_audit_log(db, *, admin_uid, admin_email, action, time_module, logger, target_uid=None,
                     target_email=None, reason=None, metadata=None):
    """Write an audit entry. Failures are logged and never raised."""
    if db is None:
        logger.warning(f"⚠️ Audit log skipped for {action}: Firestore unavailable")
        return False
    try:
        audit_repo.add_entry(db, {
            'adminUid': admin_uid,
            'adminEmail': admin_email,
            'action': action,
            'targetUid': target_uid,
            'targetEmail': target_email,
            'reason': reason,
            'metadata': metadata or {},
            'timestamp': time_module.time(),
        })
        logger.info(f"📝 Audit log created: {action} by {admin_email}")
        return True
    except Exception as exc:
        logger.error(f"❌ Failed to create audit log for {action}: {exc}")
        return False


def user_admin_row(uid, data):
    return {
        'uid': uid,
        'email': data.get('email', ''),
        'displayName': data.get('displayName', ''),
        'tier': tier_service.normalize_tier(data.get('tier')),
        'subscriptionStatus': data.get('subscriptionStatus', ''),
        'teamId': data.get('teamId'),
        'backupsThisMonth': int(data.get('backupsThisMonth', 0) or 0),
        'disabled': bool(data.get('disabled', False)),
        'createdAt': data.get('createdAt'),
    }


def filter_user_rows(rows, search='', status=''):
    safe_search = str(search or '').strip().lower()
    safe_status = str(status or '').strip().lower()
    result = []
    for row in rows:
        if safe_search and safe_search not in row['email'].lower() and safe_search not in row['displayName'].lower() \
                and safe_search != row['uid'].lower():
            continue
        if safe_status == 'disabled' and not row['disabled']:
            continue
        if safe_status == 'active' and row['disabled']:
            continue
        result.append(row)
    return result


def paginate(rows, page, page_size):
    try:
        safe_page = max(1, int(page or 1))
    except (TypeError, ValueError):
        safe_page = 1
    try:
        safe_size = min(max(1, int(page_size or 25)), 100)
    except (TypeError, ValueError):
        safe_size = 25
    start = (safe_page - 1) * safe_size
    return {
        'items': rows[start:start + safe_size],
        'page': safe_page,
        'pageSize': safe_size,
        'total': len(rows),
        'totalPages': max(1, -(-len(rows) // safe_size)),
    }


def compute_subscriber_analytics(user_rows, now_ts, signup_window_days=30):
    by_tier = {tier: 0 for tier in tier_service.VALID_TIERS}
    signups = {}
    window_start = now_ts - signup_window_days * 86400
    for row in user_rows:
        by_tier[row['tier']] = by_tier.get(row['tier'], 0) + 1
        created_at = row.get('createdAt')
        if isinstance(created_at, (int, float)) and created_at >= window_start:
            day = datetime.fromtimestamp(created_at, tz=timezone.utc).strftime('%Y-%m-%d')
            signups[day] = signups.get(day, 0) + 1
    mrr_by_tier = {tier: by_tier.get(tier, 0) * price for tier, price in MONTHLY_PRICE_BY_TIER.items()}
    return {
        'totalUsers': len(user_rows),
        'subscribersByTier': by_tier,
        'paidSubscribers': sum(by_tier.get(tier, 0) for tier in MONTHLY_PRICE_BY_TIER),
        'mrr': {'total': sum(mrr_by_tier.values()), 'byTier': mrr_by_tier},
        'dailySignups': dict(sorted(signups.items())),
    }
