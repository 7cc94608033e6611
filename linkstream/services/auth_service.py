"""Authentication utility helpers."""


def extract_bearer_token(request):
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return ''
    return auth_header.split('Bearer ', 1)[1].strip()


def verify_firebase_token(request, auth_module, logger):
    """Return decoded Firebase token dict, or None when invalid/missing."""
    token = extract_bearer_token(request)
    if not token:
        return None
    try:
        return auth_module.verify_id_token(token)
    except Exception as exc:
        if logger is not None:
            logger.info(f"Token verification failed: {exc}")
        return None


def verify_session_cookie(request, cookie_name, auth_module, logger):
    session_cookie = request.cookies.get(cookie_name, '')
    if not session_cookie:
        return None
    try:
        return auth_module.verify_session_cookie(session_cookie, check_revoked=True)
    except Exception as exc:
        if logger is not None:
            logger.info(f"Session cookie verification failed: {exc}")
        return None


def is_admin_token(decoded_token, admin_uids, admin_emails):
    if not decoded_token:
        return False
    if decoded_token.get('admin') is True:
        return True
    uid = decoded_token.get('uid', '')
    email = str(decoded_token.get('email', '') or '').lower()
    return uid in admin_uids or email in admin_emails
