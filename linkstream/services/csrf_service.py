"""Double-submit CSRF tokens: a cookie echoed back in a request header."""

import hmac
import secrets


CSRF_COOKIE_NAME = 'csrf_token'
CSRF_HEADER_NAME = 'X-CSRF-Token'
CSRF_TOKEN_MAX_AGE_SECONDS = 24 * 60 * 60
SAFE_METHODS = {'GET', 'HEAD', 'OPTIONS'}


def generate_csrf_token():
    return secrets.token_hex(32)


def tokens_match(cookie_token, header_token):
    if not cookie_token or not header_token:
        return False
    return hmac.compare_digest(str(cookie_token), str(header_token))


def validate_csrf(request):
    if request.method.upper() in SAFE_METHODS:
        return True
    return tokens_match(request.cookies.get(CSRF_COOKIE_NAME, ''), request.headers.get(CSRF_HEADER_NAME, ''))


def set_csrf_cookie(response, token, secure):
    response.set_cookie(
        CSRF_COOKIE_NAME,
        token,
        max_age=CSRF_TOKEN_MAX_AGE_SECONDS,
        httponly=False,
        secure=secure,
        samesite='Strict',
        path='/',
    )
    return response
