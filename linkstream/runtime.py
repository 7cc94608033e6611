import os
import json
import time
import uuid
import secrets
import logging
import threading
from datetime import datetime, timezone

import stripe
from flask import Flask, request, jsonify, send_file, g
from google import genai
from google.genai import types
from dotenv import load_dotenv
from werkzeug.exceptions import RequestEntityTooLarge
import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration
import firebase_admin
from firebase_admin import credentials, auth, firestore, storage

from linkstream.config import DEV_ENV_NAMES, env_flag, safe_float_env, safe_int_env
from linkstream.logging_config import LOGGER_NAME, log_event
from linkstream.repositories import (
    audit_repo,
    backups_repo,
    sessions_repo,
    storage_repo,
    teams_repo,
    usage_repo,
    users_repo,
)
from linkstream.repositories.query_utils import apply_where
from linkstream.services import (
    admin_service,
    archive_service,
    auth_service,
    csrf_service,
    email_service,
    export_stats_service,
    extraction_service,
    insights_service,
    rate_limit_service,
    report_service,
    retention_service,
    team_service,
    tier_service,
    usage_service,
)

load_dotenv()
app = Flask(__name__)
app.secret_key = os.getenv('FLASK_SECRET_KEY', os.urandom(32).hex())
logger = logging.getLogger(LOGGER_NAME)

MAX_EXPORT_UPLOAD_BYTES = 100 * 1024 * 1024
MAX_JSON_BODY_BYTES = 2 * 1024 * 1024
ALLOWED_EXPORT_CONTENT_TYPES = {
    'application/zip',
    'application/x-zip-compressed',
    'application/octet-stream',
}
UPLOAD_URL_EXPIRES_SECONDS = 15 * 60
RAW_RETENTION_SECONDS = 30 * 24 * 60 * 60
DERIVED_RETENTION_SECONDS = 2 * 365 * 24 * 60 * 60
BACKUP_LIST_LIMIT = 50
app.config['MAX_CONTENT_LENGTH'] = MAX_JSON_BODY_BYTES

GEMINI_API_KEY = (os.getenv('GEMINI_API_KEY', '') or '').strip()
GEMINI_SUMMARY_MODEL = (os.getenv('GEMINI_SUMMARY_MODEL', extraction_service.DEFAULT_SUMMARY_MODEL)
                        or extraction_service.DEFAULT_SUMMARY_MODEL).strip()
if GEMINI_API_KEY:
    try:
        client = genai.Client(api_key=GEMINI_API_KEY)
    except Exception as e:
        client = None
        logger.info(f"⚠️ Gemini client disabled: {e}")
else:
    client = None
    logger.info("⚠️ GEMINI_API_KEY not set; AI summaries are disabled.")

# --- Firebase Setup ---
FIREBASE_STORAGE_BUCKET = (os.getenv('FIREBASE_STORAGE_BUCKET', '') or '').strip()
db = None
firebase_init_error = ''
try:
    if os.path.exists('firebase-credentials.json'):
        cred = credentials.Certificate('firebase-credentials.json')
    else:
        firebase_creds_raw = (os.getenv('FIREBASE_CREDENTIALS', '') or '').strip()
        if not firebase_creds_raw:
            raise ValueError("FIREBASE_CREDENTIALS is not set and firebase-credentials.json was not found.")
        cred = credentials.Certificate(json.loads(firebase_creds_raw))
    if not firebase_admin._apps:
        firebase_admin.initialize_app(cred, {'storageBucket': FIREBASE_STORAGE_BUCKET} if FIREBASE_STORAGE_BUCKET else None)
    db = firestore.client()
except Exception as e:
    firebase_init_error = str(e)
    logger.info(f"⚠️ Firebase initialization skipped: {firebase_init_error}")

# --- Stripe Setup ---
stripe.api_key = os.getenv('STRIPE_SECRET_KEY')
STRIPE_PUBLISHABLE_KEY = os.getenv('STRIPE_PUBLISHABLE_KEY', '')
STRIPE_WEBHOOK_SECRET = os.getenv('STRIPE_WEBHOOK_SECRET', '')
APP_BASE_URL = (os.getenv('APP_BASE_URL', '') or '').strip().rstrip('/')
ADMIN_EMAILS = {email.strip().lower() for email in os.getenv('ADMIN_EMAILS', '').split(',') if email.strip()}
ADMIN_UIDS = {uid.strip() for uid in os.getenv('ADMIN_UIDS', '').split(',') if uid.strip()}
CRON_SECRET = (os.getenv('CRON_SECRET', '') or '').strip()
RESEND_API_KEY = (os.getenv('RESEND_API_KEY', '') or '').strip()
EMAIL_FROM = (os.getenv('EMAIL_FROM', '') or '').strip()

SESSION_COOKIE_NAME = 'linkstream_session'
SESSION_DURATION_SECONDS = 5 * 24 * 60 * 60

UPLOAD_RATE_LIMIT_WINDOW_SECONDS = safe_int_env('UPLOAD_RATE_LIMIT_WINDOW_SECONDS', 3600, minimum=10, maximum=86400)
UPLOAD_RATE_LIMIT_MAX_REQUESTS = safe_int_env('UPLOAD_RATE_LIMIT_MAX_REQUESTS', 10, minimum=1, maximum=1000)
CHECKOUT_RATE_LIMIT_WINDOW_SECONDS = safe_int_env('CHECKOUT_RATE_LIMIT_WINDOW_SECONDS', 900, minimum=10, maximum=86400)
CHECKOUT_RATE_LIMIT_MAX_REQUESTS = safe_int_env('CHECKOUT_RATE_LIMIT_MAX_REQUESTS', 5, minimum=1, maximum=100)
AI_ANALYSIS_RATE_LIMIT_WINDOW_SECONDS = safe_int_env('AI_ANALYSIS_RATE_LIMIT_WINDOW_SECONDS', 3600, minimum=10, maximum=86400)
AI_ANALYSIS_RATE_LIMIT_MAX_REQUESTS = safe_int_env('AI_ANALYSIS_RATE_LIMIT_MAX_REQUESTS', 20, minimum=1, maximum=1000)
ACCOUNT_DELETE_RATE_LIMIT_WINDOW_SECONDS = safe_int_env('ACCOUNT_DELETE_RATE_LIMIT_WINDOW_SECONDS', 86400, minimum=60, maximum=604800)
ACCOUNT_DELETE_RATE_LIMIT_MAX_REQUESTS = safe_int_env('ACCOUNT_DELETE_RATE_LIMIT_MAX_REQUESTS', 1, minimum=1, maximum=20)
ADMIN_LIST_RATE_LIMIT_WINDOW_SECONDS = safe_int_env('ADMIN_LIST_RATE_LIMIT_WINDOW_SECONDS', 3600, minimum=10, maximum=86400)
ADMIN_LIST_RATE_LIMIT_MAX_REQUESTS = safe_int_env('ADMIN_LIST_RATE_LIMIT_MAX_REQUESTS', 100, minimum=1, maximum=5000)
ADMIN_MODIFY_RATE_LIMIT_WINDOW_SECONDS = safe_int_env('ADMIN_MODIFY_RATE_LIMIT_WINDOW_SECONDS', 3600, minimum=10, maximum=86400)
ADMIN_MODIFY_RATE_LIMIT_MAX_REQUESTS = safe_int_env('ADMIN_MODIFY_RATE_LIMIT_MAX_REQUESTS', 50, minimum=1, maximum=5000)
TEAM_INVITE_RATE_LIMIT_WINDOW_SECONDS = safe_int_env('TEAM_INVITE_RATE_LIMIT_WINDOW_SECONDS', 3600, minimum=10, maximum=86400)
TEAM_INVITE_RATE_LIMIT_MAX_REQUESTS = safe_int_env('TEAM_INVITE_RATE_LIMIT_MAX_REQUESTS', 20, minimum=1, maximum=1000)
ACCOUNT_EXPORT_MAX_DOCS_PER_COLLECTION = safe_int_env('ACCOUNT_EXPORT_MAX_DOCS_PER_COLLECTION', 10000, minimum=100, maximum=50000)
ACCOUNT_DELETE_MAX_DOCS_PER_COLLECTION = safe_int_env('ACCOUNT_DELETE_MAX_DOCS_PER_COLLECTION', 10000, minimum=100, maximum=50000)
CLEANUP_MAX_DOCS_PER_RUN = safe_int_env('CLEANUP_MAX_DOCS_PER_RUN', 500, minimum=10, maximum=10000)
RATE_LIMIT_EVENTS = {}
RATE_LIMIT_LOCK = threading.Lock()
RATE_LIMIT_COUNTER_COLLECTION = 'rate_limit_counters'
RATE_LIMIT_FIRESTORE_ENABLED = env_flag('RATE_LIMIT_FIRESTORE_ENABLED', '1')

SENTRY_BACKEND_DSN = os.getenv('SENTRY_DSN_BACKEND', '').strip()
SENTRY_ENVIRONMENT = (os.getenv('SENTRY_ENVIRONMENT', os.getenv('FLASK_ENV', 'production')) or 'production').strip()
SENTRY_RELEASE = (os.getenv('SENTRY_RELEASE', 'linkstream') or 'linkstream').strip()
SENTRY_TRACES_SAMPLE_RATE = safe_float_env('SENTRY_TRACES_SAMPLE_RATE', 0.0)
APP_BOOT_TS = time.time()

if SENTRY_BACKEND_DSN:
    sentry_sdk.init(
        dsn=SENTRY_BACKEND_DSN,
        integrations=[FlaskIntegration()],
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        send_default_pii=False,
        environment=SENTRY_ENVIRONMENT,
        release=SENTRY_RELEASE,
    )


def is_dev_environment():
    env_value = str(SENTRY_ENVIRONMENT or '').strip().lower()
    return env_value in DEV_ENV_NAMES or env_flag('FLASK_DEBUG')


def parse_cors_allowed_origins():
    raw = (os.getenv('CORS_ALLOWED_ORIGINS', '') or '').strip()
    if raw:
        return {part.strip().lower() for part in raw.split(',') if part.strip()}
    origins = {'http://127.0.0.1:3000', 'http://localhost:3000', 'http://127.0.0.1:5000', 'http://localhost:5000'}
    if APP_BASE_URL:
        origins.add(APP_BASE_URL.lower())
    return origins


CORS_ALLOWED_ORIGINS = parse_cors_allowed_origins()


def apply_cors_headers(response):
    origin = str(request.headers.get('Origin', '') or '').strip()
    if not origin:
        return response
    if not request.path.startswith('/api/'):
        return response
    if origin.lower() not in CORS_ALLOWED_ORIGINS:
        return response
    response.headers['Access-Control-Allow-Origin'] = origin
    response.headers['Access-Control-Allow-Credentials'] = 'true'
    response.headers['Vary'] = 'Origin'
    response.headers['Access-Control-Allow-Headers'] = f'Authorization, Content-Type, {csrf_service.CSRF_HEADER_NAME}'
    response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PUT, PATCH, DELETE, OPTIONS'
    return response


@app.before_request
def handle_api_options_preflight():
    if request.method == 'OPTIONS' and request.path.startswith('/api/'):
        return apply_cors_headers(app.make_default_options_response())


@app.before_request
def attach_sentry_route_context():
    request_id = str(request.headers.get('X-Request-ID', '') or '').strip()[:120] or uuid.uuid4().hex
    g.request_id = request_id
    if not sentry_sdk:
        return
    scope = sentry_sdk.get_current_scope()
    scope.set_tag('request.id', request_id)
    scope.set_tag('route.path', request.path)
    scope.set_tag('route.method', request.method)
    scope.set_tag('route.endpoint', request.endpoint or '')
    scope.set_tag('route.auth_header_present', 'true' if request.headers.get('Authorization') else 'false')
    scope.set_tag('route.environment', SENTRY_ENVIRONMENT or 'production')


@app.after_request
def attach_sentry_response_context(response):
    request_id = str(getattr(g, 'request_id', '') or '').strip()
    if request_id:
        response.headers['X-Request-ID'] = request_id
    if sentry_sdk:
        sentry_sdk.get_current_scope().set_tag('route.status_code', str(response.status_code))
    return apply_cors_headers(response)


@app.errorhandler(RequestEntityTooLarge)
def handle_request_entity_too_large(_error):
    return jsonify({'error': 'Request body too large.'}), 413


# =============================================
# HELPER FUNCTIONS
# =============================================

def verify_firebase_token(request):
    decoded = auth_service.verify_firebase_token(request, auth_module=auth, logger=logger)
    if decoded:
        return decoded
    return auth_service.verify_session_cookie(request, SESSION_COOKIE_NAME, auth_module=auth, logger=logger)


def _extract_bearer_token(request):
    return auth_service.extract_bearer_token(request)


def is_admin_user(decoded_token):
    return auth_service.is_admin_token(decoded_token, ADMIN_UIDS, ADMIN_EMAILS)


def verify_admin_access(request):
    return admin_service.verify_admin_access(
        request,
        auth_module=auth,
        logger=logger,
        admin_uids=ADMIN_UIDS,
        admin_emails=ADMIN_EMAILS,
    )


def create_audit_log(**kwargs):
    return admin_service.create_audit_log(db, time_module=time, logger=logger, **kwargs)


def request_is_secure(request):
    return bool(request.is_secure or os.getenv('RENDER') or not is_dev_environment())


def validate_csrf(request):
    return csrf_service.validate_csrf(request)


def build_csrf_failed_response():
    return jsonify({'error': 'Invalid or missing CSRF token'}), 403


def check_rate_limit(key, limit, window_seconds):
    return rate_limit_service.check_rate_limit(
        key,
        limit,
        window_seconds,
        firestore_enabled=RATE_LIMIT_FIRESTORE_ENABLED,
        db=db,
        firestore_module=firestore,
        counter_collection=RATE_LIMIT_COUNTER_COLLECTION,
        in_memory_events=RATE_LIMIT_EVENTS,
        in_memory_lock=RATE_LIMIT_LOCK,
        time_module=time,
    )


def build_rate_limited_response(message, retry_after):
    response = jsonify({
        'error': message,
        'retry_after_seconds': int(max(1, retry_after)),
    })
    response.status_code = 429
    response.headers['Retry-After'] = str(int(max(1, retry_after)))
    return response


def normalize_rate_limit_key_part(value, fallback='anon', max_len=120):
    return rate_limit_service.normalize_key_part(value, fallback=fallback, max_len=max_len)


def log_rate_limit_hit(limit_name, retry_after=0):
    log_event(logging.WARNING, 'rate_limit_hit', limit=limit_name, retry_after=retry_after)
    return rate_limit_service.log_rate_limit_hit(
        limit_name,
        retry_after=retry_after,
        db=db,
        logger=logger,
        time_module=time,
    )


def build_default_user_data(uid, email, display_name=''):
    now_ts = time.time()
    return {
        'uid': uid,
        'email': email,
        'displayName': display_name or '',
        'tier': tier_service.DEFAULT_TIER,
        'teamId': None,
        'backupsThisMonth': 0,
        'reminderSettings': {'enabled': True, 'emailReminders': True},
        'createdAt': now_ts,
        'updatedAt': now_ts,
    }


def get_or_create_user(uid, email, display_name=''):
    """Get a user from Firestore, or create them on the free tier."""
    user_doc = users_repo.get_doc(db, uid)
    if user_doc.exists:
        user_data = user_doc.to_dict() or {}
        updates = {}
        if email and user_data.get('email') != email:
            updates['email'] = email
        if user_data.get('tier') not in tier_service.SUBSCRIPTION_TIERS:
            updates['tier'] = tier_service.DEFAULT_TIER
        if updates:
            updates['updatedAt'] = time.time()
            users_repo.update_doc(db, uid, updates)
            user_data.update(updates)
        return user_data
    user_data = build_default_user_data(uid, email, display_name)
    users_repo.set_doc(db, uid, user_data)
    logger.info(f"New user created: {uid} ({email})")
    return user_data


def get_storage_bucket():
    try:
        return storage.bucket(FIREBASE_STORAGE_BUCKET or None)
    except Exception as e:
        logger.info(f"⚠️ Storage bucket unavailable: {e}")
        return None


def new_backup_id():
    return secrets.token_hex(16)


def get_backups_this_month(uid):
    return usage_service.get_backups_this_month(uid, db=db, time_module=time)


def record_backup_usage(uid):
    return usage_service.record_backup_usage(uid, db=db, firestore_module=firestore, time_module=time)


def reserve_backup_slot(uid, tier):
    return usage_service.reserve_backup_slot(uid, tier, db=db, firestore_module=firestore, time_module=time)


def release_backup_slot(uid):
    return usage_service.release_backup_slot(uid, db=db, firestore_module=firestore, time_module=time)


def summarize_export(document):
    return extraction_service.summarize_export(document, client=client, types_module=types, model=GEMINI_SUMMARY_MODEL)


def suggest_posts(prompt, count):
    return extraction_service.suggest_posts(prompt, count, client=client, types_module=types, model=GEMINI_SUMMARY_MODEL)


def send_team_invite_email(to_email, owner_email, token):
    accept_url = email_service.build_invite_accept_url(APP_BASE_URL or request.host_url, token)
    subject, text_body, html_body = email_service.build_team_invite_email(owner_email, accept_url)
    return email_service.send_email(
        to_email,
        subject,
        text_body,
        api_key=RESEND_API_KEY,
        from_address=EMAIL_FROM,
        html_body=html_body,
        logger=logger,
    )


def list_docs_by_uid(collection_name, uid, max_docs):
    docs = list(apply_where(db.collection(collection_name), 'uid', '==', uid).limit(max_docs + 1).stream())
    truncated = len(docs) > max_docs
    records = []
    for doc in docs[:max_docs]:
        data = doc.to_dict() or {}
        data['_id'] = doc.id
        records.append(data)
    return records, truncated


def delete_docs_by_uid(collection_name, uid, max_docs):
    docs = list(apply_where(db.collection(collection_name), 'uid', '==', uid).limit(max_docs + 1).stream())
    truncated = len(docs) > max_docs
    deleted = 0
    for doc in docs[:max_docs]:
        try:
            doc.reference.delete()
            deleted += 1
        except Exception as e:
            logger.info(f"Warning: could not delete doc in {collection_name}/{doc.id}: {e}")
    return deleted, truncated


def build_runtime_checks():
    return {
        'firebase_ready': bool(db),
        'gemini_ready': bool(client),
        'stripe_configured': bool(stripe.api_key),
        'stripe_webhook_configured': bool(STRIPE_WEBHOOK_SECRET),
        'email_configured': bool(RESEND_API_KEY and EMAIL_FROM),
        'app_uptime_seconds': max(0, round(time.time() - APP_BOOT_TS, 1)),
    }
