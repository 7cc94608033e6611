import os
from dataclasses import dataclass, field


DEV_ENV_NAMES = {'development', 'dev', 'local', 'test'}


def safe_int_env(name, default=0, minimum=1, maximum=100000):
    raw = os.getenv(name, str(default)).strip()
    try:
        value = int(raw)
    except Exception:
        value = int(default)
    return min(max(value, minimum), maximum)


def safe_float_env(name, default=0.0):
    raw = os.getenv(name, str(default)).strip()
    try:
        value = float(raw)
    except Exception:
        return default
    return min(max(value, 0.0), 1.0)


def env_flag(name, default='0'):
    return str(os.getenv(name, default)).strip().lower() in {'1', 'true', 'yes', 'on'}


def runtime_environment():
    return (
        os.getenv('SENTRY_ENVIRONMENT')
        or os.getenv('FLASK_ENV')
        or os.getenv('ENV')
        or ('production' if os.getenv('RENDER') else 'development')
    ).strip().lower()


@dataclass(frozen=True)
class AppConfig:
    """Central config object read once by the app factory."""

    flask_secret_key: str = field(default_factory=lambda: os.getenv('FLASK_SECRET_KEY', ''))
    log_level: str = field(default_factory=lambda: (os.getenv('LOG_LEVEL', 'INFO') or 'INFO').strip().upper())
    sentry_environment: str = field(
        default_factory=lambda: (os.getenv('SENTRY_ENVIRONMENT', os.getenv('FLASK_ENV', 'production')) or 'production').strip()
    )
    sentry_release: str = field(default_factory=lambda: (os.getenv('SENTRY_RELEASE', 'linkstream') or 'linkstream').strip())
    app_base_url: str = field(default_factory=lambda: (os.getenv('APP_BASE_URL', '') or '').strip().rstrip('/'))
    gemini_summary_model: str = field(
        default_factory=lambda: (os.getenv('GEMINI_SUMMARY_MODEL', 'gemini-2.0-flash') or 'gemini-2.0-flash').strip()
    )


def load_config() -> AppConfig:
    config = AppConfig()
    is_dev_like = runtime_environment() in DEV_ENV_NAMES
    if not is_dev_like and not config.flask_secret_key.strip():
        raise RuntimeError('FLASK_SECRET_KEY must be set in non-development environments.')
    return config
