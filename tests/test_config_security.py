import pytest

from linkstream.config import load_config, safe_float_env, safe_int_env


def test_load_config_requires_secret_key_in_non_dev(monkeypatch):
    monkeypatch.setenv("RENDER", "true")
    monkeypatch.delenv("FLASK_ENV", raising=False)
    monkeypatch.delenv("SENTRY_ENVIRONMENT", raising=False)
    monkeypatch.delenv("ENV", raising=False)
    monkeypatch.delenv("FLASK_SECRET_KEY", raising=False)

    with pytest.raises(RuntimeError):
        load_config()


def test_load_config_allows_missing_secret_in_dev(monkeypatch):
    monkeypatch.delenv("RENDER", raising=False)
    monkeypatch.delenv("SENTRY_ENVIRONMENT", raising=False)
    monkeypatch.setenv("FLASK_ENV", "development")
    monkeypatch.delenv("FLASK_SECRET_KEY", raising=False)

    cfg = load_config()
    assert cfg.flask_secret_key == ""


def test_load_config_reads_secret_in_production(monkeypatch):
    monkeypatch.setenv("SENTRY_ENVIRONMENT", "production")
    monkeypatch.setenv("FLASK_SECRET_KEY", "prod-secret")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    cfg = load_config()
    assert cfg.flask_secret_key == "prod-secret"
    assert cfg.log_level == "DEBUG"


def test_safe_int_env_clamps_and_falls_back(monkeypatch):
    monkeypatch.setenv("UPLOAD_RATE_LIMIT_MAX_REQUESTS", "5000")
    assert safe_int_env("UPLOAD_RATE_LIMIT_MAX_REQUESTS", 10, minimum=1, maximum=1000) == 1000

    monkeypatch.setenv("UPLOAD_RATE_LIMIT_MAX_REQUESTS", "lots")
    assert safe_int_env("UPLOAD_RATE_LIMIT_MAX_REQUESTS", 10, minimum=1, maximum=1000) == 10


def test_safe_float_env_is_bounded(monkeypatch):
    monkeypatch.setenv("SENTRY_TRACES_SAMPLE_RATE", "3.5")
    assert safe_float_env("SENTRY_TRACES_SAMPLE_RATE", 0.0) == 1.0
