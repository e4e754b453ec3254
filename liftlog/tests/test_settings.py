import pytest
from pydantic import ValidationError

from config.app_settings import Settings


def test_api_url_is_derived_from_host_and_port():
    cfg = Settings(API_URL=None, API_HOST="candidates", HOST_API_PORT="9000")
    assert cfg.API_URL == "http://candidates:9000/"


def test_backend_kind_is_validated():
    assert Settings(SUGGESTIONS_CACHE_BACKEND="Memory").SUGGESTIONS_CACHE_BACKEND == "memory"
    with pytest.raises(ValidationError):
        Settings(SUGGESTIONS_CACHE_BACKEND="sqlite")


def test_negative_window_is_rejected():
    with pytest.raises(ValidationError):
        Settings(SUGGESTIONS_CACHE_TTL=-1)


def test_production_requires_api_key():
    with pytest.raises(ValidationError):
        Settings(ENVIRONMENT="production", API_KEY="")
    assert Settings(ENVIRONMENT="production", API_KEY="real-key").API_KEY == "real-key"


def test_api_url_is_normalized():
    assert Settings(API_URL="candidates.test:8000/api").API_URL == "http://candidates.test:8000/api/"
    assert Settings(API_URL="https://candidates.test").API_URL == "https://candidates.test/"


def test_unknown_flags_are_ignored():
    cfg = Settings(DEBUG="true")
    assert "DEBUG" not in Settings.model_fields
    assert not hasattr(cfg, "DEBUG")
