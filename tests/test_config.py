import pytest

from inventory_search.config import Settings, get_settings, reset_settings_cache
from inventory_search.errors import ConfigurationError


def _settings(**overrides):
    values = dict(
        supabase_url="https://abc123.supabase.co",
        supabase_key="anon-key",
        table="inventory_unit_preference",
        webhook_url=None,
        batch_size=1000,
        max_scan=50000,
        fast_path_max_page_size=100,
        filter_options_ttl_s=86400,
        log_level="INFO",
        log_json=False,
    )
    values.update(overrides)
    return Settings(**values)


def test_defaults_from_empty_environment():
    settings = Settings.from_env()
    assert settings.supabase_url is None
    assert settings.table == "inventory_unit_preference"
    assert settings.batch_size == 1000
    assert settings.max_scan == 50000
    assert settings.fast_path_max_page_size == 100
    assert settings.filter_options_ttl_s == 86400
    assert settings.log_json is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SEARCH_BATCH_SIZE", "250")
    monkeypatch.setenv("SEARCH_MAX_SCAN", "not-a-number")
    monkeypatch.setenv("SEARCH_FAST_PATH_MAX_PAGE_SIZE", "0")
    monkeypatch.setenv("LOG_JSON", "yes")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("INVENTORY_TABLE", " units ")

    settings = Settings.from_env()
    assert settings.batch_size == 250
    assert settings.max_scan == 50000
    assert settings.fast_path_max_page_size == 1
    assert settings.log_json is True
    assert settings.log_level == "DEBUG"
    assert settings.table == "units"


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"supabase_url": None}, "SUPABASE_URL"),
        ({"supabase_key": None}, "SUPABASE_ANON_KEY"),
        ({"supabase_url": "https://your-project-id.supabase.co"}, "template"),
        ({"supabase_key": "your_supabase_anon_key"}, "template"),
        ({"supabase_url": "abc123.supabase.co"}, "https://"),
    ],
)
def test_validate_store_rejects_bad_credentials(overrides, message):
    with pytest.raises(ConfigurationError) as excinfo:
        _settings(**overrides).validate_store()
    assert message in str(excinfo.value)


def test_validate_store_accepts_real_credentials():
    _settings().validate_store()


def test_settings_are_cached_until_reset(monkeypatch):
    first = get_settings()
    monkeypatch.setenv("SEARCH_BATCH_SIZE", "10")
    assert get_settings() is first
    reset_settings_cache()
    assert get_settings().batch_size == 10
