import pytest

from wordgroups import config


@pytest.mark.unit
def test_defaults(monkeypatch):
    for name in ('USE_CLOUD_STORAGE', 'DATA_DIR', 'STATS_MAX_RETRIES', 'ADMIN_TOKEN_TTL', 'LOG_LEVEL'):
        monkeypatch.delenv(name, raising=False)
    assert config.use_cloud_storage() is False
    assert config.data_dir() == 'game_data'
    assert config.stats_max_retries() == 5
    assert config.admin_token_ttl() == 86400
    assert config.log_level() == 'INFO'


@pytest.mark.unit
def test_overrides_and_bad_values(monkeypatch):
    monkeypatch.setenv('USE_CLOUD_STORAGE', 'True')
    monkeypatch.setenv('STATS_MAX_RETRIES', '0')
    monkeypatch.setenv('ADMIN_TOKEN_TTL', 'soon')
    monkeypatch.setenv('LOG_LEVEL', ' debug ')
    assert config.use_cloud_storage() is True
    assert config.stats_max_retries() == 1
    assert config.admin_token_ttl() == 86400
    assert config.log_level() == 'DEBUG'
