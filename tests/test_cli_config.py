"""Tests for CLI configuration module."""

import json
from pathlib import Path

from cli.config import Config


def test_config_creates_default_file(tmp_path):
    """Test that config file is created with defaults if missing."""
    config_path = tmp_path / '.relaysync' / 'config.json'
    config = Config(config_path)

    assert config_path.exists()
    assert config.data == Config.DEFAULT_CONFIG
    assert json.loads(config_path.read_text()) == Config.DEFAULT_CONFIG


def test_config_loads_existing_file(tmp_path):
    """Test loading existing config file."""
    config_path = tmp_path / '.relaysync' / 'config.json'
    config_path.parent.mkdir(parents=True)

    existing_data = {
        'auth_token': 'tok_test123',
        'relay_host': 'example.com',
        'relay_port': 9000,
    }
    with open(config_path, 'w') as f:
        json.dump(existing_data, f)

    config = Config(config_path)

    assert config.get_auth_token() == 'tok_test123'
    assert config.data['relay_host'] == 'example.com'
    assert config.data['relay_port'] == 9000
    assert config.data['relay_scheme'] == Config.DEFAULT_CONFIG['relay_scheme']


def test_config_save_and_get_auth_token(temp_config):
    """Test saving and retrieving the bearer token."""
    temp_config.set_auth_token(None)
    assert temp_config.get_auth_token() is None

    temp_config.set_auth_token('tok_abc123')

    assert temp_config.get_auth_token() == 'tok_abc123'
    with open(temp_config.config_path, 'r') as f:
        data = json.load(f)
    assert data['auth_token'] == 'tok_abc123'


def test_config_handles_corrupted_file(tmp_path):
    """Test recovery from corrupted config file."""
    config_path = tmp_path / '.relaysync' / 'config.json'
    config_path.parent.mkdir(parents=True)

    with open(config_path, 'w') as f:
        f.write('{ invalid json content')

    config = Config(config_path)
    assert config.data == Config.DEFAULT_CONFIG

    backup_path = config_path.with_suffix('.json.bak')
    assert backup_path.exists()
    assert backup_path.read_text() == '{ invalid json content'


def test_config_non_object_root_is_treated_as_corrupt(tmp_path):
    config_path = tmp_path / '.relaysync' / 'config.json'
    config_path.parent.mkdir(parents=True)
    config_path.write_text('["not", "an", "object"]')

    config = Config(config_path)

    assert config.data == Config.DEFAULT_CONFIG
    assert config_path.with_suffix('.json.bak').exists()


def test_config_get_base_url(temp_config):
    """Test base URL construction."""
    temp_config.data['relay_scheme'] = 'https'
    temp_config.data['relay_host'] = 'example.com'
    temp_config.data['relay_port'] = 9443

    assert temp_config.get_base_url() == 'https://example.com:9443'


def test_config_cache_path_defaults_next_to_config(temp_config):
    assert temp_config.get_cache_path() == temp_config.config_path.parent / 'cache.json'

    temp_config.data['cache_file'] = '~/relay-cache.json'
    assert temp_config.get_cache_path() == Path.home() / 'relay-cache.json'


def test_config_get_engine_settings(temp_config):
    temp_config.data['relay_host'] = 'relay.local'
    temp_config.data['relay_port'] = 8765
    temp_config.data['relay_scheme'] = 'http'
    temp_config.data['auto_refresh_interval'] = 30

    settings = temp_config.get_engine_settings()

    assert settings.base_url == 'http://relay.local:8765'
    assert settings.cache_path == temp_config.get_cache_path()
    assert settings.auto_refresh_interval_s == 30.0


def test_config_directory_created_if_missing(tmp_path):
    """Test that config directory is created if it doesn't exist."""
    config_path = tmp_path / 'nested' / 'deep' / '.relaysync' / 'config.json'

    assert not config_path.parent.exists()

    Config(config_path)
    assert config_path.parent.exists()
    assert config_path.exists()
