"""
Tests for client configuration loading.
"""

import pytest

from censor_client.config import ClientConfiguration
from censor_shared.exceptions import ConfigurationError, ErrorCode


class TestDefaults:

    def test_default_values(self, config):
        assert config.get_server_url() == 'http://localhost:8000'
        assert config.get_server_timeout() == 10.0
        assert config.get_retry_attempts() == 3
        assert config.get_refresh_skew() == 60.0
        assert config.get_storage_slot() == 'auth'
        assert config.get_storage_dir() is None
        assert config.use_keyring() is True
        assert config.get_login_route() == '/login'
        assert config.get_default_route() == '/'
        assert config.get_log_level() == 'INFO'

    def test_missing_file_not_created(self, tmp_path, clean_env):
        path = tmp_path / 'missing' / 'client.conf'

        ClientConfiguration(str(path))

        assert not path.exists()


class TestSources:

    def test_file_values(self, tmp_path, clean_env):
        path = tmp_path / 'client.conf'
        path.write_text(
            "[server]\n"
            "url = https://console.example.com\n"
            "timeout = 5\n"
            "\n"
            "[auth]\n"
            "refresh_skew_seconds = 45\n"
            "use_keyring = false\n"
        )

        config = ClientConfiguration(str(path))

        assert config.get_server_url() == 'https://console.example.com'
        assert config.get_server_timeout() == 5.0
        assert config.get_refresh_skew() == 45.0
        assert config.use_keyring() is False
        assert config.get_retry_attempts() == 3

    def test_environment_overrides_file(self, tmp_path, clean_env):
        path = tmp_path / 'client.conf'
        path.write_text("[server]\nurl = http://from-file:8000\n")
        clean_env.setenv('AIOCENSOR_SERVER_URL', 'http://from-env:9000')
        clean_env.setenv('AIOCENSOR_REFRESH_SKEW', '30')
        clean_env.setenv('AIOCENSOR_USE_KEYRING', 'false')
        clean_env.setenv('AIOCENSOR_STORAGE_DIR', str(tmp_path / 'state'))

        config = ClientConfiguration(str(path))

        assert config.get_server_url() == 'http://from-env:9000'
        assert config.get_refresh_skew() == 30.0
        assert config.use_keyring() is False
        assert config.get_storage_dir() == str(tmp_path / 'state')

    def test_override_wins(self, config, tmp_path):
        config.set_override('server_url', 'http://override:1')
        config.set_override('storage_dir', str(tmp_path))

        assert config.get_server_url() == 'http://override:1'
        assert config.get_storage_dir() == str(tmp_path)

    def test_dotted_get_and_set(self, config):
        config.set_config('routes.login', '/signin')

        assert config.get_login_route() == '/signin'
        assert config.get_config('routes.unknown', 'fallback') == 'fallback'

    def test_save_and_reload(self, tmp_path, clean_env):
        path = tmp_path / 'client.conf'
        config = ClientConfiguration(str(path))
        config.set_config('server.url', 'http://saved:8000')
        config.set_config('auth.use_keyring', False)

        config.save_configuration()
        reloaded = ClientConfiguration(str(path))

        assert reloaded.get_server_url() == 'http://saved:8000'
        assert reloaded.use_keyring() is False


class TestValidation:

    @pytest.mark.parametrize("env_var,value", [
        ('AIOCENSOR_TIMEOUT', 'soon'),
        ('AIOCENSOR_TIMEOUT', '0'),
        ('AIOCENSOR_RETRY_ATTEMPTS', 'many'),
        ('AIOCENSOR_REFRESH_SKEW', '-5'),
    ])
    def test_invalid_values_rejected(self, tmp_path, clean_env, env_var, value):
        clean_env.setenv(env_var, value)

        with pytest.raises(ConfigurationError) as exc_info:
            ClientConfiguration(str(tmp_path / 'client.conf'))

        assert exc_info.value.error_code == ErrorCode.CONFIG_INVALID_VALUE
        assert 'config_key' in exc_info.value.context

    def test_zero_skew_allowed(self, tmp_path, clean_env):
        clean_env.setenv('AIOCENSOR_REFRESH_SKEW', '0')

        config = ClientConfiguration(str(tmp_path / 'client.conf'))

        assert config.get_refresh_skew() == 0.0
