"""
Shared fixtures for the console client tests.
"""

import time
from unittest.mock import Mock, AsyncMock

import pytest
from jose import jwt

from censor_client.auth.session_manager import SessionManager
from censor_client.auth.token_storage import SessionStorage
from censor_client.config import ClientConfiguration
from censor_shared.interfaces import IAuthAPI
from censor_shared.models import Session


TEST_SECRET = "test-secret-key"


@pytest.fixture
def make_token():
    """Mint a signed JWT expiring ``expires_in`` seconds from now."""
    def _make(expires_in=3600, subject="admin", with_exp=True):
        claims = {'sub': subject}
        if with_exp:
            claims['exp'] = int(time.time()) + expires_in
        return jwt.encode(claims, TEST_SECRET, algorithm='HS256')
    return _make


@pytest.fixture
def storage(tmp_path):
    """File-backed session storage in a temporary directory."""
    return SessionStorage(slot="test", storage_dir=str(tmp_path / "state"), use_keyring=False)


@pytest.fixture
def auth_api():
    """Mock authenticator with async login/refresh exchanges."""
    api = Mock(spec=IAuthAPI)
    api.post_login = AsyncMock(return_value={'success': False, 'message': 'Invalid password'})
    api.post_refresh = AsyncMock(return_value={'success': False, 'message': 'Refresh token expired'})
    return api


@pytest.fixture
def session_manager(auth_api, storage):
    return SessionManager(auth_api, storage)


@pytest.fixture
def signed_in(storage, make_token):
    """Store an authenticated session and return it."""
    def _sign_in(expires_in=3600, refresh_token="refresh-1"):
        session = Session(
            is_authenticated=True,
            access_token=make_token(expires_in),
            refresh_token=refresh_token
        )
        storage.save(session)
        return session
    return _sign_in


@pytest.fixture
def clean_env(monkeypatch):
    """Remove AIOCENSOR_* variables so configuration tests see defaults."""
    for env_var in ClientConfiguration.ENV_MAPPINGS:
        monkeypatch.delenv(env_var, raising=False)
    return monkeypatch


@pytest.fixture
def config(tmp_path, clean_env):
    return ClientConfiguration(str(tmp_path / "client.conf"))
