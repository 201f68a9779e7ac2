"""
Tests for durable session storage.
"""

import json
import os
import stat
from pathlib import Path
from unittest.mock import patch

import pytest
from cryptography.fernet import Fernet
from keyring.errors import KeyringError

from censor_client.auth.token_storage import SessionStorage, TokenStorageError
from censor_shared.models import Session


def make_session():
    return Session(is_authenticated=True, access_token="access-1", refresh_token="refresh-1")


class TestSessionRecord:
    """Consistency of the persisted session shape."""

    @pytest.mark.parametrize("fields", [
        {"access_token": "access-1"},
        {"refresh_token": "refresh-1"},
    ])
    def test_anonymous_session_rejects_tokens(self, fields):
        with pytest.raises(ValueError):
            Session(is_authenticated=False, **fields)

    def test_authenticated_session_requires_access_token(self):
        with pytest.raises(ValueError):
            Session(is_authenticated=True, refresh_token="refresh-1")


class TestFileStorage:
    """Encrypted file backend."""

    def test_missing_slot_reads_anonymous(self, storage):
        assert storage.load() == Session.anonymous()
        assert not storage.exists()

    def test_round_trip(self, storage):
        storage.save(make_session())

        assert storage.exists()
        assert storage.load() == make_session()

    def test_file_is_encrypted(self, storage):
        storage.save(make_session())

        raw = storage.storage_path.read_bytes()
        assert b"access-1" not in raw

    def test_files_are_owner_only(self, storage):
        storage.save(make_session())

        for path in (storage.storage_path, storage.key_path):
            mode = stat.S_IMODE(os.stat(path).st_mode)
            assert mode == 0o600

    def test_new_instance_reads_same_slot(self, storage):
        storage.save(make_session())

        reopened = SessionStorage(slot="test", storage_dir=str(storage.storage_dir), use_keyring=False)

        assert reopened.load() == make_session()

    def test_save_replaces_previous(self, storage):
        storage.save(make_session())
        storage.save(Session(is_authenticated=True, access_token="access-2"))

        assert storage.load().access_token == "access-2"
        assert storage.load().refresh_token is None

    def test_slots_are_independent(self, storage):
        other = SessionStorage(slot="other", storage_dir=str(storage.storage_dir), use_keyring=False)
        storage.save(make_session())

        assert other.load() == Session.anonymous()

    def test_undecryptable_file_reads_anonymous(self, storage):
        storage.storage_dir.mkdir(parents=True, exist_ok=True)
        storage.storage_path.write_bytes(b"garbage")

        assert storage.load() == Session.anonymous()

    def test_non_json_payload_reads_anonymous(self, storage):
        fernet = Fernet(storage._get_encryption_key())
        storage.storage_path.write_bytes(fernet.encrypt(b"not json"))

        assert storage.load() == Session.anonymous()

    @pytest.mark.parametrize("payload", [
        ["not", "a", "mapping"],
        {"isAuthenticated": "yes"},
        {"isAuthenticated": True, "accessToken": None},
        {"isAuthenticated": True, "accessToken": 42},
        {"isAuthenticated": False, "accessToken": "token-1"},
        {"isAuthenticated": False, "refreshToken": "refresh-1"},
    ])
    def test_malformed_session_reads_anonymous(self, storage, payload):
        fernet = Fernet(storage._get_encryption_key())
        storage.storage_path.write_bytes(fernet.encrypt(json.dumps(payload).encode()))

        assert storage.load() == Session.anonymous()

    def test_missing_key_reads_anonymous(self, storage):
        storage.save(make_session())
        storage.key_path.unlink()

        reopened = SessionStorage(slot="test", storage_dir=str(storage.storage_dir), use_keyring=False)

        assert reopened.load() == Session.anonymous()

    def test_clear_is_idempotent(self, storage):
        storage.save(make_session())

        storage.clear()
        storage.clear()

        assert not storage.exists()
        assert storage.load() == Session.anonymous()

    def test_clear_overwrites_slot_it_cannot_remove(self, storage):
        storage.save(make_session())

        with patch.object(Path, 'unlink', side_effect=PermissionError("denied")):
            storage.clear()

        assert storage.load() == Session.anonymous()

    def test_clear_raises_when_slot_cannot_be_overwritten(self, storage):
        storage.save(make_session())

        with patch.object(Path, 'unlink', side_effect=PermissionError("denied")), \
                patch.object(storage, '_write_atomic', side_effect=OSError("read-only")):
            with pytest.raises(TokenStorageError):
                storage.clear()

    def test_write_failure_raises(self, storage):
        with patch.object(storage, '_write_atomic', side_effect=OSError("disk full")):
            with pytest.raises(TokenStorageError):
                storage.save(make_session())

    def test_failed_write_leaves_no_temp_files(self, storage):
        storage.save(make_session())

        with patch('censor_client.auth.token_storage.os.replace', side_effect=OSError("read-only")):
            with pytest.raises(TokenStorageError):
                storage.save(Session.anonymous())

        leftovers = [p.name for p in storage.storage_dir.iterdir() if p.name.startswith('.')]
        assert leftovers == []
        assert storage.load() == make_session()


class TestKeyringStorage:
    """System keyring backend."""

    @pytest.fixture
    def keyring_storage(self, tmp_path):
        storage = SessionStorage(slot="test", storage_dir=str(tmp_path), use_keyring=False)
        storage.keyring_available = True
        return storage

    def test_save_uses_keyring(self, keyring_storage):
        with patch('censor_client.auth.token_storage.keyring') as mock_keyring:
            keyring_storage.save(make_session())

        service, slot, data = mock_keyring.set_password.call_args[0]
        assert service == "aiocensor-console"
        assert slot == "test"
        assert json.loads(data) == make_session().to_dict()
        assert not keyring_storage.storage_path.exists()

    def test_load_from_keyring(self, keyring_storage):
        with patch('censor_client.auth.token_storage.keyring') as mock_keyring:
            mock_keyring.get_password.return_value = json.dumps(make_session().to_dict())

            assert keyring_storage.load() == make_session()

    def test_empty_keyring_reads_anonymous(self, keyring_storage):
        with patch('censor_client.auth.token_storage.keyring') as mock_keyring:
            mock_keyring.get_password.return_value = None

            assert keyring_storage.load() == Session.anonymous()

    def test_unavailable_keyring_falls_back_to_file(self, tmp_path):
        with patch('censor_client.auth.token_storage.keyring') as mock_keyring:
            mock_keyring.set_password.side_effect = RuntimeError("no backend")
            storage = SessionStorage(slot="test", storage_dir=str(tmp_path))

        assert storage.keyring_available is False

    def test_clear_removes_keyring_entry(self, keyring_storage):
        with patch('censor_client.auth.token_storage.keyring') as mock_keyring:
            keyring_storage.clear()

        mock_keyring.delete_password.assert_called_once_with("aiocensor-console", "test")
        mock_keyring.set_password.assert_not_called()

    def test_clear_overwrites_keyring_entry_it_cannot_delete(self, keyring_storage):
        with patch('censor_client.auth.token_storage.keyring') as mock_keyring:
            mock_keyring.delete_password.side_effect = KeyringError("locked")
            keyring_storage.clear()

        service, slot, data = mock_keyring.set_password.call_args[0]
        assert (service, slot) == ("aiocensor-console", "test")
        assert json.loads(data) == Session.anonymous().to_dict()
