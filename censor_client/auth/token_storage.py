"""
Secure Session Storage for the AIOCENSOR console client.

This module persists the current session (authentication flag plus the
access/refresh token pair) in a single named slot, using the system keyring
when it is usable and an encrypted file as fallback.
"""

import os
import json
import logging
import tempfile
from pathlib import Path
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError
from cryptography.fernet import Fernet, InvalidToken

from censor_shared.exceptions import StorageCorruptError, ConsoleClientError, ErrorCode
from censor_shared.interfaces import ISessionStorage
from censor_shared.logging_config import log_structured_error
from censor_shared.models import Session

logger = logging.getLogger(__name__)


class TokenStorageError(ConsoleClientError):
    """Raised when a session cannot be written."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_code=ErrorCode.STORAGE_WRITE_FAILED, **kwargs)


class SessionStorage(ISessionStorage):
    """
    Durable storage for the console session.

    Uses the system keyring when available, falls back to an encrypted file.
    A missing or unreadable slot always reads back as the anonymous session.
    """

    def __init__(
        self,
        slot: str = "auth",
        storage_dir: Optional[str] = None,
        service_name: str = "aiocensor-console",
        use_keyring: bool = True
    ):
        self.slot = slot
        self.service_name = service_name
        self.keyring_available = use_keyring and self._check_keyring_availability()
        self.storage_dir = Path(storage_dir) if storage_dir else self._get_default_storage_dir()

        self._encryption_key: Optional[bytes] = None

        logger.info(f"Session storage initialized (slot: {slot}, keyring: {self.keyring_available})")

    @property
    def storage_path(self) -> Path:
        return self.storage_dir / f"{self.slot}.enc"

    @property
    def key_path(self) -> Path:
        return self.storage_dir / f"{self.slot}.key"

    def _check_keyring_availability(self) -> bool:
        """Check if system keyring is available."""
        try:
            test_key = f"{self.service_name}_test"
            keyring.set_password(self.service_name, test_key, "test")
            result = keyring.get_password(self.service_name, test_key)
            keyring.delete_password(self.service_name, test_key)
            return result == "test"
        except Exception as e:
            logger.debug(f"Keyring not available: {e}")
            return False

    def _get_default_storage_dir(self) -> Path:
        """Get directory for encrypted file storage."""
        xdg_config = os.environ.get('XDG_CONFIG_HOME')
        if xdg_config:
            return Path(xdg_config) / 'aiocensor'
        return Path.home() / '.config' / 'aiocensor'

    def _get_encryption_key(self) -> bytes:
        """Get or create the Fernet key for file storage."""
        if self._encryption_key:
            return self._encryption_key

        if self.key_path.exists():
            self._encryption_key = self.key_path.read_bytes().strip()
            return self._encryption_key

        key = Fernet.generate_key()
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self._write_atomic(self.key_path, key)

        self._encryption_key = key
        return key

    def _write_atomic(self, path: Path, data: bytes) -> None:
        """Write data to a temporary file and move it into place."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def load(self) -> Session:
        """
        Read the persisted session.

        Returns:
            The stored session, or the anonymous session when the slot is
            empty or its content cannot be decoded
        """
        try:
            raw = self._read_keyring() if self.keyring_available else self._read_file()
        except (OSError, KeyringError, InvalidToken, ValueError) as e:
            self._report_corrupt("Failed to read stored session", e)
            return Session.anonymous()

        if raw is None:
            return Session.anonymous()

        try:
            return Session.from_dict(json.loads(raw))
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            self._report_corrupt("Stored session is malformed", e)
            return Session.anonymous()

    def _read_keyring(self) -> Optional[str]:
        return keyring.get_password(self.service_name, self.slot)

    def _read_file(self) -> Optional[str]:
        if not self.storage_path.exists():
            return None

        fernet = Fernet(self._get_encryption_key())
        return fernet.decrypt(self.storage_path.read_bytes()).decode('utf-8')

    def _report_corrupt(self, message: str, cause: Exception) -> None:
        error = StorageCorruptError(f"{message}: {cause}", slot=self.slot, cause=cause)
        log_structured_error(logger, error, level=logging.WARNING)

    def save(self, session: Session) -> None:
        """
        Persist the session, replacing any previous one.

        Args:
            session: Session to store

        Raises:
            TokenStorageError: If the session could not be written
        """
        data = json.dumps(session.to_dict())

        try:
            if self.keyring_available:
                keyring.set_password(self.service_name, self.slot, data)
            else:
                fernet = Fernet(self._get_encryption_key())
                self._write_atomic(self.storage_path, fernet.encrypt(data.encode('utf-8')))

            logger.debug(f"Session stored in slot {self.slot}")

        except (OSError, KeyringError, ValueError) as e:
            logger.error(f"Failed to store session: {e}")
            raise TokenStorageError(f"Failed to store session: {e}", cause=e)

    def clear(self) -> None:
        """
        Remove the persisted session. Safe to call when nothing is stored.

        If the slot cannot be removed it is overwritten with the anonymous
        session, so a later load never returns the old credentials.

        Raises:
            TokenStorageError: If the slot could neither be removed nor overwritten
        """
        if self.keyring_available:
            try:
                keyring.delete_password(self.service_name, self.slot)
                return
            except PasswordDeleteError:
                return
            except KeyringError as e:
                logger.warning(f"Failed to remove session from keyring, overwriting it: {e}")
        else:
            try:
                self.storage_path.unlink()
                logger.debug(f"Session slot {self.slot} removed")
                return
            except FileNotFoundError:
                return
            except OSError as e:
                logger.warning(f"Failed to remove session file, overwriting it: {e}")

        self.save(Session.anonymous())

    def exists(self) -> bool:
        """Check whether anything is stored in the slot."""
        if self.keyring_available:
            try:
                return keyring.get_password(self.service_name, self.slot) is not None
            except KeyringError:
                return False
        return self.storage_path.exists()
