"""
Session Manager for the AIOCENSOR console client.

This module owns the authentication lifecycle: login, logout, reconciliation
with persisted state, and single-flight renewal of the access/refresh token
pair. It is the only component that writes to session storage.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Optional, Callable, List

from jose import jwt, JWTError

from censor_shared.exceptions import (
    ConsoleClientError, ErrorCode, CredentialRejectedError, RefreshRejectedError, handle_exception
)
from censor_shared.interfaces import IAuthAPI, ISessionManager, ISessionStorage
from censor_shared.logging_config import AuditLogger, log_structured_error, redact_token
from censor_shared.models import AuthResult, Session, SessionState
from censor_client.auth.token_storage import TokenStorageError

logger = logging.getLogger(__name__)


LOGIN_FAILED_MESSAGE = "Login request failed, check the network or try again later"
LOGIN_REJECTED_MESSAGE = "Invalid password"


def get_token_expiry(token: str) -> Optional[int]:
    """
    Read the ``exp`` claim of a JWT without verifying its signature.

    Args:
        token: Encoded JWT

    Returns:
        Expiry as epoch seconds, or None if the token carries no ``exp``

    Raises:
        JWTError: If the token cannot be decoded or ``exp`` is not numeric
    """
    claims = jwt.get_unverified_claims(token)
    exp = claims.get('exp')
    if exp is None:
        return None
    try:
        return int(exp)
    except (TypeError, ValueError) as e:
        raise JWTError(f"Invalid exp claim: {exp!r}") from e


class SessionManager(ISessionManager):
    """
    Manages the console session with single-flight token refresh.

    Public operations never raise; they return an AuthResult. Concurrent
    refresh requests share one exchange with the authenticator.
    """

    def __init__(
        self,
        auth_api: IAuthAPI,
        storage: ISessionStorage,
        audit_logger: Optional[AuditLogger] = None
    ):
        self.auth_api = auth_api
        self.storage = storage
        self.audit = audit_logger or AuditLogger()

        self._session: Session = storage.load()

        # set while a refresh exchange is outstanding; later callers await it
        self._refresh_future: Optional[asyncio.Future] = None

        self._auth_callbacks: List[Callable[[bool], None]] = []
        self._token_refresh_callbacks: List[Callable[[str], None]] = []

        logger.info(f"Session manager initialized (authenticated: {self._session.is_authenticated})")

    @property
    def session(self) -> Session:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    @property
    def access_token(self) -> Optional[str]:
        return self._session.access_token

    @property
    def is_refreshing(self) -> bool:
        """True while a refresh exchange is outstanding."""
        return self._refresh_future is not None

    @property
    def state(self) -> SessionState:
        if not self._session.is_authenticated:
            return SessionState.ANONYMOUS
        if self.is_refreshing:
            return SessionState.REFRESHING
        return SessionState.AUTHENTICATED

    def add_auth_callback(self, callback: Callable[[bool], None]) -> None:
        """
        Add callback for authentication state changes.

        Args:
            callback: Function called with authentication status (bool)
        """
        self._auth_callbacks.append(callback)

    def add_token_refresh_callback(self, callback: Callable[[str], None]) -> None:
        """
        Add callback for token refresh events.

        Args:
            callback: Function called with the new access token (str)
        """
        self._token_refresh_callbacks.append(callback)

    def _notify_auth_change(self, is_authenticated: bool) -> None:
        for callback in self._auth_callbacks:
            try:
                callback(is_authenticated)
            except Exception as e:
                logger.error(f"Error in auth callback: {e}")

    def _notify_token_refresh(self, new_token: str) -> None:
        for callback in self._token_refresh_callbacks:
            try:
                callback(new_token)
            except Exception as e:
                logger.error(f"Error in token refresh callback: {e}")

    def _replace_session(self, session: Session) -> None:
        was_authenticated = self._session.is_authenticated
        self._session = session
        if was_authenticated != session.is_authenticated:
            self._notify_auth_change(session.is_authenticated)

    async def login(self, password: str) -> AuthResult:
        """
        Send the password to the remote authenticator.

        Args:
            password: Console password

        Returns:
            Success, or a failure carrying a user-facing message
        """
        try:
            data = await self.auth_api.post_login(password)
        except Exception as e:
            error = handle_exception(e)
            log_structured_error(logger, error, level=logging.WARNING)
            self.audit.log_login(False, error.message)
            return AuthResult.failed(LOGIN_FAILED_MESSAGE, error.error_code)

        if not data.get('success') or not data.get('access_token'):
            rejection = CredentialRejectedError(
                f"Login rejected: {data.get('message') or 'no token issued'}",
                user_message=data.get('message') or LOGIN_REJECTED_MESSAGE
            )
            log_structured_error(logger, rejection, level=logging.INFO)
            self.audit.log_login(False, rejection.user_message)
            return AuthResult.failed(rejection.user_message, rejection.error_code)

        session = Session(
            is_authenticated=True,
            access_token=data['access_token'],
            refresh_token=data.get('refresh_token')
        )

        try:
            self.storage.save(session)
        except TokenStorageError as e:
            log_structured_error(logger, e)
            self.audit.log_login(False, e.message)
            return AuthResult.failed(e.user_message, e.error_code)

        self._replace_session(session)
        self.audit.log_login(True)
        logger.info(f"Login successful (token {redact_token(session.access_token)})")
        return AuthResult.ok()

    def logout(self) -> AuthResult:
        """
        Clear the session in memory and in storage. Safe to call repeatedly.

        Memory is always reset; a failure is reported if storage could not be
        cleared.
        """
        was_authenticated = self._session.is_authenticated
        self._replace_session(Session.anonymous())
        self.audit.log_logout(was_authenticated)

        try:
            self.storage.clear()
        except TokenStorageError as e:
            log_structured_error(logger, e)
            return AuthResult.failed(e.user_message, e.error_code)

        logger.info("Logged out and cleared session state")
        return AuthResult.ok()

    def check_auth(self) -> bool:
        """
        Reload the persisted session into memory and report whether it is
        authenticated. Never writes to storage.
        """
        self._replace_session(self.storage.load())
        return self._session.is_authenticated

    def access_token_expires_at(self) -> Optional[datetime]:
        """Expiry of the current access token, if it can be read."""
        token = self._session.access_token
        if not token:
            return None
        try:
            exp = get_token_expiry(token)
        except JWTError:
            return None
        return datetime.fromtimestamp(exp) if exp is not None else None

    def needs_refresh(self, skew_seconds: float = 60, now: Optional[float] = None) -> bool:
        """
        Check whether the access token should be renewed before use.

        A token that cannot be decoded counts as expired. A token without an
        ``exp`` claim never needs renewal.

        Args:
            skew_seconds: Minimum remaining lifetime
            now: Current epoch time, defaults to time.time()
        """
        token = self._session.access_token
        if not token:
            return False

        try:
            exp = get_token_expiry(token)
        except JWTError as e:
            logger.warning(f"Access token cannot be decoded, treating it as expired: {e}")
            return True

        if exp is None:
            return False

        current = time.time() if now is None else now
        return exp - current < skew_seconds

    async def refresh(self) -> AuthResult:
        """
        Exchange the refresh token for a new token pair.

        Only one exchange runs at a time. A call made while one is in flight
        waits for it and returns its outcome without touching any state. On
        failure the session is logged out, unless it was replaced while the
        exchange was outstanding.
        """
        if self._refresh_future is not None:
            logger.debug("Token refresh already in flight, joining it")
            return await asyncio.shield(self._refresh_future)

        future = asyncio.get_running_loop().create_future()
        self._refresh_future = future
        result = AuthResult.failed("Token refresh was interrupted", ErrorCode.AUTH_REFRESH_REJECTED)

        try:
            result = await self._exchange_refresh_token()
        finally:
            self._refresh_future = None
            if not future.done():
                future.set_result(result)

        return result

    async def _exchange_refresh_token(self) -> AuthResult:
        started_with = self._session
        refresh_token = started_with.refresh_token
        if not refresh_token:
            return self._fail_refresh(RefreshRejectedError("No refresh token available"))

        logger.info("Refreshing access token")

        try:
            data = await self.auth_api.post_refresh(refresh_token)
        except Exception as e:
            error = handle_exception(e)
            if self._session != started_with:
                log_structured_error(logger, error, level=logging.WARNING)
                return self._discard_refresh()
            return self._fail_refresh(error)

        if self._session != started_with:
            return self._discard_refresh()

        if not data.get('success') or not data.get('access_token'):
            return self._fail_refresh(
                RefreshRejectedError(f"Refresh rejected: {data.get('message') or 'no token issued'}",
                                     user_message=data.get('message') or "Refresh token rejected")
            )

        session = Session(
            is_authenticated=True,
            access_token=data['access_token'],
            refresh_token=data.get('refresh_token') or refresh_token
        )

        try:
            self.storage.save(session)
        except TokenStorageError as e:
            return self._fail_refresh(e)

        self._replace_session(session)
        self.audit.log_refresh(True)
        self._notify_token_refresh(session.access_token)
        logger.info(f"Token refresh successful (token {redact_token(session.access_token)})")
        return AuthResult.ok()

    def _discard_refresh(self) -> AuthResult:
        # logout or a new login happened while the exchange was outstanding
        logger.info("Session changed during token refresh, discarding the result")
        return AuthResult.failed("Session changed during refresh", ErrorCode.AUTH_REFRESH_REJECTED)

    def _fail_refresh(self, error: ConsoleClientError) -> AuthResult:
        log_structured_error(logger, error, level=logging.WARNING)
        self.audit.log_refresh(False, error.user_message)
        self.logout()
        return AuthResult.failed(error.user_message, error.error_code)
