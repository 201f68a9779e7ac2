"""
Credential middleware for the console API transport.

The request interceptor attaches the bearer token and renews it ahead of
expiry; the response interceptor reacts to 401 answers by refreshing or,
failing that, sending the user back to the login screen.
"""

import logging
import time
from typing import Callable, Optional

from censor_shared.interfaces import INavigator
from censor_client.api_client import OutgoingRequest, CompletedResponse
from censor_client.auth.session_manager import SessionManager

logger = logging.getLogger(__name__)


DEFAULT_REFRESH_SKEW_SECONDS = 60


class AuthRequestInterceptor:
    """
    Runs before every authenticated call.

    Calls without a session go out untouched. Otherwise the token is renewed
    first when it has less than ``refresh_skew_seconds`` left, and then sent
    as ``Authorization: Bearer <token>``.
    """

    def __init__(
        self,
        session_manager: SessionManager,
        refresh_skew_seconds: float = DEFAULT_REFRESH_SKEW_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        self.session_manager = session_manager
        self.refresh_skew_seconds = refresh_skew_seconds
        self.clock = clock

    async def __call__(self, request: OutgoingRequest) -> OutgoingRequest:
        if not self.session_manager.access_token:
            return request

        if self.session_manager.needs_refresh(self.refresh_skew_seconds, now=self.clock()):
            logger.info(f"Access token close to expiry, renewing before {request.method} {request.path}")
            await self.session_manager.refresh()

        token = self.session_manager.access_token
        if token:
            request.headers['Authorization'] = f'Bearer {token}'
        return request


class AuthResponseInterceptor:
    """
    Runs after every authenticated call.

    A 401 triggers one refresh unless a refresh is already in flight. The
    failed call itself is never retried here.
    """

    def __init__(self, session_manager: SessionManager, navigator: Optional[INavigator] = None):
        self.session_manager = session_manager
        self.navigator = navigator

    async def __call__(self, response: CompletedResponse) -> CompletedResponse:
        if response.status != 401:
            return response

        if self.session_manager.is_refreshing:
            logger.debug(f"401 from {response.request.path} while a refresh is in flight, passing it through")
            return response

        logger.info(f"401 from {response.request.path}, attempting token refresh")
        result = await self.session_manager.refresh()

        if not result.success and self.navigator is not None:
            logger.info("Session could not be renewed, redirecting to login")
            self.navigator.redirect_to_login()

        return response
