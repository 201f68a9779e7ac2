"""
Wiring for the console client.

Builds the session storage, transport, session manager, interceptors, guard
and router from a configuration and connects them explicitly.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from censor_client.api_client import ConsoleAPIClient, RetryConfig
from censor_client.auth.interceptors import AuthRequestInterceptor, AuthResponseInterceptor
from censor_client.auth.session_manager import SessionManager
from censor_client.auth.token_storage import SessionStorage
from censor_client.config import ClientConfiguration
from censor_client.navigation.guard import NavigationGuard
from censor_client.navigation.router import Router
from censor_client.navigation.routes import RouteTable

logger = logging.getLogger(__name__)


@dataclass
class SessionClient:
    """All components of a running console session."""
    config: ClientConfiguration
    storage: SessionStorage
    api_client: ConsoleAPIClient
    session_manager: SessionManager
    guard: NavigationGuard
    router: Router

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        await self.api_client.close()


def build_session_client(
    config: ClientConfiguration,
    routes: Optional[RouteTable] = None,
    storage: Optional[SessionStorage] = None
) -> SessionClient:
    """
    Assemble a console session from configuration.

    Args:
        config: Client configuration
        routes: Route table, defaults to the console routes
        storage: Session storage, defaults to one built from configuration

    Returns:
        Connected SessionClient
    """
    if storage is None:
        storage = SessionStorage(
            slot=config.get_storage_slot(),
            storage_dir=config.get_storage_dir(),
            use_keyring=config.use_keyring()
        )

    api_client = ConsoleAPIClient(
        server_url=config.get_server_url(),
        timeout=config.get_server_timeout(),
        retry_config=RetryConfig(
            max_retries=config.get_retry_attempts(),
            base_delay=config.get_retry_delay()
        ),
        login_path=config.get_login_path(),
        refresh_path=config.get_refresh_path()
    )

    session_manager = SessionManager(api_client, storage)

    guard = NavigationGuard(
        session_manager,
        login_path=config.get_login_route(),
        default_path=config.get_default_route()
    )
    router = Router(routes or RouteTable(), guard)

    api_client.add_request_middleware(
        AuthRequestInterceptor(session_manager, refresh_skew_seconds=config.get_refresh_skew())
    )
    api_client.add_response_middleware(AuthResponseInterceptor(session_manager, navigator=router))

    logger.debug("Session client assembled")

    return SessionClient(
        config=config,
        storage=storage,
        api_client=api_client,
        session_manager=session_manager,
        guard=guard,
        router=router
    )
