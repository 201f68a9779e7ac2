"""
Core interfaces for the AIOCENSOR console client.

This module defines the abstract interfaces that the session, transport and
navigation components implement so that they can be wired together explicitly.
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Any

from .models import Session, AuthResult


class ISessionStorage(ABC):
    """Interface for durable session persistence."""

    @abstractmethod
    def load(self) -> Session:
        """Read the persisted session, or the anonymous session if none is usable."""
        pass

    @abstractmethod
    def save(self, session: Session) -> None:
        """Persist the session."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove the persisted session."""
        pass


class IAuthAPI(ABC):
    """Interface for the remote authenticator."""

    @abstractmethod
    async def post_login(self, password: str) -> Dict[str, Any]:
        """Exchange a password for a token pair."""
        pass

    @abstractmethod
    async def post_refresh(self, refresh_token: Optional[str]) -> Dict[str, Any]:
        """Exchange a refresh token for a new token pair."""
        pass


class ISessionManager(ABC):
    """Interface for the authentication lifecycle."""

    @abstractmethod
    async def login(self, password: str) -> AuthResult:
        pass

    @abstractmethod
    def logout(self) -> AuthResult:
        pass

    @abstractmethod
    def check_auth(self) -> bool:
        pass

    @abstractmethod
    async def refresh(self) -> AuthResult:
        pass


class INavigator(ABC):
    """Interface for forcing navigation from outside the router."""

    @abstractmethod
    def redirect_to_login(self) -> None:
        """Hard-navigate to the login screen."""
        pass


class IConfigurationManager(ABC):
    """Interface for configuration management."""

    @abstractmethod
    def get_server_url(self) -> str:
        """Get server URL."""
        pass

    @abstractmethod
    def get_config(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        pass

    @abstractmethod
    def set_config(self, key: str, value: Any) -> None:
        """Set configuration value."""
        pass
