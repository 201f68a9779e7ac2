"""
Core data models for the AIOCENSOR console client.

This module defines the data structures shared by the session manager, the
token store, the HTTP interceptors and the navigation layer.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum
from urllib.parse import urlencode

from .exceptions import ErrorCode


class SessionState(Enum):
    """Authentication lifecycle states."""
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"


@dataclass
class Session:
    """The current access/refresh token pair and authentication flag."""
    is_authenticated: bool = False
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

    def __post_init__(self):
        if self.is_authenticated and not self.access_token:
            raise ValueError("Authenticated session requires an access token")
        if not self.is_authenticated and (self.access_token or self.refresh_token):
            raise ValueError("Anonymous session cannot carry tokens")

    @classmethod
    def anonymous(cls) -> "Session":
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'isAuthenticated': self.is_authenticated,
            'accessToken': self.access_token,
            'refreshToken': self.refresh_token,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Session":
        """
        Build a session from its persisted form.

        Raises:
            ValueError: If the data does not have the persisted shape
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping, got {type(data).__name__}")

        is_authenticated = data.get('isAuthenticated', False)
        access_token = data.get('accessToken')
        refresh_token = data.get('refreshToken')

        if not isinstance(is_authenticated, bool):
            raise ValueError("isAuthenticated must be a boolean")
        for name, value in (('accessToken', access_token), ('refreshToken', refresh_token)):
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{name} must be a string or null")

        return cls(
            is_authenticated=is_authenticated,
            access_token=access_token,
            refresh_token=refresh_token,
        )


@dataclass
class AuthResult:
    """Tagged success/failure outcome of a session operation."""
    success: bool
    message: Optional[str] = None
    error_code: Optional[ErrorCode] = None

    @classmethod
    def ok(cls, message: Optional[str] = None) -> "AuthResult":
        return cls(success=True, message=message)

    @classmethod
    def failed(cls, message: Optional[str], error_code: ErrorCode) -> "AuthResult":
        return cls(success=False, message=message, error_code=error_code)

    def __bool__(self) -> bool:
        return self.success

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {'success': self.success}
        if self.message is not None:
            result['message'] = self.message
        if self.error_code is not None:
            result['error_code'] = self.error_code.value
        return result


@dataclass
class Route:
    """A route table entry with its access flags."""
    path: str
    name: Optional[str] = None
    title: Optional[str] = None
    requires_auth: bool = False
    requires_guest: bool = False
    redirect: Optional[str] = None
    children: List["Route"] = field(default_factory=list)

    def __post_init__(self):
        if self.requires_auth and self.requires_guest:
            raise ValueError(f"Route {self.path} cannot be both guest-only and auth-required")


@dataclass(frozen=True)
class RouteLocation:
    """A resolved navigation target."""
    path: str
    name: Optional[str] = None
    title: Optional[str] = None
    requires_auth: bool = False
    requires_guest: bool = False
    query: Dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    @property
    def full_path(self) -> str:
        if not self.query:
            return self.path
        return f"{self.path}?{urlencode(self.query, safe='/')}"


class NavigationAction(Enum):
    """Outcome of a navigation guard evaluation."""
    ALLOW = "allow"
    REDIRECT = "redirect"


@dataclass
class NavigationDecision:
    """What the router should do with a pending transition."""
    action: NavigationAction
    redirect_path: Optional[str] = None
    query: Dict[str, str] = field(default_factory=dict)
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "NavigationDecision":
        return cls(action=NavigationAction.ALLOW)

    @classmethod
    def redirect_to(
        cls,
        path: str,
        query: Optional[Dict[str, str]] = None,
        reason: Optional[str] = None
    ) -> "NavigationDecision":
        return cls(
            action=NavigationAction.REDIRECT,
            redirect_path=path,
            query=dict(query or {}),
            reason=reason
        )

    @property
    def is_redirect(self) -> bool:
        return self.action is NavigationAction.REDIRECT
