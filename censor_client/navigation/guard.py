"""
Authentication-aware navigation guard.

Decides, before every route transition, whether to allow it, send a guest to
the login screen (remembering where they wanted to go), keep a signed-in user
away from guest-only pages, or replay the remembered destination after login.
"""

import logging
from typing import Optional

from censor_shared.interfaces import ISessionManager
from censor_shared.logging_config import AuditLogger
from censor_shared.models import NavigationDecision, RouteLocation

logger = logging.getLogger(__name__)


class NavigationGuard:
    """
    Route guard backed by a session manager.

    Holds at most one pending target route. It is set when an anonymous user
    is sent to login and consumed by the first authenticated navigation that
    leaves the login page.
    """

    def __init__(
        self,
        session_manager: ISessionManager,
        login_path: str = '/login',
        default_path: str = '/',
        audit_logger: Optional[AuditLogger] = None
    ):
        self.session_manager = session_manager
        self.login_path = login_path
        self.default_path = default_path
        self.audit = audit_logger or AuditLogger()

        self._pending_target: Optional[RouteLocation] = None

    @property
    def pending_target(self) -> Optional[RouteLocation]:
        return self._pending_target

    def before_each(self, to: RouteLocation, from_: Optional[RouteLocation]) -> NavigationDecision:
        """
        Evaluate a transition.

        Args:
            to: Requested location
            from_: Current location, None on first navigation

        Returns:
            Allow, or a redirect with its reason
        """
        is_authenticated = self.session_manager.check_auth()
        from_path = from_.full_path if from_ else None

        if to.requires_guest and is_authenticated:
            self.audit.log_auth_redirect(from_path, self.default_path, "guest_only")
            return NavigationDecision.redirect_to(self.default_path, reason="guest_only")

        if to.requires_auth and not is_authenticated:
            if self._pending_target is not None:
                logger.debug(f"Pending target {self._pending_target.full_path} superseded by {to.full_path}")
            self._pending_target = to
            self.audit.log_auth_redirect(from_path, self.login_path, "auth_required")
            return NavigationDecision.redirect_to(
                self.login_path,
                query={'redirect': to.full_path},
                reason="auth_required"
            )

        if (
            from_ is not None
            and from_.path == self.login_path
            and self._pending_target is not None
            and is_authenticated
        ):
            target, self._pending_target = self._pending_target, None
            logger.info(f"Resuming navigation to {target.full_path} after login")
            return NavigationDecision.redirect_to(target.path, query=target.query, reason="pending_target")

        return NavigationDecision.allow()
