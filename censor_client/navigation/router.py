"""
Router for the console.

Resolves paths against the route table, runs the navigation guard and follows
its redirects, and keeps track of the current location and page title.
"""

import logging
from typing import Callable, List, Optional, Dict

from censor_shared.interfaces import INavigator
from censor_shared.models import RouteLocation
from censor_client.navigation.guard import NavigationGuard
from censor_client.navigation.routes import RouteTable, MAX_ROUTE_REDIRECTS

logger = logging.getLogger(__name__)


class Router(INavigator):
    """
    Applies guard decisions to route transitions.

    Guard redirects keep the original ``from`` location, so a redirect chain
    started from the login page is still seen as leaving the login page.
    """

    def __init__(self, routes: RouteTable, guard: NavigationGuard):
        self.routes = routes
        self.guard = guard
        self.current: Optional[RouteLocation] = None
        self.title: str = RouteTable.title_for(RouteLocation(path='/'))

        self._listeners: List[Callable[[RouteLocation], None]] = []

    def add_listener(self, callback: Callable[[RouteLocation], None]) -> None:
        """Add callback called with each location the router settles on."""
        self._listeners.append(callback)

    def navigate(self, path: str, query: Optional[Dict[str, str]] = None) -> Optional[RouteLocation]:
        """
        Navigate to a path.

        Args:
            path: Target path, may include a query string
            query: Extra query parameters

        Returns:
            The location the router settled on, or the unchanged current
            location if the guard redirected in a loop
        """
        from_ = self.current
        target = self.routes.resolve(path, query)

        for _ in range(MAX_ROUTE_REDIRECTS):
            decision = self.guard.before_each(target, from_)
            if not decision.is_redirect:
                break

            logger.info(f"Navigation to {target.full_path} redirected to {decision.redirect_path} ({decision.reason})")
            target = self.routes.resolve(decision.redirect_path, decision.query)
        else:
            logger.error(f"Navigation to {path} aborted: too many guard redirects")
            return self.current

        self.current = target
        self.title = RouteTable.title_for(target)

        for callback in self._listeners:
            try:
                callback(target)
            except Exception as e:
                logger.error(f"Error in navigation listener: {e}")

        return target

    def redirect_to_login(self) -> None:
        """Force navigation to the login screen."""
        logger.info("Forced navigation to login")
        self.navigate(self.guard.login_path)
