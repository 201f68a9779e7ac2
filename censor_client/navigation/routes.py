"""
Route table for the console.

Routes are declared as a tree; child routes inherit the access flags of their
parents. A child with path ``*`` matches anything below its parent.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import urlsplit, parse_qsl

from censor_shared.models import Route, RouteLocation

logger = logging.getLogger(__name__)


APP_TITLE = "AIOCENSOR"
DEFAULT_PAGE_TITLE = "AIOCENSOR Console"
CATCH_ALL = "*"
MAX_ROUTE_REDIRECTS = 10


def default_routes() -> List[Route]:
    """The console's route tree."""
    return [
        Route(path='/login', name='Login', requires_guest=True),
        Route(
            path='/',
            name='Dashboard',
            requires_auth=True,
            children=[
                Route(path='audit', name='AuditLog', title='Audit Log'),
                Route(path='blacklist', name='BlackList', title='Blacklist'),
                Route(path='sensitive', name='SensitiveWords', title='Sensitive Words'),
                Route(path=CATCH_ALL, redirect='/'),
            ],
        ),
    ]


def normalize_path(path: str) -> str:
    if not path.startswith('/'):
        path = '/' + path
    if len(path) > 1:
        path = path.rstrip('/') or '/'
    return path


def _join(parent: str, child: str) -> str:
    if child.startswith('/'):
        return normalize_path(child)
    return normalize_path(f"{parent.rstrip('/')}/{child}")


@dataclass
class _RouteRecord:
    path: str
    name: Optional[str]
    title: Optional[str]
    requires_auth: bool
    requires_guest: bool
    redirect: Optional[str]
    catch_all: bool = False


class RouteTable:
    """Flattened route tree with path resolution."""

    def __init__(self, routes: Optional[List[Route]] = None):
        self._records: List[_RouteRecord] = []
        for route in routes if routes is not None else default_routes():
            self._flatten(route, parent=None)

    def _flatten(self, route: Route, parent: Optional[_RouteRecord]) -> None:
        parent_path = parent.path if parent else '/'
        catch_all = route.path == CATCH_ALL

        record = _RouteRecord(
            path=parent_path if catch_all else _join(parent_path, route.path),
            name=route.name,
            title=route.title if route.title is not None else (parent.title if parent else None),
            requires_auth=route.requires_auth or bool(parent and parent.requires_auth),
            requires_guest=route.requires_guest or bool(parent and parent.requires_guest),
            redirect=route.redirect,
            catch_all=catch_all,
        )
        self._records.append(record)

        for child in route.children:
            self._flatten(child, parent=record)

    def _match(self, path: str) -> Optional[_RouteRecord]:
        for record in self._records:
            if not record.catch_all and record.path == path:
                return record

        best: Optional[_RouteRecord] = None
        for record in self._records:
            if record.catch_all and path.startswith(record.path):
                if best is None or len(record.path) > len(best.path):
                    best = record
        return best

    def resolve(self, target: str, query: Optional[Dict[str, str]] = None) -> RouteLocation:
        """
        Resolve a path (optionally carrying a query string) to a location,
        following record-level redirects.
        """
        parts = urlsplit(target)
        path = normalize_path(parts.path or '/')
        merged_query = dict(parse_qsl(parts.query))
        merged_query.update(query or {})

        for _ in range(MAX_ROUTE_REDIRECTS):
            record = self._match(path)
            if record is None:
                logger.debug(f"No route matches {path}")
                return RouteLocation(path=path, query=merged_query)

            if record.redirect is None:
                return RouteLocation(
                    path=path,
                    name=record.name,
                    title=record.title,
                    requires_auth=record.requires_auth,
                    requires_guest=record.requires_guest,
                    query=merged_query,
                )

            logger.debug(f"Route {path} redirects to {record.redirect}")
            path = normalize_path(record.redirect)
            merged_query = {}

        raise ValueError(f"Route redirect loop while resolving {target}")

    def by_name(self, name: str) -> RouteLocation:
        for record in self._records:
            if record.name == name:
                return self.resolve(record.path)
        raise KeyError(name)

    @staticmethod
    def title_for(location: RouteLocation) -> str:
        if location.title:
            return f"{APP_TITLE} - {location.title}"
        return DEFAULT_PAGE_TITLE
