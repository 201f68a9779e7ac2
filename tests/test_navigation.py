"""
Tests for the route table, navigation guard and router.
"""

from unittest.mock import Mock

import pytest

from censor_client.navigation.guard import NavigationGuard
from censor_client.navigation.router import Router
from censor_client.navigation.routes import RouteTable, normalize_path
from censor_shared.models import NavigationDecision, Route, RouteLocation


@pytest.fixture
def routes():
    return RouteTable()


@pytest.fixture
def guard(session_manager):
    return NavigationGuard(session_manager)


@pytest.fixture
def router(routes, guard):
    return Router(routes, guard)


class TestRouteTable:

    def test_children_inherit_auth(self, routes):
        location = routes.resolve('/blacklist')

        assert location.name == 'BlackList'
        assert location.requires_auth
        assert not location.requires_guest

    def test_login_is_guest_only(self, routes):
        location = routes.resolve('/login')

        assert location.requires_guest
        assert not location.requires_auth

    def test_unknown_path_redirects_to_root(self, routes):
        location = routes.resolve('/does/not/exist?x=1')

        assert location.path == '/'
        assert location.name == 'Dashboard'
        assert location.query == {}

    def test_query_string_parsed(self, routes):
        location = routes.resolve('/login?redirect=/audit')

        assert location.query == {'redirect': '/audit'}
        assert location.full_path == '/login?redirect=/audit'

    def test_trailing_slash_normalized(self, routes):
        assert routes.resolve('/sensitive/').name == 'SensitiveWords'
        assert normalize_path('audit') == '/audit'
        assert normalize_path('/') == '/'

    def test_by_name(self, routes):
        assert routes.by_name('AuditLog').path == '/audit'
        with pytest.raises(KeyError):
            routes.by_name('Nope')

    def test_titles(self, routes):
        assert RouteTable.title_for(routes.resolve('/audit')) == 'AIOCENSOR - Audit Log'
        assert RouteTable.title_for(routes.resolve('/blacklist')) == 'AIOCENSOR - Blacklist'
        assert RouteTable.title_for(routes.resolve('/')) == 'AIOCENSOR Console'
        assert RouteTable.title_for(routes.resolve('/login')) == 'AIOCENSOR Console'

    def test_redirect_loop_detected(self):
        table = RouteTable([Route(path='/a', redirect='/b'), Route(path='/b', redirect='/a')])

        with pytest.raises(ValueError):
            table.resolve('/a')

    def test_unmatched_path_without_catch_all(self):
        table = RouteTable([Route(path='/only')])

        location = table.resolve('/other')

        assert location.path == '/other'
        assert location.name is None
        assert not location.requires_auth

    def test_conflicting_flags_rejected(self):
        with pytest.raises(ValueError):
            Route(path='/x', requires_auth=True, requires_guest=True)


class TestNavigationGuard:

    def test_anonymous_sent_to_login_with_redirect(self, guard, routes):
        target = routes.resolve('/blacklist')

        decision = guard.before_each(target, None)

        assert decision.is_redirect
        assert decision.redirect_path == '/login'
        assert decision.query == {'redirect': '/blacklist'}
        assert decision.reason == 'auth_required'
        assert guard.pending_target == target

    def test_anonymous_public_route_allowed(self, guard, routes):
        decision = guard.before_each(routes.resolve('/login'), None)

        assert not decision.is_redirect

    def test_authenticated_kept_off_login(self, guard, routes, signed_in):
        signed_in()

        decision = guard.before_each(routes.resolve('/login'), routes.resolve('/audit'))

        assert decision.is_redirect
        assert decision.redirect_path == '/'
        assert decision.reason == 'guest_only'

    def test_pending_target_consumed_after_login(self, guard, routes, signed_in):
        guard.before_each(routes.resolve('/blacklist'), None)
        signed_in()

        decision = guard.before_each(routes.resolve('/'), routes.resolve('/login'))

        assert decision.redirect_path == '/blacklist'
        assert decision.reason == 'pending_target'
        assert guard.pending_target is None

    def test_pending_target_superseded(self, guard, routes):
        guard.before_each(routes.resolve('/blacklist'), None)
        guard.before_each(routes.resolve('/audit'), None)

        assert guard.pending_target.path == '/audit'

    def test_pending_target_ignored_when_not_leaving_login(self, guard, routes, signed_in):
        guard.before_each(routes.resolve('/blacklist'), None)
        signed_in()

        decision = guard.before_each(routes.resolve('/audit'), routes.resolve('/sensitive'))

        assert not decision.is_redirect
        assert guard.pending_target is not None

    def test_guard_reads_storage_each_time(self, guard, routes, signed_in, storage):
        signed_in()
        assert not guard.before_each(routes.resolve('/audit'), None).is_redirect

        storage.clear()

        assert guard.before_each(routes.resolve('/audit'), None).is_redirect


class TestRouter:

    def test_protected_route_lands_on_login(self, router):
        location = router.navigate('/blacklist')

        assert location.path == '/login'
        assert location.full_path == '/login?redirect=/blacklist'
        assert router.current is location
        assert router.title == 'AIOCENSOR Console'

    def test_login_then_resume(self, router, guard, signed_in):
        router.navigate('/blacklist')
        signed_in()

        location = router.navigate('/')

        assert location.path == '/blacklist'
        assert router.title == 'AIOCENSOR - Blacklist'
        assert guard.pending_target is None

    def test_authenticated_visit_to_login_goes_home(self, router, signed_in):
        signed_in()

        location = router.navigate('/login')

        assert location.path == '/'
        assert location.name == 'Dashboard'

    def test_unknown_route_anonymous(self, router):
        location = router.navigate('/nowhere')

        assert location.full_path == '/login?redirect=/'

    def test_unknown_route_authenticated(self, router, signed_in):
        signed_in()

        assert router.navigate('/nowhere').path == '/'

    def test_listeners_notified(self, router, signed_in):
        signed_in()
        seen = []
        router.add_listener(seen.append)
        router.add_listener(Mock(side_effect=RuntimeError("listener failed")))

        router.navigate('/audit')

        assert [location.path for location in seen] == ['/audit']

    def test_redirect_to_login(self, router, signed_in, storage):
        signed_in()
        router.navigate('/audit')
        storage.clear()

        router.redirect_to_login()

        assert router.current.path == '/login'

    def test_guard_redirect_loop_keeps_current(self, routes):
        looping_guard = Mock()
        looping_guard.before_each.return_value = NavigationDecision.redirect_to('/audit')
        router = Router(routes, looping_guard)
        router.current = RouteLocation(path='/sensitive')

        location = router.navigate('/audit')

        assert location.path == '/sensitive'
