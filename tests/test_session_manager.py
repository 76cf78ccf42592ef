"""
Session Manager Tests

The validity cache is advisory: at most one live check per 5-minute window,
and no network call at all when there is no token.
"""

import pytest
import requests

from arena_slides.core.exceptions import AuthExpiredError, NotLoggedInError
from arena_slides.plm.client import ArenaClient
from arena_slides.plm.session import SessionManager

from conftest import make_response


@pytest.fixture
def manager(client, logged_in, config):
    return SessionManager(client, logged_in, config)


class TestLoginScenario:

    @pytest.mark.critical
    def test_valid_immediately_after_login_without_backend_call(self, credentials, config, arena_http):
        """
        HAPPY PATH: login stores the token; the next validity check is served from cache.
        """
        arena_http.add("POST", "/login", make_response(200, {"arenaSessionId": "S1", "workspaceId": 7}))
        client = ArenaClient(credentials, config, http_session=arena_http)
        manager = SessionManager(client, credentials, config)

        manager.login("eng@example.com", "pw")

        assert credentials.get_session_token() == "S1"
        assert manager.is_session_valid() is True
        assert arena_http.paths() == ["/login"]

    def test_logout_then_invalid(self, manager, arena_http):
        arena_http.add("PUT", "/logout", make_response(200, {}))

        manager.logout()

        assert manager.is_session_valid() is False
        assert manager.current_session().is_empty()


class TestValidityCache:

    @pytest.mark.critical
    def test_two_checks_within_ttl_make_one_call(self, manager, logged_in, arena_http):
        logged_in.clear_session_cache()
        arena_http.add("GET", "/items", make_response(200, {"results": []}))

        assert manager.is_session_valid() is True
        assert manager.is_session_valid() is True
        assert len(arena_http.calls) == 1

    def test_expired_cache_checks_again(self, manager, logged_in, arena_http, clock):
        logged_in.clear_session_cache()
        arena_http.add("GET", "/items", make_response(200, {"results": []}))

        manager.is_session_valid()
        clock.advance(301)
        manager.is_session_valid()

        assert len(arena_http.calls) == 2

    def test_no_token_no_call(self, credentials, config, arena_http):
        client = ArenaClient(credentials, config, http_session=arena_http)
        manager = SessionManager(client, credentials, config)

        assert manager.is_session_valid() is False
        assert arena_http.calls == []

    def test_rejected_token_is_invalid(self, manager, logged_in, arena_http):
        logged_in.clear_session_cache()
        arena_http.add("GET", "/items", make_response(401, {}))

        assert manager.is_session_valid() is False
        assert logged_in.get_session_token() == ""
        # Token is gone, so the second check never reaches the backend
        assert manager.is_session_valid() is False
        assert len(arena_http.calls) == 1

    def test_network_failure_is_not_cached(self, manager, logged_in, arena_http):
        """
        EDGE: unreachable backend reads as invalid but leaves the cache empty.
        """
        logged_in.clear_session_cache()

        def unreachable(call):
            raise requests.exceptions.ConnectionError("down")

        arena_http.add("GET", "/items", unreachable)

        assert manager.is_session_valid() is False
        assert logged_in.get_session_cache(300) is None
        manager.is_session_valid()
        assert len(arena_http.calls) == 2


class TestRequireValidSession:

    def test_requires_token(self, credentials, config, arena_http):
        client = ArenaClient(credentials, config, http_session=arena_http)

        with pytest.raises(NotLoggedInError):
            SessionManager(client, credentials, config).require_valid_session()

    def test_always_checks_live(self, manager, arena_http):
        arena_http.add("GET", "/items", make_response(200, {"results": []}))

        session = manager.require_valid_session()

        assert session.session_token == "tok-123"
        assert len(arena_http.calls) == 1

    def test_rejected_raises(self, manager, arena_http):
        arena_http.add("GET", "/items", make_response(401, {}))

        with pytest.raises(AuthExpiredError):
            manager.require_valid_session()
