"""
ShipLabel Backend - Route Dependency Tests
============================================

What:  Tests for the session gate used by protected routes.
How:   Starlette Request objects built from a bare ASGI scope, with the
       session dict already decoded (as SessionMiddleware would leave it).
"""

import typing

import pytest
from starlette.requests import Request

from shiplabel.dependencies import (
    SESSION_LOGGED_IN,
    SESSION_USER_ID,
    is_logged_in,
    require_session,
)
from shiplabel.exceptions import NotAuthenticatedError


def make_request(session: dict) -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "scheme": "http",
        "server": ("test", 80),
        "path": "/dashboard",
        "query_string": b"",
        "headers": [],
        "session": session,
    })


class TestRequireSession:

    def test_returns_user_id(self):
        request = make_request({SESSION_LOGGED_IN: True, SESSION_USER_ID: 3})
        assert require_session(request) == 3

    def test_marker_without_user_id_returns_none(self):
        request = make_request({SESSION_LOGGED_IN: True})
        assert is_logged_in(request)
        assert require_session(request) is None

    def test_return_annotation_allows_none(self):
        hints = typing.get_type_hints(require_session)
        assert hints["return"] == typing.Optional[int]

    @pytest.mark.parametrize("session", [{}, {SESSION_LOGGED_IN: False}, {SESSION_USER_ID: 3}])
    def test_missing_marker_rejected(self, session):
        with pytest.raises(NotAuthenticatedError) as exc_info:
            require_session(make_request(session))
        assert exc_info.value.context["path"] == "/dashboard"
