"""Unit tests for cmaas_console.core.session."""

from __future__ import annotations

from cmaas_console.core.session import Session


class TestSession:
    def test_from_bearer_header(self):
        session = Session.from_authorization("Bearer abc.def")
        assert session.token == "abc.def"
        assert session.is_authenticated
        assert session.auth_headers() == {"Authorization": "Bearer abc.def"}

    def test_missing_header(self):
        session = Session.from_authorization(None)
        assert not session.is_authenticated
        assert session.auth_headers() == {}

    def test_non_bearer_scheme_ignored(self):
        assert not Session.from_authorization("Basic dXNlcjpwdw==").is_authenticated

    def test_clear_marks_expired(self):
        session = Session("tok")
        session.clear()
        assert session.token is None
        assert session.expired
        assert "anonymous" in repr(session)

    def test_set_token_revives(self):
        session = Session()
        session.clear()
        session.set_token("new")
        assert session.is_authenticated
        assert not session.expired

    def test_sessions_are_independent(self):
        a, b = Session("a"), Session("b")
        a.clear()
        assert b.token == "b"


class TestScope:
    def test_same_token_same_scope(self):
        assert Session("a").scope == Session("a").scope

    def test_scope_does_not_leak_token(self):
        scope = Session("secret-token").scope
        assert scope and "secret-token" not in scope
        assert Session("other").scope != scope

    def test_anonymous_has_no_scope(self):
        assert Session().scope is None

    def test_scope_survives_clear(self):
        session = Session("a")
        scope = session.scope
        session.clear()
        assert session.scope == scope
