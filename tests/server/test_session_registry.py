from datetime import datetime, timezone

import pytest
from starlette.types import Receive, Scope, Send

from haute_garonne_mcp.server.session_registry import SessionRegistry


class StubSession:
    def __init__(self, session_id: str):
        self.session_id = session_id
        self.created_at = datetime.now(timezone.utc)

    async def handle_post_message(self, scope: Scope, receive: Receive, send: Send) -> None:
        raise NotImplementedError


def test_insert_and_lookup():
    registry = SessionRegistry()
    session = StubSession("a")

    registry.insert(session)

    assert len(registry) == 1
    assert "a" in registry
    assert registry.get("a") is session
    assert registry.get("b") is None


def test_duplicate_insert_is_rejected():
    registry = SessionRegistry()
    registry.insert(StubSession("a"))

    with pytest.raises(ValueError, match="already registered"):
        registry.insert(StubSession("a"))


def test_remove_is_idempotent():
    registry = SessionRegistry()
    registry.insert(StubSession("a"))

    assert registry.remove("a") is True
    assert registry.remove("a") is False
    assert registry.remove("never-seen") is False
    assert len(registry) == 0


def test_sole_session_id():
    registry = SessionRegistry()
    assert registry.sole_session_id() is None

    registry.insert(StubSession("a"))
    assert registry.sole_session_id() == "a"

    registry.insert(StubSession("b"))
    assert registry.sole_session_id() is None
    assert registry.session_ids() == ["a", "b"]


def test_clear():
    registry = SessionRegistry()
    registry.insert(StubSession("a"))
    registry.insert(StubSession("b"))

    registry.clear()

    assert len(registry) == 0
    assert registry.session_ids() == []
