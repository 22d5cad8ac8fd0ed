# tests/unit/test_connections.py
"""Tests for named connection renewal."""

import logging
from unittest.mock import MagicMock

import pytest

from jobdaemon.connections import ConnectionRegistry, renew_connections


class FakeConnection:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class TestConnectionRegistry:
    def test_get_opens_lazily(self):
        factory = MagicMock(side_effect=FakeConnection)
        registry = ConnectionRegistry()
        registry.register("db", factory)

        factory.assert_not_called()
        first = registry.get("db")
        assert registry.get("db") is first
        factory.assert_called_once_with()

    def test_duplicate_name_rejected(self):
        registry = ConnectionRegistry()
        registry.register("db", FakeConnection)

        with pytest.raises(ValueError, match="already registered"):
            registry.register("db", FakeConnection)

    def test_unknown_name(self):
        with pytest.raises(KeyError):
            ConnectionRegistry().get("db")

    def test_close_then_open_gives_fresh_connection(self):
        registry = ConnectionRegistry()
        registry.register("db", FakeConnection)
        old = registry.get("db")

        registry.close("db")
        registry.open("db")

        assert old.closed is True
        assert registry.get("db") is not old

    def test_close_unopened_is_noop(self):
        registry = ConnectionRegistry()
        registry.register("db", FakeConnection)

        registry.close("db")


class TestRenewConnections:
    def test_renews_each_named_connection(self):
        registry = ConnectionRegistry()
        registry.register("db", FakeConnection)
        registry.register("cache", FakeConnection)
        db, cache = registry.get("db"), registry.get("cache")

        renew_connections(registry, ["db", "cache"])

        assert db.closed and cache.closed
        assert registry.get("db") is not db
        assert registry.get("cache") is not cache

    def test_defaults_to_db(self):
        registry = ConnectionRegistry()
        registry.register("db", FakeConnection)
        db = registry.get("db")

        renew_connections(registry, [])

        assert db.closed is True

    def test_unknown_name_is_skipped(self, caplog):
        registry = ConnectionRegistry()
        registry.register("db", FakeConnection)
        db = registry.get("db")

        with caplog.at_level(logging.INFO):
            renew_connections(registry, ["redis"])

        assert "No `redis` connection to refresh" in caplog.text
        assert db.closed is False

    def test_without_manager(self, caplog):
        with caplog.at_level(logging.INFO):
            renew_connections(None, ["db"])

        assert "nothing to refresh" in caplog.text

    def test_factory_error_propagates(self):
        registry = ConnectionRegistry()
        registry.register("db", MagicMock(side_effect=ConnectionError("refused")))

        with pytest.raises(ConnectionError):
            renew_connections(registry, ["db"])
