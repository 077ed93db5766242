"""Tests for connection registration and the shared connection managers."""

import pytest

from joinery import ConfigurationError, close_connections, connect
from joinery.connection import get_connection_manager, get_dialect
from joinery.dialects import SqliteDialect


def test_unknown_connection():
    with pytest.raises(ConfigurationError, match="No connection configured with name=`missing`"):
        get_connection_manager("missing")


def test_url_must_be_a_string():
    with pytest.raises(ConfigurationError):
        connect(None, name="broken")


def test_dialect_from_url():
    connect("sqlite+aiosqlite:///:memory:", name="other")
    assert isinstance(get_dialect("other"), SqliteDialect)


def test_unsupported_scheme():
    connect("oracle://localhost/db", name="oracle")
    with pytest.raises(ConfigurationError, match="Unsupported database scheme"):
        get_connection_manager("oracle")


def test_managers_are_shared():
    assert get_connection_manager() is get_connection_manager("default")


def test_reconnect_replaces_the_manager():
    manager = get_connection_manager()
    connect("sqlite:///:memory:")
    assert get_connection_manager() is not manager


async def test_connection_is_opened_lazily_and_reused():
    manager = get_connection_manager()
    assert not manager.is_open
    assert await manager.execute("SELECT 1 AS one") == [{"one": 1}]
    connection = manager._connection
    await manager.execute("SELECT 2")
    assert manager._connection is connection
    await close_connections()
    assert not manager.is_open


async def test_in_memory_state_lives_on_the_shared_connection():
    manager = get_connection_manager()
    await manager.execute('CREATE TABLE "item" ("id" INTEGER PRIMARY KEY)')
    await manager.execute('INSERT INTO "item" DEFAULT VALUES')
    assert await manager.execute('SELECT COUNT(*) AS "count" FROM "item"') == [{"count": 1}]
    await close_connections()
