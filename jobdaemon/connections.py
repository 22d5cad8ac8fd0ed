# jobdaemon/connections.py
"""
Named external connections that must be reopened around fork.

A forked child shares its parent's sockets and file descriptors; reusing a
database connection from both sides corrupts the protocol stream. The
supervisor therefore closes and reopens every configured connection before
each iteration, and each child does the same right after fork.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CONNECTION = "db"


class ConnectionManager(ABC):
    """Abstract registry of named connections."""

    @abstractmethod
    def has(self, name: str) -> bool:
        """Return True if a connection with this name is configured."""
        pass

    @abstractmethod
    def close(self, name: str) -> None:
        """Close the named connection (no-op if it isn't open)."""
        pass

    @abstractmethod
    def open(self, name: str) -> None:
        """Open the named connection."""
        pass


class ConnectionRegistry(ConnectionManager):
    """
    ConnectionManager over named factories.

    Each factory is called to create a fresh connection object; the object
    only needs a ``close()`` method. Works with ``sqlite3.connect``,
    ``psycopg.connect`` and similar callables via functools.partial.
    """

    def __init__(self) -> None:
        self._factories: dict[str, Callable[[], Any]] = {}
        self._connections: dict[str, Any] = {}

    def register(self, name: str, factory: Callable[[], Any]) -> None:
        """
        Register a connection factory under a name.

        Args:
            name: Connection name (as listed in DaemonConfig.connections)
            factory: Zero-argument callable returning a new connection

        Raises:
            ValueError: If the name is already registered
        """
        if name in self._factories:
            raise ValueError(f"Connection '{name}' already registered")
        self._factories[name] = factory

    def get(self, name: str) -> Any:
        """
        Get the open connection for a name, opening it on first use.

        Raises:
            KeyError: If no factory is registered under this name
        """
        if name not in self._factories:
            raise KeyError(f"Unknown connection '{name}'")
        if name not in self._connections:
            self.open(name)
        return self._connections[name]

    def has(self, name: str) -> bool:
        return name in self._factories

    def close(self, name: str) -> None:
        connection = self._connections.pop(name, None)
        if connection is not None:
            connection.close()

    def open(self, name: str) -> None:
        self._connections[name] = self._factories[name]()


def renew_connections(
    manager: ConnectionManager | None, names: Iterable[str]
) -> None:
    """
    Close and reopen each named connection.

    Falls back to the default "db" connection when no names are configured.
    Names the manager doesn't know are skipped with an info note.

    Args:
        manager: Connection manager of the daemon (None = nothing to renew)
        names: Configured connection names
    """
    if manager is None:
        logger.info("No connection manager configured, nothing to refresh")
        return

    for name in list(names) or [DEFAULT_CONNECTION]:
        if manager.has(name):
            manager.close(name)
            manager.open(name)
            logger.debug(f"Renewed connection '{name}'")
        else:
            logger.info(f"No `{name}` connection to refresh")
