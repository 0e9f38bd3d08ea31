"""Dependencies the health check knows how to probe."""

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, ClassVar, Protocol, Union

import aiosqlite


class DependencyKind(str, Enum):
    DATABASE = "database"


class SupportsAuthenticate(Protocol):
    def authenticate(self) -> Union[Awaitable[Any], Any]: ...


@dataclass(frozen=True)
class DatabaseDependency:
    """A database client whose `authenticate()` proves the connection works."""

    client: SupportsAuthenticate

    kind: ClassVar[DependencyKind] = DependencyKind.DATABASE
    span_name: ClassVar[str] = "Database Health Check"

    async def probe(self) -> None:
        result = self.client.authenticate()
        if inspect.isawaitable(result):
            await result


# New kinds get a member in DependencyKind and a variant here.
Dependency = Union[DatabaseDependency]


class SqliteDatabase:
    """The service's SQLite database, as seen by the health check."""

    def __init__(self, path: str):
        self.path = path

    async def authenticate(self) -> None:
        async with aiosqlite.connect(self.path) as conn:
            async with conn.execute("SELECT 1+1 AS result") as cursor:
                await cursor.fetchone()
