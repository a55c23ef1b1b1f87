from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Optional


class AuthMode(str, Enum):
    OFFLINE = "offline"
    USERNAME_PASSWORD = "username_password"


@dataclass(frozen=True)
class ColumnMeta:
    """Name and declared type of one result column."""

    name: str
    type_name: Optional[str] = None


@dataclass
class ResultSet:
    """One catalog query result.

    ``rows`` is consumed lazily and only once; row order is the order the
    catalog delivered the rows in. close() releases the source cursor even
    when the rows were never read.
    """

    query_id: str
    columns: list[ColumnMeta] = field(default_factory=list)
    rows: Iterable[tuple[Any, ...]] = field(default_factory=tuple)
    on_close: Optional[Callable[[], None]] = field(default=None, repr=False)

    def __iter__(self) -> Iterator[tuple[Any, ...]]:
        return iter(self.rows)

    def close(self) -> None:
        if self.on_close is not None:
            on_close, self.on_close = self.on_close, None
            on_close()

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]


def drain_value(value: Any) -> Optional[str]:
    """Turn a raw catalog value into one complete string.

    Large-object values (file-like readers, ``bytes``, ``memoryview``) are read
    to the end instead of being cut at a buffer boundary.
    """
    if value is None:
        return None
    if hasattr(value, "read"):
        chunks = []
        while True:
            chunk = value.read(65536)
            if not chunk:
                break
            chunks.append(chunk.decode("utf-8", "replace") if isinstance(chunk, bytes) else chunk)
        return "".join(chunks)
    if isinstance(value, memoryview):
        value = value.tobytes()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", "replace")
    return str(value)


class BaseIntrospector(ABC):
    """Abstract base class for catalog sources.

    An introspector runs one query at a time and hands back its result set
    without interpreting the values.
    """

    auth_mode: AuthMode = AuthMode.OFFLINE

    @abstractmethod
    def test_connection(self) -> bool:
        """Verify connectivity to the catalog source."""

    @abstractmethod
    def fetch(self, query_id: str, sql: str) -> ResultSet:
        """Run one catalog query.

        Raises:
            ConnectivityError: the source cannot be reached.
            CatalogQueryError: this query failed; other queries may still work.
        """

    def close(self) -> None:
        """Release the underlying connection, if any."""

    def __enter__(self) -> "BaseIntrospector":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False
