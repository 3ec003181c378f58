from __future__ import annotations

from typing import Any, ContextManager, Mapping, Optional, Protocol, Sequence

Row = dict[str, Any]
Filters = Mapping[str, Any]


class TableBackend(Protocol):
    """Table-scoped CRUD interface the store talks to.

    Every call is scoped to ``user_id``; rows owned by other users are never
    read or written. Filter values that are lists, tuples or sets match with
    ``IN``; ``None`` matches ``IS NULL``. ``order_by`` entries prefixed with
    ``-`` sort descending.

    Calls made inside ``atomic()`` share one unit of work that commits when
    the block exits and rolls back when it raises.
    """

    def select(
        self,
        table: str,
        user_id: int,
        filters: Optional[Filters] = None,
        order_by: Sequence[str] = (),
    ) -> list[Row]: ...

    def insert(self, table: str, user_id: int, values: Mapping[str, Any]) -> Row: ...

    def update(self, table: str, user_id: int, filters: Filters, values: Mapping[str, Any]) -> list[Row]: ...

    def delete(self, table: str, user_id: int, filters: Filters) -> int: ...

    def atomic(self) -> ContextManager[None]: ...

    def get_user(self, user_id: int) -> Optional[Row]: ...

    def find_user(self, email: str) -> Optional[Row]: ...

    def create_user(self, values: Mapping[str, Any]) -> Row: ...
