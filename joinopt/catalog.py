"""Interfaces to the catalog and the storage layer, along with a simple in-memory implementation of both.

The optimizer and the statistics only depend on the `Catalog` and `TableStorage` protocols. A relational engine provides
its own implementation of these protocols. The `InMemoryCatalog` is a self-contained implementation that keeps all tuples
in memory, but still models the page layout of a paged heap file in order to compute realistic page counts.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from ._core import FieldType
from .util.jsonize import jsondict

PageSize = 4096
"""The default size of a single page in bytes."""


@dataclass(frozen=True)
class TupleSchema:
    """Describes the fields of a table's tuples.

    Attributes
    ----------
    fields : tuple[tuple[str, FieldType], ...]
        The name and type of each field, in the order in which they appear in the tuples.
    """

    fields: tuple[tuple[str, FieldType], ...]

    @staticmethod
    def of(*fields: tuple[str, FieldType]) -> TupleSchema:
        return TupleSchema(tuple(fields))

    @property
    def names(self) -> list[str]:
        return [name for name, __ in self.fields]

    def field_type(self, field_ref: str | int) -> FieldType:
        return self.fields[self.index_of(field_ref)][1]

    def index_of(self, field_ref: str | int) -> int:
        """Resolves a field name to its position in the tuple. Positions are returned as-is after a bounds check.

        Raises
        ------
        KeyError
            If there is no field with the given name
        IndexError
            If the position is out of bounds
        """
        if isinstance(field_ref, int):
            if not 0 <= field_ref < len(self.fields):
                raise IndexError(f"Field index {field_ref} out of bounds for {self}")
            return field_ref
        for idx, (name, __) in enumerate(self.fields):
            if name == field_ref:
                return idx
        raise KeyError(f"No field named '{field_ref}' in {self}")

    def tuple_size(self) -> int:
        """Provides the size of a single tuple in bytes."""
        return sum(field_type.size for __, field_type in self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __json__(self) -> jsondict:
        return {name: field_type.name for name, field_type in self.fields}

    def __str__(self) -> str:
        return "(" + ", ".join(f"{name} {field_type.name}" for name, field_type in self.fields) + ")"


class Catalog(Protocol):
    """The catalog provides access to the registered tables, their schemas and primary keys.

    Since queries refer to their tables via aliases, the catalog is also responsible for resolving the aliases of the
    current query to the actual tables.
    """

    def table_id_for_alias(self, alias: str) -> Optional[int]:
        """Resolves a table alias to the table identifier. Returns *None* for unknown aliases."""
        ...

    def table_name(self, table_id: int) -> str: ...

    def primary_key_field(self, table_id: int) -> str:
        """Provides the name of the primary key field of a table. Empty if the table does not have a primary key."""
        ...

    def table_ids(self) -> Iterable[int]: ...

    def schema(self, table_id: int) -> TupleSchema: ...


class TableStorage(Protocol):
    """The storage layer provides sequential access to the tuples of a table."""

    def page_count(self, table_id: int) -> int: ...

    def scan(self, table_id: int) -> Iterator[Sequence[Any]]:
        """Iterates over all tuples of the table.

        Raises
        ------
        OSError
            If the table cannot be opened
        """
        ...


def tuples_per_page(schema: TupleSchema, *, page_size: int = PageSize) -> int:
    """Computes how many tuples fit on a single page.

    Each tuple occupies its size in bytes plus a single bit in the page header that marks whether the slot is used.
    """
    return (page_size * 8) // (schema.tuple_size() * 8 + 1)


@dataclass
class _TableEntry:
    table_id: int
    name: str
    schema: TupleSchema
    primary_key: str
    rows: list[tuple] = field(default_factory=list)


class InMemoryCatalog:
    """A catalog and storage implementation that keeps all tables in memory.

    Tables are assigned increasing identifiers in the order in which they are added. Each table is also available under its
    own name as an alias. Additional aliases (e.g. from the *FROM* clause of a query) can be registered via `add_alias`.

    Parameters
    ----------
    page_size : int, optional
        The number of bytes per page. This determines the page count of the tables. Defaults to `PageSize`.
    """

    def __init__(self, *, page_size: int = PageSize) -> None:
        self._page_size = page_size
        self._tables: dict[int, _TableEntry] = {}
        self._names: dict[str, int] = {}
        self._aliases: dict[str, int] = {}

    def add_table(
        self,
        name: str,
        schema: TupleSchema,
        rows: Iterable[Sequence[Any]] = (),
        *,
        primary_key: str = "",
    ) -> int:
        """Registers a new table and provides its identifier.

        If a table with the same name already exists, it is replaced (but keeps its identifier).

        Raises
        ------
        ValueError
            If the primary key is not a field of the schema, or a row does not match the schema
        """
        if primary_key and primary_key not in schema.names:
            raise ValueError(f"Primary key '{primary_key}' is not a field of {schema}")
        table_id = self._names.get(name, len(self._tables))
        entry = _TableEntry(table_id, name, schema, primary_key)
        self._tables[table_id] = entry
        self._names[name] = table_id
        self._aliases[name] = table_id
        self.insert(name, rows)
        return table_id

    def add_alias(self, alias: str, table_name: str) -> None:
        """Makes a table available under a different name.

        Raises
        ------
        KeyError
            If no such table exists
        """
        self._aliases[alias] = self._names[table_name]

    def insert(self, table_name: str, rows: Iterable[Sequence[Any]]) -> None:
        """Appends new rows to a table. The statistics are not updated automatically."""
        entry = self._tables[self._names[table_name]]
        for row in rows:
            row = tuple(row)
            if len(row) != len(entry.schema):
                raise ValueError(f"Row {row} does not match schema {entry.schema}")
            entry.rows.append(row)

    def table_id(self, table_name: str) -> int:
        return self._names[table_name]

    def table_id_for_alias(self, alias: str) -> Optional[int]:
        if alias is None:
            return None
        return self._aliases.get(alias)

    def table_name(self, table_id: int) -> str:
        return self._tables[table_id].name

    def primary_key_field(self, table_id: int) -> str:
        return self._tables[table_id].primary_key

    def table_ids(self) -> Iterable[int]:
        return list(self._tables.keys())

    def schema(self, table_id: int) -> TupleSchema:
        return self._tables[table_id].schema

    def page_count(self, table_id: int) -> int:
        entry = self._tables[table_id]
        per_page = tuples_per_page(entry.schema, page_size=self._page_size)
        if not per_page:
            raise ValueError(f"Tuples of table {entry.name} do not fit on a page of {self._page_size} bytes")
        return math.ceil(len(entry.rows) / per_page)

    def scan(self, table_id: int) -> Iterator[tuple]:
        if table_id not in self._tables:
            raise FileNotFoundError(f"No heap file for table {table_id}")
        return iter(list(self._tables[table_id].rows))

    def __json__(self) -> jsondict:
        return {
            entry.name: {
                "id": entry.table_id,
                "schema": entry.schema,
                "primary_key": entry.primary_key,
                "tuples": len(entry.rows),
            }
            for entry in self._tables.values()
        }

    def __repr__(self) -> str:
        return f"InMemoryCatalog(tables={[entry.name for entry in self._tables.values()]})"
