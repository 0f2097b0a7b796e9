"""
Result containers and the sink interface the analysis writes to.

Tables are declared with a fixed, typed column schema; rows are checked
against it when appended. Point clouds and surfaces carry plain coordinate
arrays and a colour, leaving all drawing to the caller.
"""

from __future__ import annotations

import numbers
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

#: Column types a table may declare.
COLUMN_TYPES = (str, int, float)


@dataclass(frozen=True)
class Column:
    """A named, typed table column."""

    name: str
    dtype: type = str

    def __post_init__(self):
        if self.dtype not in COLUMN_TYPES:
            raise ValueError(
                f"Column {self.name!r}: dtype must be one of {[t.__name__ for t in COLUMN_TYPES]}"
            )

    def coerce(self, value: Any) -> Any:
        """
        Check ``value`` against the column type and normalise it.

        ``None`` marks an empty cell and is accepted in every column.

        Raises
        ------
        TypeError
            If the value does not match the column type.
        """
        if value is None:
            return None
        if self.dtype is str:
            if not isinstance(value, str):
                raise TypeError(f"Column {self.name!r} expects str, got {type(value).__name__}")
            return value
        if isinstance(value, (bool, np.bool_)):
            raise TypeError(f"Column {self.name!r} expects {self.dtype.__name__}, got bool")
        if self.dtype is int:
            if not isinstance(value, numbers.Integral):
                raise TypeError(f"Column {self.name!r} expects int, got {type(value).__name__}")
            return int(value)
        if not isinstance(value, numbers.Real):
            raise TypeError(f"Column {self.name!r} expects float, got {type(value).__name__}")
        return float(value)


@dataclass(frozen=True)
class TableSchema:
    """Ordered column declaration of a table."""

    columns: tuple[Column, ...]

    def __post_init__(self):
        names = [column.name for column in self.columns]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate column names detected: {names!r}")

    @property
    def names(self) -> list[str]:
        return [column.name for column in self.columns]


class Table:
    """
    Named table whose rows follow a declared schema.

    Parameters
    ----------
    title : str
        Table title.
    schema : TableSchema or sequence of Column
        Column declaration.
    """

    def __init__(self, title: str, schema: TableSchema | Sequence[Column]):
        if not isinstance(schema, TableSchema):
            schema = TableSchema(tuple(schema))
        self.title = title
        self.schema = schema
        self.rows: list[tuple[Any, ...]] = []

    def __len__(self) -> int:
        return len(self.rows)

    def append(self, row: Sequence[Any] | Mapping[str, Any]) -> None:
        """
        Append one row, given in column order or keyed by column name.

        Missing keys of a mapping become empty cells.

        Raises
        ------
        ValueError
            If a sequence row has the wrong length or a mapping has unknown keys.
        TypeError
            If a value does not match its column type.
        """
        columns = self.schema.columns
        if isinstance(row, Mapping):
            unknown = set(row) - set(self.schema.names)
            if unknown:
                raise ValueError(f"Unknown columns for table {self.title!r}: {sorted(unknown)}")
            values = [row.get(column.name) for column in columns]
        else:
            values = list(row)
            if len(values) != len(columns):
                raise ValueError(
                    f"Table {self.title!r} has {len(columns)} columns, row has {len(values)}"
                )
        self.rows.append(tuple(column.coerce(value) for column, value in zip(columns, values)))

    def column(self, name: str) -> list[Any]:
        """All values of one column."""
        index = self.schema.names.index(name)
        return [row[index] for row in self.rows]

    def as_dicts(self) -> list[dict[str, Any]]:
        """Rows as dictionaries keyed by column name."""
        names = self.schema.names
        return [dict(zip(names, row)) for row in self.rows]


@dataclass
class PointCloud:
    """Points to draw in one colour."""

    name: str
    x: np.ndarray
    y: np.ndarray
    z: np.ndarray
    color: tuple[int, int, int]
    group: int = 0


@dataclass
class Surface:
    """Triangle mesh to draw in one colour."""

    name: str
    vertices: np.ndarray
    triangles: np.ndarray
    color: tuple[int, int, int]
    group: int = 0


@dataclass
class TextBlock:
    """Free-text report section."""

    title: str
    text: str


class ResultSink(ABC):
    """Receiver of everything an analysis produces."""

    @abstractmethod
    def add_table(self, table: Table) -> None:
        ...

    @abstractmethod
    def add_points(self, points: PointCloud) -> None:
        ...

    @abstractmethod
    def add_surface(self, surface: Surface) -> None:
        ...

    @abstractmethod
    def add_text(self, block: TextBlock) -> None:
        ...


@dataclass
class MemoryResultSink(ResultSink):
    """Sink that keeps every result in lists, in arrival order."""

    tables: list[Table] = field(default_factory=list)
    points: list[PointCloud] = field(default_factory=list)
    surfaces: list[Surface] = field(default_factory=list)
    texts: list[TextBlock] = field(default_factory=list)

    def add_table(self, table: Table) -> None:
        self.tables.append(table)

    def add_points(self, points: PointCloud) -> None:
        self.points.append(points)

    def add_surface(self, surface: Surface) -> None:
        self.surfaces.append(surface)

    def add_text(self, block: TextBlock) -> None:
        self.texts.append(block)

    def table(self, title: str) -> Table:
        """Return the first table with ``title``."""
        for table in self.tables:
            if table.title == title:
                return table
        raise KeyError(f"No table titled {title!r}")
