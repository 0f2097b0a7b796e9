"""Tests for tables and result sinks."""

import numpy as np
import pytest

from aptEnvelope.results import (
    Column,
    MemoryResultSink,
    PointCloud,
    ResultSink,
    Surface,
    Table,
    TableSchema,
    TextBlock,
)


@pytest.fixture
def table():
    return Table("Composition", (Column("Name", str), Column("Count", int), Column("Composition", float)))


class TestColumn:
    """Tests for Column type checks."""

    def test_unsupported_dtype(self):
        with pytest.raises(ValueError, match='dtype'):
            Column("x", list)

    def test_numpy_scalars_are_normalised(self):
        assert type(Column("n", int).coerce(np.int64(3))) is int
        assert type(Column("f", float).coerce(np.float32(0.5))) is float

    def test_int_is_accepted_in_float_column(self):
        assert Column("f", float).coerce(2) == 2.0

    def test_float_is_rejected_in_int_column(self):
        with pytest.raises(TypeError, match='expects int'):
            Column("n", int).coerce(2.5)

    @pytest.mark.parametrize('dtype', [int, float])
    def test_bool_is_rejected(self, dtype):
        with pytest.raises(TypeError, match='bool'):
            Column("x", dtype).coerce(True)

    def test_number_is_rejected_in_str_column(self):
        with pytest.raises(TypeError, match='expects str'):
            Column("s", str).coerce(1)

    def test_none_is_an_empty_cell(self):
        assert Column("n", int).coerce(None) is None


class TestTable:
    """Tests for Table."""

    def test_duplicate_columns(self):
        with pytest.raises(ValueError, match='Duplicate column'):
            TableSchema((Column("a"), Column("a")))

    def test_append_sequence(self, table):
        table.append(("Fe", 90, 0.9))
        assert len(table) == 1
        assert table.rows[0] == ("Fe", 90, 0.9)

    def test_append_mapping_fills_missing_cells(self, table):
        table.append({"Name": "Total", "Count": 100})
        assert table.as_dicts() == [{"Name": "Total", "Count": 100, "Composition": None}]

    def test_wrong_length(self, table):
        with pytest.raises(ValueError, match='3 columns'):
            table.append(("Fe", 90))

    def test_unknown_key(self, table):
        with pytest.raises(ValueError, match='Unknown columns'):
            table.append({"Name": "Fe", "Mass": 55.8})

    def test_type_mismatch(self, table):
        with pytest.raises(TypeError):
            table.append(("Fe", "ninety", 0.9))

    def test_column(self, table):
        table.append(("Fe", 90, 0.9))
        table.append(("Cu", 10, 0.1))
        assert table.column("Count") == [90, 10]


class TestMemoryResultSink:
    """Tests for MemoryResultSink."""

    def test_is_a_result_sink(self):
        assert isinstance(MemoryResultSink(), ResultSink)

    def test_keeps_results_in_order(self, table):
        sink = MemoryResultSink()
        other = Table("Limits", (Column("Axis"),))
        sink.add_table(table)
        sink.add_table(other)
        sink.add_points(PointCloud("p", np.zeros(1), np.zeros(1), np.zeros(1), (1, 2, 3)))
        sink.add_surface(Surface("s", np.zeros((8, 3)), np.zeros((12, 3), dtype=int), (1, 2, 3)))
        sink.add_text(TextBlock("Report", "text"))
        assert [t.title for t in sink.tables] == ["Composition", "Limits"]
        assert sink.table("Limits") is other
        assert len(sink.points) == 1
        assert len(sink.surfaces) == 1
        assert sink.texts[0].text == "text"

    def test_missing_table(self):
        with pytest.raises(KeyError, match='Matrix'):
            MemoryResultSink().table("Matrix")
