"""Tests for aptEnvelope.options module."""

import dataclasses

import numpy as np
import pytest

from aptEnvelope.errors import EnvelopeError, InvalidInputError
from aptEnvelope.options import (
    RESOLUTION_LIMITS,
    SEPARATION_LIMITS,
    EnvelopeOptions,
    validate_range,
)


class TestValidateRange:
    """Tests for validate_range()."""

    def test_value_inside_range(self):
        assert validate_range('x', 1, (0.5, 2.0)) == 1.0

    @pytest.mark.parametrize('value', [0.5, 2.0])
    def test_bounds_are_inclusive(self, value):
        assert validate_range('x', value, (0.5, 2.0)) == value

    @pytest.mark.parametrize('value', [0.49, 2.01, np.nan])
    def test_value_outside_range_raises(self, value):
        with pytest.raises(InvalidInputError, match='x must lie in'):
            validate_range('x', value, (0.5, 2.0))

    def test_non_numeric_raises(self):
        with pytest.raises(InvalidInputError, match='must be a number'):
            validate_range('x', 'wide', (0.5, 2.0))


class TestEnvelopeOptions:
    """Tests for EnvelopeOptions construction and validation."""

    def test_defaults(self):
        options = EnvelopeOptions("2", max_atom_separation=0.5)
        assert options.min_atoms_per_cluster == 1
        assert options.grid_resolution == 0.5
        assert options.fill_in_grid is False

    def test_is_frozen(self):
        options = EnvelopeOptions("2", max_atom_separation=0.5)
        with pytest.raises(dataclasses.FrozenInstanceError):
            options.max_atom_separation = 1.0

    def test_limits(self):
        assert SEPARATION_LIMITS == (0.2, 5.0)
        assert RESOLUTION_LIMITS == (0.05, 5.0)

    @pytest.mark.parametrize('separation', [0.19, 5.1])
    def test_separation_out_of_range(self, separation):
        with pytest.raises(InvalidInputError, match='max_atom_separation'):
            EnvelopeOptions("2", max_atom_separation=separation)

    @pytest.mark.parametrize('resolution', [0.04, 5.5])
    def test_resolution_out_of_range(self, resolution):
        with pytest.raises(InvalidInputError, match='grid_resolution'):
            EnvelopeOptions("2", max_atom_separation=0.5, grid_resolution=resolution)

    @pytest.mark.parametrize('min_atoms', [0, -3])
    def test_min_atoms_below_one(self, min_atoms):
        with pytest.raises(InvalidInputError, match='at least 1'):
            EnvelopeOptions("2", max_atom_separation=0.5, min_atoms_per_cluster=min_atoms)

    @pytest.mark.parametrize('min_atoms', [2.5, True, "3"])
    def test_min_atoms_not_integer(self, min_atoms):
        with pytest.raises(InvalidInputError, match='integer'):
            EnvelopeOptions("2", max_atom_separation=0.5, min_atoms_per_cluster=min_atoms)

    def test_numpy_integer_min_atoms_accepted(self):
        options = EnvelopeOptions("2", max_atom_separation=0.5, min_atoms_per_cluster=np.int64(4))
        assert options.min_atoms_per_cluster == 4
        assert type(options.min_atoms_per_cluster) is int

    def test_validation_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            EnvelopeOptions("2", max_atom_separation=100.0)
        with pytest.raises(EnvelopeError):
            EnvelopeOptions("2", max_atom_separation=100.0)

    def test_tokens_from_string(self):
        options = EnvelopeOptions(" 2  5\t3 ", max_atom_separation=0.5)
        assert options.tokens == ("2", "5", "3")

    def test_tokens_from_sequence(self):
        options = EnvelopeOptions([2, "5"], max_atom_separation=0.5)
        assert options.tokens == ("2", "5")
