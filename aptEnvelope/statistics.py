"""Composition statistics: binomial proportions and the envelope ledger.

Compositions are proportions ``c / n`` of ``n`` ranged atoms. Their standard
error uses the binomial estimator ``sqrt(p (1 - p) / n)``, which treats the
species of each atom as an independent Bernoulli trial.
"""

from __future__ import annotations

import warnings
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from aptEnvelope.errors import ConsistencyWarning


def safe_ratio(
    numerator: NDArray[np.floating] | float,
    denominator: NDArray[np.floating] | float,
    *,
    zero_denominator_replacement: float = np.nan,
) -> NDArray[np.floating] | float:
    """
    Divide, substituting a sentinel where the denominator is zero.

    Parameters
    ----------
    numerator, denominator : ndarray or float
        Broadcastable operands.
    zero_denominator_replacement : float, default nan
        Value returned where ``denominator == 0``.

    Returns
    -------
    ndarray or float
        ``numerator / denominator`` with the replacement where undefined.
    """
    numerator = np.asarray(numerator, dtype=np.float64)
    denominator = np.asarray(denominator, dtype=np.float64)
    # Avoid division by zero: substitute 1.0 for zero denominators
    denominator_safe = np.where(denominator == 0, 1.0, denominator)
    result = np.where(denominator == 0, zero_denominator_replacement, numerator / denominator_safe)
    if result.ndim == 0:
        return float(result)
    return result


def binomial_composition(
    count: NDArray[np.integer] | int,
    total: NDArray[np.integer] | int,
) -> tuple[NDArray[np.floating] | float, NDArray[np.floating] | float]:
    """
    Proportion and binomial standard error of ``count`` out of ``total``.

    Parameters
    ----------
    count : ndarray or int
        Observed number of atoms of a species.
    total : ndarray or int
        Number of atoms considered.

    Returns
    -------
    percent : ndarray or float
        ``count / total`` as a fraction; ``nan`` where ``total`` is zero.
    error : ndarray or float
        ``sqrt(percent * (1 - percent) / total)``; ``nan`` where ``total`` is zero.

    Examples
    --------
    >>> binomial_composition(50, 100)
    (0.5, 0.05)
    """
    percent = safe_ratio(count, total)
    variance = safe_ratio(np.multiply(percent, np.subtract(1.0, percent)), total)
    # p outside [0, 1] (a negative residual) has no binomial error
    error = np.sqrt(np.where(np.asarray(variance) < 0, np.nan, variance))
    if np.ndim(error) == 0:
        return percent, float(error)
    return percent, error


@dataclass
class CompositionRow:
    """One species line of a composition table."""

    name: str
    count: int
    composition: float
    error: float


def composition_rows(names: Sequence[str], counts: NDArray[np.integer]) -> list[CompositionRow]:
    """
    Build composition rows of ``counts`` relative to their sum.

    Parameters
    ----------
    names : sequence of str
        Species names, aligned with ``counts``.
    counts : ndarray
        Atoms per species.

    Returns
    -------
    list of CompositionRow
        One row per species, in catalog order.
    """
    counts = np.asarray(counts, dtype=np.int64)
    total = int(counts.sum())
    percent, error = binomial_composition(counts, total)
    percent = np.atleast_1d(percent)
    error = np.atleast_1d(error)
    return [
        CompositionRow(name, int(counts[i]), float(percent[i]), float(error[i]))
        for i, name in enumerate(names)
    ]


class CompositionLedger:
    """
    Running per-species totals with envelope contributions removed.

    Starts from the whole-dataset counts of ranged atoms; every envelope's
    species counts are subtracted in cluster order. What remains is the
    matrix: ranged atoms captured by no envelope.

    Parameters
    ----------
    names : sequence of str
        Catalog species names.
    totals : ndarray
        Whole-dataset ranged atoms per species, aligned with ``names``.

    Attributes
    ----------
    totals : ndarray
        The whole-dataset counts (never modified).
    residual : ndarray
        Counts not yet claimed by an envelope. May go negative when
        envelopes overlap; this is reported, never clamped.
    subtracted : ndarray
        Total counts removed so far.
    matrix_total : int
        Combined residual over all species.
    n_envelopes : int
        Number of envelopes subtracted.

    Examples
    --------
    >>> ledger = CompositionLedger(['Fe', 'Cu'], np.array([90, 10]))
    >>> ledger.subtract({1: 4})
    >>> whole, matrix = ledger.finalise()
    """

    def __init__(self, names: Sequence[str], totals: NDArray[np.integer]) -> None:
        self.names = [str(name) for name in names]
        self.totals = np.asarray(totals, dtype=np.int64).copy()
        if self.totals.shape != (len(self.names),):
            raise ValueError("Species names and totals are incommensurate.")
        self.residual = self.totals.copy()
        self.subtracted = np.zeros_like(self.totals)
        self.matrix_total = int(self.totals.sum())
        self.n_envelopes = 0
        self.negative_species: set[int] = set()

    @property
    def dataset_total(self) -> int:
        return int(self.totals.sum())

    def subtract(self, counts: Mapping[int, int] | NDArray[np.integer]) -> None:
        """
        Remove one envelope's species counts from the running totals.

        Parameters
        ----------
        counts : mapping of int to int, or ndarray
            Captured atoms per species id.

        Warns
        -----
        ConsistencyWarning
            If a species residual becomes negative, which means envelopes
            captured the same atoms more than once.
        """
        if isinstance(counts, Mapping):
            array = np.zeros_like(self.totals)
            for species_id, count in counts.items():
                array[species_id] += count
        else:
            array = np.asarray(counts, dtype=np.int64)
            if array.shape != self.totals.shape:
                raise ValueError("Envelope counts and ledger totals are incommensurate.")

        self.residual -= array
        self.subtracted += array
        self.matrix_total -= int(array.sum())
        self.n_envelopes += 1

        negative = {int(i) for i in np.flatnonzero(self.residual < 0)} - self.negative_species
        if negative:
            self.negative_species |= negative
            names = ', '.join(self.names[i] for i in sorted(negative))
            warnings.warn(
                f"Matrix residual went negative for {names} after envelope "
                f"{self.n_envelopes}; envelopes overlap and count atoms twice.",
                ConsistencyWarning,
                stacklevel=2,
            )

    def finalise(self) -> tuple[list[CompositionRow], list[CompositionRow]]:
        """
        Return the whole-dataset and matrix compositions.

        Returns
        -------
        whole : list of CompositionRow
            Composition of all ranged atoms.
        matrix : list of CompositionRow
            Composition of the atoms left after every subtraction, relative
            to ``matrix_total``.
        """
        whole = composition_rows(self.names, self.totals)
        percent, error = binomial_composition(self.residual, self.matrix_total)
        percent = np.atleast_1d(percent)
        error = np.atleast_1d(error)
        matrix = [
            CompositionRow(name, int(self.residual[i]), float(percent[i]), float(error[i]))
            for i, name in enumerate(self.names)
        ]
        return whole, matrix
