"""EnvelopeAnalysis: cluster solute atoms and measure envelope compositions."""

from __future__ import annotations

import logging
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial

import numpy as np
from tqdm import tqdm

from aptEnvelope.backends import resolve_worker_count
from aptEnvelope.binning import bin_points, check_grid_size, grid_dimensions
from aptEnvelope.clustering import ClusterFilterResult, extract_clusters, filter_clusters
from aptEnvelope.errors import ConsistencyWarning, EnvelopeError
from aptEnvelope.gyration import GyrationStats, compute_gyration
from aptEnvelope.ions._base import IonData
from aptEnvelope.neighbour_helpers import get_backend_functions
from aptEnvelope.neighbours import build_neighbour_graph
from aptEnvelope.options import EnvelopeOptions
from aptEnvelope.rendering import envelope_points, envelope_surface, make_palette
from aptEnvelope.results import (
    Column,
    PointCloud,
    ResultSink,
    Surface,
    Table,
    TextBlock,
)
from aptEnvelope.selection import IonTable, gather_ions, resolve_selection
from aptEnvelope.species import SpeciesCatalog
from aptEnvelope.statistics import (
    CompositionLedger,
    CompositionRow,
    binomial_composition,
)
from aptEnvelope.voxels import BoxQuery, Envelope, build_envelope

logger = logging.getLogger(__name__)

OVERALL_TITLE = "Overall Composition"
LIMITS_TITLE = "Limits"
REMOVED_TITLE = "Removed Clusters"
GYRATION_TITLE = "Cluster COM and Gyration Info"
MATRIX_TITLE = "Matrix Composition"
REPORT_TITLE = "Envelope Output"

COMPOSITION_COLUMNS = (
    Column("Name", str),
    Column("Count", int),
    Column("Composition", float),
    Column("Error", float),
)


def _composition_table(title: str, rows: list[CompositionRow], total: int) -> Table:
    table = Table(title, COMPOSITION_COLUMNS)
    for row in rows:
        table.append((row.name, row.count, row.composition, row.error))
    table.append(("Total", total, None, None))
    return table


def _composition_lines(rows: list[CompositionRow], separator: str = ":") -> list[str]:
    return [
        f"{row.name} ions{separator} {row.count}, composition{separator} "
        f"{row.composition:.2%} +/- {row.error:.3%}"
        for row in rows
    ]


@dataclass
class AnalysisResult:
    """
    Everything one envelope analysis produced.

    Attributes
    ----------
    catalog : SpeciesCatalog
        Species catalog of the run.
    selection : tuple of int
        Species ids that seeded clustering.
    extents : tuple of np.ndarray
        Dataset ``(min, max)`` corners.
    ion_count, unranged_count, n_selected : int
        Ions read, unranged ions, ions of the selected species.
    clusters : list of np.ndarray
        All clusters before filtering (indices into the selected atoms).
    filtered : ClusterFilterResult
        Survivors of the size filter and the removed-size histogram.
    envelopes : list of Envelope
        One envelope per surviving cluster, in cluster order.
    gyration : list of GyrationStats
        Gyration statistics per surviving cluster, in cluster order.
    whole_composition, matrix_composition : list of CompositionRow
        Composition of all ranged atoms and of the atoms left outside every
        envelope.
    matrix_total : int
        Ranged atoms left outside every envelope.
    tables, point_clouds, surfaces : list
        Renderable results, in the order they are sent to a sink.
    report : str
        Text report of the run.
    warnings : list of str
        Consistency warnings raised during the run.
    """

    catalog: SpeciesCatalog
    selection: tuple[int, ...]
    extents: tuple[np.ndarray, np.ndarray]
    ion_count: int
    unranged_count: int
    n_selected: int
    clusters: list[np.ndarray]
    filtered: ClusterFilterResult
    envelopes: list[Envelope]
    gyration: list[GyrationStats]
    whole_composition: list[CompositionRow]
    matrix_composition: list[CompositionRow]
    matrix_total: int
    tables: list[Table] = field(default_factory=list)
    point_clouds: list[PointCloud] = field(default_factory=list)
    surfaces: list[Surface] = field(default_factory=list)
    report: str = ""
    warnings: list[str] = field(default_factory=list)

    def table(self, title: str) -> Table:
        """Return the table with ``title``."""
        for table in self.tables:
            if table.title == title:
                return table
        raise KeyError(f"No table titled {title!r}")

    def emit(self, sink: ResultSink) -> None:
        """Send every table, renderable and the report to ``sink``."""
        for table in self.tables:
            sink.add_table(table)
        for points in self.point_clouds:
            sink.add_points(points)
        for surface in self.surfaces:
            sink.add_surface(surface)
        sink.add_text(TextBlock(REPORT_TITLE, self.report))


@dataclass
class AnalysisOutcome:
    """Either a complete result or the single failure that stopped the run."""

    result: AnalysisResult | None = None
    error: EnvelopeError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> AnalysisResult:
        """Return the result, raising the stored error if the run failed."""
        if self.error is not None:
            raise self.error
        assert self.result is not None
        return self.result


class EnvelopeAnalysis:
    """
    Cluster solute atoms and build composition envelopes around them.

    Parameters
    ----------
    ion_data : IonData
        Source of ion positions, species and extents.
    sink : ResultSink, optional
        Receives tables, renderables and the report of successful runs.
    palette_seed : int, optional
        Seed of the envelope colour palette (default 0).
    backend : str, optional
        Neighbour search backend, 'numpy' or 'numba'. Defaults to the
        APTENVELOPE_BACKEND setting.
    workers : int, optional
        Threads for per-cluster work; ``-1`` uses every core. Defaults to
        the APTENVELOPE_WORKERS setting.
    progress : bool, optional
        Show a progress bar while envelopes are built (default True).

    Examples
    --------
    >>> analysis = EnvelopeAnalysis(ion_data, sink=MemoryResultSink())
    >>> outcome = analysis.run(EnvelopeOptions("2", max_atom_separation=0.5))
    >>> outcome.ok
    True
    """

    def __init__(
        self,
        ion_data: IonData,
        sink: ResultSink | None = None,
        *,
        palette_seed: int = 0,
        backend: str | None = None,
        workers: int | None = None,
        progress: bool = True,
    ):
        # Fail early on an unknown or unavailable backend
        get_backend_functions(backend)
        self.ion_data = ion_data
        self.sink = sink
        self.palette_seed = palette_seed
        self.backend = backend
        self.workers = resolve_worker_count(workers)
        self.progress = progress
        self.last_outcome: AnalysisOutcome | None = None

    def run(self, options: EnvelopeOptions) -> AnalysisOutcome:
        """
        Run the analysis once.

        Parameters
        ----------
        options : EnvelopeOptions
            Run configuration.

        Returns
        -------
        AnalysisOutcome
            The complete result, or the validation failure that aborted the
            run. Nothing reaches the sink when the run fails.

        Warns
        -----
        ConsistencyWarning
            Re-emitted once the outcome is complete. If the caller turns it
            into an error, the sink has already received the results and
            ``last_outcome`` holds them.
        """
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            try:
                result = self._run(options)
                error = None
            except EnvelopeError as exc:
                result, error = None, exc

        if error is not None:
            logger.info("Envelope analysis aborted: %s", error)
            outcome = AnalysisOutcome(error=error)
        else:
            result.warnings = [
                str(record.message) for record in caught
                if issubclass(record.category, ConsistencyWarning)
            ]
            if result.warnings:
                result.report += "\n" + "\n".join(f"Warning: {message}" for message in result.warnings)
            if self.sink is not None:
                result.emit(self.sink)
            outcome = AnalysisOutcome(result=result)
        self.last_outcome = outcome

        # Warnings escalated to errors by the caller raise only after the
        # sink and last_outcome hold the finished run.
        for record in caught:
            warnings.warn_explicit(record.message, record.category, record.filename, record.lineno)
        return outcome

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _run(self, options: EnvelopeOptions) -> AnalysisResult:
        catalog = SpeciesCatalog.from_ion_data(self.ion_data)
        selection = resolve_selection(options.tokens, len(catalog))

        separation = options.max_atom_separation
        extents = self.ion_data.extents()
        check_grid_size(grid_dimensions(extents[0], extents[1], separation))

        table = gather_ions(self.ion_data, selection)
        totals = table.species_totals(len(catalog))
        logger.info(
            "Read %d ions (%d unranged), %d in the selected ranges",
            table.ion_count, table.unranged_count, table.selected.shape[0],
        )

        selected_positions = table.selected_positions
        cell_list = bin_points(selected_positions, separation, extents)
        graph = build_neighbour_graph(
            selected_positions, separation, backend=self.backend, cell_list=cell_list,
        )
        clusters = extract_clusters(graph)
        filtered = filter_clusters(clusters, options.min_atoms_per_cluster)
        logger.info(
            "%d clusters found, %d removed below %d atoms",
            len(clusters), filtered.n_removed, options.min_atoms_per_cluster,
        )

        envelopes, gyration = self._build_envelopes(filtered.clusters, table, len(catalog), options)

        ledger = CompositionLedger(catalog.names, totals)
        for envelope in envelopes:
            ledger.subtract(envelope.species_counts)
        whole, matrix = ledger.finalise()

        result = AnalysisResult(
            catalog=catalog,
            selection=selection,
            extents=extents,
            ion_count=table.ion_count,
            unranged_count=table.unranged_count,
            n_selected=table.selected.shape[0],
            clusters=clusters,
            filtered=filtered,
            envelopes=envelopes,
            gyration=gyration,
            whole_composition=whole,
            matrix_composition=matrix,
            matrix_total=ledger.matrix_total,
        )
        self._build_tables(result, ledger)
        self._build_renderables(result)
        result.report = self._build_report(result)
        return result

    def _build_envelopes(
        self,
        clusters: list[np.ndarray],
        table: IonTable,
        n_species: int,
        options: EnvelopeOptions,
    ) -> tuple[list[Envelope], list[GyrationStats]]:
        query = BoxQuery(table.positions)
        process = partial(
            _process_cluster,
            selected_positions=table.selected_positions,
            selected_species=table.selected_species,
            query=query,
            ranged_species=table.species,
            n_species=n_species,
            options=options,
        )

        logger.debug("Building %d envelopes on %d thread(s)", len(clusters), self.workers)
        progress = partial(
            tqdm, total=len(clusters), desc="Building envelopes", disable=not self.progress,
        )
        if self.workers > 1 and len(clusters) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                # map yields in submission order whatever the completion order
                processed = list(progress(pool.map(process, clusters)))
        else:
            processed = [process(cluster) for cluster in progress(clusters)]

        envelopes = [envelope for envelope, _ in processed]
        gyration = [stats for _, stats in processed]
        return envelopes, gyration

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _build_tables(self, result: AnalysisResult, ledger: CompositionLedger) -> None:
        names = result.catalog.names

        result.tables.append(
            _composition_table(OVERALL_TITLE, result.whole_composition, ledger.dataset_total)
        )

        limits = Table(LIMITS_TITLE, (
            Column("Axis", str), Column("Min", float), Column("Max", float), Column("Length", float),
        ))
        low, high = (np.asarray(corner, dtype=np.float64) for corner in result.extents)
        for axis, name in enumerate("XYZ"):
            limits.append((name, low[axis], high[axis], high[axis] - low[axis]))
        result.tables.append(limits)

        removed = Table(REMOVED_TITLE, (Column("Size", int), Column("Count", int)))
        for size, count in result.filtered.removed_histogram.items():
            removed.append((size, count))
        result.tables.append(removed)

        columns = [
            Column("Cluster", str),
            Column("Atoms", int),
            Column("xbar", float), Column("ybar", float), Column("zbar", float),
            Column("lgx", float), Column("lgy", float), Column("lgz", float),
            Column("lg", float),
        ]
        columns += [Column(f"lg[{names[s]}]", float) for s in result.selection]
        for name in names:
            columns += [
                Column(f"{name}[ion]", int),
                Column(f"{name}[conc]", float),
                Column(f"{name}[error]", float),
            ]
        columns += [Column("Ions", int), Column("Ions per grid", float)]
        gyration_table = Table(GYRATION_TITLE, columns)

        for ordinal, (envelope, stats) in enumerate(zip(result.envelopes, result.gyration)):
            row = {
                "Cluster": str(ordinal + 1),
                "Atoms": stats.n_atoms,
                "xbar": stats.centre_of_mass[0],
                "ybar": stats.centre_of_mass[1],
                "zbar": stats.centre_of_mass[2],
                "lgx": stats.axis_gyration[0],
                "lgy": stats.axis_gyration[1],
                "lgz": stats.axis_gyration[2],
                "lg": stats.radius_of_gyration,
                "Ions": envelope.ion_count,
                "Ions per grid": envelope.ions_per_voxel,
            }
            for s in result.selection:
                row[f"lg[{names[s]}]"] = stats.species_gyration.get(s)
            percent, error = binomial_composition(envelope.species_counts, envelope.ion_count)
            for s, name in enumerate(names):
                row[f"{name}[ion]"] = int(envelope.species_counts[s])
                row[f"{name}[conc]"] = percent[s]
                row[f"{name}[error]"] = error[s]
            gyration_table.append(row)

        matrix_row = {"Cluster": "matrix", "Ions": result.matrix_total}
        for row in result.matrix_composition:
            matrix_row[f"{row.name}[ion]"] = row.count
            matrix_row[f"{row.name}[conc]"] = row.composition
            matrix_row[f"{row.name}[error]"] = row.error
        gyration_table.append(matrix_row)
        result.tables.append(gyration_table)

        result.tables.append(
            _composition_table(MATRIX_TITLE, result.matrix_composition, result.matrix_total)
        )

    def _build_renderables(self, result: AnalysisResult) -> None:
        palette = make_palette(len(result.envelopes), seed=self.palette_seed)
        for ordinal, envelope in enumerate(result.envelopes):
            result.point_clouds.append(envelope_points(envelope, ordinal, palette[ordinal]))
            result.surfaces.append(envelope_surface(envelope, ordinal, palette[ordinal]))

    def _build_report(self, result: AnalysisResult) -> str:
        names = result.catalog.names
        lines = [f"Ions: {result.ion_count}", ""]

        lines += _composition_lines(result.whole_composition)
        lines.append(f"Total Ions: {sum(row.count for row in result.whole_composition)}")
        lines.append("")

        low, high = (np.asarray(corner, dtype=np.float64) for corner in result.extents)
        for axis, name in enumerate("XYZ"):
            lines.append(
                f"{name} limits {low[axis]:.2f} to {high[axis]:.2f} "
                f"[{high[axis] - low[axis]:.2f}] nm"
            )
        lines.append("")

        lines.append(
            f"{result.n_selected} atoms in selected ranges found in {result.ion_count} atoms"
        )
        lines.append(
            f"{len(result.clusters)} clusters found containing {result.n_selected} solute atoms"
        )
        lines.append("")
        lines.append(result.filtered.summary())
        lines.append("")

        for envelope in result.envelopes:
            lines.append(f"Total atoms in cluster = {envelope.ion_count}")
            lines.append(
                f"Grid elements={envelope.grid.n_occupied}, "
                f"ions per grid element={envelope.ions_per_voxel:.2f}"
            )
            percent, error = binomial_composition(envelope.species_counts, envelope.ion_count)
            for s, name in enumerate(names):
                count = int(envelope.species_counts[s])
                if count:
                    lines.append(
                        f"{name} ions = {count}, concentration = "
                        f"{percent[s]:.2%} +/- {error[s]:.3%}"
                    )
            lines.append("")

        lines.append(f"{len(result.envelopes)} clusters found in {result.ion_count} atoms")
        lines.append(f"Total atoms in matrix (included deleted clusters): {result.matrix_total}")
        lines += _composition_lines(result.matrix_composition)
        return "\n".join(lines)


def _process_cluster(
    cluster: np.ndarray,
    *,
    selected_positions: np.ndarray,
    selected_species: np.ndarray,
    query: BoxQuery,
    ranged_species: np.ndarray,
    n_species: int,
    options: EnvelopeOptions,
) -> tuple[Envelope, GyrationStats]:
    """Envelope and gyration statistics of one cluster."""
    positions = selected_positions[cluster]
    envelope = build_envelope(
        positions,
        query,
        ranged_species,
        n_species,
        options.grid_resolution,
        options.fill_in_grid,
    )
    return envelope, compute_gyration(positions, selected_species[cluster])


def run_envelope_analysis(
    ion_data: IonData,
    options: EnvelopeOptions,
    sink: ResultSink | None = None,
    **kwargs,
) -> AnalysisOutcome:
    """
    Convenience function to run an envelope analysis in one call.

    Parameters
    ----------
    ion_data : IonData
        Source of ion data.
    options : EnvelopeOptions
        Run configuration.
    sink : ResultSink, optional
        Receives the results of a successful run.
    **kwargs
        Forwarded to ``EnvelopeAnalysis`` (``palette_seed``, ``backend``,
        ``workers``, ``progress``).

    Returns
    -------
    AnalysisOutcome
        The result or the failure.
    """
    return EnvelopeAnalysis(ion_data, sink, **kwargs).run(options)
