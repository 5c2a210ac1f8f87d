"""
processor.py

Bias estimation: the compositional center of an error matrix, per connected
component of the co-occurrence graph, and its bootstrap uncertainty.
"""

# Standard library imports
import logging
import os
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterator, List, Optional, Tuple, Union

# Third-party imports
import numpy as np
import pandas as pd

# Local package imports
from .compositional import closure, geometric_mean, geometric_sd, is_missing
from .exceptions import EmptyInputError, InvalidInputError, UnidentifiableBiasError
from .graph import assign_components, build_cooccurrence_graph, component_members
from .matrix import ErrorMatrix
from .ratios import pairwise_ratios

SUMMARY_COLUMNS = ["gm_mean", "gm_sd", "ci_lower", "ci_upper", "n_replicates"]


def _init_worker_logging():
    """
    Initialize logging configuration for worker processes.
    Needed on platforms that start workers with 'spawn' instead of 'fork'.
    """
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def _na(value):
    return pd.NA if is_missing(value) else value


@dataclass(eq=False)
class BiasEstimate:
    """
    Estimated bias per taxon, with the co-occurrence component of each taxon.

    Only ratios between taxa of the same component are meaningful.

    Attributes
    ----------
    table : pd.DataFrame
        Indexed by taxon, with columns ``bias`` (float) and ``component`` (int).
    """

    table: pd.DataFrame

    @property
    def bias(self) -> pd.Series:
        return self.table["bias"]

    @property
    def component(self) -> pd.Series:
        return self.table["component"]

    @property
    def taxa(self) -> List[Hashable]:
        return list(self.table.index)

    @property
    def n_components(self) -> int:
        return int(self.table["component"].nunique())

    def components(self) -> Dict[int, List[Hashable]]:
        """Component id -> taxa, in estimate order."""
        return {
            int(cid): list(group.index)
            for cid, group in self.table.groupby("component", sort=True)
        }

    def ratio(self, x: Hashable, y: Hashable) -> float:
        """
        Bias of ``x`` relative to ``y``.

        Raises
        ------
        KeyError
            If either taxon has no estimate.
        UnidentifiableBiasError
            If the taxa lie in different components.
        """
        cx = int(self.table.at[x, "component"])
        cy = int(self.table.at[y, "component"])
        if cx != cy:
            raise UnidentifiableBiasError(
                {cx: self.components()[cx], cy: self.components()[cy]}
            )
        return float(self.table.at[x, "bias"] / self.table.at[y, "bias"])

    def to_frame(self) -> pd.DataFrame:
        """Tidy table with columns ``taxon``, ``bias``, ``component``."""
        return self.table.rename_axis("taxon").reset_index()


def estimate_bias(
    error: Union[ErrorMatrix, pd.DataFrame],
    allow_multiple_components: bool = False,
) -> BiasEstimate:
    """
    Estimate the bias as the compositional center of an error matrix.

    Parameters
    ----------
    error : ErrorMatrix or pd.DataFrame
        Error matrix, or a wide table (samples x taxa) where ``NA`` marks
        missing entries.
    allow_multiple_components : bool, optional
        If the co-occurrence graph is disconnected, estimate each component
        separately instead of failing (default: False).

    Returns
    -------
    BiasEstimate
        Per-taxon bias. Within each component the values are the geometric
        means of the taxon columns, closed to a geometric mean of 1.

    Raises
    ------
    InvalidInputError
        If an entry is zero, negative or non-finite.
    EmptyInputError
        If the matrix has no samples, no taxa, or no observed entries.
    UnidentifiableBiasError
        If the graph has several components and ``allow_multiple_components``
        is False.
    """
    if not isinstance(error, ErrorMatrix):
        error = ErrorMatrix.from_frame(error)

    graph = build_cooccurrence_graph(error)
    assignment = assign_components(graph)
    members = component_members(assignment)

    if not members:
        raise EmptyInputError("Error matrix has no observed entries")
    if len(members) > 1 and not allow_multiple_components:
        raise UnidentifiableBiasError(members)

    unobserved = [t for t in error.taxa if t not in assignment]
    if unobserved:
        logging.warning(f"{len(unobserved)} taxa are never observed and have no estimate: {unobserved}")

    masked = error.as_masked()
    column = {taxon: j for j, taxon in enumerate(error.taxa)}

    bias = {}
    for cid, taxa in members.items():
        centers = [geometric_mean(masked[:, column[t]]) for t in taxa]
        for taxon, value in zip(taxa, closure(centers)):
            bias[taxon] = float(value)

    taxa = [t for t in error.taxa if t in assignment]
    table = pd.DataFrame(
        {
            "bias": [bias[t] for t in taxa],
            "component": [assignment[t] for t in taxa],
        },
        index=pd.Index(taxa, name="taxon"),
    )
    logging.debug(f"Estimated bias for {len(taxa)} taxa in {len(members)} component(s).")
    return BiasEstimate(table=table)


# -------------------------------------------------------------------------
# Bootstrap
# -------------------------------------------------------------------------
@dataclass(eq=False)
class BootstrapReplicateSet:
    """
    Bias estimates from bootstrap resamples of the control samples.

    Attributes
    ----------
    replicates : list of (int, BiasEstimate)
        Successful replicates tagged with their id (1..n_requested), in id
        order.
    n_requested : int
        Number of replicates drawn.
    failed : list of int
        Ids of replicates skipped because their resample was unidentifiable.
    """

    replicates: List[Tuple[int, BiasEstimate]]
    n_requested: int
    failed: List[int] = field(default_factory=list)

    @property
    def n_successful(self) -> int:
        return len(self.replicates)

    @property
    def n_failed(self) -> int:
        return len(self.failed)

    def __len__(self) -> int:
        return len(self.replicates)

    def __iter__(self) -> Iterator[Tuple[int, BiasEstimate]]:
        return iter(self.replicates)

    def to_tidy(self) -> pd.DataFrame:
        """Long table with columns ``replicate``, ``taxon``, ``bias``, ``component``."""
        frames = [est.to_frame().assign(replicate=rid) for rid, est in self.replicates]
        if not frames:
            return pd.DataFrame(columns=["replicate", "taxon", "bias", "component"])
        tidy = pd.concat(frames, ignore_index=True)
        return tidy[["replicate", "taxon", "bias", "component"]]


def _bootstrap_replicate(
    error: ErrorMatrix,
    replicate_id: int,
    seed_seq: np.random.SeedSequence,
    allow_multiple_components: bool,
    skip_failed_replicates: bool,
) -> Tuple[int, Optional[BiasEstimate]]:
    """Resample the rows of ``error`` with replacement and estimate the bias."""
    rng = np.random.default_rng(seed_seq)
    rows = rng.integers(0, error.n_samples, size=error.n_samples)
    try:
        return replicate_id, estimate_bias(error.take(rows), allow_multiple_components)
    except UnidentifiableBiasError as e:
        if not skip_failed_replicates:
            raise
        logging.debug(f"Skipping bootstrap replicate {replicate_id}: {e}")
        return replicate_id, None


def bootstrap_bias(
    error: Union[ErrorMatrix, pd.DataFrame],
    n_replicates: int = 1000,
    allow_multiple_components: bool = False,
    skip_failed_replicates: bool = False,
    seed: Union[int, np.random.SeedSequence, None] = None,
    n_jobs: Optional[int] = 1,
) -> BootstrapReplicateSet:
    """
    Nonparametric bootstrap of the bias estimate over samples.

    Each replicate draws ``n_samples`` rows with replacement (duplicated rows
    count several times in the per-taxon geometric means) and runs
    ``estimate_bias`` on the resampled matrix.

    Parameters
    ----------
    error : ErrorMatrix or pd.DataFrame
        Error matrix of the control samples.
    n_replicates : int, optional
        Number of bootstrap replicates (default: 1000).
    allow_multiple_components : bool, optional
        Passed to ``estimate_bias`` (default: False).
    skip_failed_replicates : bool, optional
        Skip replicates whose resample is unidentifiable instead of raising
        (default: False). Skipped ids are recorded in the result.
    seed : int or np.random.SeedSequence, optional
        Seed for the resampling. Every replicate gets its own child stream,
        so the result does not depend on ``n_jobs``.
    n_jobs : int, optional
        Number of worker processes (default: 1, run in this process;
        None: all available cores).

    Returns
    -------
    BootstrapReplicateSet
        Successful replicates in id order and the ids of skipped ones.
    """
    if n_replicates < 1:
        raise InvalidInputError(f"Number of bootstrap replicates must be positive, got {n_replicates}")
    if not isinstance(error, ErrorMatrix):
        error = ErrorMatrix.from_frame(error)
    if n_jobs is None:
        n_jobs = os.cpu_count() or 1

    root = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    child_seeds = root.spawn(n_replicates)
    step = max(1, n_replicates // 10)

    logging.info(
        f"Running {n_replicates} bootstrap replicates over {error.n_samples} samples "
        f"using {n_jobs} worker(s)..."
    )

    results: Dict[int, Optional[BiasEstimate]] = {}
    if n_jobs == 1:
        for i, child in enumerate(child_seeds, start=1):
            rid, estimate = _bootstrap_replicate(
                error, i, child, allow_multiple_components, skip_failed_replicates
            )
            results[rid] = estimate
            if i % step == 0:
                logging.info(f"Bootstrap progress: {i}/{n_replicates} replicates.")
    else:
        with ProcessPoolExecutor(max_workers=n_jobs, initializer=_init_worker_logging) as executor:
            futures = {
                executor.submit(
                    _bootstrap_replicate,
                    error,
                    i,
                    child,
                    allow_multiple_components,
                    skip_failed_replicates,
                ): i
                for i, child in enumerate(child_seeds, start=1)
            }
            try:
                for future in as_completed(futures):
                    rid, estimate = future.result()
                    results[rid] = estimate
                    if len(results) % step == 0:
                        logging.info(f"Bootstrap progress: {len(results)}/{n_replicates} replicates.")
            except Exception:
                for future in futures:
                    future.cancel()
                raise

    replicates = [(rid, results[rid]) for rid in sorted(results) if results[rid] is not None]
    failed = [rid for rid in sorted(results) if results[rid] is None]

    if failed:
        logging.warning(
            f"Skipped {len(failed)} of {n_replicates} bootstrap replicates with an "
            "unidentifiable bias; summaries use the remaining replicates."
        )
    if not replicates:
        logging.warning("No bootstrap replicate succeeded.")
    logging.info(f"Bootstrap finished: {len(replicates)}/{n_replicates} replicates succeeded.")

    return BootstrapReplicateSet(replicates=replicates, n_requested=n_replicates, failed=failed)


def _summary_row(values: pd.Series) -> Dict[str, object]:
    gm = geometric_mean(values)
    gsd = geometric_sd(values)
    row = {"gm_mean": _na(gm), "gm_sd": _na(gsd), "ci_lower": pd.NA, "ci_upper": pd.NA}
    # Interval is center ×/÷ gsd^2, kept as the established convention.
    if not is_missing(gm) and not is_missing(gsd):
        row["ci_lower"] = gm / gsd ** 2
        row["ci_upper"] = gm * gsd ** 2
    row["n_replicates"] = int(values.notna().sum())
    return row


def _finish_summary(rows: List[Dict[str, object]], leading: List[str]) -> pd.DataFrame:
    summary = pd.DataFrame(rows, columns=leading + SUMMARY_COLUMNS)
    for col in ["gm_mean", "gm_sd", "ci_lower", "ci_upper"]:
        summary[col] = summary[col].astype("Float64")
    summary["n_replicates"] = summary["n_replicates"].astype(int)
    return summary


def summarize_bootstrap(
    replicates: BootstrapReplicateSet,
    estimate: Optional[BiasEstimate] = None,
) -> pd.DataFrame:
    """
    Per-taxon summary of bootstrap replicates.

    Parameters
    ----------
    replicates : BootstrapReplicateSet
        Output of ``bootstrap_bias``.
    estimate : BiasEstimate, optional
        Estimate from the full data; adds ``component`` and ``estimate``
        columns and fixes the taxon order.

    Returns
    -------
    pd.DataFrame
        One row per taxon with ``gm_mean`` and ``gm_sd`` (geometric mean and
        geometric standard deviation across replicates), ``ci_lower`` =
        gm_mean / gm_sd^2, ``ci_upper`` = gm_mean * gm_sd^2 and
        ``n_replicates`` (replicates in which the taxon had an estimate).
        Statistics that cannot be computed are ``NA``.
    """
    tidy = replicates.to_tidy()
    by_taxon = {taxon: group["bias"] for taxon, group in tidy.groupby("taxon", sort=False)}

    if estimate is not None:
        taxa = estimate.taxa + [t for t in by_taxon if t not in set(estimate.taxa)]
    else:
        taxa = list(by_taxon)

    rows = []
    for taxon in taxa:
        row = {"taxon": taxon}
        if estimate is not None:
            known = taxon in estimate.table.index
            row["component"] = int(estimate.table.at[taxon, "component"]) if known else pd.NA
            row["estimate"] = float(estimate.table.at[taxon, "bias"]) if known else pd.NA
        row.update(_summary_row(by_taxon.get(taxon, pd.Series([], dtype="Float64"))))
        rows.append(row)

    leading = ["taxon", "component", "estimate"] if estimate is not None else ["taxon"]
    summary = _finish_summary(rows, leading)
    if estimate is not None:
        summary["component"] = summary["component"].astype("Int64")
        summary["estimate"] = summary["estimate"].astype("Float64")
    return summary


def summarize_bootstrap_ratios(
    replicates: BootstrapReplicateSet,
    estimate: Optional[BiasEstimate] = None,
) -> pd.DataFrame:
    """
    Per-pair summary of bootstrap replicates.

    Ratios are taken within each replicate between taxa sharing a component
    in that replicate. Every ordered pair of taxa gets a row; pairs that
    never share a component have ``NA`` statistics and ``n_replicates`` 0.

    Returns
    -------
    pd.DataFrame
        Columns ``taxon_x``, ``taxon_y`` (plus ``estimate`` when an estimate
        is given; ``NA`` across components) and the summary columns of
        ``summarize_bootstrap``.
    """
    tidy = replicates.to_tidy()
    pairs = pairwise_ratios(tidy, group_by=["replicate", "component"], value="bias")
    by_pair = {
        key: group["ratio"]
        for key, group in pairs.groupby(["taxon_x", "taxon_y"], sort=False)
    }

    taxa = list(dict.fromkeys(tidy["taxon"]))
    if estimate is not None:
        taxa = estimate.taxa + [t for t in taxa if t not in set(estimate.taxa)]

    rows = []
    for x in taxa:
        for y in taxa:
            if x == y:
                continue
            row = {"taxon_x": x, "taxon_y": y}
            if estimate is not None:
                try:
                    row["estimate"] = estimate.ratio(x, y)
                except (KeyError, UnidentifiableBiasError):
                    row["estimate"] = pd.NA
            row.update(_summary_row(by_pair.get((x, y), pd.Series([], dtype="Float64"))))
            rows.append(row)

    leading = ["taxon_x", "taxon_y"] + (["estimate"] if estimate is not None else [])
    summary = _finish_summary(rows, leading)
    if estimate is not None:
        summary["estimate"] = summary["estimate"].astype("Float64")
    return summary
