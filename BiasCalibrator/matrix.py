"""
matrix.py

The ErrorMatrix (samples x taxa, observed/actual ratios with a missing mask)
and its conversions to and from pandas tables.
"""

# Standard library imports
import logging
from dataclasses import dataclass, field
from typing import Hashable, List, Sequence

# Third-party imports
import numpy as np
import pandas as pd

# Local package imports
from .exceptions import EmptyInputError, InvalidInputError


@dataclass(frozen=True, eq=False)
class ErrorMatrix:
    """
    Per-sample, per-taxon measurement error (observed / actual).

    Attributes
    ----------
    values : np.ndarray
        Float array of shape (n_samples, n_taxa). Entries under the mask are
        ignored.
    missing : np.ndarray
        Boolean array of the same shape; True where the taxon was absent from
        the actual composition of the sample.
    samples : list
        Sample labels (rows).
    taxa : list
        Taxon labels (columns).

    Every non-missing entry must be finite and positive.
    """

    values: np.ndarray
    missing: np.ndarray
    samples: List[Hashable] = field(default_factory=list)
    taxa: List[Hashable] = field(default_factory=list)

    def __post_init__(self):
        values = np.asarray(self.values, dtype=float)
        missing = np.asarray(self.missing, dtype=bool)
        if values.size == 0:
            raise EmptyInputError(f"Error matrix is empty (shape {values.shape})")
        if values.ndim != 2:
            raise InvalidInputError(f"Error matrix must be 2-dimensional, got shape {values.shape}")
        if missing.shape != values.shape:
            raise InvalidInputError(
                f"Missing mask shape {missing.shape} does not match values shape {values.shape}"
            )

        n_samples, n_taxa = values.shape
        samples = list(self.samples) if len(self.samples) else list(range(n_samples))
        taxa = list(self.taxa) if len(self.taxa) else list(range(n_taxa))
        if len(samples) != n_samples or len(taxa) != n_taxa:
            raise InvalidInputError(
                f"Got {len(samples)} sample and {len(taxa)} taxon labels "
                f"for a {n_samples} x {n_taxa} matrix"
            )
        if len(set(taxa)) != n_taxa:
            raise InvalidInputError("Taxon labels must be unique")

        bad = ~missing & (~np.isfinite(values) | (values <= 0))
        if bad.any():
            rows, cols = np.nonzero(bad)
            raise InvalidInputError(
                "Error matrix entries must be finite and positive or missing",
                cells=[(samples[i], taxa[j], float(values[i, j])) for i, j in zip(rows, cols)],
            )

        # Masked cells hold 1.0 so arithmetic on the dense array stays finite.
        values = np.where(missing, 1.0, values)
        values.setflags(write=False)
        missing = missing.copy()
        missing.setflags(write=False)

        object.__setattr__(self, "values", values)
        object.__setattr__(self, "missing", missing)
        object.__setattr__(self, "samples", samples)
        object.__setattr__(self, "taxa", taxa)

    @property
    def shape(self):
        return self.values.shape

    @property
    def n_samples(self) -> int:
        return self.values.shape[0]

    @property
    def n_taxa(self) -> int:
        return self.values.shape[1]

    @property
    def presence(self) -> pd.DataFrame:
        """PresenceMatrix: True where the entry is not missing."""
        return pd.DataFrame(~self.missing, index=self.samples, columns=self.taxa)

    def as_masked(self) -> np.ma.MaskedArray:
        return np.ma.MaskedArray(self.values, mask=self.missing)

    def take(self, rows: Sequence[int]) -> "ErrorMatrix":
        """Return the matrix restricted to ``rows`` (positions, duplicates allowed)."""
        rows = np.asarray(rows, dtype=int)
        return ErrorMatrix(
            values=self.values[rows],
            missing=self.missing[rows],
            samples=[self.samples[i] for i in rows],
            taxa=self.taxa,
        )

    def select_taxa(self, taxa: Sequence[Hashable]) -> "ErrorMatrix":
        """Return the sub-matrix holding only the columns for ``taxa``."""
        index = {t: j for j, t in enumerate(self.taxa)}
        unknown = [t for t in taxa if t not in index]
        if unknown:
            raise InvalidInputError(f"Unknown taxa: {unknown}")
        cols = [index[t] for t in taxa]
        return ErrorMatrix(
            values=self.values[:, cols],
            missing=self.missing[:, cols],
            samples=self.samples,
            taxa=list(taxa),
        )

    def observed_taxa(self) -> List[Hashable]:
        """Taxa with at least one non-missing entry."""
        seen = ~self.missing.all(axis=0)
        return [t for t, s in zip(self.taxa, seen) if s]

    # ------------------------------------------------------------------
    # pandas conversions
    # ------------------------------------------------------------------
    def to_frame(self) -> pd.DataFrame:
        """Wide table (samples x taxa) with nullable Float64 values; missing is ``pd.NA``."""
        frame = pd.DataFrame(self.values, index=self.samples, columns=self.taxa).astype("Float64")
        return frame.mask(self.missing)

    def to_tidy(self, value_name: str = "error") -> pd.DataFrame:
        """Long table with columns ``sample``, ``taxon`` and ``value_name``."""
        frame = self.to_frame()
        frame.index.name = "sample"
        return frame.reset_index().melt(
            id_vars="sample", var_name="taxon", value_name=value_name
        )

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "ErrorMatrix":
        """
        Build an ErrorMatrix from a wide table (samples as index, taxa as
        columns). ``NA``/``NaN`` cells become missing.
        """
        if frame.shape[0] == 0 or frame.shape[1] == 0:
            raise EmptyInputError(f"Error table is empty (shape {frame.shape})")
        numeric = frame.apply(pd.to_numeric).astype("Float64")
        missing = numeric.isna().to_numpy()
        values = numeric.fillna(1.0).to_numpy(dtype=float)
        return cls(
            values=values,
            missing=missing,
            samples=list(frame.index),
            taxa=list(frame.columns),
        )

    @classmethod
    def from_tidy(
        cls,
        table: pd.DataFrame,
        sample: str = "sample",
        taxon: str = "taxon",
        value: str = "error",
    ) -> "ErrorMatrix":
        """
        Build an ErrorMatrix from a long table with one row per (sample, taxon).
        Absent (sample, taxon) combinations are missing.
        """
        if table.duplicated(subset=[sample, taxon]).any():
            raise InvalidInputError(f"Duplicate ({sample}, {taxon}) rows in tidy table")
        wide = table.pivot(index=sample, columns=taxon, values=value)
        wide.index.name = None
        wide.columns.name = None
        return cls.from_frame(wide)


def compute_error(
    observed: pd.DataFrame,
    actual: pd.DataFrame,
    pseudocount: float = 0.5,
) -> ErrorMatrix:
    """
    Compute the error matrix from observed and actual compositions.

    Parameters
    ----------
    observed : pd.DataFrame
        Observed abundances, samples as index and taxa as columns.
    actual : pd.DataFrame
        Actual (reference) abundances with the same layout.
    pseudocount : float, optional
        Added to observed zeros of taxa that are present in the actual
        composition (default: 0.5).

    Returns
    -------
    ErrorMatrix
        Error (observed / actual proportions) for the samples shared by both
        tables and the union of their taxa.

    Notes
    -----
    - A taxon missing from one table is treated as zero in it.
    - Taxa with zero or missing actual abundance are masked in that sample.
    - Observed and actual are closed to proportions over the unmasked taxa of
      each sample before dividing.
    - Samples without any taxon in the actual composition are dropped.
    """
    if pseudocount <= 0:
        raise InvalidInputError(f"Pseudocount must be positive, got {pseudocount}")

    samples = [s for s in actual.index if s in set(observed.index)]
    if not samples:
        raise EmptyInputError("Observed and actual tables share no samples")
    dropped = set(observed.index).symmetric_difference(actual.index)
    if dropped:
        logging.warning(f"Ignoring {len(dropped)} samples not present in both tables: {sorted(map(str, dropped))}")

    taxa = list(actual.columns) + [t for t in observed.columns if t not in set(actual.columns)]
    obs = observed.reindex(index=samples, columns=taxa).apply(pd.to_numeric).fillna(0.0).to_numpy(dtype=float)
    act = actual.reindex(index=samples, columns=taxa).apply(pd.to_numeric).fillna(0.0).to_numpy(dtype=float)

    for name, arr in (("observed", obs), ("actual", act)):
        bad = ~np.isfinite(arr) | (arr < 0)
        if bad.any():
            rows, cols = np.nonzero(bad)
            raise InvalidInputError(
                f"{name.capitalize()} abundances must be finite and non-negative",
                cells=[(samples[i], taxa[j], float(arr[i, j])) for i, j in zip(rows, cols)],
            )

    missing = act <= 0
    keep = ~missing.all(axis=1)
    if not keep.all():
        empty = [s for s, k in zip(samples, keep) if not k]
        logging.warning(f"Dropping {len(empty)} samples with an empty actual composition: {empty}")
        obs, act, missing = obs[keep], act[keep], missing[keep]
        samples = [s for s, k in zip(samples, keep) if k]

    obs = np.where(~missing & (obs == 0), pseudocount, obs)
    obs = np.where(missing, 0.0, obs)
    act = np.where(missing, 0.0, act)

    obs_prop = obs / obs.sum(axis=1, keepdims=True)
    act_prop = act / act.sum(axis=1, keepdims=True)
    values = np.divide(obs_prop, act_prop, out=np.ones_like(obs_prop), where=~missing)

    n_masked = int(missing.sum())
    logging.info(
        f"Computed error matrix for {len(samples)} samples and {len(taxa)} taxa "
        f"({n_masked} masked cells)."
    )
    return ErrorMatrix(values=values, missing=missing, samples=samples, taxa=taxa)
