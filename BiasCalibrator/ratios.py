"""
ratios.py

Pairwise ratio views of per-taxon values (errors, bias estimates, bootstrap
replicates).
"""

from typing import List, Mapping, Optional, Sequence, Union

import pandas as pd

from .compositional import is_missing
from .exceptions import InvalidInputError
from .matrix import ErrorMatrix

PAIR_COLUMNS = ["taxon_x", "taxon_y", "ratio"]


def _as_float64(values: pd.Series) -> pd.Series:
    """Nullable Float64 copy of ``values``; ``MISSING``/``None``/NaN become ``pd.NA``."""
    if values.dtype == object:
        return pd.Series(
            pd.array([pd.NA if is_missing(v) else float(v) for v in values], dtype="Float64"),
            index=values.index,
        )
    return values.astype("Float64")


def pairwise_ratios(
    data: Union[pd.DataFrame, pd.Series, Mapping],
    group_by: Optional[Sequence[str]] = None,
    taxon: str = "taxon",
    value: str = "value",
) -> pd.DataFrame:
    """
    Expand per-taxon values into all ordered pairwise ratios.

    Parameters
    ----------
    data : pd.DataFrame, pd.Series or mapping
        Tidy table with a ``taxon`` and a ``value`` column (plus any grouping
        columns), or a single taxon -> value mapping.
    group_by : sequence of str, optional
        Columns defining groups (e.g. ``["sample"]`` or ``["replicate"]``).
        Pairs are only formed within a group. Ignored for mappings.
    taxon, value : str
        Names of the taxon and value columns of a tidy table.

    Returns
    -------
    pd.DataFrame
        Group columns followed by ``taxon_x``, ``taxon_y`` and ``ratio``
        (``value_x / value_y``, nullable Float64). One row per ordered pair
        with ``taxon_x != taxon_y``; both directions are kept (see
        ``unique_pairs``). A missing value gives a missing ratio.
    """
    keys: List[str] = []
    if isinstance(data, pd.DataFrame):
        keys = list(group_by or [])
        absent = [c for c in keys + [taxon, value] if c not in data.columns]
        if absent:
            raise InvalidInputError(f"Columns not found in table: {absent}")
        table = data[keys + [taxon, value]].rename(columns={taxon: "taxon", value: "value"})
    else:
        items = list(data.items())
        table = pd.DataFrame({
            "taxon": [taxon for taxon, _ in items],
            "value": pd.array(
                [pd.NA if is_missing(v) else float(v) for _, v in items], dtype="Float64"
            ),
        })

    table = table.reset_index(drop=True)
    table["value"] = _as_float64(table["value"])
    if table.duplicated(subset=keys + ["taxon"]).any():
        raise InvalidInputError("Each taxon may appear only once per group")

    left = table.rename(columns={"taxon": "taxon_x", "value": "value_x"})
    right = table.rename(columns={"taxon": "taxon_y", "value": "value_y"})
    if keys:
        pairs = left.merge(right, on=keys, how="inner", sort=False)
    else:
        pairs = left.merge(right, how="cross")

    pairs = pairs[pairs["taxon_x"] != pairs["taxon_y"]].copy()
    pairs["ratio"] = pairs["value_x"] / pairs["value_y"]
    return pairs[keys + PAIR_COLUMNS].reset_index(drop=True)


def unique_pairs(pairs: pd.DataFrame) -> pd.DataFrame:
    """Keep one direction per unordered pair: rows with ``taxon_x < taxon_y`` (as strings)."""
    keep = pairs["taxon_x"].astype(str) < pairs["taxon_y"].astype(str)
    return pairs[keep].reset_index(drop=True)


def estimate_ratios(estimate) -> pd.DataFrame:
    """
    Pairwise bias ratios of a ``BiasEstimate``.

    Pairs are formed within each component only; ratios across components
    are not identifiable and never reported.
    """
    return pairwise_ratios(estimate.to_frame(), group_by=["component"], value="bias")


def error_ratios(error: ErrorMatrix) -> pd.DataFrame:
    """Pairwise error ratios within each sample of an error matrix."""
    if len(set(error.samples)) != error.n_samples:
        raise InvalidInputError("Sample labels must be unique to form per-sample ratios")
    return pairwise_ratios(error.to_tidy(), group_by=["sample"], value="error")

