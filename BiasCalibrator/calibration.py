"""
calibration.py

Remove an estimated bias from observed compositions.
"""

import logging

import pandas as pd

from .exceptions import InvalidInputError


def calibrate(observed: pd.DataFrame, estimate, normalize: bool = True) -> pd.DataFrame:
    """
    Calibrate observed compositions by dividing out the estimated bias.

    Parameters
    ----------
    observed : pd.DataFrame
        Observed abundances, samples as index and taxa as columns.
    estimate : BiasEstimate
        Bias estimate from ``estimate_bias``.
    normalize : bool, optional
        Rescale each sample to proportions (default: True). Proportions are
        computed separately within each component, since the relative scale
        of different components is unknown.

    Returns
    -------
    pd.DataFrame
        Calibrated abundances (nullable Float64) for the observed taxa that
        have a bias estimate. With ``normalize``, a sample whose taxa of a
        component sum to zero gets ``NA`` for that component.
    """
    numeric = observed.apply(pd.to_numeric).astype("Float64")
    if (numeric < 0).any().any():
        raise InvalidInputError("Observed abundances must be non-negative")

    taxa = [t for t in observed.columns if t in estimate.table.index]
    dropped = [t for t in observed.columns if t not in estimate.table.index]
    if not taxa:
        raise InvalidInputError("None of the observed taxa has a bias estimate")
    if dropped:
        logging.warning(f"Dropping {len(dropped)} taxa without a bias estimate: {dropped}")

    bias = estimate.table.loc[taxa, "bias"].astype("Float64")
    calibrated = numeric[taxa].div(bias, axis=1)

    if normalize:
        components = estimate.table.loc[taxa, "component"]
        for cid in sorted(components.unique()):
            cols = list(components.index[components == cid])
            totals = calibrated[cols].sum(axis=1, skipna=True)
            totals = totals.mask(totals == 0)
            calibrated[cols] = calibrated[cols].div(totals, axis=0)
        logging.debug(f"Normalized calibrated compositions within {components.nunique()} component(s).")

    logging.info(f"Calibrated {calibrated.shape[0]} samples over {len(taxa)} taxa.")
    return calibrated
