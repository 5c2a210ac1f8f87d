"""
compositional.py

Primitives for compositional vectors with missing entries.

Missing entries are carried in a numpy mask (``numpy.ma``), never as NaN or
infinity. ``MISSING`` is the scalar returned wherever a result is missing.
"""

import numpy as np
import pandas as pd

from .exceptions import InvalidInputError

MISSING = np.ma.masked


def is_missing(value) -> bool:
    """Return True if a scalar is ``MISSING``, ``None`` or a pandas NA."""
    if value is MISSING or value is None or value is pd.NA:
        return True
    return False


def as_masked(values) -> np.ma.MaskedArray:
    """
    Convert ``values`` to a 1-D float masked array.

    Parameters
    ----------
    values : array-like
        Masked array, numpy array, pandas Series (NA entries become missing)
        or a sequence that may contain ``None`` / ``MISSING``.

    Returns
    -------
    np.ma.MaskedArray
        Float array whose mask marks missing entries.
    """
    # Masked slots are filled with 1.0 so arithmetic on them stays finite.
    if isinstance(values, np.ma.MaskedArray):
        mask = np.ma.getmaskarray(values).ravel()
        data = np.where(mask, 1.0, np.ma.getdata(values).ravel().astype(float))
        return np.ma.MaskedArray(data, mask=mask)

    if isinstance(values, pd.Series):
        mask = values.isna().to_numpy()
        data = values.where(~mask, 1.0).to_numpy(dtype=float)
        return np.ma.MaskedArray(data, mask=mask)

    items = list(np.ravel(values)) if isinstance(values, np.ndarray) else list(values)
    mask = np.array([is_missing(v) for v in items], dtype=bool)
    data = np.array([1.0 if m else float(v) for v, m in zip(items, mask)], dtype=float)
    return np.ma.MaskedArray(data, mask=mask)


def geometric_mean(values):
    """
    Geometric mean of the non-missing entries of ``values``.

    Returns ``MISSING`` if every entry is missing.
    """
    observed = as_masked(values).compressed()
    if observed.size == 0:
        return MISSING
    return float(np.exp(np.mean(np.log(observed))))


def geometric_sd(values):
    """
    Geometric standard deviation, ``exp(sd(log(values)))``, of the
    non-missing entries (sample standard deviation, ddof=1).

    Returns ``MISSING`` if fewer than two entries are observed.
    """
    observed = as_masked(values).compressed()
    if observed.size < 2:
        return MISSING
    return float(np.exp(np.std(np.log(observed), ddof=1)))


def closure(values) -> np.ma.MaskedArray:
    """
    Scale a compositional vector so that the geometric mean of its
    non-missing entries is 1. Missing entries pass through unchanged.

    Raises
    ------
    InvalidInputError
        If every entry is missing, or a non-missing entry is not a finite
        positive number.
    """
    v = as_masked(values)
    observed = v.compressed()
    if observed.size == 0:
        raise InvalidInputError("Cannot close a vector whose entries are all missing")

    bad = ~np.isfinite(observed) | (observed <= 0)
    if bad.any():
        positions = np.flatnonzero(~np.ma.getmaskarray(v))[bad]
        raise InvalidInputError(
            "Compositional entries must be finite and positive",
            cells=[(None, int(i), float(v.data[i])) for i in positions],
        )

    return v / geometric_mean(v)


def ratio(a, b):
    """
    ``a / b`` with missing propagation.

    Scalars give a float or ``MISSING``; array-like operands are divided
    element-wise and give a masked array.
    """
    if np.ndim(a) == 0 and np.ndim(b) == 0:
        if is_missing(a) or is_missing(b):
            return MISSING
        return float(a) / float(b)

    num = a if np.ndim(a) == 0 else as_masked(a)
    den = b if np.ndim(b) == 0 else as_masked(b)
    if is_missing(num) or is_missing(den):
        size = max(np.size(num), np.size(den))
        return np.ma.MaskedArray(np.ones(size), mask=np.ones(size, dtype=bool))

    num = np.ma.asarray(num, dtype=float)
    den = np.ma.asarray(den, dtype=float)
    out = np.ma.MaskedArray(
        np.ma.getdata(num) / np.ma.getdata(den),
        mask=np.ma.getmaskarray(num) | np.ma.getmaskarray(den),
    )
    return out
