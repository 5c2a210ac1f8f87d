import logging
from typing import Optional

import pandas as pd

from .exceptions import EmptyInputError, InvalidInputError
from .fileutils import detect_delimiter
from .matrix import ErrorMatrix, compute_error


def read_composition_table(path: str, sample_column: Optional[str] = None) -> pd.DataFrame:
    """
    Read a wide composition table (one row per sample, one column per taxon).

    Parameters
    ----------
    path : str
        CSV or TSV file, optionally gzip-compressed.
    sample_column : str, optional
        Column holding the sample identifiers (default: the first column).

    Returns
    -------
    pd.DataFrame
        Numeric table indexed by sample, taxa as columns. Empty cells are NaN.
    """
    try:
        table = pd.read_csv(path, sep=detect_delimiter(path), compression="infer")
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        logging.error(f"Failed to read composition table: {path}")
        raise RuntimeError(f"Error reading {path}: {e}") from e

    if table.empty or table.shape[1] < 2:
        raise EmptyInputError(f"Composition table {path} has no taxa or no samples")

    sample_column = sample_column or table.columns[0]
    if sample_column not in table.columns:
        raise InvalidInputError(f"Sample column '{sample_column}' not found in {path}")

    table = table.set_index(sample_column)
    table.index = table.index.astype(str)
    table.index.name = None
    if table.index.duplicated().any():
        dupes = sorted(set(table.index[table.index.duplicated()]))
        raise InvalidInputError(f"Duplicate sample identifiers in {path}: {dupes}")

    try:
        table = table.apply(pd.to_numeric)
    except ValueError as e:
        raise InvalidInputError(f"Non-numeric abundance in {path}: {e}") from e

    logging.debug(f"Read {table.shape[0]} samples x {table.shape[1]} taxa from {path}")
    return table


def load_error_matrix(
    observed_path: str,
    actual_path: str,
    pseudocount: float = 0.5,
    sample_column: Optional[str] = None,
) -> ErrorMatrix:
    """
    Read observed and actual composition tables and compute their error matrix.

    See ``compute_error`` for the handling of zeros.
    """
    logging.info(f"Loading observed compositions from {observed_path}")
    observed = read_composition_table(observed_path, sample_column=sample_column)
    logging.info(f"Loading actual compositions from {actual_path}")
    actual = read_composition_table(actual_path, sample_column=sample_column)
    return compute_error(observed, actual, pseudocount=pseudocount)
