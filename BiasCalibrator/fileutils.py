import logging
import os
from typing import List, Optional

import pandas as pd

COMPRESSED_EXTENSIONS = [".gz", ".gzip"]
TAB_EXTENSIONS = [".tsv", ".tab", ".txt"]


def strip_compression(path: str) -> str:
    """Return ``path`` without a trailing compression extension (.gz, .gzip)."""
    for ext in COMPRESSED_EXTENSIONS:
        if path.endswith(ext):
            return path[:-len(ext)]
    return path


def detect_delimiter(path: str) -> str:
    """
    Guess the field delimiter of a table from its file extension.

    Tab-separated for .tsv, .tab and .txt (optionally compressed), comma
    otherwise.
    """
    base = strip_compression(path).lower()
    if any(base.endswith(ext) for ext in TAB_EXTENSIONS):
        return "\t"
    return ","


def write_table(
    table: pd.DataFrame,
    output_dir: str,
    filename: str,
    index: bool = False,
) -> str:
    """
    Write ``table`` into ``output_dir`` and return the path written.

    The delimiter follows the file extension (see ``detect_delimiter``);
    missing values are written as ``NA``.
    """
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, filename)
    table.to_csv(path, sep=detect_delimiter(path), index=index, na_rep="NA")
    logging.info(f"Wrote {len(table)} rows to: {path}")
    return path


def list_output_files(output_dir: str, extensions: Optional[List[str]] = None) -> List[str]:
    """Sorted list of tables in ``output_dir`` (default extensions: .csv, .tsv)."""
    if extensions is None:
        extensions = [".csv", ".tsv"]
    if not os.path.isdir(output_dir):
        return []
    return sorted(
        os.path.join(output_dir, name)
        for name in os.listdir(output_dir)
        if any(strip_compression(name).endswith(ext) for ext in extensions)
    )
