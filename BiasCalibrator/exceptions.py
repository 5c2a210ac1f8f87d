"""
exceptions.py

Errors raised while building error matrices and estimating bias.
"""

from typing import Dict, List, Optional, Sequence, Tuple


class BiasCalibratorError(Exception):
    """Base class for all BiasCalibrator errors."""
    pass


class InvalidInputError(BiasCalibratorError, ValueError):
    """
    Raised for malformed input, e.g. zero, negative or infinite error values.

    Parameters
    ----------
    message : str
        Human readable description.
    cells : sequence of tuple, optional
        Offending ``(sample, taxon, value)`` cells, when the problem is
        cell-level.
    """

    def __init__(self, message: str, cells: Optional[Sequence[Tuple]] = None):
        self.message = message
        self.cells: List[Tuple] = list(cells) if cells else []
        if self.cells:
            shown = ", ".join(f"({s!r}, {t!r}, {v!r})" for s, t, v in self.cells[:5])
            more = f" and {len(self.cells) - 5} more" if len(self.cells) > 5 else ""
            message = f"{message}: {shown}{more}"
        super().__init__(message)

    def __reduce__(self):
        return (self.__class__, (self.message, self.cells))


class EmptyInputError(BiasCalibratorError, ValueError):
    """Raised when an error matrix has zero samples or zero taxa."""
    pass


class UnidentifiableBiasError(BiasCalibratorError):
    """
    Raised when the co-occurrence graph of the taxa has more than one
    connected component and per-component estimation was not requested.

    The partition is available as ``components`` (component id -> taxa).
    """

    def __init__(self, components: Dict[int, List]):
        self.components = components
        parts = "; ".join(
            f"{cid}: {', '.join(map(str, taxa))}" for cid, taxa in components.items()
        )
        super().__init__(
            f"Bias is not identifiable: taxa fall into {len(components)} "
            f"disconnected co-occurrence components ({parts}). "
            "Use allow_multiple_components=True to estimate each component separately."
        )

    def __reduce__(self):
        return (self.__class__, (self.components,))
