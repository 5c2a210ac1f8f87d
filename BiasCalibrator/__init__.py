"""
BiasCalibrator: estimate taxon-specific measurement bias from control samples
of known composition, quantify its uncertainty by bootstrap, and calibrate
observed compositions.

The command-line entry point is defined in `cli.py`.
"""

from .calibration import calibrate
from .compositional import MISSING, closure, geometric_mean, geometric_sd, ratio
from .exceptions import (
    BiasCalibratorError,
    EmptyInputError,
    InvalidInputError,
    UnidentifiableBiasError,
)
from .graph import assign_components, build_cooccurrence_graph, component_members, graph_edges
from .matrix import ErrorMatrix, compute_error
from .processor import (
    BiasEstimate,
    BootstrapReplicateSet,
    bootstrap_bias,
    estimate_bias,
    summarize_bootstrap,
    summarize_bootstrap_ratios,
)
from .ratios import error_ratios, estimate_ratios, pairwise_ratios, unique_pairs

__version__ = "0.1"
