"""
BiasCalibrator Command-Line Interface (CLI)

This module provides the command-line interface for BiasCalibrator, a tool for
estimating taxon-specific measurement bias from control samples of known
composition. It handles table loading, error computation, identifiability
checks, bias estimation, bootstrap uncertainty and calibration.
"""

import argparse
import logging
import sys

from .calibration import calibrate
from .exceptions import BiasCalibratorError
from .fileutils import list_output_files, write_table
from .graph import assign_components, build_cooccurrence_graph, component_members, graph_edges
from .parser import load_error_matrix, read_composition_table
from .processor import (
    bootstrap_bias,
    estimate_bias,
    summarize_bootstrap,
    summarize_bootstrap_ratios,
)
from .ratios import estimate_ratios, unique_pairs

GREEN = "\033[92m"
CYAN = "\033[96m"
RESET = "\033[0m"


# ----------------------------------------------------------------------
# Startup Banner Function
# ----------------------------------------------------------------------
def print_startup_message():
    """Display a styled startup banner for BiasCalibrator."""
    print("\n" + GREEN + "=" * 72 + RESET)
    print(CYAN + r"   ___  _           ___      _ _ _             _           " + RESET)
    print(CYAN + r"  | _ )(_)__ _ ___ / __|__ _| (_) |__ _ _ __ _| |_ ___ _ _ " + RESET)
    print(CYAN + r"  | _ \| / _` (_-<| (__/ _` | | | '_ \ '_/ _` |  _/ _ \ '_|" + RESET)
    print(CYAN + r"  |___/|_\__,_/__/ \___\__,_|_|_|_.__/_| \__,_|\__\___/_|  " + RESET)
    print(GREEN + "=" * 72 + RESET + "\n")
    print(CYAN + "        BiasCalibrator - Taxonomic bias estimation and calibration" + RESET + "\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="BiasCalibrator",
        formatter_class=argparse.RawTextHelpFormatter,
        description=(
            "BiasCalibrator - Estimate taxon-specific measurement bias from control "
            "samples of known composition,\nwith bootstrap uncertainty, and calibrate "
            "observed compositions.\n\n"
            "Example usage:\n"
            "  biascalibrator \\\n"
            "    --observed data/mock_observed.csv \\\n"
            "    --actual data/mock_actual.csv \\\n"
            "    --output_dir results \\\n"
            "    --bootstrap 1000 --seed 1 \\\n"
            "    --calibrate data/samples_observed.csv \\\n"
            "    --threads 8"
        ),
    )

    # --- Input/output options ---
    parser.add_argument(
        "--observed",
        required=True,
        help="Table of observed abundances of the control samples (samples as rows, taxa as columns).",
    )
    parser.add_argument(
        "--actual",
        required=True,
        help="Table of actual abundances of the control samples, same layout as --observed.",
    )
    parser.add_argument(
        "--sample_column",
        default=None,
        help="Column holding sample identifiers (default: first column).",
    )
    parser.add_argument(
        "--output_dir",
        required=True,
        help="Directory for the output tables.",
    )

    # --- Estimation options ---
    parser.add_argument(
        "--pseudocount",
        type=float,
        default=0.5,
        help="Pseudocount for observed zeros of taxa present in the actual composition (default: 0.5).",
    )
    parser.add_argument(
        "--allow_multiple_components",
        action="store_true",
        help="Estimate each co-occurrence component separately when the bias is not identifiable.",
    )

    # --- Bootstrap options ---
    parser.add_argument(
        "--bootstrap",
        type=int,
        default=1000,
        help="Number of bootstrap replicates; 0 disables the bootstrap (default: 1000).",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for the bootstrap (default: unseeded).",
    )
    parser.add_argument(
        "--skip_failed_replicates",
        action="store_true",
        help="Skip bootstrap replicates with an unidentifiable bias instead of stopping.",
    )

    # --- Performance options ---
    parser.add_argument(
        "--threads",
        type=int,
        default=1,
        help="Number of worker processes for the bootstrap (default: 1).",
    )

    # --- Calibration options ---
    parser.add_argument(
        "--calibrate",
        default=None,
        help="Optional table of observed abundances to calibrate with the estimated bias.",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser


def run(args: argparse.Namespace) -> None:
    """Run the estimation workflow for parsed command-line arguments."""
    output_dir = args.output_dir

    # ----------------------
    # Load control samples
    # ----------------------
    error = load_error_matrix(
        args.observed,
        args.actual,
        pseudocount=args.pseudocount,
        sample_column=args.sample_column,
    )
    logging.info(
        f"Error matrix: {error.n_samples} samples, {error.n_taxa} taxa "
        f"({len(error.observed_taxa())} observed)."
    )

    # ----------------------
    # Identifiability
    # ----------------------
    graph = build_cooccurrence_graph(error)
    write_table(graph_edges(graph), output_dir, "cooccurrence_edges.csv")
    members = component_members(assign_components(graph))
    logging.info(f"Co-occurrence graph has {len(members)} component(s).")
    for cid, taxa in members.items():
        logging.debug(f"Component {cid}: {', '.join(map(str, taxa))}")

    # ----------------------
    # Bias estimate
    # ----------------------
    estimate = estimate_bias(error, allow_multiple_components=args.allow_multiple_components)
    write_table(estimate.to_frame(), output_dir, "bias.csv")
    write_table(unique_pairs(estimate_ratios(estimate)), output_dir, "bias_ratios.csv")

    # ----------------------
    # Bootstrap (optional)
    # ----------------------
    if args.bootstrap > 0:
        replicates = bootstrap_bias(
            error,
            n_replicates=args.bootstrap,
            allow_multiple_components=args.allow_multiple_components,
            skip_failed_replicates=args.skip_failed_replicates,
            seed=args.seed,
            n_jobs=args.threads,
        )
        write_table(summarize_bootstrap(replicates, estimate), output_dir, "bootstrap_summary.csv")
        write_table(
            unique_pairs(summarize_bootstrap_ratios(replicates, estimate)),
            output_dir,
            "bootstrap_ratios.csv",
        )
    else:
        logging.info("Bootstrap disabled.")

    # ----------------------
    # Calibration (optional)
    # ----------------------
    if args.calibrate:
        logging.info(f"Calibrating compositions from {args.calibrate}...")
        observed = read_composition_table(args.calibrate, sample_column=args.sample_column)
        calibrated = calibrate(observed, estimate)
        calibrated.index.name = "sample"
        write_table(calibrated, output_dir, "calibrated.csv", index=True)


# -------------------------------------------------------------------------
# Main entry point
# -------------------------------------------------------------------------
def main(argv=None) -> None:
    """Main function for the BiasCalibrator command-line interface."""
    args = build_parser().parse_args(argv)

    # ----------------------
    # Logging configuration
    # ----------------------
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    print_startup_message()
    logging.info("Starting BiasCalibrator...")

    try:
        run(args)
    except BiasCalibratorError as e:
        logging.error(str(e))
        sys.exit(1)

    logging.info(f"Output tables: {', '.join(list_output_files(args.output_dir))}")
    logging.info(GREEN + "=" * 49 + RESET)
    logging.info(CYAN + "    BiasCalibrator has finished successfully!" + RESET)
    logging.info(GREEN + "=" * 49 + RESET)


if __name__ == "__main__":
    main()
