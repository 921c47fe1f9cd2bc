import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pipeline_config import build_config, load_config
from point_clouds import delay_embedding, load_point_cloud
from training_set import (
    WindowComputationError,
    compute_training_rows,
    log_diagrams,
    save_metadata,
    training_frame,
    write_diagrams,
    write_training_set,
)

logger = logging.getLogger(__name__)

DESCRIPTION = """\
Compute, for every window of a time series, the persistent homology with coefficient
field Z/pZ of a Rips complex defined on the window's points, and the L^1 norm of the
persistence landscape of its dimension-1 diagram.

Each line of the training set holds the coordinates of the window's last point, the
landscape norm and the label of the next return (1 = non-negative, 0 = negative).

When written, the diagram file contains one bar per line with the convention
   p   dim b d
where dim is the dimension of the homological feature, b and d are respectively the
birth and death of the feature and p is the characteristic of the field Z/pZ used for
homology coefficients."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tda-timeseries",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    parser.add_argument("input_file", nargs="?", metavar="input-file", help="Point file (OFF or plain records).")
    parser.add_argument("-h", "--help", action="store_true", help="Produce this help message.")
    parser.add_argument(
        "-o",
        "--output-file",
        dest="diagram_file",
        default=None,
        help="File in which the persistence diagrams are written. Default: logged at DEBUG level.",
    )
    parser.add_argument(
        "-r",
        "--max-edge-length",
        type=float,
        default=None,
        help="Maximal length of an edge for the Rips complex construction (default: inf).",
    )
    parser.add_argument(
        "-d",
        "--cpx-dimension",
        dest="max_dimension",
        type=int,
        default=None,
        help="Maximal dimension of the Rips complex we want to compute (default: 1).",
    )
    parser.add_argument(
        "-p",
        "--field-charac",
        dest="field_characteristic",
        type=int,
        default=None,
        help="Characteristic p of the coefficient field Z/pZ for computing homology (default: 11).",
    )
    parser.add_argument(
        "-m",
        "--min-persistence",
        type=float,
        default=None,
        help="Minimal lifetime of homology feature to be recorded. Default is 0. "
        "Enter a negative value to see zero length intervals.",
    )
    parser.add_argument("-w", "--window-size", type=int, default=None, help="Points per window (default: 50).")
    parser.add_argument("--config", type=Path, default=None, help="Path to YAML configuration.")
    parser.add_argument("--training-file", default=None, help="Training set output (default: training.txt).")
    parser.add_argument("--metadata-file", type=Path, default=None, help="Optional JSON run summary.")
    parser.add_argument("--workers", type=int, default=None, help="Worker processes (default: 1).")
    parser.add_argument(
        "--on-error",
        choices=["abort", "skip"],
        default=None,
        help="Abort the run on a failing window, or write a placeholder row (default: abort).",
    )
    parser.add_argument(
        "--backend",
        choices=["cohomology", "ripser"],
        default=None,
        help="Persistent homology engine (default: cohomology).",
    )
    parser.add_argument(
        "--embedding-dimension",
        type=int,
        default=None,
        help="Delay-embed a one-column input series into this many coordinates.",
    )
    parser.add_argument("--embedding-delay", type=int, default=None, help="Delay between embedded coordinates.")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Diagnostic verbosity on stderr.",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.help or not args.input_file:
        parser.print_help(sys.stderr)
        return 1

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    overrides = {
        "window_size": args.window_size,
        "max_edge_length": args.max_edge_length,
        "max_dimension": args.max_dimension,
        "field_characteristic": args.field_characteristic,
        "min_persistence": args.min_persistence,
        "diagram_file": args.diagram_file,
        "training_file": args.training_file,
        "workers": args.workers,
        "on_error": args.on_error,
        "backend": args.backend,
        "embedding_dimension": args.embedding_dimension,
        "embedding_delay": args.embedding_delay,
    }
    try:
        file_cfg = load_config(args.config) if args.config else {}
        config = build_config(file_cfg, overrides)
    except (OSError, ValueError) as exc:
        parser.error(str(exc))

    try:
        series = load_point_cloud(Path(args.input_file))
    except (OSError, ValueError) as exc:
        logger.error("Cannot read input: %s", exc)
        return 1

    if config.embedding_dimension is not None:
        if series.ndim != 2 or series.shape[1] != 1:
            logger.error("Delay embedding needs a one-column series, got %d columns", series.shape[1])
            return 1
        series = delay_embedding(series[:, 0], config.embedding_dimension, config.embedding_delay)
        logger.info("Delay-embedded series into %d points of dimension %d", *series.shape)

    try:
        rows, diagrams = compute_training_rows(series, config)
    except WindowComputationError as exc:
        logger.error("%s", exc)
        return 1

    if config.diagram_file:
        write_diagrams(Path(config.diagram_file), diagrams, config.field_characteristic)
    else:
        log_diagrams(diagrams, config.field_characteristic)

    frame = training_frame(rows, series.shape[1])
    training_path = Path(config.training_file)
    write_training_set(frame, training_path)
    logger.info("Training set of %d rows written to %s", len(frame), training_path)

    if args.metadata_file:
        save_metadata(args.metadata_file, len(series), series.shape[1], config, frame)
    return 0


if __name__ == "__main__":
    sys.exit(main())
