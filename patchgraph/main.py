"""CLI entry for the normal-estimation / patch-graph pipeline."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from patchgraph.instrumentation.timing import TimingRecorder
from patchgraph.pipeline.driver import run_pipeline
from patchgraph.pipeline.loader import PointCloudLoadError
from patchgraph.pipeline.report import DiagnosticReporter
from patchgraph.utils.config_loader import Config, WEIGHT_FORMULAS, load_config
from patchgraph.utils.logging_setup import LoggingSettings, configure_python_logging, load_logging_settings

EXIT_OK = 0
EXIT_LOAD_FAILED = 1
EXIT_BAD_CONFIG = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Estimate point normals and build normal-weighted patch graphs.")
    parser.add_argument(
        "input",
        nargs="?",
        default=None,
        help="Point cloud / mesh file. Defaults to input.base_path/input.point_cloud_path from the config.",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to JSON config file.")
    parser.add_argument(
        "--logging-config",
        type=str,
        default="logging_config.json",
        help="Path to JSON logging config (defaults apply when missing).",
    )
    parser.add_argument("--radius", type=float, default=None, help="Neighbor query radius for points and centroids.")
    parser.add_argument("--centroid-radius", type=float, default=None, help="Separate radius for the centroid queries.")
    parser.add_argument("--precision", type=int, default=None, help="Digits shown in diagnostic blocks.")
    parser.add_argument("--weight-formula", choices=WEIGHT_FORMULAS, default=None, help="Normal dissimilarity formula.")
    parser.add_argument("--exclude-degenerate", action="store_true", help="Leave unreliable normals out of the graph.")
    parser.add_argument("--quiet", action="store_true", help="Only print warnings, errors and the summary.")
    return parser.parse_args(argv)


def _cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.radius is not None:
        overrides.setdefault("geometry", {})["radius"] = args.radius
    if args.centroid_radius is not None:
        overrides.setdefault("geometry", {})["centroid_radius"] = args.centroid_radius
    if args.precision is not None:
        overrides.setdefault("report", {})["precision"] = args.precision
    if args.weight_formula is not None:
        overrides.setdefault("graph", {})["weight_formula"] = args.weight_formula
    if args.exclude_degenerate:
        overrides.setdefault("graph", {})["exclude_degenerate"] = True
    if args.quiet:
        overrides.setdefault("report", {})["verbose"] = False
    return overrides


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    console_level = "WARNING" if args.quiet else None
    logger = logging.getLogger("pipeline")
    try:
        logging_settings = load_logging_settings(Path(args.logging_config))
    except (OSError, ValueError) as exc:
        configure_python_logging(LoggingSettings(), console_level=console_level)
        logger.error("Invalid logging configuration %s: %s", args.logging_config, exc)
        return EXIT_BAD_CONFIG
    configure_python_logging(logging_settings, console_level=console_level)

    try:
        config: Config = load_config(args.config, _cli_overrides(args))
    except (OSError, ValueError, KeyError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_BAD_CONFIG

    recorder = TimingRecorder(config.instrumentation)
    reporter = DiagnosticReporter(config.report)
    source = Path(args.input) if args.input else None

    logger.info("Starting pipeline with config %s", args.config or "<defaults>")
    try:
        result = run_pipeline(config, recorder, source_path=source, reporter=reporter)
    except PointCloudLoadError as exc:
        logger.error("ERROR: the point cloud %s could not be loaded", exc.source_path)
        return EXIT_LOAD_FAILED
    except ValueError as exc:
        logger.error("Pipeline aborted: %s", exc)
        return EXIT_BAD_CONFIG

    summary = result.summary()
    print(
        f"{summary['point_count']} points, planes {summary['plane_status']}, "
        f"{summary['indexed_centroids']} centroid graphs (mean size {summary['mean_graph_size']:.2f}, "
        f"max {summary['max_graph_size']})"
    )
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
