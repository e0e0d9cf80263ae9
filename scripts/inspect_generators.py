#!/usr/bin/env python3
"""
Generator File Inspection

This script loads one or more matrix-generator files, checks that each
generator set is a consistent set of isometries, reports its geometry and
per-generator metrics, and optionally rewrites the files in a normalised
layout and draws them.
"""

from __future__ import annotations

import argparse
import datetime
import json
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

import matplotlib
import yaml
from tqdm import tqdm

matplotlib.use("Agg")

# Add parent directory to path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from spacegen import catalog, evaluate, genfile, isometry, visualise


# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
    handlers=[
        logging.StreamHandler(),
    ],
)
logger = logging.getLogger("inspect")


def load_config(config_path: Optional[str] = None) -> Dict:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary
    """
    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"

    with open(config_path, "r") as f:
        config = yaml.safe_load(f)

    return config


def collect_generator_files(input_path: str) -> List[Path]:
    """Resolve the input argument to a list of generator files.

    Args:
        input_path: A .gen file, a directory of .gen files,
            or the name of a bundled space

    Returns:
        Sorted list of file paths
    """
    path = Path(input_path)

    if path.is_dir():
        files = sorted(path.glob(f"*{catalog.GENERATOR_SUFFIX}"))
        if not files:
            raise FileNotFoundError(f"No generator files found in {path}")
        return files

    if path.is_file():
        return [path]

    try:
        return [catalog.space_path(input_path)]
    except KeyError:
        raise FileNotFoundError(
            f"{input_path} is neither a file, a directory nor a bundled space"
        ) from None


def inspect_file(
    path: Path,
    config: Dict,
    output_dir: str,
    rewrite: bool = False,
    visualise_results: bool = False
) -> Dict:
    """Load, check and report on a single generator file.

    Args:
        path: Generator file
        config: Configuration dictionary
        output_dir: Directory for rewritten files and figures
        rewrite: Whether to write a normalised copy of the file
        visualise_results: Whether to draw the generators

    Returns:
        Dictionary of metrics for the file
    """
    validation = config["validation"]
    metrics = evaluate.GeneratorMetrics()

    with evaluate.Timer("Load") as timer:
        matrices, header = genfile.load_generator_file(path)
    metrics.update_stage_timing("load", timer.elapsed)

    with evaluate.Timer("Evaluate") as timer:
        metrics.compute(
            matrices,
            header,
            tol=validation["isometry_tolerance"],
            flat_tol=validation["flat_tolerance"],
            max_order=validation["max_order"],
        )
    metrics.update_stage_timing("evaluate", timer.elapsed)

    file_dir = os.path.join(output_dir, path.stem)

    if rewrite:
        with evaluate.Timer("Rewrite") as timer:
            genfile.write_generators(
                os.path.join(file_dir, path.name),
                matrices,
                header,
                precision=config["format"]["precision"],
            )
        metrics.update_stage_timing("rewrite", timer.elapsed)

    space_type = metrics.metrics["space_type"]
    if visualise_results and len(matrices) > 0:
        with evaluate.Timer("Visualise") as timer:
            os.makedirs(file_dir, exist_ok=True)
            visualise.save_generator_heatmaps(
                matrices, os.path.join(file_dir, config["visualise"]["heatmaps"])
            )
            if space_type is not None:
                visualise.save_basepoint_images(
                    matrices,
                    space_type,
                    os.path.join(file_dir, config["visualise"]["basepoint_images"]),
                )
        metrics.update_stage_timing("visualise", timer.elapsed)

    logger.info("\n" + metrics.summary())

    result = metrics.to_dict()
    result["path"] = str(path)
    return result


def save_results(output_dir: str, results: Dict) -> None:
    """Save the inspection report as summary.json."""
    os.makedirs(output_dir, exist_ok=True)

    summary_file = os.path.join(output_dir, "summary.json")
    with open(summary_file, "w") as f:
        json.dump(results, f, indent=2)

    logger.info(f"Summary saved to {summary_file}")


def run_inspection(
    input_path: str,
    output_dir: Optional[str] = None,
    precision: Optional[int] = None,
    rewrite: bool = False,
    visualise_results: bool = False,
    strict: bool = False,
    config_path: Optional[str] = None
) -> Dict:
    """Inspect every generator file named by input_path.

    Args:
        input_path: File, directory or bundled space name
        output_dir: Path to output directory
        precision: Digits after the decimal point for rewritten files
        rewrite: Whether to write normalised copies of the files
        visualise_results: Whether to draw each generator set
        strict: Whether files with problems count as failures
        config_path: Path to configuration file

    Returns:
        Dictionary with per-file results and the list of failed files
    """
    config = load_config(config_path)

    if output_dir is not None:
        config["io"]["output_dir"] = output_dir
    if precision is not None:
        config["format"]["precision"] = precision
    config["io"]["input"] = input_path
    output_dir = config["io"]["output_dir"]

    os.makedirs(output_dir, exist_ok=True)

    # Set up file logging
    file_handler = logging.FileHandler(os.path.join(output_dir, "log.txt"))
    file_handler.setFormatter(logging.Formatter("[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"))
    logging.getLogger().addHandler(file_handler)

    results = {"files": {}, "failed": []}

    try:
        paths = collect_generator_files(input_path)
        logger.info(f"Inspecting {len(paths)} generator files")

        for path in tqdm(paths, desc="Inspecting generators"):
            try:
                result = inspect_file(path, config, output_dir, rewrite, visualise_results)
            except (genfile.GeneratorFileError, isometry.GeometryError, OSError) as e:
                logger.error(f"Failed to inspect {path}: {e}")
                results["files"][path.name] = {"path": str(path), "error": str(e)}
                results["failed"].append(path.name)
                continue

            results["files"][path.name] = result
            if strict and result["problems"]:
                logger.warning(f"{path.name} has {len(result['problems'])} problems")
                results["failed"].append(path.name)

        results["datetime"] = datetime.datetime.now().isoformat()
        save_results(output_dir, results)
    finally:
        logging.getLogger().removeHandler(file_handler)
        file_handler.close()

    return results


def main():
    """Main function to parse arguments and run the inspection."""
    parser = argparse.ArgumentParser(description="Matrix Generator File Inspection")
    parser.add_argument(
        "--input", "-i", dest="input_path", default=None,
        help="Generator file, directory of .gen files, or bundled space name"
    )
    parser.add_argument(
        "--output", "-o", dest="output_dir", default=None,
        help="Path to output directory"
    )
    parser.add_argument(
        "--precision", "-p", dest="precision", type=int, default=None,
        help="Digits after the decimal point for rewritten files"
    )
    parser.add_argument(
        "--rewrite", "-r", dest="rewrite", action="store_true",
        help="Write normalised copies of the generator files"
    )
    parser.add_argument(
        "--visualise", "-v", dest="visualise", action="store_true",
        help="Draw the generators"
    )
    parser.add_argument(
        "--strict", "-s", dest="strict", action="store_true",
        help="Treat files with problems as failures"
    )
    parser.add_argument(
        "--list", "-l", dest="list_spaces", action="store_true",
        help="List the bundled spaces and exit"
    )
    parser.add_argument(
        "--config", "-c", dest="config_path", default=None,
        help="Path to configuration file"
    )

    args = parser.parse_args()

    if args.list_spaces:
        for name in catalog.available_spaces():
            print(name)
        return

    if args.input_path is None:
        parser.error("--input is required unless --list is given")

    try:
        results = run_inspection(
            args.input_path,
            args.output_dir,
            args.precision,
            args.rewrite,
            args.visualise,
            args.strict,
            args.config_path
        )
    except Exception as e:
        logger.exception(f"Error running inspection: {e}")
        sys.exit(1)

    if results["failed"]:
        logger.error(f"{len(results['failed'])} files failed: {', '.join(results['failed'])}")
        sys.exit(1)


if __name__ == "__main__":
    main()
