"""Checks and metrics for generator sets.

This module validates a set of generator matrices against the geometry
they claim, and collects the numbers reported for each file: parities,
translation distances, orders and timing of the inspection stages.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from spacegen import isometry
from spacegen.isometry import GeometryError

logger = logging.getLogger(__name__)


def _space_types(matrices: np.ndarray, space_type: Optional[str], flat_tol: float) -> List[str]:
    if space_type is not None:
        return [space_type] * len(matrices)
    return [isometry.space_type_of(m, flat_tol) for m in matrices]


def check_generators(
    matrices: np.ndarray,
    space_type: Optional[str] = None,
    tol: float = 1e-6,
    flat_tol: float = 0.0
) -> List[str]:
    """Check a generator set for problems.

    Args:
        matrices: Nx4x4 generators
        space_type: Expected geometry; detected from the matrices if None
        tol: Tolerance for isometry and equality tests
        flat_tol: Band around m33 = 1 treated as flat

    Returns:
        Human-readable problems, empty if the set passes
    """
    problems = []
    if len(matrices) == 0:
        return problems

    if space_type is None:
        try:
            space_type = isometry.detect_space_type(matrices, flat_tol)
        except GeometryError as e:
            problems.append(str(e))

    space_types = _space_types(matrices, space_type, flat_tol)

    for i, (matrix, matrix_space) in enumerate(zip(matrices, space_types)):
        if isometry.is_identity(matrix, tol):
            problems.append(f"Generator {i} is the identity matrix")

        try:
            isometry.matrix_parity(matrix)
        except GeometryError as e:
            problems.append(f"Generator {i}: {e}")
            continue

        residual = isometry.isometry_residual(matrix, matrix_space)
        if residual > tol:
            problems.append(
                f"Generator {i} is not a {matrix_space} isometry (residual {residual:.3e})"
            )

    for i in range(len(matrices)):
        for j in range(i + 1, len(matrices)):
            if isometry.matrices_equal(matrices[i], matrices[j], tol):
                problems.append(f"Generators {i} and {j} are equal")

    if problems:
        logger.debug(f"Found {len(problems)} problems in {len(matrices)} generators")

    return problems


class Timer:
    """Time a block of work, as a context manager or decorator."""

    def __init__(self, name: str = "Timer", logger: Optional[logging.Logger] = None):
        """Initialize timer.

        Args:
            name: Timer name for logging
            logger: Logger to use (if None, uses module logger)
        """
        self.name = name
        self.logger = logger or logging.getLogger(__name__)
        self.start_time = None
        self.end_time = None

    def start(self) -> None:
        self.start_time = time.perf_counter()
        self.end_time = None

    def stop(self) -> float:
        """Stop the timer and return elapsed time in seconds."""
        if self.start_time is None:
            self.logger.warning(f"{self.name}: Timer stopped without being started")
            return 0.0

        self.end_time = time.perf_counter()
        elapsed = self.end_time - self.start_time
        self.logger.debug(f"{self.name}: {elapsed:.4f}s")
        return elapsed

    def __enter__(self) -> "Timer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def timeit(self, func: Callable) -> Callable:
        """Decorator that times every call of func."""
        def wrapper(*args, **kwargs):
            with self:
                return func(*args, **kwargs)

        return wrapper

    @property
    def elapsed(self) -> float:
        """Elapsed time in seconds, up to now or up to stop()."""
        if self.start_time is None:
            return 0.0

        end_time = self.end_time if self.end_time is not None else time.perf_counter()
        return end_time - self.start_time


class GeneratorMetrics:
    """Class for calculating and storing generator-set metrics."""

    def __init__(self):
        """Initialize metrics container."""
        self.metrics = {
            "title": None,
            "n_generators": 0,
            "space_type": None,
            "parities": [],
            "translation_distances": [],
            "orders": [],
            "max_isometry_residual": None,
            "inverse_pairs": [],
            "problems": [],
            "stage_timings": {},
        }

    def update(self, metric_name: str, value: Union[int, float, str, List, Dict, None]) -> None:
        self.metrics[metric_name] = value

    def update_stage_timing(self, stage_name: str, time_s: float) -> None:
        self.metrics["stage_timings"][stage_name] = time_s

    def compute(
        self,
        matrices: np.ndarray,
        header: Optional[Sequence[str]] = None,
        tol: float = 1e-6,
        flat_tol: float = 0.0,
        max_order: int = 120
    ) -> None:
        """Compute all metrics for a generator set.

        Args:
            matrices: Nx4x4 generators
            header: Header comment lines of the file
            tol: Tolerance for isometry and equality tests
            flat_tol: Band around m33 = 1 treated as flat
            max_order: Largest generator order to search for
        """
        titles = [line for line in header or [] if line]
        self.metrics["title"] = titles[0] if titles else None
        self.metrics["n_generators"] = len(matrices)

        try:
            space_type = isometry.detect_space_type(matrices, flat_tol)
        except GeometryError:
            space_type = None
        self.metrics["space_type"] = space_type

        space_types = _space_types(matrices, space_type, flat_tol)

        parities = []
        distances = []
        residuals = []
        for matrix, matrix_space in zip(matrices, space_types):
            try:
                parities.append(isometry.matrix_parity(matrix))
            except GeometryError:
                parities.append(0)

            try:
                distances.append(isometry.translation_distance(matrix, matrix_space))
            except GeometryError as e:
                logger.warning(f"Cannot measure translation distance: {e}")
                distances.append(None)

            residuals.append(isometry.isometry_residual(matrix, matrix_space))

        self.metrics["parities"] = parities
        self.metrics["translation_distances"] = distances
        self.metrics["orders"] = [isometry.matrix_order(m, max_order, tol) for m in matrices]
        self.metrics["max_isometry_residual"] = max(residuals) if residuals else None

        if space_type is not None:
            pairs = isometry.find_inverse_pairs(matrices, space_type, tol)
            self.metrics["inverse_pairs"] = [list(pair) for pair in pairs]

        self.metrics["problems"] = check_generators(matrices, space_type, tol, flat_tol)

    def to_dict(self) -> Dict:
        """Convert metrics to a JSON-serialisable dictionary."""
        metrics = dict(self.metrics)
        metrics["stage_timings"] = dict(self.metrics["stage_timings"])
        metrics["parities"] = [int(p) for p in self.metrics["parities"]]
        metrics["translation_distances"] = [
            None if d is None else float(d) for d in self.metrics["translation_distances"]
        ]
        if metrics["max_isometry_residual"] is not None:
            metrics["max_isometry_residual"] = float(metrics["max_isometry_residual"])
        return metrics

    def summary(self) -> str:
        """Generate a human-readable summary of metrics."""
        lines = [
            f"Generators: {self.metrics['title'] or '(untitled)'}",
            f"  Matrices: {self.metrics['n_generators']}",
            f"  Geometry: {self.metrics['space_type'] or 'inconsistent'}",
        ]

        for i, distance in enumerate(self.metrics["translation_distances"]):
            parity = {1: "+", -1: "-"}.get(self.metrics["parities"][i], "singular")
            order = self.metrics["orders"][i]
            distance_text = "n/a" if distance is None else f"{distance:.6f}"
            order_text = "infinite" if order is None else str(order)
            lines.append(f"    [{i}] parity {parity}, distance {distance_text}, order {order_text}")

        if self.metrics["max_isometry_residual"] is not None:
            lines.append(f"  Max isometry residual: {self.metrics['max_isometry_residual']:.3e}")

        if self.metrics["inverse_pairs"]:
            pairs = ", ".join(f"{i}<->{j}" for i, j in self.metrics["inverse_pairs"])
            lines.append(f"  Inverse pairs: {pairs}")

        if self.metrics["problems"]:
            lines.append("  Problems:")
            for problem in self.metrics["problems"]:
                lines.append(f"    {problem}")

        if self.metrics["stage_timings"]:
            lines.append("  Stage timings:")
            for stage, time_s in self.metrics["stage_timings"].items():
                lines.append(f"    {stage}: {time_s:.4f}s")

        return "\n".join(lines)
