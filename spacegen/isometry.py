"""Geometric functions for generator matrices.

This module implements the per-matrix geometry of spherical, flat and
hyperbolic 3-space in homogeneous coordinates, including space-type
detection, isometry checks, geometric inverses and basepoint distances.

Matrices act on row vectors, v -> v @ M, so the last row of a matrix is
the image of the basepoint (0, 0, 0, 1).
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy import linalg

logger = logging.getLogger(__name__)

SPHERICAL = "spherical"
FLAT = "flat"
HYPERBOLIC = "hyperbolic"
SPACE_TYPES = (SPHERICAL, FLAT, HYPERBOLIC)

BASEPOINT = np.array([0.0, 0.0, 0.0, 1.0])

# Minkowski form for the hyperboloid model
LORENTZ = np.diag([1.0, 1.0, 1.0, -1.0])


class GeometryError(ValueError):
    """Raised when matrices or vectors don't fit the expected geometry."""


def _check_space_type(space_type: str) -> None:
    if space_type not in SPACE_TYPES:
        raise ValueError(f"Unknown space type {space_type!r}, expected one of {SPACE_TYPES}")


def _check_matrix(matrix: np.ndarray) -> np.ndarray:
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.shape != (4, 4):
        raise ValueError(f"Expected 4x4 matrix, got shape {matrix.shape}")
    return matrix


def space_type_of(matrix: np.ndarray, tol: float = 0.0) -> str:
    """Classify a single generator by its bottom-right entry.

    Args:
        matrix: 4x4 generator
        tol: Band around 1.0 treated as flat

    Returns:
        One of "spherical", "flat", "hyperbolic"
    """
    m33 = _check_matrix(matrix)[3, 3]

    if m33 < 1.0 - tol:
        return SPHERICAL
    if m33 > 1.0 + tol:
        return HYPERBOLIC
    return FLAT


def detect_space_type(matrices: np.ndarray, tol: float = 0.0) -> str:
    """Detect the geometry shared by a set of generators.

    An empty generating set describes the 3-sphere.

    Args:
        matrices: Nx4x4 array of generators
        tol: Band around 1.0 treated as flat

    Returns:
        Space type common to all generators
    """
    if len(matrices) == 0:
        return SPHERICAL

    space_types = [space_type_of(m, tol) for m in matrices]
    if len(set(space_types)) > 1:
        logger.debug(f"Per-generator space types: {space_types}")
        raise GeometryError(
            "Matrix generators have inconsistent geometries (spherical, flat, hyperbolic), "
            "or perhaps an unneeded identity matrix is present."
        )

    return space_types[0]


def metric_form(space_type: str) -> Optional[np.ndarray]:
    """Return the bilinear form preserved by isometries, None for flat space."""
    _check_space_type(space_type)

    if space_type == SPHERICAL:
        return np.eye(4)
    if space_type == HYPERBOLIC:
        return LORENTZ.copy()
    return None


def isometry_residual(matrix: np.ndarray, space_type: str) -> float:
    """Measure how far a matrix is from being an isometry.

    Spherical and hyperbolic matrices must satisfy M G M^T = G for the
    metric form G. Flat matrices must have last column (0, 0, 0, 1) and
    an orthogonal upper-left 3x3 block.

    Args:
        matrix: 4x4 generator
        space_type: Geometry to test against

    Returns:
        Largest absolute deviation from the isometry conditions
    """
    matrix = _check_matrix(matrix)
    G = metric_form(space_type)

    if G is not None:
        return float(np.max(np.abs(matrix @ G @ matrix.T - G)))

    R = matrix[:3, :3]
    column_error = np.max(np.abs(matrix[:, 3] - BASEPOINT))
    rotation_error = np.max(np.abs(R @ R.T - np.eye(3)))
    return float(max(column_error, rotation_error))


def is_isometry(matrix: np.ndarray, space_type: str, tol: float = 1e-6) -> bool:
    """Check whether a matrix is an isometry of the given geometry."""
    return isometry_residual(matrix, space_type) <= tol


def geometric_inverse(matrix: np.ndarray, space_type: str) -> np.ndarray:
    """Invert an isometry using the structure of its geometry.

    Args:
        matrix: 4x4 isometry
        space_type: Geometry of the isometry

    Returns:
        4x4 inverse matrix
    """
    matrix = _check_matrix(matrix)
    _check_space_type(space_type)

    if space_type == SPHERICAL:
        return matrix.T.copy()

    if space_type == HYPERBOLIC:
        return LORENTZ @ matrix.T @ LORENTZ

    # Flat: v -> v R + t inverts to v -> (v - t) R^T
    R = matrix[:3, :3]
    t = matrix[3, :3]
    inverse = np.eye(4)
    inverse[:3, :3] = R.T
    inverse[3, :3] = -t @ R.T
    return inverse


def matrix_parity(matrix: np.ndarray, eps: float = 1e-12) -> int:
    """Return +1 for orientation-preserving and -1 for reversing matrices."""
    det = linalg.det(_check_matrix(matrix))

    if abs(det) < eps:
        raise GeometryError(f"Matrix is singular (determinant {det:.3e})")

    return 1 if det > 0 else -1


def matrices_equal(a: np.ndarray, b: np.ndarray, eps: float = 1e-6) -> bool:
    """Compare two matrices entry by entry."""
    return bool(np.all(np.abs(np.asarray(a) - np.asarray(b)) <= eps))


def is_identity(matrix: np.ndarray, eps: float = 1e-6) -> bool:
    return matrices_equal(matrix, np.eye(4), eps)


def normalize_vector(v: np.ndarray, space_type: str) -> np.ndarray:
    """Scale a homogeneous vector onto the model of its geometry.

    Spherical vectors go to the unit 3-sphere, flat vectors to w = 1 and
    hyperbolic vectors to the upper sheet of the hyperboloid <v,v> = -1.

    Args:
        v: Homogeneous 4-vector
        space_type: Geometry of the vector

    Returns:
        Normalized 4-vector
    """
    v = np.asarray(v, dtype=np.float64)
    _check_space_type(space_type)

    if space_type == SPHERICAL:
        length = linalg.norm(v)
        if length == 0.0:
            raise GeometryError("Cannot normalize the zero vector")
        return v / length

    if space_type == FLAT:
        if v[3] == 0.0:
            raise GeometryError("Cannot normalize a flat vector with w = 0")
        return v / v[3]

    lorentz_norm = v @ LORENTZ @ v
    if lorentz_norm >= 0.0:
        raise GeometryError(f"Hyperbolic vector is not timelike (<v,v> = {lorentz_norm:.3e})")
    v = v / np.sqrt(-lorentz_norm)
    return v if v[3] > 0 else -v


def geometric_distance(v: np.ndarray, space_type: str) -> float:
    """Distance from the basepoint (0, 0, 0, 1) to the point v.

    Args:
        v: Homogeneous 4-vector, not necessarily normalized
        space_type: Geometry of the vector

    Returns:
        Distance in the intrinsic metric of the geometry
    """
    v = normalize_vector(v, space_type)

    if space_type == SPHERICAL:
        return float(np.arccos(np.clip(v[3], -1.0, 1.0)))
    if space_type == FLAT:
        return float(linalg.norm(v[:3]))
    return float(np.arccosh(max(v[3], 1.0)))


def translation_distance(matrix: np.ndarray, space_type: str) -> float:
    """Distance a generator moves the basepoint."""
    return geometric_distance(_check_matrix(matrix)[3], space_type)


def matrix_order(matrix: np.ndarray, max_order: int = 120, eps: float = 1e-6) -> Optional[int]:
    """Find the smallest n >= 1 with M^n equal to the identity.

    Args:
        matrix: 4x4 matrix
        max_order: Largest order to try
        eps: Entry-wise tolerance for the identity test

    Returns:
        The order, or None if no power up to max_order is the identity
    """
    matrix = _check_matrix(matrix)

    power = matrix.copy()
    for n in range(1, max_order + 1):
        if is_identity(power, eps):
            return n
        power = power @ matrix

    return None


def find_inverse_pairs(
    matrices: Sequence[np.ndarray],
    space_type: str,
    eps: float = 1e-6
) -> List[Tuple[int, int]]:
    """Find generators that are listed together with their inverses.

    Args:
        matrices: Nx4x4 generators
        space_type: Geometry of the generators
        eps: Entry-wise tolerance

    Returns:
        Index pairs (i, j), i <= j, with matrices[j] the inverse of matrices[i];
        (i, i) marks an involution
    """
    pairs = []
    for i, matrix in enumerate(matrices):
        inverse = geometric_inverse(matrix, space_type)
        for j in range(i, len(matrices)):
            if matrices_equal(matrices[j], inverse, eps):
                pairs.append((i, j))
                break

    return pairs
