"""Isometry-group generators for 3-manifolds.

A Python package that reads, checks and writes `.gen` matrix-generator files,
the 4x4 homogeneous matrices that generate the holonomy group of a spherical,
flat or hyperbolic 3-manifold.
"""

from __future__ import annotations

__version__ = "0.1.0"
