"""Visualization utilities for generator sets.

This module draws the generator matrices themselves and the images of
the basepoint under each generator and its inverse.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np

from spacegen import isometry

logger = logging.getLogger(__name__)


def save_generator_heatmaps(
    matrices: np.ndarray,
    output_path: str,
    titles: Optional[Sequence[str]] = None
) -> None:
    """Create and save an annotated heatmap of each generator.

    Args:
        matrices: Nx4x4 generators
        output_path: Path to save the visualization
        titles: Optional per-generator subplot titles
    """
    n = len(matrices)
    if n == 0:
        logger.warning("No generators to visualize")
        return

    fig, axs = plt.subplots(1, n, figsize=(4 * n, 4), squeeze=False)
    limit = max(float(np.max(np.abs(matrices))), 1e-12)

    for i, (ax, matrix) in enumerate(zip(axs[0], matrices)):
        ax.imshow(matrix, cmap="coolwarm", vmin=-limit, vmax=limit)

        for row in range(4):
            for col in range(4):
                ax.text(col, row, f"{matrix[row, col]:.3f}", ha="center", va="center", fontsize=8)

        ax.set_xticks(range(4))
        ax.set_yticks(range(4))
        ax.set_xticklabels(["x", "y", "z", "w"])
        ax.set_yticklabels(["x", "y", "z", "w"])
        ax.set_title(titles[i] if titles is not None else f"Generator {i}")

    plt.tight_layout()

    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)

    logger.info(f"Generator heatmaps saved to {output_path}")


def save_basepoint_images(
    matrices: np.ndarray,
    space_type: str,
    output_path: str
) -> None:
    """Plot the basepoint and its images under the generators and inverses.

    Points are drawn in the projective chart (x, y, z) / w, which is the
    gnomonic chart for spherical space and the Klein model for hyperbolic
    space. Images with w = 0 lie at infinity in this chart and are skipped.

    Args:
        matrices: Nx4x4 generators
        space_type: Geometry of the generators
        output_path: Path to save the visualization
    """
    fig = plt.figure(figsize=(10, 8))
    ax = fig.add_subplot(111, projection='3d')

    ax.scatter([0], [0], [0], c='black', marker='*', s=120, label='Basepoint')

    colors = plt.cm.tab10.colors
    for i, matrix in enumerate(matrices):
        color = colors[i % len(colors)]
        inverse = isometry.geometric_inverse(matrix, space_type)

        for image, marker, label in (
            (matrix[3], 'o', f'g{i}'),
            (inverse[3], 'x', f'g{i}^-1'),
        ):
            if abs(image[3]) < 1e-9:
                logger.debug(f"Image under {label} lies at infinity, skipping")
                continue
            point = image[:3] / image[3]
            ax.scatter([point[0]], [point[1]], [point[2]], color=color, marker=marker, s=60, label=label)
            ax.plot([0, point[0]], [0, point[1]], [0, point[2]], '-', color=color, alpha=0.5)

    ax.set_xlabel('X')
    ax.set_ylabel('Y')
    ax.set_zlabel('Z')
    ax.set_title(f'Basepoint images ({space_type})')
    ax.legend(loc='upper right', fontsize=8)
    ax.set_box_aspect([1, 1, 1])

    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)

    logger.info(f"Basepoint images saved to {output_path}")
