"""Sample generator files bundled with the package."""

from __future__ import annotations

import logging
from importlib.resources import files
from pathlib import Path
from typing import List, Tuple

import numpy as np

from spacegen.genfile import load_generator_file

logger = logging.getLogger(__name__)

GENERATOR_SUFFIX = ".gen"


def _data_dir():
    return files("spacegen") / "data"


def available_spaces() -> List[str]:
    """List the names of the bundled spaces, e.g. "klein_space"."""
    names = [
        Path(entry.name).stem
        for entry in _data_dir().iterdir()
        if entry.name.endswith(GENERATOR_SUFFIX)
    ]
    return sorted(names)


def space_path(name: str) -> Path:
    """Locate a bundled generator file by name.

    Args:
        name: Space name with or without the .gen suffix

    Returns:
        Path to the file
    """
    stem = name[:-len(GENERATOR_SUFFIX)] if name.endswith(GENERATOR_SUFFIX) else name
    if stem not in available_spaces():
        raise KeyError(f"Unknown space {name!r}, available: {', '.join(available_spaces())}")

    return Path(str(_data_dir() / f"{stem}{GENERATOR_SUFFIX}"))


def load_space(name: str) -> Tuple[np.ndarray, List[str]]:
    """Load a bundled space as (Nx4x4 matrices, header lines)."""
    logger.debug(f"Loading bundled space {name}")
    return load_generator_file(space_path(name))
