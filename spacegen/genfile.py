"""Reading and writing matrix-generator files.

A generator file is plain text: comment lines start with '#', blank lines
separate blocks, and every other line holds the four entries of one matrix
row. Four consecutive rows make one 4x4 matrix. Files may be UTF-8 (with or
without a byte-order mark) or Latin-1, but non-ASCII characters may appear
only in comments.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)

ROWS_PER_MATRIX = 4
FIELDS_PER_ROW = 4

UTF8_BOM = b"\xef\xbb\xbf"
UTF16_BOMS = (b"\xff\xfe", b"\xfe\xff")

_NUMBER = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_FIELD_SEPARATOR = re.compile(r"[ \t]+")


class GeneratorFileError(ValueError):
    """Raised when a generator file does not follow the .gen format."""


def decode_generator_bytes(data: bytes) -> str:
    """Decode the raw bytes of a generator file.

    Args:
        data: File contents

    Returns:
        Decoded text without a byte-order mark
    """
    if data[:2] in UTF16_BOMS:
        raise GeneratorFileError(
            "The matrix file is in UTF-16 format. Please convert to UTF-8."
        )

    if data.startswith(UTF8_BOM):
        data = data[len(UTF8_BOM):]

    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("Generator file is not valid UTF-8, decoding as Latin-1")
        return data.decode("latin-1")


def strip_comment(line: str) -> str:
    """Remove a '#' comment, which runs to the end of the line."""
    return line.split("#", 1)[0]


def _lines(text: str) -> List[str]:
    # Only CR, LF and CRLF end a line; other Unicode breaks stay inside comments
    if text.startswith("\ufeff"):
        text = text[1:]
    return _LINE_BREAK.split(text)


def _is_blank(line: str) -> bool:
    return not line.strip(" \t")


def _parse_row(line: str, line_number: int) -> List[float]:
    fields = _FIELD_SEPARATOR.split(line.strip(" \t"))
    if len(fields) != FIELDS_PER_ROW:
        raise GeneratorFileError(
            f"Line {line_number}: expected {FIELDS_PER_ROW} numbers, got {len(fields)} fields"
        )

    for field in fields:
        if not _NUMBER.fullmatch(field):
            raise GeneratorFileError(
                f"Line {line_number}: matrix file contains text other than numbers ({field!r})"
            )

    return [float(field) for field in fields]


def parse_generators(text: str) -> np.ndarray:
    """Parse the matrices of a generator file.

    Args:
        text: Decoded file contents

    Returns:
        Nx4x4 array of matrices in file order (N may be 0)
    """
    matrices = []
    block: List[List[float]] = []
    block_start = 0

    def close_block() -> None:
        if not block:
            return
        if len(block) % ROWS_PER_MATRIX != 0:
            raise GeneratorFileError(
                f"Line {block_start}: matrix block has {len(block)} rows, "
                f"which is not a multiple of {ROWS_PER_MATRIX}"
            )
        for i in range(0, len(block), ROWS_PER_MATRIX):
            matrices.append(block[i:i + ROWS_PER_MATRIX])
        block.clear()

    for line_number, raw_line in enumerate(_lines(text), start=1):
        if _is_blank(raw_line):
            close_block()
            continue

        line = strip_comment(raw_line)
        if _is_blank(line):
            continue

        if not block:
            block_start = line_number
        block.append(_parse_row(line, line_number))

    close_block()

    if not matrices:
        return np.zeros((0, ROWS_PER_MATRIX, FIELDS_PER_ROW))

    generators = np.array(matrices, dtype=np.float64)
    logger.debug(f"Parsed {generators.shape[0]} generator matrices")
    return generators


def parse_header(text: str) -> List[str]:
    """Collect the comment lines that precede the first matrix row.

    Args:
        text: Decoded file contents

    Returns:
        Comment text with the leading '#' and whitespace removed
    """
    header = []
    for raw_line in _lines(text):
        stripped = raw_line.strip(" \t")
        if not stripped:
            continue
        if not stripped.startswith("#"):
            break
        header.append(stripped[1:].strip(" \t"))

    return header


def parse_generator_file(text: str) -> Tuple[np.ndarray, List[str]]:
    """Parse both the matrices and the header of a generator file."""
    return parse_generators(text), parse_header(text)


def load_generator_file(path: Union[str, os.PathLike]) -> Tuple[np.ndarray, List[str]]:
    """Read a generator file from disk.

    Args:
        path: Path to a .gen file

    Returns:
        Tuple of (Nx4x4 matrices, header lines)
    """
    path = Path(path)
    logger.info(f"Reading generators from {path}")

    text = decode_generator_bytes(path.read_bytes())
    try:
        matrices, header = parse_generator_file(text)
    except GeneratorFileError as e:
        raise GeneratorFileError(f"{path.name}: {e}") from e

    logger.info(f"Read {matrices.shape[0]} generators from {path.name}")
    return matrices, header


def read_generators(path: Union[str, os.PathLike]) -> np.ndarray:
    """Read only the matrices of a generator file."""
    matrices, _ = load_generator_file(path)
    return matrices


def format_generators(
    matrices: np.ndarray,
    comments: Optional[Sequence[str]] = None,
    precision: int = 17
) -> str:
    """Serialize matrices in the .gen format.

    Args:
        matrices: Nx4x4 array (or a single 4x4 matrix)
        comments: Header lines written as '#' comments; a comment with
            line breaks becomes several comment lines
        precision: Digits after the decimal point

    Returns:
        File contents ending in a newline
    """
    matrices = np.asarray(matrices, dtype=np.float64)
    if matrices.ndim == 2:
        matrices = matrices[np.newaxis]
    if matrices.ndim != 3 or matrices.shape[1:] != (ROWS_PER_MATRIX, FIELDS_PER_ROW):
        raise ValueError(f"Expected Nx4x4 matrices, got shape {matrices.shape}")
    if precision < 0:
        raise ValueError(f"Precision must be non-negative, got {precision}")

    lines = []
    for comment in comments or []:
        for comment_line in _LINE_BREAK.split(comment):
            lines.append(f"#\t{comment_line}" if comment_line else "#")
    if lines:
        lines.append("")

    for i, matrix in enumerate(matrices):
        if i > 0:
            lines.append("")
        for row in matrix:
            lines.append("  ".join(f"{value: .{precision}f}" for value in row))

    return "\n".join(lines) + "\n"


def write_generators(
    path: Union[str, os.PathLike],
    matrices: np.ndarray,
    comments: Optional[Sequence[str]] = None,
    precision: int = 17
) -> None:
    """Write matrices to a .gen file, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    text = format_generators(matrices, comments, precision)
    path.write_text(text, encoding="utf-8")

    n_matrices = np.shape(matrices)[0] if np.ndim(matrices) == 3 else 1
    logger.info(f"Wrote {n_matrices} generators to {path}")
