"""Tests for the generator file module.

This module tests decoding, parsing and writing of .gen files,
including the bundled sample spaces and malformed input.
"""

import sys
import tempfile
import unittest
from pathlib import Path

import numpy as np
import pytest

# Add parent directory to path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from spacegen import catalog, genfile
from spacegen.genfile import GeneratorFileError


IDENTITY_ROWS = "1 0 0 0\n0 1 0 0\n0 0 1 0\n0 0 0 1\n"


class TestParseGenerators(unittest.TestCase):
    """Test parsing of generator text."""

    def test_single_matrix(self):
        """Four rows make one matrix."""
        matrices = genfile.parse_generators(IDENTITY_ROWS)
        self.assertEqual(matrices.shape, (1, 4, 4))
        np.testing.assert_array_equal(matrices[0], np.eye(4))

    def test_comment_only_input(self):
        """Comment-only and blank-only input yields no matrices."""
        for text in ["", "\n\n   \n", "# just a comment\n#\tanother\n", "#"]:
            matrices = genfile.parse_generators(text)
            self.assertEqual(matrices.shape, (0, 4, 4))

    def test_blocks_and_consecutive_matrices(self):
        """Blank lines separate blocks, and a block may hold several matrices."""
        text = IDENTITY_ROWS + "\n" + IDENTITY_ROWS + IDENTITY_ROWS
        matrices = genfile.parse_generators(text)
        self.assertEqual(matrices.shape, (3, 4, 4))

    def test_comment_line_inside_block(self):
        """A comment line does not split a matrix."""
        text = "1 0 0 0\n0 1 0 0\n# halfway\n0 0 1 0\n0 0 0 1\n"
        matrices = genfile.parse_generators(text)
        self.assertEqual(matrices.shape, (1, 4, 4))

    def test_trailing_comment_and_line_endings(self):
        """Trailing comments and CRLF line endings are accepted."""
        text = "1 0 0 0  # x row\r\n0 1 0 0\r\n0 0 1 0\r\n0.5 -2 +3 1e0\r\n"
        matrices = genfile.parse_generators(text)
        np.testing.assert_array_equal(matrices[0, 3], [0.5, -2.0, 3.0, 1.0])

    def test_byte_order_mark_in_text(self):
        """A leading BOM character is ignored."""
        text = "\ufeff# title\n" + IDENTITY_ROWS
        self.assertEqual(genfile.parse_generators(text).shape, (1, 4, 4))
        self.assertEqual(genfile.parse_header(text), ["title"])

    def test_number_formats(self):
        """Signed decimals with many digits, leading dots and exponents parse."""
        text = (
            "0.55901699437494742410 -.25 +0.75 1.\n"
            "1e-3 -2.5E+2 0 -0\n"
            "0 0 1 0\n"
            "0 0 0 1\n"
        )
        matrices = genfile.parse_generators(text)
        self.assertAlmostEqual(matrices[0, 0, 0], 0.5590169943749474, delta=1e-15)
        self.assertEqual(matrices[0, 0, 1], -0.25)
        self.assertEqual(matrices[0, 1, 1], -250.0)

    def test_wrong_field_count(self):
        """Rows with other than four fields are rejected with a line number."""
        for row in ["1 0 0", "1 0 0 0 0"]:
            text = f"# header\n{row}\n0 1 0 0\n0 0 1 0\n0 0 0 1\n"
            with self.assertRaises(GeneratorFileError) as context:
                genfile.parse_generators(text)
            self.assertIn("Line 2", str(context.exception))

    def test_non_numeric_tokens(self):
        """Text other than numbers is rejected outside comments."""
        for token in ["abc", "nan", "inf", "0x1p3", "1e", "1,0"]:
            text = f"{token} 0 0 0\n0 1 0 0\n0 0 1 0\n0 0 0 1\n"
            with self.assertRaises(GeneratorFileError):
                genfile.parse_generators(text)

    def test_incomplete_block(self):
        """Blocks whose row count is not a multiple of four are rejected."""
        short_block = "1 0 0 0\n0 1 0 0\n0 0 1 0\n\n" + IDENTITY_ROWS
        with self.assertRaises(GeneratorFileError) as context:
            genfile.parse_generators(short_block)
        self.assertIn("3 rows", str(context.exception))

        long_block = IDENTITY_ROWS + "1 0 0 0\n"
        with self.assertRaises(GeneratorFileError):
            genfile.parse_generators(long_block)

    def test_unicode_line_breaks_in_comments(self):
        """Only CR and LF end lines, so other breaks stay inside a comment."""
        data = b"# Notes\x85 more notes\n" + IDENTITY_ROWS.encode("ascii")
        text = genfile.decode_generator_bytes(data)
        self.assertEqual(genfile.parse_generators(text).shape, (1, 4, 4))

        for separator in ["\u2028", "\u2029", "\x0b", "\x0c", "\x1c"]:
            text = f"# first{separator} second\n" + IDENTITY_ROWS
            self.assertEqual(genfile.parse_generators(text).shape, (1, 4, 4))
            self.assertEqual(genfile.parse_header(text), [f"first{separator} second"])

    def test_non_ascii_data(self):
        """Non-ASCII digits and spaces are only legal inside comments."""
        for row in ["\u0661 0 0 0", "1 0 0 \uff10", "1\u00a00 0 0", "1 0\u20030 0"]:
            text = f"{row}\n0 1 0 0\n0 0 1 0\n0 0 0 1\n"
            with self.assertRaises(GeneratorFileError):
                genfile.parse_generators(text)

    def test_header(self):
        """Only comments before the first row belong to the header."""
        text = "\n#\tTitle\n#\n#   second line\n" + IDENTITY_ROWS + "# trailing\n"
        self.assertEqual(genfile.parse_header(text), ["Title", "", "second line"])


class TestDecode(unittest.TestCase):
    """Test decoding of raw file bytes."""

    def test_rejects_utf16(self):
        """UTF-16 data is rejected in either byte order."""
        for bom in genfile.UTF16_BOMS:
            with self.assertRaises(GeneratorFileError) as context:
                genfile.decode_generator_bytes(bom + "# x\n".encode("utf-16-le"))
            self.assertIn("UTF-16", str(context.exception))

    def test_skips_utf8_bom(self):
        """A UTF-8 byte-order mark is dropped."""
        text = genfile.decode_generator_bytes(genfile.UTF8_BOM + b"# \xc3\xa9\n")
        self.assertEqual(text, "# é\n")

    def test_latin1_fallback(self):
        """Latin-1 comments decode when the data is not valid UTF-8."""
        data = b"# Caf\xe9\n" + IDENTITY_ROWS.encode("ascii")
        text = genfile.decode_generator_bytes(data)
        self.assertTrue(text.startswith("# Café"))
        self.assertEqual(genfile.parse_generators(text).shape, (1, 4, 4))


class TestFormatGenerators(unittest.TestCase):
    """Test serialization of generator matrices."""

    def setUp(self):
        """Build a few random orthogonal matrices."""
        rng = np.random.default_rng(7)
        self.matrices = np.array([np.linalg.qr(rng.normal(size=(4, 4)))[0] for _ in range(3)])

    def test_round_trip(self):
        """Formatting then parsing preserves values within 1e-12."""
        text = genfile.format_generators(self.matrices, ["Random rotations"])
        matrices, header = genfile.parse_generator_file(text)

        np.testing.assert_allclose(matrices, self.matrices, rtol=0, atol=1e-12)
        self.assertEqual(header, ["Random rotations"])

    def test_low_precision(self):
        """Values survive to the requested number of digits."""
        text = genfile.format_generators(self.matrices, precision=6)
        matrices = genfile.parse_generators(text)
        np.testing.assert_allclose(matrices, self.matrices, rtol=0, atol=1e-6)

    def test_layout(self):
        """Comments, then one blank line between matrices."""
        text = genfile.format_generators(np.array([np.eye(4), np.eye(4)]), ["A", ""], precision=1)
        lines = text.splitlines()

        self.assertEqual(lines[0], "#\tA")
        self.assertEqual(lines[1], "#")
        self.assertEqual(lines[2], "")
        self.assertEqual(lines[3], " 1.0   0.0   0.0   0.0")
        self.assertEqual(lines[7], "")
        self.assertEqual(len(lines), 12)
        self.assertTrue(text.endswith("\n"))

    def test_multiline_comment(self):
        """Line breaks in a comment become separate comment lines."""
        text = genfile.format_generators(np.eye(4), ["a\n1 2 3 4", "b\r\nc"])

        self.assertEqual(genfile.parse_generators(text).shape, (1, 4, 4))
        self.assertEqual(genfile.parse_header(text), ["a", "1 2 3 4", "b", "c"])

    def test_single_matrix_and_bad_shape(self):
        """A bare 4x4 matrix is accepted, other shapes are not."""
        self.assertEqual(genfile.parse_generators(genfile.format_generators(np.eye(4))).shape, (1, 4, 4))

        with self.assertRaises(ValueError):
            genfile.format_generators(np.zeros((2, 3, 4)))

    def test_write_and_read(self):
        """Files written to disk read back the same."""
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "nested" / "rotations.gen"
            genfile.write_generators(path, self.matrices, ["Random rotations"])

            matrices, header = genfile.load_generator_file(path)
            np.testing.assert_allclose(matrices, self.matrices, rtol=0, atol=1e-12)
            self.assertEqual(header, ["Random rotations"])

    def test_missing_file(self):
        """Missing files raise FileNotFoundError."""
        with self.assertRaises(FileNotFoundError):
            genfile.read_generators("/nonexistent/space.gen")


class TestBundledSpaces(unittest.TestCase):
    """Test the sample spaces shipped with the package."""

    def test_available_spaces(self):
        """Both sample spaces are listed."""
        self.assertEqual(catalog.available_spaces(), ["klein_space", "tetrahedral_space"])

    def test_unknown_space(self):
        with self.assertRaises(KeyError):
            catalog.space_path("poincare_dodecahedral_space")

    def test_klein_space(self):
        """The Klein space has three generators, the first a unit x-translation."""
        matrices, header = catalog.load_space("klein_space")

        self.assertEqual(matrices.shape, (3, 4, 4))
        np.testing.assert_array_equal(
            matrices[0],
            [[1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 1, 0], [1, 0, 0, 1]]
        )
        self.assertEqual(header[0], "Klein Space")

    def test_tetrahedral_space(self):
        """The tetrahedral-space file holds two spherical generators with quarter entries."""
        matrices, header = catalog.load_space("tetrahedral_space.gen")

        self.assertEqual(matrices.shape, (2, 4, 4))
        self.assertTrue(np.all(matrices[:, 3, 3] < 1.0))

        allowed = np.array([0.25, 0.75, 0.55901699437494742410])
        for value in np.abs(matrices).ravel():
            self.assertTrue(np.any(np.isclose(value, allowed, rtol=0, atol=1e-15)), value)

        for matrix in matrices:
            np.testing.assert_allclose(matrix @ matrix.T, np.eye(4), atol=1e-12)
        self.assertEqual(header[0], "Lens Space L(10,3)")

    def test_data_line_count(self):
        """Non-comment, non-blank lines come in multiples of four."""
        for space in catalog.available_spaces():
            text = catalog.space_path(space).read_text(encoding="utf-8")
            data_lines = [
                line for line in text.splitlines()
                if line.strip() and not line.lstrip().startswith("#")
            ]
            self.assertEqual(len(data_lines) % 4, 0)
            self.assertEqual(len(data_lines), 4 * len(genfile.parse_generators(text)))


if __name__ == "__main__":
    unittest.main()
