import os
import struct
import tempfile
import unittest

import numpy as np

from dynamics_model import InvalidInput, assemble_dataset, compute_statistics
from dynamics_model.data_io import (join_dataset, load_text, read_binary, save_text,
                                    split_dataset, write_binary)


class TestAssembleDataset(unittest.TestCase):
    def test_concatenates_state_and_action(self):
        X, Y = assemble_dataset([([1.0, 2.0], [3.0], [4.0, 5.0]), ([6.0, 7.0], [8.0], [9.0, 10.0])])
        np.testing.assert_array_equal(X, [[1, 2, 3], [6, 7, 8]])
        np.testing.assert_array_equal(Y, [[4, 5], [9, 10]])

    def test_invalid(self):
        for obs in ([], None, [([1.0], [2.0])], [([np.nan], [0.0], [0.0])],
                    [([1.0], [0.0], [1.0]), ([1.0], [0.0], [1.0, 2.0])]):
            with self.assertRaises(InvalidInput):
                assemble_dataset(obs)


class TestStatistics(unittest.TestCase):
    def test_uniform_feature(self):
        X = np.column_stack([np.arange(100.0), -np.arange(100.0)])
        stats = compute_statistics(X)
        np.testing.assert_allclose(stats.limits, [94.05, 94.05])
        np.testing.assert_allclose(stats.means, [49.5, -49.5])
        np.testing.assert_allclose(stats.sigmas, np.std(np.arange(100.0), ddof=1) * np.ones(2))

    def test_limits_use_absolute_values(self):
        X = np.array([[-5.0], [-4.0], [-5.0], [-5.0]])
        np.testing.assert_allclose(compute_statistics(X).limits, [5.0])

    def test_single_sample(self):
        stats = compute_statistics(np.array([[2.0, -3.0]]))
        np.testing.assert_array_equal(stats.sigmas, [0.0, 0.0])
        np.testing.assert_array_equal(stats.limits, [2.0, 3.0])


class TestExportFormats(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.tmp.cleanup()

    def test_text_layout(self):
        filename = os.path.join(self.tmp.name, 'out', 'samples.dat')
        save_text(filename, np.array([[0.5, -1.0], [2.0, 3.25]]), np.array([[4.0, 1e-3], [5.0, 6.0]]))
        with open(filename) as f:
            content = f.read()
        self.assertEqual(content, "0.5 -1.0 4.0 0.001\n2.0 3.25 5.0 6.0")
        X, Y = load_text(filename, 2)
        np.testing.assert_array_equal(X, [[0.5, -1.0], [2.0, 3.25]])
        np.testing.assert_array_equal(Y, [[4.0, 1e-3], [5.0, 6.0]])

    def test_text_mismatched_rows(self):
        with self.assertRaises(InvalidInput):
            save_text(os.path.join(self.tmp.name, 'x.dat'), np.zeros((2, 1)), np.zeros((3, 1)))

    def test_binary_layout(self):
        filename = os.path.join(self.tmp.name, 'data.bin')
        data = join_dataset(np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]]), np.array([[7.0], [8.0], [9.0]]))
        write_binary(filename, data)
        with open(filename, 'rb') as f:
            raw = f.read()
        self.assertEqual(struct.unpack('<qq', raw[:16]), (3, 3))
        self.assertEqual(struct.unpack('<3d', raw[16:40]), (1.0, 2.0, 7.0))
        self.assertEqual(len(raw), 16 + 9 * 8)

        loaded = read_binary(filename)
        np.testing.assert_array_equal(loaded, data)
        X, Y = split_dataset(loaded, 2)
        np.testing.assert_array_equal(Y, [[7.0], [8.0], [9.0]])

    def test_truncated_binary(self):
        filename = os.path.join(self.tmp.name, 'bad.bin')
        with open(filename, 'wb') as f:
            f.write(struct.pack('<qq', 2, 2) + struct.pack('<d', 1.0))
        with self.assertRaises(InvalidInput):
            read_binary(filename)

    def test_split_checks_width(self):
        with self.assertRaises(InvalidInput):
            split_dataset(np.zeros((2, 3)), 3)


if __name__ == '__main__':
    unittest.main()
