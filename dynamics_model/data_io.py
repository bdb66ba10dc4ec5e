"""
Export formats for training data.

Text format: one line per sample, feature values followed by outcome values,
space separated, no header and no line terminator after the last sample.

Binary snapshot format: a matrix of doubles, rows = samples,
cols = features + outcomes.
    bytes 0-7    rows  (int64, little-endian)
    bytes 8-15   cols  (int64, little-endian)
    bytes 16-    rows * cols float64 values, little-endian, row-major
"""
import os
from typing import Sequence, Tuple
import numpy as np

from .errors import InvalidInput
from .utils import ensure_dir

_HEADER = np.dtype('<i8')
_VALUES = np.dtype('<f8')


def _ensure_parent(filename: str) -> None:
    ensure_dir(os.path.dirname(os.path.abspath(filename)))


def save_text(filename: str, samples: Sequence[np.ndarray], observations: np.ndarray) -> None:
    """Write samples and outcomes in the whitespace-delimited row-per-sample layout."""
    samples = np.atleast_2d(np.asarray(samples, dtype=float))
    observations = np.atleast_2d(np.asarray(observations, dtype=float))
    if samples.shape[0] != observations.shape[0]:
        raise InvalidInput(f"got {samples.shape[0]} samples but {observations.shape[0]} outcomes")

    _ensure_parent(filename)
    lines = [
        " ".join(repr(float(v)) for v in np.concatenate([s, o]))
        for s, o in zip(samples, observations)
    ]
    with open(filename, 'w') as f:
        f.write("\n".join(lines))


def load_text(filename: str, input_dim: int) -> Tuple[np.ndarray, np.ndarray]:
    data = np.loadtxt(filename, ndmin=2)
    return split_dataset(data, input_dim)


def write_binary(filename: str, matrix: np.ndarray) -> None:
    matrix = np.atleast_2d(np.asarray(matrix, dtype=float))
    _ensure_parent(filename)
    with open(filename, 'wb') as f:
        f.write(np.asarray(matrix.shape, dtype=_HEADER).tobytes())
        f.write(np.ascontiguousarray(matrix, dtype=_VALUES).tobytes(order='C'))


def read_binary(filename: str) -> np.ndarray:
    with open(filename, 'rb') as f:
        header = np.frombuffer(f.read(2 * _HEADER.itemsize), dtype=_HEADER)
        if header.size != 2:
            raise InvalidInput(f"{filename}: truncated header")
        rows, cols = int(header[0]), int(header[1])
        values = np.frombuffer(f.read(), dtype=_VALUES)
    if values.size != rows * cols:
        raise InvalidInput(f"{filename}: expected {rows * cols} values, found {values.size}")
    return values.reshape(rows, cols).copy()


def join_dataset(X: np.ndarray, Y: np.ndarray) -> np.ndarray:
    """Rows of [features | outcomes]."""
    return np.hstack([np.atleast_2d(X), np.atleast_2d(Y)])


def split_dataset(data: np.ndarray, input_dim: int) -> Tuple[np.ndarray, np.ndarray]:
    data = np.atleast_2d(np.asarray(data, dtype=float))
    if not 0 < input_dim < data.shape[1]:
        raise InvalidInput(f"input_dim {input_dim} does not fit a matrix with {data.shape[1]} columns")
    return data[:, :input_dim].copy(), data[:, input_dim:].copy()
