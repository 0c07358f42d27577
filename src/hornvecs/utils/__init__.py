"""Utility functions for hornvecs."""

import os
import random
import tempfile
from contextlib import contextmanager
from typing import Iterable, List, Tuple

import numpy as np
import torch

from hornvecs.errors import ConfigurationError, ModelIOError


def set_seed(seed: int) -> None:
    """Set random seeds for reproducibility.

    Args:
        seed: Random seed value
    """
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)


@contextmanager
def atomic_write(path: str, mode: str = "wb"):
    """Write to a temporary sibling of ``path`` and move it into place on success.

    Args:
        path: Final destination
        mode: "wb" or "w"

    Yields:
        Open file object

    Raises:
        ModelIOError: If the destination cannot be written
    """
    directory = os.path.dirname(os.path.abspath(path))
    encoding = None if "b" in mode else "utf-8"
    try:
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{os.path.basename(path)}.", suffix=".tmp", dir=directory
        )
    except OSError as e:
        raise ModelIOError(f"Cannot write output ({e.strerror})", path) from e

    try:
        with os.fdopen(fd, mode, encoding=encoding) as f:
            yield f
        os.replace(tmp_path, path)
    except ModelIOError:
        _remove_quietly(tmp_path)
        raise
    except OSError as e:
        _remove_quietly(tmp_path)
        raise ModelIOError(f"Cannot write output ({e.strerror})", path) from e
    except BaseException:
        _remove_quietly(tmp_path)
        raise


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def format_vector(values: Iterable[float]) -> str:
    return " ".join(f"{v:.5g}" for v in values)


def export_vectors(path: str, words: List[str], rows: Iterable[np.ndarray], dim: int) -> None:
    """Write vectors in the text ``.vec`` format.

    The first line is ``"<count> <dim>"``; every following line is a token
    followed by its ``dim`` values.

    Args:
        path: Output path
        words: Token of each row
        rows: One vector per token
        dim: Vector dimension
    """
    with atomic_write(path, "w") as f:
        f.write(f"{len(words)} {dim}\n")
        for word, row in zip(words, rows):
            f.write(f"{word} {format_vector(row)}\n")


def load_vectors(path: str, dim: int = None) -> Tuple[List[str], np.ndarray]:
    """Read vectors in the text ``.vec`` format.

    Args:
        path: Path to a ``.vec`` file
        dim: Expected dimension, checked when given

    Returns:
        Tuple of (words, matrix of shape (len(words), dim))

    Raises:
        ModelIOError: If the file cannot be read or is malformed
        ConfigurationError: If the dimension does not match ``dim``
    """
    try:
        f = open(path, "r", encoding="utf-8", errors="replace")
    except OSError as e:
        raise ModelIOError(f"Cannot open vectors ({e.strerror})", path) from e

    with f:
        header = f.readline().split()
        if len(header) != 2:
            raise ModelIOError("Malformed vectors header", path)
        n, file_dim = int(header[0]), int(header[1])
        if dim is not None and file_dim != dim:
            raise ConfigurationError(
                f"Dimension of pretrained vectors ({file_dim}) does not match "
                f"dimension ({dim})!"
            )

        words = []
        matrix = np.zeros((n, file_dim), dtype=np.float32)
        for i in range(n):
            parts = f.readline().split()
            if len(parts) < file_dim + 1:
                raise ModelIOError(f"Truncated vectors file at row {i}", path)
            words.append(parts[0])
            matrix[i] = np.asarray(parts[1 : file_dim + 1], dtype=np.float32)

    return words, matrix
