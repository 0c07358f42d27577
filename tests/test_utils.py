"""Tests for utility functions.

Covers seeding, atomic writes and the ``.vec`` text format.
"""

import os
import random

import numpy as np
import pytest
import torch

from hornvecs.errors import ConfigurationError, ModelIOError
from hornvecs.utils import atomic_write, export_vectors, format_vector, load_vectors, set_seed


class TestSetSeed:
    """Test cases for set_seed function."""

    def test_set_seed_reproducibility(self):
        """Test that set_seed makes random number generation reproducible."""
        set_seed(42)
        first = (random.random(), np.random.random(), torch.randn(3))
        set_seed(42)
        second = (random.random(), np.random.random(), torch.randn(3))

        assert first[0] == second[0]
        assert first[1] == second[1]
        assert torch.equal(first[2], second[2])


class TestAtomicWrite:
    """Test cases for atomic_write."""

    def test_writes_file(self, tmp_path):
        path = str(tmp_path / "out.txt")
        with atomic_write(path, "w") as f:
            f.write("hello\n")
        with open(path, encoding="utf-8") as f:
            assert f.read() == "hello\n"
        assert os.listdir(tmp_path) == ["out.txt"]

    def test_failure_keeps_old_file(self, tmp_path):
        """A failed write leaves neither a partial file nor a temporary file."""
        path = tmp_path / "out.txt"
        path.write_text("old", encoding="utf-8")

        with pytest.raises(RuntimeError):
            with atomic_write(str(path), "w") as f:
                f.write("new")
                raise RuntimeError("boom")

        assert path.read_text(encoding="utf-8") == "old"
        assert os.listdir(tmp_path) == ["out.txt"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ModelIOError) as exc_info:
            with atomic_write(str(tmp_path / "nope" / "out.bin")) as f:
                f.write(b"x")
        assert exc_info.value.path.endswith("out.bin")


class TestTensorBoardLogger:
    """Test cases for TensorBoardLogger."""

    def test_writes_events(self, tmp_path):
        from hornvecs.config import Args
        from hornvecs.utils.tensorboard_logger import TensorBoardLogger

        args = Args.for_mode("skipgram", dim=8)
        name = TensorBoardLogger.experiment_name(args)
        assert name == "skipgram_ns_dim8_lr0.05"

        with TensorBoardLogger(str(tmp_path), experiment_name=name) as tb_logger:
            tb_logger.log_training_metrics(10, 1.5, 0.05, 1000.0, 0.5)
            tb_logger.log_matrix_stats("input", torch.randn(6, 8), 10)
            tb_logger.log_system_stats(10)
            tb_logger.log_hyperparameters(args, {"final_loss": 1.5})

        assert tb_logger.log_dir == os.path.join(str(tmp_path), name)
        assert any((tmp_path / name).rglob("events.out.tfevents.*"))

    def test_system_stats_disabled(self, tmp_path):
        from hornvecs.utils.tensorboard_logger import TensorBoardLogger

        tb_logger = TensorBoardLogger(str(tmp_path), log_system_stats=False)
        assert tb_logger.process is None
        tb_logger.log_system_stats(0)
        tb_logger.close()
        assert os.path.basename(tb_logger.log_dir).startswith("run_")


class TestVectorsFormat:
    """Test cases for export_vectors and load_vectors."""

    def test_format_vector(self):
        assert format_vector([1.0, -0.5, 1.0 / 3.0]) == "1 -0.5 0.33333"

    def test_export_then_load(self, tmp_path):
        path = str(tmp_path / "model.vec")
        rows = [np.array([0.5, -1.0], dtype=np.float32), np.array([2.0, 0.0], dtype=np.float32)]
        export_vectors(path, ["a", "b"], rows, 2)

        with open(path, encoding="utf-8") as f:
            lines = f.read().splitlines()
        assert lines == ["2 2", "a 0.5 -1", "b 2 0"]

        words, matrix = load_vectors(path, dim=2)
        assert words == ["a", "b"]
        assert matrix.shape == (2, 2)
        assert matrix.dtype == np.float32
        assert matrix[0].tolist() == [0.5, -1.0]

    def test_dimension_mismatch(self, tmp_path):
        path = tmp_path / "model.vec"
        path.write_text("1 3\nword 1 2 3\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_vectors(str(path), dim=4)

    def test_truncated_file(self, tmp_path):
        path = tmp_path / "model.vec"
        path.write_text("2 3\nword 1 2 3\nother 1\n", encoding="utf-8")
        with pytest.raises(ModelIOError):
            load_vectors(str(path))

    def test_malformed_header(self, tmp_path):
        path = tmp_path / "model.vec"
        path.write_text("word 1 2 3\n", encoding="utf-8")
        with pytest.raises(ModelIOError):
            load_vectors(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ModelIOError):
            load_vectors(str(tmp_path / "missing.vec"))
