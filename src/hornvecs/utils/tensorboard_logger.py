"""TensorBoard logging for hornvecs training runs."""

import os
import time
from typing import Dict, Optional

import psutil
import torch
from torch.utils.tensorboard import SummaryWriter

from hornvecs.config import Args


class TensorBoardLogger:
    """Writes progress reports of one training run to a TensorBoard directory.

    Steps are token counts, so runs with different thread counts line up on
    the same axis.
    """

    def __init__(
        self,
        log_dir: str,
        log_system_stats: bool = True,
        experiment_name: Optional[str] = None,
    ):
        """Initialize TensorBoard logger.

        Args:
            log_dir: Root directory for TensorBoard logs
            log_system_stats: Whether to log CPU and memory usage
            experiment_name: Subdirectory for this run; a timestamp when omitted
        """
        run_name = experiment_name or time.strftime("run_%Y%m%d_%H%M%S")
        self.log_dir = os.path.join(log_dir, run_name)
        self.writer = SummaryWriter(self.log_dir)
        self.process = psutil.Process() if log_system_stats else None

    @staticmethod
    def experiment_name(args: Args) -> str:
        return f"{args.model}_{args.loss}_dim{args.dim}_lr{args.lr}"

    def log_hyperparameters(self, args: Args, metrics: Dict[str, float]):
        """Record the run's arguments next to its final metrics.

        Args:
            args: Training arguments
            metrics: Final metrics, e.g. ``{"final_loss": ...}``
        """
        hparams = {}
        for key, value in args.to_dict().items():
            # add_hparams only accepts scalars and strings
            if value is None:
                hparams[key] = ""
            elif isinstance(value, (bool, int, float, str)):
                hparams[key] = value
            else:
                hparams[key] = str(value)
        self.writer.add_hparams(hparams, metrics)

    def log_training_metrics(
        self,
        step: int,
        loss: float,
        learning_rate: float,
        words_per_sec_per_thread: float,
        progress: float,
    ):
        """Log one progress report.

        Args:
            step: Number of tokens processed so far
            loss: Average loss of the reporting thread
            learning_rate: Current learning rate
            words_per_sec_per_thread: Throughput of one worker
            progress: Fraction of the token budget consumed
        """
        scalars = {
            "loss": loss,
            "learning_rate": learning_rate,
            "words_per_sec_per_thread": words_per_sec_per_thread,
            "progress": progress,
        }
        for name, value in scalars.items():
            self.writer.add_scalar(f"train/{name}", value, step)

    def log_matrix_stats(self, name: str, matrix: torch.Tensor, step: int):
        """Log the spread of a parameter matrix and a histogram of its row norms.

        Args:
            name: Tag suffix ("input" or "output")
            matrix: Matrix data
            step: Number of tokens processed so far
        """
        if matrix.numel() == 0:
            return
        row_norms = torch.linalg.vector_norm(matrix, dim=1)
        self.writer.add_scalar(f"weights/{name}/mean", float(matrix.mean()), step)
        self.writer.add_scalar(f"weights/{name}/std", float(matrix.std()), step)
        self.writer.add_scalar(f"weights/{name}/max_row_norm", float(row_norms.max()), step)
        self.writer.add_histogram(f"weights/{name}/row_norms", row_norms, step)

    def log_system_stats(self, step: int):
        """Log CPU and memory usage of the machine and of this process."""
        if self.process is None:
            return

        memory = psutil.virtual_memory()
        rss = self.process.memory_info().rss
        self.writer.add_scalar("system/cpu_percent", psutil.cpu_percent(interval=None), step)
        self.writer.add_scalar("system/memory_percent", memory.percent, step)
        self.writer.add_scalar("system/process_memory_mb", rss / 1e6, step)
        self.writer.add_scalar("system/process_threads", self.process.num_threads(), step)

    def close(self):
        self.writer.flush()
        self.writer.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
