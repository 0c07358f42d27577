"""Dense and quantized parameter containers.

Rows of a ``Matrix`` are updated in place by every training thread with no
locking. Two threads writing the same row at the same time may lose part of
an update; training treats that as noise.
"""

from typing import Iterable, List, Optional, Sequence

import numpy as np
import torch


class Vector:
    """A dense float32 vector."""

    def __init__(self, size: int):
        self.data = torch.zeros(size, dtype=torch.float32)

    @classmethod
    def from_tensor(cls, tensor: torch.Tensor) -> "Vector":
        vec = cls.__new__(cls)
        vec.data = tensor.detach().to(torch.float32).clone()
        return vec

    def __len__(self) -> int:
        return self.data.shape[0]

    def __getitem__(self, i: int) -> float:
        return float(self.data[i])

    def __setitem__(self, i: int, value: float) -> None:
        self.data[i] = value

    def zero_(self) -> "Vector":
        self.data.zero_()
        return self

    def mul_(self, a: float) -> "Vector":
        self.data.mul_(a)
        return self

    def norm(self) -> float:
        return float(torch.linalg.vector_norm(self.data))

    def add_vector(self, other: "Vector", a: float = 1.0) -> "Vector":
        self.data.add_(other.data, alpha=a)
        return self

    def add_row(self, matrix: "Matrix", i: int, a: float = 1.0) -> "Vector":
        """Accumulate ``a * matrix[i]`` into this vector (axpy)."""
        matrix.add_row_to_vector(self, i, a)
        return self

    def argmax(self) -> int:
        return int(torch.argmax(self.data))

    def tolist(self) -> List[float]:
        return self.data.tolist()

    def numpy(self) -> np.ndarray:
        return self.data.numpy().copy()

    def __str__(self) -> str:
        return " ".join(f"{v:.5g}" for v in self.data.tolist())


class Matrix:
    """A dense float32 matrix whose rows are shared across training threads."""

    quantized = False

    def __init__(self, rows: int = 0, cols: int = 0):
        self.data = torch.zeros(rows, cols, dtype=torch.float32)

    @classmethod
    def from_tensor(cls, tensor: torch.Tensor) -> "Matrix":
        mat = cls.__new__(cls)
        mat.data = tensor.detach().to(torch.float32).contiguous()
        return mat

    @property
    def rows(self) -> int:
        return self.data.shape[0]

    @property
    def cols(self) -> int:
        return self.data.shape[1]

    def zero_(self) -> None:
        self.data.zero_()

    def uniform_(self, bound: float, generator: Optional[torch.Generator] = None) -> None:
        self.data.uniform_(-bound, bound, generator=generator)

    def dot_row(self, vec: Vector, i: int) -> float:
        d = float(torch.dot(self.data[i], vec.data))
        if d != d:
            raise FloatingPointError("Encountered NaN.")
        return d

    def add_vector_to_row(self, vec: Vector, i: int, a: float) -> None:
        self.data[i].add_(vec.data, alpha=a)

    def add_vector_to_rows(self, vec: Vector, ids: Sequence[int], a: float = 1.0) -> None:
        """Add ``a * vec`` to every listed row; repeated ids add repeatedly."""
        if not ids:
            return
        index = torch.as_tensor(ids, dtype=torch.long)
        update = (vec.data * a).expand(len(ids), -1)
        self.data.index_add_(0, index, update)

    def add_row_to_vector(self, vec: Vector, i: int, a: float = 1.0) -> None:
        vec.data.add_(self.data[i], alpha=a)

    def average_rows(self, ids: Sequence[int], out: Vector) -> Vector:
        """Write the mean of the listed rows into ``out``."""
        if not ids:
            out.zero_()
            return out
        index = torch.as_tensor(ids, dtype=torch.long)
        torch.mean(self.data.index_select(0, index), dim=0, out=out.data)
        return out

    def multiply(self, vec: Vector) -> torch.Tensor:
        """Return ``self @ vec`` as a tensor of row scores."""
        return torch.mv(self.data, vec.data)

    def l2_norm_row(self, i: int) -> float:
        norm = float(torch.linalg.vector_norm(self.data[i]))
        if norm != norm:
            raise FloatingPointError("Encountered NaN.")
        return norm

    def row_numpy(self, i: int) -> np.ndarray:
        return self.data[i].numpy().copy()

    def numpy(self) -> np.ndarray:
        return self.data.numpy()

    def dump_lines(self) -> Iterable[str]:
        yield f"{self.rows} {self.cols}"
        for row in self.data.tolist():
            yield " ".join(f"{v:.5g}" for v in row)


class QuantMatrix:
    """Read-only matrix stored as int8 codes with one float32 scale per row."""

    quantized = True

    def __init__(self, codes: torch.Tensor, scales: torch.Tensor):
        self.codes = codes.to(torch.int8).contiguous()
        self.scales = scales.to(torch.float32).contiguous()

    @classmethod
    def from_matrix(cls, matrix: Matrix) -> "QuantMatrix":
        data = matrix.data
        scales = data.abs().amax(dim=1) / 127.0
        safe = torch.where(scales > 0, scales, torch.ones_like(scales))
        codes = torch.round(data / safe.unsqueeze(1)).clamp_(-127, 127)
        return cls(codes, scales)

    @property
    def rows(self) -> int:
        return self.codes.shape[0]

    @property
    def cols(self) -> int:
        return self.codes.shape[1]

    def _rows(self, index: torch.Tensor) -> torch.Tensor:
        return self.codes.index_select(0, index).to(torch.float32) * self.scales.index_select(
            0, index
        ).unsqueeze(1)

    def dequantize(self) -> torch.Tensor:
        return self.codes.to(torch.float32) * self.scales.unsqueeze(1)

    def dot_row(self, vec: Vector, i: int) -> float:
        return float(torch.dot(self.codes[i].to(torch.float32), vec.data)) * float(
            self.scales[i]
        )

    def add_row_to_vector(self, vec: Vector, i: int, a: float = 1.0) -> None:
        vec.data.add_(self.codes[i].to(torch.float32), alpha=a * float(self.scales[i]))

    def average_rows(self, ids: Sequence[int], out: Vector) -> Vector:
        if not ids:
            out.zero_()
            return out
        index = torch.as_tensor(ids, dtype=torch.long)
        torch.mean(self._rows(index), dim=0, out=out.data)
        return out

    def multiply(self, vec: Vector) -> torch.Tensor:
        return torch.mv(self.codes.to(torch.float32), vec.data) * self.scales

    def l2_norm_row(self, i: int) -> float:
        return float(torch.linalg.vector_norm(self.codes[i].to(torch.float32))) * float(
            self.scales[i]
        )

    def row_numpy(self, i: int) -> np.ndarray:
        return (self.codes[i].to(torch.float32) * self.scales[i]).numpy()

    def numpy(self) -> np.ndarray:
        return self.dequantize().numpy()

    def _read_only(self, *args, **kwargs):
        raise TypeError("Quantized matrices are read-only.")

    add_vector_to_row = _read_only
    add_vector_to_rows = _read_only
