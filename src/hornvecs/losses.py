"""Loss functions shared by every training mode.

Each loss takes the hidden vector held in a ``State``, scores it against
rows of the output matrix, updates those rows in place and accumulates the
gradient with respect to the hidden vector into ``state.grad``.
"""

import heapq
import math
from typing import List, Sequence, Tuple

import torch

from hornvecs.matrix import Matrix

MAX_SIGMOID = 8.0
LOG_EPS = 1e-5

# Index passed to ``forward`` when a loss trains on all targets at once.
ALL_TARGETS = -1

Prediction = Tuple[float, int]


def std_log(x: float) -> float:
    return math.log(x + LOG_EPS)


def sigmoid(x: float) -> float:
    if x < -MAX_SIGMOID:
        return 0.0
    if x > MAX_SIGMOID:
        return 1.0
    return 1.0 / (1.0 + math.exp(-x))


def find_k_best(k: int, threshold: float, probs: Sequence[float]) -> List[Prediction]:
    """Top ``k`` (log probability, index) pairs with probability >= threshold.

    Sorted by descending score; equal scores keep the lower index first.
    """
    candidates = [(std_log(p), i) for i, p in enumerate(probs) if p >= threshold]
    return heapq.nsmallest(k, candidates, key=lambda c: (-c[0], c[1]))


class Loss:
    """Base class for output-layer losses."""

    def __init__(self, wo: Matrix):
        self.wo = wo

    def forward(
        self, targets: Sequence[int], target_index: int, state, lr: float, backprop: bool = True
    ) -> float:
        """Compute the loss of one example and apply its update.

        Args:
            targets: Candidate targets of the example
            target_index: Which target to train on, or ``ALL_TARGETS``
            state: Per-thread ``State`` holding hidden, grad and rng
            lr: Current learning rate
            backprop: Whether to update parameters and ``state.grad``

        Returns:
            Loss value of the example
        """
        raise NotImplementedError

    def compute_output(self, state) -> torch.Tensor:
        """Score every output row for ``state.hidden``."""
        raise NotImplementedError

    def predict(self, k: int, threshold: float, state) -> List[Prediction]:
        output = self.compute_output(state)
        return find_k_best(k, threshold, output.tolist())


class BinaryLogisticLoss(Loss):
    """Losses built from independent sigmoid terms."""

    def binary_logistic(
        self, target: int, state, label_is_positive: bool, lr: float, backprop: bool
    ) -> float:
        score = sigmoid(self.wo.dot_row(state.hidden, target))
        if backprop:
            alpha = lr * (float(label_is_positive) - score)
            state.grad.add_row(self.wo, target, alpha)
            self.wo.add_vector_to_row(state.hidden, target, alpha)
        if label_is_positive:
            return -std_log(score)
        return -std_log(1.0 - score)

    def compute_output(self, state) -> torch.Tensor:
        state.output = torch.sigmoid(self.wo.multiply(state.hidden))
        return state.output


class OneVsAllLoss(BinaryLogisticLoss):
    """One sigmoid per class; every label of the example is a positive."""

    def forward(self, targets, target_index, state, lr, backprop=True):
        labels = torch.zeros(self.wo.rows, dtype=torch.float32)
        if len(targets) > 0:
            labels[torch.as_tensor(list(targets), dtype=torch.long)] = 1.0
        scores = self.compute_output(state)
        if backprop:
            alpha = lr * (labels - scores)
            state.grad.data.add_(torch.mv(self.wo.data.t(), alpha))
            self.wo.data.add_(torch.outer(alpha, state.hidden.data))
        loss = -(
            labels * torch.log(scores + LOG_EPS)
            + (1.0 - labels) * torch.log(1.0 - scores + LOG_EPS)
        )
        return float(loss.sum())


class SoftmaxLoss(Loss):
    """Full softmax over every output row."""

    def compute_output(self, state) -> torch.Tensor:
        state.output = torch.softmax(self.wo.multiply(state.hidden), dim=0)
        return state.output

    def forward(self, targets, target_index, state, lr, backprop=True):
        output = self.compute_output(state)
        target = targets[target_index]
        if backprop:
            alpha = -lr * output
            alpha[target] += lr
            state.grad.data.add_(torch.mv(self.wo.data.t(), alpha))
            self.wo.data.add_(torch.outer(alpha, state.hidden.data))
        return -std_log(float(output[target]))
