"""Model definitions for hornvecs."""

import random
from typing import List, Sequence

import torch

from hornvecs.config import Args
from hornvecs.errors import ConfigurationError
from hornvecs.hierarchical_softmax import HierarchicalSoftmaxLoss, HuffmanTree
from hornvecs.losses import Loss, OneVsAllLoss, Prediction, SoftmaxLoss
from hornvecs.matrix import Matrix, Vector
from hornvecs.negative_sampling import NegativeSamplingLoss


class State:
    """Per-thread scratch space: hidden vector, gradient, scores, rng, loss."""

    def __init__(self, hidden_size: int, output_size: int, seed: int):
        self.hidden = Vector(hidden_size)
        self.grad = Vector(hidden_size)
        self.output = torch.zeros(output_size, dtype=torch.float32)
        self.rng = random.Random(seed)
        self.loss_value = 0.0
        self.nexamples = 0

    def get_loss(self) -> float:
        return self.loss_value / self.nexamples if self.nexamples else 0.0

    def increment_nexamples(self, loss: float) -> None:
        self.loss_value += loss
        self.nexamples += 1


def build_loss(args: Args, wo: Matrix, counts: Sequence[int], tree: HuffmanTree = None) -> Loss:
    """Select the loss once, when the model is built.

    Args:
        args: Hyperparameters (``loss``, ``neg``, ``seed``)
        wo: Output matrix
        counts: Frequencies of the output classes
        tree: Persisted Huffman tree, for hierarchical softmax models being loaded

    Returns:
        Loss instance bound to ``wo``

    Raises:
        ConfigurationError: If the loss name is unknown
    """
    if args.loss == "hs":
        return HierarchicalSoftmaxLoss(wo, counts, tree=tree)
    if args.loss == "ns":
        return NegativeSamplingLoss(wo, args.neg, counts, seed=args.seed)
    if args.loss == "softmax":
        return SoftmaxLoss(wo)
    if args.loss == "ova":
        return OneVsAllLoss(wo)
    raise ConfigurationError(f"Unknown loss: {args.loss!r}")


class Model:
    """Input and output matrices plus the forward/backward pass.

    The hidden vector of an example is the mean of its input rows; the loss
    scores it against the output rows, updates them, and hands back the
    gradient which is then added to every input row of the example.
    """

    def __init__(self, wi: Matrix, wo: Matrix, loss: Loss, normalize_gradient: bool):
        """Initialize model.

        Args:
            wi: Input matrix (words and subword buckets)
            wo: Output matrix (labels, words or tree nodes)
            loss: Loss bound to ``wo``
            normalize_gradient: Whether to divide the gradient by the number of inputs
        """
        self.wi = wi
        self.wo = wo
        self.loss = loss
        self.normalize_gradient = normalize_gradient

    @property
    def dim(self) -> int:
        return self.wi.cols

    def new_state(self, seed: int) -> State:
        return State(self.wi.cols, self.wo.rows, seed)

    def compute_hidden(self, input_ids: Sequence[int], state: State) -> Vector:
        return self.wi.average_rows(input_ids, state.hidden)

    def update(
        self,
        input_ids: Sequence[int],
        targets: Sequence[int],
        target_index: int,
        lr: float,
        state: State,
    ) -> None:
        """One SGD step for one example.

        Args:
            input_ids: Input-matrix rows of the example
            targets: Output classes of the example
            target_index: Which target to train on (losses may use all)
            lr: Current learning rate
            state: Per-thread state
        """
        if not input_ids:
            return
        self.compute_hidden(input_ids, state)
        state.grad.zero_()

        loss_value = self.loss.forward(targets, target_index, state, lr, True)
        state.increment_nexamples(loss_value)

        if self.normalize_gradient:
            state.grad.mul_(1.0 / len(input_ids))
        self.wi.add_vector_to_rows(state.grad, input_ids, 1.0)

    def predict(
        self, input_ids: Sequence[int], k: int, threshold: float, state: State
    ) -> List[Prediction]:
        """Top ``k`` (log probability, class) pairs for one example.

        Args:
            input_ids: Input-matrix rows of the example
            k: Number of classes to return; -1 returns every class
            threshold: Minimum probability. The hs search also prunes
                branches below ``LOG_EPS`` (about 1e-5), so ``k=-1`` with a
                zero threshold can return fewer classes than exist
            state: Scratch state (one per caller)

        Returns:
            Pairs sorted by descending score, ties by lower class index

        Raises:
            ValueError: If ``k`` is 0 or below -1
        """
        if k == -1:
            k = self.wo.rows
        elif k <= 0:
            raise ValueError("k needs to be 1 or higher!")
        if not input_ids:
            return []
        self.compute_hidden(input_ids, state)
        return self.loss.predict(k, threshold, state)
