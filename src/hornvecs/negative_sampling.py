"""Negative sampling loss for hornvecs.

Each update scores the true class plus ``neg`` noise classes drawn from the
class frequencies raised to the 0.75 power (Mikolov et al., 2013,
"Distributed Representations of Words and Phrases and their
Compositionality"). One update touches ``neg + 1`` output rows instead of
all of them.
"""

import random
from typing import Sequence

import numpy as np

from hornvecs.losses import BinaryLogisticLoss
from hornvecs.matrix import Matrix

NEGATIVE_TABLE_SIZE = 10000000


class NoiseSampler:
    """Draws noise classes in proportion to count ** power.

    The distribution is laid out as a shuffled lookup table, so one draw is a
    single random index.
    """

    def __init__(
        self,
        counts: Sequence[int],
        power: float = 0.75,
        table_size: int = NEGATIVE_TABLE_SIZE,
        seed: int = 0,
    ):
        """Build the sampling table.

        Args:
            counts: Frequency of each class, indexed by class id
            power: Exponent applied to the counts
            table_size: Approximate number of table slots
            seed: Seed for the table shuffle
        """
        self.power = power
        self.vocab_size = len(counts)
        self.table = self._build_table(counts, table_size, seed)

    def _build_table(self, counts: Sequence[int], table_size: int, seed: int) -> np.ndarray:
        if len(counts) == 0:
            return np.zeros(0, dtype=np.int32)

        powered = np.asarray(counts, dtype=np.float64) ** self.power
        total = powered.sum()
        if total > 0:
            slots = np.ceil(powered / total * table_size).astype(np.int64)
        else:
            # All counts zero: one slot per class
            slots = np.ones(len(counts), dtype=np.int64)

        table = np.repeat(np.arange(len(counts), dtype=np.int32), slots)
        np.random.default_rng(seed).shuffle(table)
        return table

    def probabilities(self) -> np.ndarray:
        """Empirical sampling probability of every class in the table."""
        return np.bincount(self.table, minlength=self.vocab_size) / max(len(self.table), 1)

    def sample(self, rng: random.Random) -> int:
        """Draw one class, with replacement."""
        return int(self.table[rng.randrange(len(self.table))])


class NegativeSamplingLoss(BinaryLogisticLoss):
    """Negative sampling loss.

    One positive sigmoid term for the target plus ``neg`` negative terms for
    classes drawn from the noise distribution. Negatives are drawn with
    replacement and are not filtered against the target.
    """

    def __init__(self, wo: Matrix, neg: int, counts: Sequence[int], seed: int = 0):
        """Initialize negative sampling loss.

        Args:
            wo: Output matrix
            neg: Number of negative samples per positive example
            counts: Class frequencies for the noise distribution
            seed: Seed for the noise table
        """
        super().__init__(wo)
        self.neg = neg
        self.noise_sampler = NoiseSampler(counts, seed=seed)

    def forward(self, targets, target_index, state, lr, backprop=True):
        target = targets[target_index]
        loss = self.binary_logistic(target, state, True, lr, backprop)
        for _ in range(self.neg):
            negative = self.noise_sampler.sample(state.rng)
            loss += self.binary_logistic(negative, state, False, lr, backprop)
        return loss
