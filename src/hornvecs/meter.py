"""Precision and recall over a labelled test set."""

from typing import Iterable, Sequence, Tuple


class Meter:
    """Accumulates predictions against gold labels."""

    def __init__(self):
        self.nexamples = 0
        self.gold = 0
        self.predicted = 0
        self.predicted_gold = 0

    def log(self, labels: Sequence[int], predictions: Iterable[Tuple[float, int]]) -> None:
        """Record one example.

        Args:
            labels: Gold label indices of the example
            predictions: (score, label index) pairs returned by the model
        """
        gold = set(labels)
        self.nexamples += 1
        self.gold += len(labels)
        for _, label in predictions:
            self.predicted += 1
            if label in gold:
                self.predicted_gold += 1

    def precision(self) -> float:
        return self.predicted_gold / self.predicted if self.predicted else float("nan")

    def recall(self) -> float:
        return self.predicted_gold / self.gold if self.gold else float("nan")

    def f1_score(self) -> float:
        p, r = self.precision(), self.recall()
        if p + r == 0 or p != p or r != r:
            return float("nan")
        return 2 * p * r / (p + r)

    def summary(self) -> Tuple[int, float, float]:
        return self.nexamples, self.precision(), self.recall()
