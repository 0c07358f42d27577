"""Context window generation for cbow and skipgram."""

import random
from typing import Iterator, List, Optional, Tuple


def sample_window(rng: random.Random, window_size: int) -> int:
    """Effective window for one center word, uniform in ``[1, window_size]``.

    Shrinking the window at random weights nearby context more heavily.
    """
    return rng.randint(1, window_size)


class PairGenerator:
    """Yields (center, context positions) with a randomly shrunk window."""

    def __init__(self, window_size: int, rng: Optional[random.Random] = None):
        """Initialize pair generator.

        Args:
            window_size: Maximum window size (``ws``)
            rng: Random number generator
        """
        self.window_size = window_size
        self.rng = rng or random.Random()

    def windows(self, length: int) -> Iterator[Tuple[int, List[int]]]:
        """Iterate over every center position of a line of ``length`` tokens.

        Args:
            length: Number of tokens in the line

        Yields:
            Tuple of (center position, context positions); the context list
            may be empty for a one-token line
        """
        for center in range(length):
            boundary = sample_window(self.rng, self.window_size)
            start = max(0, center - boundary)
            end = min(length, center + boundary + 1)
            context = [j for j in range(start, end) if j != center]
            yield center, context

    def skipgram_pairs(self, line: List[int]) -> Iterator[Tuple[int, int]]:
        """(center id, context id) pairs; one loss update each."""
        for center, context in self.windows(len(line)):
            for j in context:
                yield line[center], line[j]

    def cbow_examples(self, line: List[int]) -> Iterator[Tuple[List[int], int]]:
        """(context ids, center id) examples; one loss update each."""
        for center, context in self.windows(len(line)):
            yield [line[j] for j in context], line[center]
