"""Common test fixtures and utilities for testing."""

import pytest

from hornvecs.config import Args
from hornvecs.dictionary import Dictionary

TOY_CORPUS = "the cat sat\nthe dog sat\n"

SENTIMENT_LINES = [
    "__label__pos great movie",
    "__label__neg bad movie",
    "__label__pos great film",
    "__label__neg bad film",
]


@pytest.fixture
def toy_corpus(tmp_path):
    """Two-line corpus with four distinct words."""
    path = tmp_path / "toy.txt"
    path.write_text(TOY_CORPUS, encoding="utf-8")
    return str(path)


@pytest.fixture
def labelled_corpus(tmp_path):
    """Small sentiment corpus, one label per line."""
    path = tmp_path / "sentiment.txt"
    path.write_text("\n".join(SENTIMENT_LINES * 10) + "\n", encoding="utf-8")
    return str(path)


@pytest.fixture
def make_args(tmp_path):
    """Factory for quiet, single-threaded arguments with a small bucket space."""

    def _make(model: str = "skipgram", **overrides) -> Args:
        defaults = {
            "output": str(tmp_path / "model"),
            "thread": 1,
            "verbose": 0,
            "seed": 0,
        }
        if model != "supervised":
            defaults.update(bucket=1000, min_count=1)
        defaults.update(overrides)
        return Args.for_mode(model, **defaults)

    return _make


@pytest.fixture
def toy_dictionary(make_args):
    """Unsupervised dictionary over the toy corpus, without subsampling."""
    args = make_args("skipgram", input="unused", t=1.0)
    return Dictionary(args).read_from_lines(TOY_CORPUS.splitlines())


@pytest.fixture
def labelled_dictionary(make_args):
    """Supervised dictionary over the sentiment lines."""
    args = make_args("supervised", input="unused")
    return Dictionary(args).read_from_lines(SENTIMENT_LINES)
