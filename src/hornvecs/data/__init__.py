"""Corpus readers for training and inference."""

import os
import sys
from contextlib import contextmanager
from typing import IO, Iterator, List

from hornvecs.errors import ModelIOError
from hornvecs.tokenization import tokenize


class CorpusReader:
    """Line reader over one slice of a training file.

    The reader starts at the first full line at or after ``offset`` and wraps
    around to the start of the file at EOF, so a worker can keep asking for
    lines for as many epochs as it needs.
    """

    def __init__(self, path: str, offset: int = 0):
        """Initialize reader.

        Args:
            path: Path to the training file
            offset: Byte offset of this reader's slice

        Raises:
            ModelIOError: If the file cannot be opened
        """
        self.path = path
        self.offset = offset
        try:
            self._file = open(path, "rb")
        except OSError as e:
            raise ModelIOError(f"Cannot open training data ({e.strerror})", path) from e
        self._seek(offset)

    @staticmethod
    def file_size(path: str) -> int:
        try:
            return os.path.getsize(path)
        except OSError as e:
            raise ModelIOError(f"Cannot open training data ({e.strerror})", path) from e

    @classmethod
    def for_worker(cls, path: str, worker_id: int, num_workers: int) -> "CorpusReader":
        """Open the evenly sized slice of ``path`` owned by one worker."""
        size = cls.file_size(path)
        return cls(path, offset=size * worker_id // num_workers)

    def _seek(self, offset: int) -> None:
        if offset <= 0:
            self._file.seek(0)
            return
        # Step back one byte so a slice that begins exactly on a line start keeps that line.
        self._file.seek(offset - 1)
        self._file.readline()

    def next_tokens(self) -> List[str]:
        """Tokens of the next line, wrapping to the start at EOF."""
        raw = self._file.readline()
        if not raw:
            self._file.seek(0)
            raw = self._file.readline()
            if not raw:
                return []
        return tokenize(raw.decode("utf-8", errors="replace"))

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> "CorpusReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def chunked(tokens: List[str], size: int) -> Iterator[List[str]]:
    """Split an over-long line into examples of at most ``size`` tokens."""
    if len(tokens) <= size:
        yield tokens
        return
    for start in range(0, len(tokens), size):
        yield tokens[start : start + size]


@contextmanager
def open_text_source(path: str):
    """Open a query file, or stdin for ``-``."""
    if path == "-":
        yield sys.stdin
        return
    try:
        f = open(path, "r", encoding="utf-8", errors="replace")
    except OSError as e:
        raise ModelIOError(f"Cannot open input ({e.strerror})", path) from e
    with f:
        yield f


def iter_lines(stream: IO[str]) -> Iterator[str]:
    """Pull lines from a stream one at a time, without trailing newlines."""
    for line in stream:
        yield line.rstrip("\n")
