"""CLI entry point for hornvecs."""

import sys
from typing import List, Optional

from hornvecs.cli import query, train
from hornvecs.cli_args import parse_args
from hornvecs.errors import HornVecsError

COMMANDS = {
    "skipgram": train.main,
    "cbow": train.main,
    "supervised": train.main,
    "test": query.evaluate,
    "predict": query.predict,
    "predict-prob": query.predict,
    "print-word-vectors": query.print_word_vectors,
    "print-sentence-vectors": query.print_sentence_vectors,
    "print-ngrams": query.print_ngrams,
    "quantize": query.quantize,
    "dump": query.dump,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Dispatch one command.

    Args:
        argv: Optional command line arguments

    Returns:
        Process exit status: 0 on success, 1 on a hornvecs error
    """
    namespace = parse_args(argv)
    try:
        return COMMANDS[namespace.command](namespace)
    except HornVecsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


__all__ = ["main", "COMMANDS"]
