"""Command line argument parsing utilities."""

import argparse
from typing import List, Optional

from hornvecs.config import LOSS_TYPES, Args

# Training options that map one-to-one onto ``Args`` fields. Their parser
# default is None so the per-mode defaults of ``Args.for_mode`` apply.
TRAINING_FIELDS = (
    "input",
    "output",
    "lr",
    "lr_update_rate",
    "dim",
    "ws",
    "epoch",
    "min_count",
    "min_count_label",
    "neg",
    "word_ngrams",
    "loss",
    "bucket",
    "minn",
    "maxn",
    "maxskip",
    "skip_marker",
    "thread",
    "t",
    "label",
    "verbose",
    "pretrained_vectors",
    "save_output",
    "seed",
    "tensorboard_dir",
)


class ArgumentParser:
    """Centralized argument parser for the hornvecs command line."""

    @staticmethod
    def create_parser() -> argparse.ArgumentParser:
        """Create the top-level parser with one subcommand per operation.

        Returns:
            Configured argument parser
        """
        parser = argparse.ArgumentParser(
            prog="hornvecs",
            description="Subword embeddings and text classification with skip-pattern morphology",
        )
        subparsers = parser.add_subparsers(dest="command", metavar="<command>")
        subparsers.required = True

        for mode, help_text in (
            ("skipgram", "train a skipgram model"),
            ("cbow", "train a cbow model"),
            ("supervised", "train a supervised classifier"),
        ):
            sub = subparsers.add_parser(mode, help=help_text)
            ArgumentParser._add_io_args(sub)
            ArgumentParser._add_dictionary_args(sub)
            ArgumentParser._add_training_args(sub)
            ArgumentParser._add_logging_args(sub)

        test = subparsers.add_parser("test", help="evaluate a supervised classifier")
        ArgumentParser._add_query_args(test)

        for name, help_text in (
            ("predict", "predict most likely labels"),
            ("predict-prob", "predict most likely labels with probabilities"),
        ):
            sub = subparsers.add_parser(name, help=help_text)
            ArgumentParser._add_query_args(sub)

        words = subparsers.add_parser(
            "print-word-vectors", help="print word vectors given a trained model"
        )
        words.add_argument("model", type=str, help="Path to a .bin or .ftz model")

        sentences = subparsers.add_parser(
            "print-sentence-vectors", help="print sentence vectors given a trained model"
        )
        sentences.add_argument("model", type=str, help="Path to a .bin or .ftz model")

        ngrams = subparsers.add_parser(
            "print-ngrams", help="print subword n-grams and their vectors"
        )
        ngrams.add_argument("model", type=str, help="Path to a .bin or .ftz model")
        ngrams.add_argument("word", type=str, help="Word to break into subwords")

        quantize = subparsers.add_parser("quantize", help="quantize a model to int8")
        quantize.add_argument(
            "--output",
            type=str,
            required=True,
            help="Model prefix; reads <output>.bin and writes <output>.ftz",
        )
        quantize.add_argument(
            "--qout", action="store_true", help="Quantize the output matrix too"
        )

        dump = subparsers.add_parser("dump", help="dump arguments, dictionary or matrices")
        dump.add_argument("model", type=str, help="Path to a .bin or .ftz model")
        dump.add_argument(
            "option",
            type=str,
            choices=["args", "dict", "input", "output"],
            help="What to dump",
        )

        return parser

    @staticmethod
    def _add_io_args(parser: argparse.ArgumentParser) -> None:
        """Add input and output arguments."""
        io_group = parser.add_argument_group("Input/Output")

        io_group.add_argument(
            "--input", type=str, required=True, help="Training file path"
        )
        io_group.add_argument(
            "--output",
            type=str,
            required=True,
            help="Output prefix; writes <output>.bin and <output>.vec",
        )
        io_group.add_argument(
            "--verbose", type=int, help="Verbosity level: 0, 1 or 2 (default: 2)"
        )

    @staticmethod
    def _add_dictionary_args(parser: argparse.ArgumentParser) -> None:
        """Add vocabulary and subword arguments."""
        dict_group = parser.add_argument_group("Dictionary")

        dict_group.add_argument(
            "--min-count", type=int, help="Minimal number of word occurrences"
        )
        dict_group.add_argument(
            "--min-count-label", type=int, help="Minimal number of label occurrences"
        )
        dict_group.add_argument(
            "--word-ngrams", type=int, help="Max length of word n-grams"
        )
        dict_group.add_argument("--bucket", type=int, help="Number of hash buckets")
        dict_group.add_argument("--minn", type=int, help="Min length of char n-grams")
        dict_group.add_argument("--maxn", type=int, help="Max length of char n-grams")
        dict_group.add_argument(
            "--maxskip",
            type=int,
            help="Max characters dropped in a skip-pattern n-gram (0 disables them)",
        )
        dict_group.add_argument(
            "--skip-marker", type=str, help="Character written for each dropped character"
        )
        dict_group.add_argument("--t", type=float, help="Sampling threshold")
        dict_group.add_argument("--label", type=str, help="Label prefix")

    @staticmethod
    def _add_training_args(parser: argparse.ArgumentParser) -> None:
        """Add training-related arguments."""
        train_group = parser.add_argument_group("Training Configuration")

        train_group.add_argument("--lr", type=float, help="Learning rate")
        train_group.add_argument(
            "--lr-update-rate", type=int, help="Tokens between learning rate updates"
        )
        train_group.add_argument("--dim", type=int, help="Size of word vectors")
        train_group.add_argument("--ws", type=int, help="Size of the context window")
        train_group.add_argument("--epoch", type=int, help="Number of epochs")
        train_group.add_argument("--neg", type=int, help="Number of negatives sampled")
        train_group.add_argument(
            "--loss", type=str, choices=list(LOSS_TYPES), help="Loss function"
        )
        train_group.add_argument("--thread", type=int, help="Number of threads")
        train_group.add_argument(
            "--pretrained-vectors",
            type=str,
            help="Pretrained word vectors (.vec) for initialisation",
        )
        train_group.add_argument(
            "--save-output",
            action="store_true",
            default=None,
            help="Also save the output matrix to <output>.output",
        )
        train_group.add_argument(
            "--seed", type=int, help="Random seed for reproducibility"
        )

    @staticmethod
    def _add_logging_args(parser: argparse.ArgumentParser) -> None:
        """Add TensorBoard logging arguments."""
        tensorboard_group = parser.add_argument_group("TensorBoard Logging")
        tensorboard_group.add_argument(
            "--tensorboard-dir",
            type=str,
            help="Write training metrics to this TensorBoard log directory",
        )

    @staticmethod
    def _add_query_args(parser: argparse.ArgumentParser) -> None:
        """Add arguments shared by test and predict."""
        parser.add_argument("model", type=str, help="Path to a .bin or .ftz model")
        parser.add_argument(
            "test_data", type=str, help="Test file path, or - to read stdin"
        )
        parser.add_argument(
            "k", type=int, nargs="?", default=1, help="Number of labels (default: 1)"
        )
        parser.add_argument(
            "threshold",
            type=float,
            nargs="?",
            default=0.0,
            help="Minimum probability (default: 0.0)",
        )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        argv: Optional command line arguments

    Returns:
        Parsed arguments namespace
    """
    parser = ArgumentParser.create_parser()
    return parser.parse_args(argv)


def create_args(namespace: argparse.Namespace) -> Args:
    """Build training arguments from a parsed training command.

    Options left unset fall back to the defaults of the training mode.

    Args:
        namespace: Parsed arguments of skipgram, cbow or supervised

    Returns:
        Arguments object (not yet validated)
    """
    overrides = {}
    for name in TRAINING_FIELDS:
        value = getattr(namespace, name, None)
        if value is not None:
            overrides[name] = value
    return Args.for_mode(namespace.command, **overrides)
