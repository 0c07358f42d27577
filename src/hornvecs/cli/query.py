"""Inference commands over a saved model."""

import argparse

from hornvecs.api import load_model
from hornvecs.data import iter_lines, open_text_source
from hornvecs.errors import ConfigurationError
from hornvecs.tokenization import tokenize
from hornvecs.utils import format_vector


def _check_k(k: int) -> None:
    if k == 0 or k < -1:
        raise ConfigurationError(f"k needs to be 1 or higher (or -1 for all labels), got {k}")


def evaluate(namespace: argparse.Namespace) -> int:
    """Print the number of examples, precision@k and recall@k."""
    _check_k(namespace.k)
    model = load_model(namespace.model)
    with open_text_source(namespace.test_data) as stream:
        n, precision, recall = model.test(iter_lines(stream), namespace.k, namespace.threshold)
    print(f"N\t{n}")
    print(f"P@{namespace.k}\t{precision:.3f}")
    print(f"R@{namespace.k}\t{recall:.3f}")
    return 0


def predict(namespace: argparse.Namespace) -> int:
    """Print the predicted labels of every input line, one line each."""
    _check_k(namespace.k)
    model = load_model(namespace.model)
    with_prob = namespace.command == "predict-prob"
    with open_text_source(namespace.test_data) as stream:
        for predictions in model.predict_lines(
            iter_lines(stream), namespace.k, namespace.threshold
        ):
            if with_prob:
                print(" ".join(f"{label} {prob:.5g}" for label, prob in predictions))
            else:
                print(" ".join(label for label, _ in predictions))
    return 0


def print_word_vectors(namespace: argparse.Namespace) -> int:
    """Print the vector of every word read from stdin."""
    model = load_model(namespace.model)
    with open_text_source("-") as stream:
        for line in iter_lines(stream):
            for word in tokenize(line):
                print(f"{word} {format_vector(model.get_word_vector(word))}")
    return 0


def print_sentence_vectors(namespace: argparse.Namespace) -> int:
    """Print one sentence vector per line read from stdin."""
    model = load_model(namespace.model)
    with open_text_source("-") as stream:
        for line in iter_lines(stream):
            print(format_vector(model.get_sentence_vector(line)))
    return 0


def print_ngrams(namespace: argparse.Namespace) -> int:
    """Print every subword of a word with its input vector."""
    model = load_model(namespace.model)
    strings, ids = model.get_subwords(namespace.word)
    for subword, row in zip(strings, ids):
        print(f"{subword} {format_vector(model.get_input_vector(row))}")
    return 0


def quantize(namespace: argparse.Namespace) -> int:
    """Quantize ``<output>.bin`` into ``<output>.ftz``."""
    model = load_model(namespace.output + ".bin")
    model.quantize(qout=namespace.qout)
    model.save_model(namespace.output + ".ftz")
    return 0


def dump(namespace: argparse.Namespace) -> int:
    """Print the arguments, dictionary or a matrix of a model."""
    model = load_model(namespace.model)
    if namespace.option == "args":
        print(model.dump_args())
    elif namespace.option == "dict":
        lines = model.dump_dictionary()
    elif namespace.option == "input":
        lines = model.dump_input()
    else:
        lines = model.dump_output()
    if namespace.option != "args":
        for line in lines:
            print(line)
    return 0
