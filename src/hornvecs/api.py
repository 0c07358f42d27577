"""High-level interface: train, load, save and query models."""

import math
import os
from typing import Iterable, Iterator, List, Optional, Tuple

import numpy as np

from hornvecs.config import Args
from hornvecs.dictionary import Dictionary, EntryType
from hornvecs.errors import ConfigurationError
from hornvecs.hierarchical_softmax import HierarchicalSoftmaxLoss, HuffmanTree
from hornvecs.matrix import Matrix, QuantMatrix, Vector
from hornvecs.meter import Meter
from hornvecs.models import Model, build_loss
from hornvecs.serialization import AnyMatrix, load_model as read_model_file, save_model
from hornvecs.tokenization import tokenize
from hornvecs.training import Trainer
from hornvecs.utils import export_vectors


class HornVecs:
    """A trained or loaded model and everything needed to query it.

    Instances start empty; ``train`` or ``load_model`` fill them. A failed
    load leaves the previous model in place.
    """

    def __init__(self):
        self.args: Optional[Args] = None
        self.dictionary: Optional[Dictionary] = None
        self.input: Optional[AnyMatrix] = None
        self.output: Optional[AnyMatrix] = None
        self.tree: Optional[HuffmanTree] = None
        self.model: Optional[Model] = None

    def _bind(
        self,
        args: Args,
        dictionary: Dictionary,
        input_matrix: AnyMatrix,
        output_matrix: AnyMatrix,
        tree: Optional[HuffmanTree] = None,
        model: Optional[Model] = None,
    ) -> None:
        if model is None:
            if args.is_supervised:
                counts = dictionary.get_counts(EntryType.LABEL)
            else:
                counts = dictionary.get_counts(EntryType.WORD)
            loss = build_loss(args, output_matrix, counts, tree=tree)
            model = Model(
                input_matrix, output_matrix, loss, normalize_gradient=args.model != "skipgram"
            )

        self.args = args
        self.dictionary = dictionary
        self.input = input_matrix
        self.output = output_matrix
        self.tree = model.loss.tree if isinstance(model.loss, HierarchicalSoftmaxLoss) else None
        self.model = model

    def _require_model(self) -> None:
        if self.model is None:
            raise ConfigurationError("No model loaded; train or load one first.")

    def train(self, args: Args) -> "HornVecs":
        """Train a new model and make it this instance's model.

        Args:
            args: Training arguments; validated before the corpus is opened

        Returns:
            self

        Raises:
            ConfigurationError: If the arguments are invalid, or this instance
                holds a quantized model
        """
        if self.is_quant():
            raise ConfigurationError("Quantized models cannot be trained.")
        args.validate()
        trainer = Trainer(args)
        trainer.train()
        self._bind(args, trainer.dictionary, trainer.input, trainer.output, model=trainer.model)
        return self

    def load_model(self, path: str) -> "HornVecs":
        """Replace the current model with the one stored at ``path``.

        Later saves without an explicit path go next to ``path``.
        """
        loaded = read_model_file(path)
        args = loaded.args.with_updates(output=os.path.splitext(path)[0])
        self._bind(args, loaded.dictionary, loaded.input, loaded.output, loaded.tree)
        return self

    def save_model(self, path: Optional[str] = None) -> str:
        """Write the model in binary form.

        Args:
            path: Destination; defaults to the output prefix plus ``.bin``
                (``.ftz`` for quantized models)

        Returns:
            The path written
        """
        self._require_model()
        if path is None:
            path = self.args.output + (".ftz" if self.is_quant() else ".bin")
        save_model(path, self.args, self.dictionary, self.input, self.output, self.tree)
        return path

    def save_vectors(self, path: Optional[str] = None) -> str:
        """Write one vector per dictionary word in ``.vec`` text format."""
        self._require_model()
        if path is None:
            path = self.args.output + ".vec"
        words = self.dictionary.get_words()
        export_vectors(path, words, (self.get_word_vector(w) for w in words), self.get_dimension())
        return path

    def save_output(self, path: Optional[str] = None) -> str:
        """Write the output-matrix rows in ``.vec`` text format.

        Raises:
            ConfigurationError: If the output matrix is quantized
        """
        self._require_model()
        if self.output.quantized:
            raise ConfigurationError("Cannot save a quantized output matrix.")
        if path is None:
            path = self.args.output + ".output"
        if self.args.is_supervised:
            names = self.dictionary.get_labels()
        else:
            names = self.dictionary.get_words()
        rows = (self.output.row_numpy(i) for i in range(len(names)))
        export_vectors(path, names, rows, self.get_dimension())
        return path

    def is_quant(self) -> bool:
        return self.input is not None and self.input.quantized

    def get_dimension(self) -> int:
        self._require_model()
        return self.args.dim

    def get_words(self, include_freq: bool = False):
        self._require_model()
        words = self.dictionary.get_words()
        if include_freq:
            return words, self.dictionary.get_counts(EntryType.WORD)
        return words

    def get_labels(self, include_freq: bool = False):
        self._require_model()
        labels = self.dictionary.get_labels()
        if include_freq:
            return labels, self.dictionary.get_counts(EntryType.LABEL)
        return labels

    def get_word_id(self, word: str) -> int:
        self._require_model()
        return self.dictionary.find(word)

    def get_word_vector(self, word: str) -> np.ndarray:
        """Mean of a word's subword rows; zero when it has none.

        Works for out-of-vocabulary words as long as the model has
        character n-grams.
        """
        self._require_model()
        vec = Vector(self.args.dim)
        ids = self.dictionary.get_subwords(word)
        if ids:
            self.input.average_rows(ids, vec)
        return vec.numpy()

    def get_sentence_vector(self, text: str) -> np.ndarray:
        """Mean of the L2-normalised vectors of the words of ``text``.

        Label tokens and words with a zero vector are skipped; the result is
        the zero vector when nothing contributes.
        """
        self._require_model()
        total = np.zeros(self.args.dim, dtype=np.float32)
        count = 0
        for token in tokenize(text):
            if self.dictionary.get_type(token) == EntryType.LABEL:
                continue
            vec = self.get_word_vector(token)
            norm = float(np.linalg.norm(vec))
            if norm > 0:
                total += vec / norm
                count += 1
        if count > 0:
            total /= count
        return total

    def get_subwords(self, word: str) -> Tuple[List[str], List[int]]:
        """Subword strings and their input-matrix ids for ``word``."""
        self._require_model()
        ids, strings = self.dictionary.get_subword_strings(word)
        return strings, ids

    def get_input_vector(self, ind: int) -> np.ndarray:
        """Row ``ind`` of the input matrix (a word or an n-gram bucket)."""
        self._require_model()
        return self.input.row_numpy(ind)

    def get_input_matrix(self) -> np.ndarray:
        """Input matrix as an array (dequantized for quantized models)."""
        self._require_model()
        return self.input.numpy()

    def get_output_matrix(self) -> np.ndarray:
        self._require_model()
        return self.output.numpy()

    def _predict_ids(self, text: str, k: int, threshold: float):
        line = self.dictionary.get_line(tokenize(text))
        state = self.model.new_state(self.args.seed)
        return self.model.predict(line.words, k, threshold, state)

    def predict(self, text: str, k: int = 1, threshold: float = 0.0) -> List[Tuple[str, float]]:
        """Most probable labels of one line of text.

        Args:
            text: Input text; label tokens in it are ignored
            k: Number of labels to return; -1 returns every label
            threshold: Minimum probability. With the hs loss, labels below
                about 1e-5 are pruned from the tree search even when
                ``threshold`` is 0, so ``k=-1`` may return fewer labels

        Returns:
            (label, probability) pairs, most probable first

        Raises:
            ConfigurationError: If the model is not supervised
            ValueError: If ``k`` is 0 or below -1
        """
        self._require_model()
        if not self.args.is_supervised:
            raise ConfigurationError("Model needs to be supervised for prediction!")
        predictions = self._predict_ids(text, k, threshold)
        return [
            (self.dictionary.get_label(idx), min(1.0, math.exp(score)))
            for score, idx in predictions
        ]

    def predict_lines(
        self, lines: Iterable[str], k: int = 1, threshold: float = 0.0
    ) -> Iterator[List[Tuple[str, float]]]:
        for line in lines:
            yield self.predict(line, k, threshold)

    def test(
        self, lines: Iterable[str], k: int = 1, threshold: float = 0.0
    ) -> Tuple[int, float, float]:
        """Precision and recall at ``k`` over labelled lines.

        Lines without known labels or without input are not counted.

        Returns:
            Tuple of (number of examples, precision, recall)
        """
        meter = self.test_meter(lines, k, threshold)
        return meter.summary()

    def test_meter(self, lines: Iterable[str], k: int = 1, threshold: float = 0.0) -> Meter:
        self._require_model()
        if not self.args.is_supervised:
            raise ConfigurationError("Model needs to be supervised for prediction!")
        meter = Meter()
        state = self.model.new_state(self.args.seed)
        for text in lines:
            line = self.dictionary.get_line(tokenize(text))
            if not line.labels or not line.words:
                continue
            meter.log(line.labels, self.model.predict(line.words, k, threshold, state))
        return meter

    def quantize(self, qout: bool = False) -> "HornVecs":
        """Compress the input matrix (and the output matrix with ``qout``) to int8.

        Raises:
            ConfigurationError: If the model is already quantized
        """
        self._require_model()
        if self.is_quant():
            raise ConfigurationError("Model is already quantized.")
        input_matrix = QuantMatrix.from_matrix(self.input)
        output_matrix = QuantMatrix.from_matrix(self.output) if qout else self.output
        args = self.args.with_updates(qout=qout)
        self._bind(args, self.dictionary, input_matrix, output_matrix, self.tree)
        return self

    def dump_args(self) -> str:
        self._require_model()
        return self.args.dump()

    def dump_dictionary(self) -> List[str]:
        self._require_model()
        return list(self.dictionary.dump())

    def dump_input(self) -> Iterator[str]:
        self._require_model()
        return self._dump_matrix(self.input)

    def dump_output(self) -> Iterator[str]:
        self._require_model()
        return self._dump_matrix(self.output)

    @staticmethod
    def _dump_matrix(matrix: AnyMatrix) -> Iterator[str]:
        if isinstance(matrix, Matrix):
            return matrix.dump_lines()
        return Matrix.from_tensor(matrix.dequantize()).dump_lines()


def load_model(path: str) -> HornVecs:
    """Load a model file into a new ``HornVecs``."""
    return HornVecs().load_model(path)


def train_unsupervised(input: str, model: str = "skipgram", **kwargs) -> HornVecs:
    """Train word vectors with skipgram or cbow.

    Args:
        input: Path to the training corpus
        model: "skipgram" or "cbow"
        **kwargs: Any other ``Args`` field

    Returns:
        Trained model
    """
    args = Args.for_mode(model, input=input, output=kwargs.pop("output", input), **kwargs)
    return HornVecs().train(args)


def train_supervised(input: str, **kwargs) -> HornVecs:
    """Train a text classifier on ``__label__``-prefixed data."""
    args = Args.for_mode("supervised", input=input, output=kwargs.pop("output", input), **kwargs)
    return HornVecs().train(args)
