"""Vocabulary and subword model."""

import math
import random
import sys
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterable, List, Optional, Tuple

from hornvecs.config import Args
from hornvecs.errors import DataError, ModelIOError
from hornvecs.subwords import char_ngrams, fnv1a_hash, word_ngram_ids
from hornvecs.tokenization import is_label, tokenize


class EntryType(IntEnum):
    WORD = 0
    LABEL = 1


@dataclass
class Entry:
    """One vocabulary entry; its id is its position in the dictionary."""

    word: str
    count: int
    type: EntryType
    subwords: List[int] = field(default_factory=list)


@dataclass
class Line:
    """A tokenised example as the model sees it."""

    words: List[int]
    labels: List[int]
    ntokens: int


class Dictionary:
    """Maps tokens to ids and words to their subword ids.

    Words are counted with ``add`` (or ``read_from_file``), then ``build``
    freezes the vocabulary: entries are sorted (words first, then labels,
    each by descending count, ties kept in discovery order), rare entries are
    dropped, discard probabilities are computed and subword ids are cached.
    """

    def __init__(self, args: Args):
        self.args = args
        self.words: List[Entry] = []
        self.word2int: Dict[str, int] = {}
        self.pdiscard: List[float] = []
        self.nwords = 0
        self.nlabels = 0
        self.ntokens = 0

    @property
    def size(self) -> int:
        return len(self.words)

    def __len__(self) -> int:
        return len(self.words)

    def find(self, word: str) -> int:
        """Return the id of ``word`` or -1."""
        return self.word2int.get(word, -1)

    def get_id(self, word: str) -> int:
        return self.find(word)

    def get_type(self, key) -> EntryType:
        if isinstance(key, int):
            return self.words[key].type
        return EntryType.LABEL if is_label(key, self.args.label) else EntryType.WORD

    def get_word(self, wid: int) -> str:
        return self.words[wid].word

    def get_label(self, lid: int) -> str:
        if lid < 0 or lid >= self.nlabels:
            raise IndexError(f"Label id is out of range [0, {self.nlabels})")
        return self.words[lid + self.nwords].word

    def get_counts(self, entry_type: EntryType) -> List[int]:
        return [e.count for e in self.words if e.type == entry_type]

    def add(self, token: str) -> None:
        """Count one raw token from the corpus."""
        wid = self.word2int.get(token)
        self.ntokens += 1
        if wid is None:
            self.word2int[token] = len(self.words)
            self.words.append(Entry(token, 1, self.get_type(token)))
        else:
            self.words[wid].count += 1

    def read_from_lines(self, lines: Iterable[str]) -> "Dictionary":
        """Count every token of ``lines`` and build the vocabulary."""
        for line in lines:
            for token in tokenize(line):
                self.add(token)
                if self.args.verbose > 1 and self.ntokens % 1000000 == 0:
                    print(f"\rRead {self.ntokens // 1000000}M words", end="", file=sys.stderr)
        self.build()
        if self.args.verbose > 0:
            print(f"\rRead {self.ntokens // 1000000}M words", file=sys.stderr)
            print(f"Number of words:  {self.nwords}", file=sys.stderr)
            print(f"Number of labels: {self.nlabels}", file=sys.stderr)
        if self.nwords == 0:
            raise DataError(
                "Empty vocabulary. Try a smaller min_count value."
            )
        if self.args.is_supervised and self.nlabels == 0:
            raise DataError(
                f"No labels found with prefix {self.args.label!r}; "
                "supervised training needs at least one labelled example."
            )
        return self

    def read_from_file(self, path: str) -> "Dictionary":
        """First corpus pass: count tokens in ``path``.

        Raises:
            ModelIOError: If the file cannot be opened
            DataError: If the vocabulary ends up empty
        """
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                return self.read_from_lines(f)
        except OSError as e:
            raise ModelIOError(f"Cannot read training data ({e.strerror})", path) from e

    def build(self) -> None:
        self.threshold(self.args.min_count, self.args.min_count_label)
        self.init_table_discard()
        self.init_ngrams()

    def threshold(self, min_count: int, min_count_label: int) -> None:
        """Sort entries and drop the ones below the count thresholds."""
        self.words.sort(key=lambda e: (e.type, -e.count))
        self.words = [
            e
            for e in self.words
            if (e.type == EntryType.WORD and e.count >= min_count)
            or (e.type == EntryType.LABEL and e.count >= min_count_label)
        ]
        self.word2int = {}
        self.nwords = 0
        self.nlabels = 0
        for i, entry in enumerate(self.words):
            self.word2int[entry.word] = i
            if entry.type == EntryType.WORD:
                self.nwords += 1
            else:
                self.nlabels += 1

    def init_table_discard(self) -> None:
        """Per-word keep probability for frequent-word subsampling."""
        t = self.args.t
        self.pdiscard = []
        for entry in self.words:
            f = entry.count / max(self.ntokens, 1)
            p = math.sqrt(t / f) + t / f
            self.pdiscard.append(min(1.0, max(0.0, p)))

    def discard(self, wid: int, rand: float) -> bool:
        """Whether this occurrence of word ``wid`` is subsampled away."""
        if self.args.is_supervised:
            return False
        return rand > self.pdiscard[wid]

    def init_ngrams(self) -> None:
        for i, entry in enumerate(self.words):
            entry.subwords = [i]
            if entry.type == EntryType.WORD:
                entry.subwords.extend(self._ngram_ids(entry.word))

    def _ngram_ids(self, word: str) -> List[int]:
        ids, _ = self.compute_subwords(word)
        return ids

    def compute_subwords(self, word: str) -> Tuple[List[int], List[str]]:
        """Bucket ids and strings of the character n-grams of ``word``."""
        if self.args.bucket <= 0 or self.args.maxn <= 0:
            return [], []
        ngrams = char_ngrams(
            word,
            self.args.minn,
            self.args.maxn,
            self.args.maxskip,
            self.args.skip_marker,
        )
        ids = [self.nwords + fnv1a_hash(ngram) % self.args.bucket for ngram in ngrams]
        return ids, ngrams

    def get_subwords(self, word) -> List[int]:
        """Input-matrix rows that make up a word's vector.

        Known words give their own id followed by their n-gram buckets;
        unknown words give the n-gram buckets only.
        """
        if isinstance(word, int):
            return self.words[word].subwords
        wid = self.find(word)
        if wid >= 0 and self.words[wid].type == EntryType.WORD:
            return self.words[wid].subwords
        return self._ngram_ids(word)

    def get_subword_strings(self, word: str) -> Tuple[List[int], List[str]]:
        """Like ``get_subwords`` but also returns the n-gram strings."""
        ids, strings = [], []
        wid = self.find(word)
        if wid >= 0:
            ids.append(wid)
            strings.append(word)
        ngram_ids, ngrams = self.compute_subwords(word)
        ids.extend(ngram_ids)
        strings.extend(ngrams)
        return ids, strings

    def _add_subwords(self, line: List[int], token: str, wid: int) -> None:
        if wid < 0:
            line.extend(self._ngram_ids(token))
        elif self.args.maxn <= 0:
            line.append(wid)
        else:
            line.extend(self.words[wid].subwords)

    def get_line(self, tokens: List[str], rng: Optional[random.Random] = None) -> Line:
        """Turn one tokenised line into model input.

        Unsupervised models get in-vocabulary word ids, with frequent words
        randomly subsampled per occurrence. Supervised models get word and
        subword ids, hashed word n-grams, and the label indices.

        Args:
            tokens: Raw tokens of one line
            rng: Random source for subsampling

        Returns:
            Line with word ids, label indices and the number of tokens read
        """
        rng = rng or random
        words: List[int] = []
        labels: List[int] = []
        ntokens = 0

        if not self.args.is_supervised:
            for token in tokens:
                wid = self.word2int.get(token, -1)
                if wid < 0:
                    continue
                ntokens += 1
                if self.words[wid].type == EntryType.WORD and not self.discard(
                    wid, rng.random()
                ):
                    words.append(wid)
            return Line(words, labels, ntokens)

        word_hashes: List[int] = []
        for token in tokens:
            wid = self.word2int.get(token, -1)
            entry_type = self.words[wid].type if wid >= 0 else self.get_type(token)
            ntokens += 1
            if entry_type == EntryType.WORD:
                self._add_subwords(words, token, wid)
                word_hashes.append(fnv1a_hash(token))
            elif wid >= 0:
                labels.append(wid - self.nwords)
        words.extend(
            word_ngram_ids(word_hashes, self.args.word_ngrams, self.nwords, self.args.bucket)
        )
        return Line(words, labels, ntokens)

    def get_words(self) -> List[str]:
        return [e.word for e in self.words[: self.nwords]]

    def get_labels(self) -> List[str]:
        return [e.word for e in self.words[self.nwords :]]

    def add_pretrained_words(self, words: Iterable[str]) -> None:
        """Make sure pretrained words have a row, then rebuild the tables."""
        for word in words:
            self.add(word)
        self.threshold(1, 0)
        self.init_table_discard()
        self.init_ngrams()

    def dump(self) -> Iterable[str]:
        yield str(self.size)
        for entry in self.words:
            kind = "word" if entry.type == EntryType.WORD else "label"
            yield f"{entry.word} {entry.count} {kind}"
