"""Character n-gram extraction and hashing.

A word is padded with boundary markers (``<word>``) and broken into:

* contiguous n-grams of ``minn..maxn`` characters, and
* skip-pattern n-grams: for ``k`` in ``1..maxskip``, every window of
  ``n + k`` consecutive characters (``minn <= n <= maxn``, ``n >= 2``)
  yields one variant per choice of ``k`` interior characters to drop.
  The window's first and last characters are always kept and each dropped
  character is written as the skip marker, so ``<katab>`` produces
  ``k_t``, ``a_a`` and friends. These approximate consonantal roots and
  vowel templates in root-and-pattern morphology.

Every n-gram string is hashed with 32-bit FNV-1a into a fixed bucket space.
"""

from itertools import combinations
from typing import List, Sequence

from hornvecs.config import BOW, EOW, SKIP_MARKER

FNV_OFFSET = 2166136261
FNV_PRIME = 16777619
WORD_NGRAM_PRIME = 116049371

_UINT32 = 0xFFFFFFFF
_UINT64 = 0xFFFFFFFFFFFFFFFF


def fnv1a_hash(text: str) -> int:
    """32-bit FNV-1a over the UTF-8 bytes of ``text``.

    Bytes are sign-extended before mixing, so non-ASCII characters hash the
    same way they do in models trained by the reference C++ tool.
    """
    h = FNV_OFFSET
    for b in text.encode("utf-8"):
        if b & 0x80:
            b |= 0xFFFFFF00
        h = ((h ^ b) * FNV_PRIME) & _UINT32
    return h


def pad_word(word: str) -> str:
    return BOW + word + EOW


def contiguous_ngrams(chars: str, minn: int, maxn: int) -> List[str]:
    """Contiguous n-grams of an already padded word.

    Single characters are skipped when they are a boundary marker.
    """
    ngrams = []
    size = len(chars)
    for i in range(size):
        for n in range(1, maxn + 1):
            j = i + n
            if j > size:
                break
            if n >= minn and not (n == 1 and (i == 0 or j == size)):
                ngrams.append(chars[i:j])
    return ngrams


def skip_ngrams(
    chars: str, minn: int, maxn: int, maxskip: int, marker: str = SKIP_MARKER
) -> List[str]:
    """Non-contiguous n-grams of an already padded word.

    Args:
        chars: Padded word
        minn: Minimum number of kept characters
        maxn: Maximum number of kept characters
        maxskip: Maximum number of dropped characters per variant
        marker: Character written in place of each dropped character

    Returns:
        List of skip-pattern n-grams, in window order
    """
    ngrams = []
    size = len(chars)
    for k in range(1, maxskip + 1):
        for n in range(max(minn, 2), maxn + 1):
            width = n + k
            for start in range(0, size - width + 1):
                interior = range(start + 1, start + width - 1)
                for dropped in combinations(interior, k):
                    dropped = set(dropped)
                    ngrams.append(
                        "".join(
                            marker if p in dropped else chars[p]
                            for p in range(start, start + width)
                        )
                    )
    return ngrams


def char_ngrams(
    word: str,
    minn: int,
    maxn: int,
    maxskip: int = 0,
    marker: str = SKIP_MARKER,
) -> List[str]:
    """All character n-grams of ``word`` (padded internally)."""
    if maxn <= 0:
        return []
    chars = pad_word(word)
    ngrams = contiguous_ngrams(chars, minn, maxn)
    if maxskip > 0:
        ngrams.extend(skip_ngrams(chars, minn, maxn, maxskip, marker))
    return ngrams


def _as_uint64(h32: int) -> int:
    # Word hashes are kept as signed 32-bit values and widen with sign extension.
    if h32 & 0x80000000:
        h32 -= 1 << 32
    return h32 & _UINT64


def word_ngram_ids(hashes: Sequence[int], n: int, nwords: int, bucket: int) -> List[int]:
    """Bucket ids for word n-grams of length 2..n over a line's word hashes."""
    if bucket <= 0 or n <= 1:
        return []
    ids = []
    size = len(hashes)
    for i in range(size):
        h = _as_uint64(hashes[i])
        for j in range(i + 1, min(size, i + n)):
            h = (h * WORD_NGRAM_PRIME + _as_uint64(hashes[j])) & _UINT64
            ids.append(nwords + h % bucket)
    return ids
