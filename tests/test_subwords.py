"""Tests for hashing and character n-gram extraction."""

from math import comb

import pytest

from hornvecs.subwords import (
    FNV_OFFSET,
    FNV_PRIME,
    char_ngrams,
    contiguous_ngrams,
    fnv1a_hash,
    pad_word,
    skip_ngrams,
    word_ngram_ids,
)


class TestFnv1aHash:
    """Test cases for the 32-bit FNV-1a hash."""

    def test_empty_string_is_offset_basis(self):
        assert fnv1a_hash("") == 2166136261

    def test_known_ascii_value(self):
        assert fnv1a_hash("a") == 0xE40C292C

    def test_non_ascii_bytes_are_sign_extended(self):
        # "é" is C3 A9 in UTF-8; both bytes have the high bit set
        h = FNV_OFFSET
        for b in (0xFFFFFFC3, 0xFFFFFFA9):
            h = ((h ^ b) * FNV_PRIME) & 0xFFFFFFFF
        assert fnv1a_hash("é") == h

    def test_deterministic_and_in_range(self):
        for text in ["<ka", "k_t", "word>", "日本語"]:
            h = fnv1a_hash(text)
            assert h == fnv1a_hash(text)
            assert 0 <= h < 2**32


class TestContiguousNgrams:
    """Test cases for contiguous character n-grams."""

    def test_padding(self):
        assert pad_word("ab") == "<ab>"

    def test_trigrams(self):
        assert contiguous_ngrams("<ab>", 3, 3) == ["<ab", "ab>"]

    def test_boundary_unigrams_are_skipped(self):
        assert char_ngrams("ab", 1, 2, maxskip=0) == ["<a", "a", "ab", "b", "b>"]

    def test_maxn_zero_gives_nothing(self):
        assert char_ngrams("word", 0, 0, maxskip=2) == []

    def test_ngram_lengths_within_bounds(self):
        for ngram in char_ngrams("morphology", 3, 5, maxskip=0):
            assert 3 <= len(ngram) <= 5


class TestSkipNgrams:
    """Test cases for skip-pattern n-grams."""

    def test_single_skip_bigrams(self):
        assert skip_ngrams("<katab>", 2, 2, 1) == ["<_a", "k_t", "a_a", "t_b", "a_>"]

    def test_root_pattern_is_extracted(self):
        ngrams = char_ngrams("katab", 2, 3, maxskip=1)
        assert "k_t" in ngrams
        assert "k_ta" in ngrams
        assert "ka_a" in ngrams

    def test_two_skips_write_one_marker_each(self):
        ngrams = skip_ngrams("<kata>", 2, 2, 2)
        assert "k__a" in ngrams
        assert "<__t" in ngrams

    def test_first_and_last_characters_kept(self):
        chars = "<morph>"
        for ngram in skip_ngrams(chars, 2, 3, 2):
            assert ngram[0] != "_"
            assert ngram[-1] != "_"

    def test_custom_marker(self):
        assert skip_ngrams("<abc>", 2, 2, 1, marker="*")[1] == "a*c"

    def test_maxskip_zero_matches_contiguous(self):
        assert char_ngrams("katab", 3, 6, maxskip=0) == contiguous_ngrams("<katab>", 3, 6)

    def test_short_word_has_no_wide_windows(self):
        assert skip_ngrams("<a>", 3, 3, 1) == []

    @pytest.mark.parametrize("maxskip", [1, 2])
    def test_count(self, maxskip):
        # Windows of n + k chars; C(n + k - 2, k) variants each
        chars = "<abcdef>"
        expected = 0
        for k in range(1, maxskip + 1):
            for n in range(2, 4):
                windows = max(len(chars) - (n + k) + 1, 0)
                expected += windows * comb(n + k - 2, k)
        assert len(skip_ngrams(chars, 2, 3, maxskip)) == expected


class TestWordNgramIds:
    """Test cases for hashed word n-grams."""

    def test_unigrams_only_gives_nothing(self):
        assert word_ngram_ids([1, 2, 3], 1, 10, 100) == []

    def test_no_bucket_gives_nothing(self):
        assert word_ngram_ids([1, 2, 3], 2, 10, 0) == []

    def test_bigrams_and_trigrams(self):
        hashes = [fnv1a_hash(w) for w in ["a", "b", "c"]]
        ids = word_ngram_ids(hashes, 3, 10, 100)
        # (a,b) (a,b,c) (b,c)
        assert len(ids) == 3
        assert all(10 <= i < 110 for i in ids)

    def test_order_matters(self):
        ab = word_ngram_ids([fnv1a_hash("a"), fnv1a_hash("b")], 2, 0, 1000003)
        ba = word_ngram_ids([fnv1a_hash("b"), fnv1a_hash("a")], 2, 0, 1000003)
        assert ab != ba
