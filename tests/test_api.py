"""Integration tests for the high-level API."""

import numpy as np
import pytest

from hornvecs import HornVecs, load_model, train_supervised, train_unsupervised
from hornvecs.errors import ConfigurationError, DataError

pytestmark = pytest.mark.slow

REVIEWS = [
    "__label__pos great movie",
    "__label__neg bad movie",
    "__label__pos great film",
    "__label__neg bad film",
]


@pytest.fixture(scope="module")
def workdir(tmp_path_factory):
    return tmp_path_factory.mktemp("api")


@pytest.fixture(scope="module")
def word_model(workdir):
    corpus = workdir / "toy.txt"
    corpus.write_text("the cat sat\nthe dog sat\n", encoding="utf-8")
    return train_unsupervised(
        str(corpus),
        model="skipgram",
        output=str(workdir / "toy"),
        dim=4,
        epoch=5,
        min_count=1,
        bucket=1000,
        thread=1,
        verbose=0,
    )


@pytest.fixture(scope="module")
def classifier(workdir):
    corpus = workdir / "reviews.txt"
    corpus.write_text("\n".join(REVIEWS * 10) + "\n", encoding="utf-8")
    return train_supervised(
        str(corpus),
        output=str(workdir / "reviews"),
        dim=10,
        lr=0.5,
        epoch=20,
        thread=1,
        verbose=0,
    )


class TestEmptyModel:
    """Test cases for an instance with nothing loaded."""

    def test_queries_raise(self):
        model = HornVecs()
        assert not model.is_quant()
        with pytest.raises(ConfigurationError):
            model.get_words()
        with pytest.raises(ConfigurationError):
            model.save_model("unused.bin")


class TestWordVectors:
    """Test cases for an unsupervised model."""

    def test_vocabulary(self, word_model):
        assert word_model.get_words() == ["the", "sat", "cat", "dog"]
        words, counts = word_model.get_words(include_freq=True)
        assert counts == [2, 2, 1, 1]
        assert word_model.get_labels() == []
        assert word_model.get_dimension() == 4

    def test_saved_vectors(self, word_model):
        path = word_model.save_vectors()
        assert path.endswith("toy.vec")
        with open(path, encoding="utf-8") as f:
            lines = f.read().splitlines()
        assert lines[0] == "4 4"
        assert len(lines) == 5
        assert lines[1].split()[0] == "the"
        assert len(lines[1].split()) == 5

    def test_word_vector_is_mean_of_subwords(self, word_model):
        _, ids = word_model.get_subwords("cat")
        expected = np.mean([word_model.get_input_vector(i) for i in ids], axis=0)
        assert np.allclose(word_model.get_word_vector("cat"), expected, atol=1e-6)

    def test_oov_word_vector(self, word_model):
        vec = word_model.get_word_vector("cats")
        assert vec.shape == (4,)
        assert np.isfinite(vec).all()
        assert np.linalg.norm(vec) > 0

    def test_subword_strings(self, word_model):
        strings, ids = word_model.get_subwords("cat")
        assert strings[0] == "cat"
        assert ids[0] == word_model.get_word_id("cat")
        assert "<ca" in strings
        assert "c_t>" in strings

    def test_sentence_vector(self, word_model):
        vec = word_model.get_sentence_vector("the cat")
        assert vec.shape == (4,)
        assert np.linalg.norm(vec) <= 1.0 + 1e-5
        assert not word_model.get_sentence_vector("").any()

    def test_predict_needs_supervised_model(self, word_model):
        with pytest.raises(ConfigurationError):
            word_model.predict("the cat")

    def test_matrices(self, word_model):
        assert word_model.get_input_matrix().shape == (4 + 1000, 4)
        assert word_model.get_output_matrix().shape == (4, 4)

    def test_save_and_load(self, word_model, workdir):
        path = word_model.save_model(str(workdir / "copy.bin"))
        loaded = load_model(path)
        assert loaded.get_words() == word_model.get_words()
        assert np.array_equal(loaded.get_word_vector("cats"), word_model.get_word_vector("cats"))


class TestClassifier:
    """Test cases for a supervised model."""

    def test_labels(self, classifier):
        assert classifier.get_labels() == ["__label__pos", "__label__neg"]

    def test_predict(self, classifier):
        (label, prob), = classifier.predict("great movie")
        assert label == "__label__pos"
        assert 0.5 < prob <= 1.0
        assert classifier.predict("bad film")[0][0] == "__label__neg"

    def test_predict_all_labels(self, classifier):
        predictions = classifier.predict("great", k=-1)
        assert [label for label, _ in predictions][0] == "__label__pos"
        assert len(predictions) == 2
        assert sum(prob for _, prob in predictions) == pytest.approx(1.0, abs=1e-3)

    def test_predict_threshold(self, classifier):
        predictions = classifier.predict("great movie", k=2, threshold=0.5)
        assert [label for label, _ in predictions] == ["__label__pos"]

    def test_predict_unknown_words(self, classifier):
        assert classifier.predict("nothing known here") == []

    def test_predict_bad_k(self, classifier):
        with pytest.raises(ValueError):
            classifier.predict("great", k=0)

    def test_precision_equals_recall_at_one(self, classifier):
        n, precision, recall = classifier.test(REVIEWS)
        assert n == 4
        assert precision == recall == 1.0

    def test_lines_without_labels_are_not_counted(self, classifier):
        n, _, _ = classifier.test(["great movie", "__label__pos great"])
        assert n == 1

    def test_save_output(self, classifier):
        path = classifier.save_output()
        with open(path, encoding="utf-8") as f:
            lines = f.read().splitlines()
        assert lines[0] == "2 10"
        assert lines[1].startswith("__label__pos ")

    def test_dump_args(self, classifier):
        dumped = classifier.dump_args()
        assert "model supervised" in dumped.splitlines()
        assert classifier.dump_dictionary()[0] == "6"


@pytest.fixture(scope="module")
def quantized(classifier, workdir):
    path = classifier.save_model(str(workdir / "reviews-copy.bin"))
    model = load_model(path).quantize()
    saved = model.save_model()
    return model, saved


class TestQuantization:
    """Test cases for int8 compression."""

    def test_saved_as_ftz(self, quantized, workdir):
        """A loaded model saves next to the file it came from."""
        model, path = quantized
        assert model.is_quant()
        assert path == str(workdir / "reviews-copy.ftz")
        assert load_model(path).is_quant()

    def test_predictions_survive(self, quantized):
        model, path = quantized
        assert load_model(path).predict("great movie")[0][0] == "__label__pos"
        assert model.predict("bad film")[0][0] == "__label__neg"

    def test_cannot_quantize_twice(self, quantized):
        with pytest.raises(ConfigurationError):
            quantized[0].quantize()

    def test_cannot_train(self, quantized):
        model, _ = quantized
        with pytest.raises(ConfigurationError):
            model.train(model.args)

    def test_input_matrix_is_dequantized(self, quantized):
        matrix = quantized[0].get_input_matrix()
        assert matrix.dtype == np.float32
        assert matrix.shape[1] == 10


class TestToyCorpora:
    """Test cases for the smallest corpora a model can be trained on."""

    def test_skipgram_without_subwords(self, workdir):
        corpus = workdir / "abcd.txt"
        corpus.write_text("a b c\nb c d\n", encoding="utf-8")
        model = train_unsupervised(
            str(corpus),
            model="skipgram",
            output=str(workdir / "abcd"),
            dim=4,
            epoch=1,
            min_count=1,
            bucket=0,
            minn=0,
            maxn=0,
            thread=1,
            verbose=0,
        )
        assert model.get_input_matrix().shape == (4, 4)

        with open(model.save_vectors(), encoding="utf-8") as f:
            lines = f.read().splitlines()
        assert lines[0] == "4 4"
        rows = [line.split() for line in lines[1:]]
        assert sorted(row[0] for row in rows) == ["a", "b", "c", "d"]
        for row in rows:
            assert len(row) == 5
            assert all(np.isfinite(float(value)) for value in row[1:])

    def test_predict_with_unseen_word(self, workdir):
        corpus = workdir / "two-reviews.txt"
        corpus.write_text(
            "great movie __label__pos\nbad movie __label__neg\n", encoding="utf-8"
        )
        model = train_supervised(
            str(corpus),
            output=str(workdir / "two-reviews"),
            dim=10,
            lr=0.5,
            epoch=50,
            thread=1,
            verbose=0,
        )
        assert model.get_word_id("film") == -1
        assert model.predict("great film")[0][0] == "__label__pos"

    def test_labels_only_corpus(self, workdir):
        corpus = workdir / "labels-only.txt"
        corpus.write_text("__label__a __label__b\n__label__a\n", encoding="utf-8")
        with pytest.raises(DataError):
            train_unsupervised(
                str(corpus), output=str(workdir / "labels-only"), min_count=1, verbose=0
            )
