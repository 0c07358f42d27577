"""Tests for the binary model format."""

import os
import struct

import pytest
import torch

from hornvecs.api import HornVecs
from hornvecs.dictionary import Dictionary, EntryType
from hornvecs.errors import ModelFormatError, ModelIOError
from hornvecs.hierarchical_softmax import HuffmanTree
from hornvecs.matrix import Matrix, QuantMatrix
from hornvecs.serialization import MODEL_MAGIC, MODEL_VERSION, load_model, save_model

LINES = ["the cat sat", "the dog sat"]
PERSISTED_FIELDS = [
    "model", "loss", "lr", "lr_update_rate", "dim", "ws", "epoch", "min_count",
    "min_count_label", "neg", "word_ngrams", "bucket", "minn", "maxn", "maxskip",
    "skip_marker", "t", "label", "seed",
]


def _parts(make_args, **overrides):
    args = make_args("skipgram", input="unused", dim=8, bucket=50, **overrides)
    dictionary = Dictionary(args).read_from_lines(LINES)
    generator = torch.Generator().manual_seed(0)
    input_matrix = Matrix(dictionary.nwords + args.bucket, args.dim)
    input_matrix.uniform_(0.1, generator=generator)
    output_matrix = Matrix(dictionary.nwords, args.dim)
    output_matrix.uniform_(0.1, generator=generator)
    return args, dictionary, input_matrix, output_matrix


@pytest.fixture
def saved_model(make_args, tmp_path):
    args, dictionary, input_matrix, output_matrix = _parts(make_args, maxskip=2, skip_marker="*")
    path = str(tmp_path / "model.bin")
    save_model(path, args, dictionary, input_matrix, output_matrix)
    return path, args, dictionary, input_matrix, output_matrix


class TestRoundTrip:
    """Test cases for save_model followed by load_model."""

    def test_args_preserved(self, saved_model):
        path, args, *_ = saved_model
        loaded = load_model(path)
        for name in PERSISTED_FIELDS:
            assert getattr(loaded.args, name) == getattr(args, name), name
        assert loaded.args.qout is False

    def test_dictionary_preserved(self, saved_model):
        path, _, dictionary, *_ = saved_model
        loaded = load_model(path).dictionary
        assert loaded.get_words() == dictionary.get_words()
        assert loaded.get_counts(EntryType.WORD) == dictionary.get_counts(EntryType.WORD)
        assert loaded.ntokens == dictionary.ntokens
        for word in dictionary.get_words() + ["cats"]:
            assert loaded.get_subwords(word) == dictionary.get_subwords(word)

    def test_matrices_preserved(self, saved_model):
        path, _, _, input_matrix, output_matrix = saved_model
        loaded = load_model(path)
        assert torch.equal(loaded.input.data, input_matrix.data)
        assert torch.equal(loaded.output.data, output_matrix.data)
        assert loaded.tree is None

    def test_header(self, saved_model):
        with open(saved_model[0], "rb") as f:
            assert struct.unpack("<ii", f.read(8)) == (MODEL_MAGIC, MODEL_VERSION)

    def test_no_temporary_files_left(self, saved_model, tmp_path):
        assert os.listdir(tmp_path) == ["model.bin"]

    def test_hierarchical_softmax_tree(self, make_args, tmp_path):
        args, dictionary, input_matrix, output_matrix = _parts(make_args, loss="hs")
        tree = HuffmanTree(dictionary.get_counts(EntryType.WORD))
        path = str(tmp_path / "hs.bin")
        save_model(path, args, dictionary, input_matrix, output_matrix, tree)

        loaded = load_model(path)
        assert loaded.tree.codes == tree.codes
        assert loaded.tree.paths == tree.paths

    def test_quantized(self, make_args, tmp_path):
        args, dictionary, input_matrix, output_matrix = _parts(make_args)
        qinput = QuantMatrix.from_matrix(input_matrix)
        qoutput = QuantMatrix.from_matrix(output_matrix)
        path = str(tmp_path / "model.ftz")
        save_model(path, args, dictionary, qinput, qoutput)

        loaded = load_model(path)
        assert loaded.input.quantized
        assert loaded.args.qout is True
        assert torch.equal(loaded.input.codes, qinput.codes)
        assert torch.equal(loaded.output.scales, qoutput.scales)

    def test_dense_output_with_quantized_input(self, make_args, tmp_path):
        args, dictionary, input_matrix, output_matrix = _parts(make_args)
        path = str(tmp_path / "model.ftz")
        save_model(path, args, dictionary, QuantMatrix.from_matrix(input_matrix), output_matrix)

        loaded = load_model(path)
        assert loaded.input.quantized
        assert not loaded.output.quantized
        assert loaded.args.qout is False


class TestLoadErrors:
    """Test cases for rejected model files."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ModelIOError):
            load_model(str(tmp_path / "missing.bin"))

    def test_wrong_magic(self, tmp_path):
        path = tmp_path / "bad.bin"
        path.write_bytes(struct.pack("<ii", 0x12345678, MODEL_VERSION) + b"\0" * 64)
        with pytest.raises(ModelFormatError):
            load_model(str(path))

    def test_wrong_version(self, saved_model):
        path = saved_model[0]
        with open(path, "rb") as f:
            data = bytearray(f.read())
        data[4:8] = struct.pack("<i", MODEL_VERSION + 1)
        with open(path, "wb") as f:
            f.write(bytes(data))
        with pytest.raises(ModelFormatError):
            load_model(path)

    def test_truncated_file(self, saved_model):
        path = saved_model[0]
        with open(path, "rb") as f:
            data = f.read()
        with open(path, "wb") as f:
            f.write(data[: len(data) // 2])
        with pytest.raises(ModelIOError):
            load_model(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.bin"
        path.write_bytes(b"")
        with pytest.raises(ModelIOError):
            load_model(str(path))

    def test_matrix_shape_mismatch(self, make_args, tmp_path):
        args, dictionary, _, output_matrix = _parts(make_args)
        path = str(tmp_path / "model.bin")
        save_model(path, args, dictionary, Matrix(3, args.dim), output_matrix)
        with pytest.raises(ModelFormatError):
            load_model(path)

    def test_failed_load_keeps_previous_model(self, saved_model, tmp_path):
        path = saved_model[0]
        model = HornVecs().load_model(path)
        words = model.get_words()

        with pytest.raises(ModelIOError):
            model.load_model(str(tmp_path / "missing.bin"))

        assert model.get_words() == words
        assert model.get_dimension() == 8
