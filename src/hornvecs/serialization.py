"""Binary model format.

All integers and floats are little-endian. A file holds, in order:

* magic (int32) and format version (int32)
* the training arguments
* the dictionary: size, nwords, nlabels (int32), ntokens (int64), then one
  NUL-terminated UTF-8 string, int64 count and int8 type per entry
* a has-tree flag (int8) and, when set, the Huffman tree node arrays
* a quantized flag (int8) and the input matrix
* a quantized flag (int8) and the output matrix

Dense matrices are stored as int64 rows, int64 cols and row-major float32
values; quantized matrices as int64 rows, int64 cols, one float32 scale per
row and row-major int8 codes.
"""

import struct
from typing import BinaryIO, NamedTuple, Optional, Union

import numpy as np
import torch

from hornvecs.config import LOSS_TYPES, MODEL_TYPES, Args
from hornvecs.dictionary import Dictionary, Entry, EntryType
from hornvecs.errors import ModelFormatError, ModelIOError
from hornvecs.hierarchical_softmax import HuffmanTree
from hornvecs.matrix import Matrix, QuantMatrix
from hornvecs.utils import atomic_write

MODEL_MAGIC = 0x484F524E
MODEL_VERSION = 1

AnyMatrix = Union[Matrix, QuantMatrix]


class LoadedModel(NamedTuple):
    """Everything read back from a model file."""

    args: Args
    dictionary: Dictionary
    input: AnyMatrix
    output: AnyMatrix
    tree: Optional[HuffmanTree]


class _Reader:
    """Cursor over the bytes of a model file."""

    def __init__(self, data: bytes, path: str):
        self.raw = data
        self.data = memoryview(data)
        self.pos = 0
        self.path = path

    def read(self, size: int) -> memoryview:
        end = self.pos + size
        if size < 0 or end > len(self.data):
            raise ModelIOError(f"Truncated model file at byte {self.pos}", self.path)
        chunk = self.data[self.pos : end]
        self.pos = end
        return chunk

    def unpack(self, fmt: str):
        fmt = "<" + fmt
        values = struct.unpack(fmt, self.read(struct.calcsize(fmt)))
        return values[0] if len(values) == 1 else values

    def string(self) -> str:
        end = self.raw.find(b"\0", self.pos)
        if end < 0:
            raise ModelIOError(f"Truncated model file at byte {self.pos}", self.path)
        raw = self.read(end - self.pos)
        self.pos += 1
        return bytes(raw).decode("utf-8", errors="replace")

    def array(self, dtype: str, count: int) -> np.ndarray:
        dt = np.dtype(dtype).newbyteorder("<")
        return np.frombuffer(self.read(dt.itemsize * count), dtype=dt).copy()


def _pack(f: BinaryIO, fmt: str, *values) -> None:
    f.write(struct.pack("<" + fmt, *values))


def _write_string(f: BinaryIO, text: str) -> None:
    f.write(text.encode("utf-8") + b"\0")


def write_args(f: BinaryIO, args: Args) -> None:
    _pack(
        f,
        "13i",
        args.dim,
        args.ws,
        args.epoch,
        args.min_count,
        args.neg,
        args.word_ngrams,
        LOSS_TYPES.index(args.loss),
        MODEL_TYPES.index(args.model),
        args.bucket,
        args.minn,
        args.maxn,
        args.maxskip,
        args.lr_update_rate,
    )
    _pack(f, "dd", args.t, args.lr)
    _pack(f, "2i", args.min_count_label, args.seed)
    _write_string(f, args.label)
    _write_string(f, args.skip_marker)


def read_args(reader: _Reader) -> Args:
    (
        dim,
        ws,
        epoch,
        min_count,
        neg,
        word_ngrams,
        loss,
        model,
        bucket,
        minn,
        maxn,
        maxskip,
        lr_update_rate,
    ) = reader.unpack("13i")
    t, lr = reader.unpack("dd")
    min_count_label, seed = reader.unpack("2i")
    label = reader.string()
    skip_marker = reader.string()

    if not 0 <= loss < len(LOSS_TYPES) or not 0 <= model < len(MODEL_TYPES):
        raise ModelFormatError(f"Unknown loss or model id in {reader.path}")

    return Args(
        model=MODEL_TYPES[model],
        loss=LOSS_TYPES[loss],
        lr=lr,
        lr_update_rate=lr_update_rate,
        dim=dim,
        ws=ws,
        epoch=epoch,
        min_count=min_count,
        min_count_label=min_count_label,
        neg=neg,
        word_ngrams=word_ngrams,
        bucket=bucket,
        minn=minn,
        maxn=maxn,
        maxskip=maxskip,
        skip_marker=skip_marker,
        t=t,
        label=label,
        seed=seed,
    )


def write_dictionary(f: BinaryIO, dictionary: Dictionary) -> None:
    _pack(f, "3iq", dictionary.size, dictionary.nwords, dictionary.nlabels, dictionary.ntokens)
    for entry in dictionary.words:
        _write_string(f, entry.word)
        _pack(f, "qb", entry.count, int(entry.type))


def read_dictionary(reader: _Reader, args: Args) -> Dictionary:
    """Rebuild a dictionary, recomputing its discard and subword tables.

    Raises:
        ModelFormatError: If the header counts are inconsistent
        ModelIOError: If the block is truncated
    """
    size, nwords, nlabels, ntokens = reader.unpack("3iq")
    if size < 0 or nwords < 0 or nlabels < 0 or nwords + nlabels != size:
        raise ModelFormatError(f"Corrupt dictionary header in {reader.path}")

    dictionary = Dictionary(args)
    dictionary.ntokens = ntokens
    for i in range(size):
        word = reader.string()
        count, kind = reader.unpack("qb")
        if kind not in (EntryType.WORD, EntryType.LABEL):
            raise ModelFormatError(f"Unknown entry type {kind} in {reader.path}")
        dictionary.words.append(Entry(word, count, EntryType(kind)))
        dictionary.word2int[word] = i
    dictionary.nwords = nwords
    dictionary.nlabels = nlabels
    dictionary.init_table_discard()
    dictionary.init_ngrams()
    return dictionary


def write_tree(f: BinaryIO, tree: Optional[HuffmanTree]) -> None:
    if tree is None:
        _pack(f, "b", 0)
        return
    _pack(f, "b", 1)
    _pack(f, "i", len(tree.parent))
    f.write(np.asarray(tree.parent, dtype="<i4").tobytes())
    f.write(np.asarray(tree.left, dtype="<i4").tobytes())
    f.write(np.asarray(tree.right, dtype="<i4").tobytes())
    f.write(np.asarray(tree.count, dtype="<i8").tobytes())
    f.write(np.asarray(tree.binary, dtype="<i1").tobytes())


def read_tree(reader: _Reader) -> Optional[HuffmanTree]:
    if not reader.unpack("b"):
        return None
    n = reader.unpack("i")
    parent = reader.array("i4", n)
    left = reader.array("i4", n)
    right = reader.array("i4", n)
    count = reader.array("i8", n)
    binary = reader.array("i1", n)
    return HuffmanTree.from_arrays(
        parent.tolist(), left.tolist(), right.tolist(), count.tolist(), binary.tolist()
    )


def write_matrix(f: BinaryIO, matrix: AnyMatrix) -> None:
    _pack(f, "b", int(matrix.quantized))
    _pack(f, "qq", matrix.rows, matrix.cols)
    if matrix.quantized:
        f.write(matrix.scales.numpy().astype("<f4").tobytes())
        f.write(matrix.codes.numpy().astype("<i1").tobytes())
    else:
        f.write(matrix.data.numpy().astype("<f4").tobytes())


def read_matrix(reader: _Reader) -> AnyMatrix:
    quantized = reader.unpack("b")
    m, n = reader.unpack("qq")
    if m < 0 or n < 0:
        raise ModelFormatError(f"Negative matrix shape in {reader.path}")
    if quantized:
        scales = reader.array("f4", m)
        codes = reader.array("i1", m * n).reshape(m, n)
        return QuantMatrix(
            torch.from_numpy(codes.astype(np.int8)), torch.from_numpy(scales.astype(np.float32))
        )
    values = reader.array("f4", m * n).reshape(m, n)
    return Matrix.from_tensor(torch.from_numpy(values.astype(np.float32)))


def save_model(
    path: str,
    args: Args,
    dictionary: Dictionary,
    input_matrix: AnyMatrix,
    output_matrix: AnyMatrix,
    tree: Optional[HuffmanTree] = None,
) -> None:
    """Write a complete model file.

    The file is written next to ``path`` under a temporary name and moved
    into place once complete.

    Args:
        path: Destination (``.bin`` or ``.ftz``)
        args: Training arguments
        dictionary: Built dictionary
        input_matrix: Word and subword vectors
        output_matrix: Output layer
        tree: Huffman tree of a hierarchical softmax model

    Raises:
        ModelIOError: If the file cannot be written
    """
    with atomic_write(path, "wb") as f:
        _pack(f, "ii", MODEL_MAGIC, MODEL_VERSION)
        write_args(f, args)
        write_dictionary(f, dictionary)
        write_tree(f, tree)
        write_matrix(f, input_matrix)
        write_matrix(f, output_matrix)


def load_model(path: str) -> LoadedModel:
    """Read a model file into fresh objects.

    Args:
        path: Path to a ``.bin`` or ``.ftz`` file

    Returns:
        LoadedModel with arguments, dictionary, matrices and tree

    Raises:
        ModelIOError: If the file cannot be read or is truncated
        ModelFormatError: If the magic, version or block shapes are wrong
    """
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise ModelIOError(f"Cannot load model ({e.strerror})", path) from e

    reader = _Reader(data, path)
    magic, version = reader.unpack("ii")
    if magic != MODEL_MAGIC:
        raise ModelFormatError(f"{path} has wrong file format!")
    if version != MODEL_VERSION:
        raise ModelFormatError(f"{path} has unsupported format version {version}")

    args = read_args(reader)
    dictionary = read_dictionary(reader, args)
    tree = read_tree(reader)
    input_matrix = read_matrix(reader)
    output_matrix = read_matrix(reader)

    expected_input = dictionary.nwords + args.bucket
    expected_output = dictionary.nlabels if args.is_supervised else dictionary.nwords
    if input_matrix.rows != expected_input or input_matrix.cols != args.dim:
        raise ModelFormatError(
            f"Input matrix is {input_matrix.rows}x{input_matrix.cols}, "
            f"expected {expected_input}x{args.dim}"
        )
    if output_matrix.rows != expected_output or output_matrix.cols != args.dim:
        raise ModelFormatError(
            f"Output matrix is {output_matrix.rows}x{output_matrix.cols}, "
            f"expected {expected_output}x{args.dim}"
        )
    if args.loss == "hs" and tree is None:
        raise ModelFormatError(f"{path} is a hierarchical softmax model without a tree")
    if tree is not None and tree.num_leaves != expected_output:
        raise ModelFormatError(
            f"Huffman tree has {tree.num_leaves} leaves, expected {expected_output}"
        )

    args = args.with_updates(qout=output_matrix.quantized)
    return LoadedModel(args, dictionary, input_matrix, output_matrix, tree)
