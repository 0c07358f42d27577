"""Subword embeddings and text classification with skip-pattern morphology."""

__version__ = "0.1.0"

# Configuration
from hornvecs.config import Args

# Errors
from hornvecs.errors import (
    ConfigurationError,
    DataError,
    HornVecsError,
    ModelFormatError,
    ModelIOError,
)

# Vocabulary and subwords
from hornvecs.dictionary import Dictionary, Entry, EntryType
from hornvecs.subwords import char_ngrams, fnv1a_hash
from hornvecs.tokenization import tokenize
from hornvecs.pairs import PairGenerator

# Parameters and losses
from hornvecs.matrix import Matrix, QuantMatrix, Vector
from hornvecs.hierarchical_softmax import HierarchicalSoftmaxLoss, HuffmanTree
from hornvecs.negative_sampling import NegativeSamplingLoss, NoiseSampler
from hornvecs.losses import OneVsAllLoss, SoftmaxLoss
from hornvecs.models import Model, State

# Training and evaluation
from hornvecs.training import Trainer, TrainerState
from hornvecs.meter import Meter

# Model files and high-level interface
from hornvecs.serialization import load_model as read_model, save_model as write_model
from hornvecs.api import HornVecs, load_model, train_supervised, train_unsupervised

# Utilities
from hornvecs.utils import export_vectors, load_vectors, set_seed

__all__ = [
    # Configuration
    "Args",
    # Errors
    "HornVecsError",
    "ConfigurationError",
    "DataError",
    "ModelFormatError",
    "ModelIOError",
    # Vocabulary
    "Dictionary",
    "Entry",
    "EntryType",
    "char_ngrams",
    "fnv1a_hash",
    "tokenize",
    "PairGenerator",
    # Parameters and losses
    "Matrix",
    "QuantMatrix",
    "Vector",
    "HierarchicalSoftmaxLoss",
    "HuffmanTree",
    "NegativeSamplingLoss",
    "NoiseSampler",
    "OneVsAllLoss",
    "SoftmaxLoss",
    "Model",
    "State",
    # Training
    "Trainer",
    "TrainerState",
    "Meter",
    # Model files
    "read_model",
    "write_model",
    "HornVecs",
    "load_model",
    "train_supervised",
    "train_unsupervised",
    # Utilities
    "export_vectors",
    "load_vectors",
    "set_seed",
]
