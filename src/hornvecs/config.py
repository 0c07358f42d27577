"""Centralized configuration management for hornvecs."""

from dataclasses import asdict, dataclass, fields, replace
from typing import Literal, Optional

from hornvecs.errors import ConfigurationError


# Constants
DEFAULT_LEARNING_RATE = 0.05
DEFAULT_SUPERVISED_LEARNING_RATE = 0.1
DEFAULT_EMBEDDING_DIM = 100
DEFAULT_WINDOW_SIZE = 5
DEFAULT_EPOCHS = 5
DEFAULT_MIN_COUNT = 5
DEFAULT_NEGATIVES = 5
DEFAULT_BUCKET = 2000000
DEFAULT_MINN = 3
DEFAULT_MAXN = 6
DEFAULT_MAXSKIP = 1
DEFAULT_LR_UPDATE_RATE = 100
DEFAULT_SAMPLING_THRESHOLD = 1e-4
DEFAULT_THREADS = 12
DEFAULT_SEED = 0

LABEL_PREFIX = "__label__"
SKIP_MARKER = "_"
BOW = "<"
EOW = ">"

# Longest unsupervised example, in tokens
MAX_LINE_SIZE = 1024

# Type aliases
ModelType = Literal["skipgram", "cbow", "supervised"]
LossType = Literal["ns", "hs", "softmax", "ova"]

MODEL_TYPES = ("cbow", "skipgram", "supervised")
LOSS_TYPES = ("hs", "ns", "softmax", "ova")


@dataclass(frozen=True)
class Args:
    """Hyperparameters for one training run.

    A snapshot of this object is persisted with every model, so inference
    sees exactly the settings the model was trained with.
    """

    input: str = ""
    output: str = ""
    model: ModelType = "skipgram"
    loss: LossType = "ns"
    lr: float = DEFAULT_LEARNING_RATE
    lr_update_rate: int = DEFAULT_LR_UPDATE_RATE
    dim: int = DEFAULT_EMBEDDING_DIM
    ws: int = DEFAULT_WINDOW_SIZE
    epoch: int = DEFAULT_EPOCHS
    min_count: int = DEFAULT_MIN_COUNT
    min_count_label: int = 0
    neg: int = DEFAULT_NEGATIVES
    word_ngrams: int = 1
    bucket: int = DEFAULT_BUCKET
    minn: int = DEFAULT_MINN
    maxn: int = DEFAULT_MAXN
    maxskip: int = DEFAULT_MAXSKIP
    skip_marker: str = SKIP_MARKER
    thread: int = DEFAULT_THREADS
    t: float = DEFAULT_SAMPLING_THRESHOLD
    label: str = LABEL_PREFIX
    verbose: int = 2
    pretrained_vectors: Optional[str] = None
    save_output: bool = False
    seed: int = DEFAULT_SEED
    qout: bool = False
    tensorboard_dir: Optional[str] = None

    @classmethod
    def for_mode(cls, model: str, **overrides) -> "Args":
        """Build arguments with the defaults of a training mode.

        Args:
            model: One of "skipgram", "cbow" or "supervised"
            **overrides: Explicit option values, which win over mode defaults

        Returns:
            Arguments object (not yet validated)
        """
        defaults = {"model": model}
        if model == "supervised":
            defaults.update(
                loss="softmax",
                min_count=1,
                minn=0,
                maxn=0,
                lr=DEFAULT_SUPERVISED_LEARNING_RATE,
            )
        defaults.update(overrides)

        args = cls(**defaults)
        if args.word_ngrams <= 1 and args.maxn == 0 and "bucket" not in overrides:
            args = replace(args, bucket=0)
        return args

    @property
    def is_supervised(self) -> bool:
        return self.model == "supervised"

    def with_updates(self, **changes) -> "Args":
        """Return a copy with some fields changed."""
        return replace(self, **changes)

    def validate(self, require_paths: bool = True) -> "Args":
        """Check option values before any file is touched.

        Args:
            require_paths: Whether input and output paths are mandatory

        Returns:
            self, for chaining

        Raises:
            ConfigurationError: If an option is missing or out of range
        """
        if require_paths:
            if not self.input:
                raise ConfigurationError("Empty input path.")
            if not self.output:
                raise ConfigurationError("Empty output path.")
        if self.model not in MODEL_TYPES:
            raise ConfigurationError(f"Unknown model: {self.model!r}")
        if self.loss not in LOSS_TYPES:
            raise ConfigurationError(f"Unknown loss: {self.loss!r}")
        if self.loss == "ova" and not self.is_supervised:
            raise ConfigurationError("Loss 'ova' is only available in supervised mode.")

        positive = {
            "dim": self.dim,
            "ws": self.ws,
            "epoch": self.epoch,
            "thread": self.thread,
            "lr_update_rate": self.lr_update_rate,
            "word_ngrams": self.word_ngrams,
        }
        for name, value in positive.items():
            if value < 1:
                raise ConfigurationError(f"{name} must be >= 1, got {value}")

        non_negative = {
            "min_count": self.min_count,
            "min_count_label": self.min_count_label,
            "neg": self.neg,
            "bucket": self.bucket,
            "minn": self.minn,
            "maxn": self.maxn,
            "maxskip": self.maxskip,
        }
        for name, value in non_negative.items():
            if value < 0:
                raise ConfigurationError(f"{name} must be >= 0, got {value}")

        if self.minn > self.maxn:
            raise ConfigurationError(
                f"minn ({self.minn}) must not exceed maxn ({self.maxn})"
            )
        if self.maxn > 0 and self.minn == 0:
            raise ConfigurationError("minn must be >= 1 when maxn > 0")
        if self.lr <= 0:
            raise ConfigurationError(f"lr must be > 0, got {self.lr}")
        if self.t <= 0:
            raise ConfigurationError(f"t must be > 0, got {self.t}")
        if self.loss == "ns" and self.neg < 1:
            raise ConfigurationError("neg must be >= 1 for negative sampling")
        if not self.label:
            raise ConfigurationError("Empty label prefix.")
        if len(self.skip_marker) != 1 or self.skip_marker.isspace():
            raise ConfigurationError("skip_marker must be one non-space character")
        return self

    def to_dict(self) -> dict:
        return asdict(self)

    def dump(self) -> str:
        """Render the persisted hyperparameters, one per line."""
        skip = {"input", "output", "pretrained_vectors", "tensorboard_dir", "verbose"}
        lines = []
        for field in fields(self):
            if field.name in skip:
                continue
            lines.append(f"{field.name} {getattr(self, field.name)}")
        return "\n".join(lines)
