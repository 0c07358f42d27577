"""Multi-threaded Hogwild trainer."""

import sys
import threading
import time
from enum import Enum
from typing import Dict, List, Optional

import torch
from tqdm import tqdm

from hornvecs.config import MAX_LINE_SIZE, Args
from hornvecs.data import CorpusReader, chunked
from hornvecs.dictionary import Dictionary, EntryType, Line
from hornvecs.losses import ALL_TARGETS
from hornvecs.matrix import Matrix
from hornvecs.models import Model, State, build_loss
from hornvecs.pairs import PairGenerator
from hornvecs.utils import load_vectors

# Seconds between two progress reports of the main thread
POLL_INTERVAL = 0.1

# Progress reports between two TensorBoard writes
TENSORBOARD_EVERY = 10


class TrainerState(Enum):
    IDLE = "idle"
    DICTIONARY_BUILT = "dictionary_built"
    MATRICES_ALLOCATED = "matrices_allocated"
    RUNNING = "running"
    CONVERGED = "converged"
    FAILED = "failed"


def learning_rate(lr0: float, token_count: int, epoch: int, ntokens: int) -> float:
    """Linearly decayed learning rate.

    Args:
        lr0: Initial learning rate
        token_count: Tokens processed so far by all workers
        epoch: Number of epochs
        ntokens: Tokens in one pass over the corpus

    Returns:
        ``lr0 * (1 - token_count / (epoch * ntokens))``, never below 0
    """
    budget = epoch * ntokens
    if budget <= 0:
        return 0.0
    return max(0.0, lr0 * (1.0 - token_count / budget))


class TokenCounter:
    """Tokens processed by all workers; the only state they synchronise on."""

    def __init__(self):
        self._lock = threading.Lock()
        self._value = 0

    def add(self, n: int) -> int:
        with self._lock:
            self._value += n
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class Trainer:
    """Builds the vocabulary and matrices, then trains them with worker threads.

    Each worker reads its own slice of the corpus and updates the shared
    matrices without locks. The main thread only watches progress.
    """

    def __init__(self, args: Args, dictionary: Optional[Dictionary] = None):
        """Initialize trainer.

        Args:
            args: Validated training arguments
            dictionary: Prebuilt dictionary; read from ``args.input`` when omitted
        """
        self.args = args
        self.dictionary = dictionary
        self.state = TrainerState.IDLE if dictionary is None else TrainerState.DICTIONARY_BUILT
        self.input: Optional[Matrix] = None
        self.output: Optional[Matrix] = None
        self.model: Optional[Model] = None
        self.token_counter = TokenCounter()
        self.loss = 0.0
        self.start_time = 0.0

        self._stop = threading.Event()
        self._errors: List[BaseException] = []
        self._thread_losses: Dict[int, float] = {}

    @property
    def budget(self) -> int:
        return self.args.epoch * self.dictionary.ntokens

    def progress(self) -> float:
        if self.dictionary is None or self.budget <= 0:
            return 0.0
        return min(1.0, self.token_counter.value / self.budget)

    def current_lr(self) -> float:
        return learning_rate(
            self.args.lr, self.token_counter.value, self.args.epoch, self.dictionary.ntokens
        )

    def build_dictionary(self) -> Dictionary:
        """First pass over the corpus."""
        self.dictionary = Dictionary(self.args).read_from_file(self.args.input)
        self.state = TrainerState.DICTIONARY_BUILT
        return self.dictionary

    def allocate(self) -> Model:
        """Create the input and output matrices and bind the loss.

        The input matrix is uniform in ``[-1/dim, 1/dim]``, or copied from
        pretrained vectors for the words they cover. The output matrix starts
        at zero.
        """
        args = self.args
        if args.pretrained_vectors:
            self.input = self._load_pretrained()
        else:
            self.input = Matrix(self.dictionary.nwords + args.bucket, args.dim)
            generator = torch.Generator().manual_seed(args.seed)
            self.input.uniform_(1.0 / args.dim, generator=generator)

        if args.is_supervised:
            counts = self.dictionary.get_counts(EntryType.LABEL)
        else:
            counts = self.dictionary.get_counts(EntryType.WORD)
        self.output = Matrix(len(counts), args.dim)

        loss = build_loss(args, self.output, counts)
        self.model = Model(self.input, self.output, loss, normalize_gradient=args.model != "skipgram")
        self.state = TrainerState.MATRICES_ALLOCATED
        return self.model

    def _load_pretrained(self) -> Matrix:
        words, vectors = load_vectors(self.args.pretrained_vectors, self.args.dim)
        self.dictionary.add_pretrained_words(words)

        matrix = Matrix(self.dictionary.nwords + self.args.bucket, self.args.dim)
        generator = torch.Generator().manual_seed(self.args.seed)
        matrix.uniform_(1.0 / self.args.dim, generator=generator)
        for i, word in enumerate(words):
            wid = self.dictionary.find(word)
            if 0 <= wid < self.dictionary.nwords:
                matrix.data[wid] = torch.from_numpy(vectors[i])
        return matrix

    def train(self) -> Model:
        """Run the whole training pipeline.

        Returns:
            Trained model

        Raises:
            ConfigurationError: If the arguments are invalid
            DataError: If the corpus yields no usable vocabulary
            ModelIOError: If the corpus cannot be read
        """
        self.args.validate()
        if self.dictionary is None:
            self.build_dictionary()
        if self.model is None:
            self.allocate()

        self.state = TrainerState.RUNNING
        try:
            self._run_workers()
        except BaseException:
            self.state = TrainerState.FAILED
            raise
        self.state = TrainerState.CONVERGED
        return self.model

    def _run_workers(self) -> None:
        args = self.args
        self._stop.clear()
        self._errors = []
        tb_logger = self._create_tensorboard_logger()
        self.start_time = time.perf_counter()

        threads = [
            threading.Thread(
                target=self._worker_main, args=(i,), name=f"hornvecs-worker-{i}", daemon=True
            )
            for i in range(args.thread)
        ]
        for thread in threads:
            thread.start()

        pbar = tqdm(
            total=self.budget,
            desc="Training",
            unit="tok",
            file=sys.stderr,
            disable=args.verbose <= 1,
        )
        reports = 0
        try:
            while any(thread.is_alive() for thread in threads):
                time.sleep(POLL_INTERVAL)
                if self._errors:
                    self._stop.set()
                    break
                reports += 1
                self._report(pbar)
                if tb_logger is not None and reports % TENSORBOARD_EVERY == 0:
                    self._log_tensorboard(tb_logger)
        except KeyboardInterrupt:
            self._stop.set()
            raise
        finally:
            for thread in threads:
                thread.join()
            self._report(pbar)
            pbar.close()
            if tb_logger is not None:
                self._log_tensorboard(tb_logger)
                tb_logger.log_matrix_stats("input", self.input.data, self.token_counter.value)
                tb_logger.log_matrix_stats("output", self.output.data, self.token_counter.value)
                tb_logger.log_hyperparameters(self.args, {"final_loss": self.loss})
                tb_logger.close()

        if self._errors:
            raise self._errors[0]

        if args.verbose > 0:
            print(
                f"Progress: {100.0 * self.progress():5.1f}% "
                f"words/sec/thread: {self.words_per_sec_per_thread():7.0f} "
                f"lr: {self.current_lr():9.6f} "
                f"avg.loss: {self.loss:9.6f}",
                file=sys.stderr,
            )

    def _create_tensorboard_logger(self):
        if not self.args.tensorboard_dir:
            return None
        try:
            from hornvecs.utils.tensorboard_logger import TensorBoardLogger

            return TensorBoardLogger(
                log_dir=self.args.tensorboard_dir,
                experiment_name=TensorBoardLogger.experiment_name(self.args),
            )
        except ImportError:
            print(
                "Warning: TensorBoard dependencies not available. Skipping TensorBoard logging.",
                file=sys.stderr,
            )
            return None

    def words_per_sec_per_thread(self) -> float:
        elapsed = max(time.perf_counter() - self.start_time, 1e-9)
        return self.token_counter.value / elapsed / self.args.thread

    def _report(self, pbar: tqdm) -> None:
        if 0 in self._thread_losses:
            self.loss = self._thread_losses[0]
        done = min(self.token_counter.value, self.budget)
        pbar.update(done - pbar.n)
        pbar.set_postfix(
            {
                "words/sec/thread": f"{self.words_per_sec_per_thread():.0f}",
                "lr": f"{self.current_lr():.6f}",
                "loss": f"{self.loss:.4f}",
            }
        )

    def _log_tensorboard(self, tb_logger) -> None:
        step = self.token_counter.value
        tb_logger.log_training_metrics(
            step=step,
            loss=self.loss,
            learning_rate=self.current_lr(),
            words_per_sec_per_thread=self.words_per_sec_per_thread(),
            progress=self.progress(),
        )
        tb_logger.log_system_stats(step)

    def _worker_main(self, thread_id: int) -> None:
        try:
            self.run_worker(thread_id)
        except Exception as e:
            self._errors.append(e)
            self._stop.set()

    def run_worker(self, thread_id: int) -> None:
        """Train on one slice of the corpus until the shared budget is spent.

        Args:
            thread_id: Worker index; selects the corpus slice and seeds the rng
        """
        args = self.args
        state = self.model.new_state(args.seed + thread_id)
        pairs = PairGenerator(args.ws, state.rng)
        budget = self.budget
        local_tokens = 0

        with CorpusReader.for_worker(args.input, thread_id, args.thread) as reader:
            while not self._stop.is_set():
                token_count = self.token_counter.value
                if token_count >= budget:
                    break
                lr = learning_rate(args.lr, token_count, args.epoch, self.dictionary.ntokens)

                tokens = reader.next_tokens()
                if args.is_supervised:
                    line = self.dictionary.get_line(tokens, state.rng)
                    local_tokens += line.ntokens
                    self.supervised(state, lr, line)
                else:
                    for chunk in chunked(tokens, MAX_LINE_SIZE):
                        line = self.dictionary.get_line(chunk, state.rng)
                        local_tokens += line.ntokens
                        if args.model == "cbow":
                            self.cbow(state, lr, line, pairs)
                        else:
                            self.skipgram(state, lr, line, pairs)

                if local_tokens > args.lr_update_rate:
                    self.token_counter.add(local_tokens)
                    local_tokens = 0
                    self._thread_losses[thread_id] = state.get_loss()

        self._thread_losses[thread_id] = state.get_loss()

    def supervised(self, state: State, lr: float, line: Line) -> None:
        """One update for a labelled example.

        Multi-label examples train a single label chosen at random, except
        with the one-vs-all loss which trains every label at once.
        """
        if not line.labels or not line.words:
            return
        if self.args.loss == "ova":
            target_index = ALL_TARGETS
        else:
            target_index = state.rng.randrange(len(line.labels))
        self.model.update(line.words, line.labels, target_index, lr, state)

    def cbow(self, state: State, lr: float, line: Line, pairs: PairGenerator) -> None:
        for context, center in pairs.cbow_examples(line.words):
            bow: List[int] = []
            for wid in context:
                bow.extend(self.dictionary.get_subwords(wid))
            self.model.update(bow, [center], 0, lr, state)

    def skipgram(self, state: State, lr: float, line: Line, pairs: PairGenerator) -> None:
        for center, context in pairs.skipgram_pairs(line.words):
            self.model.update(self.dictionary.get_subwords(center), [context], 0, lr, state)
