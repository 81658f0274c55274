"""
N-gram Language Model Implementation

This module contains the base classes shared by every model in the package,
together with the plain (unsmoothed, linearly interpolated) unigram, bigram
and trigram models.
"""

import logging
import math
import pickle
import random
import warnings
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from .corpus import START_TOKEN, STOP_TOKEN, UNKNOWN_TOKEN, add_sentence_markers
from .counters import NestedWeightedMap, WeightedMap
from .smoothing import BackoffDistribution, fit_smoother, normalize_katz_nested

logger = logging.getLogger(__name__)

# Shared by all models unless a caller passes its own random.Random.
_default_rng = random.Random()

Context = Tuple[str, ...]


class UnderflowWarning(RuntimeWarning):
    """A sentence probability underflowed to zero."""


def count_unigrams(marked: List[str], word_counts: WeightedMap) -> None:
    for word in marked:
        word_counts.increment(word)


def count_bigrams(marked: List[str], word_counts: WeightedMap,
                  bigram_counts: NestedWeightedMap) -> None:
    for i in range(1, len(marked)):
        word_counts.increment(marked[i])
        bigram_counts.increment(marked[i - 1], marked[i])


def count_trigrams(marked: List[str], word_counts: WeightedMap,
                   bigram_counts: NestedWeightedMap,
                   trigram_counts: NestedWeightedMap) -> None:
    for i in range(2, len(marked)):
        word = marked[i]
        word_counts.increment(word)
        bigram_counts.increment(marked[i - 1], word)
        trigram_counts.increment((marked[i - 2], marked[i - 1]), word)


def unigram_distribution(word_counts: WeightedMap, unknown_count: float) -> WeightedMap:
    """Normalized unigram table with a pseudo-count reserved for unknown words."""
    probabilities = word_counts.copy()
    probabilities.increment(UNKNOWN_TOKEN, unknown_count)
    probabilities.normalize()
    return probabilities


class LanguageModel(ABC):
    """
    Base class for anything that scores and samples sentences.

    Attributes:
        order: Number of tokens in the longest n-gram the model conditions on
        start_token: Padding placed before a sentence
        stop_token: Token closing a sentence
        unknown_token: Unigram entry holding the unknown-word mass
        default_max_length: Generation cap used when the caller gives none
        is_trained: Whether the probability tables are ready
    """

    order = 1
    start_token = START_TOKEN
    stop_token = STOP_TOKEN
    unknown_token = UNKNOWN_TOKEN
    default_max_length: Optional[int] = None

    def __init__(self):
        self.is_trained = False
        self.training_stats: Dict = {}

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def word_probability(self, word: str, context: Context = ()) -> float:
        """P(word | context); ``context`` holds the preceding tokens."""

    @abstractmethod
    def unigram_table(self) -> WeightedMap:
        """Normalized unigram probabilities, unknown-word entry included."""

    def _check_trained(self) -> None:
        if not self.is_trained:
            raise RuntimeError("Model must be trained before computing probabilities")

    def _contexts(self, sentence: List[str]):
        marked = add_sentence_markers(sentence, self.order,
                                      start=self.start_token, stop=self.stop_token)
        for i in range(self.order - 1, len(marked)):
            yield marked[i], tuple(marked[i - self.order + 1:i])

    def sentence_probability(self, sentence: List[str]) -> float:
        """
        Probability of a sentence, STOP included.

        Long sentences can underflow a float; when every factor is positive
        but the product is 0 an ``UnderflowWarning`` is issued. Use
        ``sentence_log_probability`` for scoring.
        """
        self._check_trained()
        probability = 1.0
        any_zero = False
        for word, context in self._contexts(sentence):
            p = self.word_probability(word, context)
            any_zero = any_zero or p == 0
            probability *= p
        if probability == 0 and not any_zero:
            logger.warning("Underflow scoring a %d-token sentence", len(sentence))
            warnings.warn(f"sentence probability underflowed ({len(sentence)} tokens)",
                          UnderflowWarning, stacklevel=2)
        return probability

    def sentence_log_probability(self, sentence: List[str]) -> float:
        """Natural-log probability of a sentence (``-inf`` if impossible)."""
        self._check_trained()
        total = 0.0
        for word, context in self._contexts(sentence):
            p = self.word_probability(word, context)
            if p <= 0:
                return float('-inf')
            total += math.log(p)
        return total

    def next_word_distribution(self, context: Context) -> Optional[WeightedMap]:
        """Distribution generation samples from after ``context``."""
        return self.unigram_table()

    def unknown_probability(self) -> float:
        return self.unigram_table().get(self.unknown_token)

    def vocabulary(self) -> Set[str]:
        self._check_trained()
        return set(self.unigram_table().keys())

    def generate_word(self, distribution: WeightedMap, rng: random.Random) -> str:
        """Walk the distribution until its running sum passes a uniform draw."""
        sample = rng.random() * distribution.total()
        running = 0.0
        for word, p in distribution.items():
            running += p
            if running > sample:
                return word
        return self.unknown_token

    def generate_sentence(self, rng: Optional[random.Random] = None,
                          max_length: Optional[int] = None) -> List[str]:
        """
        Sample a sentence, stopping when STOP is drawn.

        Without a ``max_length`` (and no model default) the loop is unbounded
        and ends with probability 1, as long as STOP has positive mass.
        """
        self._check_trained()
        rng = rng or _default_rng
        if max_length is None:
            max_length = self.default_max_length

        sentence = []
        context = (self.start_token,) * (self.order - 1)
        while max_length is None or len(sentence) < max_length:
            distribution = self.next_word_distribution(context)
            if distribution is None or distribution.total() <= 0:
                distribution = self.unigram_table()
            word = self.generate_word(distribution, rng)
            if word == self.stop_token:
                break
            sentence.append(word)
            if self.order > 1:
                context = (context + (word,))[1:]
        return sentence


class CountingLanguageModel(LanguageModel):
    """
    A language model estimated from n-gram counts.

    A model is configured by its constructor, estimated by ``train`` and then
    queried. Tables are rebuilt from scratch on every ``train`` call and are
    read-only afterwards. Only the raw counts are persisted; ``load`` re-runs
    smoothing on them.
    """

    @property
    @abstractmethod
    def params(self) -> Dict:
        """Constructor arguments, used to rebuild the model on load."""

    @abstractmethod
    def _reset_counts(self) -> None:
        """Start from empty count tables."""

    @abstractmethod
    def _count_sentence(self, marked: List[str]) -> None:
        """Add one padded sentence to the count tables."""

    @abstractmethod
    def _count_tables(self) -> Dict[str, Union[WeightedMap, NestedWeightedMap]]:
        """Raw count tables, keyed by attribute name."""

    @abstractmethod
    def _normalize(self) -> None:
        """Build probability tables from the raw counts."""

    def train(self, sentences: Iterable[List[str]], progress_callback=None) -> Dict:
        """
        Estimate the model from tokenized sentences.

        Args:
            sentences: Iterable of token lists (iterated once)
            progress_callback: Optional callback(current, stage)

        Returns:
            Dictionary of training statistics
        """
        self._reset_counts()
        num_sentences = 0
        num_tokens = 0
        for sentence in sentences:
            self._count_sentence(add_sentence_markers(sentence, self.order))
            num_sentences += 1
            num_tokens += len(sentence)
            if progress_callback and num_sentences % 1000 == 0:
                progress_callback(num_sentences, "Counting n-grams")

        if progress_callback:
            progress_callback(num_sentences, "Smoothing")
        self._normalize()
        self.is_trained = True

        self.training_stats = {
            'model': self.name,
            'order': self.order,
            'num_sentences': num_sentences,
            'num_tokens': num_tokens,
            'vocab_size': len(self.unigram_table()),
            **{f'{name}_entries': _entry_count(table)
               for name, table in self._count_tables().items()},
        }
        logger.info("Trained %s on %d sentences (%d tokens)",
                    self.name, num_sentences, num_tokens)
        return self.training_stats

    def save(self, path: str) -> None:
        """Save the raw count tables and hyperparameters to a file."""
        self._check_trained()
        data = {
            'model': self.name,
            'params': self.params,
            'counts': {name: table.as_dict() for name, table in self._count_tables().items()},
            'training_stats': self.training_stats,
        }
        with open(Path(path), 'wb') as f:
            pickle.dump(data, f)

    @classmethod
    def load(cls, path: str) -> 'CountingLanguageModel':
        """Load count tables saved by ``save`` and re-run smoothing."""
        with open(Path(path), 'rb') as f:
            data = pickle.load(f)
        if data['model'] != cls.__name__:
            raise ValueError(f"{path} holds a {data['model']}, not a {cls.__name__}")

        model = cls(**data['params'])
        model._reset_counts()
        for name, table in model._count_tables().items():
            saved = data['counts'][name]
            if isinstance(table, NestedWeightedMap):
                setattr(model, name, NestedWeightedMap.from_dict(saved))
            else:
                setattr(model, name, WeightedMap(saved))
        model._normalize()
        model.is_trained = True
        model.training_stats = data['training_stats']
        return model


def _entry_count(table: Union[WeightedMap, NestedWeightedMap]) -> int:
    if isinstance(table, NestedWeightedMap):
        return table.total_entry_count()
    return len(table)


def _validate_unknown_count(unknown_count: float) -> float:
    if unknown_count <= 0:
        raise ValueError("unknown_count must be positive so unknown words keep some mass")
    return unknown_count


class EmpiricalUnigramLanguageModel(CountingLanguageModel):
    """
    Relative-frequency unigram model.

    Every sentence contributes its words plus one STOP; a single fictitious
    count (``unknown_count``) is reserved for words never seen in training.
    """

    order = 1

    def __init__(self, unknown_count: float = 1.0):
        super().__init__()
        self.unknown_count = _validate_unknown_count(unknown_count)
        self._reset_counts()

    @property
    def params(self) -> Dict:
        return {'unknown_count': self.unknown_count}

    def _reset_counts(self) -> None:
        self.word_counts = WeightedMap()

    def _count_sentence(self, marked: List[str]) -> None:
        count_unigrams(marked, self.word_counts)

    def _count_tables(self):
        return {'word_counts': self.word_counts}

    def _normalize(self) -> None:
        self.probabilities = unigram_distribution(self.word_counts, self.unknown_count)

    def unigram_table(self) -> WeightedMap:
        return self.probabilities

    def word_probability(self, word: str, context: Context = ()) -> float:
        self._check_trained()
        if word in self.probabilities:
            return self.probabilities.get(word)
        return self.probabilities.get(UNKNOWN_TOKEN)


class EmpiricalBigramLanguageModel(CountingLanguageModel):
    """
    Bigram relative frequencies mixed with the unigram model.

    P(w | v) = lambda * c(v, w) / c(v) + (1 - lambda) * P(w)
    """

    order = 2

    def __init__(self, lambda_: float = 0.5, unknown_count: float = 1.0):
        super().__init__()
        if not 0 <= lambda_ < 1:
            raise ValueError("lambda_ must be in [0, 1)")
        self.lambda_ = lambda_
        self.unknown_count = _validate_unknown_count(unknown_count)
        self._reset_counts()

    @property
    def params(self) -> Dict:
        return {'lambda_': self.lambda_, 'unknown_count': self.unknown_count}

    def _reset_counts(self) -> None:
        self.word_counts = WeightedMap()
        self.bigram_counts = NestedWeightedMap()

    def _count_sentence(self, marked: List[str]) -> None:
        count_bigrams(marked, self.word_counts, self.bigram_counts)

    def _count_tables(self):
        return {'word_counts': self.word_counts, 'bigram_counts': self.bigram_counts}

    def _normalize(self) -> None:
        self.unigram_probs = unigram_distribution(self.word_counts, self.unknown_count)
        self.bigram_probs = self.bigram_counts.copy()
        for _, submap in self.bigram_probs.items():
            submap.normalize()

    def unigram_table(self) -> WeightedMap:
        return self.unigram_probs

    def next_word_distribution(self, context: Context) -> WeightedMap:
        return self.bigram_probs.peek(context[-1])

    def word_probability(self, word: str, context: Context = (START_TOKEN,)) -> float:
        self._check_trained()
        previous = ((START_TOKEN,) + tuple(context))[-1]
        unigram = self.unigram_probs.get(word) or self.unigram_probs.get(UNKNOWN_TOKEN)
        bigram = self.bigram_probs.get(previous, word)
        return self.lambda_ * bigram + (1 - self.lambda_) * unigram


class InterpolatedTrigramLanguageModel(CountingLanguageModel):
    """
    Linear mixture of trigram, bigram and unigram estimates.

    P(w | u, v) = lambda1 * P3(w | u, v) + lambda2 * P2(w | v)
                  + (1 - lambda1 - lambda2) * P1(w)

    The component tables are relative frequencies, or Katz-smoothed
    distributions when a discounting ``cutoff`` is given.
    """

    order = 3

    def __init__(self, lambda1: float = 0.5, lambda2: float = 0.3,
                 cutoff: Optional[int] = None, unknown_count: float = 1.0):
        super().__init__()
        if lambda1 < 0 or lambda2 < 0 or lambda1 + lambda2 > 1:
            raise ValueError(
                f"interpolation weights must be non-negative with lambda1 + lambda2 <= 1, "
                f"got lambda1={lambda1}, lambda2={lambda2}"
            )
        if lambda1 + lambda2 == 1:
            logger.warning("lambda1 + lambda2 == 1 leaves no unigram mass for unknown words")
        self.lambda1 = lambda1
        self.lambda2 = lambda2
        self.cutoff = cutoff
        self.unknown_count = _validate_unknown_count(unknown_count)
        self._reset_counts()

    @property
    def params(self) -> Dict:
        return {
            'lambda1': self.lambda1,
            'lambda2': self.lambda2,
            'cutoff': self.cutoff,
            'unknown_count': self.unknown_count,
        }

    def _reset_counts(self) -> None:
        self.word_counts = WeightedMap()
        self.bigram_counts = NestedWeightedMap()
        self.trigram_counts = NestedWeightedMap()

    def _count_sentence(self, marked: List[str]) -> None:
        count_trigrams(marked, self.word_counts, self.bigram_counts, self.trigram_counts)

    def _count_tables(self):
        return {
            'word_counts': self.word_counts,
            'bigram_counts': self.bigram_counts,
            'trigram_counts': self.trigram_counts,
        }

    def _normalize(self) -> None:
        self.unigram_probs = unigram_distribution(self.word_counts, self.unknown_count)
        self.bigram_probs = self.bigram_counts.copy()
        self.trigram_probs = self.trigram_counts.copy()

        if self.cutoff is None:
            for table in (self.bigram_probs, self.trigram_probs):
                for _, submap in table.items():
                    submap.normalize()
            return

        bigram_fit = fit_smoother(self.bigram_counts, self.cutoff)
        bigram_backoffs = normalize_katz_nested(
            self.bigram_probs, self.cutoff, bigram_fit, lambda _: self.unigram_probs)

        def bigram_distribution(context):
            submap = self.bigram_probs.peek(context[-1])
            if submap is None:
                return self.unigram_probs
            return BackoffDistribution(submap, bigram_backoffs.get(context[-1]), self.unigram_probs)

        trigram_fit = fit_smoother(self.trigram_counts, self.cutoff)
        normalize_katz_nested(self.trigram_probs, self.cutoff, trigram_fit, bigram_distribution)

    def unigram_table(self) -> WeightedMap:
        return self.unigram_probs

    def next_word_distribution(self, context: Context) -> WeightedMap:
        return self.trigram_probs.peek(context) or self.bigram_probs.peek(context[-1])

    def word_probability(self, word: str, context: Context = (START_TOKEN, START_TOKEN)) -> float:
        self._check_trained()
        u, v = ((START_TOKEN, START_TOKEN) + tuple(context))[-2:]
        trigram = self.trigram_probs.get((u, v), word)
        bigram = self.bigram_probs.get(v, word)
        unigram = self.unigram_probs.get(word) or self.unigram_probs.get(UNKNOWN_TOKEN)
        return (self.lambda1 * trigram + self.lambda2 * bigram
                + (1.0 - self.lambda1 - self.lambda2) * unigram)


class EmpiricalTrigramLanguageModel(InterpolatedTrigramLanguageModel):
    """Unsmoothed trigram model with fixed interpolation weights (0.5, 0.3)."""

    def __init__(self, unknown_count: float = 1.0):
        super().__init__(lambda1=0.5, lambda2=0.3, cutoff=None, unknown_count=unknown_count)

    @property
    def params(self) -> Dict:
        return {'unknown_count': self.unknown_count}
