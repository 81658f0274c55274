"""
Katz Back-off Language Models

Unigram, bigram and trigram models whose distributions are discounted with
the log-linear Good-Turing table from ``smoothing`` and chained together
through per-context back-off weights:

    P(w | context) = P_katz(w | context)             if w was seen after context
                   = backoff(context) * P(w | shorter context)   otherwise

Unknown words fall through to the unigram entry reserved for them.
"""

import logging
from typing import Dict, List

from .corpus import START_TOKEN, UNKNOWN_TOKEN
from .counters import NestedWeightedMap, WeightedMap
from .model import Context, CountingLanguageModel, count_bigrams, count_trigrams, count_unigrams
from .smoothing import (
    BackoffDistribution, LogLinearFit, fit_smoother, normalize_katz, normalize_katz_nested
)

logger = logging.getLogger(__name__)

DEFAULT_CUTOFF = 5
# Generation cap for context-dependent samplers.
MAX_GENERATED_LENGTH = 100


class KatzUnigramLanguageModel(CountingLanguageModel):
    """
    Unigram model with Good-Turing discounted counts.

    Counts up to ``cutoff`` are discounted with the log-linear table. Words
    discounted to nothing back off to a uniform distribution over the
    vocabulary, so every known word keeps a positive probability and the
    table sums to at most 1. A fictitious ``unknown_count`` is counted before
    discounting and gives unknown words their mass.
    """

    order = 1

    def __init__(self, cutoff: int = DEFAULT_CUTOFF, unknown_count: float = 1.0):
        super().__init__()
        if cutoff < 1:
            raise ValueError("cutoff must be at least 1")
        if unknown_count <= 0:
            raise ValueError("unknown_count must be positive so unknown words keep some mass")
        self.cutoff = cutoff
        self.unknown_count = unknown_count
        self._reset_counts()

    @property
    def params(self) -> Dict:
        return {'cutoff': self.cutoff, 'unknown_count': self.unknown_count}

    def _reset_counts(self) -> None:
        self.word_counts = WeightedMap()

    def _count_sentence(self, marked: List[str]) -> None:
        count_unigrams(marked, self.word_counts)

    def _count_tables(self):
        return {'word_counts': self.word_counts}

    def _normalize_unigrams(self) -> None:
        self.unigram_probs = self.word_counts.copy()
        self.unigram_probs.increment(UNKNOWN_TOKEN, self.unknown_count)
        self.unigram_fit: LogLinearFit = fit_smoother(self.unigram_probs, self.cutoff)
        uniform = WeightedMap({word: 1.0 for word in self.unigram_probs})
        uniform.normalize()
        normalize_katz(self.unigram_probs, self.cutoff, self.unigram_fit, uniform)

    def _normalize(self) -> None:
        self._normalize_unigrams()

    def unigram_table(self) -> WeightedMap:
        return self.unigram_probs

    def _unigram_probability(self, word: str) -> float:
        if word in self.unigram_probs:
            return self.unigram_probs.get(word)
        return self.unigram_probs.get(UNKNOWN_TOKEN)

    def word_probability(self, word: str, context: Context = ()) -> float:
        self._check_trained()
        return self._unigram_probability(word)


class KatzBigramLanguageModel(KatzUnigramLanguageModel):
    """
    Bigram model backing off to the Katz unigram distribution.

    Each previous word's continuation counts are discounted and the freed
    mass is spread over the words it was never followed by, in proportion to
    their unigram probability. A context whose counts free nothing gives up
    the unknown-word share of its mass instead. Previous words never seen as
    a context back off with weight 1.
    """

    order = 2
    default_max_length = MAX_GENERATED_LENGTH

    def _reset_counts(self) -> None:
        self.word_counts = WeightedMap()
        self.bigram_counts = NestedWeightedMap()

    def _count_sentence(self, marked: List[str]) -> None:
        count_bigrams(marked, self.word_counts, self.bigram_counts)

    def _count_tables(self):
        return {'word_counts': self.word_counts, 'bigram_counts': self.bigram_counts}

    def _normalize_bigrams(self) -> None:
        self.bigram_probs = self.bigram_counts.copy()
        self.bigram_fit: LogLinearFit = fit_smoother(self.bigram_counts, self.cutoff)
        self.bigram_backoffs = normalize_katz_nested(
            self.bigram_probs, self.cutoff, self.bigram_fit, lambda _: self.unigram_probs,
            reserve=self.unknown_probability())

    def _normalize(self) -> None:
        self._normalize_unigrams()
        self._normalize_bigrams()

    def bigram_distribution(self, previous: str):
        """Full distribution after ``previous``, as a back-off view."""
        submap = self.bigram_probs.peek(previous)
        if submap is None:
            return self.unigram_probs
        return BackoffDistribution(submap, self.bigram_backoffs.get(previous), self.unigram_probs)

    def _bigram_probability(self, previous: str, word: str) -> float:
        submap = self.bigram_probs.peek(previous)
        if submap is not None and word in submap:
            return submap.get(word)
        unigram = self._unigram_probability(word)
        if submap is None:
            return unigram
        return self.bigram_backoffs.get(previous) * unigram

    def next_word_distribution(self, context: Context) -> WeightedMap:
        return self.bigram_probs.peek(context[-1])

    def word_probability(self, word: str, context: Context = (START_TOKEN,)) -> float:
        self._check_trained()
        previous = ((START_TOKEN,) + tuple(context))[-1]
        return self._bigram_probability(previous, word)


class KatzTrigramLanguageModel(KatzBigramLanguageModel):
    """
    Trigram model backing off to the Katz bigram model.

    The lower-order distribution of a context (u, v) is the complete bigram
    distribution after v, including its own backed-off unigram mass.
    """

    order = 3

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
        self._normalize_unigrams()
        self._normalize_bigrams()

        lower_orders: Dict[str, object] = {}

        def lower_order_for(context):
            previous = context[-1]
            if previous not in lower_orders:
                lower_orders[previous] = self.bigram_distribution(previous)
            return lower_orders[previous]

        self.trigram_probs = self.trigram_counts.copy()
        self.trigram_fit: LogLinearFit = fit_smoother(self.trigram_counts, self.cutoff)
        self.trigram_backoffs = normalize_katz_nested(
            self.trigram_probs, self.cutoff, self.trigram_fit, lower_order_for,
            reserve=self.unknown_probability())

    def next_word_distribution(self, context: Context) -> WeightedMap:
        return self.trigram_probs.peek(tuple(context[-2:])) or self.bigram_probs.peek(context[-1])

    def word_probability(self, word: str, context: Context = (START_TOKEN, START_TOKEN)) -> float:
        self._check_trained()
        u, v = ((START_TOKEN, START_TOKEN) + tuple(context))[-2:]
        submap = self.trigram_probs.peek((u, v))
        if submap is not None and word in submap:
            return submap.get(word)
        bigram = self._bigram_probability(v, word)
        if submap is None:
            return bigram
        return self.trigram_backoffs.get((u, v)) * bigram
