"""
ARPA Back-off Models

Loads a precomputed trigram back-off model in the ARPA format written by
SRILM and scores sentences with it. Only n-gram lines (those starting with
``-``) are read: ``log10 p <TAB> n-gram [<TAB> log10 back-off]``. Values are
kept as natural logarithms.
"""

import logging
import math
from pathlib import Path
from typing import Optional, Union

from .counters import WeightedMap
from .model import Context, LanguageModel

logger = logging.getLogger(__name__)

LOG10_E = math.log10(math.e)
# Used when the file carries no <unk> unigram.
DEFAULT_UNKNOWN_LOG10_PROB = -7.0


class ArpaFormatError(ValueError):
    """An ARPA line could not be interpreted."""


def parse_arpa_line(line: str):
    """
    Split one n-gram line into (natural-log prob, n-gram, natural-log back-off).

    Returns:
        Tuple whose back-off element is None for two-column lines

    Raises:
        ArpaFormatError: wrong column count or unparsable number
    """
    parts = line.rstrip('\n').split('\t')
    if len(parts) not in (2, 3):
        raise ArpaFormatError(f"expected 2 or 3 tab-separated columns, got {len(parts)}")
    try:
        log_prob = float(parts[0]) / LOG10_E
        backoff = float(parts[2]) / LOG10_E if len(parts) == 3 else None
    except ValueError as e:
        raise ArpaFormatError(str(e)) from e
    return log_prob, parts[1], backoff


class SriLanguageModel(LanguageModel):
    """
    Trigram back-off model read from an ARPA file.

    P(w | u v) = p(u v w)                    if listed
               = p(v w) * bow(u v)           if the bigram is listed
               = p(w) * bow(v)               otherwise, with p(<unk>) for
                                             words missing from the file
    """

    order = 3
    start_token = "<s>"
    stop_token = "</s>"
    unknown_token = "<unk>"
    default_max_length = 100

    def __init__(self, path: Union[str, Path], unknown_log10_prob: float = DEFAULT_UNKNOWN_LOG10_PROB):
        super().__init__()
        self.path = Path(path)
        self.log_probabilities = WeightedMap()
        self.log_backoffs = WeightedMap()
        self.malformed_lines = 0
        self._unigrams: Optional[WeightedMap] = None

        self._read(self.path)
        if self.unknown_token not in self.log_probabilities:
            logger.warning("%s has no %s entry; using log10 p = %s for unknown words",
                           self.path, self.unknown_token, unknown_log10_prob)
            self.log_probabilities.set(self.unknown_token, unknown_log10_prob / LOG10_E)
        self.is_trained = True
        self.training_stats = {
            'model': self.name,
            'order': self.order,
            'ngrams': len(self.log_probabilities),
            'backoffs': len(self.log_backoffs),
            'malformed_lines': self.malformed_lines,
        }

    def _read(self, path: Path) -> None:
        with open(path, encoding='utf-8') as f:
            for line_number, line in enumerate(f, start=1):
                if not line.startswith('-'):
                    continue
                try:
                    log_prob, ngram, backoff = parse_arpa_line(line)
                except ArpaFormatError as e:
                    self.malformed_lines += 1
                    logger.warning("%s:%d: skipping malformed line (%s): %r",
                                   path, line_number, e, line.rstrip('\n'))
                    continue
                self.log_probabilities.set(ngram, log_prob)
                if backoff is not None:
                    self.log_backoffs.set(ngram, backoff)
        logger.info("Read %d n-grams from %s", len(self.log_probabilities), path)

    def log_word_probability(self, word: str, context: Context = ()) -> float:
        u, v = ((self.start_token, self.start_token) + tuple(context))[-2:]
        trigram = f"{u} {v} {word}"
        if trigram in self.log_probabilities:
            return self.log_probabilities.get(trigram)

        bigram = f"{v} {word}"
        if bigram in self.log_probabilities:
            return self.log_probabilities.get(bigram) + self.log_backoffs.get(f"{u} {v}")

        if word in self.log_probabilities:
            unigram = self.log_probabilities.get(word)
        else:
            logger.debug("unknown word: %s", word)
            unigram = self.log_probabilities.get(self.unknown_token)
        return unigram + self.log_backoffs.get(v)

    def word_probability(self, word: str, context: Context = ()) -> float:
        return math.exp(self.log_word_probability(word, context))

    def sentence_log_probability(self, sentence) -> float:
        return sum(self.log_word_probability(word, context)
                   for word, context in self._contexts(sentence))

    def unigram_table(self) -> WeightedMap:
        if self._unigrams is None:
            unigrams = WeightedMap()
            for ngram, log_prob in self.log_probabilities.items():
                if ' ' not in ngram:
                    unigrams.set(ngram, math.exp(log_prob))
            self._unigrams = unigrams
        return self._unigrams
