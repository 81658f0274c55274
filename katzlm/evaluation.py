"""
Evaluation Harness

Perplexity on held-out sentences, word error rate when a language model
re-ranks speech-recognition n-best lists, the three model-free WER
baselines, and a cross-validation sweep over model hyperparameters.
"""

import csv
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from sklearn.model_selection import ParameterGrid

from .corpus import preprocess_text
from .model import LanguageModel

logger = logging.getLogger(__name__)

# Acoustic log scores are divided by this before adding the LM log probability.
ACOUSTIC_SCALE = 16.0

INSERT_COST = 1.0
DELETE_COST = 1.0
SUBSTITUTE_COST = 1.0


def edit_distance(first: Sequence, second: Sequence) -> float:
    """Word-level Levenshtein distance with unit insert/delete/substitute costs."""
    previous = [j * DELETE_COST for j in range(len(second) + 1)]
    for i in range(1, len(first) + 1):
        current = [i * INSERT_COST] + [0.0] * len(second)
        for j in range(1, len(second) + 1):
            substitution = 0.0 if first[i - 1] == second[j - 1] else SUBSTITUTE_COST
            current[j] = min(previous[j] + INSERT_COST,
                             current[j - 1] + DELETE_COST,
                             previous[j - 1] + substitution)
        previous = current
    return previous[-1]


def perplexity(model: LanguageModel, sentences: Iterable[List[str]]) -> float:
    """
    Perplexity of a sentence collection: 2 ** (-log2 P / number of words).

    Sentence probabilities include STOP, but only the words of each sentence
    are counted as symbols.
    """
    log2_probability = 0.0
    num_symbols = 0
    for sentence in sentences:
        log2_probability += model.sentence_log_probability(sentence) / math.log(2.0)
        num_symbols += len(sentence)
    if num_symbols == 0:
        raise ValueError("cannot compute perplexity of an empty collection")
    if math.isinf(log2_probability):
        return float('inf')
    return math.pow(0.5, log2_probability / num_symbols)


@dataclass
class SpeechNBestList:
    """
    Recognizer output for one utterance.

    Attributes:
        correct_sentence: Reference transcript
        acoustic_scores: Hypothesis (as a token tuple) -> acoustic log score
    """
    correct_sentence: List[str]
    acoustic_scores: Dict[Tuple[str, ...], float] = field(default_factory=dict)

    @property
    def nbest_sentences(self) -> List[List[str]]:
        return [list(h) for h in self.acoustic_scores]

    def acoustic_score(self, hypothesis: Sequence[str]) -> float:
        return self.acoustic_scores[tuple(hypothesis)]

    def add_hypothesis(self, hypothesis: Sequence[str], score: float) -> None:
        self.acoustic_scores[tuple(hypothesis)] = score


def _parse_nbest_block(lines: List[Tuple[int, str]], source: str) -> SpeechNBestList:
    first_number, first = lines[0]
    label, _, text = first.partition('\t')
    if label != 'REF':
        raise ValueError(f"{source}:{first_number}: n-best block must start with a REF line")
    nbest = SpeechNBestList(correct_sentence=preprocess_text(text))
    for number, line in lines[1:]:
        score, sep, text = line.partition('\t')
        if not sep:
            raise ValueError(f"{source}:{number}: expected '<score>\\t<hypothesis>'")
        nbest.add_hypothesis(preprocess_text(text), float(score))
    if not nbest.acoustic_scores:
        raise ValueError(f"{source}:{first_number}: n-best block has no hypotheses")
    return nbest


def _read_nbest_file(path: Path) -> List[SpeechNBestList]:
    lists = []
    block: List[Tuple[int, str]] = []
    with open(path, encoding='utf-8') as f:
        for number, raw in enumerate(f, start=1):
            line = raw.rstrip('\n')
            if line.startswith('#'):
                continue
            if not line.strip():
                if block:
                    lists.append(_parse_nbest_block(block, str(path)))
                    block = []
                continue
            block.append((number, line))
    if block:
        lists.append(_parse_nbest_block(block, str(path)))
    return lists


def read_nbest_lists(path: Union[str, Path],
                     vocabulary: Optional[Set[str]] = None) -> List[SpeechNBestList]:
    """
    Read n-best lists from a file, or from every ``*.nbest`` file in a directory.

    A file holds blank-line separated blocks::

        REF<TAB>the reference transcript
        -1234.5<TAB>first hypothesis
        -1240.0<TAB>second hypothesis

    Lines starting with ``#`` are ignored. When ``vocabulary`` is given,
    utterances whose reference contains other words are dropped.
    """
    path = Path(path)
    files = sorted(path.glob('*.nbest')) if path.is_dir() else [path]
    lists = []
    for nbest_file in files:
        lists.extend(_read_nbest_file(nbest_file))

    if vocabulary is not None:
        kept = [n for n in lists if all(w in vocabulary for w in n.correct_sentence)]
        logger.info("Kept %d of %d n-best lists inside the vocabulary", len(kept), len(lists))
        lists = kept
    return lists


def extract_correct_sentences(nbest_lists: Iterable[SpeechNBestList]) -> List[List[str]]:
    return [n.correct_sentence for n in nbest_lists]


def _total_words(nbest_lists: Sequence[SpeechNBestList]) -> float:
    total = sum(len(n.correct_sentence) for n in nbest_lists)
    if total == 0:
        raise ValueError("n-best references contain no words")
    return float(total)


def word_error_rate(model: LanguageModel, nbest_lists: Sequence[SpeechNBestList],
                    verbose: bool = False, acoustic_scale: float = ACOUSTIC_SCALE) -> float:
    """
    WER of the hypotheses the model prefers.

    Each hypothesis is scored ln P_LM(h) + acoustic(h) / acoustic_scale.
    When several hypotheses tie for the best score their distances are
    averaged.
    """
    total_distance = 0.0
    for nbest in nbest_lists:
        reference = nbest.correct_sentence
        best_guess = None
        best_score = float('-inf')
        num_best = 0
        distance_for_best = 0.0
        for guess in nbest.nbest_sentences:
            score = (model.sentence_log_probability(guess)
                     + nbest.acoustic_score(guess) / acoustic_scale)
            distance = edit_distance(reference, guess)
            if score == best_score:
                num_best += 1
                distance_for_best += distance
            if score > best_score or best_guess is None:
                best_score = score
                best_guess = guess
                distance_for_best = distance
                num_best = 1
        total_distance += distance_for_best / num_best
        if verbose:
            _log_hypothesis("GUESS:", best_guess, nbest, model, acoustic_scale)
            _log_hypothesis("GOLD:", reference, nbest, model, acoustic_scale)
    return total_distance / _total_words(nbest_lists)


def _log_hypothesis(prefix: str, guess: List[str], nbest: SpeechNBestList,
                    model: LanguageModel, acoustic_scale: float) -> None:
    acoustic = nbest.acoustic_scores.get(tuple(guess), float('nan')) / acoustic_scale
    language = model.sentence_log_probability(guess)
    logger.info("%s\tAM: %.2e\tLM: %.2e\tTotal: %.2e\t%s",
                prefix, acoustic, language, acoustic + language, " ".join(guess))


def _baseline(nbest_lists: Sequence[SpeechNBestList],
              pick: Callable[[List[float]], float]) -> float:
    total_distance = 0.0
    for nbest in nbest_lists:
        distances = [edit_distance(nbest.correct_sentence, guess)
                     for guess in nbest.nbest_sentences]
        total_distance += pick(distances)
    return total_distance / _total_words(nbest_lists)


def word_error_rate_lower_bound(nbest_lists: Sequence[SpeechNBestList]) -> float:
    """WER when the closest hypothesis is always chosen."""
    return _baseline(nbest_lists, min)


def word_error_rate_upper_bound(nbest_lists: Sequence[SpeechNBestList]) -> float:
    """WER when the farthest hypothesis is always chosen."""
    return _baseline(nbest_lists, max)


def word_error_rate_random_choice(nbest_lists: Sequence[SpeechNBestList]) -> float:
    """Expected WER of a uniformly random choice."""
    return _baseline(nbest_lists, lambda d: sum(d) / len(d))


def parameter_grid(**axes: Sequence) -> List[Dict]:
    """Cartesian product of named parameter values."""
    return list(ParameterGrid({name: list(values) for name, values in axes.items()}))


def interpolation_grid(step: float = 0.1, cutoffs: Optional[Sequence[int]] = None) -> List[Dict]:
    """
    (lambda1, lambda2[, cutoff]) points with lambda1 > 0 and lambda1 + lambda2 < 1.

    With the default step this is lambda1 in 0.1..0.9 and lambda2 in
    0..0.9 - lambda1.
    """
    steps = int(round(1 / step))
    points = []
    for i in range(1, steps):
        for j in range(0, steps - i):
            point = {'lambda1': round(i * step, 10), 'lambda2': round(j * step, 10)}
            if cutoffs:
                points.extend({**point, 'cutoff': k} for k in cutoffs)
            else:
                points.append(point)
    return points


@dataclass
class GridSearchResult:
    best_params: Optional[Dict]
    best_perplexity: float
    rows: List[Dict]


def grid_search(model_factory: Callable[..., LanguageModel],
                train_sentences: Sequence[List[str]],
                validation_sentences: Sequence[List[str]],
                points: Iterable[Dict],
                nbest_lists: Optional[Sequence[SpeechNBestList]] = None,
                progress_callback: Optional[Callable[[int, Dict], None]] = None) -> GridSearchResult:
    """
    Train one model per parameter point and keep the lowest validation perplexity.

    Each model is discarded once scored. Points whose model cannot be built
    or smoothed (``ValueError``, ``SmoothingError`` included) are recorded
    with infinite perplexity and an ``error`` field.

    Args:
        model_factory: Called with a point's parameters; returns an untrained model
        train_sentences: Training collection (iterated once per point)
        validation_sentences: Held-out collection scored for perplexity
        points: Parameter dictionaries to try
        nbest_lists: If given, WER is recorded for every point too
        progress_callback: Optional callback(index, row) after each point
    """
    rows = []
    best_params = None
    best_perplexity = float('inf')
    for index, params in enumerate(points):
        row = dict(params)
        try:
            model = model_factory(**params)
            model.train(train_sentences)
        except ValueError as e:
            logger.warning("Skipping %s: %s", params, e)
            row.update(perplexity=float('inf'), error=str(e))
        else:
            row['perplexity'] = perplexity(model, validation_sentences)
            if nbest_lists:
                row['wer'] = word_error_rate(model, nbest_lists)
            if row['perplexity'] < best_perplexity:
                best_perplexity = row['perplexity']
                best_params = dict(params)
        rows.append(row)
        logger.debug("grid point %d: %s", index, row)
        if progress_callback:
            progress_callback(index, row)

    if best_params is not None:
        logger.info("Best parameters %s with perplexity %.3f", best_params, best_perplexity)
    return GridSearchResult(best_params=best_params, best_perplexity=best_perplexity, rows=rows)


def write_results_csv(rows: List[Dict], path: Union[str, Path]) -> None:
    """Write grid-search rows to CSV, one column per key seen."""
    columns: List[str] = []
    for row in rows:
        columns.extend(k for k in row if k not in columns)
    with open(path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=columns)
        writer.writeheader()
        writer.writerows(rows)
