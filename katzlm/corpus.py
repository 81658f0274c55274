"""
Corpus Loading and Preprocessing

This module reads sentence corpora (one sentence per line, or the Brown
corpus through NLTK) and pads sentences with the boundary tokens each model
order expects.
"""

import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Set, Tuple, Union

import nltk
from nltk.corpus import brown

logger = logging.getLogger(__name__)

# Special tokens
START_TOKEN = "<S>"
STOP_TOKEN = "</S>"
UNKNOWN_TOKEN = "*UNKNOWN*"

Sentence = List[str]


def preprocess_text(text: str, lowercase: bool = True) -> Sentence:
    """
    Split one line of text into tokens.

    Args:
        text: Raw line
        lowercase: Whether to lowercase the tokens

    Returns:
        List of whitespace-separated tokens
    """
    if lowercase:
        text = text.lower()
    return text.split()


def add_sentence_markers(tokens: Sentence, n: int,
                         start: str = START_TOKEN, stop: str = STOP_TOKEN) -> Sentence:
    """
    Pad a sentence for an order-n model.

    Adds (n-1) start markers and one stop marker, so a unigram sentence only
    gains STOP and a trigram sentence gains START START ... STOP.
    """
    return [start] * (n - 1) + list(tokens) + [stop]


def read_sentences(path: Union[str, Path], lowercase: bool = True) -> Iterator[Sentence]:
    """Lazily yield the tokenized, non-empty lines of a corpus file."""
    with open(path, encoding='utf-8') as f:
        for line in f:
            tokens = preprocess_text(line, lowercase=lowercase)
            if tokens:
                yield tokens


class SentenceCollection:
    """
    A re-iterable view of a corpus file.

    Each iteration re-opens the file, so a collection can be scored
    repeatedly (for instance once per cross-validation point) without
    holding the corpus in memory.
    """

    def __init__(self, path: Union[str, Path], lowercase: bool = True):
        self.path = Path(path)
        self.lowercase = lowercase
        if not self.path.is_file():
            raise FileNotFoundError(f"corpus file not found: {self.path}")

    def __iter__(self) -> Iterator[Sentence]:
        return read_sentences(self.path, lowercase=self.lowercase)

    def __len__(self) -> int:
        return sum(1 for _ in self)


def ensure_nltk_data():
    """Download the Brown corpus if NLTK does not have it yet."""
    try:
        nltk.data.find('corpora/brown')
    except LookupError:
        logger.info("Downloading Brown corpus...")
        nltk.download('brown', quiet=True)


def load_brown_corpus(categories: Optional[List[str]] = None,
                      lowercase: bool = True,
                      min_sentence_length: int = 1) -> Tuple[List[Sentence], dict]:
    """
    Load the Brown corpus and return preprocessed sentences.

    Args:
        categories: Optional list of Brown corpus categories to load
                   (e.g., ['news', 'fiction']). If None, loads all categories.
        lowercase: Whether to lowercase the text
        min_sentence_length: Minimum number of words in a sentence

    Returns:
        Tuple of (list of sentences as token lists, corpus statistics dict)
    """
    ensure_nltk_data()

    sents = brown.sents(categories=categories) if categories else brown.sents()

    processed_sentences = []
    total_tokens = 0
    for sent in sents:
        tokens = [w.lower() if lowercase else w for w in sent]
        if len(tokens) >= min_sentence_length:
            processed_sentences.append(tokens)
            total_tokens += len(tokens)

    stats = {
        'num_sentences': len(processed_sentences),
        'total_tokens': total_tokens,
        'categories': categories or brown.categories()
    }
    return processed_sentences, stats


def get_brown_categories() -> List[str]:
    """Return list of available Brown corpus categories."""
    ensure_nltk_data()
    return brown.categories()


def extract_vocabulary(sentences: Iterable[Sentence]) -> Set[str]:
    vocabulary = set()
    for sentence in sentences:
        vocabulary.update(sentence)
    return vocabulary


def split_sentences(sentences: List[Sentence], holdout_fraction: float = 0.1) -> Tuple[List[Sentence], List[Sentence]]:
    """Split off the last ``holdout_fraction`` of sentences for validation."""
    if not 0 < holdout_fraction < 1:
        raise ValueError("holdout_fraction must be between 0 and 1")
    cut = max(1, int(len(sentences) * (1 - holdout_fraction)))
    return sentences[:cut], sentences[cut:]
