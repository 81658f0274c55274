"""
Katz Back-off Language Model Package

N-gram language models with Good-Turing discounting and Katz back-off,
evaluated by perplexity and by word error rate on speech n-best lists.
"""

from .arpa import SriLanguageModel
from .config import ModelConfig, ModelType, build_model
from .corpus import load_brown_corpus, preprocess_text, read_sentences
from .counters import NestedWeightedMap, WeightedMap
from .evaluation import perplexity, word_error_rate
from .katz import KatzBigramLanguageModel, KatzTrigramLanguageModel, KatzUnigramLanguageModel
from .model import (
    EmpiricalBigramLanguageModel, EmpiricalTrigramLanguageModel, EmpiricalUnigramLanguageModel,
    InterpolatedTrigramLanguageModel
)
from .smoothing import SmoothingError

__version__ = "0.1.0"
__all__ = [
    "WeightedMap", "NestedWeightedMap", "SmoothingError",
    "EmpiricalUnigramLanguageModel", "EmpiricalBigramLanguageModel",
    "EmpiricalTrigramLanguageModel", "InterpolatedTrigramLanguageModel",
    "KatzUnigramLanguageModel", "KatzBigramLanguageModel", "KatzTrigramLanguageModel",
    "SriLanguageModel", "ModelConfig", "ModelType", "build_model",
    "load_brown_corpus", "preprocess_text", "read_sentences",
    "perplexity", "word_error_rate",
]
