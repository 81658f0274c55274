"""
Model Configuration

Names the available language models and builds one from a configuration.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, Optional

from .arpa import SriLanguageModel
from .katz import DEFAULT_CUTOFF, KatzBigramLanguageModel, KatzTrigramLanguageModel, KatzUnigramLanguageModel
from .model import (
    EmpiricalBigramLanguageModel, EmpiricalTrigramLanguageModel, EmpiricalUnigramLanguageModel,
    InterpolatedTrigramLanguageModel, LanguageModel
)


class ModelType(Enum):
    """Available language models."""
    BASELINE = "baseline"                    # Empirical unigram
    BIGRAM = "bigram"                        # Empirical bigram
    TRIGRAM = "trigram"                      # Empirical trigram
    KATZ_UNIGRAM = "katz-unigram"
    KATZ_BIGRAM = "katz-bigram"
    KATZ_TRIGRAM = "katz-trigram"
    INTERPOLATED = "interpolated"            # Linear trigram mixture
    SRI = "sri"                              # Precomputed ARPA file


@dataclass
class ModelConfig:
    """
    Settings for one language model.

    Attributes:
        model_type: Which model to build
        cutoff: Counts above this are not discounted (Katz and, if set,
            interpolated models)
        lambda1: Trigram weight of the interpolated model
        lambda2: Bigram weight of the interpolated model
        unknown_count: Fictitious count reserved for unknown words
        arpa_path: ARPA file for the SRI model
    """
    model_type: ModelType = ModelType.BASELINE
    cutoff: Optional[int] = DEFAULT_CUTOFF
    lambda1: float = 0.5
    lambda2: float = 0.3
    unknown_count: float = 1.0
    arpa_path: Optional[str] = None

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['model_type'] = self.model_type.value
        return data


def build_model(config: ModelConfig) -> LanguageModel:
    """Factory function to create the configured (untrained) model."""
    model_type = config.model_type
    if model_type == ModelType.BASELINE:
        return EmpiricalUnigramLanguageModel(unknown_count=config.unknown_count)
    elif model_type == ModelType.BIGRAM:
        return EmpiricalBigramLanguageModel(unknown_count=config.unknown_count)
    elif model_type == ModelType.TRIGRAM:
        return EmpiricalTrigramLanguageModel(unknown_count=config.unknown_count)
    elif model_type in (ModelType.KATZ_UNIGRAM, ModelType.KATZ_BIGRAM, ModelType.KATZ_TRIGRAM):
        model_class = {
            ModelType.KATZ_UNIGRAM: KatzUnigramLanguageModel,
            ModelType.KATZ_BIGRAM: KatzBigramLanguageModel,
            ModelType.KATZ_TRIGRAM: KatzTrigramLanguageModel,
        }[model_type]
        return model_class(cutoff=config.cutoff or DEFAULT_CUTOFF,
                           unknown_count=config.unknown_count)
    elif model_type == ModelType.INTERPOLATED:
        return InterpolatedTrigramLanguageModel(
            lambda1=config.lambda1,
            lambda2=config.lambda2,
            cutoff=config.cutoff,
            unknown_count=config.unknown_count,
        )
    elif model_type == ModelType.SRI:
        if not config.arpa_path:
            raise ValueError("the sri model needs an ARPA file path")
        return SriLanguageModel(config.arpa_path)
    else:
        raise ValueError(f"Unknown model type: {model_type}")


def model_class_for(model_type: ModelType):
    """The class ``build_model`` instantiates, for loading saved counts."""
    classes = {
        ModelType.BASELINE: EmpiricalUnigramLanguageModel,
        ModelType.BIGRAM: EmpiricalBigramLanguageModel,
        ModelType.TRIGRAM: EmpiricalTrigramLanguageModel,
        ModelType.KATZ_UNIGRAM: KatzUnigramLanguageModel,
        ModelType.KATZ_BIGRAM: KatzBigramLanguageModel,
        ModelType.KATZ_TRIGRAM: KatzTrigramLanguageModel,
        ModelType.INTERPOLATED: InterpolatedTrigramLanguageModel,
    }
    if model_type not in classes:
        raise ValueError(f"{model_type.value} models are not trained from counts")
    return classes[model_type]
