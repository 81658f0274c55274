import pytest

from katzlm.config import ModelConfig, ModelType, build_model, model_class_for
from katzlm.katz import KatzTrigramLanguageModel
from katzlm.model import CountingLanguageModel, InterpolatedTrigramLanguageModel


@pytest.mark.parametrize("model_type", [t for t in ModelType if t != ModelType.SRI])
def test_build_model_matches_loadable_class(model_type):
    model = build_model(ModelConfig(model_type=model_type))
    assert isinstance(model, CountingLanguageModel)
    assert type(model) is model_class_for(model_type)
    assert not model.is_trained


def test_build_model_passes_settings():
    model = build_model(ModelConfig(model_type=ModelType.KATZ_TRIGRAM, cutoff=7, unknown_count=2.0))
    assert isinstance(model, KatzTrigramLanguageModel)
    assert model.params == {'cutoff': 7, 'unknown_count': 2.0}

    interpolated = build_model(ModelConfig(model_type=ModelType.INTERPOLATED,
                                           lambda1=0.2, lambda2=0.7, cutoff=None))
    assert isinstance(interpolated, InterpolatedTrigramLanguageModel)
    assert interpolated.cutoff is None
    assert (interpolated.lambda1, interpolated.lambda2) == (0.2, 0.7)


def test_sri_model_needs_a_path():
    with pytest.raises(ValueError):
        build_model(ModelConfig(model_type=ModelType.SRI))
    with pytest.raises(ValueError):
        model_class_for(ModelType.SRI)


def test_config_to_dict():
    data = ModelConfig(model_type=ModelType.KATZ_BIGRAM).to_dict()
    assert data['model_type'] == "katz-bigram"
    assert data['cutoff'] == 5
